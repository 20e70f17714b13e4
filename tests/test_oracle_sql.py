import pytest

from app.services.oracle_sql import (
    ProcedureFormatError,
    SqlValidationError,
    build_batch_insert,
    build_create_table,
    build_insert,
    build_multi_procedure_call,
    build_procedure_call,
    normalize_procedure_name,
)


def _column_list(insert: str) -> list[str]:
    columns = insert.split("(", 1)[1].split(")", 1)[0]
    return [column.strip() for column in columns.split(",")]


def test_single_insert_keeps_field_order_and_strips_routing_field() -> None:
    insert = build_insert({"tableName": "usuarios", "id": 1, "nombre": "Juan"}, "usuarios")

    assert insert == "INSERT INTO usuarios (id, nombre) VALUES (1, 'Juan');"


def test_single_insert_column_and_value_counts_match() -> None:
    record = {"tableName": "t", "a": 1, "b": "x, y", "c": None, "d": True}

    insert = build_insert(record, "T")

    assert _column_list(insert) == ["a", "b", "c", "d"]
    assert insert.endswith("VALUES (1, 'x, y', NULL, 'Y');")


def test_single_insert_defaults_table_name() -> None:
    assert build_insert({"id": 7}) == "INSERT INTO DATA_TABLE (id) VALUES (7);"


def test_single_insert_rejects_non_mapping_and_empty_records() -> None:
    with pytest.raises(SqlValidationError):
        build_insert(["not", "a", "record"], "T")
    with pytest.raises(SqlValidationError):
        build_insert({"tableName": "only_routing"}, "T")


def test_create_table_uppercases_columns_and_infers_types() -> None:
    ddl = build_create_table(
        {"tableName": "t", "id": 1, "precio": 9.99, "activo": False, "notas": {"a": 1}},
        "T",
    )

    assert ddl == (
        "CREATE TABLE T (\n"
        "  ID NUMBER(10),\n"
        "  PRECIO NUMBER(10,2),\n"
        "  ACTIVO CHAR(1),\n"
        "  NOTAS CLOB\n"
        ");"
    )


def test_create_table_and_insert_reference_the_same_columns() -> None:
    record = {"tableName": "t", "id": 1, "nombre": "Ana", "fecha": "01-01-2024"}

    insert_columns = {column.upper() for column in _column_list(build_insert(record, "T"))}
    ddl_lines = build_create_table(record, "T").splitlines()[1:-1]
    ddl_columns = {line.strip().split(" ", 1)[0] for line in ddl_lines}

    assert insert_columns == ddl_columns == {"ID", "NOMBRE", "FECHA"}


def test_batch_insert_two_records() -> None:
    batch = build_batch_insert([{"tableName": "t", "id": 1}, {"tableName": "t", "id": 2}], "T")

    assert batch == (
        "INSERT ALL\n"
        "  INTO T (id) VALUES (1)\n"
        "  INTO T (id) VALUES (2)\n"
        "SELECT * FROM dual;"
    )
    assert batch.count("INTO T") == 2


def test_batch_insert_empty_and_blank_table_name() -> None:
    assert build_batch_insert([], "T") == ""
    assert build_batch_insert([{"id": 1}], "  ").startswith("INSERT ALL\n  INTO DATA_TABLE (id)")


def test_batch_insert_inconsistent_columns_use_own_columns(caplog) -> None:
    with caplog.at_level("WARNING"):
        batch = build_batch_insert([{"id": 1, "a": "x"}, {"id": 2, "b": "y"}], "T")

    assert "  INTO T (id, a) VALUES (1, 'x')" in batch
    assert "  INTO T (id, b) VALUES (2, 'y')" in batch
    assert "inconsistent columns" in caplog.text


def test_batch_insert_first_record_without_columns_fails() -> None:
    with pytest.raises(SqlValidationError):
        build_batch_insert([{"tableName": "t"}], "T")


def test_procedure_call_with_parameters() -> None:
    call = build_procedure_call("a.b.C", {"p": 1})

    assert call == "BEGIN\n  A.B.C(p => 1);\nEND;"


def test_procedure_call_formats_parameter_values() -> None:
    call = build_procedure_call(
        "pkg_usuarios.crear",
        {"p_nombre": "O'Neil", "p_fecha_alta": "15-01-2024", "p_activo": True, "p_extra": None},
    )

    assert call == (
        "BEGIN\n"
        "  PKG_USUARIOS.CREAR(p_nombre => 'O''Neil', "
        "p_fecha_alta => TO_DATE('15-01-2024', 'DD-MM-YYYY'), "
        "p_activo => 'Y', p_extra => NULL);\n"
        "END;"
    )


def test_procedure_call_without_parameters() -> None:
    assert build_procedure_call("limpiar_cache") == "BEGIN\n  LIMPIAR_CACHE;\nEND;"
    assert build_procedure_call("limpiar_cache", {}) == "BEGIN\n  LIMPIAR_CACHE;\nEND;"


@pytest.mark.parametrize(
    "name",
    ["", "   ", "a.b.c.d", "a..b", ".a", "a b", "a;DROP", "a.b-c", None, 42],
)
def test_procedure_name_rejects_invalid_formats(name) -> None:
    with pytest.raises(ProcedureFormatError):
        normalize_procedure_name(name)


def test_procedure_name_accepts_oracle_identifier_characters() -> None:
    assert normalize_procedure_name("hr.pkg$util.do#it") == "HR.PKG$UTIL.DO#IT"


def test_procedure_parameters_must_be_identifiers_and_a_mapping() -> None:
    with pytest.raises(ProcedureFormatError):
        build_procedure_call("p", {"bad name": 1})
    with pytest.raises(SqlValidationError):
        build_procedure_call("p", [1, 2])


def test_multi_procedure_call_ends_with_commit() -> None:
    call = build_multi_procedure_call(
        [
            {"procedureName": "pkg.uno", "parameters": {"p_id": 1}},
            {"procedureName": "pkg.dos"},
        ]
    )

    assert call == "BEGIN\n  PKG.UNO(p_id => 1);\n  PKG.DOS;\n  COMMIT;\nEND;"


@pytest.mark.parametrize(
    "procedures",
    [[], "pkg.uno", [{"parameters": {}}], ["pkg.uno"], [{"procedureName": ""}]],
)
def test_multi_procedure_call_rejects_invalid_input(procedures) -> None:
    with pytest.raises(SqlValidationError):
        build_multi_procedure_call(procedures)


@pytest.mark.parametrize(
    "key",
    ["id) VALUES (1); DROP TABLE users; --", "bad col", "nombre\n", "a-b", ""],
)
def test_column_names_must_be_identifiers(key) -> None:
    with pytest.raises(SqlValidationError):
        build_insert({key: 1}, "T")
    with pytest.raises(SqlValidationError):
        build_create_table({key: 1}, "T")
    with pytest.raises(SqlValidationError):
        build_batch_insert([{"id": 1}, {"id": 2, key: 1}], "T")


def test_non_finite_values_fail_insert_generation() -> None:
    with pytest.raises(SqlValidationError):
        build_insert({"x": float("nan"), "y": float("inf")}, "T")


def test_procedure_names_reject_trailing_newline() -> None:
    with pytest.raises(ProcedureFormatError):
        normalize_procedure_name("pkg.uno\n")
    with pytest.raises(ProcedureFormatError):
        build_procedure_call("pkg.uno", {"p\n": 1})
