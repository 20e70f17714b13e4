import pytest

from app.services.oracle_sql import SqlValidationError
from app.services.table_grouping import (
    group_records,
    process_json_array,
    resolve_object_table_name,
    sanitize_table_name,
)


def test_sanitize_table_name() -> None:
    assert sanitize_table_name(None) == "DATA_TABLE"
    assert sanitize_table_name("  ") == "DATA_TABLE"
    assert sanitize_table_name("usuarios") == "USUARIOS"
    assert sanitize_table_name("hr.empleados") == "HR.EMPLEADOS"
    assert sanitize_table_name("mi tabla-1") == "MI_TABLA_1"
    assert sanitize_table_name("a.b.c") == "A_B_C"
    assert sanitize_table_name(".b") == "_B"


def test_resolve_object_table_name_keeps_legal_names() -> None:
    assert resolve_object_table_name("usuarios") == "usuarios"
    assert resolve_object_table_name("hr.Empleados") == "hr.Empleados"
    assert resolve_object_table_name("mi tabla") == "MI_TABLA"
    assert resolve_object_table_name(None) == "DATA_TABLE"


def test_group_records_is_case_insensitive_and_ordered() -> None:
    groups = group_records(
        [
            {"tableName": "a", "id": 1},
            {"tableName": "b", "id": 2},
            {"tableName": "A", "id": 3},
            {"id": 4},
        ]
    )

    assert [group.table_name for group in groups] == ["A", "B", "DATA_TABLE"]
    assert [record["id"] for record in groups[0].records] == [1, 3]


def test_group_records_skips_non_mappings(caplog) -> None:
    with caplog.at_level("WARNING"):
        groups = group_records([1, "x", {"tableName": "t", "id": 1}])

    assert len(groups) == 1
    assert "skipping invalid item" in caplog.text


@pytest.mark.parametrize("records", [[], {"tableName": "t"}, None, [1, "x", None]])
def test_group_records_rejects_empty_or_invalid_input(records) -> None:
    with pytest.raises(SqlValidationError):
        group_records(records)


def test_process_json_array_single_table() -> None:
    tables = process_json_array([{"tableName": "t", "id": 1}, {"tableName": "t", "id": 2}])

    assert len(tables) == 1
    table = tables[0]
    assert table["tableName"] == "T"
    assert table["recordCount"] == 2
    assert table["inserts"] == [
        "INSERT INTO T (id) VALUES (1);",
        "INSERT INTO T (id) VALUES (2);",
    ]
    assert table["createTable"] == "CREATE TABLE T (\n  ID NUMBER(10)\n);"
    assert table["batchInsert"].count("\n  INTO T ") == 2


def test_process_json_array_multiple_tables() -> None:
    tables = process_json_array(
        [
            {"tableName": "usuarios", "nombre": "Ana"},
            {"tableName": "productos", "precio": 10.5},
            {"tableName": "USUARIOS", "nombre": "Luis"},
        ]
    )

    assert [(table["tableName"], table["recordCount"]) for table in tables] == [
        ("USUARIOS", 2),
        ("PRODUCTOS", 1),
    ]
