from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence

from app.services.oracle_values import (
    SqlValidationError,
    format_oracle_value,
    infer_oracle_type,
)

logger = logging.getLogger(__name__)

ROUTING_FIELD = "tableName"
PROCEDURE_NAME_FIELD = "procedureName"
PROCEDURE_PARAMETERS_FIELD = "parameters"
DEFAULT_TABLE_NAME = "DATA_TABLE"

MAX_QUALIFIED_PARTS = 3
PROCEDURE_PART_PATTERN = re.compile(r"^[A-Za-z0-9_$#]+$")
PARAMETER_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_$#]+$")
COLUMN_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_$#]+$")


class ProcedureFormatError(SqlValidationError):
    """Procedure qualified name or parameter name is not a legal identifier."""


def strip_routing_field(record: Mapping[str, object]) -> dict[str, object]:
    """Columns of a record without the routing field; every key must be an identifier."""
    columns = {key: value for key, value in record.items() if key != ROUTING_FIELD}
    for key in columns:
        if not isinstance(key, str) or not COLUMN_NAME_PATTERN.fullmatch(key):
            raise SqlValidationError(f"Column name contains invalid characters: {key}")
    return columns


def build_insert(record: object, table_name: str = DEFAULT_TABLE_NAME) -> str:
    if not isinstance(record, Mapping):
        raise SqlValidationError("Data must be a valid JSON object")

    columns = strip_routing_field(record)
    if not columns:
        raise SqlValidationError("Record has no columns after removing 'tableName'")

    return _render_insert("INSERT INTO", table_name, columns) + ";"


def build_create_table(record: Mapping[str, object], table_name: str = DEFAULT_TABLE_NAME) -> str:
    if not isinstance(record, Mapping):
        raise SqlValidationError("Data must be a valid JSON object")

    column_lines = [
        f"  {key.upper()} {infer_oracle_type(value)}"
        for key, value in strip_routing_field(record).items()
    ]
    return f"CREATE TABLE {table_name} (\n" + ",\n".join(column_lines) + "\n);"


def build_batch_insert(records: Sequence[Mapping[str, object]], table_name: str) -> str:
    if not records:
        return ""
    if not table_name or not table_name.strip():
        table_name = DEFAULT_TABLE_NAME

    expected = list(strip_routing_field(records[0]))
    if not expected:
        raise SqlValidationError("No valid columns left after removing 'tableName'")

    clauses: list[str] = []
    for record in records:
        columns = strip_routing_field(record)
        if set(columns) != set(expected):
            logger.warning(
                "build_batch_insert: inconsistent columns table=%s expected=%s actual=%s",
                table_name,
                expected,
                list(columns),
            )
        clauses.append("  " + _render_insert("INTO", table_name, columns))

    return "INSERT ALL\n" + "\n".join(clauses) + "\nSELECT * FROM dual;"


def normalize_procedure_name(procedure_name: object) -> str:
    if not isinstance(procedure_name, str) or not procedure_name.strip():
        raise ProcedureFormatError("Procedure name is required and must be a string")

    parts = procedure_name.split(".")
    if len(parts) > MAX_QUALIFIED_PARTS or any(not part.strip() for part in parts):
        raise ProcedureFormatError(
            f"Invalid procedure name format: {procedure_name}. Use 'procedure', "
            "'schema.procedure' or 'schema.package.procedure'"
        )
    for part in parts:
        if not PROCEDURE_PART_PATTERN.fullmatch(part):
            raise ProcedureFormatError(
                f"Procedure name contains invalid characters: {procedure_name}"
            )

    return ".".join(part.upper() for part in parts)


def build_procedure_call(
    procedure_name: object, parameters: Mapping[str, object] | None = None
) -> str:
    qualified_name = normalize_procedure_name(procedure_name)
    return f"BEGIN\n{_render_call_line(qualified_name, parameters)}\nEND;"


def build_multi_procedure_call(procedures: object) -> str:
    if not isinstance(procedures, Sequence) or isinstance(procedures, str) or not procedures:
        raise SqlValidationError("An array with at least one procedure is required")

    lines: list[str] = []
    for procedure in procedures:
        if not isinstance(procedure, Mapping) or not procedure.get(PROCEDURE_NAME_FIELD):
            raise SqlValidationError("Each procedure must have a 'procedureName'")
        qualified_name = normalize_procedure_name(procedure[PROCEDURE_NAME_FIELD])
        lines.append(
            _render_call_line(qualified_name, procedure.get(PROCEDURE_PARAMETERS_FIELD))
        )

    # TODO: decide whether a failing call should roll back the earlier calls
    # instead of relying on the block-level COMMIT.
    lines.append("  COMMIT;")
    return "BEGIN\n" + "\n".join(lines) + "\nEND;"


def _render_insert(keyword: str, table_name: str, columns: Mapping[str, object]) -> str:
    column_list = ", ".join(columns)
    value_list = ", ".join(format_oracle_value(value, key) for key, value in columns.items())
    return f"{keyword} {table_name} ({column_list}) VALUES ({value_list})"


def _render_call_line(qualified_name: str, parameters: object) -> str:
    if parameters is None:
        parameters = {}
    if not isinstance(parameters, Mapping):
        raise SqlValidationError("'parameters' must be a JSON object")
    if not parameters:
        return f"  {qualified_name};"

    named: list[str] = []
    for name, value in parameters.items():
        if not PARAMETER_NAME_PATTERN.fullmatch(str(name)):
            raise ProcedureFormatError(f"Parameter name contains invalid characters: {name}")
        named.append(f"{name} => {format_oracle_value(value, name)}")
    return f"  {qualified_name}({', '.join(named)});"
