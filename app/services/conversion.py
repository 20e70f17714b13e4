from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from app.services.oracle_sql import (
    PROCEDURE_NAME_FIELD,
    PROCEDURE_PARAMETERS_FIELD,
    SqlValidationError,
    build_create_table,
    build_insert,
    build_multi_procedure_call,
    build_procedure_call,
)
from app.services.safe_sql import summarize_sql
from app.services.table_grouping import (
    declared_table_name,
    process_json_array,
    resolve_object_table_name,
)

logger = logging.getLogger(__name__)


def generated_at() -> str:
    return datetime.now(timezone.utc).isoformat()


def convert_payload(payload: Any) -> dict[str, Any]:
    if isinstance(payload, list):
        tables = process_json_array(payload)
        return {
            "success": True,
            "inputType": "array",
            "tables": tables,
            "summary": {
                "totalTables": len(tables),
                "totalRecords": sum(table["recordCount"] for table in tables),
                "generatedAt": generated_at(),
            },
        }

    if not isinstance(payload, Mapping):
        raise SqlValidationError("Data must be a valid JSON object or array of objects")

    table_name = resolve_object_table_name(declared_table_name(payload))
    insert = build_insert(payload, table_name)
    summary = summarize_sql(insert)
    logger.info(
        "convert_payload: table=%s sql_len=%s sql_hash=%s",
        table_name,
        summary["len"],
        summary["sha256_8"],
    )
    return {
        "success": True,
        "inputType": "object",
        "tableName": table_name,
        "insert": insert,
        "createTable": build_create_table(payload, table_name),
        "generatedAt": generated_at(),
    }


def convert_procedures(payload: Any) -> dict[str, Any]:
    if isinstance(payload, list):
        for procedure in payload:
            if not isinstance(procedure, Mapping) or not isinstance(
                procedure.get(PROCEDURE_NAME_FIELD), str
            ):
                raise SqlValidationError("Each procedure must have a valid 'procedureName'")
        call = build_multi_procedure_call(payload)
        return {
            "success": True,
            "inputType": "multiple-procedures",
            "procedures": [
                {
                    "procedureName": procedure[PROCEDURE_NAME_FIELD],
                    "parameterCount": len(procedure.get(PROCEDURE_PARAMETERS_FIELD) or {}),
                }
                for procedure in payload
            ],
            "call": call,
            "summary": {"totalProcedures": len(payload), "generatedAt": generated_at()},
        }

    if not isinstance(payload, Mapping):
        raise SqlValidationError(
            "Invalid input format. Expected an object with 'procedureName' and optional "
            "'parameters', or an array of procedures"
        )

    procedure_name = payload.get(PROCEDURE_NAME_FIELD)
    if not isinstance(procedure_name, str) or not procedure_name:
        raise SqlValidationError("A valid 'procedureName' is required")

    call = build_procedure_call(procedure_name, payload.get(PROCEDURE_PARAMETERS_FIELD))
    return {
        "success": True,
        "inputType": "procedure",
        "procedureName": procedure_name,
        "call": call,
        "generatedAt": generated_at(),
    }


def statements_of(result: dict[str, Any]) -> list[str]:
    """Single-row statements that a SQL parser can check (no INSERT ALL / PL/SQL)."""
    if result["inputType"] == "object":
        return [result["createTable"], result["insert"]]
    if result["inputType"] == "array":
        statements: list[str] = []
        for table in result["tables"]:
            statements.append(table["createTable"])
            statements.extend(table["inserts"])
        return statements
    return []
