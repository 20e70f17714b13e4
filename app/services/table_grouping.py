from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from app.services.oracle_sql import (
    DEFAULT_TABLE_NAME,
    ROUTING_FIELD,
    SqlValidationError,
    build_batch_insert,
    build_create_table,
    build_insert,
)

logger = logging.getLogger(__name__)

IDENTIFIER_PART_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
QUALIFIED_TABLE_PATTERN = re.compile(r"^[A-Za-z0-9_]+(?:\.[A-Za-z0-9_]+)?$")
ILLEGAL_IDENTIFIER_CHARS = re.compile(r"[^A-Za-z0-9_]")


@dataclass
class TableGroup:
    table_name: str
    records: list[Mapping[str, object]] = field(default_factory=list)


def declared_table_name(record: Mapping[str, object]) -> str:
    raw = record.get(ROUTING_FIELD)
    if raw is None:
        return DEFAULT_TABLE_NAME
    name = str(raw).strip()
    return name or DEFAULT_TABLE_NAME


def sanitize_table_name(table_name: str | None) -> str:
    if not table_name or not table_name.strip():
        return DEFAULT_TABLE_NAME

    if table_name.count(".") == 1:
        schema, table = table_name.split(".")
        if IDENTIFIER_PART_PATTERN.fullmatch(schema) and IDENTIFIER_PART_PATTERN.fullmatch(table):
            return f"{schema.upper()}.{table.upper()}"

    cleaned = ILLEGAL_IDENTIFIER_CHARS.sub("_", table_name).upper()
    if cleaned != table_name.upper():
        logger.warning("sanitize_table_name: table name sanitized %r -> %r", table_name, cleaned)
    return cleaned


def resolve_object_table_name(table_name: str | None) -> str:
    """Table name for the single-object path.

    Legal names are kept exactly as sent; anything else goes through
    sanitize_table_name.
    """
    if table_name and QUALIFIED_TABLE_PATTERN.fullmatch(table_name):
        return table_name
    return sanitize_table_name(table_name)


def group_records(records: object) -> list[TableGroup]:
    if not isinstance(records, list) or not records:
        raise SqlValidationError("The JSON array cannot be empty and must be a valid array")

    groups: dict[str, TableGroup] = {}
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            logger.warning(
                "group_records: skipping invalid item index=%s type=%s",
                index,
                type(record).__name__,
            )
            continue

        table_name = sanitize_table_name(declared_table_name(record))
        group = groups.get(table_name)
        if group is None:
            group = groups[table_name] = TableGroup(table_name=table_name)
        group.records.append(record)

    if not groups:
        raise SqlValidationError("No valid records found to process")

    return list(groups.values())


def process_json_array(records: object) -> list[dict[str, object]]:
    results: list[dict[str, object]] = []
    for group in group_records(records):
        results.append(
            {
                "tableName": group.table_name,
                "recordCount": len(group.records),
                "inserts": [build_insert(record, group.table_name) for record in group.records],
                "createTable": build_create_table(group.records[0], group.table_name),
                "batchInsert": build_batch_insert(group.records, group.table_name),
            }
        )
    logger.info(
        "process_json_array: tables=%s records=%s",
        len(results),
        sum(result["recordCount"] for result in results),
    )
    return results
