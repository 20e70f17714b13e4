from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

SQL_LOGGER_NAME = "app.sql"

OperationType = Literal["single", "array", "procedure"]


@dataclass(frozen=True)
class SourceInfo:
    method: str
    url: str
    user_agent: str | None = None
    ip: str | None = None


@dataclass
class SqlLogEntry:
    session_id: str
    operation_type: OperationType
    tables: list[str]
    source_info: SourceInfo
    sql_statements: list[str]
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def insert_count(self) -> int:
        return len(self.sql_statements)

    def to_json(self) -> str:
        source = asdict(self.source_info)
        return json.dumps(
            {
                "timestamp": self.timestamp,
                "sessionId": self.session_id,
                "operationType": self.operation_type,
                "tables": self.tables,
                "insertCount": self.insert_count,
                "sourceInfo": {
                    "method": source["method"],
                    "url": source["url"],
                    "userAgent": source["user_agent"],
                    "ip": source["ip"],
                },
                "sqlStatements": self.sql_statements,
                "metadata": self.metadata,
            },
            ensure_ascii=False,
        )


def new_session_id() -> str:
    return f"{int(datetime.now(timezone.utc).timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"


class SqlLogRecorder:
    """Writes one JSON line per generated SQL batch to the SQL statement log.

    The file itself (rotation, location) is owned by the handler attached to
    the ``app.sql`` logger in logging_config.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(SQL_LOGGER_NAME)

    def log_single_insert(
        self,
        source: SourceInfo,
        table_name: str,
        insert: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        return self._write("single", source, [table_name], [insert], metadata)

    def log_array_inserts(
        self,
        source: SourceInfo,
        tables: Sequence[dict[str, Any]],
        metadata: dict[str, Any] | None = None,
    ) -> str:
        statements = [insert for table in tables for insert in table["inserts"]]
        names = [table["tableName"] for table in tables]
        return self._write("array", source, names, statements, metadata)

    def log_procedure_call(
        self,
        source: SourceInfo,
        procedure_names: Sequence[str],
        call: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        return self._write("procedure", source, list(procedure_names), [call], metadata)

    def _write(
        self,
        operation_type: OperationType,
        source: SourceInfo,
        tables: list[str],
        statements: list[str],
        metadata: dict[str, Any] | None,
    ) -> str:
        entry = SqlLogEntry(
            session_id=new_session_id(),
            operation_type=operation_type,
            tables=tables,
            source_info=source,
            sql_statements=statements,
            metadata=metadata or {},
        )
        self._logger.info(entry.to_json())
        return entry.session_id
