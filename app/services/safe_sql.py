# [파일 설명]
# - 목적: 생성된 SQL의 요약과 구문 점검 결과를 계산한다.
# - 제공 기능: 길이/해시 요약, sqlglot(oracle) 파싱 점검, 대상 테이블 추출을 제공한다.
# - 입력/출력: SQL 문자열 목록을 받아 요약 dict를 반환한다.
# - 주의 사항: 일반 로그에는 원문 SQL 대신 요약만 남긴다.
# - 연관 모듈: app.api.oracle, app.services.sql_log에서 사용된다.
from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Iterable

from sqlglot import exp, parse
from sqlglot.errors import SqlglotError

logger = logging.getLogger(__name__)

INSERT_TARGET_PATTERN = re.compile(
    r"\b(?:INSERT\s+INTO|INTO|CREATE\s+TABLE)\s+([A-Za-z_][\w$#]*(?:\.[A-Za-z_][\w$#]*)?)",
    re.IGNORECASE,
)


# [함수 설명]
# - 목적: summarize_sql 처리 로직을 수행한다.
# - 입력: sql: str
# - 출력: 길이와 sha256 앞 8자리를 담은 dict를 반환한다.
# - 에러 처리: 예외 없이 계산한다.
# - 결정론: 동일 입력에 대해 동일 해시를 반환한다.
# - 보안: 원문 SQL 대신 요약 값만 로그에 남기도록 한다.
def summarize_sql(sql: str) -> dict[str, int | str]:
    sql_hash = hashlib.sha256(sql.encode("utf-8")).hexdigest()[:8]
    return {"len": len(sql), "sha256_8": sql_hash}


# [함수 설명]
# - 목적: 단일 INSERT/CREATE TABLE 문을 Oracle 방언으로 파싱해 점검한다.
# - 입력: statements: 문자열 목록
# - 출력: checked, tables, errors를 담은 dict
# - 에러 처리: 파싱 실패는 errors에 기록하고 정규식으로 대상 테이블을 보완한다.
# - 결정론: 테이블 목록은 정렬/중복 제거한다.
# - 보안: 에러 메시지에는 문장 번호만 포함한다.
def check_statements(statements: Iterable[str], dialect: str = "oracle") -> dict[str, object]:
    tables: list[str] = []
    errors: list[str] = []
    checked = 0

    for index, sql in enumerate(statements):
        checked += 1
        summary = summarize_sql(sql)
        logger.debug(
            "check_statements: index=%s sql_len=%s sql_hash=%s",
            index,
            summary["len"],
            summary["sha256_8"],
        )
        try:
            expressions = [expression for expression in parse(sql, read=dialect) if expression]
        except SqlglotError as exc:
            errors.append(f"parse_error[{index}]: {_first_line(str(exc))}")
            tables.extend(_fallback_tables(sql))
            continue

        parsed_tables = _extract_tables(expressions)
        tables.extend(parsed_tables or _fallback_tables(sql))

    return {"checked": checked, "tables": _sorted_unique(tables), "errors": errors}


def _extract_tables(expressions: Iterable[exp.Expression]) -> list[str]:
    tables: list[str] = []
    for expression in expressions:
        for table in expression.find_all(exp.Table):
            parts = [part for part in (table.catalog, table.db, table.name) if part]
            if parts:
                tables.append(".".join(parts))
    return tables


def _fallback_tables(sql: str) -> list[str]:
    return [match.group(1) for match in INSERT_TARGET_PATTERN.finditer(sql)]


def _first_line(message: str) -> str:
    return message.splitlines()[0] if message else message


def _sorted_unique(values: Iterable[str]) -> list[str]:
    return sorted({value.upper() for value in values if value})
