# [파일 설명]
# - 목적: JSON 값을 Oracle SQL 리터럴과 컬럼 타입으로 변환한다.
# - 제공 기능: 값 포맷팅, 날짜 후보 판별, 날짜 변환, 컬럼 타입 추론을 제공한다.
# - 입력/출력: 단일 JSON 값(및 필드명 힌트)을 받아 SQL 문자열 조각을 반환한다.
# - 주의 사항: 날짜 판별은 휴리스틱이며 실패 시 문자열 리터럴로 복구한다.
# - 연관 모듈: app.services.oracle_sql 문장 생성기에서 사용된다.
from __future__ import annotations

import json
import logging
import math
import re
from datetime import date, datetime

logger = logging.getLogger(__name__)

DATE_HINT_TOKENS = ("fecha", "date")
DAY_FIRST_DASH_PATTERN = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
DAY_FIRST_SLASH_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
DATE_SHAPE_PATTERNS = (DAY_FIRST_DASH_PATTERN, ISO_DATE_PATTERN, DAY_FIRST_SLASH_PATTERN)

LONG_TEXT_THRESHOLD = 100

INTEGER_TYPE = "NUMBER(10)"
DECIMAL_TYPE = "NUMBER(10,2)"
FLAG_TYPE = "CHAR(1)"
DATE_TYPE = "DATE"
LOB_TYPE = "CLOB"
TEXT_TYPE = "VARCHAR2(4000)"


class SqlValidationError(ValueError):
    """Input cannot be turned into SQL (malformed or empty record, bad names or values)."""


def quote_literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


# [함수 설명]
# - 목적: 문자열 값이 날짜 변환 대상인지 판별한다.
# - 입력: value(문자열), field_name(선택적 필드명 힌트)
# - 출력: 날짜 후보 여부 (bool)
# - 에러 처리: 예외 없이 판별만 수행한다.
# - 결정론: 필드명 토큰(fecha/date)과 세 가지 형태 정규식만 사용한다.
# - 보안: 입력 값을 로그에 남기지 않는다.
def looks_like_date(value: str, field_name: str | None = None) -> bool:
    if field_name:
        lowered = field_name.lower()
        if any(token in lowered for token in DATE_HINT_TOKENS):
            return True
    return any(pattern.match(value) for pattern in DATE_SHAPE_PATTERNS)


def parse_date_value(value: str) -> date | None:
    """Parse one of the supported date shapes into a calendar date.

    Returns None when the text is not a valid calendar date. Values that only
    qualified through the field-name hint are tried as ISO-8601.
    """
    match = DAY_FIRST_DASH_PATTERN.match(value) or DAY_FIRST_SLASH_PATTERN.match(value)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    match = ISO_DATE_PATTERN.match(value)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    try:
        return datetime.fromisoformat(value.strip()).date()
    except ValueError:
        return None


def convert_date_to_oracle(value: str) -> str:
    parsed = parse_date_value(value)
    if parsed is None:
        logger.warning("convert_date_to_oracle: invalid date, using string literal len=%s", len(value))
        return quote_literal(value)
    return f"TO_DATE('{parsed.strftime('%d-%m-%Y')}', 'DD-MM-YYYY')"


def format_oracle_value(value: object, field_name: str | None = None) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, str):
        if looks_like_date(value, field_name):
            logger.debug("format_oracle_value: date candidate field=%s", field_name)
            return convert_date_to_oracle(value)
        return quote_literal(value)
    if isinstance(value, bool):
        return "'Y'" if value else "'N'"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise SqlValidationError(
                f"Non-finite number is not a valid Oracle value: {field_name or value}"
            )
        return _format_float(value)
    if isinstance(value, datetime):
        return f"TO_DATE('{value.strftime('%Y-%m-%d %H:%M:%S')}', 'YYYY-MM-DD HH24:MI:SS')"
    if isinstance(value, date):
        return f"TO_DATE('{value.strftime('%Y-%m-%d')} 00:00:00', 'YYYY-MM-DD HH24:MI:SS')"
    if isinstance(value, (dict, list, tuple)):
        return quote_literal(json.dumps(value, ensure_ascii=False, separators=(",", ":")))
    return quote_literal(str(value))


def infer_oracle_type(value: object) -> str:
    if isinstance(value, bool):
        return FLAG_TYPE
    if isinstance(value, int):
        return INTEGER_TYPE
    if isinstance(value, float):
        return INTEGER_TYPE if value.is_integer() else DECIMAL_TYPE
    if isinstance(value, (date, datetime)):
        return DATE_TYPE
    if isinstance(value, (dict, list, tuple)):
        return LOB_TYPE
    if isinstance(value, str) and len(value) > LONG_TEXT_THRESHOLD:
        return LOB_TYPE
    return TEXT_TYPE


def _format_float(value: float) -> str:
    # JSON에는 정수/실수 구분이 없으므로 2.0은 2로 출력한다.
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None
