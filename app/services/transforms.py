# [파일 설명]
# - 목적: 생성된 SQL 결과를 외부 API 전송용 페이로드로 변환한다.
# - 제공 기능: 선언형 변환 규칙(TransformSpec)과 기본 봉투(envelope) 생성을 제공한다.
# - 입력/출력: (생성 결과 dict, 원본 페이로드)를 받아 전송 바디를 반환한다.
# - 주의 사항: 실행 코드 문자열은 받지 않으며 고정된 형식 집합만 지원한다.
# - 연관 모듈: app.services.registry, app.services.forwarding에서 사용된다.
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Transform = Callable[[dict[str, Any], Any], Any]
PayloadFormat = Literal["query", "statements", "envelope", "passthrough"]

SOURCE_TAG = "oracle-sql-proxy"
GENERATION_FAILED = {"error": "SQL generation failed"}


def build_default_envelope(generated: dict[str, Any], original: Any) -> dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": SOURCE_TAG,
        "originalData": original,
        "generatedSql": generated,
    }


def collect_statements(generated: dict[str, Any]) -> list[str]:
    input_type = generated.get("inputType")
    if input_type == "object":
        return [generated["insert"]]
    if input_type == "array":
        return [insert for table in generated["tables"] for insert in table["inserts"]]
    if input_type in ("procedure", "multiple-procedures"):
        return [generated["call"]]
    raise ValueError(f"Unsupported inputType: {input_type}")


def build_query(generated: dict[str, Any]) -> str:
    if generated.get("inputType") == "array":
        return "\n".join(table["batchInsert"] for table in generated["tables"])
    statements = collect_statements(generated)
    return statements[0]


# [클래스 설명]
# - 역할: 엔드포인트별 선언형 페이로드 변환 규칙을 정의한다.
# - 사용 위치: 설정(endpoint_transformers)과 관리 API에서 생성된다.
# - 핵심 동작: 입력 형태별 형식 선택, 필드 이름 변경, 고정 필드 추가를 수행한다.
# - 제약/주의: 정의되지 않은 필드는 거부하여 코드 주입을 막는다.
class TransformSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    format: PayloadFormat = "envelope"
    by_input_type: dict[str, PayloadFormat] = Field(default_factory=dict)
    rename: dict[str, str] = Field(default_factory=dict)
    static_fields: dict[str, Any] = Field(default_factory=dict)

    def __call__(self, generated: dict[str, Any], original: Any) -> Any:
        if not generated.get("success"):
            return dict(GENERATION_FAILED)

        payload_format = self.by_input_type.get(generated.get("inputType", ""), self.format)
        if payload_format == "query":
            body: Any = {"query": build_query(generated)}
        elif payload_format == "statements":
            body = {"statements": collect_statements(generated)}
        elif payload_format == "passthrough":
            body = dict(generated)
        else:
            body = build_default_envelope(generated, original)

        if self.rename:
            body = {self.rename.get(key, key): value for key, value in body.items()}
        if self.static_fields:
            body.update(self.static_fields)
        return body
