# [파일 설명]
# - 목적: JSON → Oracle SQL 변환과 프로시저 호출 생성 API 라우트를 정의한다.
# - 제공 기능: convert/batch, procedure/proc, validate, health, info, examples 엔드포인트를 제공한다.
# - 입력/출력: 임의 JSON 바디를 받아 생성된 SQL과 전달(forwarded) 결과를 camelCase로 반환한다.
# - 주의 사항: 원문 SQL은 일반 로그에 남기지 않고 SQL 전용 로그(app.sql)에만 기록한다.
# - 연관 모듈: app.services.conversion, app.services.forwarding, app.services.sql_log와 연결된다.
from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.config import Settings
from app.dependencies import get_app_settings, get_orchestrator, get_sql_log
from app.services.conversion import (
    convert_payload,
    convert_procedures,
    generated_at,
    statements_of,
)
from app.services.forwarding import ForwardingOrchestrator, ForwardResult, forward_with_retry
from app.services.oracle_sql import PROCEDURE_NAME_FIELD, SqlValidationError
from app.services.safe_sql import check_statements
from app.services.sql_log import SourceInfo, SqlLogRecorder

logger = logging.getLogger(__name__)

router = APIRouter()

SERVICE_NAME = "oracle-sql-proxy"
SERVICE_VERSION = "1.0.0"
SLOW_PROCEDURE_MS = 5000

CONVERT_HELP = "Send a JSON object or an array of JSON objects. Use 'tableName' to pick the target table."
PROCEDURE_HELP = (
    "Send {'procedureName': 'SCHEMA.PACKAGE.PROCEDURE', 'parameters': {...}} "
    "or an array of such objects."
)
CONVERT_EXAMPLE: dict[str, Any] = {
    "tableName": "usuarios",
    "nombre": "Juan",
    "edad": 30,
    "activo": True,
}
PROCEDURE_EXAMPLE: dict[str, Any] = {
    "procedureName": "PKG_USUARIOS.CREAR_USUARIO",
    "parameters": {"p_nombre": "Juan", "p_edad": 30, "p_fecha_alta": "15-01-2024"},
}


# [클래스 설명]
# - 역할: 응답 모델 공통 설정(camelCase 별칭)을 제공한다.
# - 사용 위치: 이 모듈의 모든 응답 모델이 상속한다.
# - 핵심 동작: 파이썬 필드명은 snake_case, 직렬화는 camelCase로 고정한다.
# - 제약/주의: 이름으로도 채울 수 있도록 populate_by_name을 켠다.
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Forwarded(CamelModel):
    success: bool
    forwarded: bool
    destination_url: str | None = None
    status: int | None = None
    data: Any = None
    error: str | None = None
    duration_ms: int | None = None


class TableResult(CamelModel):
    table_name: str
    record_count: int
    inserts: list[str]
    create_table: str
    batch_insert: str


class ArraySummary(CamelModel):
    total_tables: int
    total_records: int
    generated_at: str
    session_id: str | None = None


class ObjectConvertResponse(CamelModel):
    success: bool
    input_type: Literal["object"]
    table_name: str
    insert: str
    create_table: str
    generated_at: str
    session_id: str | None = None
    forwarded: Forwarded | None = None


class ArrayConvertResponse(CamelModel):
    success: bool
    input_type: Literal["array"]
    tables: list[TableResult]
    summary: ArraySummary
    forwarded: Forwarded | None = None


class ProcedureResponse(CamelModel):
    success: bool
    input_type: Literal["procedure"]
    procedure_name: str
    call: str
    generated_at: str
    execution_time: int
    session_id: str | None = None
    forwarded: Forwarded | None = None


class ProcedureItem(CamelModel):
    procedure_name: str
    parameter_count: int


class ProceduresSummary(CamelModel):
    total_procedures: int
    generated_at: str


class MultipleProceduresResponse(CamelModel):
    success: bool
    input_type: Literal["multiple-procedures"]
    procedures: list[ProcedureItem]
    call: str
    summary: ProceduresSummary
    execution_time: int
    session_id: str | None = None
    forwarded: Forwarded | None = None


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    help: str
    example: Any = None


class SqlCheck(CamelModel):
    checked: int
    tables: list[str]
    errors: list[str]


class ValidateResponse(CamelModel):
    success: bool
    valid: bool
    message: str
    input_type: str
    record_count: int
    sql_check: SqlCheck
    timestamp: str
    forwarded: Forwarded | None = None


class HealthResponse(CamelModel):
    status: str
    service: str
    version: str
    timestamp: str
    downstream: Forwarded | None = None


def error_response(message: str, help_text: str, example: Any) -> JSONResponse:
    body = ErrorResponse(error=message, help=help_text, example=example)
    return JSONResponse(status_code=400, content=body.model_dump(by_alias=True))


def source_info(request: Request) -> SourceInfo:
    forwarded_for = request.headers.get("x-forwarded-for")
    client_host = request.client.host if request.client else None
    return SourceInfo(
        method=request.method,
        url=str(request.url),
        user_agent=request.headers.get("user-agent"),
        ip=forwarded_for.split(",")[0].strip() if forwarded_for else client_host,
    )


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


def _data_size(payload: Any) -> int:
    return len(json.dumps(payload, ensure_ascii=False, default=str))


def _forwarded(result: ForwardResult) -> Forwarded:
    return Forwarded.model_validate(result.to_response())


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# [함수 설명]
# - 목적: 객체/배열 JSON을 Oracle INSERT와 CREATE TABLE로 변환하고 목적지로 전달한다.
# - 입력: 임의 JSON 바디(객체 또는 객체 배열)를 수신한다.
# - 출력: inputType별 응답 모델(object/array)과 sessionId, forwarded를 반환한다.
# - 에러 처리: 생성 오류는 help/example을 포함한 400 응답으로 변환한다.
# - 결정론: 동일 입력은 동일한 SQL 문자열을 생성한다(타임스탬프 제외).
# - 보안: 원문 SQL은 SQL 전용 로그에만 기록한다.
@router.post(
    "/oracle/convert",
    response_model=ObjectConvertResponse | ArrayConvertResponse,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}},
)
@router.post(
    "/oracle/batch",
    response_model=ObjectConvertResponse | ArrayConvertResponse,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}},
)
def convert(
    request: Request,
    payload: Any = Body(...),
    orchestrator: ForwardingOrchestrator = Depends(get_orchestrator),
    sql_log: SqlLogRecorder = Depends(get_sql_log),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    started = time.perf_counter()
    try:
        result = convert_payload(payload)
    except SqlValidationError as exc:
        logger.warning("convert: path=%s error=%s", request.url.path, exc)
        return error_response(str(exc), CONVERT_HELP, CONVERT_EXAMPLE)

    metadata = {"processingTime": _elapsed_ms(started), "dataSize": _data_size(payload)}
    if result["inputType"] == "array":
        session_id = sql_log.log_array_inserts(source_info(request), result["tables"], metadata)
        result["summary"]["sessionId"] = session_id
    else:
        session_id = sql_log.log_single_insert(
            source_info(request), result["tableName"], result["insert"], metadata
        )
        result["sessionId"] = session_id

    forwarded = forward_with_retry(
        orchestrator,
        result,
        payload,
        request.url.path,
        base_delay=settings.forward_retry_base_delay,
    )
    logger.info(
        "convert: path=%s input_type=%s session=%s forwarded=%s",
        request.url.path,
        result["inputType"],
        session_id,
        forwarded.forwarded,
    )
    if result["inputType"] == "array":
        return ArrayConvertResponse.model_validate({**result, "forwarded": _forwarded(forwarded)})
    return ObjectConvertResponse.model_validate({**result, "forwarded": _forwarded(forwarded)})


# [함수 설명]
# - 목적: 프로시저 호출 JSON을 PL/SQL 블록으로 변환하고 목적지로 전달한다.
# - 입력: {procedureName, parameters} 객체 또는 그 배열을 수신한다.
# - 출력: 단일/다중 프로시저 응답 모델과 executionTime, sessionId, forwarded를 반환한다.
# - 에러 처리: 이름/파라미터 형식 오류는 400 응답으로 변환한다.
# - 결정론: 파라미터 순서는 입력 순서를 유지한다.
# - 보안: 프로시저/파라미터 이름은 식별자 문자만 허용한다.
@router.post(
    "/oracle/procedure",
    response_model=ProcedureResponse | MultipleProceduresResponse,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}},
)
@router.post(
    "/oracle/proc",
    response_model=ProcedureResponse | MultipleProceduresResponse,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}},
)
def procedure(
    request: Request,
    payload: Any = Body(...),
    orchestrator: ForwardingOrchestrator = Depends(get_orchestrator),
    sql_log: SqlLogRecorder = Depends(get_sql_log),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    started = time.perf_counter()
    try:
        result = convert_procedures(payload)
    except SqlValidationError as exc:
        logger.warning("procedure: path=%s error=%s", request.url.path, exc)
        return error_response(str(exc), PROCEDURE_HELP, PROCEDURE_EXAMPLE)

    execution_time = _elapsed_ms(started)
    if execution_time > SLOW_PROCEDURE_MS:
        logger.warning("procedure: slow generation execution_time=%s", execution_time)

    if result["inputType"] == "multiple-procedures":
        names = [item["procedureName"] for item in result["procedures"]]
    else:
        names = [result["procedureName"]]
    session_id = sql_log.log_procedure_call(
        source_info(request),
        names,
        result["call"],
        {"processingTime": execution_time, "dataSize": _data_size(payload)},
    )
    result["executionTime"] = execution_time
    result["sessionId"] = session_id

    forwarded = forward_with_retry(
        orchestrator,
        result,
        payload,
        request.url.path,
        base_delay=settings.forward_retry_base_delay,
    )
    logger.info(
        "procedure: path=%s count=%s session=%s forwarded=%s",
        request.url.path,
        len(names),
        session_id,
        forwarded.forwarded,
    )
    if result["inputType"] == "multiple-procedures":
        return MultipleProceduresResponse.model_validate(
            {**result, "forwarded": _forwarded(forwarded)}
        )
    return ProcedureResponse.model_validate({**result, "forwarded": _forwarded(forwarded)})


@router.get("/oracle/procedure")
def procedure_examples() -> dict[str, Any]:
    return {
        "description": "Generate Oracle PL/SQL procedure calls from JSON",
        "endpoints": ["/api/oracle/procedure", "/api/oracle/proc"],
        "examples": {
            "single": PROCEDURE_EXAMPLE,
            "withoutParameters": {"procedureName": "PKG_MANTENIMIENTO.LIMPIAR_CACHE"},
            "multiple": [
                PROCEDURE_EXAMPLE,
                {
                    "procedureName": "PKG_AUDITORIA.REGISTRAR_EVENTO",
                    "parameters": {"p_evento": "ALTA_USUARIO", "p_activo": True},
                },
            ],
        },
        "notes": [
            "procedureName accepts PROCEDURE, PACKAGE.PROCEDURE or SCHEMA.PACKAGE.PROCEDURE",
            "Parameters are passed by name (p => value)",
            "Multiple procedures run in one block followed by COMMIT",
        ],
    }


# [함수 설명]
# - 목적: 입력 JSON의 형태를 검증하고 SQL 생성을 시험 실행한다.
# - 입력: 변환 또는 프로시저 입력과 동일한 JSON 바디를 수신한다.
# - 출력: valid 여부, 레코드 수, sqlglot 기반 SQL 점검 결과를 반환한다.
# - 에러 처리: 생성 오류는 400 응답으로 변환하고 파서 오류는 sqlCheck.errors에 기록한다.
# - 결정론: sqlCheck.tables는 정렬/중복 제거된 목록이다.
# - 보안: 생성된 SQL 원문은 응답에 포함하지 않는다.
@router.post(
    "/validate",
    response_model=ValidateResponse,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}},
)
def validate(
    request: Request,
    payload: Any = Body(...),
    orchestrator: ForwardingOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    is_procedure = _is_procedure_payload(payload)
    try:
        result = convert_procedures(payload) if is_procedure else convert_payload(payload)
    except SqlValidationError as exc:
        return error_response(
            str(exc),
            PROCEDURE_HELP if is_procedure else CONVERT_HELP,
            PROCEDURE_EXAMPLE if is_procedure else CONVERT_EXAMPLE,
        )

    sql_check = check_statements(statements_of(result))
    valid = not sql_check["errors"]
    forwarded = forward_with_retry(
        orchestrator,
        result,
        payload,
        request.url.path,
        base_delay=settings.forward_retry_base_delay,
    )
    return ValidateResponse(
        success=True,
        valid=valid,
        message="JSON is valid and SQL can be generated"
        if valid
        else "SQL was generated but did not pass the parser check",
        input_type=result["inputType"],
        record_count=len(payload) if isinstance(payload, list) else 1,
        sql_check=SqlCheck(**sql_check),
        timestamp=_timestamp(),
        forwarded=_forwarded(forwarded),
    )


def _is_procedure_payload(payload: Any) -> bool:
    if isinstance(payload, dict):
        return PROCEDURE_NAME_FIELD in payload
    if isinstance(payload, list) and payload:
        return all(isinstance(item, dict) and PROCEDURE_NAME_FIELD in item for item in payload)
    return False


@router.get("/health", response_model=HealthResponse, response_model_by_alias=True)
def api_health(
    request: Request,
    orchestrator: ForwardingOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    health = orchestrator.check_health(request.url.path)
    return HealthResponse(
        status="OK",
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        timestamp=_timestamp(),
        downstream=_forwarded(health),
    )


@router.get("/info")
def info() -> dict[str, Any]:
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "description": "Converts JSON into Oracle SQL and forwards it to configured APIs",
        "endpoints": {
            "GET /health": "Liveness check",
            "GET /api/health": "Service health with downstream check",
            "GET /api/info": "Service information",
            "GET /api/examples": "Conversion examples",
            "POST /api/oracle/convert": "JSON object or array to Oracle INSERT",
            "POST /api/oracle/batch": "Same as convert, routed to the batch destination",
            "POST /api/oracle/procedure": "JSON to Oracle procedure call",
            "POST /api/oracle/proc": "Same as procedure, routed to the procedure destination",
            "GET /api/oracle/procedure": "Procedure call examples",
            "POST /api/validate": "Validate JSON and dry-run SQL generation",
            "GET /api/config/transformers": "List endpoint transformers",
            "POST /api/config/endpoint-transformer": "Set an endpoint transformer",
            "DELETE /api/config/endpoint-transformer": "Remove an endpoint transformer",
            "POST /api/config/transformer": "Set the global transformer",
            "POST /api/config/bearer-token": "Set a bearer token",
            "GET /api/config/destinations": "List destination routes",
        },
        "timestamp": _timestamp(),
    }


@router.get("/examples")
def examples() -> dict[str, Any]:
    return {
        "singleObject": {"input": CONVERT_EXAMPLE, "endpoint": "/api/oracle/convert"},
        "arrayMultipleTables": {
            "input": [
                {"tableName": "usuarios", "nombre": "Ana", "edad": 25},
                {"tableName": "productos", "nombre": "Laptop", "precio": 999.99},
                {"tableName": "usuarios", "nombre": "Luis", "edad": 31},
            ],
            "endpoint": "/api/oracle/batch",
        },
        "dates": {
            "input": {"tableName": "eventos", "fecha_evento": "15-01-2024", "creado": "2024-01-15"},
            "note": "DD-MM-YYYY, DD/MM/YYYY and YYYY-MM-DD become TO_DATE(...)",
        },
        "procedure": {"input": PROCEDURE_EXAMPLE, "endpoint": "/api/oracle/procedure"},
        "generatedAt": generated_at(),
    }
