# [파일 설명]
# - 목적: 실행 중인 프록시의 변환기/목적지 설정을 조회하고 교체하는 관리 API를 제공한다.
# - 제공 기능: 엔드포인트 변환기 조회/등록/삭제, 전역 변환기 설정, Bearer 토큰 설정, 목적지 조회.
# - 입력/출력: camelCase JSON 요청을 받아 현재 설정 요약을 반환한다.
# - 주의 사항: 변환기는 선언형(TransformSpec)만 허용하며 실행 코드 문자열은 거부한다.
# - 연관 모듈: app.services.registry, app.services.forwarding과 연결된다.
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.config import HttpMethod, Settings
from app.dependencies import get_app_settings, get_orchestrator
from app.services.forwarding import Destination, ForwardingOrchestrator
from app.services.registry import PatternRule, TransformerEntry
from app.services.transforms import TransformSpec

logger = logging.getLogger(__name__)

router = APIRouter()

FALLBACK_DESTINATION_URL = "http://10.6.46.114:8081/exec"


# [클래스 설명]
# - 역할: 관리 API 요청 모델의 공통 설정을 제공한다.
# - 사용 위치: 이 모듈의 요청 모델이 상속한다.
# - 핵심 동작: camelCase 별칭을 사용하고 알 수 없는 필드를 거부한다.
# - 제약/주의: transformerCode 같은 실행 코드 필드는 422 → 400으로 거부된다.
class AdminRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class EndpointTransformerRequest(AdminRequest):
    endpoint_pattern: str = Field(..., min_length=1)
    description: str = ""
    method: HttpMethod | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    transform: TransformSpec = Field(default_factory=TransformSpec)


class GlobalTransformerRequest(AdminRequest):
    transform: TransformSpec | None = None


class BearerTokenRequest(AdminRequest):
    token: str = Field(..., min_length=1)
    endpoint_pattern: str | None = None
    url: str | None = None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@router.get("/transformers")
def list_transformers(
    orchestrator: ForwardingOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    entries = orchestrator.transformers.entries()
    global_transform = orchestrator.global_transform
    return {
        "success": True,
        "totalTransformers": len(entries),
        "transformers": [entry.describe() for entry in entries],
        "globalTransform": global_transform.model_dump()
        if isinstance(global_transform, TransformSpec)
        else None,
        "timestamp": _timestamp(),
    }


# [함수 설명]
# - 목적: 목적지 URL 패턴에 대한 선언형 변환기를 등록하거나 교체한다.
# - 입력: endpointPattern, method, headers, transform, description을 수신한다.
# - 출력: 등록된 변환기 요약과 현재 변환기 수를 반환한다.
# - 에러 처리: 잘못된 패턴/메서드는 400 응답으로 반환한다.
# - 결정론: 같은 패턴은 기존 위치에서 교체되어 우선순위가 유지된다.
# - 보안: 헤더 값은 응답에 포함하지 않고 이름만 반환한다.
@router.post("/endpoint-transformer")
def set_endpoint_transformer(
    request: EndpointTransformerRequest,
    orchestrator: ForwardingOrchestrator = Depends(get_orchestrator),
) -> Any:
    try:
        rule = PatternRule(
            glob=request.endpoint_pattern,
            method=request.method,
            headers=dict(request.headers),
            description=request.description,
        )
    except ValueError as exc:
        return _bad_request(str(exc))

    entry = TransformerEntry(rule=rule, transform=request.transform)
    orchestrator.transformers.set(entry)
    logger.info("set_endpoint_transformer: pattern=%s", request.endpoint_pattern)
    return {
        "success": True,
        "message": f"Transformer configured for pattern: {request.endpoint_pattern}",
        "transformer": entry.describe(),
        "totalTransformers": len(orchestrator.transformers),
    }


@router.delete("/endpoint-transformer")
def remove_endpoint_transformer(
    pattern: str = Query(..., min_length=1),
    orchestrator: ForwardingOrchestrator = Depends(get_orchestrator),
) -> Any:
    if not orchestrator.transformers.remove(pattern):
        return JSONResponse(
            status_code=404,
            content={"success": False, "error": f"No transformer for pattern: {pattern}"},
        )
    logger.info("remove_endpoint_transformer: pattern=%s", pattern)
    return {
        "success": True,
        "message": f"Transformer removed for pattern: {pattern}",
        "totalTransformers": len(orchestrator.transformers),
    }


@router.post("/transformer")
def set_global_transformer(
    request: GlobalTransformerRequest,
    orchestrator: ForwardingOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    orchestrator.global_transform = request.transform
    logger.info("set_global_transformer: enabled=%s", request.transform is not None)
    return {
        "success": True,
        "message": "Global transformer updated"
        if request.transform is not None
        else "Global transformer cleared",
        "globalTransform": request.transform.model_dump() if request.transform else None,
    }


# [함수 설명]
# - 목적: 특정 URL 패턴 또는 기본 목적지에 Bearer 토큰을 설정한다.
# - 입력: token, 선택적 endpointPattern, 선택적 url을 수신한다.
# - 출력: 적용 대상(패턴 또는 기본 목적지)을 반환한다.
# - 에러 처리: 토큰이 비어 있으면 검증 단계에서 400으로 거부된다.
# - 결정론: 같은 패턴에 대한 재설정은 기존 항목을 교체한다.
# - 보안: 토큰 값은 로그와 응답에 남기지 않는다.
@router.post("/bearer-token")
def set_bearer_token(
    request: BearerTokenRequest,
    orchestrator: ForwardingOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    headers = {
        "Authorization": f"Bearer {request.token}",
        "Content-Type": "application/json",
        "X-Source": "oracle-sql-proxy",
    }
    if request.endpoint_pattern:
        try:
            rule = PatternRule(
                glob=request.endpoint_pattern,
                method="POST",
                headers=headers,
                description=f"Bearer token for {request.endpoint_pattern}",
            )
        except ValueError as exc:
            return _bad_request(str(exc))
        orchestrator.transformers.set(
            TransformerEntry(rule=rule, transform=TransformSpec(format="query"))
        )
        logger.info("set_bearer_token: pattern=%s", request.endpoint_pattern)
        return {
            "success": True,
            "message": f"Bearer token configured for pattern: {request.endpoint_pattern}",
            "endpointPattern": request.endpoint_pattern,
        }

    current = orchestrator.default_destination
    url = request.url or (current.url if current else None) or settings.destination_url
    destination = Destination(
        url=url or FALLBACK_DESTINATION_URL,
        method=current.method if current else settings.destination_method,
        headers=headers,
    )
    orchestrator.default_destination = destination
    logger.info("set_bearer_token: default destination url=%s", destination.url)
    return {
        "success": True,
        "message": "Bearer token configured for the default destination",
        "destinationUrl": destination.url,
    }


@router.get("/destinations")
def list_destinations(
    orchestrator: ForwardingOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    default = orchestrator.default_destination
    return {
        "success": True,
        "routes": [entry.describe() for entry in orchestrator.router.entries()],
        "defaultDestination": {
            "url": default.url,
            "method": default.method,
            "headers": sorted(default.headers or {}),
        }
        if default
        else None,
        "timestamp": _timestamp(),
    }
