# [파일 설명]
# - 목적: 설정으로부터 전달 오케스트레이터를 구성하고 FastAPI 의존성을 제공한다.
# - 제공 기능: build_orchestrator, get_orchestrator, get_sql_log, get_app_settings
# - 입력/출력: Settings 또는 Request를 받아 서비스 객체를 반환한다.
# - 주의 사항: 레지스트리는 시작 시 한 번 채우고 이후에는 관리 API로만 교체한다.
# - 연관 모듈: app.main, app.api.oracle, app.api.admin
from __future__ import annotations

import httpx
from fastapi import Request

from app.config import DestinationApiConfig, Settings
from app.services.forwarding import Destination, ForwardingOrchestrator
from app.services.registry import (
    DestinationEntry,
    DestinationRouter,
    PatternRule,
    TransformerEntry,
    TransformerRegistry,
)
from app.services.sql_log import SqlLogRecorder


def to_destination(config: DestinationApiConfig | None) -> Destination | None:
    if config is None:
        return None
    return Destination(url=config.url, method=config.method, headers=dict(config.headers))


def build_orchestrator(
    settings: Settings, client: httpx.Client | None = None
) -> ForwardingOrchestrator:
    router = DestinationRouter(
        DestinationEntry(
            rule=PatternRule(glob=route.pattern, description=route.description),
            url=route.destination.url,
            method=route.destination.method,
            headers=dict(route.destination.headers),
        )
        for route in settings.destination_routes
    )
    transformers = TransformerRegistry(
        TransformerEntry(
            rule=PatternRule(
                glob=item.pattern,
                method=item.method,
                headers=dict(item.headers),
                description=item.description,
            ),
            transform=item.transform,
        )
        for item in settings.endpoint_transformers
    )
    return ForwardingOrchestrator(
        router,
        transformers,
        default_destination=to_destination(settings.default_destination()),
        client=client,
    )


def get_orchestrator(request: Request) -> ForwardingOrchestrator:
    return request.app.state.orchestrator


def get_sql_log(request: Request) -> SqlLogRecorder:
    return request.app.state.sql_log


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
