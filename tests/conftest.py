# [파일 설명]
# - 목적: API 및 서비스의 기대 동작을 자동으로 검증한다.
# - 제공 기능: 저장소 루트 경로 등록, 테스트용 환경 변수, 앱/모의 전송 픽스처를 제공한다.
# - 입력/출력: 고정 입력을 사용하며 테스트 통과 여부로 결과를 확인한다.
# - 주의 사항: 환경 변수는 app 모듈을 임포트하기 전에 설정해야 한다.
# - 연관 모듈: app.main, app.dependencies 및 서비스 레이어와 연동된다.
from __future__ import annotations

import os
import sys
import tempfile
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ["APP_ENV"] = "test"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="oracle-sql-proxy-logs-")
os.environ["LOG_CONSOLE"] = "false"
os.environ["DESTINATION_ROUTES"] = "[]"
os.environ["FORWARD_RETRY_BASE_DELAY"] = "0"
os.environ.pop("DESTINATION_URL", None)

from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.config import Settings  # noqa: E402
from app.dependencies import build_orchestrator  # noqa: E402
from app.main import create_app  # noqa: E402

Handler = Callable[[httpx.Request], httpx.Response]


# [클래스 설명]
# - 역할: 모의 전송으로 들어온 외부 요청을 기록한다.
# - 사용 위치: 전달(forwarding) 관련 API 테스트에서 사용된다.
# - 핵심 동작: 요청을 저장하고 지정된 응답 함수를 호출한다.
# - 제약/주의: 응답 함수가 없으면 200 {"ok": true}를 반환한다.
class RecordingTransport:
    def __init__(self, handler: Handler | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._handler is None:
            return httpx.Response(200, json={"ok": True})
        return self._handler(request)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


def build_test_app(settings: Settings, transport: RecordingTransport | None = None) -> FastAPI:
    app = create_app(settings)
    app.state.orchestrator.close()
    app.state.orchestrator = build_orchestrator(
        settings, client=(transport or RecordingTransport()).client()
    )
    return app


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def client(settings: Settings) -> TestClient:
    return TestClient(build_test_app(settings))


@pytest.fixture
def make_client() -> Callable[..., tuple[TestClient, RecordingTransport]]:
    def factory(
        settings: Settings | None = None, handler: Handler | None = None
    ) -> tuple[TestClient, RecordingTransport]:
        transport = RecordingTransport(handler)
        app = build_test_app(settings or Settings(), transport)
        return TestClient(app), transport

    return factory
