# [파일 설명]
# - 목적: FastAPI 애플리케이션을 생성하고 라우터/미들웨어/예외 처리기를 조립한다.
# - 제공 기능: create_app 팩토리, /health 엔드포인트, 모듈 수준 app 인스턴스를 제공한다.
# - 입력/출력: 설정(Settings)을 받아 구성된 FastAPI 앱을 반환한다.
# - 주의 사항: 오케스트레이터의 HTTP 클라이언트는 종료 시 닫는다.
# - 연관 모듈: app.api.oracle, app.api.admin, app.dependencies와 연동된다.
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.admin import router as admin_router
from app.api.oracle import CONVERT_EXAMPLE, CONVERT_HELP, SERVICE_NAME, SERVICE_VERSION
from app.api.oracle import router as oracle_router
from app.config import Settings, get_settings
from app.dependencies import build_orchestrator
from app.logging_config import configure_logging
from app.services.sql_log import SqlLogRecorder

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    orchestrator = app.state.orchestrator
    logger.info(
        "startup: routes=%s transformers=%s",
        len(orchestrator.router),
        len(orchestrator.transformers),
    )
    yield
    app.state.orchestrator.close()
    logger.info("shutdown: http client closed")


# [함수 설명]
# - 목적: 잘못된 JSON/요청 본문을 변환 오류와 같은 400 응답 형태로 맞춘다.
# - 입력: FastAPI 요청과 RequestValidationError를 수신한다.
# - 출력: success/error/help/example 필드를 가진 400 JSON 응답을 반환한다.
# - 에러 처리: 검증 오류 상세는 첫 메시지만 요약해 노출한다.
# - 결정론: 동일 오류에는 동일한 응답 구조를 반환한다.
# - 보안: 요청 본문 원문은 응답과 로그에 포함하지 않는다.
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    logger.warning("validation_error: path=%s count=%s", request.url.path, len(errors))
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": f"Invalid request body: {detail}",
            "help": CONVERT_HELP,
            "example": CONVERT_EXAMPLE,
        },
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.orchestrator = build_orchestrator(settings)
    app.state.sql_log = SqlLogRecorder()

    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
        )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # [함수 설명]
    # - 목적: 서비스 상태 확인을 위한 헬스 체크 응답을 제공한다.
    # - 입력: 요청 바디 없이 호출된다.
    # - 출력: status 필드를 포함한 간단한 상태 응답을 반환한다.
    # - 에러 처리: 내부 예외 없이 즉시 성공 응답을 반환한다.
    # - 결정론: 항상 동일한 상태 값을 반환하도록 유지한다.
    # - 보안: 민감 정보는 응답에 포함하지 않는다.
    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(oracle_router, prefix="/api")
    app.include_router(admin_router, prefix="/api/config")
    return app


app = create_app()
