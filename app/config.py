# [파일 설명]
# - 목적: 환경 변수와 .env 파일에서 프록시 설정을 읽는다.
# - 제공 기능: 서버/로그/전달 대상/엔드포인트 변환기 설정과 캐시된 접근자를 제공한다.
# - 입력/출력: 환경 변수를 입력으로 받아 Settings 객체를 반환한다.
# - 주의 사항: 목록형 설정(DESTINATION_ROUTES 등)은 JSON 문자열로 재정의한다.
# - 연관 모듈: app.main, app.logging_config, app.server에서 사용된다.
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.services.transforms import TransformSpec

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class DestinationApiConfig(BaseModel):
    url: str
    method: HttpMethod = "POST"
    headers: dict[str, str] = Field(default_factory=dict)


class DestinationRouteConfig(BaseModel):
    pattern: str = Field(..., min_length=1)
    description: str = ""
    destination: DestinationApiConfig


class EndpointTransformerConfig(BaseModel):
    pattern: str = Field(..., min_length=1)
    description: str = ""
    method: HttpMethod | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    transform: TransformSpec = Field(default_factory=TransformSpec)


def _env(name: str, default: str) -> str:
    return os.getenv(name) or default


def default_destination_routes() -> list[DestinationRouteConfig]:
    json_headers = {"Content-Type": "application/json"}
    return [
        DestinationRouteConfig(
            pattern="/api/oracle/convert",
            description="Main Oracle SQL endpoint",
            destination=DestinationApiConfig(
                url=_env("ORACLE_API_URL", "http://10.6.46.114:8083/exec"),
                headers={"Authorization": _env("ORACLE_API_TOKEN", "Bearer demo"), **json_headers},
            ),
        ),
        DestinationRouteConfig(
            pattern="/api/oracle/batch",
            description="Oracle batch operations",
            destination=DestinationApiConfig(
                url=_env("ORACLE_BATCH_API_URL", "http://10.6.46.114:8081/batch"),
                headers={
                    "Authorization": _env("ORACLE_BATCH_API_TOKEN", "Bearer demo"),
                    **json_headers,
                },
            ),
        ),
        DestinationRouteConfig(
            pattern="/api/oracle/proc",
            description="Oracle procedure execution",
            destination=DestinationApiConfig(
                url=_env("PROC_API_URL", "http://10.6.46.114:8083/procedure"),
                headers={
                    "Authorization": _env("PROC_API_TOKEN", "Bearer demo"),
                    **json_headers,
                    "X-Source": "oracle-sql-proxy",
                    "X-Operation": "process",
                },
            ),
        ),
        DestinationRouteConfig(
            pattern="/api/validate",
            description="Data validation",
            destination=DestinationApiConfig(
                url=_env("VALIDATE_API_URL", "http://10.6.46.114:8082/validate"),
                headers={"Authorization": _env("VALIDATE_API_TOKEN", "Bearer demo"), **json_headers},
            ),
        ),
        DestinationRouteConfig(
            pattern="/api/health",
            description="Distributed health check",
            destination=DestinationApiConfig(
                url=_env("HEALTH_API_URL", "http://10.6.46.114:8080/health"),
                method="GET",
                headers={"X-Source": "oracle-sql-proxy", "X-Check": "distributed"},
            ),
        ),
    ]


def default_endpoint_transformers() -> list[EndpointTransformerConfig]:
    return [
        EndpointTransformerConfig(
            pattern="*/exec",
            description="Executor expects only the SQL text",
            method="POST",
            headers={"X-Source": "oracle-sql-proxy", "X-Format": "query-only"},
            transform=TransformSpec(format="query"),
        ),
        EndpointTransformerConfig(
            pattern="*10.6.46.114:8081*",
            description="Batch API v1",
            method="POST",
            headers={
                "Authorization": _env("API_8081_TOKEN", "Bearer change-me"),
                "Content-Type": "application/json",
                "X-Source": "oracle-sql-proxy",
                "X-API-Version": "v1",
            },
            transform=TransformSpec(format="query"),
        ),
        EndpointTransformerConfig(
            pattern="localhost:*",
            description="Local development targets",
            method="POST",
            headers={"X-Environment": "development", "X-Debug": "true"},
        ),
        EndpointTransformerConfig(
            pattern="*api.empresa.com*",
            description="Company API",
            headers={
                "Authorization": _env("EMPRESA_API_TOKEN", "Bearer change-me"),
                "X-Company-Format": "v1",
            },
            transform=TransformSpec(format="statements"),
        ),
    ]


class Settings(BaseSettings):
    # Application
    app_env: Literal["development", "production", "test"] = Field(
        "development", alias="APP_ENV"
    )
    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(8003, alias="PORT")
    cors_enabled: bool = Field(True, alias="CORS_ENABLED")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    # General log
    log_dir: str = Field("./logs", alias="LOG_DIR")
    log_file: str = Field("proxy.log", alias="LOG_FILE")
    log_level: LogLevel | None = Field(None, alias="LOG_LEVEL")
    log_max_bytes: int = Field(10 * 1024 * 1024, alias="LOG_MAX_BYTES")
    log_backup_count: int = Field(5, alias="LOG_BACKUP_COUNT")
    log_console: bool | None = Field(None, alias="LOG_CONSOLE")

    # SQL statement log
    sql_log_file: str = Field("sql-inserts.log", alias="SQL_LOG_FILE")
    sql_log_max_bytes: int = Field(5 * 1024 * 1024, alias="SQL_LOG_MAX_BYTES")
    sql_log_backup_count: int = Field(3, alias="SQL_LOG_BACKUP_COUNT")

    # Forwarding
    destination_url: str | None = Field(None, alias="DESTINATION_URL")
    destination_method: HttpMethod = Field("POST", alias="DESTINATION_METHOD")
    destination_auth: str | None = Field(None, alias="DESTINATION_AUTH")
    default_bearer_token: str = Field("demo", alias="DEFAULT_BEARER_TOKEN")
    forward_retry_base_delay: float = Field(1.0, alias="FORWARD_RETRY_BASE_DELAY", ge=0)
    destination_routes: list[DestinationRouteConfig] = Field(
        default_factory=default_destination_routes, alias="DESTINATION_ROUTES"
    )
    endpoint_transformers: list[EndpointTransformerConfig] = Field(
        default_factory=default_endpoint_transformers, alias="ENDPOINT_TRANSFORMERS"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _apply_environment_defaults(self) -> Settings:
        if self.log_level is None:
            self.log_level = {"production": "ERROR", "test": "DEBUG"}.get(self.app_env, "INFO")
        if self.log_console is None:
            self.log_console = self.app_env != "production"
        return self

    def default_destination(self) -> DestinationApiConfig | None:
        if not self.destination_url:
            return None
        return DestinationApiConfig(
            url=self.destination_url,
            method=self.destination_method,
            headers={
                "Authorization": self.destination_auth or f"Bearer {self.default_bearer_token}",
                "Content-Type": "application/json",
                "X-Source": "oracle-sql-proxy",
            },
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


__all__ = [
    "DestinationApiConfig",
    "DestinationRouteConfig",
    "EndpointTransformerConfig",
    "Settings",
    "get_settings",
]
