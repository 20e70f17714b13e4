from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from tenacity import Retrying, retry_if_result, stop_after_attempt, wait_exponential

from app.services.registry import DestinationRouter, TransformerEntry, TransformerRegistry
from app.services.transforms import Transform, build_default_envelope

logger = logging.getLogger(__name__)


class ForwardStage(str, Enum):
    RESOLVE_DESTINATION = "RESOLVE_DESTINATION"
    RESOLVE_TRANSFORMER = "RESOLVE_TRANSFORMER"
    BUILD_PAYLOAD = "BUILD_PAYLOAD"
    SEND = "SEND"


@dataclass(frozen=True)
class EndpointProfile:
    name: str
    timeout: float
    retries: int


FAST_PROFILE = EndpointProfile(name="fast", timeout=3.0, retries=1)
SLOW_PROFILE = EndpointProfile(name="slow", timeout=30.0, retries=3)
DEFAULT_PROFILE = EndpointProfile(name="default", timeout=10.0, retries=2)


def profile_for_endpoint(url: str) -> EndpointProfile:
    if "/procedimiento" in url or "/procedure" in url:
        return SLOW_PROFILE
    if "/health" in url or "/info" in url:
        return FAST_PROFILE
    return DEFAULT_PROFILE


@dataclass(frozen=True)
class Destination:
    url: str
    method: str = "POST"
    headers: dict[str, str] | None = None


@dataclass(frozen=True)
class ForwardResult:
    success: bool
    destination_url: str | None
    status: int | None = None
    data: Any = None
    error: str | None = None
    forwarded: bool = True
    duration_ms: int = 0

    @property
    def retryable(self) -> bool:
        if self.success or not self.forwarded:
            return False
        return self.status is None or self.status >= 500

    def to_response(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "forwarded": self.forwarded,
            "destinationUrl": self.destination_url,
        }
        if self.status is not None:
            payload["status"] = self.status
        if self.success:
            payload["data"] = self.data
        else:
            payload["error"] = self.error
            if self.data is not None:
                payload["data"] = self.data
        if self.forwarded:
            payload["durationMs"] = self.duration_ms
        return payload


def not_forwarded(reason: str, destination_url: str | None = None) -> ForwardResult:
    return ForwardResult(
        success=False, destination_url=destination_url, error=reason, forwarded=False
    )


class ForwardingOrchestrator:
    """Resolve destination and transformer, build the body, send one request."""

    def __init__(
        self,
        router: DestinationRouter,
        transformers: TransformerRegistry,
        *,
        default_destination: Destination | None = None,
        global_transform: Transform | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.router = router
        self.transformers = transformers
        self.default_destination = default_destination
        self.global_transform = global_transform
        self._client = client or httpx.Client(follow_redirects=False)

    def close(self) -> None:
        self._client.close()

    def resolve_destination(self, request_path: str) -> Destination | None:
        entry = self.router.resolve(request_path)
        if entry is not None:
            return Destination(url=entry.url, method=entry.method, headers=dict(entry.headers))
        return self.default_destination

    def resolve_transformer(self, destination_url: str) -> TransformerEntry | None:
        return self.transformers.resolve(destination_url)

    def forward(
        self, generated: dict[str, Any], original: Any, request_path: str
    ) -> ForwardResult:
        stage = ForwardStage.RESOLVE_DESTINATION
        destination = self.resolve_destination(request_path)
        if destination is None:
            logger.info("forward: stage=%s path=%s no destination", stage.value, request_path)
            return not_forwarded(f"No destination configured for {request_path}")

        stage = ForwardStage.RESOLVE_TRANSFORMER
        entry = self.resolve_transformer(destination.url)
        if entry is not None:
            transform: Transform = entry.transform
            override_method = entry.rule.method
            override_headers = entry.rule.headers
        else:
            transform = self.global_transform or build_default_envelope
            override_method = None
            override_headers = {}
        logger.debug(
            "forward: stage=%s url=%s transformer=%s",
            stage.value,
            destination.url,
            entry.rule.glob if entry else "default",
        )

        stage = ForwardStage.BUILD_PAYLOAD
        try:
            body = transform(generated, original)
        except Exception as exc:
            logger.warning("forward: stage=%s url=%s error=%s", stage.value, destination.url, exc)
            return not_forwarded(f"SQL generation failed: {exc}", destination.url)

        method = (override_method or destination.method or "POST").upper()
        headers = httpx.Headers(destination.headers or {})
        for name, value in override_headers.items():
            headers[name] = value
        return self._send(method, destination.url, headers, body)

    def check_health(self, request_path: str) -> ForwardResult:
        """Health check of the routed destination; transformers are not applied."""
        destination = self.resolve_destination(request_path)
        if destination is None:
            return not_forwarded(f"No destination configured for {request_path}")
        body = build_default_envelope({"success": True, "inputType": "health"}, None)
        return self._send(
            (destination.method or "GET").upper(),
            destination.url,
            httpx.Headers(destination.headers or {}),
            body,
        )

    def _send(
        self, method: str, url: str, headers: httpx.Headers, body: Any
    ) -> ForwardResult:
        profile = profile_for_endpoint(url)
        started = time.perf_counter()
        logger.info(
            "forward: stage=%s method=%s url=%s profile=%s",
            ForwardStage.SEND.value,
            method,
            url,
            profile.name,
        )
        try:
            response = self._client.request(
                method,
                url,
                headers=headers,
                json=None if method == "GET" else body,
                timeout=profile.timeout,
            )
        except httpx.TimeoutException as exc:
            return self._failed(url, started, f"Timeout after {profile.timeout}s: {exc}")
        except httpx.HTTPError as exc:
            return self._failed(url, started, f"{type(exc).__name__}: {exc}")
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            logger.warning("forward: url=%s request not built error=%s", url, exc)
            return not_forwarded(f"Request could not be built: {exc}", url)

        duration_ms = _elapsed_ms(started)
        data = _response_body(response)
        if response.is_success:
            logger.info("forward: url=%s status=%s duration_ms=%s", url, response.status_code, duration_ms)
            return ForwardResult(
                success=True,
                destination_url=url,
                status=response.status_code,
                data=data,
                duration_ms=duration_ms,
            )

        logger.error("forward: url=%s status=%s duration_ms=%s", url, response.status_code, duration_ms)
        return ForwardResult(
            success=False,
            destination_url=url,
            status=response.status_code,
            data=data,
            error=f"HTTP {response.status_code}: {response.reason_phrase}",
            duration_ms=duration_ms,
        )

    def _failed(self, url: str, started: float, message: str) -> ForwardResult:
        duration_ms = _elapsed_ms(started)
        logger.error("forward: url=%s error=%s duration_ms=%s", url, message, duration_ms)
        return ForwardResult(
            success=False, destination_url=url, error=message, duration_ms=duration_ms
        )


def forward_with_retry(
    orchestrator: ForwardingOrchestrator,
    generated: dict[str, Any],
    original: Any,
    request_path: str,
    *,
    base_delay: float = 1.0,
) -> ForwardResult:
    """Forward with bounded exponential backoff on network errors and 5xx."""
    destination = orchestrator.resolve_destination(request_path)
    retries = profile_for_endpoint(destination.url).retries if destination else 0

    retrying = Retrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=base_delay, min=0, max=max(base_delay * 8, 0)),
        retry=retry_if_result(lambda result: result.retryable),
        retry_error_callback=lambda state: state.outcome.result(),
        before_sleep=lambda state: logger.warning(
            "forward_with_retry: attempt=%s path=%s", state.attempt_number, request_path
        ),
    )
    return retrying(orchestrator.forward, generated, original, request_path)


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))
