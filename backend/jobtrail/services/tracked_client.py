"""
httpx client that reports every request to API usage monitoring
"""
import time
from typing import Any, Callable, Optional

import httpx

from jobtrail.core.config import get_settings
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.services.api_monitoring_service import (get_rate_limit_tracker,
                                                      record_api_call)

logger = LoggingConfig.get_logger(__name__)

Recorder = Callable[..., Any]


def _body_size(message) -> int:
    """Bytes in a request or response body; streamed bodies fall back to Content-Length"""
    try:
        return len(message.content)
    except (httpx.RequestNotRead, httpx.ResponseNotRead):
        return int(message.headers.get("content-length") or 0)


class TrackedClient(httpx.Client):
    """
    ``httpx.Client`` bound to a monitored service name

    Successful responses, HTTP errors and transport errors are all recorded
    through ``record_api_call``; transport errors are re-raised afterwards.

    Example:
        >>> with TrackedClient("github", base_url="https://api.github.com") as client:
        ...     client.get("/rate_limit")
    """

    def __init__(self, service: str, recorder: Optional[Recorder] = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.service = service
        self.recorder = recorder or record_api_call
        self.tracking_enabled = get_settings().enable_api_tracking

    def rate_limit_status(self):
        return get_rate_limit_tracker().check_rate_limit(self.service)

    def send(self, request: httpx.Request, **kwargs: Any) -> httpx.Response:
        started = time.perf_counter()
        try:
            response = super().send(request, **kwargs)
        except httpx.TransportError as exc:
            self._record(request, None, started, error=exc)
            raise
        self._record(request, response, started)
        return response

    def _record(
        self,
        request: httpx.Request,
        response: Optional[httpx.Response],
        started: float,
        error: Optional[BaseException] = None,
    ):
        if not self.tracking_enabled:
            return
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        response_size = _body_size(response) if response is not None else 0
        self.recorder(
            service=self.service,
            endpoint=request.url.path,
            method=request.method,
            status_code=response.status_code if response is not None else None,
            response_time_ms=elapsed_ms,
            request_size=_body_size(request),
            response_size=response_size,
            error=error,
        )
        if response is not None and response.status_code >= 400:
            logger.debug(
                f"{self.service} call returned {response.status_code}",
                extra={"service": self.service, "endpoint": request.url.path},
            )
