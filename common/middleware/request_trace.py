from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response


REQUEST_ID_HEADER = "X-Request-Id"
SPAN_ID_HEADER = "X-Span-Id"
USER_ID_HEADER = "X-User-Id"

QUIET_PATHS = frozenset({"/health"})


def _trace_fields(request: Request) -> dict[str, object]:
    fields: dict[str, object] = {
        "request_id": request.state.request_id,
        "span_id": request.state.span_id,
        "method": request.method,
        "path": request.url.path,
    }
    user_id = request.headers.get(USER_ID_HEADER)
    if user_id:
        fields["user_id"] = user_id
    return fields


def _elapsed_ms(started: float) -> str:
    return f"{(time.perf_counter() - started) * 1000:.1f}ms"


class RequestTraceMiddleware(BaseHTTPMiddleware):
    """요청마다 request/span id 를 붙이고 한 줄 액세스 로그를 남긴다.

    게이트웨이가 넘긴 X-Request-Id 가 있으면 이어 쓰고, 없으면 새로 만든다.
    요청 바디와 쿼리 문자열은 기록하지 않는다 (쿠폰 코드가 로그에 남으면 안 된다).
    """

    def __init__(self, app, logger: logging.Logger | None = None) -> None:  # type: ignore[override]
        super().__init__(app)
        self._logger = logger or logging.getLogger("request_trace")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.span_id = request.headers.get(SPAN_ID_HEADER) or "0"
        quiet = request.url.path in QUIET_PATHS
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            self._logger.exception(
                "unhandled error",
                extra={**_trace_fields(request), "duration": _elapsed_ms(started)},
            )
            raise

        response.headers.setdefault(REQUEST_ID_HEADER, request.state.request_id)
        response.headers.setdefault(SPAN_ID_HEADER, request.state.span_id)
        if not quiet:
            self._logger.info(
                "%s %s %d",
                request.method,
                request.url.path,
                response.status_code,
                extra={
                    **_trace_fields(request),
                    "status": response.status_code,
                    "duration": _elapsed_ms(started),
                },
            )
        return response
