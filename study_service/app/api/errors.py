from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..exceptions import (
    Conflict,
    EngineFailure,
    Forbidden,
    InsufficientCredits,
    InvalidRequest,
    NotFound,
    NotRefundable,
    StudyServiceError,
    Unauthenticated,
)


logger = logging.getLogger(__name__)


_STATUS_BY_ERROR: dict[type[StudyServiceError], int] = {
    Unauthenticated: 401,
    Forbidden: 403,
    InsufficientCredits: 402,
    NotFound: 404,
    NotRefundable: 409,
    Conflict: 409,
    InvalidRequest: 422,
    EngineFailure: 502,
}


def status_for(exc: StudyServiceError) -> int:
    for error_type in type(exc).__mro__:
        code = _STATUS_BY_ERROR.get(error_type)  # type: ignore[arg-type]
        if code is not None:
            return code
    return 500


async def handle_study_service_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, StudyServiceError)
    status_code = status_for(exc)
    detail: dict[str, object] = {"code": exc.code, "message": exc.message}
    if isinstance(exc, InsufficientCredits):
        detail["balance"] = exc.balance
        detail["cost"] = exc.cost

    if status_code >= 500:
        logger.warning("request failed: %s", exc.code, extra={"path": request.url.path})
    return JSONResponse(status_code=status_code, content={"detail": detail})


def register_exception_handlers(app: FastAPI) -> None:
    """도메인 예외를 {"detail": {"code", "message"}} 형태의 응답으로 변환한다."""

    app.add_exception_handler(StudyServiceError, handle_study_service_error)
