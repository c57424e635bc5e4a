from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from common.logger import setup_logger
from common.middleware.request_trace import RequestTraceMiddleware
from common.mongo.client import close_client, get_database

from .api.errors import register_exception_handlers
from .api.health import router as health_router
from .api.v1 import api_router
from .config import get_credit_config
from .repositories.credit_repository import CreditSettingRepository


logger = logging.getLogger(__name__)


def seed_pricing() -> int:
    """config.yaml 의 pricing 섹션을 DB 에 반영한다. 이미 있는 action_key 는 유지한다."""

    settings = get_credit_config().initial_pricing
    if not settings:
        return 0
    inserted = CreditSettingRepository(get_database()).seed(settings)
    logger.info("pricing seeded (inserted=%d, configured=%d)", inserted, len(settings))
    return inserted


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - framework hook
    seed_pricing()
    yield
    close_client()


def create_app() -> FastAPI:
    setup_logger()
    app = FastAPI(
        title="Awn Study Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    # 공통 Request/Span ID 로그 미들웨어
    app.add_middleware(RequestTraceMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def main() -> None:
    import uvicorn

    port = int(os.getenv("STUDY_SERVICE_PORT", "8004"))
    uvicorn.run(
        "study_service.app.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        access_log=False,
    )


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
