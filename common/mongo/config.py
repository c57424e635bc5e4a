from __future__ import annotations

import os


MONGO_URI_ENV = "MONGO_URI"
MONGO_DB_NAME_ENV = "MONGO_DB_NAME"
MONGO_TRANSACTIONS_ENABLED_ENV = "MONGO_TRANSACTIONS_ENABLED"

_FALSY = {"0", "false", "no", "off"}


def _env(name: str) -> str:
    return os.getenv(name, "").strip()


def get_mongo_uri() -> str:
    """MongoDB 연결 URI. 없으면 기동 시점에 바로 실패한다."""

    value = _env(MONGO_URI_ENV)
    if not value:
        raise RuntimeError(f"{MONGO_URI_ENV} environment variable is required for MongoDB")
    return value


def get_mongo_db_name() -> str | None:
    # None 이면 클라이언트가 URI 의 기본 DB 를 쓴다.
    return _env(MONGO_DB_NAME_ENV) or None


def is_transactions_enabled() -> bool:
    """멀티 도큐먼트 트랜잭션 사용 여부 (기본값 true).

    트랜잭션은 replica set 이상에서만 동작한다. 단일 노드 개발 환경에서는
    MONGO_TRANSACTIONS_ENABLED=false 로 끄고 도큐먼트 단위 원자 연산만 사용한다.
    """

    return _env(MONGO_TRANSACTIONS_ENABLED_ENV).lower() not in _FALSY
