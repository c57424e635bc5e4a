"""프로세스 전역 MongoClient.

레포지토리는 FastAPI 의존성 get_database() 로 Database 를 받는다. 첫 호출 때 연결하고
ping 으로 확인한다. 컬렉션 인덱스는 각 레포지토리 생성자가 보장한다.
"""

from __future__ import annotations

import logging
import threading

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConfigurationError, PyMongoError

from .config import get_mongo_db_name, get_mongo_uri


logger = logging.getLogger(__name__)

# datetime 을 tz-aware(UTC) 로 돌려받는다. 원장/쿠폰 만료 비교가 모두 aware 값끼리 이뤄진다.
_CLIENT_OPTIONS = {"tz_aware": True, "uuidRepresentation": "standard"}

_client: MongoClient | None = None
_db: Database | None = None
_lock = threading.Lock()


def _connect() -> tuple[MongoClient, Database]:
    client: MongoClient = MongoClient(get_mongo_uri(), **_CLIENT_OPTIONS)
    try:
        client.admin.command("ping")
    except PyMongoError as exc:
        client.close()
        raise RuntimeError(f"failed to connect to MongoDB: {exc}") from exc

    db_name = get_mongo_db_name()
    if db_name:
        return client, client[db_name]
    try:
        return client, client.get_default_database()
    except ConfigurationError as exc:
        client.close()
        raise RuntimeError(
            "MongoDB database name must be set via MONGO_DB_NAME or in MONGO_URI",
        ) from exc


def get_client() -> MongoClient:
    global _client, _db

    if _client is None:
        with _lock:
            if _client is None:
                _client, _db = _connect()
                logger.info("MongoDB connected (db=%s)", _db.name)
    return _client


def get_database() -> Database:
    """FastAPI DI용 기본 Database."""

    get_client()
    db = _db
    if db is None:
        # close_client() 가 get_client() 직후 끼어든 경우
        raise RuntimeError("MongoDB database is not initialized")
    return db


def close_client() -> None:
    global _client, _db

    with _lock:
        if _client is not None:
            _client.close()
            logger.info("MongoDB connection closed")
        _client = None
        _db = None
