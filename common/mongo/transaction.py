from __future__ import annotations

import logging
from typing import Callable, TypeVar

from pymongo import MongoClient
from pymongo.client_session import ClientSession
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from .client import get_client
from .config import is_transactions_enabled


logger = logging.getLogger(__name__)

T = TypeVar("T")


class MongoTransactionRunner:
    """여러 컬렉션에 걸친 쓰기를 하나의 MongoDB 트랜잭션으로 묶어 실행한다.

    - callback 은 ClientSession 을 받아 모든 레포지토리 호출에 session 으로 넘겨야 한다.
    - with_transaction 은 TransientTransactionError 에 대해 callback 전체를 재시도하므로,
      callback 안에서는 DB 외부 부작용(로그 제외)을 일으키지 않는다.
    - 트랜잭션이 비활성화된 경우 session=None 으로 callback 을 바로 실행한다.
      이때는 각 쓰기가 도큐먼트 단위로만 원자적이다.
    """

    def __init__(self, client: MongoClient, enabled: bool = True) -> None:
        self._client = client
        self._enabled = enabled

    def run(self, callback: Callable[[ClientSession | None], T]) -> T:
        if not self._enabled:
            return callback(None)

        with self._client.start_session() as session:
            return session.with_transaction(
                callback,
                read_concern=ReadConcern("snapshot"),
                write_concern=WriteConcern("majority"),
            )


def get_transaction_runner() -> MongoTransactionRunner:
    """FastAPI DI용 트랜잭션 러너 팩토리."""

    enabled = is_transactions_enabled()
    if not enabled:
        logger.debug("MongoDB transactions disabled; running units of work without session")
    return MongoTransactionRunner(get_client(), enabled=enabled)
