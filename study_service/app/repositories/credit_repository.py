"""크레딧 원장 레포지토리 구현체.

잔액 변경은 전부 단일 도큐먼트 조건부 업데이트(find_one_and_update)로 수행한다.
"읽고 -> 계산하고 -> 쓰기" 사이에 다른 요청이 끼어들 수 없도록 조건을 필터에 넣는다.
"""

from __future__ import annotations

import re

from pymongo import ASCENDING, DESCENDING, IndexModel, ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from common.mongo.types import try_object_id
from common.types.datetime import utc_now

from .documents.credit_document import (
    CreditBalanceDocument,
    CreditSettingDocument,
    CreditTransactionDocument,
)
from .interfaces import (
    CreditBalanceRepositoryInterface,
    CreditSettingRepositoryInterface,
    CreditTransactionRepositoryInterface,
)
from ..models.credit import CreditBalance, CreditSetting, CreditTransaction, TransactionType


class CreditBalanceRepository(CreditBalanceRepositoryInterface):
    """credit_balances 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["credit_balances"]
        self._col.create_indexes(
            [IndexModel([("user_id", ASCENDING)], unique=True, name="idx_user_unique")]
        )

    def find_by_user(
        self, user_id: str, session: ClientSession | None = None
    ) -> CreditBalance | None:
        doc = self._col.find_one({"user_id": user_id}, session=session)
        if not doc:
            return None
        return CreditBalanceDocument.model_validate(doc).to_domain()

    def try_debit(
        self, user_id: str, amount: int, session: ClientSession | None = None
    ) -> CreditBalance | None:
        # balance >= amount 조건이 필터에 있으므로 동시 요청이 있어도 음수가 될 수 없다.
        doc = self._col.find_one_and_update(
            {"user_id": user_id, "balance": {"$gte": amount}},
            {
                "$inc": {"balance": -amount, "total_spent": amount},
                "$set": {"updated_at": utc_now()},
            },
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if not doc:
            return None
        return CreditBalanceDocument.model_validate(doc).to_domain()

    def credit(
        self, user_id: str, amount: int, session: ClientSession | None = None
    ) -> CreditBalance:
        now = utc_now()
        doc = self._col.find_one_and_update(
            {"user_id": user_id},
            {
                "$inc": {"balance": amount, "total_earned": amount},
                "$set": {"updated_at": now},
                "$setOnInsert": {"user_id": user_id, "total_spent": 0, "created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return CreditBalanceDocument.model_validate(doc).to_domain()

    def restore(
        self, user_id: str, amount: int, session: ClientSession | None = None
    ) -> CreditBalance | None:
        # 환불은 지출을 되돌리는 것이므로 total_earned 가 아니라 total_spent 를 줄인다.
        doc = self._col.find_one_and_update(
            {"user_id": user_id},
            {
                "$inc": {"balance": amount, "total_spent": -amount},
                "$set": {"updated_at": utc_now()},
            },
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if not doc:
            return None
        return CreditBalanceDocument.model_validate(doc).to_domain()

    def compare_and_set(
        self,
        user_id: str,
        expected_balance: int | None,
        new_balance: int,
        session: ClientSession | None = None,
    ) -> CreditBalance | None:
        now = utc_now()

        if expected_balance is None:
            # 레코드가 없을 때만 생성. 동시에 누군가 먼저 만들었다면 unique 인덱스에서 걸린다.
            record = {
                "user_id": user_id,
                "balance": new_balance,
                "total_earned": new_balance,
                "total_spent": 0,
                "created_at": now,
                "updated_at": now,
            }
            try:
                result = self._col.insert_one(record, session=session)
            except DuplicateKeyError:
                return None
            record["_id"] = result.inserted_id
            return CreditBalanceDocument.model_validate(record).to_domain()

        delta = new_balance - expected_balance
        inc: dict[str, int] = {"balance": delta}
        if delta > 0:
            inc["total_earned"] = delta
        elif delta < 0:
            inc["total_spent"] = -delta

        doc = self._col.find_one_and_update(
            {"user_id": user_id, "balance": expected_balance},
            {"$inc": inc, "$set": {"updated_at": now}},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if not doc:
            return None
        return CreditBalanceDocument.model_validate(doc).to_domain()

    def list_page(
        self, page: int, page_size: int, search: str = ""
    ) -> tuple[list[CreditBalance], int]:
        """잔액 레코드를 최근 생성순으로 조회한다. search 는 user_id 부분 일치."""
        if page <= 0:
            page = 1
        if page_size <= 0 or page_size > 100:
            page_size = 20

        query: dict = {}
        if search:
            query["user_id"] = {"$regex": re.escape(search), "$options": "i"}

        total = self._col.count_documents(query)
        cursor = self._col.find(
            query,
            sort=[("created_at", -1), ("_id", -1)],
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        return [CreditBalanceDocument.model_validate(raw).to_domain() for raw in cursor], total


class CreditTransactionRepository(CreditTransactionRepositoryInterface):
    """credit_transactions 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["credit_transactions"]
        self._col.create_indexes(
            [
                IndexModel(
                    [("user_id", ASCENDING), ("created_at", DESCENDING)],
                    name="idx_user_created",
                ),
                # 원본 트랜잭션 하나당 환불은 최대 한 번
                IndexModel(
                    [("reference_id", ASCENDING)],
                    unique=True,
                    partialFilterExpression={"action_type": TransactionType.REFUND.value},
                    name="idx_refund_reference_unique",
                ),
            ]
        )

    def create(
        self, tx: CreditTransaction, session: ClientSession | None = None
    ) -> CreditTransaction:
        """트랜잭션 로그 생성."""
        doc = CreditTransactionDocument.from_domain(tx)
        result = self._col.insert_one(doc.to_mongo_record(), session=session)
        return tx.model_copy(update={"id": str(result.inserted_id)})

    def create_refund(
        self, tx: CreditTransaction, session: ClientSession | None = None
    ) -> CreditTransaction | None:
        try:
            return self.create(tx, session=session)
        except DuplicateKeyError:
            return None

    def find_for_user(
        self, transaction_id: str, user_id: str, session: ClientSession | None = None
    ) -> CreditTransaction | None:
        oid = try_object_id(transaction_id)
        if oid is None:
            return None
        doc = self._col.find_one({"_id": oid, "user_id": user_id}, session=session)
        if not doc:
            return None
        return CreditTransactionDocument.model_validate(doc).to_domain()

    def list_by_user(
        self, user_id: str, page: int, page_size: int
    ) -> tuple[list[CreditTransaction], int]:
        """사용자의 크레딧 트랜잭션 이력 조회 (최신순)."""
        if page <= 0:
            page = 1
        if page_size <= 0 or page_size > 100:
            page_size = 20

        skip = (page - 1) * page_size

        total = self._col.count_documents({"user_id": user_id})
        cursor = self._col.find(
            {"user_id": user_id},
            sort=[("created_at", -1), ("_id", -1)],
            skip=skip,
            limit=page_size,
        )

        items: list[CreditTransaction] = []
        for raw in cursor:
            items.append(CreditTransactionDocument.model_validate(raw).to_domain())

        return items, total


class CreditSettingRepository(CreditSettingRepositoryInterface):
    """credit_settings(가격표) 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["credit_settings"]
        self._col.create_indexes(
            [IndexModel([("action_key", ASCENDING)], unique=True, name="idx_action_key_unique")]
        )

    def get(self, action_key: str) -> CreditSetting | None:
        doc = self._col.find_one({"action_key": action_key})
        if not doc:
            return None
        return CreditSettingDocument.model_validate(doc).to_domain()

    def list_all(self) -> list[CreditSetting]:
        cursor = self._col.find({}, sort=[("action_key", 1)])
        return [CreditSettingDocument.model_validate(raw).to_domain() for raw in cursor]

    def upsert_cost(
        self, action_key: str, credit_cost: int, description: str | None = None
    ) -> CreditSetting:
        now = utc_now()
        update: dict = {"$set": {"credit_cost": credit_cost, "updated_at": now}}
        update["$setOnInsert"] = {"action_key": action_key, "created_at": now}
        if description is not None:
            update["$set"]["description"] = description
        doc = self._col.find_one_and_update(
            {"action_key": action_key},
            update,
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return CreditSettingDocument.model_validate(doc).to_domain()

    def seed(self, settings: list[CreditSetting]) -> int:
        """기본 가격표를 넣는다. 이미 존재하는 action_key 는 건드리지 않는다."""
        inserted = 0
        now = utc_now()
        for setting in settings:
            result = self._col.update_one(
                {"action_key": setting.action_key},
                {
                    "$setOnInsert": {
                        "action_key": setting.action_key,
                        "credit_cost": setting.credit_cost,
                        "description": setting.description,
                        "created_at": now,
                        "updated_at": now,
                    }
                },
                upsert=True,
            )
            if result.upserted_id is not None:
                inserted += 1
        return inserted
