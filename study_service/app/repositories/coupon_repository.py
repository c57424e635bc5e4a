from __future__ import annotations

from datetime import datetime

from pymongo import ASCENDING, DESCENDING, IndexModel, ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.errors import BulkWriteError, DuplicateKeyError

from common.mongo.types import try_object_id

from .documents.coupon_document import CouponAttemptDocument, CouponDocument
from .interfaces import CouponAttemptRepositoryInterface, CouponRepositoryInterface
from ..models.coupon import Coupon, CouponAttempt


class CouponRepository(CouponRepositoryInterface):
    """coupons 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["coupons"]
        self._col.create_indexes(
            [IndexModel([("code", ASCENDING)], unique=True, name="idx_code_unique")]
        )

    def find_by_code(
        self, code: str, session: ClientSession | None = None
    ) -> Coupon | None:
        doc = self._col.find_one({"code": code}, session=session)
        if not doc:
            return None
        return CouponDocument.model_validate(doc).to_domain()

    def try_redeem(
        self, code: str, now: datetime, session: ClientSession | None = None
    ) -> Coupon | None:
        # 검증과 사용 횟수 증가를 하나의 조건부 업데이트로 처리한다.
        # 마지막 1회를 두고 동시에 경쟁하면 한 요청만 매칭된다.
        doc = self._col.find_one_and_update(
            {
                "code": code,
                "is_active": True,
                "$expr": {"$lt": ["$current_uses", "$max_uses"]},
                "$or": [{"expires_at": None}, {"expires_at": {"$gt": now}}],
            },
            {"$inc": {"current_uses": 1}},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if not doc:
            return None
        return CouponDocument.model_validate(doc).to_domain()

    def insert(self, coupon: Coupon) -> Coupon | None:
        record = CouponDocument.from_domain(coupon).to_mongo_record()
        try:
            result = self._col.insert_one(record)
        except DuplicateKeyError:
            return None
        return coupon.model_copy(update={"id": str(result.inserted_id)})

    def insert_many(self, coupons: list[Coupon]) -> list[Coupon] | None:
        if not coupons:
            return []
        records = [CouponDocument.from_domain(c).to_mongo_record() for c in coupons]
        try:
            result = self._col.insert_many(records, ordered=True)
        except BulkWriteError as exc:
            # ordered 삽입은 첫 충돌에서 멈춘다. 그 앞까지 들어간 것은 되돌린다.
            inserted = exc.details.get("nInserted", 0)
            inserted_ids = [record["_id"] for record in records[:inserted]]
            if inserted_ids:
                self._col.delete_many({"_id": {"$in": inserted_ids}})
            return None
        return [
            coupon.model_copy(update={"id": str(inserted_id)})
            for coupon, inserted_id in zip(coupons, result.inserted_ids)
        ]

    def list_all(self) -> list[Coupon]:
        cursor = self._col.find({}, sort=[("created_at", -1), ("_id", -1)])
        return [CouponDocument.model_validate(raw).to_domain() for raw in cursor]

    def set_active(self, coupon_id: str, is_active: bool) -> Coupon | None:
        oid = try_object_id(coupon_id)
        if oid is None:
            return None
        doc = self._col.find_one_and_update(
            {"_id": oid},
            {"$set": {"is_active": is_active}},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return CouponDocument.model_validate(doc).to_domain()


class CouponAttemptRepository(CouponAttemptRepositoryInterface):
    """coupon_attempts 컬렉션 (추가 전용) 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["coupon_attempts"]
        self._col.create_indexes(
            [
                IndexModel(
                    [("user_id", ASCENDING), ("created_at", DESCENDING)],
                    name="idx_user_created",
                )
            ]
        )

    def create(
        self, attempt: CouponAttempt, session: ClientSession | None = None
    ) -> CouponAttempt:
        record = CouponAttemptDocument.from_domain(attempt).to_mongo_record()
        result = self._col.insert_one(record, session=session)
        return attempt.model_copy(update={"id": str(result.inserted_id)})

    def count_failures_since(self, user_id: str, since: datetime) -> int:
        return self._col.count_documents(
            {"user_id": user_id, "success": False, "created_at": {"$gte": since}}
        )
