from __future__ import annotations

from pymongo import ASCENDING, DESCENDING, IndexModel, ReturnDocument
from pymongo.database import Database

from common.types.datetime import utc_now

from .documents.activity_document import ActivityLogDocument
from .documents.user_document import UserStatusDocument
from .interfaces import (
    ActivityLogRepositoryInterface,
    AdminRepositoryInterface,
    UserStatusRepositoryInterface,
)
from ..models.activity import ActivityLog
from ..models.user import UserStatus


class AdminRepository(AdminRepositoryInterface):
    """admins 컬렉션 (관리자 user_id 목록) 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["admins"]
        self._col.create_indexes(
            [IndexModel([("user_id", ASCENDING)], unique=True, name="idx_user_unique")]
        )

    def is_admin(self, user_id: str) -> bool:
        return self._col.count_documents({"user_id": user_id}, limit=1) > 0


class UserStatusRepository(UserStatusRepositoryInterface):
    """user_status 컬렉션 (계정 정지 여부) 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["user_status"]
        self._col.create_indexes(
            [IndexModel([("user_id", ASCENDING)], unique=True, name="idx_user_unique")]
        )

    def is_banned(self, user_id: str) -> bool:
        return self._col.count_documents({"user_id": user_id, "is_banned": True}, limit=1) > 0

    def set_banned(
        self, user_id: str, is_banned: bool, reason: str | None, updated_by: str
    ) -> UserStatus:
        now = utc_now()
        doc = self._col.find_one_and_update(
            {"user_id": user_id},
            {
                "$set": {
                    "is_banned": is_banned,
                    "reason": reason,
                    "updated_by": updated_by,
                    "updated_at": now,
                },
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return UserStatusDocument.model_validate(doc).to_domain()

    def find_many(self, user_ids: list[str]) -> dict[str, UserStatus]:
        if not user_ids:
            return {}
        cursor = self._col.find({"user_id": {"$in": user_ids}})
        statuses = [UserStatusDocument.model_validate(raw).to_domain() for raw in cursor]
        return {status.user_id: status for status in statuses}


class ActivityLogRepository(ActivityLogRepositoryInterface):
    """activity_logs 컬렉션 (관리자 작업 감사 로그, 추가 전용) 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["activity_logs"]
        self._col.create_indexes(
            [
                IndexModel(
                    [("user_id", ASCENDING), ("created_at", DESCENDING)],
                    name="idx_user_created",
                )
            ]
        )

    def create(self, log: ActivityLog) -> ActivityLog:
        record = ActivityLogDocument.from_domain(log).to_mongo_record()
        result = self._col.insert_one(record)
        return log.model_copy(update={"id": str(result.inserted_id)})
