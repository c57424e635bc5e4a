from __future__ import annotations

from common.mongo.types import BaseDocument, MongoDateTime, from_object_id

from ...models.user import UserStatus


class UserStatusDocument(BaseDocument):
    """MongoDB user_status 컬렉션 도큐먼트 모델 (user_id unique)."""

    user_id: str
    is_banned: bool = False
    reason: str | None = None
    updated_by: str | None = None
    updated_at: MongoDateTime

    def to_domain(self) -> UserStatus:
        return UserStatus(
            id=from_object_id(self.id),
            user_id=self.user_id,
            is_banned=self.is_banned,
            reason=self.reason,
            updated_by=self.updated_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
