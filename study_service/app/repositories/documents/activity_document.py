from __future__ import annotations

from common.mongo.types import BaseDocument, build_document_data_from_domain, from_object_id

from ...models.activity import ActivityLog, ActivityType


class ActivityLogDocument(BaseDocument):
    """MongoDB activity_logs 컬렉션 도큐먼트 모델."""

    user_id: str
    action_type: str
    description: str
    metadata: dict | None = None

    @classmethod
    def from_domain(cls, log: ActivityLog) -> "ActivityLogDocument":
        return cls.model_validate(build_document_data_from_domain(log))

    def to_domain(self) -> ActivityLog:
        return ActivityLog(
            id=from_object_id(self.id),
            user_id=self.user_id,
            action_type=ActivityType(self.action_type),
            description=self.description,
            metadata=self.metadata,
            created_at=self.created_at,
        )
