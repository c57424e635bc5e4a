from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class ActivityType(StrEnum):
    SETTING_UPDATE = "setting_update"
    COUPON_CREATE = "coupon_create"
    BULK_COUPON_CREATE = "bulk_coupon_create"
    COUPON_TOGGLE = "coupon_toggle"
    CREDITS_GIFT = "credits_gift"
    CREDITS_ADJUST = "credits_adjust"
    USER_BAN = "user_ban"
    USER_UNBAN = "user_unban"


class ActivityLog(BaseModel):
    """관리자 작업 감사 로그."""

    id: str | None = None
    user_id: str  # 작업을 수행한 관리자
    action_type: ActivityType
    description: str
    metadata: dict | None = None
    created_at: datetime
