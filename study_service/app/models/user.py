from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class UserStatus(BaseModel):
    """관리자가 정한 계정 상태. 레코드가 없으면 정상 계정이다."""

    id: str | None = None
    user_id: str
    is_banned: bool = False
    reason: str | None = None
    updated_by: str | None = None  # 마지막으로 상태를 바꾼 관리자
    created_at: datetime
    updated_at: datetime


class UserOverview(BaseModel):
    """관리자 사용자 목록의 한 행."""

    user_id: str
    balance: int
    total_earned: int
    total_spent: int
    is_banned: bool = False
    ban_reason: str | None = None
    created_at: datetime
