"""쿠폰 도메인 모델."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class CouponRejectReason(StrEnum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    RATE_LIMITED = "rate_limited"


class Coupon(BaseModel):
    """쿠폰 정의. current_uses <= max_uses 를 항상 만족한다."""

    id: str | None = None
    code: str
    credit_amount: int
    max_uses: int
    current_uses: int = 0
    is_active: bool = True
    expires_at: datetime | None = None
    created_by: str | None = None
    created_at: datetime

    def reject_reason(self, now: datetime) -> CouponRejectReason | None:
        """현재 시점 기준으로 사용할 수 없는 이유를 반환한다. 사용 가능하면 None."""
        if not self.is_active:
            return CouponRejectReason.INACTIVE
        if self.expires_at is not None and self.expires_at <= now:
            return CouponRejectReason.EXPIRED
        if self.current_uses >= self.max_uses:
            return CouponRejectReason.EXHAUSTED
        return None


class CouponAttempt(BaseModel):
    """쿠폰 사용 시도 로그 (감사 및 rate limit 용, 추가 전용)."""

    id: str | None = None
    user_id: str
    attempted_code: str
    success: bool
    reason: str | None = None
    ip_address: str | None = None
    created_at: datetime


class RedemptionResult(BaseModel):
    """쿠폰 사용 결과."""

    success: bool
    credits_awarded: int = 0
    new_balance: int = 0
    error: str | None = None
    reason: CouponRejectReason | None = None
