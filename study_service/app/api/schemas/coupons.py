from __future__ import annotations

from pydantic import BaseModel, Field


class RedeemCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)


class RedeemCouponResponse(BaseModel):
    """쿠폰 사용 결과. 실패 사유는 노출하지 않는다."""

    success: bool
    credits_awarded: int = 0
    new_balance: int = 0
    error: str | None = None
