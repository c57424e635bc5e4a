from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from common.types.datetime import UtcDateTime


class PricingResponse(BaseModel):
    action_key: str
    credit_cost: int
    description: str | None
    updated_at: UtcDateTime | None


class UpdatePricingRequest(BaseModel):
    credit_cost: int = Field(ge=0)
    description: str | None = None


class CouponResponse(BaseModel):
    id: str | None
    code: str
    credit_amount: int
    max_uses: int
    current_uses: int
    is_active: bool
    expires_at: UtcDateTime | None
    created_by: str | None
    created_at: UtcDateTime


class CreateCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    credit_amount: int = Field(ge=1)
    max_uses: int = Field(default=1, ge=1)
    expires_at: datetime | None = None


class CreateBulkCouponsRequest(BaseModel):
    count: int = Field(ge=1, le=1000)
    credit_amount: int = Field(ge=1)
    max_uses: int = Field(default=1, ge=1)
    expires_at: datetime | None = None


class SetCouponActiveRequest(BaseModel):
    is_active: bool


class GiftCreditsRequest(BaseModel):
    amount: int = Field(gt=0)
    description: str | None = None


class SetCreditsRequest(BaseModel):
    amount: int = Field(ge=0)
    description: str | None = None


class UserResponse(BaseModel):
    user_id: str
    balance: int
    total_earned: int
    total_spent: int
    is_banned: bool
    ban_reason: str | None
    created_at: UtcDateTime


class BanUserRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class UserStatusResponse(BaseModel):
    user_id: str
    is_banned: bool
    reason: str | None
    updated_by: str | None
    updated_at: UtcDateTime
