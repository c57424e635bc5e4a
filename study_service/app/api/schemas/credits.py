from __future__ import annotations

from pydantic import BaseModel, Field

from common.types.datetime import UtcDateTime


class BalanceResponse(BaseModel):
    """잔액 조회 결과. 레코드가 없으면 exists=False 와 0 값."""

    exists: bool
    balance: int
    total_earned: int
    total_spent: int


class CreditCheckResponse(BaseModel):
    sufficient: bool
    balance: int
    cost: int


class DeductRequest(BaseModel):
    action_key: str = Field(min_length=1)
    reference_id: str | None = None


class DeductResponse(BaseModel):
    transaction_id: str | None


class RefundRequest(BaseModel):
    transaction_id: str = Field(min_length=1)


class AddCreditsRequest(BaseModel):
    """크레딧 적립 요청 (관리자 전용)."""

    user_id: str = Field(min_length=1)
    amount: int = Field(gt=0)
    action_type: str = Field(min_length=1)
    description: str | None = None
    reference_id: str | None = None


class NewBalanceResponse(BaseModel):
    new_balance: int


class CreditTransactionResponse(BaseModel):
    """크레딧 트랜잭션 응답."""

    id: str | None
    amount: int
    action_type: str
    description: str | None
    reference_id: str | None
    created_at: UtcDateTime
