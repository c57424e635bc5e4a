"""크레딧 원장 도메인 모델.

유저당 하나의 잔액 레코드(CreditBalance)와 추가 전용 트랜잭션 로그(CreditTransaction)로 구성된다.
잔액 레코드는 첫 적립 시점에 생성되며, 레코드가 없다는 것은 "아직 크레딧 이력이 없음"을 뜻한다.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


DEFAULT_CREDIT_COST = 10


class TransactionType(StrEnum):
    """원장 트랜잭션 유형. 차감 트랜잭션은 가격표의 action_key 를 그대로 사용한다."""

    SUMMARY = "summary"
    QUIZ = "quiz"
    REFUND = "refund"
    COUPON = "coupon"
    ADMIN_GIFT = "admin_gift"
    ADMIN_SET = "admin_set"


class CreditBalance(BaseModel):
    """유저 잔액 레코드. balance == total_earned - total_spent 를 유지한다."""

    id: str | None = None
    user_id: str
    balance: int
    total_earned: int
    total_spent: int
    created_at: datetime
    updated_at: datetime


class CreditTransaction(BaseModel):
    """크레딧 트랜잭션 로그 도메인 모델 (생성 후 변경/삭제하지 않는다)."""

    id: str | None = None
    user_id: str
    amount: int  # 차감은 음수, 적립/환불은 양수
    action_type: str
    description: str | None = None
    reference_id: str | None = None  # 환불 시 원본 트랜잭션 ID, 그 외에는 생성물 ID 등
    created_at: datetime


class CreditSetting(BaseModel):
    """가격표 항목 (action_key -> 크레딧 비용)."""

    action_key: str
    credit_cost: int
    description: str | None = None
    updated_at: datetime | None = None


class CreditCheck(BaseModel):
    """잔액 충분 여부 조회 결과."""

    sufficient: bool
    balance: int
    cost: int
