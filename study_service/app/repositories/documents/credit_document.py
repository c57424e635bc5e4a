"""크레딧 원장 MongoDB 도큐먼트.

credit_balances: 유저당 하나의 잔액 레코드 (user_id unique)
credit_transactions: 추가 전용 트랜잭션 로그
credit_settings: action_key 별 가격표
"""

from __future__ import annotations

from common.mongo.types import (
    BaseDocument,
    MongoDateTime,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.credit import CreditBalance, CreditSetting, CreditTransaction


class CreditBalanceDocument(BaseDocument):
    """MongoDB credit_balances 컬렉션 도큐먼트 모델."""

    user_id: str
    balance: int
    total_earned: int
    total_spent: int
    updated_at: MongoDateTime

    def to_domain(self) -> CreditBalance:
        return CreditBalance(
            id=from_object_id(self.id),
            user_id=self.user_id,
            balance=self.balance,
            total_earned=self.total_earned,
            total_spent=self.total_spent,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class CreditTransactionDocument(BaseDocument):
    """MongoDB credit_transactions 컬렉션 도큐먼트 모델."""

    user_id: str
    amount: int
    action_type: str
    description: str | None = None
    reference_id: str | None = None

    @classmethod
    def from_domain(cls, tx: CreditTransaction) -> "CreditTransactionDocument":
        data = build_document_data_from_domain(tx)
        return cls.model_validate(data)

    def to_domain(self) -> CreditTransaction:
        return CreditTransaction(
            id=from_object_id(self.id),
            user_id=self.user_id,
            amount=self.amount,
            action_type=self.action_type,
            description=self.description,
            reference_id=self.reference_id,
            created_at=self.created_at,
        )


class CreditSettingDocument(BaseDocument):
    """MongoDB credit_settings 컬렉션 도큐먼트 모델."""

    action_key: str
    credit_cost: int
    description: str | None = None
    updated_at: MongoDateTime | None = None

    def to_domain(self) -> CreditSetting:
        return CreditSetting(
            action_key=self.action_key,
            credit_cost=self.credit_cost,
            description=self.description,
            updated_at=self.updated_at,
        )
