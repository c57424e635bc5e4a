from __future__ import annotations

from common.mongo.types import (
    BaseDocument,
    MongoDateTime,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.coupon import Coupon, CouponAttempt


class CouponDocument(BaseDocument):
    """MongoDB coupons 컬렉션 도큐먼트 모델."""

    code: str
    credit_amount: int
    max_uses: int
    current_uses: int = 0
    is_active: bool = True
    expires_at: MongoDateTime | None = None
    created_by: str | None = None

    @classmethod
    def from_domain(cls, coupon: Coupon) -> "CouponDocument":
        data = build_document_data_from_domain(coupon)
        return cls.model_validate(data)

    def to_domain(self) -> Coupon:
        return Coupon(
            id=from_object_id(self.id),
            code=self.code,
            credit_amount=self.credit_amount,
            max_uses=self.max_uses,
            current_uses=self.current_uses,
            is_active=self.is_active,
            expires_at=self.expires_at,
            created_by=self.created_by,
            created_at=self.created_at,
        )


class CouponAttemptDocument(BaseDocument):
    """MongoDB coupon_attempts 컬렉션 도큐먼트 모델."""

    user_id: str
    attempted_code: str
    success: bool
    reason: str | None = None
    ip_address: str | None = None

    @classmethod
    def from_domain(cls, attempt: CouponAttempt) -> "CouponAttemptDocument":
        data = build_document_data_from_domain(attempt)
        return cls.model_validate(data)

    def to_domain(self) -> CouponAttempt:
        return CouponAttempt(
            id=from_object_id(self.id),
            user_id=self.user_id,
            attempted_code=self.attempted_code,
            success=self.success,
            reason=self.reason,
            ip_address=self.ip_address,
            created_at=self.created_at,
        )
