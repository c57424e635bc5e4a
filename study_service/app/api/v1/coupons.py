from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from ..deps import get_optional_principal
from ..schemas.coupons import RedeemCouponRequest, RedeemCouponResponse
from ...models.principal import Principal
from ...services.coupon_service import CouponService, get_coupon_service


router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post("/redeem", summary="쿠폰 사용")
async def redeem_coupon(
    req: RedeemCouponRequest,
    request: Request,
    principal: Annotated[Principal | None, Depends(get_optional_principal)],
    coupon_service: Annotated[CouponService, Depends(get_coupon_service)],
) -> RedeemCouponResponse:
    """검증 실패는 200 + success=False 로 돌려준다. 미인증은 401."""
    ip_address = request.client.host if request.client else None
    result = await coupon_service.redeem(principal, req.code, ip_address=ip_address)
    return RedeemCouponResponse(
        success=result.success,
        credits_awarded=result.credits_awarded,
        new_balance=result.new_balance,
        error=result.error,
    )
