"""관리자 API 라우터. 모든 엔드포인트는 관리자 권한이 필요하다 (아니면 403)."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from ..deps import get_admin_principal
from ..schemas.admin import (
    BanUserRequest,
    CouponResponse,
    CreateBulkCouponsRequest,
    CreateCouponRequest,
    GiftCreditsRequest,
    PricingResponse,
    SetCouponActiveRequest,
    SetCreditsRequest,
    UpdatePricingRequest,
    UserResponse,
    UserStatusResponse,
)
from ..schemas.common import PaginatedResponse
from ..schemas.credits import NewBalanceResponse
from ...models.coupon import Coupon
from ...models.credit import CreditSetting
from ...models.principal import Principal
from ...models.user import UserStatus
from ...services.admin_service import AdminService, get_admin_service


router = APIRouter(prefix="/admin", tags=["admin"])


def _pricing_response(setting: CreditSetting) -> PricingResponse:
    return PricingResponse(
        action_key=setting.action_key,
        credit_cost=setting.credit_cost,
        description=setting.description,
        updated_at=setting.updated_at,
    )


def _coupon_response(coupon: Coupon) -> CouponResponse:
    return CouponResponse(
        id=coupon.id,
        code=coupon.code,
        credit_amount=coupon.credit_amount,
        max_uses=coupon.max_uses,
        current_uses=coupon.current_uses,
        is_active=coupon.is_active,
        expires_at=coupon.expires_at,
        created_by=coupon.created_by,
        created_at=coupon.created_at,
    )


def _status_response(user_status: UserStatus) -> UserStatusResponse:
    return UserStatusResponse(
        user_id=user_status.user_id,
        is_banned=user_status.is_banned,
        reason=user_status.reason,
        updated_by=user_status.updated_by,
        updated_at=user_status.updated_at,
    )


@router.get("/pricing", summary="가격표 조회")
def list_pricing(
    admin: Annotated[Principal, Depends(get_admin_principal)],
    service: Annotated[AdminService, Depends(get_admin_service)],
) -> list[PricingResponse]:
    return [_pricing_response(s) for s in service.list_pricing(admin)]


@router.put("/pricing/{action_key}", summary="작업 비용 변경")
def update_pricing(
    action_key: str,
    req: UpdatePricingRequest,
    admin: Annotated[Principal, Depends(get_admin_principal)],
    service: Annotated[AdminService, Depends(get_admin_service)],
) -> PricingResponse:
    setting = service.update_pricing(admin, action_key, req.credit_cost, req.description)
    return _pricing_response(setting)


@router.get("/coupons", summary="쿠폰 목록")
def list_coupons(
    admin: Annotated[Principal, Depends(get_admin_principal)],
    service: Annotated[AdminService, Depends(get_admin_service)],
) -> list[CouponResponse]:
    return [_coupon_response(c) for c in service.list_coupons(admin)]


@router.post("/coupons", status_code=status.HTTP_201_CREATED, summary="쿠폰 생성")
def create_coupon(
    req: CreateCouponRequest,
    admin: Annotated[Principal, Depends(get_admin_principal)],
    service: Annotated[AdminService, Depends(get_admin_service)],
) -> CouponResponse:
    coupon = service.create_coupon(
        admin, req.code, req.credit_amount, max_uses=req.max_uses, expires_at=req.expires_at
    )
    return _coupon_response(coupon)


@router.post("/coupons/bulk", status_code=status.HTTP_201_CREATED, summary="쿠폰 일괄 생성")
def create_bulk_coupons(
    req: CreateBulkCouponsRequest,
    admin: Annotated[Principal, Depends(get_admin_principal)],
    service: Annotated[AdminService, Depends(get_admin_service)],
) -> list[CouponResponse]:
    coupons = service.create_bulk_coupons(
        admin, req.count, req.credit_amount, max_uses=req.max_uses, expires_at=req.expires_at
    )
    return [_coupon_response(c) for c in coupons]


@router.patch("/coupons/{coupon_id}", summary="쿠폰 활성화/비활성화")
def set_coupon_active(
    coupon_id: str,
    req: SetCouponActiveRequest,
    admin: Annotated[Principal, Depends(get_admin_principal)],
    service: Annotated[AdminService, Depends(get_admin_service)],
) -> CouponResponse:
    return _coupon_response(service.set_coupon_active(admin, coupon_id, req.is_active))


@router.post("/users/{user_id}/credits/gift", summary="크레딧 지급")
def gift_credits(
    user_id: str,
    req: GiftCreditsRequest,
    admin: Annotated[Principal, Depends(get_admin_principal)],
    service: Annotated[AdminService, Depends(get_admin_service)],
) -> NewBalanceResponse:
    new_balance = service.gift_credits(admin, user_id, req.amount, req.description)
    return NewBalanceResponse(new_balance=new_balance)


@router.put("/users/{user_id}/credits", summary="크레딧 잔액 설정")
def set_credits(
    user_id: str,
    req: SetCreditsRequest,
    admin: Annotated[Principal, Depends(get_admin_principal)],
    service: Annotated[AdminService, Depends(get_admin_service)],
) -> NewBalanceResponse:
    new_balance = service.set_credits(admin, user_id, req.amount, req.description)
    return NewBalanceResponse(new_balance=new_balance)


@router.get("/users", summary="사용자 목록 (잔액, 정지 여부)")
def list_users(
    admin: Annotated[Principal, Depends(get_admin_principal)],
    service: Annotated[AdminService, Depends(get_admin_service)],
    page: int = Query(1, ge=1, description="조회할 페이지 (1부터 시작)"),
    page_size: int = Query(20, ge=1, le=100, description="페이지당 아이템 개수 (1~100)"),
    search: str = Query("", max_length=100, description="user_id 부분 일치 검색"),
) -> PaginatedResponse[UserResponse]:
    users, total = service.list_users(admin, page, page_size, search)
    return PaginatedResponse(
        items=[UserResponse(**user.model_dump()) for user in users],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/users/{user_id}/ban", summary="사용자 이용 정지")
def ban_user(
    user_id: str,
    req: BanUserRequest,
    admin: Annotated[Principal, Depends(get_admin_principal)],
    service: Annotated[AdminService, Depends(get_admin_service)],
) -> UserStatusResponse:
    return _status_response(service.ban_user(admin, user_id, req.reason))


@router.post("/users/{user_id}/unban", summary="사용자 이용 정지 해제")
def unban_user(
    user_id: str,
    admin: Annotated[Principal, Depends(get_admin_principal)],
    service: Annotated[AdminService, Depends(get_admin_service)],
) -> UserStatusResponse:
    return _status_response(service.unban_user(admin, user_id))
