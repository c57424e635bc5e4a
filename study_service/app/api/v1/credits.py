"""크레딧 원장 API 라우터.

잔액/가격 조회와 차감/환불은 호출자 본인에 대해서만 동작한다. 적립(add)은 관리자 전용이다.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..deps import get_admin_principal, get_principal
from ..schemas.common import OkResponse, PaginatedResponse
from ..schemas.credits import (
    AddCreditsRequest,
    BalanceResponse,
    CreditCheckResponse,
    CreditTransactionResponse,
    DeductRequest,
    DeductResponse,
    NewBalanceResponse,
    RefundRequest,
)
from ...models.principal import Principal
from ...services.admin_service import AdminService, get_admin_service
from ...services.credit_service import CreditService, get_credit_service


router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("", summary="내 크레딧 잔액 조회")
def get_balance(
    principal: Annotated[Principal, Depends(get_principal)],
    credit_service: Annotated[CreditService, Depends(get_credit_service)],
) -> BalanceResponse:
    record = credit_service.get_balance(principal)
    if record is None:
        return BalanceResponse(exists=False, balance=0, total_earned=0, total_spent=0)
    return BalanceResponse(
        exists=True,
        balance=record.balance,
        total_earned=record.total_earned,
        total_spent=record.total_spent,
    )


@router.get("/check/{action_key}", summary="작업 비용 대비 잔액 확인")
def check_credits(
    action_key: str,
    principal: Annotated[Principal, Depends(get_principal)],
    credit_service: Annotated[CreditService, Depends(get_credit_service)],
) -> CreditCheckResponse:
    check = credit_service.has_enough_credits(principal, action_key)
    return CreditCheckResponse(sufficient=check.sufficient, balance=check.balance, cost=check.cost)


@router.get("/history", summary="크레딧 사용 이력 조회")
def get_credit_history(
    principal: Annotated[Principal, Depends(get_principal)],
    credit_service: Annotated[CreditService, Depends(get_credit_service)],
    page: int = Query(1, ge=1, description="조회할 페이지 (1부터 시작)"),
    page_size: int = Query(20, ge=1, le=100, description="페이지당 아이템 개수 (1~100)"),
) -> PaginatedResponse[CreditTransactionResponse]:
    items, total = credit_service.get_history(principal, page, page_size)
    return PaginatedResponse(
        items=[
            CreditTransactionResponse(
                id=tx.id,
                amount=tx.amount,
                action_type=tx.action_type,
                description=tx.description,
                reference_id=tx.reference_id,
                created_at=tx.created_at,
            )
            for tx in items
        ],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/deduct", summary="크레딧 차감")
def deduct_credits(
    req: DeductRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    credit_service: Annotated[CreditService, Depends(get_credit_service)],
) -> DeductResponse:
    """잔액 부족 시 402 (insufficient_credits)."""
    tx = credit_service.deduct(principal, req.action_key, reference_id=req.reference_id)
    return DeductResponse(transaction_id=tx.id)


@router.post("/refund", summary="차감 트랜잭션 환불")
def refund_credits(
    req: RefundRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    credit_service: Annotated[CreditService, Depends(get_credit_service)],
) -> OkResponse:
    return OkResponse(ok=credit_service.refund(principal, req.transaction_id))


@router.post("/add", summary="크레딧 적립 (관리자)")
def add_credits(
    req: AddCreditsRequest,
    admin: Annotated[Principal, Depends(get_admin_principal)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> NewBalanceResponse:
    new_balance = admin_service.add_credits(
        admin,
        req.user_id,
        req.amount,
        req.action_type,
        description=req.description,
        reference_id=req.reference_id,
    )
    return NewBalanceResponse(new_balance=new_balance)
