"""관리자 서비스.

가격표 수정, 쿠폰 생성/활성화 토글, 크레딧 지급/설정, 사용자 조회와 이용 정지를 처리하고
모든 변경을 activity_logs 에 남긴다.
"""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database
from common.types.datetime import ensure_utc_datetime, utc_now

from ..exceptions import Conflict, Forbidden, InvalidRequest, NotFound
from ..models.activity import ActivityLog, ActivityType
from ..models.coupon import Coupon
from ..models.credit import CreditSetting, TransactionType
from ..models.principal import Principal
from ..models.user import UserOverview, UserStatus
from ..repositories.admin_repository import (
    ActivityLogRepository,
    AdminRepository,
    UserStatusRepository,
)
from ..repositories.interfaces import (
    ActivityLogRepositoryInterface,
    AdminRepositoryInterface,
    CouponRepositoryInterface,
    UserStatusRepositoryInterface,
)
from .coupon_service import get_coupon_repository, normalize_code
from .credit_service import CreditService, get_credit_service


logger = logging.getLogger(__name__)

BULK_COUPON_MAX_COUNT = 1000
GENERATED_CODE_LENGTH = 12
_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_coupon_code(length: int = GENERATED_CODE_LENGTH) -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


class AdminService:
    def __init__(
        self,
        admin_repo: AdminRepositoryInterface,
        activity_repo: ActivityLogRepositoryInterface,
        coupon_repo: CouponRepositoryInterface,
        credit_service: CreditService,
        user_status_repo: UserStatusRepositoryInterface,
    ) -> None:
        self._admin_repo = admin_repo
        self._activity_repo = activity_repo
        self._coupon_repo = coupon_repo
        self._credit = credit_service
        self._user_status_repo = user_status_repo

    def is_admin(self, user_id: str) -> bool:
        return self._admin_repo.is_admin(user_id)

    def require_admin(self, principal: Principal) -> Principal:
        """관리자 여부를 확인하고 is_admin 이 반영된 Principal 을 돌려준다."""
        if principal.is_admin or self._admin_repo.is_admin(principal.user_id):
            return principal.model_copy(update={"is_admin": True})
        raise Forbidden()

    # --- 가격표 ---

    def list_pricing(self, principal: Principal) -> list[CreditSetting]:
        self.require_admin(principal)
        return self._credit.list_pricing()

    def update_pricing(
        self,
        principal: Principal,
        action_key: str,
        credit_cost: int,
        description: str | None = None,
    ) -> CreditSetting:
        admin = self.require_admin(principal)
        action_key = action_key.strip()
        if not action_key:
            raise InvalidRequest("action_key 는 비어 있을 수 없습니다.")
        setting = self._credit.update_pricing(action_key, credit_cost, description)
        self._log(
            admin,
            ActivityType.SETTING_UPDATE,
            f"가격 변경: {action_key} -> {credit_cost}",
            {"action_key": action_key, "credit_cost": credit_cost},
        )
        return setting

    # --- 쿠폰 ---

    def list_coupons(self, principal: Principal) -> list[Coupon]:
        self.require_admin(principal)
        return self._coupon_repo.list_all()

    def create_coupon(
        self,
        principal: Principal,
        code: str,
        credit_amount: int,
        max_uses: int = 1,
        expires_at: datetime | None = None,
    ) -> Coupon:
        admin = self.require_admin(principal)
        normalized = normalize_code(code)
        if not normalized:
            raise InvalidRequest("쿠폰 코드는 비어 있을 수 없습니다.")
        self._validate_coupon_values(credit_amount, max_uses)

        created = self._coupon_repo.insert(
            Coupon(
                code=normalized,
                credit_amount=credit_amount,
                max_uses=max_uses,
                expires_at=ensure_utc_datetime(expires_at),
                created_by=admin.user_id,
                created_at=utc_now(),
            )
        )
        if created is None:
            raise Conflict("이미 존재하는 쿠폰 코드입니다.")

        self._log(
            admin,
            ActivityType.COUPON_CREATE,
            f"쿠폰 생성: {normalized}",
            {"coupon_id": created.id, "credit_amount": credit_amount, "max_uses": max_uses},
        )
        return created

    def create_bulk_coupons(
        self,
        principal: Principal,
        count: int,
        credit_amount: int,
        max_uses: int = 1,
        expires_at: datetime | None = None,
    ) -> list[Coupon]:
        admin = self.require_admin(principal)
        if count < 1 or count > BULK_COUPON_MAX_COUNT:
            raise InvalidRequest(f"쿠폰 개수는 1 이상 {BULK_COUPON_MAX_COUNT} 이하여야 합니다.")
        self._validate_coupon_values(credit_amount, max_uses)

        codes: set[str] = set()
        while len(codes) < count:
            codes.add(generate_coupon_code())

        now = utc_now()
        coupons = [
            Coupon(
                code=code,
                credit_amount=credit_amount,
                max_uses=max_uses,
                expires_at=ensure_utc_datetime(expires_at),
                created_by=admin.user_id,
                created_at=now,
            )
            for code in sorted(codes)
        ]
        created = self._coupon_repo.insert_many(coupons)
        if created is None:
            # 36^12 공간에서 충돌은 사실상 발생하지 않는다. 발생하면 재요청하도록 한다.
            raise Conflict("쿠폰 코드가 충돌했습니다. 다시 시도해 주세요.")

        self._log(
            admin,
            ActivityType.BULK_COUPON_CREATE,
            f"쿠폰 일괄 생성: {count}개",
            {"count": count, "credit_amount": credit_amount, "max_uses": max_uses},
        )
        return created

    def set_coupon_active(
        self, principal: Principal, coupon_id: str, is_active: bool
    ) -> Coupon:
        admin = self.require_admin(principal)
        coupon = self._coupon_repo.set_active(coupon_id, is_active)
        if coupon is None:
            raise NotFound("쿠폰을 찾을 수 없습니다.")
        self._log(
            admin,
            ActivityType.COUPON_TOGGLE,
            f"쿠폰 {'활성화' if is_active else '비활성화'}: {coupon.code}",
            {"coupon_id": coupon_id, "is_active": is_active},
        )
        return coupon

    @staticmethod
    def _validate_coupon_values(credit_amount: int, max_uses: int) -> None:
        if credit_amount < 1:
            raise InvalidRequest("쿠폰 크레딧은 1 이상이어야 합니다.")
        if max_uses < 1:
            raise InvalidRequest("최대 사용 횟수는 1 이상이어야 합니다.")

    # --- 크레딧 ---

    def gift_credits(
        self,
        principal: Principal,
        user_id: str,
        amount: int,
        description: str | None = None,
    ) -> int:
        admin = self.require_admin(principal)
        new_balance = self._credit.add(
            user_id,
            amount,
            TransactionType.ADMIN_GIFT.value,
            description=description or "관리자 지급",
        )
        self._log(
            admin,
            ActivityType.CREDITS_GIFT,
            f"크레딧 지급: {user_id} +{amount}",
            {"target_user_id": user_id, "amount": amount, "new_balance": new_balance},
        )
        return new_balance

    def set_credits(
        self,
        principal: Principal,
        user_id: str,
        amount: int,
        description: str | None = None,
    ) -> int:
        admin = self.require_admin(principal)
        new_balance = self._credit.set_balance(user_id, amount, description)
        self._log(
            admin,
            ActivityType.CREDITS_ADJUST,
            f"크레딧 설정: {user_id} = {amount}",
            {"target_user_id": user_id, "amount": amount},
        )
        return new_balance

    def add_credits(
        self,
        principal: Principal,
        user_id: str,
        amount: int,
        action_type: str,
        description: str | None = None,
        reference_id: str | None = None,
    ) -> int:
        """원장 add 의 관리자 전용 진입점 (POST /credits/add)."""
        admin = self.require_admin(principal)
        new_balance = self._credit.add(
            user_id, amount, action_type, description=description, reference_id=reference_id
        )
        self._log(
            admin,
            ActivityType.CREDITS_GIFT,
            f"크레딧 적립: {user_id} +{amount} ({action_type})",
            {"target_user_id": user_id, "amount": amount, "action_type": action_type},
        )
        return new_balance

    # --- 사용자 ---

    def list_users(
        self, principal: Principal, page: int = 1, page_size: int = 20, search: str = ""
    ) -> tuple[list[UserOverview], int]:
        """잔액 레코드가 있는 사용자를 최근 생성순으로 정지 여부와 함께 돌려준다."""
        self.require_admin(principal)
        balances, total = self._credit.list_balances(page, page_size, search)
        statuses = self._user_status_repo.find_many([b.user_id for b in balances])

        users: list[UserOverview] = []
        for balance in balances:
            status = statuses.get(balance.user_id)
            banned = status is not None and status.is_banned
            users.append(
                UserOverview(
                    user_id=balance.user_id,
                    balance=balance.balance,
                    total_earned=balance.total_earned,
                    total_spent=balance.total_spent,
                    is_banned=banned,
                    ban_reason=status.reason if banned else None,
                    created_at=balance.created_at,
                )
            )
        return users, total

    def ban_user(
        self, principal: Principal, user_id: str, reason: str | None = None
    ) -> UserStatus:
        admin = self.require_admin(principal)
        user_id = self._target_user(admin, user_id)
        status = self._user_status_repo.set_banned(user_id, True, reason, admin.user_id)
        self._log(
            admin,
            ActivityType.USER_BAN,
            f"사용자 정지: {user_id}",
            {"banned_user_id": user_id, "reason": reason},
        )
        return status

    def unban_user(self, principal: Principal, user_id: str) -> UserStatus:
        admin = self.require_admin(principal)
        user_id = self._target_user(admin, user_id)
        status = self._user_status_repo.set_banned(user_id, False, None, admin.user_id)
        self._log(
            admin,
            ActivityType.USER_UNBAN,
            f"사용자 정지 해제: {user_id}",
            {"unbanned_user_id": user_id},
        )
        return status

    @staticmethod
    def _target_user(admin: Principal, user_id: str) -> str:
        user_id = user_id.strip()
        if not user_id:
            raise InvalidRequest("user_id 는 비어 있을 수 없습니다.")
        if user_id == admin.user_id:
            raise InvalidRequest("자기 자신의 계정 상태는 바꿀 수 없습니다.")
        return user_id

    def _log(
        self,
        admin: Principal,
        action_type: ActivityType,
        description: str,
        metadata: dict | None = None,
    ) -> None:
        logger.info(description, extra={"user_id": admin.user_id, "action_key": action_type.value})
        self._activity_repo.create(
            ActivityLog(
                user_id=admin.user_id,
                action_type=action_type,
                description=description,
                metadata=metadata,
                created_at=utc_now(),
            )
        )


def get_admin_repository(db: Database = Depends(get_database)) -> AdminRepositoryInterface:
    return AdminRepository(db)


def get_activity_log_repository(
    db: Database = Depends(get_database),
) -> ActivityLogRepositoryInterface:
    return ActivityLogRepository(db)


def get_user_status_repository(
    db: Database = Depends(get_database),
) -> UserStatusRepositoryInterface:
    return UserStatusRepository(db)


def get_admin_service(
    admin_repo: AdminRepositoryInterface = Depends(get_admin_repository),
    activity_repo: ActivityLogRepositoryInterface = Depends(get_activity_log_repository),
    coupon_repo: CouponRepositoryInterface = Depends(get_coupon_repository),
    credit_service: CreditService = Depends(get_credit_service),
    user_status_repo: UserStatusRepositoryInterface = Depends(get_user_status_repository),
) -> AdminService:
    """FastAPI DI용 AdminService 팩토리."""

    return AdminService(
        admin_repo=admin_repo,
        activity_repo=activity_repo,
        coupon_repo=coupon_repo,
        credit_service=credit_service,
        user_status_repo=user_status_repo,
    )
