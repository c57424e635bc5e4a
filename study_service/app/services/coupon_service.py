"""쿠폰 사용 서비스.

흐름: 신원 확인 -> 고정 지연 -> 실패 횟수 제한 -> (트랜잭션) 검증+사용 횟수 증가+적립 -> 시도 기록.

- 지연은 성공/실패 모든 경로에 동일하게 적용되어 응답 시간으로 코드 유효성을 추측할 수 없다.
- 클라이언트에는 실패 사유와 무관하게 같은 메시지를 돌려주고, 구체 사유는 로그와 시도 기록에만 남긴다.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from fastapi import Depends
from pymongo.client_session import ClientSession
from pymongo.database import Database

from common.mongo.client import get_database
from common.mongo.transaction import get_transaction_runner
from common.types.datetime import utc_now

from ..config import CouponConfig, get_coupon_config
from ..exceptions import CouponInvalid, Unauthenticated
from ..models.coupon import CouponAttempt, CouponRejectReason, RedemptionResult
from ..models.credit import TransactionType
from ..models.principal import Principal
from ..repositories.coupon_repository import CouponAttemptRepository, CouponRepository
from ..repositories.interfaces import (
    CouponAttemptRepositoryInterface,
    CouponRepositoryInterface,
    TransactionRunnerInterface,
)
from .credit_service import CreditService, get_credit_service


logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return code.strip().upper()


class CouponService:
    """쿠폰 사용(redeem) 비즈니스 로직."""

    def __init__(
        self,
        coupon_repo: CouponRepositoryInterface,
        attempt_repo: CouponAttemptRepositoryInterface,
        credit_service: CreditService,
        tx_runner: TransactionRunnerInterface,
        config: CouponConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._coupon_repo = coupon_repo
        self._attempt_repo = attempt_repo
        self._credit_service = credit_service
        self._tx_runner = tx_runner
        self._config = config or CouponConfig()
        self._sleep = sleep

    async def redeem(
        self,
        principal: Principal | None,
        code: str,
        ip_address: str | None = None,
    ) -> RedemptionResult:
        if principal is None:
            raise Unauthenticated()

        # 이벤트 루프를 막지 않는 지연. 워커 스레드를 점유하지 않는다.
        await self._sleep(self._config.response_delay_seconds)

        normalized = normalize_code(code)
        try:
            return await asyncio.to_thread(self._redeem_sync, principal, normalized, ip_address)
        except CouponInvalid as exc:
            return RedemptionResult(success=False, error=exc.message, reason=exc.reason)

    def _redeem_sync(
        self, principal: Principal, code: str, ip_address: str | None
    ) -> RedemptionResult:
        user_id = principal.user_id

        if self._is_rate_limited(user_id):
            self._record_failure(user_id, code, CouponRejectReason.RATE_LIMITED, ip_address)
            raise CouponInvalid(CouponRejectReason.RATE_LIMITED)

        now = utc_now()

        def _work(session: ClientSession | None) -> RedemptionResult:
            coupon = self._coupon_repo.try_redeem(code, now, session=session)
            if coupon is None:
                raise CouponInvalid(self._classify_failure(code, now, session))

            new_balance = self._credit_service.add(
                user_id,
                coupon.credit_amount,
                TransactionType.COUPON.value,
                description=f"쿠폰 사용: {coupon.code}",
                reference_id=coupon.id,
                session=session,
            )
            self._attempt_repo.create(
                CouponAttempt(
                    user_id=user_id,
                    attempted_code=code,
                    success=True,
                    ip_address=ip_address,
                    created_at=now,
                ),
                session=session,
            )
            return RedemptionResult(
                success=True,
                credits_awarded=coupon.credit_amount,
                new_balance=new_balance,
            )

        try:
            result = self._tx_runner.run(_work)
        except CouponInvalid as exc:
            self._record_failure(user_id, code, exc.reason, ip_address)
            raise

        logger.info(
            "coupon redeemed",
            extra={"user_id": user_id, "action_key": TransactionType.COUPON.value},
        )
        return result

    def _is_rate_limited(self, user_id: str) -> bool:
        since = utc_now() - timedelta(minutes=self._config.rate_limit_window_minutes)
        failures = self._attempt_repo.count_failures_since(user_id, since)
        return failures >= self._config.rate_limit_max_failures

    def _classify_failure(
        self, code: str, now: datetime, session: ClientSession | None
    ) -> CouponRejectReason:
        # 조건부 업데이트가 매칭되지 않았을 때 사유를 구분하기 위한 재조회. 상태는 바꾸지 않는다.
        coupon = self._coupon_repo.find_by_code(code, session=session)
        if coupon is None:
            return CouponRejectReason.NOT_FOUND
        return coupon.reject_reason(now) or CouponRejectReason.EXHAUSTED

    def _record_failure(
        self,
        user_id: str,
        code: str,
        reason: CouponRejectReason,
        ip_address: str | None,
    ) -> None:
        logger.info(
            "coupon redemption rejected",
            extra={"user_id": user_id, "reason": reason.value},
        )
        self._attempt_repo.create(
            CouponAttempt(
                user_id=user_id,
                attempted_code=code,
                success=False,
                reason=reason.value,
                ip_address=ip_address,
                created_at=utc_now(),
            )
        )


def get_coupon_repository(
    db: Database = Depends(get_database),
) -> CouponRepositoryInterface:
    return CouponRepository(db)


def get_coupon_attempt_repository(
    db: Database = Depends(get_database),
) -> CouponAttemptRepositoryInterface:
    return CouponAttemptRepository(db)


def get_coupon_service(
    coupon_repo: CouponRepositoryInterface = Depends(get_coupon_repository),
    attempt_repo: CouponAttemptRepositoryInterface = Depends(get_coupon_attempt_repository),
    credit_service: CreditService = Depends(get_credit_service),
    tx_runner: TransactionRunnerInterface = Depends(get_transaction_runner),
    config: CouponConfig = Depends(get_coupon_config),
) -> CouponService:
    """FastAPI DI용 CouponService 팩토리."""

    return CouponService(
        coupon_repo=coupon_repo,
        attempt_repo=attempt_repo,
        credit_service=credit_service,
        tx_runner=tx_runner,
        config=config,
    )
