"""크레딧 원장 서비스.

잔액 조회, 가격 조회, 차감/환불/적립, 관리자 잔액 설정, 트랜잭션 이력을 처리한다.
잔액 변경과 트랜잭션 로그 기록은 항상 하나의 작업 단위(트랜잭션 러너)로 묶는다.
"""

from __future__ import annotations

import logging

from fastapi import Depends
from pymongo.client_session import ClientSession
from pymongo.database import Database

from common.mongo.client import get_database
from common.mongo.transaction import get_transaction_runner
from common.types.datetime import utc_now

from ..config import CreditConfig, get_credit_config
from ..exceptions import Conflict, InsufficientCredits, InvalidRequest, NotFound, NotRefundable
from ..models.credit import (
    DEFAULT_CREDIT_COST,
    CreditBalance,
    CreditCheck,
    CreditSetting,
    CreditTransaction,
    TransactionType,
)
from ..models.principal import Principal
from ..repositories.credit_repository import (
    CreditBalanceRepository,
    CreditSettingRepository,
    CreditTransactionRepository,
)
from ..repositories.interfaces import (
    CreditBalanceRepositoryInterface,
    CreditSettingRepositoryInterface,
    CreditTransactionRepositoryInterface,
    TransactionRunnerInterface,
)


logger = logging.getLogger(__name__)

# 관리자 잔액 설정 시 compare-and-swap 재시도 횟수
SET_BALANCE_MAX_ATTEMPTS = 5


class _StaleBalance(Exception):
    """compare-and-swap 경합에서 졌을 때 작업 단위를 중단하기 위한 내부 신호."""


class CreditService:
    """크레딧 원장 비즈니스 로직."""

    def __init__(
        self,
        balance_repo: CreditBalanceRepositoryInterface,
        transaction_repo: CreditTransactionRepositoryInterface,
        setting_repo: CreditSettingRepositoryInterface,
        tx_runner: TransactionRunnerInterface,
        default_cost: int = DEFAULT_CREDIT_COST,
    ) -> None:
        self._balance_repo = balance_repo
        self._transaction_repo = transaction_repo
        self._setting_repo = setting_repo
        self._tx_runner = tx_runner
        self._default_cost = default_cost

    def get_balance(self, principal: Principal) -> CreditBalance | None:
        """잔액 레코드 조회. 레코드가 없으면 None (오류가 아니다)."""
        return self._balance_repo.find_by_user(principal.user_id)

    def get_cost(self, action_key: str) -> int:
        """작업 비용 조회. 가격표에 없거나 조회에 실패하면 기본값을 사용한다."""
        try:
            setting = self._setting_repo.get(action_key)
        except Exception:  # noqa: BLE001
            logger.warning(
                "pricing lookup failed; falling back to default cost",
                exc_info=True,
                extra={"action_key": action_key},
            )
            return self._default_cost
        if setting is None:
            return self._default_cost
        return setting.credit_cost

    def has_enough_credits(self, principal: Principal, action_key: str) -> CreditCheck:
        cost = self.get_cost(action_key)
        record = self._balance_repo.find_by_user(principal.user_id)
        if record is None:
            return CreditCheck(sufficient=False, balance=0, cost=cost)
        return CreditCheck(sufficient=record.balance >= cost, balance=record.balance, cost=cost)

    def deduct(
        self,
        principal: Principal,
        action_key: str,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> CreditTransaction:
        """action_key 비용만큼 차감하고 음수 트랜잭션을 남긴다.

        잔액이 부족하면 InsufficientCredits 를 발생시키며 어떤 상태도 바뀌지 않는다.
        """
        user_id = principal.user_id
        cost = self.get_cost(action_key)

        def _work(session: ClientSession | None) -> CreditTransaction:
            updated = self._balance_repo.try_debit(user_id, cost, session=session)
            if updated is None:
                current = self._balance_repo.find_by_user(user_id, session=session)
                raise InsufficientCredits(current.balance if current else 0, cost)
            return self._transaction_repo.create(
                CreditTransaction(
                    user_id=user_id,
                    amount=-cost,
                    action_type=action_key,
                    description=description or f"{action_key} 사용",
                    reference_id=reference_id,
                    created_at=utc_now(),
                ),
                session=session,
            )

        tx = self._tx_runner.run(_work)
        logger.info(
            "credits deducted",
            extra={"user_id": user_id, "action_key": action_key, "transaction_id": tx.id},
        )
        return tx

    def refund(self, principal: Principal, transaction_id: str) -> bool:
        """차감 트랜잭션을 환불한다. 같은 트랜잭션은 한 번만 환불할 수 있다."""
        user_id = principal.user_id

        def _work(session: ClientSession | None) -> CreditTransaction:
            original = self._transaction_repo.find_for_user(
                transaction_id, user_id, session=session
            )
            if original is None:
                raise NotFound("환불할 트랜잭션을 찾을 수 없습니다.")
            if original.amount >= 0:
                raise NotRefundable("차감 트랜잭션만 환불할 수 있습니다.")

            amount = -original.amount
            # 환불 기록을 먼저 남긴다. 원본당 하나만 허용하는 unique 인덱스가 중복 환불을 막는다.
            refund_tx = self._transaction_repo.create_refund(
                CreditTransaction(
                    user_id=user_id,
                    amount=amount,
                    action_type=TransactionType.REFUND.value,
                    description=f"{original.action_type} 환불",
                    reference_id=original.id,
                    created_at=utc_now(),
                ),
                session=session,
            )
            if refund_tx is None:
                raise NotRefundable("이미 환불된 트랜잭션입니다.")

            if self._balance_repo.restore(user_id, amount, session=session) is None:
                raise NotFound("크레딧 잔액 정보를 찾을 수 없습니다.")
            return refund_tx

        refund_tx = self._tx_runner.run(_work)
        logger.info(
            "credits refunded",
            extra={
                "user_id": user_id,
                "transaction_id": transaction_id,
                "reason": f"refund_tx={refund_tx.id}",
            },
        )
        return True

    def add(
        self,
        user_id: str,
        amount: int,
        action_type: str,
        description: str | None = None,
        reference_id: str | None = None,
        session: ClientSession | None = None,
    ) -> int:
        """크레딧 적립. 잔액 레코드가 없으면 생성한다. 적립 후 잔액을 반환한다.

        session 이 주어지면 호출자의 작업 단위 안에서 실행한다 (쿠폰 사용 등).
        """
        if amount <= 0:
            raise InvalidRequest("적립할 크레딧은 0보다 커야 합니다.")

        def _work(s: ClientSession | None) -> int:
            updated = self._balance_repo.credit(user_id, amount, session=s)
            self._transaction_repo.create(
                CreditTransaction(
                    user_id=user_id,
                    amount=amount,
                    action_type=action_type,
                    description=description,
                    reference_id=reference_id,
                    created_at=utc_now(),
                ),
                session=s,
            )
            return updated.balance

        if session is not None:
            return _work(session)
        new_balance = self._tx_runner.run(_work)
        logger.info(
            "credits added", extra={"user_id": user_id, "action_key": action_type}
        )
        return new_balance

    def set_balance(
        self, user_id: str, amount: int, description: str | None = None
    ) -> int:
        """관리자용: 잔액을 amount 로 맞춘다. 차이만큼 admin_set 트랜잭션을 남긴다."""
        if amount < 0:
            raise InvalidRequest("잔액은 0 이상이어야 합니다.")

        def _work(session: ClientSession | None) -> int:
            current = self._balance_repo.find_by_user(user_id, session=session)
            expected = current.balance if current is not None else None
            if (expected or 0) == amount:
                return amount

            updated = self._balance_repo.compare_and_set(
                user_id, expected, amount, session=session
            )
            if updated is None:
                raise _StaleBalance()

            self._transaction_repo.create(
                CreditTransaction(
                    user_id=user_id,
                    amount=amount - (expected or 0),
                    action_type=TransactionType.ADMIN_SET.value,
                    description=description or f"관리자 잔액 설정: {amount}",
                    created_at=utc_now(),
                ),
                session=session,
            )
            return updated.balance

        for _ in range(SET_BALANCE_MAX_ATTEMPTS):
            try:
                return self._tx_runner.run(_work)
            except _StaleBalance:
                logger.info("balance changed concurrently; retrying", extra={"user_id": user_id})
        raise Conflict("잔액이 동시에 변경되어 설정하지 못했습니다. 다시 시도해 주세요.")

    def get_history(
        self, principal: Principal, page: int = 1, page_size: int = 20
    ) -> tuple[list[CreditTransaction], int]:
        """크레딧 사용 이력 조회 (최신순)."""
        return self._transaction_repo.list_by_user(principal.user_id, page, page_size)

    def list_balances(
        self, page: int = 1, page_size: int = 20, search: str = ""
    ) -> tuple[list[CreditBalance], int]:
        return self._balance_repo.list_page(page, page_size, search.strip())

    def list_pricing(self) -> list[CreditSetting]:
        return self._setting_repo.list_all()

    def update_pricing(
        self, action_key: str, credit_cost: int, description: str | None = None
    ) -> CreditSetting:
        if credit_cost < 0:
            raise InvalidRequest("크레딧 비용은 0 이상이어야 합니다.")
        return self._setting_repo.upsert_cost(action_key, credit_cost, description)

    def seed_pricing(self, settings: list[CreditSetting]) -> int:
        return self._setting_repo.seed(settings)


def get_credit_balance_repository(
    db: Database = Depends(get_database),
) -> CreditBalanceRepositoryInterface:
    """FastAPI DI용 CreditBalanceRepository 팩토리."""

    return CreditBalanceRepository(db)


def get_credit_transaction_repository(
    db: Database = Depends(get_database),
) -> CreditTransactionRepositoryInterface:
    return CreditTransactionRepository(db)


def get_credit_setting_repository(
    db: Database = Depends(get_database),
) -> CreditSettingRepositoryInterface:
    return CreditSettingRepository(db)


def get_credit_service(
    balance_repo: CreditBalanceRepositoryInterface = Depends(get_credit_balance_repository),
    transaction_repo: CreditTransactionRepositoryInterface = Depends(
        get_credit_transaction_repository
    ),
    setting_repo: CreditSettingRepositoryInterface = Depends(get_credit_setting_repository),
    tx_runner: TransactionRunnerInterface = Depends(get_transaction_runner),
    credit_config: CreditConfig = Depends(get_credit_config),
) -> CreditService:
    """FastAPI DI용 CreditService 팩토리."""

    return CreditService(
        balance_repo=balance_repo,
        transaction_repo=transaction_repo,
        setting_repo=setting_repo,
        tx_runner=tx_runner,
        default_cost=credit_config.default_cost,
    )
