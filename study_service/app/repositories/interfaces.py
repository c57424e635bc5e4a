from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Protocol, TypeVar

from pymongo.client_session import ClientSession

from ..models.activity import ActivityLog
from ..models.coupon import Coupon, CouponAttempt
from ..models.credit import CreditBalance, CreditSetting, CreditTransaction
from ..models.study import Quiz, QuizAttempt, Summary, UploadedFile
from ..models.user import UserStatus


T = TypeVar("T")


class TransactionRunnerInterface(Protocol):
    """여러 레포지토리 쓰기를 하나의 작업 단위로 묶는 계약.

    callback 은 session 을 받아 모든 쓰기 호출에 그대로 넘긴다.
    """

    def run(
        self, callback: Callable[[ClientSession | None], T]
    ) -> T:  # pragma: no cover - Protocol
        ...


class CreditBalanceRepositoryInterface(Protocol):
    """CreditBalanceRepository가 따라야 할 최소한의 계약.

    잔액 변경은 모두 단일 조건부 업데이트로 수행되어야 하며, 읽고-계산하고-쓰는 두 단계로
    나누어서는 안 된다.
    """

    def find_by_user(
        self, user_id: str, session: ClientSession | None = None
    ) -> CreditBalance | None:  # pragma: no cover - Protocol
        ...

    def try_debit(
        self, user_id: str, amount: int, session: ClientSession | None = None
    ) -> CreditBalance | None:
        """balance >= amount 인 경우에만 차감하고 변경 후 레코드를 반환한다. 실패 시 None."""
        ...  # pragma: no cover - Protocol

    def credit(
        self, user_id: str, amount: int, session: ClientSession | None = None
    ) -> CreditBalance:
        """balance/total_earned 를 증가시킨다. 레코드가 없으면 생성한다."""
        ...  # pragma: no cover - Protocol

    def restore(
        self, user_id: str, amount: int, session: ClientSession | None = None
    ) -> CreditBalance | None:
        """환불: balance 를 늘리고 total_spent 를 줄인다. 레코드가 없으면 None."""
        ...  # pragma: no cover - Protocol

    def compare_and_set(
        self,
        user_id: str,
        expected_balance: int | None,
        new_balance: int,
        session: ClientSession | None = None,
    ) -> CreditBalance | None:
        """현재 잔액이 expected_balance 일 때만 new_balance 로 바꾼다.

        expected_balance 가 None 이면 레코드가 없을 때만 새로 만든다. 경합에서 지면 None.
        """
        ...  # pragma: no cover - Protocol

    def list_page(
        self, page: int, page_size: int, search: str = ""
    ) -> tuple[list[CreditBalance], int]:
        """관리자 사용자 목록용. 최근 생성순, search 는 user_id 부분 일치."""
        ...  # pragma: no cover - Protocol


class CreditTransactionRepositoryInterface(Protocol):
    def create(
        self, tx: CreditTransaction, session: ClientSession | None = None
    ) -> CreditTransaction:  # pragma: no cover - Protocol
        ...

    def create_refund(
        self, tx: CreditTransaction, session: ClientSession | None = None
    ) -> CreditTransaction | None:
        """환불 트랜잭션 기록. 같은 원본에 대한 환불이 이미 있으면 None."""
        ...  # pragma: no cover - Protocol

    def find_for_user(
        self, transaction_id: str, user_id: str, session: ClientSession | None = None
    ) -> CreditTransaction | None:  # pragma: no cover - Protocol
        ...

    def list_by_user(
        self, user_id: str, page: int, page_size: int
    ) -> tuple[list[CreditTransaction], int]:  # pragma: no cover - Protocol
        ...


class CreditSettingRepositoryInterface(Protocol):
    def get(self, action_key: str) -> CreditSetting | None:  # pragma: no cover - Protocol
        ...

    def list_all(self) -> list[CreditSetting]:  # pragma: no cover - Protocol
        ...

    def upsert_cost(
        self, action_key: str, credit_cost: int, description: str | None = None
    ) -> CreditSetting:  # pragma: no cover - Protocol
        ...

    def seed(self, settings: list[CreditSetting]) -> int:
        """존재하지 않는 action_key 만 삽입하고 삽입된 개수를 반환한다."""
        ...  # pragma: no cover - Protocol


class CouponRepositoryInterface(Protocol):
    def find_by_code(
        self, code: str, session: ClientSession | None = None
    ) -> Coupon | None:  # pragma: no cover - Protocol
        ...

    def try_redeem(
        self, code: str, now: datetime, session: ClientSession | None = None
    ) -> Coupon | None:
        """활성/미만료/잔여 횟수 조건을 모두 만족할 때만 current_uses 를 1 증가시킨다."""
        ...  # pragma: no cover - Protocol

    def insert(self, coupon: Coupon) -> Coupon | None:
        """코드가 중복이면 None."""
        ...  # pragma: no cover - Protocol

    def insert_many(self, coupons: list[Coupon]) -> list[Coupon] | None:
        """하나라도 코드가 중복이면 아무것도 남기지 않고 None."""
        ...  # pragma: no cover - Protocol

    def list_all(self) -> list[Coupon]:  # pragma: no cover - Protocol
        ...

    def set_active(
        self, coupon_id: str, is_active: bool
    ) -> Coupon | None:  # pragma: no cover - Protocol
        ...


class CouponAttemptRepositoryInterface(Protocol):
    def create(
        self, attempt: CouponAttempt, session: ClientSession | None = None
    ) -> CouponAttempt:  # pragma: no cover - Protocol
        ...

    def count_failures_since(
        self, user_id: str, since: datetime
    ) -> int:  # pragma: no cover - Protocol
        ...


class UploadedFileRepositoryInterface(Protocol):
    def create(self, file: UploadedFile) -> UploadedFile:  # pragma: no cover - Protocol
        ...

    def find_for_user(
        self, file_id: str, user_id: str
    ) -> UploadedFile | None:  # pragma: no cover - Protocol
        ...

    def list_by_user(self, user_id: str) -> list[UploadedFile]:  # pragma: no cover - Protocol
        ...

    def delete_for_user(
        self, file_id: str, user_id: str
    ) -> bool:  # pragma: no cover - Protocol
        ...


class SummaryRepositoryInterface(Protocol):
    def create(self, summary: Summary) -> Summary:  # pragma: no cover - Protocol
        ...

    def find_for_user(
        self, summary_id: str, user_id: str
    ) -> Summary | None:  # pragma: no cover - Protocol
        ...

    def list_by_user(self, user_id: str) -> list[Summary]:  # pragma: no cover - Protocol
        ...

    def delete_for_user(
        self, summary_id: str, user_id: str
    ) -> bool:  # pragma: no cover - Protocol
        ...

    def update_for_user(
        self, summary_id: str, user_id: str, changes: dict[str, Any]
    ) -> Summary | None:
        """소유자의 요약에 changes 를 $set 하고 변경 후 값을 반환한다. 없으면 None."""
        ...  # pragma: no cover - Protocol


class QuizRepositoryInterface(Protocol):
    def create(self, quiz: Quiz) -> Quiz:  # pragma: no cover - Protocol
        ...

    def find_for_user(
        self, quiz_id: str, user_id: str
    ) -> Quiz | None:  # pragma: no cover - Protocol
        ...

    def list_by_user(self, user_id: str) -> list[Quiz]:  # pragma: no cover - Protocol
        ...

    def create_attempt(
        self, attempt: QuizAttempt
    ) -> QuizAttempt:  # pragma: no cover - Protocol
        ...

    def delete_for_user(self, quiz_id: str, user_id: str) -> bool:
        """퀴즈와 그 풀이 기록을 함께 지운다. 대상이 없으면 False."""
        ...  # pragma: no cover - Protocol


class AdminRepositoryInterface(Protocol):
    def is_admin(self, user_id: str) -> bool:  # pragma: no cover - Protocol
        ...


class UserStatusRepositoryInterface(Protocol):
    def is_banned(self, user_id: str) -> bool:  # pragma: no cover - Protocol
        ...

    def set_banned(
        self, user_id: str, is_banned: bool, reason: str | None, updated_by: str
    ) -> UserStatus:
        """상태 레코드를 upsert 하고 변경 후 값을 반환한다."""
        ...  # pragma: no cover - Protocol

    def find_many(
        self, user_ids: list[str]
    ) -> dict[str, UserStatus]:  # pragma: no cover - Protocol
        ...


class ActivityLogRepositoryInterface(Protocol):
    def create(self, log: ActivityLog) -> ActivityLog:  # pragma: no cover - Protocol
        ...
