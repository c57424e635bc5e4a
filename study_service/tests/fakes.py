"""테스트용 인메모리 레포지토리/러너/생성 엔진.

레포지토리 Protocol 을 그대로 구현하며, 조건부 업데이트는 lock 안에서 수행해
MongoDB 의 단일 도큐먼트 원자성을 흉내 낸다. FakeTransactionRunner 는 작업 단위를
직렬화하지 않고, callback 이 예외로 끝나면 그 스레드가 남긴 변경만 보상한다.
"""

from __future__ import annotations

import asyncio
import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, TypeVar

from common.types.datetime import utc_now
from study_service.app.models.activity import ActivityLog
from study_service.app.models.coupon import Coupon, CouponAttempt
from study_service.app.models.credit import (
    CreditBalance,
    CreditSetting,
    CreditTransaction,
    TransactionType,
)
from study_service.app.models.study import (
    DocumentHandle,
    Quiz,
    QuizAttempt,
    Summary,
    UploadedFile,
)
from study_service.app.models.user import UserStatus
from study_service.app.services.admin_service import AdminService
from study_service.app.services.coupon_service import CouponService
from study_service.app.services.credit_service import CreditService
from study_service.app.services.study_service import StudyService


T = TypeVar("T")

# 스레드별 진행 중인 트랜잭션의 되돌리기 목록
_journal = threading.local()


class _Store:
    """인메모리 저장소 베이스. 트랜잭션 안에서의 변경은 되돌리기 함수를 남긴다."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._seq = 0

    def _next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}-{self._seq}"

    def _on_rollback(self, undo: Callable[[], None]) -> None:
        entries = getattr(_journal, "entries", None)
        if entries is not None:
            entries.append(undo)


class FakeTransactionRunner:
    """callback 을 전역 잠금 없이 실행한다.

    동시에 들어온 작업 단위를 직렬화하지 않으므로 경합 안전성은 레포지토리의
    조건부 업데이트에서만 나온다. callback 이 예외로 끝나면 현재 스레드가 남긴
    변경만 역순으로 보상한다. 다른 스레드가 그 사이 커밋한 변경은 건드리지 않는다.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.runs = 0

    def run(self, callback: Callable[[Any], T]) -> T:
        with self._lock:
            self.runs += 1
        previous = getattr(_journal, "entries", None)
        entries: list[Callable[[], None]] = []
        _journal.entries = entries
        try:
            return callback(object())
        except BaseException:
            for undo in reversed(entries):
                undo()
            raise
        finally:
            _journal.entries = previous


# -------- Credit ledger --------


class FakeCreditBalanceRepository(_Store):
    def __init__(self) -> None:
        super().__init__()
        self.records: dict[str, CreditBalance] = {}
        self.fail_on_restore = False

    def seed(self, user_id: str, balance: int) -> None:
        now = utc_now()
        self.records[user_id] = CreditBalance(
            id=f"bal-{user_id}",
            user_id=user_id,
            balance=balance,
            total_earned=balance,
            total_spent=0,
            created_at=now,
            updated_at=now,
        )

    def _apply(self, user_id: str, balance: int, earned: int = 0, spent: int = 0) -> CreditBalance:
        record = self.records[user_id]
        updated = record.model_copy(
            update={
                "balance": record.balance + balance,
                "total_earned": record.total_earned + earned,
                "total_spent": record.total_spent + spent,
                "updated_at": utc_now(),
            }
        )
        self.records[user_id] = updated
        return updated

    def _compensate(self, user_id: str, balance: int, earned: int = 0, spent: int = 0) -> None:
        def undo() -> None:
            with self._lock:
                self._apply(user_id, -balance, -earned, -spent)

        self._on_rollback(undo)

    def _forget(self, user_id: str) -> None:
        def undo() -> None:
            with self._lock:
                self.records.pop(user_id, None)

        self._on_rollback(undo)

    def find_by_user(self, user_id: str, session=None) -> CreditBalance | None:
        with self._lock:
            record = self.records.get(user_id)
            return record.model_copy() if record else None

    def try_debit(self, user_id: str, amount: int, session=None) -> CreditBalance | None:
        with self._lock:
            record = self.records.get(user_id)
            if record is None or record.balance < amount:
                return None
            updated = self._apply(user_id, -amount, spent=amount)
        self._compensate(user_id, -amount, spent=amount)
        return updated

    def credit(self, user_id: str, amount: int, session=None) -> CreditBalance:
        with self._lock:
            created = user_id not in self.records
            if created:
                self.seed(user_id, 0)
            updated = self._apply(user_id, amount, earned=amount)
        if created:
            self._forget(user_id)
        else:
            self._compensate(user_id, amount, earned=amount)
        return updated

    def restore(self, user_id: str, amount: int, session=None) -> CreditBalance | None:
        if self.fail_on_restore:
            raise RuntimeError("balance store unavailable")
        with self._lock:
            if user_id not in self.records:
                return None
            updated = self._apply(user_id, amount, spent=-amount)
        self._compensate(user_id, amount, spent=-amount)
        return updated

    def compare_and_set(
        self, user_id: str, expected_balance: int | None, new_balance: int, session=None
    ) -> CreditBalance | None:
        with self._lock:
            record = self.records.get(user_id)
            if expected_balance is None:
                if record is not None:
                    return None
                self.seed(user_id, new_balance)
                self._forget(user_id)
                return self.records[user_id]
            if record is None or record.balance != expected_balance:
                return None
            delta = new_balance - expected_balance
            earned, spent = max(delta, 0), max(-delta, 0)
            updated = self._apply(user_id, delta, earned=earned, spent=spent)
        self._compensate(user_id, delta, earned=earned, spent=spent)
        return updated

    def list_page(
        self, page: int, page_size: int, search: str = ""
    ) -> tuple[list[CreditBalance], int]:
        with self._lock:
            matched = [
                r for r in self.records.values() if search.lower() in r.user_id.lower()
            ]
        matched.sort(key=lambda r: r.created_at, reverse=True)
        start = (page - 1) * page_size
        return matched[start : start + page_size], len(matched)


class FakeCreditTransactionRepository(_Store):
    def __init__(self) -> None:
        super().__init__()
        self.items: list[CreditTransaction] = []
        self.fail_on_create = False

    def create(self, tx: CreditTransaction, session=None) -> CreditTransaction:
        if self.fail_on_create:
            raise RuntimeError("credit_transactions collection unavailable")
        with self._lock:
            created = tx.model_copy(update={"id": self._next_id("tx")})
            self.items.append(created)

        def undo() -> None:
            with self._lock:
                self.items = [item for item in self.items if item.id != created.id]

        self._on_rollback(undo)
        return created

    def create_refund(self, tx: CreditTransaction, session=None) -> CreditTransaction | None:
        with self._lock:
            for item in self.items:
                if (
                    item.action_type == TransactionType.REFUND.value
                    and item.reference_id == tx.reference_id
                ):
                    return None
            return self.create(tx, session=session)

    def find_for_user(
        self, transaction_id: str, user_id: str, session=None
    ) -> CreditTransaction | None:
        with self._lock:
            for item in self.items:
                if item.id == transaction_id and item.user_id == user_id:
                    return item
            return None

    def list_by_user(
        self, user_id: str, page: int, page_size: int
    ) -> tuple[list[CreditTransaction], int]:
        with self._lock:
            owned = [item for item in reversed(self.items) if item.user_id == user_id]
        start = (page - 1) * page_size
        return owned[start : start + page_size], len(owned)

    def for_user(self, user_id: str) -> list[CreditTransaction]:
        return [item for item in self.items if item.user_id == user_id]


class FakeCreditSettingRepository:
    def __init__(self, pricing: dict[str, int] | None = None) -> None:
        self.settings: dict[str, CreditSetting] = {
            key: CreditSetting(action_key=key, credit_cost=cost)
            for key, cost in (pricing or {}).items()
        }
        self.raise_on_get = False

    def get(self, action_key: str) -> CreditSetting | None:
        if self.raise_on_get:
            raise RuntimeError("pricing store unavailable")
        return self.settings.get(action_key)

    def list_all(self) -> list[CreditSetting]:
        return sorted(self.settings.values(), key=lambda s: s.action_key)

    def upsert_cost(
        self, action_key: str, credit_cost: int, description: str | None = None
    ) -> CreditSetting:
        previous = self.settings.get(action_key)
        setting = CreditSetting(
            action_key=action_key,
            credit_cost=credit_cost,
            description=description if description is not None else (
                previous.description if previous else None
            ),
            updated_at=utc_now(),
        )
        self.settings[action_key] = setting
        return setting

    def seed(self, settings: list[CreditSetting]) -> int:
        inserted = 0
        for setting in settings:
            if setting.action_key not in self.settings:
                self.settings[setting.action_key] = setting
                inserted += 1
        return inserted


# -------- Coupons --------


class FakeCouponRepository(_Store):
    def __init__(self) -> None:
        super().__init__()
        self.coupons: dict[str, Coupon] = {}

    def add(self, code: str, credit_amount: int, max_uses: int, **kwargs: Any) -> Coupon:
        coupon = Coupon(
            id=self._next_id("coupon"),
            code=code,
            credit_amount=credit_amount,
            max_uses=max_uses,
            created_at=utc_now(),
            **kwargs,
        )
        self.coupons[code] = coupon
        return coupon

    def find_by_code(self, code: str, session=None) -> Coupon | None:
        with self._lock:
            return self.coupons.get(code)

    def try_redeem(self, code: str, now: datetime, session=None) -> Coupon | None:
        with self._lock:
            coupon = self.coupons.get(code)
            if coupon is None or coupon.reject_reason(now) is not None:
                return None
            updated = coupon.model_copy(update={"current_uses": coupon.current_uses + 1})
            self.coupons[code] = updated

        def undo() -> None:
            with self._lock:
                current = self.coupons[code]
                self.coupons[code] = current.model_copy(
                    update={"current_uses": current.current_uses - 1}
                )

        self._on_rollback(undo)
        return updated

    def insert(self, coupon: Coupon) -> Coupon | None:
        with self._lock:
            if coupon.code in self.coupons:
                return None
            created = coupon.model_copy(update={"id": self._next_id("coupon")})
            self.coupons[coupon.code] = created
            return created

    def insert_many(self, coupons: list[Coupon]) -> list[Coupon] | None:
        with self._lock:
            if any(c.code in self.coupons for c in coupons):
                return None
            return [self.insert(c) for c in coupons]  # type: ignore[misc]

    def list_all(self) -> list[Coupon]:
        return list(self.coupons.values())

    def set_active(self, coupon_id: str, is_active: bool) -> Coupon | None:
        with self._lock:
            for code, coupon in self.coupons.items():
                if coupon.id == coupon_id:
                    updated = coupon.model_copy(update={"is_active": is_active})
                    self.coupons[code] = updated
                    return updated
            return None


class FakeCouponAttemptRepository(_Store):
    def __init__(self) -> None:
        super().__init__()
        self.attempts: list[CouponAttempt] = []
        self.fail_on_create = False

    def create(self, attempt: CouponAttempt, session=None) -> CouponAttempt:
        if self.fail_on_create:
            raise RuntimeError("coupon_attempts collection unavailable")
        with self._lock:
            created = attempt.model_copy(update={"id": self._next_id("attempt")})
            self.attempts.append(created)

        def undo() -> None:
            with self._lock:
                self.attempts = [a for a in self.attempts if a.id != created.id]

        self._on_rollback(undo)
        return created

    def count_failures_since(self, user_id: str, since: datetime) -> int:
        with self._lock:
            return sum(
                1
                for a in self.attempts
                if a.user_id == user_id and not a.success and a.created_at >= since
            )


# -------- Study store --------


class FakeUploadedFileRepository:
    def __init__(self) -> None:
        self.files: list[UploadedFile] = []
        self._ids = itertools.count(1)

    def create(self, file: UploadedFile) -> UploadedFile:
        created = file.model_copy(update={"id": f"file-{next(self._ids)}"})
        self.files.append(created)
        return created

    def find_for_user(self, file_id: str, user_id: str) -> UploadedFile | None:
        for f in self.files:
            if f.id == file_id and f.user_id == user_id:
                return f
        return None

    def list_by_user(self, user_id: str) -> list[UploadedFile]:
        return [f for f in reversed(self.files) if f.user_id == user_id]

    def delete_for_user(self, file_id: str, user_id: str) -> bool:
        target = self.find_for_user(file_id, user_id)
        if target is None:
            return False
        self.files.remove(target)
        return True


class FakeSummaryRepository:
    def __init__(self) -> None:
        self.summaries: list[Summary] = []
        self._ids = itertools.count(1)
        self.fail_on_create = False

    def create(self, summary: Summary) -> Summary:
        if self.fail_on_create:
            raise RuntimeError("summaries collection unavailable")
        created = summary.model_copy(update={"id": f"summary-{next(self._ids)}"})
        self.summaries.append(created)
        return created

    def find_for_user(self, summary_id: str, user_id: str) -> Summary | None:
        for s in self.summaries:
            if s.id == summary_id and s.user_id == user_id:
                return s
        return None

    def list_by_user(self, user_id: str) -> list[Summary]:
        return [s for s in reversed(self.summaries) if s.user_id == user_id]

    def delete_for_user(self, summary_id: str, user_id: str) -> bool:
        target = self.find_for_user(summary_id, user_id)
        if target is None:
            return False
        self.summaries.remove(target)
        return True

    def update_for_user(
        self, summary_id: str, user_id: str, changes: dict[str, Any]
    ) -> Summary | None:
        target = self.find_for_user(summary_id, user_id)
        if target is None:
            return None
        updated = target.model_copy(update=changes)
        self.summaries[self.summaries.index(target)] = updated
        return updated


class FakeQuizRepository:
    def __init__(self) -> None:
        self.quizzes: list[Quiz] = []
        self._ids = itertools.count(1)
        self.attempts: list[QuizAttempt] = []
        self._attempt_ids = itertools.count(1)
        self.fail_on_create = False

    def create(self, quiz: Quiz) -> Quiz:
        if self.fail_on_create:
            raise RuntimeError("quizzes collection unavailable")
        created = quiz.model_copy(update={"id": f"quiz-{next(self._ids)}"})
        self.quizzes.append(created)
        return created

    def find_for_user(self, quiz_id: str, user_id: str) -> Quiz | None:
        for q in self.quizzes:
            if q.id == quiz_id and q.user_id == user_id:
                return q
        return None

    def list_by_user(self, user_id: str) -> list[Quiz]:
        return [q for q in reversed(self.quizzes) if q.user_id == user_id]

    def create_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        created = attempt.model_copy(update={"id": f"attempt-{next(self._attempt_ids)}"})
        self.attempts.append(created)
        return created

    def delete_for_user(self, quiz_id: str, user_id: str) -> bool:
        target = self.find_for_user(quiz_id, user_id)
        if target is None:
            return False
        self.quizzes.remove(target)
        self.attempts = [
            a for a in self.attempts if not (a.quiz_id == quiz_id and a.user_id == user_id)
        ]
        return True


# -------- Admin --------


class FakeAdminRepository:
    def __init__(self, admin_ids: set[str] | None = None) -> None:
        self.admin_ids = set(admin_ids or ())

    def is_admin(self, user_id: str) -> bool:
        return user_id in self.admin_ids


class FakeUserStatusRepository:
    def __init__(self) -> None:
        self.statuses: dict[str, UserStatus] = {}

    def is_banned(self, user_id: str) -> bool:
        status = self.statuses.get(user_id)
        return status is not None and status.is_banned

    def set_banned(
        self, user_id: str, is_banned: bool, reason: str | None, updated_by: str
    ) -> UserStatus:
        now = utc_now()
        previous = self.statuses.get(user_id)
        status = UserStatus(
            id=f"status-{user_id}",
            user_id=user_id,
            is_banned=is_banned,
            reason=reason,
            updated_by=updated_by,
            created_at=previous.created_at if previous else now,
            updated_at=now,
        )
        self.statuses[user_id] = status
        return status

    def find_many(self, user_ids: list[str]) -> dict[str, UserStatus]:
        return {uid: self.statuses[uid] for uid in user_ids if uid in self.statuses}


class FakeActivityLogRepository:
    def __init__(self) -> None:
        self.logs: list[ActivityLog] = []

    def create(self, log: ActivityLog) -> ActivityLog:
        created = log.model_copy(update={"id": f"log-{len(self.logs) + 1}"})
        self.logs.append(created)
        return created


# -------- Generation engine --------


class FakeGenerationEngine:
    """complete 호출을 기록하고 미리 지정한 결과를 돌려주거나 예외를 던진다."""

    def __init__(self, result: Any = None, error: BaseException | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[dict[str, Any]] = []
        self.block_forever = False

    async def complete(
        self,
        instruction: str,
        prompt: str,
        document: DocumentHandle,
        *,
        temperature: float,
        output_schema: Any = None,
    ) -> Any:
        self.calls.append(
            {
                "instruction": instruction,
                "prompt": prompt,
                "document": document,
                "temperature": temperature,
                "output_schema": output_schema,
            }
        )
        if self.block_forever:
            await asyncio.sleep(3600)
        if self.error is not None:
            raise self.error
        return self.result


# -------- Fixture builders --------


@dataclass
class LedgerFixture:
    balances: FakeCreditBalanceRepository
    transactions: FakeCreditTransactionRepository
    settings: FakeCreditSettingRepository
    runner: FakeTransactionRunner
    service: CreditService


def build_ledger(pricing: dict[str, int] | None = None, default_cost: int = 10) -> LedgerFixture:
    balances = FakeCreditBalanceRepository()
    transactions = FakeCreditTransactionRepository()
    settings = FakeCreditSettingRepository(
        pricing if pricing is not None else {"summary": 10, "quiz": 10}
    )
    runner = FakeTransactionRunner()
    service = CreditService(
        balance_repo=balances,
        transaction_repo=transactions,
        setting_repo=settings,
        tx_runner=runner,
        default_cost=default_cost,
    )
    return LedgerFixture(balances, transactions, settings, runner, service)


@dataclass
class CouponFixture:
    ledger: LedgerFixture
    coupons: FakeCouponRepository
    attempts: FakeCouponAttemptRepository
    service: CouponService
    sleeps: list[float] = field(default_factory=list)


def build_coupons(config: Any = None) -> CouponFixture:
    ledger = build_ledger()
    coupons = FakeCouponRepository()
    attempts = FakeCouponAttemptRepository()
    runner = FakeTransactionRunner()
    sleeps: list[float] = []

    async def _record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    service = CouponService(
        coupon_repo=coupons,
        attempt_repo=attempts,
        credit_service=ledger.service,
        tx_runner=runner,
        config=config,
        sleep=_record_sleep,
    )
    return CouponFixture(ledger, coupons, attempts, service, sleeps)


@dataclass
class StudyFixture:
    files: FakeUploadedFileRepository
    summaries: FakeSummaryRepository
    quizzes: FakeQuizRepository
    service: StudyService


def build_study() -> StudyFixture:
    files = FakeUploadedFileRepository()
    summaries = FakeSummaryRepository()
    quizzes = FakeQuizRepository()
    service = StudyService(file_repo=files, summary_repo=summaries, quiz_repo=quizzes)
    return StudyFixture(files, summaries, quizzes, service)


@dataclass
class AdminFixture:
    ledger: LedgerFixture
    coupons: FakeCouponRepository
    admins: FakeAdminRepository
    activity: FakeActivityLogRepository
    statuses: FakeUserStatusRepository
    service: AdminService


def build_admin(admin_ids: set[str] | None = None) -> AdminFixture:
    ledger = build_ledger()
    coupons = FakeCouponRepository()
    admins = FakeAdminRepository(admin_ids if admin_ids is not None else {"admin-1"})
    activity = FakeActivityLogRepository()
    statuses = FakeUserStatusRepository()
    service = AdminService(
        admin_repo=admins,
        activity_repo=activity,
        coupon_repo=coupons,
        credit_service=ledger.service,
        user_status_repo=statuses,
    )
    return AdminFixture(ledger, coupons, admins, activity, statuses, service)
