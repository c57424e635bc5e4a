from __future__ import annotations

import threading

import pytest

from study_service.app.exceptions import (
    InsufficientCredits,
    InvalidRequest,
    NotFound,
    NotRefundable,
)
from study_service.app.models.credit import TransactionType
from study_service.app.models.principal import Principal
from study_service.tests.fakes import build_ledger


USER = Principal(user_id="user-001")


def _assert_invariant(fixture, user_id: str = USER.user_id) -> None:
    record = fixture.balances.records[user_id]
    assert record.balance == record.total_earned - record.total_spent


def test_get_balance_returns_none_without_record() -> None:
    fixture = build_ledger()

    assert fixture.service.get_balance(USER) is None


def test_get_cost_falls_back_to_default_for_unknown_key() -> None:
    fixture = build_ledger(pricing={"summary": 7}, default_cost=10)

    assert fixture.service.get_cost("summary") == 7
    assert fixture.service.get_cost("mindmap") == 10


def test_get_cost_falls_back_to_default_when_lookup_raises() -> None:
    fixture = build_ledger(pricing={"summary": 7})
    fixture.settings.raise_on_get = True

    assert fixture.service.get_cost("summary") == 10


def test_has_enough_credits_without_record_is_insufficient() -> None:
    fixture = build_ledger(pricing={"quiz": 10})

    check = fixture.service.has_enough_credits(USER, "quiz")

    assert check.sufficient is False
    assert check.balance == 0
    assert check.cost == 10


def test_has_enough_credits_compares_balance_with_cost() -> None:
    fixture = build_ledger(pricing={"quiz": 10})
    fixture.balances.seed(USER.user_id, 10)

    check = fixture.service.has_enough_credits(USER, "quiz")

    assert check.sufficient is True
    assert check.balance == 10


def test_deduct_records_negative_transaction_and_updates_totals() -> None:
    fixture = build_ledger(pricing={"quiz": 10})
    fixture.balances.seed(USER.user_id, 50)

    tx = fixture.service.deduct(USER, "quiz", reference_id="file-1")

    record = fixture.balances.records[USER.user_id]
    assert record.balance == 40
    assert record.total_spent == 10
    assert tx.amount == -10
    assert tx.action_type == "quiz"
    assert tx.reference_id == "file-1"
    assert fixture.transactions.for_user(USER.user_id) == [tx]
    _assert_invariant(fixture)


def test_deduct_with_insufficient_balance_leaves_state_untouched() -> None:
    fixture = build_ledger(pricing={"summary": 10})
    fixture.balances.seed(USER.user_id, 5)

    with pytest.raises(InsufficientCredits) as exc_info:
        fixture.service.deduct(USER, "summary")

    assert exc_info.value.balance == 5
    assert exc_info.value.cost == 10
    assert fixture.balances.records[USER.user_id].balance == 5
    assert fixture.transactions.items == []


def test_deduct_without_record_reports_zero_balance() -> None:
    fixture = build_ledger(pricing={"summary": 10})

    with pytest.raises(InsufficientCredits) as exc_info:
        fixture.service.deduct(USER, "summary")

    assert exc_info.value.balance == 0
    assert USER.user_id not in fixture.balances.records


def test_deduct_rolls_back_debit_when_transaction_log_fails() -> None:
    fixture = build_ledger(pricing={"quiz": 10})
    fixture.balances.seed(USER.user_id, 50)
    fixture.transactions.fail_on_create = True

    with pytest.raises(RuntimeError):
        fixture.service.deduct(USER, "quiz")

    record = fixture.balances.records[USER.user_id]
    assert record.balance == 50
    assert record.total_spent == 0
    assert fixture.transactions.items == []
    _assert_invariant(fixture)


def test_units_of_work_run_side_by_side() -> None:
    # 러너가 작업 단위를 직렬화하면 두 callback 이 barrier 에서 만나지 못한다.
    fixture = build_ledger()
    barrier = threading.Barrier(2, timeout=2)
    met: list[int] = []

    def worker() -> None:
        met.append(fixture.runner.run(lambda session: barrier.wait()))

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(met) == [0, 1]
    assert fixture.runner.runs == 2


def test_concurrent_deducts_against_exact_balance_only_one_succeeds() -> None:
    fixture = build_ledger(pricing={"quiz": 10})
    fixture.balances.seed(USER.user_id, 10)

    successes: list[str] = []
    failures: list[Exception] = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        try:
            tx = fixture.service.deduct(USER, "quiz")
            successes.append(tx.id or "")
        except InsufficientCredits as exc:
            failures.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(successes) == 1
    assert len(failures) == 7
    assert fixture.balances.records[USER.user_id].balance == 0
    assert len(fixture.transactions.for_user(USER.user_id)) == 1
    _assert_invariant(fixture)


def test_refund_restores_balance_and_second_refund_fails() -> None:
    fixture = build_ledger(pricing={"summary": 10})
    fixture.balances.seed(USER.user_id, 30)
    tx = fixture.service.deduct(USER, "summary")

    assert fixture.service.refund(USER, tx.id) is True

    record = fixture.balances.records[USER.user_id]
    assert record.balance == 30
    assert record.total_spent == 0
    _assert_invariant(fixture)

    refunds = [
        t for t in fixture.transactions.items if t.action_type == TransactionType.REFUND.value
    ]
    assert len(refunds) == 1
    assert refunds[0].amount == 10
    assert refunds[0].reference_id == tx.id

    with pytest.raises(NotRefundable):
        fixture.service.refund(USER, tx.id)
    assert fixture.balances.records[USER.user_id].balance == 30


def test_concurrent_refunds_of_same_transaction_apply_once() -> None:
    fixture = build_ledger(pricing={"summary": 10})
    fixture.balances.seed(USER.user_id, 10)
    tx = fixture.service.deduct(USER, "summary")

    results: list[bool] = []
    rejected: list[Exception] = []

    def worker() -> None:
        try:
            results.append(fixture.service.refund(USER, tx.id))
        except NotRefundable as exc:
            rejected.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results == [True]
    assert len(rejected) == 4
    assert fixture.balances.records[USER.user_id].balance == 10


def test_refund_of_positive_transaction_is_not_refundable() -> None:
    fixture = build_ledger()
    fixture.service.add(USER.user_id, 20, TransactionType.COUPON.value)
    credit_tx = fixture.transactions.items[0]

    with pytest.raises(NotRefundable):
        fixture.service.refund(USER, credit_tx.id)


def test_refund_of_other_users_transaction_is_not_found() -> None:
    fixture = build_ledger(pricing={"summary": 10})
    fixture.balances.seed(USER.user_id, 10)
    tx = fixture.service.deduct(USER, "summary")

    with pytest.raises(NotFound):
        fixture.service.refund(Principal(user_id="intruder"), tx.id)
    with pytest.raises(NotFound):
        fixture.service.refund(USER, "tx-does-not-exist")


def test_refund_rolls_back_when_balance_update_fails() -> None:
    fixture = build_ledger(pricing={"summary": 10})
    fixture.balances.seed(USER.user_id, 10)
    tx = fixture.service.deduct(USER, "summary")
    fixture.balances.fail_on_restore = True

    with pytest.raises(RuntimeError):
        fixture.service.refund(USER, tx.id)

    fixture.balances.fail_on_restore = False
    # 실패한 환불 기록이 남지 않았으므로 다시 환불할 수 있다.
    assert fixture.service.refund(USER, tx.id) is True
    assert fixture.balances.records[USER.user_id].balance == 10


def test_add_creates_record_lazily() -> None:
    fixture = build_ledger()

    new_balance = fixture.service.add(USER.user_id, 50, TransactionType.ADMIN_GIFT.value, "gift")

    record = fixture.balances.records[USER.user_id]
    assert new_balance == 50
    assert record.total_earned == 50
    assert record.total_spent == 0
    assert fixture.transactions.items[0].amount == 50


def test_add_rejects_non_positive_amount() -> None:
    fixture = build_ledger()

    with pytest.raises(InvalidRequest):
        fixture.service.add(USER.user_id, 0, TransactionType.ADMIN_GIFT.value)
    assert fixture.balances.records == {}


def test_set_balance_records_delta_and_keeps_invariant() -> None:
    fixture = build_ledger()
    fixture.balances.seed(USER.user_id, 30)

    assert fixture.service.set_balance(USER.user_id, 12) == 12
    assert fixture.service.set_balance(USER.user_id, 40) == 40

    record = fixture.balances.records[USER.user_id]
    assert record.balance == 40
    _assert_invariant(fixture)
    amounts = [t.amount for t in fixture.transactions.items]
    assert amounts == [-18, 28]
    assert all(t.action_type == TransactionType.ADMIN_SET.value for t in fixture.transactions.items)


def test_set_balance_without_change_records_nothing() -> None:
    fixture = build_ledger()
    fixture.balances.seed(USER.user_id, 30)

    assert fixture.service.set_balance(USER.user_id, 30) == 30
    assert fixture.service.set_balance("nobody", 0) == 0

    assert fixture.transactions.items == []
    assert "nobody" not in fixture.balances.records


def test_set_balance_creates_record_for_new_user() -> None:
    fixture = build_ledger()

    assert fixture.service.set_balance("new-user", 25) == 25

    record = fixture.balances.records["new-user"]
    assert record.total_earned == 25
    _assert_invariant(fixture, "new-user")


def test_get_history_is_newest_first() -> None:
    fixture = build_ledger(pricing={"summary": 10})
    fixture.service.add(USER.user_id, 50, TransactionType.COUPON.value)
    fixture.service.deduct(USER, "summary")

    items, total = fixture.service.get_history(USER, page=1, page_size=20)

    assert total == 2
    assert [t.amount for t in items] == [-10, 50]
