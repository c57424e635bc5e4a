from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

import pytest

from study_service.app.exceptions import (
    EngineFailure,
    InsufficientCredits,
    NotFound,
    PersistenceFailure,
    Unauthenticated,
)
from study_service.app.models.credit import TransactionType
from study_service.app.models.principal import Principal
from study_service.app.models.study import GeneratedQuiz, QuizQuestion
from study_service.app.prompts import QUIZ_TEMPERATURE, SUMMARY_TEMPERATURE
from study_service.app.services.generation_service import GenerationService
from study_service.tests.fakes import (
    FakeGenerationEngine,
    LedgerFixture,
    StudyFixture,
    build_ledger,
    build_study,
)


USER = Principal(user_id="user-001")


def _quiz(count: int = 10) -> GeneratedQuiz:
    return GeneratedQuiz(
        questions=[
            QuizQuestion(
                question=f"질문 {i}",
                options=[f"보기 {i}-A", f"보기 {i}-B", f"보기 {i}-C"],
                correct_answer=i % 3,
                justification=f"해설 {i}",
                example=f"예시 {i}",
            )
            for i in range(count)
        ]
    )


@dataclass
class _Fixture:
    ledger: LedgerFixture
    study: StudyFixture
    engine: FakeGenerationEngine
    service: GenerationService
    document_id: str


def _build(balance: int | None = 50, result=None, error: Exception | None = None) -> _Fixture:
    ledger = build_ledger(pricing={"summary": 10, "quiz": 10})
    if balance is not None:
        ledger.balances.seed(USER.user_id, balance)
    study = build_study()
    file = study.service.register_file(USER, "lecture.pdf", "https://files.example/lecture.pdf")
    engine = FakeGenerationEngine(result=result, error=error)
    service = GenerationService(
        credit_service=ledger.service,
        study_service=study.service,
        engine=engine,
    )
    return _Fixture(ledger, study, engine, service, file.id or "")


def test_quiz_generation_deducts_and_persists() -> None:
    fixture = _build(balance=50, result=_quiz())

    result = asyncio.run(
        fixture.service.generate_quiz(USER, fixture.document_id, scope_hint="Unit 2")
    )

    assert result.error is None
    assert result.quiz_id == "quiz-1"
    assert [q.question for q in result.questions] == [f"질문 {i}" for i in range(10)]
    assert fixture.ledger.balances.records[USER.user_id].balance == 40

    txs = fixture.ledger.transactions.for_user(USER.user_id)
    assert [(t.amount, t.action_type) for t in txs] == [(-10, "quiz")]

    saved = fixture.study.quizzes.quizzes
    assert len(saved) == 1
    assert saved[0].unit == "Unit 2"
    assert saved[0].file_id == fixture.document_id
    assert [q.question for q in saved[0].questions] == [f"질문 {i}" for i in range(10)]

    call = fixture.engine.calls[0]
    assert call["temperature"] == QUIZ_TEMPERATURE
    assert call["output_schema"] is GeneratedQuiz
    assert "Unit 2" in call["prompt"]
    assert call["document"].url == "https://files.example/lecture.pdf"


def test_summary_generation_uses_document_name_as_default_title() -> None:
    fixture = _build(balance=10, result="### 📚 요약\n본문")

    result = asyncio.run(fixture.service.generate_summary(USER, fixture.document_id))

    assert result.summary_id == "summary-1"
    assert result.text.startswith("### 📚")
    assert fixture.study.summaries.summaries[0].file_name == "lecture.pdf"
    assert fixture.engine.calls[0]["temperature"] == SUMMARY_TEMPERATURE
    assert fixture.engine.calls[0]["output_schema"] is None
    assert fixture.ledger.balances.records[USER.user_id].balance == 0


def test_insufficient_credits_never_calls_engine() -> None:
    fixture = _build(balance=5, result="unused")

    with pytest.raises(InsufficientCredits) as exc_info:
        asyncio.run(fixture.service.generate_summary(USER, fixture.document_id))

    assert (exc_info.value.balance, exc_info.value.cost) == (5, 10)
    assert fixture.engine.calls == []
    assert fixture.ledger.transactions.items == []
    assert fixture.ledger.balances.records[USER.user_id].balance == 5


def test_unknown_document_costs_nothing() -> None:
    fixture = _build(balance=50, result="unused")

    with pytest.raises(NotFound):
        asyncio.run(fixture.service.generate_summary(USER, "file-404"))

    assert fixture.ledger.transactions.items == []
    assert fixture.ledger.balances.records[USER.user_id].balance == 50


def test_other_users_document_is_not_found() -> None:
    fixture = _build(balance=50, result="unused")
    intruder = Principal(user_id="intruder")
    fixture.ledger.balances.seed(intruder.user_id, 50)

    with pytest.raises(NotFound):
        asyncio.run(fixture.service.generate_summary(intruder, fixture.document_id))


def test_engine_failure_refunds_and_raises_engine_failure() -> None:
    fixture = _build(balance=50, error=RuntimeError("upstream 500"))

    with pytest.raises(EngineFailure):
        asyncio.run(fixture.service.generate_quiz(USER, fixture.document_id))

    record = fixture.ledger.balances.records[USER.user_id]
    assert record.balance == 50
    assert record.total_spent == 0
    txs = fixture.ledger.transactions.for_user(USER.user_id)
    assert [t.action_type for t in txs] == ["quiz", TransactionType.REFUND.value]
    assert txs[1].reference_id == txs[0].id
    assert fixture.study.quizzes.quizzes == []


def test_malformed_quiz_output_is_engine_failure() -> None:
    fixture = _build(balance=50, result={"questions": []})

    with pytest.raises(EngineFailure):
        asyncio.run(fixture.service.generate_quiz(USER, fixture.document_id))

    assert fixture.ledger.balances.records[USER.user_id].balance == 50


def test_refund_failure_is_not_surfaced() -> None:
    fixture = _build(balance=50, error=RuntimeError("upstream 500"))
    fixture.ledger.balances.fail_on_restore = True

    with pytest.raises(EngineFailure):
        asyncio.run(fixture.service.generate_summary(USER, fixture.document_id))


def test_cancellation_refunds_deducted_credits() -> None:
    fixture = _build(balance=50, result="unused")
    fixture.engine.block_forever = True

    async def scenario() -> None:
        task = asyncio.create_task(fixture.service.generate_summary(USER, fixture.document_id))
        while not fixture.engine.calls:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert fixture.ledger.balances.records[USER.user_id].balance == 50
    assert fixture.study.summaries.summaries == []


def _slow_refunds(fixture: _Fixture, seconds: float = 0.3) -> None:
    refund = fixture.ledger.service.refund

    def slow_refund(principal, transaction_id):
        time.sleep(seconds)
        return refund(principal, transaction_id)

    fixture.ledger.service.refund = slow_refund  # type: ignore[method-assign]


async def _longest_tick_gap(work) -> float:
    """work 를 실행하는 동안 10ms 간격 타이머의 최대 지연을 잰다."""
    gaps: list[float] = []
    done = asyncio.Event()

    async def ticker() -> None:
        last = time.perf_counter()
        while not done.is_set():
            await asyncio.sleep(0.01)
            now = time.perf_counter()
            gaps.append(now - last)
            last = now

    ticking = asyncio.create_task(ticker())
    try:
        await work()
    finally:
        done.set()
        await ticking
    return max(gaps)


def test_refund_after_engine_failure_keeps_event_loop_responsive() -> None:
    fixture = _build(balance=50, error=RuntimeError("upstream 500"))
    _slow_refunds(fixture)

    async def work() -> None:
        with pytest.raises(EngineFailure):
            await fixture.service.generate_summary(USER, fixture.document_id)

    longest = asyncio.run(_longest_tick_gap(work))

    assert longest < 0.15
    assert fixture.ledger.balances.records[USER.user_id].balance == 50


def test_refund_after_cancellation_keeps_event_loop_responsive() -> None:
    fixture = _build(balance=50, result="unused")
    fixture.engine.block_forever = True
    _slow_refunds(fixture)

    async def work() -> None:
        task = asyncio.create_task(fixture.service.generate_summary(USER, fixture.document_id))
        while not fixture.engine.calls:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    longest = asyncio.run(_longest_tick_gap(work))

    assert longest < 0.15
    assert fixture.ledger.balances.records[USER.user_id].balance == 50


def test_repeated_cancellation_still_completes_refund() -> None:
    fixture = _build(balance=50, result="unused")
    fixture.engine.block_forever = True
    _slow_refunds(fixture, seconds=0.2)

    async def scenario() -> None:
        task = asyncio.create_task(fixture.service.generate_summary(USER, fixture.document_id))
        while not fixture.engine.calls:
            await asyncio.sleep(0.01)
        task.cancel()
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        # 태스크는 먼저 끝나지만 환불은 워커 스레드에서 계속된다.
        while fixture.ledger.balances.records[USER.user_id].balance != 50:
            await asyncio.sleep(0.01)

    asyncio.run(asyncio.wait_for(scenario(), timeout=5))

    assert fixture.ledger.balances.records[USER.user_id].total_spent == 0


def test_persistence_failure_returns_content_without_refund() -> None:
    fixture = _build(balance=50, result="요약 본문")
    fixture.study.summaries.fail_on_create = True

    result = asyncio.run(fixture.service.generate_summary(USER, fixture.document_id))

    assert result.summary_id is None
    assert result.text == "요약 본문"
    assert result.error == PersistenceFailure.message
    assert fixture.ledger.balances.records[USER.user_id].balance == 40


def test_quiz_persistence_failure_returns_questions() -> None:
    fixture = _build(balance=50, result=_quiz())
    fixture.study.quizzes.fail_on_create = True

    result = asyncio.run(fixture.service.generate_quiz(USER, fixture.document_id))

    assert result.quiz_id is None
    assert len(result.questions) == 10
    assert result.error == PersistenceFailure.message


def test_generation_without_identity_is_unauthenticated() -> None:
    fixture = _build(balance=50, result="unused")

    with pytest.raises(Unauthenticated):
        asyncio.run(fixture.service.generate_summary(None, fixture.document_id))
