"""생성 오케스트레이터.

요청마다: 문서 확인 -> 잔액 확인 -> 차감 -> 생성 엔진 호출 -> 저장.
엔진이 실패하거나 요청이 취소되면 차감분을 환불한다. 저장 실패는 환불하지 않고
생성된 결과와 함께 오류를 돌려준다 (사용자는 이미 결과물을 받았다).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from fastapi import Depends

from ..exceptions import EngineFailure, InsufficientCredits, PersistenceFailure, Unauthenticated
from ..generator import GenerationEngine, get_generation_engine
from ..models.credit import CreditTransaction, TransactionType
from ..models.principal import Principal
from ..models.study import (
    GeneratedQuiz,
    QuizGeneration,
    SummaryGeneration,
)
from ..prompts import (
    QUIZ_SYSTEM_INSTRUCTION,
    QUIZ_TEMPERATURE,
    SUMMARY_SYSTEM_INSTRUCTION,
    SUMMARY_TEMPERATURE,
    build_quiz_prompt,
    build_summary_prompt,
)
from .credit_service import CreditService, get_credit_service
from .study_service import StudyService, get_study_service


logger = logging.getLogger(__name__)


class GenerationService:
    def __init__(
        self,
        credit_service: CreditService,
        study_service: StudyService,
        engine: GenerationEngine,
    ) -> None:
        self._credit = credit_service
        self._study = study_service
        self._engine = engine

    async def generate_summary(
        self,
        principal: Principal | None,
        document_id: str,
        scope_hint: str | None = None,
        title: str | None = None,
    ) -> SummaryGeneration:
        principal = self._require(principal)
        file, handle = await asyncio.to_thread(
            self._study.resolve_document, principal, document_id
        )

        text: str = await self._charge_and_generate(
            principal,
            TransactionType.SUMMARY.value,
            document_id,
            lambda: self._engine.complete(
                SUMMARY_SYSTEM_INSTRUCTION,
                build_summary_prompt(scope_hint),
                handle,
                temperature=SUMMARY_TEMPERATURE,
            ),
        )

        try:
            summary = await asyncio.to_thread(
                self._study.save_summary,
                principal,
                title or file.file_name,
                text,
                file.id,
                scope_hint,
            )
        except Exception:  # noqa: BLE001
            logger.exception("summary generated but auto-save failed", extra={"user_id": principal.user_id})
            return SummaryGeneration(text=text, error=PersistenceFailure.message)

        return SummaryGeneration(summary_id=summary.id, text=text)

    async def generate_quiz(
        self,
        principal: Principal | None,
        document_id: str,
        scope_hint: str | None = None,
        title: str | None = None,
    ) -> QuizGeneration:
        principal = self._require(principal)
        file, handle = await asyncio.to_thread(
            self._study.resolve_document, principal, document_id
        )

        generated: GeneratedQuiz = await self._charge_and_generate(
            principal,
            TransactionType.QUIZ.value,
            document_id,
            lambda: self._engine.complete(
                QUIZ_SYSTEM_INSTRUCTION,
                build_quiz_prompt(scope_hint),
                handle,
                temperature=QUIZ_TEMPERATURE,
                output_schema=GeneratedQuiz,
            ),
            validate=_validate_quiz,
        )

        try:
            quiz = await asyncio.to_thread(
                self._study.save_quiz,
                principal,
                title or file.file_name,
                generated.questions,
                file.id,
                scope_hint,
            )
        except Exception:  # noqa: BLE001
            logger.exception("quiz generated but auto-save failed", extra={"user_id": principal.user_id})
            return QuizGeneration(questions=generated.questions, error=PersistenceFailure.message)

        return QuizGeneration(quiz_id=quiz.id, questions=generated.questions)

    @staticmethod
    def _require(principal: Principal | None) -> Principal:
        if principal is None:
            raise Unauthenticated()
        return principal

    async def _charge_and_generate(
        self,
        principal: Principal,
        action_key: str,
        document_id: str,
        call_engine: Callable[[], Awaitable[Any]],
        validate: Callable[[Any], Any] | None = None,
    ) -> Any:
        check = await asyncio.to_thread(self._credit.has_enough_credits, principal, action_key)
        if not check.sufficient:
            raise InsufficientCredits(check.balance, check.cost)

        # 확인과 차감 사이에 잔액이 줄었다면 deduct 가 InsufficientCredits 를 던진다.
        tx = await asyncio.to_thread(
            self._credit.deduct, principal, action_key, document_id
        )

        try:
            output = await call_engine()
            if validate is not None:
                output = validate(output)
        except asyncio.CancelledError:
            logger.warning(
                "generation cancelled; refunding",
                extra={"user_id": principal.user_id, "action_key": action_key},
            )
            refund = asyncio.ensure_future(
                asyncio.to_thread(self._refund_quietly, principal, tx)
            )
            try:
                await asyncio.shield(refund)
            except asyncio.CancelledError:
                # 두 번째 취소가 와도 환불은 워커 스레드에서 끝까지 실행된다.
                pass
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "generation engine failed; refunding",
                extra={"user_id": principal.user_id, "action_key": action_key},
            )
            await asyncio.to_thread(self._refund_quietly, principal, tx)
            raise EngineFailure() from exc

        return output

    def _refund_quietly(self, principal: Principal, tx: CreditTransaction) -> None:
        # 워커 스레드에서 실행된다. 실패는 기록만 한다.
        if tx.id is None:
            logger.error("cannot refund a transaction without id", extra={"user_id": principal.user_id})
            return
        try:
            self._credit.refund(principal, tx.id)
        except Exception:  # noqa: BLE001
            logger.exception(
                "refund after generation failure failed",
                extra={"user_id": principal.user_id, "transaction_id": tx.id},
            )


def _validate_quiz(output: Any) -> GeneratedQuiz:
    if isinstance(output, GeneratedQuiz):
        return output
    return GeneratedQuiz.model_validate(output)


def get_generation_service(
    credit_service: CreditService = Depends(get_credit_service),
    study_service: StudyService = Depends(get_study_service),
    engine: GenerationEngine = Depends(get_generation_engine),
) -> GenerationService:
    """FastAPI DI용 GenerationService 팩토리."""

    return GenerationService(
        credit_service=credit_service,
        study_service=study_service,
        engine=engine,
    )
