from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from ..deps import get_optional_principal
from ..schemas.generations import (
    GenerationRequest,
    QuizGenerationResponse,
    SummaryGenerationResponse,
)
from ...models.principal import Principal
from ...services.generation_service import GenerationService, get_generation_service


router = APIRouter(prefix="/generations", tags=["generations"])


@router.post("/summary", summary="문서 요약 생성 (크레딧 차감)")
async def generate_summary(
    req: GenerationRequest,
    principal: Annotated[Principal | None, Depends(get_optional_principal)],
    service: Annotated[GenerationService, Depends(get_generation_service)],
) -> SummaryGenerationResponse:
    result = await service.generate_summary(
        principal, req.document_id, scope_hint=req.scope_hint, title=req.title
    )
    return SummaryGenerationResponse(
        summary_id=result.summary_id, text=result.text, error=result.error
    )


@router.post("/quiz", summary="문서 기반 퀴즈 생성 (크레딧 차감)")
async def generate_quiz(
    req: GenerationRequest,
    principal: Annotated[Principal | None, Depends(get_optional_principal)],
    service: Annotated[GenerationService, Depends(get_generation_service)],
) -> QuizGenerationResponse:
    result = await service.generate_quiz(
        principal, req.document_id, scope_hint=req.scope_hint, title=req.title
    )
    return QuizGenerationResponse(
        quiz_id=result.quiz_id, questions=result.questions, error=result.error
    )
