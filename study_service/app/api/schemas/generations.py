from __future__ import annotations

from pydantic import BaseModel, Field

from ...models.study import QuizQuestion


class GenerationRequest(BaseModel):
    document_id: str = Field(min_length=1)
    scope_hint: str | None = Field(default=None, description="단원/챕터 지정. 비우면 문서 전체")
    title: str | None = None


class SummaryGenerationResponse(BaseModel):
    summary_id: str | None
    text: str
    error: str | None = None


class QuizGenerationResponse(BaseModel):
    quiz_id: str | None
    questions: list[QuizQuestion]
    error: str | None = None
