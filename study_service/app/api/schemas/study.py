from __future__ import annotations

from pydantic import BaseModel, Field

from common.types.datetime import UtcDateTime

from ...models.study import QuizQuestion


class RegisterFileRequest(BaseModel):
    file_name: str = Field(min_length=1)
    file_url: str = Field(min_length=1)
    file_size: int | None = Field(default=None, ge=0)
    mime_type: str | None = None


class UploadedFileResponse(BaseModel):
    id: str | None
    file_name: str
    file_url: str
    file_size: int | None
    mime_type: str
    created_at: UtcDateTime


class SummaryResponse(BaseModel):
    id: str | None
    file_id: str | None
    file_name: str
    unit: str | None
    content: str
    created_at: UtcDateTime
    updated_at: UtcDateTime


class UpdateSummaryRequest(BaseModel):
    content: str | None = None
    file_name: str | None = None


class QuizListItem(BaseModel):
    id: str | None
    file_id: str | None
    file_name: str
    unit: str | None
    question_count: int
    created_at: UtcDateTime


class QuizResponse(BaseModel):
    id: str | None
    file_id: str | None
    file_name: str
    unit: str | None
    questions: list[QuizQuestion]
    created_at: UtcDateTime


class QuizAttemptRequest(BaseModel):
    score: int = Field(ge=0)
    total_questions: int = Field(gt=0)


class QuizAttemptResponse(BaseModel):
    id: str | None
    quiz_id: str
    score: int
    total_questions: int
    completed_at: UtcDateTime
