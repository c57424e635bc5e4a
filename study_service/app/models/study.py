"""학습 자료(업로드 파일, 요약, 퀴즈) 도메인 모델."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


DEFAULT_MIME_TYPE = "application/pdf"
QUIZ_QUESTION_COUNT = 10
QUIZ_OPTION_COUNT = 3


class UploadedFile(BaseModel):
    id: str | None = None
    user_id: str
    file_name: str
    file_url: str
    file_size: int | None = None
    mime_type: str = DEFAULT_MIME_TYPE
    created_at: datetime


class DocumentHandle(BaseModel):
    """생성 엔진에 넘길 문서 핸들 (URL 또는 원본 바이트 + MIME 타입)."""

    url: str | None = None
    data: bytes | None = None
    mime_type: str = DEFAULT_MIME_TYPE
    file_name: str | None = None


class QuizQuestion(BaseModel):
    """퀴즈 문항. 보기는 정확히 3개, 정답 인덱스는 0~2."""

    question: str = Field(description="Question text in the document's primary language")
    options: list[str] = Field(
        min_length=QUIZ_OPTION_COUNT,
        max_length=QUIZ_OPTION_COUNT,
        description="Exactly 3 distinct options in the document's primary language",
    )
    correct_answer: int = Field(
        ge=0,
        le=QUIZ_OPTION_COUNT - 1,
        description="Zero-based index of the correct option (0, 1, or 2)",
    )
    justification: str = Field(
        description="Explanation suitable for a student, in the document's primary language"
    )
    example: str = Field(
        description="A concrete real-world example, in the document's primary language"
    )


class GeneratedQuiz(BaseModel):
    """생성 엔진의 퀴즈 구조화 출력. 정확히 10문항이어야 한다."""

    questions: list[QuizQuestion] = Field(
        min_length=QUIZ_QUESTION_COUNT,
        max_length=QUIZ_QUESTION_COUNT,
        description="Exactly 10 multiple-choice questions",
    )

    @field_validator("questions")
    @classmethod
    def _options_must_be_distinct(cls, value: list[QuizQuestion]) -> list[QuizQuestion]:
        for index, item in enumerate(value):
            normalized = {option.strip() for option in item.options}
            if len(normalized) != QUIZ_OPTION_COUNT:
                raise ValueError(f"question {index} has duplicated options")
        return value


class Summary(BaseModel):
    id: str | None = None
    user_id: str
    file_id: str | None = None
    file_name: str
    unit: str | None = None
    content: str
    created_at: datetime
    updated_at: datetime


class Quiz(BaseModel):
    id: str | None = None
    user_id: str
    file_id: str | None = None
    file_name: str
    unit: str | None = None
    questions: list[QuizQuestion]  # 출제 순서 유지
    created_at: datetime


class QuizAttempt(BaseModel):
    id: str | None = None
    user_id: str
    quiz_id: str
    score: int
    total_questions: int
    completed_at: datetime


class SummaryGeneration(BaseModel):
    """요약 생성 결과. 저장에 실패하면 summary_id 가 None 이고 error 가 채워진다."""

    summary_id: str | None = None
    text: str
    error: str | None = None


class QuizGeneration(BaseModel):
    quiz_id: str | None = None
    questions: list[QuizQuestion]
    error: str | None = None
