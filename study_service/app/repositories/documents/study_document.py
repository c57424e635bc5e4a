"""학습 자료 MongoDB 도큐먼트 (uploaded_files, summaries, quizzes, quiz_attempts)."""

from __future__ import annotations

from common.mongo.types import (
    BaseDocument,
    MongoDateTime,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.study import Quiz, QuizAttempt, QuizQuestion, Summary, UploadedFile


class UploadedFileDocument(BaseDocument):
    user_id: str
    file_name: str
    file_url: str
    file_size: int | None = None
    mime_type: str

    @classmethod
    def from_domain(cls, file: UploadedFile) -> "UploadedFileDocument":
        return cls.model_validate(build_document_data_from_domain(file))

    def to_domain(self) -> UploadedFile:
        return UploadedFile(
            id=from_object_id(self.id),
            user_id=self.user_id,
            file_name=self.file_name,
            file_url=self.file_url,
            file_size=self.file_size,
            mime_type=self.mime_type,
            created_at=self.created_at,
        )


class SummaryDocument(BaseDocument):
    user_id: str
    file_id: str | None = None
    file_name: str
    unit: str | None = None
    content: str
    updated_at: MongoDateTime

    @classmethod
    def from_domain(cls, summary: Summary) -> "SummaryDocument":
        return cls.model_validate(build_document_data_from_domain(summary))

    def to_domain(self) -> Summary:
        return Summary(
            id=from_object_id(self.id),
            user_id=self.user_id,
            file_id=self.file_id,
            file_name=self.file_name,
            unit=self.unit,
            content=self.content,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class QuizDocument(BaseDocument):
    """문항은 출제 순서대로 임베드한다."""

    user_id: str
    file_id: str | None = None
    file_name: str
    unit: str | None = None
    questions: list[dict]

    @classmethod
    def from_domain(cls, quiz: Quiz) -> "QuizDocument":
        return cls.model_validate(build_document_data_from_domain(quiz))

    def to_domain(self) -> Quiz:
        return Quiz(
            id=from_object_id(self.id),
            user_id=self.user_id,
            file_id=self.file_id,
            file_name=self.file_name,
            unit=self.unit,
            questions=[QuizQuestion.model_validate(q) for q in self.questions],
            created_at=self.created_at,
        )


class QuizAttemptDocument(BaseDocument):
    user_id: str
    quiz_id: str
    score: int
    total_questions: int
    completed_at: MongoDateTime

    @classmethod
    def from_domain(cls, attempt: QuizAttempt) -> "QuizAttemptDocument":
        data = build_document_data_from_domain(attempt)
        data.setdefault("created_at", attempt.completed_at)
        return cls.model_validate(data)

    def to_domain(self) -> QuizAttempt:
        return QuizAttempt(
            id=from_object_id(self.id),
            user_id=self.user_id,
            quiz_id=self.quiz_id,
            score=self.score,
            total_questions=self.total_questions,
            completed_at=self.completed_at,
        )
