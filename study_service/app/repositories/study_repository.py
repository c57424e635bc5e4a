"""학습 자료 레포지토리 구현체.

모든 조회/삭제는 user_id 를 함께 조건으로 걸어 소유자만 접근할 수 있게 한다.
잘못된 형식의 ID 는 "없음"과 동일하게 취급한다.
"""

from __future__ import annotations

from typing import Any

from pymongo import ASCENDING, DESCENDING, IndexModel, ReturnDocument
from pymongo.database import Database

from common.mongo.types import try_object_id

from .documents.study_document import (
    QuizAttemptDocument,
    QuizDocument,
    SummaryDocument,
    UploadedFileDocument,
)
from .interfaces import (
    QuizRepositoryInterface,
    SummaryRepositoryInterface,
    UploadedFileRepositoryInterface,
)
from ..models.study import Quiz, QuizAttempt, Summary, UploadedFile


def _owner_index() -> IndexModel:
    return IndexModel(
        [("user_id", ASCENDING), ("created_at", DESCENDING)], name="idx_user_created"
    )


class UploadedFileRepository(UploadedFileRepositoryInterface):
    """uploaded_files 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["uploaded_files"]
        self._col.create_indexes([_owner_index()])

    def create(self, file: UploadedFile) -> UploadedFile:
        record = UploadedFileDocument.from_domain(file).to_mongo_record()
        result = self._col.insert_one(record)
        return file.model_copy(update={"id": str(result.inserted_id)})

    def find_for_user(self, file_id: str, user_id: str) -> UploadedFile | None:
        oid = try_object_id(file_id)
        if oid is None:
            return None
        doc = self._col.find_one({"_id": oid, "user_id": user_id})
        if not doc:
            return None
        return UploadedFileDocument.model_validate(doc).to_domain()

    def list_by_user(self, user_id: str) -> list[UploadedFile]:
        cursor = self._col.find({"user_id": user_id}, sort=[("created_at", -1)])
        return [UploadedFileDocument.model_validate(raw).to_domain() for raw in cursor]

    def delete_for_user(self, file_id: str, user_id: str) -> bool:
        oid = try_object_id(file_id)
        if oid is None:
            return False
        result = self._col.delete_one({"_id": oid, "user_id": user_id})
        return result.deleted_count == 1


class SummaryRepository(SummaryRepositoryInterface):
    """summaries 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["summaries"]
        self._col.create_indexes([_owner_index()])

    def create(self, summary: Summary) -> Summary:
        record = SummaryDocument.from_domain(summary).to_mongo_record()
        result = self._col.insert_one(record)
        return summary.model_copy(update={"id": str(result.inserted_id)})

    def find_for_user(self, summary_id: str, user_id: str) -> Summary | None:
        oid = try_object_id(summary_id)
        if oid is None:
            return None
        doc = self._col.find_one({"_id": oid, "user_id": user_id})
        if not doc:
            return None
        return SummaryDocument.model_validate(doc).to_domain()

    def list_by_user(self, user_id: str) -> list[Summary]:
        cursor = self._col.find({"user_id": user_id}, sort=[("created_at", -1)])
        return [SummaryDocument.model_validate(raw).to_domain() for raw in cursor]

    def delete_for_user(self, summary_id: str, user_id: str) -> bool:
        oid = try_object_id(summary_id)
        if oid is None:
            return False
        result = self._col.delete_one({"_id": oid, "user_id": user_id})
        return result.deleted_count == 1

    def update_for_user(
        self, summary_id: str, user_id: str, changes: dict[str, Any]
    ) -> Summary | None:
        oid = try_object_id(summary_id)
        if oid is None:
            return None
        doc = self._col.find_one_and_update(
            {"_id": oid, "user_id": user_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return SummaryDocument.model_validate(doc).to_domain()


class QuizRepository(QuizRepositoryInterface):
    """quizzes / quiz_attempts 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["quizzes"]
        self._attempts = database["quiz_attempts"]
        self._col.create_indexes([_owner_index()])
        self._attempts.create_indexes(
            [
                IndexModel(
                    [("quiz_id", ASCENDING), ("user_id", ASCENDING)],
                    name="idx_quiz_user",
                )
            ]
        )

    def create(self, quiz: Quiz) -> Quiz:
        record = QuizDocument.from_domain(quiz).to_mongo_record()
        result = self._col.insert_one(record)
        return quiz.model_copy(update={"id": str(result.inserted_id)})

    def find_for_user(self, quiz_id: str, user_id: str) -> Quiz | None:
        oid = try_object_id(quiz_id)
        if oid is None:
            return None
        doc = self._col.find_one({"_id": oid, "user_id": user_id})
        if not doc:
            return None
        return QuizDocument.model_validate(doc).to_domain()

    def list_by_user(self, user_id: str) -> list[Quiz]:
        cursor = self._col.find({"user_id": user_id}, sort=[("created_at", -1)])
        return [QuizDocument.model_validate(raw).to_domain() for raw in cursor]

    def create_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        record = QuizAttemptDocument.from_domain(attempt).to_mongo_record()
        result = self._attempts.insert_one(record)
        return attempt.model_copy(update={"id": str(result.inserted_id)})

    def delete_for_user(self, quiz_id: str, user_id: str) -> bool:
        """퀴즈와 그 풀이 기록을 함께 지운다."""
        oid = try_object_id(quiz_id)
        if oid is None:
            return False
        result = self._col.delete_one({"_id": oid, "user_id": user_id})
        if result.deleted_count != 1:
            return False
        self._attempts.delete_many({"quiz_id": quiz_id, "user_id": user_id})
        return True
