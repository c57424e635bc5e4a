"""학습 자료 서비스.

업로드 파일 등록/조회/삭제(문서 저장소), 요약/퀴즈 저장과 조회 및 정리, 퀴즈 풀이 기록을 담당한다.
모든 조회는 호출자 소유의 자료로 한정되며, 남의 자료는 존재하지 않는 것과 동일하게 취급한다.
"""

from __future__ import annotations

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database
from common.types.datetime import utc_now

from ..exceptions import InvalidRequest, NotFound
from ..models.principal import Principal
from ..models.study import (
    DEFAULT_MIME_TYPE,
    DocumentHandle,
    Quiz,
    QuizAttempt,
    QuizQuestion,
    Summary,
    UploadedFile,
)
from ..repositories.interfaces import (
    QuizRepositoryInterface,
    SummaryRepositoryInterface,
    UploadedFileRepositoryInterface,
)
from ..repositories.study_repository import (
    QuizRepository,
    SummaryRepository,
    UploadedFileRepository,
)


class StudyService:
    def __init__(
        self,
        file_repo: UploadedFileRepositoryInterface,
        summary_repo: SummaryRepositoryInterface,
        quiz_repo: QuizRepositoryInterface,
    ) -> None:
        self._file_repo = file_repo
        self._summary_repo = summary_repo
        self._quiz_repo = quiz_repo

    # --- 문서 저장소 ---

    def register_file(
        self,
        principal: Principal,
        file_name: str,
        file_url: str,
        file_size: int | None = None,
        mime_type: str | None = None,
    ) -> UploadedFile:
        if not file_name.strip() or not file_url.strip():
            raise InvalidRequest("파일 이름과 URL 은 비어 있을 수 없습니다.")
        return self._file_repo.create(
            UploadedFile(
                user_id=principal.user_id,
                file_name=file_name.strip(),
                file_url=file_url.strip(),
                file_size=file_size,
                mime_type=mime_type or DEFAULT_MIME_TYPE,
                created_at=utc_now(),
            )
        )

    def list_files(self, principal: Principal) -> list[UploadedFile]:
        return self._file_repo.list_by_user(principal.user_id)

    def delete_file(self, principal: Principal, file_id: str) -> None:
        """업로드 파일 기록만 지운다. 이미 만들어진 요약/퀴즈는 그대로 남는다."""
        if not self._file_repo.delete_for_user(file_id, principal.user_id):
            raise NotFound("파일을 찾을 수 없습니다.")

    def resolve_document(
        self, principal: Principal, document_id: str
    ) -> tuple[UploadedFile, DocumentHandle]:
        """문서 ID 를 생성 엔진이 읽을 수 있는 핸들로 변환한다."""
        file = self._file_repo.find_for_user(document_id, principal.user_id)
        if file is None:
            raise NotFound("문서를 찾을 수 없습니다.")
        handle = DocumentHandle(
            url=file.file_url,
            mime_type=file.mime_type,
            file_name=file.file_name,
        )
        return file, handle

    # --- 요약 ---

    def save_summary(
        self,
        principal: Principal,
        file_name: str,
        content: str,
        file_id: str | None = None,
        unit: str | None = None,
    ) -> Summary:
        now = utc_now()
        return self._summary_repo.create(
            Summary(
                user_id=principal.user_id,
                file_id=file_id,
                file_name=file_name,
                unit=unit,
                content=content,
                created_at=now,
                updated_at=now,
            )
        )

    def list_summaries(self, principal: Principal) -> list[Summary]:
        return self._summary_repo.list_by_user(principal.user_id)

    def get_summary(self, principal: Principal, summary_id: str) -> Summary:
        summary = self._summary_repo.find_for_user(summary_id, principal.user_id)
        if summary is None:
            raise NotFound("요약을 찾을 수 없습니다.")
        return summary

    def delete_summary(self, principal: Principal, summary_id: str) -> None:
        if not self._summary_repo.delete_for_user(summary_id, principal.user_id):
            raise NotFound("요약을 찾을 수 없습니다.")

    def update_summary(
        self,
        principal: Principal,
        summary_id: str,
        content: str | None = None,
        file_name: str | None = None,
    ) -> Summary:
        """요약 본문이나 제목을 고친다. 넘긴 필드만 바뀌고 updated_at 이 갱신된다."""
        changes: dict[str, object] = {}
        if content is not None:
            if not content.strip():
                raise InvalidRequest("요약 내용은 비어 있을 수 없습니다.")
            changes["content"] = content
        if file_name is not None:
            if not file_name.strip():
                raise InvalidRequest("제목은 비어 있을 수 없습니다.")
            changes["file_name"] = file_name.strip()
        if not changes:
            raise InvalidRequest("수정할 항목이 없습니다.")
        changes["updated_at"] = utc_now()

        summary = self._summary_repo.update_for_user(summary_id, principal.user_id, changes)
        if summary is None:
            raise NotFound("요약을 찾을 수 없습니다.")
        return summary

    # --- 퀴즈 ---

    def save_quiz(
        self,
        principal: Principal,
        file_name: str,
        questions: list[QuizQuestion],
        file_id: str | None = None,
        unit: str | None = None,
    ) -> Quiz:
        # 문항은 퀴즈 도큐먼트에 임베드되므로 퀴즈와 문항이 한 번의 insert 로 저장된다.
        return self._quiz_repo.create(
            Quiz(
                user_id=principal.user_id,
                file_id=file_id,
                file_name=file_name,
                unit=unit,
                questions=list(questions),
                created_at=utc_now(),
            )
        )

    def list_quizzes(self, principal: Principal) -> list[Quiz]:
        return self._quiz_repo.list_by_user(principal.user_id)

    def get_quiz(self, principal: Principal, quiz_id: str) -> Quiz:
        quiz = self._quiz_repo.find_for_user(quiz_id, principal.user_id)
        if quiz is None:
            raise NotFound("퀴즈를 찾을 수 없습니다.")
        return quiz

    def delete_quiz(self, principal: Principal, quiz_id: str) -> None:
        if not self._quiz_repo.delete_for_user(quiz_id, principal.user_id):
            raise NotFound("퀴즈를 찾을 수 없습니다.")

    def record_attempt(
        self, principal: Principal, quiz_id: str, score: int, total_questions: int
    ) -> QuizAttempt:
        """퀴즈 풀이 결과 기록. 0 <= score <= total_questions 이어야 한다."""
        quiz = self.get_quiz(principal, quiz_id)
        if total_questions != len(quiz.questions):
            raise InvalidRequest("문항 수가 퀴즈와 일치하지 않습니다.")
        if score < 0 or score > total_questions:
            raise InvalidRequest("점수는 0 이상 문항 수 이하여야 합니다.")
        return self._quiz_repo.create_attempt(
            QuizAttempt(
                user_id=principal.user_id,
                quiz_id=quiz_id,
                score=score,
                total_questions=total_questions,
                completed_at=utc_now(),
            )
        )


def get_study_service(db: Database = Depends(get_database)) -> StudyService:
    """FastAPI DI용 StudyService 팩토리."""

    return StudyService(
        file_repo=UploadedFileRepository(db),
        summary_repo=SummaryRepository(db),
        quiz_repo=QuizRepository(db),
    )
