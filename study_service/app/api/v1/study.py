"""학습 자료(파일, 요약, 퀴즈) API 라우터."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from ..deps import get_principal
from ..schemas.common import OkResponse
from ..schemas.study import (
    QuizAttemptRequest,
    QuizAttemptResponse,
    QuizListItem,
    QuizResponse,
    RegisterFileRequest,
    SummaryResponse,
    UpdateSummaryRequest,
    UploadedFileResponse,
)
from ...models.principal import Principal
from ...models.study import Quiz, Summary, UploadedFile
from ...services.study_service import StudyService, get_study_service


files_router = APIRouter(prefix="/files", tags=["files"])
summaries_router = APIRouter(prefix="/summaries", tags=["summaries"])
quizzes_router = APIRouter(prefix="/quizzes", tags=["quizzes"])


def _file_response(file: UploadedFile) -> UploadedFileResponse:
    return UploadedFileResponse(
        id=file.id,
        file_name=file.file_name,
        file_url=file.file_url,
        file_size=file.file_size,
        mime_type=file.mime_type,
        created_at=file.created_at,
    )


def _summary_response(summary: Summary) -> SummaryResponse:
    return SummaryResponse(
        id=summary.id,
        file_id=summary.file_id,
        file_name=summary.file_name,
        unit=summary.unit,
        content=summary.content,
        created_at=summary.created_at,
        updated_at=summary.updated_at,
    )


def _quiz_response(quiz: Quiz) -> QuizResponse:
    return QuizResponse(
        id=quiz.id,
        file_id=quiz.file_id,
        file_name=quiz.file_name,
        unit=quiz.unit,
        questions=quiz.questions,
        created_at=quiz.created_at,
    )


# -------- Files --------


@files_router.post("", status_code=status.HTTP_201_CREATED, summary="업로드된 파일 등록")
def register_file(
    req: RegisterFileRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[StudyService, Depends(get_study_service)],
) -> UploadedFileResponse:
    file = service.register_file(
        principal,
        file_name=req.file_name,
        file_url=req.file_url,
        file_size=req.file_size,
        mime_type=req.mime_type,
    )
    return _file_response(file)


@files_router.get("", summary="내 파일 목록")
def list_files(
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[StudyService, Depends(get_study_service)],
) -> list[UploadedFileResponse]:
    return [_file_response(f) for f in service.list_files(principal)]


@files_router.delete("/{file_id}", summary="파일 기록 삭제")
def delete_file(
    file_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[StudyService, Depends(get_study_service)],
) -> OkResponse:
    service.delete_file(principal, file_id)
    return OkResponse()


# -------- Summaries --------


@summaries_router.get("", summary="내 요약 목록")
def list_summaries(
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[StudyService, Depends(get_study_service)],
) -> list[SummaryResponse]:
    return [_summary_response(s) for s in service.list_summaries(principal)]


@summaries_router.get("/{summary_id}", summary="요약 조회")
def get_summary(
    summary_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[StudyService, Depends(get_study_service)],
) -> SummaryResponse:
    return _summary_response(service.get_summary(principal, summary_id))


@summaries_router.patch("/{summary_id}", summary="요약 수정")
def update_summary(
    summary_id: str,
    req: UpdateSummaryRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[StudyService, Depends(get_study_service)],
) -> SummaryResponse:
    summary = service.update_summary(
        principal, summary_id, content=req.content, file_name=req.file_name
    )
    return _summary_response(summary)


@summaries_router.delete("/{summary_id}", summary="요약 삭제")
def delete_summary(
    summary_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[StudyService, Depends(get_study_service)],
) -> OkResponse:
    service.delete_summary(principal, summary_id)
    return OkResponse()


# -------- Quizzes --------


@quizzes_router.get("", summary="내 퀴즈 목록")
def list_quizzes(
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[StudyService, Depends(get_study_service)],
) -> list[QuizListItem]:
    return [
        QuizListItem(
            id=q.id,
            file_id=q.file_id,
            file_name=q.file_name,
            unit=q.unit,
            question_count=len(q.questions),
            created_at=q.created_at,
        )
        for q in service.list_quizzes(principal)
    ]


@quizzes_router.get("/{quiz_id}", summary="퀴즈 조회 (문항 포함)")
def get_quiz(
    quiz_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[StudyService, Depends(get_study_service)],
) -> QuizResponse:
    return _quiz_response(service.get_quiz(principal, quiz_id))


@quizzes_router.delete("/{quiz_id}", summary="퀴즈 삭제 (풀이 기록 포함)")
def delete_quiz(
    quiz_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[StudyService, Depends(get_study_service)],
) -> OkResponse:
    service.delete_quiz(principal, quiz_id)
    return OkResponse()


@quizzes_router.post(
    "/{quiz_id}/attempts", status_code=status.HTTP_201_CREATED, summary="퀴즈 풀이 결과 기록"
)
def record_quiz_attempt(
    quiz_id: str,
    req: QuizAttemptRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[StudyService, Depends(get_study_service)],
) -> QuizAttemptResponse:
    attempt = service.record_attempt(principal, quiz_id, req.score, req.total_questions)
    return QuizAttemptResponse(
        id=attempt.id,
        quiz_id=attempt.quiz_id,
        score=attempt.score,
        total_questions=attempt.total_questions,
        completed_at=attempt.completed_at,
    )
