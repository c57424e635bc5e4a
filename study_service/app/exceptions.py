from __future__ import annotations

from .models.coupon import CouponRejectReason


class StudyServiceError(Exception):
    """study-service 도메인 예외의 베이스. code 는 API 응답의 detail.code 로 나간다."""

    code = "internal_error"
    message = "요청을 처리하는 중 오류가 발생했습니다."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class Unauthenticated(StudyServiceError):
    """게이트웨이가 사용자 식별자를 넘기지 않았다."""

    code = "unauthenticated"
    message = "로그인이 필요합니다."


class Forbidden(StudyServiceError):
    """인증은 되었지만 권한이 없다 (관리자 전용 기능, 정지된 사용자)."""

    code = "forbidden"
    message = "접근 권한이 없습니다."


class InsufficientCredits(StudyServiceError):
    """잔액이 요청한 기능의 비용보다 적다."""

    code = "insufficient_credits"

    def __init__(self, balance: int, cost: int) -> None:
        self.balance = balance
        self.cost = cost
        super().__init__(
            f"크레딧이 부족합니다. 현재 잔액: {balance}, 필요한 크레딧: {cost}"
        )


class NotFound(StudyServiceError):
    """대상이 없거나 호출자 소유가 아니다."""

    code = "not_found"
    message = "요청한 항목을 찾을 수 없습니다."


class NotRefundable(StudyServiceError):
    """차감이 아니거나 이미 환불된 트랜잭션에 대한 환불 요청."""

    code = "not_refundable"
    message = "환불할 수 없는 트랜잭션입니다."


class Conflict(StudyServiceError):
    """유니크 제약 위반 (예: 중복 쿠폰 코드)."""

    code = "conflict"
    message = "이미 존재하는 항목입니다."


class InvalidRequest(StudyServiceError):
    """형식은 맞지만 도메인 규칙에 어긋나는 입력."""

    code = "invalid_request"
    message = "요청 값이 올바르지 않습니다."


class CouponInvalid(StudyServiceError):
    """쿠폰 검증 실패. 사유는 내부 기록용이고 응답 메시지는 항상 같다."""

    code = "coupon_invalid"
    message = "유효하지 않은 쿠폰 코드입니다."

    def __init__(self, reason: CouponRejectReason) -> None:
        self.reason = reason
        if reason is CouponRejectReason.RATE_LIMITED:
            super().__init__("시도 횟수가 너무 많습니다. 잠시 후 다시 시도해 주세요.")
        else:
            super().__init__()


class EngineFailure(StudyServiceError):
    """생성 엔진이 실패했거나 출력 형식이 맞지 않는다."""

    code = "engine_failure"
    message = "생성 중 오류가 발생했습니다. 잠시 후 다시 시도해 주세요."


class PersistenceFailure(StudyServiceError):
    """생성은 끝났지만 저장소 쓰기에 실패했다."""

    code = "persistence_failure"
    message = "생성은 완료되었지만 자동 저장에 실패했습니다."
