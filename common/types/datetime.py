"""UTC 시각 유틸.

원장, 쿠폰 만료, rate limit 윈도우 비교는 모두 timezone-aware UTC 값끼리 이뤄져야 한다.
pymongo 는 naive UTC 를 돌려주고 관리자 입력은 naive 일 수 있으므로 경계에서 정규화한다.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic.functional_serializers import PlainSerializer


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc_datetime(value: Any) -> Any:
    """datetime 값을 UTC 기준으로 정규화한다.

    - tzinfo 가 없으면 UTC 로 간주한다.
    - tzinfo 가 있으면 UTC 로 변환한다.
    - 문자열이면 ISO8601 로 파싱한다. datetime 이 아닌 값(None 등)은 그대로 돌려준다.
    """

    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, datetime):
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc_iso8601(value: datetime) -> str:
    return ensure_utc_datetime(value).isoformat()


# API 응답에서 항상 "+00:00" 오프셋이 붙은 ISO8601 문자열로 나간다.
UtcDateTime = Annotated[
    datetime,
    PlainSerializer(to_utc_iso8601, return_type=str, when_used="json"),
]
