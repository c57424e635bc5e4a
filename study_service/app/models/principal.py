from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Principal(BaseModel):
    """인증된 호출자.

    게이트웨이(Identity Provider)가 인증을 끝낸 뒤 전달하는 사용자 식별자다.
    서비스 레이어는 세션 상태를 직접 조회하지 않고 항상 이 값을 인자로 받는다.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    is_admin: bool = False
