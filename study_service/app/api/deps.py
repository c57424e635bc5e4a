"""공통 FastAPI 의존성 (호출자 식별)."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header

from ..exceptions import Forbidden, Unauthenticated
from ..models.principal import Principal
from ..repositories.interfaces import UserStatusRepositoryInterface
from ..services.admin_service import (
    AdminService,
    get_admin_service,
    get_user_status_repository,
)


def get_optional_principal(
    statuses: Annotated[UserStatusRepositoryInterface, Depends(get_user_status_repository)],
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> Principal | None:
    """게이트웨이가 인증 후 넘겨주는 X-User-Id 헤더로 호출자를 만든다. 없으면 None.

    정지된 계정은 어떤 API 도 쓸 수 없다.
    """

    if x_user_id is None or not x_user_id.strip():
        return None
    user_id = x_user_id.strip()
    if statuses.is_banned(user_id):
        raise Forbidden("이용이 정지된 계정입니다.")
    return Principal(user_id=user_id)


def get_principal(
    principal: Annotated[Principal | None, Depends(get_optional_principal)],
) -> Principal:
    if principal is None:
        raise Unauthenticated()
    return principal


def get_admin_principal(
    principal: Annotated[Principal, Depends(get_principal)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> Principal:
    return admin_service.require_admin(principal)
