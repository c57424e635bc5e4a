from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated

from common.types.datetime import ensure_utc_datetime


def to_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if value is None:
        raise TypeError("cannot convert None to ObjectId")
    return ObjectId(str(value))


def try_object_id(value: Any) -> ObjectId | None:
    """클라이언트가 보낸 id 용. 형식이 잘못된 id 는 '없는 레코드' 로 취급하도록 None."""

    try:
        return to_object_id(value)
    except (InvalidId, TypeError):
        return None


def from_object_id(value: Optional[ObjectId]) -> Optional[str]:
    return None if value is None else str(value)


PyObjectId = Annotated[ObjectId, BeforeValidator(to_object_id)]
MongoDateTime = Annotated[datetime, BeforeValidator(ensure_utc_datetime)]


class BaseDocument(BaseModel):
    """컬렉션 도큐먼트 모델의 베이스.

    도메인 모델(str id)과 도큐먼트 모델(ObjectId _id)을 분리하고, 각 하위 클래스가
    from_domain / to_domain 으로 변환을 담당한다. 모르는 필드는 버린다.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True, populate_by_name=True, extra="ignore"
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    created_at: MongoDateTime

    def to_mongo_record(self) -> dict[str, Any]:
        """insert 용 dict. _id 가 없으면 키를 빼서 서버가 ObjectId 를 만들게 한다."""

        record = self.model_dump(by_alias=True)
        if record.get("_id") is None:
            record.pop("_id", None)
        return record


def build_document_data_from_domain(domain_model: BaseModel) -> dict[str, Any]:
    """도메인 모델 dump 에서 문자열 id 를 _id(ObjectId) 로 옮긴 dict 를 만든다."""

    data = domain_model.model_dump(by_alias=True)
    raw_id = data.pop("id", None)
    if raw_id is not None:
        data["_id"] = to_object_id(raw_id)
    return data
