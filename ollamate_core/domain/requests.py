"""展示端（surface）请求词汇表。

surface 以 {"command": ..., ...} 的形式发送请求，这里在边界处用
pydantic 的判别联合（discriminated union）校验为固定的请求类型，
未知命令或缺失字段直接抛出 ValidationError，不会进入核心逻辑。
"""

from typing import Annotated, Any, Literal, Mapping, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .exceptions import ValidationError


class _Request(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class GetModel(_Request):
    command: Literal["getModel"] = "getModel"


class SubmitTurn(_Request):
    command: Literal["submitTurn"] = "submitTurn"
    text: str = Field(min_length=1)


class StartSession(_Request):
    command: Literal["startSession"] = "startSession"


class LoadSession(_Request):
    command: Literal["loadSession"] = "loadSession"
    session_id: str = Field(min_length=1, alias="sessionId")


class DeleteSession(_Request):
    command: Literal["deleteSession"] = "deleteSession"
    session_id: str = Field(min_length=1, alias="sessionId")


class ClearDisplay(_Request):
    command: Literal["clearDisplay"] = "clearDisplay"


SurfaceRequest = Annotated[
    Union[GetModel, SubmitTurn, StartSession, LoadSession, DeleteSession, ClearDisplay],
    Field(discriminator="command"),
]

_adapter: TypeAdapter = TypeAdapter(SurfaceRequest)


def parse_request(payload: Mapping[str, Any]) -> SurfaceRequest:
    """把 surface 发来的原始消息校验为请求对象。"""
    try:
        return _adapter.validate_python(dict(payload))
    except pydantic.ValidationError as e:
        raise ValidationError(
            code="INVALID_REQUEST",
            message=f"Invalid surface request: {e.errors(include_url=False)}",
            command=payload.get("command") if isinstance(payload, Mapping) else None,
        )
