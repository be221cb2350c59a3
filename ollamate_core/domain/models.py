"""会话与消息的数据模型。

- Turn: 会话中的一条消息（system/user/assistant），追加后不可变。
- Session: 一次持久化的对话（有序消息 + 元数据）。

持久化格式沿用 camelCase 键名（modelUsed），与已有的历史数据兼容。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, get_args


Role = Literal["user", "assistant", "system"]

ROLES = frozenset(get_args(Role))


@dataclass(frozen=True)
class Turn:
    """一条带角色的消息。"""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Turn":
        role = data.get("role")
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        return cls(role=role, content=str(data.get("content") or ""))


@dataclass
class Session:
    """一次完整的对话记录。

    - id: 由创建时间派生的不透明标识（毫秒时间戳字符串）。
    - name: 简短摘要，通常由首条用户消息生成。
    - timestamp: 排序键（毫秒），与 id 对应。
    - model_used: 该会话绑定的模型名。
    - messages: 有序消息列表。
    """

    id: str
    name: str
    timestamp: int
    model_used: str
    messages: List[Turn] = field(default_factory=list)

    def copy(self) -> "Session":
        return Session(
            id=self.id,
            name=self.name,
            timestamp=self.timestamp,
            model_used=self.model_used,
            messages=list(self.messages),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "timestamp": self.timestamp,
            "modelUsed": self.model_used,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Session":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            timestamp=int(data.get("timestamp") or 0),
            model_used=str(data.get("modelUsed") or ""),
            messages=[Turn.from_dict(m) for m in data.get("messages") or []],
        )
