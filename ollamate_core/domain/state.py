"""持久化键值存储协议。

HistoryStore 与 ModelStateStore 都只依赖这个最小接口：
- get(key, default): 读取键值，不存在时返回 default。
- set(key, value): 写入键值，调用返回即表示已完成持久化；失败时抛出 StorageError。

值必须是 JSON 兼容的数据结构。
"""

from typing import Any, Protocol


class StateStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...
