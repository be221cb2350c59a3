import copy
import json
import os
from pathlib import Path
from typing import Any, Dict
from uuid import uuid4

from ollamate_core.config.settings import settings
from ollamate_core.domain.exceptions import StorageError
from ollamate_core.domain.state import StateStore


class JsonStateStore(StateStore):
    """基于单个 JSON 文件的键值存储。

    构造时整体读入内存，每次 set 都原子地重写整个文件（临时文件 + os.replace）。
    写入失败时抛出 StorageError，内存中的数据保持不变。
    """

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or settings.state_path).resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._data: Dict[str, Any] = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        updated = dict(self._data)
        updated[key] = copy.deepcopy(value)
        self._write(updated)
        self._data = updated

    def _read(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except Exception as e:
            raise StorageError(code="STORE_READ_ERROR", message=str(e), path=str(self._path))
        if not isinstance(data, dict):
            raise StorageError(
                code="STORE_READ_ERROR",
                message=f"State file {self._path} is not a JSON object",
                path=str(self._path),
            )
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        tmp_path = self._path.parent / f"{self._path.name}.{uuid4().hex}.tmp"
        try:
            tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except Exception as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(code="STORE_WRITE_ERROR", message=str(e), path=str(self._path))


class MemoryStateStore(StateStore):
    """纯内存实现，用于嵌入式场景与测试。"""

    def __init__(self, initial: Dict[str, Any] | None = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
