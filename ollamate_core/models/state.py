"""模型选择状态。

ModelStateStore 是"当前选中模型"与"可用模型列表"的唯一数据源：

- 选中值若存在，必须属于可用列表；
- 可用列表变化导致选中值失效时，立即级联清空选中值（会单独发出一次 ModelChanged）；
- 所有变化通过订阅接口同步通知，订阅者在同一控制流中收到事件。

底层写入失败只记录日志，内存中的值在进程生命周期内保持权威。
"""

from typing import Callable, Iterable, List, Optional, Tuple

from ollamate_core.domain.events import ModelChanged, ModelListChanged, ModelStateEvent
from ollamate_core.domain.exceptions import StorageError, ValidationError
from ollamate_core.domain.state import StateStore
from ollamate_core.infrastructure.logging.logger import logger


SELECTED_KEY = "selectedModel"
AVAILABLE_KEY = "availableModels"
NO_MODEL = "No Model"

Listener = Callable[[ModelStateEvent], None]


class Subscription:
    """一次订阅的句柄，cancel() 后不再收到事件。"""

    def __init__(self, owner: "ModelStateStore", listener: Listener):
        self._owner = owner
        self._listener = listener

    def cancel(self) -> None:
        self._owner._remove(self._listener)


def normalize_models(models: Iterable[str]) -> Tuple[str, ...]:
    """去重、去掉空白项并排序；大小写敏感，不修改名称本身。"""
    unique = {m for m in models if isinstance(m, str) and m.strip()}
    return tuple(sorted(unique))


class ModelStateStore:
    def __init__(self, state: StateStore):
        self._state = state
        self._listeners: List[Listener] = []
        self._selected = self._normalize_selected(state.get(SELECTED_KEY, None))
        self._available = normalize_models(state.get(AVAILABLE_KEY, []) or [])

    # ---- 订阅 ----

    def subscribe(self, listener: Listener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: ModelStateEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    # ---- 选中模型 ----

    def get_selected(self) -> Optional[str]:
        return self._selected

    def set_selected(self, model: Optional[str]) -> None:
        new = self._normalize_selected(model)
        if new is not None and new not in self._available:
            raise ValidationError(
                code="UNKNOWN_MODEL",
                message=f'Model "{new}" is not in the available list',
                model=new,
            )
        old = self._selected
        self._persist(SELECTED_KEY, new if new is not None else NO_MODEL)
        self._selected = new
        if old != new:
            logger.info(
                f"Model selection changed: {old or 'None'} -> {new or 'None'}",
                extra={"extra": {"old_model": old, "new_model": new}},
            )
            self._emit(ModelChanged(model=new))

    # ---- 可用模型 ----

    def get_available(self) -> Tuple[str, ...]:
        return self._available

    def set_available(self, models: Iterable[str]) -> None:
        new = normalize_models(models)
        if new == self._available:
            return
        self._persist(AVAILABLE_KEY, list(new))
        self._available = new
        logger.info("Available models list changed", extra={"extra": {"count": len(new)}})

        current = self._selected
        if current is not None and current not in new:
            logger.info(
                f'Selected model "{current}" is no longer available. Clearing selection.',
                extra={"extra": {"model": current}},
            )
            self.set_selected(None)

        self._emit(ModelListChanged(models=new))

    def reconcile(self) -> None:
        """启动时检查：已选模型不在可用列表中则清空。"""
        logger.info(
            "Initializing models",
            extra={"extra": {"available": len(self._available), "selected": self._selected}},
        )
        if not self._available:
            logger.info("No available models found in state during initialization")
        elif self._selected is not None and self._selected not in self._available:
            logger.warning(
                f'Selected model "{self._selected}" no longer exists in available list. Clearing selection.'
            )
            self.set_selected(None)

    # ---- 辅助方法 ----

    @staticmethod
    def _normalize_selected(value: Optional[str]) -> Optional[str]:
        if not value or value == NO_MODEL:
            return None
        return value

    def _persist(self, key: str, value) -> None:
        try:
            self._state.set(key, value)
        except StorageError as e:
            logger.error(
                "Failed to persist model state",
                extra={"extra": {"key": key, "code": e.code, "error": e.message}},
            )
