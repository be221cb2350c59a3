"""对外服务模块。

OllamateService 负责组装各组件（键值存储、历史、模型状态、生成后端、广播器、
会话协调器），并把 surface 发来的请求分派到核心逻辑，返回响应字典。
"""

import time
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Mapping, Optional

from ollamate_core.api.model_commands import ModelCommands
from ollamate_core.config.settings import Settings, settings as default_settings
from ollamate_core.domain.events import ModelUpdated
from ollamate_core.domain.exceptions import BusinessError
from ollamate_core.domain.requests import (
    ClearDisplay,
    DeleteSession,
    GetModel,
    LoadSession,
    StartSession,
    SubmitTurn,
    SurfaceRequest,
    parse_request,
)
from ollamate_core.domain.state import StateStore
from ollamate_core.history.store import HistoryStore
from ollamate_core.infrastructure.logging.logger import logger
from ollamate_core.infrastructure.storage.json_state import JsonStateStore
from ollamate_core.models.state import ModelStateStore
from ollamate_core.providers import create_backend
from ollamate_core.providers.base import GenerationBackend
from ollamate_core.sessions.broadcaster import PresentationBroadcaster, Surface
from ollamate_core.sessions.coordinator import SessionLifecycleCoordinator


class OllamateService:
    def __init__(
        self,
        cfg: Optional[Settings] = None,
        state: Optional[StateStore] = None,
        backend: Optional[GenerationBackend] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = cfg or default_settings
        self.state = state if state is not None else JsonStateStore(self.settings.state_path)
        self.backend = backend or create_backend(self.settings)
        self.history = HistoryStore(self.state, self.settings)
        self.models = ModelStateStore(self.state)
        self.broadcaster = PresentationBroadcaster()
        self.coordinator = SessionLifecycleCoordinator(
            history=self.history,
            models=self.models,
            backend=self.backend,
            broadcaster=self.broadcaster,
            cfg=self.settings,
            clock=clock,
        )
        self.commands = ModelCommands(self.models, self.backend)
        self.models.reconcile()
        self._apply_default_model()

    def _apply_default_model(self) -> None:
        """没有任何选择时，若配置的默认模型在可用列表中则选中它。"""
        default = self.settings.default_model
        if self.models.get_selected() is None and default and default in self.models.get_available():
            self.models.set_selected(default)

    # ---- surface 挂载 ----

    def attach(self, surface: Surface) -> None:
        self.broadcaster.attach(surface)
        self.broadcaster.broadcast(ModelUpdated(model=self.models.get_selected()))

    def detach(self, surface: Surface) -> None:
        self.broadcaster.detach(surface)

    def close(self) -> bool:
        """聊天 surface 关闭：保存当前会话。"""
        return self.coordinator.close_session()

    # ---- 请求分派 ----

    def handle(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """处理一条 surface 请求。

        Returns:
            {"ok": True, ...} 或 {"ok": False, "code": ..., "message": ...}

        Raises:
            非 BusinessError 的异常会记录日志后继续抛出。
        """
        try:
            request = parse_request(payload)
            return {"ok": True, **self.dispatch(request)}
        except BusinessError as e:
            logger.error(
                f"Request failed: {e.message}",
                extra={"extra": {"command": payload.get("command"), "code": e.code}},
            )
            return {"ok": False, "code": e.code, "message": e.message}
        except Exception as e:
            logger.error(
                f"Unexpected error handling request: {e}",
                extra={"extra": {"command": payload.get("command"), "error": str(e)}},
            )
            raise

    def dispatch(self, request: SurfaceRequest) -> Dict[str, Any]:
        if isinstance(request, GetModel):
            model = self.models.get_selected()
            self.broadcaster.broadcast(ModelUpdated(model=model))
            return {"model": model}
        if isinstance(request, SubmitTurn):
            stream = self.coordinator.submit_turn(request.text)
            return {
                "sessionId": stream.session_id,
                "reply": stream.reply.content if stream.reply else None,
                "error": stream.error.message if stream.error else None,
            }
        if isinstance(request, StartSession):
            return {"sessionId": self.coordinator.start_session()}
        if isinstance(request, LoadSession):
            session = self.coordinator.load_session(request.session_id)
            return {"session": session.to_dict()}
        if isinstance(request, DeleteSession):
            self.coordinator.delete_session(request.session_id)
            return {"sessionId": request.session_id}
        if isinstance(request, ClearDisplay):
            return {"sessionId": self.coordinator.clear_display()}
        raise TypeError(f"Unhandled request type: {type(request).__name__}")

    # ---- 历史列表 ----

    def list_history(self) -> List[Dict[str, Any]]:
        return [asdict(entry) for entry in self.history.entries()]


_service: Optional[OllamateService] = None


def get_default_service() -> OllamateService:
    """获取默认配置下的服务实例（单例）。"""
    global _service
    if _service is None:
        _service = OllamateService()
    return _service
