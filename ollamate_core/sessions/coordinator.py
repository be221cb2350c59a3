"""会话生命周期协调器。

协调器独占唯一的"活动会话"缓冲区（SessionContext），决定：
- 何时开始新会话（Empty -> Active）；
- 用户提交消息时如何调用生成后端并把回答追加到缓冲区（Active -> Active）；
- 何时把缓冲区写入历史并丢弃（Active -> Flushing -> Empty）：关闭、加载其他会话、
  或模型变化且缓冲区非空；
- 模型变化与会话绑定模型之间的协调。

所有状态变更都在同一条控制流内完成，不需要锁。唯一耗时的操作是消费后端
返回的片段序列：TurnStream 每产出一个片段就把控制权交还给调用方，调用方可在
两个片段之间处理其他请求（如关闭、加载）。每个片段到来时都会检查所属会话是否
仍然有效，无效则停止消费；已推送的部分输出不会撤回。
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence

from ollamate_core.config.settings import Settings, settings as default_settings
from ollamate_core.domain.events import (
    DisplayCleared,
    HistoryChanged,
    ModelChanged,
    ModelListChanged,
    ModelStateEvent,
    ModelUpdated,
    ResponseChunk,
    SessionLoaded,
    ThinkingStateChanged,
)
from ollamate_core.domain.exceptions import (
    BackendError,
    BackendUnavailable,
    BusinessError,
    NoModelSelected,
    SessionNotFound,
    StorageError,
    ValidationError,
)
from ollamate_core.domain.models import Session, Turn
from ollamate_core.history.store import HistoryStore
from ollamate_core.infrastructure.logging.logger import logger
from ollamate_core.models.state import ModelStateStore
from ollamate_core.providers.base import GenerationBackend
from ollamate_core.sessions.broadcaster import PresentationBroadcaster


UNKNOWN_MODEL = "Unknown"


class SlotState(str, Enum):
    EMPTY = "empty"
    ACTIVE = "active"
    FLUSHING = "flushing"


@dataclass
class ActiveSession:
    """尚未持久化的活动会话缓冲区。"""

    id: str
    timestamp: int
    model_used: Optional[str]
    turns: List[Turn] = field(default_factory=list)


@dataclass
class SessionContext:
    """活动会话槽位。active 为 None 时表示没有活动会话。"""

    state: SlotState = SlotState.EMPTY
    active: Optional[ActiveSession] = None

    def activate(self, session: ActiveSession) -> None:
        self.active = session
        self.state = SlotState.ACTIVE

    def clear(self) -> None:
        self.active = None
        self.state = SlotState.EMPTY


class TurnStream:
    """一次用户提交对应的流式交换。

    迭代它即逐个得到后端返回的文本片段；drain() 一次性消费完。
    结束后 reply 为追加到会话中的 assistant 消息（可能为 None），
    error 为后端错误（已以内联文本形式推送给 surface）。
    """

    def __init__(self, session_id: str, model: str, user_turn: Turn):
        self.session_id = session_id
        self.model = model
        self.user_turn = user_turn
        self.parts: List[str] = []
        self.aborted = False
        self.settled = False
        self.reply: Optional[Turn] = None
        self.error: Optional[BusinessError] = None
        self.pending_model_change = False
        self._iterator: Optional[Iterator[str]] = None
        self._on_close: Optional[Callable[[], None]] = None

    @property
    def text(self) -> str:
        return "".join(self.parts)

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        return next(self._iterator)

    def drain(self) -> "TurnStream":
        for _ in self:
            pass
        return self

    def close(self) -> None:
        """停止消费；未开始迭代时也会让协调器结算本次交换。"""
        self._iterator.close()
        if not self.settled and self._on_close is not None:
            self._on_close()


class SessionLifecycleCoordinator:
    def __init__(
        self,
        history: HistoryStore,
        models: ModelStateStore,
        backend: GenerationBackend,
        broadcaster: PresentationBroadcaster,
        cfg: Settings = default_settings,
        context: Optional[SessionContext] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._history = history
        self._models = models
        self._backend = backend
        self._broadcaster = broadcaster
        self._settings = cfg
        self._context = context or SessionContext()
        self._clock = clock
        self._last_id_ms = 0
        self._inflight: Optional[TurnStream] = None
        self._subscription = models.subscribe(self.handle_model_event)

    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def in_flight(self) -> Optional[TurnStream]:
        return self._inflight

    def snapshot(self) -> Optional[Session]:
        """返回活动会话的副本，没有活动会话时返回 None。"""
        active = self._context.active
        if active is None:
            return None
        return Session(
            id=active.id,
            name=self._history.summarize(active.turns),
            timestamp=active.timestamp,
            model_used=active.model_used or UNKNOWN_MODEL,
            messages=list(active.turns),
        )

    def dispose(self) -> None:
        self._subscription.cancel()

    # ---- 会话开始 ----

    def start_session(self) -> str:
        """打开会话：已有活动会话时直接复用，否则创建新的缓冲区。"""
        active = self._context.active
        if active is not None:
            self._broadcaster.broadcast(ModelUpdated(model=self._models.get_selected()))
            return active.id
        model = self._initial_model()
        session = self._begin(model)
        self._broadcaster.broadcast(ModelUpdated(model=self._models.get_selected()))
        return session.id

    # ---- 用户提交 ----

    def submit_turn(self, text: str) -> TurnStream:
        """提交一条用户消息并同步消费完整个回答。"""
        return self.stream_turn(text).drain()

    def stream_turn(self, text: str) -> TurnStream:
        """提交一条用户消息，返回尚未开始消费的 TurnStream。"""
        if not text or not text.strip():
            raise ValidationError(code="EMPTY_INPUT", message="Message text cannot be empty")
        if self._inflight is not None:
            raise ValidationError(
                code="TURN_IN_PROGRESS",
                message="A response is still being generated for this session",
                session_id=self._inflight.session_id,
            )

        active = self._context.active
        if active is None:
            self.start_session()
            active = self._context.active

        was_empty = not active.turns
        if was_empty or not active.model_used:
            # 会话模型在首条真实消息时才绑定，只认当前选择
            active.model_used = self._models.get_selected()
            logger.info(
                "Bound model for session",
                extra={"extra": {"session_id": active.id, "model": active.model_used}},
            )

        outgoing: List[Turn] = []
        system_prompt = self._settings.default_system_prompt
        if was_empty and system_prompt:
            outgoing.append(Turn(role="system", content=system_prompt))
        outgoing.extend(active.turns)
        user_turn = Turn(role="user", content=text)
        outgoing.append(user_turn)
        active.turns.append(user_turn)

        model = active.model_used
        if not model:
            message = "No model selected. Select a model before chatting."
            self._broadcaster.broadcast(ResponseChunk(text=f"Error: {message}", is_first=True))
            raise NoModelSelected(code="NO_MODEL_SELECTED", message=message, session_id=active.id)

        stream = TurnStream(session_id=active.id, model=model, user_turn=user_turn)
        stream._iterator = self._drain(stream, outgoing)
        stream._on_close = lambda: self._settle(stream)
        self._inflight = stream
        self._broadcaster.broadcast(ThinkingStateChanged(thinking=True))
        return stream

    def _drain(self, stream: TurnStream, outgoing: Sequence[Turn]) -> Iterator[str]:
        log_ctx = {"session_id": stream.session_id, "model": stream.model}
        fragments: Optional[Iterator[str]] = None
        try:
            fragments = iter(self._backend.generate(stream.model, list(outgoing)))
            for fragment in fragments:
                if not self._owns(stream):
                    logger.info("Stopped consuming response for inactive session", extra={"extra": log_ctx})
                    break
                if not fragment:
                    continue
                stream.parts.append(fragment)
                self._broadcaster.broadcast(ResponseChunk(text=fragment, is_first=len(stream.parts) == 1))
                yield fragment
                if not self._owns(stream):
                    logger.info("Stopped consuming response for inactive session", extra={"extra": log_ctx})
                    break
        except (BackendUnavailable, BackendError) as e:
            stream.error = e
            logger.error(
                "Generation backend error",
                extra={"extra": {**log_ctx, "code": e.code, "error": e.message}},
            )
            if self._owns(stream):
                self._broadcaster.broadcast(ResponseChunk(text=f"\nError: {e.message}", is_first=not stream.parts))
        finally:
            close = getattr(fragments, "close", None)
            if close is not None:
                close()
            self._settle(stream)

    def _owns(self, stream: TurnStream) -> bool:
        active = self._context.active
        return not stream.aborted and active is not None and active.id == stream.session_id

    def _settle(self, stream: TurnStream) -> None:
        if stream.settled:
            return
        stream.settled = True
        if self._inflight is stream:
            self._inflight = None
        if stream.aborted:
            return
        self._append_reply(stream)
        self._broadcaster.broadcast(ThinkingStateChanged(thinking=False))
        logger.info(
            "Completed exchange",
            extra={"extra": {"session_id": stream.session_id, "chars": len(stream.text), "error": bool(stream.error)}},
        )
        if stream.pending_model_change:
            self._apply_model_change(self._models.get_selected())

    def _append_reply(self, stream: TurnStream) -> Optional[Turn]:
        active = self._context.active
        if stream.reply is not None or not stream.parts:
            return stream.reply
        if active is None or active.id != stream.session_id:
            return None
        stream.reply = Turn(role="assistant", content=stream.text)
        active.turns.append(stream.reply)
        return stream.reply

    def _abort_inflight(self, keep_partial: bool) -> None:
        stream = self._inflight
        if stream is None:
            return
        if keep_partial:
            self._append_reply(stream)
        stream.aborted = True
        stream.pending_model_change = False
        self._inflight = None
        self._broadcaster.broadcast(ThinkingStateChanged(thinking=False))
        logger.info(
            "Aborted in-flight exchange",
            extra={"extra": {"session_id": stream.session_id, "kept_chars": len(stream.text) if keep_partial else 0}},
        )

    # ---- 模型变化 ----

    def handle_model_event(self, event: ModelStateEvent) -> None:
        if isinstance(event, ModelChanged):
            if self._inflight is not None:
                # 等当前回答结束后再处理，避免丢弃用户正在等待的回答
                self._inflight.pending_model_change = True
                logger.info(
                    "Deferred model change until in-flight exchange settles",
                    extra={"extra": {"session_id": self._inflight.session_id, "model": event.model}},
                )
                return
            self._apply_model_change(event.model)
        elif isinstance(event, ModelListChanged):
            logger.info("Model list changed", extra={"extra": {"count": len(event.models)}})

    def _apply_model_change(self, model: Optional[str]) -> None:
        active = self._context.active
        if active is not None and active.model_used is None:
            # 会话尚未绑定模型，直接绑定到新选择
            active.model_used = model
        elif active is not None and model != active.model_used:
            logger.info(
                "Model changed while session active. Saving session and starting new one.",
                extra={"extra": {"session_id": active.id, "old_model": active.model_used, "new_model": model}},
            )
            try:
                self._flush()
            except StorageError:
                # 未保存的会话继续沿用原模型，不切换
                self._broadcaster.broadcast(ModelUpdated(model=model))
                return
            self._begin(model)
            self._broadcaster.broadcast(DisplayCleared())
        self._broadcaster.broadcast(ModelUpdated(model=model))

    # ---- 关闭 / 加载 / 删除 / 清屏 ----

    def close_session(self) -> bool:
        """关闭活动会话并写入历史；返回是否真正写入。"""
        self._abort_inflight(keep_partial=True)
        try:
            return self._flush()
        except StorageError:
            return False

    def load_session(self, session_id: str) -> Session:
        active = self._context.active
        if active is not None and active.id == session_id:
            self._broadcaster.broadcast(
                SessionLoaded(messages=tuple(active.turns), model=self._models.get_selected())
            )
            return self.snapshot()

        session = self._history.get_by_id(session_id)
        if session is None:
            self._broadcaster.broadcast(HistoryChanged())
            raise SessionNotFound(
                code="SESSION_NOT_FOUND",
                message=f"Chat session {session_id} not found",
                http_status=404,
                session_id=session_id,
            )

        self._abort_inflight(keep_partial=True)
        self._flush()
        self._context.activate(
            ActiveSession(
                id=session.id,
                timestamp=session.timestamp,
                model_used=session.model_used or None,
                turns=list(session.messages),
            )
        )
        logger.info(
            "Loaded chat session",
            extra={"extra": {"session_id": session.id, "model": session.model_used}},
        )
        self._broadcaster.broadcast(
            SessionLoaded(messages=tuple(session.messages), model=self._models.get_selected())
        )
        return session

    def delete_session(self, session_id: str) -> bool:
        active = self._context.active
        is_active = active is not None and active.id == session_id
        removed = self._history.delete_by_id(session_id)

        if is_active:
            self._abort_inflight(keep_partial=False)
            self._context.clear()
            logger.info("Cleared active session after delete", extra={"extra": {"session_id": session_id}})
            self._broadcaster.broadcast(DisplayCleared())
            self._broadcaster.broadcast(ModelUpdated(model=self._models.get_selected()))

        self._broadcaster.broadcast(HistoryChanged())
        if not removed and not is_active:
            raise SessionNotFound(
                code="SESSION_NOT_FOUND",
                message=f"Chat session {session_id} not found",
                http_status=404,
                session_id=session_id,
            )
        return True

    def clear_display(self) -> str:
        """保存当前会话并开始一个新的空会话。"""
        self._abort_inflight(keep_partial=True)
        self._flush()
        session = self._begin(self._initial_model())
        self._broadcaster.broadcast(DisplayCleared())
        self._broadcaster.broadcast(ModelUpdated(model=self._models.get_selected()))
        return session.id

    # ---- 辅助方法 ----

    def _initial_model(self) -> Optional[str]:
        return self._models.get_selected()

    def _begin(self, model: Optional[str]) -> ActiveSession:
        now_ms = int(self._clock() * 1000)
        if now_ms <= self._last_id_ms:
            now_ms = self._last_id_ms + 1
        self._last_id_ms = now_ms
        session = ActiveSession(id=str(now_ms), timestamp=now_ms, model_used=model)
        self._context.activate(session)
        logger.info(
            "Starting new session",
            extra={"extra": {"session_id": session.id, "model": model}},
        )
        return session

    def _flush(self) -> bool:
        active = self._context.active
        if active is None:
            return False
        if not active.turns:
            logger.info("Skipping save: no messages in session", extra={"extra": {"session_id": active.id}})
            self._context.clear()
            return False

        self._context.state = SlotState.FLUSHING
        record = Session(
            id=active.id,
            name=self._history.summarize(active.turns),
            timestamp=active.timestamp,
            model_used=active.model_used or UNKNOWN_MODEL,
            messages=list(active.turns),
        )
        try:
            self._history.upsert(record)
        except StorageError as e:
            # 写入失败时缓冲区保持活动，内存中的会话仍然有效
            self._context.state = SlotState.ACTIVE
            logger.error(
                "Failed to save chat session, keeping it active",
                extra={"extra": {"session_id": record.id, "code": e.code, "error": e.message}},
            )
            raise
        self._context.clear()
        logger.info(
            "Saved chat session",
            extra={"extra": {"session_id": record.id, "model": record.model_used, "messages": len(record.messages)}},
        )
        self._broadcaster.broadcast(HistoryChanged())
        return True
