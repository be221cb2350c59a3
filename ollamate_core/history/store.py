"""聊天历史存储。

历史以整体列表的形式保存在 StateStore 的一个键下：
- 列表始终按 timestamp 降序保存，并截断到 max_history 条；
- 被截断掉的最旧记录不可恢复；
- 读写都做拷贝，调用方拿不到存储内部对象的引用。
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Sequence

from ollamate_core.config.settings import Settings, settings as default_settings
from ollamate_core.domain.exceptions import InvalidSession
from ollamate_core.domain.models import Session, Turn
from ollamate_core.domain.state import StateStore
from ollamate_core.infrastructure.logging.logger import logger


HISTORY_KEY = "ollamateChatHistory_v1"

SUMMARY_WORDS = 7
SUMMARY_FALLBACK = "Chat Session"
UNTITLED_LABEL = "Untitled Chat"


@dataclass(frozen=True)
class HistoryEntry:
    """历史列表视图中的一行。"""

    session_id: str
    label: str
    description: str
    tooltip: str


class HistoryStore:
    def __init__(self, state: StateStore, cfg: Settings = default_settings):
        self._state = state
        self._settings = cfg

    @property
    def limit(self) -> int:
        return max(1, int(self._settings.max_history))

    def list(self) -> List[Session]:
        """按 timestamp 降序返回所有会话（副本）。"""
        return self._sorted(self._load())

    def get_by_id(self, session_id: str) -> Optional[Session]:
        for session in self._load():
            if session.id == session_id:
                return session
        return None

    def upsert(self, session: Session) -> None:
        """插入或替换同 id 的会话，随后重新排序并截断到上限。"""
        if session is None or not session.id or not session.messages:
            logger.warning(
                "Rejected empty or invalid chat session",
                extra={"extra": {"session_id": getattr(session, "id", None)}},
            )
            raise InvalidSession(
                code="INVALID_SESSION",
                message="Session must have an id and at least one message",
                session_id=getattr(session, "id", None),
            )
        history = self._load()
        record = session.copy()
        for index, existing in enumerate(history):
            if existing.id == record.id:
                history[index] = record
                break
        else:
            history.append(record)
        self._save(history)

    def delete_by_id(self, session_id: str) -> bool:
        history = self._load()
        remaining = [s for s in history if s.id != session_id]
        if len(remaining) == len(history):
            return False
        self._save(remaining)
        logger.info("Deleted chat session", extra={"extra": {"session_id": session_id}})
        return True

    def entries(self) -> List[HistoryEntry]:
        """生成历史列表视图所需的行数据。"""
        rows: List[HistoryEntry] = []
        for session in self.list():
            when = datetime.fromtimestamp(session.timestamp / 1000)
            date_string = f"{when:%b} {when.day}, {when.hour % 12 or 12}:{when:%M} {when:%p}"
            rows.append(
                HistoryEntry(
                    session_id=session.id,
                    label=session.name or UNTITLED_LABEL,
                    description=session.model_used,
                    tooltip=f"{date_string} - Model: {session.model_used}",
                )
            )
        return rows

    @staticmethod
    def summarize(messages: Sequence[Turn]) -> str:
        """用首条用户消息的前 7 个词生成会话名，超出部分以 "..." 表示。"""
        first_user = next((m for m in messages if m.role == "user"), None)
        if first_user is None:
            return SUMMARY_FALLBACK
        words = first_user.content.split()
        if not words:
            return SUMMARY_FALLBACK
        snippet = " ".join(words[:SUMMARY_WORDS])
        return f"{snippet}..." if len(words) > SUMMARY_WORDS else snippet

    # ---- 辅助方法 ----

    def _load(self) -> List[Session]:
        raw: Any = self._state.get(HISTORY_KEY, [])
        sessions: List[Session] = []
        for item in raw or []:
            try:
                sessions.append(Session.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(
                    "Skipping malformed history record",
                    extra={"extra": {"error": str(e)}},
                )
        return sessions

    def _save(self, history: List[Session]) -> None:
        limited = self._sorted(history)[: self.limit]
        evicted = len(history) - len(limited)
        self._state.set(HISTORY_KEY, [s.to_dict() for s in limited])
        logger.info(
            "Chat history saved",
            extra={"extra": {"count": len(limited), "evicted": evicted}},
        )

    @staticmethod
    def _sorted(history: List[Session]) -> List[Session]:
        return sorted(history, key=lambda s: s.timestamp, reverse=True)
