"""聊天历史持久化。"""

from ollamate_core.history.store import HistoryEntry, HistoryStore

__all__ = ["HistoryEntry", "HistoryStore"]
