"""活动会话的生命周期协调与展示端事件广播。"""

from ollamate_core.sessions.broadcaster import PresentationBroadcaster, Surface
from ollamate_core.sessions.coordinator import (
    ActiveSession,
    SessionContext,
    SessionLifecycleCoordinator,
    SlotState,
    TurnStream,
)

__all__ = [
    "ActiveSession",
    "PresentationBroadcaster",
    "SessionContext",
    "SessionLifecycleCoordinator",
    "SlotState",
    "Surface",
    "TurnStream",
]
