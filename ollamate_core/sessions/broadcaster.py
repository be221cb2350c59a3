"""展示端事件广播。

每个 surface 独立投递：某个 surface 投递失败（已关闭、通道断开等）
只记录 warning 日志，不影响其他 surface，也不会让 broadcast 整体失败。
"""

from typing import List, Protocol

from ollamate_core.domain.events import SurfaceEvent
from ollamate_core.infrastructure.logging.logger import logger


class Surface(Protocol):
    """展示端协议：接收广播事件。"""

    name: str

    def deliver(self, event: SurfaceEvent) -> None:
        ...


class PresentationBroadcaster:
    def __init__(self) -> None:
        self._surfaces: List[Surface] = []

    @property
    def surfaces(self) -> List[Surface]:
        return list(self._surfaces)

    def attach(self, surface: Surface) -> None:
        if surface not in self._surfaces:
            self._surfaces.append(surface)
            logger.info("Surface attached", extra={"extra": {"surface": _name(surface)}})

    def detach(self, surface: Surface) -> None:
        if surface in self._surfaces:
            self._surfaces.remove(surface)
            logger.info("Surface detached", extra={"extra": {"surface": _name(surface)}})

    def broadcast(self, event: SurfaceEvent) -> int:
        """把事件投递给所有已挂载的 surface，返回成功投递的数量。"""
        delivered = 0
        for surface in list(self._surfaces):
            try:
                surface.deliver(event)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "Posting message to surface failed",
                    extra={"extra": {"surface": _name(surface), "event": event.kind, "error": str(e)}},
                )
        return delivered


def _name(surface: Surface) -> str:
    return getattr(surface, "name", None) or type(surface).__name__
