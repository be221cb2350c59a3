"""事件类型定义。

两类固定的事件联合：

- ModelStateEvent: ModelStateStore 发给订阅者的状态变化通知。
- SurfaceEvent: PresentationBroadcaster 推送给各个展示端（surface）的事件。

事件都是不可变的 dataclass，订阅者按类型分派处理。
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .models import Turn


# ---- 模型状态事件 ----


@dataclass(frozen=True)
class ModelChanged:
    """选中的模型发生变化，model 为 None 表示清空选择。"""

    model: Optional[str]


@dataclass(frozen=True)
class ModelListChanged:
    """可用模型列表发生变化。"""

    models: Tuple[str, ...]


ModelStateEvent = Union[ModelChanged, ModelListChanged]


# ---- 展示端事件 ----


@dataclass(frozen=True)
class ModelUpdated:
    model: Optional[str]
    kind: str = "modelUpdated"


@dataclass(frozen=True)
class ResponseChunk:
    """流式回答的一个片段；is_first 标记本轮回答的第一个片段。"""

    text: str
    is_first: bool
    kind: str = "responseChunk"


@dataclass(frozen=True)
class SessionLoaded:
    messages: Tuple[Turn, ...]
    model: Optional[str]
    kind: str = "sessionLoaded"


@dataclass(frozen=True)
class DisplayCleared:
    kind: str = "displayCleared"


@dataclass(frozen=True)
class ThinkingStateChanged:
    thinking: bool
    kind: str = "thinkingStateChanged"


@dataclass(frozen=True)
class HistoryChanged:
    """历史列表已变化，列表类 surface 应重新读取。"""

    kind: str = "historyChanged"


SurfaceEvent = Union[
    ModelUpdated,
    ResponseChunk,
    SessionLoaded,
    DisplayCleared,
    ThinkingStateChanged,
    HistoryChanged,
]
