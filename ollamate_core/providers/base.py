"""生成后端抽象接口。

会话协调器不直接依赖具体后端的 HTTP 细节，而是依赖此协议：

- generate(model, turns): 以完整的有序消息列表调用模型，返回惰性的文本片段序列。
  消费方停止迭代（并关闭迭代器）即视为取消，后端没有额外的中止信号。
- list_models(): 返回后端已安装的模型名，用于导入可用模型列表。

失败时抛出 BackendUnavailable（不可达/超时）或 BackendError（后端返回错误）。
"""

from typing import Iterator, List, Protocol, Sequence

from ollamate_core.domain.models import Turn


class GenerationBackend(Protocol):
    """生成后端协议。"""

    name: str

    def generate(self, model: str, turns: Sequence[Turn]) -> Iterator[str]:
        ...

    def list_models(self) -> List[str]:
        ...
