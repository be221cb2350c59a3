"""生成后端集成层。

该包下的模块负责：
- 定义生成后端抽象接口 (base)。
- 提供具体实现 (ollama_client)。
"""

from ollamate_core.config.settings import Settings, settings
from ollamate_core.providers.base import GenerationBackend
from ollamate_core.providers.ollama_client import OllamaClient


def create_backend(cfg: Settings | None = None) -> GenerationBackend:
    """根据配置创建生成后端实例。"""

    return OllamaClient(cfg or settings)


__all__ = ["GenerationBackend", "OllamaClient", "create_backend"]
