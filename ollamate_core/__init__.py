"""Ollamate Core 顶层包。

该包提供本地模型聊天的状态核心：
共享的模型选择状态与变更通知、活动会话的生命周期协调、
有上限且按 id 去重的聊天历史存储，以及面向多个展示端的事件广播。
"""

from ollamate_core.api.service import OllamateService, get_default_service

__all__ = ["OllamateService", "get_default_service"]
