"""模型选择状态（选中模型与可用模型列表）。"""

from ollamate_core.models.state import ModelStateStore, Subscription, normalize_models

__all__ = ["ModelStateStore", "Subscription", "normalize_models"]
