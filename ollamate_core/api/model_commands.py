"""模型管理命令。

在 ModelStateStore 之上提供选择、添加、删除、从后端导入模型等操作。
交互式选择通过 Picker 协议完成，返回 None 表示用户取消。
"""

from typing import List, Optional, Protocol, Sequence

from ollamate_core.domain.exceptions import ValidationError
from ollamate_core.infrastructure.logging.logger import logger
from ollamate_core.models.state import ModelStateStore
from ollamate_core.providers.base import GenerationBackend


class Picker(Protocol):
    def pick_one(self, candidates: Sequence[str], current: Optional[str]) -> Optional[str]:
        ...


class ModelCommands:
    def __init__(self, models: ModelStateStore, backend: GenerationBackend):
        self._models = models
        self._backend = backend

    def select_model(self, picker: Picker) -> Optional[str]:
        """弹出选择器选择当前模型；取消时不改变选择。"""
        available = self._models.get_available()
        if not available:
            logger.warning("No models available. Add or import models first.")
            return None
        chosen = picker.pick_one(list(available), self._models.get_selected())
        if chosen is None:
            logger.info("Model selection cancelled")
            return None
        self._models.set_selected(chosen)
        return chosen

    def add_model(self, name: str) -> str:
        model = (name or "").strip()
        if not model:
            raise ValidationError(code="EMPTY_MODEL_NAME", message="Model name cannot be empty.")
        available = self._models.get_available()
        if model in available:
            raise ValidationError(
                code="DUPLICATE_MODEL",
                message=f'Model "{model}" already exists.',
                model=model,
            )
        self._models.set_available([*available, model])
        logger.info(f'Model "{model}" added to list.')
        return model

    def remove_model(self, name: str) -> bool:
        available = self._models.get_available()
        if name not in available:
            return False
        self._models.set_available([m for m in available if m != name])
        logger.info(f'Model "{name}" removed from the list.')
        return True

    def delete_model(self, picker: Picker) -> Optional[str]:
        """通过选择器删除一个模型；若删除的是当前模型会级联清空选择。"""
        available = self._models.get_available()
        if not available:
            logger.warning("No models available to delete.")
            return None
        chosen = picker.pick_one(list(available), None)
        if chosen is None:
            logger.info("Model deletion cancelled")
            return None
        self.remove_model(chosen)
        return chosen

    def list_backend_models(self) -> List[str]:
        return sorted(self._backend.list_models())

    def import_models(self, picker: Optional[Picker] = None) -> List[str]:
        """把后端已安装但不在可用列表中的模型加入列表。

        不提供 picker 时导入全部新模型；提供时只导入用户选中的那一个。
        """
        installed = self.list_backend_models()
        available = self._models.get_available()
        new_models = [m for m in installed if m not in available]
        if not new_models:
            logger.info("All installed backend models are already in the list.")
            return []

        if picker is None:
            to_import = new_models
        else:
            chosen = picker.pick_one(new_models, None)
            if chosen is None:
                logger.info("Model import cancelled.")
                return []
            to_import = [chosen]

        self._models.set_available([*available, *to_import])
        logger.info(
            f"Imported {len(to_import)} model(s) from backend.",
            extra={"extra": {"models": to_import}},
        )
        return to_import
