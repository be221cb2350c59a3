"""配置管理模块。

支持从环境变量（前缀 OLLAMATE_）、.env 以及 config.yaml 加载配置。
优先级：构造参数 > 环境变量 > .env > config.yaml。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("OLLAMATE_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except Exception as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class YamlConfigSource(PydanticBaseSettingsSource):
    """把 config.yaml 作为 pydantic-settings 的一个配置源。"""

    def __init__(self, settings_cls: Type[BaseSettings]):
        super().__init__(settings_cls)
        self._data = _load_config_from_yaml()

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        known = self.settings_cls.model_fields
        return {k: v for k, v in self._data.items() if k in known and v is not None}


class Settings(BaseSettings):
    """配置设置。"""

    # ---- 生成后端（Ollama） ----
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama 服务地址",
    )
    request_timeout: float = Field(default=120.0, ge=1.0, description="流式对话请求超时（秒）")
    list_timeout_floor: float = Field(default=5.0, ge=1.0, description="模型列表请求超时下限（秒）")
    list_timeout_ceiling: float = Field(default=15.0, ge=1.0, description="模型列表请求超时上限（秒）")
    chat_temperature: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="生成温度，未设置时使用模型默认值",
    )

    # ---- 会话与模型 ----
    max_history: int = Field(default=50, description="历史会话最多保留条数（最小为 1）")
    default_system_prompt: str = Field(default="", description="新会话首轮附带的 system 提示词")
    default_model: str = Field(default="", description="启动时若没有选择任何模型，且该模型在可用列表中，则自动选中")

    # ---- 存储与日志 ----
    storage_root: str = Field(default=".storage", description="存储根目录")
    state_file: str = Field(default="state.json", description="键值状态文件名")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    log_level: str = Field(default="INFO", description="日志级别")

    model_config = SettingsConfigDict(
        env_prefix="OLLAMATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("max_history", mode="before")
    @classmethod
    def clamp_max_history(cls, v: Any) -> int:
        # 小于 1 的值按 1 处理，而不是拒绝
        return max(1, int(v))

    @field_validator("default_system_prompt", "default_model")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @property
    def list_timeout(self) -> float:
        """模型列表请求的实际超时：夹在 [floor, ceiling] 之间。"""
        return max(self.list_timeout_floor, min(self.request_timeout, self.list_timeout_ceiling))

    @property
    def state_path(self) -> Path:
        return Path(self.storage_root) / self.state_file

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSource(settings_cls),
            file_secret_settings,
        )


settings = Settings()
