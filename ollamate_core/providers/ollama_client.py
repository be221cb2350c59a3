"""Ollama 生成后端适配器。

使用 Ollama 的 HTTP API：
- 对话: POST {base_url}/api/chat，stream=true 时返回逐行 JSON（NDJSON），
  每行形如 {"message": {"role": "assistant", "content": "..."}, "done": false}。
- 模型列表: GET {base_url}/api/tags，返回 {"models": [{"name": ...}, ...]}。

流中出现 {"error": "..."} 时视为后端错误。
"""

import json
from typing import Any, Dict, Iterator, List, Sequence

import httpx

from ollamate_core.config.settings import settings
from ollamate_core.domain.exceptions import BackendError, BackendUnavailable
from ollamate_core.domain.models import Turn
from ollamate_core.infrastructure.logging.logger import logger


class OllamaClient:
    """Ollama 后端客户端实现。"""

    name = "ollama"

    def __init__(self, cfg=settings):
        self._settings = cfg

    @property
    def base_url(self) -> str:
        return str(self._settings.ollama_base_url).rstrip("/")

    # ---- 流式对话 ----

    def generate(self, model: str, turns: Sequence[Turn]) -> Iterator[str]:
        payload = self._build_payload(model, turns)
        logger.info(
            "Sending chat to Ollama",
            extra={"extra": {"model": model, "message_count": len(turns), "timeout": self._settings.request_timeout}},
        )
        try:
            with httpx.Client(timeout=self._settings.request_timeout, trust_env=False) as client:
                with client.stream("POST", f"{self.base_url}/api/chat", json=payload) as resp:
                    if resp.status_code >= 400:
                        resp.read()
                        self._raise_for_status(resp.status_code, resp.text, model)
                    for line in resp.iter_lines():
                        line = line.strip()
                        if not line:
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError:
                            continue
                        if not isinstance(data, dict):
                            raise BackendError(
                                code="BACKEND_ERROR",
                                message="Invalid response format from Ollama chat stream",
                                model=model,
                            )
                        if data.get("error"):
                            raise BackendError(code="BACKEND_ERROR", message=str(data["error"]), model=model)
                        content = (data.get("message") or {}).get("content") or ""
                        if content:
                            yield content
                        if data.get("done"):
                            break
        except httpx.TimeoutException as e:
            raise BackendUnavailable(
                code="BACKEND_UNAVAILABLE",
                message=f"Ollama request timed out after {self._settings.request_timeout}s: {e}",
                model=model,
            )
        except httpx.RequestError as e:
            raise BackendUnavailable(
                code="BACKEND_UNAVAILABLE",
                message=f"Could not reach Ollama at {self.base_url}: {e}",
                model=model,
            )

    # ---- 模型列表 ----

    def list_models(self) -> List[str]:
        timeout = self._settings.list_timeout
        logger.info(
            "Listing models from Ollama",
            extra={"extra": {"base_url": self.base_url, "timeout": timeout}},
        )
        try:
            with httpx.Client(timeout=timeout, trust_env=False) as client:
                resp = client.get(f"{self.base_url}/api/tags")
        except httpx.TimeoutException:
            raise BackendUnavailable(
                code="BACKEND_UNAVAILABLE",
                message=f"Ollama list models request timed out after {timeout}s",
            )
        except httpx.RequestError as e:
            raise BackendUnavailable(
                code="BACKEND_UNAVAILABLE",
                message=f"Could not reach Ollama at {self.base_url}: {e}",
            )
        if resp.status_code == 404:
            raise BackendError(
                code="BACKEND_ERROR",
                message=f"Ollama API endpoint not found at {self.base_url}. Is Ollama running?",
                http_status=404,
            )
        if resp.status_code >= 500:
            raise BackendError(
                code="BACKEND_ERROR",
                message=f"Ollama server error ({resp.status_code}). Check Ollama server logs.",
                http_status=resp.status_code,
            )
        if resp.status_code >= 400:
            raise BackendError(
                code="BACKEND_ERROR",
                message=f"Failed to fetch models from Ollama: {resp.status_code}",
                http_status=resp.status_code,
            )
        data = resp.json()
        if not isinstance(data, dict) or not isinstance(data.get("models"), list):
            raise BackendError(code="BACKEND_ERROR", message="Invalid response format received from Ollama /api/tags")
        return sorted(m["name"] for m in data["models"] if isinstance(m, dict) and m.get("name"))

    # ---- 辅助方法 ----

    def _build_payload(self, model: str, turns: Sequence[Turn]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [t.to_dict() for t in turns],
            "stream": True,
        }
        options: Dict[str, Any] = {}
        temperature = getattr(self._settings, "chat_temperature", None)
        if temperature is not None:
            options["temperature"] = temperature
        if options:
            payload["options"] = options
        return payload

    @staticmethod
    def _raise_for_status(status: int, body: str, model: str) -> None:
        message = body
        try:
            message = json.loads(body).get("error") or body
        except (json.JSONDecodeError, AttributeError):
            pass
        if status == 404:
            raise BackendError(
                code="BACKEND_ERROR",
                message=f'Model "{model}" not found: {message}',
                http_status=404,
                model=model,
            )
        raise BackendError(
            code="BACKEND_ERROR",
            message=f"Ollama returned {status}: {message}",
            http_status=status,
            model=model,
        )
