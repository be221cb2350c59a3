import json
import logging
from pathlib import Path
from datetime import datetime, timezone
from ollamate_core.config.settings import settings

# 脱敏时从 extra 中去掉的对话内容字段
CONTENT_FIELDS = ("text", "content", "prompt", "reply")
REDACTED_LENGTH = 64


class JsonLineFormatter(logging.Formatter):
    """每条记录输出一行 JSON：ts/level/name/msg 加上 extra 字典中的字段。"""

    def __init__(self, redact: bool = False):
        super().__init__()
        self.redact = redact

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        extra = getattr(record, "extra", None)
        fields = dict(extra) if isinstance(extra, dict) else {}
        if self.redact:
            msg = (msg or "")[:REDACTED_LENGTH]
            for key in CONTENT_FIELDS:
                if key in fields:
                    fields[key] = f"<{len(str(fields[key]))} chars>"
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
            **fields,
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(cfg=settings, name: str = "ollamate_core") -> logging.Logger:
    logger = logging.getLogger(name)
    level = logging.getLevelName(cfg.log_level.upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)
    if logger.handlers:
        return logger
    log_dir = Path(cfg.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "ollamate.log", encoding="utf-8")
    fh.setFormatter(JsonLineFormatter(redact=cfg.log_redact_content))
    logger.addHandler(fh)
    return logger


logger = setup_logger()
