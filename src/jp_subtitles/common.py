# -*- coding: utf-8 -*-
"""Logging helpers shared by the resolver modules and the HTTP app.

Optional structured JSON logging and a rotating log file for observability.
"""

from __future__ import annotations

import contextvars
import datetime
import json
import logging
import logging.handlers
import sys
from typing import List, Optional

from .settings import Settings, get_settings

# Per-request context for correlation
REQUEST_ID: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")

logger = logging.getLogger("jp_subtitles")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        rid = REQUEST_ID.get("")
        if rid:
            payload["rid"] = rid
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class RequestIdFilter(logging.Filter):
    """Prefix plain-text records with the active request id."""

    def filter(self, record: logging.LogRecord) -> bool:
        rid = REQUEST_ID.get("")
        record.rid = f" [rid={rid}]" if rid else ""
        return True


def _build_handlers(cfg: Settings) -> List[logging.Handler]:
    fmt_text = "%(asctime)s [%(levelname)s] [%(name)s]%(rid)s %(message)s"
    datefmt = "%H:%M:%S"
    formatter: logging.Formatter
    if cfg.json_logs:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(fmt_text, datefmt=datefmt)

    handlers: List[logging.Handler] = []
    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(formatter)
    handlers.append(stream)

    if cfg.log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            cfg.log_file,
            mode="a",
            encoding="utf-8",
            maxBytes=1_000_000,
            backupCount=3,
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for handler in handlers:
        handler.addFilter(RequestIdFilter())
    return handlers


def configure_logging(cfg: Optional[Settings] = None) -> None:
    """Install root handlers once; later calls only adjust the level."""
    cfg = cfg or get_settings()
    level = (cfg.log_level or "INFO").upper()
    root = logging.getLogger()
    if not getattr(root, "_jp_subtitles_configured", False):
        logging.basicConfig(level=level, handlers=_build_handlers(cfg), force=True)
        root._jp_subtitles_configured = True  # type: ignore[attr-defined]
    logger.setLevel(level)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    charset_logger = logging.getLogger("charset_normalizer")
    charset_logger.setLevel(logging.WARNING)
    charset_logger.propagate = False
