from __future__ import annotations

import json
import logging
from typing import Any, Dict

from .config import Settings

_json_enabled = False


def setup_logging(settings: Settings) -> None:
    global _json_enabled
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s %(message)s")
    logging.getLogger("mqttlogger").setLevel(level)
    _json_enabled = settings.log_json


def log_json(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    payload: Dict[str, Any] = {"msg": msg}
    payload.update(kwargs)
    logger.log(level, json.dumps(payload, separators=(",", ":")))


def report(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """Operator diagnostic: a JSON line when enabled, plain text otherwise."""
    if _json_enabled:
        log_json(logger, level, msg, **kwargs)
    elif kwargs:
        detail = " ".join(f"{k}={v}" for k, v in kwargs.items())
        logger.log(level, "%s (%s)", msg, detail)
    else:
        logger.log(level, msg)
