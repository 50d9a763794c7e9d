"""
Logging setup and structured pipeline events.

Pipeline steps log one JSON object per event so log aggregators can
filter on `event` without regexes:

    {"event": "metrics.pipeline.start", "owner_id": "u1", "habit_id": 4, ...}
"""
from __future__ import annotations

import json
import logging
from typing import Any

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level.upper())
        return
    logging.basicConfig(level=level.upper(), format=_FORMAT)


def _stringify(payload: dict[str, Any]) -> str:
    return json.dumps(payload, default=str)


def log_event(
    logger: logging.Logger,
    level: str,
    event: str,
    **payload: Any,
) -> None:
    message = _stringify({"event": event, **payload})
    if level == "error":
        logger.error(message)
    elif level == "warning":
        logger.warning(message)
    else:
        logger.info(message)
