"""
JSON event logging for fetch, extraction and cache activity.

Each call writes one line: ``{"event": ..., <fields>}`` with sorted keys.
Fields whose value is None are left out so lines stay short.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc_info: bool = False,
    **fields: Any,
) -> None:
    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": event}
    payload.update((key, value) for key, value in fields.items() if value is not None)
    logger.log(level, json.dumps(payload, default=str, sort_keys=True), exc_info=exc_info)


def elapsed_ms(started: float) -> float:
    """
    Milliseconds since `started`, a ``time.monotonic()`` reading.
    """

    return (time.monotonic() - started) * 1000.0
