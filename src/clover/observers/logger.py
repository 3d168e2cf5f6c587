# src/clover/observers/logger.py
from __future__ import annotations

import logging

from .events import BaseEvent


class LoggerObserver:
    """Mirrors every event into the run log at debug, prefixed with its node."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        fields = {k: v for k, v in event.dict().items() if k not in ("ts", "run_id", "node")}
        detail = " ".join(f"{k}={v}" for k, v in fields.items())
        self.logger.debug("[%s] event %s %s", event.node, type(event).__name__, detail)
