from __future__ import annotations
import logging
import os
from collections import deque
from logging.handlers import RotatingFileHandler
from typing import Deque, List

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(path: str, level: str = "INFO") -> logging.Logger:
    """
    File sink for the `hostwatch` logger tree. Safe to call twice; no
    stream handler, the dashboard owns the terminal.
    """
    path = os.path.expanduser(path)
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    logger = logging.getLogger("hostwatch")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    logger.propagate = False

    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        h = RotatingFileHandler(path, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
        h.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(h)
    return logger


class RecentLogHandler(logging.Handler):
    """Keeps the last N formatted records for the dashboard's log panel."""

    def __init__(self, capacity: int = 10, level: int = logging.INFO):
        super().__init__(level)
        self._lines: Deque[str] = deque(maxlen=capacity)
        self.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        self.acquire()
        try:
            self._lines.append(line)
        finally:
            self.release()

    def lines(self) -> List[str]:
        self.acquire()
        try:
            return list(self._lines)
        finally:
            self.release()
