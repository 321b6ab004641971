from __future__ import annotations
import os
import select
import sys
import termios
import time
import tty
from typing import Optional

UP = "up"
DOWN = "down"
PAGE_UP = "page_up"
PAGE_DOWN = "page_down"

_ESCAPES = {
    "\x1b[A": UP,
    "\x1b[B": DOWN,
    "\x1b[5~": PAGE_UP,
    "\x1b[6~": PAGE_DOWN,
}


class KeyReader:
    """
    Non-blocking single-key input from a POSIX terminal in cbreak mode.
    Used as a context manager so the terminal is always restored.
    """

    def __init__(self, stream=None):
        self.stream = stream if stream is not None else sys.stdin
        self._saved = None

    def __enter__(self) -> "KeyReader":
        if self.stream.isatty():
            fd = self.stream.fileno()
            self._saved = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        return self

    def __exit__(self, *exc) -> None:
        if self._saved is not None:
            termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self._saved)
            self._saved = None

    def read(self, timeout: float) -> Optional[str]:
        """A key name, a single character, or None after `timeout` seconds."""
        if self._saved is None:
            time.sleep(timeout)     # not a terminal: just pace the caller
            return None
        fd = self.stream.fileno()
        ready, _, _ = select.select([fd], [], [], timeout)
        if not ready:
            return None
        ch = os.read(fd, 1).decode(errors="ignore")
        if ch != "\x1b":
            return ch
        seq = ch
        while select.select([fd], [], [], 0.01)[0] and len(seq) < 4:
            seq += os.read(fd, 1).decode(errors="ignore")
            if seq in _ESCAPES:
                return _ESCAPES[seq]
        return seq
