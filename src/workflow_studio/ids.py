"""Identity generation for workflows and derived control-room items."""

from __future__ import annotations

import itertools
import threading
import uuid
from typing import Protocol


class IdGenerator(Protocol):
    def new_id(self, prefix: str) -> str: ...


class SequentialIds:
    """Monotonic, per-instance ids: ``review-1``, ``review-2``, ...

    The counter is shared across prefixes so every id handed out by one
    instance is unique.
    """

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def new_id(self, prefix: str) -> str:
        with self._lock:
            n = next(self._counter)
        return f"{prefix}-{n}"


class UuidIds:
    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{uuid.uuid4().hex}"
