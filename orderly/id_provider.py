from __future__ import annotations

from typing import Protocol
from uuid import uuid4


class IdProvider(Protocol):
    def new_id(self) -> str: ...


class RequestIdProvider:
    """Short, prefixed ids used to correlate a request with backend log lines."""

    def __init__(self, prefix: str = "req") -> None:
        self._prefix = prefix

    def new_id(self) -> str:
        return f"{self._prefix}_{uuid4().hex[:16]}"
