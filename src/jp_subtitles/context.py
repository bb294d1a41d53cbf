"""Per-call and per-session state threaded through the resolution pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Set


@dataclass
class SessionContext:
    """Cancellation token for one accepted request.

    Written once by the orchestrator when a newer request for the same session
    arrives; pipeline stages only read it.
    """

    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class CrawlState:
    """Directory keys already listed during one top-level resolution call."""

    visited: Set[str] = field(default_factory=set)

    def seen(self, key: str) -> bool:
        return key in self.visited

    def mark(self, key: str) -> None:
        self.visited.add(key)


def is_cancelled(context: SessionContext | None) -> bool:
    return bool(context is not None and context.cancelled)
