"""Debounced, cancel-safe entry point for subtitle requests.

Two independent mechanisms guard the pipeline:

* a process-wide debounce record drops a request whose title equals the last
  accepted title when it arrives within ``debounce_ms``;
* a per-session map of :class:`SessionContext` lets a newer request for the
  same session cancel the one still running.

Debounced, cancelled and not-found requests all answer with the same empty
result.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional

from .context import SessionContext
from .service import EMPTY_RESULT, SubtitleResolver, SubtitleResult
from .settings import Settings, get_settings

log = logging.getLogger("jp_subtitles.orchestrator")

Clock = Callable[[], float]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class DebounceRecord:
    last_title: str = ""
    last_timestamp_ms: float = 0.0
    accepted: bool = False


class RequestOrchestrator:
    def __init__(
        self,
        resolver: Optional[SubtitleResolver] = None,
        cfg: Optional[Settings] = None,
        clock: Clock = _monotonic_ms,
    ) -> None:
        self.cfg = cfg or get_settings()
        self.resolver = resolver or SubtitleResolver(self.cfg)
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[Hashable, SessionContext] = {}
        self._debounce = DebounceRecord()

    def _is_duplicate(self, title: str, now: float) -> bool:
        record = self._debounce
        return (
            record.accepted
            and title == record.last_title
            and now - record.last_timestamp_ms < self.cfg.debounce_ms
        )

    def _accept(self, title: str, session_id: Hashable) -> Optional[SessionContext]:
        with self._lock:
            now = self._clock()
            if self._is_duplicate(title, now):
                return None
            self._debounce = DebounceRecord(last_title=title, last_timestamp_ms=now, accepted=True)

            previous = self._sessions.get(session_id)
            if previous is not None:
                log.info("[orchestrator] session %s: cancelling superseded search", session_id)
                previous.cancel()
            context = SessionContext()
            self._sessions[session_id] = context
            return context

    def _release(self, session_id: Hashable, context: SessionContext) -> None:
        with self._lock:
            if self._sessions.get(session_id) is context:
                del self._sessions[session_id]

    def active_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)

    async def handle(self, title: str, session_id: Hashable = 0) -> SubtitleResult:
        context = self._accept(title, session_id)
        if context is None:
            log.debug("[orchestrator] debounced duplicate request for '%s'", title)
            return EMPTY_RESULT

        try:
            result = await self.resolver.fetch_subtitle(title, context)
        except Exception:  # noqa: BLE001
            log.error("[orchestrator] subtitle search failed for '%s'", title, exc_info=True)
            result = EMPTY_RESULT
        finally:
            self._release(session_id, context)

        if context.cancelled:
            log.info("[orchestrator] session %s: discarding stale result for '%s'", session_id, title)
            return EMPTY_RESULT
        return result
