"""Resolve anime video titles to Japanese SRT subtitles from the kitsunekko mirror."""

from .orchestrator import RequestOrchestrator
from .service import EMPTY_RESULT, SubtitleResolver, SubtitleResult

__all__ = ["RequestOrchestrator", "SubtitleResolver", "SubtitleResult", "EMPTY_RESULT"]
