from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List
from urllib.parse import unquote

from charset_normalizer import from_bytes

log = logging.getLogger("jp_subtitles.extract")

BLOCK_SPLIT_RE = re.compile(r"\r?\n\r?\n")
LINE_SPLIT_RE = re.compile(r"\r?\n")
TIMING_RE = re.compile(
    r"(\d+):(\d+):(\d+),(\d+)\s*-->\s*(\d+):(\d+):(\d+),(\d+)"
)
CONTROL_CHAR_RE = re.compile(r"[\x00-\x1f\x7f]")


@dataclass(frozen=True)
class SubtitleCue:
    start: float
    end: float
    text: str


def decode_subtitle(data: bytes) -> str:
    """Decode a downloaded subtitle, guessing the charset (UTF-8, Shift_JIS, ...)."""
    if not data:
        return ""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass
    match = from_bytes(data).best()
    if match is not None:
        log.debug("[extract] decoded subtitle as %s", match.encoding)
        return str(match)
    return data.decode("utf-8", errors="replace")


def _seconds(hours: str, minutes: str, seconds: str, millis: str) -> float:
    return int(hours) * 3600 + int(minutes) * 60 + int(seconds) + int(millis) / 1000


def parse_srt(text: str) -> List[SubtitleCue]:
    """Split SRT text into cues; blocks with a broken timing line are skipped."""
    cues: List[SubtitleCue] = []
    blocks = BLOCK_SPLIT_RE.split(text.lstrip("\ufeff"))
    for block in blocks:
        lines = [line.strip() for line in LINE_SPLIT_RE.split(block)]
        if len(lines) < 3:
            continue
        timing = TIMING_RE.search(lines[1])
        if not timing:
            log.warning("[extract] skipping block with invalid timing: %r", lines[:2])
            continue
        g = timing.groups()
        cues.append(
            SubtitleCue(
                start=_seconds(*g[:4]),
                end=_seconds(*g[4:]),
                text="\n".join(lines[2:]).strip(),
            )
        )
    log.debug("[extract] parsed %d cues from %d blocks", len(cues), len(blocks))
    return cues


def sanitize_file_name(raw_name: str) -> str:
    """Readable form of a URL-style file name for display."""
    try:
        name = unquote(raw_name, errors="strict")
    except UnicodeDecodeError:
        return raw_name
    name = name.strip()
    name = name.replace("[", "(").replace("]", ")")
    return CONTROL_CHAR_RE.sub("", name)
