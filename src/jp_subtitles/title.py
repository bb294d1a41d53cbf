from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .metadata import AnimeMetadata

log = logging.getLogger("jp_subtitles.title")

YEAR_RE = re.compile(r"\((\d{4})\)")
SEASON_EPISODE_RE = re.compile(r"S(\d+)[\s:]*E(\d+)", re.IGNORECASE)
PAREN_RE = re.compile(r"\(.*?\)")
WHITESPACE_RE = re.compile(r"\s+")
SEGMENT_DELIMITER = " - "


@dataclass(frozen=True)
class ParsedTitle:
    main_title: str
    season: Optional[int] = None
    episode: Optional[int] = None
    episode_title: Optional[str] = None
    year: Optional[int] = None


def _clean_main_title(segment: str) -> str:
    # dropping "(...)" can expose a fresh " - ", so repeat until stable
    while True:
        cleaned = PAREN_RE.sub("", segment).strip()
        head = next((p.strip() for p in cleaned.split(SEGMENT_DELIMITER) if p.strip()), "")
        if head == segment:
            return head
        segment = head


def parse_video_title(video_title: str) -> ParsedTitle:
    """Split a player title such as ``"Show (2021) - S1E2 - Name"`` into fields.

    Never raises: a missing year, season/episode pair or episode title simply
    leaves the corresponding field as ``None``.
    """
    raw = video_title or ""
    log.debug("[title] parsing '%s'", raw)

    year_match = YEAR_RE.search(raw)
    year = int(year_match.group(1)) if year_match else None

    se_match = SEASON_EPISODE_RE.search(raw)
    season = int(se_match.group(1)) if se_match else None
    episode = int(se_match.group(2)) if se_match else None

    parts = [p.strip() for p in raw.split(SEGMENT_DELIMITER)]
    parts = [p for p in parts if p]
    main_title = _clean_main_title(parts[0]) if parts else ""
    if not main_title:
        main_title = raw.strip()

    episode_title: Optional[str] = None
    if se_match and len(parts) > 2:
        episode_title = PAREN_RE.sub("", SEGMENT_DELIMITER.join(parts[2:])).strip()
    elif not se_match and len(parts) > 1:
        episode_title = PAREN_RE.sub("", SEGMENT_DELIMITER.join(parts[1:])).strip()

    return ParsedTitle(
        main_title=main_title,
        season=season,
        episode=episode,
        episode_title=episode_title or None,
        year=year,
    )


def _expand(value: str) -> Iterable[str]:
    base = value.strip()
    yield base
    yield WHITESPACE_RE.sub("+", base)
    yield WHITESPACE_RE.sub(".", base)
    yield WHITESPACE_RE.sub("_", base)
    yield base.lower()
    # directory names on the mirror are sometimes one character short
    if len(base) > 1:
        yield base[:-1]


def generate_title_variants(parsed: ParsedTitle, meta: AnimeMetadata) -> List[str]:
    """Directory-name probes in priority order, without duplicates."""
    sources = [parsed.main_title, meta.english_title, meta.romaji_title, meta.native_title]
    sources.extend(meta.synonyms)

    variants: dict[str, None] = {}
    for source in sources:
        if not source or not source.strip():
            continue
        for candidate in _expand(source):
            variants.setdefault(candidate, None)

    log.debug("[title] generated %d variants for '%s'", len(variants), parsed.main_title)
    return list(variants)
