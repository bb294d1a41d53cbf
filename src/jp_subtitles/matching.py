"""Pick one subtitle file out of a crawled directory listing.

The rules are tried strictly in order and the first one that yields a file
wins:

1. exact ``S<season>E<episode>`` (any zero padding)
2. episode number alone, when the season is unknown
3. episode title resolved to a number through the external episode index
4. fuzzy similarity between the show title and the file names
5. the first file in the listing
"""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, Optional, Sequence

from rapidfuzz import fuzz, process

from .crawler import SubtitleFile
from .metadata import AnimeMetadata, EpisodeIndexEntry
from .settings import get_settings
from .title import ParsedTitle

log = logging.getLogger("jp_subtitles.matching")

EpisodeIndexLoader = Callable[[int], Awaitable[Sequence[EpisodeIndexEntry]]]


def _season_episode_pattern(season: int, episode: int) -> re.Pattern[str]:
    return re.compile(rf"S0*{season}E0*{episode}(?!\d)", re.IGNORECASE)


def _episode_pattern(episode: int) -> re.Pattern[str]:
    # "E1" must not match "E10", nor a season marker like "S01" count as
    # episode 1; an "s" inside a word ("eps07") is not a season marker
    return re.compile(rf"(?<!\d)(?<![^a-z]s)(?<!^s)(?:s\d+e)?0*{episode}(?!\d)", re.IGNORECASE)


def _first_matching(files: Sequence[SubtitleFile], pattern: re.Pattern[str]) -> Optional[SubtitleFile]:
    return next((f for f in files if pattern.search(f.name)), None)


def _fuzzy_match(files: Sequence[SubtitleFile], title: str, threshold: float) -> Optional[SubtitleFile]:
    query = title.lower().strip()
    if not query:
        return None
    candidates = [f.name.lower() for f in files]
    best = process.extractOne(
        query,
        candidates,
        scorer=fuzz.partial_ratio,
        score_cutoff=threshold * 100,
    )
    if best is None:
        return None
    _choice, score, index = best
    log.debug("[matching] fuzzy hit %s (score=%.1f)", files[index].name, score)
    return files[index]


async def _match_by_episode_title(
    files: Sequence[SubtitleFile],
    episode_title: str,
    mal_id: int,
    load_episodes: EpisodeIndexLoader,
) -> Optional[SubtitleFile]:
    episodes = await load_episodes(mal_id)
    needle = episode_title.lower()
    entry = next((ep for ep in episodes if needle in (ep.title or "").lower()), None)
    if entry is None:
        log.debug("[matching] no episode titled like '%s' for MAL %s", episode_title, mal_id)
        return None
    return _first_matching(files, _episode_pattern(entry.number))


async def match_subtitle_file(
    files: Sequence[SubtitleFile],
    parsed: ParsedTitle,
    meta: AnimeMetadata,
    load_episodes: Optional[EpisodeIndexLoader] = None,
    threshold: Optional[float] = None,
) -> Optional[SubtitleFile]:
    if not files:
        return None
    if threshold is None:
        threshold = get_settings().fuzzy_threshold
    log.debug("[matching] choosing among %d files for '%s'", len(files), parsed.main_title)

    if parsed.season is not None and parsed.episode is not None:
        hit = _first_matching(files, _season_episode_pattern(parsed.season, parsed.episode))
        if hit:
            log.info("[matching] season+episode match: %s", hit.name)
            return hit

    if parsed.season is None and parsed.episode is not None:
        hit = _first_matching(files, _episode_pattern(parsed.episode))
        if hit:
            log.info("[matching] episode match: %s", hit.name)
            return hit

    if parsed.episode_title and meta.external_episode_list_id and load_episodes is not None:
        hit = await _match_by_episode_title(
            files, parsed.episode_title, meta.external_episode_list_id, load_episodes
        )
        if hit:
            log.info("[matching] episode-title match: %s", hit.name)
            return hit

    hit = _fuzzy_match(files, parsed.main_title, threshold)
    if hit:
        log.info("[matching] fuzzy title match: %s", hit.name)
        return hit

    log.info("[matching] falling back to first file: %s", files[0].name)
    return files[0]
