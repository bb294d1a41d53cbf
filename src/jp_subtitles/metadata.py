from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import httpx

from .context import SessionContext, is_cancelled
from .settings import Settings, get_settings

log = logging.getLogger("jp_subtitles.metadata")

ANILIST_QUERY = """
query ($search: String) {
    Media(search: $search, type: ANIME) {
        title {
            english
            romaji
            native
        }
        synonyms
        episodes
        idMal
    }
}
"""


@dataclass(frozen=True)
class AnimeMetadata:
    english_title: Optional[str] = None
    romaji_title: Optional[str] = None
    native_title: Optional[str] = None
    synonyms: Tuple[str, ...] = field(default_factory=tuple)
    external_episode_list_id: Optional[int] = None

    @classmethod
    def empty(cls) -> "AnimeMetadata":
        return cls()

    @property
    def is_empty(self) -> bool:
        """True when AniList knows no title or alias for the search."""
        return not (self.english_title or self.romaji_title or self.native_title or self.synonyms)


@dataclass(frozen=True)
class EpisodeIndexEntry:
    number: int
    title: str


def _clean_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _parse_media(media: dict) -> AnimeMetadata:
    titles = media.get("title") or {}
    if not isinstance(titles, dict):
        titles = {}
    synonyms = media.get("synonyms") or []
    if not isinstance(synonyms, list):
        synonyms = []
    mal_id = media.get("idMal")
    return AnimeMetadata(
        english_title=_clean_str(titles.get("english")),
        romaji_title=_clean_str(titles.get("romaji")),
        native_title=_clean_str(titles.get("native")),
        synonyms=tuple(s for s in synonyms if _clean_str(s)),
        external_episode_list_id=mal_id if isinstance(mal_id, int) else None,
    )


async def lookup_anime_metadata(
    client: httpx.AsyncClient,
    title: str,
    cfg: Optional[Settings] = None,
) -> AnimeMetadata:
    """Look ``title`` up on AniList; any failure yields ``AnimeMetadata.empty()``."""
    cfg = cfg or get_settings()
    log.debug("[metadata] AniList lookup for '%s'", title)
    try:
        resp = await client.post(
            cfg.anilist_url,
            json={"query": ANILIST_QUERY, "variables": {"search": title}},
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
    except httpx.HTTPError as exc:
        log.warning("[metadata] AniList lookup failed for '%s': %s", title, exc)
        return AnimeMetadata.empty()

    if not resp.is_success:
        log.warning("[metadata] AniList lookup failed for '%s' (status=%s)", title, resp.status_code)
        return AnimeMetadata.empty()

    try:
        payload = resp.json()
    except ValueError:
        log.warning("[metadata] AniList returned malformed JSON for '%s'", title)
        return AnimeMetadata.empty()

    data = payload.get("data") if isinstance(payload, dict) else None
    media = data.get("Media") if isinstance(data, dict) else None
    if not isinstance(media, dict):
        log.warning("[metadata] AniList has no record for '%s'", title)
        return AnimeMetadata.empty()

    meta = _parse_media(media)
    log.info(
        "[metadata] '%s' → english=%s romaji=%s synonyms=%d mal=%s",
        title,
        meta.english_title,
        meta.romaji_title,
        len(meta.synonyms),
        meta.external_episode_list_id,
    )
    return meta


async def fetch_episode_index(
    client: httpx.AsyncClient,
    mal_id: int,
    context: Optional[SessionContext] = None,
    cfg: Optional[Settings] = None,
) -> List[EpisodeIndexEntry]:
    """Collect every page of the Jikan episode list for ``mal_id``.

    A failed or malformed page ends pagination; whatever was gathered so far
    is returned.
    """
    cfg = cfg or get_settings()
    episodes: List[EpisodeIndexEntry] = []
    page = 1
    more_pages = True

    while more_pages and page <= cfg.episode_max_pages:
        if is_cancelled(context):
            log.debug("[metadata] episode index for MAL %s cancelled at page %d", mal_id, page)
            return episodes
        url = f"{cfg.jikan_base}/anime/{mal_id}/episodes"
        try:
            resp = await client.get(url, params={"page": page})
        except httpx.HTTPError as exc:
            log.warning("[metadata] Jikan page %d for MAL %s failed: %s", page, mal_id, exc)
            break
        if not resp.is_success:
            log.warning("[metadata] Jikan page %d for MAL %s failed (status=%s)", page, mal_id, resp.status_code)
            break
        try:
            payload = resp.json()
            rows = payload["data"]
            more_pages = bool((payload.get("pagination") or {}).get("has_next_page"))
        except (ValueError, KeyError, TypeError, AttributeError):
            log.warning("[metadata] Jikan page %d for MAL %s malformed", page, mal_id)
            break

        for row in rows or []:
            if not isinstance(row, dict) or not isinstance(row.get("mal_id"), int):
                continue
            episodes.append(EpisodeIndexEntry(number=row["mal_id"], title=row.get("title") or ""))
        log.debug("[metadata] fetched %d episodes for MAL %s", len(episodes), mal_id)
        page += 1

    return episodes
