from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import httpx

from .context import CrawlState, SessionContext, is_cancelled
from .crawler import CredentialLoader, RepositoryCrawler, Sleeper, SubtitleFile
from .extract import decode_subtitle
from .matching import match_subtitle_file
from .metadata import EpisodeIndexEntry, fetch_episode_index, lookup_anime_metadata
from .settings import Settings, get_settings
from .title import generate_title_variants, parse_video_title

log = logging.getLogger("jp_subtitles.service")

ClientFactory = Callable[[], httpx.AsyncClient]


@dataclass(frozen=True)
class SubtitleResult:
    text: str
    file_name: Optional[str] = None

    def as_dict(self) -> dict:
        return {"text": self.text, "fileName": self.file_name}


EMPTY_RESULT = SubtitleResult(text="", file_name=None)


async def fetch_subtitle_file(client: httpx.AsyncClient, file: SubtitleFile) -> str:
    """Download ``file``; failures are logged and yield an empty string."""
    log.debug("[service] fetching subtitle %s", file.url)
    try:
        resp = await client.get(file.url)
    except httpx.HTTPError as exc:
        log.error("[service] failed to fetch subtitle %s: %s", file.url, exc)
        return ""
    if not resp.is_success:
        log.error("[service] failed to fetch subtitle %s (status=%s)", file.url, resp.status_code)
        return ""
    return decode_subtitle(resp.content)


class SubtitleResolver:
    """Title in, one subtitle out: parse, enrich, crawl, match, fetch."""

    def __init__(
        self,
        cfg: Optional[Settings] = None,
        client_factory: Optional[ClientFactory] = None,
        sleep: Sleeper = asyncio.sleep,
        credential_loader: Optional[CredentialLoader] = None,
    ) -> None:
        self.cfg = cfg or get_settings()
        self._client_factory = client_factory or self._default_client
        self._sleep = sleep
        self._credential_loader = credential_loader

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.cfg.request_timeout, follow_redirects=True)

    async def fetch_subtitle(
        self,
        video_title: str,
        context: Optional[SessionContext] = None,
    ) -> SubtitleResult:
        log.info("[service] resolving subtitle for '%s'", video_title)
        state = CrawlState()
        parsed = parse_video_title(video_title)

        async with self._client_factory() as client:
            if is_cancelled(context):
                return EMPTY_RESULT
            meta = await lookup_anime_metadata(client, parsed.main_title, self.cfg)
            if meta.is_empty:
                log.info("[service] no AniList record for '%s', skipping crawl", parsed.main_title)
                return SubtitleResult(text=self.cfg.no_record_text, file_name=None)

            crawler = RepositoryCrawler(
                client,
                self.cfg,
                sleep=self._sleep,
                credential_loader=self._credential_loader,
            )

            async def load_episodes(mal_id: int) -> List[EpisodeIndexEntry]:
                return await fetch_episode_index(client, mal_id, context, self.cfg)

            for variant in generate_title_variants(parsed, meta):
                if is_cancelled(context):
                    return EMPTY_RESULT
                files = await crawler.crawl(variant, state, context)
                if not files:
                    continue

                match = await match_subtitle_file(
                    files,
                    parsed,
                    meta,
                    load_episodes=load_episodes,
                    threshold=self.cfg.fuzzy_threshold,
                )
                if match is None:
                    continue
                if is_cancelled(context):
                    return EMPTY_RESULT
                text = await fetch_subtitle_file(client, match)
                if not text:
                    continue
                log.info("[service] '%s' → %s", video_title, match.name)
                return SubtitleResult(text=text, file_name=match.name)

        log.info("[service] no subtitle found for '%s' (%d directories listed)", video_title, len(state.visited))
        return EMPTY_RESULT
