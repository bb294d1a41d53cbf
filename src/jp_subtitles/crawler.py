"""Bounded, rate-limit-aware traversal of the kitsunekko mirror on GitHub."""

from __future__ import annotations

import asyncio
import logging
import posixpath
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx

from .context import CrawlState, SessionContext, is_cancelled
from .settings import Settings, get_settings

log = logging.getLogger("jp_subtitles.crawler")

SUPPORTED_EXTENSION = "srt"
UNSUPPORTED_EXTENSIONS = {"ass", "ssa"}

Sleeper = Callable[[float], Awaitable[None]]
CredentialLoader = Callable[[], Optional[str]]


@dataclass(frozen=True)
class SubtitleFile:
    name: str
    url: str


def _settings_token(cfg: Settings) -> CredentialLoader:
    return lambda: cfg.github_token


class RepositoryCrawler:
    """List subtitle files under one directory of the mirror, recursively.

    Subdirectories are descended one at a time with ``crawl_delay_ms`` between
    listings; GitHub starts answering 403 when the tree is fanned out in
    parallel. The credential loader is consulted for every listing so a token
    saved mid-crawl takes effect immediately.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cfg: Optional[Settings] = None,
        sleep: Sleeper = asyncio.sleep,
        credential_loader: Optional[CredentialLoader] = None,
    ) -> None:
        self.client = client
        self.cfg = cfg or get_settings()
        self._sleep = sleep
        self._credential_loader = credential_loader or _settings_token(self.cfg)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": self.cfg.user_agent,
        }
        try:
            token = self._credential_loader()
        except Exception as exc:  # noqa: BLE001
            log.warning("[crawler] failed to read GitHub token: %s", exc)
            token = None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _listing_url(self, directory: str) -> str:
        return f"{self.cfg.contents_url}/{quote(directory, safe='/')}"

    def _relative_path(self, path: str) -> str:
        prefix = self.cfg.repository_root.strip("/") + "/"
        return path[len(prefix):] if path.startswith(prefix) else path

    async def _list_directory(self, directory: str) -> List[dict]:
        try:
            resp = await self.client.get(self._listing_url(directory), headers=self._headers())
        except httpx.HTTPError as exc:
            log.error("[crawler] listing %s failed: %s", directory, exc)
            return []
        if not resp.is_success:
            log.error(
                "[crawler] listing %s failed (status=%s remaining=%s): %s",
                directory,
                resp.status_code,
                resp.headers.get("x-ratelimit-remaining", "?"),
                resp.text[:200],
            )
            return []
        try:
            entries = resp.json()
        except ValueError:
            log.error("[crawler] listing %s returned malformed JSON", directory)
            return []
        if not isinstance(entries, list):
            # the path named a file, not a directory
            return []
        return [entry for entry in entries if isinstance(entry, dict)]

    async def crawl(
        self,
        directory: str,
        state: CrawlState,
        context: Optional[SessionContext] = None,
        depth: int = 0,
    ) -> List[SubtitleFile]:
        if is_cancelled(context):
            return []
        if depth > self.cfg.max_depth or state.seen(directory):
            log.debug("[crawler] skipping %s (depth=%d)", directory, depth)
            return []
        state.mark(directory)

        log.debug("[crawler] listing %s (depth=%d)", directory, depth)
        files: List[SubtitleFile] = []
        subdirectories: List[str] = []
        for entry in await self._list_directory(directory):
            name = str(entry.get("name") or "")
            kind = entry.get("type")
            if kind == "file":
                ext = posixpath.splitext(name)[1].lstrip(".").lower()
                if ext in UNSUPPORTED_EXTENSIONS:
                    log.warning("[crawler] found %s (%s), only SRT is supported", name, ext.upper())
                    continue
                if ext != SUPPORTED_EXTENSION or not entry.get("download_url"):
                    continue
                files.append(SubtitleFile(name=name, url=str(entry["download_url"])))
            elif kind == "dir":
                path = entry.get("path") or posixpath.join(directory, name)
                subdirectories.append(self._relative_path(str(path)))

        for subdirectory in subdirectories:
            if is_cancelled(context):
                return []
            await self._sleep(self.cfg.crawl_delay_ms / 1000.0)
            files.extend(await self.crawl(subdirectory, state, context, depth + 1))

        log.debug("[crawler] %d subtitle files under %s", len(files), directory)
        return files
