"""
Resolver stages that turn a Space id into a downloadable playlist.

The playback chain is dyn_url -> master playlist URL -> playlist URL ->
playlist content. Every stage is cached in the Session, depends on the stage
before it (or on the metadata), and is passed through its extension hook.
"""

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import aiohttp
from pydantic import ValidationError

from twspace_dl.exceptions import BroadcastEndedError, ResolutionError
from twspace_dl.models.metadata import SpaceMetadata
from twspace_dl.storage.cache import (
    DYN_URL,
    FILENAME,
    MASTER_PLAYLIST,
    METADATA,
    PLAYLIST_CONTENT,
    PLAYLIST_URL,
)
from twspace_dl.utils.path import FilenameFormatter

from .hooks import HookPoint

if TYPE_CHECKING:
    from .session import Session

log = logging.getLogger(__name__)

MASTER_PLAYLIST_NAME = "master_playlist.m3u8"

_AUDIO_SPACE_PATH_REGEX = re.compile(r"/audio-space/.*")
_MASTER_SUFFIX_REGEX = re.compile(r"master_playlist\.m3u8.*")

# Errors that mean "the upstream answer was unusable" for a single request
_FETCH_ERRORS = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ValueError,
    KeyError,
    TypeError,
)


def master_playlist_url(dyn_url: str) -> str:
    """Derives the master playlist URL from a Space's dynamic stream URL."""
    if _AUDIO_SPACE_PATH_REGEX.search(dyn_url):
        return _AUDIO_SPACE_PATH_REGEX.sub(
            f"/audio-space/{MASTER_PLAYLIST_NAME}", dyn_url
        )
    base = dyn_url.split("?", 1)[0].rsplit("/", 1)[0]
    return f"{base}/{MASTER_PLAYLIST_NAME}"


def sub_playlist_url(master_url: str, master_body: str) -> str:
    """
    Builds the absolute URL of the audio playlist referenced by a master playlist.

    The fourth line of the master playlist holds the playlist path, relative to
    the master playlist's host.

    Raises:
        ValueError: If the body has fewer than four lines or the host is missing.
    """
    lines = master_body.split("\n")
    if len(lines) < 4 or not lines[3].strip():
        raise ValueError("master playlist has no playlist entry on line 4")

    host = urlparse(master_url).hostname
    if not host:
        raise ValueError(f"cannot parse host from '{master_url}'")
    return f"https://{host}{lines[3].strip()}"


def rewrite_playlist(playlist_body: str, master_url: str) -> str:
    """Makes every chunk reference in a playlist absolute."""
    url_base = _MASTER_SUFFIX_REGEX.sub("", master_url)
    return playlist_body.replace("chunk_", f"{url_base}chunk_")


class SpaceResolver:
    """
    Resolves Space metadata and playback locations through the Session cache.
    """

    def __init__(self, session: "Session"):
        self._session = session

    def _hook(self, point: HookPoint, value: Any) -> Any:
        return self._session.hooks.apply(
            point, value, self._session.username, self._session.space_id
        )

    def _require_space_id(self) -> str:
        if not self._session.space_id:
            raise ResolutionError("metadata", "Session has no Space id to resolve.")
        return self._session.space_id

    # Metadata
    async def metadata(self) -> SpaceMetadata:
        """
        Returns the Space metadata, fetching it once per Session.

        Raises:
            ResolutionError: If the query fails or the response has no media key.
            CredentialError: If no guest token could be obtained.
        """
        meta = await self._session.cache.get_or_resolve(METADATA, self._fetch_metadata)
        return self._hook(HookPoint.METADATA, meta)

    async def _fetch_metadata(self) -> SpaceMetadata:
        space_id = self._require_space_id()
        headers = await self._session.auth.guest_header()
        try:
            document = await self._session.client.fetch_space_metadata(
                space_id, headers
            )
            meta = SpaceMetadata.from_response(document)
        except (ValidationError, *_FETCH_ERRORS) as e:
            reason = f"cannot fetch metadata for space {space_id}: {e}"
            log.error(f"[red]{reason}[/red]")
            raise ResolutionError("metadata", reason) from e

        log.debug(f"Space {space_id} is '{meta.state}': {meta.title!r}")
        return meta

    # Playback location chain
    async def dyn_url(self) -> str:
        """
        Returns the Space's dynamic stream URL.

        Raises:
            BroadcastEndedError: If the Space ended without a replay.
            ResolutionError: If the stream status query fails.
        """
        url = await self._session.cache.get_or_resolve(DYN_URL, self._fetch_dyn_url)
        return self._hook(HookPoint.DYN_URL, url)

    async def _fetch_dyn_url(self) -> str:
        meta = await self.metadata()
        space_id = self._session.space_id

        if meta.is_ended and not meta.is_space_available_for_replay:
            reason = f"Space {space_id} has ended but it is not available for replay"
            log.error(f"[red]{reason}[/red]")
            raise BroadcastEndedError("dyn_url", reason)

        headers = await self._session.auth.guest_header()
        try:
            status = await self._session.client.fetch_stream_status(
                meta.media_key, headers
            )
            location = status["source"]["location"]
            if not isinstance(location, str) or not location:
                raise ValueError("empty source location")
        except _FETCH_ERRORS as e:
            reason = f"Space {space_id} is not available: {e}"
            log.error(f"[red]{reason}[/red]")
            raise ResolutionError("dyn_url", reason) from e
        return location

    async def master_url(self) -> str:
        """Returns the master playlist URL derived from the dynamic URL."""

        async def _derive() -> str:
            return master_playlist_url(await self.dyn_url())

        url = await self._session.cache.get_or_resolve(MASTER_PLAYLIST, _derive)
        return self._hook(HookPoint.MASTER_URL, url)

    async def playlist_url(self) -> str:
        """Returns the absolute URL of the audio playlist."""
        url = await self._session.cache.get_or_resolve(
            PLAYLIST_URL, self._fetch_playlist_url
        )
        return self._hook(HookPoint.PLAYLIST_URL, url)

    async def _fetch_playlist_url(self) -> str:
        master_url = await self.master_url()
        try:
            body = await self._session.client.fetch_playlist(master_url)
            return sub_playlist_url(master_url, body)
        except _FETCH_ERRORS as e:
            reason = f"cannot get the playlist url from {master_url}: {e}"
            log.error(f"[red]{reason}[/red]")
            raise ResolutionError("playlist_url", reason) from e

    async def playlist_content(self) -> str:
        """Returns the audio playlist with every chunk URL made absolute."""
        content = await self._session.cache.get_or_resolve(
            PLAYLIST_CONTENT, self._fetch_playlist_content
        )
        return self._hook(HookPoint.PLAYLIST_CONTENT, content)

    async def _fetch_playlist_content(self) -> str:
        playlist_url = await self.playlist_url()
        master_url = await self.master_url()
        try:
            body = await self._session.client.fetch_playlist(playlist_url)
        except _FETCH_ERRORS as e:
            reason = (
                f"cannot fetch playlist: {playlist_url} "
                f"for space_id: {self._session.space_id}: {e}"
            )
            log.error(f"[red]{reason}[/red]")
            raise ResolutionError("playlist_content", reason) from e
        return rewrite_playlist(body, master_url)

    async def filename(self, template: str) -> str:
        """Renders the output filename (without extension) from the metadata."""

        async def _render() -> str:
            meta = await self.metadata()
            name = FilenameFormatter(template).format(meta.template_vars()).strip()
            return name or self._require_space_id()

        return await self._session.cache.get_or_resolve(FILENAME, _render)

    # User discovery
    async def user_id(self) -> str:
        """Looks up the numeric user id (rest_id) for the Session's username."""
        username = self._session.username
        headers = await self._session.auth.guest_header()
        try:
            info = await self._session.client.fetch_user_by_screen_name(
                username, headers
            )
        except _FETCH_ERRORS as e:
            reason = f"cannot fetch userinfo for user: {username}: {e}"
            log.error(f"[red]{reason}[/red]")
            raise ResolutionError("userinfo", reason) from e

        info = self._hook(HookPoint.USERINFO, info)
        try:
            return str(info["data"]["user"]["result"]["rest_id"])
        except (KeyError, TypeError) as e:
            reason = f"cannot find rest_id for user: {username}"
            log.error(f"[red]{reason}[/red]")
            raise ResolutionError("userinfo", reason) from e

    async def recent_tweets(self, user_id: str) -> str:
        """Returns the raw body of the user's recent timeline."""
        headers = await self._session.auth.guest_header()
        try:
            body = await self._session.client.fetch_user_tweets(user_id, headers)
        except _FETCH_ERRORS as e:
            reason = f"cannot fetch recent tweets for user_id: {user_id}: {e}"
            log.error(f"[red]{reason}[/red]")
            raise ResolutionError("recent_tweets", reason) from e
        return self._hook(HookPoint.RECENT_TWEETS, body)

    def space_urls(self, urls: list[str]) -> list[str]:
        """Passes the discovered Space URLs through the extension hook."""
        return self._hook(HookPoint.SPACE_URLS, urls)

