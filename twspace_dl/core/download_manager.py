"""
The main orchestrator for handling Space sources and user batch runs.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Optional

from rich.markup import escape

from twspace_dl.api.client import TwitterAPIClient
from twspace_dl.exceptions import (
    BroadcastEndedError,
    ConfigurationError,
    ExtensionAbort,
    TwspaceError,
)
from twspace_dl.models.config import DownloaderConfig
from twspace_dl.models.stats import DownloadStats, OutcomeStatus, SpaceOutcome
from twspace_dl.utils.path import find_space_urls, parse_space_url

from .composer import DownloadPipelineComposer, DownloadResult, JobRunner
from .hooks import HookDispatcher, SpaceHooks
from .session import Session

log = logging.getLogger(__name__)

_SPACE_ID_REGEX = re.compile(r"^\w+$")


def space_id_from_source(source: str) -> str:
    """
    Accepts a Space URL or a bare Space id and returns the id.

    Raises:
        ConfigurationError: If no Space id can be found in `source`.
    """
    source = source.strip()
    if "/" not in source and _SPACE_ID_REGEX.match(source):
        return source
    if space_id := parse_space_url(source):
        return space_id
    raise ConfigurationError(f"cannot find space id from given url: {source}")


class DownloadManager:
    """Orchestrates Space downloads, one Session per Space."""

    def __init__(
        self,
        config: DownloaderConfig,
        api_client: TwitterAPIClient,
        runner: JobRunner,
        hooks: Optional[SpaceHooks] = None,
    ):
        self.config = config
        self.api_client = api_client
        self.hooks = HookDispatcher(hooks)
        self.stats = DownloadStats()
        self.composer = DownloadPipelineComposer(
            runner,
            Path(config.save_dir),
            config.template,
            keep_recorded=config.keep_recorded,
            fail_fast=config.fail_fast,
        )
        self.semaphore = asyncio.Semaphore(config.max_workers)
        self._downloaded_urls: set[str] = set()
        self._abort: Optional[ExtensionAbort] = None

    def new_session(
        self, space_id: Optional[str] = None, username: Optional[str] = None
    ) -> Session:
        return Session.from_config(
            self.config, self.api_client, self.hooks, space_id, username
        )

    async def download_space(self, session: Session) -> DownloadResult:
        """Downloads one Space; every failure propagates to the caller."""
        return await self.composer.download(session)

    async def execute_downloads(self) -> DownloadStats:
        """
        Processes every configured Space source and username.

        Per-Space failures are recorded and do not stop the run. An extension
        veto stops scheduling new Spaces and is re-raised once in-flight
        downloads finish.
        """
        sources = self._expand_sources(self.config.sources)
        if not sources and not self.config.usernames:
            log.info("No Spaces or users provided. Nothing to do.")
            return self.stats

        tasks = [self._process_source(source) for source in sources]
        tasks += [self.download_user(username) for username in self.config.usernames]
        await asyncio.gather(*tasks)

        if self._abort is not None:
            raise self._abort
        return self.stats

    def _expand_sources(self, sources: list[str]) -> list[str]:
        """Reads files of URLs and removes duplicates, keeping order."""
        expanded = []
        for source in sources:
            if Path(source).is_file():
                log.info(f"Reading Spaces from file: [dim]{escape(source)}[/dim]")
                try:
                    with open(source, "r", encoding="utf-8") as f:
                        expanded.extend(
                            line.strip()
                            for line in f
                            if line.strip() and not line.startswith("#")
                        )
                except (IOError, UnicodeDecodeError) as e:
                    log.error(f"[red]Could not read file {source}: {e}[/red]")
            else:
                expanded.append(source)

        unique = list(dict.fromkeys(expanded))
        if len(unique) < len(expanded):
            log.info(f"Removed {len(expanded) - len(unique)} duplicate sources.")
        return unique

    async def _process_source(self, source: str) -> SpaceOutcome:
        try:
            space_id = space_id_from_source(source)
        except ConfigurationError as e:
            log.error(f"[red]✗ {e}[/red]")
            return self.stats.record(
                SpaceOutcome(source, OutcomeStatus.FAILED, str(e))
            )
        return await self._process_space(self.new_session(space_id), source)

    async def _process_space(self, session: Session, source: str) -> SpaceOutcome:
        """Runs one Space download, converting its failure into an outcome."""
        async with self.semaphore:
            if self._abort is not None:
                return self.stats.record(
                    SpaceOutcome(source, OutcomeStatus.VETOED, "run stopped by extension")
                )

            log.info(f"\n[bold cyan]▶ Space:[/] {escape(source)}")
            try:
                result = await self.download_space(session)
            except BroadcastEndedError as e:
                log.warning(f"[yellow]⚠ {e}[/yellow]")
                return self.stats.record(
                    SpaceOutcome(source, OutcomeStatus.ENDED, e.reason)
                )
            except ExtensionAbort as e:
                if self._abort is None:
                    self._abort = e
                return self.stats.record(
                    SpaceOutcome(source, OutcomeStatus.VETOED, e.reason or "")
                )
            except TwspaceError as e:
                log.error(f"[red]✗ Space {escape(source)} failed: {e}[/red]")
                return self.stats.record(
                    SpaceOutcome(source, OutcomeStatus.FAILED, str(e))
                )
            except Exception as e:
                log.error(
                    f"[red]✗ An unexpected error occurred for {escape(source)}: {e}[/red]",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )
                return self.stats.record(
                    SpaceOutcome(source, OutcomeStatus.FAILED, str(e))
                )

        if not result.succeeded:
            failed = ", ".join(job.kind for job in result.failed_jobs)
            log.error(f"[red]✗ Space {escape(source)}: FFmpeg job(s) failed: {failed}[/red]")
            return self.stats.record(
                SpaceOutcome(
                    source,
                    OutcomeStatus.FAILED,
                    f"FFmpeg job(s) failed: {failed}",
                    result.output,
                )
            )

        log.info(f"[green]✓ Saved[/] [dim]{escape(str(result.output))}[/dim]")
        return self.stats.record(SpaceOutcome(source, OutcomeStatus.OK, output=result.output))

    async def download_user(self, username: str) -> list[SpaceOutcome]:
        """
        Downloads every Space linked from the user's recent tweets.

        URLs downloaded successfully by this manager are remembered, so calling
        this again only fetches Spaces that are new since the last call.
        """
        session = self.new_session(username=username)
        try:
            user_id = await session.resolver.user_id()
            tweets = await session.resolver.recent_tweets(user_id)
        except ExtensionAbort as e:
            if self._abort is None:
                self._abort = e
            return [
                self.stats.record(
                    SpaceOutcome(f"@{username}", OutcomeStatus.VETOED, e.reason or "")
                )
            ]
        except TwspaceError as e:
            return [
                self.stats.record(
                    SpaceOutcome(f"@{username}", OutcomeStatus.FAILED, str(e))
                )
            ]

        space_urls = find_space_urls(tweets)
        if not space_urls:
            log.info(f"No Space tweets found for user_id: {user_id}")
            return []
        log.info(f"Found {len(space_urls)} Space tweets for user_id: {user_id}")

        try:
            space_urls = session.resolver.space_urls(space_urls)
        except ExtensionAbort as e:
            if self._abort is None:
                self._abort = e
            return [
                self.stats.record(
                    SpaceOutcome(f"@{username}", OutcomeStatus.VETOED, e.reason or "")
                )
            ]

        tasks = []
        total = len(space_urls)
        for index, url in enumerate(space_urls, 1):
            if url in self._downloaded_urls:
                log.info(f"[{index}/{total}] user_id: {user_id} url: {url}, already downloaded")
                tasks.append(self._already_downloaded(url))
                continue
            tasks.append(self._process_user_space(session, url, index, total))
        return list(await asyncio.gather(*tasks))

    async def _already_downloaded(self, url: str) -> SpaceOutcome:
        return self.stats.record(SpaceOutcome(url, OutcomeStatus.ALREADY_DOWNLOADED))

    async def _process_user_space(
        self, user_session: Session, url: str, index: int, total: int
    ) -> SpaceOutcome:
        log.info(f"[{index}/{total}] user: {user_session.username} url: {url}")
        try:
            space_id = space_id_from_source(url)
        except ConfigurationError as e:
            return self.stats.record(SpaceOutcome(url, OutcomeStatus.FAILED, str(e)))

        outcome = await self._process_space(user_session.for_space(space_id), url)
        if outcome.status == OutcomeStatus.OK:
            self._downloaded_urls.add(url)
        return outcome
