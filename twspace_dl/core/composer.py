"""
Builds and runs the FFmpeg job sequence for a Space.

An ended Space with a replay needs one job: transcode the recorded playlist.
A running Space needs three, in order: capture the live stream, transcode what
was recorded before the capture started, then concatenate recorded + live.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

import aiofiles
from pathvalidate import sanitize_filename

from twspace_dl.exceptions import JobFailedError
from twspace_dl.media.ffmpeg import FFmpegJob, concat_job, live_job, recorded_job
from twspace_dl.utils.path import create_dir

from .session import Session

log = logging.getLogger(__name__)


class JobRunner(Protocol):
    async def run(self, job: FFmpegJob) -> int: ...


@dataclass(frozen=True)
class OutputPaths:
    """Every file a download may write, all inside the save directory."""

    playlist: Path
    output: Path
    recorded: Path
    live: Path
    manifest: Path

    @classmethod
    def build(
        cls, save_dir: Path, name: str, title: str, space_id: str = ""
    ) -> "OutputPaths":
        save_dir = save_dir.expanduser().resolve()
        manifest_stem = sanitize_filename(title, platform="auto") or name
        if space_id:
            # Same-titled Spaces can be recorded at once
            manifest_stem = f"{manifest_stem}-{space_id}"
        return cls(
            playlist=save_dir / f"{name}.m3u8",
            output=save_dir / f"{name}.m4a",
            recorded=save_dir / f"{name}_recorded.m4a",
            live=save_dir / f"{name}_live.m4a",
            manifest=save_dir / f"{manifest_stem}-concat.txt",
        )


@dataclass
class DownloadResult:
    """Outcome of one Space's job sequence."""

    space_id: str
    output: Path
    jobs: list[FFmpegJob]
    statuses: list[int] = field(default_factory=list)

    @property
    def failed_jobs(self) -> list[FFmpegJob]:
        return [job for job, status in zip(self.jobs, self.statuses) if status != 0]

    @property
    def succeeded(self) -> bool:
        return len(self.statuses) == len(self.jobs) and not self.failed_jobs


def build_jobs(
    is_running: bool, paths: OutputPaths, title: str, dyn_url: Optional[str]
) -> list[FFmpegJob]:
    """
    Returns the ordered job list for a Space.

    Running: [live capture, recorded transcode, concat merge].
    Otherwise: [recorded transcode] straight into the final output.
    """
    if not is_running:
        return [recorded_job(paths.playlist, paths.output, title)]

    if not dyn_url:
        raise ValueError("A running Space needs its dynamic URL for live capture.")
    return [
        live_job(dyn_url, paths.live, title),
        recorded_job(paths.playlist, paths.recorded, title),
        concat_job(paths.manifest, paths.output, title),
    ]


def _manifest_line(path: Path) -> str:
    escaped = str(path).replace("'", "'\\''")
    return f"file '{escaped}'\n"


class DownloadPipelineComposer:
    """
    Resolves a Space through its Session and runs the matching FFmpeg jobs.

    Jobs run strictly one after another. A job that exits non-zero is logged
    and the sequence continues, unless `fail_fast` is set.
    """

    def __init__(
        self,
        runner: JobRunner,
        save_dir: Path,
        template: str,
        keep_recorded: bool = True,
        fail_fast: bool = False,
    ):
        self.runner = runner
        self.save_dir = Path(save_dir)
        self.template = template
        self.keep_recorded = keep_recorded
        self.fail_fast = fail_fast

    async def download(self, session: Session) -> DownloadResult:
        """
        Resolves the playlist for `session` and runs the job sequence.

        Raises:
            TwspaceError: Any resolution failure, an extension veto, or a job
            failure when `fail_fast` is enabled.
        """
        resolver = session.resolver
        playlist = await resolver.playlist_content()
        name = await resolver.filename(self.template)
        dyn_url = await resolver.dyn_url()
        meta = await resolver.metadata()

        create_dir(self.save_dir)
        paths = OutputPaths.build(
            self.save_dir, name, meta.title or name, str(session.space_id or "")
        )
        jobs = build_jobs(meta.is_running, paths, meta.title, dyn_url)

        await self._write_text(paths.playlist, playlist)
        if meta.is_running:
            log.info(
                f"[cyan]Space {session.space_id} is live; "
                "recording the live stream and the earlier part.[/cyan]"
            )
            await self._write_text(
                paths.manifest,
                _manifest_line(paths.recorded) + _manifest_line(paths.live),
            )

        result = DownloadResult(str(session.space_id), paths.output, jobs)
        await self.run_jobs(result)

        if meta.is_running:
            self._cleanup(result, paths)
        return result

    async def run_jobs(self, result: DownloadResult) -> None:
        """Runs each job in order, recording its exit status on `result`."""
        total = len(result.jobs)
        for index, job in enumerate(result.jobs, 1):
            log.info(f"[{index}/{total}] FFmpeg {job.kind}: [dim]{job.output.name}[/dim]")
            status = await self.runner.run(job)
            result.statuses.append(status)
            if status != 0:
                log.warning(
                    f"[yellow]FFmpeg {job.kind} job exited with status {status}.[/yellow]"
                )
                if self.fail_fast:
                    raise JobFailedError(job.kind, status)

    def _cleanup(self, result: DownloadResult, paths: OutputPaths) -> None:
        """Removes intermediates once the merge has produced the final file."""
        if result.statuses[-1:] != [0]:
            log.warning(
                "[yellow]Merge did not succeed; keeping intermediate files "
                f"in {paths.output.parent}.[/yellow]"
            )
            return

        to_remove = [paths.manifest, paths.live]
        if self.keep_recorded:
            log.info(f"Keeping recorded part: [dim]{paths.recorded.name}[/dim]")
        else:
            to_remove.append(paths.recorded)
            log.info(f"Removing recorded part: [dim]{paths.recorded.name}[/dim]")

        for path in to_remove:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                log.warning(f"[yellow]Could not remove {path.name}: {e}[/yellow]")

    @staticmethod
    async def _write_text(path: Path, content: str) -> None:
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(content)
