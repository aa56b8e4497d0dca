"""
Runs FFmpeg jobs as subprocesses, one at a time.
"""

import asyncio
import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from twspace_dl.exceptions import FFmpegNotFoundError

log = logging.getLogger(__name__)

PROTOCOL_WHITELIST = "file,https,tls,tcp"


@dataclass(frozen=True)
class FFmpegJob:
    """One FFmpeg invocation: copy `input` into `output`, tagging it with `title`."""

    kind: str
    input: str
    output: Path
    title: str
    extra_args: tuple[str, ...] = ()

    def args(self) -> list[str]:
        """Builds the FFmpeg argument list (without the executable)."""
        return [
            "-hide_banner",
            *self.extra_args,
            "-y",
            "-stats",
            "-v",
            "warning",
            "-i",
            self.input,
            "-c",
            "copy",
            "-metadata",
            f"title={self.title}",
            str(self.output),
        ]


def recorded_job(playlist_path: Path, output: Path, title: str) -> FFmpegJob:
    """Transcodes the rewritten playlist, allowing its remote chunk URLs."""
    return FFmpegJob(
        "recorded",
        str(playlist_path),
        output,
        title,
        ("-protocol_whitelist", PROTOCOL_WHITELIST),
    )


def live_job(dyn_url: str, output: Path, title: str) -> FFmpegJob:
    """Captures the live stream until the broadcast ends."""
    return FFmpegJob("live", dyn_url, output, title)


def concat_job(manifest_path: Path, output: Path, title: str) -> FFmpegJob:
    """Concatenates the files listed in a concat-demuxer manifest."""
    return FFmpegJob(
        "merge", str(manifest_path), output, title, ("-f", "concat", "-safe", "0")
    )


def find_ffmpeg(ffmpeg_path: str = "") -> str:
    """
    Locates the FFmpeg executable.

    Raises:
        FFmpegNotFoundError: If FFmpeg is neither at `ffmpeg_path` nor on PATH.
    """
    executable = shutil.which(ffmpeg_path or "ffmpeg")
    if not executable:
        raise FFmpegNotFoundError(
            f"Cannot find ffmpeg{f' at {ffmpeg_path!r}' if ffmpeg_path else ''}."
        )
    return executable


class FFmpegRunner:
    """
    Spawns FFmpeg for a job and waits for it to exit.

    Process output is forwarded to `output_callback` when one is given and
    discarded otherwise.
    """

    def __init__(
        self,
        executable: str,
        output_callback: Callable[[str], None] | None = None,
    ):
        self.executable = executable
        self.output_callback = output_callback

    async def run(self, job: FFmpegJob) -> int:
        """Runs `job` to completion and returns FFmpeg's exit status."""
        log.debug(f"Running: {self.executable} {' '.join(job.args())}")
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *job.args(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise FFmpegNotFoundError(f"Cannot run ffmpeg: {e}") from e

        while chunk := await process.stdout.read(4096):
            if self.output_callback:
                self.output_callback(chunk.decode("utf-8", errors="replace"))

        return await process.wait()
