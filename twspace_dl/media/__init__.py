"""
Media Processing Layer.

This package is responsible for driving FFmpeg to record, transcode and merge
Space audio.
"""

from .ffmpeg import FFmpegJob, FFmpegRunner, find_ffmpeg

__all__ = ["FFmpegJob", "FFmpegRunner", "find_ffmpeg"]
