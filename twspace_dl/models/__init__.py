"""
Data Models Layer.

This package contains the models that define the core data structures used
throughout the application, such as configuration, Space metadata and run
statistics.
"""

from .config import DownloaderConfig
from .metadata import SpaceMetadata
from .stats import DownloadStats, OutcomeStatus, SpaceOutcome

__all__ = [
    "DownloadStats",
    "DownloaderConfig",
    "OutcomeStatus",
    "SpaceMetadata",
    "SpaceOutcome",
]
