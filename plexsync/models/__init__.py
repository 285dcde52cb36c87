"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application, such as configuration, the
folder tree carried by queue messages and job results.
"""

from .config import ListenerConfig
from .outcome import DownloadResult, DownloadStatus, JobOutcome
from .stats import JobStats
from .tree import FileLeaf, FolderNode, parse_tree

__all__ = [
    "DownloadResult",
    "DownloadStatus",
    "FileLeaf",
    "FolderNode",
    "JobOutcome",
    "JobStats",
    "ListenerConfig",
    "parse_tree",
]
