"""
Result types passed between the traversal, the message handler and the reporter.
"""

from dataclasses import dataclass
from enum import Enum


class DownloadStatus(Enum):
    """Verdict for one branch of the tree."""

    COMPLETED = "completed"
    SKIPPED = "skipped"  # Unmapped branch, does not fail the job
    FAILED = "failed"


@dataclass(frozen=True)
class DownloadResult:
    """The outcome of materializing one subtree."""

    status: DownloadStatus
    reason: str | None = None

    @property
    def ok(self) -> bool:
        """A skipped branch counts as a success for its parent."""
        return self.status is not DownloadStatus.FAILED

    @classmethod
    def completed(cls) -> "DownloadResult":
        return cls(DownloadStatus.COMPLETED)

    @classmethod
    def skipped(cls, reason: str) -> "DownloadResult":
        return cls(DownloadStatus.SKIPPED, reason)

    @classmethod
    def failed(cls, reason: str) -> "DownloadResult":
        return cls(DownloadStatus.FAILED, reason)


@dataclass(frozen=True)
class JobOutcome:
    """The verdict for one inbound message, consumed by the outcome reporter."""

    success: bool
    message_id: str
    reason: str | None = None
