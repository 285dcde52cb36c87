"""
Per-job counters for a single tree download.
"""

import time
from dataclasses import dataclass, field


@dataclass
class JobStats:
    """Tracks what one traversal did. A fresh instance is created for every job."""

    files_fetched: int = 0
    bytes_fetched: int = 0
    folders_visited: int = 0
    branches_skipped: int = 0
    _started: float = field(default_factory=time.monotonic, repr=False)

    def record_file(self, size_bytes: int) -> None:
        self.files_fetched += 1
        self.bytes_fetched += size_bytes

    @property
    def elapsed(self) -> float:
        """Seconds since the job started."""
        return time.monotonic() - self._started
