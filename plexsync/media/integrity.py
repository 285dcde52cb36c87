"""
Provides methods for checking the integrity of downloaded files.
"""

import logging
import os

log = logging.getLogger(__name__)


class FileIntegrityChecker:
    """A collection of static methods for validating downloaded files."""

    @staticmethod
    def check_size(filepath: str, expected_size: int) -> bool:
        """
        Compares a file's size on disk with the size declared in the message.

        Args:
            filepath: Path to the downloaded file.
            expected_size: Size in bytes announced for the remote object.

        Returns:
            True if the sizes match, False otherwise (including a missing file).
        """
        try:
            actual_size = os.path.getsize(filepath)
        except OSError as e:
            log.warning(f"Size check failed for '{filepath}': {e}")
            return False

        if actual_size != expected_size:
            log.warning(
                f"Size check failed for '{filepath}': expected {expected_size} bytes, "
                f"found {actual_size}."
            )
            return False
        return True
