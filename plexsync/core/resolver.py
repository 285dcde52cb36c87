"""
Routes folder paths to local destination roots by their category segment.
"""

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from plexsync.utils.path import category_of, create_dir

log = logging.getLogger(__name__)


class CategoryResolver:
    """
    Looks up the destination root for a folder path.

    The category is the second segment of the path ('movies' in
    'root/movies/Inception') and is matched without regard to case. The mapping
    is copied on construction and never changes afterwards, so one resolver can
    be shared by concurrent jobs.
    """

    def __init__(self, mapping: Mapping[str, str]):
        self._mapping = MappingProxyType(dict(mapping))
        self._roots = {
            category.casefold(): root for category, root in self._mapping.items()
        }

    @property
    def mapping(self) -> Mapping[str, str]:
        return self._mapping

    @staticmethod
    def resolve_category(path: str) -> Optional[str]:
        """Returns the category of a path, or None when it is undetermined."""
        return category_of(path)

    def destination_root(self, category: str) -> Optional[str]:
        """Returns the configured root for a category, or None when unmapped."""
        return self._roots.get(category.casefold()) or None

    def ensure_destination_roots(self) -> None:
        """Creates every configured destination root. Safe to call repeatedly."""
        for category, root in self._mapping.items():
            create_dir(Path(root))
            log.debug(f"Destination for '{category}' ready at {root}")
