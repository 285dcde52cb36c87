"""
Utilities for building object keys and local destination paths.
"""

from pathlib import Path
from typing import Optional


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def join_key(ancestor_path: str, name: str) -> str:
    """Appends one segment to a slash-delimited object key."""
    return f"{ancestor_path}/{name}" if ancestor_path else name


def split_key(path: str) -> list[str]:
    """Splits a slash-delimited key into its non-empty segments."""
    return [segment for segment in path.split("/") if segment]


def category_of(path: str) -> Optional[str]:
    """
    Returns the category segment of a folder path: the second segment
    (e.g. 'movies' in 'root/movies/Inception'). None when the path has fewer
    than two segments.
    """
    segments = split_key(path)
    if len(segments) < 2:
        return None
    return segments[1]


def relative_to_category(path: str) -> list[str]:
    """
    Returns the segments below the category, which are the ones recreated
    under the destination root ('root/movies/Inception/Extras' ->
    ['Inception', 'Extras']).
    """
    return split_key(path)[2:]


def local_folder_for(destination_root: str, path: str) -> Path:
    """Maps a folder path onto its local directory under a destination root."""
    return Path(destination_root).joinpath(*relative_to_category(path))
