"""
Pydantic models for the folder tree carried by inbound queue messages.
"""

import json
from typing import Any

from pathvalidate import ValidationError as PathValidationError
from pathvalidate import validate_filename
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from plexsync.exceptions import TreeParseError


def _normalize_keys(data: Any) -> Any:
    """Lower-cases the keys of an incoming JSON object."""
    if isinstance(data, dict):
        return {str(key).lower(): value for key, value in data.items()}
    return data


def _check_segment(name: str) -> str:
    """Rejects names that cannot be used as a single path segment."""
    if name in (".", ".."):
        raise ValueError(f"'{name}' is not a valid name.")
    try:
        validate_filename(name, platform="auto")
    except PathValidationError as e:
        raise ValueError(f"'{name}' is not a valid name: {e}") from e
    return name


class FileLeaf(BaseModel):
    """One remote object to be fetched."""

    model_config = ConfigDict(frozen=True)

    name: str
    size: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def lower_keys(cls, data: Any) -> Any:
        return _normalize_keys(data)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_segment(v)


class FolderNode(BaseModel):
    """
    A folder in the remote tree. The root's name is the first segment of every
    object key beneath it.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    files: tuple[FileLeaf, ...] = ()
    subfolders: tuple["FolderNode", ...] = ()

    @model_validator(mode="before")
    @classmethod
    def lower_keys(cls, data: Any) -> Any:
        data = _normalize_keys(data)
        if isinstance(data, dict):
            # A null list is read as an empty one
            for key in ("files", "subfolders"):
                if key in data and data[key] is None:
                    data[key] = ()
        return data

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_segment(v)

    def iter_files(self, ancestor_path: str = ""):
        """Yields (object_key, leaf) pairs in depth-first, declared order."""
        current_path = f"{ancestor_path}/{self.name}" if ancestor_path else self.name
        for leaf in self.files:
            yield f"{current_path}/{leaf.name}", leaf
        for subfolder in self.subfolders:
            yield from subfolder.iter_files(current_path)


def parse_tree(body: bytes | str) -> FolderNode | None:
    """
    Parses a message body into a folder tree.

    Returns:
        The root FolderNode, or None when the body decodes to JSON null.

    Raises:
        TreeParseError: If the body is not JSON or does not describe a tree.
    """
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise TreeParseError(f"Message body is not valid UTF-8: {e}") from e

    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise TreeParseError(f"Message body is not valid JSON: {e}") from e

    if data is None:
        return None
    if not isinstance(data, dict):
        raise TreeParseError(
            f"Expected a JSON object at the top level, got {type(data).__name__}."
        )

    try:
        return FolderNode.model_validate(data)
    except ValidationError as e:
        raise TreeParseError(f"Invalid folder tree:\n{e}") from e
