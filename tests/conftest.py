"""
Global Pytest Configuration and Fixtures.

This module provides in-memory stand-ins for the collaborators the core talks
to (object store, queue transport and outcome channels), plus helpers for
building folder trees and listener configurations.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from plexsync.core import CategoryResolver, InboundMessage
from plexsync.exceptions import TransportError
from plexsync.models.tree import FolderNode

CONNECTION_STRING = (
    "Endpoint=sb://plexsync-test.servicebus.windows.net/;"
    "SharedAccessKeyName=RootManageSharedAccessKey;"
    "SharedAccessKey=c2VjcmV0LWtleQ=="
)
CONTAINER_URL = "https://plexsynctest.blob.core.windows.net/hot"


# -----------------------------------------------------------------------------
# In-memory collaborators
# -----------------------------------------------------------------------------
class FakeFetcher:
    """Serves objects from a dict and records every call in order."""

    def __init__(self, objects: dict[str, bytes] | None = None, delay: float = 0):
        self.objects = dict(objects or {})
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[str, Exception] = {}

    @property
    def fetched(self) -> list[str]:
        return [key for op, key in self.calls if op == "fetch"]

    async def exists(self, key: str) -> bool:
        self.calls.append(("exists", key))
        return key in self.objects

    async def fetch(self, key: str, local_path: Path) -> int:
        self.calls.append(("fetch", key))
        if self.delay:
            await asyncio.sleep(self.delay)
        if key in self.failures:
            raise self.failures[key]
        data = self.objects[key]
        Path(local_path).write_bytes(data)
        return len(data)


class RecordingChannel:
    """Outcome channel that keeps every notification it is given."""

    def __init__(self, name: str, fail: bool = False):
        self.name = name
        self.fail = fail
        self.sent: list[str] = []

    async def send(self, text: str) -> None:
        if self.fail:
            raise TransportError(f"{self.name} is unavailable", status=503)
        self.sent.append(text)


class FakeTransport:
    """Queue transport backed by an asyncio.Queue."""

    def __init__(self, messages: list[InboundMessage] | None = None):
        self.queue: asyncio.Queue = asyncio.Queue()
        for message in messages or []:
            self.queue.put_nowait(message)
        self.acknowledged: list[str] = []
        self.receive_errors: list[Exception] = []
        self.ack_error: Exception | None = None
        self.renewed: list[str] = []
        self.renew_error: Exception | None = None

    async def receive(self) -> InboundMessage | None:
        if self.receive_errors:
            raise self.receive_errors.pop(0)
        return await self.queue.get()

    async def acknowledge(self, message: InboundMessage) -> None:
        if self.ack_error is not None:
            raise self.ack_error
        self.acknowledged.append(message.id)

    async def renew_lock(self, message: InboundMessage) -> None:
        if self.renew_error is not None:
            raise self.renew_error
        self.renewed.append(message.id)


# -----------------------------------------------------------------------------
# Tree helpers
# -----------------------------------------------------------------------------
def folder(name: str, files: list[tuple[str, int]] | None = None, *subfolders):
    """Builds the JSON-ready dict of one folder."""
    return {
        "name": name,
        "files": [{"name": n, "size": s} for n, s in (files or [])],
        "subfolders": list(subfolders),
    }


def tree(data: dict[str, Any]) -> FolderNode:
    return FolderNode.model_validate(data)


def message(message_id: str, data: Any) -> InboundMessage:
    return InboundMessage(
        id=message_id,
        body=json.dumps(data).encode("utf-8"),
        receipt=f"lock-{message_id}",
    )


# -----------------------------------------------------------------------------
# Shared Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def media_roots(tmp_path) -> dict[str, str]:
    """Category mapping whose roots live under the test's temp directory."""
    return {"movies": str(tmp_path / "media" / "movies")}


@pytest.fixture
def resolver(media_roots) -> CategoryResolver:
    return CategoryResolver(media_roots)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def success_channel() -> RecordingChannel:
    return RecordingChannel("plex-downloads-success")


@pytest.fixture
def error_channel() -> RecordingChannel:
    return RecordingChannel("plex-downloads-error")


@pytest.fixture
def config_kwargs(tmp_path) -> dict[str, Any]:
    """A valid, complete set of ListenerConfig arguments."""
    return {
        "connection_string": CONNECTION_STRING,
        "listen_queue": "plex-downloads",
        "success_queue": "plex-downloads-success",
        "error_queue": "plex-downloads-error",
        "max_concurrent_calls": 2,
        "receive_timeout": 30,
        "container_url": CONTAINER_URL,
        "sas_token": "?sv=2021-08-06&sig=abc%2F123",
        "media_mappings": {"movies": str(tmp_path / "movies")},
        "verify_size": False,
        "log_level": "info",
        "json_log_dir": "",
    }
