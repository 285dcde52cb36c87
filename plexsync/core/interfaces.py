"""
Capability interfaces for the collaborators the core talks to.

The traversal and the message handler only depend on these protocols, so they
can run against the Azure clients in `plexsync.azure` or in-memory fakes.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class InboundMessage:
    """One message delivered by a queue transport."""

    id: str
    body: bytes
    # Transport-specific handle used to acknowledge the message
    receipt: Optional[str] = None


@runtime_checkable
class ObjectFetcher(Protocol):
    """Checks for and transfers remote objects."""

    async def exists(self, key: str) -> bool: ...

    async def fetch(self, key: str, local_path: Path) -> int:
        """Transfers one object and returns the bytes written. Raises on failure."""
        ...


@runtime_checkable
class QueueTransport(Protocol):
    """Delivers inbound messages and removes them once handled."""

    async def receive(self) -> Optional[InboundMessage]: ...

    async def acknowledge(self, message: InboundMessage) -> None: ...

    async def renew_lock(self, message: InboundMessage) -> None:
        """Keeps a received message hidden from other receivers a while longer."""
        ...


@runtime_checkable
class OutcomeChannel(Protocol):
    """A send-only destination for plain-text notifications."""

    name: str

    async def send(self, text: str) -> None: ...
