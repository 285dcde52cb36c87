"""
Azure Service Bus queues over the REST API: a peek-lock receiver used as the
listener's transport and a sender used for the outcome channels.
"""

import asyncio
import json
import logging
from typing import Optional
from urllib.parse import quote

import aiohttp

from plexsync.core.interfaces import InboundMessage
from plexsync.exceptions import TransportError

from .auth import ServiceBusAuthenticator

log = logging.getLogger(__name__)


class ServiceBusClient:
    """
    Owns the HTTP session and credentials for one Service Bus namespace and
    hands out queue receivers and senders that share them.
    """

    def __init__(self, connection_string: str, max_connections: int = 8):
        self.authenticator = ServiceBusAuthenticator(connection_string)
        self.base_url = self.authenticator.base_url
        self.max_connections = max_connections
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def get_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(
                    limit=self.max_connections,
                    ttl_dns_cache=300,
                    enable_cleanup_closed=True,
                )
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    timeout=aiohttp.ClientTimeout(total=60, sock_connect=15),
                )
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "ServiceBusClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def queue_url(self, queue_name: str) -> str:
        return f"{self.base_url}/{quote(queue_name, safe='')}"

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": self.authenticator.get_authorization()}

    def get_receiver(
        self, queue_name: str, receive_timeout: int = 60
    ) -> "ServiceBusQueueTransport":
        return ServiceBusQueueTransport(self, queue_name, receive_timeout)

    def get_sender(self, queue_name: str) -> "ServiceBusChannel":
        return ServiceBusChannel(self, queue_name)


class ServiceBusQueueTransport:
    """Receives messages in peek-lock mode and completes them by deleting the lock."""

    def __init__(
        self, client: ServiceBusClient, queue_name: str, receive_timeout: int = 60
    ):
        self.client = client
        self.queue_name = queue_name
        self.receive_timeout = receive_timeout

    async def receive(self) -> Optional[InboundMessage]:
        """
        Long-polls the queue for one message.

        Returns:
            The locked message, or None when the poll timed out empty.

        Raises:
            TransportError: If Service Bus rejects the request.
        """
        session = await self.client.get_session()
        url = f"{self.client.queue_url(self.queue_name)}/messages/head"
        timeout = aiohttp.ClientTimeout(
            total=self.receive_timeout + 30, sock_connect=15
        )
        async with session.post(
            url,
            params={"timeout": str(self.receive_timeout)},
            headers=self.client.auth_headers(),
            timeout=timeout,
        ) as response:
            if response.status == 204:
                return None
            if response.status != 201:
                raise TransportError(
                    f"Receive from '{self.queue_name}' failed: "
                    f"{response.status} {await response.text()}",
                    status=response.status,
                )
            body = await response.read()
            properties = json.loads(response.headers.get("BrokerProperties", "{}"))
            location = response.headers.get("Location")

        message_id = str(
            properties.get("MessageId") or properties.get("SequenceNumber", "")
        )
        if not location and properties.get("LockToken"):
            location = (
                f"{self.client.queue_url(self.queue_name)}/messages/"
                f"{quote(message_id, safe='')}/{properties['LockToken']}"
            )
        log.debug(f"Locked message {message_id} on '{self.queue_name}'")
        return InboundMessage(id=message_id, body=body, receipt=location)

    async def acknowledge(self, message: InboundMessage) -> None:
        """
        Completes a locked message, removing it from the queue.

        Raises:
            TransportError: If the lock was lost or Service Bus rejects the request.
        """
        if not message.receipt:
            raise TransportError(f"Message {message.id} carries no lock to complete.")

        session = await self.client.get_session()
        async with session.delete(
            message.receipt, headers=self.client.auth_headers()
        ) as response:
            if response.status != 200:
                raise TransportError(
                    f"Completing message {message.id} failed: "
                    f"{response.status} {await response.text()}",
                    status=response.status,
                )
        log.debug(f"Completed message {message.id} on '{self.queue_name}'")

    async def renew_lock(self, message: InboundMessage) -> None:
        """
        Extends the lock on a message so it stays invisible while it is handled.

        Raises:
            TransportError: If the lock was already lost or Service Bus rejects
            the request.
        """
        if not message.receipt:
            raise TransportError(f"Message {message.id} carries no lock to renew.")

        session = await self.client.get_session()
        async with session.post(
            message.receipt, headers=self.client.auth_headers()
        ) as response:
            if response.status != 200:
                raise TransportError(
                    f"Renewing the lock of message {message.id} failed: "
                    f"{response.status} {await response.text()}",
                    status=response.status,
                )
        log.debug(f"Renewed lock of message {message.id} on '{self.queue_name}'")


class ServiceBusChannel:
    """Sends plain-text notifications to one queue."""

    def __init__(self, client: ServiceBusClient, queue_name: str):
        self.client = client
        self.queue_name = queue_name

    @property
    def name(self) -> str:
        return self.queue_name

    async def send(self, text: str) -> None:
        """
        Enqueues one message.

        Raises:
            TransportError: If Service Bus rejects the request.
        """
        session = await self.client.get_session()
        headers = {
            **self.client.auth_headers(),
            "Content-Type": "text/plain; charset=utf-8",
        }
        async with session.post(
            f"{self.client.queue_url(self.queue_name)}/messages",
            data=text.encode("utf-8"),
            headers=headers,
        ) as response:
            if response.status != 201:
                raise TransportError(
                    f"Send to '{self.queue_name}' failed: "
                    f"{response.status} {await response.text()}",
                    status=response.status,
                )
