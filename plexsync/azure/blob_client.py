"""
Object fetcher for an Azure Blob Storage container, over the Blob REST API.
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import aiofiles
import aiohttp

from plexsync.exceptions import BlobNotFoundError, FetchError

log = logging.getLogger(__name__)

BLOB_API_VERSION = "2021-08-06"


class BlobObjectFetcher:
    """
    Checks for and downloads blobs from one container.

    Authentication is by SAS token appended to every request. Each object gets
    a single attempt; a partial download never replaces an existing file.
    """

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        container_url: str,
        sas_token: str = "",
        max_connections: int = 8,
        read_timeout: float = 90,
    ):
        """
        Initializes the fetcher.

        Args:
            container_url: e.g. https://account.blob.core.windows.net/hot
            sas_token: Query string granting read access, with or without '?'.
            max_connections: Size of the connection pool.
            read_timeout: Seconds without data before a transfer is abandoned.
        """
        self.container_url = container_url.rstrip("/")
        self.sas_token = sas_token.lstrip("?")
        self.max_connections = max_connections
        self.read_timeout = read_timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(
                    limit=self.max_connections,
                    ttl_dns_cache=600,
                    enable_cleanup_closed=True,
                )
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    headers={"x-ms-version": BLOB_API_VERSION},
                    timeout=aiohttp.ClientTimeout(
                        total=None, sock_connect=15, sock_read=self.read_timeout
                    ),
                )
                log.debug(f"Created blob session for {self.container_url}")
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BlobObjectFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def blob_url(self, key: str) -> str:
        """Returns the request URL for a blob name, with the SAS token attached."""
        url = f"{self.container_url}/{quote(key, safe='/')}"
        return f"{url}?{self.sas_token}" if self.sas_token else url

    async def exists(self, key: str) -> bool:
        """Returns True if the blob exists in the container."""
        session = await self._get_session()
        async with session.head(self.blob_url(key)) as response:
            if response.status == 404:
                return False
            response.raise_for_status()
            return True

    async def fetch(self, key: str, local_path: Path) -> int:
        """
        Streams a blob into `local_path`, replacing any file already there.

        The body is written to a temporary sibling first and moved into place
        once complete.

        Returns:
            The number of bytes written.

        Raises:
            BlobNotFoundError: If the blob disappeared.
            FetchError: On any HTTP or filesystem fault.
        """
        local_path = Path(local_path)
        temp_path = local_path.with_name(
            f".{local_path.name}.{uuid.uuid4().hex[:8]}.part"
        )
        session = await self._get_session()
        bytes_written = 0
        try:
            async with session.get(self.blob_url(key)) as response:
                if response.status == 404:
                    raise BlobNotFoundError(key)
                response.raise_for_status()

                async with aiofiles.open(temp_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                        await f.write(chunk)
                        bytes_written += len(chunk)

            await asyncio.to_thread(os.replace, temp_path, local_path)
        except FetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise FetchError(key, str(e) or type(e).__name__) from e
        finally:
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

        log.debug(f"Downloaded {key} ({bytes_written} bytes)")
        return bytes_written
