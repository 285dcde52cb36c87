"""
The message intake loop: pulls messages from the queue and hands each one to
the message handler.
"""

import asyncio
import logging
from typing import Optional

from .handler import ErrorHook, MessageHandler, log_transport_error
from .interfaces import InboundMessage, QueueTransport

log = logging.getLogger(__name__)


class QueueListener:
    """
    Runs a fixed number of workers, each receiving and handling one message at
    a time. Every message is processed independently, so jobs in different
    workers never share mutable state.
    """

    def __init__(
        self,
        transport: QueueTransport,
        handler: MessageHandler,
        max_concurrent_calls: int = 1,
        on_transport_error: ErrorHook = log_transport_error,
        error_backoff: float = 5.0,
    ):
        self.transport = transport
        self.handler = handler
        self.max_concurrent_calls = max_concurrent_calls
        self.on_transport_error = on_transport_error
        self.error_backoff = error_backoff
        self._stop_event = asyncio.Event()
        self.messages_handled = 0

    def stop(self) -> None:
        """Asks every worker to finish its current message and exit."""
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    async def run(self) -> None:
        """Processes messages until `stop()` is called or the task is cancelled."""
        self._stop_event.clear()
        log.info(
            f"[bold cyan]Listener is running[/bold cyan] "
            f"({self.max_concurrent_calls} concurrent call(s))."
        )
        workers = [
            asyncio.create_task(self._worker(i), name=f"plexsync-worker-{i}")
            for i in range(self.max_concurrent_calls)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            log.info("Listener stopped.")

    async def _worker(self, index: int) -> None:
        log.debug(f"Worker {index} started.")
        while not self.stopping:
            message = await self._receive()
            if message is None:
                continue
            await self.handler.handle(message)
            self.messages_handled += 1

    async def _receive(self) -> Optional[InboundMessage]:
        """
        Receives one message, giving up early when the listener is stopped.
        Transport faults go to the error hook and are followed by a short pause.
        """
        receive_task = asyncio.ensure_future(self.transport.receive())
        stop_task = asyncio.ensure_future(self._stop_event.wait())
        try:
            done, pending = await asyncio.wait(
                {receive_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            receive_task.cancel()
            stop_task.cancel()
            raise
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if receive_task not in done:
            return None
        try:
            return receive_task.result()
        except Exception as e:
            self.on_transport_error(e)
            await self._sleep_unless_stopped(self.error_backoff)
            return None

    async def _sleep_unless_stopped(self, delay: float) -> bool:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True
