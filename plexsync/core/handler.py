"""
Processes one inbound message: parse, download, report, acknowledge.
"""

import asyncio
import logging
from typing import Callable, Optional

from rich.markup import escape

from plexsync.models.outcome import JobOutcome
from plexsync.models.stats import JobStats
from plexsync.models.tree import parse_tree
from plexsync.utils.formatting import format_duration, format_size
from plexsync.utils.structured_logger import JobLogger

from .interfaces import InboundMessage, QueueTransport
from .reporter import JobOutcomeReporter
from .tree_downloader import TreeDownloader

log = logging.getLogger(__name__)

ErrorHook = Callable[[BaseException], None]


def log_transport_error(error: BaseException) -> None:
    """Default hook for faults raised by the queue transport itself."""
    log.error(f"[red]Error in the queue processor: {escape(str(error))}[/red]")


class MessageHandler:
    """
    Turns one inbound message into exactly one notification and one
    acknowledgment.

    Messages are acknowledged whatever the outcome, so a failed job is never
    redelivered; resubmitting is left to the producer.
    While a job runs its message lock is renewed every `lock_renewal_interval`
    seconds, so a slow download is not handed to another receiver.
    """

    def __init__(
        self,
        downloader: TreeDownloader,
        reporter: JobOutcomeReporter,
        transport: Optional[QueueTransport] = None,
        job_logger: Optional[JobLogger] = None,
        on_transport_error: ErrorHook = log_transport_error,
        lock_renewal_interval: float = 30.0,
    ):
        self.downloader = downloader
        self.reporter = reporter
        self.transport = transport
        self.job_logger = job_logger
        self.on_transport_error = on_transport_error
        self.lock_renewal_interval = lock_renewal_interval

    async def handle(
        self, message: InboundMessage, stats: Optional[JobStats] = None
    ) -> JobOutcome:
        """Runs the job for one message and returns its outcome."""
        log.info(f"Received message [bold]{escape(message.id)}[/bold]")
        log.debug(f"Message body: {escape(repr(message.body))}")

        renewal = self._start_lock_renewal(message)
        try:
            outcome = await self.process(message, stats)

            if outcome.success:
                log.info(
                    f"[green]✓ All files for {escape(message.id)} downloaded.[/green]"
                )
            else:
                log.warning(
                    f"[yellow]There were issues processing message "
                    f"{escape(message.id)}.[/yellow]"
                )

            await self.reporter.report(outcome)
        finally:
            if renewal is not None:
                renewal.cancel()
                await asyncio.gather(renewal, return_exceptions=True)
        await self._acknowledge(message)
        return outcome

    async def process(
        self, message: InboundMessage, stats: Optional[JobStats] = None
    ) -> JobOutcome:
        """
        Parses the tree and downloads it. Every fault is converted into a
        failed outcome carrying its description.
        """
        stats = stats if stats is not None else JobStats()
        try:
            tree = parse_tree(message.body)
            if tree is None:
                log.error("[red]Failed to deserialize the folder structure.[/red]")
                outcome = JobOutcome(success=False, message_id=message.id)
            else:
                if self.job_logger:
                    self.job_logger.job_started(
                        message.id, tree.name, sum(1 for _ in tree.iter_files())
                    )
                result = await self.downloader.download(
                    tree, stats=stats, message_id=message.id
                )
                outcome = JobOutcome(
                    success=result.ok,
                    message_id=message.id,
                    reason=None if result.ok else result.reason,
                )
        except Exception as e:
            log.error(
                f"[red]Error processing message {escape(message.id)}: "
                f"{escape(str(e))}[/red]",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            outcome = JobOutcome(
                success=False, message_id=message.id, reason=str(e) or type(e).__name__
            )

        log.info(
            f"  [dim]{stats.files_fetched} files ({format_size(stats.bytes_fetched)}), "
            f"{stats.branches_skipped} skipped branches in "
            f"{format_duration(stats.elapsed)}[/dim]"
        )
        if self.job_logger:
            self.job_logger.job_completed(
                message.id,
                outcome.success,
                stats.files_fetched,
                stats.bytes_fetched,
                stats.branches_skipped,
                stats.elapsed,
            )
        return outcome

    def _start_lock_renewal(
        self, message: InboundMessage
    ) -> Optional["asyncio.Task[None]"]:
        if self.transport is None or not message.receipt:
            return None
        return asyncio.create_task(self._keep_lock(message))

    async def _keep_lock(self, message: InboundMessage) -> None:
        """Renews the message lock until cancelled or the lock is lost."""
        while True:
            await asyncio.sleep(self.lock_renewal_interval)
            try:
                await self.transport.renew_lock(message)
            except Exception as e:
                self.on_transport_error(e)
                return

    async def _acknowledge(self, message: InboundMessage) -> None:
        if self.transport is None:
            return
        try:
            await self.transport.acknowledge(message)
        except Exception as e:
            self.on_transport_error(e)
