"""
Sends the verdict of each job to the success or error channel.
"""

import logging

from rich.markup import escape

from plexsync.models.outcome import JobOutcome

from .interfaces import OutcomeChannel

log = logging.getLogger(__name__)


def format_outcome(outcome: JobOutcome) -> str:
    """Builds the notification text for a job outcome."""
    if outcome.success:
        return f"Successfully processed message: {outcome.message_id}"
    if outcome.reason:
        return f"Exception processing message {outcome.message_id}: {outcome.reason}"
    return f"Failed to process message: {outcome.message_id}"


class JobOutcomeReporter:
    """Routes one notification per job to one of two fixed channels."""

    def __init__(self, success_channel: OutcomeChannel, error_channel: OutcomeChannel):
        self.success_channel = success_channel
        self.error_channel = error_channel

    async def report(self, outcome: JobOutcome) -> bool:
        """
        Sends the outcome notification.

        Delivery failures are logged and never raised, so they cannot block the
        acknowledgment of the inbound message.

        Returns:
            True if the channel accepted the notification.
        """
        channel = self.success_channel if outcome.success else self.error_channel
        text = format_outcome(outcome)
        try:
            await channel.send(text)
        except Exception as e:
            log.error(
                f"[red]Failed to send message to queue {channel.name}: "
                f"{escape(str(e))}[/red]",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            return False
        log.debug(f"Sent message to queue: {channel.name}")
        return True
