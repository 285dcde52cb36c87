"""
Core engine for mirroring queued folder trees.

The `QueueListener` pulls messages from a transport and hands each one to the
`MessageHandler`, which drives one `TreeDownloader` run and reports the result
through the `JobOutcomeReporter`.
"""

from .handler import MessageHandler
from .interfaces import InboundMessage, ObjectFetcher, OutcomeChannel, QueueTransport
from .listener import QueueListener
from .reporter import JobOutcomeReporter, format_outcome
from .resolver import CategoryResolver
from .tree_downloader import TreeDownloader

__all__ = [
    "CategoryResolver",
    "InboundMessage",
    "JobOutcomeReporter",
    "MessageHandler",
    "ObjectFetcher",
    "OutcomeChannel",
    "QueueListener",
    "QueueTransport",
    "TreeDownloader",
    "format_outcome",
]
