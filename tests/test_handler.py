"""
Tests for the per-message pipeline: parse, download, report, acknowledge.
"""

import asyncio
import json

import pytest

from plexsync.core import (
    InboundMessage,
    JobOutcomeReporter,
    MessageHandler,
    TreeDownloader,
    format_outcome,
)
from plexsync.exceptions import TransportError
from plexsync.models.outcome import JobOutcome

from conftest import FakeFetcher, FakeTransport, RecordingChannel, folder, message


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def make_handler(resolver, success_channel, error_channel, transport):
    def _make(fetcher, **kwargs):
        return MessageHandler(
            TreeDownloader(resolver, fetcher),
            JobOutcomeReporter(success_channel, error_channel),
            transport=transport,
            **kwargs,
        )

    return _make


# -----------------------------------------------------------------------------
# Outcome reporting
# -----------------------------------------------------------------------------

def test_format_outcome_texts():
    assert format_outcome(JobOutcome(True, "42")) == (
        "Successfully processed message: 42"
    )
    assert format_outcome(JobOutcome(False, "42")) == "Failed to process message: 42"
    assert format_outcome(JobOutcome(False, "42", "disk full")) == (
        "Exception processing message 42: disk full"
    )


async def test_reporter_routes_by_outcome(success_channel, error_channel):
    reporter = JobOutcomeReporter(success_channel, error_channel)

    assert await reporter.report(JobOutcome(True, "1"))
    assert await reporter.report(JobOutcome(False, "2"))

    assert success_channel.sent == ["Successfully processed message: 1"]
    assert error_channel.sent == ["Failed to process message: 2"]


async def test_reporter_swallows_delivery_failures(success_channel):
    reporter = JobOutcomeReporter(success_channel, RecordingChannel("err", fail=True))

    assert await reporter.report(JobOutcome(False, "7")) is False
    assert success_channel.sent == []


# -----------------------------------------------------------------------------
# Message handling
# -----------------------------------------------------------------------------

async def test_successful_job_notifies_success_and_acknowledges(
    make_handler, success_channel, error_channel, transport
):
    fetcher = FakeFetcher({"root/movies/a.mkv": b"movie"})
    handler = make_handler(fetcher)

    outcome = await handler.handle(
        message("m1", folder("root", [], folder("movies", [("a.mkv", 5)])))
    )

    assert outcome == JobOutcome(success=True, message_id="m1")
    assert success_channel.sent == ["Successfully processed message: m1"]
    assert error_channel.sent == []
    assert transport.acknowledged == ["m1"]


async def test_missing_file_sends_exactly_one_error_notification(
    make_handler, success_channel, error_channel, transport
):
    handler = make_handler(FakeFetcher())

    outcome = await handler.handle(
        message("m2", folder("root", [], folder("movies", [("a.mkv", 5)])))
    )

    assert not outcome.success
    assert "root/movies/a.mkv" in outcome.reason
    assert success_channel.sent == []
    assert len(error_channel.sent) == 1
    assert error_channel.sent[0].startswith("Exception processing message m2: ")
    assert transport.acknowledged == ["m2"]


async def test_unmapped_tree_reports_success(make_handler, success_channel):
    handler = make_handler(FakeFetcher())

    outcome = await handler.handle(
        message("m3", folder("root", [], folder("tv", [("b.mkv", 50)])))
    )

    assert outcome.success
    assert success_channel.sent == ["Successfully processed message: m3"]


async def test_null_body_fails_without_downloading(
    make_handler, error_channel, transport
):
    fetcher = FakeFetcher()
    handler = make_handler(fetcher)

    outcome = await handler.handle(InboundMessage(id="m4", body=b"null"))

    assert outcome == JobOutcome(success=False, message_id="m4")
    assert fetcher.calls == []
    assert error_channel.sent == ["Failed to process message: m4"]
    assert transport.acknowledged == ["m4"]


async def test_malformed_body_is_reported_with_its_description(
    make_handler, error_channel, transport
):
    handler = make_handler(FakeFetcher())

    outcome = await handler.handle(InboundMessage(id="m5", body=b"{oops"))

    assert not outcome.success
    assert "not valid JSON" in outcome.reason
    assert error_channel.sent[0].startswith("Exception processing message m5: ")
    assert transport.acknowledged == ["m5"]


async def test_unexpected_fault_becomes_a_failed_outcome(
    make_handler, error_channel
):
    class ExplodingFetcher(FakeFetcher):
        async def exists(self, key):
            raise KeyError("boom")

    handler = make_handler(ExplodingFetcher())
    outcome = await handler.handle(
        message("m6", folder("root", [], folder("movies", [("a.mkv", 1)])))
    )

    assert not outcome.success
    assert len(error_channel.sent) == 1


async def test_notification_failure_does_not_block_acknowledgment(
    resolver, transport
):
    handler = MessageHandler(
        TreeDownloader(resolver, FakeFetcher()),
        JobOutcomeReporter(
            RecordingChannel("ok", fail=True), RecordingChannel("err", fail=True)
        ),
        transport=transport,
    )

    await handler.handle(message("m7", folder("root")))

    assert transport.acknowledged == ["m7"]


async def test_acknowledgment_fault_goes_to_the_error_hook(make_handler, transport):
    errors = []
    transport.ack_error = TransportError("lock lost", status=410)
    handler = make_handler(FakeFetcher(), on_transport_error=errors.append)

    outcome = await handler.handle(message("m8", folder("root")))

    assert outcome.success
    assert errors == [transport.ack_error]


async def test_handler_without_transport_only_reports(
    resolver, success_channel
):
    handler = MessageHandler(
        TreeDownloader(resolver, FakeFetcher()),
        JobOutcomeReporter(success_channel, RecordingChannel("err")),
    )

    outcome = await handler.handle(
        InboundMessage(id="local", body=json.dumps(folder("root")).encode())
    )

    assert outcome.success
    assert success_channel.sent == ["Successfully processed message: local"]


# -----------------------------------------------------------------------------
# Lock renewal
# -----------------------------------------------------------------------------

async def test_lock_is_renewed_while_a_slow_job_runs(make_handler, transport):
    fetcher = FakeFetcher({"root/movies/a.mkv": b"movie"}, delay=0.35)
    handler = make_handler(fetcher, lock_renewal_interval=0.1)

    outcome = await handler.handle(
        message("m9", folder("root", [], folder("movies", [("a.mkv", 5)])))
    )
    renewals = len(transport.renewed)
    await asyncio.sleep(0.25)

    assert outcome.success
    assert renewals >= 2
    assert set(transport.renewed) == {"m9"}
    # Renewal stops once the message is acknowledged
    assert len(transport.renewed) == renewals
    assert transport.acknowledged == ["m9"]


async def test_lost_lock_is_reported_once_and_the_job_still_finishes(
    make_handler, success_channel, transport
):
    errors = []
    transport.renew_error = TransportError("lock lost", status=410)
    fetcher = FakeFetcher({"root/movies/a.mkv": b"movie"}, delay=0.35)
    handler = make_handler(
        fetcher, on_transport_error=errors.append, lock_renewal_interval=0.1
    )

    outcome = await handler.handle(
        message("m10", folder("root", [], folder("movies", [("a.mkv", 5)])))
    )

    assert outcome.success
    assert errors == [transport.renew_error]
    assert success_channel.sent == ["Successfully processed message: m10"]


async def test_message_without_receipt_is_not_renewed(make_handler, transport):
    fetcher = FakeFetcher({"root/movies/a.mkv": b"movie"}, delay=0.25)
    handler = make_handler(fetcher, lock_renewal_interval=0.05)
    body = json.dumps(folder("root", [], folder("movies", [("a.mkv", 5)])))

    await handler.handle(InboundMessage(id="m11", body=body.encode()))

    assert transport.renewed == []
