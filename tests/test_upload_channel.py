from types import SimpleNamespace
from unittest import mock

import pytest
from azure.core.exceptions import HttpResponseError, ServiceRequestError, ServiceResponseError

from agentic_retrieval import quickstart
from agentic_retrieval.documents import fallback_documents
from agentic_retrieval.exceptions import UploadChannelClosedError
from agentic_retrieval.upload import (
    BufferedUploadChannel,
    IndexAction,
    BATCH_ADDED,
    BEFORE_DOCUMENT_SENT,
    BATCH_SUCCEEDED,
    BATCH_FAILED,
)

from conftest import FakeSearchClient


def _docs(n):
    return [{"id": str(i), "page_chunk": f"chunk {i}"} for i in range(1, n + 1)]


def _record_events(channel):
    events = []
    channel.on(BATCH_ADDED, lambda batch: events.append((BATCH_ADDED, batch.batch_id, batch.size)))
    channel.on(BEFORE_DOCUMENT_SENT, lambda action, key: events.append((BEFORE_DOCUMENT_SENT, action, key)))
    channel.on(BATCH_SUCCEEDED, lambda outcome: events.append((BATCH_SUCCEEDED, outcome.batch_id, outcome.succeeded)))
    channel.on(BATCH_FAILED, lambda outcome: events.append((BATCH_FAILED, outcome.batch_id, outcome.failed_keys)))
    return events


def test_auto_flush_and_flush_send_every_document():
    client = FakeSearchClient()

    with BufferedUploadChannel(client, batch_size=2) as channel:
        events = _record_events(channel)
        channel.upload_documents(_docs(5))
        # two full batches go out as soon as they are queued
        assert len(client.batches) == 2
        assert channel.pending_count == 1
        outcomes = channel.flush()

    assert len(client.batches) == 3
    assert sorted(client.documents) == ["1", "2", "3", "4", "5"]
    assert [o.succeeded for o in outcomes] == [2, 2, 1]
    assert all(o.ok for o in outcomes)
    assert channel.disposed

    assert events[:4] == [
        (BATCH_ADDED, 1, 2),
        (BEFORE_DOCUMENT_SENT, IndexAction.UPLOAD, "1"),
        (BEFORE_DOCUMENT_SENT, IndexAction.UPLOAD, "2"),
        (BATCH_SUCCEEDED, 1, 2),
    ]
    assert [e for e in events if e[0] == BATCH_SUCCEEDED] == [
        (BATCH_SUCCEEDED, 1, 2),
        (BATCH_SUCCEEDED, 2, 2),
        (BATCH_SUCCEEDED, 3, 1),
    ]


def test_exit_flushes_remaining_documents():
    client = FakeSearchClient()
    with BufferedUploadChannel(client, batch_size=100) as channel:
        channel.upload_documents(fallback_documents())
    assert sorted(client.documents) == ["1", "2"]
    assert len(channel.outcomes) == 1


def test_rejected_documents_end_in_batch_failed():
    client = FakeSearchClient(reject={"2"})
    with BufferedUploadChannel(client, batch_size=10) as channel:
        events = _record_events(channel)
        channel.upload_documents(_docs(3))
        outcomes = channel.flush()

    assert outcomes[0].succeeded == 2
    assert outcomes[0].failed_keys == ["2"]
    assert not outcomes[0].ok
    assert (BATCH_FAILED, 1, ["2"]) in events
    assert not any(e[0] == BATCH_SUCCEEDED for e in events)


def test_request_error_ends_in_batch_failed_without_retry():
    client = mock.Mock()
    client.index_documents.side_effect = HttpResponseError(message="service unavailable")

    with BufferedUploadChannel(client, batch_size=10) as channel:
        failures = []
        channel.on(BATCH_FAILED, failures.append)
        channel.upload_documents(_docs(2))
        channel.flush()

    assert client.index_documents.call_count == 1
    assert len(failures) == 1
    assert failures[0].succeeded == 0
    assert failures[0].failed_keys == ["1", "2"]
    assert "service unavailable" in failures[0].error


def test_mixed_actions_reach_the_batch():
    client = mock.Mock()
    client.index_documents.return_value = [
        SimpleNamespace(key="1", succeeded=True, error_message=None),
        SimpleNamespace(key="2", succeeded=True, error_message=None),
    ]
    with BufferedUploadChannel(client) as channel:
        sent = []
        channel.on(BEFORE_DOCUMENT_SENT, lambda action, key: sent.append((action, key)))
        channel.merge_or_upload_documents([{"id": "1"}])
        channel.delete_documents([{"id": "2"}])

    assert sent == [(IndexAction.MERGE_OR_UPLOAD, "1"), (IndexAction.DELETE, "2")]
    batch = client.index_documents.call_args[0][0]
    assert [a.action_type for a in batch.actions] == ["mergeOrUpload", "delete"]


def test_dispose_runs_once_when_body_raises():
    client = FakeSearchClient()
    with mock.patch.object(BufferedUploadChannel, "dispose", autospec=True,
                           side_effect=BufferedUploadChannel.dispose) as dispose:
        with pytest.raises(RuntimeError):
            with BufferedUploadChannel(client, batch_size=10) as channel:
                channel.upload_documents(_docs(1))
                raise RuntimeError("boom")
    assert dispose.call_count == 1
    # nothing was flushed on the error path
    assert client.batches == []


def test_dispose_runs_once_when_upload_fails_in_pipeline():
    client = mock.Mock()
    client.index_documents.side_effect = HttpResponseError(message="boom")

    def _raise_on_failure(self, event, handler):
        if event == BATCH_FAILED:
            def handler(outcome):
                raise RuntimeError(f"batch {outcome.batch_id} failed")
        original_on(self, event, handler)

    original_on = BufferedUploadChannel.on
    with mock.patch.object(BufferedUploadChannel, "on", autospec=True, side_effect=_raise_on_failure), \
            mock.patch.object(BufferedUploadChannel, "dispose", autospec=True,
                              side_effect=BufferedUploadChannel.dispose) as dispose:
        with pytest.raises(RuntimeError, match="batch 1 failed"):
            quickstart.upload_documents(client, fallback_documents())

    assert dispose.call_count == 1


@pytest.mark.parametrize("error", [
    ServiceRequestError("connection reset"),
    ServiceResponseError("response ended prematurely"),
])
def test_transport_error_fails_the_batch(error):
    client = mock.Mock()
    client.index_documents.side_effect = error
    channel = BufferedUploadChannel(client, batch_size=10)
    events = _record_events(channel)

    channel.upload_documents(_docs(2))
    outcomes = channel.flush()

    assert len(outcomes) == 1
    assert not outcomes[0].ok
    assert outcomes[0].succeeded == 0
    assert outcomes[0].failed_keys == ["1", "2"]
    assert str(error) in outcomes[0].error
    assert (BATCH_FAILED, 1, ["1", "2"]) in events
    assert not any(e[0] == BATCH_SUCCEEDED for e in events)
    assert channel.pending_count == 0


def test_disposed_channel_rejects_use():
    channel = BufferedUploadChannel(FakeSearchClient())
    channel.dispose()
    channel.dispose()  # second call is a no-op
    with pytest.raises(UploadChannelClosedError):
        channel.upload_documents(_docs(1))
    with pytest.raises(UploadChannelClosedError):
        channel.flush()


def test_dispose_reports_unsent_actions(caplog):
    channel = BufferedUploadChannel(FakeSearchClient(), batch_size=10)
    channel.upload_documents(_docs(3))
    channel.dispose()
    assert channel.pending_count == 0
    assert "3 unsent actions" in caplog.text


def test_invalid_configuration():
    with pytest.raises(ValueError):
        BufferedUploadChannel(FakeSearchClient(), batch_size=0)
    channel = BufferedUploadChannel(FakeSearchClient())
    with pytest.raises(ValueError):
        channel.on("unknown_event", lambda *_: None)
