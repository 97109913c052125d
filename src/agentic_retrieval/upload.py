"""
Buffered upload channel for Azure AI Search.

Documents are queued as index actions and sent in batches through
``SearchClient.index_documents``. Listeners can observe the batch
lifecycle:

    batch_added           IndexingBatch assembled and about to be sent
    before_document_sent  (action, key) for every document in the batch
    batch_succeeded       BatchOutcome, every document was indexed
    batch_failed          BatchOutcome, the request failed or some documents were rejected

Every dispatched batch ends in exactly one of ``batch_succeeded`` or
``batch_failed``. Failed batches are not retried.

The channel is a context manager: leaving the block flushes (on a clean
exit) and always disposes the channel.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any, Optional, Callable, Iterable, Tuple

from azure.core.exceptions import AzureError
from azure.search.documents import SearchClient, IndexDocumentsBatch

from .exceptions import UploadChannelClosedError

logger = logging.getLogger(__name__)

BATCH_ADDED = "batch_added"
BEFORE_DOCUMENT_SENT = "before_document_sent"
BATCH_SUCCEEDED = "batch_succeeded"
BATCH_FAILED = "batch_failed"

EVENTS = (BATCH_ADDED, BEFORE_DOCUMENT_SENT, BATCH_SUCCEEDED, BATCH_FAILED)


class IndexAction(Enum):
    """Index action applied to a document"""
    UPLOAD = "upload"
    MERGE = "merge"
    MERGE_OR_UPLOAD = "mergeOrUpload"
    DELETE = "delete"


_BATCH_METHODS = {
    IndexAction.UPLOAD: "add_upload_actions",
    IndexAction.MERGE: "add_merge_actions",
    IndexAction.MERGE_OR_UPLOAD: "add_merge_or_upload_actions",
    IndexAction.DELETE: "add_delete_actions",
}


@dataclass
class IndexingBatch:
    """An ordered group of index actions sent in one request."""
    batch_id: int
    actions: List[Tuple[IndexAction, Dict[str, Any]]]

    @property
    def size(self) -> int:
        return len(self.actions)


@dataclass
class BatchOutcome:
    """Result of dispatching one batch"""
    batch_id: int
    size: int
    succeeded: int
    failed_keys: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed_keys


def _as_dict(document: Any) -> Dict[str, Any]:
    if hasattr(document, "to_dict"):
        return document.to_dict()
    return dict(document)


class BufferedUploadChannel:
    """
    Batches index actions and dispatches them to a search index.

    Actions are sent automatically once ``batch_size`` of them are pending;
    call :meth:`flush` to send the remainder. :meth:`dispose` must run
    exactly once when the channel is no longer needed, which the context
    manager protocol guarantees.
    """

    def __init__(
        self,
        search_client: SearchClient,
        batch_size: int = 100,
        key_field: str = "id",
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self._search_client = search_client
        self._batch_size = batch_size
        self._key_field = key_field
        self._pending: List[Tuple[IndexAction, Dict[str, Any]]] = []
        self._listeners: Dict[str, List[Callable[..., None]]] = {event: [] for event in EVENTS}
        self._outcomes: List[BatchOutcome] = []
        self._next_batch_id = 1
        self._disposed = False

    def __enter__(self) -> "BufferedUploadChannel":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                self.flush()
        finally:
            self.dispose()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def outcomes(self) -> List[BatchOutcome]:
        return list(self._outcomes)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def on(self, event: str, handler: Callable[..., None]) -> None:
        """Register a lifecycle listener."""
        self._ensure_open()
        if event not in self._listeners:
            raise ValueError(f"Unknown upload channel event: {event}")
        self._listeners[event].append(handler)

    def upload_documents(self, documents: Iterable[Any]) -> None:
        self._queue(IndexAction.UPLOAD, documents)

    def merge_documents(self, documents: Iterable[Any]) -> None:
        self._queue(IndexAction.MERGE, documents)

    def merge_or_upload_documents(self, documents: Iterable[Any]) -> None:
        self._queue(IndexAction.MERGE_OR_UPLOAD, documents)

    def delete_documents(self, documents: Iterable[Any]) -> None:
        self._queue(IndexAction.DELETE, documents)

    def flush(self) -> List[BatchOutcome]:
        """
        Send every pending action and wait for the outcomes.

        Returns:
            All batch outcomes observed since the channel was opened
        """
        self._ensure_open()
        while self._pending:
            self._dispatch_next()
        return self.outcomes

    def dispose(self) -> None:
        """Release listeners and queued state. Later calls are ignored."""
        if self._disposed:
            return

        if self._pending:
            logger.warning(
                f"Upload channel disposed with {len(self._pending)} unsent actions; "
                "they were not submitted to the index"
            )
        self._pending.clear()
        for handlers in self._listeners.values():
            handlers.clear()
        self._disposed = True
        logger.debug("Upload channel disposed")

    def _ensure_open(self) -> None:
        if self._disposed:
            raise UploadChannelClosedError("Upload channel has already been disposed")

    def _queue(self, action: IndexAction, documents: Iterable[Any]) -> None:
        self._ensure_open()
        self._pending.extend((action, _as_dict(doc)) for doc in documents)

        # Auto flush full batches
        while len(self._pending) >= self._batch_size:
            self._dispatch_next()

    def _emit(self, event: str, *args: Any) -> None:
        for handler in self._listeners[event]:
            handler(*args)

    def _dispatch_next(self) -> None:
        actions = self._pending[:self._batch_size]
        del self._pending[:self._batch_size]

        batch = IndexingBatch(batch_id=self._next_batch_id, actions=actions)
        self._next_batch_id += 1
        self._emit(BATCH_ADDED, batch)

        outcome = self._send(batch)
        self._outcomes.append(outcome)

        if outcome.ok:
            logger.info(f"Batch {batch.batch_id}: {outcome.succeeded}/{batch.size} documents indexed")
            self._emit(BATCH_SUCCEEDED, outcome)
        else:
            logger.error(
                f"Batch {batch.batch_id} failed: {outcome.succeeded}/{batch.size} indexed, "
                f"failed keys={outcome.failed_keys} error={outcome.error}"
            )
            self._emit(BATCH_FAILED, outcome)

    def _send(self, batch: IndexingBatch) -> BatchOutcome:
        index_batch = IndexDocumentsBatch()
        for action, document in batch.actions:
            self._emit(BEFORE_DOCUMENT_SENT, action, document.get(self._key_field))
            getattr(index_batch, _BATCH_METHODS[action])([document])

        try:
            results = self._search_client.index_documents(index_batch)
        except AzureError as e:
            return BatchOutcome(
                batch_id=batch.batch_id,
                size=batch.size,
                succeeded=0,
                failed_keys=[str(doc.get(self._key_field)) for _, doc in batch.actions],
                error=str(e),
            )

        failed = [r for r in results if not r.succeeded]
        return BatchOutcome(
            batch_id=batch.batch_id,
            size=batch.size,
            succeeded=len(results) - len(failed),
            failed_keys=[r.key for r in failed],
            error="; ".join(f"{r.key}: {r.error_message}" for r in failed) or None,
        )
