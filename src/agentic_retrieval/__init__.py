"""
Agentic Retrieval Quickstart for Azure AI Search
Loads the Earth at Night e-book into a search index and queries it through a knowledge base

Pipeline:
┌──────────────┐   ┌────────────────┐   ┌─────────────┐   ┌──────────────────┐   ┌───────────┐
│  Documents   │──▶│ Upload channel │──▶│ Convergence │──▶│ Knowledge source │──▶│ Retrieval │
│ (GitHub JSON │   │  (batched      │   │ (doc count  │   │ + knowledge base │   │  session  │
│  + fallback) │   │   index calls) │   │  polling)   │   │  (REST API)      │   │           │
└──────────────┘   └────────────────┘   └─────────────┘   └──────────────────┘   └───────────┘
"""

from .config import Settings
from .documents import EarthAtNightDocument, fetch_earth_at_night_documents
from .upload import BufferedUploadChannel, BatchOutcome, IndexingBatch, IndexAction
from .convergence import wait_for_indexing
from .knowledge import KnowledgeClient, KnowledgeBaseModel
from .retrieval import (
    Conversation,
    KnowledgeMessage,
    KnowledgeSourceParams,
    RetrievalResponse,
    RetrievalSession,
)
from .exceptions import (
    QuickstartError,
    ConfigurationError,
    KnowledgeServiceError,
    RetrievalError,
    IndexingTimeoutError,
    UploadChannelClosedError,
)

__all__ = [
    "Settings",
    # Documents and upload
    "EarthAtNightDocument",
    "fetch_earth_at_night_documents",
    "BufferedUploadChannel",
    "BatchOutcome",
    "IndexingBatch",
    "IndexAction",
    "wait_for_indexing",
    # Knowledge registration and retrieval
    "KnowledgeClient",
    "KnowledgeBaseModel",
    "Conversation",
    "KnowledgeMessage",
    "KnowledgeSourceParams",
    "RetrievalResponse",
    "RetrievalSession",
    # Errors
    "QuickstartError",
    "ConfigurationError",
    "KnowledgeServiceError",
    "RetrievalError",
    "IndexingTimeoutError",
    "UploadChannelClosedError",
]
