"""
Earth at Night document source.

Downloads the pre-vectorized NASA "Earth at Night" e-book pages and
normalizes them to the index schema. The download is attempted once; any
failure falls back to a small built-in document set so the rest of the
pipeline can still run.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional

import requests

from .config import EMBEDDING_DIMENSIONS

logger = logging.getLogger(__name__)

DOCUMENTS_URL = (
    "https://raw.githubusercontent.com/Azure-Samples/azure-search-sample-data/"
    "refs/heads/main/nasa-e-book/earth-at-night-json/documents.json"
)

PLACEHOLDER_EMBEDDING_VALUE = 0.1


@dataclass(frozen=True)
class EarthAtNightDocument:
    """One page chunk of the Earth at Night e-book."""
    id: str
    page_chunk: str
    page_embedding_text_3_large: List[float] = field(repr=False)
    page_number: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the dictionary shape uploaded to the index"""
        return asdict(self)

    @classmethod
    def from_record(cls, record: Dict[str, Any], position: int) -> "EarthAtNightDocument":
        """
        Normalize a raw JSON record.

        Missing values fall back to position-based defaults: the id and page
        number derive from ``position``, the content is empty and the
        embedding is a constant placeholder vector. An embedding with the
        wrong number of dimensions is replaced by the placeholder as well.
        """
        embedding = record.get("page_embedding_text_3_large")
        if embedding and len(embedding) != EMBEDDING_DIMENSIONS:
            logger.warning(
                f"⚠️ Record {position + 1} has a {len(embedding)}-dimension embedding, "
                f"expected {EMBEDDING_DIMENSIONS}. Using placeholder vector."
            )
            embedding = None
        if not embedding:
            embedding = [PLACEHOLDER_EMBEDDING_VALUE] * EMBEDDING_DIMENSIONS

        return cls(
            id=str(record.get("id") or position + 1),
            page_chunk=record.get("page_chunk") or record.get("content") or "",
            page_embedding_text_3_large=[float(x) for x in embedding],
            page_number=int(record.get("page_number") or position + 1),
        )


def fallback_documents() -> List[EarthAtNightDocument]:
    """Built-in documents used when the remote set cannot be loaded."""
    return [
        EarthAtNightDocument(
            id="1",
            page_chunk=(
                "The Earth at night reveals the patterns of human settlement and economic activity. "
                "City lights trace the contours of civilization, creating a luminous map of where "
                "people live and work."
            ),
            page_embedding_text_3_large=[0.1] * EMBEDDING_DIMENSIONS,
            page_number=1,
        ),
        EarthAtNightDocument(
            id="2",
            page_chunk=(
                "From space, the aurora borealis appears as shimmering curtains of green and blue "
                "light dancing across the polar regions."
            ),
            page_embedding_text_3_large=[0.2] * EMBEDDING_DIMENSIONS,
            page_number=2,
        ),
    ]


def fetch_earth_at_night_documents(
    session: Optional[requests.Session] = None,
    url: str = DOCUMENTS_URL,
    timeout: float = 30,
) -> List[EarthAtNightDocument]:
    """
    Fetch the Earth at Night documents from GitHub.

    Never raises: transport errors, non-success statuses and malformed
    payloads all return :func:`fallback_documents`.
    """
    logger.info("📡 Fetching Earth at Night documents from GitHub...")
    http = session or requests

    try:
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
        records = response.json()
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            raise ValueError(f"expected a JSON array of objects, got {type(records).__name__}")

        documents = [EarthAtNightDocument.from_record(r, i) for i, r in enumerate(records)]
    except (requests.RequestException, ValueError, TypeError) as e:
        logger.warning(f"Error fetching documents from GitHub: {e}")
        logger.info("🔄 Falling back to sample documents...")
        return fallback_documents()

    logger.info(f"✅ Fetched {len(documents)} documents from GitHub")
    return documents
