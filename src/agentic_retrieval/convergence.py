"""
Indexing convergence check.

An upload acknowledgment does not mean the documents are searchable yet:
the index document count catches up some seconds later. Poll the count
until it matches before anything queries the index.
"""

import logging
import time
from typing import Callable, Optional

from azure.search.documents import SearchClient

from .config import WAIT_TIME, MAX_INDEXING_CHECKS
from .exceptions import IndexingTimeoutError

logger = logging.getLogger(__name__)


def wait_for_indexing(
    search_client: SearchClient,
    expected_count: int,
    interval: float = WAIT_TIME,
    max_attempts: int = MAX_INDEXING_CHECKS,
    sleep: Optional[Callable[[float], None]] = None,
) -> int:
    """
    Block until the index reports ``expected_count`` documents.

    Args:
        search_client: Client bound to the index being loaded
        expected_count: Number of documents submitted
        interval: Seconds to wait between count checks
        max_attempts: Number of count checks before giving up
        sleep: Sleep function, defaults to time.sleep

    Returns:
        The converged document count

    Raises:
        IndexingTimeoutError: if the count does not match after ``max_attempts`` checks
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    sleep = sleep or time.sleep

    logger.info("⏳ Waiting for indexing to complete...")
    logger.info(f"Expected documents: {expected_count}")

    count: Optional[int] = None
    for attempt in range(1, max_attempts + 1):
        count = search_client.get_document_count()
        logger.info(f"Current indexed count: {count}")
        if count == expected_count:
            logger.info(f"✅ All {expected_count} documents indexed successfully!")
            return count
        if attempt < max_attempts:
            sleep(interval)

    raise IndexingTimeoutError(expected_count, count, max_attempts)
