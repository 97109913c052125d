"""
Error types raised by the agentic retrieval quickstart.
"""

from typing import List, Optional


class QuickstartError(Exception):
    """Base class for quickstart failures."""


class ConfigurationError(QuickstartError):
    """Raised when required environment settings are missing or invalid."""

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Missing required configuration: {', '.join(missing)}")


class KnowledgeServiceError(QuickstartError):
    """Non-success response from the knowledge source / knowledge base REST API."""

    def __init__(self, message: str, status_code: int, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        detail = f"{message}: {status_code}"
        if body:
            detail = f"{detail}\n{body}"
        super().__init__(detail)


class RetrievalError(KnowledgeServiceError):
    """The knowledge base retrieve call failed."""


class IndexingTimeoutError(QuickstartError):
    """The index never reported the expected document count."""

    def __init__(self, expected: int, last_count: Optional[int], attempts: int):
        self.expected = expected
        self.last_count = last_count
        self.attempts = attempts
        super().__init__(
            f"Index reported {last_count} documents after {attempts} checks, expected {expected}"
        )


class UploadChannelClosedError(QuickstartError):
    """An upload channel was used after it was disposed."""
