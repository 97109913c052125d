"""
Environment-backed configuration for the agentic retrieval quickstart.

Values are read from the process environment (and a local .env file when
present). Resource names for the Earth at Night sample are fixed.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

INDEX_NAME = "earth_at_night"
KNOWLEDGE_SOURCE_NAME = "earth-knowledge-source"
KNOWLEDGE_BASE_NAME = "earth-knowledge-base"

SEARCH_API_VERSION = "2025-11-01-preview"
OPENAI_API_VERSION = "2024-10-21"

SEARCH_SCOPE = "https://search.azure.com/.default"
COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"

EMBEDDING_DIMENSIONS = 3072  # text-embedding-3-large produces 3072 dimensions

# Indexing convergence polling
WAIT_TIME = 4.0  # seconds between document count checks
MAX_INDEXING_CHECKS = 30

UPLOAD_BATCH_SIZE = 100

ANSWER_INSTRUCTIONS = (
    "Provide a two sentence concise and informative answer based on the retrieved documents."
)


def _env_flag(name: str) -> bool:
    """Flags default to on; only the literal string 'false' turns one off."""
    return os.getenv(name, "true").strip().lower() != "false"


@dataclass
class Settings:
    search_endpoint: str
    openai_endpoint: str
    gpt_deployment: str
    embedding_deployment: str
    gpt_model: str = ""
    embedding_model: str = ""
    openai_api_version: str = OPENAI_API_VERSION
    search_api_version: str = SEARCH_API_VERSION
    index_name: str = INDEX_NAME
    knowledge_source_name: str = KNOWLEDGE_SOURCE_NAME
    knowledge_base_name: str = KNOWLEDGE_BASE_NAME
    upload_docs: bool = True
    cleanup_resources: bool = True
    generate_final_answer: bool = True
    poll_interval: float = WAIT_TIME
    max_indexing_checks: int = MAX_INDEXING_CHECKS
    upload_batch_size: int = UPLOAD_BATCH_SIZE

    def __post_init__(self):
        self.search_endpoint = self.search_endpoint.rstrip("/")
        self.openai_endpoint = self.openai_endpoint.rstrip("/")
        # Model names default to the deployment names
        self.gpt_model = self.gpt_model or self.gpt_deployment
        self.embedding_model = self.embedding_model or self.embedding_deployment

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            ConfigurationError: if any required variable is unset or empty
        """
        load_dotenv(dotenv_path)

        required = {
            "AZURE_SEARCH_ENDPOINT": os.getenv("AZURE_SEARCH_ENDPOINT", ""),
            "AZURE_OPENAI_ENDPOINT": os.getenv("AZURE_OPENAI_ENDPOINT", ""),
            "AZURE_OPENAI_GPT_DEPLOYMENT": os.getenv("AZURE_OPENAI_GPT_DEPLOYMENT", ""),
            "AZURE_OPENAI_EMBEDDING_DEPLOYMENT": os.getenv("AZURE_OPENAI_EMBEDDING_DEPLOYMENT", ""),
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigurationError(missing)

        try:
            poll_interval = float(os.getenv("INDEXING_POLL_INTERVAL", str(WAIT_TIME)))
            max_checks = int(os.getenv("INDEXING_MAX_ATTEMPTS", str(MAX_INDEXING_CHECKS)))
            batch_size = int(os.getenv("UPLOAD_BATCH_SIZE", str(UPLOAD_BATCH_SIZE)))
        except ValueError as e:
            raise ConfigurationError([f"numeric setting ({e})"]) from e

        return cls(
            search_endpoint=required["AZURE_SEARCH_ENDPOINT"],
            openai_endpoint=required["AZURE_OPENAI_ENDPOINT"],
            gpt_deployment=required["AZURE_OPENAI_GPT_DEPLOYMENT"],
            embedding_deployment=required["AZURE_OPENAI_EMBEDDING_DEPLOYMENT"],
            gpt_model=os.getenv("AZURE_OPENAI_GPT_MODEL", ""),
            embedding_model=os.getenv("AZURE_OPENAI_EMBEDDING_MODEL", ""),
            openai_api_version=os.getenv("OPENAI_API_VERSION") or OPENAI_API_VERSION,
            search_api_version=os.getenv("SEARCH_API_VERSION") or SEARCH_API_VERSION,
            upload_docs=_env_flag("UPLOAD_DOCS"),
            cleanup_resources=_env_flag("CLEANUP_RESOURCES"),
            generate_final_answer=_env_flag("GENERATE_FINAL_ANSWER"),
            poll_interval=poll_interval,
            max_indexing_checks=max_checks,
            upload_batch_size=batch_size,
        )
