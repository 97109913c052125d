"""
Knowledge source and knowledge base registration for agentic retrieval.

Uses the Azure AI Search 2025-11-01-preview REST API directly:

    GET/PUT/DELETE  /knowledgesources/{name}
    GET/PUT/DELETE  /knowledgebases/{name}
    POST            /knowledgebases/{name}/retrieve

Knowledge sources are created only when missing; knowledge bases are
always written with the latest definition.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional, Sequence

import requests
from azure.core.credentials import TokenCredential

from .config import SEARCH_API_VERSION, SEARCH_SCOPE
from .exceptions import KnowledgeServiceError, RetrievalError

logger = logging.getLogger(__name__)

ANSWER_SYNTHESIS = "answerSynthesis"
EXTRACTIVE_DATA = "extractiveData"
OUTPUT_MODES = (ANSWER_SYNTHESIS, EXTRACTIVE_DATA)

DEFAULT_SOURCE_DATA_FIELDS = ("id", "page_number")


@dataclass
class KnowledgeBaseModel:
    """Azure OpenAI deployment used by a knowledge base for planning and answer synthesis."""
    resource_uri: str
    deployment_id: str
    model_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "azureOpenAI",
            "azureOpenAIParameters": {
                "resourceUri": self.resource_uri,
                "deploymentId": self.deployment_id,
                "modelName": self.model_name,
            },
        }


class KnowledgeClient:
    """Thin REST client for knowledge sources, knowledge bases and retrieval."""

    def __init__(
        self,
        endpoint: str,
        credential: TokenCredential,
        api_version: str = SEARCH_API_VERSION,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        self._endpoint = endpoint.rstrip("/")
        self._credential = credential
        self._api_version = api_version
        self._session = session or requests.Session()
        self._timeout = timeout

    def _url(self, *segments: str) -> str:
        path = "/".join(segments)
        return f"{self._endpoint}/{path}?api-version={self._api_version}"

    def _headers(self) -> Dict[str, str]:
        token = self._credential.get_token(SEARCH_SCOPE)
        return {
            "Authorization": f"Bearer {token.token}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> requests.Response:
        return self._session.request(
            method,
            url,
            headers=self._headers(),
            json=payload,
            timeout=self._timeout,
        )

    def _exists(self, kind: str, name: str) -> bool:
        """Probe a resource by name; only 200 and 404 are expected."""
        resp = self._request("GET", self._url(kind, name))
        if resp.status_code == 200:
            return True
        if resp.status_code == 404:
            return False
        raise KnowledgeServiceError(f"Failed to read {kind}/{name}", resp.status_code, resp.text)

    def _delete(self, kind: str, name: str) -> bool:
        resp = self._request("DELETE", self._url(kind, name))
        if resp.status_code == 404:
            logger.info(f"ℹ️ '{name}' does not exist or was already deleted.")
            return False
        if not resp.ok:
            raise KnowledgeServiceError(f"Failed to delete {kind}/{name}", resp.status_code, resp.text)
        return True

    def ensure_knowledge_source(
        self,
        name: str,
        index_name: str,
        source_data_fields: Sequence[str] = DEFAULT_SOURCE_DATA_FIELDS,
        description: str = "Knowledge source for Earth at Night e-book content",
    ) -> bool:
        """
        Create a search index knowledge source unless one with the same name exists.

        Returns:
            True if the source was created, False if an existing one was reused
        """
        logger.info("📚 Creating or getting knowledge source...")

        if self._exists("knowledgesources", name):
            logger.info(f"ℹ️ Knowledge source '{name}' already exists. Using existing resource.")
            return False

        payload = {
            "name": name,
            "kind": "searchIndex",
            "description": description,
            "searchIndexParameters": {
                "searchIndexName": index_name,
                "sourceDataFields": [{"name": f} for f in source_data_fields],
            },
        }
        resp = self._request("PUT", self._url("knowledgesources", name), payload)
        if not resp.ok:
            raise KnowledgeServiceError("Failed to create knowledge source", resp.status_code, resp.text)

        logger.info(f"✅ Knowledge source '{name}' created successfully.")
        return True

    def ensure_knowledge_base(
        self,
        name: str,
        knowledge_sources: Sequence[str],
        model: KnowledgeBaseModel,
        output_mode: str = ANSWER_SYNTHESIS,
        answer_instructions: Optional[str] = None,
    ) -> bool:
        """
        Create or replace a knowledge base.

        Returns:
            True if a knowledge base with this name already existed
        """
        if output_mode not in OUTPUT_MODES:
            raise ValueError(f"Unsupported output mode: {output_mode}")

        logger.info("🗄️ Creating or updating knowledge base...")

        payload: Dict[str, Any] = {
            "name": name,
            "knowledgeSources": [{"name": source} for source in knowledge_sources],
            "models": [model.to_dict()],
            "outputMode": output_mode,
        }
        if answer_instructions:
            payload["answerInstructions"] = answer_instructions

        # PUT creates or updates; the probe only decides the log message
        existed = self._exists("knowledgebases", name)
        resp = self._request("PUT", self._url("knowledgebases", name), payload)
        if not resp.ok:
            raise KnowledgeServiceError("Failed to create knowledge base", resp.status_code, resp.text)

        if existed:
            logger.info(f"✅ Knowledge base '{name}' updated successfully.")
        else:
            logger.info(f"✅ Knowledge base '{name}' created successfully.")
        return existed

    def delete_knowledge_base(self, name: str) -> bool:
        logger.info("🗑️ Deleting knowledge base...")
        deleted = self._delete("knowledgebases", name)
        if deleted:
            logger.info(f"✅ Knowledge base '{name}' deleted successfully.")
        return deleted

    def delete_knowledge_source(self, name: str) -> bool:
        logger.info("🗑️ Deleting knowledge source...")
        deleted = self._delete("knowledgesources", name)
        if deleted:
            logger.info(f"✅ Knowledge source '{name}' deleted successfully.")
        return deleted

    def retrieve(self, knowledge_base_name: str, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run agentic retrieval against a knowledge base.

        Raises:
            RetrievalError: on any non-success status, with the response body attached
        """
        resp = self._request("POST", self._url("knowledgebases", knowledge_base_name, "retrieve"), request)
        if not resp.ok:
            raise RetrievalError("Agentic retrieval failed", resp.status_code, resp.text)
        return resp.json()
