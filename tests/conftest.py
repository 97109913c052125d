from types import SimpleNamespace
from unittest import mock

import pytest

from agentic_retrieval.config import Settings


def fake_response(status_code=200, body=None, text=""):
    return SimpleNamespace(
        status_code=status_code,
        ok=200 <= status_code < 300,
        text=text,
        json=lambda: body,
    )


class FakeSearchClient:
    """In-memory stand-in for SearchClient.index_documents / get_document_count."""

    def __init__(self, lag=1, reject=()):
        self.documents = {}
        self.batches = []
        self.lag = lag  # number of count reads before documents become visible
        self.reject = set(reject)
        self.count_calls = 0

    def index_documents(self, batch):
        self.batches.append(batch)
        results = []
        for action in batch.actions:
            doc = action.additional_properties
            key = doc["id"]
            if key in self.reject:
                results.append(SimpleNamespace(key=key, succeeded=False, error_message="rejected"))
                continue
            self.documents[key] = doc
            results.append(SimpleNamespace(key=key, succeeded=True, error_message=None))
        return results

    def get_document_count(self):
        self.count_calls += 1
        if self.count_calls <= self.lag:
            return 0
        return len(self.documents)


class FakeKnowledgeService:
    """Routes KnowledgeClient REST calls to in-memory knowledge sources and bases."""

    def __init__(self, retrieve_body=None):
        self.sources = {}
        self.bases = {}
        self.calls = []
        self.retrieve_requests = []
        self.retrieve_body = retrieve_body or {
            "response": [{"role": "assistant", "content": [{"type": "text", "text": "I don't know."}]}],
            "activity": [],
            "references": [],
        }

    def request(self, method, url, headers=None, json=None, timeout=None):
        self.calls.append((method, url))
        path = url.split("?")[0].split("/", 3)[3]
        parts = path.split("/")
        store = self.sources if parts[0] == "knowledgesources" else self.bases

        if len(parts) == 3 and parts[2] == "retrieve":
            self.retrieve_requests.append(json)
            return fake_response(200, self.retrieve_body)

        name = parts[1]
        if method == "GET":
            if name in store:
                return fake_response(200, store[name])
            return fake_response(404, text="not found")
        if method == "PUT":
            created = name not in store
            store[name] = json
            return fake_response(201 if created else 200, json)
        if method == "DELETE":
            if store.pop(name, None) is None:
                return fake_response(404, text="not found")
            return fake_response(204)
        return fake_response(405, text="method not allowed")


@pytest.fixture
def credential():
    cred = mock.Mock()
    cred.get_token.return_value = SimpleNamespace(token="fake-token")
    return cred


@pytest.fixture
def settings():
    return Settings(
        search_endpoint="https://search-test.search.windows.net/",
        openai_endpoint="https://aoai-test.openai.azure.com",
        gpt_deployment="gpt-4.1-mini",
        embedding_deployment="text-embedding-3-large",
        poll_interval=0,
        max_indexing_checks=5,
    )


@pytest.fixture
def knowledge_service():
    return FakeKnowledgeService()
