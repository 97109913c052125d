from unittest import mock

import pytest

from agentic_retrieval.exceptions import KnowledgeServiceError, RetrievalError
from agentic_retrieval.knowledge import KnowledgeClient, KnowledgeBaseModel, EXTRACTIVE_DATA

from conftest import fake_response

ENDPOINT = "https://search-test.search.windows.net"
MODEL = KnowledgeBaseModel(
    resource_uri="https://aoai-test.openai.azure.com",
    deployment_id="gpt-4.1-mini",
    model_name="gpt-4.1-mini",
)


def _client(credential, session):
    return KnowledgeClient(ENDPOINT, credential, session=session)


def test_knowledge_source_created_once(credential, knowledge_service):
    client = _client(credential, knowledge_service)

    assert client.ensure_knowledge_source("earth-knowledge-source", "earth_at_night") is True
    assert client.ensure_knowledge_source("earth-knowledge-source", "earth_at_night") is False

    puts = [c for c in knowledge_service.calls if c[0] == "PUT"]
    assert len(puts) == 1
    assert list(knowledge_service.sources) == ["earth-knowledge-source"]

    definition = knowledge_service.sources["earth-knowledge-source"]
    assert definition["kind"] == "searchIndex"
    assert definition["searchIndexParameters"] == {
        "searchIndexName": "earth_at_night",
        "sourceDataFields": [{"name": "id"}, {"name": "page_number"}],
    }


def test_requests_carry_bearer_token_and_api_version(credential):
    session = mock.Mock()
    session.request.return_value = fake_response(200, {})
    client = _client(credential, session)

    client.ensure_knowledge_source("ks", "idx")

    method, url = session.request.call_args[0]
    assert method == "GET"
    assert url == f"{ENDPOINT}/knowledgesources/ks?api-version=2025-11-01-preview"
    assert session.request.call_args[1]["headers"]["Authorization"] == "Bearer fake-token"
    credential.get_token.assert_called_with("https://search.azure.com/.default")


def test_knowledge_source_probe_error_is_raised(credential):
    session = mock.Mock()
    session.request.return_value = fake_response(403, text="forbidden")
    client = _client(credential, session)

    with pytest.raises(KnowledgeServiceError) as exc_info:
        client.ensure_knowledge_source("ks", "idx")
    assert exc_info.value.status_code == 403
    assert "forbidden" in str(exc_info.value)
    session.request.assert_called_once()


def test_knowledge_source_create_failure_is_raised(credential):
    session = mock.Mock()
    session.request.side_effect = [fake_response(404), fake_response(400, text="bad definition")]
    client = _client(credential, session)

    with pytest.raises(KnowledgeServiceError, match="bad definition"):
        client.ensure_knowledge_source("ks", "idx")


def test_knowledge_base_upsert_applies_latest_definition(credential, knowledge_service):
    client = _client(credential, knowledge_service)

    existed = client.ensure_knowledge_base(
        "earth-knowledge-base", ["earth-knowledge-source"], MODEL, answer_instructions="first"
    )
    assert existed is False

    existed = client.ensure_knowledge_base(
        "earth-knowledge-base", ["earth-knowledge-source"], MODEL,
        output_mode=EXTRACTIVE_DATA, answer_instructions="second",
    )
    assert existed is True

    definition = knowledge_service.bases["earth-knowledge-base"]
    assert definition["answerInstructions"] == "second"
    assert definition["outputMode"] == "extractiveData"
    assert definition["knowledgeSources"] == [{"name": "earth-knowledge-source"}]
    assert definition["models"] == [{
        "kind": "azureOpenAI",
        "azureOpenAIParameters": {
            "resourceUri": "https://aoai-test.openai.azure.com",
            "deploymentId": "gpt-4.1-mini",
            "modelName": "gpt-4.1-mini",
        },
    }]
    assert len([c for c in knowledge_service.calls if c[0] == "PUT"]) == 2


def test_knowledge_base_rejects_unknown_output_mode(credential, knowledge_service):
    client = _client(credential, knowledge_service)
    with pytest.raises(ValueError):
        client.ensure_knowledge_base("kb", ["ks"], MODEL, output_mode="summary")
    assert knowledge_service.calls == []


def test_delete_ignores_missing_resources(credential, knowledge_service):
    client = _client(credential, knowledge_service)
    client.ensure_knowledge_source("ks", "idx")

    assert client.delete_knowledge_source("ks") is True
    assert client.delete_knowledge_source("ks") is False
    assert client.delete_knowledge_base("kb") is False


def test_delete_failure_is_raised(credential):
    session = mock.Mock()
    session.request.return_value = fake_response(500, text="boom")
    client = _client(credential, session)
    with pytest.raises(KnowledgeServiceError):
        client.delete_knowledge_base("kb")


def test_retrieve_failure_carries_body(credential):
    session = mock.Mock()
    session.request.return_value = fake_response(400, text='{"error": "bad request"}')
    client = _client(credential, session)

    with pytest.raises(RetrievalError) as exc_info:
        client.retrieve("kb", {"messages": []})
    assert exc_info.value.status_code == 400
    assert exc_info.value.body == '{"error": "bad request"}'

    method, url = session.request.call_args[0]
    assert method == "POST"
    assert url.startswith(f"{ENDPOINT}/knowledgebases/kb/retrieve?")
