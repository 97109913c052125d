#!/usr/bin/env python3
"""
Azure AI Search agentic retrieval quickstart.

The quickstart:
1. Creates or updates the earth_at_night search index
2. Uploads the Earth at Night documents and waits until they are indexed
3. Registers a knowledge source and a knowledge base for agentic retrieval
4. Asks two chained questions through the knowledge base retrieve API
5. Deletes the knowledge base, knowledge source and index

Usage:
    python -m agentic_retrieval.quickstart

Environment:
    AZURE_SEARCH_ENDPOINT, AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_GPT_DEPLOYMENT,
    AZURE_OPENAI_EMBEDDING_DEPLOYMENT (required)
    UPLOAD_DOCS=false skips index creation and upload
    CLEANUP_RESOURCES=false keeps the created resources
    GENERATE_FINAL_ANSWER=false skips the chat completion answers
"""

import logging
import sys
from typing import List, Optional, Sequence

from azure.core.credentials import TokenCredential
from azure.identity import DefaultAzureCredential
from azure.search.documents import SearchClient
from azure.search.documents.indexes import SearchIndexClient
from openai import AzureOpenAI

from .answers import create_openai_client, generate_final_answer
from .config import Settings, ANSWER_INSTRUCTIONS
from .convergence import wait_for_indexing
from .documents import EarthAtNightDocument, fetch_earth_at_night_documents
from .knowledge import KnowledgeClient, KnowledgeBaseModel, ANSWER_SYNTHESIS
from .retrieval import (
    Conversation,
    KnowledgeSourceParams,
    RetrievalResponse,
    RetrievalSession,
    print_retrieval_response,
)
from .search_index import create_search_index, delete_search_index
from .upload import (
    BufferedUploadChannel,
    BatchOutcome,
    BATCH_ADDED,
    BEFORE_DOCUMENT_SENT,
    BATCH_SUCCEEDED,
    BATCH_FAILED,
)

logger = logging.getLogger(__name__)

QUESTIONS = (
    "Why do suburban belts display larger December brightening than urban cores even though "
    "absolute light levels are higher downtown? Why is the Phoenix nighttime street grid is so "
    "sharply visible from space, whereas large stretches of the interstate between midwestern "
    "cities remain comparatively dim?",
    "How do I find lava at night?",
)


def upload_documents(
    search_client: SearchClient,
    documents: Sequence[EarthAtNightDocument],
    batch_size: int = 100,
) -> List[BatchOutcome]:
    """Upload documents through a buffered channel and return the batch outcomes."""
    logger.info("📄 Uploading documents...")

    with BufferedUploadChannel(search_client, batch_size=batch_size) as channel:
        channel.on(BATCH_ADDED, lambda batch: logger.info(
            f"Batch {batch.batch_id} assembled with {batch.size} documents"))
        channel.on(BEFORE_DOCUMENT_SENT, lambda action, key: logger.debug(
            f"Sending {action.value} for document {key}"))
        channel.on(BATCH_SUCCEEDED, lambda outcome: logger.info(
            f"Batch {outcome.batch_id} succeeded: {outcome.succeeded} documents indexed"))
        channel.on(BATCH_FAILED, lambda outcome: logger.error(
            f"Batch {outcome.batch_id} failed: {outcome.error}"))

        channel.upload_documents(documents)
        outcomes = channel.flush()

    failed = sum(len(o.failed_keys) for o in outcomes)
    if failed:
        logger.error(f"❌ {failed} of {len(documents)} documents were rejected by the index")
    else:
        logger.info(f"✅ Uploaded {len(documents)} documents successfully.")
    return outcomes


def prepare_search_service(
    settings: Settings,
    index_client: SearchIndexClient,
    search_client: SearchClient,
    knowledge_client: KnowledgeClient,
) -> None:
    """Load the index (unless disabled) and register the knowledge source and base."""
    if settings.upload_docs:
        create_search_index(index_client, settings)
        documents = fetch_earth_at_night_documents()
        upload_documents(search_client, documents, batch_size=settings.upload_batch_size)
        wait_for_indexing(
            search_client,
            expected_count=len(documents),
            interval=settings.poll_interval,
            max_attempts=settings.max_indexing_checks,
        )
    else:
        logger.info("⏭️ Skipping document upload (UPLOAD_DOCS=false)")

    knowledge_client.ensure_knowledge_source(
        settings.knowledge_source_name,
        index_name=settings.index_name,
    )
    knowledge_client.ensure_knowledge_base(
        settings.knowledge_base_name,
        knowledge_sources=[settings.knowledge_source_name],
        model=KnowledgeBaseModel(
            resource_uri=settings.openai_endpoint,
            deployment_id=settings.gpt_deployment,
            model_name=settings.gpt_model,
        ),
        output_mode=ANSWER_SYNTHESIS,
        answer_instructions=ANSWER_INSTRUCTIONS,
    )


def run_agentic_retrieval(
    settings: Settings,
    knowledge_client: KnowledgeClient,
    openai_client: Optional[AzureOpenAI] = None,
    questions: Sequence[str] = QUESTIONS,
) -> List[RetrievalResponse]:
    """Ask each question in turn, carrying the conversation forward."""
    session = RetrievalSession(
        knowledge_client,
        settings.knowledge_base_name,
        source_params=[KnowledgeSourceParams(knowledge_source_name=settings.knowledge_source_name)],
    )
    conversation = Conversation()
    responses = []

    for turn, question in enumerate(questions):
        if turn:
            logger.info("💬 === Continuing Conversation ===")
            logger.info(f"❓ Follow-up question: {question}")

        response = session.query(conversation, question)
        print_retrieval_response(response)
        responses.append(response)

        if openai_client is not None:
            answer = generate_final_answer(openai_client, settings.gpt_deployment, conversation)
            print("\n[ASSISTANT]: ")
            print(answer or "")

    logger.info("🎉 === Conversation Complete ===")
    return responses


def cleanup_all_resources(
    settings: Settings,
    index_client: SearchIndexClient,
    knowledge_client: KnowledgeClient,
) -> None:
    """Delete in reverse order of creation."""
    if not settings.cleanup_resources:
        logger.info("⏭️ Skipping resource cleanup (CLEANUP_RESOURCES=false)")
        return

    logger.info("🧹 Cleaning up resources...")
    knowledge_client.delete_knowledge_base(settings.knowledge_base_name)
    knowledge_client.delete_knowledge_source(settings.knowledge_source_name)
    delete_search_index(index_client, settings.index_name)


def run_quickstart(
    settings: Settings,
    index_client: SearchIndexClient,
    search_client: SearchClient,
    knowledge_client: KnowledgeClient,
    openai_client: Optional[AzureOpenAI] = None,
) -> List[RetrievalResponse]:
    logger.info("🚀 Starting Azure AI Search agentic retrieval quickstart...")

    prepare_search_service(settings, index_client, search_client, knowledge_client)
    responses = run_agentic_retrieval(settings, knowledge_client, openai_client)
    cleanup_all_resources(settings, index_client, knowledge_client)

    logger.info("✅ Quickstart completed successfully!")
    return responses


def build_clients(settings: Settings, credential: TokenCredential):
    """Create the Search, knowledge and (optional) OpenAI clients."""
    index_client = SearchIndexClient(endpoint=settings.search_endpoint, credential=credential)
    search_client = SearchClient(
        endpoint=settings.search_endpoint,
        index_name=settings.index_name,
        credential=credential,
    )
    knowledge_client = KnowledgeClient(
        settings.search_endpoint,
        credential,
        api_version=settings.search_api_version,
    )
    openai_client = None
    if settings.generate_final_answer:
        openai_client = create_openai_client(
            settings.openai_endpoint, settings.openai_api_version, credential
        )
    return index_client, search_client, knowledge_client, openai_client


def main() -> int:
    """Run the quickstart; returns the process exit code."""
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        settings = Settings.from_env()
        credential = DefaultAzureCredential()
        index_client, search_client, knowledge_client, openai_client = build_clients(settings, credential)
        run_quickstart(settings, index_client, search_client, knowledge_client, openai_client)
    except Exception:
        logger.exception("💥 Application failed")
        return 1
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
