"""
Search index definition and lifecycle for the Earth at Night documents.
"""

import logging

from azure.core.exceptions import ResourceNotFoundError
from azure.search.documents.indexes import SearchIndexClient
from azure.search.documents.indexes.models import (
    SearchIndex,
    SearchField,
    SearchFieldDataType,
    SimpleField,
    SearchableField,
    VectorSearch,
    HnswAlgorithmConfiguration,
    VectorSearchProfile,
    AzureOpenAIVectorizer,
    AzureOpenAIVectorizerParameters,
    SemanticConfiguration,
    SemanticSearch,
    SemanticPrioritizedFields,
    SemanticField,
)

from .config import Settings, EMBEDDING_DIMENSIONS

logger = logging.getLogger(__name__)

VECTOR_PROFILE_NAME = "hnsw_text_3_large"
VECTORIZER_NAME = "azure_openai_text_3_large"
ALGORITHM_NAME = "alg"
SEMANTIC_CONFIG_NAME = "semantic_config"


def build_search_index(settings: Settings) -> SearchIndex:
    """Build the index schema with vector search and a default semantic configuration."""

    vector_search = VectorSearch(
        algorithms=[HnswAlgorithmConfiguration(name=ALGORITHM_NAME)],
        profiles=[
            VectorSearchProfile(
                name=VECTOR_PROFILE_NAME,
                algorithm_configuration_name=ALGORITHM_NAME,
                vectorizer_name=VECTORIZER_NAME,
            )
        ],
        vectorizers=[
            AzureOpenAIVectorizer(
                vectorizer_name=VECTORIZER_NAME,
                parameters=AzureOpenAIVectorizerParameters(
                    resource_url=settings.openai_endpoint,
                    deployment_name=settings.embedding_deployment,
                    model_name=settings.embedding_model,
                ),
            )
        ],
    )

    semantic_search = SemanticSearch(
        default_configuration_name=SEMANTIC_CONFIG_NAME,
        configurations=[
            SemanticConfiguration(
                name=SEMANTIC_CONFIG_NAME,
                prioritized_fields=SemanticPrioritizedFields(
                    content_fields=[SemanticField(field_name="page_chunk")]
                ),
            )
        ],
    )

    fields = [
        SimpleField(
            name="id",
            type=SearchFieldDataType.String,
            key=True,
            filterable=True,
            sortable=True,
            facetable=True,
        ),
        SearchableField(name="page_chunk", type=SearchFieldDataType.String),
        SearchField(
            name="page_embedding_text_3_large",
            type=SearchFieldDataType.Collection(SearchFieldDataType.Single),
            searchable=True,
            vector_search_dimensions=EMBEDDING_DIMENSIONS,
            vector_search_profile_name=VECTOR_PROFILE_NAME,
        ),
        SimpleField(
            name="page_number",
            type=SearchFieldDataType.Int32,
            filterable=True,
            sortable=True,
            facetable=True,
        ),
    ]

    return SearchIndex(
        name=settings.index_name,
        fields=fields,
        vector_search=vector_search,
        semantic_search=semantic_search,
    )


def create_search_index(index_client: SearchIndexClient, settings: Settings) -> None:
    """Create or update the search index."""
    logger.info("📊 Creating search index...")
    result = index_client.create_or_update_index(build_search_index(settings))
    logger.info(f"✅ Index '{result.name}' created or updated successfully.")


def delete_search_index(index_client: SearchIndexClient, index_name: str) -> None:
    """Delete the search index; a missing index is not an error."""
    logger.info("🗑️ Deleting search index...")
    try:
        index_client.delete_index(index_name)
    except ResourceNotFoundError:
        logger.info(f"ℹ️ Search index '{index_name}' does not exist or was already deleted.")
        return
    logger.info(f"✅ Search index '{index_name}' deleted successfully.")
