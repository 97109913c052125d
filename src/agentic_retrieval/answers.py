"""
Final answer generation with Azure OpenAI chat completions.
"""

import logging
from typing import Optional

from azure.core.credentials import TokenCredential
from openai import AzureOpenAI

from .config import COGNITIVE_SERVICES_SCOPE
from .retrieval import Conversation

logger = logging.getLogger(__name__)


def create_openai_client(endpoint: str, api_version: str, credential: TokenCredential) -> AzureOpenAI:
    """Azure OpenAI client authenticated with Entra ID tokens."""
    return AzureOpenAI(
        azure_endpoint=endpoint,
        api_version=api_version,
        azure_ad_token_provider=lambda: credential.get_token(COGNITIVE_SERVICES_SCOPE).token,
    )


def generate_final_answer(
    openai_client: AzureOpenAI,
    deployment: str,
    conversation: Conversation,
    max_tokens: int = 1000,
    temperature: float = 0.7,
) -> Optional[str]:
    """
    Answer from the full conversation, system prompt included.

    A non-empty answer is appended to the conversation as an assistant turn.
    """
    completion = openai_client.chat.completions.create(
        model=deployment,
        messages=[{"role": m.role, "content": m.content} for m in conversation.messages],
        max_tokens=max_tokens,
        temperature=temperature,
    )

    answer = completion.choices[0].message.content
    if answer:
        conversation.add("assistant", answer)
    else:
        logger.warning("Chat completion returned an empty answer")
    return answer
