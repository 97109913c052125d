"""
Agentic retrieval session over a knowledge base.

The conversation is kept client-side: every query sends all non-system
turns so the knowledge base can plan subqueries with the earlier context,
and the synthesized answer is appended back as an assistant turn.

Retrieve responses are parsed into typed reference and activity records.
Record kinds this module does not know are kept as ``UnknownReference`` /
``UnknownActivity`` with their raw payload.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Union

from .knowledge import KnowledgeClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """A Q&A agent that can answer questions about the Earth at night.
Sources have a JSON format with a ref_id that must be cited in the answer.
If you do not have the answer, respond with "I don't know"."""

DEFAULT_REFERENCE_TYPE = "AzureSearchDoc"
# Both labels denote a document from a search index knowledge source
SEARCH_DOCUMENT_REFERENCE_TYPES = ("searchIndex", DEFAULT_REFERENCE_TYPE)
DEFAULT_ACTIVITY_TYPE = "UnknownActivityRecord"


@dataclass
class KnowledgeMessage:
    role: str  # "system", "user" or "assistant"
    content: str

    def to_request(self) -> Dict[str, Any]:
        return {"role": self.role, "content": [{"type": "text", "text": self.content}]}


class Conversation:
    """Append-only list of conversation turns."""

    def __init__(self, system_prompt: Optional[str] = SYSTEM_PROMPT):
        self._messages: List[KnowledgeMessage] = []
        if system_prompt:
            self.add("system", system_prompt)

    def add(self, role: str, content: str) -> KnowledgeMessage:
        message = KnowledgeMessage(role=role, content=content)
        self._messages.append(message)
        return message

    @property
    def messages(self) -> List[KnowledgeMessage]:
        return list(self._messages)

    def without_system(self) -> List[KnowledgeMessage]:
        return [m for m in self._messages if m.role != "system"]

    def __len__(self) -> int:
        return len(self._messages)


# Reference records

@dataclass
class SearchIndexReference:
    id: Optional[str]
    doc_key: Optional[str]
    activity_source: Optional[int] = None
    reranker_score: Optional[float] = None
    content: Optional[str] = None
    source_data: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)
    type: str = "searchIndex"


@dataclass
class UnknownReference:
    type: str
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


Reference = Union[SearchIndexReference, UnknownReference]


# Activity records

@dataclass
class ModelQueryPlanningActivity:
    id: Optional[int]
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    elapsed_ms: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)
    type: str = "modelQueryPlanning"


@dataclass
class SearchIndexActivity:
    id: Optional[int]
    knowledge_source_name: Optional[str] = None
    query_time: Optional[str] = None
    count: Optional[int] = None
    elapsed_ms: Optional[int] = None
    search: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)
    type: str = "searchIndex"


@dataclass
class AgenticReasoningActivity:
    id: Optional[int]
    reasoning_tokens: Optional[int] = None
    reasoning_effort: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)
    type: str = "agenticReasoning"


@dataclass
class ModelAnswerSynthesisActivity:
    id: Optional[int]
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    elapsed_ms: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)
    type: str = "modelAnswerSynthesis"


@dataclass
class UnknownActivity:
    type: str
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


Activity = Union[
    ModelQueryPlanningActivity,
    SearchIndexActivity,
    AgenticReasoningActivity,
    ModelAnswerSynthesisActivity,
    UnknownActivity,
]


def _first(record: Dict[str, Any], *names: str) -> Any:
    """Return the first non-null value among alternative field names."""
    for name in names:
        value = record.get(name)
        if value is not None:
            return value
    return None


def parse_reference(record: Dict[str, Any]) -> Reference:
    kind = _first(record, "referenceType", "type") or DEFAULT_REFERENCE_TYPE
    if kind in SEARCH_DOCUMENT_REFERENCE_TYPES:
        return SearchIndexReference(
            id=_first(record, "id", "Id"),
            doc_key=_first(record, "docKey", "DocKey"),
            activity_source=_first(record, "activitySource", "ActivitySource"),
            reranker_score=_first(record, "rerankerScore", "score"),
            content=record.get("content"),
            source_data=_first(record, "sourceData", "SourceData"),
            raw=record,
            type=kind,
        )
    return UnknownReference(type=kind, raw=record)


def parse_activity(record: Dict[str, Any]) -> Activity:
    kind = _first(record, "type", "activityType")
    activity_id = _first(record, "id", "Id")

    if kind == "modelQueryPlanning":
        return ModelQueryPlanningActivity(
            id=activity_id,
            input_tokens=_first(record, "inputTokens", "InputTokens"),
            output_tokens=_first(record, "outputTokens", "OutputTokens"),
            elapsed_ms=_first(record, "elapsedMs", "ElapsedMs"),
            raw=record,
        )
    if kind == "searchIndex":
        arguments = record.get("searchIndexArguments") or {}
        return SearchIndexActivity(
            id=activity_id,
            knowledge_source_name=_first(record, "knowledgeSourceName", "TargetIndex"),
            query_time=_first(record, "queryTime", "QueryTime"),
            count=_first(record, "count", "Count"),
            elapsed_ms=_first(record, "elapsedMs", "ElapsedMs"),
            search=arguments.get("search"),
            raw=record,
        )
    if kind == "agenticReasoning":
        effort = record.get("retrievalReasoningEffort") or {}
        return AgenticReasoningActivity(
            id=activity_id,
            reasoning_tokens=record.get("reasoningTokens"),
            reasoning_effort=effort.get("kind") if isinstance(effort, dict) else effort,
            raw=record,
        )
    if kind == "modelAnswerSynthesis":
        return ModelAnswerSynthesisActivity(
            id=activity_id,
            input_tokens=_first(record, "inputTokens", "InputTokens"),
            output_tokens=_first(record, "outputTokens", "OutputTokens"),
            elapsed_ms=_first(record, "elapsedMs", "ElapsedMs"),
            raw=record,
        )
    return UnknownActivity(type=kind or DEFAULT_ACTIVITY_TYPE, raw=record)


def extract_answer(payload: Any) -> str:
    """
    Pull the answer text out of the ``response`` field.

    A plain string is returned as-is. A list of messages yields the text of
    their text content parts; anything else is returned as JSON.
    """
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, list):
        texts = []
        for message in payload:
            if not isinstance(message, dict):
                continue
            content = message.get("content")
            if isinstance(content, str):
                texts.append(content)
                continue
            for part in content or []:
                if isinstance(part, dict) and part.get("type") == "text" and part.get("text"):
                    texts.append(part["text"])
        if texts:
            return "\n".join(texts)
    return json.dumps(payload)


@dataclass
class RetrievalResponse:
    answer: str
    references: List[Reference] = field(default_factory=list)
    activity: List[Activity] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetrievalResponse":
        references = data.get("references") or []
        activity = data.get("activity") or []
        return cls(
            answer=extract_answer(data.get("response")),
            references=[parse_reference(r) for r in references if isinstance(r, dict)],
            activity=[parse_activity(a) for a in activity if isinstance(a, dict)],
            raw=data,
        )

    @property
    def doc_keys(self) -> List[str]:
        return [r.doc_key for r in self.references if isinstance(r, SearchIndexReference) and r.doc_key]


@dataclass
class KnowledgeSourceParams:
    """Per-query options for one knowledge source."""
    knowledge_source_name: str
    reranker_threshold: Optional[float] = 2.5
    always_query_source: bool = True
    include_references: bool = True
    include_reference_source_data: bool = True
    kind: str = "searchIndex"

    def to_dict(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "knowledgeSourceName": self.knowledge_source_name,
            "kind": self.kind,
            "includeReferences": self.include_references,
            "includeReferenceSourceData": self.include_reference_source_data,
            "alwaysQuerySource": self.always_query_source,
        }
        if self.reranker_threshold is not None:
            params["rerankerThreshold"] = self.reranker_threshold
        return params


class RetrievalSession:
    """Runs chained retrieve calls against one knowledge base."""

    def __init__(
        self,
        knowledge_client: KnowledgeClient,
        knowledge_base_name: str,
        source_params: List[KnowledgeSourceParams],
        reasoning_effort: str = "low",
        include_activity: bool = True,
    ):
        self._client = knowledge_client
        self._knowledge_base_name = knowledge_base_name
        self._source_params = source_params
        self._reasoning_effort = reasoning_effort
        self._include_activity = include_activity

    def build_request(self, conversation: Conversation) -> Dict[str, Any]:
        return {
            "messages": [m.to_request() for m in conversation.without_system()],
            "knowledgeSourceParams": [p.to_dict() for p in self._source_params],
            "includeActivity": self._include_activity,
            "retrievalReasoningEffort": {"kind": self._reasoning_effort},
        }

    def query(self, conversation: Conversation, question: str) -> RetrievalResponse:
        """
        Ask ``question`` in the context of ``conversation``.

        The question and the synthesized answer are both appended to the
        conversation.
        """
        conversation.add("user", question)
        logger.info(f"🔍 Running agentic retrieval: {question[:100]}")

        data = self._client.retrieve(self._knowledge_base_name, self.build_request(conversation))
        response = RetrievalResponse.from_dict(data)

        conversation.add("assistant", response.answer)
        logger.info(
            f"Retrieved {len(response.references)} references, {len(response.activity)} activity records"
        )
        return response


def print_retrieval_response(response: RetrievalResponse) -> None:
    """Print the answer, activity records and references to stdout."""
    print(response.answer)

    print("\nActivities:")
    for activity in response.activity:
        print(f"Activity Type: {activity.type}")
        print(json.dumps(activity.raw, indent=2))

    print("Results")
    for reference in response.references:
        print(f"Reference Type: {reference.type}")
        print(json.dumps(reference.raw, indent=2))
