from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NODE_TYPES = ("start", "party", "process", "decision", "end")


def string_entries(value: Any) -> Any:
    """
    Coerce a model-supplied list of strings: nulls are dropped, objects are
    flattened to their non-empty values and a bare string becomes one entry.
    """
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    entries = []
    for entry in value:
        if entry is None:
            continue
        if isinstance(entry, dict):
            entry = " - ".join(str(v) for v in entry.values() if v not in (None, ""))
        elif not isinstance(entry, str):
            entry = str(entry)
        if entry.strip():
            entries.append(entry)
    return entries


def object_entries(value: Any, text_field: str) -> Any:
    """
    Coerce a model-supplied list of objects. A bare string is kept as an
    object with ``text_field`` set; nulls and other scalars are dropped.
    Anything that is not list-shaped is returned as-is for validation to reject.
    """
    if value is None:
        return []
    if isinstance(value, (dict, str)):
        value = [value]
    if not isinstance(value, list):
        return value
    entries = []
    for entry in value:
        if isinstance(entry, dict):
            entries.append(entry)
        elif isinstance(entry, str) and entry.strip():
            entries.append({text_field: entry})
    return entries


class _ModelOutput(BaseModel):
    """
    Base for everything the model fills in. Extra keys are kept so nothing the
    model adds beyond the schema is silently lost.
    """
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # A null for a declared field means "not provided": use its default.
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None or k not in cls.model_fields}
        return data


# ------------------------------------------------------------------------------
# Analysis result (schema the model is asked to fill in)
# ------------------------------------------------------------------------------

class RiskFinding(_ModelOutput):
    type: str = "General"
    description: str = ""
    location: str = ""
    recommendation: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def default_type(cls, value: Any) -> Any:
        return value or "General"


class VagueTerm(_ModelOutput):
    term: str = ""
    context: str = ""
    issue: str = ""
    suggestion: str = ""


class KeyTerm(_ModelOutput):
    category: str = ""
    term: str = ""
    explanation: str = ""
    importance: str = "Medium"


class LegalReference(_ModelOutput):
    reference: str = ""
    context: str = ""


class SuggestedQuestion(_ModelOutput):
    question: str
    answer: str = ""


class NodePosition(_ModelOutput):
    x: float = 0
    y: float = 0


class FlowNode(_ModelOutput):
    id: str
    type: Literal["start", "party", "process", "decision", "end"] = "process"
    label: str = ""
    position: NodePosition = Field(default_factory=NodePosition)

    @field_validator("type", mode="before")
    @classmethod
    def known_node_type(cls, value: Any) -> str:
        kind = str(value or "").strip().lower()
        return kind if kind in NODE_TYPES else "process"

    @field_validator("position", mode="before")
    @classmethod
    def loose_position(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return {"x": value[0], "y": value[1]}
        return value if isinstance(value, dict) else {}


class FlowEdge(_ModelOutput):
    id: str
    source: str
    target: str
    label: str = ""


class Flowchart(_ModelOutput):
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)

    @field_validator("nodes", mode="before")
    @classmethod
    def number_nodes(cls, value: Any) -> Any:
        nodes = object_entries(value, "label")
        if not isinstance(nodes, list):
            return nodes
        return [
            node if node.get("id") not in (None, "") else {**node, "id": f"n{i + 1}"}
            for i, node in enumerate(nodes)
        ]

    @field_validator("edges", mode="before")
    @classmethod
    def number_edges(cls, value: Any) -> Any:
        edges = object_entries(value, "label")
        if not isinstance(edges, list):
            return edges
        # An edge without both ends cannot be drawn.
        edges = [e for e in edges if e.get("source") is not None and e.get("target") is not None]
        return [
            edge if edge.get("id") not in (None, "") else {**edge, "id": f"e{i + 1}"}
            for i, edge in enumerate(edges)
        ]


class DocumentSummary(_ModelOutput):
    documentType: str = "Legal Document"
    mainPurpose: str = ""
    keyHighlights: List[str] = Field(default_factory=list)
    wordCount: Optional[int] = None
    estimatedReadingTime: Optional[str] = None

    @field_validator("wordCount", mode="before")
    @classmethod
    def loose_word_count(cls, value: Any) -> Optional[int]:
        try:
            return int(str(value).replace(",", "").strip())
        except (TypeError, ValueError):
            return None

    @field_validator("keyHighlights", mode="before")
    @classmethod
    def highlight_strings(cls, value: Any) -> Any:
        return string_entries(value)


class RiskAssessment(_ModelOutput):
    overallRisk: Optional[str] = None
    riskScore: Optional[int] = None
    favorable: List[RiskFinding] = Field(default_factory=list)
    moderate: List[RiskFinding] = Field(default_factory=list)
    critical: List[RiskFinding] = Field(default_factory=list)

    @field_validator("favorable", "moderate", "critical", mode="before")
    @classmethod
    def finding_objects(cls, value: Any) -> Any:
        return object_entries(value, "description")

    @field_validator("riskScore", mode="before")
    @classmethod
    def ignore_model_score(cls, value: Any) -> Any:
        # Recomputed from the tier counts; whatever the model sent is dropped.
        return None


class AnalysisMetadata(BaseModel):
    analysisId: str
    timestamp: str
    model: str
    parties: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class AnalysisResult(_ModelOutput):
    """
    Canonical analysis tree returned under ``analysis``. Every array defaults
    to empty; ``suggestedQuestions`` is backfilled by the normalizer.

    Loose entries are coerced rather than rejected; only a section of the
    wrong shape altogether (say, ``riskAssessment`` as a string) fails.
    """
    summary: DocumentSummary = Field(default_factory=DocumentSummary)
    riskAssessment: RiskAssessment = Field(default_factory=RiskAssessment)
    vagueTerms: List[VagueTerm] = Field(default_factory=list)
    keyTerms: List[KeyTerm] = Field(default_factory=list)
    legalReferences: List[LegalReference] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    redFlags: List[str] = Field(default_factory=list)
    suggestedQuestions: Optional[List[SuggestedQuestion]] = None
    flowchart: Flowchart = Field(default_factory=Flowchart)
    metadata: Optional[AnalysisMetadata] = None

    @field_validator("vagueTerms", "keyTerms", mode="before")
    @classmethod
    def term_objects(cls, value: Any) -> Any:
        return object_entries(value, "term")

    @field_validator("legalReferences", mode="before")
    @classmethod
    def reference_objects(cls, value: Any) -> Any:
        return object_entries(value, "reference")

    @field_validator("recommendations", "redFlags", mode="before")
    @classmethod
    def plain_strings(cls, value: Any) -> Any:
        return string_entries(value)

    @field_validator("suggestedQuestions", mode="before")
    @classmethod
    def answerable_questions(cls, value: Any) -> Any:
        questions = object_entries(value, "question")
        if not isinstance(questions, list):
            return questions
        return [q for q in questions if q.get("question") not in (None, "")]

    @field_validator("metadata", mode="before")
    @classmethod
    def drop_model_metadata(cls, value: Any) -> Any:
        # Attached by the normalizer after validation.
        return None


# ------------------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------------------

class Parties(BaseModel):
    party1: Optional[str] = None
    party2: Optional[str] = None


class AnalyzeTextRequest(BaseModel):
    """
    JSON body accepted by /api/analyze-document when no file is uploaded.
    """
    text: Optional[str] = None
    parties: Optional[Any] = Field(
        default=None,
        description="Either an object or a JSON-encoded string {party1, party2}.",
    )
    email: Optional[str] = None


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class QuestionRequest(BaseModel):
    question: Optional[str] = None
    analysisId: Optional[str] = None
    context: Optional[Any] = Field(
        default=None,
        description="Prior analysis (object or pre-serialized string).",
    )
    conversationHistory: List[ConversationTurn] = Field(default_factory=list)
    originalText: Optional[str] = None


class SpeechRequest(BaseModel):
    text: Optional[str] = None
    voiceName: Optional[str] = None
    stylePrompt: Optional[str] = None


class SaveUserDataRequest(BaseModel):
    email: Optional[str] = None
    serial: Optional[int] = None
    data: Any = None
