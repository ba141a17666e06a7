from typing import Any, ClassVar, Dict, Generic, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CampaignContext(BaseModel):
    """Read-only description of the legal campaign a request works on."""
    model_config = ConfigDict(frozen=True)

    matter: str
    keywords: str
    target_description: str
    session_id: Optional[str] = None


class SourceItem(BaseModel):
    """One evidentiary snippet, e.g. a research result serialized to text."""
    content: str
    metadata: Dict[str, str]


class SourceContext(BaseModel):
    demographic_data: List[SourceItem] = Field(default_factory=list)
    social_insights: List[SourceItem] = Field(default_factory=list)
    consumer_behavior: List[SourceItem] = Field(default_factory=list)
    client_data: List[SourceItem] = Field(default_factory=list)

    CATEGORIES: ClassVar[Tuple[str, ...]] = ("demographic_data", "social_insights", "consumer_behavior", "client_data")

    def categories(self) -> Dict[str, List[SourceItem]]:
        return {name: getattr(self, name) for name in self.CATEGORIES}

    @property
    def total_sources(self) -> int:
        return sum(len(items) for items in self.categories().values())

    def populated(self) -> List[str]:
        return [name for name, items in self.categories().items() if items]


# ---------- Model reply schemas ----------

def clamp(value: Any, low: float, high: float, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return min(max(number, low), high)


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class SocialEnrichmentReply(BaseModel):
    """
    Stage A reply: social, professional and communication enrichment.

    `confidence` is on the 0-1 scale.
    """
    enriched_fields: Dict[str, Any] = Field(validation_alias="enrichedFields")
    confidence: float
    fields_enriched: List[str] = Field(default_factory=list, validation_alias="fieldsEnriched")
    insights: List[str] = Field(default_factory=list)
    model_config = ConfigDict(populate_by_name=True)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        return clamp(v, 0.0, 1.0, 0.0)

    @field_validator("fields_enriched", "insights", mode="before")
    @classmethod
    def _coerce_lists(cls, v):
        return [str(item) for item in _as_list(v)]


class LegalEnrichmentReply(BaseModel):
    """Stage B reply: legal-specific additions derived from documents and research."""
    additions: Dict[str, Any] = Field(default_factory=dict)
    insights: List[str] = Field(default_factory=list)
    legal_profile: Dict[str, Any] = Field(default_factory=dict)
    confidence_delta: float = 0.0

    @field_validator("additions", "legal_profile", mode="before")
    @classmethod
    def _coerce_dicts(cls, v):
        return v if isinstance(v, dict) else {}

    @field_validator("insights", mode="before")
    @classmethod
    def _coerce_insights(cls, v):
        return [str(item) for item in _as_list(v)]

    @field_validator("confidence_delta", mode="before")
    @classmethod
    def _clamp_delta(cls, v):
        return clamp(v, -1.0, 1.0, 0.0)


class QuickPersonaReply(BaseModel):
    """Chat persona synthesized from a free-text description."""
    name: str
    bio: str = ""
    communication_style: str = ""
    motivations: List[str] = Field(default_factory=list)
    barriers: List[str] = Field(default_factory=list)
    case_type: str = "General Legal"
    example_quote: str = ""

    @field_validator("motivations", "barriers", mode="before")
    @classmethod
    def _coerce_lists(cls, v):
        return [str(item) for item in _as_list(v)]


T = TypeVar("T")


class ParseResult(BaseModel, Generic[T]):
    """Outcome of parsing a model reply: either the decoded value or a typed fallback."""
    value: T
    ok: bool = True
    note: Optional[str] = None


class EnrichmentProgress(BaseModel):
    current: int
    total: int
    persona_name: Optional[str] = None
    status: str
    error: Optional[str] = None
