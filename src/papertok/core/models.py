"""Data model definitions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LLMProviderType(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GOOGLE = "google"

    @property
    def default_base_url(self) -> str:
        return _DEFAULT_BASE_URLS[self]

    @property
    def default_model(self) -> str:
        return _DEFAULT_MODELS[self]


_DEFAULT_BASE_URLS: dict[LLMProviderType, str] = {
    LLMProviderType.ANTHROPIC: "https://api.anthropic.com/v1/messages",
    LLMProviderType.OPENAI: "https://api.openai.com/v1/chat/completions",
    LLMProviderType.GOOGLE: "https://generativelanguage.googleapis.com/v1beta/models",
}

_DEFAULT_MODELS: dict[LLMProviderType, str] = {
    LLMProviderType.ANTHROPIC: "claude-haiku-4-5",
    LLMProviderType.OPENAI: "gpt-5.2",
    LLMProviderType.GOOGLE: "gemini-3-flash-preview",
}


class SortBy(str, Enum):
    SUBMITTED_DATE = "submittedDate"
    LAST_UPDATED_DATE = "lastUpdatedDate"
    RELEVANCE = "relevance"


class SortOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class SummaryState(str, Enum):
    ABSENT = "absent"
    TITLE_ONLY = "title_only"
    COMPLETE = "complete"


@dataclass(frozen=True)
class Paper:
    """Paper data model. Immutable once fetched."""

    arxiv_id: str
    title: str
    abstract: str
    authors: list[str]
    categories: list[str]
    published: datetime
    pdf_url: str = ""

    @property
    def primary_category(self) -> str:
        return self.categories[0] if self.categories else ""


@dataclass
class UserAction:
    """Per-paper interaction record."""

    arxiv_id: str
    is_favorited: bool = False
    is_read: bool = False
    is_skipped: bool = False
    dwell_time_seconds: float = 0.0
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class UserPreference:
    """Singleton user preference."""

    selected_categories: list[str] = field(default_factory=list)
    sort_preference: str = "hotness"
    summary_length_preference: str = "medium"
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class PaperSummary:
    """AI summary cache. Partial while only title_chinese is set."""

    arxiv_id: str
    model_name: str = ""
    summary_text: str = ""
    title_chinese: Optional[str] = None
    institutions: Optional[str] = None
    problem: Optional[str] = None
    method: Optional[str] = None
    result: Optional[str] = None
    one_liner: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_complete(self) -> bool:
        return self.problem is not None

    @property
    def state(self) -> SummaryState:
        if self.is_complete:
            return SummaryState.COMPLETE
        if self.title_chinese is not None:
            return SummaryState.TITLE_ONLY
        return SummaryState.ABSENT


@dataclass
class TermGlossaryItem:
    """One entry of a paper's Terms to Know."""

    arxiv_id: str
    term_chinese: str
    term_english: str
    explanation: str
    context_meaning: str = ""
    weight: float = 1.0
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class APIConfiguration:
    """Credentials and endpoint for one LLM provider."""

    provider: LLMProviderType
    api_key: str
    base_url: str = ""
    model_name: str = ""
    api_version: Optional[str] = None

    def __post_init__(self) -> None:
        self.provider = LLMProviderType(self.provider)
        if not self.base_url:
            self.base_url = self.provider.default_base_url
        if not self.model_name:
            self.model_name = self.provider.default_model

    def to_dict(self) -> dict:
        return {
            "provider": self.provider.value,
            "api_key": self.api_key,
            "base_url": self.base_url,
            "model_name": self.model_name,
            "api_version": self.api_version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "APIConfiguration":
        return cls(
            provider=LLMProviderType(data["provider"]),
            api_key=data["api_key"],
            base_url=data.get("base_url", ""),
            model_name=data.get("model_name", ""),
            api_version=data.get("api_version"),
        )


@dataclass
class LLMRequest:
    system_prompt: str
    user_prompt: str
    temperature: float
    max_tokens: int


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[TokenUsage] = None


@dataclass
class RankedPaper:
    """Paper with its composite relevance score."""

    paper: Paper
    score: float
    summary: Optional[PaperSummary] = None


@dataclass
class FeedState:
    """Paginated feed state."""

    ranked_ids: list[str] = field(default_factory=list)
    offset: int = 0
    page_size: int = 50
