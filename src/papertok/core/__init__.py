"""Core module."""
from .config import Config, get_config
from .database import init_db, get_connection
from .models import (
    Paper, UserAction, UserPreference, PaperSummary, TermGlossaryItem,
    APIConfiguration, LLMProviderType, LLMRequest, LLMResponse, TokenUsage,
    RankedPaper, FeedState, SummaryState, SortBy, SortOrder,
)

__all__ = [
    "Config", "get_config",
    "init_db", "get_connection",
    "Paper", "UserAction", "UserPreference", "PaperSummary", "TermGlossaryItem",
    "APIConfiguration", "LLMProviderType", "LLMRequest", "LLMResponse", "TokenUsage",
    "RankedPaper", "FeedState", "SummaryState", "SortBy", "SortOrder",
]
