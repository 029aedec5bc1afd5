"""Service facade - holds all service instances."""

import asyncio
from typing import Awaitable, TypeVar

import typer

from ..core.errors import PaperTokError, user_message
from ..services.arxiv_client import ArxivClient
from ..services.credential_store import CredentialStore
from ..services.feed_service import FeedController
from ..services.paper_store import PaperStore
from ..services.preference_service import PreferenceService
from ..services.providers import LLMGateway
from ..services.recommendation import RelevanceRanker
from ..services.summarization import SummarizationService
from ..utils.display import print_error

T = TypeVar("T")


class ServiceBridge:
    """Service facade used by the CLI.

    Creates service instances once and shares them. The gateway reads the
    API configuration from the credential store on every call.
    """

    def __init__(self, page_size: int | None = None, preload_count: int | None = None) -> None:
        self.store = PaperStore()
        self.credentials = CredentialStore()
        self.preferences = PreferenceService(self.store)
        self.gateway = LLMGateway(self.credentials)
        self.arxiv = ArxivClient(self.store)
        self.ranker = RelevanceRanker(self.store)
        self.summarization = SummarizationService(self.gateway, self.store)
        self.feed = FeedController(
            self.arxiv,
            self.ranker,
            summarizer=self.summarization,
            preferences=self.preferences,
            store=self.store,
            page_size=page_size,
            preload_count=preload_count,
        )


def run(awaitable: Awaitable[T]) -> T:
    """Run a coroutine, turning PaperTok errors into a CLI error exit."""
    try:
        return asyncio.run(awaitable)
    except PaperTokError as e:
        print_error(user_message(e))
        raise typer.Exit(1) from None
