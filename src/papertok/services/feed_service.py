"""Feed service: paginated, ranked feed with summary prefetch."""
import asyncio

from loguru import logger

from ..core.config import get_config
from ..core.models import FeedState, Paper, RankedPaper, SortBy, SortOrder
from .arxiv_client import ArxivClient
from .paper_store import PaperStore
from .preference_service import PreferenceService
from .recommendation import RelevanceRanker
from .summarization import SummarizationService


class FeedController:
    """Assembles the feed page by page.

    Each page is ranked on its own and appended after the pages already
    shown; earlier pages are never re-sorted.
    """

    def __init__(
        self,
        arxiv_client: ArxivClient,
        ranker: RelevanceRanker,
        summarizer: SummarizationService | None = None,
        preferences: PreferenceService | None = None,
        store: PaperStore | None = None,
        page_size: int | None = None,
        prefetch_threshold: int | None = None,
        preload_count: int | None = None,
        summary_concurrency: int | None = None,
        sort_by: SortBy = SortBy.SUBMITTED_DATE,
        sort_order: SortOrder = SortOrder.DESCENDING,
    ):
        config = get_config()
        self.arxiv_client = arxiv_client
        self.ranker = ranker
        self.summarizer = summarizer
        self.store = store or PaperStore()
        self.preferences = preferences or PreferenceService(self.store)
        self.prefetch_threshold = (
            config.prefetch_threshold if prefetch_threshold is None else prefetch_threshold
        )
        self.preload_count = config.preload_count if preload_count is None else preload_count
        concurrency = config.summary_concurrency if summary_concurrency is None else summary_concurrency
        self._summary_slots = asyncio.Semaphore(max(concurrency, 1))
        self.sort_by = sort_by
        self.sort_order = sort_order

        self.state = FeedState(page_size=page_size or config.page_size)
        self._loading_first = False
        self._loading_more = False
        self._scheduled: set[str] = set()
        self._prefetch_tasks: set[asyncio.Task] = set()

    @property
    def ranked_ids(self) -> list[str]:
        return self.state.ranked_ids

    @property
    def offset(self) -> int:
        return self.state.offset

    @property
    def page_size(self) -> int:
        return self.state.page_size

    @property
    def is_loading(self) -> bool:
        return self._loading_first or self._loading_more

    async def load_first_page(self) -> list[str]:
        """Reset the feed and load the first ranked page.

        Returns an empty list when no preference is configured.
        """
        self.state.ranked_ids = []
        self.state.offset = 0
        self._scheduled.clear()

        preference = self.preferences.get_preference()
        if preference is None:
            logger.debug("No user preference configured; feed is empty")
            return []

        self._loading_first = True
        try:
            papers = await self._fetch_page(preference.selected_categories, 0)
            ranked = await self.ranker.rank_async([p.arxiv_id for p in papers])
            self.state.ranked_ids = ranked
            self.state.offset = self.page_size
        finally:
            self._loading_first = False

        return list(ranked)

    async def load_next_page(self) -> list[str]:
        """Append the next ranked page. Returns the newly appended IDs.

        No-op while another load is in flight, and when arXiv has no more
        results.
        """
        if self._loading_more or self._loading_first:
            return []
        preference = self.preferences.get_preference()
        if preference is None:
            return []

        self._loading_more = True
        try:
            papers = await self._fetch_page(preference.selected_categories, self.state.offset)
            if not papers:
                logger.debug("No more papers at offset {}", self.state.offset)
                return []

            ranked = await self.ranker.rank_async([p.arxiv_id for p in papers])
            displayed = set(self.state.ranked_ids)
            new_ids = [arxiv_id for arxiv_id in ranked if arxiv_id not in displayed]
            self.state.ranked_ids.extend(new_ids)
            self.state.offset += self.page_size
        finally:
            self._loading_more = False

        return new_ids

    async def on_position_changed(self, index: int) -> None:
        """React to the display position moving to ``index``."""
        self.prefetch_summaries(index)
        remaining = len(self.state.ranked_ids) - (index + 1)
        if remaining < self.prefetch_threshold:
            appended = await self.load_next_page()
            if appended:
                self.prefetch_summaries(index)

    def prefetch_summaries(self, index: int) -> list[str]:
        """Start best-effort summary generation for the current and next papers.

        At most `summary_concurrency` papers are summarized at once. Returns
        the IDs scheduled by this call.
        """
        if self.summarizer is None or self.preload_count <= 0:
            return []

        window = self.state.ranked_ids[max(index, 0):index + self.preload_count + 1]
        pending = [arxiv_id for arxiv_id in window if arxiv_id not in self._scheduled]
        papers = self.store.get_papers_batch(pending)

        scheduled = []
        for arxiv_id in pending:
            paper = papers.get(arxiv_id)
            if paper is None:
                continue
            self._scheduled.add(arxiv_id)
            task = asyncio.ensure_future(self._prefetch_one(paper))
            self._prefetch_tasks.add(task)
            task.add_done_callback(self._prefetch_tasks.discard)
            scheduled.append(arxiv_id)
        return scheduled

    async def drain(self) -> None:
        """Wait for outstanding prefetch tasks."""
        if self._prefetch_tasks:
            await asyncio.gather(*list(self._prefetch_tasks), return_exceptions=True)

    def papers(self) -> list[Paper]:
        """Papers of the feed in display order."""
        cached = self.store.get_papers_batch(self.state.ranked_ids)
        return [cached[i] for i in self.state.ranked_ids if i in cached]

    def ranked_papers(self) -> list[RankedPaper]:
        """Papers in display order with their current scores."""
        papers = self.papers()
        scores = self.ranker.score_papers(papers)
        return [
            RankedPaper(paper=paper, score=float(score), summary=self.store.get_summary(paper.arxiv_id))
            for paper, score in zip(papers, scores)
        ]

    async def _fetch_page(self, categories: list[str], offset: int) -> list[Paper]:
        return await self.arxiv_client.fetch(
            categories,
            max_results=self.page_size,
            offset=offset,
            sort_by=self.sort_by,
            sort_order=self.sort_order,
        )

    async def _prefetch_one(self, paper: Paper) -> None:
        try:
            async with self._summary_slots:
                await self.summarizer.translate_title(paper)
                await self.summarizer.generate_summary(paper)
        except Exception as e:
            # Prefetch never blocks scrolling; the summary is retried on demand
            logger.debug("Prefetch failed for {}: {}", paper.arxiv_id, e)
