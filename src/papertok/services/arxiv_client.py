"""arXiv API client."""
import asyncio
import re
import xml.sax
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable

import feedparser
import httpx
from loguru import logger

from ..core.config import get_config
from ..core.errors import (
    HttpError,
    InvalidQueryError,
    NetworkError,
    ParseError,
    RateLimitedError,
)
from ..core.models import Paper, SortBy, SortOrder
from .paper_store import PaperStore


ARXIV_API_URL = "https://export.arxiv.org/api/query"
USER_AGENT = "PaperTok/1.0"
# arXiv sometimes answers 200 with a throttling message in the body
RATE_LIMIT_MARKER = "Rate exceeded"

_VERSION_SUFFIX = re.compile(r"v\d+$")


def extract_arxiv_id(url: str) -> str:
    """Extract the arXiv ID from an entry URL, without version suffix.

    >>> extract_arxiv_id("http://arxiv.org/abs/2401.12345v3")
    '2401.12345'
    """
    last = url.strip().split("/")[-1]
    return _VERSION_SUFFIX.sub("", last)


class ArxivClient:
    """arXiv API client.

    Fetches a page of papers for a set of categories, retrying with
    exponential backoff when arXiv rate-limits us, and writes unseen papers
    through to the local store.
    """

    def __init__(
        self,
        store: PaperStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store or PaperStore()
        self._transport = transport
        self._sleep = sleep

    async def fetch(
        self,
        categories: Iterable[str],
        max_results: int = 50,
        offset: int = 0,
        sort_by: SortBy | str = SortBy.SUBMITTED_DATE,
        sort_order: SortOrder | str = SortOrder.DESCENDING,
    ) -> list[Paper]:
        """Fetch papers in any of the given categories (write-through cache)."""
        categories = list(dict.fromkeys(categories))
        if not categories:
            raise InvalidQueryError()

        config = get_config()
        max_retries = config.arxiv_max_retries

        for attempt in range(max_retries):
            try:
                papers = await self._fetch_once(
                    categories, max_results, offset, SortBy(sort_by), SortOrder(sort_order), attempt
                )
            except RateLimitedError:
                if attempt >= max_retries - 1:
                    raise
                delay = config.arxiv_base_delay * (2 ** attempt)
                logger.warning(
                    "Rate limited. Waiting {}s before retry {}/{}",
                    delay, attempt + 1, max_retries,
                )
                await self._sleep(delay)
                continue

            inserted = self.store.insert_new(papers)
            logger.info("Fetched {} papers ({} new)", len(papers), inserted)
            return papers

        # Only reachable with max_retries < 1
        raise NetworkError()

    async def _fetch_once(
        self,
        categories: list[str],
        max_results: int,
        offset: int,
        sort_by: SortBy,
        sort_order: SortOrder,
        attempt: int,
    ) -> list[Paper]:
        params = {
            "search_query": " OR ".join(f"cat:{cat}" for cat in categories),
            "start": offset,
            "max_results": max_results,
            "sortBy": sort_by.value,
            "sortOrder": sort_order.value,
        }
        logger.debug("Fetching arXiv (attempt {}): {}", attempt + 1, params)

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                trust_env=False,
                timeout=get_config().arxiv_timeout,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                response = await client.get(ARXIV_API_URL, params=params)
        except httpx.TransportError as e:
            raise NetworkError(f"Network request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitedError()
        if RATE_LIMIT_MARKER in response.text:
            raise RateLimitedError()
        if not response.is_success:
            raise HttpError(response.status_code, response.text[:500] or "HTTP request failed")

        return self.parse_response(response.content)

    @staticmethod
    def parse_response(xml_data: bytes | str) -> list[Paper]:
        """Parse an Atom response. Entries without id or valid date are dropped."""
        feed = feedparser.parse(xml_data)
        if feed.bozo and isinstance(feed.get("bozo_exception"), xml.sax.SAXException):
            raise ParseError(f"Failed to parse arXiv response: {feed.bozo_exception}")

        papers = []
        for entry in feed.entries:
            arxiv_id = extract_arxiv_id(entry.get("id", ""))
            published_parsed = entry.get("published_parsed")
            if not arxiv_id or not published_parsed:
                continue

            published = datetime(*published_parsed[:6], tzinfo=timezone.utc)

            authors = [a.get("name", "").strip() for a in entry.get("authors", [])]
            categories = list(dict.fromkeys(
                tag.get("term") for tag in entry.get("tags", []) if tag.get("term")
            ))

            # PDF URL
            pdf_url = ""
            for link in entry.get("links", []):
                if link.get("title") == "pdf":
                    pdf_url = link.get("href", "")
                    break
            if not pdf_url:
                for link in entry.get("links", []):
                    if link.get("type") == "application/pdf":
                        pdf_url = link.get("href", "")
                        break

            papers.append(
                Paper(
                    arxiv_id=arxiv_id,
                    title=" ".join(entry.get("title", "").split()),
                    abstract=" ".join(entry.get("summary", "").split()),
                    authors=[a for a in authors if a],
                    categories=categories,
                    published=published,
                    pdf_url=pdf_url,
                )
            )

        return papers
