"""Relevance ranking engine."""
import asyncio
import math
from datetime import datetime

import numpy as np
from loguru import logger

from ..core.config import get_config
from ..core.models import Paper, RankedPaper, UserAction, UserPreference, utcnow
from .paper_store import PaperStore

SECONDS_PER_DAY = 24 * 60 * 60
NEUTRAL_SCORE = 0.5
DWELL_CAP_SECONDS = 300.0
DWELL_MAX_BONUS = 0.3


def freshness_score(published: datetime, now: datetime, half_life_days: float = 7.0) -> float:
    """Exponential decay: a paper loses half its freshness every half-life."""
    days = (now - published).total_seconds() / SECONDS_PER_DAY
    decay_rate = math.log(2) / half_life_days
    return float(np.clip(math.exp(-decay_rate * days), 0.0, 1.0))


def user_behavior_score(action: UserAction | None) -> float:
    """Score from the user's prior interactions. Unseen papers are neutral."""
    if action is None:
        return NEUTRAL_SCORE

    score = NEUTRAL_SCORE
    if action.is_favorited:
        score += 0.5
    if action.is_skipped:
        score -= 0.3
    if action.is_read:
        score += 0.2
    # 5 minutes of cumulative viewing earns the full bonus
    score += min(DWELL_MAX_BONUS, action.dwell_time_seconds / DWELL_CAP_SECONDS)

    return float(np.clip(score, 0.0, 1.0))


def category_relevance(categories: list[str], preference: UserPreference | None) -> float:
    """Fraction of the user's selected categories that the paper covers."""
    if preference is None:
        return NEUTRAL_SCORE
    selected = set(preference.selected_categories)
    if not selected:
        return NEUTRAL_SCORE
    return len(selected & set(categories)) / len(selected)


class RelevanceRanker:
    """Composite scoring of freshness, user behavior and category relevance."""

    def __init__(self, store: PaperStore | None = None):
        self.store = store or PaperStore()
        self._lock = asyncio.Lock()

    def score_papers(
        self,
        papers: list[Paper],
        now: datetime | None = None,
    ) -> np.ndarray:
        """Composite score per paper, in input order."""
        if not papers:
            return np.zeros(0)

        config = get_config()
        now = now or utcnow()

        # One query each for actions and the preference
        actions = self.store.get_actions_batch([p.arxiv_id for p in papers])
        preference = self.store.get_preference()

        freshness = np.array([
            freshness_score(p.published, now, config.freshness_half_life_days) for p in papers
        ])
        behavior = np.array([user_behavior_score(actions.get(p.arxiv_id)) for p in papers])
        relevance = np.array([category_relevance(p.categories, preference) for p in papers])

        weights = np.array([config.freshness_weight, config.behavior_weight, config.category_weight])
        components = np.clip(np.vstack([freshness, behavior, relevance]), 0.0, 1.0)
        return weights @ components

    def rank_papers(
        self,
        papers: list[Paper],
        now: datetime | None = None,
    ) -> list[RankedPaper]:
        """Rank papers by descending score; ties keep input order."""
        scores = self.score_papers(papers, now=now)
        # Stable sort on negated scores keeps input order for equal scores
        order = np.argsort(-scores, kind="stable")
        return [RankedPaper(paper=papers[i], score=float(scores[i])) for i in order]

    def rank(self, candidate_ids: list[str], now: datetime | None = None) -> list[str]:
        """Rank arXiv IDs. IDs unknown to the store are dropped."""
        cached = self.store.get_papers_batch(list(candidate_ids))
        papers = []
        seen = set()
        for arxiv_id in candidate_ids:
            if arxiv_id in cached and arxiv_id not in seen:
                papers.append(cached[arxiv_id])
                seen.add(arxiv_id)
        missing = len(set(candidate_ids)) - len(papers)
        if missing:
            logger.debug("Dropping {} candidate(s) not in store", missing)
        return [r.paper.arxiv_id for r in self.rank_papers(papers, now=now)]

    async def rank_async(self, candidate_ids: list[str], now: datetime | None = None) -> list[str]:
        """Rank while owning the store reads for the duration of the pass."""
        async with self._lock:
            return self.rank(candidate_ids, now=now)
