"""Tests for the relevance ranker."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from papertok.core.config import Config
from papertok.core.models import Paper, UserAction, UserPreference
from papertok.services.paper_store import PaperStore
from papertok.services.preference_service import PreferenceService
from papertok.services.recommendation import (
    RelevanceRanker,
    category_relevance,
    freshness_score,
    user_behavior_score,
)

NOW = datetime(2024, 1, 15, tzinfo=timezone.utc)


def _paper(arxiv_id: str, days_old: float, categories: list[str] | None = None) -> Paper:
    return Paper(
        arxiv_id=arxiv_id,
        title=f"Paper {arxiv_id}",
        abstract="Abstract.",
        authors=["Alice"],
        categories=categories or ["cs.AI"],
        published=NOW - timedelta(days=days_old),
    )


class TestFreshness:
    """Exponential decay with a seven-day half-life."""

    def test_half_life(self):
        assert freshness_score(NOW, NOW) == pytest.approx(1.0)
        assert freshness_score(NOW - timedelta(days=7), NOW) == pytest.approx(0.5)
        assert freshness_score(NOW - timedelta(days=14), NOW) == pytest.approx(0.25)

    def test_future_date_clamped(self):
        assert freshness_score(NOW + timedelta(days=3), NOW) == 1.0

    def test_custom_half_life(self):
        assert freshness_score(NOW - timedelta(days=1), NOW, half_life_days=1.0) == pytest.approx(0.5)


class TestUserBehavior:
    """Score from favorites, skips, reads and dwell time."""

    def test_no_action_is_neutral(self):
        assert user_behavior_score(None) == 0.5

    def test_untouched_action_is_neutral(self):
        assert user_behavior_score(UserAction(arxiv_id="1")) == 0.5

    def test_favorited(self):
        assert user_behavior_score(UserAction(arxiv_id="1", is_favorited=True)) == pytest.approx(1.0)

    def test_skipped(self):
        assert user_behavior_score(UserAction(arxiv_id="1", is_skipped=True)) == pytest.approx(0.2)

    def test_read_with_dwell(self):
        action = UserAction(arxiv_id="1", is_read=True, dwell_time_seconds=60)
        assert user_behavior_score(action) == pytest.approx(0.9)

    def test_dwell_bonus_capped(self):
        action = UserAction(arxiv_id="1", dwell_time_seconds=3600)
        assert user_behavior_score(action) == pytest.approx(0.8)

    def test_clamped_to_unit_interval(self):
        action = UserAction(arxiv_id="1", is_favorited=True, is_read=True, dwell_time_seconds=600)
        assert user_behavior_score(action) == 1.0


class TestCategoryRelevance:
    """Fraction of selected categories the paper covers."""

    def test_no_preference_is_neutral(self):
        assert category_relevance(["cs.AI"], None) == 0.5

    def test_empty_selection_is_neutral(self):
        assert category_relevance(["cs.AI"], UserPreference(selected_categories=[])) == 0.5

    def test_fraction_of_selection(self):
        preference = UserPreference(selected_categories=["cs.AI", "cs.LG", "cs.CV", "cs.CL"])
        assert category_relevance(["cs.AI", "cs.LG", "math.OC"], preference) == pytest.approx(0.5)

    def test_no_overlap(self):
        preference = UserPreference(selected_categories=["cs.AI"])
        assert category_relevance(["math.AG"], preference) == 0.0


class TestRelevanceRanker:
    """Composite scoring and ordering."""

    def test_neutral_end_to_end(self, tmp_config: Config):
        papers = [_paper("old", 14), _paper("fresh", 0), _paper("week", 7)]
        PaperStore().insert_new(papers)
        ranker = RelevanceRanker()

        scores = dict(zip([p.arxiv_id for p in papers], ranker.score_papers(papers, now=NOW)))
        assert scores["fresh"] == pytest.approx(0.675)
        assert scores["week"] == pytest.approx(0.425)
        assert scores["old"] == pytest.approx(0.3375)

        assert ranker.rank(["old", "fresh", "week"], now=NOW) == ["fresh", "week", "old"]

    def test_scores_within_unit_interval(self, tmp_config: Config):
        papers = [_paper("a", 0), _paper("b", 400)]
        PaperStore().insert_new(papers)
        PreferenceService().toggle_favorite("a")

        scores = RelevanceRanker().score_papers(papers, now=NOW)
        assert all(0.0 <= s <= 1.0 for s in scores)

    def test_favorite_outranks_fresher_paper(self, tmp_config: Config):
        papers = [_paper("fresh", 0), _paper("liked", 7)]
        PaperStore().insert_new(papers)
        PreferenceService().toggle_favorite("liked")

        assert RelevanceRanker().rank(["fresh", "liked"], now=NOW) == ["liked", "fresh"]

    def test_category_match_counts(self, tmp_config: Config):
        papers = [_paper("other", 0, ["math.AG"]), _paper("match", 0, ["cs.LG"])]
        PaperStore().insert_new(papers)
        PreferenceService().set_categories(["cs.LG"])

        assert RelevanceRanker().rank(["other", "match"], now=NOW) == ["match", "other"]

    def test_ties_keep_input_order(self, tmp_config: Config):
        papers = [_paper(f"p{i}", 3) for i in range(5)]
        PaperStore().insert_new(papers)
        ids = ["p3", "p1", "p4", "p0", "p2"]

        assert RelevanceRanker().rank(ids, now=NOW) == ids

    def test_unknown_and_duplicate_ids_dropped(self, tmp_config: Config):
        PaperStore().insert_new([_paper("a", 0), _paper("b", 1)])

        assert RelevanceRanker().rank(["b", "ghost", "a", "b"], now=NOW) == ["a", "b"]

    def test_rank_papers_returns_scores(self, tmp_config: Config):
        papers = [_paper("week", 7), _paper("fresh", 0)]
        ranked = RelevanceRanker().rank_papers(papers, now=NOW)

        assert [r.paper.arxiv_id for r in ranked] == ["fresh", "week"]
        assert ranked[0].score > ranked[1].score

    def test_empty(self, tmp_config: Config):
        ranker = RelevanceRanker()
        assert ranker.rank([], now=NOW) == []
        assert len(ranker.score_papers([], now=NOW)) == 0

    def test_rank_async(self, tmp_config: Config):
        PaperStore().insert_new([_paper("week", 7), _paper("fresh", 0)])
        ranker = RelevanceRanker()

        async def run_both():
            return await asyncio.gather(
                ranker.rank_async(["week", "fresh"], now=NOW),
                ranker.rank_async(["fresh", "week"], now=NOW),
            )

        first, second = asyncio.run(run_both())
        assert first == second == ["fresh", "week"]
