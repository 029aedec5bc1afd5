"""Local paper store."""

import json
import sqlite3
from datetime import datetime, timezone
from typing import Iterable

from ..core.database import get_connection
from ..core.models import (
    Paper,
    PaperSummary,
    TermGlossaryItem,
    UserAction,
    UserPreference,
    utcnow,
)

PREFERENCE_ID = "user_preference_singleton"


def _parse_timestamp(value: str | datetime | None) -> datetime:
    if value is None:
        return utcnow()
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class PaperStore:
    """Papers, user actions, preference, summaries and terms in SQLite."""

    # === Papers ===

    def get_paper(self, arxiv_id: str) -> Paper | None:
        with get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM papers WHERE arxiv_id = ?", (arxiv_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_paper(row)

    def get_papers_batch(self, arxiv_ids: list[str]) -> dict[str, Paper]:
        """Batch look up multiple papers."""
        if not arxiv_ids:
            return {}
        placeholders = ",".join("?" for _ in arxiv_ids)
        with get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM papers WHERE arxiv_id IN ({placeholders})",
                list(arxiv_ids),
            ).fetchall()
        return {row["arxiv_id"]: self._row_to_paper(row) for row in rows}

    def insert_new(self, papers: Iterable[Paper]) -> int:
        """Insert papers not yet in the store. Returns the number inserted."""
        rows = [
            (
                p.arxiv_id,
                p.title,
                p.abstract,
                json.dumps(p.authors),
                json.dumps(p.categories),
                p.published.isoformat(),
                p.pdf_url,
                utcnow().isoformat(),
            )
            for p in papers
        ]
        if not rows:
            return 0
        with get_connection() as conn:
            cursor = conn.executemany(
                """INSERT OR IGNORE INTO papers
                   (arxiv_id, title, abstract, authors, categories,
                    published, pdf_url, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                rows,
            )
            conn.commit()
            return cursor.rowcount

    def get_all_papers(self, limit: int | None = None) -> list[Paper]:
        """Cached papers, newest first."""
        query = "SELECT * FROM papers ORDER BY published DESC, arxiv_id ASC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_paper(row) for row in rows]

    def count_papers(self) -> int:
        with get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM papers").fetchone()[0]

    # === User actions ===

    def get_action(self, arxiv_id: str) -> UserAction | None:
        with get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM user_actions WHERE arxiv_id = ?", (arxiv_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_action(row)

    def get_actions_batch(self, arxiv_ids: list[str]) -> dict[str, UserAction]:
        if not arxiv_ids:
            return {}
        placeholders = ",".join("?" for _ in arxiv_ids)
        with get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM user_actions WHERE arxiv_id IN ({placeholders})",
                list(arxiv_ids),
            ).fetchall()
        return {row["arxiv_id"]: self._row_to_action(row) for row in rows}

    def get_favorites(self) -> list[Paper]:
        """Favorited papers, most recently updated first."""
        with get_connection() as conn:
            rows = conn.execute(
                """SELECT p.* FROM papers p
                   JOIN user_actions a ON a.arxiv_id = p.arxiv_id
                   WHERE a.is_favorited = 1
                   ORDER BY a.updated_at DESC"""
            ).fetchall()
        return [self._row_to_paper(row) for row in rows]

    # === User preference ===

    def get_preference(self) -> UserPreference | None:
        with get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM user_preference WHERE id = ?", (PREFERENCE_ID,)
            ).fetchone()
        if row is None:
            return None
        return UserPreference(
            selected_categories=json.loads(row["selected_categories"]),
            sort_preference=row["sort_preference"],
            summary_length_preference=row["summary_length_preference"],
            updated_at=_parse_timestamp(row["updated_at"]),
        )

    # === Summaries and terms ===

    def get_summary(self, arxiv_id: str) -> PaperSummary | None:
        with get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM paper_summaries WHERE arxiv_id = ?", (arxiv_id,)
            ).fetchone()
        if row is None:
            return None
        return PaperSummary(
            arxiv_id=row["arxiv_id"],
            model_name=row["model_name"],
            summary_text=row["summary_text"],
            title_chinese=row["title_chinese"],
            institutions=row["institutions"],
            problem=row["problem"],
            method=row["method"],
            result=row["result"],
            one_liner=row["one_liner"],
            updated_at=_parse_timestamp(row["updated_at"]),
        )

    def save_summary(
        self,
        summary: PaperSummary,
        terms: list[TermGlossaryItem] | None = None,
    ) -> None:
        """Upsert a summary in one transaction.

        When ``terms`` is given it replaces the paper's existing terms.
        """
        with get_connection() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO paper_summaries
                   (arxiv_id, model_name, summary_text, title_chinese, institutions,
                    problem, method, result, one_liner, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    summary.arxiv_id,
                    summary.model_name,
                    summary.summary_text,
                    summary.title_chinese,
                    summary.institutions,
                    summary.problem,
                    summary.method,
                    summary.result,
                    summary.one_liner,
                    summary.updated_at.isoformat(),
                ),
            )
            if terms is not None:
                conn.execute(
                    "DELETE FROM term_glossary WHERE arxiv_id = ?", (summary.arxiv_id,)
                )
                conn.executemany(
                    """INSERT INTO term_glossary
                       (arxiv_id, term_chinese, term_english, explanation,
                        context_meaning, weight, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    [
                        (
                            t.arxiv_id,
                            t.term_chinese,
                            t.term_english,
                            t.explanation,
                            t.context_meaning,
                            t.weight,
                            t.updated_at.isoformat(),
                        )
                        for t in terms
                    ],
                )
            conn.commit()

    def delete_summary(self, arxiv_id: str) -> bool:
        """Delete a summary (partial or complete) and all of its terms."""
        with get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM paper_summaries WHERE arxiv_id = ?", (arxiv_id,)
            )
            conn.execute("DELETE FROM term_glossary WHERE arxiv_id = ?", (arxiv_id,))
            conn.commit()
            return cursor.rowcount > 0

    def get_terms(self, arxiv_id: str) -> list[TermGlossaryItem]:
        """Terms for a paper, highest weight first."""
        with get_connection() as conn:
            rows = conn.execute(
                """SELECT * FROM term_glossary WHERE arxiv_id = ?
                   ORDER BY weight DESC, id ASC""",
                (arxiv_id,),
            ).fetchall()
        return [
            TermGlossaryItem(
                arxiv_id=row["arxiv_id"],
                term_chinese=row["term_chinese"],
                term_english=row["term_english"],
                explanation=row["explanation"],
                context_meaning=row["context_meaning"],
                weight=row["weight"],
                updated_at=_parse_timestamp(row["updated_at"]),
            )
            for row in rows
        ]

    @staticmethod
    def _row_to_paper(row: sqlite3.Row) -> Paper:
        """Convert a DB row to a Paper object."""
        return Paper(
            arxiv_id=row["arxiv_id"],
            title=row["title"],
            abstract=row["abstract"],
            authors=json.loads(row["authors"]),
            categories=json.loads(row["categories"]),
            published=_parse_timestamp(row["published"]),
            pdf_url=row["pdf_url"],
        )

    @staticmethod
    def _row_to_action(row: sqlite3.Row) -> UserAction:
        return UserAction(
            arxiv_id=row["arxiv_id"],
            is_favorited=bool(row["is_favorited"]),
            is_read=bool(row["is_read"]),
            is_skipped=bool(row["is_skipped"]),
            dwell_time_seconds=row["dwell_time_seconds"],
            updated_at=_parse_timestamp(row["updated_at"]),
        )
