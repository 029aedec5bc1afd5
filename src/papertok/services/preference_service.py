"""User preference and interaction service."""

import json

from loguru import logger

from ..core.database import get_connection
from ..core.models import Paper, UserAction, UserPreference, utcnow
from .paper_store import PREFERENCE_ID, PaperStore


class PreferenceService:
    """User preference management.

    Every mutation is a single upsert statement, so each read-modify-write on
    one row commits atomically.
    """

    def __init__(self, store: PaperStore | None = None):
        self.store = store or PaperStore()

    # === Category management ===

    def get_preference(self) -> UserPreference | None:
        return self.store.get_preference()

    def get_categories(self) -> list[str]:
        """Get the selected categories (empty when unconfigured)."""
        preference = self.store.get_preference()
        return list(preference.selected_categories) if preference else []

    def set_categories(self, categories: list[str]) -> UserPreference:
        """Replace the selected categories."""
        # Keep order, drop duplicates
        selected = list(dict.fromkeys(c.strip() for c in categories if c.strip()))
        with get_connection() as conn:
            conn.execute(
                """INSERT INTO user_preference (id, selected_categories, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       selected_categories = excluded.selected_categories,
                       updated_at = excluded.updated_at""",
                (PREFERENCE_ID, json.dumps(selected), utcnow().isoformat()),
            )
            conn.commit()
        logger.debug("Selected categories: {}", selected)
        return self.store.get_preference()

    def add_category(self, category: str) -> UserPreference:
        """Add a category to the selection."""
        categories = self.get_categories()
        if category not in categories:
            categories.append(category)
        return self.set_categories(categories)

    def remove_category(self, category: str) -> bool:
        """Remove a category from the selection."""
        categories = self.get_categories()
        if category not in categories:
            return False
        categories.remove(category)
        self.set_categories(categories)
        return True

    def clear_preference(self) -> bool:
        with get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM user_preference WHERE id = ?", (PREFERENCE_ID,)
            )
            conn.commit()
            return cursor.rowcount > 0

    # === Paper interactions ===

    def toggle_favorite(self, arxiv_id: str) -> bool:
        """Flip the favorite flag. Returns the new state."""
        with get_connection() as conn:
            conn.execute(
                """INSERT INTO user_actions (arxiv_id, is_favorited, updated_at)
                   VALUES (?, 1, ?)
                   ON CONFLICT(arxiv_id) DO UPDATE SET
                       is_favorited = 1 - is_favorited,
                       updated_at = excluded.updated_at""",
                (arxiv_id, utcnow().isoformat()),
            )
            conn.commit()
        return self.store.get_action(arxiv_id).is_favorited

    def set_favorite(self, arxiv_id: str, favorited: bool = True) -> None:
        with get_connection() as conn:
            conn.execute(
                """INSERT INTO user_actions (arxiv_id, is_favorited, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(arxiv_id) DO UPDATE SET
                       is_favorited = excluded.is_favorited,
                       updated_at = excluded.updated_at""",
                (arxiv_id, int(favorited), utcnow().isoformat()),
            )
            conn.commit()

    def mark_skipped(self, arxiv_id: str) -> None:
        """Mark a paper as skipped."""
        with get_connection() as conn:
            conn.execute(
                """INSERT INTO user_actions (arxiv_id, is_skipped, updated_at)
                   VALUES (?, 1, ?)
                   ON CONFLICT(arxiv_id) DO UPDATE SET
                       is_skipped = 1,
                       updated_at = excluded.updated_at""",
                (arxiv_id, utcnow().isoformat()),
            )
            conn.commit()

    def record_view(self, arxiv_id: str, dwell_seconds: float) -> UserAction:
        """Mark a paper as read and accumulate dwell time."""
        if dwell_seconds < 0:
            raise ValueError("dwell_seconds must be non-negative")
        with get_connection() as conn:
            conn.execute(
                """INSERT INTO user_actions
                       (arxiv_id, is_read, dwell_time_seconds, updated_at)
                   VALUES (?, 1, ?, ?)
                   ON CONFLICT(arxiv_id) DO UPDATE SET
                       is_read = 1,
                       dwell_time_seconds = dwell_time_seconds + excluded.dwell_time_seconds,
                       updated_at = excluded.updated_at""",
                (arxiv_id, float(dwell_seconds), utcnow().isoformat()),
            )
            conn.commit()
        return self.store.get_action(arxiv_id)

    def get_action(self, arxiv_id: str) -> UserAction | None:
        """Get the interaction record of a paper."""
        return self.store.get_action(arxiv_id)

    def get_favorites(self) -> list[Paper]:
        return self.store.get_favorites()
