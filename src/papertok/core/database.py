"""Database management."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger

from .config import get_config

SCHEMA = """
-- Paper cache (never expires)
CREATE TABLE IF NOT EXISTS papers (
    arxiv_id TEXT PRIMARY KEY NOT NULL,
    title TEXT NOT NULL,
    abstract TEXT NOT NULL,
    authors TEXT NOT NULL,
    categories TEXT NOT NULL,
    published TIMESTAMP NOT NULL,
    pdf_url TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- User actions (one row per paper)
CREATE TABLE IF NOT EXISTS user_actions (
    arxiv_id TEXT PRIMARY KEY NOT NULL,
    is_favorited INTEGER NOT NULL DEFAULT 0,
    is_read INTEGER NOT NULL DEFAULT 0,
    is_skipped INTEGER NOT NULL DEFAULT 0,
    dwell_time_seconds REAL NOT NULL DEFAULT 0,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- User preference (singleton)
CREATE TABLE IF NOT EXISTS user_preference (
    id TEXT PRIMARY KEY NOT NULL,
    selected_categories TEXT NOT NULL,
    sort_preference TEXT NOT NULL DEFAULT 'hotness',
    summary_length_preference TEXT NOT NULL DEFAULT 'medium',
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- AI summaries (partial rows hold only title_chinese)
CREATE TABLE IF NOT EXISTS paper_summaries (
    arxiv_id TEXT PRIMARY KEY NOT NULL,
    model_name TEXT NOT NULL DEFAULT '',
    summary_text TEXT NOT NULL DEFAULT '',
    title_chinese TEXT,
    institutions TEXT,
    problem TEXT,
    method TEXT,
    result TEXT,
    one_liner TEXT,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Terms to Know
CREATE TABLE IF NOT EXISTS term_glossary (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    arxiv_id TEXT NOT NULL,
    term_chinese TEXT NOT NULL,
    term_english TEXT NOT NULL,
    explanation TEXT NOT NULL,
    context_meaning TEXT NOT NULL DEFAULT '',
    weight REAL NOT NULL DEFAULT 1.0,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Secrets (serialized API configuration)
CREATE TABLE IF NOT EXISTS credentials (
    service TEXT NOT NULL,
    account TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (service, account)
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_papers_published ON papers(published);
CREATE INDEX IF NOT EXISTS idx_actions_favorited ON user_actions(is_favorited);
CREATE INDEX IF NOT EXISTS idx_terms_arxiv ON term_glossary(arxiv_id);
"""


def init_db(db_path: Path | None = None) -> None:
    """Initialize database."""
    if db_path is None:
        db_path = get_config().db_path

    db_path.parent.mkdir(parents=True, exist_ok=True)

    with sqlite3.connect(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()
    logger.debug("Database ready at {}", db_path)


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Database connection context manager."""
    if db_path is None:
        db_path = get_config().db_path

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
