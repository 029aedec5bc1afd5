"""Configuration management."""
import os
from pathlib import Path
from dataclasses import dataclass


@dataclass
class Config:
    """Application configuration."""
    # Database path
    db_path: Path

    # Feed pagination
    page_size: int = 50
    prefetch_threshold: int = 3
    preload_count: int = 3
    summary_concurrency: int = 3

    # Ranking weights
    freshness_weight: float = 0.35
    behavior_weight: float = 0.40
    category_weight: float = 0.25
    freshness_half_life_days: float = 7.0

    # arXiv API
    arxiv_timeout: float = 30.0
    arxiv_max_retries: int = 3
    arxiv_base_delay: float = 3.0

    # LLM providers
    llm_request_timeout: float = 15.0
    llm_resource_timeout: float = 30.0
    connection_test_deadline: float = 20.0

    @classmethod
    def default(cls) -> "Config":
        """Load default configuration."""
        # PAPERTOK_HOME overrides ~/.config/papertok
        home = os.environ.get("PAPERTOK_HOME")
        config_dir = Path(home) if home else Path.home() / ".config" / "papertok"
        config_dir.mkdir(parents=True, exist_ok=True)

        return cls(db_path=config_dir / "papertok.db")


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get configuration."""
    global _config
    if _config is None:
        _config = Config.default()
    return _config
