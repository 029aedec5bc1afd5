"""Secrets store for the LLM API configuration."""

import json

from ..core.database import get_connection
from ..core.models import APIConfiguration, utcnow

SERVICE = "com.papertok.api"
ACCOUNT = "llm_config"


class CredentialStore:
    """Holds one serialized APIConfiguration under a fixed service/account pair."""

    def __init__(self, service: str = SERVICE, account: str = ACCOUNT):
        self.service = service
        self.account = account

    def save(self, config: APIConfiguration) -> None:
        """Save (overwrite) the configuration."""
        with get_connection() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO credentials (service, account, value, updated_at)
                   VALUES (?, ?, ?, ?)""",
                (self.service, self.account, json.dumps(config.to_dict()), utcnow().isoformat()),
            )
            conn.commit()

    def load(self) -> APIConfiguration | None:
        """Load the configuration, or None if absent."""
        with get_connection() as conn:
            row = conn.execute(
                "SELECT value FROM credentials WHERE service = ? AND account = ?",
                (self.service, self.account),
            ).fetchone()
        if row is None:
            return None
        return APIConfiguration.from_dict(json.loads(row["value"]))

    def delete(self) -> bool:
        with get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM credentials WHERE service = ? AND account = ?",
                (self.service, self.account),
            )
            conn.commit()
            return cursor.rowcount > 0


class StaticCredentials:
    """Configuration provider over a fixed APIConfiguration."""

    def __init__(self, config: APIConfiguration | None):
        self._config = config

    def load(self) -> APIConfiguration | None:
        return self._config
