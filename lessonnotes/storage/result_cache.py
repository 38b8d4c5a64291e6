"""Single-entry cache of the last lesson notes produced."""

import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from ..models.ui import SessionOutput

logger = logging.getLogger(__name__)


class LastResultCache:
    """Keeps the most recent session output on disk for a limited time."""

    def __init__(self, path: str = "./data/last_result.json", max_age_hours: float = 24):
        """Initialize the cache.

        Args:
            path: JSON file holding the last result
            max_age_hours: Age after which the stored result is discarded
        """
        self.path = Path(path)
        self.max_age = timedelta(hours=max_age_hours)
        logger.info(f"LastResultCache initialized at {self.path} (max age {max_age_hours}h)")

    def save(self, output: SessionOutput, source: str = "lesson-notes") -> str:
        """Persist ``output`` as the last result, replacing any previous one.

        Returns:
            Path to the saved file
        """
        entry = {
            "text": output.text,
            "timestamp": output.timestamp.isoformat(),
            "template": output.template,
            "source": source,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.path, 'w') as f:
                json.dump(entry, f, indent=2)
        except OSError as e:
            logger.error(f"Error saving last result: {e}")
            raise

        logger.info(f"Last result saved: {self.path}")
        return str(self.path)

    def load(self, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """Return the last result, or None when absent, unreadable or expired."""
        if not self.path.exists():
            return None

        try:
            with open(self.path, 'r') as f:
                entry = json.load(f)
            saved_at = datetime.fromisoformat(entry["timestamp"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable last result {self.path}: {e}")
            self.clear()
            return None

        now = now or datetime.now()
        if now - saved_at > self.max_age:
            logger.info("Last result expired, removing it")
            self.clear()
            return None

        return entry

    def purge_expired(self, now: Optional[datetime] = None) -> bool:
        """Remove the stored result if it has expired.

        Returns:
            True if a result was removed
        """
        if not self.path.exists():
            return False
        return self.load(now) is None

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
