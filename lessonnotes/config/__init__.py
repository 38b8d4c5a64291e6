"""YAML configuration for the lesson notes recorder."""

import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)


DEFAULT_QUESTIONS = [
    "What did we do in the lesson?",
    "What went well or what was challenging?",
    "What would be good to practice for next week?",
]

# (section, key) pairs holding filesystem paths relative to the YAML file
PATH_SETTINGS = (
    ('google_cloud', 'credentials_path'),
    ('storage', 'cache_file'),
    ('logging', 'file_path'),
)


def read_yaml(path: Path) -> Dict[str, Any]:
    """Parse a YAML mapping, raising ValueError for unreadable, invalid or empty files."""
    try:
        with path.open('r', encoding='utf-8') as stream:
            data = yaml.safe_load(stream)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in configuration file: {e}") from e
    except OSError as e:
        raise ValueError(f"Could not read configuration file {path}: {e}") from e

    if not data:
        raise ValueError(f"Configuration file is empty: {path}")
    return data


class LessonNotesConfig:
    """Recorder settings loaded from ``lessonnotes.yaml``, read with dot paths."""

    def __init__(self, config_path: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        """Load configuration.

        Args:
            config_path: YAML file to read; also anchors relative paths
            data: Pre-parsed settings used instead of reading ``config_path``
        """
        if data is None:
            if not config_path:
                raise ValueError("A configuration file path is required")
            self.config_file = Path(config_path)
            if not self.config_file.is_file():
                raise FileNotFoundError(f"Configuration file not found: {self.config_file}")
            logger.info(f"Reading configuration: {self.config_file}")
            data = read_yaml(self.config_file)
        else:
            self.config_file = Path(config_path) if config_path else Path.cwd() / "lessonnotes.yaml"

        self.config = data
        self._anchor_paths()
        logger.debug(f"Configuration sections: {', '.join(self.config)}")

    def _anchor_paths(self) -> None:
        base = self.config_file.parent
        for section, key in PATH_SETTINGS:
            value = (self.config.get(section) or {}).get(key)
            if value and not os.path.isabs(value):
                self.config[section][key] = str(base / value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Look up ``'section.key'``; ``default`` when any step is missing."""
        node: Any = self.config
        for part in key_path.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key_path: str, value: Any) -> None:
        """Assign ``'section.key'``, creating intermediate sections."""
        *sections, leaf = key_path.split('.')
        node = self.config
        for part in sections:
            if node.get(part) is None:
                node[part] = {}
            node = node[part]
        node[leaf] = value
        logger.debug(f"Config override {key_path} = {value!r}")

    def get_questions(self) -> List[str]:
        """Questions asked in question mode, in order."""
        questions = self.get('recording.questions')
        return list(questions) if questions else list(DEFAULT_QUESTIONS)

    def get_openai_api_key(self) -> Optional[str]:
        """Transcription API key from YAML, else the OPENAI_API_KEY environment variable."""
        return self.get('segment.api_key') or os.environ.get('OPENAI_API_KEY')

    def get_google_credentials_path(self) -> str:
        """Absolute path of the Google service account file.

        Raises:
            ValueError: no path configured
            FileNotFoundError: the configured file does not exist
        """
        configured = self.get('google_cloud.credentials_path')
        if not configured:
            raise ValueError("google_cloud.credentials_path is not set in lessonnotes.yaml")

        credentials = Path(configured)
        if not credentials.is_file():
            raise FileNotFoundError(f"Google credentials file not found: {configured}")
        return str(credentials.absolute())

    def get_cache_file(self) -> str:
        """Absolute path of the last-result cache."""
        return str(Path(self.get('storage.cache_file', 'data/last_result.json')).absolute())
