"""Main application entry point for the lesson notes recorder."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path

from .config import LessonNotesConfig
from .models.session import BackendKind, RecordingMode
from .relay.bridge import DEFAULT_UPSTREAM_URL
from .relay.server import DEFAULT_ALLOWED_HOSTS, run_relay_server
from .services.backend_factory import BackendFactory
from .services.session_controller import SessionController
from .storage.result_cache import LastResultCache
from .transcription.publisher import SessionPublisher
from .ui.console_screen import ConsoleRecorderScreen

logger = logging.getLogger(__name__)


class Recorder:
    """Wires configuration, controller and console screen together."""

    def __init__(self, config: LessonNotesConfig):
        self.config = config
        self.result_cache = LastResultCache(
            config.get_cache_file(),
            max_age_hours=config.get('storage.max_age_hours', 24),
        )
        self.controller = SessionController(
            backend_factory=BackendFactory(config),
            questions=config.get_questions(),
            publisher=SessionPublisher(),
            result_cache=self.result_cache,
            template=config.get('recording.template', 'general'),
            pause_threshold_seconds=config.get('recording.pause_threshold_seconds', 1.5),
            pause_check_interval=config.get('recording.pause_check_interval_seconds', 0.2),
        )
        self.screen = ConsoleRecorderScreen(self.controller)

    async def run(self, mode: RecordingMode, backend: BackendKind) -> None:
        self.result_cache.purge_expired()
        logger.info(f"Recording in {mode.value} mode with {backend.value} backend")
        await self.screen.run(mode, backend)


def setup_logging(config: LessonNotesConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/lessonnotes.log')
    console_output = config.get('logging.console_output', True)

    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("Lesson notes recorder starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for the lesson notes recorder."""
    parser = argparse.ArgumentParser(
        description="Lesson notes - speech-to-text recorder for music lesson notes",
        epilog="Commands: n=Next question, s=Stop recording, q=Quit"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="lessonnotes.yaml",
        help="Path to configuration YAML file (default: lessonnotes.yaml)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in RecordingMode],
        help="Recording mode (overrides config)"
    )
    parser.add_argument(
        "--backend",
        choices=[b.value for b in BackendKind],
        help="Transcription backend (overrides config)"
    )
    parser.add_argument(
        "--relay",
        action="store_true",
        help="Run the ASR relay server instead of recording"
    )
    parser.add_argument(
        "--version",
        action="version",
        version="lessonnotes v0.1.0"
    )
    args = parser.parse_args()

    try:
        config = LessonNotesConfig(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Configuration error: {e}")
        sys.exit(1)

    setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

    if args.relay:
        run_relay_server(
            api_key=config.get_openai_api_key(),
            host=config.get('relay.host', '0.0.0.0'),
            port=config.get('relay.port', 3001),
            upstream_url=config.get('relay.upstream_url', DEFAULT_UPSTREAM_URL),
            allowed_hosts=config.get('relay.allowed_origins', DEFAULT_ALLOWED_HOSTS),
        )
        return

    mode = RecordingMode(args.mode or config.get('recording.mode', 'freeflow'))
    backend = BackendKind(args.backend or config.get('recording.backend', 'ondevice'))

    try:
        asyncio.run(Recorder(config).run(mode, backend))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Error: {e}")
        logger.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
