"""Single-key terminal commands read on a background thread."""

import sys
import time
import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


KeyCallback = Callable[[str], bool]


def read_key_windows() -> Optional[str]:
    import msvcrt
    if not msvcrt.kbhit():
        return None
    return msvcrt.getch().decode('utf-8', errors='ignore').lower()


def read_key_posix(timeout: float = 0.1) -> Optional[str]:
    """Read one raw key from stdin, or None if nothing arrives within ``timeout``."""
    import select
    import termios
    import tty

    ready, _, _ = select.select([sys.stdin], [], [], timeout)
    if not ready:
        return None
    fd = sys.stdin.fileno()
    saved = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        return sys.stdin.read(1).lower()
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)


class KeyboardInputHandler:
    """Polls the terminal for single key presses on a daemon thread.

    Each key is passed to ``callback`` on the reader thread; returning False
    ends the reader. Use ``post_to_loop`` to move keys onto an event loop.
    """

    def __init__(self, callback: KeyCallback, poll_interval: float = 0.05):
        """Create the reader.

        Args:
            callback: Receives each key; returns False to stop reading
            poll_interval: Pause between terminal polls in seconds
        """
        self.callback = callback
        self.poll_interval = poll_interval
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._read_key = read_key_windows if sys.platform == "win32" else read_key_posix

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.thread = threading.Thread(target=self._run, name="keyboard-input", daemon=True)
        self.thread.start()
        logger.debug("Keyboard reader started")

    def stop(self) -> None:
        self.running = False
        reader = self.thread
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=1.0)
        logger.debug("Keyboard reader stopped")

    def _run(self) -> None:
        while self.running:
            key = self._read_key()
            if key:
                logger.debug(f"Key pressed: {key!r}")
                if self.callback(key) is False:
                    break
            time.sleep(self.poll_interval)
        self.running = False


def post_to_loop(loop, handler: Callable[[str], None], quit_keys: str = "q") -> KeyCallback:
    """Build a reader callback that forwards keys to ``handler`` on ``loop``."""
    def _callback(key: str) -> bool:
        loop.call_soon_threadsafe(handler, key)
        return key not in quit_keys
    return _callback
