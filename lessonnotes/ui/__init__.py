"""Terminal user interface."""

from .console_screen import ConsoleRecorderScreen
from .keyboard_input import KeyboardInputHandler, post_to_loop

__all__ = [
    "ConsoleRecorderScreen",
    "KeyboardInputHandler",
    "post_to_loop",
]
