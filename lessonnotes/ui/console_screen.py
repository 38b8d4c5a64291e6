"""Console recorder screen built on rich."""

import asyncio
import logging
from typing import Optional

from pubsub import pub
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from ..models.session import BackendKind, RecordingMode, SessionState
from ..models.ui import SessionOutput, SessionStatus
from ..services.session_controller import SessionController
from ..transcription.publisher import OUTPUT_TOPIC, PARTIAL_TOPIC, STATUS_TOPIC
from .keyboard_input import KeyboardInputHandler, post_to_loop

logger = logging.getLogger(__name__)


LEVEL_STYLES = {
    "info": "blue",
    "success": "green",
    "warning": "yellow",
    "error": "bold red",
}

STATE_LABELS = {
    SessionState.IDLE: "⏹️  IDLE",
    SessionState.STARTING: "⏳ STARTING",
    SessionState.RECORDING: "🔴 RECORDING",
    SessionState.FLUSHING: "💾 SAVING ANSWER",
    SessionState.STOPPING: "⏳ PROCESSING",
    SessionState.ERRORED: "❌ ERROR",
}


class ConsoleRecorderScreen:
    """Shows session state, live text and the final notes; keys drive the controller."""

    def __init__(self, controller: SessionController, console: Optional[Console] = None):
        self.controller = controller
        self.console = console or Console()
        self.status: Optional[SessionStatus] = None
        self.interim_text = ""
        self.segment_text = ""
        self.output: Optional[SessionOutput] = None
        self._done: Optional[asyncio.Event] = None

        pub.subscribe(self._on_status, STATUS_TOPIC)
        pub.subscribe(self._on_partial, PARTIAL_TOPIC)
        pub.subscribe(self._on_output, OUTPUT_TOPIC)

    # pubsub listeners

    def _on_status(self, status: SessionStatus) -> None:
        self.status = status
        if status.state in (SessionState.RECORDING, SessionState.STARTING):
            self.interim_text = ""
            self.segment_text = ""
        self.show_status()
        if status.state in (SessionState.IDLE, SessionState.ERRORED) and self._done is not None:
            self._done.set()

    def _on_partial(self, text: str, segment_text: str) -> None:
        self.interim_text = text
        self.segment_text = segment_text
        self.show_status()

    def _on_output(self, output: SessionOutput) -> None:
        self.output = output

    # rendering

    def show_status(self) -> None:
        self.console.clear()
        self.console.print("🎵 Lesson Notes Recorder", style="bold blue")
        self.console.print("=" * 50)

        state = self.controller.state
        self.console.print(STATE_LABELS.get(state, state.value), style="bold")
        if self.status:
            self.console.print(self.status.message, style=LEVEL_STYLES.get(self.status.level, "white"))

        session = self.controller.session
        if session is not None:
            self.console.print(f"Backend: {session.active_backend.value}"
                               + (" (fallback)" if session.used_fallback else ""))
            if session.current_question:
                self.console.print(f"\n❓ {session.current_question}", style="bold cyan")

        if self.segment_text or self.interim_text:
            live = Text(self.segment_text)
            if self.interim_text:
                live.append(self.interim_text, style="dim italic")
            self.console.print(Panel(live, title="Transcript"))

        self.console.print("\n" + "=" * 50)
        self.console.print("Commands:")
        if session is not None and session.mode is RecordingMode.QUESTION:
            self.console.print("  [bold green]n[/bold green] - Next question")
        self.console.print("  [bold yellow]s[/bold yellow] - Stop recording")
        self.console.print("  [bold red]q[/bold red] - Quit")

    def show_output(self) -> None:
        if self.output is None:
            return
        self.console.print(Panel(self.output.text, title="📝 Lesson Notes", border_style="green"))
        if self.output.enhancements:
            self.console.print(f"✨ {self.output.enhancements}", style="dim")

    # key handling

    async def _handle_key(self, key: str) -> None:
        if key == "n":
            await self.controller.advance_question()
        elif key in ("s", "q"):
            await self.controller.stop()
            self._done.set()

    async def run(self, mode: RecordingMode, backend: BackendKind) -> Optional[SessionOutput]:
        """Record one session from the terminal and return its notes."""
        loop = asyncio.get_running_loop()
        self._done = asyncio.Event()
        pending = set()

        def _dispatch(key: str) -> None:
            task = loop.create_task(self._handle_key(key))
            pending.add(task)
            task.add_done_callback(pending.discard)

        keyboard = KeyboardInputHandler(post_to_loop(loop, _dispatch))
        keyboard.start()
        try:
            await self.controller.start(mode, backend)
            if self.controller.state is SessionState.RECORDING:
                await self._done.wait()
        finally:
            keyboard.stop()
            self.controller.teardown()

        self.show_output()
        return self.output
