"""Session controller: recording lifecycle, question sequencing and backend failover."""

import asyncio
import time
import logging
from typing import Callable, List, Optional

from ..errors import ASRError, BackendUnavailable, NoSpeechDetected
from ..models.session import BackendKind, RecordingMode, RecordingSession, SessionState
from ..models.ui import SessionOutput, SessionStatus
from ..storage.result_cache import LastResultCache
from ..transcription.assembler import TranscriptAssembler
from ..transcription.base import AbstractASRClient
from ..transcription.publisher import SessionPublisher
from ..transcription.text_cleanup import CleanupResult, enhanced_cleanup

logger = logging.getLogger(__name__)


BackendFactory = Callable[[BackendKind, RecordingMode], AbstractASRClient]
CleanupFunction = Callable[..., CleanupResult]

ACTIVE_STATES = (SessionState.STARTING, SessionState.RECORDING,
                 SessionState.FLUSHING, SessionState.STOPPING)


class SessionController:
    """Owns one recording session at a time and drives it through its states.

    States: IDLE -> STARTING -> RECORDING -> (FLUSHING -> RECORDING) ->
    STOPPING -> IDLE, with ERRORED reachable from any active state. A new
    session may be started from IDLE or ERRORED.
    """

    def __init__(self,
                 backend_factory: BackendFactory,
                 questions: Optional[List[str]] = None,
                 publisher: Optional[SessionPublisher] = None,
                 cleanup: CleanupFunction = enhanced_cleanup,
                 result_cache: Optional[LastResultCache] = None,
                 template: str = "general",
                 pause_threshold_seconds: float = 1.5,
                 pause_check_interval: float = 0.2,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize session controller.

        Args:
            backend_factory: Creates a fresh backend instance for a kind and mode
            questions: Questions asked in question mode, in order
            publisher: Pub/sub publisher for status, live text and output
            cleanup: Text-cleanup collaborator applied to free-flow output
            result_cache: Optional single last-result cache
            template: Notes template passed to the cleanup collaborator
            pause_threshold_seconds: Silence before a period is inserted
            pause_check_interval: Period of the pause check while recording
            clock: Monotonic time source in seconds
        """
        self.backend_factory = backend_factory
        self.questions = list(questions or [])
        self.publisher = publisher or SessionPublisher()
        self.cleanup = cleanup
        self.result_cache = result_cache
        self.template = template
        self.pause_threshold_seconds = pause_threshold_seconds
        self.pause_check_interval = pause_check_interval
        self._clock = clock

        self.state = SessionState.IDLE
        self.session: Optional[RecordingSession] = None
        self.last_session: Optional[RecordingSession] = None
        self.backend: Optional[AbstractASRClient] = None
        self.assembler: Optional[TranscriptAssembler] = None
        self.status: Optional[SessionStatus] = None
        self.output: Optional[SessionOutput] = None

        self._pause_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self, mode: RecordingMode, backend_kind: BackendKind) -> None:
        """Start a new recording session.

        A cloud backend that fails to start is replaced once by the on-device
        backend. If that also fails the session ends in ERRORED.
        """
        if self.state in ACTIVE_STATES:
            raise RuntimeError(f"Cannot start recording while {self.state.value}")
        if mode is RecordingMode.QUESTION and not self.questions:
            raise ValueError("Question mode requires at least one question")

        self.output = None
        self.session = RecordingSession(
            mode=mode,
            active_backend=backend_kind,
            questions=list(self.questions) if mode is RecordingMode.QUESTION else [],
        )
        self.assembler = TranscriptAssembler(
            self.session.transcript,
            pause_threshold_seconds=self.pause_threshold_seconds,
            clock=self._clock,
        )
        self._set_state(SessionState.STARTING, "Starting recording...")
        self.assembler.open_segment(self.session.current_question)

        fallback_notice = None
        try:
            await self._start_backend(backend_kind)
        except ASRError as e:
            if self.state is not SessionState.STARTING:
                return
            if not backend_kind.is_cloud:
                self._fail(e.reason)
                return
            logger.warning(f"{backend_kind.value} backend failed to start ({e.reason}); falling back to on-device")
            try:
                await self._start_backend(BackendKind.ONDEVICE)
            except ASRError as fallback_error:
                if self.state is SessionState.STARTING:
                    self._fail(fallback_error.reason)
                return
            if self.state is not SessionState.STARTING:
                return
            self.session.active_backend = BackendKind.ONDEVICE
            self.session.used_fallback = True
            fallback_notice = f"Cloud transcription unavailable ({e.reason}). Using on-device recognition."

        if self.state is not SessionState.STARTING:
            return

        self._attach_audio_ref()
        if fallback_notice:
            self._set_state(SessionState.RECORDING, fallback_notice, level="warning")
        else:
            self._set_state(SessionState.RECORDING, self._recording_message())
        self._start_pause_timer()

    async def advance_question(self) -> None:
        """Finalize the current answer and move to the next question.

        After the last question the session stops automatically.
        """
        session = self.session
        if self.state is not SessionState.RECORDING or session is None:
            logger.warning(f"Ignoring advance while {self.state.value}")
            return
        if session.mode is not RecordingMode.QUESTION:
            logger.warning("Ignoring advance outside question mode")
            return

        self._stop_pause_timer()
        self._set_state(SessionState.FLUSHING, "Saving answer...")
        await self._flush_open_segment()
        if self.state is not SessionState.FLUSHING:
            return

        if session.is_last_question:
            session.advance()
            await self._stop(completed=True)
            return

        session.advance()
        self.assembler.open_segment(session.current_question)
        self._attach_audio_ref()
        self._set_state(SessionState.RECORDING, self._recording_message())
        self._start_pause_timer()

    async def stop(self) -> Optional[SessionOutput]:
        """Stop recording and surface the compiled notes. Idempotent."""
        if self.state not in (SessionState.STARTING, SessionState.RECORDING, SessionState.FLUSHING):
            return self.output
        if self.state is SessionState.STARTING:
            self._set_state(SessionState.STOPPING, "Stopping...")
            self._retire_backend()
            return self._finish(completed=False)
        return await self._stop(completed=False)

    def teardown(self) -> None:
        """Immediate shutdown: stop without waiting for any network call."""
        if self.state not in (SessionState.STARTING, SessionState.RECORDING, SessionState.FLUSHING):
            return
        logger.info("Session teardown requested")
        self._stop_pause_timer()
        self._set_state(SessionState.STOPPING, "Stopping...")
        self._retire_backend()
        self._finish(completed=False)

    # ------------------------------------------------------------------
    # Backend management
    # ------------------------------------------------------------------

    async def _start_backend(self, kind: BackendKind) -> None:
        try:
            backend = self.backend_factory(kind, self.session.mode)
        except (ValueError, FileNotFoundError) as e:
            raise BackendUnavailable(str(e)) from e

        self._install(backend)
        self.backend = backend
        logger.info(f"Starting {backend.name}")
        try:
            await backend.start()
        except ASRError:
            if backend is self.backend:
                self._retire_backend()
            raise

        if backend is not self.backend:
            # Session was torn down while this backend was starting.
            backend.detach()
            backend.stop()

    def _install(self, backend: AbstractASRClient) -> None:
        backend.on_partial(lambda text: self._on_partial(backend, text))
        backend.on_final(lambda text: self._on_final(backend, text))
        backend.on_error(lambda error: self._on_error(backend, error))

    def _retire_backend(self) -> None:
        """Invalidate callbacks of the active backend, then release it."""
        backend = self.backend
        self.backend = None
        if backend is not None:
            backend.detach()
            backend.stop()

    def _attach_audio_ref(self) -> None:
        segment = self.assembler.segment if self.assembler else None
        audio_ref = getattr(self.backend, "audio_ref", None)
        if segment is not None and audio_ref is not None:
            segment.raw_audio_ref = audio_ref

    async def _flush_open_segment(self) -> None:
        backend = self.backend
        if backend is not None and backend.kind is BackendKind.SEGMENT:
            text = await backend.flush_segment()
            if backend is not self.backend:
                return
            self.assembler.set_segment_text(text)
        self.assembler.finalize_segment()

    # ------------------------------------------------------------------
    # Backend events
    # ------------------------------------------------------------------

    def _accepts_events_from(self, backend: AbstractASRClient) -> bool:
        return backend is self.backend and self.state in (SessionState.RECORDING, SessionState.FLUSHING)

    def _on_partial(self, backend: AbstractASRClient, text: str) -> None:
        # The final flush on stop still reports upload progress.
        stopping = backend is self.backend and self.state is SessionState.STOPPING
        if not (self._accepts_events_from(backend) or stopping):
            return
        self.assembler.set_interim(text)
        self.publisher.publish_partial(text, self._segment_text())

    def _on_final(self, backend: AbstractASRClient, text: str) -> None:
        if not self._accepts_events_from(backend):
            return
        if self.assembler.segment is None:
            return
        self.assembler.append_final(text)
        self.publisher.publish_partial("", self._segment_text())

    def _on_error(self, backend: AbstractASRClient, error: ASRError) -> None:
        if not self._accepts_events_from(backend):
            logger.debug(f"Ignoring error from inactive backend: {error}")
            return
        if isinstance(error, NoSpeechDetected):
            logger.info("Backend reported no speech; ending session")
            self.teardown()
            return
        logger.error(f"Backend error while {self.state.value}: {error}")
        self._fail(error.reason)

    # ------------------------------------------------------------------
    # Pause punctuation
    # ------------------------------------------------------------------

    def _start_pause_timer(self) -> None:
        self._stop_pause_timer()
        self.assembler.mark_activity()
        self._pause_task = asyncio.create_task(self._pause_loop())

    def _stop_pause_timer(self) -> None:
        if self._pause_task is not None:
            if self._pause_task is not asyncio.current_task():
                self._pause_task.cancel()
            self._pause_task = None

    async def _pause_loop(self) -> None:
        while self.state is SessionState.RECORDING:
            await asyncio.sleep(self.pause_check_interval)
            if self.state is SessionState.RECORDING and self.assembler.check_pause():
                self.publisher.publish_partial("", self._segment_text())

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _stop(self, completed: bool) -> Optional[SessionOutput]:
        previous = self.state
        self._stop_pause_timer()
        self._set_state(SessionState.STOPPING, "Processing...")

        if previous is SessionState.RECORDING:
            await self._flush_open_segment()
            if self.state is not SessionState.STOPPING:
                return self.output
        else:
            self.assembler.finalize_segment()

        self._retire_backend()
        return self._finish(completed)

    def _finish(self, completed: bool) -> Optional[SessionOutput]:
        session = self.session
        self.assembler.finalize_segment()

        if session.mode is RecordingMode.QUESTION:
            raw_text = self.assembler.compile_questions()
            # Bracketed question structure bypasses the cleanup collaborator.
            result = CleanupResult(text=raw_text, enhancements="")
        else:
            raw_text = self.assembler.compile_freeflow()
            result = self.cleanup(raw_text, template=self.template) if raw_text.strip() else None

        self.last_session = session
        self.session = None

        if not raw_text.strip():
            self.output = None
            self._set_state(SessionState.IDLE, "No speech detected. Please try again.", level="warning")
            return None

        self.output = SessionOutput(
            raw_text=raw_text,
            text=result.text,
            mode=session.mode,
            enhancements=result.enhancements,
            template=self.template,
        )
        self.publisher.publish_output(self.output)
        if self.result_cache is not None:
            try:
                self.result_cache.save(self.output)
            except OSError as e:
                logger.error(f"Could not cache lesson notes: {e}")

        if session.mode is RecordingMode.QUESTION and not completed:
            self._set_state(SessionState.IDLE, "Recording stopped early. Partial results shown below.",
                            level="warning")
        else:
            self._set_state(SessionState.IDLE, "Lesson notes ready!", level="success")
        return self.output

    def _fail(self, reason: str) -> None:
        """Enter ERRORED, release the backend and keep the recorded segments."""
        self._stop_pause_timer()
        self._retire_backend()
        if self.assembler is not None:
            self.assembler.finalize_segment()
        self.last_session = self.session
        self.session = None
        self._set_state(SessionState.ERRORED, reason, level="error")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _set_state(self, state: SessionState, message: str, level: str = "info") -> None:
        if self.session is not None:
            self.session.state = state
        self.state = state
        self.status = SessionStatus(state=state, message=message, level=level)
        logger.info(f"Session state -> {state.value}: {message}")
        self.publisher.publish_status(self.status)

    def _recording_message(self) -> str:
        question = self.session.current_question if self.session else None
        if question:
            return f"Recording: {question}"
        return "Listening... Speak naturally about the lesson"

    def _segment_text(self) -> str:
        segment = self.assembler.segment if self.assembler else None
        return segment.finalized_text if segment is not None else ""
