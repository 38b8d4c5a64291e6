"""Google Speech-to-Text streaming engine for the continuous recognizer backend."""

import asyncio
import logging
from typing import AsyncIterator, Optional

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

from .continuous_backend import (
    RecognitionSpan,
    RecognitionUpdate,
    UpdateCallback,
    EngineErrorCallback,
)
from ..audio.capture import MicrophoneStream
from ..audio.pcm import float_to_pcm16
from ..errors import BackendUnavailable

logger = logging.getLogger(__name__)


class GoogleStreamingEngine:
    """Continuous streaming recognition with interim results.

    Audio is read from the microphone on the event loop and fed to the
    async gRPC stream. When the service ends a stream while recognition is
    still active (streams are time limited), a new stream is opened so the
    engine behaves as one continuous recognizer.
    """

    def __init__(self,
                 credentials_path: str,
                 microphone: MicrophoneStream,
                 language: str = "en-US",
                 enable_automatic_punctuation: bool = False,
                 no_speech_timeout: float = 8.0):
        """Initialize Google streaming engine.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            microphone: Microphone owned exclusively by this engine
            language: Language code (e.g., 'en-US')
            enable_automatic_punctuation: Let the service punctuate results
            no_speech_timeout: Seconds without any result before reporting 'no-speech'
        """
        if not credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.credentials_path = credentials_path
        self.microphone = microphone
        self.language = language
        self.no_speech_timeout = no_speech_timeout
        self.service_name = "Google Speech-to-Text"

        self.config = speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=microphone.sample_rate,
                language_code=language,
                enable_automatic_punctuation=enable_automatic_punctuation,
            ),
            interim_results=True,
            single_utterance=False,
        )

        self.client: Optional[speech.SpeechAsyncClient] = None
        self._audio: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._no_speech_timer: Optional[asyncio.TimerHandle] = None
        self._heard_speech = False
        self._active = False

    async def start(self, on_update: UpdateCallback, on_error: EngineErrorCallback) -> None:
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        try:
            credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        except (OSError, ValueError) as e:
            raise BackendUnavailable(f"Google credentials could not be loaded: {e}") from e
        self.client = speech.SpeechAsyncClient(credentials=credentials)
        logger.info(f"Using Google Cloud project: {credentials.project_id}")

        self._audio = asyncio.Queue()
        self._heard_speech = False
        await self.microphone.open(self._on_frame)

        self._active = True
        loop = asyncio.get_running_loop()
        self._no_speech_timer = loop.call_later(self.no_speech_timeout, self._no_speech, on_error)
        self._task = asyncio.create_task(self._run(on_update, on_error))

    def _on_frame(self, frame) -> None:
        if self._active and self._audio is not None:
            self._audio.put_nowait(float_to_pcm16(frame))

    async def _requests(self) -> AsyncIterator[speech.StreamingRecognizeRequest]:
        yield speech.StreamingRecognizeRequest(streaming_config=self.config)
        while self._active:
            chunk = await self._audio.get()
            if chunk is None:
                return
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    async def _run(self, on_update: UpdateCallback, on_error: EngineErrorCallback) -> None:
        try:
            while self._active:
                responses = await self.client.streaming_recognize(requests=self._requests())
                async for response in responses:
                    if not self._active:
                        return
                    spans = [
                        RecognitionSpan(text=result.alternatives[0].transcript, is_final=result.is_final)
                        for result in response.results
                        if result.alternatives
                    ]
                    if spans:
                        self._heard_speech = True
                        self._cancel_no_speech_timer()
                        on_update(RecognitionUpdate(spans=spans))
                logger.debug("Google stream ended, reopening")
        except (gax_exceptions.PermissionDenied, gax_exceptions.Unauthenticated) as e:
            self._report(on_error, "not-allowed", str(e))
        except (gax_exceptions.ServiceUnavailable, gax_exceptions.DeadlineExceeded) as e:
            self._report(on_error, "network", str(e))
        except gax_exceptions.GoogleAPICallError as e:
            self._report(on_error, "aborted", str(e))

    def _report(self, on_error: EngineErrorCallback, code: str, message: str) -> None:
        if self._active:
            logger.error(f"Google streaming error ({code}): {message}")
            on_error(code, message)

    def _no_speech(self, on_error: EngineErrorCallback) -> None:
        self._no_speech_timer = None
        if self._active and not self._heard_speech:
            on_error("no-speech", "")

    def _cancel_no_speech_timer(self) -> None:
        if self._no_speech_timer is not None:
            self._no_speech_timer.cancel()
            self._no_speech_timer = None

    def stop(self) -> None:
        """Stop streaming and release the microphone. Safe to call multiple times."""
        self._active = False
        self._cancel_no_speech_timer()
        self.microphone.close()
        if self._audio is not None:
            self._audio.put_nowait(None)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
