"""Error taxonomy shared by all ASR backends and the session controller."""


class ASRError(Exception):
    """Base class for speech recognition failures."""

    kind = "asr_error"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def __str__(self) -> str:
        return self.reason


class PermissionDenied(ASRError):
    """Microphone access was refused by the OS or the user."""

    kind = "permission_denied"


class ConnectionTimeout(ASRError):
    """A network connection did not open within the allowed time."""

    kind = "connection_timeout"


class BackendUnavailable(ASRError):
    """The backend cannot be used (missing credentials, endpoint down, ...)."""

    kind = "backend_unavailable"


class DeviceError(ASRError):
    """Audio device or recognition engine failure."""

    kind = "device_error"


class TranscriptionFailed(ASRError):
    """A segment upload or transcription request failed."""

    kind = "transcription_failed"


class NoSpeechDetected(ASRError):
    """Terminal empty-result state. Not a failure of the recording itself."""

    kind = "no_speech"

    def __init__(self, reason: str = "No speech detected"):
        super().__init__(reason)
