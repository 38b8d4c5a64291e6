"""Relay wire protocol messages (JSON over WebSocket)."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class RelayStartMessage(BaseModel):
    """Client -> relay, sent once when the socket opens."""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["start"] = "start"
    sample_rate: int = Field(16000, alias="sampleRate")
    turn: Literal["tutor", "student"] = "student"

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True)


class RelayTranscriptMessage(BaseModel):
    """Relay -> client partial or final transcript."""
    type: Literal["partial", "final"]
    text: str = ""


class RelayErrorMessage(BaseModel):
    """Relay -> client error."""
    type: Literal["error"] = "error"
    message: str = ""


# Upstream realtime transcription API (relay -> upstream and back)


class TurnDetection(BaseModel):
    """Server-side voice activity detection settings."""
    type: str = "server_vad"
    threshold: float = 0.5
    prefix_padding_ms: int = 300
    silence_duration_ms: int = 1200


class UpstreamSessionConfig(BaseModel):
    modalities: List[str] = Field(default_factory=lambda: ["text", "audio"])
    instructions: str = "You are a transcription assistant. Listen to audio and provide accurate transcriptions."
    voice: str = "alloy"
    input_audio_format: str = "pcm16"
    output_audio_format: str = "pcm16"
    input_audio_transcription: Dict[str, Any] = Field(default_factory=lambda: {"model": "whisper-1"})
    turn_detection: TurnDetection = Field(default_factory=TurnDetection)


class SessionUpdateEvent(BaseModel):
    """Configures the upstream session right after it opens."""
    type: Literal["session.update"] = "session.update"
    session: UpstreamSessionConfig = Field(default_factory=UpstreamSessionConfig)


class AudioAppendEvent(BaseModel):
    """Base64 PCM16 audio appended to the upstream input buffer."""
    type: Literal["input_audio_buffer.append"] = "input_audio_buffer.append"
    audio: str


class UpstreamEvent(BaseModel):
    """Any event received from upstream; only the fields the relay reads are typed."""
    model_config = ConfigDict(extra="allow")

    type: str
    transcript: Optional[str] = None
    error: Optional[Dict[str, Any]] = None

    @property
    def error_message(self) -> Optional[str]:
        return (self.error or {}).get("message")
