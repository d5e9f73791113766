"""
Speech Capture Models

RecordingState is a tagged union owned exclusively by the capture
controller. Every variant is immutable: a transition replaces the state
object instead of mutating it, so an observer never sees a half-applied
transition.

DESIGN DECISION: The union is discriminated on `kind` so a state can be
serialized for logs and rebuilt with RecordingStateAdapter.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


# =============================================================================
# ENUMS
# =============================================================================

class CaptureErrorKind(str, Enum):
    """Capture-side failures surfaced to the user."""
    PERMISSION_DENIED = "permission_denied"
    ENGINE_UNAVAILABLE = "engine_unavailable"
    RECOGNITION_FAILED = "recognition_failed"


class StartOutcome(str, Enum):
    """
    Synchronous answer to a start request.

    Permission and availability problems are reported here rather than
    through the error callback.
    """
    STARTED = "started"
    ALREADY_ACTIVE = "already_active"      # No-op, a session is running
    PERMISSION_DENIED = "permission_denied"
    ENGINE_UNAVAILABLE = "engine_unavailable"
    CANCELLED = "cancelled"                # Cancelled before the engine opened


class EngineErrorCode(str, Enum):
    """Error codes a speech engine may report when a session fails."""
    AUDIO = "audio"
    CLIENT = "client"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    NETWORK = "network"
    NETWORK_TIMEOUT = "network_timeout"
    NO_MATCH = "no_match"
    RECOGNIZER_BUSY = "recognizer_busy"
    SERVER = "server"
    SPEECH_TIMEOUT = "speech_timeout"
    UNKNOWN = "unknown"


class CaptureError(BaseModel):
    """A capture failure handed to the on_error callback."""
    model_config = ConfigDict(frozen=True)

    kind: CaptureErrorKind
    message: str
    engine_code: Optional[EngineErrorCode] = None


# =============================================================================
# RECORDING STATE
# =============================================================================

class _StateBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def is_active(self) -> bool:
        """True while a session owns the engine (Recording or Finishing)."""
        return False


class Idle(_StateBase):
    """No session. Initial and terminal-per-session state."""
    kind: Literal["idle"] = "idle"


class Recording(_StateBase):
    """
    Listening for speech.

    last_speech_at is the silence clock: it is reset by every non-empty
    partial transcript. started_at drives the minimum-duration guard.
    """
    kind: Literal["recording"] = "recording"
    has_detected_speech: bool = False
    last_speech_at: datetime
    started_at: datetime
    partial_transcript: str = ""

    @property
    def is_active(self) -> bool:
        return True


class Finishing(_StateBase):
    """Stop requested; waiting for the engine's final result."""
    kind: Literal["finishing"] = "finishing"
    partial_transcript: str = ""
    auto_stopped: bool = False

    @property
    def is_active(self) -> bool:
        return True


class ErrorState(_StateBase):
    """A session failed without usable text. Cleared by acknowledge/start."""
    kind: Literal["error"] = "error"
    message: str


RecordingState = Annotated[
    Union[Idle, Recording, Finishing, ErrorState],
    Field(discriminator="kind"),
]

# Dumps any variant for logs and rebuilds the right class from a dict
RecordingStateAdapter: TypeAdapter[RecordingState] = TypeAdapter(RecordingState)


# =============================================================================
# TRANSCRIPTS
# =============================================================================

class TranscriptAlternative(BaseModel):
    """One hypothesis from the speech engine's final result."""
    model_config = ConfigDict(frozen=True)

    text: str
    confidence: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Acoustic confidence reported by the engine, if any"
    )
