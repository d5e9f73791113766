"""
Speech Engine Interface

The speech recognizer is an external black box. This module defines the
contract the capture controller needs from it, so a platform recognizer,
a cloud service or a test fake can be plugged in.

DESIGN DECISION: The engine reports back through a listener object
rather than through return values. Real recognizers deliver partial
results, final results and errors asynchronously on their own threads.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Optional, Union

from voice_expense.models.capture import EngineErrorCode, TranscriptAlternative


ENGINE_ERROR_MESSAGES: dict[EngineErrorCode, str] = {
    EngineErrorCode.AUDIO: "Audio recording error",
    EngineErrorCode.CLIENT: "Client side error",
    EngineErrorCode.INSUFFICIENT_PERMISSIONS: "Insufficient permissions",
    EngineErrorCode.NETWORK: "Network error",
    EngineErrorCode.NETWORK_TIMEOUT: "Network timeout",
    EngineErrorCode.NO_MATCH: "No speech detected",
    EngineErrorCode.RECOGNIZER_BUSY: "Recognition service busy",
    EngineErrorCode.SERVER: "Server error",
    EngineErrorCode.SPEECH_TIMEOUT: "No speech input",
    EngineErrorCode.UNKNOWN: "Unknown error",
}


def describe_engine_error(code: Union[EngineErrorCode, str]) -> str:
    """Human-readable message for an engine error code."""
    return ENGINE_ERROR_MESSAGES[coerce_error_code(code)]


def coerce_error_code(code: Union[EngineErrorCode, str, None]) -> EngineErrorCode:
    """Map whatever the engine reported onto a known code; UNKNOWN if unrecognized."""
    if isinstance(code, EngineErrorCode):
        return code
    try:
        return EngineErrorCode(str(code).lower())
    except ValueError:
        return EngineErrorCode.UNKNOWN


class SpeechEngineError(Exception):
    """The engine could not start a recognition session."""
    pass


class SpeechEngineListener(ABC):
    """
    Receives engine events for the active session.

    Engines may call these from any thread, including synchronously from
    inside start_session() or finish().
    """

    @abstractmethod
    def on_partial_transcript(self, text: str) -> None:
        """Interim hypothesis; non-empty text means the user is speaking."""
        pass

    @abstractmethod
    def on_engine_result(
        self,
        result: Union[str, Sequence[TranscriptAlternative]],
    ) -> None:
        """Final result: a transcript, or alternatives best-first."""
        pass

    @abstractmethod
    def on_engine_error(
        self,
        code: Union[EngineErrorCode, str],
        message: Optional[str] = None,
    ) -> None:
        """The session failed. No result follows."""
        pass


class SpeechEngine(ABC):
    """
    Abstract speech recognizer.

    Only the capture controller talks to an engine; nothing else may hold
    a reference to a running session.
    """

    @abstractmethod
    def has_permission(self) -> bool:
        """True if microphone and speech permissions are granted."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True if a recognizer can be used right now."""
        pass

    @abstractmethod
    def start_session(
        self,
        listener: SpeechEngineListener,
        locale: Optional[str] = None,
    ) -> None:
        """
        Begin listening and report events to `listener`.

        Raises:
            SpeechEngineError: If the session could not be started.
        """
        pass

    @abstractmethod
    def finish(self) -> None:
        """
        Stop listening gracefully.

        The engine must follow up with exactly one on_engine_result or
        on_engine_error.
        """
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Stop immediately and discard everything; no further events are expected."""
        pass
