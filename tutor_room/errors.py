"""
Failure taxonomy for the tutoring session core.

Gateways raise these; the orchestrator catches them where the call is made and
turns them into an alert or a fallback payload.
"""


class TutorRoomError(Exception):
    """Base class for all session-core failures."""

    user_message = "Something went wrong. Please try again."


class PermissionDenied(TutorRoomError):
    """Microphone access was refused by the platform."""

    user_message = "Could not access microphone. Please check permissions."


class PayloadTooLarge(TutorRoomError):
    """Finalized recording exceeds the transport limit."""

    user_message = "Audio file too large. Please record a shorter message."

    def __init__(self, size: int, limit: int):
        super().__init__(f"Recording is {size} bytes, limit is {limit}")
        self.size = size
        self.limit = limit


class CollaboratorError(TutorRoomError):
    """Transport, HTTP or `success: false` failure from the tutoring backend."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class TranscriptionFailed(CollaboratorError):
    user_message = "Error processing audio. Please try again."


class SynthesisFailed(CollaboratorError):
    user_message = "Could not play the tutor's reply."


class AnalysisFailed(CollaboratorError):
    user_message = "Error analyzing your input. Please try again."


class NoActiveConversation(TutorRoomError):
    """A dialogue send was attempted before the backend acknowledged a conversation."""

    user_message = "Error: No active conversation. Please refresh the page and try again."


class InvalidAudioFormat(TutorRoomError):
    """Synthesized audio could not be decoded or played."""


class UnsupportedFileType(TutorRoomError):
    """Uploaded document does not carry an accepted extension."""

    user_message = "Unsupported file type. Please upload a PDF, DOC, DOCX, TXT, PPT or PPTX file."
