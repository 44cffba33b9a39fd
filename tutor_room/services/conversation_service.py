"""
Dialogue gateway: starts a backend conversation and exchanges turns with it.

Replies arrive with the text under either ``content`` or ``text`` and an
optional ``metadata.confidence``; both are normalized into a Message here.
"""

import logging
import time

from tutor_room.config import EXTENDED_TIMEOUT_S
from tutor_room.errors import CollaboratorError
from tutor_room.models import Message
from tutor_room.services.api_client import MESSAGE_PATH, TutorApiClient, unwrap_data

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8


def normalize_reply(data: dict) -> Message:
    """Build an ai Message from a raw dialogue reply body."""
    text = data.get("content") or data.get("text") or ""
    if not isinstance(text, str):
        text = str(text)
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    try:
        confidence = float(metadata.get("confidence", DEFAULT_CONFIDENCE))
    except (TypeError, ValueError):
        confidence = DEFAULT_CONFIDENCE
    return Message(role="ai", text=text, confidence=min(1.0, max(0.0, confidence)))


class ConversationService:
    """Dialogue collaborator: one conversation per learner session."""

    START_PATH = "/api/conversation/start"

    def __init__(self, client: TutorApiClient, timeout: float = EXTENDED_TIMEOUT_S):
        self._client = client
        self._timeout = timeout

    async def start(
        self, scenario: str = "general", language: str = "en", proficiency_level: str = "intermediate"
    ) -> str:
        """Open a conversation and return its id. Raises CollaboratorError."""
        body = await self._client.post_json(
            self.START_PATH,
            {"scenario": scenario, "language": language, "proficiencyLevel": proficiency_level},
        )
        conversation_id = unwrap_data(body).get("conversationId")
        if not conversation_id:
            raise CollaboratorError("Conversation start returned no conversationId")
        logger.info("Conversation started: %s", conversation_id)
        return str(conversation_id)

    async def send(self, conversation_id: str, text: str) -> Message:
        """Send one learner turn and return the normalized tutor reply."""
        t0 = time.perf_counter()
        body = await self._client.post_json(
            MESSAGE_PATH,
            {"conversationId": conversation_id, "message": text},
            timeout=self._timeout,
        )
        reply = normalize_reply(unwrap_data(body))
        if not reply.text:
            logger.warning("Dialogue reply carried no text")
        logger.info("Dialogue reply: %dms, %d chars", int((time.perf_counter() - t0) * 1000), len(reply.text))
        return reply
