"""
Speech-to-text gateway.

Sends a base64 recording to the tutoring backend and returns the recognized
text. Any transport failure or an empty result is a TranscriptionFailed.
"""

import logging
import time

from tutor_room.config import EXTENDED_TIMEOUT_S
from tutor_room.errors import CollaboratorError, TranscriptionFailed
from tutor_room.services.api_client import TutorApiClient, strip_data_url_prefix, unwrap_data

logger = logging.getLogger(__name__)


class TranscriptionGateway:
    """Speech-to-text over the tutoring backend."""

    PATH = "/api/speech/transcribe"

    def __init__(self, client: TutorApiClient, timeout: float = EXTENDED_TIMEOUT_S):
        self._client = client
        self._timeout = timeout

    async def transcribe(self, audio_base64: str, language_code: str = "en-US") -> str:
        """Return the transcript of ``audio_base64`` (a data URL prefix is accepted)."""
        t0 = time.perf_counter()
        payload = {
            "audioData": strip_data_url_prefix(audio_base64),
            "languageCode": language_code,
        }
        try:
            body = await self._client.post_json(self.PATH, payload, timeout=self._timeout)
        except CollaboratorError as exc:
            logger.error("Transcription failed: %s", exc)
            raise TranscriptionFailed(str(exc), status=exc.status) from exc

        text = unwrap_data(body).get("text")
        if not isinstance(text, str) or not text.strip():
            logger.warning("Transcription returned no text")
            raise TranscriptionFailed("No speech recognized")

        stt_ms = int((time.perf_counter() - t0) * 1000)
        logger.info("STT [%s]: %dms → '%s'", language_code, stt_ms, text[:60])
        return text.strip()
