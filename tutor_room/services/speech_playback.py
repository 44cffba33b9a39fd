"""
Text-to-speech playback for tutor replies.

Synthesis goes through the tutoring backend; the returned audio (any format
FFmpeg understands) is decoded to PCM with PyAV in the thread pool and handed
to an output sink. Playback is best effort: ``play`` never raises.
"""

import asyncio
import base64
import binascii
import io
import logging

from tutor_room.config import DEFAULT_TIMEOUT_S, MOCK_MODE, PLAYBACK_RETRY_DELAY_S
from tutor_room.errors import CollaboratorError, InvalidAudioFormat, SynthesisFailed
from tutor_room.services.api_client import TutorApiClient, unwrap_data

logger = logging.getLogger(__name__)

PLAYBACK_SAMPLE_RATE = 24000


def extract_audio_string(data: dict) -> str | None:
    """Pull the base64 audio out of a synthesis body.

    The backend sends either ``{"audioData": "<b64>"}`` or the same value
    wrapped once more as ``{"audioData": {"audioData": "<b64>"}}``.
    """
    audio = data.get("audioData") if isinstance(data, dict) else None
    if isinstance(audio, dict):
        audio = audio.get("audioData")
    if isinstance(audio, str) and audio:
        return audio
    return None


def decode_to_pcm(audio: bytes, sample_rate: int = PLAYBACK_SAMPLE_RATE) -> tuple[bytes, int]:
    """Decode any container/codec to PCM s16le mono at ``sample_rate``."""
    import av

    try:
        container = av.open(io.BytesIO(audio))
        try:
            audio_stream = next(s for s in container.streams if s.type == "audio")
            resampler = av.AudioResampler(format="s16", layout="mono", rate=sample_rate)
            pcm_chunks: list[bytes] = []
            for frame in container.decode(audio_stream):
                for resampled_frame in resampler.resample(frame):
                    pcm_chunks.append(bytes(resampled_frame.planes[0]))
        finally:
            container.close()
    except StopIteration:
        raise InvalidAudioFormat("No audio stream in synthesized payload") from None
    except (av.error.FFmpegError, ValueError) as exc:
        raise InvalidAudioFormat(f"Could not decode synthesized audio: {exc}") from exc

    pcm = b"".join(pcm_chunks)
    if not pcm:
        raise InvalidAudioFormat("Synthesized audio decoded to zero samples")
    return pcm, sample_rate


class SoundDeviceSink:
    """Plays PCM through the default output device."""

    @property
    def ready(self) -> bool:
        import sounddevice as sd

        try:
            sd.query_devices(kind="output")
        except Exception as exc:
            logger.debug("No output device: %s", exc)
            return False
        return True

    @property
    def active(self) -> bool:
        """True while the last ``play`` is still sounding."""
        import sounddevice as sd

        try:
            return bool(sd.get_stream().active)
        except RuntimeError:
            # Nothing has been played yet
            return False

    def play(self, pcm: bytes, sample_rate: int):
        import numpy as np
        import sounddevice as sd

        sd.play(np.frombuffer(pcm, dtype=np.int16), samplerate=sample_rate)

    def stop(self):
        import sounddevice as sd

        sd.stop()


class SilentSink:
    """Output sink for mock mode; remembers what it was asked to play."""

    def __init__(self):
        self.ready = True
        self.played: list[tuple[bytes, int]] = []

    @property
    def active(self) -> bool:
        return False

    def play(self, pcm: bytes, sample_rate: int):
        self.played.append((pcm, sample_rate))

    def stop(self):
        pass


class SpeechPlaybackController:
    """Synthesizes and plays tutor replies, tracking whether one is still sounding."""

    PATH = "/api/speech/synthesize"

    def __init__(
        self,
        client: TutorApiClient,
        sink=None,
        decoder=decode_to_pcm,
        retry_delay: float = PLAYBACK_RETRY_DELAY_S,
    ):
        self.mock_mode = MOCK_MODE
        self._client = client
        self._sink = sink if sink is not None else (SilentSink() if self.mock_mode else SoundDeviceSink())
        self._decoder = decoder
        self._retry_delay = retry_delay
        self._playing = False
        self.last_text = ""

    @property
    def is_playing(self) -> bool:
        """True until playback is paused or the sink reports the clip has ended."""
        if self._playing and not self._sink.active:
            self._playing = False
        return self._playing

    async def synthesize(self, text: str) -> bytes:
        """Return encoded audio for ``text``. Raises SynthesisFailed or InvalidAudioFormat."""
        try:
            body = await self._client.post_json(self.PATH, {"text": text}, timeout=DEFAULT_TIMEOUT_S)
        except CollaboratorError as exc:
            raise SynthesisFailed(str(exc), status=exc.status) from exc

        audio = extract_audio_string(unwrap_data(body))
        if audio is None:
            raise InvalidAudioFormat("Synthesis response carried no audio")
        try:
            return base64.b64decode(audio, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidAudioFormat(f"Synthesized audio is not valid base64: {exc}") from exc

    async def play(self, text: str) -> bool:
        """Speak ``text``. Returns True when playback started."""
        if not text or not text.strip():
            logger.warning("Playback skipped: empty text")
            return False
        self.last_text = text

        try:
            audio = await self.synthesize(text)
            loop = asyncio.get_running_loop()
            pcm, sample_rate = await loop.run_in_executor(None, self._decoder, audio)
        except SynthesisFailed as exc:
            logger.error("TTS synthesis failed: %s", exc)
            return False
        except InvalidAudioFormat as exc:
            logger.error("TTS audio unusable: %s", exc)
            return False

        if not self._sink.ready:
            logger.warning("Output not ready, retrying in %dms", int(self._retry_delay * 1000))
            await asyncio.sleep(self._retry_delay)
            if not self._sink.ready:
                logger.error("Output still not ready, playback dropped")
                return False

        try:
            self._sink.play(pcm, sample_rate)
        except Exception as exc:
            logger.error("Playback failed: %s", exc)
            return False

        self._playing = True
        logger.info("Playing %d bytes of speech at %d Hz", len(pcm), sample_rate)
        return True

    def pause(self):
        if not self.is_playing:
            return
        try:
            self._sink.stop()
        except Exception as exc:
            logger.warning("Stopping playback failed: %s", exc)
        self._playing = False

    async def toggle(self, text: str | None = None) -> bool:
        """Pause if playing, otherwise replay ``text`` (or the last spoken text)."""
        if self.is_playing:
            self.pause()
            return False
        target = text or self.last_text
        if not target:
            return False
        return await self.play(target)
