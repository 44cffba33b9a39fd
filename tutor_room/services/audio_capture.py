"""
Microphone capture for push-to-talk recordings.

The session is a small state machine (idle → recording → processing → idle).
Chunks arrive on the PortAudio thread and are handed to the event loop with
``call_soon_threadsafe``. On stop the buffer is finalized as 16-bit mono WAV
and checked against the transport limit before anyone sees it.
"""

import asyncio
import base64
import io
import logging
import time
import wave
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from tutor_room.config import MAX_AUDIO_BYTES, MOCK_MODE, RECORDING_SAMPLE_RATE
from tutor_room.errors import PayloadTooLarge, PermissionDenied

logger = logging.getLogger(__name__)


class CaptureState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"


@dataclass
class RecordedAudio:
    data: bytes
    sample_rate: int
    mime_type: str = "audio/wav"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


def encode_wav(chunks: list[bytes], sample_rate: int) -> bytes:
    """Wrap raw s16le mono chunks into a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(b"".join(chunks))
    return buf.getvalue()


def open_microphone(callback: Callable, sample_rate: int):
    """Open the default input device as a raw int16 mono stream."""
    import sounddevice as sd

    return sd.RawInputStream(samplerate=sample_rate, channels=1, dtype="int16", callback=callback)


class SyntheticMicrophone:
    """Silent input stream used in mock mode.

    Delivers one block of silence covering the elapsed time when stopped,
    mirroring the callback signature of ``sounddevice.RawInputStream``.
    """

    MAX_SECONDS = 5.0

    def __init__(self, callback: Callable, sample_rate: int):
        self._callback = callback
        self._sample_rate = sample_rate
        self._started_at: float | None = None
        self.closed = False

    def start(self):
        self._started_at = time.monotonic()

    def stop(self):
        if self._started_at is None:
            return
        elapsed = min(time.monotonic() - self._started_at, self.MAX_SECONDS)
        frames = max(1, int(elapsed * self._sample_rate))
        self._started_at = None
        self._callback(b"\x00\x00" * frames, frames, None, None)

    def close(self):
        self.closed = True


class AudioCaptureSession:
    """Push-to-talk recorder with an explicit idle/recording/processing state."""

    def __init__(
        self,
        stream_factory: Callable | None = None,
        sample_rate: int = RECORDING_SAMPLE_RATE,
        max_bytes: int = MAX_AUDIO_BYTES,
    ):
        self.mock_mode = MOCK_MODE
        if stream_factory is None:
            stream_factory = SyntheticMicrophone if self.mock_mode else open_microphone
        self._stream_factory = stream_factory
        self._sample_rate = sample_rate
        self._max_bytes = max_bytes
        self._stream = None
        self._chunks: list[bytes] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self.state = CaptureState.IDLE

    @property
    def is_recording(self) -> bool:
        return self.state is CaptureState.RECORDING

    async def start(self) -> bool:
        """Begin capturing. Returns False (and does nothing) unless idle."""
        if self.state is not CaptureState.IDLE:
            logger.info("Capture start ignored, session is %s", self.state.value)
            return False

        self._chunks = []
        self._loop = asyncio.get_running_loop()
        stream = None
        try:
            stream = self._stream_factory(self._on_audio, self._sample_rate)
            stream.start()
        except Exception as exc:
            logger.error("Microphone unavailable: %s", exc)
            if stream is not None:
                self._close(stream)
            self.state = CaptureState.IDLE
            raise PermissionDenied(str(exc)) from exc

        self._stream = stream
        self.state = CaptureState.RECORDING
        logger.info("Recording started (%d Hz)", self._sample_rate)
        return True

    def _on_audio(self, indata, frames, time_info, status):
        if status:
            logger.debug("Input stream status: %s", status)
        self._loop.call_soon_threadsafe(self._chunks.append, bytes(indata))

    async def stop(self) -> RecordedAudio | None:
        """Finalize the recording. Returns None when nothing was recording.

        Leaves the session in ``processing``; the caller calls ``release()``
        once the recording has been consumed.
        """
        if self.state is not CaptureState.RECORDING:
            return None

        self.state = CaptureState.PROCESSING
        stream, self._stream = self._stream, None
        try:
            stream.stop()
        except Exception as exc:
            logger.warning("Stopping input stream failed: %s", exc)
        finally:
            self._close(stream)

        # Let chunks already queued from the audio thread land
        await asyncio.sleep(0)
        audio = encode_wav(self._chunks, self._sample_rate)
        self._chunks = []

        if len(audio) > self._max_bytes:
            logger.warning("Recording discarded: %d bytes over %d limit", len(audio), self._max_bytes)
            self.state = CaptureState.IDLE
            raise PayloadTooLarge(len(audio), self._max_bytes)

        logger.info("Recording finalized: %d bytes", len(audio))
        return RecordedAudio(data=audio, sample_rate=self._sample_rate)

    def release(self):
        """Return to idle after the finalized recording has been handled."""
        self.state = CaptureState.IDLE

    @staticmethod
    def _close(stream):
        try:
            stream.close()
        except Exception as exc:
            logger.warning("Closing input stream failed: %s", exc)
