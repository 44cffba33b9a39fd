"""
Shared test fixtures for the AI Tutor Room session core.

Provides a scripted fake of the tutoring-backend client, an injectable fake
microphone and playback sink, and the FastAPI test client.
"""

import pytest
from fastapi.testclient import TestClient

from tutor_room.errors import CollaboratorError


@pytest.fixture(autouse=True)
def mock_mode_env(monkeypatch):
    """Ensure MOCK_MODE=true and blank credentials for all tests."""
    monkeypatch.setenv("MOCK_MODE", "true")
    monkeypatch.setenv("TUTOR_API_TOKEN", "")


class FakeApiClient:
    """Stands in for TutorApiClient; answers from a per-path script.

    A scripted value may be a dict (returned), an exception (raised) or a
    list of those (consumed in order, the last one repeating).
    """

    def __init__(self, responses: dict | None = None):
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, dict, float | None]] = []
        self.form_calls: list[tuple[str, dict, dict | None]] = []
        self.closed = False

    def _answer(self, path: str) -> dict:
        if path not in self.responses:
            raise CollaboratorError(f"No scripted response for {path}")
        scripted = self.responses[path]
        if isinstance(scripted, list):
            scripted = scripted.pop(0) if len(scripted) > 1 else scripted[0]
        if isinstance(scripted, Exception):
            raise scripted
        return scripted

    async def post_json(self, path, payload, timeout=None):
        self.calls.append((path, payload, timeout))
        return self._answer(path)

    async def post_form(self, path, fields, files=None, timeout=None):
        self.form_calls.append((path, fields, files))
        return self._answer(path)

    def count(self, path: str) -> int:
        return sum(1 for p, _, _ in self.calls if p == path) + sum(1 for p, _, _ in self.form_calls if p == path)

    async def close(self):
        self.closed = True


class FakeStream:
    """Mimics sounddevice.RawInputStream for capture tests."""

    def __init__(self, callback, sample_rate, chunks=None, fail_on_start=False):
        self.callback = callback
        self.sample_rate = sample_rate
        self.chunks = chunks or []
        self.fail_on_start = fail_on_start
        self.started = False
        self.stopped = False
        self.closed = False

    def start(self):
        if self.fail_on_start:
            raise OSError("Permission denied by platform")
        self.started = True

    def stop(self):
        for chunk in self.chunks:
            self.callback(chunk, len(chunk) // 2, None, None)
        self.stopped = True

    def close(self):
        self.closed = True


class FakeSink:
    """Playback sink whose readiness is scripted per check."""

    def __init__(self, ready_sequence=(True,)):
        self._ready = list(ready_sequence)
        self.ready_checks = 0
        self.played = []
        self.stop_calls = 0
        self.active = False

    @property
    def ready(self):
        self.ready_checks += 1
        if len(self._ready) > 1:
            return self._ready.pop(0)
        return self._ready[0]

    def play(self, pcm, sample_rate):
        self.played.append((pcm, sample_rate))
        self.active = True

    def stop(self):
        self.stop_calls += 1
        self.active = False

    def finish(self):
        """The clip reached its end on its own."""
        self.active = False


def fake_decoder(audio: bytes):
    return audio, 24000


@pytest.fixture
def fake_client():
    return FakeApiClient()


@pytest.fixture
def test_client():
    """Create a FastAPI TestClient with a fresh session orchestrator."""
    from tutor_room.routes.session import reset_orchestrator
    from tutor_room.main import app

    reset_orchestrator()
    yield TestClient(app)
    reset_orchestrator()
