"""
Tests for the FastAPI surface: session routes and the conversation WebSocket.

Verifies:
- /health answers plain-text OK
- Session state is seeded on first access
- Reading, quiz, upload, flashcard and language routes (MOCK_MODE backend)
- WebSocket turns stream events and finish with a state frame
"""

import base64

from tutor_room.mock_data import MOCK_CONVERSATION_ID
from tutor_room.orchestrator import WELCOME_MESSAGE


def _receive_until_state(ws):
    frames = []
    while True:
        frame = ws.receive_json()
        frames.append(frame)
        if frame["type"] == "state":
            return frames


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == 200
        assert response.text == "OK"


class TestSessionRoutes:
    """Tests for /api/session/*."""

    def test_state_seeded(self, test_client):
        data = test_client.get("/api/session/state").json()
        assert data["conversation_id"] == MOCK_CONVERSATION_ID
        assert data["messages"][0]["text"] == WELCOME_MESSAGE
        assert data["current_mode"] == "none"
        assert data["phase"] == "idle"
        assert len(data["cards"]) == 4

    def test_challenges(self, test_client):
        challenges = test_client.get("/api/session/challenges").json()
        assert len(challenges) == 6
        data = test_client.post("/api/session/challenge", json={"challenge_id": "2"}).json()
        assert data["challenge"]["title"] == "Daily Routine"
        assert data["speaking_prompt"] == "Describe your typical day from morning to evening."

    def test_unknown_challenge(self, test_client):
        assert "error" in test_client.post("/api/session/challenge", json={"challenge_id": "x"}).json()

    def test_unknown_mode(self, test_client):
        assert "error" in test_client.post("/api/session/mode", json={"mode": "dancing"}).json()

    def test_select_mode(self, test_client):
        assert test_client.post("/api/session/mode", json={"mode": "quiz"}).json() == {"mode": "quiz"}

    def test_reading_flow(self, test_client):
        passage = test_client.post("/api/session/reading/generate", json={}).json()
        assert passage["title"] == "A Morning at the Market"
        answers = {str(i): q["correct_answer"] for i, q in enumerate(passage["questions"])}
        assert test_client.post("/api/session/reading/submit", json={"answers": answers}).json() == {"score": 100}

    def test_reading_submit_without_passage(self, test_client):
        assert "error" in test_client.post("/api/session/reading/submit", json={"answers": {}}).json()

    def test_writing(self, test_client):
        exercise = test_client.post("/api/session/writing/exercise", json={"type": "story"}).json()
        assert exercise["type"] == "story"
        feedback = test_client.post("/api/session/writing/analyze", json={"text": "I like chess."}).json()
        assert feedback["overall_score"] == 8
        assert "error" in test_client.post("/api/session/writing/analyze", json={"text": " "}).json()

    def test_upload_and_quiz(self, test_client):
        document = base64.b64encode(b"Learning languages improves memory.").decode("ascii")
        analysis = test_client.post(
            "/api/session/upload", json={"filename": "notes.txt", "content_base64": document}
        ).json()
        assert len(analysis["flashcards"]) == 3
        assert len(analysis["quiz"]) == 2

        state = test_client.get("/api/session/state").json()
        assert state["current_mode"] == "reading"

        result = test_client.post("/api/session/quiz/submit", json={"answers": {"0": "1", "1": "True"}}).json()
        assert (result["score"], result["correct"], result["total"]) == (100, 2, 2)

        result = test_client.post("/api/session/quiz/submit", json={"answers": {}}).json()
        assert result["score"] == 0
        assert result["results"][0]["user_answer"] == "Not answered"

    def test_unsupported_upload(self, test_client):
        document = base64.b64encode(b"\x89PNG").decode("ascii")
        data = test_client.post("/api/session/upload", json={"filename": "a.png", "content_base64": document}).json()
        assert "error" in data

    def test_bad_base64_upload(self, test_client):
        data = test_client.post("/api/session/upload", json={"filename": "a.txt", "content_base64": "!!"}).json()
        assert "error" in data

    def test_null_fields_return_error(self, test_client):
        """JSON nulls get the route's error dict, not a server error."""
        cases = [
            ("/api/session/speaking-prompt", {"prompt": None}),
            ("/api/session/writing/analyze", {"text": None}),
            ("/api/session/content-prompt", {"prompt": None}),
            ("/api/session/question", {"question": None}),
            ("/api/session/upload", {"filename": None, "content_base64": None}),
        ]
        for path, body in cases:
            response = test_client.post(path, json=body)
            assert response.status_code == 200, path
            assert "error" in response.json(), path

    def test_question_and_flashcards(self, test_client):
        test_client.post("/api/session/content-prompt", json={"prompt": "Teach me about tea"})
        answer = test_client.post("/api/session/question", json={"question": "What is it about?"}).json()
        assert "What is it about?" in answer["answer"]

        assert test_client.post("/api/session/flashcards/flip").json() == {"index": 0, "show_answer": True}
        assert test_client.post("/api/session/flashcards/next").json() == {"index": 1, "show_answer": False}

    def test_translate(self, test_client):
        data = test_client.post("/api/session/translate", json={"text": "hello", "target": "zh"}).json()
        assert data["success"] is True
        assert data["translated_text"] == "[zh] hello"
        assert "error" in test_client.post("/api/session/translate", json={"text": "hi", "target": "fr"}).json()

    def test_auto_switch(self, test_client):
        assert test_client.post("/api/session/language/auto-switch", json={"enabled": False}).json()["enabled"] is False
        assert test_client.get("/api/session/language/auto-switch").json()["enabled"] is False

    def test_restart(self, test_client):
        test_client.post("/api/session/content-prompt", json={"prompt": "Teach me about tea"})
        data = test_client.post("/api/session/restart").json()
        assert data["current_mode"] == "none"
        assert len(data["messages"]) == 1


class TestConversationWebSocket:
    """Tests for /ws/conversation."""

    def test_text_turn(self, test_client):
        with test_client.websocket_connect("/ws/conversation") as ws:
            first = ws.receive_json()
            assert first["type"] == "state"

            ws.send_json({"type": "text", "content": "Hello", "language": "en"})
            frames = _receive_until_state(ws)

        messages = [f["message"] for f in frames if f["type"] == "message"]
        assert messages[0]["role"] == "user"
        assert messages[0]["text"] == "Hello"
        assert messages[-1]["role"] == "ai"
        assert {"type": "mode", "mode": "speaking"} in frames
        assert frames[-1]["state"]["current_mode"] == "speaking"

    def test_voice_turn(self, test_client):
        with test_client.websocket_connect("/ws/conversation") as ws:
            ws.receive_json()
            ws.send_json({"type": "record_start"})
            start_frames = _receive_until_state(ws)
            assert {"type": "status", "step": "recording"} in start_frames

            ws.send_json({"type": "record_stop"})
            frames = _receive_until_state(ws)

        texts = [f["message"]["text"] for f in frames if f["type"] == "message"]
        assert texts[0].startswith("Hello, my name is Alex")
        assert frames[-1]["state"]["phase"] == "idle"

    def test_invalid_frames(self, test_client):
        with test_client.websocket_connect("/ws/conversation") as ws:
            ws.receive_json()
            ws.send_text("not json")
            assert ws.receive_json() == {"type": "error", "message": "Invalid JSON"}
            ws.send_json({"type": "dance"})
            assert ws.receive_json()["type"] == "error"
