"""
Mock data for the AI Tutor Room session core.

Pre-scripted tutoring-backend payloads used when MOCK_MODE is on. The shapes
deliberately mix the backend's inconsistent field names (``content`` vs
``text``, ``overall`` vs ``overallScore``, wrapped vs bare audio) so the
normalization at each collaborator boundary is exercised in mock runs too.
"""

import base64
import io
import re
import wave

# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------


def _silent_wav(duration_s: float = 0.2, sample_rate: int = 16000) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(b"\x00\x00" * int(duration_s * sample_rate))
    return buf.getvalue()


SILENT_WAV = _silent_wav()
SILENT_WAV_BASE64 = base64.b64encode(SILENT_WAV).decode("ascii")

# ---------------------------------------------------------------------------
# Dialogue (one reply per turn, cycled)
# ---------------------------------------------------------------------------

MOCK_CONVERSATION_ID = "mock-conversation-0001"

MOCK_DIALOGUE = [
    {
        "content": "Nice to meet you! Let's practice speaking. Tell me about your favourite hobby.",
        "metadata": {"confidence": 0.92, "sentiment": "positive"},
    },
    {
        "text": "Well done. Let's practice reading with a short passage next.",
        "metadata": {"confidence": 0.88},
    },
    {
        "content": "Now try to write a short email to a friend about your weekend.",
    },
    {
        "text": "Let's listen to a short audio clip together.",
    },
    {
        "content": "You're doing great, keep going!",
        "metadata": {"confidence": 0.95, "sentiment": "positive"},
    },
]

MOCK_TRANSCRIPT = "Hello, my name is Alex and I enjoy playing football on weekends."

# ---------------------------------------------------------------------------
# Analysis payloads
# ---------------------------------------------------------------------------

MOCK_PRONUNCIATION = {
    "overall": 0.82,
    "fluency": 0.8,
    "clarityScore": 0.85,
    "paceScore": 0.75,
    "wordScores": [
        {"word": "hello", "score": 0.95, "phonemes": ["h", "ə", "l", "oʊ"], "suggestions": []},
        {"word": "football", "score": 0.7, "phonemes": [], "suggestions": ["Stress the first syllable"]},
    ],
    "strengths": ["Clear vowels", "Natural rhythm"],
    "improvements": ["Slow down on longer words"],
}

MOCK_WRITING = {
    "overallScore": 8,
    "grammarScore": 7,
    "vocabularyScore": 8,
    "structureScore": 8,
    "styleScore": 7,
    "suggestions": [
        {"type": "grammar", "message": "Use the past tense consistently", "suggestion": "I went"},
        {"type": "vocabulary", "message": "Try a more precise verb than 'do'"},
    ],
    "strengths": ["Clear structure"],
    "improvements": ["Vary sentence length"],
}

MOCK_FLASHCARDS = [
    {"front": "cognitive", "back": "relating to mental processes", "category": "Vocabulary", "difficulty": "Medium"},
    {"front": "bilingual", "back": "able to speak two languages", "category": "Vocabulary", "difficulty": "Easy"},
    {"front": "retention", "back": "the ability to keep information", "category": "Vocabulary", "difficulty": "Medium"},
]

MOCK_QUIZ = [
    {
        "question": "What does 'bilingual' mean?",
        "type": "multiple_choice",
        "options": ["Speaking one language", "Speaking two languages", "Reading quickly", "Writing neatly"],
        "correctAnswer": "Speaking two languages",
        "explanation": "Bi- means two.",
    },
    {
        "question": "Language learning can improve memory.",
        "type": "true_false",
        "options": ["True", "False"],
        "correctAnswer": "True",
        "explanation": "The text says bilingual people retain information better.",
    },
]

MOCK_ANALYSIS = {
    "analysis": (
        "The text explains how learning languages improves cognitive abilities, "
        "memory retention and cultural understanding."
    ),
    "flashcards": MOCK_FLASHCARDS,
    "quiz": MOCK_QUIZ,
}

MOCK_PASSAGE = {
    "title": "A Morning at the Market",
    "content": (
        "Every Saturday morning, Maria walks to the market near her house. She buys fresh "
        "bread, fruit and vegetables. The sellers know her name and always ask about her "
        "family. Maria enjoys the busy atmosphere and the smell of coffee in the air."
    ),
    "difficulty": "beginner",
    "vocabulary": [
        {"word": "atmosphere", "definition": "the feeling of a place", "context": "the busy atmosphere"},
    ],
    "questions": [
        {
            "question": "When does Maria go to the market?",
            "options": ["Every Sunday", "Every Friday evening", "Every Saturday morning", "Every day"],
            "correctAnswer": 2,
            "explanation": "The first sentence says every Saturday morning.",
        },
    ],
    "readingTime": 2,
}

_CJK = re.compile(r"[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff]")


def _mock_detect(text: str) -> dict:
    if _CJK.search(text or ""):
        return {
            "detectedLanguage": "zh",
            "confidence": 0.9,
            "languageName": "Chinese",
            "culturalContext": "Chinese",
            "isSupported": True,
            "fallbackUsed": False,
        }
    return {
        "detectedLanguage": "en",
        "confidence": 0.8,
        "languageName": "English",
        "culturalContext": "Western",
        "isSupported": True,
        "fallbackUsed": False,
    }


def mock_response(path: str, payload: dict | None, turn: int = 0) -> dict:
    """Return the scripted backend body for ``path``."""
    payload = payload or {}
    if path == "/api/conversation/start":
        return {"success": True, "data": {"conversationId": MOCK_CONVERSATION_ID}}
    if path == "/api/conversation/message":
        return {"success": True, "data": dict(MOCK_DIALOGUE[turn % len(MOCK_DIALOGUE)])}
    if path == "/api/speech/transcribe":
        return {"success": True, "data": {"text": MOCK_TRANSCRIPT}}
    if path == "/api/speech/synthesize":
        return {"success": True, "data": {"audioData": {"audioData": SILENT_WAV_BASE64}}}
    if path == "/api/speech/analyze-pronunciation":
        return {"success": True, "data": dict(MOCK_PRONUNCIATION)}
    if path == "/api/writing/analyze":
        return {"success": True, "data": dict(MOCK_WRITING)}
    if path == "/api/reading/analyze":
        return {"success": True, "data": dict(MOCK_ANALYSIS)}
    if path == "/api/reading/content":
        return {"success": True, "data": dict(MOCK_PASSAGE)}
    if path == "/api/reading/quiz":
        return {"success": True, "data": {"questions": list(MOCK_QUIZ)}}
    if path == "/api/reading/answer":
        question = payload.get("question", "")
        return {
            "success": True,
            "data": {"answer": f"Based on the content, here is what I found about: {question}"},
        }
    if path == "/api/language/detect":
        return {"success": True, "data": _mock_detect(payload.get("text", ""))}
    if path == "/api/language/translate":
        target = payload.get("targetLanguage", "en")
        return {"success": True, "translatedText": f"[{target}] {payload.get('text', '')}"}
    return {"success": False, "error": f"No mock for {path}"}
