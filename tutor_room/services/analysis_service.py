"""
Analysis gateway: pronunciation, writing, content, quiz, Q&A and reading passages.

Each call normalizes the backend's loosely shaped payloads into the canonical
models and raises AnalysisFailed on any failure. The fallback builders below
are what the orchestrator substitutes when an analysis cannot be completed.
"""

import logging
import os
import time

from pydantic import ValidationError

from tutor_room.config import EXTENDED_TIMEOUT_S
from tutor_room.errors import AnalysisFailed, CollaboratorError
from tutor_room.models import (
    ComprehensionQuestion,
    ContentAnalysis,
    Flashcard,
    PronunciationFeedback,
    QuizQuestion,
    ReadingPassage,
    VocabularyEntry,
    WordScore,
    WritingExercise,
    WritingFeedback,
    WritingSuggestion,
)
from tutor_room.scoring import canonical_score
from tutor_room.services.api_client import TutorApiClient, unwrap_data

logger = logging.getLogger(__name__)

SUPPORTED_DOCUMENT_EXTENSIONS = (".pdf", ".doc", ".docx", ".txt", ".ppt", ".pptx")
DEFAULT_USER_ID = "default"


def is_supported_document(filename: str) -> bool:
    return os.path.splitext(filename or "")[1].lower() in SUPPORTED_DOCUMENT_EXTENSIONS


def _first_present(data: dict, *keys):
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _str_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None and str(v).strip()]


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize_pronunciation(data: dict) -> PronunciationFeedback:
    """Map any of the backend's pronunciation shapes onto 0-10 feedback."""
    source = data
    if _first_present(data, "overall", "overallScore", "pronunciationScore") is None and isinstance(
        data.get("feedback"), dict
    ):
        source = data["feedback"]
    overall = _first_present(source, "overall", "overallScore", "pronunciationScore")
    if overall is None:
        raise AnalysisFailed("Pronunciation analysis carried no overall score")

    word_scores = []
    for entry in source.get("wordScores") or []:
        if not isinstance(entry, dict) or not entry.get("word"):
            continue
        word_scores.append(
            WordScore(
                word=str(entry["word"]),
                score=canonical_score(entry.get("score")),
                phonemes=_str_list(entry.get("phonemes")),
                suggestions=_str_list(entry.get("suggestions")),
            )
        )

    return PronunciationFeedback(
        overall_score=canonical_score(overall),
        fluency_score=canonical_score(_first_present(source, "fluency", "fluencyScore")),
        clarity_score=canonical_score(_first_present(source, "clarity", "clarityScore")),
        pace_score=canonical_score(_first_present(source, "pace", "paceScore")),
        word_scores=word_scores,
        strengths=_str_list(source.get("strengths")),
        improvements=_str_list(source.get("improvements")),
    )


def normalize_writing(data: dict) -> WritingFeedback:
    overall = _first_present(data, "overallScore", "overall")
    if overall is None:
        raise AnalysisFailed("Writing analysis carried no overall score")
    suggestions = []
    for entry in data.get("suggestions") or []:
        if isinstance(entry, dict) and entry.get("message"):
            suggestions.append(
                WritingSuggestion(
                    type=str(entry.get("type") or "grammar"),
                    message=str(entry["message"]),
                    position=entry.get("position") if isinstance(entry.get("position"), int) else None,
                    suggestion=entry.get("suggestion"),
                )
            )
    return WritingFeedback(
        overall_score=canonical_score(overall),
        grammar_score=canonical_score(_first_present(data, "grammarScore", "grammar")),
        vocabulary_score=canonical_score(_first_present(data, "vocabularyScore", "vocabulary")),
        structure_score=canonical_score(_first_present(data, "structureScore", "structure")),
        style_score=canonical_score(_first_present(data, "styleScore", "style")),
        suggestions=suggestions,
        strengths=_str_list(data.get("strengths")),
        improvements=_str_list(data.get("improvements")),
    )


def normalize_quiz_question(entry: dict) -> QuizQuestion | None:
    if not isinstance(entry, dict) or not entry.get("question"):
        return None
    correct = entry.get("correctAnswer", entry.get("correct_answer", ""))
    if isinstance(correct, bool):
        correct = "True" if correct else "False"
    options = _str_list(entry.get("options"))
    # An integer answer on a multiple choice item is an option index
    if isinstance(correct, int) and 0 <= correct < len(options):
        correct = options[correct]
    return QuizQuestion(
        question=str(entry["question"]),
        type=str(entry.get("type") or "multiple_choice"),
        options=options,
        correct_answer=str(correct),
        explanation=str(entry.get("explanation") or ""),
    )


def normalize_quiz(entries) -> list[QuizQuestion]:
    if not isinstance(entries, list):
        return []
    return [q for q in (normalize_quiz_question(e) for e in entries) if q is not None]


def normalize_content_analysis(data: dict) -> ContentAnalysis:
    flashcards = []
    for entry in data.get("flashcards") or []:
        if isinstance(entry, dict) and entry.get("front") and entry.get("back"):
            flashcards.append(
                Flashcard(
                    front=str(entry["front"]),
                    back=str(entry["back"]),
                    category=str(entry.get("category") or ""),
                    difficulty=str(entry.get("difficulty") or ""),
                )
            )
    return ContentAnalysis(
        analysis=str(data.get("analysis") or ""),
        flashcards=flashcards,
        quiz=normalize_quiz(data.get("quiz")),
    )


def normalize_passage(data: dict) -> ReadingPassage:
    questions = []
    for entry in data.get("questions") or data.get("comprehensionQuestions") or []:
        if not isinstance(entry, dict) or not entry.get("question"):
            continue
        try:
            questions.append(
                ComprehensionQuestion(
                    question=str(entry["question"]),
                    options=_str_list(entry.get("options")),
                    correct_answer=int(entry.get("correctAnswer")),
                    explanation=str(entry.get("explanation") or ""),
                )
            )
        except (TypeError, ValueError, ValidationError):
            logger.warning("Dropping comprehension question without a usable answer index")
    vocabulary = [
        VocabularyEntry(
            word=str(v["word"]),
            definition=str(v.get("definition") or ""),
            context=str(v.get("context") or ""),
            pronunciation=v.get("pronunciation"),
        )
        for v in data.get("vocabulary") or []
        if isinstance(v, dict) and v.get("word")
    ]
    try:
        reading_time = int(data.get("readingTime") or 5)
    except (TypeError, ValueError):
        reading_time = 5
    return ReadingPassage(
        title=data.get("title") or "Reading Passage",
        content=data.get("content") or "No content available",
        difficulty=data.get("difficulty") or "intermediate",
        vocabulary=vocabulary,
        questions=questions,
        reading_time=reading_time,
    )


# ---------------------------------------------------------------------------
# Local fallbacks
# ---------------------------------------------------------------------------


def fallback_pronunciation() -> PronunciationFeedback:
    return PronunciationFeedback(
        overall_score=7,
        fluency_score=7,
        clarity_score=7,
        pace_score=7,
        improvements=["Keep practicing! Your pronunciation is improving."],
        strengths=["Good pace and clarity!"],
        is_fallback=True,
    )


def fallback_writing() -> WritingFeedback:
    return WritingFeedback(
        overall_score=7,
        grammar_score=7,
        vocabulary_score=7,
        structure_score=7,
        style_score=7,
        suggestions=[
            WritingSuggestion(type="grammar", message="Check your sentence structure"),
            WritingSuggestion(type="vocabulary", message="Try using more varied vocabulary"),
        ],
        strengths=["Good ideas", "Clear communication"],
        improvements=["Work on grammar", "Expand vocabulary"],
        is_fallback=True,
    )


def fallback_passage() -> ReadingPassage:
    return ReadingPassage(
        id="fallback-passage",
        title="The Benefits of Learning Languages",
        content=(
            "Learning a new language opens doors to new cultures, improves cognitive abilities, "
            "and enhances career opportunities. Studies show that bilingual individuals have better "
            "problem-solving skills and memory retention. Language learning also promotes cultural "
            "understanding and global communication."
        ),
        difficulty="intermediate",
        vocabulary=[
            VocabularyEntry(word="cognitive", definition="relating to mental processes", context="cognitive abilities"),
            VocabularyEntry(word="bilingual", definition="speaking two languages fluently", context="bilingual individuals"),
            VocabularyEntry(word="retention", definition="the ability to remember information", context="memory retention"),
        ],
        questions=[
            ComprehensionQuestion(
                question="What are the main benefits of learning languages?",
                options=[
                    "Career opportunities only",
                    "Cultural understanding only",
                    "Cognitive abilities and cultural understanding",
                    "Memory only",
                ],
                correct_answer=2,
                explanation=(
                    "The passage mentions cognitive abilities, cultural understanding, "
                    "and career opportunities as benefits."
                ),
            )
        ],
        reading_time=3,
    )


def build_writing_exercise(exercise_type: str | None = None) -> WritingExercise:
    """Writing exercises are generated locally; the backend has no endpoint for them."""
    return WritingExercise(
        title="Writing Exercise",
        prompt="Write about your favorite hobby and explain why you enjoy it.",
        type=exercise_type or "essay",
        difficulty="intermediate",
        word_limit=200,
        time_limit=15,
        requirements=["Use proper grammar", "Include specific examples", "Write in complete sentences"],
    )


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class AnalysisGateway:
    """All analysis-style calls against the tutoring backend."""

    PRONUNCIATION_PATH = "/api/speech/analyze-pronunciation"
    WRITING_PATH = "/api/writing/analyze"
    CONTENT_PATH = "/api/reading/analyze"
    PASSAGE_PATH = "/api/reading/content"
    QUIZ_PATH = "/api/reading/quiz"
    ANSWER_PATH = "/api/reading/answer"

    def __init__(self, client: TutorApiClient, timeout: float = EXTENDED_TIMEOUT_S, user_id: str = DEFAULT_USER_ID):
        self._client = client
        self._timeout = timeout
        self._user_id = user_id

    async def _post(self, path: str, payload: dict) -> dict:
        t0 = time.perf_counter()
        try:
            body = await self._client.post_json(path, payload, timeout=self._timeout)
        except CollaboratorError as exc:
            logger.error("Analysis call %s failed: %s", path, exc)
            raise AnalysisFailed(str(exc), status=exc.status) from exc
        logger.info("Analysis %s: %dms", path, int((time.perf_counter() - t0) * 1000))
        return unwrap_data(body)

    async def analyze_pronunciation(self, audio_base64: str, text: str, expected_text: str = "") -> PronunciationFeedback:
        data = await self._post(
            self.PRONUNCIATION_PATH,
            {"audioData": audio_base64, "text": text, "expectedText": expected_text},
        )
        feedback = normalize_pronunciation(data)
        logger.info("Pronunciation score %.1f", feedback.overall_score)
        return feedback

    async def analyze_writing(self, text: str, language: str = "en") -> WritingFeedback:
        data = await self._post(self.WRITING_PATH, {"text": text, "language": language})
        return normalize_writing(data)

    async def analyze_content(
        self, prompt: str | None = None, document: tuple[str, bytes] | None = None
    ) -> ContentAnalysis:
        """Analyze an uploaded document or a free-text prompt (multipart upload)."""
        if document is None and not (prompt or "").strip():
            raise AnalysisFailed("Nothing to analyze")
        fields = {"userId": self._user_id}
        files = None
        if document is not None:
            files = {"file": document}
        else:
            fields["content"] = prompt
        try:
            body = await self._client.post_form(self.CONTENT_PATH, fields, files=files, timeout=self._timeout)
        except CollaboratorError as exc:
            logger.error("Content analysis failed: %s", exc)
            raise AnalysisFailed(str(exc), status=exc.status) from exc
        analysis = normalize_content_analysis(unwrap_data(body))
        logger.info(
            "Content analysis: %d flashcards, %d quiz questions", len(analysis.flashcards), len(analysis.quiz)
        )
        return analysis

    async def generate_quiz(self, analysis_text: str) -> list[QuizQuestion]:
        data = await self._post(
            self.QUIZ_PATH, {"content": analysis_text, "analysis": analysis_text, "userId": self._user_id}
        )
        questions = normalize_quiz(data.get("questions"))
        if not questions:
            raise AnalysisFailed("Quiz generation returned no questions")
        return questions

    async def answer_question(self, question: str, analysis_text: str) -> str:
        data = await self._post(
            self.ANSWER_PATH,
            {"question": question, "content": analysis_text, "analysis": analysis_text, "userId": self._user_id},
        )
        answer = data.get("answer")
        if not isinstance(answer, str) or not answer.strip():
            raise AnalysisFailed("Question answering returned no answer")
        return answer

    async def generate_reading_passage(
        self, topic: str = "general interest", level: str = "intermediate", language: str = "en"
    ) -> ReadingPassage:
        data = await self._post(self.PASSAGE_PATH, {"topic": topic, "level": level, "language": language})
        return normalize_passage(data)
