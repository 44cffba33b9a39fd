"""
Pydantic models for the AI Tutor Room session core.

Defines the canonical internal types every collaborator payload is normalized
into, plus the explicit SessionState owned by the conversation orchestrator.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Mode(str, Enum):
    """The active learning activity."""

    SPEAKING = "speaking"
    READING = "reading"
    WRITING = "writing"
    LISTENING = "listening"
    FLASHCARDS = "flashcards"
    QUIZ = "quiz"
    QA = "qa"
    NONE = "none"


class Phase(str, Enum):
    """Turn-taking state of the orchestrator."""

    IDLE = "idle"
    AWAITING_AI_REPLY = "awaitingAIReply"
    ANALYZING = "analyzing"


CardType = Literal["speaking", "reading", "writing", "listening"]

CARD_MODES: tuple[Mode, ...] = (Mode.SPEAKING, Mode.READING, Mode.WRITING, Mode.LISTENING)


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """A single entry of the conversation log. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id, description="Unique message id")
    role: Literal["user", "ai"] = Field(..., description="Author of the message")
    text: str = Field(..., description="Message body (markdown allowed for ai)")
    created_at: datetime = Field(default_factory=_now, description="Append time (UTC)")
    language: Optional[str] = Field(default=None, description="Detected language code")
    confidence: Optional[float] = Field(
        default=None, ge=0.0, le=1.0, description="Collaborator confidence for ai replies"
    )


class LearningCard(BaseModel):
    """One of the four activity cards shown next to the conversation."""

    id: str = Field(..., description="Card identifier")
    type: CardType = Field(..., description="Activity the card opens")
    title: str = Field(..., description="Card title")
    description: str = Field(default="", description="Short card description")
    content: str = Field(default="", description="Optional body text")
    speaking_prompt: str = Field(default="", description="Default prompt for speaking cards")
    expected_phrases: list[str] = Field(default_factory=list)
    difficulty: str = Field(default="intermediate")
    is_active: bool = Field(default=False)
    progress: int = Field(default=0, ge=0, le=100, description="Monotonic progress 0..100")
    metadata: dict = Field(default_factory=dict)


class WordScore(BaseModel):
    word: str
    score: float = 0.0
    phonemes: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class PronunciationFeedback(BaseModel):
    """Canonical pronunciation feedback, all scores on a 0-10 scale."""

    overall_score: float = Field(..., ge=0.0, le=10.0)
    fluency_score: float = Field(default=0.0, ge=0.0, le=10.0)
    clarity_score: float = Field(default=0.0, ge=0.0, le=10.0)
    pace_score: float = Field(default=0.0, ge=0.0, le=10.0)
    word_scores: list[WordScore] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    is_fallback: bool = Field(
        default=False, description="True when substituted locally after a failed analysis"
    )


class WritingSuggestion(BaseModel):
    type: str = Field(default="grammar", description="grammar, vocabulary, structure or style")
    message: str
    position: Optional[int] = None
    suggestion: Optional[str] = None


class WritingFeedback(BaseModel):
    """Canonical writing feedback, all scores on a 0-10 scale."""

    overall_score: float = Field(..., ge=0.0, le=10.0)
    grammar_score: float = Field(default=0.0, ge=0.0, le=10.0)
    vocabulary_score: float = Field(default=0.0, ge=0.0, le=10.0)
    structure_score: float = Field(default=0.0, ge=0.0, le=10.0)
    style_score: float = Field(default=0.0, ge=0.0, le=10.0)
    suggestions: list[WritingSuggestion] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    is_fallback: bool = False


class SpeakingStats(BaseModel):
    """Running pronunciation statistics, updated once per completed analysis."""

    total_recordings: int = Field(default=0, ge=0)
    average_score: float = Field(default=0, ge=0.0, description="Running mean, rounded per update")
    best_score: float = Field(default=0, ge=0.0)
    challenges_completed: int = Field(default=0, ge=0)


class Flashcard(BaseModel):
    front: str
    back: str
    category: str = ""
    difficulty: str = ""


class QuizQuestion(BaseModel):
    """Quiz question as produced by content analysis or quiz generation.

    ``correct_answer`` holds the text of the right option (multiple choice)
    or the literal answer string (true/false).
    """

    question: str
    type: str = Field(default="multiple_choice", description="multiple_choice or true_false")
    options: list[str] = Field(default_factory=list)
    correct_answer: str = ""
    explanation: str = ""


class QuizResult(BaseModel):
    question: str
    user_answer: str
    correct_answer: str
    is_correct: bool
    explanation: str = ""
    type: str = ""
    options: list[str] = Field(default_factory=list)


class ComprehensionQuestion(BaseModel):
    """Reading-passage question; ``correct_answer`` is an option index."""

    question: str
    options: list[str] = Field(default_factory=list)
    correct_answer: int = Field(..., ge=0)
    explanation: str = ""


class VocabularyEntry(BaseModel):
    word: str
    definition: str = ""
    context: str = ""
    pronunciation: Optional[str] = None


class ReadingPassage(BaseModel):
    id: str = Field(default_factory=lambda: f"passage-{_new_id()[:8]}")
    title: str = "Reading Passage"
    content: str = "No content available"
    difficulty: str = "intermediate"
    vocabulary: list[VocabularyEntry] = Field(default_factory=list)
    questions: list[ComprehensionQuestion] = Field(default_factory=list)
    reading_time: int = Field(default=5, description="Estimated reading time in minutes")


class WritingExercise(BaseModel):
    id: str = Field(default_factory=lambda: f"writing-{_new_id()[:8]}")
    title: str
    prompt: str
    type: str = "essay"
    difficulty: str = "intermediate"
    word_limit: Optional[int] = None
    time_limit: Optional[int] = Field(default=None, description="Minutes")
    requirements: list[str] = Field(default_factory=list)


class ContentAnalysis(BaseModel):
    """Result of analyzing an uploaded document or a text prompt."""

    analysis: str = ""
    flashcards: list[Flashcard] = Field(default_factory=list)
    quiz: list[QuizQuestion] = Field(default_factory=list)


class SpeakingChallenge(BaseModel):
    id: str
    title: str
    prompt: str
    difficulty: str = "easy"
    category: str = ""


class LanguageDetectionResult(BaseModel):
    detected_language: str = Field(..., description="ISO code reported by the detector")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    language_name: str = ""
    cultural_context: str = ""
    is_supported: bool = True
    fallback_used: bool = False


class TranslationResult(BaseModel):
    success: bool
    translated_text: Optional[str] = None
    error: Optional[str] = None


class SessionState(BaseModel):
    """Everything the orchestrator knows about the active learner session."""

    conversation_id: Optional[str] = Field(
        default=None, description="Backend conversation id, None until acknowledged"
    )
    messages: list[Message] = Field(default_factory=list, description="Append-only log")
    current_mode: Mode = Field(default=Mode.NONE)
    phase: Phase = Field(default=Phase.IDLE)
    cards: list[LearningCard] = Field(default_factory=list)
    speaking_stats: SpeakingStats = Field(default_factory=SpeakingStats)
    achievements: list[str] = Field(default_factory=list, description="Grows monotonically")
    speaking_prompt: str = ""
    current_challenge: Optional[SpeakingChallenge] = None
    pronunciation_feedback: Optional[PronunciationFeedback] = None
    transcript: str = ""
    last_reply: str = Field(default="", description="Text of the latest dialogue reply")
    reading_passage: Optional[ReadingPassage] = None
    reading_answers: dict[int, int] = Field(default_factory=dict)
    reading_score: Optional[int] = None
    writing_exercise: Optional[WritingExercise] = None
    writing_feedback: Optional[WritingFeedback] = None
    content_analysis: Optional[ContentAnalysis] = None
    flashcards: list[Flashcard] = Field(default_factory=list)
    flashcard_index: int = 0
    show_flashcard_answer: bool = False
    quiz: list[QuizQuestion] = Field(default_factory=list)
    quiz_answers: dict[int, str] = Field(default_factory=dict)
    quiz_score: Optional[int] = None
    quiz_results: list[QuizResult] = Field(default_factory=list)
    ui_language: str = Field(default="en", description="UI language, en or zh")
