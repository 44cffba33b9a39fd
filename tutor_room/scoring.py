"""
Score aggregation for pronunciation, quizzes and reading comprehension.

All functions are pure: they take the previous value and return a new one,
leaving mutation of SessionState to the orchestrator.
"""

import math
from typing import Iterable, NamedTuple

from tutor_room.models import (
    ComprehensionQuestion,
    LearningCard,
    QuizQuestion,
    QuizResult,
    SpeakingStats,
)

CHALLENGE_PASS_SCORE = 7
CARD_PROGRESS_STEP = 20

ACHIEVEMENT_MESSAGES: dict[str, str] = {
    "first-recording": "🎉 First Recording! You've taken the first step in your speaking journey!",
    "persistent-learner": "🔥 Persistent Learner! You've completed 10 recordings!",
    "pronunciation-master": "⭐ Pronunciation Master! You achieved a perfect 9+ score!",
    "challenge-champion": "🏆 Challenge Champion! You've completed 3 challenges!",
    "consistent-excellence": "💎 Consistent Excellence! You maintain high scores across multiple recordings!",
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def canonical_score(raw) -> float:
    """Map a collaborator score onto the 0-10 scale.

    Integers are read as 0-10. Floats up to 1.0 are fractions (the backend
    reports word accuracy as 0..1). Anything above 10 is a percentage.
    """
    if isinstance(raw, bool):
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value) or value <= 0:
        return 0.0
    if isinstance(raw, float) and value <= 1.0:
        value *= 10
    elif value > 10:
        value /= 10
    return round(min(value, 10.0), 1)


def update_speaking_stats(stats: SpeakingStats, score: float) -> SpeakingStats:
    """Fold one canonical pronunciation score into the running statistics."""
    n = stats.total_recordings
    return SpeakingStats(
        total_recordings=n + 1,
        average_score=_round_half_up((stats.average_score * n + score) / (n + 1)),
        best_score=max(stats.best_score, score),
        challenges_completed=stats.challenges_completed + (1 if score >= CHALLENGE_PASS_SCORE else 0),
    )


def check_achievements(stats: SpeakingStats, unlocked: Iterable[str]) -> list[str]:
    """Return achievement ids newly earned by ``stats``, in announcement order."""
    already = set(unlocked)
    earned = []
    if stats.total_recordings == 1:
        earned.append("first-recording")
    if stats.total_recordings == 10:
        earned.append("persistent-learner")
    if stats.best_score >= 9:
        earned.append("pronunciation-master")
    if stats.challenges_completed >= 3:
        earned.append("challenge-champion")
    if stats.average_score >= 8 and stats.total_recordings >= 5:
        earned.append("consistent-excellence")
    return [a for a in earned if a not in already]


def achievement_message(achievement: str) -> str:
    return f"**Achievement Unlocked!** 🎊\n\n{ACHIEVEMENT_MESSAGES.get(achievement, achievement)}"


class PronunciationUpdate(NamedTuple):
    stats: SpeakingStats
    new_achievements: list[str]


def record_pronunciation(
    stats: SpeakingStats, achievements: Iterable[str], score: float
) -> PronunciationUpdate:
    """Fold a 0-10 score (see canonical_score) into stats and evaluate thresholds."""
    new_stats = update_speaking_stats(stats, score)
    return PronunciationUpdate(new_stats, check_achievements(new_stats, achievements))


class QuizOutcome(NamedTuple):
    score: int
    correct: int
    total: int
    results: list[QuizResult]


def _percentage(correct: int, total: int) -> int:
    if total == 0:
        return 0
    return _round_half_up(correct / total * 100)


def score_quiz(questions: list[QuizQuestion], answers: dict[int, str]) -> QuizOutcome:
    """Grade a quiz.

    Multiple choice answers are option indexes (as strings) compared to the
    index of the option whose text equals ``correct_answer``. True/false
    answers are compared as strings. Unanswered questions are incorrect.
    """
    correct = 0
    results = []
    for index, question in enumerate(questions):
        answer = answers.get(index)
        is_correct = False
        answer_text = "Not answered"
        if answer is not None and answer != "":
            if question.type == "multiple_choice":
                try:
                    chosen = int(answer)
                except (TypeError, ValueError):
                    chosen = -1
                expected = (
                    question.options.index(question.correct_answer)
                    if question.correct_answer in question.options
                    else -1
                )
                is_correct = chosen >= 0 and chosen == expected
                if 0 <= chosen < len(question.options):
                    answer_text = question.options[chosen]
            elif question.type == "true_false":
                is_correct = answer == question.correct_answer
                answer_text = answer
        if is_correct:
            correct += 1
        results.append(
            QuizResult(
                question=question.question,
                user_answer=answer_text,
                correct_answer=question.correct_answer,
                is_correct=is_correct,
                explanation=question.explanation,
                type=question.type,
                options=question.options,
            )
        )
    return QuizOutcome(_percentage(correct, len(questions)), correct, len(questions), results)


def score_reading(questions: list[ComprehensionQuestion], answers: dict[int, int]) -> int:
    """Grade a reading passage by comparing selected option indexes directly."""
    correct = sum(1 for i, q in enumerate(questions) if answers.get(i) == q.correct_answer)
    return _percentage(correct, len(questions))


def quiz_feedback(score: int) -> str:
    if score >= 80:
        return "🌟 Excellent work! You have a great understanding of the content."
    if score >= 60:
        return "👍 Good job! You understand most of the content."
    return "📚 Keep studying! Review the content and try again."


def add_progress(cards: list[LearningCard], card_type: str, step: int) -> list[LearningCard]:
    """Return cards with ``step`` added to the progress of ``card_type`` (capped at 100)."""
    return [
        card.model_copy(update={"progress": min(100, card.progress + step)})
        if card.type == card_type
        else card
        for card in cards
    ]


def activate_card(cards: list[LearningCard], card_type: str) -> list[LearningCard]:
    """Mark only ``card_type`` active and bump its progress by one step."""
    updated = []
    for card in cards:
        if card.type == card_type:
            updated.append(
                card.model_copy(
                    update={"is_active": True, "progress": min(100, card.progress + CARD_PROGRESS_STEP)}
                )
            )
        else:
            updated.append(card.model_copy(update={"is_active": False}))
    return updated
