"""
Session routes: state snapshot and every learner action that is not a live
conversation turn (cards, challenges, reading, writing, content, quiz, Q&A,
flashcards, playback and language controls).
"""

import base64
import binascii
import logging

from fastapi import APIRouter

from tutor_room.models import Mode
from tutor_room.orchestrator import SPEAKING_CHALLENGES, ConversationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])

# Single learner per process: one orchestrator, created lazily.
_orchestrator: ConversationOrchestrator | None = None


def get_orchestrator() -> ConversationOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ConversationOrchestrator()
    return _orchestrator


def reset_orchestrator() -> None:
    global _orchestrator
    _orchestrator = None


async def get_started_orchestrator() -> ConversationOrchestrator:
    """Return the orchestrator, starting its session on first use."""
    orchestrator = get_orchestrator()
    if not orchestrator.state.cards:
        await orchestrator.start()
    return orchestrator


def _snapshot(orchestrator: ConversationOrchestrator) -> dict:
    return orchestrator.state.model_dump(mode="json")


def _int_keys(answers: dict | None) -> dict[int, object]:
    result = {}
    for key, value in (answers or {}).items():
        try:
            result[int(key)] = value
        except (TypeError, ValueError):
            logger.warning("Ignoring answer with non-numeric key %r", key)
    return result


# ── Session ────────────────────────────────────────────────────────────

@router.get("/state")
async def get_state() -> dict:
    """Full session snapshot."""
    return _snapshot(await get_started_orchestrator())


@router.post("/restart")
async def restart_session() -> dict:
    """Reset everything and start a new backend conversation."""
    orchestrator = get_orchestrator()
    await orchestrator.restart()
    return _snapshot(orchestrator)


@router.post("/mode")
async def select_mode(body: dict) -> dict:
    try:
        mode = Mode(body.get("mode", ""))
    except ValueError:
        return {"error": f"Unknown mode: {body.get('mode')}"}
    orchestrator = await get_started_orchestrator()
    await orchestrator.select_mode(mode)
    return {"mode": orchestrator.state.current_mode.value}


@router.post("/card")
async def click_card(body: dict) -> dict:
    card_type = body.get("type", "")
    if card_type not in ("speaking", "reading", "writing", "listening"):
        return {"error": f"Unknown card type: {card_type}"}
    orchestrator = await get_started_orchestrator()
    await orchestrator.click_card(card_type)
    return _snapshot(orchestrator)


# ── Speaking ───────────────────────────────────────────────────────────

@router.get("/challenges")
async def list_challenges() -> list[dict]:
    return [c.model_dump() for c in SPEAKING_CHALLENGES]


@router.post("/challenge")
async def start_challenge(body: dict) -> dict:
    orchestrator = await get_started_orchestrator()
    challenge = await orchestrator.start_speaking_challenge(str(body.get("challenge_id", "")))
    if challenge is None:
        return {"error": "Unknown challenge"}
    return {"challenge": challenge.model_dump(), "speaking_prompt": orchestrator.state.speaking_prompt}


@router.post("/speaking-prompt")
async def speaking_prompt(body: dict) -> dict:
    prompt = (body.get("prompt") or "").strip()
    if not prompt:
        return {"error": "prompt is required"}
    orchestrator = await get_started_orchestrator()
    await orchestrator.prepare_speaking_prompt(prompt)
    return {"speaking_prompt": orchestrator.state.speaking_prompt}


# ── Reading ────────────────────────────────────────────────────────────

@router.post("/reading/generate")
async def generate_reading(body: dict | None = None) -> dict:
    orchestrator = await get_started_orchestrator()
    passage = await orchestrator.generate_reading_passage((body or {}).get("topic"))
    return passage.model_dump()


@router.post("/reading/submit")
async def submit_reading(body: dict) -> dict:
    orchestrator = await get_started_orchestrator()
    score = orchestrator.submit_reading(_int_keys(body.get("answers")))
    if score is None:
        return {"error": "No reading passage"}
    return {"score": score}


# ── Writing ────────────────────────────────────────────────────────────

@router.post("/writing/exercise")
async def writing_exercise(body: dict | None = None) -> dict:
    orchestrator = await get_started_orchestrator()
    return orchestrator.generate_writing_exercise((body or {}).get("type")).model_dump()


@router.post("/writing/analyze")
async def analyze_writing(body: dict) -> dict:
    text = (body.get("text") or "").strip()
    if not text:
        return {"error": "text is required"}
    orchestrator = await get_started_orchestrator()
    feedback = await orchestrator.analyze_writing(text)
    return feedback.model_dump()


# ── Content, quiz & Q&A ────────────────────────────────────────────────

@router.post("/upload")
async def upload_document(body: dict) -> dict:
    filename = body.get("filename") or ""
    try:
        data = base64.b64decode(body.get("content_base64", ""), validate=True)
    except (binascii.Error, TypeError, ValueError):
        return {"error": "content_base64 is not valid base64"}
    orchestrator = await get_started_orchestrator()
    analysis = await orchestrator.upload_document(filename, data)
    if analysis is None:
        return {"error": "Upload was not analyzed"}
    return analysis.model_dump()


@router.post("/content-prompt")
async def content_prompt(body: dict) -> dict:
    prompt = (body.get("prompt") or "").strip()
    if not prompt:
        return {"error": "prompt is required"}
    orchestrator = await get_started_orchestrator()
    analysis = await orchestrator.generate_reading_from_prompt(prompt)
    if analysis is None:
        return {"error": "Content could not be generated"}
    return analysis.model_dump()


@router.post("/quiz/generate")
async def generate_quiz() -> dict:
    orchestrator = await get_started_orchestrator()
    questions = await orchestrator.generate_quiz()
    if questions is None:
        return {"error": "No quiz available"}
    return {"questions": [q.model_dump() for q in questions]}


@router.post("/quiz/submit")
async def submit_quiz(body: dict) -> dict:
    orchestrator = await get_started_orchestrator()
    answers = {k: str(v) for k, v in _int_keys(body.get("answers")).items()}
    outcome = await orchestrator.submit_quiz(answers)
    if outcome is None:
        return {"error": "No quiz to submit"}
    return {
        "score": outcome.score,
        "correct": outcome.correct,
        "total": outcome.total,
        "results": [r.model_dump() for r in outcome.results],
    }


@router.post("/question")
async def ask_question(body: dict) -> dict:
    question = (body.get("question") or "").strip()
    if not question:
        return {"error": "question is required"}
    orchestrator = await get_started_orchestrator()
    answer = await orchestrator.ask_question(question)
    if answer is None:
        return {"error": "Question could not be answered"}
    return {"answer": answer}


# ── Flashcards ─────────────────────────────────────────────────────────

@router.post("/flashcards/next")
async def next_flashcard() -> dict:
    orchestrator = await get_started_orchestrator()
    return {"index": orchestrator.next_flashcard(), "show_answer": orchestrator.state.show_flashcard_answer}


@router.post("/flashcards/flip")
async def flip_flashcard() -> dict:
    orchestrator = await get_started_orchestrator()
    return {"index": orchestrator.state.flashcard_index, "show_answer": orchestrator.flip_flashcard()}


# ── Playback & language ────────────────────────────────────────────────

@router.post("/audio/pause")
async def pause_audio() -> dict:
    orchestrator = get_orchestrator()
    orchestrator.pause_audio()
    return {"is_playing": orchestrator.playback.is_playing}


@router.post("/audio/toggle")
async def toggle_audio() -> dict:
    orchestrator = await get_started_orchestrator()
    await orchestrator.toggle_audio()
    return {"is_playing": orchestrator.playback.is_playing}


@router.post("/translate")
async def translate(body: dict) -> dict:
    text = body.get("text", "")
    target = body.get("target", "")
    if not text or target not in ("en", "zh"):
        return {"error": "text and target (en|zh) are required"}
    orchestrator = get_orchestrator()
    result = await orchestrator.translate(text, target, body.get("source"))
    return result.model_dump()


@router.get("/language/auto-switch")
async def get_auto_switch() -> dict:
    orchestrator = get_orchestrator()
    return {"enabled": orchestrator.switcher.auto_switch_ui, "ui_language": orchestrator.state.ui_language}


@router.post("/language/auto-switch")
async def set_auto_switch(body: dict) -> dict:
    orchestrator = get_orchestrator()
    orchestrator.set_auto_switch(bool(body.get("enabled", True)))
    return {"enabled": orchestrator.switcher.auto_switch_ui, "ui_language": orchestrator.state.ui_language}
