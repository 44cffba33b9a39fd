"""
Conversation orchestrator for the AI Tutor Room.

Owns the SessionState of the single active learner and dispatches voice and
text input to the right pipeline: content generation while reading, otherwise
(optional) pronunciation analysis followed by a dialogue turn. Each tutor reply
is normalized, appended, checked for a mode transition and spoken aloud.

Every collaborator failure is caught here, logged and turned into either an
``alert`` event or a local fallback payload. Nothing raises out of the
public coroutines.

Events pushed to ``emit`` (one dict each):
    {"type": "status", "step": "..."}           # progress (recording, transcribing, thinking, ...)
    {"type": "message", "message": {...}}         # a Message appended to the log
    {"type": "alert", "message": "..."}           # user-visible failure
    {"type": "mode", "mode": "..."}               # current mode changed
    {"type": "ui_language", "language": "..."}    # UI language auto-switched
"""

import asyncio
import logging
from typing import Awaitable, Callable

from tutor_room.errors import (
    AnalysisFailed,
    CollaboratorError,
    NoActiveConversation,
    PayloadTooLarge,
    PermissionDenied,
    TranscriptionFailed,
    UnsupportedFileType,
)
from tutor_room.mode_detector import detect_mode
from tutor_room.models import (
    CARD_MODES,
    ContentAnalysis,
    LearningCard,
    Message,
    Mode,
    Phase,
    SessionState,
    SpeakingChallenge,
)
from tutor_room.scoring import (
    CARD_PROGRESS_STEP,
    achievement_message,
    activate_card,
    add_progress,
    quiz_feedback,
    record_pronunciation,
    score_quiz,
    score_reading,
)
from tutor_room.services.analysis_service import (
    AnalysisGateway,
    build_writing_exercise,
    fallback_passage,
    fallback_pronunciation,
    fallback_writing,
    is_supported_document,
)
from tutor_room.services.api_client import TutorApiClient
from tutor_room.services.audio_capture import AudioCaptureSession
from tutor_room.services.conversation_service import ConversationService
from tutor_room.services.language_switcher import LanguageAutoSwitcher
from tutor_room.services.speech_playback import SpeechPlaybackController
from tutor_room.services.transcription import TranscriptionGateway

logger = logging.getLogger(__name__)

WRITING_PROGRESS_STEP = 15

WELCOME_MESSAGE = (
    "Hello! I'm your AI language learning tutor. I'm here to help you practice speaking, "
    "reading, writing, and listening. What would you like to work on today?"
)

SPEAKING_CHALLENGES: tuple[SpeakingChallenge, ...] = (
    SpeakingChallenge(
        id="1", title="Self Introduction", difficulty="easy", category="Personal",
        prompt="Hello! Please introduce yourself and tell me about your hobbies.",
    ),
    SpeakingChallenge(
        id="2", title="Daily Routine", difficulty="easy", category="Daily Life",
        prompt="Describe your typical day from morning to evening.",
    ),
    SpeakingChallenge(
        id="3", title="Travel Story", difficulty="medium", category="Travel",
        prompt="Tell me about your most memorable travel experience.",
    ),
    SpeakingChallenge(
        id="4", title="Future Goals", difficulty="medium", category="Career",
        prompt="What are your career goals and how do you plan to achieve them?",
    ),
    SpeakingChallenge(
        id="5", title="Environmental Issues", difficulty="hard", category="Society",
        prompt="Discuss the most important environmental challenge facing our world today.",
    ),
    SpeakingChallenge(
        id="6", title="Technology Impact", difficulty="hard", category="Technology",
        prompt="How has technology changed the way we communicate and work?",
    ),
)


def default_cards() -> list[LearningCard]:
    return [
        LearningCard(
            id="speaking-1",
            type="speaking",
            title="Speaking Practice",
            description="Practice pronunciation and conversation",
            speaking_prompt="Hello! Please introduce yourself and tell me about your hobbies.",
            expected_phrases=["Hello", "My name is", "I like", "I enjoy"],
            difficulty="beginner",
        ),
        LearningCard(
            id="reading-1",
            type="reading",
            title="Reading Practice",
            description="Improve reading comprehension",
            content="Read engaging passages and test your understanding",
        ),
        LearningCard(
            id="writing-1",
            type="writing",
            title="Writing Practice",
            description="Enhance writing skills with grammar and style feedback",
            content="Practice different writing styles and get real-time feedback",
        ),
        LearningCard(
            id="listening-1",
            type="listening",
            title="Listening Practice",
            description="Develop listening skills",
        ),
    ]


def _content_options(intro: str, analysis: ContentAnalysis) -> str:
    return (
        f"{intro}\n\nHere's what I found:\n\n{analysis.analysis}\n\nYou can now:\n"
        "- 📚 **Read the summary** I've created\n"
        "- 🃏 **Study with flashcards** I'll generate\n"
        "- 🧠 **Take a quiz** to test your understanding\n"
        "- ❓ **Ask questions** about the content\n\n"
        "What would you like to do first?"
    )


EventSink = Callable[[dict], Awaitable[None]]


class ConversationOrchestrator:
    """Turn-taking state machine over idle / awaitingAIReply / analyzing."""

    def __init__(
        self,
        client: TutorApiClient | None = None,
        capture: AudioCaptureSession | None = None,
        transcription: TranscriptionGateway | None = None,
        dialogue: ConversationService | None = None,
        analysis: AnalysisGateway | None = None,
        playback: SpeechPlaybackController | None = None,
        switcher: LanguageAutoSwitcher | None = None,
        emit: EventSink | None = None,
        language_code: str = "en-US",
    ):
        self.client = client or TutorApiClient()
        self.capture = capture or AudioCaptureSession()
        self.transcription = transcription or TranscriptionGateway(self.client)
        self.dialogue = dialogue or ConversationService(self.client)
        self.analysis = analysis or AnalysisGateway(self.client)
        self.playback = playback or SpeechPlaybackController(self.client)
        self.switcher = switcher or LanguageAutoSwitcher(self.client)
        self.switcher.on_switch = self._on_ui_language
        self.emit = emit
        self.language_code = language_code
        self.state = SessionState()
        # One outstanding send per session
        self._turn_lock = asyncio.Lock()

    # ── Events ───────────────────────────────────────────────────────

    async def _notify(self, event: dict):
        if self.emit is None:
            return
        try:
            await self.emit(event)
        except Exception as exc:
            logger.warning("Dropping %s event: %s", event.get("type"), exc)

    async def _alert(self, text: str):
        await self._notify({"type": "alert", "message": text})

    async def _status(self, step: str):
        await self._notify({"type": "status", "step": step})

    async def _append(self, message: Message):
        self.state.messages.append(message)
        await self._notify({"type": "message", "message": message.model_dump(mode="json")})

    async def _say(self, text: str):
        await self._append(Message(role="ai", text=text))

    async def _set_mode(self, mode: Mode):
        if self.state.current_mode is mode:
            return
        logger.info("Mode %s → %s", self.state.current_mode.value, mode.value)
        self.state.current_mode = mode
        await self._notify({"type": "mode", "mode": mode.value})

    async def _on_ui_language(self, language: str):
        self.state.ui_language = language
        await self._notify({"type": "ui_language", "language": language})

    # ── Session lifecycle ────────────────────────────────────────────

    async def start(self) -> SessionState:
        """Seed a fresh session and ask the backend for a conversation id."""
        self.state = SessionState(cards=default_cards(), ui_language=self.switcher.ui_language)
        await self._say(WELCOME_MESSAGE)
        try:
            self.state.conversation_id = await self.dialogue.start()
        except CollaboratorError as exc:
            # Session continues without an id; sends will fail fast
            logger.error("Failed to start conversation: %s", exc)
        return self.state

    async def restart(self) -> SessionState:
        self.playback.pause()
        self.switcher.cancel()
        await self.cancel_recording()
        logger.info("Session restart requested")
        return await self.start()

    async def close(self):
        self.switcher.cancel()
        await self.client.close()

    # ── Input dispatch ───────────────────────────────────────────────

    async def submit_text(self, text: str, language: str | None = None):
        """Typed input: a content prompt while reading, otherwise a dialogue turn."""
        text = (text or "").strip()
        if not text:
            return
        async with self._turn_lock:
            if self.state.current_mode is Mode.READING:
                await self._generate_from_prompt(text)
                return
            await self._append(Message(role="user", text=text, language=language))
            await self._dialogue_turn(text)

    async def start_recording(self) -> bool:
        try:
            started = await self.capture.start()
        except PermissionDenied as exc:
            self.state.transcript = ""
            await self._alert(exc.user_message)
            return False
        if started:
            self.state.transcript = "Listening..."
            await self._status("recording")
        return started

    async def stop_recording(self):
        """Finalize the recording and run it through the voice pipeline."""
        try:
            recording = await self.capture.stop()
        except PayloadTooLarge as exc:
            self.state.transcript = ""
            await self._alert(exc.user_message)
            return
        if recording is None:
            return
        try:
            await self.process_audio(recording.to_base64())
        finally:
            self.capture.release()

    async def cancel_recording(self):
        """Stop the microphone and drop whatever was captured."""
        if self.capture.is_recording:
            try:
                await self.capture.stop()
            except PayloadTooLarge as exc:
                logger.info("Discarded oversize recording: %s", exc)
            self.capture.release()
            logger.info("Recording cancelled")

    async def process_audio(self, audio_base64: str):
        """Transcribe a finalized recording and route the text."""
        async with self._turn_lock:
            self.state.phase = Phase.ANALYZING
            self.state.transcript = "Processing..."
            await self._status("transcribing")
            try:
                text = await self.transcription.transcribe(audio_base64, self.language_code)
            except TranscriptionFailed as exc:
                self.state.transcript = ""
                self.state.phase = Phase.IDLE
                await self._alert(exc.user_message)
                return

            self.state.transcript = text
            self.switcher.observe(text)
            try:
                if self.state.current_mode is Mode.READING:
                    await self._generate_from_prompt(text)
                    return
                await self._append(Message(role="user", text=text))
                if self.state.current_mode is Mode.SPEAKING and self.state.speaking_prompt:
                    await self._analyze_pronunciation(audio_base64, text)
                await self._dialogue_turn(text)
            finally:
                self.state.phase = Phase.IDLE

    async def on_typing(self, text: str):
        """Keystroke hook feeding the debounced language detector."""
        self.switcher.on_input(text)

    # ── Dialogue ─────────────────────────────────────────────────────

    async def _dialogue_turn(self, text: str):
        try:
            if not self.state.conversation_id:
                raise NoActiveConversation()
            self.state.phase = Phase.AWAITING_AI_REPLY
            await self._status("thinking")
            reply = await self.dialogue.send(self.state.conversation_id, text)
        except NoActiveConversation as exc:
            logger.error("No conversation id available")
            await self._alert(exc.user_message)
            return
        except CollaboratorError as exc:
            logger.error("Error processing message: %s", exc)
            await self._alert("Error processing message. Please try again.")
            return
        finally:
            self.state.phase = Phase.IDLE

        await self._handle_reply(reply)

    async def _handle_reply(self, reply: Message):
        await self._append(reply)
        self.state.last_reply = reply.text

        mode = detect_mode(reply.text)
        if mode is not Mode.NONE:
            await self.enter_mode(mode)

        if reply.text:
            await self._status("speaking")
            await self.playback.play(reply.text)

    # ── Modes & cards ────────────────────────────────────────────────

    async def enter_mode(self, mode: Mode):
        """Switch to a card mode, activate its card and prepare its content."""
        await self._set_mode(mode)
        if mode not in CARD_MODES:
            return
        self.update_active_card(mode)
        if mode is Mode.SPEAKING:
            card = self._card("speaking")
            if card is not None and card.speaking_prompt:
                self.state.speaking_prompt = card.speaking_prompt
        elif mode is Mode.READING:
            await self.generate_reading_passage()
        elif mode is Mode.WRITING:
            self.generate_writing_exercise()

    def update_active_card(self, mode: Mode):
        self.state.cards = activate_card(self.state.cards, mode.value)

    async def select_mode(self, mode: Mode):
        """Explicit mode choice from the UI (flashcards, quiz and qa included)."""
        await self._set_mode(mode)

    def _card(self, card_type: str) -> LearningCard | None:
        return next((c for c in self.state.cards if c.type == card_type), None)

    async def click_card(self, card_type: str):
        card = self._card(card_type)
        if card is None:
            logger.warning("Unknown card type: %s", card_type)
            return
        if card.type == "speaking" and card.speaking_prompt:
            await self._set_mode(Mode.SPEAKING)
            self.update_active_card(Mode.SPEAKING)
            await self._start_challenge(
                SpeakingChallenge(
                    id=card.id,
                    title=card.title,
                    prompt=card.speaking_prompt,
                    difficulty=card.difficulty or "beginner",
                    category="Speaking Practice",
                )
            )
        elif card.type in ("reading", "writing"):
            await self.enter_mode(Mode(card.type))
        else:
            await self.submit_text(f"I want to practice {card.type}. {card.description}")

    # ── Speaking ─────────────────────────────────────────────────────

    async def start_speaking_challenge(self, challenge_id: str) -> SpeakingChallenge | None:
        challenge = next((c for c in SPEAKING_CHALLENGES if c.id == challenge_id), None)
        if challenge is None:
            logger.warning("Unknown speaking challenge: %s", challenge_id)
            return None
        await self._start_challenge(challenge)
        return challenge

    async def _start_challenge(self, challenge: SpeakingChallenge):
        self.state.current_challenge = challenge
        self.state.speaking_prompt = challenge.prompt
        await self._set_mode(Mode.SPEAKING)
        self.state.pronunciation_feedback = None
        self.state.transcript = ""
        await self._say(
            "Great! Let's work on your speaking skills. Here's your challenge:\n\n"
            f"**{challenge.title}**\n\n{challenge.prompt}\n\n"
            "Take your time and speak clearly. I'll provide feedback on your pronunciation and fluency."
        )

    async def prepare_speaking_prompt(self, prompt: str):
        prompt = (prompt or "").strip()
        if not prompt:
            return
        self.state.speaking_prompt = prompt
        await self._set_mode(Mode.SPEAKING)
        self.state.pronunciation_feedback = None
        self.state.transcript = ""
        await self._say(
            f"🎤 **Speaking Practice Ready!**\n\nI've prepared a speaking exercise for you:\n\n**\"{prompt}\"**\n\n"
            "**Instructions:**\n"
            "1. Click \"Start Recording\" when you're ready\n"
            "2. Speak clearly and naturally\n"
            "3. Click \"Stop Recording\" when finished\n"
            "4. I'll provide pronunciation feedback\n\n"
            "Take your time and speak with confidence!"
        )

    async def _analyze_pronunciation(self, audio_base64: str, text: str):
        self.state.phase = Phase.ANALYZING
        await self._status("analyzing")
        try:
            feedback = await self.analysis.analyze_pronunciation(audio_base64, text, self.state.speaking_prompt)
        except AnalysisFailed as exc:
            logger.warning("Pronunciation analysis failed, using fallback: %s", exc)
            self.state.pronunciation_feedback = fallback_pronunciation()
            return

        self.state.pronunciation_feedback = feedback
        stats, unlocked = record_pronunciation(
            self.state.speaking_stats, self.state.achievements, feedback.overall_score
        )
        self.state.speaking_stats = stats
        for achievement in unlocked:
            self.state.achievements.append(achievement)
            logger.info("Achievement unlocked: %s", achievement)
            await self._say(achievement_message(achievement))

    # ── Reading ──────────────────────────────────────────────────────

    async def generate_reading_passage(self, topic: str | None = None):
        await self._status("generating_passage")
        try:
            passage = await self.analysis.generate_reading_passage(topic or "general interest")
        except AnalysisFailed as exc:
            logger.warning("Reading passage generation failed, using fallback: %s", exc)
            passage = fallback_passage()
        self.state.reading_passage = passage
        self.state.reading_answers = {}
        self.state.reading_score = None
        return passage

    def set_reading_answer(self, question_index: int, option_index: int):
        self.state.reading_answers[question_index] = option_index

    def submit_reading(self, answers: dict[int, int] | None = None) -> int | None:
        passage = self.state.reading_passage
        if passage is None:
            return None
        if answers is not None:
            self.state.reading_answers = dict(answers)
        score = score_reading(passage.questions, self.state.reading_answers)
        self.state.reading_score = score
        self.state.cards = add_progress(self.state.cards, "reading", CARD_PROGRESS_STEP)
        logger.info("Reading comprehension score: %d%%", score)
        return score

    # ── Writing ──────────────────────────────────────────────────────

    def generate_writing_exercise(self, exercise_type: str | None = None):
        exercise = build_writing_exercise(exercise_type)
        self.state.writing_exercise = exercise
        self.state.writing_feedback = None
        return exercise

    async def analyze_writing(self, text: str):
        text = (text or "").strip()
        if not text:
            return None
        await self._status("analyzing")
        try:
            feedback = await self.analysis.analyze_writing(text)
        except AnalysisFailed as exc:
            logger.warning("Writing analysis failed, using fallback: %s", exc)
            feedback = fallback_writing()
        else:
            self.state.cards = add_progress(self.state.cards, "writing", WRITING_PROGRESS_STEP)
        self.state.writing_feedback = feedback
        return feedback

    # ── Content, quiz & Q&A ──────────────────────────────────────────

    async def upload_document(self, filename: str, data: bytes):
        if not is_supported_document(filename):
            logger.warning("Rejected upload with unsupported extension: %s", filename)
            await self._alert(UnsupportedFileType.user_message)
            return None
        await self._status("analyzing")
        try:
            analysis = await self.analysis.analyze_content(document=(filename, data))
        except AnalysisFailed as exc:
            logger.error("Error analyzing file %s: %s", filename, exc)
            await self._alert("Error analyzing file. Please try again.")
            return None
        await self._apply_content(analysis)
        await self._say(_content_options(f"📄 **File Uploaded Successfully!**\n\nI've analyzed your file: **{filename}**", analysis))
        return analysis

    async def generate_reading_from_prompt(self, prompt: str):
        async with self._turn_lock:
            return await self._generate_from_prompt(prompt)

    async def _generate_from_prompt(self, prompt: str):
        prompt = (prompt or "").strip()
        if not prompt:
            return None
        await self._status("analyzing")
        try:
            analysis = await self.analysis.analyze_content(prompt=prompt)
        except AnalysisFailed as exc:
            logger.error("Error generating reading content: %s", exc)
            await self._alert("Error generating reading content. Please try again.")
            return None
        await self._apply_content(analysis)
        await self._say(_content_options(f"📝 **Content Generated!**\n\nI've analyzed your prompt: **\"{prompt}\"**", analysis))
        return analysis

    async def _apply_content(self, analysis: ContentAnalysis):
        self.state.content_analysis = analysis
        await self._set_mode(Mode.READING)
        if analysis.flashcards:
            self.state.flashcards = list(analysis.flashcards)
            self.state.flashcard_index = 0
            self.state.show_flashcard_answer = False
        if analysis.quiz:
            self._reset_quiz(list(analysis.quiz))

    def _reset_quiz(self, questions):
        self.state.quiz = questions
        self.state.quiz_answers = {}
        self.state.quiz_score = None
        self.state.quiz_results = []

    async def generate_quiz(self):
        if self.state.content_analysis is None:
            return None
        await self._status("generating_quiz")
        try:
            questions = await self.analysis.generate_quiz(self.state.content_analysis.analysis)
        except AnalysisFailed as exc:
            logger.error("Error generating quiz: %s", exc)
            await self._alert("Error generating quiz. Please try again.")
            return None
        self._reset_quiz(questions)
        await self._say(
            f"🧠 **New Quiz Generated!**\n\nI've created a fresh quiz with {len(questions)} questions "
            "to test your understanding. Take your time and answer each question carefully!\n\n**Good luck!** 🍀"
        )
        return questions

    def set_quiz_answer(self, question_index: int, answer: str):
        self.state.quiz_answers[question_index] = answer

    async def submit_quiz(self, answers: dict[int, str] | None = None):
        if not self.state.quiz:
            return None
        if answers is not None:
            self.state.quiz_answers = dict(answers)
        outcome = score_quiz(self.state.quiz, self.state.quiz_answers)
        self.state.quiz_score = outcome.score
        self.state.quiz_results = outcome.results
        await self._say(
            f"🎯 **Quiz Results!**\n\n**Your Score: {outcome.score}%** ({outcome.correct}/{outcome.total} correct)\n\n"
            f"{quiz_feedback(outcome.score)}\n\n"
            "Would you like to review the flashcards or ask me any questions about the content?"
        )
        return outcome

    async def ask_question(self, question: str):
        question = (question or "").strip()
        if self.state.content_analysis is None or not question:
            return None
        async with self._turn_lock:
            await self._status("thinking")
            try:
                answer = await self.analysis.answer_question(question, self.state.content_analysis.analysis)
            except AnalysisFailed as exc:
                logger.error("Error answering question: %s", exc)
                await self._alert("Error answering question. Please try again.")
                return None
            await self._append(Message(role="user", text=question))
            await self._say(f"❓ **Your Question:** {question}\n\n{answer}")
            return answer

    # ── Flashcards ───────────────────────────────────────────────────

    def next_flashcard(self) -> int:
        if self.state.flashcards:
            self.state.flashcard_index = (self.state.flashcard_index + 1) % len(self.state.flashcards)
        self.state.show_flashcard_answer = False
        return self.state.flashcard_index

    def flip_flashcard(self) -> bool:
        self.state.show_flashcard_answer = not self.state.show_flashcard_answer
        return self.state.show_flashcard_answer

    # ── Playback & language ──────────────────────────────────────────

    def pause_audio(self):
        self.playback.pause()

    async def toggle_audio(self) -> bool:
        return await self.playback.toggle(self.state.last_reply or None)

    async def translate(self, text: str, target: str, source: str | None = None):
        return await self.switcher.translate(text, target, source)

    def set_auto_switch(self, enabled: bool):
        self.switcher.auto_switch_ui = enabled
