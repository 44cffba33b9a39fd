"""
Tests for tutor_room.services.analysis_service module.

Verifies:
- Pronunciation scores normalize to 0-10 from every backend shape
- Quiz answers normalize to option text
- Comprehension questions without an answer index are dropped
- Content analysis goes out as multipart with the document or the prompt
- Gateway failures raise AnalysisFailed
"""

import pytest

from conftest import FakeApiClient
from tutor_room.errors import AnalysisFailed, CollaboratorError
from tutor_room.services.analysis_service import (
    AnalysisGateway,
    build_writing_exercise,
    fallback_passage,
    fallback_pronunciation,
    is_supported_document,
    normalize_passage,
    normalize_pronunciation,
    normalize_quiz_question,
    normalize_writing,
)


class TestNormalizePronunciation:
    """Tests for the pronunciation normalizer."""

    def test_integer_scores(self):
        feedback = normalize_pronunciation({"overall": 8, "fluency": 7, "clarity": 9, "pace": 6})
        assert feedback.overall_score == 8
        assert feedback.pace_score == 6

    def test_fraction_scores(self):
        """Floats up to 1.0 are fractions of the scale."""
        feedback = normalize_pronunciation({"overallScore": 0.85, "wordScores": [{"word": "hi", "score": 0.5}]})
        assert feedback.overall_score == 8.5
        assert feedback.word_scores[0].score == 5.0

    def test_percentage_scores(self):
        assert normalize_pronunciation({"pronunciationScore": 92}).overall_score == 9.2

    def test_nested_feedback(self):
        """Scores nested under `feedback` are found."""
        feedback = normalize_pronunciation({"feedback": {"overall": 6, "strengths": ["Clear vowels"]}})
        assert feedback.overall_score == 6
        assert feedback.strengths == ["Clear vowels"]

    def test_missing_overall(self):
        with pytest.raises(AnalysisFailed):
            normalize_pronunciation({"fluency": 7})

    def test_fallback_flagged(self):
        feedback = fallback_pronunciation()
        assert feedback.is_fallback is True
        assert feedback.overall_score == 7


class TestNormalizeOthers:
    """Tests for writing, quiz and passage normalization."""

    def test_writing(self):
        feedback = normalize_writing(
            {"overallScore": 75, "grammarScore": 8, "suggestions": [{"type": "style", "message": "Vary it"}, {}]}
        )
        assert feedback.overall_score == 7.5
        assert len(feedback.suggestions) == 1

    def test_writing_missing_overall(self):
        with pytest.raises(AnalysisFailed):
            normalize_writing({"grammarScore": 8})

    def test_quiz_index_answer(self):
        """An integer answer on a multiple choice item becomes the option text."""
        q = normalize_quiz_question({"question": "Q?", "options": ["a", "b", "c"], "correctAnswer": 1})
        assert q.correct_answer == "b"

    def test_quiz_boolean_answer(self):
        q = normalize_quiz_question({"question": "Q?", "type": "true_false", "correctAnswer": False})
        assert q.correct_answer == "False"

    def test_quiz_without_question(self):
        assert normalize_quiz_question({"options": ["a"]}) is None

    def test_passage_drops_bad_questions(self):
        passage = normalize_passage(
            {
                "title": "T",
                "content": "Body",
                "comprehensionQuestions": [
                    {"question": "ok", "options": ["a", "b"], "correctAnswer": 1},
                    {"question": "bad", "options": ["a"]},
                ],
            }
        )
        assert [q.question for q in passage.questions] == ["ok"]

    def test_passage_defaults(self):
        passage = normalize_passage({})
        assert passage.title == "Reading Passage"
        assert passage.reading_time == 5

    def test_fallback_passage(self):
        passage = fallback_passage()
        assert passage.title == "The Benefits of Learning Languages"
        assert passage.questions[0].correct_answer == 2

    def test_writing_exercise(self):
        assert build_writing_exercise("email").type == "email"
        assert build_writing_exercise().type == "essay"


class TestDocuments:
    """Tests for the upload extension filter."""

    @pytest.mark.parametrize("name", ["notes.pdf", "a.DOCX", "x.txt", "deck.pptx"])
    def test_supported(self, name):
        assert is_supported_document(name) is True

    @pytest.mark.parametrize("name", ["image.png", "archive.zip", "noext", ""])
    def test_unsupported(self, name):
        assert is_supported_document(name) is False


class TestGateway:
    """Tests for AnalysisGateway requests."""

    @pytest.mark.asyncio
    async def test_pronunciation_request(self):
        client = FakeApiClient({AnalysisGateway.PRONUNCIATION_PATH: {"success": True, "data": {"overall": 8}}})
        feedback = await AnalysisGateway(client).analyze_pronunciation("QUJD", "hello", "hello world")
        assert feedback.overall_score == 8
        assert client.calls[0][1] == {"audioData": "QUJD", "text": "hello", "expectedText": "hello world"}

    @pytest.mark.asyncio
    async def test_failure_raises(self):
        client = FakeApiClient({AnalysisGateway.WRITING_PATH: CollaboratorError("down")})
        with pytest.raises(AnalysisFailed):
            await AnalysisGateway(client).analyze_writing("text")

    @pytest.mark.asyncio
    async def test_content_document_multipart(self):
        """Documents go out as a `file` part with the user id field."""
        client = FakeApiClient({AnalysisGateway.CONTENT_PATH: {"success": True, "data": {"analysis": "Summary"}}})
        analysis = await AnalysisGateway(client).analyze_content(document=("notes.txt", b"hello"))
        path, fields, files = client.form_calls[0]
        assert fields == {"userId": "default"}
        assert files == {"file": ("notes.txt", b"hello")}
        assert analysis.analysis == "Summary"

    @pytest.mark.asyncio
    async def test_content_prompt(self):
        client = FakeApiClient({AnalysisGateway.CONTENT_PATH: {"success": True, "data": {"analysis": "A"}}})
        await AnalysisGateway(client).analyze_content(prompt="Teach me about tea")
        path, fields, files = client.form_calls[0]
        assert fields == {"userId": "default", "content": "Teach me about tea"}
        assert files is None

    @pytest.mark.asyncio
    async def test_content_nothing_to_analyze(self):
        client = FakeApiClient()
        with pytest.raises(AnalysisFailed):
            await AnalysisGateway(client).analyze_content(prompt="  ")
        assert client.form_calls == []

    @pytest.mark.asyncio
    async def test_empty_quiz_raises(self):
        client = FakeApiClient({AnalysisGateway.QUIZ_PATH: {"success": True, "data": {"questions": []}}})
        with pytest.raises(AnalysisFailed):
            await AnalysisGateway(client).generate_quiz("analysis")

    @pytest.mark.asyncio
    async def test_answer_question(self):
        client = FakeApiClient({AnalysisGateway.ANSWER_PATH: {"success": True, "data": {"answer": "Because."}}})
        assert await AnalysisGateway(client).answer_question("Why?", "analysis") == "Because."
