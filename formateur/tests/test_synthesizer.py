"""Tests for the confidence-gated Answer Synthesizer."""

import pytest
from unittest.mock import AsyncMock, Mock

SURFACE_RULE = "La surface minimum est de 9 m² pour une personne seule, 16 m² pour un couple et 25 m² pour 3 personnes."


def _passages():
    from formateur.retriever.searcher import RetrievedPassage
    return [
        RetrievedPassage(SURFACE_RULE, 0.91, "Module 2", "Décence du logement"),
        RetrievedPassage("Le logement doit être décent.", 0.74, "Module 2", "Décence"),
    ]


def _verdict(coverage="complete", confidence="high", quotes=(SURFACE_RULE,), ambiguities=()):
    from formateur.answering.verdict import Confidence, Coverage, ReasoningVerdict
    return ReasoningVerdict(
        keywords=("surface minimum", "3 personnes"),
        relevant_quotes=tuple(quotes),
        coverage=Coverage(coverage),
        ambiguities=tuple(ambiguities),
        confidence=Confidence(confidence),
    )


@pytest.fixture
def llm():
    client = Mock()
    client.complete = AsyncMock(return_value="Citation : « 25 m² pour 3 personnes ». Explication : ...")
    return client


@pytest.fixture
def explainer():
    builder = Mock()
    builder.explain = AsyncMock(return_value="**1. Termes clés identifiés :**\nsurface")
    return builder


@pytest.fixture
def synthesizer(llm, explainer):
    from formateur.answering.synthesizer import AnswerSynthesizer
    return AnswerSynthesizer(llm, explainer, organization="CAF")


class TestRefuse:
    @pytest.mark.asyncio
    async def test_refusal_template_without_model_call(self, synthesizer, llm, explainer):
        from formateur.answering.verdict import Confidence
        verdict = _verdict(coverage="none", confidence="none", quotes=())

        result = await synthesizer.synthesize("q", _passages(), verdict)

        assert result.confidence == Confidence.NONE
        assert result.sources == ()
        assert "n'est pas disponible dans la documentation officielle" in result.text
        assert "conseiller CAF" in result.text
        assert result.reasoning is verdict
        assert result.reasoning_visible is False
        llm.complete.assert_not_awaited()
        explainer.explain.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refusal_in_english(self, synthesizer):
        verdict = _verdict(coverage="none", confidence="none", quotes=())
        result = await synthesizer.synthesize("q", _passages(), verdict, language="en")
        assert "not available in the official documentation" in result.text


class TestHedge:
    @pytest.mark.asyncio
    async def test_visible_trace_and_partial_quote(self, synthesizer, llm, explainer):
        from formateur.answering.verdict import Confidence
        verdict = _verdict(coverage="partial", confidence="low", ambiguities=("colocation",))

        result = await synthesizer.synthesize("q", _passages(), verdict)

        assert result.reasoning_visible is True
        assert result.confidence == Confidence.LOW
        assert "**1. Termes clés identifiés :**" in result.text
        assert "information INCOMPLÈTE" in result.text
        assert "Information trouvée dans la documentation" in result.text
        assert "conseiller CAF" in result.text
        assert len(result.sources) == 2
        explainer.explain.assert_awaited_once()
        llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_partial_quote_truncated(self, llm, explainer):
        from formateur.answering.synthesizer import AnswerSynthesizer
        synthesizer = AnswerSynthesizer(llm, explainer, partial_quote_chars=15)

        result = await synthesizer.synthesize("q", _passages(), _verdict(coverage="partial", confidence="medium"))

        assert '"La surface mini..."' in result.text

    @pytest.mark.asyncio
    async def test_no_quote_no_partial_info(self, synthesizer):
        result = await synthesizer.synthesize(
            "q", _passages(), _verdict(coverage="partial", confidence="low", quotes=())
        )
        assert "Information trouvée" not in result.text

    @pytest.mark.asyncio
    async def test_explainer_failure_degrades_to_technical_difficulty(self, synthesizer, explainer):
        from formateur.answering.verdict import Confidence
        explainer.explain.side_effect = RuntimeError("boom")

        result = await synthesizer.synthesize("q", _passages(), _verdict(coverage="partial", confidence="low"))

        assert result.confidence == Confidence.NONE
        assert result.sources == ()
        assert "difficulté technique" in result.text


class TestAnswer:
    @pytest.mark.asyncio
    async def test_final_call_parameters(self, synthesizer, llm):
        from formateur.answering.verdict import Confidence

        result = await synthesizer.synthesize("Quelle surface pour 3 personnes ?", _passages(), _verdict())

        kwargs = llm.complete.await_args.kwargs
        assert kwargs["temperature"] == 0.5
        assert kwargs["max_tokens"] == 600
        assert result.confidence == Confidence.HIGH
        assert result.reasoning_visible is False
        assert result.reasoning is not None
        assert [s.module for s in result.sources] == ["Module 2", "Module 2"]
        assert "25 m²" in result.text

    @pytest.mark.asyncio
    async def test_history_injected_before_question(self, synthesizer, llm):
        history = [
            {"role": "user", "content": "Bonjour"},
            {"role": "assistant", "content": "Bonjour, comment puis-je vous aider ?"},
            {"role": "system", "content": "ignored role"},
        ]

        await synthesizer.synthesize("Et pour 3 personnes ?", _passages(), _verdict(), history)

        messages = llm.complete.await_args.args[0]
        assert messages[0]["role"] == "system"
        assert [m["role"] for m in messages[1:4]] == ["user", "assistant", "assistant"]
        assert messages[1]["content"] == "Bonjour"
        assert messages[-1]["role"] == "user"
        assert "Et pour 3 personnes ?" in messages[-1]["content"]

    @pytest.mark.asyncio
    async def test_caveat_only_with_ambiguities(self, synthesizer, llm):
        from formateur.answering.synthesizer import CAVEAT_INSTRUCTION, COMPLETE_INSTRUCTION

        await synthesizer.synthesize("q", _passages(), _verdict())
        prompt = llm.complete.await_args.args[0][-1]["content"]
        assert COMPLETE_INSTRUCTION in prompt
        assert CAVEAT_INSTRUCTION not in prompt

        await synthesizer.synthesize("q", _passages(), _verdict(confidence="medium", ambiguities=("meublé",)))
        prompt = llm.complete.await_args.args[0][-1]["content"]
        assert CAVEAT_INSTRUCTION in prompt
        assert "meublé" in prompt

    @pytest.mark.asyncio
    async def test_model_failure_degrades_to_technical_difficulty(self, synthesizer, llm):
        from formateur.answering.verdict import Confidence
        llm.complete.side_effect = RuntimeError("connection reset")

        result = await synthesizer.synthesize("q", _passages(), _verdict())

        assert result.confidence == Confidence.NONE
        assert result.sources == ()
        assert "difficulté technique" in result.text

    @pytest.mark.asyncio
    async def test_empty_model_answer_degrades(self, synthesizer, llm):
        from formateur.answering.verdict import Confidence
        llm.complete.return_value = "   "

        result = await synthesizer.synthesize("q", _passages(), _verdict())

        assert result.confidence == Confidence.NONE
        assert result.sources == ()
