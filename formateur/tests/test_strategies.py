"""Tests for the two-phase and single-call answer strategies."""

import pytest
from unittest.mock import AsyncMock, Mock

FAMILY_RULE = "La location entre ascendants et descendants est interdite."


def _passages():
    from formateur.retriever.searcher import RetrievedPassage
    return [RetrievedPassage(FAMILY_RULE, 0.88, "Module 3", "Bailleur")]


def _llm(response):
    llm = Mock()
    llm.complete = AsyncMock(return_value=response)
    return llm


class TestTwoPhaseStrategy:
    @pytest.mark.asyncio
    async def test_reasoning_then_synthesis(self):
        from formateur.answering.strategies import AnswerMode, TwoPhaseStrategy
        from formateur.answering.verdict import FAIL_CLOSED_VERDICT, AnswerResult, Confidence

        reasoning = Mock()
        reasoning.reason = AsyncMock(return_value=FAIL_CLOSED_VERDICT)
        synthesizer = Mock()
        expected = AnswerResult("refus", Confidence.NONE)
        synthesizer.synthesize = AsyncMock(return_value=expected)
        strategy = TwoPhaseStrategy(reasoning, synthesizer)
        history = [{"role": "user", "content": "Bonjour"}]

        result = await strategy.answer("q", _passages(), history, "fr")

        assert strategy.mode == AnswerMode.TWO_PHASE
        assert result is expected
        reasoning.reason.assert_awaited_once_with("q", _passages(), "fr")
        synthesizer.synthesize.assert_awaited_once_with("q", _passages(), FAIL_CLOSED_VERDICT, history, "fr")


class TestSingleCallStrategy:
    @pytest.mark.asyncio
    async def test_no_passages_refuses_without_call(self):
        from formateur.answering.strategies import SingleCallStrategy
        from formateur.answering.verdict import Confidence
        llm = _llm("x")

        result = await SingleCallStrategy(llm).answer("q", [])

        assert result.confidence == Confidence.NONE
        assert result.sources == ()
        assert "n'est pas disponible" in result.text
        llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_sampling_params_sent(self):
        from formateur.answering.strategies import SingleCallStrategy
        llm = _llm("D'après la documentation, « la location entre ascendants et descendants est interdite ».")

        await SingleCallStrategy(llm).answer("Puis-je louer à mon fils ?", _passages())

        assert llm.complete.await_args.kwargs == {}
        messages = llm.complete.await_args.args[0]
        assert all(m["role"] != "system" for m in messages)
        assert "[Context 1 - Module 3]" in messages[-1]["content"]
        assert "D'après la documentation," in messages[-1]["content"]

    @pytest.mark.asyncio
    async def test_citation_answer_is_high_with_sources(self):
        from formateur.answering.strategies import SingleCallStrategy
        from formateur.answering.verdict import Confidence, Coverage
        llm = _llm("D'après la documentation, « la location entre ascendants et descendants est interdite ».")

        result = await SingleCallStrategy(llm).answer("q", _passages())

        assert result.confidence == Confidence.HIGH
        assert result.reasoning.coverage == Coverage.COMPLETE
        assert len(result.sources) == 1
        assert result.reasoning_visible is False

    @pytest.mark.asyncio
    async def test_hedged_answer_is_low(self):
        from formateur.answering.strategies import SingleCallStrategy
        from formateur.answering.verdict import Confidence, Coverage
        llm = _llm("Le terme cousin n'est pas explicitement mentionné dans la documentation.")

        result = await SingleCallStrategy(llm).answer("q", _passages())

        assert result.confidence == Confidence.LOW
        assert result.reasoning.coverage == Coverage.PARTIAL

    @pytest.mark.asyncio
    async def test_refusal_answer_has_no_sources(self):
        from formateur.answering.strategies import SingleCallStrategy
        from formateur.answering.verdict import Confidence
        llm = _llm("Je n'ai pas trouvé d'information sur ce sujet dans la documentation de formation.")

        result = await SingleCallStrategy(llm).answer("q", _passages())

        assert result.confidence == Confidence.NONE
        assert result.sources == ()

    @pytest.mark.asyncio
    async def test_history_before_question(self):
        from formateur.answering.strategies import SingleCallStrategy
        llm = _llm("Réponse.")
        history = [{"role": "user", "content": "Bonjour"}, {"role": "assistant", "content": "Bonjour !"}]

        await SingleCallStrategy(llm).answer("q", _passages(), history)

        messages = llm.complete.await_args.args[0]
        assert [m["role"] for m in messages] == ["user", "assistant", "user"]

    @pytest.mark.asyncio
    async def test_empty_answer_raises(self):
        from formateur.answering.strategies import SingleCallStrategy
        with pytest.raises(ValueError):
            await SingleCallStrategy(_llm("")).answer("q", _passages())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("language,hedge", [
        ("fr", "n'est pas explicitement mentionné"),
        ("en", "is not explicitly mentioned"),
    ])
    async def test_prompt_asks_for_hedge_phrase_in_a_sentence(self, language, hedge):
        from formateur.answering.strategies import SingleCallStrategy
        llm = _llm("Réponse.")

        await SingleCallStrategy(llm).answer("Puis-je louer à mon frère ?", _passages(), None, language)

        prompt = llm.complete.await_args.args[0][-1]["content"]
        assert f"write that it {hedge}" in prompt
        assert f'the term "X" {hedge}' in prompt
        assert f'the term "{hedge}"' not in prompt
