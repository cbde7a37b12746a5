from __future__ import annotations

import pytest

from medirag.errors import SynthesisError
from medirag.services import AnswerSynthesizer, PromptBuilder, SynthesisConfig
from medirag.services.synthesis import NO_INFORMATION_ANSWER, AnswerContext, build_excerpt, compute_confidence

from helpers import ScriptedAnswerModel, reranked_result


@pytest.mark.asyncio
async def test_no_results_returns_fixed_answer_without_calling_model():
    model = ScriptedAnswerModel()

    answer = await AnswerSynthesizer(model).synthesize("anything", [])

    assert answer.answer == NO_INFORMATION_ANSWER
    assert answer.citations == ()
    assert answer.confidence == 0.0
    assert model.calls == []


@pytest.mark.asyncio
async def test_citations_follow_cited_indices_within_range():
    results = [
        reranked_result("a", 1.0, metadata={"filename": "msp-guide.pdf", "title": "MSP Guide"}, page_number=4),
        reranked_result("b", 0.5),
    ]
    model = ScriptedAnswerModel(answer="See [2] and [1], not [7].", cited_indices=(2, 0, 7, 1, 2))

    answer = await AnswerSynthesizer(model).synthesize("q", results)

    assert [citation.chunk_id for citation in answer.citations] == ["b", "a"]
    first = answer.citations[1]
    assert first.filename == "msp-guide.pdf"
    assert first.title == "MSP Guide"
    assert first.page_number == 4
    assert first.chunk_index == 3
    assert answer.citations[0].filename == "Unknown"
    assert answer.citations[0].title is None


@pytest.mark.asyncio
async def test_contexts_are_numbered_from_one():
    results = [reranked_result("a", 1.0, metadata={"filename": "a.pdf"}), reranked_result("b", 0.5)]
    model = ScriptedAnswerModel()

    await AnswerSynthesizer(model).synthesize("q", results)

    contexts = model.calls[0]
    assert [context.index for context in contexts] == [1, 2]
    assert contexts[0].filename == "a.pdf"
    assert contexts[1].filename == "Unknown document"


@pytest.mark.asyncio
async def test_confidence_blends_rank_and_citation_coverage():
    results = [reranked_result("a", 1.0), reranked_result("b", 0.5)]
    model = ScriptedAnswerModel(cited_indices=(1,))

    answer = await AnswerSynthesizer(model).synthesize("q", results)

    # avg rerank 0.75, cited fraction 0.5
    assert answer.confidence == pytest.approx((0.75 * 0.6 + 0.5 * 0.4) * 100)


@pytest.mark.asyncio
async def test_confidence_weights_are_configurable():
    results = [reranked_result("a", 1.0)]
    model = ScriptedAnswerModel(cited_indices=())

    answer = await AnswerSynthesizer(model, SynthesisConfig(rank_weight=0.5, citation_weight=0.5)).synthesize("q", results)

    assert answer.confidence == pytest.approx(50.0)


@pytest.mark.parametrize(
    "scores,cited",
    [([1.0, 1.0], 2), ([0.0], 0), ([1.5, 2.0], 2), ([-0.5], 0)],
)
def test_confidence_is_clamped(scores, cited):
    results = [reranked_result(f"r{index}", score) for index, score in enumerate(scores)]

    assert 0.0 <= compute_confidence(results, cited) <= 100.0


@pytest.mark.asyncio
async def test_model_errors_become_synthesis_errors():
    model = ScriptedAnswerModel(error=ConnectionError("refused"))

    with pytest.raises(SynthesisError):
        await AnswerSynthesizer(model).synthesize("q", [reranked_result("a", 1.0)])


def test_excerpt_is_bounded_prefix():
    assert build_excerpt("short", 200) == "short"
    long_text = "x" * 250
    assert build_excerpt(long_text, 200) == "x" * 200 + "..."


def test_prompt_builder_formats_source_lines():
    contexts = [
        AnswerContext(index=1, content="QMB pays premiums.", filename="msp.pdf", page_number=2),
        AnswerContext(index=2, content="PACE covers drugs.", filename="pace.pdf"),
    ]

    text = PromptBuilder().build_context(contexts)

    assert text == (
        "[1] Source: msp.pdf (Page 2)\nQMB pays premiums.\n\n---\n\n[2] Source: pace.pdf\nPACE covers drugs."
    )
