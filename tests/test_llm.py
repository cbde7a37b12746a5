from __future__ import annotations

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from medirag.config import Settings
from medirag.errors import RerankError
from medirag.retrieval import RankCandidate
from medirag.services import ChatAnswerModel, ChatRankingModel, LexicalOverlapRanker, TemplateAnswerModel
from medirag.services.llm import build_chat_model, extract_cited_indices, parse_ranking
from medirag.services.synthesis import AnswerContext


def _documents():
    return [
        RankCandidate(id="a", content="Estate recovery applies after death"),
        RankCandidate(id="b", content="QMB income limits for Medicare Savings Programs"),
        RankCandidate(id="c", content="PACE prescription coverage"),
    ]


def test_parse_ranking_reads_first_json_array():
    assert parse_ranking("Ranking: [3, 1, 2] as requested") == [3, 1, 2]


def test_parse_ranking_rejects_prose():
    with pytest.raises(RerankError):
        parse_ranking("The second document is the most relevant.")


def test_extract_cited_indices_keeps_first_appearance_order():
    assert extract_cited_indices("QMB [2] pays premiums [1]; see [2] again.") == (2, 1)
    assert extract_cited_indices("No markers here") == ()


@pytest.mark.asyncio
async def test_chat_ranking_model_maps_numbers_to_ids():
    model = ChatRankingModel(FakeListChatModel(responses=["[2, 1, 3]"]))

    ranked = await model.rerank("QMB limits", _documents(), 2)

    assert [item.id for item in ranked] == ["b", "a"]
    assert [item.score for item in ranked] == pytest.approx([1.0, 2 / 3])


@pytest.mark.asyncio
async def test_chat_ranking_model_skips_out_of_range_numbers():
    model = ChatRankingModel(FakeListChatModel(responses=["[9, 3]"]))

    ranked = await model.rerank("q", _documents(), 3)

    assert [item.id for item in ranked] == ["c"]


@pytest.mark.asyncio
async def test_chat_ranking_model_raises_on_unparseable_reply():
    model = ChatRankingModel(FakeListChatModel(responses=["I cannot rank these."]))

    with pytest.raises(RerankError):
        await model.rerank("q", _documents(), 2)


@pytest.mark.asyncio
async def test_chat_answer_model_returns_cited_indices():
    reply = "QMB pays Part B premiums [2]. Apply through your CAO [1][2]."
    model = ChatAnswerModel(FakeListChatModel(responses=[reply]))
    contexts = [
        AnswerContext(index=1, content="Apply at the CAO.", filename="cao.pdf"),
        AnswerContext(index=2, content="QMB pays premiums.", filename="msp.pdf", page_number=3),
    ]

    answer = await model.synthesize("What does QMB pay?", contexts)

    assert answer.answer == reply
    assert answer.cited_indices == (2, 1)


@pytest.mark.asyncio
async def test_lexical_overlap_ranker_prefers_matching_passages():
    ranked = await LexicalOverlapRanker().rerank("QMB income limits", _documents(), 2)

    assert ranked[0].id == "b"
    assert ranked[0].score == pytest.approx(1.0)
    assert len(ranked) == 2


@pytest.mark.asyncio
async def test_template_answer_model_cites_every_context():
    contexts = [
        AnswerContext(index=1, content="QMB pays premiums.", filename="msp.pdf"),
        AnswerContext(index=2, content="PACE covers drugs.", filename="pace.pdf"),
    ]

    answer = await TemplateAnswerModel().synthesize("What is QMB?", contexts)

    assert "QMB pays premiums." in answer.answer
    assert answer.cited_indices == (1, 2)


def test_build_chat_model_targets_configured_endpoint():
    settings = Settings(environment="test", llm_base_url="http://localhost:9999/v1", llm_model="local-model")

    llm = build_chat_model(settings, temperature=0.0, max_tokens=256, timeout=5.0)

    assert llm.model_name == "local-model"
    assert llm.openai_api_base == "http://localhost:9999/v1"
    assert llm.max_tokens == 256
