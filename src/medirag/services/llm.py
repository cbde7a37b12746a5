"""Chat-model backed ranking and answer models, plus offline fallbacks."""

from __future__ import annotations

import json
import re
from typing import Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.output_parsers import StrOutputParser
from langchain_openai import ChatOpenAI

from medirag.config import Settings
from medirag.errors import RerankError, SynthesisError
from medirag.metrics.observability import get_logger
from medirag.retrieval.lexical import tokenize
from medirag.retrieval.reranker import RankCandidate, RankedId
from medirag.services.synthesis import AnswerContext, ModelAnswer, PromptBuilder

RANKING_PATTERN = re.compile(r"\[[\d,\s]+\]")
CITATION_PATTERN = re.compile(r"\[(\d+)\]")
PASSAGE_PREVIEW_CHARS = 500

ANSWER_SYSTEM_PROMPT = """You are a helpful Medicaid and Medicare assistant for seniors and their families in Pennsylvania. Answer questions based ONLY on the provided context documents.

Rules:
1. Only use information from the provided documents
2. Cite your sources using [N] notation where N is the document number
3. If the information is not in the documents, say "I cannot find this information in the provided documents."
4. Use clear, simple language and be concise but thorough
5. Never provide specific legal or financial advice
6. Mention that eligibility should be confirmed with the local County Assistance Office"""


def parse_ranking(reply: str) -> list[int]:
    """Extract the 1-based passage numbers from a ranking reply."""

    match = RANKING_PATTERN.search(reply)
    if match is None:
        raise RerankError(f"Could not parse ranking reply: {reply[:100]!r}")
    try:
        return [int(value) for value in json.loads(match.group(0))]
    except (ValueError, TypeError) as exc:
        raise RerankError("Ranking reply is not a JSON array of integers", cause=exc) from exc


def extract_cited_indices(answer: str) -> tuple[int, ...]:
    """Distinct ``[N]`` markers in order of first appearance."""

    seen: dict[int, None] = {}
    for match in CITATION_PATTERN.finditer(answer):
        seen.setdefault(int(match.group(1)), None)
    return tuple(seen)


class ChatRankingModel:
    """Listwise ranking through a single chat completion."""

    def __init__(self, llm: BaseChatModel) -> None:
        self._chain = llm | StrOutputParser()
        self._logger = get_logger("llm.rerank")

    async def rerank(self, query: str, documents: Sequence[RankCandidate], top_n: int) -> list[RankedId]:
        doc_list = "\n\n".join(
            f"[{index}] {doc.content[:PASSAGE_PREVIEW_CHARS]}..." for index, doc in enumerate(documents, start=1)
        )
        prompt = (
            "You are a relevance ranker. Given a query and a list of documents, rank them by relevance to the query.\n\n"
            f"Query: {query}\n\n"
            f"Documents:\n{doc_list}\n\n"
            "Rank the documents from most to least relevant. Return ONLY a JSON array of document numbers "
            "in order of relevance, like: [3, 1, 5, 2, 4]\n\n"
            "Ranking:"
        )
        try:
            reply = await self._chain.ainvoke([HumanMessage(content=prompt)])
        except Exception as exc:
            raise RerankError("Failed to rerank documents", cause=exc) from exc

        ranking = parse_ranking(reply)
        results: list[RankedId] = []
        for position, number in enumerate(ranking[:top_n]):
            if 1 <= number <= len(documents):
                results.append(RankedId(id=documents[number - 1].id, score=1 - position / len(ranking)))
        self._logger.debug("rerank.model_reply", returned=len(results), requested=top_n)
        return results


class ChatAnswerModel:
    """Cited answer generation through a chat completion."""

    def __init__(self, llm: BaseChatModel, prompt_builder: PromptBuilder | None = None) -> None:
        self._chain = llm | StrOutputParser()
        self._prompt_builder = prompt_builder or PromptBuilder()

    async def synthesize(self, query: str, contexts: Sequence[AnswerContext]) -> ModelAnswer:
        user_prompt = (
            f"Context Documents:\n{self._prompt_builder.build_context(contexts)}\n\n---\n\n"
            f"Question: {query}\n\n"
            "Please answer the question based only on the context above, citing sources with [N] notation."
        )
        messages = [SystemMessage(content=ANSWER_SYSTEM_PROMPT), HumanMessage(content=user_prompt)]
        try:
            answer = await self._chain.ainvoke(messages)
        except Exception as exc:
            raise SynthesisError("Failed to generate answer", cause=exc) from exc
        return ModelAnswer(answer=answer, cited_indices=extract_cited_indices(answer))


def build_chat_model(settings: Settings, *, temperature: float, max_tokens: int, timeout: float) -> ChatOpenAI:
    return ChatOpenAI(
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        api_key=settings.llm_api_key,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
        max_retries=1,
    )


class LexicalOverlapRanker:
    """Offline ranking model ordering passages by query token overlap."""

    async def rerank(self, query: str, documents: Sequence[RankCandidate], top_n: int) -> list[RankedId]:
        query_tokens = set(tokenize(query))
        scored = [(doc, _token_overlap_score(query_tokens, doc.content)) for doc in documents]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [RankedId(id=doc.id, score=score) for doc, score in scored[:top_n]]


class TemplateAnswerModel:
    """Deterministic answer model used for tests and offline environments."""

    async def synthesize(self, query: str, contexts: Sequence[AnswerContext]) -> ModelAnswer:
        if not contexts:
            return ModelAnswer(answer="I cannot find this information in the provided documents.", cited_indices=())
        first = contexts[0]
        sources = "\n".join(f"[{context.index}] {context.filename}" for context in contexts)
        answer = (
            f"Based on the provided documents, here is the best match for your question '{query}':\n\n"
            f"{first.content} [{first.index}]\n\n"
            f"Sources:\n{sources}"
        )
        return ModelAnswer(answer=answer, cited_indices=extract_cited_indices(answer))


def _token_overlap_score(query_tokens: set[str], text: str) -> float:
    tokens = set(tokenize(text))
    if not tokens:
        return 0.0
    overlap = len(query_tokens.intersection(tokens))
    return overlap / max(len(query_tokens), 1)
