"""Hybrid retrieval, rank fusion, deduplication and reranking."""

from .fusion import content_similarity, deduplicate_results, fuse_results, rrf_contribution
from .hybrid import HybridResults, HybridRetriever, RetrievalConfig
from .lexical import BM25LexicalIndex, LexicalIndex
from .reranker import ListwiseReranker, RankCandidate, RankedId, RankingModel, RerankOutcome

__all__ = [
    "BM25LexicalIndex",
    "HybridResults",
    "HybridRetriever",
    "LexicalIndex",
    "ListwiseReranker",
    "RankCandidate",
    "RankedId",
    "RankingModel",
    "RerankOutcome",
    "RetrievalConfig",
    "content_similarity",
    "deduplicate_results",
    "fuse_results",
    "rrf_contribution",
]
