"""Service layer orchestrations for medirag."""

from .container import PipelineConfig, PipelineServices, build_services
from .llm import ChatAnswerModel, ChatRankingModel, LexicalOverlapRanker, TemplateAnswerModel
from .query import QueryPipeline
from .synthesis import AnswerContext, AnswerModel, AnswerSynthesizer, ModelAnswer, PromptBuilder, SynthesisConfig

__all__ = [
    "AnswerContext",
    "AnswerModel",
    "AnswerSynthesizer",
    "ChatAnswerModel",
    "ChatRankingModel",
    "LexicalOverlapRanker",
    "ModelAnswer",
    "PipelineConfig",
    "PipelineServices",
    "PromptBuilder",
    "QueryPipeline",
    "SynthesisConfig",
    "TemplateAnswerModel",
    "build_services",
]
