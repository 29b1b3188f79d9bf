"""Analyzers for scoring repository snapshots."""

from codesentinel.analyzers.llm import AnthropicAdapter, LLMAdapter, OllamaAdapter
from codesentinel.analyzers.pipeline import AnalysisPipeline
from codesentinel.analyzers.scorer import Scorer

__all__ = ["AnalysisPipeline", "AnthropicAdapter", "LLMAdapter", "OllamaAdapter", "Scorer"]
