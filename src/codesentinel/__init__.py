"""Repository code-quality analysis with rule-based and LLM-assisted strategies."""

__version__ = "0.1.0"
