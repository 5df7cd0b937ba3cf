"""Planner - decomposition sources (LLM, mock replay, simulated)."""

from .index import (
    LLMDecomposer,
    MockDecomposer,
    build_messages,
    create_decomposer,
    parse_decompose_response,
)
from .simulated import SimulatedDecomposer
from .source import MIN_LABEL_LENGTH, DecompositionError, DecompositionSource

__all__ = [
    "MIN_LABEL_LENGTH",
    "DecompositionError",
    "DecompositionSource",
    "LLMDecomposer",
    "MockDecomposer",
    "SimulatedDecomposer",
    "build_messages",
    "create_decomposer",
    "parse_decompose_response",
]
