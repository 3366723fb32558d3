from __future__ import annotations

from .agent import DEPTHS, OracleError, OracleResponse, ask_oracle, build_oracle_generator
from .citations import Citation, extract_sources
from .index import IndexLimits, KnowledgeIndex, build_index, format_index_for_prompt

__all__ = [
    "DEPTHS",
    "Citation",
    "IndexLimits",
    "KnowledgeIndex",
    "OracleError",
    "OracleResponse",
    "ask_oracle",
    "build_index",
    "build_oracle_generator",
    "extract_sources",
    "format_index_for_prompt",
]
