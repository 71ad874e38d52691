"""
Image to record matching.

Exposes :func:`match` (semantic matcher first when configured, keyword
overlap otherwise) and :func:`build_mapping` for a whole folder.
"""

from .engine import build_mapping, match
from .keyword_matcher import match_by_keywords
from .semantic_matcher import SemanticMatcher

__all__ = ["build_mapping", "match", "match_by_keywords", "SemanticMatcher"]
