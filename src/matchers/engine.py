from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple

from models.catalog import ContentRecord, ImageFile, Mapping, MappingEntry, MatchResult
from src.matchers.keyword_matcher import match_by_keywords
from src.matchers.semantic_matcher import SemanticMatcher


def match(
    image: ImageFile,
    records: Sequence[ContentRecord],
    semantic: Optional[SemanticMatcher] = None,
) -> Optional[MatchResult]:
    """Match one image: semantic matcher first when configured, keywords otherwise."""
    if semantic is not None:
        result = semantic.match(image, records)
        if result is not None:
            return result
    return match_by_keywords(image, records)


def build_mapping(
    images: Sequence[ImageFile],
    records: Sequence[ContentRecord],
    semantic: Optional[SemanticMatcher] = None,
    log: Optional[Callable[[str, str], None]] = None,
) -> Tuple[Mapping, List[MatchResult]]:
    """Match every image and build the reviewable mapping (unmatched images included)."""
    entries: List[MappingEntry] = []
    matches: List[MatchResult] = []
    for image in images:
        result = match(image, records, semantic)
        entries.append(MappingEntry.from_match(image, result))
        if result is not None:
            matches.append(result)
            if log:
                log(
                    f"Matched: {image.filename} -> {result.record_name} "
                    f"({result.confidence * 100:.0f}% confidence, {result.method})",
                    "INFO",
                )
        elif log:
            log(f"No match found for: {image.filename}", "WARNING")
    return Mapping(images=entries), matches
