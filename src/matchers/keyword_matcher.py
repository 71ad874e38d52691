from __future__ import annotations

import os
import re
from typing import Iterable, List, Optional, Sequence

from models.catalog import ContentRecord, ImageFile, MatchResult

RECORD_COVERAGE_THRESHOLD = 0.3
IMAGE_COVERAGE_THRESHOLD = 0.4
# Image tokens this short ("a", "v2", "xl") carry no product meaning.
MIN_IMAGE_TOKEN_LENGTH = 3
PREFIX_LENGTH = 3

_SEPARATORS = re.compile(r"[^a-z0-9]+")


def tokenize(text: str) -> List[str]:
    """Lowercase ``text`` and split it on non-alphanumerics, dropping duplicates."""
    seen = set()
    tokens: List[str] = []
    for token in _SEPARATORS.split((text or "").lower()):
        if token and token not in seen:
            seen.add(token)
            tokens.append(token)
    return tokens


def filename_keywords(filename: str) -> List[str]:
    stem, _ = os.path.splitext(os.path.basename(filename))
    return tokenize(stem)


def keywords_related(a: str, b: str) -> bool:
    """
    Relaxed keyword equality.

    Two keywords are related when they are equal, when one contains the other
    (both at least three characters, so "chair" ~ "chairs"), or when both are
    longer than three characters and share their first three letters
    ("walnut" ~ "walnuts", "sectional" ~ "secional").
    """
    if a == b:
        return True
    if len(a) >= PREFIX_LENGTH and len(b) >= PREFIX_LENGTH and (a in b or b in a):
        return True
    return len(a) > PREFIX_LENGTH and len(b) > PREFIX_LENGTH and a[:PREFIX_LENGTH] == b[:PREFIX_LENGTH]


def _covered(keywords: Sequence[str], others: Iterable[str]) -> int:
    others = list(others)
    return sum(1 for k in keywords if any(keywords_related(k, o) for o in others))


def record_coverage(image_keywords: Sequence[str], record_keywords: Sequence[str]) -> float:
    """Share of the record's keywords found in the image filename."""
    if not record_keywords:
        return 0.0
    return _covered(record_keywords, image_keywords) / len(record_keywords)


def image_coverage(image_keywords: Sequence[str], record_keywords: Sequence[str]) -> float:
    """Share of the image's meaningful keywords found in the record name."""
    significant = [k for k in image_keywords if len(k) >= MIN_IMAGE_TOKEN_LENGTH]
    if not significant or not record_keywords:
        return 0.0
    return _covered(significant, record_keywords) / len(significant)


def match_by_keywords(image: ImageFile, records: Sequence[ContentRecord]) -> Optional[MatchResult]:
    """
    Return a keyword match for ``image`` or ``None``.

    Records are scanned in the given order and the first one that clears
    either coverage threshold is returned; there is no ranking across
    records, so the order of ``records`` decides ties.  Both thresholds are
    inclusive.
    """
    image_keywords = filename_keywords(image.filename)
    if not image_keywords:
        return None

    for record in records:
        record_keywords = tokenize(record.display_name)
        if not record_keywords:
            continue

        confidence = record_coverage(image_keywords, record_keywords)
        if confidence <= 0 or confidence < RECORD_COVERAGE_THRESHOLD:
            confidence = image_coverage(image_keywords, record_keywords)
            if confidence <= 0 or confidence < IMAGE_COVERAGE_THRESHOLD:
                continue

        return MatchResult(
            image_path=image.path,
            record_id=record.id,
            record_name=record.display_name,
            confidence=min(confidence, 1.0),
            method="keyword",
        )
    return None
