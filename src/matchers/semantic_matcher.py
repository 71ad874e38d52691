"""
Model-assisted matching of image filenames to record names.

The model is asked to pick one name from an enumerated list or answer
``none``.  Anything that goes wrong (no answer, an unknown name, an API
error) yields ``None`` so the caller falls back to keyword matching.
"""

from __future__ import annotations

import os
from typing import Callable, List, Optional, Sequence

from models.catalog import ContentRecord, ImageFile, MatchResult

SEMANTIC_CONFIDENCE = 0.8
NO_MATCH = "none"

SYSTEM_HINT = (
    "You are a helpful assistant that matches product images to product names "
    "based on filename patterns."
)


def build_prompt(filename_stem: str, names: Sequence[str]) -> str:
    listing = "\n".join(f"{i}. {name}" for i, name in enumerate(names, start=1))
    return (
        f"{SYSTEM_HINT}\n\n"
        f'Given this image filename: "{filename_stem}", match it to one of these product names:\n'
        f"{listing}\n\n"
        'Return only the product name that best matches, or "none" if no good match exists.'
    )


def resolve_answer(answer: Optional[str], names: Sequence[str]) -> Optional[str]:
    """Map the model's free-text answer back onto one of ``names``."""
    picked = (answer or "").strip().rstrip(".").strip("\"' ").lower()
    if not picked or picked == NO_MATCH:
        return None
    for name in names:
        if name.lower() == picked:
            return name
    for name in names:
        lower = name.lower()
        if lower in picked or picked in lower:
            return name
    return None


class SemanticMatcher:
    """Ask a generative model which record an image belongs to.

    ``generate`` is any callable taking a prompt and returning the model's
    text; :meth:`from_gemini` wires it to :class:`services.gemini_client.GeminiClient`.
    """

    def __init__(self, generate: Callable[[str], Optional[str]], log: Optional[Callable[[str, str], None]] = None) -> None:
        self.generate = generate
        self.log = log

    @classmethod
    def from_gemini(
        cls,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        log: Optional[Callable[[str, str], None]] = None,
    ) -> Optional["SemanticMatcher"]:
        """Return a Gemini-backed matcher, or ``None`` when no API key is configured."""
        if not api_key:
            return None
        from services.gemini_client import GeminiClient

        client = GeminiClient(api_key=api_key, model=model)
        return cls(client.generate_text, log=log)

    def match(self, image: ImageFile, records: Sequence[ContentRecord]) -> Optional[MatchResult]:
        names: List[str] = [r.display_name for r in records if r.display_name]
        if not names:
            return None
        stem, _ = os.path.splitext(image.filename)
        try:
            answer = self.generate(build_prompt(stem, names))
        except Exception as e:
            if self.log:
                self.log(f"Semantic matching failed for {image.filename}, using filename matching: {e}", "WARNING")
            return None

        if not answer and self.log:
            self.log(f"Semantic matcher returned no answer for {image.filename}", "WARNING")
        name = resolve_answer(answer, names)
        if name is None:
            return None
        record = next((r for r in records if r.display_name.lower() == name.lower()), None)
        if record is None:
            return None
        return MatchResult(
            image_path=image.path,
            record_id=record.id,
            record_name=record.display_name,
            confidence=SEMANTIC_CONFIDENCE,
            method="semantic",
        )
