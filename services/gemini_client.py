from __future__ import annotations

import mimetypes
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from google import genai
from google.genai import types


ContentInput = Union[str, Path, bytes]


class GeminiClient:
    """Small client for the Gemini API (Google Gen AI).

    - Reads the API key from ``GOOGLE_API_KEY`` by default.
    - Accepts text and image inputs (paths or raw bytes).
    - Used by the semantic matcher through :meth:`generate_text`.

    Example:
        from services.gemini_client import GeminiClient

        client = GeminiClient()
        print(client.generate_text("Pick one: Oslo Sofa, Bergen Chair"))
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.5-flash",
        *,
        temperature: float = 0.3,
        max_output_tokens: int = 50,
        thinking_budget: Optional[int] = 0,
    ) -> None:
        key = api_key or os.getenv("GOOGLE_API_KEY")
        if not key:
            raise ValueError("Set the GOOGLE_API_KEY environment variable or pass api_key explicitly.")

        self.model = model
        # Thought tokens count against max_output_tokens; a zero budget disables thinking.
        thinking = types.ThinkingConfig(thinking_budget=thinking_budget) if thinking_budget is not None else None
        self.generation_config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            thinking_config=thinking,
        )
        self.client = genai.Client(api_key=key)

    # ------------------------- PUBLIC API -------------------------
    def generate(
        self,
        inputs: Iterable[ContentInput],
        *,
        model: Optional[str] = None,
    ) -> dict:
        """Generate content from text and/or images.

        Returns a dict with keys ``text`` and ``raw`` (the SDK response).
        """
        contents = self._build_contents(inputs)
        response = self.client.models.generate_content(
            model=model or self.model,
            contents=contents,
            config=self.generation_config,
        )
        return {"text": getattr(response, "text", None), "raw": response}

    def generate_text(self, prompt: str) -> Optional[str]:
        """Send a single text prompt and return the model's text answer."""
        return self.generate([prompt])["text"]

    # ----------------------- INTERNAL HELPERS ----------------------
    def _build_contents(self, inputs: Iterable[ContentInput]) -> List[object]:
        parts: List[object] = []
        for item in inputs:
            if isinstance(item, Path):
                parts.append(self._part_from_file(item))
            elif isinstance(item, str):
                parts.append(item)
            elif isinstance(item, (bytes, bytearray)):
                parts.append(types.Part.from_bytes(data=bytes(item), mime_type="image/jpeg"))
            else:
                raise TypeError(f"Unsupported input type for GeminiClient: {type(item)!r}")
        return parts

    @staticmethod
    def _part_from_file(path: Path) -> object:
        mime, _ = mimetypes.guess_type(str(path))
        if not mime:
            # the models expect an image with a valid type
            mime = "image/jpeg"
        with path.open("rb") as f:
            data = f.read()
        return types.Part.from_bytes(data=data, mime_type=mime)
