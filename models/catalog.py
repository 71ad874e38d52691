from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

MatchMethod = Literal["keyword", "semantic", "manual"]


def _first_text(*values: Any) -> Optional[str]:
    return next((v for v in values if isinstance(v, str) and v), None)


class ImageFile(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str
    filename: str
    size_bytes: int = Field(0, alias="sizeBytes")


class ContentRecord(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    display_name: str = Field("", alias="displayName")
    content_type: Optional[str] = Field(None, alias="contentType")
    fields: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_remote(cls, raw: dict[str, Any]) -> "ContentRecord":
        """Build a record from a listing row or an ``{"entry": {...}}`` document."""
        inner = raw.get("entry") if isinstance(raw.get("entry"), dict) else raw
        fields = inner.get("fields") if isinstance(inner.get("fields"), dict) else {}
        name_field = fields.get("name")
        name = name_field.get("value") if isinstance(name_field, dict) else None
        return cls(
            id=str(inner.get("_id") or inner.get("id") or raw.get("id") or ""),
            display_name=_first_text(name, inner.get("_name"), inner.get("name"), raw.get("name")) or "",
            content_type=_first_text(raw.get("contentType"), inner.get("contentType"), inner.get("type")),
            fields=fields,
        )


class BinaryAsset(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    filename: str = ""
    url: Optional[str] = None


class MatchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_path: str = Field(..., alias="imagePath")
    record_id: str = Field(..., alias="recordId")
    record_name: str = Field(..., alias="recordName")
    confidence: float = Field(..., gt=0.0, le=1.0)
    method: MatchMethod


class MappingEntry(BaseModel):
    """One reviewable line of the mapping file.

    Older mapping files used ``size``, ``suggestedProduct`` and ``entryId``;
    those keys are still accepted on load.
    """

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    path: str
    size_bytes: int = Field(
        0, alias="sizeBytes", validation_alias=AliasChoices("sizeBytes", "size_bytes", "size")
    )
    suggested_record_name: Optional[str] = Field(
        None,
        alias="suggestedRecordName",
        validation_alias=AliasChoices("suggestedRecordName", "suggested_record_name", "suggestedProduct"),
    )
    record_id: Optional[str] = Field(
        None, alias="recordId", validation_alias=AliasChoices("recordId", "record_id", "entryId")
    )
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    method: Optional[MatchMethod] = None

    @field_validator("record_id", "suggested_record_name", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def from_match(cls, image: ImageFile, match: Optional[MatchResult]) -> "MappingEntry":
        return cls(
            filename=image.filename,
            path=image.path,
            size_bytes=image.size_bytes,
            suggested_record_name=match.record_name if match else None,
            record_id=match.record_id if match else None,
            confidence=match.confidence if match else None,
            method=match.method if match else None,
        )


DEFAULT_INSTRUCTIONS = [
    "1. Review the suggested mappings below",
    "2. Fix or fill in recordId for each image you want assigned",
    "3. To keep an image unassigned, set recordId to null and method to \"manual\"",
    "4. Run: python main.py apply",
]


class Mapping(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    images: list[MappingEntry] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=lambda: list(DEFAULT_INSTRUCTIONS))

    @property
    def matched(self) -> list[MappingEntry]:
        return [e for e in self.images if e.record_id]

    @property
    def unmatched(self) -> list[MappingEntry]:
        return [e for e in self.images if not e.record_id]

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
