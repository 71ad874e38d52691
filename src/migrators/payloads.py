"""
Builders for the entry update payload.

The shape the update endpoint accepts has not been stable, so the update is
attempted with each builder in :data:`PAYLOAD_SHAPES` in order until one is
accepted.  New shapes are added by appending to the list.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

ASSET_SOURCE = "uniform-assets"

PayloadBuilder = Callable[[Dict[str, Any], Dict[str, Any]], Dict[str, Any]]


def image_field_value(asset_id: str, locale: str = "en-US") -> Dict[str, Any]:
    """Return the value of an ``image`` field referencing ``asset_id``."""
    return {
        "type": "asset",
        "locales": {
            locale: [
                {
                    "_id": asset_id,
                    "type": "image",
                    "_source": ASSET_SOURCE,
                }
            ]
        },
    }


def full_entry_fields(fields: Dict[str, Any], image: Dict[str, Any]) -> Dict[str, Any]:
    return {"fields": {**fields, "image": image}}


def minimal_image(fields: Dict[str, Any], image: Dict[str, Any]) -> Dict[str, Any]:
    return {"image": image}


def direct_field(fields: Dict[str, Any], image: Dict[str, Any]) -> Dict[str, Any]:
    return {"fields": {"image": image}}


PAYLOAD_SHAPES: List[Tuple[str, PayloadBuilder]] = [
    ("full-entry-fields", full_entry_fields),
    ("minimal-image", minimal_image),
    ("direct-field", direct_field),
]


def referenced_asset_ids(fields: Dict[str, Any]) -> List[str]:
    """List the asset ids the entry's ``image`` field currently references, across locales."""
    image = fields.get("image") if isinstance(fields, dict) else None
    if not isinstance(image, dict):
        return []
    ids: List[str] = []
    for values in (image.get("locales") or {}).values():
        for value in values or []:
            if isinstance(value, dict) and value.get("_id"):
                ids.append(value["_id"])
    value = image.get("value")
    if isinstance(value, list):
        ids.extend(v["_id"] for v in value if isinstance(v, dict) and v.get("_id"))
    return ids


def references_asset(fields: Dict[str, Any], asset_id: str, locale: Optional[str] = None) -> bool:
    if locale is None:
        return asset_id in referenced_asset_ids(fields)
    image = fields.get("image") if isinstance(fields, dict) else None
    if not isinstance(image, dict):
        return False
    values = (image.get("locales") or {}).get(locale) or []
    return any(isinstance(v, dict) and v.get("_id") == asset_id for v in values)
