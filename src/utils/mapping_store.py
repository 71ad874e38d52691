"""
Persistence of the image → entry mapping.

The mapping file is the checkpoint between deciding and committing: it is
written by ``scan``, may be edited by hand, and is read by ``apply``.
:func:`save_mapping` always overwrites the whole file, so re-running the
matcher discards manual edits unless :func:`preserve_manual_edits` is applied
first.
"""

from __future__ import annotations

import json
import os
from typing import Dict

from pydantic import ValidationError

from models.catalog import Mapping, MappingEntry
from src.utils.errors import MappingInvalid, MappingNotFound


def save_mapping(mapping: Mapping, path: str) -> str:
    """Write ``mapping`` to ``path`` as pretty-printed JSON and return the path."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(mapping.to_document(), f, ensure_ascii=False, indent=2)
        f.write("\n")
    os.replace(tmp_path, path)
    return path


def load_mapping(path: str) -> Mapping:
    """Read a mapping file.

    :raises MappingNotFound: if ``path`` does not exist.
    :raises MappingInvalid: if the file is not valid JSON or does not match
                            the mapping structure.
    """
    if not os.path.exists(path):
        raise MappingNotFound(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return Mapping.model_validate(data)
    except json.JSONDecodeError as e:
        raise MappingInvalid(f"{path} is not valid JSON: {e}") from e
    except ValidationError as e:
        raise MappingInvalid(f"{path} does not look like a mapping file: {e}") from e


def preserve_manual_edits(new: Mapping, previous: Mapping) -> Mapping:
    """
    Carry hand-made assignments from ``previous`` into ``new``.

    An entry counts as hand-made when the previous file assigns a
    ``recordId`` that differs from the fresh suggestion, or when it is tagged
    ``method = "manual"``.  The latter also covers a ``recordId`` cleared to
    ``null`` to reject a wrong suggestion.  Such entries keep the previous
    assignment and are tagged ``method = "manual"``.
    """
    earlier: Dict[str, MappingEntry] = {
        e.filename: e for e in previous.images if e.record_id or e.method == "manual"
    }
    merged = []
    for entry in new.images:
        old = earlier.get(entry.filename)
        if old is not None and (old.record_id != entry.record_id or old.method == "manual"):
            entry = entry.model_copy(
                update={
                    "record_id": old.record_id,
                    "suggested_record_name": old.suggested_record_name,
                    "confidence": 1.0 if old.record_id else None,
                    "method": "manual",
                }
            )
        merged.append(entry)
    return Mapping(images=merged, instructions=new.instructions)
