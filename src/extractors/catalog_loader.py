"""Load the local image folder, the entry catalog and the asset descriptor mirror."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, List, Optional

import yaml
from pydantic import ValidationError

from models.catalog import BinaryAsset, ContentRecord, ImageFile
from src.utils.errors import DirectoryNotFound

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
DESCRIPTOR_SUFFIXES = (".yaml", ".yml")


def _default_log(message: str, level: str = "INFO") -> None:
    print(f"[{level}] {message}")


def list_images(directory: str) -> List[ImageFile]:
    """List image files directly inside ``directory``, sorted by filename.

    Args:
        directory: Folder to scan.  Sub-folders are not visited.

    Returns:
        One :class:`ImageFile` per file whose extension (case-insensitive)
        is in :data:`IMAGE_EXTENSIONS`.

    Raises:
        DirectoryNotFound: If ``directory`` does not exist.
    """
    root = Path(directory)
    if not root.is_dir():
        raise DirectoryNotFound(str(directory))

    images: List[ImageFile] = []
    for path in sorted(root.iterdir(), key=lambda p: p.name):
        if not path.is_file() or not path.name.lower().endswith(IMAGE_EXTENSIONS):
            continue
        images.append(
            ImageFile(
                path=str(path.resolve()),
                filename=path.name,
                size_bytes=path.stat().st_size,
            )
        )
    return images


def _load_descriptor(path: Path, key: str) -> Optional[dict]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    node = data.get(key) if isinstance(data, dict) else None
    return node if isinstance(node, dict) else None


def _descriptor_files(directory: str) -> List[Path]:
    root = Path(directory)
    if not root.is_dir():
        return []
    return sorted(p for p in root.iterdir() if p.is_file() and p.suffix.lower() in DESCRIPTOR_SUFFIXES)


def _field_value(fields: Optional[dict], key: str) -> Optional[str]:
    """Return ``fields[key]["value"]`` when it is a string, else ``None``."""
    node = (fields or {}).get(key)
    value = node.get("value") if isinstance(node, dict) else None
    return value if isinstance(value, str) and value else None


def _well_formed(fields, keys) -> bool:
    if fields is None:
        return True
    if not isinstance(fields, dict):
        return False
    return all(fields.get(k) is None or isinstance(fields.get(k), dict) for k in keys)


def load_asset_mirror(directory: str, log: Callable[[str, str], None] = _default_log) -> List[BinaryAsset]:
    """Read the local asset descriptors (``{asset: {_id, fields: {title, url}}}``).

    The asset id falls back to the descriptor's file stem.  Descriptors that
    cannot be parsed are skipped.  A missing directory yields an empty list.
    """
    assets: List[BinaryAsset] = []
    for path in _descriptor_files(directory):
        try:
            asset = _load_descriptor(path, "asset")
        except (OSError, yaml.YAMLError) as e:
            log(f"Skipping unreadable asset descriptor {path.name}: {e}", "WARNING")
            continue
        if not asset:
            continue
        fields = asset.get("fields")
        if not _well_formed(fields, ("title", "url")):
            log(f"Skipping malformed asset descriptor {path.name}: fields must be mappings", "WARNING")
            continue
        title = _field_value(fields, "title")
        url = _field_value(fields, "url")
        assets.append(BinaryAsset(id=str(asset.get("_id") or path.stem), filename=title or "", url=url))
    return assets


def load_entry_mirror(
    directory: str,
    content_type: Optional[str] = "product",
    log: Callable[[str, str], None] = _default_log,
) -> List[ContentRecord]:
    """Read entries from a local mirror (``{entry: {_id, _name, type, fields}}`` per file)."""
    records: List[ContentRecord] = []
    for path in _descriptor_files(directory):
        try:
            entry = _load_descriptor(path, "entry")
        except (OSError, yaml.YAMLError) as e:
            log(f"Skipping unreadable entry descriptor {path.name}: {e}", "WARNING")
            continue
        if not entry:
            continue
        entry.setdefault("_id", path.stem)
        try:
            record = ContentRecord.from_remote(entry)
        except ValidationError as e:
            log(f"Skipping malformed entry descriptor {path.name}: {e}", "WARNING")
            continue
        if content_type and record.content_type != content_type:
            continue
        records.append(record)
    return records


def list_records(
    api=None,
    content_type: Optional[str] = "product",
    mirror_dir: Optional[str] = None,
    log: Callable[[str, str], None] = _default_log,
) -> List[ContentRecord]:
    """Return the catalog of records to match against.

    A local entry mirror is preferred when ``mirror_dir`` exists; otherwise a
    single page is fetched from the remote API.

    Raises:
        EndpointUnreachable: If the remote listing fails on every endpoint.
        ValueError: If neither a mirror nor an API client is available.
    """
    if mirror_dir and os.path.isdir(mirror_dir):
        records = load_entry_mirror(mirror_dir, content_type, log)
        log(f"Loaded {len(records)} {content_type or 'any'} entries from {mirror_dir}", "INFO")
        return records
    if api is None:
        raise ValueError("An API client is required when no entry mirror is available")
    records = api.list_entries(content_type)
    log(f"Found {len(records)} {content_type or 'any'} entries", "INFO")
    return records
