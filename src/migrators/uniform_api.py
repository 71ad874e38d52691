"""
Uniform Management API operations used by the reconciliation pipeline.

Each public method maps to one remote operation (list entries, get entry,
update entry, list assets, upload asset) and goes through the
:class:`~src.migrators.endpoints.EndpointResolver`, so every call probes the
candidate URL shapes again.  Response bodies are normalised here: entries
may be wrapped in ``{"entry": {...}}`` and asset listings have been seen
under ``results``, ``assets`` and ``data``.

Usage example::

    from src.config import load_config
    from src.migrators.uniform_api import UniformApi

    api = UniformApi.from_config(load_config())
    for record in api.list_entries("product"):
        print(record.id, record.display_name)
"""

from __future__ import annotations

import mimetypes
import os
from typing import Any, Callable, Dict, List, Optional

import requests

from models.catalog import BinaryAsset, ContentRecord
from src.migrators.endpoints import EndpointResolver, RateLimiter, candidate_urls, uniform_headers
from src.utils.errors import EndpointUnreachable, EntryFetchFailed, UploadFailed


def _json(resp: requests.Response) -> Any:
    if not resp.content:
        return {}
    try:
        return resp.json()
    except ValueError:
        return {}


def asset_from_remote(raw: Dict[str, Any], fallback_name: str = "") -> BinaryAsset:
    fields = raw.get("fields") or {}
    title = fields.get("title") if isinstance(fields.get("title"), dict) else {}
    url_field = fields.get("url") if isinstance(fields.get("url"), dict) else {}
    return BinaryAsset(
        id=str(raw.get("_id") or raw.get("id") or raw.get("assetId") or ""),
        filename=raw.get("filename") or raw.get("name") or title.get("value") or raw.get("title") or fallback_name,
        url=raw.get("url") or url_field.get("value"),
    )


class UniformApi:
    """Thin wrapper over the five remote operations the pipeline needs."""

    def __init__(
        self,
        api_key: str,
        project_id: str,
        *,
        api_root: str,
        api_host: str,
        resolver: Optional[EndpointResolver] = None,
    ) -> None:
        self.api_key = api_key
        self.project_id = project_id
        self.api_root = api_root.rstrip("/")
        self.api_host = api_host.rstrip("/")
        self.resolver = resolver or EndpointResolver()

    @classmethod
    def from_config(
        cls,
        config,
        *,
        session: Optional[requests.Session] = None,
        log: Optional[Callable[[str, str], None]] = None,
    ) -> "UniformApi":
        settings = config.uniform
        limiter = RateLimiter(settings.rate_limit_rpm) if settings.rate_limit_rpm else None
        resolver = EndpointResolver(
            session,
            timeout=settings.timeout,
            max_attempts=settings.max_attempts,
            limiter=limiter,
            log=log,
        )
        return cls(
            settings.api_key,
            settings.project_id,
            api_root=settings.api_root,
            api_host=settings.api_host,
            resolver=resolver,
        )

    def candidates(self, path: str) -> List[str]:
        return candidate_urls(self.api_root, self.api_host, self.project_id, path)

    # ------------------------------------------------------------------ entries

    def list_entries(self, content_type: Optional[str] = "product") -> List[ContentRecord]:
        """
        Fetch a single page of entries and keep those of ``content_type``.

        No cursor is followed; large catalogs are truncated to whatever the
        first page returns.

        :raises EndpointUnreachable: if no candidate URL answers.
        """
        call = self.resolver.request("list_entries", "GET", self.candidates("entries"), headers=uniform_headers(self.api_key))
        data = _json(call.response)
        if isinstance(data, dict):
            rows = data.get("results") or data.get("entries") or []
        else:
            rows = data
        records = [ContentRecord.from_remote(row) for row in rows if isinstance(row, dict)]
        if content_type:
            records = [r for r in records if r.content_type == content_type]
        return [r for r in records if r.id]

    def get_entry(self, entry_id: str) -> Dict[str, Any]:
        """
        Return the entry document, unwrapping ``{"entry": {...}}``.

        :raises EndpointUnreachable: if no candidate URL answers.
        :raises EntryFetchFailed: if the answer is not an entry with a
                                  ``fields`` mapping.
        """
        call = self.resolver.request(
            "get_entry", "GET", self.candidates(f"entries/{entry_id}"), headers=uniform_headers(self.api_key)
        )
        data = _json(call.response)
        if isinstance(data, dict) and isinstance(data.get("entry"), dict):
            data = data["entry"]
        if not isinstance(data, dict) or not isinstance(data.get("fields"), dict):
            raise EntryFetchFailed(f"Entry {entry_id} was fetched from {call.url} but the response has no fields")
        return data

    def update_entry(self, entry_id: str, payload: Dict[str, Any]) -> str:
        """``PUT`` ``payload`` to the entry; returns the URL that accepted it."""
        call = self.resolver.request(
            "update_entry",
            "PUT",
            self.candidates(f"entries/{entry_id}"),
            headers=uniform_headers(self.api_key),
            json=payload,
        )
        return call.url

    # ------------------------------------------------------------------- assets

    def list_assets(self) -> List[BinaryAsset]:
        call = self.resolver.request("list_assets", "GET", self.candidates("assets"), headers=uniform_headers(self.api_key))
        data = _json(call.response)
        if isinstance(data, dict):
            rows = data.get("results") or data.get("assets") or data.get("data") or []
        else:
            rows = data
        assets = [asset_from_remote(row) for row in rows if isinstance(row, dict)]
        return [a for a in assets if a.id]

    def upload_asset(self, image_path: str) -> BinaryAsset:
        """
        Upload the file at ``image_path`` as a new image asset.

        :raises UploadFailed: when the file cannot be read, every endpoint
                              rejects the upload or no id is returned.
        """
        filename = os.path.basename(image_path)
        mime, _ = mimetypes.guess_type(filename)
        try:
            with open(image_path, "rb") as f:
                content = f.read()
        except OSError as e:
            raise UploadFailed(f"Could not read {image_path}: {e}") from e

        try:
            call = self.resolver.request(
                "upload_asset",
                "POST",
                self.candidates("assets"),
                headers=uniform_headers(self.api_key, json_body=False),
                data={"type": "image"},
                files_factory=lambda: {"file": (filename, content, mime or "application/octet-stream")},
            )
        except EndpointUnreachable as e:
            raise UploadFailed(f"Failed to upload {filename}: {e}") from e

        data = _json(call.response)
        if isinstance(data, dict) and isinstance(data.get("asset"), dict):
            data = data["asset"]
        asset = asset_from_remote(data if isinstance(data, dict) else {}, fallback_name=filename)
        if not asset.id:
            raise UploadFailed(f"Upload of {filename} returned no asset id")
        return asset
