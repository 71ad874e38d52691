"""
Apply a reviewed mapping: find or upload each image's asset and write it
into the target entry's ``image`` field.

Records are processed one at a time.  For every record only the first image
listed in the mapping is applied.  Each record is isolated: whatever goes
wrong is recorded in the :class:`~models.report.ReconciliationReport` and the
next record is processed.

Asset resolution order:

1. the local asset mirror (descriptor files pulled from the project),
2. the remote asset listing,
3. uploading the image file as a new asset.

Entry updates fetch the entry first so that its other fields can be sent
back unchanged.  If that fetch fails, or answers without a ``fields``
mapping, the update goes ahead with an empty baseline (logged as
degraded) unless ``strict_fetch`` is set, in which case the record fails
with :class:`EntryFetchFailed`.
"""

from __future__ import annotations

import os
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from models.catalog import BinaryAsset, Mapping, MappingEntry
from models.report import ItemOutcome, ReconciliationReport
from src.matchers.keyword_matcher import tokenize
from src.migrators.payloads import PAYLOAD_SHAPES, PayloadBuilder, image_field_value, references_asset
from src.utils.errors import (
    REPORT_DIR,
    AssetNotFound,
    EndpointUnreachable,
    EntryFetchFailed,
    ReconciliationError,
    UpdateRejected,
    report_error,
    report_ok,
)

ASSET_OVERLAP_THRESHOLD = 0.5


def _default_log(message: str, level: str = "INFO") -> None:
    print(f"[{level}] {message}")


def _stem(name: str) -> str:
    return os.path.splitext(name.strip().lower())[0]


def _significant_parts(name: str) -> List[str]:
    return [p for p in tokenize(name) if len(p) > 2]


def asset_title_matches(filename: str, title: str) -> bool:
    """
    True when an asset ``title`` refers to the image ``filename``.

    Both sides are lowercased and stripped of their extension.  They match
    when equal (ignoring hyphens) or when at least half of their significant
    parts overlap, a part counting as found when it contains or is contained
    in a part of the other side.
    """
    if not title:
        return False
    file_base, title_base = _stem(filename), _stem(title)
    if file_base == title_base or file_base.replace("-", "") == title_base.replace("-", ""):
        return True

    file_parts = _significant_parts(file_base)
    title_parts = _significant_parts(title_base)
    if not file_parts or not title_parts:
        return False
    matching = sum(1 for fp in file_parts if any(ap in fp or fp in ap for ap in title_parts))
    return matching > 0 and matching / max(len(file_parts), len(title_parts)) >= ASSET_OVERLAP_THRESHOLD


def find_local_asset(filename: str, assets: Sequence[BinaryAsset]) -> Optional[BinaryAsset]:
    for asset in assets:
        if asset_title_matches(filename, asset.filename):
            return asset
    return None


def find_remote_asset(filename: str, assets: Sequence[BinaryAsset]) -> Optional[BinaryAsset]:
    """Substring search over remote asset names, falling back to part overlap."""
    file_lower = filename.lower()
    file_base = _stem(filename)
    for asset in assets:
        name = (asset.filename or "").lower()
        if name and (file_base in name or name in file_lower):
            return asset
    return find_local_asset(filename, assets)


def group_by_record(mapping: Mapping) -> "OrderedDict[str, List[MappingEntry]]":
    """Group assigned images by ``recordId`` in first-seen order."""
    groups: "OrderedDict[str, List[MappingEntry]]" = OrderedDict()
    for entry in mapping.images:
        if entry.record_id:
            groups.setdefault(entry.record_id, []).append(entry)
    return groups


class AssetAssigner:
    """Resolve assets and update entries for every record in a mapping."""

    def __init__(
        self,
        api,
        mirror_assets: Optional[Sequence[BinaryAsset]] = None,
        *,
        locale: str = "en-US",
        upload_missing: bool = True,
        strict_fetch: bool = False,
        payload_shapes: Optional[Sequence[Tuple[str, PayloadBuilder]]] = None,
        log: Callable[[str, str], None] = _default_log,
        record_events: bool = True,
        report_dir: str = REPORT_DIR,
    ) -> None:
        self.api = api
        self.mirror_assets = list(mirror_assets or [])
        self.locale = locale
        self.upload_missing = upload_missing
        self.strict_fetch = strict_fetch
        self.payload_shapes = list(payload_shapes or PAYLOAD_SHAPES)
        self.log = log
        self.record_events = record_events
        self.report_dir = report_dir
        # filename -> asset uploaded during this run, so an image is uploaded at most once
        self._uploaded: Dict[str, BinaryAsset] = {}

    # ------------------------------------------------------------------ events

    def _error_event(self, code: str, item: Dict[str, Any], exc: Optional[Exception] = None) -> None:
        if self.record_events:
            report_error(code, item, exc, report_dir=self.report_dir)

    def _ok_event(self, code: str, item: Dict[str, Any], extra: Optional[Dict[str, Any]] = None) -> None:
        if self.record_events:
            report_ok(code, item, extra, report_dir=self.report_dir)

    # ----------------------------------------------------------------- batch

    def apply(self, mapping: Mapping, *, dry_run: bool = False) -> ReconciliationReport:
        report = ReconciliationReport(unmatched=[e.filename for e in mapping.unmatched])
        groups = group_by_record(mapping)
        self.log(f"Processing {len(groups)} unique entries", "INFO")
        for record_id, entries in groups.items():
            report.items.append(self.process_record(record_id, entries, dry_run=dry_run))
        return report

    def process_record(self, record_id: str, entries: Sequence[MappingEntry], *, dry_run: bool = False) -> ItemOutcome:
        image = entries[0]
        name = image.suggested_record_name or "Unknown"
        item = {"recordId": record_id, "recordName": name, "filename": image.filename}
        self.log(f"{name} ({record_id[:8]}...) - images listed: {len(entries)}, using {image.filename}", "INFO")

        outcome = ItemOutcome(
            record_id=record_id,
            record_name=image.suggested_record_name,
            filename=image.filename,
            status="failed",
            skipped_images=len(entries) - 1,
        )
        try:
            if dry_run:
                return self._plan(image, item, outcome)

            asset = self.resolve_asset(image)
            outcome.asset_id = asset.id
            fields, outcome.degraded = self.fetch_baseline(record_id, item)
            outcome.status = self.write_image(record_id, fields, asset.id)
            code = "ENTRY_UPDATED" if outcome.status == "updated" else "ENTRY_UNCHANGED"
            self.log(f"{record_id[:8]}...: {outcome.status} with asset {asset.id}", "SUCCESS")
            self._ok_event(code, item, {"assetId": asset.id, "degraded": outcome.degraded})
        except ReconciliationError as e:
            outcome.status = "failed"
            outcome.error_code = e.code
            outcome.error = str(e)
            self.log(f"Error: {e}", "ERROR")
            self._error_event(e.code, item, e)
        except Exception as e:
            outcome.status = "failed"
            outcome.error_code = "UNEXPECTED"
            outcome.error = str(e)
            self.log(f"Unexpected error processing {image.filename}: {e}", "ERROR")
            self._error_event("UNEXPECTED", item, e)
        return outcome

    def _plan(self, image: MappingEntry, item: Dict[str, Any], outcome: ItemOutcome) -> ItemOutcome:
        try:
            asset = self.resolve_asset(image, allow_upload=False)
            outcome.asset_id = asset.id
        except AssetNotFound:
            if not (self.upload_missing and os.path.isfile(image.path)):
                raise
            self.log(f"No existing asset for {image.filename}; it would be uploaded", "INFO")
        outcome.status = "planned"
        self._ok_event("UPDATE_PLANNED", item, {"assetId": outcome.asset_id})
        return outcome

    # ----------------------------------------------------------------- assets

    def resolve_asset(self, image: MappingEntry, *, allow_upload: bool = True) -> BinaryAsset:
        """
        Find the asset for ``image`` or upload it.

        :raises AssetNotFound: when no asset exists and uploading is disabled
                               or the image file is missing.
        :raises UploadFailed: when the upload itself fails.
        """
        if image.filename in self._uploaded:
            return self._uploaded[image.filename]

        asset = find_local_asset(image.filename, self.mirror_assets)
        if asset is not None:
            self.log(f"Found asset in local mirror: {asset.id}", "INFO")
            return asset

        if self.api is not None:
            try:
                remote_assets = self.api.list_assets()
            except EndpointUnreachable as e:
                self.log(f"Remote asset listing failed: {e}", "WARNING")
                remote_assets = []
            asset = find_remote_asset(image.filename, remote_assets)
            if asset is not None:
                self.log(f"Found remote asset: {asset.id}", "INFO")
                return asset

        if not (allow_upload and self.upload_missing) or self.api is None:
            raise AssetNotFound(f"Asset not found for: {image.filename}")
        if not os.path.isfile(image.path):
            raise AssetNotFound(f"Asset not found for {image.filename} and {image.path} does not exist")

        self.log(f"Uploading image: {image.filename}...", "INFO")
        asset = self.api.upload_asset(image.path)
        self._uploaded[image.filename] = asset
        self.log(f"Uploaded: {image.filename} (Asset ID: {asset.id})", "INFO")
        self._ok_event("ASSET_UPLOADED", {"filename": image.filename}, {"assetId": asset.id})
        return asset

    # ---------------------------------------------------------------- entries

    def fetch_baseline(self, record_id: str, item: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """
        Return the entry's current fields and whether the baseline is degraded.

        :raises EntryFetchFailed: if the fetch fails and ``strict_fetch`` is set.
        """
        try:
            entry = self.api.get_entry(record_id)
            fields = entry.get("fields") if isinstance(entry, dict) else None
            if not isinstance(fields, dict):
                raise EntryFetchFailed(f"Entry {record_id} came back without fields")
            return fields, False
        except (EndpointUnreachable, EntryFetchFailed) as e:
            if self.strict_fetch:
                raise EntryFetchFailed(
                    f"Could not fetch entry {record_id}; refusing to update without its current fields ({e})"
                ) from e
            self.log(
                f"Could not fetch entry {record_id}; continuing with an empty baseline, other fields may be lost",
                "WARNING",
            )
            self._error_event(EntryFetchFailed.code, item, e)
            return {}, True

    def write_image(self, record_id: str, fields: Dict[str, Any], asset_id: str) -> str:
        """
        Write ``asset_id`` into the entry's image field.

        Returns ``"unchanged"`` when the entry already references the asset,
        ``"updated"`` after the first accepted payload shape.

        :raises UpdateRejected: once every payload shape and endpoint failed.
        """
        if references_asset(fields, asset_id, self.locale):
            self.log(f"Entry {record_id[:8]}... already references asset {asset_id}", "INFO")
            return "unchanged"

        image = image_field_value(asset_id, self.locale)
        last_error: Optional[EndpointUnreachable] = None
        for shape_name, build in self.payload_shapes:
            try:
                url = self.api.update_entry(record_id, build(fields, image))
            except EndpointUnreachable as e:
                last_error = e
                continue
            self.log(f"Update accepted with {shape_name} payload at {url}", "DEBUG")
            return "updated"

        detail = f"{last_error.last_status}: {last_error.last_error}" if last_error else "no payload shapes"
        raise UpdateRejected(f"Failed to update entry {record_id} with asset {asset_id}. Last error: {detail}")


def build_update_instructions(report: ReconciliationReport) -> Dict[str, Any]:
    """Describe the planned updates of a dry run as a reviewable document."""
    updates = [
        {
            "entryId": item.record_id,
            "entryName": item.record_name,
            "assetId": item.asset_id,
            "imageFilename": item.filename,
        }
        for item in report.items
        if item.status == "planned"
    ]
    return {
        "updates": updates,
        "instructions": [
            "Each entry's image field will be set to the listed asset",
            "Entries without an assetId will get a freshly uploaded asset",
            "Run without --dry-run to apply",
        ],
    }
