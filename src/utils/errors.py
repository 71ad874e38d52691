"""
Error taxonomy and structured event logging for reconciliation runs.

Three kinds of failure are distinguished:

*Fatal* errors (:class:`ConfigurationError`, :class:`DirectoryNotFound`,
:class:`MappingNotFound`, :class:`MappingInvalid`) abort the whole run.

*Degraded* conditions (:class:`EntryFetchFailed` when the entry could not be
read before an update) are logged and the run carries on with reduced
fidelity.

*Per-item* errors (:class:`AssetNotFound`, :class:`UploadFailed`,
:class:`UpdateRejected`) are recorded against a single record and never stop
the batch.

Each event is also appended to a JSON Lines file in the report directory
(``reports/reconciliation`` unless configured otherwise) so a run can be
reviewed afterwards.  The ``ERRORS`` dictionary maps event codes to human
readable messages; codes not present fall back to the code itself.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional


class ReconciliationError(Exception):
    """Base class for every error raised by the reconciliation pipeline."""

    code = "RECONCILIATION_ERROR"


###############################################################################
# Fatal errors
###############################################################################

class ConfigurationError(ReconciliationError):
    code = "CONFIGURATION"


class DirectoryNotFound(ReconciliationError):
    code = "DIRECTORY_NOT_FOUND"

    def __init__(self, directory: str) -> None:
        super().__init__(f"Images directory not found: {directory}")
        self.directory = directory


class MappingNotFound(ReconciliationError):
    code = "MAPPING_NOT_FOUND"

    def __init__(self, path: str) -> None:
        super().__init__(f"Mapping file not found: {path}. Run: python main.py scan")
        self.path = path


class MappingInvalid(ReconciliationError):
    code = "MAPPING_INVALID"


###############################################################################
# Remote errors
###############################################################################

class EndpointUnreachable(ReconciliationError):
    """Every endpoint candidate for an operation failed."""

    code = "ENDPOINT_UNREACHABLE"

    def __init__(self, operation: str, last_status: Optional[int] = None, last_error: str = "") -> None:
        self.operation = operation
        self.last_status = last_status
        self.last_error = last_error
        detail = f"{last_status}: {last_error}" if last_status is not None else last_error
        super().__init__(f"Could not {operation.replace('_', ' ')} with any endpoint pattern. Last error: {detail}")


###############################################################################
# Per-item errors
###############################################################################

class AssetNotFound(ReconciliationError):
    code = "ASSET_NOT_FOUND"


class UploadFailed(ReconciliationError):
    code = "UPLOAD_FAILED"


class EntryFetchFailed(ReconciliationError):
    code = "ENTRY_FETCH_FAILED"


class UpdateRejected(ReconciliationError):
    code = "UPDATE_REJECTED"


# Mapping of event codes used throughout a run to descriptive messages.
ERRORS: Dict[str, str] = {
    "ASSET_NOT_FOUND": "No existing asset found for image",
    "UPLOAD_FAILED": "Failed to upload image as a new asset",
    "ENTRY_FETCH_FAILED": "Could not fetch entry before update",
    "UPDATE_REJECTED": "Every payload shape and endpoint rejected the update",
    "UNEXPECTED": "Unexpected error while processing item",
    "ASSET_UPLOADED": "Image uploaded as a new asset",
    "ENTRY_UPDATED": "Entry image updated",
    "ENTRY_UNCHANGED": "Entry already references the asset",
    "UPDATE_PLANNED": "Update planned (dry run)",
}

REPORT_DIR = os.path.join("reports", "reconciliation")
_ERROR_LOG = "errors.jsonl"
_OK_LOG = "success.jsonl"


def _write_jsonl(path: str, data: Dict[str, Any]) -> None:
    """Append ``data`` as a JSON object followed by a newline to ``path``."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False)
        f.write("\n")


def report_error(
    code: str,
    item: Dict[str, Any],
    exc: Optional[Exception] = None,
    report_dir: str = REPORT_DIR,
) -> None:
    """Log an error event for ``item``.

    Parameters
    ----------
    code:
        A key identifying the type of error.  If ``code`` is present in
        :data:`ERRORS` its value will be used as the message.
    item:
        The mapping item associated with the error.  Only the ``recordId``,
        ``recordName`` and ``filename`` keys are referenced if present.
    exc:
        Optional exception instance that triggered the error.
    report_dir:
        Directory holding ``errors.jsonl``.
    """
    message = ERRORS.get(code, code)
    entry: Dict[str, Any] = {
        "code": code,
        "message": message,
        "recordId": item.get("recordId"),
        "recordName": item.get("recordName"),
        "filename": item.get("filename"),
    }
    if exc is not None:
        entry["error"] = str(exc)
    _write_jsonl(os.path.join(report_dir, _ERROR_LOG), entry)


def report_ok(
    code: str,
    item: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
    report_dir: str = REPORT_DIR,
) -> None:
    """Log a successful event for ``item``, merging ``extra`` into the entry."""
    message = ERRORS.get(code, code)
    entry: Dict[str, Any] = {
        "code": code,
        "message": message,
        "recordId": item.get("recordId"),
        "recordName": item.get("recordName"),
        "filename": item.get("filename"),
    }
    if extra:
        entry.update(extra)
    _write_jsonl(os.path.join(report_dir, _OK_LOG), entry)
