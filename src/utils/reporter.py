"""
Human-readable summaries of a mapping or of an apply run.

Everything here is a read-side view over data that already exists: no
remote calls are made.  :func:`write_report_csv` additionally exports an
apply run as one CSV row per record so it can be reviewed in a spreadsheet.
"""

from __future__ import annotations

import csv
import os
from collections import OrderedDict
from typing import Dict, List, Union

from models.catalog import Mapping, MappingEntry
from models.report import ReconciliationReport

RULE_WIDTH = 60


def _mb(size_bytes: int) -> str:
    return f"{size_bytes / 1024 / 1024:.2f}"


def group_matched(mapping: Mapping) -> "OrderedDict[str, List[MappingEntry]]":
    """Group matched images by record name (falling back to the record id), largest group first."""
    grouped: Dict[str, List[MappingEntry]] = {}
    for entry in mapping.matched:
        key = entry.suggested_record_name or entry.record_id or ""
        grouped.setdefault(key, []).append(entry)
    return OrderedDict(sorted(grouped.items(), key=lambda kv: len(kv[1]), reverse=True))


def summarize_mapping(mapping: Mapping) -> str:
    lines: List[str] = []
    unmatched = mapping.unmatched
    lines.append("IMAGE MAPPING SUMMARY")
    lines.append("=" * RULE_WIDTH)
    lines.append(f"Total Images: {len(mapping.images)}")
    lines.append(f"Matched: {len(mapping.matched)}")
    lines.append(f"Unmatched: {len(unmatched)}")
    lines.append("")
    lines.append("RECORDS WITH MATCHED IMAGES:")
    lines.append("-" * RULE_WIDTH)

    for record_name, images in group_matched(mapping).items():
        total_size = sum(img.size_bytes for img in images)
        lines.append("")
        lines.append(f"{record_name}")
        lines.append(f"   Entry ID: {images[0].record_id}")
        lines.append(f"   Images: {len(images)} ({_mb(total_size)} MB)")
        lines.append("   Files:")
        for img in images:
            lines.append(f"     - {img.filename}")

    if unmatched:
        lines.append("")
        lines.append("UNMATCHED IMAGES (need manual review and assignment):")
        lines.append("-" * RULE_WIDTH)
        for img in unmatched:
            lines.append(f"   - {img.filename}")
    return "\n".join(lines)


def summarize_report(report: ReconciliationReport) -> str:
    lines: List[str] = []
    lines.append("RECONCILIATION SUMMARY")
    lines.append("=" * RULE_WIDTH)
    lines.append(f"Updated: {report.count('updated')}")
    lines.append(f"Already up to date: {report.count('unchanged')}")
    if report.count("planned"):
        lines.append(f"Planned (dry run): {report.count('planned')}")
    lines.append(f"Failed: {len(report.failed)}")
    lines.append(f"Unmatched images: {len(report.unmatched)}")

    if report.degraded:
        lines.append("")
        lines.append("DEGRADED (entry could not be fetched before the update, check other fields):")
        for item in report.degraded:
            lines.append(f"   - {item.record_name or item.record_id} ({item.record_id})")

    if report.failed or report.unmatched:
        lines.append("")
        lines.append("NEEDS MANUAL FOLLOW-UP:")
        lines.append("-" * RULE_WIDTH)
        for item in report.failed:
            lines.append(f"   - {item.record_name or 'Unknown'} - {item.filename}")
            lines.append(f"     [{item.error_code}] {item.error}")
        for filename in report.unmatched:
            lines.append(f"   - {filename} (no matching record)")
    return "\n".join(lines)


def summarize(obj: Union[Mapping, ReconciliationReport]) -> str:
    if isinstance(obj, ReconciliationReport):
        return summarize_report(obj)
    if isinstance(obj, Mapping):
        return summarize_mapping(obj)
    raise TypeError(f"Cannot summarize {type(obj).__name__}")


def write_report_csv(report: ReconciliationReport, out_path: str = "reports/reconciliation/report.csv") -> str:
    """Write one row per record outcome to ``out_path`` and return the path.

    The parent directory is created automatically.
    """
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["RecordID", "RecordName", "Filename", "Status", "AssetID", "Degraded", "ErrorCode", "Error"])
        for item in report.items:
            writer.writerow(
                [
                    item.record_id,
                    item.record_name or "",
                    item.filename,
                    item.status,
                    item.asset_id or "",
                    "yes" if item.degraded else "",
                    item.error_code or "",
                    item.error or "",
                ]
            )
    return out_path
