"""
Utility helpers used by the reconciliation tool.

This subpackage exposes the error taxonomy with its structured event log,
persistence of the mapping file and the run summaries.
"""

from .errors import ERRORS, report_error, report_ok
from .mapping_store import load_mapping, save_mapping
from .reporter import summarize, write_report_csv

__all__ = ["ERRORS", "report_error", "report_ok", "load_mapping", "save_mapping", "summarize", "write_report_csv"]
