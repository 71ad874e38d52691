"""
High-level orchestration of the image → entry reconciliation.

This module defines a :class:`AssetReconciliationTool` class that ties
together the catalog loaders, the matching engine, the mapping store, the
upload/assign executor and the reporter.  Each pipeline stage is a separate
method so that an operator can review and hand-edit the mapping between
them:

``scan``
    List the images and records, match them and write the mapping file.
``summarize``
    Print a summary of the mapping file.
``apply``
    Read the mapping file, resolve or upload assets and update the entries.

Configuration is supplied as a :class:`~src.config.ReconcilerConfig`.
"""

from __future__ import annotations

import json
import os
from datetime import datetime
from typing import Optional

import requests

from models.catalog import Mapping
from models.report import ReconciliationReport
from src.config import ReconcilerConfig
from src.extractors.catalog_loader import list_images, list_records, load_asset_mirror
from src.matchers.engine import build_mapping
from src.matchers.semantic_matcher import SemanticMatcher
from src.migrators.asset_assigner import AssetAssigner, build_update_instructions
from src.migrators.uniform_api import UniformApi
from src.utils.mapping_store import load_mapping, preserve_manual_edits, save_mapping
from src.utils.pre_flight_checks import run_uniform_pre_flight_checks
from src.utils.reporter import summarize_mapping, summarize_report, write_report_csv


class AssetReconciliationTool:
    """
    Encapsulates the state and behavior of a reconciliation run: the
    configuration, the API client and the log.  Per-item successes and
    failures are recorded using the :mod:`src.utils.errors` module.
    """

    def __init__(
        self,
        config: ReconcilerConfig,
        *,
        api: Optional[UniformApi] = None,
        session: Optional[requests.Session] = None,
        semantic: Optional[SemanticMatcher] = None,
    ) -> None:
        self.config = config
        self.log_file = os.path.join(config.paths.report_dir, "reconciliation.log")
        self._api = api
        self._session = session
        self._semantic = semantic

    def log_message(self, message: str, level: str = "INFO") -> None:
        print(f"[{level}] {message}")
        # Append to log file
        os.makedirs(os.path.dirname(self.log_file), exist_ok=True)
        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write(f"{datetime.now().isoformat(timespec='seconds')} {level}: {message}\n")

    @property
    def api(self) -> UniformApi:
        """The Uniform client; credentials are checked the first time it is needed."""
        if self._api is None:
            self.config.require_credentials()
            self._api = UniformApi.from_config(self.config, session=self._session, log=self.log_message)
        return self._api

    @property
    def semantic(self) -> Optional[SemanticMatcher]:
        if self._semantic is None and self.config.matching.semantic_enabled:
            self._semantic = SemanticMatcher.from_gemini(
                self.config.matching.google_api_key,
                self.config.matching.gemini_model,
                log=self.log_message,
            )
        return self._semantic

    # ------------------------------------------------------------------ stages

    def check(self) -> dict:
        """Verify credentials and that entries can be listed."""
        return run_uniform_pre_flight_checks(self.config, self.api, log=self.log_message)

    def scan(self, *, keep_manual: bool = False) -> Mapping:
        """
        Match every local image to a record and write the mapping file.

        The file is overwritten.  With ``keep_manual`` the assignments that
        were changed by hand in the previous file are carried over.

        :raises DirectoryNotFound: if the images directory does not exist.
        :raises EndpointUnreachable: if records cannot be listed.
        """
        paths = self.config.paths
        self.log_message("Starting image-to-entry matching.")

        images = list_images(paths.images_dir)
        self.log_message(f"Found {len(images)} image files in {paths.images_dir}")

        entry_mirror = paths.entry_mirror_dir
        api = None if entry_mirror and os.path.isdir(entry_mirror) else self.api
        records = list_records(api, self.config.matching.content_type, entry_mirror, log=self.log_message)
        if not records:
            self.log_message("No records found; every image will be left unmatched.", "WARNING")

        semantic = self.semantic
        if semantic is None:
            self.log_message("Semantic matching disabled (no GOOGLE_API_KEY); using filename matching.", "DEBUG")

        mapping, matches = build_mapping(images, records, semantic, log=self.log_message)

        if keep_manual and os.path.exists(paths.mapping_file):
            mapping = preserve_manual_edits(mapping, load_mapping(paths.mapping_file))

        save_mapping(mapping, paths.mapping_file)
        self.log_message(f"Matching summary: {len(matches)}/{len(images)} images matched")
        self.log_message(f"Generated mapping file: {paths.mapping_file}")
        return mapping

    def summarize(self) -> str:
        mapping = load_mapping(self.config.paths.mapping_file)
        return summarize_mapping(mapping)

    def apply(self, *, dry_run: bool = False, upload: Optional[bool] = None) -> ReconciliationReport:
        """
        Apply the mapping file to the remote entries.

        :param dry_run: Resolve assets but neither upload nor write; the
                        planned updates are written to the instructions file.
        :param upload: Override ``apply.upload_missing`` from the configuration.
        :raises MappingNotFound: if the mapping file does not exist.
        """
        paths = self.config.paths
        settings = self.config.apply
        mapping = load_mapping(paths.mapping_file)
        self.log_message(f"Found {len(mapping.matched)} image mappings with a record assigned")

        mirror = load_asset_mirror(paths.asset_mirror_dir, log=self.log_message)
        self.log_message(f"Loaded {len(mirror)} asset descriptors from {paths.asset_mirror_dir}", "DEBUG")

        assigner = AssetAssigner(
            self.api,
            mirror,
            locale=settings.locale,
            upload_missing=settings.upload_missing if upload is None else upload,
            strict_fetch=settings.strict_fetch,
            log=self.log_message,
            report_dir=paths.report_dir,
        )
        report = assigner.apply(mapping, dry_run=dry_run)

        if dry_run:
            os.makedirs(os.path.dirname(paths.instructions_file) or ".", exist_ok=True)
            with open(paths.instructions_file, "w", encoding="utf-8") as f:
                json.dump(build_update_instructions(report), f, ensure_ascii=False, indent=2)
            self.log_message(f"Generated update instructions: {paths.instructions_file}")
        else:
            try:
                csv_path = write_report_csv(report, os.path.join(paths.report_dir, "report.csv"))
                self.log_message(f"Report CSV written to {csv_path}")
            except OSError as e:
                self.log_message(f"Failed to write report CSV: {e}", "ERROR")

        print(summarize_report(report))
        return report
