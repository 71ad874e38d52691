"""
Configuration for the reconciliation tool.

Settings come from an optional JSON file and from the process environment
(``.env.local`` then ``.env`` are loaded first).  Values present in the file
win; anything missing is filled from the environment, then from defaults.
The resulting :class:`ReconcilerConfig` is passed explicitly to the
orchestrator rather than read globally.

Expected file structure::

    {
      "uniform": {"api_key": "...", "project_id": "...", "api_base": "https://uniform.app"},
      "matching": {"content_type": "product", "gemini_model": "gemini-2.5-flash"},
      "paths": {"images_dir": "public", "mapping_file": "image-mapping.json"},
      "apply": {"locale": "en-US", "upload_missing": true, "strict_fetch": false}
    }
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from src.utils.errors import ConfigurationError

DEFAULT_API_BASE = "https://uniform.app"
CONFIG_FILE = "config/reconcile_config.json"


class UniformSettings(BaseModel):
    api_key: str = ""
    project_id: str = ""
    api_base: str = DEFAULT_API_BASE
    timeout: float = 30.0
    max_attempts: int = 3
    rate_limit_rpm: Optional[int] = None

    @property
    def api_root(self) -> str:
        """Base URL that ends with ``/api``."""
        return f"{self.api_host}/api"

    @property
    def api_host(self) -> str:
        """Base URL with a trailing ``/api`` path segment removed."""
        base = self.api_base.rstrip("/")
        return base[: -len("/api")] if base.endswith("/api") else base


class MatchingSettings(BaseModel):
    content_type: str = "product"
    google_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"

    @property
    def semantic_enabled(self) -> bool:
        return bool(self.google_api_key)


class PathSettings(BaseModel):
    images_dir: str = "public"
    mapping_file: str = "image-mapping.json"
    asset_mirror_dir: str = os.path.join("uniform-data", "asset")
    entry_mirror_dir: Optional[str] = None
    instructions_file: str = "update-instructions.json"
    report_dir: str = os.path.join("reports", "reconciliation")


class ApplySettings(BaseModel):
    locale: str = "en-US"
    upload_missing: bool = True
    strict_fetch: bool = False


class ReconcilerConfig(BaseModel):
    uniform: UniformSettings = Field(default_factory=UniformSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    paths: PathSettings = Field(default_factory=PathSettings)
    apply: ApplySettings = Field(default_factory=ApplySettings)

    def require_credentials(self) -> None:
        """Raise :class:`ConfigurationError` when Uniform credentials are missing."""
        if not self.uniform.api_key:
            raise ConfigurationError(
                "UNIFORM_API_KEY is required. Add it to your .env file: UNIFORM_API_KEY=uf_your_key_here"
            )
        if not self.uniform.project_id:
            raise ConfigurationError(
                "UNIFORM_PROJECT_ID is required. Add it to your .env file: UNIFORM_PROJECT_ID=your_project_id"
            )


def load_config(
    config_file: Optional[str] = CONFIG_FILE,
    env: Optional[Mapping[str, str]] = None,
    *,
    load_env_files: bool = True,
) -> ReconcilerConfig:
    """Build a :class:`ReconcilerConfig` from ``config_file`` and ``env``.

    :param config_file: Path to an optional JSON configuration file.
    :param env: Environment mapping; defaults to ``os.environ``.
    :param load_env_files: Load ``.env.local`` and ``.env`` before reading ``env``.
    :raises ConfigurationError: if the file exists but is not valid JSON.
    """
    if load_env_files:
        load_dotenv(Path.cwd() / ".env.local")
        load_dotenv(Path.cwd() / ".env")
    if env is None:
        env = os.environ

    config: Dict[str, Any] = {}
    if config_file and os.path.exists(config_file):
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid configuration in {config_file}: {e}") from e

    # Fill anything the file does not set from the environment
    config.setdefault("uniform", {})
    config["uniform"].setdefault("api_key", env.get("UNIFORM_API_KEY", ""))
    config["uniform"].setdefault("project_id", env.get("UNIFORM_PROJECT_ID", ""))
    config["uniform"].setdefault(
        "api_base", env.get("UNIFORM_API_BASE") or env.get("UNIFORM_CLI_BASE_URL") or DEFAULT_API_BASE
    )

    config.setdefault("matching", {})
    config["matching"].setdefault("google_api_key", env.get("GOOGLE_API_KEY") or None)

    config.setdefault("paths", {})
    config["paths"].setdefault("images_dir", env.get("IMAGES_DIR") or os.path.join(os.getcwd(), "public"))

    config.setdefault("apply", {})

    return ReconcilerConfig.model_validate(config)
