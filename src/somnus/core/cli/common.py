"""Shared helpers for CLI commands."""

from __future__ import annotations

import json
import os
from typing import Any

import click
import yaml

from somnus.core.config import Config
from somnus.core.config_schema import SomnusConfig
from somnus.core.exceptions import ConfigurationError, DataProcessingError


def load_settings(config_file: str | None) -> SomnusConfig:
    """Defaults, then the config file, then SOMNUS_* env overrides."""
    try:
        return Config(config_file=config_file).validated()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def load_document(path: str) -> Any:
    """Read a YAML or JSON input document."""
    ext = os.path.splitext(path)[1].lower()
    try:
        with open(path) as f:
            if ext == ".json":
                return json.load(f)
            return yaml.safe_load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise DataProcessingError(f"Could not read {path}: {e}") from e


def require_mapping(document: Any, path: str) -> dict[str, Any]:
    if not isinstance(document, dict):
        raise DataProcessingError(f"{path} must contain a mapping at the top level")
    return document


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))
