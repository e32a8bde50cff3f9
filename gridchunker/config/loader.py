from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    AssemblyOptions,
    ChunkingStrategy,
    ConnectionConfig,
    MappingOptions,
    PipelineConfig,
)

"""Config loader.

Responsibilities:
- Load the YAML pipeline config (every section optional)
- Validate it against config_schema.json (shipped next to this module)
- Apply defaults from the dataclasses in models/config_models.py
- Apply OLAP_* environment overrides to the connection section
"""

__all__ = [
    "ConfigError",
    "ENV_OVERRIDES",
    "SCHEMA_PATH",
    "load_config",
    "config_from_dict",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

# env var -> connection field
ENV_OVERRIDES = {
    "OLAP_SERVER_URL": "server_url",
    "OLAP_USERNAME": "username",
    "OLAP_PASSWORD": "password",
    "OLAP_APPLICATION": "application",
}


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: schema file missing or not JSON, or the data violates
            the schema (unknown keys, wrong types, out-of-range values)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        prefix = f"{location}: " if location else ""
        raise ConfigError(f"config validation failed: {prefix}{e.message}") from e


def _apply_env_overrides(connection: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    merged = dict(connection)
    for env_name, field_name in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:  # 空文字は未設定扱い
            merged[field_name] = value
    return merged


def config_from_dict(data: dict[str, Any], environ: Mapping[str, str] | None = None) -> PipelineConfig:
    """Build a PipelineConfig from already-parsed config data.

    Args:
        data: Parsed YAML mapping
        environ: Environment for overrides (defaults to os.environ)

    Raises:
        ConfigError: the data violates the schema
    """
    _validate_config_schema(data)
    env = os.environ if environ is None else environ

    connection = _apply_env_overrides(data.get("connection") or {}, env)
    try:
        config = PipelineConfig(
            chunking=ChunkingStrategy(**(data.get("chunking") or {})),
            assembly=AssemblyOptions(**(data.get("assembly") or {})),
            mapping=MappingOptions(**(data.get("mapping") or {})),
            connection=ConnectionConfig(**connection),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid config value: {e}") from e
    if "error_log_dir" in data:
        config = config.updated(error_log_dir=data["error_log_dir"])
    return config


def load_config(path: Path, environ: Mapping[str, str] | None = None) -> PipelineConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")
    return config_from_dict(data, environ)
