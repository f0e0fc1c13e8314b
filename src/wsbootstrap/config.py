"""
Bootstrap configuration: one key-value file, validated up front.

The file is the same shell-style ``KEY="value"`` file the bootstrap has
always sourced (default name ``gcp`` in the working directory). A flat
YAML mapping is accepted too when the file ends in ``.yaml``/``.yml``.
Only ``PROJECT_ID`` is required; everything else has a default.

Usage:
    from wsbootstrap.config import load_config
    config = load_config("gcp")
    config.image_path  # europe-north1-docker.pkg.dev/<project>/...
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, field_validator

from . import CONFIG_ENV, DEFAULT_CONFIG_FILE
from . import naming
from .errors import ConfigInvalid, ConfigMissing

logger = logging.getLogger("wsbootstrap.config")

BUNDLED_IMAGE_DIR = Path(__file__).parent / "image"

REQUIRED_KEY = "PROJECT_ID"

# Config file key -> BootstrapConfig field
KEY_FIELDS = {
    "PROJECT_ID": "project_id",
    "REGION": "region",
    "CLUSTER_NAME": "cluster_name",
    "REPO_NAME": "repo_name",
    "WORKSTATION_SA_NAME": "workstation_sa_name",
    "BUILD_SA_NAME": "build_sa_name",
    "WORKSTATION_CONFIG_NAME": "workstation_config_name",
    "MACHINE_TYPE": "machine_type",
    "POOL_SIZE": "pool_size",
    "CONTAINER_IMAGE_NAME": "container_image_name",
    "CONTAINER_IMAGE_TAG": "container_image_tag",
    "WORKSTATION_NAME": "workstation_name",
    "BUILD_CONTEXT": "build_context",
    "REBUILD_IMAGE": "rebuild_image",
    "LOG_LEVEL": "log_level",
    "GCLOUD_TIMEOUT": "gcloud_timeout",
}

_BLANK_IS_UNSET = ("build_context", "gcloud_timeout")

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class BootstrapConfig(BaseModel):
    """Validated configuration plus the names derived from it."""

    project_id: str = Field(min_length=1)
    region: str = Field(default="europe-north1", min_length=1)
    cluster_name: str = Field(default="cluster", min_length=1)
    repo_name: str = Field(default="workstation-image", min_length=1)
    workstation_sa_name: str = Field(default="workstation-sa", min_length=1)
    build_sa_name: str = Field(default="cloud-build-sa", min_length=1)
    workstation_config_name: str = Field(default="base-config", min_length=1)
    machine_type: str = Field(default="e2-standard-8", min_length=1)
    pool_size: int = Field(default=1, ge=0)
    container_image_name: str = Field(default="workstation-image", min_length=1)
    container_image_tag: str = Field(default="latest", min_length=1)
    workstation_name: str = Field(default="my-workstation", min_length=1)
    build_context: Path = BUNDLED_IMAGE_DIR
    rebuild_image: bool = False
    log_level: str = "INFO"
    gcloud_timeout: Optional[int] = Field(default=None, gt=0)  # seconds, create/build calls

    @field_validator("project_id")
    @classmethod
    def _no_whitespace(cls, v: str) -> str:
        v = v.strip()
        if not v or any(ch.isspace() for ch in v):
            raise ValueError("must be a non-empty identifier without whitespace")
        return v

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(sorted(_LOG_LEVELS))}")
        return level

    @field_validator("build_context")
    @classmethod
    def _context_is_dir(cls, v: Path) -> Path:
        if not v.is_dir():
            raise ValueError(f"build context directory not found: {v}")
        return v

    # -- derived names -----------------------------------------------------

    @property
    def network_name(self) -> str:
        return naming.network_name(self.region)

    @property
    def router_name(self) -> str:
        return naming.router_name(self.region)

    @property
    def nat_name(self) -> str:
        return naming.nat_name(self.region)

    @property
    def workstation_sa_email(self) -> str:
        return naming.service_account_email(self.workstation_sa_name, self.project_id)

    @property
    def build_sa_email(self) -> str:
        return naming.service_account_email(self.build_sa_name, self.project_id)

    @property
    def source_bucket(self) -> str:
        return naming.source_bucket_name(self.project_id)

    @property
    def logs_bucket(self) -> str:
        return naming.logs_bucket_name(self.project_id)

    @property
    def image_path(self) -> str:
        return naming.image_path(
            self.region,
            self.project_id,
            self.repo_name,
            self.container_image_name,
            self.container_image_tag,
        )


def _read_pairs(path: Path) -> Dict[str, Any]:
    """Parse the config file into an upper-cased key mapping.

    Raises:
        ConfigInvalid: If the file cannot be read or parsed.
    """
    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        else:
            data = dotenv_values(path, encoding="utf-8")
    except yaml.YAMLError as exc:
        raise ConfigInvalid(f"Cannot parse '{path}': {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigInvalid(f"Cannot read '{path}': {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigInvalid(f"'{path}' must contain a flat key/value mapping.")

    # Reason: `KEY` with no `=` parses to None in dotenv; treat it as unset.
    return {
        str(k).upper(): _scalar(v) for k, v in data.items() if v is not None
    }


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _format_validation_error(exc: ValidationError, path: Path) -> str:
    field_keys = {f: k for k, f in KEY_FIELDS.items()}
    problems = []
    for err in exc.errors():
        loc = err.get("loc") or ("?",)
        key = field_keys.get(str(loc[0]), str(loc[0]))
        problems.append(f"{key}: {err.get('msg', 'invalid value')}")
    return f"Invalid configuration in '{path}': " + "; ".join(problems)


def load_config(path: Optional[Union[str, Path]] = None) -> BootstrapConfig:
    """Load and validate the bootstrap configuration file.

    Args:
        path: Config file path. Defaults to ``WSBOOTSTRAP_CONFIG`` or
            ``./gcp``.

    Returns:
        BootstrapConfig: Validated configuration.

    Raises:
        ConfigMissing: If the file does not exist.
        ConfigInvalid: If PROJECT_ID is missing or any value is invalid.
    """
    config_path = Path(
        path or os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_FILE
    ).expanduser()
    if not config_path.is_file():
        raise ConfigMissing(
            f"Configuration file '{config_path}' not found. "
            f"Please create it and add your {REQUIRED_KEY}."
        )

    pairs = _read_pairs(config_path)

    if not str(pairs.get(REQUIRED_KEY, "")).strip():
        raise ConfigInvalid(
            f"{REQUIRED_KEY} is not set in '{config_path}'. "
            f"Please add '{REQUIRED_KEY}=\"your-gcp-project-id\"' to the file."
        )

    values: Dict[str, Any] = {}
    for key, raw in pairs.items():
        field_name = KEY_FIELDS.get(key)
        if field_name is None:
            logger.debug("Ignoring unknown config key %s", key)
            continue
        values[field_name] = raw

    # Blank optional values fall back to their defaults.
    for field_name in _BLANK_IS_UNSET:
        if field_name in values and not str(values[field_name]).strip():
            values.pop(field_name)

    context = values.get("build_context")
    if context:
        context_path = Path(str(context)).expanduser()
        if not context_path.is_absolute():
            context_path = config_path.resolve().parent / context_path
        values["build_context"] = context_path

    try:
        return BootstrapConfig(**values)
    except ValidationError as exc:
        raise ConfigInvalid(_format_validation_error(exc, config_path)) from exc
