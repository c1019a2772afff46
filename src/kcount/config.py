"""Config file loading and auto-discovery for kcount.

Searches for ``kcount.yaml`` in the current directory and parent
directories, parses it, and resolves relative kubeconfig paths against
the config file's location.

Example::

    kubeconfigs:
      - ./clusters/prod.yaml
      - ./clusters/staging.yaml
    kinds: [pod, deployment]
    label_selector: app=web
    age: true
    interval: 5
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kcount.counter.counter import DEFAULT_TIMEOUT
from kcount.metrics.exporter import DEFAULT_ADDR, DEFAULT_PORT
from kcount.metrics.refresh import DEFAULT_INTERVAL
from kcount.models import Kind

CONFIG_FILENAME = "kcount.yaml"


class ConfigError(Exception):
    """Raised when the config file is invalid or cannot be loaded."""


class KcountConfig(BaseModel):
    """Parsed kcount configuration. Every field has a usable default."""

    model_config = ConfigDict(extra="forbid")

    config_path: Path | None = None
    kubeconfigs: list[str] = Field(default_factory=list)
    kinds: list[Kind] = Field(default_factory=list)
    label_selector: str | None = None
    age: bool = False
    all_namespaces: bool = False
    namespace: str | None = None
    timeout: float = Field(DEFAULT_TIMEOUT, gt=0)
    """Per list call timeout in seconds."""
    interval: float = Field(DEFAULT_INTERVAL, gt=0)
    """Seconds between daemon refresh cycles."""
    port: int = Field(DEFAULT_PORT, ge=1, le=65535)
    metrics_addr: str = DEFAULT_ADDR


def find_config(start: Path | None = None) -> Path | None:
    """Return the nearest ``kcount.yaml`` at or above *start* (default: cwd)."""
    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(path: str | Path | None = None) -> KcountConfig:
    """Load *path*, or the discovered ``kcount.yaml``, or all defaults.

    Raises:
        FileNotFoundError: If an explicit *path* does not exist.
        ConfigError: If the file is not a valid kcount config.
    """
    if path is None:
        found = find_config()
        return _parse_config(found) if found is not None else KcountConfig()

    config_path = Path(path).resolve()
    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    return _parse_config(config_path)


def _parse_config(config_path: Path) -> KcountConfig:
    """Read and validate a YAML config file, resolving relative paths."""
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ConfigError(msg)

    base = config_path.parent
    kubeconfigs = data.get("kubeconfigs") or []
    if isinstance(kubeconfigs, str):
        kubeconfigs = [kubeconfigs]
    if not isinstance(kubeconfigs, list):
        raise ConfigError(f"'kubeconfigs' must be a list: {config_path}")
    data["kubeconfigs"] = [
        str((base / Path(p).expanduser()).resolve()) for p in kubeconfigs
    ]

    try:
        return KcountConfig(config_path=config_path, **data)
    except (ValidationError, TypeError) as e:
        raise ConfigError(f"Invalid config in {config_path}: {e}") from e
