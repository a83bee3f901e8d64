"""
Configuration Loader (``billing_config.loader``).

Loads a YAML file into a ``BillingConfig``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import BillingConfig
from billing_kernel.logging_config import get_logger

logger = get_logger("config.loader")

_KNOWN_KEYS = frozenset(f.name for f in fields(BillingConfig))


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def parse_billing_config(data: dict[str, Any]) -> BillingConfig:
    """Build a BillingConfig from a dict; absent keys keep their defaults."""
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ValueError(f"Unknown billing config keys: {', '.join(unknown)}")
    return BillingConfig(**data)


def load_billing_config(path: str | Path | None = None) -> BillingConfig:
    """
    Load billing defaults from ``path``.

    ``None`` returns the built-in defaults.  A ``billing:`` top-level key
    is unwrapped if present so the settings can live in a shared file.
    """
    if path is None:
        return BillingConfig()

    path = Path(path)
    data = load_yaml_file(path)
    if set(data) == {"billing"} and isinstance(data["billing"], dict):
        data = data["billing"]

    config = parse_billing_config(data)
    logger.info(
        "billing_config_loaded",
        extra={
            "config_path": str(path),
            "default_payment_term_days": config.default_payment_term_days,
            "missing_charge_type_policy": config.missing_charge_type_policy.value,
        },
    )
    return config
