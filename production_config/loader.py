"""
Configuration Loader (``production_config.loader``).

Responsibility
--------------
Loads the workflow YAML file and parses it into the frozen dataclasses of
``production_config.schema``.  Runtime callers go through
``production_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range or inconsistent values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import re
from pathlib import Path
from typing import Any

import yaml

from production_config.schema import SalesChannelDef, WorkflowConfig

_CHANNEL_NAME = re.compile(r"^[a-z][a-z0-9_]*$")
_CODE_PREFIX = re.compile(r"^[A-Z][A-Z0-9]*$")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_sales_channel(data: dict[str, Any]) -> SalesChannelDef:
    name = str(data["name"]).strip().lower()
    if not _CHANNEL_NAME.match(name):
        raise ValueError(f"Invalid sales channel name: {data['name']!r}")
    return SalesChannelDef(
        name=name,
        label=str(data.get("label") or name),
        requires_due_date=bool(data.get("requires_due_date", False)),
    )


def _positive_int(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{key} must be a positive integer, got {value!r}")
    return value


def _positive_float(data: dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"{key} must be a positive number, got {value!r}")
    return float(value)


def parse_workflow_config(data: dict[str, Any]) -> WorkflowConfig:
    """
    Parse the top-level workflow mapping.

    Raises:
        KeyError: ``config_id``, ``version`` or ``sales_channels`` missing.
        ValueError: Invalid values or duplicate channel names.
    """
    channels = tuple(parse_sales_channel(c) for c in data["sales_channels"])
    if not channels:
        raise ValueError("At least one sales channel must be configured")
    names = [c.name for c in channels]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate sales channels: {', '.join(duplicates)}")

    codes = data.get("order_codes", {}) or {}
    prefix = str(codes.get("prefix", "OP"))
    if not _CODE_PREFIX.match(prefix):
        raise ValueError(f"Invalid order code prefix: {prefix!r}")

    timeouts = data.get("timeouts", {}) or {}

    return WorkflowConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        sales_channels=channels,
        code_prefix=prefix,
        code_padding=_positive_int(codes, "padding", 4),
        code_allocation_retries=_positive_int(codes, "allocation_retries", 3),
        production_quantity_threshold=_positive_int(
            data, "production_quantity_threshold", 20,
        ),
        lock_timeout_ms=_positive_int(timeouts, "lock_ms", 5000),
        evidence_timeout_seconds=_positive_float(timeouts, "evidence_seconds", 30.0),
        identity_timeout_seconds=_positive_float(timeouts, "identity_seconds", 5.0),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
