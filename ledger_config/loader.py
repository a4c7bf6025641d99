"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a ledger YAML file and parses it into a frozen ``LedgerConfig``.
Runtime callers go through ``ledger_config.get_active_config()``; the
functions here are the building blocks it and the tests use.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; there are no silent defaults for required fields.
* Weights are integers (milli-units).  Floats and booleans are rejected.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrongly typed values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.model import SigningContext


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _require_str(name: str, value: Any) -> str:
    # YAML reads an unquoted chain id as int; accept it, but not bools
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValueError(f"{name} must be a string, got {value!r}")
    text = str(value)
    if not text:
        raise ValueError(f"{name} must not be empty")
    return text


def parse_signing(data: dict[str, Any]) -> SigningContext:
    """Parse the ``signing`` block into a SigningContext."""
    return SigningContext(
        chain_id=_require_str("signing.chain_id", data["chain_id"]),
        app_domain=_require_str("signing.app_domain", data["app_domain"]),
        spec_version=_require_str("signing.spec_version", data["spec_version"]),
    )


def parse_weight_config(data: dict[str, Any] | None) -> dict[str, int]:
    """Parse event-type weights, rejecting anything but non-negative ints."""
    weights: dict[str, int] = {}
    for event_type, weight in (data or {}).items():
        if isinstance(weight, bool) or not isinstance(weight, int):
            raise ValueError(
                f"weight_config[{event_type!r}] must be an integer (milli-units), "
                f"got {weight!r}"
            )
        if weight < 0:
            raise ValueError(f"weight_config[{event_type!r}] cannot be negative")
        weights[str(event_type)] = weight
    return weights


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a ``LedgerConfig`` from a dict.

    Required keys: ``config_id``, ``version``, ``scope_id`` and ``signing``
    (``chain_id``, ``app_domain``, ``spec_version``).

    Raises:
        KeyError: if a required key is missing.
        ValueError: if a value has the wrong type.
    """
    version = data["version"]
    if isinstance(version, bool) or not isinstance(version, int):
        raise ValueError(f"version must be an integer, got {version!r}")

    components = data.get("required_pool_components") or []
    if not isinstance(components, list):
        raise ValueError("required_pool_components must be a list")
    component_ids = tuple(
        _require_str("required_pool_components[]", c) for c in components
    )
    if len(set(component_ids)) != len(component_ids):
        raise ValueError("required_pool_components contains duplicates")

    database_url = data.get("database_url")
    if database_url is not None:
        database_url = _require_str("database_url", database_url)

    return LedgerConfig(
        config_id=_require_str("config_id", data["config_id"]),
        version=version,
        scope_id=_require_str("scope_id", data["scope_id"]),
        signing=parse_signing(data["signing"]),
        required_pool_components=component_ids,
        weight_config=parse_weight_config(data.get("weight_config")),
        database_url=database_url,
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> LedgerConfig:
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums, whatever the
    key order in the source file.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
