"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the runtime way to obtain configuration through
    ``get_active_config()``: the signing context receipts are bound to,
    the pool components an epoch close requires, the default event
    weights pinned into new epochs and the database URL.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and below
    ``ledger_services``.  The kernel never imports from this package.

Invariants enforced:
    - Single entrypoint: services receive a ``LedgerConfig``; they never
      read files or environment variables themselves.
    - Deterministic identity: the same YAML document always yields the
      same ``checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the configured path does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or malformed keys.

Audit relevance:
    Every ``get_active_config()`` call emits a ``LEDGER_CONFIG_TRACE`` log
    entry with config_id, version, checksum and scope, tying each closed
    epoch back to the configuration in force.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ledger_config.loader import (
    compute_checksum,
    load_config,
    load_yaml_file,
    parse_config,
)
from ledger_config.schema import LedgerConfig

_logger = logging.getLogger("ledger_kernel.config")

CONFIG_PATH_ENV = "LEDGER_CONFIG_PATH"

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """The public configuration entrypoint.

    Resolution order: the explicit ``path``, then ``$LEDGER_CONFIG_PATH``,
    then the packaged ``sets/default.yaml``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value is malformed.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_PATH_ENV)
        path = Path(env_path) if env_path else _DEFAULT_CONFIG_PATH
    resolved = Path(path)

    config = load_config(resolved)

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_scope_id": config.scope_id,
            "config_path": str(resolved),
            "required_component_count": len(config.required_pool_components),
        },
    )
    return config


__all__ = [
    "CONFIG_PATH_ENV",
    "LedgerConfig",
    "compute_checksum",
    "get_active_config",
    "load_config",
    "load_yaml_file",
    "parse_config",
]
