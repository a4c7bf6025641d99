"""
LedgerConfig schema.

The typed, frozen form of a ledger configuration file.  YAML is parsed
into these types by ``ledger_config.loader``; services receive the result
from ``ledger_config.get_active_config()``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from ledger_kernel.domain.model import SigningContext


@dataclass(frozen=True)
class LedgerConfig:
    """
    Configuration for one ledger scope.

    ``weight_config`` maps event type to an integer weight in milli-units;
    new epochs pin a copy of it.  ``required_pool_components`` must all be
    recorded before an epoch may close.
    """

    config_id: str
    version: int
    scope_id: str
    signing: SigningContext
    required_pool_components: tuple[str, ...] = ()
    weight_config: Mapping[str, int] = field(default_factory=dict)
    database_url: str | None = None
    checksum: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "weight_config", MappingProxyType(dict(self.weight_config))
        )
