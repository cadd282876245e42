"""
Workflow configuration schema.

Frozen dataclasses parsed from YAML by ``production_config.loader``.
``WorkflowConfig`` is the single runtime artifact handed to the workflow
facade; the kernel never reads configuration itself, it receives these
values as constructor arguments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(frozen=True)
class SalesChannelDef:
    """One accepted sales channel."""

    name: str
    label: str
    requires_due_date: bool = False


@dataclass(frozen=True)
class WorkflowConfig:
    """Runtime workflow configuration."""

    config_id: str
    version: int
    sales_channels: tuple[SalesChannelDef, ...]
    code_prefix: str = "OP"
    code_padding: int = 4
    production_quantity_threshold: int = 20
    lock_timeout_ms: int = 5000
    evidence_timeout_seconds: float = 30.0
    identity_timeout_seconds: float = 5.0
    code_allocation_retries: int = 3
    checksum: str = field(default="", compare=False)

    def channel(self, name: str) -> SalesChannelDef | None:
        for channel in self.sales_channels:
            if channel.name == name:
                return channel
        return None

    @property
    def due_date_policy(self) -> MappingProxyType:
        """Channel name -> whether the channel requires a due date."""
        return MappingProxyType(
            {c.name: c.requires_due_date for c in self.sales_channels}
        )
