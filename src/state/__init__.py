"""
Snapshot state model for the simulation engine
"""

from .entities import (
    CORE_ALLOWANCE_LABEL,
    NATIVE_ADDRESS,
    Holding,
    Market,
    MarketParams,
    Position,
    Vault,
    VaultMarketConfig,
    VaultMarketPublicAllocatorConfig,
    VaultPublicAllocatorConfig,
)
from .snapshot import Snapshot, SnapshotDraft

__all__ = [
    "CORE_ALLOWANCE_LABEL",
    "NATIVE_ADDRESS",
    "Holding",
    "Market",
    "MarketParams",
    "Position",
    "Vault",
    "VaultMarketConfig",
    "VaultMarketPublicAllocatorConfig",
    "VaultPublicAllocatorConfig",
    "Snapshot",
    "SnapshotDraft",
]
