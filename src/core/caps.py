"""
Public allocator flow-cap checks.

Both checks are pure: they read the (vault, market) flow budget and raise
`CapExceededError` when the requested amount strictly exceeds what remains.
An amount equal to the remaining budget is allowed.
"""

from __future__ import annotations

from dataclasses import replace

from ..state.entities import Address, MarketId, VaultMarketPublicAllocatorConfig
from .errors import CapExceededError, FlowDirection


def check_outflow(vault: Address, market_id: MarketId, assets: int, config: VaultMarketPublicAllocatorConfig) -> None:
    if assets > config.max_out:
        raise CapExceededError(FlowDirection.OUTFLOW, vault, market_id, assets, config.max_out)


def check_inflow(vault: Address, market_id: MarketId, assets: int, config: VaultMarketPublicAllocatorConfig) -> None:
    if assets > config.max_in:
        raise CapExceededError(FlowDirection.INFLOW, vault, market_id, assets, config.max_in)


def apply_outflow(config: VaultMarketPublicAllocatorConfig, assets: int) -> VaultMarketPublicAllocatorConfig:
    """Withdrawing consumes outflow budget and restores inflow room."""
    return replace(config, max_in=config.max_in + assets, max_out=config.max_out - assets)


def apply_inflow(config: VaultMarketPublicAllocatorConfig, assets: int) -> VaultMarketPublicAllocatorConfig:
    """Supplying consumes inflow budget and restores outflow room."""
    return replace(config, max_in=config.max_in - assets, max_out=config.max_out + assets)
