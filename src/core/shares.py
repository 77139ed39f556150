"""
Asset <-> share conversion for lending markets (deterministic, integer-only).

Conversions use a virtual offset so an empty market has a well-defined
exchange rate and a first supplier cannot be over/under-credited:

    shares = assets * (total_shares + VIRTUAL_SHARES) / (total_assets + VIRTUAL_ASSETS)
    assets = shares * (total_assets + VIRTUAL_ASSETS) / (total_shares + VIRTUAL_SHARES)

An empty market therefore starts at 1 asset : 1e6 shares, and a market whose
shares are exactly `assets * 1e6` converts without rounding loss.

Rounding is explicit per call site:
- supplying credits shares rounded *down*,
- withdrawing burns shares rounded *up*,
so neither direction can over-credit the position holder.
"""

from __future__ import annotations

from ..state.entities import Market


VIRTUAL_SHARES = 10**6
VIRTUAL_ASSETS = 1


def _require_non_negative_int(value: int, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    return value


def mul_div_down(x: int, y: int, d: int) -> int:
    """floor(x * y / d) for non-negative ints."""
    if d <= 0:
        raise ValueError(f"denominator must be positive: {d}")
    return (x * y) // d


def mul_div_up(x: int, y: int, d: int) -> int:
    """ceil(x * y / d) for non-negative ints."""
    if d <= 0:
        raise ValueError(f"denominator must be positive: {d}")
    return (x * y + (d - 1)) // d


def to_shares_down(assets: int, total_assets: int, total_shares: int) -> int:
    _require_non_negative_int(assets, name="assets")
    return mul_div_down(assets, total_shares + VIRTUAL_SHARES, total_assets + VIRTUAL_ASSETS)


def to_shares_up(assets: int, total_assets: int, total_shares: int) -> int:
    _require_non_negative_int(assets, name="assets")
    return mul_div_up(assets, total_shares + VIRTUAL_SHARES, total_assets + VIRTUAL_ASSETS)


def to_assets_down(shares: int, total_assets: int, total_shares: int) -> int:
    _require_non_negative_int(shares, name="shares")
    return mul_div_down(shares, total_assets + VIRTUAL_ASSETS, total_shares + VIRTUAL_SHARES)


def to_assets_up(shares: int, total_assets: int, total_shares: int) -> int:
    _require_non_negative_int(shares, name="shares")
    return mul_div_up(shares, total_assets + VIRTUAL_ASSETS, total_shares + VIRTUAL_SHARES)


def assets_to_shares(assets: int, market: Market, *, round_up: bool) -> int:
    """Convert supply-side assets to shares at the market's current rate."""
    if round_up:
        return to_shares_up(assets, market.total_supply_assets, market.total_supply_shares)
    return to_shares_down(assets, market.total_supply_assets, market.total_supply_shares)


def shares_to_assets(shares: int, market: Market, *, round_up: bool) -> int:
    """Convert supply-side shares to assets at the market's current rate."""
    if round_up:
        return to_assets_up(shares, market.total_supply_assets, market.total_supply_shares)
    return to_assets_down(shares, market.total_supply_assets, market.total_supply_shares)
