"""
Snapshot entities: markets, vaults, positions, vault-market configs and holdings.

All entities are frozen dataclasses. Amounts are non-negative Python ints in
the token's smallest unit (arbitrary precision).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


Address = str  # 0x-prefixed 20-byte hex (casing preserved)
MarketId = str  # 0x-prefixed 32-byte hex

# Sentinel token address for the network's native currency.
NATIVE_ADDRESS: Address = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"

# Spender label used for allowances granted to the lending core contract.
CORE_ALLOWANCE_LABEL = "morpho"


def _check_amounts(owner: str, **amounts: int) -> None:
    for name, v in amounts.items():
        if not isinstance(v, int) or isinstance(v, bool):
            raise TypeError(f"{owner}.{name} must be an int")
        if v < 0:
            raise ValueError(f"{owner}.{name} must be non-negative: {v}")


@dataclass(frozen=True)
class MarketParams:
    """Immutable market parameters. Only `loan_token` matters to the engine."""

    loan_token: Address
    collateral_token: Address
    oracle: Address
    irm: Address
    lltv: int

    def __post_init__(self) -> None:
        _check_amounts("MarketParams", lltv=self.lltv)


@dataclass(frozen=True)
class Market:
    id: MarketId
    params: MarketParams
    total_supply_assets: int = 0
    total_supply_shares: int = 0
    total_borrow_assets: int = 0
    total_borrow_shares: int = 0
    last_update: int = 0
    fee: int = 0

    def __post_init__(self) -> None:
        _check_amounts(
            "Market",
            total_supply_assets=self.total_supply_assets,
            total_supply_shares=self.total_supply_shares,
            total_borrow_assets=self.total_borrow_assets,
            total_borrow_shares=self.total_borrow_shares,
            last_update=self.last_update,
            fee=self.fee,
        )

    @property
    def liquidity(self) -> int:
        return self.total_supply_assets - self.total_borrow_assets


@dataclass(frozen=True)
class VaultPublicAllocatorConfig:
    admin: Address
    fee: int = 0
    accrued_fee: int = 0

    def __post_init__(self) -> None:
        _check_amounts("VaultPublicAllocatorConfig", fee=self.fee, accrued_fee=self.accrued_fee)


@dataclass(frozen=True)
class Vault:
    address: Address
    asset: Address
    public_allocator_config: Optional[VaultPublicAllocatorConfig] = None


@dataclass(frozen=True)
class VaultMarketPublicAllocatorConfig:
    """Remaining public-allocator flow budget for one (vault, market) pair."""

    max_in: int = 0
    max_out: int = 0

    def __post_init__(self) -> None:
        _check_amounts("VaultMarketPublicAllocatorConfig", max_in=self.max_in, max_out=self.max_out)


@dataclass(frozen=True)
class VaultMarketConfig:
    vault: Address
    market_id: MarketId
    cap: int = 0
    enabled: bool = True
    public_allocator_config: Optional[VaultMarketPublicAllocatorConfig] = None

    def __post_init__(self) -> None:
        _check_amounts("VaultMarketConfig", cap=self.cap)


@dataclass(frozen=True)
class Position:
    user: Address
    market_id: MarketId
    supply_shares: int = 0
    borrow_shares: int = 0
    collateral: int = 0

    def __post_init__(self) -> None:
        _check_amounts(
            "Position",
            supply_shares=self.supply_shares,
            borrow_shares=self.borrow_shares,
            collateral=self.collateral,
        )


@dataclass(frozen=True)
class Holding:
    """Balance and per-spender allowances of `user` for `token`."""

    user: Address
    token: Address
    balance: int = 0
    erc20_allowances: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_amounts("Holding", balance=self.balance)
        allowances = self.erc20_allowances
        if not isinstance(allowances, Mapping):
            raise TypeError("Holding.erc20_allowances must be a mapping")
        for spender, amount in allowances.items():
            if not isinstance(spender, str):
                raise TypeError("Holding.erc20_allowances keys must be strings")
            _check_amounts("Holding.erc20_allowances", **{spender: amount})
        if not isinstance(allowances, MappingProxyType):
            object.__setattr__(self, "erc20_allowances", MappingProxyType(dict(allowances)))

    def allowance(self, spender: str) -> int:
        return self.erc20_allowances.get(spender, 0)
