"""
Immutable ecosystem snapshot and its copy-on-write draft.

A `Snapshot` is a value: its mappings are read-only views and the dataclass is
frozen. Simulated operations never write to it; they stage replacements on a
`SnapshotDraft` and `commit()` a new snapshot that rebuilds only the mappings
on the path to a staged entity. Every untouched entity (and every untouched
nested mapping) is the same object in both snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Tuple, TypeVar

from ..core.errors import (
    UnknownHoldingError,
    UnknownMarketError,
    UnknownPositionError,
    UnknownVaultError,
    UnknownVaultMarketConfigError,
    UnknownVaultMarketPublicAllocatorConfigError,
    UnknownVaultPublicAllocatorConfigError,
)
from .entities import (
    Address,
    Holding,
    Market,
    MarketId,
    Position,
    Vault,
    VaultMarketConfig,
    VaultMarketPublicAllocatorConfig,
    VaultPublicAllocatorConfig,
)


K = TypeVar("K")
V = TypeVar("V")

_EMPTY: Mapping = MappingProxyType({})


def _freeze(mapping: Mapping[K, V]) -> Mapping[K, V]:
    if isinstance(mapping, MappingProxyType):
        return mapping
    if not isinstance(mapping, Mapping):
        raise TypeError(f"expected a mapping, got {type(mapping).__name__}")
    return MappingProxyType(dict(mapping))


def _freeze_nested(mapping: Mapping[K, Mapping[str, V]]) -> Mapping[K, Mapping[str, V]]:
    if isinstance(mapping, MappingProxyType) and all(isinstance(v, MappingProxyType) for v in mapping.values()):
        return mapping
    return MappingProxyType({k: _freeze(v) for k, v in mapping.items()})


class SnapshotReader:
    """Typed accessors shared by `Snapshot` and `SnapshotDraft`.

    Missing entries are precondition violations and raise `Unknown*Error`.
    """

    markets: Mapping[MarketId, Market]
    vaults: Mapping[Address, Vault]
    positions: Mapping[Address, Mapping[MarketId, Position]]
    vault_market_configs: Mapping[Address, Mapping[MarketId, VaultMarketConfig]]
    holdings: Mapping[Address, Mapping[Address, Holding]]

    def get_market(self, market_id: MarketId) -> Market:
        market = self.markets.get(market_id)
        if market is None:
            raise UnknownMarketError(market_id)
        return market

    def get_vault(self, vault: Address) -> Vault:
        v = self.vaults.get(vault)
        if v is None:
            raise UnknownVaultError(vault)
        return v

    def try_get_position(self, user: Address, market_id: MarketId) -> Optional[Position]:
        return self.positions.get(user, _EMPTY).get(market_id)

    def get_position(self, user: Address, market_id: MarketId) -> Position:
        position = self.try_get_position(user, market_id)
        if position is None:
            raise UnknownPositionError(user, market_id)
        return position

    def try_get_vault_market_config(self, vault: Address, market_id: MarketId) -> Optional[VaultMarketConfig]:
        return self.vault_market_configs.get(vault, _EMPTY).get(market_id)

    def get_vault_market_config(self, vault: Address, market_id: MarketId) -> VaultMarketConfig:
        config = self.try_get_vault_market_config(vault, market_id)
        if config is None:
            raise UnknownVaultMarketConfigError(vault, market_id)
        return config

    def try_get_holding(self, user: Address, token: Address) -> Optional[Holding]:
        return self.holdings.get(user, _EMPTY).get(token)

    def get_holding(self, user: Address, token: Address) -> Holding:
        holding = self.try_get_holding(user, token)
        if holding is None:
            raise UnknownHoldingError(user, token)
        return holding

    def get_vault_public_allocator_config(self, vault: Address) -> VaultPublicAllocatorConfig:
        config = self.get_vault(vault).public_allocator_config
        if config is None:
            raise UnknownVaultPublicAllocatorConfigError(vault)
        return config

    def get_vault_market_public_allocator_config(
        self, vault: Address, market_id: MarketId
    ) -> VaultMarketPublicAllocatorConfig:
        config = self.get_vault_market_config(vault, market_id).public_allocator_config
        if config is None:
            raise UnknownVaultMarketPublicAllocatorConfigError(vault, market_id)
        return config

    def total_supply_assets(self) -> int:
        """Sum of supplied assets across all markets."""
        return sum(m.total_supply_assets for m in self.markets.values())


@dataclass(frozen=True)
class Snapshot(SnapshotReader):
    """Point-in-time state of markets, vaults, positions, configs and holdings."""

    chain_id: int = 1
    block_number: int = 0
    timestamp: int = 0
    markets: Mapping[MarketId, Market] = field(default_factory=dict)
    vaults: Mapping[Address, Vault] = field(default_factory=dict)
    positions: Mapping[Address, Mapping[MarketId, Position]] = field(default_factory=dict)
    vault_market_configs: Mapping[Address, Mapping[MarketId, VaultMarketConfig]] = field(default_factory=dict)
    holdings: Mapping[Address, Mapping[Address, Holding]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("chain_id", "block_number", "timestamp"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise ValueError(f"snapshot.{name} must be a non-negative int")
        object.__setattr__(self, "markets", _freeze(self.markets))
        object.__setattr__(self, "vaults", _freeze(self.vaults))
        object.__setattr__(self, "positions", _freeze_nested(self.positions))
        object.__setattr__(self, "vault_market_configs", _freeze_nested(self.vault_market_configs))
        object.__setattr__(self, "holdings", _freeze_nested(self.holdings))


class SnapshotDraft(SnapshotReader):
    """
    Staging area for one simulated operation.

    Reads see staged entities first, then the base snapshot, so repeated
    touches of one entity compose. Nothing is visible outside the draft until
    `commit()`; on failure callers just drop it.
    """

    def __init__(self, base: Snapshot) -> None:
        self.base = base
        self._markets: Dict[MarketId, Market] = {}
        self._vaults: Dict[Address, Vault] = {}
        self._positions: Dict[Tuple[Address, MarketId], Position] = {}
        self._vault_market_configs: Dict[Tuple[Address, MarketId], VaultMarketConfig] = {}
        self._holdings: Dict[Tuple[Address, Address], Holding] = {}

    @property
    def markets(self) -> Mapping[MarketId, Market]:  # type: ignore[override]
        return _Overlay(self.base.markets, self._markets)

    @property
    def vaults(self) -> Mapping[Address, Vault]:  # type: ignore[override]
        return _Overlay(self.base.vaults, self._vaults)

    @property
    def positions(self) -> Mapping[Address, Mapping[MarketId, Position]]:  # type: ignore[override]
        return _NestedOverlay(self.base.positions, self._positions)

    @property
    def vault_market_configs(self) -> Mapping[Address, Mapping[MarketId, VaultMarketConfig]]:  # type: ignore[override]
        return _NestedOverlay(self.base.vault_market_configs, self._vault_market_configs)

    @property
    def holdings(self) -> Mapping[Address, Mapping[Address, Holding]]:  # type: ignore[override]
        return _NestedOverlay(self.base.holdings, self._holdings)

    def set_market(self, market: Market) -> None:
        self._markets[market.id] = market

    def set_vault(self, vault: Vault) -> None:
        self._vaults[vault.address] = vault

    def set_position(self, position: Position) -> None:
        self._positions[(position.user, position.market_id)] = position

    def set_vault_market_config(self, config: VaultMarketConfig) -> None:
        self._vault_market_configs[(config.vault, config.market_id)] = config

    def set_holding(self, holding: Holding) -> None:
        self._holdings[(holding.user, holding.token)] = holding

    def touched(self) -> int:
        return (
            len(self._markets)
            + len(self._vaults)
            + len(self._positions)
            + len(self._vault_market_configs)
            + len(self._holdings)
        )

    def commit(self) -> Snapshot:
        base = self.base
        return Snapshot(
            chain_id=base.chain_id,
            block_number=base.block_number,
            timestamp=base.timestamp,
            markets=_patch(base.markets, self._markets),
            vaults=_patch(base.vaults, self._vaults),
            positions=_patch_nested(base.positions, self._positions),
            vault_market_configs=_patch_nested(base.vault_market_configs, self._vault_market_configs),
            holdings=_patch_nested(base.holdings, self._holdings),
        )

    def __repr__(self) -> str:
        return f"SnapshotDraft(touched={self.touched()})"


def _patch(base: Mapping[K, V], staged: Dict[K, V]) -> Mapping[K, V]:
    if not staged:
        return base
    out = dict(base)
    out.update(staged)
    return MappingProxyType(out)


def _patch_nested(
    base: Mapping[str, Mapping[str, V]], staged: Dict[Tuple[str, str], V]
) -> Mapping[str, Mapping[str, V]]:
    if not staged:
        return base
    by_outer: Dict[str, Dict[str, V]] = {}
    for (outer, inner), value in staged.items():
        by_outer.setdefault(outer, {})[inner] = value
    out: Dict[str, Mapping[str, V]] = dict(base)
    for outer, entries in by_outer.items():
        inner_map = dict(base.get(outer, _EMPTY))
        inner_map.update(entries)
        out[outer] = MappingProxyType(inner_map)
    return MappingProxyType(out)


class _Overlay(Mapping[K, V]):
    """Read-only union view: staged entries shadow base entries."""

    def __init__(self, base: Mapping[K, V], staged: Mapping[K, V]) -> None:
        self._base = base
        self._staged = staged

    def __getitem__(self, key: K) -> V:
        if key in self._staged:
            return self._staged[key]
        return self._base[key]

    def __iter__(self) -> Iterator[K]:
        yield from self._base
        for key in self._staged:
            if key not in self._base:
                yield key

    def __len__(self) -> int:
        return len(self._base) + sum(1 for k in self._staged if k not in self._base)


class _NestedOverlay(Mapping[str, Mapping[str, V]]):
    def __init__(self, base: Mapping[str, Mapping[str, V]], staged: Mapping[Tuple[str, str], V]) -> None:
        self._base = base
        self._staged = staged

    def _outer_keys(self) -> Iterator[str]:
        yield from self._base
        extra = {o for (o, _i) in self._staged if o not in self._base}
        yield from sorted(extra)

    def __getitem__(self, outer: str) -> Mapping[str, V]:
        inner_staged = {i: v for (o, i), v in self._staged.items() if o == outer}
        if outer not in self._base and not inner_staged:
            raise KeyError(outer)
        return _Overlay(self._base.get(outer, _EMPTY), inner_staged)

    def __iter__(self) -> Iterator[str]:
        return self._outer_keys()

    def __len__(self) -> int:
        return sum(1 for _ in self._outer_keys())
