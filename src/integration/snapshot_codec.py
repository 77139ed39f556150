"""
Snapshot encoding for fixtures, CLI input/output and commitments.

Goals:
- Deterministic dict/JSON form (entries sorted by key) for hashing and diffing.
- Round-trippable into `Snapshot`.
- Strict, fail-closed decoding with explicit size bounds.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from ..state.canonical import (
    bounded_json_utf8_size,
    canonical_json_bytes,
    domain_sep_bytes,
    require_address,
    require_market_id,
    sha256_hex,
)
from ..state.entities import (
    Holding,
    Market,
    MarketParams,
    Position,
    Vault,
    VaultMarketConfig,
    VaultMarketPublicAllocatorConfig,
    VaultPublicAllocatorConfig,
)
from ..state.snapshot import Snapshot


SNAPSHOT_VERSION = 1


def _require_str(value: Any, *, name: str, non_empty: bool = True, max_len: int = 256) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string")
    if non_empty and not value:
        raise ValueError(f"{name} must be non-empty")
    if max_len > 0 and len(value) > max_len:
        raise ValueError(f"{name} too large")
    return value


def _require_int(value: Any, *, name: str, non_negative: bool = True) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if non_negative and value < 0:
        raise ValueError(f"{name} must be non-negative")
    return int(value)


def _require_list(value: Any, *, name: str, max_len: int) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{name} must be a list")
    if len(value) > max_len:
        raise ValueError(f"too many {name} entries: {len(value)} > {max_len}")
    return value


def _require_mapping(value: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise TypeError(f"{name} must be an object")
    return value


# -- Encoding ------------------------------------------------------------------


def _market_to_dict(market: Market) -> Dict[str, Any]:
    p = market.params
    return {
        "id": market.id,
        "params": {
            "loan_token": p.loan_token,
            "collateral_token": p.collateral_token,
            "oracle": p.oracle,
            "irm": p.irm,
            "lltv": p.lltv,
        },
        "total_supply_assets": market.total_supply_assets,
        "total_supply_shares": market.total_supply_shares,
        "total_borrow_assets": market.total_borrow_assets,
        "total_borrow_shares": market.total_borrow_shares,
        "last_update": market.last_update,
        "fee": market.fee,
    }


def _vault_to_dict(vault: Vault) -> Dict[str, Any]:
    pa: Optional[Dict[str, Any]] = None
    if vault.public_allocator_config is not None:
        c = vault.public_allocator_config
        pa = {"admin": c.admin, "fee": c.fee, "accrued_fee": c.accrued_fee}
    return {"address": vault.address, "asset": vault.asset, "public_allocator_config": pa}


def _vault_market_config_to_dict(config: VaultMarketConfig) -> Dict[str, Any]:
    pa: Optional[Dict[str, Any]] = None
    if config.public_allocator_config is not None:
        c = config.public_allocator_config
        pa = {"max_in": c.max_in, "max_out": c.max_out}
    return {
        "vault": config.vault,
        "market_id": config.market_id,
        "cap": config.cap,
        "enabled": config.enabled,
        "public_allocator_config": pa,
    }


def snapshot_to_dict(snapshot: Snapshot, *, version: int = SNAPSHOT_VERSION) -> Dict[str, Any]:
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("version must be a positive int")

    markets = [_market_to_dict(m) for _, m in sorted(snapshot.markets.items())]
    vaults = [_vault_to_dict(v) for _, v in sorted(snapshot.vaults.items())]
    positions = [
        {
            "user": p.user,
            "market_id": p.market_id,
            "supply_shares": p.supply_shares,
            "borrow_shares": p.borrow_shares,
            "collateral": p.collateral,
        }
        for _, by_market in sorted(snapshot.positions.items())
        for _, p in sorted(by_market.items())
    ]
    configs = [
        _vault_market_config_to_dict(c)
        for _, by_market in sorted(snapshot.vault_market_configs.items())
        for _, c in sorted(by_market.items())
    ]
    holdings = [
        {
            "user": h.user,
            "token": h.token,
            "balance": h.balance,
            "erc20_allowances": dict(sorted(h.erc20_allowances.items())),
        }
        for _, by_token in sorted(snapshot.holdings.items())
        for _, h in sorted(by_token.items())
    ]
    return {
        "version": int(version),
        "chain_id": snapshot.chain_id,
        "block_number": snapshot.block_number,
        "timestamp": snapshot.timestamp,
        "markets": markets,
        "vaults": vaults,
        "positions": positions,
        "vault_market_configs": configs,
        "holdings": holdings,
    }


def snapshot_commitment(snapshot: Snapshot) -> str:
    """sha256 over the domain-separated canonical JSON of the snapshot."""
    payload = domain_sep_bytes("snapshot", version=SNAPSHOT_VERSION) + canonical_json_bytes(snapshot_to_dict(snapshot))
    return sha256_hex(payload)


# -- Decoding ------------------------------------------------------------------


def _market_from_dict(entry: Mapping[str, Any]) -> Market:
    market_id = require_market_id(entry.get("id"), name="market.id")
    params = _require_mapping(entry.get("params"), name=f"market[{market_id}].params")
    return Market(
        id=market_id,
        params=MarketParams(
            loan_token=require_address(params.get("loan_token"), name="market.params.loan_token"),
            collateral_token=require_address(params.get("collateral_token"), name="market.params.collateral_token"),
            oracle=require_address(params.get("oracle"), name="market.params.oracle"),
            irm=require_address(params.get("irm"), name="market.params.irm"),
            lltv=_require_int(params.get("lltv", 0), name="market.params.lltv"),
        ),
        total_supply_assets=_require_int(entry.get("total_supply_assets", 0), name="market.total_supply_assets"),
        total_supply_shares=_require_int(entry.get("total_supply_shares", 0), name="market.total_supply_shares"),
        total_borrow_assets=_require_int(entry.get("total_borrow_assets", 0), name="market.total_borrow_assets"),
        total_borrow_shares=_require_int(entry.get("total_borrow_shares", 0), name="market.total_borrow_shares"),
        last_update=_require_int(entry.get("last_update", 0), name="market.last_update"),
        fee=_require_int(entry.get("fee", 0), name="market.fee"),
    )


def _vault_from_dict(entry: Mapping[str, Any]) -> Vault:
    pa_obj = entry.get("public_allocator_config")
    pa = None
    if pa_obj is not None:
        pa_obj = _require_mapping(pa_obj, name="vault.public_allocator_config")
        pa = VaultPublicAllocatorConfig(
            admin=require_address(pa_obj.get("admin"), name="vault.public_allocator_config.admin"),
            fee=_require_int(pa_obj.get("fee", 0), name="vault.public_allocator_config.fee"),
            accrued_fee=_require_int(pa_obj.get("accrued_fee", 0), name="vault.public_allocator_config.accrued_fee"),
        )
    return Vault(
        address=require_address(entry.get("address"), name="vault.address"),
        asset=require_address(entry.get("asset"), name="vault.asset"),
        public_allocator_config=pa,
    )


def _vault_market_config_from_dict(entry: Mapping[str, Any]) -> VaultMarketConfig:
    pa_obj = entry.get("public_allocator_config")
    pa = None
    if pa_obj is not None:
        pa_obj = _require_mapping(pa_obj, name="vault_market_config.public_allocator_config")
        pa = VaultMarketPublicAllocatorConfig(
            max_in=_require_int(pa_obj.get("max_in", 0), name="vault_market_config.max_in"),
            max_out=_require_int(pa_obj.get("max_out", 0), name="vault_market_config.max_out"),
        )
    enabled = entry.get("enabled", True)
    if not isinstance(enabled, bool):
        raise TypeError("vault_market_config.enabled must be a bool")
    return VaultMarketConfig(
        vault=require_address(entry.get("vault"), name="vault_market_config.vault"),
        market_id=require_market_id(entry.get("market_id"), name="vault_market_config.market_id"),
        cap=_require_int(entry.get("cap", 0), name="vault_market_config.cap"),
        enabled=enabled,
        public_allocator_config=pa,
    )


def _holding_from_dict(entry: Mapping[str, Any]) -> Holding:
    allowances_obj = entry.get("erc20_allowances") or {}
    allowances_obj = _require_mapping(allowances_obj, name="holding.erc20_allowances")
    allowances = {
        _require_str(spender, name="holding.erc20_allowances key", max_len=64): _require_int(
            amount, name=f"holding.erc20_allowances.{spender}"
        )
        for spender, amount in allowances_obj.items()
    }
    return Holding(
        user=require_address(entry.get("user"), name="holding.user"),
        token=require_address(entry.get("token"), name="holding.token"),
        balance=_require_int(entry.get("balance", 0), name="holding.balance"),
        erc20_allowances=allowances,
    )


def snapshot_from_dict(
    data: Mapping[str, Any],
    *,
    max_snapshot_bytes: int = 16_000_000,
    max_entries: int = 200_000,
) -> Snapshot:
    if not isinstance(data, Mapping):
        raise TypeError("snapshot must be a mapping")
    if not isinstance(data, dict):
        data = dict(data)

    for name, v in (("max_snapshot_bytes", max_snapshot_bytes), ("max_entries", max_entries)):
        if not isinstance(v, int) or isinstance(v, bool) or v <= 0:
            raise ValueError(f"{name} must be a positive int")

    try:
        bounded_json_utf8_size(data, max_bytes=max_snapshot_bytes)
    except ValueError as exc:
        raise ValueError("snapshot too large") from exc

    version = data.get("version", SNAPSHOT_VERSION)
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("snapshot.version must be a positive int")
    if version != SNAPSHOT_VERSION:
        raise ValueError(f"unsupported snapshot version: {version}")

    markets: Dict[str, Market] = {}
    for entry in _require_list(data.get("markets"), name="markets", max_len=max_entries):
        market = _market_from_dict(_require_mapping(entry, name="markets entry"))
        if market.id in markets:
            raise ValueError(f"duplicate market entry: {market.id}")
        markets[market.id] = market

    vaults: Dict[str, Vault] = {}
    for entry in _require_list(data.get("vaults"), name="vaults", max_len=max_entries):
        vault = _vault_from_dict(_require_mapping(entry, name="vaults entry"))
        if vault.address in vaults:
            raise ValueError(f"duplicate vault entry: {vault.address}")
        vaults[vault.address] = vault

    positions: Dict[str, Dict[str, Position]] = {}
    for entry in _require_list(data.get("positions"), name="positions", max_len=max_entries):
        entry = _require_mapping(entry, name="positions entry")
        position = Position(
            user=require_address(entry.get("user"), name="position.user"),
            market_id=require_market_id(entry.get("market_id"), name="position.market_id"),
            supply_shares=_require_int(entry.get("supply_shares", 0), name="position.supply_shares"),
            borrow_shares=_require_int(entry.get("borrow_shares", 0), name="position.borrow_shares"),
            collateral=_require_int(entry.get("collateral", 0), name="position.collateral"),
        )
        by_market = positions.setdefault(position.user, {})
        if position.market_id in by_market:
            raise ValueError("duplicate position entry (user, market_id)")
        by_market[position.market_id] = position

    configs: Dict[str, Dict[str, VaultMarketConfig]] = {}
    for entry in _require_list(data.get("vault_market_configs"), name="vault_market_configs", max_len=max_entries):
        config = _vault_market_config_from_dict(_require_mapping(entry, name="vault_market_configs entry"))
        by_market_cfg = configs.setdefault(config.vault, {})
        if config.market_id in by_market_cfg:
            raise ValueError("duplicate vault_market_config entry (vault, market_id)")
        by_market_cfg[config.market_id] = config

    holdings: Dict[str, Dict[str, Holding]] = {}
    for entry in _require_list(data.get("holdings"), name="holdings", max_len=max_entries):
        holding = _holding_from_dict(_require_mapping(entry, name="holdings entry"))
        by_token = holdings.setdefault(holding.user, {})
        if holding.token in by_token:
            raise ValueError("duplicate holding entry (user, token)")
        by_token[holding.token] = holding

    return Snapshot(
        chain_id=_require_int(data.get("chain_id", 1), name="snapshot.chain_id"),
        block_number=_require_int(data.get("block_number", 0), name="snapshot.block_number"),
        timestamp=_require_int(data.get("timestamp", 0), name="snapshot.timestamp"),
        markets=markets,
        vaults=vaults,
        positions=positions,
        vault_market_configs=configs,
        holdings=holdings,
    )


def load_snapshot(path: Union[str, Path]) -> Snapshot:
    """Load a snapshot from a `.json`, `.yaml` or `.yml` file."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        obj = yaml.safe_load(text)
    else:
        obj = json.loads(text)
    return snapshot_from_dict(obj)


def dump_snapshot_json(snapshot: Snapshot) -> str:
    return json.dumps(snapshot_to_dict(snapshot), indent=2, ensure_ascii=False)
