"""
Public reallocation of a vault's liquidity across markets.

A permissionless caller moves a vault's supply out of one or more markets and
into a single destination market, within the per-(vault, market) flow caps the
vault curator configured, and pays the vault's fixed public allocator fee in
native currency.

Semantics (single logical transaction against an immutable base snapshot):
1. each withdrawal, in caller order: outflow cap check, market withdraw
   (shares rounded up), caps `max_in += assets`, `max_out -= assets`;
2. inflow cap check on the destination for the total withdrawn;
3. caps `max_in -= total`, `max_out += total`, market supply (shares rounded down);
4. fee: sender's native balance -= fee, vault accrued fee += fee (once per call);
5. the core pulls the total from the vault, consuming its allowance.

All steps stage on a `SnapshotDraft`; any failure discards it, so the base
snapshot is never partially updated.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

from ..state.entities import (
    CORE_ALLOWANCE_LABEL,
    NATIVE_ADDRESS,
    Address,
    MarketId,
    VaultMarketPublicAllocatorConfig,
)
from ..state.snapshot import Snapshot, SnapshotDraft
from . import markets, tokens
from .caps import apply_inflow, apply_outflow, check_inflow, check_outflow
from .errors import EmptyWithdrawalsError


@dataclass(frozen=True)
class Withdrawal:
    market_id: MarketId
    assets: int

    def __post_init__(self) -> None:
        if not isinstance(self.assets, int) or isinstance(self.assets, bool):
            raise TypeError("assets must be an int")
        if self.assets < 0:
            raise ValueError(f"assets must be non-negative: {self.assets}")


@dataclass(frozen=True)
class ReallocationResult:
    snapshot: Snapshot
    total_withdrawn: int
    shares_withdrawn: tuple[int, ...]
    shares_supplied: int
    fee: int


def _stage_cap(
    draft: SnapshotDraft, vault: Address, market_id: MarketId, new_caps: VaultMarketPublicAllocatorConfig
) -> None:
    config = draft.get_vault_market_config(vault, market_id)
    draft.set_vault_market_config(replace(config, public_allocator_config=new_caps))


def reallocate(
    snapshot: Snapshot,
    *,
    sender: Address,
    vault: Address,
    withdrawals: Sequence[Withdrawal],
    supply_market_id: MarketId,
    core_allowance_label: str = CORE_ALLOWANCE_LABEL,
    native_address: Address = NATIVE_ADDRESS,
    reject_empty_withdrawals: bool = False,
) -> ReallocationResult:
    """Simulate a public reallocation and return the committed snapshot with accounting details."""
    draft = SnapshotDraft(snapshot)
    vault_config = draft.get_vault_public_allocator_config(vault)

    if not withdrawals and reject_empty_withdrawals:
        raise EmptyWithdrawalsError(vault)

    total_withdrawn = 0
    shares_withdrawn = []
    for withdrawal in withdrawals:
        caps = draft.get_vault_market_public_allocator_config(vault, withdrawal.market_id)
        check_outflow(vault, withdrawal.market_id, withdrawal.assets, caps)

        shares_withdrawn.append(
            markets.withdraw(
                draft,
                market_id=withdrawal.market_id,
                assets=withdrawal.assets,
                on_behalf=vault,
                receiver=vault,
            )
        )
        _stage_cap(draft, vault, withdrawal.market_id, apply_outflow(caps, withdrawal.assets))
        total_withdrawn += withdrawal.assets

    shares_supplied = 0
    if withdrawals:
        caps = draft.get_vault_market_public_allocator_config(vault, supply_market_id)
        check_inflow(vault, supply_market_id, total_withdrawn, caps)
        _stage_cap(draft, vault, supply_market_id, apply_inflow(caps, total_withdrawn))
        shares_supplied = markets.supply(draft, market_id=supply_market_id, assets=total_withdrawn, on_behalf=vault)

    fee = vault_config.fee
    tokens.debit(draft, user=sender, token=native_address, amount=fee)
    current_vault = draft.get_vault(vault)
    draft.set_vault(
        replace(
            current_vault,
            public_allocator_config=replace(vault_config, accrued_fee=vault_config.accrued_fee + fee),
        )
    )

    if withdrawals:
        loan_token = draft.get_market(supply_market_id).params.loan_token
        tokens.transfer_from_via_core(
            draft, owner=vault, token=loan_token, amount=total_withdrawn, spender=core_allowance_label
        )

    return ReallocationResult(
        snapshot=draft.commit(),
        total_withdrawn=total_withdrawn,
        shares_withdrawn=tuple(shares_withdrawn),
        shares_supplied=shares_supplied,
        fee=fee,
    )
