from __future__ import annotations

from dataclasses import replace

import pytest

from src.core.errors import (
    CapExceededError,
    EmptyWithdrawalsError,
    FlowDirection,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InsufficientLiquidityError,
    InsufficientPositionError,
    UnknownHoldingError,
    UnknownVaultError,
    UnknownVaultMarketConfigError,
    UnknownVaultPublicAllocatorConfigError,
)
from src.core.reallocation import Withdrawal, reallocate
from src.core.shares import to_shares_down, to_shares_up
from src.state.entities import CORE_ALLOWANCE_LABEL, NATIVE_ADDRESS
from src.state.snapshot import Snapshot, SnapshotDraft


USDC = 10**6


def _caps(snapshot: Snapshot, vault: str, market_id: str):
    return snapshot.get_vault_market_public_allocator_config(vault, market_id)


def _set_caps(draft: SnapshotDraft, vault: str, market_id: str, **changes: int) -> None:
    config = draft.get_vault_market_config(vault, market_id)
    draft.set_vault_market_config(
        replace(config, public_allocator_config=replace(config.public_allocator_config, **changes))
    )


def test_reallocates_from_a1_to_a2(world) -> None:
    base = world.snapshot
    assets = 40 * USDC
    shares = 40 * 10**12

    result = reallocate(
        base,
        sender=world.user,
        vault=world.vault,
        withdrawals=[Withdrawal(world.market_a1, assets)],
        supply_market_id=world.market_a2,
    )

    expected = SnapshotDraft(base)
    for market_id, position_shares in ((world.market_a1, 960 * 10**12), (world.market_a2, 440 * 10**12)):
        expected.set_position(replace(base.get_position(world.vault, market_id), supply_shares=position_shares))

    a1 = base.get_market(world.market_a1)
    a2 = base.get_market(world.market_a2)
    expected.set_market(
        replace(a1, total_supply_assets=a1.total_supply_assets - assets, total_supply_shares=a1.total_supply_shares - shares)
    )
    expected.set_market(
        replace(a2, total_supply_assets=a2.total_supply_assets + assets, total_supply_shares=a2.total_supply_shares + shares)
    )

    native = base.get_holding(world.user, NATIVE_ADDRESS)
    expected.set_holding(replace(native, balance=native.balance - world.fee))
    vault = base.get_vault(world.vault)
    pa = vault.public_allocator_config
    expected.set_vault(replace(vault, public_allocator_config=replace(pa, accrued_fee=pa.accrued_fee + world.fee)))

    vault_token = base.get_holding(world.vault, world.token)
    allowance = vault_token.allowance(CORE_ALLOWANCE_LABEL)
    expected.set_holding(replace(vault_token, erc20_allowances={CORE_ALLOWANCE_LABEL: allowance - assets}))

    caps_a1 = _caps(base, world.vault, world.market_a1)
    caps_a2 = _caps(base, world.vault, world.market_a2)
    _set_caps(expected, world.vault, world.market_a1, max_in=caps_a1.max_in + assets, max_out=caps_a1.max_out - assets)
    _set_caps(expected, world.vault, world.market_a2, max_in=caps_a2.max_in - assets, max_out=caps_a2.max_out + assets)

    assert result.snapshot == expected.commit()
    assert result.total_withdrawn == assets
    assert result.shares_withdrawn == (shares,)
    assert result.shares_supplied == shares
    assert result.fee == world.fee


def test_base_snapshot_is_untouched_and_untouched_entities_are_shared(world) -> None:
    base = world.snapshot
    before_a1 = base.get_market(world.market_a1)
    result = reallocate(
        base,
        sender=world.user,
        vault=world.vault,
        withdrawals=[Withdrawal(world.market_a1, 40 * USDC)],
        supply_market_id=world.market_a2,
    ).snapshot

    assert base.get_market(world.market_a1) is before_a1
    assert result.get_market(world.market_a1) != before_a1
    # The sender's loan-token holding is not part of the reallocation.
    assert result.get_holding(world.user, world.token) is base.get_holding(world.user, world.token)


def test_total_supplied_assets_are_conserved(world) -> None:
    base = world.snapshot
    result = reallocate(
        base,
        sender=world.user,
        vault=world.vault,
        withdrawals=[Withdrawal(world.market_a1, 30 * USDC), Withdrawal(world.market_a2, 5 * USDC)],
        supply_market_id=world.market_a2,
    ).snapshot
    assert result.total_supply_assets() == base.total_supply_assets()


def test_vault_loan_token_balance_round_trips(world) -> None:
    base = world.snapshot
    result = reallocate(
        base,
        sender=world.user,
        vault=world.vault,
        withdrawals=[Withdrawal(world.market_a1, 40 * USDC)],
        supply_market_id=world.market_a2,
    ).snapshot
    assert result.get_holding(world.vault, world.token).balance == base.get_holding(world.vault, world.token).balance


def test_max_outflow_exceeded(world) -> None:
    with pytest.raises(CapExceededError) as excinfo:
        reallocate(
            world.snapshot,
            sender=world.user,
            vault=world.vault,
            withdrawals=[Withdrawal(world.market_a2, 10 * USDC)],
            supply_market_id=world.market_a1,
        )
    assert excinfo.value.direction is FlowDirection.OUTFLOW
    assert excinfo.value.market_id == world.market_a2


def test_max_inflow_exceeded_names_the_supply_market(world) -> None:
    with pytest.raises(CapExceededError) as excinfo:
        reallocate(
            world.snapshot,
            sender=world.user,
            vault=world.vault,
            withdrawals=[Withdrawal(world.market_a1, 50 * USDC)],
            supply_market_id=world.market_a2,
        )
    assert excinfo.value.direction is FlowDirection.INFLOW
    assert excinfo.value.market_id == world.market_a2
    assert excinfo.value.assets == 50 * USDC


def test_inflow_is_checked_against_the_total(world) -> None:
    # Each withdrawal fits A2's inflow budget alone; together they do not.
    with pytest.raises(CapExceededError, match="max inflow"):
        reallocate(
            world.snapshot,
            sender=world.user,
            vault=world.vault,
            withdrawals=[Withdrawal(world.market_a1, 30 * USDC), Withdrawal(world.market_a1, 30 * USDC)],
            supply_market_id=world.market_a2,
        )


def test_repeated_withdrawals_compose(world) -> None:
    kwargs = dict(sender=world.user, vault=world.vault, supply_market_id=world.market_a2)
    split = reallocate(
        world.snapshot, withdrawals=[Withdrawal(world.market_a1, 15 * USDC), Withdrawal(world.market_a1, 25 * USDC)], **kwargs
    )
    single = reallocate(world.snapshot, withdrawals=[Withdrawal(world.market_a1, 40 * USDC)], **kwargs)
    assert split.snapshot == single.snapshot
    assert split.shares_withdrawn == (15 * 10**12, 25 * 10**12)


def test_outflow_budget_is_consumed_across_entries(world) -> None:
    draft = SnapshotDraft(world.snapshot)
    _set_caps(draft, world.vault, world.market_a1, max_out=30 * USDC)
    snapshot = draft.commit()
    with pytest.raises(CapExceededError, match="max outflow"):
        reallocate(
            snapshot,
            sender=world.user,
            vault=world.vault,
            withdrawals=[Withdrawal(world.market_a1, 20 * USDC), Withdrawal(world.market_a1, 20 * USDC)],
            supply_market_id=world.market_a2,
        )


def test_supply_to_the_withdrawn_market(world) -> None:
    base = world.snapshot
    result = reallocate(
        base,
        sender=world.user,
        vault=world.vault,
        withdrawals=[Withdrawal(world.market_a1, 10 * USDC)],
        supply_market_id=world.market_a1,
    ).snapshot

    assert result.get_market(world.market_a1) == base.get_market(world.market_a1)
    assert result.get_position(world.vault, world.market_a1) == base.get_position(world.vault, world.market_a1)
    assert _caps(result, world.vault, world.market_a1) == _caps(base, world.vault, world.market_a1)
    assert result.get_holding(world.user, NATIVE_ADDRESS).balance == 10**18 - world.fee


def test_empty_withdrawals_charge_the_fee_only(world) -> None:
    base = world.snapshot
    result = reallocate(
        base, sender=world.user, vault=world.vault, withdrawals=[], supply_market_id=world.market_a2
    )
    snap = result.snapshot
    assert result.total_withdrawn == 0
    assert result.shares_supplied == 0
    assert snap.markets is base.markets
    assert snap.positions is base.positions
    assert snap.vault_market_configs is base.vault_market_configs
    assert snap.get_holding(world.user, NATIVE_ADDRESS).balance == 10**18 - world.fee
    assert snap.get_vault(world.vault).public_allocator_config.accrued_fee == world.fee
    assert snap.get_holding(world.vault, world.token) is base.get_holding(world.vault, world.token)


def test_empty_withdrawals_can_be_rejected(world) -> None:
    with pytest.raises(EmptyWithdrawalsError):
        reallocate(
            world.snapshot,
            sender=world.user,
            vault=world.vault,
            withdrawals=[],
            supply_market_id=world.market_a2,
            reject_empty_withdrawals=True,
        )


def test_insufficient_native_balance_for_fee(world) -> None:
    draft = SnapshotDraft(world.snapshot)
    native = draft.get_holding(world.user, NATIVE_ADDRESS)
    draft.set_holding(replace(native, balance=world.fee - 1))
    with pytest.raises(InsufficientBalanceError) as excinfo:
        reallocate(
            draft.commit(),
            sender=world.user,
            vault=world.vault,
            withdrawals=[Withdrawal(world.market_a1, 40 * USDC)],
            supply_market_id=world.market_a2,
        )
    assert excinfo.value.details["required"] == world.fee


def test_insufficient_core_allowance(world) -> None:
    draft = SnapshotDraft(world.snapshot)
    holding = draft.get_holding(world.vault, world.token)
    draft.set_holding(replace(holding, erc20_allowances={CORE_ALLOWANCE_LABEL: 10 * USDC}))
    with pytest.raises(InsufficientAllowanceError):
        reallocate(
            draft.commit(),
            sender=world.user,
            vault=world.vault,
            withdrawals=[Withdrawal(world.market_a1, 40 * USDC)],
            supply_market_id=world.market_a2,
        )


def test_insufficient_position(world) -> None:
    draft = SnapshotDraft(world.snapshot)
    _set_caps(draft, world.vault, world.market_a1, max_out=10_000 * USDC)
    with pytest.raises(InsufficientPositionError):
        reallocate(
            draft.commit(),
            sender=world.user,
            vault=world.vault,
            withdrawals=[Withdrawal(world.market_a1, 2_000 * USDC)],
            supply_market_id=world.market_a2,
        )


def test_insufficient_market_liquidity(world) -> None:
    draft = SnapshotDraft(world.snapshot)
    market = draft.get_market(world.market_a1)
    draft.set_market(replace(market, total_borrow_assets=market.total_supply_assets - 10 * USDC))
    with pytest.raises(InsufficientLiquidityError):
        reallocate(
            draft.commit(),
            sender=world.user,
            vault=world.vault,
            withdrawals=[Withdrawal(world.market_a1, 40 * USDC)],
            supply_market_id=world.market_a2,
        )


def test_unknown_vault(world) -> None:
    with pytest.raises(UnknownVaultError):
        reallocate(
            world.snapshot,
            sender=world.user,
            vault="0x" + "99" * 20,
            withdrawals=[Withdrawal(world.market_a1, USDC)],
            supply_market_id=world.market_a2,
        )


def test_vault_without_public_allocator(world) -> None:
    draft = SnapshotDraft(world.snapshot)
    draft.set_vault(replace(draft.get_vault(world.vault), public_allocator_config=None))
    with pytest.raises(UnknownVaultPublicAllocatorConfigError):
        reallocate(
            draft.commit(),
            sender=world.user,
            vault=world.vault,
            withdrawals=[Withdrawal(world.market_a1, USDC)],
            supply_market_id=world.market_a2,
        )


def test_unknown_supply_market(world) -> None:
    with pytest.raises(UnknownVaultMarketConfigError):
        reallocate(
            world.snapshot,
            sender=world.user,
            vault=world.vault,
            withdrawals=[Withdrawal(world.market_a1, USDC)],
            supply_market_id="0x" + "77" * 32,
        )


def test_sender_without_native_holding(world) -> None:
    with pytest.raises(UnknownHoldingError):
        reallocate(
            world.snapshot,
            sender="0x" + "55" * 20,
            vault=world.vault,
            withdrawals=[Withdrawal(world.market_a1, USDC)],
            supply_market_id=world.market_a2,
        )


def test_withdrawal_rejects_negative_assets() -> None:
    with pytest.raises(ValueError):
        Withdrawal("0x" + "01" * 32, -1)
    with pytest.raises(TypeError):
        Withdrawal("0x" + "01" * 32, True)


def _off_parity(draft: SnapshotDraft, market_id: str) -> None:
    # shares + 1e6 == (assets + 1) * 1e6 + 1: every conversion of fewer than
    # assets + 1 units leaves a remainder, so rounding direction shows.
    market = draft.get_market(market_id)
    assets = market.total_supply_assets
    draft.set_market(replace(market, total_supply_shares=(assets + 1) * 10**6 + 1 - 10**6))


def test_withdraw_rounds_up_and_supply_rounds_down(world) -> None:
    draft = SnapshotDraft(world.snapshot)
    _off_parity(draft, world.market_a1)
    _off_parity(draft, world.market_a2)
    base = draft.commit()
    a1 = base.get_market(world.market_a1)
    a2 = base.get_market(world.market_a2)
    assets = 40 * USDC

    burned = to_shares_up(assets, a1.total_supply_assets, a1.total_supply_shares)
    minted = to_shares_down(assets, a2.total_supply_assets, a2.total_supply_shares)
    assert burned == 40 * 10**12 + 1
    assert minted == 40 * 10**12

    result = reallocate(
        base,
        sender=world.user,
        vault=world.vault,
        withdrawals=[Withdrawal(world.market_a1, assets)],
        supply_market_id=world.market_a2,
    )
    snap = result.snapshot
    assert result.shares_withdrawn == (burned,)
    assert result.shares_supplied == minted
    assert snap.get_position(world.vault, world.market_a1).supply_shares == 1_000 * 10**12 - burned
    assert snap.get_position(world.vault, world.market_a2).supply_shares == 400 * 10**12 + minted
    assert snap.get_market(world.market_a1).total_supply_shares == a1.total_supply_shares - burned
    assert snap.get_market(world.market_a2).total_supply_shares == a2.total_supply_shares + minted
