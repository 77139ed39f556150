"""
Supply-side market accounting steps, staged on a `SnapshotDraft`.

These mirror what the lending core does when a vault withdraws from or
supplies to a market: share conversion with the rounding that never
over-credits the supplier, position and market total updates, and the token
leg between the core and the supplier.

Interest is assumed already accrued in the snapshot.
"""

from __future__ import annotations

from dataclasses import replace

from ..state.entities import Address, MarketId
from ..state.snapshot import SnapshotDraft
from .errors import InsufficientLiquidityError, InsufficientPositionError
from .shares import assets_to_shares
from .tokens import credit


def withdraw(draft: SnapshotDraft, *, market_id: MarketId, assets: int, on_behalf: Address, receiver: Address) -> int:
    """
    Withdraw `assets` of `on_behalf`'s supply from the market; `receiver` gets
    the tokens. Returns the shares burned (rounded up).
    """
    market = draft.get_market(market_id)
    position = draft.get_position(on_behalf, market_id)

    shares = assets_to_shares(assets, market, round_up=True)
    if shares > position.supply_shares:
        raise InsufficientPositionError(on_behalf, market_id)
    if shares > market.total_supply_shares or market.total_supply_assets - assets < market.total_borrow_assets:
        raise InsufficientLiquidityError(market_id)

    draft.set_position(replace(position, supply_shares=position.supply_shares - shares))
    draft.set_market(
        replace(
            market,
            total_supply_assets=market.total_supply_assets - assets,
            total_supply_shares=market.total_supply_shares - shares,
        )
    )
    credit(draft, user=receiver, token=market.params.loan_token, amount=assets)
    return shares


def supply(draft: SnapshotDraft, *, market_id: MarketId, assets: int, on_behalf: Address) -> int:
    """
    Credit `on_behalf` with a supply of `assets` to the market. Returns the
    shares minted (rounded down). The token leg is the caller's job.
    """
    market = draft.get_market(market_id)
    position = draft.get_position(on_behalf, market_id)

    shares = assets_to_shares(assets, market, round_up=False)

    draft.set_position(replace(position, supply_shares=position.supply_shares + shares))
    draft.set_market(
        replace(
            market,
            total_supply_assets=market.total_supply_assets + assets,
            total_supply_shares=market.total_supply_shares + shares,
        )
    )
    return shares
