"""
Token holding bookkeeping on a `SnapshotDraft`.

Balances never go negative: a debit larger than the holding raises
`InsufficientBalanceError`, an allowance spend larger than the grant raises
`InsufficientAllowanceError`.
"""

from __future__ import annotations

from dataclasses import replace
from types import MappingProxyType

from ..state.entities import Address
from ..state.snapshot import SnapshotDraft
from .errors import InsufficientAllowanceError, InsufficientBalanceError


def credit(draft: SnapshotDraft, *, user: Address, token: Address, amount: int) -> None:
    holding = draft.get_holding(user, token)
    draft.set_holding(replace(holding, balance=holding.balance + amount))


def debit(draft: SnapshotDraft, *, user: Address, token: Address, amount: int) -> None:
    holding = draft.get_holding(user, token)
    if amount > holding.balance:
        raise InsufficientBalanceError(user, token, amount, holding.balance)
    draft.set_holding(replace(holding, balance=holding.balance - amount))


def spend_allowance(draft: SnapshotDraft, *, user: Address, token: Address, spender: str, amount: int) -> None:
    holding = draft.get_holding(user, token)
    available = holding.allowance(spender)
    if amount > available:
        raise InsufficientAllowanceError(user, token, spender, amount, available)
    allowances = dict(holding.erc20_allowances)
    allowances[spender] = available - amount
    draft.set_holding(replace(holding, erc20_allowances=MappingProxyType(allowances)))


def transfer_from_via_core(
    draft: SnapshotDraft, *, owner: Address, token: Address, amount: int, spender: str
) -> None:
    """Pull `amount` of `token` from `owner` into the core, consuming its allowance."""
    spend_allowance(draft, user=owner, token=token, spender=spender, amount=amount)
    debit(draft, user=owner, token=token, amount=amount)
