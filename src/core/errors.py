"""Exception types for the simulation engine.

Every failure carries a `FailureKind` so callers can branch on the
classification without parsing messages. `fatal` marks precondition and
configuration defects (unknown operation, missing snapshot entry, malformed
input) as opposed to business-rule rejections (caps, balances).
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Any, Optional


@unique
class FailureKind(Enum):
    CAP_EXCEEDED = "cap_exceeded"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"
    INSUFFICIENT_POSITION = "insufficient_position"
    INSUFFICIENT_LIQUIDITY = "insufficient_liquidity"
    EMPTY_WITHDRAWALS = "empty_withdrawals"
    UNKNOWN_OPERATION_TYPE = "unknown_operation_type"
    MALFORMED_OPERATION = "malformed_operation"
    UNKNOWN_ENTITY = "unknown_entity"


@unique
class FlowDirection(Enum):
    INFLOW = "inflow"
    OUTFLOW = "outflow"


class SimulationError(Exception):
    """Base exception for all simulation failures."""

    kind: FailureKind = FailureKind.MALFORMED_OPERATION
    fatal: bool = False

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# -- Business-rule rejections -------------------------------------------------


class CapExceededError(SimulationError):
    """Raised when a flow exceeds the remaining public allocator flow cap."""

    kind = FailureKind.CAP_EXCEEDED

    def __init__(
        self,
        direction: FlowDirection,
        vault: str,
        market_id: str,
        assets: int,
        remaining: int,
    ) -> None:
        self.direction = direction
        self.vault = vault
        self.market_id = market_id
        self.assets = assets
        self.remaining = remaining
        super().__init__(
            f'max {direction.value} exceeded for vault "{vault}" on market "{market_id}"',
            details={
                "direction": direction.value,
                "vault": vault,
                "market_id": market_id,
                "assets": assets,
                "remaining": remaining,
            },
        )


class InsufficientBalanceError(SimulationError):
    kind = FailureKind.INSUFFICIENT_BALANCE

    def __init__(self, user: str, token: str, required: int, available: int) -> None:
        self.user = user
        self.token = token
        self.required = required
        self.available = available
        super().__init__(
            f'insufficient balance of user "{user}" for token "{token}"',
            details={"user": user, "token": token, "required": required, "available": available},
        )


class InsufficientAllowanceError(SimulationError):
    kind = FailureKind.INSUFFICIENT_ALLOWANCE

    def __init__(self, user: str, token: str, spender: str, required: int, available: int) -> None:
        self.user = user
        self.token = token
        self.spender = spender
        self.required = required
        self.available = available
        super().__init__(
            f'insufficient "{spender}" allowance of user "{user}" for token "{token}"',
            details={
                "user": user,
                "token": token,
                "spender": spender,
                "required": required,
                "available": available,
            },
        )


class InsufficientPositionError(SimulationError):
    kind = FailureKind.INSUFFICIENT_POSITION

    def __init__(self, user: str, market_id: str) -> None:
        self.user = user
        self.market_id = market_id
        super().__init__(
            f'insufficient supply position of user "{user}" on market "{market_id}"',
            details={"user": user, "market_id": market_id},
        )


class InsufficientLiquidityError(SimulationError):
    kind = FailureKind.INSUFFICIENT_LIQUIDITY

    def __init__(self, market_id: str) -> None:
        self.market_id = market_id
        super().__init__(
            f'insufficient liquidity on market "{market_id}"',
            details={"market_id": market_id},
        )


class EmptyWithdrawalsError(SimulationError):
    kind = FailureKind.EMPTY_WITHDRAWALS

    def __init__(self, vault: str) -> None:
        self.vault = vault
        super().__init__(f'empty withdrawals for vault "{vault}"', details={"vault": vault})


# -- Fatal: caller / configuration defects ------------------------------------


class UnknownOperationTypeError(SimulationError):
    kind = FailureKind.UNKNOWN_OPERATION_TYPE
    fatal = True

    def __init__(self, operation_type: Any) -> None:
        self.operation_type = operation_type
        super().__init__(
            f'unknown operation type "{operation_type}"',
            details={"operation_type": str(operation_type)},
        )


class MalformedOperationError(SimulationError):
    kind = FailureKind.MALFORMED_OPERATION
    fatal = True

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"malformed operation: {reason}", details={"reason": reason})


# -- Fatal: snapshot preconditions --------------------------------------------


class UnknownEntityError(SimulationError):
    """A referenced entity is missing from the snapshot."""

    kind = FailureKind.UNKNOWN_ENTITY
    fatal = True


class UnknownMarketError(UnknownEntityError):
    def __init__(self, market_id: str) -> None:
        self.market_id = market_id
        super().__init__(f'unknown market "{market_id}"', details={"market_id": market_id})


class UnknownVaultError(UnknownEntityError):
    def __init__(self, vault: str) -> None:
        self.vault = vault
        super().__init__(f'unknown vault "{vault}"', details={"vault": vault})


class UnknownPositionError(UnknownEntityError):
    def __init__(self, user: str, market_id: str) -> None:
        self.user = user
        self.market_id = market_id
        super().__init__(
            f'unknown position of user "{user}" on market "{market_id}"',
            details={"user": user, "market_id": market_id},
        )


class UnknownHoldingError(UnknownEntityError):
    def __init__(self, user: str, token: str) -> None:
        self.user = user
        self.token = token
        super().__init__(
            f'unknown holding of user "{user}" for token "{token}"',
            details={"user": user, "token": token},
        )


class UnknownVaultMarketConfigError(UnknownEntityError):
    def __init__(self, vault: str, market_id: str) -> None:
        self.vault = vault
        self.market_id = market_id
        super().__init__(
            f'unknown config for vault "{vault}" on market "{market_id}"',
            details={"vault": vault, "market_id": market_id},
        )


class UnknownVaultPublicAllocatorConfigError(UnknownEntityError):
    def __init__(self, vault: str) -> None:
        self.vault = vault
        super().__init__(
            f'unknown public allocator config for vault "{vault}"',
            details={"vault": vault},
        )


class UnknownVaultMarketPublicAllocatorConfigError(UnknownEntityError):
    def __init__(self, vault: str, market_id: str) -> None:
        self.vault = vault
        self.market_id = market_id
        super().__init__(
            f'unknown public allocator config for vault "{vault}" on market "{market_id}"',
            details={"vault": vault, "market_id": market_id},
        )
