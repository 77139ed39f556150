"""
Core simulation algorithms

Only leaf modules are re-exported here; the staged accounting steps
(`markets`, `tokens`, `reallocation`) are imported from their modules.
"""

from .errors import (
    CapExceededError,
    EmptyWithdrawalsError,
    FailureKind,
    FlowDirection,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InsufficientLiquidityError,
    InsufficientPositionError,
    MalformedOperationError,
    SimulationError,
    UnknownEntityError,
    UnknownOperationTypeError,
)
from .shares import (
    VIRTUAL_ASSETS,
    VIRTUAL_SHARES,
    assets_to_shares,
    shares_to_assets,
    to_assets_down,
    to_assets_up,
    to_shares_down,
    to_shares_up,
)
from .caps import check_inflow, check_outflow

__all__ = [
    "CapExceededError",
    "EmptyWithdrawalsError",
    "FailureKind",
    "FlowDirection",
    "InsufficientAllowanceError",
    "InsufficientBalanceError",
    "InsufficientLiquidityError",
    "InsufficientPositionError",
    "MalformedOperationError",
    "SimulationError",
    "UnknownEntityError",
    "UnknownOperationTypeError",
    "VIRTUAL_ASSETS",
    "VIRTUAL_SHARES",
    "assets_to_shares",
    "shares_to_assets",
    "to_assets_down",
    "to_assets_up",
    "to_shares_down",
    "to_shares_up",
    "check_inflow",
    "check_outflow",
]
