"""
Operation envelopes: typed representation and wire (dict) parsing.

Wire format (JSON-compatible, camelCase as emitted by the SDK clients):

    {
      "type": "MetaMorpho_PublicReallocate",
      "sender": "0x<20 bytes>",
      "address": "0x<20 bytes>",            # the vault acted on
      "args": {
        "withdrawals": [{"id": "0x<32 bytes>", "assets": <int>}, ...],
        "supplyMarketId": "0x<32 bytes>"
      }
    }

Parsing is fail-closed: anything unexpected raises `MalformedOperationError`;
an unrecognized `type` raises `UnknownOperationTypeError`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, unique
from typing import Any, Callable, Dict, Union

from ..core.errors import MalformedOperationError, UnknownOperationTypeError
from ..core.reallocation import Withdrawal
from ..state.canonical import require_address, require_market_id


@unique
class OperationType(Enum):
    """One member per simulated operation kind."""

    METAMORPHO_PUBLIC_REALLOCATE = "MetaMorpho_PublicReallocate"


@dataclass(frozen=True)
class PublicReallocateArgs:
    withdrawals: tuple[Withdrawal, ...]
    supply_market_id: str


# Union of per-type argument payloads; extend alongside `OperationType`.
OperationArgs = Union[PublicReallocateArgs]

ARGS_TYPES: Dict[OperationType, type] = {
    OperationType.METAMORPHO_PUBLIC_REALLOCATE: PublicReallocateArgs,
}


@dataclass(frozen=True)
class Operation:
    type: OperationType
    sender: str
    address: str
    args: OperationArgs


def _require_mapping(value: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise MalformedOperationError(f"{name} must be an object")
    for k in value.keys():
        if not isinstance(k, str):
            raise MalformedOperationError(f"{name} keys must be strings")
    return value


def _require_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise MalformedOperationError(f"{name} must be an int")
    if value < 0:
        raise MalformedOperationError(f"{name} must be non-negative")
    return int(value)


def _require_fields(data: Mapping[str, Any], *, name: str, required: tuple[str, ...]) -> None:
    for field in required:
        if field not in data:
            raise MalformedOperationError(f"{name} missing required field: {field}")
    unknown = sorted(set(data) - set(required))
    if unknown:
        raise MalformedOperationError(f"{name} has unknown fields: {', '.join(unknown)}")


def _address(value: Any, *, name: str) -> str:
    try:
        return require_address(value, name=name)
    except (TypeError, ValueError) as exc:
        raise MalformedOperationError(str(exc)) from exc


def _market_id(value: Any, *, name: str) -> str:
    try:
        return require_market_id(value, name=name)
    except (TypeError, ValueError) as exc:
        raise MalformedOperationError(str(exc)) from exc


def _parse_public_reallocate_args(data: Any) -> PublicReallocateArgs:
    data = _require_mapping(data, name="args")
    _require_fields(data, name="args", required=("withdrawals", "supplyMarketId"))

    raw_withdrawals = data["withdrawals"]
    if not isinstance(raw_withdrawals, (list, tuple)):
        raise MalformedOperationError("args.withdrawals must be a list")

    withdrawals = []
    for i, entry in enumerate(raw_withdrawals):
        name = f"args.withdrawals[{i}]"
        entry = _require_mapping(entry, name=name)
        _require_fields(entry, name=name, required=("id", "assets"))
        withdrawals.append(
            Withdrawal(
                market_id=_market_id(entry["id"], name=f"{name}.id"),
                assets=_require_int(entry["assets"], name=f"{name}.assets"),
            )
        )

    return PublicReallocateArgs(
        withdrawals=tuple(withdrawals),
        supply_market_id=_market_id(data["supplyMarketId"], name="args.supplyMarketId"),
    )


def _public_reallocate_args_to_dict(args: PublicReallocateArgs) -> Dict[str, Any]:
    return {
        "withdrawals": [{"id": w.market_id, "assets": w.assets} for w in args.withdrawals],
        "supplyMarketId": args.supply_market_id,
    }


_ARGS_CODECS: Dict[OperationType, tuple[Callable[[Any], Any], Callable[[Any], Dict[str, Any]]]] = {
    OperationType.METAMORPHO_PUBLIC_REALLOCATE: (
        _parse_public_reallocate_args,
        _public_reallocate_args_to_dict,
    ),
}


def parse_operation_type(value: Any) -> OperationType:
    if isinstance(value, OperationType):
        return value
    if not isinstance(value, str):
        raise MalformedOperationError("type must be a string")
    try:
        return OperationType(value)
    except ValueError as exc:
        raise UnknownOperationTypeError(value) from exc


def parse_operation(data: Any) -> Operation:
    """
    Parse a wire operation.

    Raises:
        UnknownOperationTypeError: `type` is not a known operation.
        MalformedOperationError: any other structural problem.
    """
    data = _require_mapping(data, name="operation")
    _require_fields(data, name="operation", required=("type", "sender", "address", "args"))

    op_type = parse_operation_type(data["type"])
    parse_args, _ = _ARGS_CODECS[op_type]
    return Operation(
        type=op_type,
        sender=_address(data["sender"], name="sender"),
        address=_address(data["address"], name="address"),
        args=parse_args(data["args"]),
    )


def operation_to_dict(operation: Operation) -> Dict[str, Any]:
    """Wire form of `operation` (key order: type, sender, address, args)."""
    _, args_to_dict = _ARGS_CODECS[operation.type]
    return {
        "type": operation.type.value,
        "sender": operation.sender,
        "address": operation.address,
        "args": args_to_dict(operation.args),
    }


def public_reallocate(
    *, sender: str, vault: str, withdrawals: list[tuple[str, int]], supply_market_id: str
) -> Operation:
    """Convenience constructor for a public reallocation operation."""
    return Operation(
        type=OperationType.METAMORPHO_PUBLIC_REALLOCATE,
        sender=sender,
        address=vault,
        args=PublicReallocateArgs(
            withdrawals=tuple(Withdrawal(market_id=m, assets=a) for m, a in withdrawals),
            supply_market_id=supply_market_id,
        ),
    )
