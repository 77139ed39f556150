"""
Operation dispatcher.

`simulate_operation(operation, snapshot)` is the single entry point. It:

1. Parses the operation if given in wire form.
2. Routes it to the handler registered for its `OperationType`.
3. Rewraps any `SimulationError` with the operation context
   (see `diagnostics.OperationSimulationError`); the failure kind is kept.

The dispatcher holds no state and performs no business logic. Snapshots are
immutable, so concurrent calls (even on the same base snapshot) are safe.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Mapping, Union

from ..core.errors import MalformedOperationError, SimulationError, UnknownOperationTypeError
from ..core.reallocation import reallocate
from ..state.snapshot import Snapshot
from .config import DEFAULT_CONFIG, SimulationConfig
from .diagnostics import wrap_error
from .operations import Operation, OperationType, PublicReallocateArgs, parse_operation, parse_operation_type


logger = logging.getLogger(__name__)

Handler = Callable[[Operation, Snapshot, SimulationConfig], Snapshot]


def _handle_public_reallocate(operation: Operation, snapshot: Snapshot, config: SimulationConfig) -> Snapshot:
    args = operation.args
    if not isinstance(args, PublicReallocateArgs):
        raise MalformedOperationError("args do not match operation type")
    if len(args.withdrawals) > config.max_withdrawals:
        raise MalformedOperationError(
            f"too many withdrawals: {len(args.withdrawals)} > {config.max_withdrawals}"
        )
    result = reallocate(
        snapshot,
        sender=operation.sender,
        vault=operation.address,
        withdrawals=args.withdrawals,
        supply_market_id=args.supply_market_id,
        core_allowance_label=config.core_allowance_label,
        native_address=config.native_address,
        reject_empty_withdrawals=config.reject_empty_withdrawals,
    )
    return result.snapshot


HANDLERS: Dict[OperationType, Handler] = {
    OperationType.METAMORPHO_PUBLIC_REALLOCATE: _handle_public_reallocate,
}


def simulate_operation(
    operation: Union[Operation, Mapping[str, Any]],
    snapshot: Snapshot,
    *,
    config: SimulationConfig = DEFAULT_CONFIG,
) -> Snapshot:
    """
    Simulate `operation` against `snapshot` and return the resulting snapshot.

    `snapshot` is never modified.

    Raises:
        OperationSimulationError: wrapping the specific `SimulationError`
            (cap exceeded, insufficient balance, unknown operation type,
            missing snapshot entity, ...).
    """
    # Rendered in diagnostics: the parsed operation once it exists (wire key
    # order), the caller's input while parsing fails.
    context: Union[Operation, Mapping[str, Any]] = operation
    try:
        op = operation if isinstance(operation, Operation) else parse_operation(operation)
        op_type = parse_operation_type(op.type)
        if op_type is not op.type:
            op = replace(op, type=op_type)
        context = op
        handler = HANDLERS.get(op_type)
        if handler is None:
            raise UnknownOperationTypeError(op_type.value)

        logger.debug(
            "simulating operation",
            extra={"context": {"type": op.type.value, "sender": op.sender, "address": op.address}},
        )
        result = handler(op, snapshot, config)
    except SimulationError as exc:
        wrapped = wrap_error(exc, context)
        logger.info(
            "operation rejected: %s",
            exc.message,
            extra={"context": {"kind": exc.kind.value, "fatal": exc.fatal, **exc.details}},
        )
        if wrapped is exc:
            raise
        raise wrapped from exc

    logger.debug("operation simulated", extra={"context": {"type": op.type.value}})
    return result
