"""
Diagnostic rendering of simulation failures.

A failed simulation is reported as the underlying error message followed by
the full operation, serialized so the failure can be reproduced from a log
line:

    max outflow exceeded for vault "0x..." on market "0x..."

    when simulating operation:
    {
      "type": "MetaMorpho_PublicReallocate",
      ...
          "assets": "10000000n"
      ...
    }

Integers are rendered as `"<decimal>n"` strings so they survive JSON
tooling that would otherwise coerce them to floats; `parse_diagnostic_operation`
reverses the encoding.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, Union

from ..core.errors import SimulationError
from .operations import ARGS_TYPES, Operation, OperationType, operation_to_dict


DIAGNOSTIC_SEPARATOR = "\n\nwhen simulating operation:\n"

_BIGINT_RE = re.compile(r"^-?[0-9]+n$")

OperationLike = Union[Operation, Mapping[str, Any]]


class OperationSimulationError(SimulationError):
    """
    A simulation failure augmented with the operation that caused it.

    `kind` and `fatal` are those of the wrapped error, so callers branching on
    the classification see the wrapped failure.
    """

    def __init__(self, error: SimulationError, operation: OperationLike) -> None:
        self.error = error
        self.operation = operation
        self.kind = error.kind
        self.fatal = error.fatal
        super().__init__(format_failure(error, operation), details=dict(error.details))


def _encode_bigints(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return f"{value}n"
    if isinstance(value, Mapping):
        return {str(k): _encode_bigints(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode_bigints(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, float)):
        return value
    # Anything else (bytes, sets, arbitrary objects) comes from malformed input.
    return repr(value)


def _decode_bigints(value: Any) -> Any:
    if isinstance(value, str) and _BIGINT_RE.fullmatch(value):
        return int(value[:-1])
    if isinstance(value, dict):
        return {k: _decode_bigints(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode_bigints(v) for v in value]
    return value


def _operation_data(operation: OperationLike) -> Any:
    if not isinstance(operation, Operation):
        return operation
    if isinstance(operation.type, OperationType) and isinstance(operation.args, ARGS_TYPES[operation.type]):
        return operation_to_dict(operation)
    # Typed operation whose type or args do not line up: render its fields as-is.
    return {
        "type": operation.type,
        "sender": operation.sender,
        "address": operation.address,
        "args": operation.args,
    }


def format_operation(operation: OperationLike) -> str:
    """Indented JSON rendering of an operation with integers as `"<n>n"` strings."""
    data = _operation_data(operation)
    return json.dumps(_encode_bigints(data), indent=2, ensure_ascii=False)


def format_failure(error: SimulationError, operation: OperationLike) -> str:
    return f"{error.message}{DIAGNOSTIC_SEPARATOR}{format_operation(operation)}"


def parse_diagnostic_operation(text: str) -> dict[str, Any]:
    """
    Recover the wire operation from a diagnostic message (or from the bare
    JSON rendered by `format_operation`).
    """
    _, sep, tail = text.partition(DIAGNOSTIC_SEPARATOR)
    payload = tail if sep else text
    return _decode_bigints(json.loads(payload))


def wrap_error(error: SimulationError, operation: OperationLike) -> OperationSimulationError:
    """Attach operation context to `error`. Already-wrapped errors are returned as-is."""
    if isinstance(error, OperationSimulationError):
        return error
    return OperationSimulationError(error, operation)

