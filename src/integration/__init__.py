"""
Simulation shell: operation parsing, dispatch, diagnostics, config and snapshot I/O.
"""

from .config import DEFAULT_CONFIG, SimulationConfig, config_from_mapping, load_config
from .diagnostics import OperationSimulationError, format_failure, parse_diagnostic_operation
from .logging import setup_logging
from .operations import (
    Operation,
    OperationType,
    PublicReallocateArgs,
    operation_to_dict,
    parse_operation,
    public_reallocate,
)
from .simulator import HANDLERS, simulate_operation
from .snapshot_codec import (
    dump_snapshot_json,
    load_snapshot,
    snapshot_commitment,
    snapshot_from_dict,
    snapshot_to_dict,
)

__all__ = [
    "DEFAULT_CONFIG",
    "SimulationConfig",
    "config_from_mapping",
    "load_config",
    "OperationSimulationError",
    "format_failure",
    "parse_diagnostic_operation",
    "setup_logging",
    "Operation",
    "OperationType",
    "PublicReallocateArgs",
    "operation_to_dict",
    "parse_operation",
    "public_reallocate",
    "HANDLERS",
    "simulate_operation",
    "dump_snapshot_json",
    "load_snapshot",
    "snapshot_commitment",
    "snapshot_from_dict",
    "snapshot_to_dict",
]
