"""
Simulation engine configuration.

`SimulationConfig` is a frozen dataclass; `load_config()` reads it from a YAML
file, e.g.:

    core_allowance_label: morpho
    native_address: "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
    max_withdrawals: 128
    reject_empty_withdrawals: false
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Union

import yaml

from ..state.canonical import require_address
from ..state.entities import CORE_ALLOWANCE_LABEL, NATIVE_ADDRESS


@dataclass(frozen=True)
class SimulationConfig:
    # Spender key of the lending core in `Holding.erc20_allowances`.
    core_allowance_label: str = CORE_ALLOWANCE_LABEL
    # Token address under which native-currency balances are held.
    native_address: str = NATIVE_ADDRESS

    # Upper bound on withdrawal entries per reallocation (input size guard).
    max_withdrawals: int = 128

    # Policy for a reallocation without withdrawals:
    # - False: accepted; markets are untouched but the fee is still charged.
    # - True: rejected with `EmptyWithdrawalsError`.
    reject_empty_withdrawals: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.core_allowance_label, str) or not self.core_allowance_label:
            raise ValueError("core_allowance_label must be a non-empty string")
        require_address(self.native_address, name="native_address")
        if (
            not isinstance(self.max_withdrawals, int)
            or isinstance(self.max_withdrawals, bool)
            or self.max_withdrawals <= 0
        ):
            raise ValueError("max_withdrawals must be a positive int")
        if not isinstance(self.reject_empty_withdrawals, bool):
            raise TypeError("reject_empty_withdrawals must be a bool")


DEFAULT_CONFIG = SimulationConfig()

_FIELD_NAMES = frozenset(f.name for f in fields(SimulationConfig))


def config_from_mapping(data: Mapping[str, Any]) -> SimulationConfig:
    if not isinstance(data, Mapping):
        raise TypeError("config must be a mapping")
    unknown = sorted(set(data) - _FIELD_NAMES)
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(map(str, unknown))}")
    return SimulationConfig(**dict(data))


def load_config(path: Union[str, Path]) -> SimulationConfig:
    """Load a `SimulationConfig` from a YAML file. An empty file yields the defaults."""
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if obj is None:
        return DEFAULT_CONFIG
    return config_from_mapping(obj)
