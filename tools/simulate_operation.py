#!/usr/bin/env python3
"""
Simulate one operation against a snapshot file and print the resulting snapshot.

Usage:
    python3 tools/simulate_operation.py --snapshot snap.yaml --operation op.json [--config sim.yaml]

Exit codes: 0 on success, 1 when the operation is rejected, 2 for fatal
failures (unknown operation type, malformed input, missing snapshot entity).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.core.errors import SimulationError
from src.integration.config import DEFAULT_CONFIG, load_config
from src.integration.logging import setup_logging
from src.integration.simulator import simulate_operation
from src.integration.snapshot_codec import dump_snapshot_json, load_snapshot, snapshot_commitment


logger = logging.getLogger("simulate_operation")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Simulate an operation against a snapshot.")
    ap.add_argument("--snapshot", required=True, help="Snapshot file (.json, .yaml or .yml).")
    ap.add_argument("--operation", required=True, help="Operation JSON file ('-' for stdin).")
    ap.add_argument("--config", default=None, help="Optional YAML simulation config.")
    ap.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines on stderr.")
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    return ap.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, json_format=args.json_logs)

    try:
        config = load_config(args.config) if args.config else DEFAULT_CONFIG
        snapshot = load_snapshot(args.snapshot)
        if args.operation == "-":
            operation = json.load(sys.stdin)
        else:
            operation = json.loads(Path(args.operation).read_text(encoding="utf-8"))
    except (OSError, ValueError, TypeError, yaml.YAMLError) as exc:
        logger.error("failed to load inputs: %s", exc)
        return 2

    try:
        result = simulate_operation(operation, snapshot, config=config)
    except SimulationError as exc:
        print(exc.message, file=sys.stderr)
        return 2 if exc.fatal else 1

    print(dump_snapshot_json(result))
    print(f"commitment: {snapshot_commitment(result)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
