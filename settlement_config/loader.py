"""
Configuration Loader (``settlement_config.loader``).

Responsibility
--------------
Load the YAML settings file and parse it into ``SettlementConfig``.  This
is tooling for ``get_active_config()`` and tests; services receive a
``SettlementConfig`` instead of reading files.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` from the schema dataclasses.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from settlement_config.schema import PlanSeed, SettlementConfig

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def parse_plan_seed(data: dict[str, Any]) -> PlanSeed:
    brackets = data.get("brackets") or []
    if not isinstance(brackets, list):
        raise ValueError(f"brackets of plan '{data.get('name')}' must be a list")
    return PlanSeed(
        name=str(data["name"]),
        role=str(data["role"]).upper(),
        brackets=tuple(dict(b) for b in brackets),
    )


def parse_settlement_config(data: dict[str, Any]) -> SettlementConfig:
    """Build a SettlementConfig from the parsed YAML mapping."""
    payroll = data.get("payroll") or {}
    commission = data.get("commission") or {}
    database = data.get("database") or {}

    return SettlementConfig(
        deduction_cap_pct=parse_decimal(
            payroll.get("deduction_cap_pct", "100"), "deduction_cap_pct"
        ),
        payroll_batch_size=int(payroll.get("batch_size", 500)),
        business_timezone=str(data.get("business_timezone", "UTC")),
        default_plans=tuple(
            parse_plan_seed(p) for p in commission.get("default_plans") or []
        ),
        database_url=database.get("url"),
    )


def load_settlement_config(path: Path | None = None) -> SettlementConfig:
    """Load and parse ``path`` (packaged defaults when None)."""
    return parse_settlement_config(load_yaml_file(path or DEFAULTS_PATH))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialisation; deterministic."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
