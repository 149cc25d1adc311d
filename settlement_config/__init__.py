"""
settlement_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_active_config()`` is the one way services, scripts and request
    handlers obtain settings.  It loads the YAML file, applies environment
    overrides and logs a ``SETTLEMENT_CONFIG_TRACE`` record carrying the
    checksum of the effective settings.

Environment overrides:
    SETTLEMENT_DATABASE_URL / DATABASE_URL   database_url
    PAYROLL_DEDUCTION_CAP_PCT                deduction_cap_pct
    PAYROLL_BATCH_SIZE                       payroll_batch_size

Failure modes:
    - ``FileNotFoundError`` for a missing explicit config path.
    - ``ValueError`` for invalid values, including bad overrides.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path

from settlement_config.loader import (
    compute_checksum,
    load_settlement_config,
    load_yaml_file,
    parse_decimal,
    parse_settlement_config,
)
from settlement_config.schema import PlanSeed, SettlementConfig
from settlement_kernel.logging_config import get_logger

_logger = get_logger("config")


def apply_env_overrides(
    config: SettlementConfig,
    environ: Mapping[str, str] | None = None,
) -> SettlementConfig:
    env = os.environ if environ is None else environ
    changes: dict = {}

    url = env.get("SETTLEMENT_DATABASE_URL") or env.get("DATABASE_URL")
    if url:
        changes["database_url"] = url
    cap = env.get("PAYROLL_DEDUCTION_CAP_PCT")
    if cap:
        changes["deduction_cap_pct"] = parse_decimal(cap, "PAYROLL_DEDUCTION_CAP_PCT")
    batch = env.get("PAYROLL_BATCH_SIZE")
    if batch:
        try:
            changes["payroll_batch_size"] = int(batch)
        except ValueError as exc:
            raise ValueError(f"PAYROLL_BATCH_SIZE must be an integer, got {batch!r}") from exc

    return replace(config, **changes) if changes else config


def get_active_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> SettlementConfig:
    """
    The public configuration entrypoint.

    Args:
        config_path: YAML file to load; the packaged defaults when None.
        environ: Environment mapping; ``os.environ`` when None.
    """
    config = apply_env_overrides(load_settlement_config(config_path), environ)
    # The URL may carry credentials; it is left out of the trace.
    traced = {k: v for k, v in config.as_dict().items() if k != "database_url"}
    _logger.info(
        "SETTLEMENT_CONFIG_TRACE",
        extra={
            "trace_type": "SETTLEMENT_CONFIG_TRACE",
            "checksum": compute_checksum(traced),
            "deduction_cap_pct": str(config.deduction_cap_pct),
            "payroll_batch_size": config.payroll_batch_size,
            "default_plan_count": len(config.default_plans),
            "source": str(config_path) if config_path else "defaults",
        },
    )
    return config


__all__ = [
    "PlanSeed",
    "SettlementConfig",
    "apply_env_overrides",
    "compute_checksum",
    "get_active_config",
    "load_settlement_config",
    "load_yaml_file",
    "parse_settlement_config",
]
