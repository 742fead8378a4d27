"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re
from datetime import timedelta

from kubelineage.models.config import (
    CollectorConfig,
    KubeLineageConfig,
    LineageConfig,
    LogConfig,
    QueryConfig,
    ScannerConfig,
)

_DURATION_RE = re.compile(r"^([0-9]+)(s|m|h)$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600}
_MAX_THRESHOLD = timedelta(hours=24)
_VALID_CATEGORIES = {"SOURCE", "RENDER", "APPLY", "DRIFT", "CONFIG", "DEPEND", "STATE", "ORPHAN"}


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBELINEAGE_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_duration(value: str) -> str:
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"Invalid duration format: {value}")
    if duration_to_timedelta(value) > _MAX_THRESHOLD or int(match.group(1)) == 0:
        raise ValueError(f"Duration out of range (1s..24h): {value}")
    return value


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_categories(value: str) -> tuple[str, ...]:
    names = tuple(part.strip().upper() for part in value.split(",") if part.strip())
    unknown = [n for n in names if n not in _VALID_CATEGORIES]
    if unknown:
        raise ValueError(f"Unknown scan categories: {', '.join(unknown)}")
    return names


def duration_to_timedelta(value: str) -> timedelta:
    """Convert an ``Ns``/``Nm``/``Nh`` string into a timedelta."""
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"Invalid duration format: {value}")
    return timedelta(seconds=int(match.group(1)) * _UNIT_SECONDS[match.group(2)])


def load_config() -> KubeLineageConfig:
    """Load configuration from KUBELINEAGE_* environment variables."""
    return KubeLineageConfig(
        cluster_name=_env("CLUSTER_NAME", ""),
        lineage=LineageConfig(
            stuck_threshold=_validate_duration(_env("STUCK_THRESHOLD", "5m")),
            max_hops=_env_int("TRACE_MAX_HOPS", 16, min_val=1, max_val=64),
            argocd_namespace=_env("ARGOCD_NAMESPACE", "argocd"),
        ),
        scanner=ScannerConfig(
            workers=_env_int("SCAN_WORKERS", 8, min_val=1, max_val=32),
            categories=_validate_categories(_env("SCAN_CATEGORIES", "")),
        ),
        collector=CollectorConfig(
            concurrency=_env_int("COLLECTOR_CONCURRENCY", 8, min_val=1, max_val=64),
            namespace=_env("COLLECTOR_NAMESPACE", ""),
        ),
        query=QueryConfig(
            saved_queries_path=_env("SAVED_QUERIES_PATH", "~/.kubelineage/queries.yaml"),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
