"""Catalogue of finding IDs and shared formatting helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta

from kubelineage.models.findings import Category, Finding, Severity
from kubelineage.models.resources import Resource

_MESSAGE_LIMIT = 100
_GO_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_GO_UNIT_SECONDS = {"ns": 1e-9, "us": 1e-6, "µs": 1e-6, "ms": 1e-3, "s": 1.0, "m": 60.0, "h": 3600.0}


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    category: Category
    title: str


STUCK_HELMRELEASE = CatalogEntry("CCVE-2025-0166", Category.STATE, "HelmRelease stuck reconciling")
STUCK_KUSTOMIZATION = CatalogEntry("CCVE-2025-0012", Category.STATE, "Kustomization stuck reconciling")
STUCK_APPLICATION = CatalogEntry("CCVE-2025-0169", Category.STATE, "Application stuck syncing")

SOURCE_NOT_READY = CatalogEntry("CCVE-2025-0700", Category.SOURCE, "Source artifact not ready")
SOURCE_SUSPENDED = CatalogEntry("CCVE-2025-0666", Category.SOURCE, "Deployer references a suspended source")
SOURCE_MISSING = CatalogEntry("CCVE-2025-0701", Category.SOURCE, "Deployer references a missing source")

RENDER_FAILED = CatalogEntry("CCVE-2025-0702", Category.RENDER, "Manifest build or render failed")
APPLY_FAILED = CatalogEntry("CCVE-2025-0703", Category.APPLY, "Apply, install or upgrade failed")

DRIFT_LAST_APPLIED = CatalogEntry("CCVE-2025-0704", Category.DRIFT, "Live object differs from last-applied configuration")
DRIFT_CONFIGHUB = CatalogEntry("CCVE-2025-0705", Category.DRIFT, "ConfigHub reports drift")
DRIFT_OUT_OF_SYNC = CatalogEntry("CCVE-2025-0706", Category.DRIFT, "Application out of sync")

CONFIG_ZERO_INTERVAL = CatalogEntry("CCVE-2025-0665", Category.CONFIG, "Reconcile interval of zero")
CONFIG_VERSION_WILDCARD = CatalogEntry("CCVE-2025-0671", Category.CONFIG, "Chart version range resolves silently")
CONFIG_SHORT_TIMEOUT = CatalogEntry("CCVE-2025-0672", Category.CONFIG, "Timeout under one minute")
CONFIG_VALUES_OVERLAP = CatalogEntry("CCVE-2025-0670", Category.CONFIG, "Inline values and valuesFrom both set")
CONFIG_POSTRENDER_MISMATCH = CatalogEntry("CCVE-2025-0673", Category.CONFIG, "postRenderer patch matches nothing")
CONFIG_ZERO_REPLICAS = CatalogEntry("CCVE-2025-0674", Category.CONFIG, "Values scale the workload to zero")

DEPEND_OPTIONAL_VALUES = CatalogEntry("CCVE-2025-0662", Category.DEPEND, "Optional valuesFrom target missing")
DEPEND_OPTIONAL_SUBSTITUTE = CatalogEntry("CCVE-2025-0664", Category.DEPEND, "Optional substituteFrom target missing")
DEPEND_MISSING_REFERENCE = CatalogEntry("CCVE-2025-0707", Category.DEPEND, "Workload references a missing object")
DEPEND_CROSS_OWNER = CatalogEntry("CCVE-2025-0708", Category.DEPEND, "Reference crosses ownership boundary")
DEPEND_MISSING_DEPENDENCY = CatalogEntry("CCVE-2025-0709", Category.DEPEND, "dependsOn target missing")

ORPHAN_HPA_TARGET = CatalogEntry("CCVE-2025-0687", Category.ORPHAN, "HPA scale target missing")
ORPHAN_MISSING_OWNER = CatalogEntry("CCVE-2025-0710", Category.ORPHAN, "Owner reference points at a missing object")
ORPHAN_UNMANAGED = CatalogEntry("CCVE-2025-0711", Category.ORPHAN, "Workload has no manager")


def make_finding(
    entry: CatalogEntry,
    resource: Resource,
    severity: Severity,
    message: str,
    fix: str = "",
    command: str = "",
    reason: str = "",
) -> Finding:
    return Finding(
        id=entry.id,
        category=entry.category,
        severity=severity,
        resource=resource.ref,
        message=message,
        fix=fix,
        command=command,
        reason=reason,
    )


def severity_for_age(elapsed: timedelta) -> Severity:
    """Stuck longer than an hour is critical, longer than 15 minutes a warning."""
    if elapsed > timedelta(hours=1):
        return Severity.CRITICAL
    if elapsed > timedelta(minutes=15):
        return Severity.WARNING
    return Severity.INFO


def truncate(message: str, limit: int = _MESSAGE_LIMIT) -> str:
    message = " ".join(message.split())
    if len(message) <= limit:
        return message
    return message[: limit - 3] + "..."


def parse_go_duration(value: str) -> timedelta | None:
    """Parse Go duration strings such as ``30s``, ``1m30s`` or ``500ms``.

    Returns None for anything that is not entirely made of duration parts.
    """
    value = value.strip()
    if value in ("0", ""):
        return timedelta(0) if value == "0" else None
    parts = _GO_DURATION_RE.findall(value)
    if not parts or "".join(n + u for n, u in parts) != value:
        return None
    return timedelta(seconds=sum(float(n) * _GO_UNIT_SECONDS[u] for n, u in parts))


def with_detail(summary: str, detail: str) -> str:
    """``summary: detail`` with the detail truncated, or just ``summary``."""
    detail = truncate(detail) if detail else ""
    return f"{summary}: {detail}" if detail else summary
