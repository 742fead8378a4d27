"""Transition-time extraction for stuck detection."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from kubelineage.collector.normalize import parse_timestamp
from kubelineage.models.resources import Resource

DEFAULT_STUCK_THRESHOLD = timedelta(minutes=5)

FLUX_DEPLOYER_KINDS = frozenset({"Kustomization", "HelmRelease"})
FLUX_SOURCE_KINDS = frozenset({"GitRepository", "OCIRepository", "HelmRepository", "HelmChart", "Bucket"})
FLUX_KINDS = FLUX_DEPLOYER_KINDS | FLUX_SOURCE_KINDS
ARGO_KINDS = frozenset({"Application"})

_FLUX_CONDITIONS = ("Ready", "Stalled", "Reconciling")
_WORKLOAD_CONDITIONS = ("Ready", "Available")


def _flux_transition(resource: Resource) -> datetime | None:
    if resource.kind not in FLUX_KINDS:
        return None
    times = [
        c.last_transition
        for c in resource.status.conditions
        if c.type in _FLUX_CONDITIONS and c.last_transition is not None
    ]
    if times:
        return max(times)
    raw = resource.status.raw
    for key in ("lastHandledReconcileAt", "lastAttemptedRevisionTime"):
        if (ts := parse_timestamp(raw.get(key))) is not None:
            return ts
    return parse_timestamp((raw.get("artifact") or {}).get("lastUpdateTime"))


def _argo_transition(resource: Resource) -> datetime | None:
    if resource.kind not in ARGO_KINDS:
        return None
    raw = resource.status.raw
    op = raw.get("operationState") or {}
    for value in (op.get("finishedAt"), op.get("startedAt"), raw.get("reconciledAt")):
        if (ts := parse_timestamp(value)) is not None:
            return ts
    return None


def _workload_transition(resource: Resource) -> datetime | None:
    for type_ in _WORKLOAD_CONDITIONS:
        cond = resource.status.condition(type_)
        if cond is not None and cond.last_transition is not None:
            return cond.last_transition
    return None


_EXTRACTORS: tuple[Callable[[Resource], datetime | None], ...] = (
    _flux_transition,
    _argo_transition,
    _workload_transition,
)


def last_transition(resource: Resource) -> datetime | None:
    """Most recent relevant transition: Flux fields, then Argo, then Ready/Available."""
    for extract in _EXTRACTORS:
        if (ts := extract(resource)) is not None:
            return ts
    return None


def elapsed_since(ts: datetime | None, now: datetime) -> timedelta | None:
    if ts is None:
        return None
    return max(now - ts, timedelta(0))


def is_stuck(ready: bool, elapsed: timedelta | None, threshold: timedelta = DEFAULT_STUCK_THRESHOLD) -> bool:
    return not ready and elapsed is not None and elapsed > threshold


def format_duration(value: timedelta) -> str:
    """Render as ``Xs``, ``Xm`` or ``XhYm``."""
    seconds = int(value.total_seconds())
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    return f"{seconds // 3600}h{(seconds % 3600) // 60}m"
