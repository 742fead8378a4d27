"""Reconciliation failure extraction shared by the STATE, RENDER, APPLY and DRIFT detectors.

A failing deployer produces exactly one pipeline finding: STATE once it has
been failing longer than the stuck threshold, otherwise RENDER, APPLY or
DRIFT depending on the reason.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from kubelineage.collector.normalize import parse_timestamp
from kubelineage.models.resources import Resource
from kubelineage.scanner.base import ScanContext

RENDER_REASONS = frozenset({"BuildFailed", "ValuesError", "RenderFailed", "PostRendererFailed", "ChartLoadFailed"})
APPLY_REASONS = frozenset(
    {
        "ReconciliationFailed",
        "PruneFailed",
        "HealthCheckFailed",
        "InstallFailed",
        "UpgradeFailed",
        "RollbackFailed",
        "UninstallFailed",
    }
)

_ARGO_FAILED_PHASES = ("Running", "Error", "Failed")
_ARGO_UNHEALTHY = ("Degraded", "Missing")

_HELMRELEASE_FIXES = {
    "UpgradeFailed": "Check Helm release history; rollback if needed; verify chart values",
    "InstallFailed": "Check the install error in the release status; verify chart values and CRDs",
}
_KUSTOMIZATION_FIXES = {
    "BuildFailed": "Fix the kustomization build error; reproduce locally with 'kustomize build'",
    "HealthCheckFailed": "Inspect the health of applied workloads; check pod events and readiness probes",
    "ArtifactFailed": "Source artifact unavailable; check the referenced source's status",
    "DependencyNotReady": "Reconcile the Kustomizations listed in dependsOn first",
    "ReconciliationFailed": "Inspect the apply error; validate manifests against the cluster's API",
    "PruneFailed": "Check for finalizers blocking deletion of pruned objects",
}
_DEFAULT_FLUX_FIX = "Force a reconciliation with a source refresh"


@dataclass(frozen=True)
class ReconcileFailure:
    condition: str
    reason: str
    message: str
    elapsed: timedelta | None
    stuck: bool


def _elapsed(ts: datetime | None, ctx: ScanContext) -> timedelta | None:
    if ts is None:
        return None
    return max(ctx.now - ts, timedelta(0))


def flux_failure(resource: Resource, ctx: ScanContext) -> ReconcileFailure | None:
    """Ready=False or Stalled=True on a non-suspended Flux object."""
    if resource.suspended:
        return None
    ready = resource.status.condition("Ready")
    stalled = resource.status.condition("Stalled")
    if stalled is not None and stalled.is_true:
        cond = stalled
    elif ready is not None and ready.is_false:
        cond = ready
    else:
        return None
    elapsed = _elapsed(cond.last_transition, ctx)
    return ReconcileFailure(
        condition=f"{cond.type}={cond.status}",
        reason=cond.reason,
        message=cond.message,
        elapsed=elapsed,
        stuck=elapsed is not None and elapsed > ctx.stuck_threshold,
    )


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key) or {}
    return value if isinstance(value, Mapping) else {}


def argo_failure(resource: Resource, ctx: ScanContext) -> ReconcileFailure | None:
    """A stuck or failed operation, or an unhealthy/out-of-sync application."""
    raw = resource.status.raw
    op = _section(raw, "operationState")
    phase = str(op.get("phase") or "")
    if phase in _ARGO_FAILED_PHASES:
        elapsed = _elapsed(parse_timestamp(op.get("startedAt")), ctx)
        stuck = elapsed is not None and elapsed > ctx.stuck_threshold
        # A running operation is only a failure once it has overstayed.
        if phase != "Running" or stuck:
            return ReconcileFailure(
                condition=f"operationState.phase={phase}",
                reason=phase,
                message=str(op.get("message") or ""),
                elapsed=elapsed,
                stuck=stuck,
            )

    health = str(_section(raw, "health").get("status") or "")
    sync = str(_section(raw, "sync").get("status") or "")
    if health in _ARGO_UNHEALTHY or sync == "OutOfSync":
        elapsed = _elapsed(parse_timestamp(raw.get("reconciledAt")), ctx)
        reason = health if health in _ARGO_UNHEALTHY else "OutOfSync"
        condition = f"health={health}" if health in _ARGO_UNHEALTHY else "sync=OutOfSync"
        return ReconcileFailure(
            condition=condition,
            reason=reason,
            message=str(_section(raw, "health").get("message") or ""),
            elapsed=elapsed,
            stuck=elapsed is not None and elapsed > ctx.stuck_threshold,
        )
    return None


def argo_condition(resource: Resource, type_: str) -> Mapping[str, Any] | None:
    """Argo Application conditions are a list of {type, message} without status."""
    for cond in resource.status.raw.get("conditions") or []:
        if isinstance(cond, Mapping) and cond.get("type") == type_:
            return cond
    return None


def flux_remediation(resource: Resource, reason: str) -> tuple[str, str]:
    """(fix, command) for a failing Kustomization or HelmRelease."""
    ns, name = resource.namespace, resource.name
    if resource.kind == "HelmRelease":
        fix = _HELMRELEASE_FIXES.get(reason, _DEFAULT_FLUX_FIX)
        if reason == "UpgradeFailed":
            return fix, f"flux suspend hr {name} -n {ns} && flux resume hr {name} -n {ns}"
        return fix, f"flux reconcile hr {name} -n {ns} --with-source"
    fix = _KUSTOMIZATION_FIXES.get(reason, _DEFAULT_FLUX_FIX)
    return fix, f"flux reconcile ks {name} -n {ns} --with-source"


def argo_remediation(resource: Resource, reason: str) -> tuple[str, str]:
    name = resource.name
    if reason == "Running":
        return "Terminate the stuck operation, then sync again", f"argocd app terminate-op {name}"
    if reason in ("Error", "Failed"):
        return "Retry the sync and inspect the operation message", f"argocd app sync {name} --retry-limit 3"
    if reason == "OutOfSync":
        return "Review the diff, then sync", f"argocd app diff {name} && argocd app sync {name}"
    return "Check the health of the application's resources", f"argocd app get {name}"
