"""DRIFT: live state diverging from what was last declared."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from typing import Any

from kubelineage.lineage.trace import LAST_APPLIED, confighub_context
from kubelineage.models.findings import Category, Finding, Severity
from kubelineage.models.resources import Resource
from kubelineage.observability.logging import get_logger
from kubelineage.scanner.base import Detector, ScanContext, SnapshotView
from kubelineage.scanner.catalog import (
    DRIFT_CONFIGHUB,
    DRIFT_LAST_APPLIED,
    DRIFT_OUT_OF_SYNC,
    make_finding,
    truncate,
)
from kubelineage.scanner.reconcile import argo_failure, argo_remediation

_logger = get_logger("scanner.drift")

_LISTED_CHANGES = 3


def diff_declared(declared: Any, live: Any, path: str) -> Iterator[tuple[str, Any, Any]]:
    """Yield ``(path, declared, live)`` for every declared leaf the live object disagrees with.

    Fields present only in the live object (server defaults, status) are
    ignored; only what was declared is checked.
    """
    if isinstance(declared, Mapping):
        if not isinstance(live, Mapping):
            yield path, declared, live
            return
        for key in sorted(declared):
            yield from diff_declared(declared[key], live.get(key), f"{path}.{key}")
    elif isinstance(declared, list):
        if not isinstance(live, list) or len(live) != len(declared):
            yield path, f"{len(declared)} items", f"{len(live) if isinstance(live, list) else 0} items"
            return
        for idx, (d_item, l_item) in enumerate(zip(declared, live, strict=True)):
            yield from diff_declared(d_item, l_item, f"{path}[{idx}]")
    elif declared != live:
        yield path, declared, live


def last_applied_changes(resource: Resource) -> list[tuple[str, Any, Any]]:
    raw = resource.annotations.get(LAST_APPLIED)
    if not raw:
        return []
    try:
        declared = json.loads(raw)
    except ValueError:
        _logger.debug("unparseable last-applied configuration", kind=resource.kind, name=resource.name)
        return []
    if not isinstance(declared, Mapping):
        return []
    changes = list(diff_declared(declared.get("spec") or {}, resource.spec, "spec"))
    declared_labels = (declared.get("metadata") or {}).get("labels") or {}
    changes.extend(diff_declared(declared_labels, dict(resource.labels), "metadata.labels"))
    return changes


class DriftDetector(Detector):
    detector_id = "drift.declared_state"
    category = Category.DRIFT
    resource_dependencies = (
        "Deployment",
        "StatefulSet",
        "DaemonSet",
        "Service",
        "ConfigMap",
        "HelmRelease",
        "Kustomization",
        "Application",
    )

    def detect(self, view: SnapshotView, ctx: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for kind in self.resource_dependencies:
            for resource in view.list(kind):
                findings.extend(self._check_resource(resource, ctx))
        return findings

    def _check_resource(self, resource: Resource, ctx: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        changes = last_applied_changes(resource)
        if changes:
            listed = ", ".join(f"{p} (declared {d!r}, live {v!r})" for p, d, v in changes[:_LISTED_CHANGES])
            more = f" and {len(changes) - _LISTED_CHANGES} more" if len(changes) > _LISTED_CHANGES else ""
            findings.append(
                make_finding(
                    DRIFT_LAST_APPLIED,
                    resource,
                    Severity.WARNING,
                    truncate(f"{len(changes)} field(s) drifted from last-applied configuration: {listed}{more}"),
                    fix="Re-apply the declared manifest, or update the manifest to match the live change",
                    command=(
                        f"kubectl apply view-last-applied {resource.kind.lower()}/{resource.name} -n {resource.namespace}"
                    ),
                    reason="LastAppliedDrift",
                )
            )

        hub = confighub_context(resource)
        if hub is not None and hub.drift_detected:
            revisions = ""
            if hub.revision or hub.live_revision:
                revisions = f" (revision {hub.revision or '?'}, live {hub.live_revision or '?'})"
            findings.append(
                make_finding(
                    DRIFT_CONFIGHUB,
                    resource,
                    Severity.WARNING,
                    f"ConfigHub unit {hub.unit_slug} reports drift{revisions}",
                    fix=f"Reconcile the unit in ConfigHub{': ' + hub.remediation_url if hub.remediation_url else ''}",
                    reason="DriftDetected",
                )
            )

        if resource.kind == "Application":
            failure = argo_failure(resource, ctx)
            if failure is not None and not failure.stuck and failure.reason == "OutOfSync":
                fix, command = argo_remediation(resource, failure.reason)
                findings.append(
                    make_finding(
                        DRIFT_OUT_OF_SYNC,
                        resource,
                        Severity.INFO,
                        "Application is out of sync with its source",
                        fix=fix,
                        command=command,
                        reason="OutOfSync",
                    )
                )
        return findings
