"""CONFIG: settings that reconcile "successfully" while doing the wrong thing.

Only objects that report Ready=True (or Unknown) are checked; a failing
object is already covered by the pipeline detectors.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from kubelineage.models.findings import Category, Finding, Severity
from kubelineage.models.resources import Resource
from kubelineage.scanner.base import Detector, ScanContext, SnapshotView
from kubelineage.scanner.catalog import (
    CONFIG_POSTRENDER_MISMATCH,
    CONFIG_SHORT_TIMEOUT,
    CONFIG_VALUES_OVERLAP,
    CONFIG_VERSION_WILDCARD,
    CONFIG_ZERO_INTERVAL,
    CONFIG_ZERO_REPLICAS,
    make_finding,
    parse_go_duration,
)

_ZERO_INTERVALS = frozenset({"0", "0s", "0m", "0h"})
_VERSION_RANGE_MARKERS = (">=", ">", "^", "~", "*", ".x")
_REPLICA_KEYS = ("replicaCount", "replicas", "minReplicas")
_MIN_TIMEOUT = timedelta(minutes=1)


def _silently_reconciling(resource: Resource) -> bool:
    ready = resource.status.condition("Ready")
    return ready is None or ready.status in ("True", "Unknown")


def _chart_spec(resource: Resource) -> Mapping[str, Any]:
    return (resource.spec.get("chart") or {}).get("spec") or {}


def _postrender_targets(resource: Resource) -> list[str]:
    targets = []
    for renderer in resource.spec.get("postRenderers") or []:
        for patch in (renderer.get("kustomize") or {}).get("patches") or []:
            name = (patch.get("target") or {}).get("name")
            if name:
                targets.append(str(name))
    return targets


class MisconfigurationDetector(Detector):
    detector_id = "config.silent_failure"
    category = Category.CONFIG
    resource_dependencies = ("HelmRelease", "Kustomization", "GitRepository", "OCIRepository", "HelmRepository")

    def detect(self, view: SnapshotView, ctx: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for kind in self.resource_dependencies:
            for resource in view.list(kind):
                if resource.suspended or not _silently_reconciling(resource):
                    continue
                findings.extend(self._check_common(resource))
                if kind == "HelmRelease":
                    findings.extend(self._check_helmrelease(resource))
        return findings

    def _check_common(self, resource: Resource) -> list[Finding]:
        findings: list[Finding] = []
        ns, name, kind = resource.namespace, resource.name, resource.kind
        interval = str(resource.spec.get("interval", "")).strip()
        if interval in _ZERO_INTERVALS:
            findings.append(
                make_finding(
                    CONFIG_ZERO_INTERVAL,
                    resource,
                    Severity.WARNING,
                    f"{kind} interval is {interval}; periodic reconciliation is effectively disabled",
                    fix="Set a non-zero interval such as 10m",
                    command=f"kubectl get {kind.lower()} {name} -n {ns} -o jsonpath='{{.spec.interval}}'",
                    reason="ZeroInterval",
                )
            )

        timeout_raw = str(resource.spec.get("timeout", "")).strip()
        if kind in ("HelmRelease", "Kustomization") and timeout_raw:
            timeout = parse_go_duration(timeout_raw)
            if timeout is not None and timedelta(0) < timeout < _MIN_TIMEOUT:
                findings.append(
                    make_finding(
                        CONFIG_SHORT_TIMEOUT,
                        resource,
                        Severity.WARNING,
                        f"{kind} timeout {timeout_raw} is under one minute; slow rollouts will be reported as failures",
                        fix="Raise spec.timeout to at least 1m (5m for charts with hooks)",
                        reason="ShortTimeout",
                    )
                )
        return findings

    def _check_helmrelease(self, resource: Resource) -> list[Finding]:
        findings: list[Finding] = []
        ns, name = resource.namespace, resource.name
        chart = _chart_spec(resource)

        version = str(chart.get("version", "")).strip()
        if version and any(marker in version for marker in _VERSION_RANGE_MARKERS):
            findings.append(
                make_finding(
                    CONFIG_VERSION_WILDCARD,
                    resource,
                    Severity.WARNING,
                    f"chart version {version!r} is a range; upgrades will be picked up without review",
                    fix="Pin spec.chart.spec.version to an exact version",
                    command=f"flux get hr {name} -n {ns}",
                    reason="VersionRange",
                )
            )

        if resource.spec.get("values") and resource.spec.get("valuesFrom"):
            findings.append(
                make_finding(
                    CONFIG_VALUES_OVERLAP,
                    resource,
                    Severity.INFO,
                    "Both inline values and valuesFrom are set; inline values take precedence",
                    fix="Review merge order: chart defaults <- valuesFrom <- inline values",
                    command=f"helm get values {name} -n {ns}",
                    reason="ValuesPrecedenceRisk",
                )
            )

        chart_name = str(chart.get("chart", ""))
        for target in _postrender_targets(resource):
            if chart_name and target not in (chart_name, name) and chart_name not in target:
                findings.append(
                    make_finding(
                        CONFIG_POSTRENDER_MISMATCH,
                        resource,
                        Severity.WARNING,
                        f"postRenderer patch targets {target!r}, which may not match any resource rendered by the chart",
                        fix="Verify the patch target name against the chart's rendered resources",
                        command=f"kubectl get hr {name} -n {ns} -o yaml | grep -A20 postRenderers",
                        reason="PostRendererNameMismatch",
                    )
                )
                break

        values = resource.spec.get("values") or {}
        if isinstance(values, Mapping):
            for key in _REPLICA_KEYS:
                value = values.get(key)
                if isinstance(value, int | float) and not isinstance(value, bool) and value == 0:
                    findings.append(
                        make_finding(
                            CONFIG_ZERO_REPLICAS,
                            resource,
                            Severity.WARNING,
                            f"values set {key}=0; no pods will run",
                            fix="Set replicaCount >= 1 or use autoscaling",
                            command=f"kubectl get deploy -l app.kubernetes.io/instance={name} -n {ns}",
                            reason="ZeroReplicas",
                        )
                    )
                    break
        return findings
