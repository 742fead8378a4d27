"""STATE: deployers that have been failing longer than the stuck threshold."""

from __future__ import annotations

from kubelineage.lineage.timing import format_duration
from kubelineage.models.findings import Category, Finding
from kubelineage.observability.logging import get_logger
from kubelineage.scanner.base import Detector, ScanContext, SnapshotView
from kubelineage.scanner.catalog import (
    STUCK_APPLICATION,
    STUCK_HELMRELEASE,
    STUCK_KUSTOMIZATION,
    make_finding,
    severity_for_age,
    with_detail,
)
from kubelineage.scanner.reconcile import argo_failure, argo_remediation, flux_failure, flux_remediation

_logger = get_logger("scanner.state")

_FLUX_ENTRIES = (("HelmRelease", STUCK_HELMRELEASE), ("Kustomization", STUCK_KUSTOMIZATION))


class StuckReconciliationDetector(Detector):
    """Flux HelmReleases/Kustomizations and Argo Applications stuck past the threshold."""

    detector_id = "state.stuck_reconciliation"
    category = Category.STATE
    resource_dependencies = ("HelmRelease", "Kustomization", "Application")

    def detect(self, view: SnapshotView, ctx: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for kind, entry in _FLUX_ENTRIES:
            for resource in view.list(kind):
                failure = flux_failure(resource, ctx)
                if failure is None or not failure.stuck or failure.elapsed is None:
                    continue
                fix, command = flux_remediation(resource, failure.reason)
                summary = (
                    f"{kind} stuck for {format_duration(failure.elapsed)} "
                    f"({failure.condition}, reason {failure.reason or 'Unknown'})"
                )
                findings.append(
                    make_finding(
                        entry,
                        resource,
                        severity_for_age(failure.elapsed),
                        with_detail(summary, failure.message),
                        fix=fix,
                        command=command,
                        reason=failure.reason,
                    )
                )

        for resource in view.list("Application"):
            failure = argo_failure(resource, ctx)
            if failure is None or not failure.stuck or failure.elapsed is None:
                continue
            fix, command = argo_remediation(resource, failure.reason)
            summary = f"Application stuck for {format_duration(failure.elapsed)} ({failure.condition})"
            findings.append(
                make_finding(
                    STUCK_APPLICATION,
                    resource,
                    severity_for_age(failure.elapsed),
                    with_detail(summary, failure.message),
                    fix=fix,
                    command=command,
                    reason=failure.reason,
                )
            )

        if findings:
            _logger.debug("stuck reconciliations found", count=len(findings))
        return findings
