"""APPLY: failures applying rendered manifests that have not yet become stuck."""

from __future__ import annotations

from kubelineage.models.findings import Category, Finding, Severity
from kubelineage.scanner.base import Detector, ScanContext, SnapshotView
from kubelineage.scanner.catalog import APPLY_FAILED, make_finding, with_detail
from kubelineage.scanner.reconcile import (
    APPLY_REASONS,
    argo_condition,
    argo_failure,
    argo_remediation,
    flux_failure,
    flux_remediation,
)


class ApplyFailureDetector(Detector):
    detector_id = "apply.failed"
    category = Category.APPLY
    resource_dependencies = ("Kustomization", "HelmRelease", "Application")

    def detect(self, view: SnapshotView, ctx: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for kind in ("Kustomization", "HelmRelease"):
            for resource in view.list(kind):
                failure = flux_failure(resource, ctx)
                if failure is None or failure.stuck or failure.reason not in APPLY_REASONS:
                    continue
                fix, command = flux_remediation(resource, failure.reason)
                findings.append(
                    make_finding(
                        APPLY_FAILED,
                        resource,
                        Severity.WARNING,
                        with_detail(f"{kind} apply failed ({failure.reason})", failure.message),
                        fix=fix,
                        command=command,
                        reason=failure.reason,
                    )
                )

        for resource in view.list("Application"):
            failure = argo_failure(resource, ctx)
            if failure is not None and failure.stuck:
                continue
            if failure is not None and failure.reason in ("Error", "Failed"):
                fix, command = argo_remediation(resource, failure.reason)
                findings.append(
                    make_finding(
                        APPLY_FAILED,
                        resource,
                        Severity.WARNING,
                        with_detail(f"Application sync {failure.reason.lower()}", failure.message),
                        fix=fix,
                        command=command,
                        reason=failure.reason,
                    )
                )
            elif (cond := argo_condition(resource, "SyncError")) is not None:
                fix, command = argo_remediation(resource, "Error")
                findings.append(
                    make_finding(
                        APPLY_FAILED,
                        resource,
                        Severity.WARNING,
                        with_detail("Application sync error", str(cond.get("message", ""))),
                        fix=fix,
                        command=command,
                        reason="SyncError",
                    )
                )
        return findings
