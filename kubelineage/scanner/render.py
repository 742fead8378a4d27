"""RENDER: manifest generation failures that have not yet become stuck."""

from __future__ import annotations

from kubelineage.models.findings import Category, Finding, Severity
from kubelineage.scanner.base import Detector, ScanContext, SnapshotView
from kubelineage.scanner.catalog import RENDER_FAILED, make_finding, with_detail
from kubelineage.scanner.reconcile import RENDER_REASONS, argo_condition, argo_failure, flux_failure, flux_remediation

_ARGO_RENDER_CONDITIONS = ("ComparisonError", "InvalidSpecError")


class RenderFailureDetector(Detector):
    detector_id = "render.build_failed"
    category = Category.RENDER
    resource_dependencies = ("Kustomization", "HelmRelease", "Application")

    def detect(self, view: SnapshotView, ctx: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for kind in ("Kustomization", "HelmRelease"):
            for resource in view.list(kind):
                failure = flux_failure(resource, ctx)
                if failure is None or failure.stuck or failure.reason not in RENDER_REASONS:
                    continue
                fix, command = flux_remediation(resource, failure.reason)
                findings.append(
                    make_finding(
                        RENDER_FAILED,
                        resource,
                        Severity.WARNING,
                        with_detail(f"{kind} failed to render manifests ({failure.reason})", failure.message),
                        fix=fix,
                        command=command,
                        reason=failure.reason,
                    )
                )

        for resource in view.list("Application"):
            failure = argo_failure(resource, ctx)
            if failure is not None and failure.stuck:
                continue
            for cond_type in _ARGO_RENDER_CONDITIONS:
                cond = argo_condition(resource, cond_type)
                if cond is None:
                    continue
                findings.append(
                    make_finding(
                        RENDER_FAILED,
                        resource,
                        Severity.WARNING,
                        with_detail(f"Application manifest generation failed ({cond_type})", str(cond.get("message", ""))),
                        fix="Fix the manifest source; the repo server could not generate manifests",
                        command=f"argocd app get {resource.name} --hard-refresh",
                        reason=cond_type,
                    )
                )
                break
        return findings
