"""SOURCE: Flux sources that cannot produce an artifact, and deployers pointing at bad sources."""

from __future__ import annotations

from kubelineage.lineage.timing import FLUX_DEPLOYER_KINDS, FLUX_SOURCE_KINDS
from kubelineage.lineage.trace import source_reference
from kubelineage.models.findings import Category, Finding, Severity
from kubelineage.scanner.base import Detector, ScanContext, SnapshotView
from kubelineage.scanner.catalog import SOURCE_MISSING, SOURCE_NOT_READY, SOURCE_SUSPENDED, make_finding, with_detail
from kubelineage.scanner.reconcile import flux_failure

_CLI_SOURCE_KIND = {
    "GitRepository": "git",
    "OCIRepository": "oci",
    "HelmRepository": "helm",
    "HelmChart": "chart",
    "Bucket": "bucket",
}


class SourceDetector(Detector):
    detector_id = "source.artifact"
    category = Category.SOURCE
    resource_dependencies = (
        "GitRepository",
        "OCIRepository",
        "HelmRepository",
        "HelmChart",
        "Bucket",
        "Kustomization",
        "HelmRelease",
    )

    def detect(self, view: SnapshotView, ctx: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for kind in sorted(FLUX_SOURCE_KINDS):
            for resource in view.list(kind):
                failure = flux_failure(resource, ctx)
                if failure is None:
                    continue
                severity = Severity.CRITICAL if failure.stuck else Severity.WARNING
                findings.append(
                    make_finding(
                        SOURCE_NOT_READY,
                        resource,
                        severity,
                        with_detail(f"{kind} not ready ({failure.reason or failure.condition})", failure.message),
                        fix="Check the source URL, credentials and requested revision",
                        command=(
                            f"flux reconcile source {_CLI_SOURCE_KIND[kind]} {resource.name} -n {resource.namespace}"
                        ),
                        reason=failure.reason,
                    )
                )

        for kind in sorted(FLUX_DEPLOYER_KINDS):
            for deployer in view.list(kind):
                if deployer.suspended:
                    continue
                found = source_reference(deployer)
                if found is None:
                    continue
                ref, field = found
                source = view.get(ref.kind, ref.namespace, ref.name)
                if source is None:
                    if not view.available(ref.kind):
                        continue
                    findings.append(
                        make_finding(
                            SOURCE_MISSING,
                            deployer,
                            Severity.CRITICAL,
                            f"{field} points at {ref}, which does not exist",
                            fix=f"Create {ref.kind} {ref.name} in {ref.namespace} or fix {field}",
                            command=f"kubectl get {ref.kind.lower()} -n {ref.namespace}",
                            reason="SourceNotFound",
                        )
                    )
                elif source.suspended:
                    findings.append(
                        make_finding(
                            SOURCE_SUSPENDED,
                            deployer,
                            Severity.CRITICAL,
                            f"{field} points at suspended {ref}; new revisions will never arrive",
                            fix=f"Resume the source or point {field} at an active one",
                            command=(
                                f"flux resume source {_CLI_SOURCE_KIND.get(ref.kind, 'git')} {ref.name} -n {ref.namespace}"
                            ),
                            reason="SourceSuspended",
                        )
                    )
        return findings
