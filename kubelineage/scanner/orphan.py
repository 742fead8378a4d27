"""ORPHAN: objects whose owner or target is gone, and workloads nothing manages."""

from __future__ import annotations

from kubelineage.models.findings import Category, Finding, Severity
from kubelineage.models.ownership import OwnerType
from kubelineage.ownership.classifier import classify
from kubelineage.ownership.detectors import select_owner_ref
from kubelineage.scanner.base import Detector, ScanContext, SnapshotView
from kubelineage.scanner.catalog import ORPHAN_HPA_TARGET, ORPHAN_MISSING_OWNER, ORPHAN_UNMANAGED, make_finding

_SCALABLE_KINDS = ("Deployment", "StatefulSet", "ReplicaSet")
_OWNED_KINDS = ("ReplicaSet", "Pod", "Job")
_TOP_LEVEL_KINDS = ("Deployment", "StatefulSet", "DaemonSet", "CronJob")
_SYSTEM_NAMESPACES = frozenset({"kube-system", "kube-public", "kube-node-lease"})


class OrphanDetector(Detector):
    detector_id = "orphan.dangling"
    category = Category.ORPHAN
    resource_dependencies = (
        "HorizontalPodAutoscaler",
        "Deployment",
        "StatefulSet",
        "DaemonSet",
        "ReplicaSet",
        "Pod",
        "Job",
        "CronJob",
    )

    def detect(self, view: SnapshotView, ctx: ScanContext) -> list[Finding]:
        findings: list[Finding] = []

        for hpa in view.list("HorizontalPodAutoscaler"):
            target = hpa.spec.get("scaleTargetRef") or {}
            kind, name = str(target.get("kind", "")), str(target.get("name", ""))
            if kind not in _SCALABLE_KINDS or not name or not view.available(kind):
                continue
            if view.get(kind, hpa.namespace, name) is None:
                findings.append(
                    make_finding(
                        ORPHAN_HPA_TARGET,
                        hpa,
                        Severity.WARNING,
                        f"scaleTargetRef {kind}/{name} does not exist; the autoscaler does nothing",
                        fix="Delete the HPA or point scaleTargetRef at an existing workload",
                        command=f"kubectl describe hpa {hpa.name} -n {hpa.namespace}",
                        reason="ScaleTargetNotFound",
                    )
                )

        for kind in _OWNED_KINDS:
            for resource in view.list(kind):
                ref = select_owner_ref(resource.owner_refs)
                if ref is None or ref.kind not in self.resource_dependencies or not view.available(ref.kind):
                    continue
                if view.get(ref.kind, resource.namespace, ref.name) is not None:
                    continue
                findings.append(
                    make_finding(
                        ORPHAN_MISSING_OWNER,
                        resource,
                        Severity.WARNING,
                        f"owner {ref.kind}/{ref.name} no longer exists",
                        fix="Delete the leftover object or recreate its owner",
                        command=f"kubectl get {kind.lower()} {resource.name} -n {resource.namespace} -o yaml",
                        reason="OwnerNotFound",
                    )
                )

        for kind in _TOP_LEVEL_KINDS:
            for resource in view.list(kind):
                if resource.namespace in _SYSTEM_NAMESPACES:
                    continue
                if classify(resource).type is not OwnerType.NATIVE:
                    continue
                findings.append(
                    make_finding(
                        ORPHAN_UNMANAGED,
                        resource,
                        Severity.INFO,
                        f"{kind} is not managed by GitOps, Helm, Terraform or a controller",
                        fix="Bring it under a GitOps source, or delete it if it is a leftover",
                        reason="Unmanaged",
                    )
                )
        return findings
