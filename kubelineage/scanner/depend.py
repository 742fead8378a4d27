"""DEPEND: references to objects that are missing or owned by someone else."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from kubelineage.lineage.crossref import extract_cross_references
from kubelineage.models.findings import Category, Finding, Severity
from kubelineage.models.lineage import CrossReference, ReferenceStatus
from kubelineage.models.ownership import NATIVE, Ownership
from kubelineage.models.resources import LineageRef, Resource
from kubelineage.ownership.classifier import classify
from kubelineage.scanner.base import Detector, ScanContext, SnapshotView
from kubelineage.scanner.catalog import (
    DEPEND_CROSS_OWNER,
    DEPEND_MISSING_DEPENDENCY,
    DEPEND_MISSING_REFERENCE,
    DEPEND_OPTIONAL_SUBSTITUTE,
    DEPEND_OPTIONAL_VALUES,
    CatalogEntry,
    make_finding,
)

_WORKLOAD_KINDS = ("Deployment", "StatefulSet", "DaemonSet", "CronJob", "Job", "Pod")


def _entries(value: Any) -> Iterable[Mapping[str, Any]]:
    if not isinstance(value, list):
        return ()
    return [item for item in value if isinstance(item, Mapping)]


def _ready_or_unknown(resource: Resource) -> bool:
    ready = resource.status.condition("Ready")
    return ready is None or ready.status in ("True", "Unknown")


class DependencyDetector(Detector):
    detector_id = "depend.references"
    category = Category.DEPEND
    resource_dependencies = (
        "HelmRelease",
        "Kustomization",
        "ConfigMap",
        "Secret",
        *_WORKLOAD_KINDS,
    )

    def detect(self, view: SnapshotView, ctx: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for resource in view.list("HelmRelease"):
            findings.extend(self._check_optional_sources(view, resource, resource.spec.get("valuesFrom"), "valuesFrom"))
            findings.extend(self._check_depends_on(view, resource))
        for resource in view.list("Kustomization"):
            post_build = resource.spec.get("postBuild") or {}
            findings.extend(
                self._check_optional_sources(view, resource, post_build.get("substituteFrom"), "postBuild.substituteFrom")
            )
            findings.extend(self._check_depends_on(view, resource))
        for kind in _WORKLOAD_KINDS:
            for resource in view.list(kind):
                # Owned pods and jobs repeat their controller's template.
                if kind in ("Pod", "Job") and resource.owner_refs:
                    continue
                findings.extend(self._check_workload(view, resource))
        return findings

    def _check_optional_sources(
        self, view: SnapshotView, resource: Resource, sources: Any, field: str
    ) -> list[Finding]:
        if resource.suspended or not _ready_or_unknown(resource):
            return []
        entry: CatalogEntry = DEPEND_OPTIONAL_VALUES if field == "valuesFrom" else DEPEND_OPTIONAL_SUBSTITUTE
        findings: list[Finding] = []
        for source in _entries(sources):
            kind, name = str(source.get("kind", "")), str(source.get("name", ""))
            if not source.get("optional") or kind not in ("ConfigMap", "Secret") or not name:
                continue
            if not view.available(kind) or view.get(kind, resource.namespace, name) is not None:
                continue
            findings.append(
                make_finding(
                    entry,
                    resource,
                    Severity.CRITICAL,
                    f"optional {field} {kind}/{name} does not exist; {resource.kind} reconciles without it",
                    fix=f"Create {kind} {name} in {resource.namespace} or drop optional: true so the failure is visible",
                    command=f"kubectl get {kind.lower()} {name} -n {resource.namespace}",
                    reason="OptionalSourceMissing",
                )
            )
        return findings

    def _check_depends_on(self, view: SnapshotView, resource: Resource) -> list[Finding]:
        if not view.available(resource.kind):
            return []
        findings: list[Finding] = []
        for dep in _entries(resource.spec.get("dependsOn")):
            name = str(dep.get("name", ""))
            namespace = str(dep.get("namespace") or resource.namespace)
            if not name or view.get(resource.kind, namespace, name) is not None:
                continue
            ref = LineageRef(kind=resource.kind, name=name, namespace=namespace)
            findings.append(
                make_finding(
                    DEPEND_MISSING_DEPENDENCY,
                    resource,
                    Severity.CRITICAL,
                    f"dependsOn {ref} does not exist; {resource.kind} will wait forever",
                    fix=f"Create {ref} or remove it from spec.dependsOn",
                    reason="DependencyNotFound",
                )
            )
        return findings

    def _check_workload(self, view: SnapshotView, resource: Resource) -> list[Finding]:
        def _fetch_ownership(ref: LineageRef) -> tuple[Ownership, bool]:
            target = view.get(ref.kind, ref.namespace, ref.name)
            if target is None:
                return NATIVE, False
            return classify(target), True

        ownership = classify(resource)
        findings: list[Finding] = []
        for xref in extract_cross_references(resource, _fetch_ownership, ownership):
            if not view.available(xref.referenced.kind):
                continue
            finding = self._reference_finding(resource, ownership, xref)
            if finding is not None:
                findings.append(finding)
        return findings

    def _reference_finding(self, resource: Resource, ownership: Ownership, xref: CrossReference) -> Finding | None:
        target = xref.referenced
        if xref.status is ReferenceStatus.MISSING:
            if xref.optional:
                return None
            return make_finding(
                DEPEND_MISSING_REFERENCE,
                resource,
                Severity.CRITICAL,
                f"{xref.path} references {target.kind}/{target.name}, which does not exist",
                fix=f"Create {target.kind} {target.name} in {target.namespace} or fix the reference",
                command=f"kubectl get {target.kind.lower()} {target.name} -n {target.namespace}",
                reason="ReferenceNotFound",
            )
        if xref.coordination_risk:
            return make_finding(
                DEPEND_CROSS_OWNER,
                resource,
                Severity.INFO,
                (
                    f"{target.kind}/{target.name} is managed by {xref.owner_of_referenced} while "
                    f"{resource.kind}/{resource.name} is managed by {ownership.type}; "
                    "changes to it will not roll the workload"
                ),
                fix="Add a checksum annotation or a reloader so updates trigger a rollout",
                reason="CrossOwnerReference",
            )
        return None
