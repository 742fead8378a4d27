"""ConfigMap/Secret references from pod templates, and their owners."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any

from kubelineage.models.lineage import CrossReference, ReferenceKind, ReferenceStatus, WorkloadReference
from kubelineage.models.ownership import NATIVE, Ownership
from kubelineage.models.resources import LineageRef, Resource
from kubelineage.ownership.classifier import classify

FetchOwnership = Callable[[LineageRef], tuple[Ownership, bool]]
Fetch = Callable[[LineageRef], Resource | None]

_TEMPLATE_KINDS = frozenset({"Deployment", "StatefulSet", "DaemonSet", "ReplicaSet", "Job"})


def pod_spec(resource: Resource) -> Mapping[str, Any] | None:
    """The pod spec embedded in a workload, or the spec itself for Pods."""
    spec: Any
    if resource.kind == "Pod":
        spec = resource.spec
    elif resource.kind in _TEMPLATE_KINDS:
        spec = (resource.spec.get("template") or {}).get("spec")
    elif resource.kind == "CronJob":
        job = (resource.spec.get("jobTemplate") or {}).get("spec") or {}
        spec = (job.get("template") or {}).get("spec")
    else:
        return None
    return spec if isinstance(spec, Mapping) else None


def _containers(spec: Mapping[str, Any]) -> Iterator[tuple[str, Mapping[str, Any]]]:
    for key in ("initContainers", "containers"):
        for container in spec.get(key) or []:
            yield str(container.get("name", "")), container


def _container_refs(container: Mapping[str, Any]) -> Iterator[tuple[str, str, ReferenceKind, str, bool]]:
    for source in container.get("envFrom") or []:
        if ref := source.get("configMapRef"):
            yield "ConfigMap", ref.get("name", ""), ReferenceKind.ENV_FROM, "envFrom.configMapRef", bool(ref.get("optional"))
        if ref := source.get("secretRef"):
            yield "Secret", ref.get("name", ""), ReferenceKind.ENV_FROM, "envFrom.secretRef", bool(ref.get("optional"))
    for env in container.get("env") or []:
        value_from = env.get("valueFrom") or {}
        if ref := value_from.get("configMapKeyRef"):
            yield (
                "ConfigMap",
                ref.get("name", ""),
                ReferenceKind.VALUE_FROM,
                "env.valueFrom.configMapKeyRef",
                bool(ref.get("optional")),
            )
        if ref := value_from.get("secretKeyRef"):
            yield (
                "Secret",
                ref.get("name", ""),
                ReferenceKind.VALUE_FROM,
                "env.valueFrom.secretKeyRef",
                bool(ref.get("optional")),
            )


def _volume_refs(spec: Mapping[str, Any]) -> Iterator[tuple[str, str, ReferenceKind, str, bool]]:
    for volume in spec.get("volumes") or []:
        if ref := volume.get("configMap"):
            yield "ConfigMap", ref.get("name", ""), ReferenceKind.VOLUME, "volume.configMap", bool(ref.get("optional"))
        if ref := volume.get("secret"):
            yield "Secret", ref.get("secretName", ""), ReferenceKind.VOLUME, "volume.secret", bool(ref.get("optional"))
        for source in (volume.get("projected") or {}).get("sources") or []:
            if ref := source.get("configMap"):
                yield (
                    "ConfigMap",
                    ref.get("name", ""),
                    ReferenceKind.PROJECTED_VOLUME,
                    "volume.projected.configMap",
                    bool(ref.get("optional")),
                )
            if ref := source.get("secret"):
                yield (
                    "Secret",
                    ref.get("name", ""),
                    ReferenceKind.PROJECTED_VOLUME,
                    "volume.projected.secret",
                    bool(ref.get("optional")),
                )


def extract_references(resource: Resource) -> list[WorkloadReference]:
    """All ConfigMap/Secret references in a workload, first occurrence per target.

    Containers (init containers first) are scanned before volumes.
    """
    spec = pod_spec(resource)
    if spec is None:
        return []

    found: dict[tuple[str, str, str], WorkloadReference] = {}

    def _add(kind: str, name: str, ref_kind: ReferenceKind, path: str, optional: bool, container: str) -> None:
        if not name:
            return
        ref = LineageRef(kind=kind, name=name, namespace=resource.namespace)
        key = (kind, resource.namespace, name)
        if key in found:
            # A reference is only optional if every use of it is.
            if found[key].optional and not optional:
                prev = found[key]
                found[key] = WorkloadReference(prev.ref, prev.reference_kind, prev.path, prev.container, False)
            return
        found[key] = WorkloadReference(ref=ref, reference_kind=ref_kind, path=path, container=container, optional=optional)

    for container_name, container in _containers(spec):
        for kind, name, ref_kind, path, optional in _container_refs(container):
            _add(kind, name, ref_kind, path, optional, container_name)
    for kind, name, ref_kind, path, optional in _volume_refs(spec):
        _add(kind, name, ref_kind, path, optional, "")
    return list(found.values())


def extract_cross_references(
    resource: Resource,
    fetch_ownership: FetchOwnership,
    ownership: Ownership | None = None,
) -> list[CrossReference]:
    """Resolve each reference's owner and flag cross-owner coordination risks.

    A referenced object that exists but is managed by a different authority
    than ``resource`` is a coordination risk: updating it will not roll the
    workload. Missing objects are reported with ``status=Missing``.
    """
    own_type = (ownership or classify(resource)).type
    results: list[CrossReference] = []
    for wref in extract_references(resource):
        owner, found = fetch_ownership(wref.ref)
        if not found:
            results.append(
                CrossReference(
                    referenced=wref.ref,
                    reference_kind=wref.reference_kind,
                    owner_of_referenced=None,
                    status=ReferenceStatus.MISSING,
                    path=wref.path,
                    container=wref.container,
                    optional=wref.optional,
                )
            )
            continue
        results.append(
            CrossReference(
                referenced=wref.ref,
                reference_kind=wref.reference_kind,
                owner_of_referenced=owner.type,
                status=ReferenceStatus.EXISTS,
                path=wref.path,
                container=wref.container,
                optional=wref.optional,
                coordination_risk=owner.type != own_type,
            )
        )
    return results


def ownership_fetcher(fetch: Fetch) -> FetchOwnership:
    """Adapt a single-object ``fetch`` into a ``fetch_ownership`` callback."""

    def _fetch_ownership(ref: LineageRef) -> tuple[Ownership, bool]:
        obj = fetch(ref)
        if obj is None:
            return NATIVE, False
        return classify(obj), True

    return _fetch_ownership
