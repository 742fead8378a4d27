"""Crossplane managed resource → composite → claim resolution."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from kubelineage.models.lineage import CrossplaneLineage, LineageNode
from kubelineage.models.resources import LineageRef, OwnerRef, Resource
from kubelineage.ownership.detectors import (
    CROSSPLANE_CLAIM_NAME,
    CROSSPLANE_CLAIM_NAMESPACE,
    CROSSPLANE_COMPOSITE,
    detect_crossplane,
    is_crossplane_group,
)

UNRESOLVED_COMPOSITE_KIND = "CompositeResource"
UNRESOLVED_CLAIM_KIND = "Claim"


def _crossplane_owner(resource: Resource) -> OwnerRef | None:
    refs = [r for r in resource.owner_refs if is_crossplane_group(r.api_group)]
    controllers = [r for r in refs if r.controller]
    return (controllers or refs or [None])[0]


def _find(
    candidates: Iterable[Resource],
    name: str,
    *,
    kind: str = "",
    namespace: str | None = None,
    exclude: tuple[str, str, str] | None = None,
) -> Resource | None:
    for cand in candidates:
        if cand.name != name or cand.key == exclude:
            continue
        if kind and cand.kind != kind:
            continue
        if namespace is not None and cand.namespace != namespace:
            continue
        return cand
    return None


def _claim_ref(xr: Resource) -> Mapping[str, Any]:
    ref = xr.spec.get("claimRef") or {}
    return ref if isinstance(ref, Mapping) else {}


def resolve_crossplane_lineage(
    managed: Resource, candidates: Iterable[Resource]
) -> tuple[CrossplaneLineage, bool]:
    """Resolve the XR and claim behind a managed resource.

    The composite reference alone is enough for a lineage; the claim only
    enriches it. References whose objects are not among ``candidates`` come
    back with ``present=False`` rather than being dropped. The boolean is
    False only when ``managed`` carries no Crossplane signal at all.
    """
    candidates = list(candidates)
    managed_node = LineageNode(ref=managed.ref, present=True)
    verdict = detect_crossplane(managed)
    if verdict is None:
        return CrossplaneLineage(managed=managed_node), False

    evidence: list[str] = []
    composite: LineageNode | None = None
    xr: Resource | None = None
    owner = _crossplane_owner(managed)

    if composite_name := managed.labels.get(CROSSPLANE_COMPOSITE):
        evidence.append(f"label:{CROSSPLANE_COMPOSITE}")
        kind = owner.kind if owner is not None and owner.name == composite_name else ""
        xr = _find(candidates, composite_name, kind=kind, exclude=managed.key)
        if xr is not None:
            composite = LineageNode(ref=xr.ref, present=True)
        else:
            evidence.append("xr:unresolved")
            composite = LineageNode(
                ref=LineageRef(kind=kind or UNRESOLVED_COMPOSITE_KIND, name=composite_name), present=False
            )
    elif owner is not None:
        evidence.append(f"ownerRef:{owner.api_version or owner.api_group}/{owner.kind}")
        xr = _find(candidates, owner.name, kind=owner.kind, exclude=managed.key)
        if xr is not None:
            composite = LineageNode(ref=xr.ref, present=True)
        else:
            evidence.append("xr:unresolved")
            composite = LineageNode(ref=LineageRef(kind=owner.kind, name=owner.name), present=False)

    claim_name = managed.labels.get(CROSSPLANE_CLAIM_NAME, "")
    claim_namespace = managed.labels.get(CROSSPLANE_CLAIM_NAMESPACE, "")
    claim_kind = ""
    if claim_name:
        evidence.append(f"label:{CROSSPLANE_CLAIM_NAME}")
    elif xr is not None:
        if claim_name := xr.labels.get(CROSSPLANE_CLAIM_NAME, ""):
            claim_namespace = xr.labels.get(CROSSPLANE_CLAIM_NAMESPACE, "")
            evidence.append(f"xr-label:{CROSSPLANE_CLAIM_NAME}")
        elif claim_name := str(_claim_ref(xr).get("name", "")):
            claim_namespace = str(_claim_ref(xr).get("namespace", ""))
            evidence.append("xr:spec.claimRef")
    if xr is not None:
        claim_kind = str(_claim_ref(xr).get("kind", ""))

    claim: LineageNode | None = None
    if claim_name:
        found = _find(
            candidates,
            claim_name,
            kind=claim_kind,
            namespace=claim_namespace,
            exclude=managed.key,
        )
        if found is not None and xr is not None and found.key == xr.key:
            found = None
        if found is not None:
            claim = LineageNode(ref=found.ref, present=True)
        else:
            evidence.append("claim:unresolved")
            claim = LineageNode(
                ref=LineageRef(kind=claim_kind or UNRESOLVED_CLAIM_KIND, name=claim_name, namespace=claim_namespace),
                present=False,
            )

    if not evidence:
        # Control-plane objects and composition-resource-name annotations.
        evidence.append(verdict.source)

    return CrossplaneLineage(managed=managed_node, composite=composite, claim=claim, evidence=tuple(evidence)), True


def composite_reference(resource: Resource) -> tuple[LineageRef, str] | None:
    """The XR named by a managed resource's composite label.

    XRs carry the same label with their own name, so it only counts when it
    names another object. The kind comes from a matching Crossplane owner
    reference when there is one.
    """
    name = resource.labels.get(CROSSPLANE_COMPOSITE, "")
    if not name or name == resource.name:
        return None
    owner = _crossplane_owner(resource)
    kind = owner.kind if owner is not None and owner.name == name else UNRESOLVED_COMPOSITE_KIND
    return LineageRef(kind=kind, name=name), f"label:{CROSSPLANE_COMPOSITE}"


def claim_reference(resource: Resource) -> tuple[LineageRef, str] | None:
    """The claim named by ``spec.claimRef`` or by the claim labels."""
    ref = _claim_ref(resource)
    if name := str(ref.get("name") or ""):
        kind = str(ref.get("kind") or UNRESOLVED_CLAIM_KIND)
        namespace = str(ref.get("namespace") or "")
        via = "spec.claimRef"
    elif name := resource.labels.get(CROSSPLANE_CLAIM_NAME, ""):
        kind = UNRESOLVED_CLAIM_KIND
        namespace = resource.labels.get(CROSSPLANE_CLAIM_NAMESPACE, "")
        via = f"label:{CROSSPLANE_CLAIM_NAME}"
    else:
        return None
    if (name, namespace) == (resource.name, resource.namespace):
        return None
    return LineageRef(kind=kind, name=name, namespace=namespace), via
