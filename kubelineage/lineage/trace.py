"""Delivery-chain tracing.

Walks from a resource up through its controller owner references and any
Crossplane composite and claim, then to the GitOps deployer or Helm release
that applied the topmost object, then to that deployer's source. Each
hop's reference is only known once the previous hop resolves, so the walk
is strictly sequential.

A hop whose object cannot be fetched is recorded with ``present=False`` and
the walk carries on from the last object that was seen.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from kubelineage.config import duration_to_timedelta
from kubelineage.lineage.crossplane import claim_reference, composite_reference
from kubelineage.lineage.crossref import Fetch, extract_cross_references, ownership_fetcher, pod_spec
from kubelineage.lineage.timing import (
    ARGO_KINDS,
    DEFAULT_STUCK_THRESHOLD,
    FLUX_DEPLOYER_KINDS,
    FLUX_SOURCE_KINDS,
    elapsed_since,
    is_stuck,
    last_transition,
)
from kubelineage.models.config import KubeLineageConfig
from kubelineage.models.lineage import (
    ChainLink,
    ConfigHubContext,
    CrossReference,
    OrphanMetadata,
    TraceDirection,
    TraceResult,
)
from kubelineage.models.ownership import Ownership, OwnerType
from kubelineage.models.resources import LineageRef, Resource
from kubelineage.observability.logging import get_logger
from kubelineage.observability.metrics import trace_missing_links_total
from kubelineage.ownership.classifier import classify
from kubelineage.ownership.detectors import (
    APP_INSTANCE,
    CONFIGHUB_UNIT_SLUG,
    HELM_RELEASE_NAME,
    HELM_RELEASE_NAMESPACE,
    HELM_RELEASE_SECRET_PREFIX,
    is_crossplane_group,
    select_owner_ref,
)

_logger = get_logger("lineage.trace")

LAST_APPLIED = "kubectl.kubernetes.io/last-applied-configuration"
DEPLOYER_KINDS = FLUX_DEPLOYER_KINDS | ARGO_KINDS

_CONFIGHUB_PREFIX = "confighub.com/"


@dataclass(frozen=True)
class TraceOptions:
    """Knobs for a single trace call."""

    direction: TraceDirection = TraceDirection.REVERSE
    stuck_threshold: timedelta = DEFAULT_STUCK_THRESHOLD
    max_hops: int = 16
    argocd_namespace: str = "argocd"
    now: datetime | None = None
    include_cross_references: bool = True

    @classmethod
    def from_config(cls, config: KubeLineageConfig, **overrides: Any) -> TraceOptions:
        values: dict[str, Any] = {
            "stuck_threshold": duration_to_timedelta(config.lineage.stuck_threshold),
            "max_hops": config.lineage.max_hops,
            "argocd_namespace": config.lineage.argocd_namespace,
        }
        values.update(overrides)
        return cls(**values)


# ---------------------------------------------------------------------------
# Hop resolution
# ---------------------------------------------------------------------------


def _owner_hop(resource: Resource) -> tuple[LineageRef, str] | None:
    ref = select_owner_ref(resource.owner_refs)
    if ref is None:
        return None
    # Crossplane composites are cluster-scoped even when the child is not.
    namespace = "" if is_crossplane_group(ref.api_group) else resource.namespace
    return LineageRef(kind=ref.kind, name=ref.name, namespace=namespace), f"ownerRef:{ref.kind}"


def _deployer_hop(resource: Resource, ownership: Ownership, argocd_namespace: str) -> tuple[LineageRef, str] | None:
    if ownership.type is OwnerType.HELM:
        return helm_release_reference(resource, ownership)
    if not ownership.name:
        return None
    if ownership.type is OwnerType.FLUX:
        kind = "Kustomization" if ownership.sub_type == "kustomization" else "HelmRelease"
        ref = LineageRef(kind=kind, name=ownership.name, namespace=ownership.namespace or resource.namespace)
        return ref, f"label:{ownership.source}"
    if ownership.type is OwnerType.ARGOCD:
        ref = LineageRef(kind="Application", name=ownership.name, namespace=ownership.namespace or argocd_namespace)
        return ref, ownership.source
    return None


def helm_release_reference(resource: Resource, ownership: Ownership) -> tuple[LineageRef, str] | None:
    """The Secret Helm stores the release in.

    The ref names the release without its revision suffix; fetchers resolve it
    to the latest ``.vN`` Secret. The chart label never names the release.
    """
    if release := resource.annotations.get(HELM_RELEASE_NAME):
        via = f"annotation:{HELM_RELEASE_NAME}"
    elif release := resource.labels.get(APP_INSTANCE, ""):
        via = f"label:{APP_INSTANCE}"
    else:
        return None
    namespace = resource.annotations.get(HELM_RELEASE_NAMESPACE) or ownership.namespace or resource.namespace
    return LineageRef(kind="Secret", name=f"{HELM_RELEASE_SECRET_PREFIX}{release}", namespace=namespace), via


def source_reference(resource: Resource) -> tuple[LineageRef, str] | None:
    """The Flux source a Kustomization or HelmRelease pulls from, and the field naming it."""
    spec = resource.spec
    source_ref: Mapping[str, Any] | None = None
    via = ""
    if resource.kind == "Kustomization":
        source_ref, via = spec.get("sourceRef"), "spec.sourceRef"
    elif resource.kind == "HelmRelease":
        chart_spec = (spec.get("chart") or {}).get("spec") or {}
        if chart_spec.get("sourceRef"):
            source_ref, via = chart_spec["sourceRef"], "spec.chart.spec.sourceRef"
        elif spec.get("chartRef"):
            source_ref, via = spec["chartRef"], "spec.chartRef"
    if not source_ref or not source_ref.get("kind") or not source_ref.get("name"):
        return None
    ref = LineageRef(
        kind=str(source_ref["kind"]),
        name=str(source_ref["name"]),
        namespace=str(source_ref.get("namespace") or resource.namespace),
    )
    return ref, via


# ---------------------------------------------------------------------------
# Link construction
# ---------------------------------------------------------------------------


def _helm_release_status(resource: Resource) -> str | None:
    """Release status label of a Helm storage Secret, or None for any other object."""
    if resource.kind != "Secret" or resource.labels.get("owner") != "helm":
        return None
    return resource.labels.get("status", "")


def _revision(resource: Resource) -> str:
    raw = resource.status.raw
    if _helm_release_status(resource) is not None:
        return resource.labels.get("version", "")
    if resource.kind in ARGO_KINDS:
        return str((raw.get("sync") or {}).get("revision") or "")
    if revision := raw.get("lastAppliedRevision"):
        return str(revision)
    return str((raw.get("artifact") or {}).get("revision") or "")


def _url(resource: Resource) -> str:
    if resource.kind in ARGO_KINDS:
        return str((resource.spec.get("source") or {}).get("repoURL") or "")
    if resource.kind in FLUX_SOURCE_KINDS:
        return str(resource.spec.get("url") or "")
    return ""


def _status_text(resource: Resource) -> tuple[str, str, str]:
    """(status, reason, message) for a present link."""
    if resource.suspended:
        return "Suspended", "", ""
    cond = resource.status.condition("Ready") or resource.status.condition("Available")
    reason = cond.reason if cond else ""
    message = cond.message if cond else ""
    if resource.kind in ARGO_KINDS and not message:
        raw = resource.status.raw
        message = str((raw.get("health") or {}).get("message") or (raw.get("operationState") or {}).get("message") or "")
    if resource.status.ready:
        return "Ready", reason, message
    return reason or "NotReady", reason, message


def _present_link(resource: Resource, via: str, now: datetime, threshold: timedelta) -> ChainLink:
    status, reason, message = _status_text(resource)
    ready = resource.status.ready
    if (release_status := _helm_release_status(resource)) is not None:
        ready = release_status == "deployed"
        status, reason, message = ("Ready" if ready else release_status or "Unknown"), release_status, ""
    transition = last_transition(resource)
    elapsed = elapsed_since(transition, now)
    return ChainLink(
        kind=resource.kind,
        name=resource.name,
        namespace=resource.namespace,
        present=True,
        ready=ready,
        status=status,
        reason=reason,
        message=message,
        revision=_revision(resource),
        url=_url(resource),
        via=via,
        last_transition=transition,
        elapsed_since_transition=elapsed,
        stuck=is_stuck(ready, elapsed, threshold),
    )


def _missing_link(ref: LineageRef, via: str) -> ChainLink:
    return ChainLink(
        kind=ref.kind,
        name=ref.name,
        namespace=ref.namespace,
        present=False,
        ready=False,
        status="NotFound",
        via=via,
    )


def confighub_context(resource: Resource) -> ConfigHubContext | None:
    """ConfigHub unit metadata, if the resource was applied by ConfigHub."""

    def _get(key: str) -> str:
        full = _CONFIGHUB_PREFIX + key
        return resource.annotations.get(full) or resource.labels.get(full, "")

    slug = resource.annotations.get(CONFIGHUB_UNIT_SLUG) or resource.labels.get(CONFIGHUB_UNIT_SLUG)
    if not slug:
        return None
    return ConfigHubContext(
        unit_slug=slug,
        space_id=_get("SpaceID"),
        space_name=_get("SpaceName"),
        target_id=_get("TargetID"),
        revision=_get("RevisionNum"),
        live_revision=_get("LiveRevisionNum"),
        drift_detected=_get("DriftDetected").lower() == "true",
    )


def orphan_metadata(resource: Resource) -> OrphanMetadata:
    return OrphanMetadata(
        last_applied=resource.annotations.get(LAST_APPLIED, ""),
        created_at=resource.created_at,
        labels=dict(resource.labels),
        annotations={k: v for k, v in resource.annotations.items() if k != LAST_APPLIED},
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def trace(resource: Resource, fetch: Fetch, options: TraceOptions | None = None) -> TraceResult:
    """Reconstruct the delivery chain behind ``resource``.

    ``fetch`` returns the object behind a reference, or None when it cannot
    be found (or the lookup was cancelled). Nothing here blocks or raises on
    a miss.
    """
    options = options or TraceOptions()
    now = options.now or datetime.now(UTC)
    ownership = classify(resource)

    links = [_present_link(resource, "root", now, options.stuck_threshold)]
    visited = {resource.key}
    current: Resource | None = resource
    context = resource
    deployer_checked: set[tuple[str, str, str]] = set()
    claim_checked: set[tuple[str, str, str]] = set()

    while len(links) < options.max_hops:
        hop: tuple[LineageRef, str] | None = None
        if current is not None:
            if current.kind in FLUX_SOURCE_KINDS:
                break
            if current.kind in DEPLOYER_KINDS:
                hop = source_reference(current)
                if hop is None:
                    break
            else:
                hop = _owner_hop(current) or composite_reference(current) or claim_reference(current)
        elif context.key not in claim_checked:
            # A missing XR leaves the claim reachable through the managed resource's labels.
            claim_checked.add(context.key)
            hop = claim_reference(context)
            if hop is not None and (hop[0].kind, hop[0].namespace, hop[0].name) in visited:
                hop = None
        if hop is None and context.key not in deployer_checked:
            deployer_checked.add(context.key)
            hop = _deployer_hop(context, classify(context), options.argocd_namespace)
        if hop is None:
            break

        ref, via = hop
        key = (ref.kind, ref.namespace, ref.name)
        if key in visited:
            _logger.debug("trace cycle detected", kind=ref.kind, namespace=ref.namespace, name=ref.name)
            break
        visited.add(key)

        obj = fetch(ref)
        if obj is None:
            _logger.debug("trace hop missing", kind=ref.kind, namespace=ref.namespace, name=ref.name, via=via)
            trace_missing_links_total.labels(kind=ref.kind).inc()
            links.append(_missing_link(ref, via))
            current = None
            continue
        links.append(_present_link(obj, via, now, options.stuck_threshold))
        current = obj
        context = obj

    cross_refs: tuple[CrossReference, ...] = ()
    if options.include_cross_references and pod_spec(resource) is not None:
        cross_refs = tuple(extract_cross_references(resource, ownership_fetcher(fetch), ownership))

    chain = tuple(reversed(links)) if options.direction is TraceDirection.FORWARD else tuple(links)
    return TraceResult(
        root=resource,
        ownership=ownership,
        direction=options.direction,
        chain=chain,
        cross_references=cross_refs,
        confighub=confighub_context(resource),
        orphan=orphan_metadata(resource) if ownership.type is OwnerType.NATIVE else None,
    )
