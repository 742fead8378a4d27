"""Lineage, trace and cross-reference result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum

from kubelineage.models.ownership import Ownership, OwnerType
from kubelineage.models.resources import LineageRef, Resource


class TraceDirection(StrEnum):
    FORWARD = "forward"
    REVERSE = "reverse"


class ReferenceKind(StrEnum):
    """How a workload consumes a ConfigMap or Secret."""

    ENV_FROM = "EnvFrom"
    VALUE_FROM = "ValueFrom"
    VOLUME = "Volume"
    PROJECTED_VOLUME = "ProjectedVolume"


class ReferenceStatus(StrEnum):
    EXISTS = "Exists"
    MISSING = "Missing"


@dataclass(frozen=True)
class LineageNode:
    """A reference plus whether the object behind it was actually fetched.

    ``present=False`` with ``ref`` populated is the partial-lineage state:
    the pointer is known, the object was not seen.
    """

    ref: LineageRef
    present: bool


@dataclass(frozen=True)
class CrossplaneLineage:
    """Managed resource → composite (XR) → optional claim."""

    managed: LineageNode
    composite: LineageNode | None = None
    claim: LineageNode | None = None
    evidence: tuple[str, ...] = ()

    @property
    def partial(self) -> bool:
        nodes = [n for n in (self.composite, self.claim) if n is not None]
        return any(not n.present for n in nodes)


@dataclass(frozen=True)
class WorkloadReference:
    """A ConfigMap/Secret reference found in a pod template."""

    ref: LineageRef
    reference_kind: ReferenceKind
    path: str
    container: str = ""
    optional: bool = False


@dataclass(frozen=True)
class CrossReference:
    """A resolved reference from a workload to a ConfigMap or Secret.

    ``owner_of_referenced`` is None when the referenced object is missing.
    ``coordination_risk`` is set when the referenced object exists and is
    managed by a different authority than the workload, so updates to it
    will not roll the workload.
    """

    referenced: LineageRef
    reference_kind: ReferenceKind
    owner_of_referenced: OwnerType | None
    status: ReferenceStatus
    path: str = ""
    container: str = ""
    optional: bool = False
    coordination_risk: bool = False


@dataclass(frozen=True)
class ChainLink:
    """One hop in a delivery chain."""

    kind: str
    name: str
    namespace: str
    present: bool
    ready: bool
    status: str = ""
    reason: str = ""
    message: str = ""
    revision: str = ""
    url: str = ""
    via: str = ""
    last_transition: datetime | None = None
    elapsed_since_transition: timedelta | None = None
    stuck: bool = False

    @property
    def ref(self) -> LineageRef:
        return LineageRef(kind=self.kind, name=self.name, namespace=self.namespace)


@dataclass(frozen=True)
class ConfigHubContext:
    """ConfigHub unit metadata read from annotations."""

    unit_slug: str
    space_id: str = ""
    space_name: str = ""
    target_id: str = ""
    revision: str = ""
    live_revision: str = ""
    drift_detected: bool = False

    @property
    def remediation_url(self) -> str:
        if not self.space_id or not self.unit_slug:
            return ""
        return f"https://confighub.com/spaces/{self.space_id}/units/{self.unit_slug}"


@dataclass(frozen=True)
class OrphanMetadata:
    """What can still be said about a resource nothing manages."""

    last_applied: str = ""
    created_at: datetime | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TraceResult:
    """Delivery chain behind ``root``.

    ``chain`` is resource-first for reverse traces and outermost-source-first
    for forward traces.
    """

    root: Resource
    ownership: Ownership
    direction: TraceDirection
    chain: tuple[ChainLink, ...]
    cross_references: tuple[CrossReference, ...] = ()
    confighub: ConfigHubContext | None = None
    orphan: OrphanMetadata | None = None

    @property
    def partial(self) -> bool:
        return any(not link.present for link in self.chain)

    @property
    def stuck_links(self) -> list[ChainLink]:
        return [link for link in self.chain if link.stuck]

    @property
    def fully_ready(self) -> bool:
        return all(link.present and link.ready for link in self.chain)
