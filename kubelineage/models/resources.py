"""Normalized resource view shared by every analysis component."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Condition:
    """One entry of ``status.conditions``."""

    type: str
    status: str
    reason: str = ""
    message: str = ""
    last_transition: datetime | None = None

    @property
    def is_true(self) -> bool:
        return self.status == "True"

    @property
    def is_false(self) -> bool:
        return self.status == "False"


@dataclass(frozen=True)
class OwnerRef:
    """A metadata.ownerReferences entry."""

    api_group: str
    kind: str
    name: str
    controller: bool = False
    api_version: str = ""


@dataclass(frozen=True)
class ResourceStatus:
    """Readiness summary plus the raw status block it was derived from."""

    ready: bool = True
    conditions: tuple[Condition, ...] = ()
    raw: Mapping[str, Any] = field(default_factory=dict)

    def condition(self, type_: str) -> Condition | None:
        for cond in self.conditions:
            if cond.type == type_:
                return cond
        return None


@dataclass(frozen=True)
class LineageRef:
    """Lookup key for a cluster object. Carries no ownership semantics."""

    kind: str
    name: str
    namespace: str = ""

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True)
class Resource:
    """Immutable snapshot of a single cluster object.

    Built once per invocation from a wire payload (see
    ``kubelineage.collector.normalize``) and never mutated afterwards.
    ``spec`` and ``status.raw`` hold the unparsed blocks for detectors that
    need fields beyond the normalized ones.
    """

    kind: str
    namespace: str
    name: str
    api_version: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)
    annotations: Mapping[str, str] = field(default_factory=dict)
    owner_refs: tuple[OwnerRef, ...] = ()
    status: ResourceStatus = field(default_factory=ResourceStatus)
    spec: Mapping[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def api_group(self) -> str:
        if "/" in self.api_version:
            return self.api_version.split("/", 1)[0]
        return ""

    @property
    def ref(self) -> LineageRef:
        return LineageRef(kind=self.kind, name=self.name, namespace=self.namespace)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.kind, self.namespace, self.name)

    @property
    def suspended(self) -> bool:
        return bool(self.spec.get("suspend", False))
