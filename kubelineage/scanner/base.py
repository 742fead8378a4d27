"""Detector interface and the read-only views detectors work on."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable

from kubelineage.models.findings import Category, Finding
from kubelineage.models.resources import Resource


@runtime_checkable
class ResourceSource(Protocol):
    """Anything that can list resources of one kind.

    Implementations raise (ScanDataError or the underlying API exception)
    when a kind cannot be listed; the scanner classifies the failure.
    """

    def list_kind(self, kind: str) -> Sequence[Resource]: ...


class SnapshotSource:
    """ResourceSource over an in-memory list. Never raises."""

    def __init__(self, resources: Iterable[Resource]) -> None:
        self._by_kind: dict[str, list[Resource]] = {}
        for resource in resources:
            self._by_kind.setdefault(resource.kind, []).append(resource)

    def list_kind(self, kind: str) -> Sequence[Resource]:
        return tuple(self._by_kind.get(kind, ()))


class SnapshotView:
    """Immutable per-detector view over the kinds it declared."""

    def __init__(self, data: Mapping[str, tuple[Resource, ...]], available: frozenset[str]) -> None:
        self._data = dict(data)
        self._available = available
        self._index = {r.key: r for items in self._data.values() for r in items}

    def list(self, kind: str) -> tuple[Resource, ...]:
        return self._data.get(kind, ())

    def get(self, kind: str, namespace: str, name: str) -> Resource | None:
        return self._index.get((kind, namespace, name))

    def available(self, kind: str) -> bool:
        """False when listing ``kind`` failed, so absence proves nothing."""
        return kind in self._available


@dataclass(frozen=True)
class ScanContext:
    now: datetime
    stuck_threshold: timedelta


class Detector(ABC):
    """One detector per finding category."""

    detector_id: str
    category: Category
    resource_dependencies: tuple[str, ...] = ()

    @abstractmethod
    def detect(self, view: SnapshotView, ctx: ScanContext) -> list[Finding]:
        """Return the findings for this category. Must not mutate ``view``."""
