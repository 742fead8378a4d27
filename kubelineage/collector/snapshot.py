"""Point-in-time cluster contents, usable as scanner source and trace fetcher."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

import yaml

from kubelineage.collector.normalize import resource_from_object
from kubelineage.models.ownership import NATIVE, Ownership
from kubelineage.models.resources import LineageRef, Resource
from kubelineage.ownership.classifier import classify
from kubelineage.ownership.detectors import HELM_RELEASE_SECRET_PREFIX

_RELEASE_REVISION_RE = re.compile(r"^(.+)\.v([0-9]+)$")


class ClusterSnapshot:
    """Resources grouped by kind, plus the error each failed kind raised.

    ``list_kind`` re-raises the stored error for a kind that could not be
    listed, so the scanner can classify it. ``fetch`` and
    ``fetch_ownership`` never raise; an unlisted kind simply yields None.

    A Secret ref naming a Helm release without its ``.vN`` suffix resolves
    to the release's highest stored revision.
    """

    def __init__(
        self,
        resources: Iterable[Resource] = (),
        errors: Mapping[str, BaseException] | None = None,
        cluster: str = "",
    ) -> None:
        self.cluster = cluster
        self._errors = dict(errors or {})
        self._by_kind: dict[str, list[Resource]] = {}
        self._index: dict[tuple[str, str, str], Resource] = {}
        for resource in resources:
            self._by_kind.setdefault(resource.kind, []).append(resource)
            self._index[resource.key] = resource

    def __iter__(self) -> Iterator[Resource]:
        for items in self._by_kind.values():
            yield from items

    def __len__(self) -> int:
        return len(self._index)

    @property
    def errors(self) -> dict[str, BaseException]:
        return dict(self._errors)

    def kinds(self) -> list[str]:
        return sorted(set(self._by_kind) | set(self._errors))

    def list_kind(self, kind: str) -> Sequence[Resource]:
        if kind in self._errors:
            raise self._errors[kind]
        return tuple(self._by_kind.get(kind, ()))

    def fetch(self, ref: LineageRef) -> Resource | None:
        found = self._index.get((ref.kind, ref.namespace, ref.name))
        if found is None and ref.kind == "Secret" and ref.name.startswith(HELM_RELEASE_SECRET_PREFIX):
            return self._latest_helm_release(ref.namespace, ref.name)
        return found

    def _latest_helm_release(self, namespace: str, prefix: str) -> Resource | None:
        best: tuple[int, Resource] | None = None
        for secret in self._by_kind.get("Secret", ()):
            if secret.namespace != namespace:
                continue
            match = _RELEASE_REVISION_RE.match(secret.name)
            if match is None or match.group(1) != prefix:
                continue
            revision = int(match.group(2))
            if best is None or revision > best[0]:
                best = (revision, secret)
        return best[1] if best else None

    def fetch_ownership(self, ref: LineageRef) -> tuple[Ownership, bool]:
        resource = self.fetch(ref)
        if resource is None:
            return NATIVE, False
        return classify(resource), True


def _documents(docs: Iterable[Any]) -> Iterator[Mapping[str, Any]]:
    for doc in docs:
        if not isinstance(doc, Mapping):
            continue
        if doc.get("kind") == "List" or (str(doc.get("kind", "")).endswith("List") and "items" in doc):
            yield from (item for item in doc.get("items") or [] if isinstance(item, Mapping))
        elif doc.get("kind"):
            yield doc


def load_manifests(text: str, cluster: str = "") -> ClusterSnapshot:
    """Build a snapshot from multi-document YAML (``kubectl get -o yaml`` output works)."""
    resources = [resource_from_object(doc) for doc in _documents(yaml.safe_load_all(text))]
    return ClusterSnapshot(resources, cluster=cluster)
