"""Named queries: built-ins plus a user YAML file.

User file format::

    queries:
      - name: payments
        description: Everything in the payments namespaces
        query: namespace=payments*
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml

from kubelineage.errors import KubeLineageError
from kubelineage.observability.logging import get_logger
from kubelineage.query.expression import Expression
from kubelineage.query.parser import parse

_logger = get_logger("query.saved")


class SavedQueryError(KubeLineageError):
    """Invalid save, update or delete of a named query."""


@dataclass(frozen=True)
class SavedQuery:
    name: str
    query: str
    description: str = ""
    builtin: bool = False

    def expression(self) -> Expression:
        return parse(self.query)


BUILTIN_QUERIES: tuple[SavedQuery, ...] = (
    SavedQuery("unmanaged", "owner=Native", "Resources with no GitOps or controller owner", True),
    SavedQuery("gitops", "owner=Flux OR owner=ArgoCD", "Resources managed by Flux or Argo CD", True),
    SavedQuery("helm-only", "owner=Helm", "Helm releases not wrapped by a GitOps tool", True),
    SavedQuery("flux", "owner=Flux", "Resources managed by Flux", True),
    SavedQuery("argo", "owner=ArgoCD", "Resources managed by Argo CD", True),
    SavedQuery("confighub", "owner=ConfigHub", "Resources applied from ConfigHub units", True),
    SavedQuery("deployments", "kind=Deployment", "All Deployments", True),
    SavedQuery("services", "kind=Service", "All Services", True),
    SavedQuery("prod", "namespace=prod* OR namespace=production*", "Production namespaces", True),
)


class SavedQueryStore:
    """Built-in queries plus user queries persisted to ``path``.

    The file is re-read on every call so edits made elsewhere are picked up.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._builtins = {q.name: q for q in BUILTIN_QUERIES}

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> list[SavedQuery]:
        if not self._path.exists():
            return []
        with self._path.open(encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        if not isinstance(data, Mapping):
            _logger.warning("ignoring saved query file without a queries mapping", path=str(self._path))
            return []
        entries = data.get("queries") or []
        if not isinstance(entries, list):
            _logger.warning("ignoring saved queries that are not a list", path=str(self._path))
            return []
        queries = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("name") or not entry.get("query"):
                _logger.warning("skipping malformed saved query", path=str(self._path), entry=repr(entry))
                continue
            queries.append(
                SavedQuery(
                    name=str(entry["name"]),
                    query=str(entry["query"]),
                    description=str(entry.get("description") or ""),
                )
            )
        return queries

    def _write(self, queries: list[SavedQuery]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"queries": [{"name": q.name, "description": q.description, "query": q.query} for q in queries]}
        with self._path.open("w", encoding="utf-8") as fh:
            yaml.safe_dump(payload, fh, default_flow_style=False, sort_keys=False)

    def list_builtin(self) -> list[SavedQuery]:
        return list(BUILTIN_QUERIES)

    def list_user(self) -> list[SavedQuery]:
        return self._load()

    def get(self, name: str) -> SavedQuery | None:
        """User queries shadow nothing: built-in names are reserved."""
        if name in self._builtins:
            return self._builtins[name]
        for query in self._load():
            if query.name == name:
                return query
        return None

    def save(self, name: str, query: str, description: str = "") -> SavedQuery:
        if name in self._builtins:
            raise SavedQueryError(f"cannot overwrite built-in query {name!r}")
        parse(query)
        existing = self._load()
        if any(q.name == name for q in existing):
            raise SavedQueryError(f"query {name!r} already exists; use update")
        saved = SavedQuery(name=name, query=query, description=description)
        self._write([*existing, saved])
        _logger.info("saved query", name=name)
        return saved

    def update(self, name: str, query: str, description: str | None = None) -> SavedQuery:
        if name in self._builtins:
            raise SavedQueryError(f"cannot modify built-in query {name!r}")
        parse(query)
        existing = self._load()
        for idx, current in enumerate(existing):
            if current.name == name:
                updated = SavedQuery(
                    name=name,
                    query=query,
                    description=current.description if description is None else description,
                )
                existing[idx] = updated
                self._write(existing)
                return updated
        raise SavedQueryError(f"query {name!r} not found")

    def delete(self, name: str) -> None:
        if name in self._builtins:
            raise SavedQueryError(f"cannot delete built-in query {name!r}")
        existing = self._load()
        remaining = [q for q in existing if q.name != name]
        if len(remaining) == len(existing):
            raise SavedQueryError(f"query {name!r} not found")
        self._write(remaining)
        _logger.info("deleted saved query", name=name)
