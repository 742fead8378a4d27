"""Wire payload → Resource conversion.

Everything downstream consumes ``Resource``; this is the only module that
reads raw API dictionaries.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from kubelineage.models.resources import Condition, OwnerRef, Resource, ResourceStatus

_READY_CONDITION_TYPES = ("Ready", "Available")
_READY_POD_PHASES = {"Running", "Succeeded"}


def parse_timestamp(value: object) -> datetime | None:
    """Parse an RFC 3339 timestamp; None for anything unparseable."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _str_map(value: object) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(k): "" if v is None else str(v) for k, v in value.items()}


def _owner_refs(metadata: Mapping[str, Any]) -> tuple[OwnerRef, ...]:
    refs = []
    for raw in metadata.get("ownerReferences") or []:
        api_version = str(raw.get("apiVersion", ""))
        refs.append(
            OwnerRef(
                api_group=api_version.split("/", 1)[0] if "/" in api_version else "",
                kind=str(raw.get("kind", "")),
                name=str(raw.get("name", "")),
                controller=bool(raw.get("controller", False)),
                api_version=api_version,
            )
        )
    return tuple(refs)


def _conditions(status: Mapping[str, Any]) -> tuple[Condition, ...]:
    conditions = []
    for raw in status.get("conditions") or []:
        if not isinstance(raw, Mapping):
            continue
        conditions.append(
            Condition(
                type=str(raw.get("type", "")),
                status=str(raw.get("status", "Unknown")),
                reason=str(raw.get("reason") or ""),
                message=str(raw.get("message") or ""),
                last_transition=parse_timestamp(raw.get("lastTransitionTime")),
            )
        )
    return tuple(conditions)


def derive_ready(kind: str, status: Mapping[str, Any], conditions: tuple[Condition, ...]) -> bool:
    """Readiness from conditions, replica counts, pod phase or Argo health.

    Objects that expose no readiness signal at all count as ready.
    """
    for type_ in _READY_CONDITION_TYPES:
        for cond in conditions:
            if cond.type == type_:
                return cond.is_true

    if kind == "Application":
        health = (status.get("health") or {}).get("status", "")
        sync = (status.get("sync") or {}).get("status", "")
        if health or sync:
            return health in ("", "Healthy") and sync in ("", "Synced")

    if "replicas" in status:
        return int(status.get("readyReplicas") or 0) >= int(status.get("replicas") or 0)

    if kind == "Pod" and "phase" in status:
        return status["phase"] in _READY_POD_PHASES

    return True


def resource_from_object(obj: Mapping[str, Any], kind: str = "", api_version: str = "") -> Resource:
    """Build a Resource from an API object or manifest document.

    ``kind``/``api_version`` fill in for list items, which omit them.
    """
    metadata = obj.get("metadata") or {}
    status = obj.get("status") or {}
    if not isinstance(status, Mapping):
        status = {}
    conditions = _conditions(status)
    resolved_kind = str(obj.get("kind") or kind)
    spec = obj.get("spec")

    return Resource(
        kind=resolved_kind,
        namespace=str(metadata.get("namespace") or ""),
        name=str(metadata.get("name") or ""),
        api_version=str(obj.get("apiVersion") or api_version),
        labels=_str_map(metadata.get("labels")),
        annotations=_str_map(metadata.get("annotations")),
        owner_refs=_owner_refs(metadata),
        status=ResourceStatus(
            ready=derive_ready(resolved_kind, status, conditions),
            conditions=conditions,
            raw=dict(status),
        ),
        spec=dict(spec) if isinstance(spec, Mapping) else {},
        created_at=parse_timestamp(metadata.get("creationTimestamp")),
    )
