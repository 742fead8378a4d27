"""Expression evaluation against a resource and its ownership."""

from __future__ import annotations

import re
from collections.abc import Iterable

from kubelineage.models.ownership import Ownership
from kubelineage.models.resources import Resource
from kubelineage.ownership.classifier import classify, resolve_owner_type
from kubelineage.query.expression import And, Comparison, Expression, Operator, Or

_LABEL_PREFIX = "labels["


def resource_status(resource: Resource) -> str:
    """One of Ready, NotReady, Failed or Suspended."""
    if resource.suspended:
        return "Suspended"
    if resource.status.ready:
        return "Ready"
    stalled = resource.status.condition("Stalled")
    if (stalled is not None and stalled.is_true) or resource.status.raw.get("phase") == "Failed":
        return "Failed"
    return "NotReady"


def field_value(field: str, resource: Resource, ownership: Ownership, cluster: str = "") -> str:
    if field.startswith(_LABEL_PREFIX):
        return resource.labels.get(field[len(_LABEL_PREFIX) : -1], "")
    if field == "owner":
        return str(ownership.type)
    if field == "namespace":
        return resource.namespace
    if field == "kind":
        return resource.kind
    if field == "name":
        return resource.name
    if field == "status":
        return resource_status(resource)
    if field == "cluster":
        return cluster
    raise ValueError(f"unknown field {field!r}")


def _canonical(field: str, value: str) -> str:
    if field == "owner" and not value.endswith("*"):
        owner_type = resolve_owner_type(value)
        if owner_type is not None:
            return str(owner_type).lower()
    return value.lower()


def _matches(field: str, actual: str, expected: str) -> bool:
    actual = actual.lower()
    if expected.endswith("*"):
        return actual.startswith(expected[:-1].lower())
    return actual == _canonical(field, expected)


def _compare(cmp: Comparison, actual: str) -> bool:
    if cmp.operator is Operator.REGEX:
        return re.search(cmp.values[0], actual) is not None
    if cmp.operator is Operator.PREFIX:
        return actual.lower().startswith(cmp.values[0].lower())
    hit = any(_matches(cmp.field, actual, v) for v in cmp.values)
    return not hit if cmp.operator is Operator.NE else hit


def evaluate(
    expr: Expression,
    resource: Resource,
    ownership: Ownership | None = None,
    *,
    cluster: str = "",
) -> bool:
    """True when ``resource`` satisfies ``expr``.

    ``ownership`` defaults to the classifier verdict for ``resource``.
    """
    if ownership is None:
        ownership = classify(resource)
    if isinstance(expr, Comparison):
        return _compare(expr, field_value(expr.field, resource, ownership, cluster))
    if isinstance(expr, And):
        return all(evaluate(t, resource, ownership, cluster=cluster) for t in expr.terms)
    if isinstance(expr, Or):
        return any(evaluate(t, resource, ownership, cluster=cluster) for t in expr.terms)
    raise TypeError(f"not a query expression: {expr!r}")


def filter_resources(expr: Expression, resources: Iterable[Resource], cluster: str = "") -> list[Resource]:
    """Resources matching ``expr``, in input order."""
    return [r for r in resources if evaluate(expr, r, cluster=cluster)]
