"""Query string → Expression.

Grammar (flat, no grouping)::

    query      := conjunction ( OR conjunction )*
    conjunction:= comparison ( AND comparison )*
    comparison := field ( "=" | "!=" | "~=" ) value ( "," value )*

AND binds tighter than OR. Keywords are case-insensitive. Words between
keywords are joined back with single spaces, so ``name = web`` and
``name=web`` parse identically.
"""

from __future__ import annotations

import re

from kubelineage.errors import QueryParseError
from kubelineage.observability.metrics import query_parse_errors_total
from kubelineage.query.expression import MATCH_ALL, And, Comparison, Expression, Operator, Or

FIELDS = frozenset({"owner", "namespace", "kind", "name", "status", "cluster"})

_LABEL_FIELD_RE = re.compile(r"^labels\[([^\[\]]+)\]$")
_OPERATORS = ("~=", "!=", "=")
_BAD_FIELD_TAIL = ("<", ">", "!", "~", "=")
_BAD_VALUE_HEAD = ("=", "~")


def _parse_field(raw: str, condition: str) -> str:
    if not raw:
        raise QueryParseError("missing field name", condition)
    if match := _LABEL_FIELD_RE.match(raw):
        return f"labels[{match.group(1).strip()}]"
    field = raw.lower()
    if field not in FIELDS:
        raise QueryParseError("unknown field", raw)
    return field


def _check_wildcards(values: list[str], condition: str) -> None:
    for value in values:
        if "*" in value[:-1]:
            raise QueryParseError("wildcard '*' is only supported at the end of a value", condition)


def parse_condition(text: str) -> Comparison:
    """Parse a single ``field OP value`` comparison."""
    # The leftmost operator wins; every operator ends in "=".
    idx = text.find("=")
    if idx == -1:
        raise QueryParseError("missing operator (expected =, != or ~=)", text)
    op = "="
    if idx > 0 and text[idx - 1 : idx + 1] in _OPERATORS:
        idx -= 1
        op = text[idx : idx + 2]

    raw_field = text[:idx].strip()
    raw_value = text[idx + len(op) :].strip()
    if raw_field.endswith(_BAD_FIELD_TAIL) or raw_value.startswith(_BAD_VALUE_HEAD):
        raise QueryParseError("malformed operator", text)
    field = _parse_field(raw_field, text)
    if not raw_value:
        raise QueryParseError("missing value", text)

    if op == "~=":
        try:
            re.compile(raw_value)
        except re.error as exc:
            raise QueryParseError(f"invalid regular expression ({exc})", raw_value) from exc
        return Comparison(field=field, operator=Operator.REGEX, values=(raw_value,))

    values = [v.strip() for v in raw_value.split(",") if v.strip()]
    if not values:
        raise QueryParseError("missing value", text)
    _check_wildcards(values, text)

    if op == "!=":
        return Comparison(field=field, operator=Operator.NE, values=tuple(values))
    if len(values) > 1:
        return Comparison(field=field, operator=Operator.IN, values=tuple(values))
    if values[0].endswith("*"):
        return Comparison(field=field, operator=Operator.PREFIX, values=(values[0][:-1],))
    return Comparison(field=field, operator=Operator.EQ, values=(values[0],))


def _combine(groups: list[list[Comparison]]) -> Expression:
    terms: list[Expression] = [g[0] if len(g) == 1 else And(terms=tuple(g)) for g in groups]
    return terms[0] if len(terms) == 1 else Or(terms=tuple(terms))


def parse(text: str) -> Expression:
    """Parse a query string. An empty query matches everything.

    Raises QueryParseError carrying the offending token; there is no
    best-effort recovery.
    """
    try:
        return _parse(text)
    except QueryParseError:
        query_parse_errors_total.inc()
        raise


def _parse(text: str) -> Expression:
    words = text.split()
    if not words:
        return MATCH_ALL

    groups: list[list[Comparison]] = [[]]
    pending: list[str] = []
    for word in words:
        keyword = word.upper()
        if keyword not in ("AND", "OR"):
            pending.append(word)
            continue
        if not pending:
            raise QueryParseError(f"{keyword} without a preceding condition", word)
        groups[-1].append(parse_condition(" ".join(pending)))
        pending = []
        if keyword == "OR":
            groups.append([])

    if not pending:
        raise QueryParseError("query ends with an operator", words[-1])
    groups[-1].append(parse_condition(" ".join(pending)))
    return _combine(groups)
