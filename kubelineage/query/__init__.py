"""Query language: parse a filter string, evaluate it against resources."""

from kubelineage.query.evaluator import evaluate, filter_resources
from kubelineage.query.expression import And, Comparison, Expression, Operator, Or
from kubelineage.query.parser import parse
from kubelineage.query.saved import SavedQuery, SavedQueryStore

__all__ = [
    "And",
    "Comparison",
    "Expression",
    "Operator",
    "Or",
    "SavedQuery",
    "SavedQueryStore",
    "evaluate",
    "filter_resources",
    "parse",
]
