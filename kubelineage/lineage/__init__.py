"""Lineage and cross-reference resolution.

Submodules
----------
trace      -- owner/deployer/source chain walking with stuck detection.
timing     -- transition-time extraction and duration formatting.
crossplane -- managed resource → XR → claim resolution.
crossref   -- ConfigMap/Secret references and coordination risks.
"""

from kubelineage.lineage.crossplane import resolve_crossplane_lineage
from kubelineage.lineage.crossref import extract_cross_references, extract_references, ownership_fetcher
from kubelineage.lineage.trace import TraceOptions, trace

__all__ = [
    "TraceOptions",
    "extract_cross_references",
    "extract_references",
    "ownership_fetcher",
    "resolve_crossplane_lineage",
    "trace",
]
