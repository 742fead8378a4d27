"""kubelineage: ownership, lineage and misconfiguration analysis for Kubernetes.

Entry points
------------
classify                   -- who manages a resource.
trace                      -- the delivery chain behind it.
resolve_crossplane_lineage -- managed resource → XR → claim.
extract_cross_references   -- ConfigMap/Secret references and ownership conflicts.
parse / evaluate           -- the filter query language.
scan                       -- categorized findings with a verified summary.
"""

__version__ = "0.4.0"

from kubelineage.lineage import extract_cross_references, resolve_crossplane_lineage, trace
from kubelineage.ownership import classify
from kubelineage.query import evaluate, parse
from kubelineage.scanner import scan

__all__ = [
    "__version__",
    "classify",
    "evaluate",
    "extract_cross_references",
    "parse",
    "resolve_crossplane_lineage",
    "scan",
    "trace",
]
