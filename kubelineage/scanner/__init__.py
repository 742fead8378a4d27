"""State scanner: one detector per finding category, run in parallel.

Submodules
----------
base      -- Detector interface, ResourceSource protocol, per-detector views.
catalog   -- finding IDs, severity and formatting helpers.
reconcile -- Flux/Argo failure extraction and remediation text.
source, render, apply, drift, misconfig, depend, state, orphan -- detectors.
engine    -- gathering, fan-out, merge and summary verification.
"""

from kubelineage.scanner.base import Detector, ResourceSource, SnapshotSource
from kubelineage.scanner.engine import DEFAULT_DETECTORS, ScanOptions, scan, verify_summary

__all__ = [
    "DEFAULT_DETECTORS",
    "Detector",
    "ResourceSource",
    "ScanOptions",
    "SnapshotSource",
    "scan",
    "verify_summary",
]
