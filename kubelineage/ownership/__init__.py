"""Ownership classification.

Submodules
----------
detectors  -- one pure detector per controlling authority.
classifier -- the fixed-priority cascade and owner-name aliases.
"""

from kubelineage.ownership.classifier import CASCADE, classify, matching_detectors, resolve_owner_type
from kubelineage.ownership.detectors import select_owner_ref

__all__ = ["CASCADE", "classify", "matching_detectors", "resolve_owner_type", "select_owner_ref"]
