"""Ownership verdict types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class OwnerType(StrEnum):
    """Controlling authority of a resource, in cascade priority order."""

    FLUX = "Flux"
    ARGOCD = "ArgoCD"
    HELM = "Helm"
    TERRAFORM = "Terraform"
    CONFIGHUB = "ConfigHub"
    CROSSPLANE = "Crossplane"
    K8S_OWNER_REF = "K8sOwnerRef"
    NATIVE = "Native"


class Confidence(StrEnum):
    """Strength of the signal behind an ownership verdict."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


GITOPS_OWNERS = frozenset({OwnerType.FLUX, OwnerType.ARGOCD, OwnerType.CONFIGHUB})


@dataclass(frozen=True)
class Ownership:
    """Exactly one verdict per resource.

    ``source`` is the literal label, annotation or owner-reference key that
    fired, so every verdict can be audited back to a concrete signal.
    """

    type: OwnerType
    sub_type: str = ""
    name: str = ""
    namespace: str = ""
    source: str = ""
    confidence: Confidence = Confidence.LOW

    @property
    def is_managed(self) -> bool:
        return self.type is not OwnerType.NATIVE

    @property
    def is_gitops(self) -> bool:
        return self.type in GITOPS_OWNERS


NATIVE = Ownership(type=OwnerType.NATIVE, confidence=Confidence.LOW)
