"""Fixed-priority ownership cascade."""

from __future__ import annotations

from kubelineage.models.ownership import NATIVE, Ownership, OwnerType
from kubelineage.models.resources import Resource
from kubelineage.ownership.detectors import (
    Detector,
    detect_argocd,
    detect_confighub,
    detect_crossplane,
    detect_flux,
    detect_helm,
    detect_owner_ref,
    detect_terraform,
)

# Evaluated in order; the first detector that returns a verdict wins.
CASCADE: tuple[tuple[OwnerType, Detector], ...] = (
    (OwnerType.FLUX, detect_flux),
    (OwnerType.ARGOCD, detect_argocd),
    (OwnerType.HELM, detect_helm),
    (OwnerType.TERRAFORM, detect_terraform),
    (OwnerType.CONFIGHUB, detect_confighub),
    (OwnerType.CROSSPLANE, detect_crossplane),
    (OwnerType.K8S_OWNER_REF, detect_owner_ref),
)

OWNER_ALIASES: dict[str, OwnerType] = {
    "flux": OwnerType.FLUX,
    "argo": OwnerType.ARGOCD,
    "argocd": OwnerType.ARGOCD,
    "helm": OwnerType.HELM,
    "terraform": OwnerType.TERRAFORM,
    "confighub": OwnerType.CONFIGHUB,
    "crossplane": OwnerType.CROSSPLANE,
    "k8s": OwnerType.K8S_OWNER_REF,
    "k8sownerref": OwnerType.K8S_OWNER_REF,
    "native": OwnerType.NATIVE,
    "unmanaged": OwnerType.NATIVE,
    "unknown": OwnerType.NATIVE,
}


def classify(resource: Resource) -> Ownership:
    """Return the single ownership verdict for ``resource``.

    Total and pure: every resource gets exactly one verdict, Native when no
    detector fires.
    """
    for _owner_type, detector in CASCADE:
        verdict = detector(resource)
        if verdict is not None:
            return verdict
    return NATIVE


def matching_detectors(resource: Resource) -> list[Ownership]:
    """Every detector verdict for ``resource``, in cascade order.

    ``classify`` keeps only the first of these; the rest explain what the
    cascade overrode.
    """
    return [v for _t, d in CASCADE if (v := d(resource)) is not None]


def resolve_owner_type(value: str) -> OwnerType | None:
    """Map a display name or alias (``argo``, ``k8s``, ``unmanaged``) to an OwnerType."""
    return OWNER_ALIASES.get(value.strip().lower())
