"""Individual ownership detectors.

Each detector is a pure ``(Resource) -> Ownership | None`` function that
looks at one family of signals. Returning None means "no signal here", and
the cascade moves on. Detectors never raise on malformed metadata.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from kubelineage.models.ownership import Confidence, Ownership, OwnerType
from kubelineage.models.resources import OwnerRef, Resource

Detector = Callable[[Resource], Ownership | None]

# Flux
FLUX_KUSTOMIZE_NAME = "kustomize.toolkit.fluxcd.io/name"
FLUX_KUSTOMIZE_NAMESPACE = "kustomize.toolkit.fluxcd.io/namespace"
FLUX_HELM_NAME = "helm.toolkit.fluxcd.io/name"
FLUX_HELM_NAMESPACE = "helm.toolkit.fluxcd.io/namespace"

# Argo CD
ARGO_INSTANCE = "argocd.argoproj.io/instance"
ARGO_TRACKING_ID = "argocd.argoproj.io/tracking-id"
APP_INSTANCE = "app.kubernetes.io/instance"

# Helm
HELM_MANAGED_BY = "app.kubernetes.io/managed-by"
HELM_CHART = "helm.sh/chart"
HELM_RELEASE_NAME = "meta.helm.sh/release-name"
HELM_RELEASE_NAMESPACE = "meta.helm.sh/release-namespace"
# Helm 3 storage: one Secret per revision, sh.helm.release.v1.<release>.v<N>
HELM_RELEASE_SECRET_PREFIX = "sh.helm.release.v1."

# Terraform
TERRAFORM_RUN_ID = "app.terraform.io/run-id"
TERRAFORM_WORKSPACE = "app.terraform.io/workspace-name"
TERRAFORM_MANAGED = "app.terraform.io/managed"

# ConfigHub
CONFIGHUB_UNIT_SLUG = "confighub.com/UnitSlug"
CONFIGHUB_SPACE_NAME = "confighub.com/SpaceName"

# Crossplane
CROSSPLANE_CLAIM_NAME = "crossplane.io/claim-name"
CROSSPLANE_CLAIM_NAMESPACE = "crossplane.io/claim-namespace"
CROSSPLANE_COMPOSITE = "crossplane.io/composite"
CROSSPLANE_RESOURCE_NAME = "crossplane.io/composition-resource-name"
CROSSPLANE_CONTROL_PLANE_GROUPS = frozenset({"pkg.crossplane.io", "apiextensions.crossplane.io"})
_CROSSPLANE_GROUP_SUFFIXES = ("crossplane.io", "upbound.io")

_APP_NAME_RE = re.compile(r"^[a-z0-9]([-a-z0-9.]{0,251}[a-z0-9])?$")


def _lookup(resource: Resource, key: str) -> str:
    """Label first, annotation second."""
    return resource.labels.get(key) or resource.annotations.get(key) or ""


def _valid_app_name(value: str) -> bool:
    return bool(_APP_NAME_RE.match(value))


def _split_app_ref(value: str) -> tuple[str, str] | None:
    """Parse ``name`` or ``namespace_name`` (apps-in-any-namespace form)."""
    namespace = ""
    if "_" in value:
        namespace, value = value.split("_", 1)
        if not _valid_app_name(namespace):
            return None
    if not _valid_app_name(value):
        return None
    return namespace, value


def is_crossplane_group(group: str) -> bool:
    for suffix in _CROSSPLANE_GROUP_SUFFIXES:
        if group == suffix or group.endswith("." + suffix):
            return True
    return False


def select_owner_ref(refs: tuple[OwnerRef, ...]) -> OwnerRef | None:
    """Pick the authoritative owner reference.

    A lone reference is used as-is. With several, only one flagged
    ``controller`` counts; without one the owner is ambiguous and the
    result is None.
    """
    if not refs:
        return None
    if len(refs) == 1:
        return refs[0]
    for ref in refs:
        if ref.controller:
            return ref
    return None


def detect_flux(resource: Resource) -> Ownership | None:
    labels = resource.labels
    if name := labels.get(FLUX_KUSTOMIZE_NAME):
        return Ownership(
            type=OwnerType.FLUX,
            sub_type="kustomization",
            name=name,
            namespace=labels.get(FLUX_KUSTOMIZE_NAMESPACE, ""),
            source=FLUX_KUSTOMIZE_NAME,
            confidence=Confidence.HIGH,
        )
    if name := labels.get(FLUX_HELM_NAME):
        return Ownership(
            type=OwnerType.FLUX,
            sub_type="helmrelease",
            name=name,
            namespace=labels.get(FLUX_HELM_NAMESPACE, ""),
            source=FLUX_HELM_NAME,
            confidence=Confidence.HIGH,
        )
    # Namespace label without a name: Flux applied it, but which object is unknown.
    for key, sub_type in ((FLUX_KUSTOMIZE_NAMESPACE, "kustomization"), (FLUX_HELM_NAMESPACE, "helmrelease")):
        if namespace := labels.get(key):
            return Ownership(
                type=OwnerType.FLUX,
                sub_type=sub_type,
                namespace=namespace,
                source=key,
                confidence=Confidence.MEDIUM,
            )
    return None


def detect_argocd(resource: Resource) -> Ownership | None:
    labels = resource.labels
    if ARGO_INSTANCE in labels:
        parsed = _split_app_ref(labels[ARGO_INSTANCE])
        if parsed is not None:
            namespace, name = parsed
            return Ownership(
                type=OwnerType.ARGOCD,
                sub_type="application",
                name=name,
                namespace=namespace,
                source=ARGO_INSTANCE,
                confidence=Confidence.HIGH,
            )
        instance = labels.get(APP_INSTANCE, "")
        if _valid_app_name(instance):
            return Ownership(
                type=OwnerType.ARGOCD,
                sub_type="application",
                name=instance,
                source=APP_INSTANCE,
                confidence=Confidence.MEDIUM,
            )

    tracking = resource.annotations.get(ARGO_TRACKING_ID, "")
    # app:group/Kind:namespace/name
    if ":" in tracking:
        parsed = _split_app_ref(tracking.split(":", 1)[0])
        if parsed is not None:
            namespace, name = parsed
            return Ownership(
                type=OwnerType.ARGOCD,
                sub_type="application",
                name=name,
                namespace=namespace,
                source=ARGO_TRACKING_ID,
                confidence=Confidence.HIGH,
            )
    return None


def detect_helm(resource: Resource) -> Ownership | None:
    labels = resource.labels
    release = labels.get(APP_INSTANCE) or resource.annotations.get(HELM_RELEASE_NAME, "")
    namespace = resource.annotations.get(HELM_RELEASE_NAMESPACE, resource.namespace)
    if labels.get(HELM_MANAGED_BY) == "Helm":
        return Ownership(
            type=OwnerType.HELM,
            sub_type="release",
            name=release,
            namespace=namespace,
            source=HELM_MANAGED_BY,
            confidence=Confidence.HIGH,
        )
    if chart := labels.get(HELM_CHART):
        return Ownership(
            type=OwnerType.HELM,
            sub_type="release",
            name=release or chart,
            namespace=namespace,
            source=HELM_CHART,
            confidence=Confidence.MEDIUM,
        )
    if name := resource.annotations.get(HELM_RELEASE_NAME):
        return Ownership(
            type=OwnerType.HELM,
            sub_type="release",
            name=name,
            namespace=namespace,
            source=HELM_RELEASE_NAME,
            confidence=Confidence.MEDIUM,
        )
    return None


def detect_terraform(resource: Resource) -> Ownership | None:
    if _lookup(resource, TERRAFORM_RUN_ID):
        return Ownership(
            type=OwnerType.TERRAFORM,
            sub_type="workspace",
            name=_lookup(resource, TERRAFORM_WORKSPACE),
            source=TERRAFORM_RUN_ID,
            confidence=Confidence.HIGH,
        )
    if TERRAFORM_MANAGED in resource.labels:
        return Ownership(
            type=OwnerType.TERRAFORM,
            sub_type="managed",
            name=_lookup(resource, TERRAFORM_WORKSPACE),
            source=TERRAFORM_MANAGED,
            confidence=Confidence.MEDIUM,
        )
    return None


def detect_confighub(resource: Resource) -> Ownership | None:
    space = resource.annotations.get(CONFIGHUB_SPACE_NAME) or resource.labels.get(CONFIGHUB_SPACE_NAME, "")
    if slug := resource.labels.get(CONFIGHUB_UNIT_SLUG):
        confidence = Confidence.HIGH
    elif slug := resource.annotations.get(CONFIGHUB_UNIT_SLUG):
        confidence = Confidence.MEDIUM
    else:
        return None
    return Ownership(
        type=OwnerType.CONFIGHUB,
        sub_type="unit",
        name=slug,
        namespace=space,
        source=CONFIGHUB_UNIT_SLUG,
        confidence=confidence,
    )


def _crossplane_owner_ref(resource: Resource) -> OwnerRef | None:
    refs = [ref for ref in resource.owner_refs if is_crossplane_group(ref.api_group)]
    for ref in refs:
        if ref.controller:
            return ref
    return refs[0] if refs else None


def detect_crossplane(resource: Resource) -> Ownership | None:
    labels = resource.labels
    if claim := labels.get(CROSSPLANE_CLAIM_NAME):
        return Ownership(
            type=OwnerType.CROSSPLANE,
            sub_type="claim",
            name=claim,
            namespace=labels.get(CROSSPLANE_CLAIM_NAMESPACE, ""),
            source=CROSSPLANE_CLAIM_NAME,
            confidence=Confidence.HIGH,
        )
    if composite := labels.get(CROSSPLANE_COMPOSITE):
        return Ownership(
            type=OwnerType.CROSSPLANE,
            sub_type="composite",
            name=composite,
            source=CROSSPLANE_COMPOSITE,
            confidence=Confidence.HIGH,
        )
    if (ref := _crossplane_owner_ref(resource)) is not None:
        return Ownership(
            type=OwnerType.CROSSPLANE,
            sub_type=ref.kind.lower(),
            name=ref.name,
            source=f"ownerRef:{ref.api_version or ref.api_group}/{ref.kind}",
            confidence=Confidence.HIGH,
        )
    if resource.api_group in CROSSPLANE_CONTROL_PLANE_GROUPS:
        return Ownership(
            type=OwnerType.CROSSPLANE,
            sub_type="control-plane",
            name=resource.name,
            source=f"apiGroup:{resource.api_group}",
            confidence=Confidence.HIGH,
        )
    if name := resource.annotations.get(CROSSPLANE_RESOURCE_NAME):
        return Ownership(
            type=OwnerType.CROSSPLANE,
            sub_type="managed-resource",
            name=name,
            source=CROSSPLANE_RESOURCE_NAME,
            confidence=Confidence.MEDIUM,
        )
    return None


def detect_owner_ref(resource: Resource) -> Ownership | None:
    ref = select_owner_ref(resource.owner_refs)
    if ref is None:
        return None
    return Ownership(
        type=OwnerType.K8S_OWNER_REF,
        sub_type=ref.kind.lower(),
        name=ref.name,
        namespace=resource.namespace,
        source=f"ownerRef:{ref.kind}",
        confidence=Confidence.HIGH if ref.controller else Confidence.MEDIUM,
    )
