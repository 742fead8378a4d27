"""Shared fixtures for kubelineage integration tests.

Provides a realistic cluster snapshot (Flux, Argo CD, Helm, Terraform and
Crossplane objects plus plain workloads) built from wire-format payloads,
so integration tests exercise normalization, classification, tracing,
querying and scanning together without touching a real cluster.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from kubelineage.collector.normalize import resource_from_object
from kubelineage.collector.snapshot import ClusterSnapshot
from kubelineage.models.resources import Resource

# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------

NOW = datetime(2026, 2, 18, 12, 0, 0, tzinfo=UTC)


def ago(**kwargs: float) -> str:
    """RFC 3339 timestamp ``kwargs`` before NOW."""
    return (NOW - timedelta(**kwargs)).strftime("%Y-%m-%dT%H:%M:%SZ")


# ---------------------------------------------------------------------------
# Object factory helpers
# ---------------------------------------------------------------------------


def make_object(
    kind: str,
    name: str,
    namespace: str = "default",
    api_version: str = "v1",
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    owner_refs: list[dict[str, Any]] | None = None,
    spec: dict[str, Any] | None = None,
    status: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create a wire-format object dictionary."""
    metadata: dict[str, Any] = {"name": name, "namespace": namespace, "creationTimestamp": ago(days=3)}
    if labels:
        metadata["labels"] = labels
    if annotations:
        metadata["annotations"] = annotations
    if owner_refs:
        metadata["ownerReferences"] = owner_refs
    obj: dict[str, Any] = {"apiVersion": api_version, "kind": kind, "metadata": metadata}
    if spec is not None:
        obj["spec"] = spec
    if status is not None:
        obj["status"] = status
    return obj


def ready_condition(ready: bool, reason: str = "", message: str = "", **age: float) -> dict[str, Any]:
    return {
        "type": "Ready",
        "status": "True" if ready else "False",
        "reason": reason or ("ReconciliationSucceeded" if ready else "Failed"),
        "message": message,
        "lastTransitionTime": ago(**(age or {"minutes": 1})),
    }


def make_helmrelease(
    name: str = "podinfo",
    namespace: str = "apps",
    ready: bool = True,
    reason: str = "",
    message: str = "",
    age: timedelta = timedelta(minutes=1),
) -> Resource:
    return resource_from_object(
        make_object(
            "HelmRelease",
            name,
            namespace=namespace,
            api_version="helm.toolkit.fluxcd.io/v2",
            spec={
                "interval": "10m",
                "chart": {
                    "spec": {
                        "chart": name,
                        "version": "6.5.0",
                        "sourceRef": {"kind": "HelmRepository", "name": name},
                    }
                },
            },
            status={"conditions": [ready_condition(ready, reason, message, seconds=age.total_seconds())]},
        )
    )


def make_kustomization(
    name: str = "apps",
    namespace: str = "flux-system",
    ready: bool = True,
    reason: str = "",
    message: str = "",
    age: timedelta = timedelta(minutes=1),
) -> Resource:
    return resource_from_object(
        make_object(
            "Kustomization",
            name,
            namespace=namespace,
            api_version="kustomize.toolkit.fluxcd.io/v1",
            spec={
                "interval": "10m",
                "path": f"./{name}",
                "prune": True,
                "sourceRef": {"kind": "GitRepository", "name": "flux-system"},
            },
            status={
                "conditions": [ready_condition(ready, reason, message, seconds=age.total_seconds())],
                "lastAppliedRevision": "main@sha1:4f2a9c1",
            },
        )
    )


def make_sources(helm_namespace: str = "apps", helm_name: str = "podinfo") -> list[Resource]:
    """A ready GitRepository in flux-system and a ready HelmRepository."""
    return [
        resource_from_object(
            make_object(
                "GitRepository",
                "flux-system",
                namespace="flux-system",
                api_version="source.toolkit.fluxcd.io/v1",
                spec={"interval": "1m", "url": "https://github.com/acme/fleet", "ref": {"branch": "main"}},
                status={
                    "conditions": [ready_condition(True)],
                    "artifact": {"revision": "main@sha1:4f2a9c1", "lastUpdateTime": ago(minutes=2)},
                },
            )
        ),
        resource_from_object(
            make_object(
                "HelmRepository",
                helm_name,
                namespace=helm_namespace,
                api_version="source.toolkit.fluxcd.io/v1",
                spec={"interval": "1h", "url": "https://stefanprodan.github.io/podinfo"},
                status={"conditions": [ready_condition(True)]},
            )
        ),
    ]


# ---------------------------------------------------------------------------
# Snapshot fixtures
# ---------------------------------------------------------------------------


def _cluster_objects() -> list[dict[str, Any]]:
    flux_labels = {
        "kustomize.toolkit.fluxcd.io/name": "apps",
        "kustomize.toolkit.fluxcd.io/namespace": "flux-system",
    }
    template = {
        "spec": {
            "containers": [
                {
                    "name": "api",
                    "image": "ghcr.io/acme/payments:1.4.2",
                    "envFrom": [{"secretRef": {"name": "payments-db"}}],
                    "env": [{"name": "MODE", "valueFrom": {"configMapKeyRef": {"name": "payments-flags", "key": "mode"}}}],
                }
            ]
        }
    }
    return [
        make_object(
            "Deployment",
            "payments-api",
            namespace="payments",
            api_version="apps/v1",
            labels=flux_labels,
            spec={"replicas": 2, "template": template},
            status={"replicas": 2, "readyReplicas": 2},
        ),
        make_object(
            "ReplicaSet",
            "payments-api-7c9d",
            namespace="payments",
            api_version="apps/v1",
            owner_refs=[{"apiVersion": "apps/v1", "kind": "Deployment", "name": "payments-api", "controller": True}],
            spec={"replicas": 2, "template": template},
            status={"replicas": 2, "readyReplicas": 2},
        ),
        make_object(
            "Pod",
            "payments-api-7c9d-x2kj",
            namespace="payments",
            owner_refs=[{"apiVersion": "apps/v1", "kind": "ReplicaSet", "name": "payments-api-7c9d", "controller": True}],
            spec=template["spec"],
            status={"phase": "Running"},
        ),
        make_object(
            "Secret",
            "payments-db",
            namespace="payments",
            annotations={"app.terraform.io/run-id": "run-8XhQ", "app.terraform.io/workspace-name": "payments-db"},
        ),
        make_object("ConfigMap", "payments-flags", namespace="payments", labels=flux_labels),
        make_object(
            "Deployment",
            "guestbook-ui",
            namespace="guestbook",
            api_version="apps/v1",
            labels={"argocd.argoproj.io/instance": "guestbook"},
            spec={"replicas": 1},
            status={"replicas": 1, "readyReplicas": 1},
        ),
        make_object(
            "Application",
            "guestbook",
            namespace="argocd",
            api_version="argoproj.io/v1alpha1",
            spec={"source": {"repoURL": "https://github.com/argoproj/argocd-example-apps", "path": "guestbook"}},
            status={
                "health": {"status": "Healthy"},
                "sync": {"status": "Synced", "revision": "53e28ff"},
                "reconciledAt": ago(minutes=1),
            },
        ),
        make_object(
            "StatefulSet",
            "redis-master",
            namespace="cache",
            api_version="apps/v1",
            labels={"app.kubernetes.io/managed-by": "Helm", "app.kubernetes.io/instance": "redis"},
            annotations={"meta.helm.sh/release-name": "redis", "meta.helm.sh/release-namespace": "cache"},
            status={"replicas": 1, "readyReplicas": 1},
        ),
        make_object(
            "Deployment",
            "debug-shell",
            namespace="default",
            api_version="apps/v1",
            spec={"replicas": 1},
            status={"replicas": 1, "readyReplicas": 1},
        ),
        make_object(
            "Instance",
            "orders-db-x7k2p-rds",
            namespace="",
            api_version="rds.aws.upbound.io/v1beta1",
            labels={
                "crossplane.io/composite": "orders-db-x7k2p",
                "crossplane.io/claim-name": "orders-db",
                "crossplane.io/claim-namespace": "orders",
            },
        ),
    ]


@pytest.fixture()
def cluster_resources() -> list[Resource]:
    """Normalized resources for a small mixed-ownership cluster."""
    objects = [resource_from_object(obj) for obj in _cluster_objects()]
    return [*objects, make_kustomization(), *make_sources()]


@pytest.fixture()
def cluster_snapshot(cluster_resources: list[Resource]) -> ClusterSnapshot:
    return ClusterSnapshot(cluster_resources, cluster="test-cluster")


@pytest.fixture()
def stuck_fixtures() -> list[Resource]:
    """A HelmRelease and a Kustomization stuck past the threshold, with healthy sources."""
    return [
        make_helmrelease(
            ready=False,
            reason="UpgradeFailed",
            message="Helm upgrade failed: timed out waiting",
            age=timedelta(hours=2),
        ),
        make_kustomization(reason="ReconciliationFailed", message="apply failed", ready=False, age=timedelta(minutes=20)),
        *make_sources(),
    ]


@pytest.fixture()
def object_factory() -> Any:
    return make_object


@pytest.fixture()
def helmrelease_factory() -> Any:
    return make_helmrelease


@pytest.fixture()
def kustomization_factory() -> Any:
    return make_kustomization


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def flux_sources() -> list[Resource]:
    return make_sources()
