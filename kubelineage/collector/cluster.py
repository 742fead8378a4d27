"""Concurrent cluster listing with kubernetes_asyncio.

Kinds are listed in parallel, bounded by a semaphore. A failing kind does
not fail the collection: its exception is stored on the snapshot and
re-raised when a consumer asks for that kind.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

from kubelineage.collector.normalize import resource_from_object
from kubelineage.collector.snapshot import ClusterSnapshot
from kubelineage.errors import ScanDataError, classify_data_error
from kubelineage.models.config import KubeLineageConfig
from kubelineage.models.resources import Resource
from kubelineage.observability.logging import get_logger
from kubelineage.observability.metrics import collector_list_errors_total

_logger = get_logger("collector.cluster")

# kind -> CoreV1Api method stem (list_<stem>_for_all_namespaces / list_namespaced_<stem>)
CORE_KINDS: dict[str, str] = {
    "Pod": "pod",
    "ConfigMap": "config_map",
    "Secret": "secret",
    "Service": "service",
    "ServiceAccount": "service_account",
    "PersistentVolumeClaim": "persistent_volume_claim",
}

# kind -> (group, version, plural), listed through CustomObjectsApi
GROUP_KINDS: dict[str, tuple[str, str, str]] = {
    "Deployment": ("apps", "v1", "deployments"),
    "StatefulSet": ("apps", "v1", "statefulsets"),
    "DaemonSet": ("apps", "v1", "daemonsets"),
    "ReplicaSet": ("apps", "v1", "replicasets"),
    "Job": ("batch", "v1", "jobs"),
    "CronJob": ("batch", "v1", "cronjobs"),
    "HorizontalPodAutoscaler": ("autoscaling", "v2", "horizontalpodautoscalers"),
    "Kustomization": ("kustomize.toolkit.fluxcd.io", "v1", "kustomizations"),
    "HelmRelease": ("helm.toolkit.fluxcd.io", "v2", "helmreleases"),
    "GitRepository": ("source.toolkit.fluxcd.io", "v1", "gitrepositories"),
    "OCIRepository": ("source.toolkit.fluxcd.io", "v1beta2", "ocirepositories"),
    "HelmRepository": ("source.toolkit.fluxcd.io", "v1", "helmrepositories"),
    "HelmChart": ("source.toolkit.fluxcd.io", "v1", "helmcharts"),
    "Bucket": ("source.toolkit.fluxcd.io", "v1", "buckets"),
    "Application": ("argoproj.io", "v1alpha1", "applications"),
}

DEFAULT_KINDS: tuple[str, ...] = (*CORE_KINDS, *GROUP_KINDS)


async def connect() -> Any:
    """Configure kubernetes_asyncio from the service account or kubeconfig and return an ApiClient."""
    import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
    from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

    try:
        # load_incluster_config() is synchronous in kubernetes-asyncio
        k8s_config.load_incluster_config()
        _logger.info("k8s client configured from in-cluster service account")
    except k8s_config.ConfigException:
        await k8s_config.load_kube_config()
        _logger.info("k8s client configured from kubeconfig")
    return k8s_client.ApiClient()


class ClusterCollector:
    """Lists resources of many kinds concurrently into a ClusterSnapshot."""

    def __init__(self, api_client: Any, concurrency: int = 8, namespace: str = "", cluster: str = "") -> None:
        from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

        self._api_client = api_client
        self._core = k8s_client.CoreV1Api(api_client)
        self._custom = k8s_client.CustomObjectsApi(api_client)
        self._concurrency = max(1, concurrency)
        self._namespace = namespace
        self._cluster = cluster

    @classmethod
    def from_config(cls, api_client: Any, config: KubeLineageConfig) -> ClusterCollector:
        return cls(
            api_client,
            concurrency=config.collector.concurrency,
            namespace=config.collector.namespace,
            cluster=config.cluster_name,
        )

    async def collect(self, kinds: Iterable[str] | None = None) -> ClusterSnapshot:
        """List every kind in ``kinds`` (default: all registered kinds)."""
        kinds = list(kinds or DEFAULT_KINDS)
        semaphore = asyncio.Semaphore(self._concurrency)
        results = await asyncio.gather(*(self._list_guarded(semaphore, kind) for kind in kinds))

        resources: list[Resource] = []
        errors: dict[str, BaseException] = {}
        for kind, outcome in results:
            if isinstance(outcome, BaseException):
                errors[kind] = outcome
            else:
                resources.extend(outcome)
        _logger.info("collection complete", kinds=len(kinds), resources=len(resources), failed_kinds=sorted(errors))
        return ClusterSnapshot(resources, errors=errors, cluster=self._cluster)

    async def _list_guarded(
        self, semaphore: asyncio.Semaphore, kind: str
    ) -> tuple[str, list[Resource] | BaseException]:
        async with semaphore:
            try:
                return kind, await self._list(kind)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                collector_list_errors_total.labels(kind=kind).inc()
                _logger.warning(
                    "list failed",
                    kind=kind,
                    error_class=classify_data_error(exc).value,
                    error=str(exc),
                )
                return kind, exc

    async def _list(self, kind: str) -> list[Resource]:
        if kind in CORE_KINDS:
            stem = CORE_KINDS[kind]
            if self._namespace:
                result = await getattr(self._core, f"list_namespaced_{stem}")(self._namespace)
            else:
                result = await getattr(self._core, f"list_{stem}_for_all_namespaces")()
            payload = self._api_client.sanitize_for_serialization(result)
            api_version = "v1"
        elif kind in GROUP_KINDS:
            group, version, plural = GROUP_KINDS[kind]
            if self._namespace:
                payload = await self._custom.list_namespaced_custom_object(group, version, self._namespace, plural)
            else:
                payload = await self._custom.list_cluster_custom_object(group, version, plural)
            api_version = f"{group}/{version}"
        else:
            raise ScanDataError(kind, "no list mapping registered for this kind")

        items = payload.get("items") or []
        return [resource_from_object(item, kind=kind, api_version=api_version) for item in items]
