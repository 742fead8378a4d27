"""Collector package for kubelineage.

Turns cluster state (live or static YAML) into immutable Resource snapshots.

Submodules
----------
normalize -- wire payload → Resource conversion.
snapshot  -- ClusterSnapshot: scanner source, trace fetch and ownership fetch.
cluster   -- ClusterCollector: concurrent kubernetes_asyncio listing.
"""
