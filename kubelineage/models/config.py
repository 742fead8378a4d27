"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class LineageConfig:
    """Trace resolver configuration."""

    stuck_threshold: str = "5m"
    max_hops: int = 16
    argocd_namespace: str = "argocd"


@dataclass
class ScannerConfig:
    """State scanner configuration."""

    workers: int = 8
    categories: tuple[str, ...] = ()


@dataclass
class CollectorConfig:
    """Cluster list configuration."""

    concurrency: int = 8
    namespace: str = ""


@dataclass
class QueryConfig:
    """Saved query storage."""

    saved_queries_path: str = "~/.kubelineage/queries.yaml"


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeLineageConfig:
    """Top-level kubelineage configuration."""

    cluster_name: str = ""
    lineage: LineageConfig = field(default_factory=LineageConfig)
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    log: LogConfig = field(default_factory=LogConfig)
