"""Core data structures for kubelineage."""

from kubelineage.models.config import KubeLineageConfig
from kubelineage.models.findings import Category, Finding, ScanResult, ScanSummary, Severity
from kubelineage.models.lineage import (
    ChainLink,
    ConfigHubContext,
    CrossplaneLineage,
    CrossReference,
    LineageNode,
    OrphanMetadata,
    ReferenceKind,
    ReferenceStatus,
    TraceDirection,
    TraceResult,
    WorkloadReference,
)
from kubelineage.models.ownership import Confidence, Ownership, OwnerType
from kubelineage.models.resources import Condition, LineageRef, OwnerRef, Resource, ResourceStatus

__all__ = [
    "Category",
    "ChainLink",
    "Condition",
    "Confidence",
    "ConfigHubContext",
    "CrossReference",
    "CrossplaneLineage",
    "Finding",
    "KubeLineageConfig",
    "LineageNode",
    "LineageRef",
    "OrphanMetadata",
    "OwnerRef",
    "OwnerType",
    "Ownership",
    "ReferenceKind",
    "ReferenceStatus",
    "Resource",
    "ResourceStatus",
    "ScanResult",
    "ScanSummary",
    "Severity",
    "TraceDirection",
    "TraceResult",
    "WorkloadReference",
]
