"""Scan orchestration: gather once, fan detectors out, merge deterministically.

Every kind a detector depends on is listed exactly once up front. List
failures are classified: a missing CRD makes that kind silently
unavailable, anything else also becomes a warning on the result. Each
detector then runs in its own worker over a private view of the kinds it
declared, and the findings are merged in detector order once all workers
have finished. The summary is recomputed from the merged findings and
checked before the result is returned.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from kubelineage.config import duration_to_timedelta
from kubelineage.errors import ErrorClass, ScanConsistencyError, classify_data_error, describe_data_error
from kubelineage.lineage.timing import DEFAULT_STUCK_THRESHOLD
from kubelineage.models.config import KubeLineageConfig
from kubelineage.models.findings import Category, Finding, ScanResult, ScanSummary, Severity
from kubelineage.models.resources import Resource
from kubelineage.observability.logging import get_logger, scan_context
from kubelineage.observability.metrics import scan_data_errors_total, scan_duration_seconds, scan_findings_total
from kubelineage.scanner.apply import ApplyFailureDetector
from kubelineage.scanner.base import Detector, ResourceSource, ScanContext, SnapshotSource, SnapshotView
from kubelineage.scanner.depend import DependencyDetector
from kubelineage.scanner.drift import DriftDetector
from kubelineage.scanner.misconfig import MisconfigurationDetector
from kubelineage.scanner.orphan import OrphanDetector
from kubelineage.scanner.render import RenderFailureDetector
from kubelineage.scanner.source import SourceDetector
from kubelineage.scanner.state import StuckReconciliationDetector

_logger = get_logger("scanner.engine")

# One detector per category, in pipeline order. Merge order follows this tuple.
DEFAULT_DETECTORS: tuple[Detector, ...] = (
    SourceDetector(),
    RenderFailureDetector(),
    ApplyFailureDetector(),
    DriftDetector(),
    MisconfigurationDetector(),
    DependencyDetector(),
    StuckReconciliationDetector(),
    OrphanDetector(),
)

_SEVERITY_RANK = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}


@dataclass(frozen=True)
class ScanOptions:
    stuck_threshold: timedelta = DEFAULT_STUCK_THRESHOLD
    now: datetime | None = None
    namespace: str = ""
    categories: frozenset[Category] | None = None
    workers: int = 8
    cluster: str = ""

    @classmethod
    def from_config(cls, config: KubeLineageConfig, **overrides: Any) -> ScanOptions:
        categories = frozenset(Category(c) for c in config.scanner.categories) or None
        values: dict[str, Any] = {
            "stuck_threshold": duration_to_timedelta(config.lineage.stuck_threshold),
            "workers": config.scanner.workers,
            "categories": categories,
            "cluster": config.cluster_name,
            "namespace": config.collector.namespace,
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class _Gathered:
    data: dict[str, tuple[Resource, ...]]
    available: frozenset[str]
    warnings: tuple[str, ...]


def _required_kinds(detectors: Sequence[Detector]) -> list[str]:
    kinds: list[str] = []
    for detector in detectors:
        for kind in detector.resource_dependencies:
            if kind not in kinds:
                kinds.append(kind)
    return kinds


def _gather(source: ResourceSource, kinds: Iterable[str]) -> _Gathered:
    data: dict[str, tuple[Resource, ...]] = {}
    available: set[str] = set()
    warnings: list[str] = []
    for kind in kinds:
        try:
            items = tuple(source.list_kind(kind))
        except Exception as exc:
            error_class = classify_data_error(exc)
            scan_data_errors_total.labels(kind=kind, error_class=error_class.value).inc()
            if error_class is ErrorClass.CRD_MISSING:
                _logger.debug("kind not installed, skipping", kind=kind, error=str(exc))
                continue
            message = describe_data_error(kind, exc, error_class)
            _logger.warning("kind unavailable for scan", kind=kind, error_class=error_class.value, error=str(exc))
            warnings.append(message)
            continue
        data[kind] = items
        available.add(kind)
    return _Gathered(data=data, available=frozenset(available), warnings=tuple(warnings))


def _view_for(detector: Detector, gathered: _Gathered) -> SnapshotView | None:
    kinds = detector.resource_dependencies
    usable = frozenset(k for k in kinds if k in gathered.available)
    if not usable:
        return None
    return SnapshotView({k: gathered.data[k] for k in usable}, usable)


def _sort_key(finding: Finding) -> tuple[int, str, str, str, str]:
    ref = finding.resource
    return (_SEVERITY_RANK[finding.severity], ref.namespace, ref.kind, ref.name, finding.id)


def verify_summary(result: ScanResult) -> None:
    """Raise ScanConsistencyError unless the summary is reproducible from the findings."""
    if result.summary.total != len(result.findings):
        raise ScanConsistencyError(
            f"summary total {result.summary.total} does not match {len(result.findings)} findings"
        )
    for category in Category:
        expected = sum(1 for f in result.findings if f.category == category)
        if result.summary.by_category.get(category, 0) != expected:
            raise ScanConsistencyError(
                f"summary reports {result.summary.by_category.get(category, 0)} {category} findings, found {expected}"
            )


def scan(
    resources: Iterable[Resource] | ResourceSource,
    options: ScanOptions | None = None,
    detectors: Sequence[Detector] = DEFAULT_DETECTORS,
) -> ScanResult:
    """Run every enabled detector and return findings, warnings and summary.

    ``resources`` is either a plain collection of resources or a
    ResourceSource (such as a ClusterSnapshot) whose ``list_kind`` may
    raise. A scan never aborts because one kind or one detector failed.
    """
    options = options or ScanOptions()
    ctx = ScanContext(now=options.now or datetime.now(UTC), stuck_threshold=options.stuck_threshold)
    source = resources if isinstance(resources, ResourceSource) else SnapshotSource(resources)
    active = [d for d in detectors if options.categories is None or d.category in options.categories]

    started = time.monotonic()
    with scan_context(uuid.uuid4().hex[:12], options.cluster):
        gathered = _gather(source, _required_kinds(active))
        warnings = list(gathered.warnings)

        runnable: list[tuple[Detector, SnapshotView]] = []
        for detector in active:
            view = _view_for(detector, gathered)
            if view is None:
                _logger.debug("detector skipped, no data available", detector=detector.detector_id)
                continue
            runnable.append((detector, view))

        outputs: dict[str, list[Finding]] = {}
        if runnable:
            workers = max(1, min(options.workers, len(runnable)))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="kubelineage-scan") as pool:
                futures: list[tuple[Detector, Future[list[Finding]]]] = [
                    (detector, pool.submit(detector.detect, view, ctx)) for detector, view in runnable
                ]
                for detector, future in futures:
                    try:
                        outputs[detector.detector_id] = sorted(future.result(), key=_sort_key)
                    except Exception as exc:
                        _logger.error("detector failed", detector=detector.detector_id, error=str(exc))
                        warnings.append(f"detector {detector.detector_id} failed: {exc}")
                        outputs[detector.detector_id] = []

        # Detectors see every namespace so cross-namespace references resolve;
        # the namespace option only narrows what is reported.
        findings = tuple(
            f
            for detector, _ in runnable
            for f in outputs[detector.detector_id]
            if not options.namespace or f.resource.namespace in (options.namespace, "")
        )
        result = ScanResult(
            findings=findings,
            warnings=tuple(dict.fromkeys(warnings)),
            summary=ScanSummary.from_findings(findings),
        )
        verify_summary(result)

        for finding in findings:
            scan_findings_total.labels(category=finding.category.value, severity=finding.severity.value).inc()
        scan_duration_seconds.observe(time.monotonic() - started)
        _logger.info(
            "scan complete",
            findings=len(findings),
            critical=result.summary.critical,
            warning=result.summary.warning,
            info=result.summary.info,
            warnings=len(result.warnings),
        )
    return result
