"""Unit tests for the per-category scanner detectors.

Each detector is exercised directly against a SnapshotView so that its
findings can be checked without the gathering and merge machinery.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from kubelineage.models.findings import Category, Finding, Severity
from kubelineage.models.resources import Condition, OwnerRef, Resource, ResourceStatus
from kubelineage.scanner.apply import ApplyFailureDetector
from kubelineage.scanner.base import ScanContext, SnapshotView
from kubelineage.scanner.catalog import parse_go_duration, severity_for_age, truncate
from kubelineage.scanner.depend import DependencyDetector
from kubelineage.scanner.drift import DriftDetector, diff_declared
from kubelineage.scanner.engine import DEFAULT_DETECTORS
from kubelineage.scanner.misconfig import MisconfigurationDetector
from kubelineage.scanner.orphan import OrphanDetector
from kubelineage.scanner.render import RenderFailureDetector
from kubelineage.scanner.source import SourceDetector
from kubelineage.scanner.state import StuckReconciliationDetector

_TS = datetime(2026, 2, 18, 12, 0, 0, tzinfo=UTC)
_CTX = ScanContext(now=_TS, stuck_threshold=timedelta(minutes=5))
_ALL_KINDS = frozenset(k for d in DEFAULT_DETECTORS for k in d.resource_dependencies)

# ---------------------------------------------------------------------------
# Helper factories
# ---------------------------------------------------------------------------


def _view(*resources: Resource, unavailable: tuple[str, ...] = ()) -> SnapshotView:
    data: dict[str, list[Resource]] = {}
    for resource in resources:
        data.setdefault(resource.kind, []).append(resource)
    available = frozenset(_ALL_KINDS | set(data)) - set(unavailable)
    return SnapshotView({k: tuple(v) for k, v in data.items() if k in available}, available)


def _status(ready: bool = True, reason: str = "", message: str = "", age: timedelta = timedelta(minutes=1)) -> ResourceStatus:
    cond = Condition(
        type="Ready",
        status="True" if ready else "False",
        reason=reason or ("ReconciliationSucceeded" if ready else ""),
        message=message,
        last_transition=_TS - age,
    )
    return ResourceStatus(ready=ready, conditions=(cond,))


def _make_resource(
    kind: str,
    name: str,
    namespace: str = "default",
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    owner_refs: tuple[OwnerRef, ...] = (),
    status: ResourceStatus | None = None,
    spec: dict | None = None,
) -> Resource:
    return Resource(
        kind=kind,
        namespace=namespace,
        name=name,
        labels=labels or {},
        annotations=annotations or {},
        owner_refs=owner_refs,
        status=status or ResourceStatus(),
        spec=spec or {},
    )


def _failing(kind: str, reason: str, age: timedelta, name: str = "podinfo", spec: dict | None = None) -> Resource:
    return _make_resource(
        kind,
        name,
        namespace="apps",
        status=_status(False, reason, f"{reason}: something went wrong", age),
        spec=spec,
    )


def _application(raw: dict, name: str = "guestbook") -> Resource:
    return _make_resource("Application", name, namespace="argocd", status=ResourceStatus(ready=False, raw=raw))


def _ids(findings: list[Finding]) -> list[str]:
    return [f.id for f in findings]


# ---------------------------------------------------------------------------
# STATE
# ---------------------------------------------------------------------------


class TestStuckReconciliation:
    def test_stuck_helmrelease_upgrade(self) -> None:
        hr = _failing("HelmRelease", "UpgradeFailed", timedelta(hours=2))
        findings = StuckReconciliationDetector().detect(_view(hr), _CTX)

        assert len(findings) == 1
        f = findings[0]
        assert f.id == "CCVE-2025-0166"
        assert f.category is Category.STATE
        assert f.severity is Severity.CRITICAL
        assert f.message.startswith("HelmRelease stuck for 2h0m (Ready=False, reason UpgradeFailed)")
        assert f.command == "flux suspend hr podinfo -n apps && flux resume hr podinfo -n apps"

    def test_stuck_kustomization_warning(self) -> None:
        ks = _failing("Kustomization", "HealthCheckFailed", timedelta(minutes=20), name="apps")
        findings = StuckReconciliationDetector().detect(_view(ks), _CTX)
        assert _ids(findings) == ["CCVE-2025-0012"]
        assert findings[0].severity is Severity.WARNING
        assert findings[0].command == "flux reconcile ks apps -n apps --with-source"

    def test_recent_failure_not_stuck(self) -> None:
        ks = _failing("Kustomization", "HealthCheckFailed", timedelta(minutes=2))
        assert StuckReconciliationDetector().detect(_view(ks), _CTX) == []

    def test_suspended_ignored(self) -> None:
        hr = _failing("HelmRelease", "UpgradeFailed", timedelta(hours=2), spec={"suspend": True})
        assert StuckReconciliationDetector().detect(_view(hr), _CTX) == []

    def test_stalled_condition(self) -> None:
        hr = _make_resource(
            "HelmRelease",
            "podinfo",
            status=ResourceStatus(
                ready=False,
                conditions=(Condition("Stalled", "True", "RetriesExceeded", "", _TS - timedelta(minutes=10)),),
            ),
        )
        findings = StuckReconciliationDetector().detect(_view(hr), _CTX)
        assert len(findings) == 1
        assert "Stalled=True" in findings[0].message

    def test_stuck_argo_operation(self) -> None:
        app = _application({"operationState": {"phase": "Running", "startedAt": "2026-02-18T11:30:00Z"}})
        findings = StuckReconciliationDetector().detect(_view(app), _CTX)
        assert _ids(findings) == ["CCVE-2025-0169"]
        assert findings[0].command == "argocd app terminate-op guestbook"
        assert findings[0].severity is Severity.WARNING

    def test_running_argo_operation_within_threshold(self) -> None:
        app = _application({"operationState": {"phase": "Running", "startedAt": "2026-02-18T11:58:00Z"}})
        assert StuckReconciliationDetector().detect(_view(app), _CTX) == []


class TestPipelinePartition:
    @pytest.mark.parametrize(
        ("reason", "age", "expected"),
        [
            ("BuildFailed", timedelta(minutes=1), Category.RENDER),
            ("InstallFailed", timedelta(minutes=1), Category.APPLY),
            ("BuildFailed", timedelta(minutes=30), Category.STATE),
            ("InstallFailed", timedelta(hours=3), Category.STATE),
        ],
    )
    def test_one_pipeline_finding_per_failure(self, reason: str, age: timedelta, expected: Category) -> None:
        hr = _failing("HelmRelease", reason, age)
        view = _view(hr)
        findings = [
            f
            for detector in (StuckReconciliationDetector(), RenderFailureDetector(), ApplyFailureDetector())
            for f in detector.detect(view, _CTX)
        ]
        assert [f.category for f in findings] == [expected]


# ---------------------------------------------------------------------------
# SOURCE / RENDER / APPLY
# ---------------------------------------------------------------------------


class TestSource:
    def _kustomization(self) -> Resource:
        return _make_resource(
            "Kustomization",
            "apps",
            namespace="flux-system",
            status=_status(),
            spec={"sourceRef": {"kind": "GitRepository", "name": "fleet"}},
        )

    def test_source_not_ready(self) -> None:
        repo = _make_resource(
            "GitRepository",
            "fleet",
            namespace="flux-system",
            status=_status(False, "GitOperationFailed", "authentication required"),
        )
        findings = SourceDetector().detect(_view(repo, self._kustomization()), _CTX)
        assert _ids(findings) == ["CCVE-2025-0700"]
        assert findings[0].severity is Severity.WARNING
        assert findings[0].command == "flux reconcile source git fleet -n flux-system"
        assert "authentication required" in findings[0].message

    def test_missing_source(self) -> None:
        findings = SourceDetector().detect(_view(self._kustomization()), _CTX)
        assert _ids(findings) == ["CCVE-2025-0701"]
        assert findings[0].severity is Severity.CRITICAL
        assert "GitRepository/flux-system/fleet" in findings[0].message

    def test_missing_source_when_kind_unlisted_is_not_reported(self) -> None:
        view = _view(self._kustomization(), unavailable=("GitRepository",))
        assert SourceDetector().detect(view, _CTX) == []

    def test_suspended_source(self) -> None:
        repo = _make_resource("GitRepository", "fleet", namespace="flux-system", spec={"suspend": True})
        findings = SourceDetector().detect(_view(repo, self._kustomization()), _CTX)
        assert _ids(findings) == ["CCVE-2025-0666"]
        assert findings[0].command == "flux resume source git fleet -n flux-system"


class TestRenderAndApply:
    def test_argo_comparison_error(self) -> None:
        app = _application({"conditions": [{"type": "ComparisonError", "message": "helm template failed"}]})
        findings = RenderFailureDetector().detect(_view(app), _CTX)
        assert _ids(findings) == ["CCVE-2025-0702"]
        assert findings[0].reason == "ComparisonError"

    def test_argo_failed_sync_is_apply(self) -> None:
        app = _application(
            {"operationState": {"phase": "Failed", "startedAt": "2026-02-18T11:59:00Z", "message": "hook failed"}}
        )
        findings = ApplyFailureDetector().detect(_view(app), _CTX)
        assert _ids(findings) == ["CCVE-2025-0703"]
        assert findings[0].command == "argocd app sync guestbook --retry-limit 3"
        assert "hook failed" in findings[0].message

    def test_unrelated_reason_is_neither(self) -> None:
        hr = _failing("HelmRelease", "ArtifactFailed", timedelta(minutes=1))
        view = _view(hr)
        assert RenderFailureDetector().detect(view, _CTX) == []
        assert ApplyFailureDetector().detect(view, _CTX) == []


# ---------------------------------------------------------------------------
# DRIFT
# ---------------------------------------------------------------------------


class TestDrift:
    def test_last_applied_drift(self) -> None:
        declared = {"spec": {"replicas": 3, "template": {"spec": {"containers": [{"image": "web:1"}]}}}}
        deployment = _make_resource(
            "Deployment",
            "web",
            annotations={"kubectl.kubernetes.io/last-applied-configuration": json.dumps(declared)},
            spec={"replicas": 5, "template": {"spec": {"containers": [{"image": "web:1"}]}}, "strategy": {}},
        )
        findings = DriftDetector().detect(_view(deployment), _CTX)
        assert _ids(findings) == ["CCVE-2025-0704"]
        assert "spec.replicas" in findings[0].message
        assert findings[0].command == "kubectl apply view-last-applied deployment/web -n default"

    def test_matching_last_applied(self) -> None:
        declared = {"spec": {"replicas": 3}}
        deployment = _make_resource(
            "Deployment",
            "web",
            annotations={"kubectl.kubernetes.io/last-applied-configuration": json.dumps(declared)},
            spec={"replicas": 3, "revisionHistoryLimit": 10},
        )
        assert DriftDetector().detect(_view(deployment), _CTX) == []

    def test_unparseable_last_applied(self) -> None:
        deployment = _make_resource(
            "Deployment", "web", annotations={"kubectl.kubernetes.io/last-applied-configuration": "{not json"}
        )
        assert DriftDetector().detect(_view(deployment), _CTX) == []

    def test_confighub_drift(self) -> None:
        cm = _make_resource(
            "ConfigMap",
            "settings",
            labels={"confighub.com/UnitSlug": "settings"},
            annotations={
                "confighub.com/DriftDetected": "true",
                "confighub.com/SpaceID": "sp-1",
                "confighub.com/RevisionNum": "4",
                "confighub.com/LiveRevisionNum": "3",
            },
        )
        findings = DriftDetector().detect(_view(cm), _CTX)
        assert _ids(findings) == ["CCVE-2025-0705"]
        assert "(revision 4, live 3)" in findings[0].message
        assert "https://confighub.com/spaces/sp-1/units/settings" in findings[0].fix

    def test_argo_out_of_sync(self) -> None:
        app = _application({"sync": {"status": "OutOfSync"}, "reconciledAt": "2026-02-18T11:59:00Z"})
        findings = DriftDetector().detect(_view(app), _CTX)
        assert _ids(findings) == ["CCVE-2025-0706"]
        assert findings[0].severity is Severity.INFO

    def test_diff_declared_lists(self) -> None:
        changes = list(diff_declared({"ports": [1, 2]}, {"ports": [1]}, "spec"))
        assert changes == [("spec.ports", "2 items", "1 items")]


# ---------------------------------------------------------------------------
# CONFIG
# ---------------------------------------------------------------------------


class TestMisconfiguration:
    def test_every_helmrelease_check(self) -> None:
        hr = _make_resource(
            "HelmRelease",
            "podinfo",
            status=_status(),
            spec={
                "interval": "0s",
                "timeout": "30s",
                "chart": {"spec": {"chart": "podinfo", "version": ">=6.0.0"}},
                "values": {"replicaCount": 0},
                "valuesFrom": [{"kind": "ConfigMap", "name": "podinfo-values"}],
                "postRenderers": [{"kustomize": {"patches": [{"target": {"name": "other-app"}}]}}],
            },
        )
        findings = MisconfigurationDetector().detect(_view(hr), _CTX)
        assert sorted(_ids(findings)) == [
            "CCVE-2025-0665",
            "CCVE-2025-0670",
            "CCVE-2025-0671",
            "CCVE-2025-0672",
            "CCVE-2025-0673",
            "CCVE-2025-0674",
        ]
        assert all(f.category is Category.CONFIG for f in findings)

    def test_failing_objects_are_skipped(self) -> None:
        hr = _failing("HelmRelease", "InstallFailed", timedelta(minutes=1), spec={"interval": "0s"})
        assert MisconfigurationDetector().detect(_view(hr), _CTX) == []

    def test_clean_helmrelease(self) -> None:
        hr = _make_resource(
            "HelmRelease",
            "podinfo",
            status=_status(),
            spec={"interval": "10m", "timeout": "5m", "chart": {"spec": {"chart": "podinfo", "version": "6.5.0"}}},
        )
        assert MisconfigurationDetector().detect(_view(hr), _CTX) == []

    def test_zero_interval_on_source(self) -> None:
        repo = _make_resource("GitRepository", "fleet", spec={"interval": "0"})
        assert _ids(MisconfigurationDetector().detect(_view(repo), _CTX)) == ["CCVE-2025-0665"]


# ---------------------------------------------------------------------------
# DEPEND
# ---------------------------------------------------------------------------

_TERRAFORM = {"app.terraform.io/run-id": "run-9"}
_FLUX = {"kustomize.toolkit.fluxcd.io/name": "apps", "kustomize.toolkit.fluxcd.io/namespace": "flux-system"}


def _workload(pod: dict, labels: dict[str, str] | None = None, kind: str = "Deployment", **kwargs: object) -> Resource:
    spec = pod if kind == "Pod" else {"template": {"spec": pod}}
    return _make_resource(kind, "api", labels=labels, spec=spec, **kwargs)  # type: ignore[arg-type]


class TestDependency:
    def test_optional_values_from_missing(self) -> None:
        hr = _make_resource(
            "HelmRelease",
            "podinfo",
            status=_status(),
            spec={"valuesFrom": [{"kind": "ConfigMap", "name": "extra", "optional": True}]},
        )
        findings = DependencyDetector().detect(_view(hr), _CTX)
        assert _ids(findings) == ["CCVE-2025-0662"]
        assert findings[0].severity is Severity.CRITICAL

    def test_optional_substitute_from_missing(self) -> None:
        ks = _make_resource(
            "Kustomization",
            "apps",
            spec={"postBuild": {"substituteFrom": [{"kind": "Secret", "name": "vars", "optional": True}]}},
        )
        assert _ids(DependencyDetector().detect(_view(ks), _CTX)) == ["CCVE-2025-0664"]

    def test_present_optional_source(self) -> None:
        hr = _make_resource(
            "HelmRelease",
            "podinfo",
            spec={"valuesFrom": [{"kind": "ConfigMap", "name": "extra", "optional": True}]},
        )
        cm = _make_resource("ConfigMap", "extra")
        assert DependencyDetector().detect(_view(hr, cm), _CTX) == []

    def test_depends_on_missing(self) -> None:
        ks = _make_resource("Kustomization", "apps", namespace="flux-system", spec={"dependsOn": [{"name": "infra"}]})
        findings = DependencyDetector().detect(_view(ks), _CTX)
        assert _ids(findings) == ["CCVE-2025-0709"]
        assert "Kustomization/flux-system/infra" in findings[0].message

    def test_missing_secret_reference(self) -> None:
        deployment = _workload({"containers": [{"name": "api", "envFrom": [{"secretRef": {"name": "db"}}]}]})
        findings = DependencyDetector().detect(_view(deployment), _CTX)
        assert _ids(findings) == ["CCVE-2025-0707"]
        assert findings[0].message == "envFrom.secretRef references Secret/db, which does not exist"

    def test_optional_missing_reference_ignored(self) -> None:
        deployment = _workload(
            {"containers": [{"name": "api", "envFrom": [{"secretRef": {"name": "db", "optional": True}}]}]}
        )
        assert DependencyDetector().detect(_view(deployment), _CTX) == []

    def test_missing_reference_with_unlisted_kind_ignored(self) -> None:
        deployment = _workload({"containers": [{"name": "api", "envFrom": [{"secretRef": {"name": "db"}}]}]})
        assert DependencyDetector().detect(_view(deployment, unavailable=("Secret",)), _CTX) == []

    def test_cross_owner_reference(self) -> None:
        deployment = _workload(
            {"containers": [{"name": "api", "envFrom": [{"secretRef": {"name": "db"}}]}]}, labels=_FLUX
        )
        secret = _make_resource("Secret", "db", annotations=_TERRAFORM)
        findings = DependencyDetector().detect(_view(deployment, secret), _CTX)
        assert _ids(findings) == ["CCVE-2025-0708"]
        assert findings[0].severity is Severity.INFO
        assert "managed by Terraform" in findings[0].message
        assert "managed by Flux" in findings[0].message

    def test_owned_pods_skipped(self) -> None:
        pod = _workload(
            {"containers": [{"name": "api", "envFrom": [{"secretRef": {"name": "db"}}]}]},
            kind="Pod",
            owner_refs=(OwnerRef("apps", "ReplicaSet", "api-1", True, "apps/v1"),),
        )
        assert DependencyDetector().detect(_view(pod), _CTX) == []


# ---------------------------------------------------------------------------
# ORPHAN
# ---------------------------------------------------------------------------


class TestOrphan:
    def test_hpa_target_missing(self) -> None:
        hpa = _make_resource(
            "HorizontalPodAutoscaler", "api", spec={"scaleTargetRef": {"kind": "Deployment", "name": "api"}}
        )
        findings = OrphanDetector().detect(_view(hpa), _CTX)
        assert _ids(findings) == ["CCVE-2025-0687"]

    def test_owner_missing(self) -> None:
        rs = _make_resource(
            "ReplicaSet", "api-1", owner_refs=(OwnerRef("apps", "Deployment", "api", True, "apps/v1"),)
        )
        findings = OrphanDetector().detect(_view(rs), _CTX)
        assert _ids(findings) == ["CCVE-2025-0710"]

    def test_unmanaged_workload(self) -> None:
        native = _make_resource("Deployment", "manual")
        system = _make_resource("Deployment", "coredns", namespace="kube-system")
        managed = _make_resource("Deployment", "api", labels=_FLUX)
        findings = OrphanDetector().detect(_view(native, system, managed), _CTX)
        assert _ids(findings) == ["CCVE-2025-0711"]
        assert findings[0].resource.name == "manual"

    def test_existing_owner_and_target(self) -> None:
        deployment = _make_resource("Deployment", "api", labels=_FLUX)
        hpa = _make_resource(
            "HorizontalPodAutoscaler", "api", spec={"scaleTargetRef": {"kind": "Deployment", "name": "api"}}
        )
        rs = _make_resource(
            "ReplicaSet", "api-1", owner_refs=(OwnerRef("apps", "Deployment", "api", True, "apps/v1"),)
        )
        assert OrphanDetector().detect(_view(deployment, hpa, rs), _CTX) == []


# ---------------------------------------------------------------------------
# Catalogue helpers
# ---------------------------------------------------------------------------


class TestCatalogHelpers:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("30s", timedelta(seconds=30)),
            ("1m30s", timedelta(seconds=90)),
            ("500ms", timedelta(milliseconds=500)),
            ("0", timedelta(0)),
            ("soon", None),
            ("5m later", None),
        ],
    )
    def test_parse_go_duration(self, value: str, expected: timedelta | None) -> None:
        assert parse_go_duration(value) == expected

    def test_severity_for_age(self) -> None:
        assert severity_for_age(timedelta(hours=2)) is Severity.CRITICAL
        assert severity_for_age(timedelta(minutes=20)) is Severity.WARNING
        assert severity_for_age(timedelta(minutes=6)) is Severity.INFO

    def test_truncate(self) -> None:
        assert truncate("a  b\nc") == "a b c"
        long = truncate("x" * 150)
        assert len(long) == 100
        assert long.endswith("...")
