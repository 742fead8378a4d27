"""Scan finding and result types."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum

from kubelineage.models.resources import LineageRef


class Category(StrEnum):
    """Failure class a finding belongs to, in pipeline order."""

    SOURCE = "SOURCE"
    RENDER = "RENDER"
    APPLY = "APPLY"
    DRIFT = "DRIFT"
    CONFIG = "CONFIG"
    DEPEND = "DEPEND"
    STATE = "STATE"
    ORPHAN = "ORPHAN"


class Severity(StrEnum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Finding:
    """A single detected misconfiguration or failure."""

    id: str
    category: Category
    severity: Severity
    resource: LineageRef
    message: str
    fix: str = ""
    command: str = ""
    reason: str = ""


@dataclass(frozen=True)
class ScanSummary:
    """Counts derived from a list of findings. Never maintained incrementally."""

    critical: int = 0
    warning: int = 0
    info: int = 0
    by_category: dict[Category, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.critical + self.warning + self.info

    @classmethod
    def from_findings(cls, findings: list[Finding] | tuple[Finding, ...]) -> ScanSummary:
        severities = Counter(f.severity for f in findings)
        categories = Counter(f.category for f in findings)
        return cls(
            critical=severities[Severity.CRITICAL],
            warning=severities[Severity.WARNING],
            info=severities[Severity.INFO],
            by_category={cat: categories[cat] for cat in Category},
        )


@dataclass(frozen=True)
class ScanResult:
    """Findings, data-gathering warnings, and the summary recomputed from findings."""

    findings: tuple[Finding, ...]
    warnings: tuple[str, ...]
    summary: ScanSummary

    def is_consistent(self) -> bool:
        """True when the summary is reproducible from ``findings`` alone."""
        expected = ScanSummary.from_findings(self.findings)
        if self.summary.total != len(self.findings):
            return False
        return expected == self.summary

    def by_category(self, category: Category) -> list[Finding]:
        return [f for f in self.findings if f.category == category]
