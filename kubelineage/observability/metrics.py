"""Prometheus metrics."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

scan_findings_total = Counter(
    "kubelineage_scan_findings_total",
    "Findings emitted by the state scanner",
    ["category", "severity"],
)

scan_data_errors_total = Counter(
    "kubelineage_scan_data_errors_total",
    "Errors raised while listing resources for a scan",
    ["kind", "error_class"],
)

scan_duration_seconds = Histogram(
    "kubelineage_scan_duration_seconds",
    "Wall time of a full scan",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

query_parse_errors_total = Counter(
    "kubelineage_query_parse_errors_total",
    "Query strings rejected by the parser",
)

trace_missing_links_total = Counter(
    "kubelineage_trace_missing_links_total",
    "Trace hops whose object could not be fetched",
    ["kind"],
)

collector_list_errors_total = Counter(
    "kubelineage_collector_list_errors_total",
    "Failed list calls against the cluster API",
    ["kind"],
)
