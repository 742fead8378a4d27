"""Exception types and data-error classification."""

from __future__ import annotations

from enum import StrEnum

_FORBIDDEN_MARKERS = ("forbidden", "access denied", "unauthorized", "permission denied")
_CRD_MISSING_MARKERS = (
    "no matches for kind",
    "the server could not find the requested resource",
    "could not find the requested resource",
    "the server doesn't have a resource type",
)
_NETWORK_MARKERS = (
    "connection refused",
    "dial tcp",
    "i/o timeout",
    "timed out",
    "no route to host",
    "cannot connect",
    "server misbehaving",
)


class ErrorClass(StrEnum):
    """How a data-gathering failure is treated by the scanner."""

    CRD_MISSING = "crd_missing"
    PERMISSION_DENIED = "permission_denied"
    NETWORK = "network"
    OTHER = "other"


class KubeLineageError(Exception):
    """Base class for kubelineage errors."""


class QueryParseError(KubeLineageError):
    """Raised when a query string cannot be parsed.

    ``token`` is the offending piece of input, verbatim.
    """

    def __init__(self, message: str, token: str = "") -> None:
        super().__init__(f"{message}: {token!r}" if token else message)
        self.token = token


class ScanDataError(KubeLineageError):
    """Raised by a resource source when a kind cannot be listed."""

    error_class = ErrorClass.OTHER

    def __init__(self, kind: str, cause: str | Exception = "") -> None:
        super().__init__(f"listing {kind} failed: {cause}" if cause else f"listing {kind} failed")
        self.kind = kind
        self.cause = cause


class CRDNotInstalledError(ScanDataError):
    """The kind's CustomResourceDefinition is not installed in the cluster."""

    error_class = ErrorClass.CRD_MISSING


class PermissionDeniedError(ScanDataError):
    """RBAC denied the list call."""

    error_class = ErrorClass.PERMISSION_DENIED


class ScanConsistencyError(KubeLineageError):
    """Scan summary does not match the findings it was derived from."""


def classify_data_error(exc: BaseException) -> ErrorClass:
    """Classify a list failure.

    Explicit ScanDataError subclasses win, then an HTTP ``status`` attribute
    (as carried by kubernetes_asyncio's ApiException), then message text.
    """
    if isinstance(exc, ScanDataError) and exc.error_class is not ErrorClass.OTHER:
        return exc.error_class

    status = getattr(exc, "status", None)
    if status == 404:
        return ErrorClass.CRD_MISSING
    if status in (401, 403):
        return ErrorClass.PERMISSION_DENIED

    text = str(exc).lower()
    if isinstance(exc, ScanDataError) and exc.cause:
        text = f"{text} {str(exc.cause).lower()}"
    if any(marker in text for marker in _FORBIDDEN_MARKERS):
        return ErrorClass.PERMISSION_DENIED
    if any(marker in text for marker in _NETWORK_MARKERS):
        return ErrorClass.NETWORK
    if any(marker in text for marker in _CRD_MISSING_MARKERS):
        return ErrorClass.CRD_MISSING
    return ErrorClass.OTHER


def describe_data_error(kind: str, exc: BaseException, error_class: ErrorClass | None = None) -> str:
    """Render a list failure as an actionable warning line."""
    error_class = error_class or classify_data_error(exc)
    resource = kind.lower() + "s"
    if error_class is ErrorClass.PERMISSION_DENIED:
        return (
            f"permission denied listing {kind}: check RBAC with "
            f"'kubectl auth can-i list {resource} --all-namespaces'"
        )
    if error_class is ErrorClass.NETWORK:
        return f"cannot reach the cluster API while listing {kind}: {exc} (check connectivity and kubeconfig)"
    if error_class is ErrorClass.CRD_MISSING:
        return f"{kind} is not served by this cluster: {exc}"
    return f"failed to list {kind}: {exc}"
