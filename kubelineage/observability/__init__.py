"""Logging and metrics for kubelineage."""
