"""Reporting of batch outcomes for SCIM migration runs."""

from scim_migration.reporting.sink import ResultSink, default_log_path

__all__ = [
    "ResultSink",
    "default_log_path",
]
