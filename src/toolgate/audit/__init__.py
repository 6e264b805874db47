"""Audit trail: structured store plus daily JSON-lines file."""

from toolgate.audit.log import AuditLog, default_log_dir
from toolgate.audit.sinks import MAX_QUERY_RESULTS, DailyJsonlLog, SqlAuditStore

__all__ = [
    "MAX_QUERY_RESULTS",
    "AuditLog",
    "DailyJsonlLog",
    "SqlAuditStore",
    "default_log_dir",
]
