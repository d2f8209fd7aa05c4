"""Utility modules for logging, auditing and per-switch locking."""
from .audit_log import AuditLogger, AuditRecord, setup_audit_logging, get_recent_changes
from .locks import SwitchLocks
from .logging_config import (
    setup_logging,
    timed,
    timed_section,
    perf_logger,
    PerfStats,
    global_stats,
)

__all__ = [
    "AuditLogger",
    "AuditRecord",
    "setup_audit_logging",
    "get_recent_changes",
    "SwitchLocks",
    "setup_logging",
    "timed",
    "timed_section",
    "perf_logger",
    "PerfStats",
    "global_stats",
]
