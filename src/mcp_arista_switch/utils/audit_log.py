"""Audit trail for operator actions against switches.

Provides:
- Timestamped JSON entries for every mutating operation
- A dedicated rotating audit.log file
- Mirroring into the audit_log table when a datastore is attached

Audit writes are fire-and-forget: a failure to record never aborts the
operation that triggered it.
"""
import json
import logging
import os
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from ..context import AuthContext

if TYPE_CHECKING:
    from ..datastore import Datastore

logger = logging.getLogger(__name__)

# Dedicated audit logger
audit_logger = logging.getLogger("eoscraft.audit")

DEFAULT_AUDIT_DIR = "~/.eoscraft"


def setup_audit_logging(log_dir: Optional[str] = None) -> Path:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.eoscraft/

    Returns:
        Path of the audit log file
    """
    log_dir = os.path.expanduser(log_dir or DEFAULT_AUDIT_DIR)
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    audit_file = Path(log_dir) / "audit.log"

    audit_logger.setLevel(logging.INFO)
    for handler in list(audit_logger.handlers):
        audit_logger.removeHandler(handler)
        handler.close()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    # One JSON document per line
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    audit_logger.propagate = False

    return audit_file


@dataclass
class AuditRecord:
    """One audited action."""
    timestamp: str
    action: str  # "Apply configuration", "Create VLAN", ...
    target_type: Optional[str] = None  # switch, vlan, port_channel
    target_id: Optional[int] = None
    user_id: Optional[int] = None
    details: dict = field(default_factory=dict)
    ip_address: Optional[str] = None

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "AuditRecord":
        """Parse from JSON string."""
        return cls(**json.loads(json_str))


class AuditLogger:
    """Append-only audit sink used by every component."""

    def __init__(
        self,
        datastore: Optional["Datastore"] = None,
        auth: Optional[AuthContext] = None,
        ip_address: Optional[str] = None,
    ):
        self.datastore = datastore
        self.auth = auth or AuthContext.system()
        self.ip_address = ip_address

    async def record(
        self,
        action: str,
        target_type: Optional[str] = None,
        target_id: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> Optional[AuditRecord]:
        """Record an action. Never raises.

        Returns:
            The AuditRecord written, or None if recording failed
        """
        try:
            record = AuditRecord(
                timestamp=datetime.now(timezone.utc).isoformat(),
                action=action,
                target_type=target_type,
                target_id=target_id,
                user_id=self.auth.current_user_id(),
                details=dict(details or {}),
                ip_address=self.ip_address,
            )
            payload = record.to_json()
            audit_logger.info(payload)

            if self.datastore is not None:
                await self.datastore.insert("audit_log", {
                    "user_id": record.user_id,
                    "action": record.action,
                    "target_type": record.target_type,
                    "target_id": record.target_id,
                    "details": json.dumps(record.details, default=str),
                    "ip_address": record.ip_address,
                    "created_at": datetime.now(timezone.utc).replace(tzinfo=None),
                })
            return record
        except Exception as e:
            logger.warning(f"Failed to record audit entry '{action}': {e}")
            return None

    async def record_switch_action(
        self, action: str, switch_id: int, details: Optional[dict] = None
    ) -> Optional[AuditRecord]:
        return await self.record(action, "switch", switch_id, details)

    async def record_vlan_action(
        self, action: str, switch_id: int, vlan_id: int, details: Optional[dict] = None
    ) -> Optional[AuditRecord]:
        merged = {"switch_id": switch_id, **(details or {})}
        return await self.record(action, "vlan", vlan_id, merged)


def get_recent_changes(
    log_file: Optional[str] = None,
    target_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100,
) -> list[AuditRecord]:
    """Read recent entries from the audit log file.

    Args:
        log_file: Path to audit log. Defaults to ~/.eoscraft/audit.log
        target_id: Filter by target id (switch id for switch actions)
        action: Filter by action name
        limit: Maximum number of records to return

    Returns:
        List of AuditRecords, most recent first
    """
    if log_file is None:
        log_file = os.path.expanduser(f"{DEFAULT_AUDIT_DIR}/audit.log")

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = AuditRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines

            if target_id is not None and record.target_id != target_id:
                continue
            if action and record.action != action:
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
