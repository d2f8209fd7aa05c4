"""Backup, validate, apply and restore of full switch configurations.

Every stored backup goes through one dedup-aware path: a config text whose
hash is already stored for the switch is never inserted twice, the existing
backup id is returned instead.
"""
import json
import logging
from typing import Optional

from ..config.settings import WorkflowSettings
from ..context import AuthContext
from ..datastore import Datastore, utcnow
from ..eapi import EAPIClient
from ..errors import (
    DeviceCommandError,
    DeviceCommunicationError,
    DeviceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..models import BackupType, ConfigBackup
from ..targets import TargetResolver
from ..utils.audit_log import AuditLogger
from ..utils.locks import SwitchLocks
from ..utils.logging_config import timed_section
from .codec import (
    change_summary,
    compute_config_hash,
    config_commands,
    diff_lines,
    extract_config_text,
    split_config_blocks,
)
from .schema import (
    ApplyOptions,
    ApplyResult,
    BackupResult,
    ConfigBlock,
    RestoreResult,
    ValidationResult,
    WorkflowState,
)
from .validator import ConfigValidator

logger = logging.getLogger(__name__)

# Tried in order; the first non-empty text wins
RUNNING_CONFIG_COMMANDS = (
    "show running-config",
    "show startup-config",
    "show config",
    "show configuration",
)

APPLY_RECOMMENDATION = "Check switch connectivity and configuration syntax"


class ConfigWorkflow:
    """Configuration lifecycle for managed switches."""

    def __init__(
        self,
        datastore: Datastore,
        resolver: TargetResolver,
        audit: Optional[AuditLogger] = None,
        auth: Optional[AuthContext] = None,
        settings: Optional[WorkflowSettings] = None,
        locks: Optional[SwitchLocks] = None,
    ):
        self.datastore = datastore
        self.resolver = resolver
        self.auth = auth or AuthContext.system()
        self.audit = audit or AuditLogger(datastore, self.auth)
        self.settings = settings or WorkflowSettings()
        self.locks = locks or SwitchLocks()
        self.validator = ConfigValidator(self.settings.max_config_size)

    # === Reading ===

    async def fetch_running_config(self, switch_id: int, client: Optional[EAPIClient] = None) -> str:
        """Read the configuration text from the switch.

        Raises:
            DeviceError: Every command variant failed or returned nothing
        """
        client = client or await self.resolver.client(switch_id)
        last_error: Optional[DeviceError] = None

        for command in RUNNING_CONFIG_COMMANDS:
            try:
                text = extract_config_text(await client.run_command(command, "text"))
            except DeviceError as e:
                logger.debug(f"{client.device_id}: '{command}' failed: {e.message}")
                last_error = e
                continue
            if text.strip():
                return text

        if last_error is not None:
            raise last_error
        raise DeviceCommandError("No configuration returned by switch", switch_id=switch_id)

    async def list_backups(self, switch_id: int, limit: int = 50) -> list[ConfigBackup]:
        await self.resolver.require_switch(switch_id)
        rows = await self.datastore.query(
            "switch_configs", {"switch_id": switch_id}, order_by=("-created_at", "-id"), limit=limit
        )
        return [ConfigBackup.from_row(row) for row in rows]

    async def get_backup(self, switch_id: int, backup_id: int, label: str = "Backup") -> ConfigBackup:
        row = await self.datastore.query_one(
            "switch_configs", {"id": backup_id, "switch_id": switch_id}
        )
        if not row:
            raise NotFoundError(f"{label} not found", resource="backup", identifier=backup_id)
        return ConfigBackup.from_row(row)

    async def latest_backup(self, switch_id: int) -> Optional[ConfigBackup]:
        row = await self.datastore.query_one(
            "switch_configs", {"switch_id": switch_id}, order_by=("-created_at", "-id")
        )
        return ConfigBackup.from_row(row) if row else None

    async def diff_backups(self, switch_id: int, backup_id_a: int, backup_id_b: int) -> dict:
        """Positional diff between two stored backups of one switch."""
        first = await self.get_backup(switch_id, backup_id_a, "Backup 1")
        second = await self.get_backup(switch_id, backup_id_b, "Backup 2")
        diff = diff_lines(first.config_text, second.config_text)
        return {
            "backup1": first.metadata(),
            "backup2": second.metadata(),
            **diff.to_dict(),
        }

    # === Backups ===

    async def _store_backup(
        self,
        switch_id: int,
        text: str,
        backup_type: str,
        notes: Optional[str] = None,
        changes: Optional[dict] = None,
    ) -> BackupResult:
        """Insert a backup unless the same text is already stored for the switch."""
        config_hash = compute_config_hash(text)
        size = len(text.encode("utf-8"))
        lines = len([line for line in text.split("\n") if line.strip()])

        existing = await self.datastore.query_one(
            "switch_configs", {"switch_id": switch_id, "config_hash": config_hash}
        )
        if existing:
            return BackupResult(
                backup_id=existing["id"],
                changed=False,
                config_hash=config_hash,
                size=size,
                lines=lines,
                backup_type=existing["backup_type"],
                message="Configuration already backed up (identical)",
            )

        try:
            backup_id = await self.datastore.insert("switch_configs", {
                "switch_id": switch_id,
                "config_text": text,
                "config_hash": config_hash,
                "backup_type": backup_type,
                "created_by": self.auth.current_user_id(),
                "created_at": utcnow(),
                "notes": notes,
                "config_changes": json.dumps(changes) if changes is not None else None,
            })
        except PersistenceError:
            # Lost a race against a concurrent backup of the same text
            existing = await self.datastore.query_one(
                "switch_configs", {"switch_id": switch_id, "config_hash": config_hash}
            )
            if not existing:
                raise
            return BackupResult(
                backup_id=existing["id"],
                changed=False,
                config_hash=config_hash,
                size=size,
                lines=lines,
                backup_type=existing["backup_type"],
                message="Configuration already backed up (identical)",
            )

        logger.info(f"Stored {backup_type} backup {backup_id} for switch {switch_id} ({size} bytes)")
        return BackupResult(
            backup_id=backup_id,
            changed=True,
            config_hash=config_hash,
            size=size,
            lines=lines,
            backup_type=backup_type,
            message="Configuration backed up successfully",
        )

    async def backup(
        self, switch_id: int, backup_type: str = BackupType.MANUAL.value, notes: Optional[str] = None
    ) -> BackupResult:
        """Snapshot the running configuration (deduplicated by hash)."""
        if backup_type not in {t.value for t in BackupType}:
            raise ValidationError(
                f"Invalid backup type: {backup_type}", field="backup_type"
            )
        await self.resolver.require_switch(switch_id)

        async with timed_section("backup", device_id=str(switch_id)):
            text = await self.fetch_running_config(switch_id)
            result = await self._store_backup(switch_id, text, backup_type, notes)

        await self.audit.record_switch_action("Backup configuration", switch_id, {
            "backup_id": result.backup_id,
            "backup_type": backup_type,
            "changed": result.changed,
        })
        return result

    async def sync_running_config(self, switch_id: int) -> BackupResult:
        """Scheduled-style backup, serialized per switch."""
        async with self.locks.hold(switch_id):
            return await self.backup(
                switch_id, BackupType.SCHEDULED.value, "Synced from running config"
            )

    async def _snapshot_before_change(
        self, switch_id: int, client: EAPIClient, notes: str
    ) -> BackupResult:
        text = await self.fetch_running_config(switch_id, client)
        return await self._store_backup(switch_id, text, BackupType.BEFORE_CHANGE.value, notes)

    # === Validation / apply ===

    def validate_syntax(self, text: str) -> ValidationResult:
        return self.validator.validate(text)

    async def apply_config(
        self, switch_id: int, text: str, options: Optional[ApplyOptions] = None
    ) -> ApplyResult:
        """Validate, snapshot and push a configuration text.

        Validation failures are reported in the result without contacting
        the switch. A device error while applying is raised with the id of
        the before-change backup in its context.
        """
        self.auth.require_permission("config.apply")
        options = options or ApplyOptions()
        result = ApplyResult(validate_only=options.validate_only)
        await self.resolver.require_switch(switch_id)

        size = len((text or "").encode("utf-8"))
        if size > self.settings.max_config_size:
            raise ValidationError(
                f"Configuration too large (max {self.settings.max_config_size} bytes)",
                size=size,
            )

        result.state = WorkflowState.VALIDATING
        validation = self.validator.validate(text)
        result.warnings = validation.warnings
        if not validation.valid:
            result.state = WorkflowState.FAILED
            result.validation_errors = validation.errors
            result.message = "Configuration validation failed"
            return result

        latest = await self.latest_backup(switch_id)
        result.changes = change_summary(latest.config_text if latest else "", text)

        if options.validate_only:
            result.state = WorkflowState.DONE
            result.success = True
            result.message = "Configuration validation passed"
            return result

        client = await self.resolver.client(switch_id)
        if options.auto_backup:
            result.state = WorkflowState.AUTO_BACKUP
            snapshot = await self._snapshot_before_change(
                switch_id, client, "Auto-backup before applying config"
            )
            result.backup_id = snapshot.backup_id

        result.state = WorkflowState.APPLYING
        commands = config_commands(text)
        try:
            async with timed_section("apply_config", device_id=client.device_id, commands=len(commands)):
                await client.apply_config(commands)
        except DeviceError as e:
            result.state = WorkflowState.FAILED
            await self.audit.record_switch_action("Apply configuration failed", switch_id, {
                "backup_id": result.backup_id,
                "error": e.message,
            })
            raise e.with_context(backup_id=result.backup_id, recommendation=APPLY_RECOMMENDATION)
        result.commands_sent = len(commands)

        applied = await self._store_backup(
            switch_id,
            text,
            BackupType.MANUAL.value,
            options.notes or "Applied configuration",
            result.changes.to_dict(),
        )
        result.applied_backup_id = applied.backup_id

        if options.reload_on_complete:
            result.state = WorkflowState.POST_RELOAD
            result.reload_attempted = True
            try:
                await client.reload(self.settings.reload_command)
            except DeviceError as e:
                # Config is already applied; reload is best effort
                logger.warning(f"Reload after config apply failed on switch {switch_id}: {e.message}")
                result.reload_error = e.message

        result.state = WorkflowState.DONE
        result.success = True
        result.message = "Configuration applied successfully"
        await self.audit.record_switch_action("Apply configuration", switch_id, {
            "backup_id": result.backup_id,
            "applied_backup_id": result.applied_backup_id,
            "commands": result.commands_sent,
            "reload_attempted": result.reload_attempted,
        })
        return result

    # === Restore ===

    async def restore(self, switch_id: int, backup_id: int) -> RestoreResult:
        """Replay a stored backup onto the switch block by block.

        A rejected command is recorded and replay continues with the next
        one. Losing the connection aborts the restore.
        """
        self.auth.require_permission("config.restore")
        await self.resolver.require_switch(switch_id)
        target = await self.get_backup(switch_id, backup_id)

        client = await self.resolver.client(switch_id)
        snapshot = await self._snapshot_before_change(
            switch_id, client, "Automatic backup before restore"
        )
        result = RestoreResult(restored_backup_id=backup_id, backup_id=snapshot.backup_id)

        try:
            async with timed_section("restore", device_id=client.device_id, backup=backup_id):
                for block in split_config_blocks(target.config_text):
                    await self._replay_block(client, block, result)
        except DeviceCommunicationError as e:
            await self.audit.record_switch_action("Restore configuration failed", switch_id, {
                "backup_id": backup_id,
                "error": e.message,
                "commands_applied": result.commands_applied,
            })
            raise e.with_context(
                backup_id=snapshot.backup_id,
                restored_backup_id=backup_id,
                commands_applied=result.commands_applied,
            )

        await self.audit.record_switch_action("Restore configuration", switch_id, {
            "backup_id": backup_id,
            "restored_from": target.created_at.isoformat() if target.created_at else None,
            "commands_applied": result.commands_applied,
            "commands_failed": result.commands_failed,
        })
        return result

    async def _replay_block(self, client: EAPIClient, block: ConfigBlock, result: RestoreResult) -> None:
        commands = [block.header, *block.commands]
        start = 0

        while start < len(commands):
            # After a rejected command, re-enter the sub-mode the next one runs in
            prefix = ["configure"] if start == 0 else ["configure", *block.mode_path(start - 1)]
            batch = commands[start:]
            try:
                await client.run_commands([*prefix, *batch])
            except DeviceCommandError as e:
                index = e.failed_index
                if index is None or index < len(prefix):
                    result.commands_failed += len(batch)
                    result.errors.append({"command": block.header, "error": e.message})
                    return

                failed = start + index - len(prefix)
                result.commands_applied += failed - start
                result.commands_failed += 1
                result.errors.append({"command": commands[failed], "error": e.message})
                if failed == 0:
                    logger.warning(f"{client.device_id}: skipping block '{block.header}': {e.message}")
                    return
                start = failed + 1
                continue

            result.commands_applied += len(batch)
            return

    async def save_running_config(self, switch_id: int) -> dict:
        """copy running-config startup-config on the switch."""
        self.auth.require_permission("config.save")
        client = await self.resolver.client(switch_id)
        output = await client.save_running_config()
        await self.audit.record_switch_action(
            "Save running-config to startup-config", switch_id, {"result": output}
        )
        return {"success": True, "message": "Running configuration saved to startup configuration"}
