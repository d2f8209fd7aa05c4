"""Result and option types for the configuration workflow."""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional


class WorkflowState(str, Enum):
    """Stage reached by one apply call."""
    IDLE = "idle"
    AUTO_BACKUP = "auto_backup"
    VALIDATING = "validating"
    APPLYING = "applying"
    POST_RELOAD = "post_reload"
    DONE = "done"
    FAILED = "failed"


class DiffType(str, Enum):
    """Classification of one positional diff row."""
    UNCHANGED = "unchanged"
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


# --- Validation Results ---

@dataclass
class ValidationResult:
    """Result of config validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


# --- Diff Results ---

@dataclass
class DiffEntry:
    """One row of a positional diff (line_number is 1-based)."""
    type: str
    line_number: int
    line: Optional[str] = None
    old_line: Optional[str] = None
    new_line: Optional[str] = None

    def to_dict(self) -> dict:
        if self.type == DiffType.MODIFIED.value:
            return {
                "type": self.type,
                "old_line": self.old_line,
                "new_line": self.new_line,
                "line_number": self.line_number,
            }
        return {"type": self.type, "line": self.line, "line_number": self.line_number}


@dataclass
class DiffResult:
    """Positional diff of two config texts."""
    entries: list[DiffEntry] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=lambda: {t.value: 0 for t in DiffType})

    @property
    def no_change(self) -> bool:
        return all(e.type == DiffType.UNCHANGED.value for e in self.entries)

    def to_dict(self) -> dict:
        return {"diff": [e.to_dict() for e in self.entries], "stats": dict(self.stats)}


@dataclass
class ChangeSummary:
    """Order-insensitive line statistics between two configs."""
    lines_added: int = 0
    lines_removed: int = 0
    total_lines_before: int = 0
    total_lines_after: int = 0
    size_before: int = 0
    size_after: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ConfigBlock:
    """A top-level command and the commands of its sub-mode.

    ``contexts[i]`` holds the nested sub-mode headers (below ``header``)
    that are active when ``commands[i]`` runs. Replay uses it to re-enter
    the right mode after a rejected command.
    """
    header: str
    commands: list[str] = field(default_factory=list)
    contexts: list[tuple[str, ...]] = field(default_factory=list)

    def add(self, command: str, context: tuple[str, ...] = ()) -> None:
        self.commands.append(command)
        self.contexts.append(context)

    def mode_path(self, index: int) -> list[str]:
        """Commands that put a fresh session in the mode of commands[index]."""
        return [self.header, *self.contexts[index]]


# --- Workflow options and results ---

@dataclass
class ApplyOptions:
    """Options for apply_config."""
    auto_backup: bool = True
    validate_only: bool = False
    reload_on_complete: bool = False
    notes: Optional[str] = None


@dataclass
class BackupResult:
    """Outcome of a (dedup-aware) backup."""
    backup_id: int
    changed: bool
    config_hash: str
    size: int
    lines: int
    backup_type: str
    message: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ApplyResult:
    """Outcome of apply_config."""
    success: bool = False
    state: WorkflowState = WorkflowState.IDLE
    validate_only: bool = False
    backup_id: Optional[int] = None
    applied_backup_id: Optional[int] = None
    commands_sent: int = 0
    changes: Optional[ChangeSummary] = None
    validation_errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    reload_attempted: bool = False
    reload_error: Optional[str] = None
    message: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "state": self.state.value,
            "validate_only": self.validate_only,
            "backup_id": self.backup_id,
            "applied_backup_id": self.applied_backup_id,
            "commands_sent": self.commands_sent,
            "changes": self.changes.to_dict() if self.changes else None,
            "validation_errors": self.validation_errors,
            "warnings": self.warnings,
            "reload_attempted": self.reload_attempted,
            "reload_error": self.reload_error,
            "message": self.message,
        }


@dataclass
class RestoreResult:
    """Outcome of replaying a stored backup onto a switch."""
    restored_backup_id: int
    backup_id: Optional[int] = None
    commands_applied: int = 0
    commands_failed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        data = asdict(self)
        data["success"] = self.success
        return data
