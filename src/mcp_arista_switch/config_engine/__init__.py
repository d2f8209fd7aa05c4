"""Config Engine - full configuration text lifecycle.

Usage:
    from mcp_arista_switch.config_engine import ConfigWorkflow, ApplyOptions

    workflow = ConfigWorkflow(datastore, resolver, audit)
    result = await workflow.apply_config(3, config_text, ApplyOptions(validate_only=True))
"""

from .codec import (
    structured_to_text,
    extract_config_text,
    diff_lines,
    change_summary,
    compute_config_hash,
    config_commands,
    split_config_blocks,
)
from .schema import (
    WorkflowState,
    DiffType,
    ValidationResult,
    DiffEntry,
    DiffResult,
    ChangeSummary,
    ConfigBlock,
    ApplyOptions,
    ApplyResult,
    BackupResult,
    RestoreResult,
)
from .validator import ConfigValidator, validate_syntax
from .workflow import ConfigWorkflow, RUNNING_CONFIG_COMMANDS

__all__ = [
    # Workflow
    "ConfigWorkflow",
    "RUNNING_CONFIG_COMMANDS",
    # Codec
    "structured_to_text",
    "extract_config_text",
    "diff_lines",
    "change_summary",
    "compute_config_hash",
    "config_commands",
    "split_config_blocks",
    # Validation
    "ConfigValidator",
    "validate_syntax",
    # Schema classes
    "WorkflowState",
    "DiffType",
    "ValidationResult",
    "DiffEntry",
    "DiffResult",
    "ChangeSummary",
    "ConfigBlock",
    "ApplyOptions",
    "ApplyResult",
    "BackupResult",
    "RestoreResult",
]
