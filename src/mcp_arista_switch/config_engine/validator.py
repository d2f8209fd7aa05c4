"""Pre-flight syntax checks for full configuration text.

Catches obviously broken input before any switch communication. The checks
are deliberately permissive: unusual lines are warnings, not errors.
"""
import re

from .schema import ValidationResult

DEFAULT_MAX_SIZE = 1024 * 1024

COMMAND_RE = re.compile(r"^[a-zA-Z0-9\-\s!]+")
MIN_VALID_LINES = 3


def validate_syntax(text: str) -> ValidationResult:
    """
    Validate configuration text.

    Checks:
    - Input is not empty
    - At least 3 lines look like commands
    - Lines that don't look like commands (warnings)
    - A block still open at end of input (warning)

    Args:
        text: Configuration text

    Returns:
        ValidationResult with valid flag, errors, and warnings
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not text or not text.strip():
        return ValidationResult(valid=False, errors=["Configuration is empty"])

    valid_lines = 0
    in_block = False
    last_indent = 0

    for line_num, line in enumerate(text.split("\n"), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("!") or stripped.startswith("#"):
            continue

        indent = len(line) - len(line.lstrip())
        if COMMAND_RE.match(stripped):
            valid_lines += 1
            if indent > last_indent:
                in_block = True
            elif indent < last_indent:
                in_block = False
            last_indent = indent
        else:
            warnings.append(f"Line {line_num}: Suspicious syntax: {stripped[:50]}")

    if valid_lines < MIN_VALID_LINES:
        errors.append(
            f"Configuration has insufficient valid commands "
            f"(found {valid_lines}, need at least {MIN_VALID_LINES})"
        )

    if in_block:
        warnings.append("Configuration may have unclosed blocks")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


class ConfigValidator:
    """Syntax checks plus a size limit."""

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        self.max_size = max_size

    def validate(self, text: str) -> ValidationResult:
        result = validate_syntax(text)
        size = len((text or "").encode("utf-8"))
        if size > self.max_size:
            result.valid = False
            result.errors.append(
                f"Configuration too large ({size} bytes, maximum {self.max_size})"
            )
        return result
