"""Conversions between EOS structured config, CLI text and line diffs."""
import hashlib
from typing import Any, Mapping, Optional

from .schema import ChangeSummary, ConfigBlock, DiffEntry, DiffResult, DiffType

METADATA_KEYS = ("comments", "cmds")
INDENT = "   "


def compute_config_hash(text: str) -> str:
    """SHA-256 hex digest of the config text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _render_commands(cmds: Mapping[str, Any], depth: int) -> list[str]:
    output: list[str] = []
    indent = INDENT * depth

    for cmd, subcmds in cmds.items():
        if cmd in METADATA_KEYS or not cmd:
            continue

        output.append(f"{indent}{cmd}")
        has_children = False

        if isinstance(subcmds, Mapping) and subcmds:
            nested = subcmds.get("cmds")
            if isinstance(nested, Mapping) and nested:
                children = _render_commands(nested, depth + 1)
            elif any(key not in METADATA_KEYS for key in subcmds):
                children = _render_commands(subcmds, depth + 1)
            else:
                children = []
            if children:
                output.extend(children)
                output.append("!")
                has_children = True

        if not has_children and depth == 0:
            output.append("!")

    return output


def structured_to_text(tree: Mapping[str, Any]) -> str:
    """Render `show running-config` JSON ({"header": [...], "cmds": {...}}) as CLI text.

    A command with children is followed by its children and one `!`; a
    childless top-level command is followed by `!` directly.
    """
    output: list[str] = []

    header = tree.get("header")
    if isinstance(header, list):
        for line in header:
            line = str(line).strip()
            if line:
                output.append(line)

    cmds = tree.get("cmds")
    if isinstance(cmds, Mapping):
        output.extend(_render_commands(cmds, 0))

    output = [line for line in output if line.strip()]
    if not output or output[-1] != "end":
        output.append("end")
    return "\n".join(output)


def extract_config_text(result: Any) -> str:
    """Pull config text out of one eAPI result, whatever shape it came in."""
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    if not isinstance(result, Mapping):
        return ""

    for key in ("output", "text"):
        if isinstance(result.get(key), str):
            return result[key]
    inner = result.get("result")
    if isinstance(inner, Mapping) and isinstance(inner.get("output"), str):
        return inner["output"]
    if isinstance(result.get("cmds"), Mapping):
        return structured_to_text(result)
    return ""


def diff_lines(old_text: str, new_text: str) -> DiffResult:
    """Positional line diff: line i of old is compared with line i of new."""
    old_lines = old_text.split("\n")
    new_lines = new_text.split("\n")
    result = DiffResult()

    for index in range(max(len(old_lines), len(new_lines))):
        old: Optional[str] = old_lines[index].strip() if index < len(old_lines) else None
        new: Optional[str] = new_lines[index].strip() if index < len(new_lines) else None
        line_number = index + 1

        if old == new:
            entry = DiffEntry(DiffType.UNCHANGED.value, line_number, line=old)
        elif old is None:
            entry = DiffEntry(DiffType.ADDED.value, line_number, line=new)
        elif new is None:
            entry = DiffEntry(DiffType.REMOVED.value, line_number, line=old)
        else:
            entry = DiffEntry(DiffType.MODIFIED.value, line_number, old_line=old, new_line=new)

        result.entries.append(entry)
        result.stats[entry.type] += 1

    return result


def _meaningful_lines(text: str) -> list[str]:
    return [line.strip() for line in (text or "").split("\n") if line.strip()]


def change_summary(old_text: Optional[str], new_text: str) -> ChangeSummary:
    """Added/removed line counts by set difference, plus sizes in bytes."""
    old_lines = _meaningful_lines(old_text or "")
    new_lines = _meaningful_lines(new_text)
    old_set, new_set = set(old_lines), set(new_lines)

    return ChangeSummary(
        lines_added=sum(1 for line in new_lines if line not in old_set),
        lines_removed=sum(1 for line in old_lines if line not in new_set),
        total_lines_before=len(old_lines),
        total_lines_after=len(new_lines),
        size_before=len((old_text or "").encode("utf-8")),
        size_after=len(new_text.encode("utf-8")),
    )


def config_commands(text: str) -> list[str]:
    """Trimmed command lines, without blanks and `!`/`#` comments."""
    return [
        line for line in _meaningful_lines(text)
        if not line.startswith("!") and not line.startswith("#")
    ]


def _is_comment(stripped: str) -> bool:
    return stripped.startswith("!") or stripped.startswith("#")


def split_config_blocks(text: str) -> list[ConfigBlock]:
    """Group config text into top-level commands with their sub-mode lines.

    Going back out of a nested sub-mode (e.g. from `address-family` to
    `router bgp`) needs an explicit `exit`, which is inserted here. Each
    command also records the nested headers it runs under.
    """
    blocks: list[ConfigBlock] = []
    current: Optional[ConfigBlock] = None
    # indents: [0, first child level, nested levels...]; parents has one
    # header per nested level
    indents: list[int] = []
    parents: list[str] = []
    previous: Optional[str] = None

    for raw in text.split("\n"):
        stripped = raw.strip()
        if not stripped or _is_comment(stripped) or stripped == "end":
            continue
        indent = len(raw) - len(raw.lstrip())

        if indent == 0 or current is None:
            current = ConfigBlock(header=stripped)
            blocks.append(current)
            indents = [0]
            parents = []
            previous = None
            continue

        while len(indents) > 2 and indent < indents[-1]:
            indents.pop()
            current.add("exit", tuple(parents))
            parents.pop()
        if indent > indents[-1]:
            if len(indents) >= 2 and previous is not None:
                parents.append(previous)
            indents.append(indent)
        current.add(stripped, tuple(parents))
        previous = stripped

    return blocks
