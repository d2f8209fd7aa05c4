"""Parse `show logging` text into structured entries."""
import re
from dataclasses import dataclass, asdict
from typing import Iterable, Optional

SEVERITY_NAMES = {
    0: "EMERGENCY",
    1: "ALERT",
    2: "CRITICAL",
    3: "ERROR",
    4: "WARNING",
    5: "NOTICE",
    6: "INFO",
    7: "DEBUG",
}

# Keywords used when a line carries no %FACILITY-N-CODE tag
KEYWORD_SEVERITY = {
    "emerg": "EMERGENCY",
    "alert": "ALERT",
    "crit": "CRITICAL",
    "err": "ERROR",
    "error": "ERROR",
    "warn": "WARNING",
    "warning": "WARNING",
    "notice": "NOTICE",
    "info": "INFO",
    "debug": "DEBUG",
}

BUFFER_MARKER = "log buffer:"
PREFIX_RE = re.compile(r"^([A-Z][a-z]{2}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2})\s+(\S+)\s+(.*)$")
TAG_RE = re.compile(r"^(.*?)(?:\s+)?%(?:[A-Z0-9_-]+)-(\d)-([A-Z0-9_]+):\s*(.*)$", re.I)
KEYWORD_RE = re.compile(r"\b(emerg|alert|crit|err|error|warn|warning|notice|info|debug)\b", re.I)


@dataclass
class LogEntry:
    """One syslog line from the switch buffer."""
    raw: str
    message: str
    severity: str = "UNKNOWN"
    severity_number: Optional[int] = None
    timestamp: Optional[str] = None
    device: Optional[str] = None
    facility: Optional[str] = None
    code: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _buffer_lines(text: str) -> list[str]:
    """Lines after the `Log Buffer:` marker, or every line without one."""
    lines = [line.strip() for line in re.split(r"\r?\n", text)]
    for index, line in enumerate(lines):
        if line.lower().startswith(BUFFER_MARKER):
            buffered = [l for l in lines[index + 1:] if l]
            if buffered:
                return buffered
            break
    return [line for line in lines if line]


def parse_log_line(line: str) -> LogEntry:
    rest = line
    entry = LogEntry(raw=line, message=line)

    match = PREFIX_RE.match(line)
    if match:
        entry.timestamp, entry.device, rest = match.groups()

    match = TAG_RE.match(rest)
    if match:
        facility, number, code, message = match.groups()
        entry.facility = facility.strip() or None
        entry.severity_number = int(number)
        entry.severity = SEVERITY_NAMES.get(entry.severity_number, f"SEVERITY-{number}")
        entry.code = code.upper()
        entry.message = message.strip()
        return entry

    entry.message = rest.strip()
    keyword = KEYWORD_RE.search(rest)
    if keyword:
        entry.severity = KEYWORD_SEVERITY[keyword.group(1).lower()]
    return entry


def parse_log_text(
    text: str,
    filter_text: str = "",
    severities: Optional[Iterable[str]] = None,
    limit: Optional[int] = None,
) -> list[LogEntry]:
    """Structured entries, oldest first, after filtering.

    ``filter_text`` is a case-insensitive substring of the raw line;
    ``severities`` keeps only the named levels; ``limit`` keeps the newest N.
    """
    wanted = {s.upper() for s in severities} if severities else None
    needle = filter_text.strip().lower()

    entries = []
    for line in _buffer_lines(text or ""):
        entry = parse_log_line(line)
        if needle and needle not in entry.raw.lower():
            continue
        if wanted and entry.severity not in wanted:
            continue
        entries.append(entry)

    if limit is not None:
        entries = entries[-limit:] if limit > 0 else []
    return entries
