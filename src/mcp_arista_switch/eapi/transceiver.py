"""Parser for the text form of `show interfaces transceiver`.

Some EOS releases only return the DOM table as text:

    Port       Temp      Voltage   Current   Tx Power  Rx Power
               (Celsius) (Volts)   (mA)      (dBm)     (dBm)     Last Update
    ---------- --------- --------- --------- --------- --------- -----------
    Et1        34.50     3.29      6.12      -2.31     -3.04     0:00:04 ago
    Et2        N/A       N/A       N/A       N/A       N/A
"""
import re
from typing import Optional

HEADER_RE = re.compile(r"Temp.*Voltage.*Current.*Tx Power.*Rx Power", re.I)
UNITS_RE = re.compile(r"^Port\s+\(Celsius\)", re.I)
SEPARATOR_RE = re.compile(r"^[-\s]+$")
ROW_RE = re.compile(
    r"^(Et\d+(?:/\d+)*|Ethernet\d+(?:/\d+)*|Management\d+|Port-Channel\d+)\s+(.+)$",
    re.I,
)
TIMESTAMP_RE = re.compile(r"^\d+:\d+:\d+")
NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")

# Column order after the interface name
FIELDS = ("temperature", "voltage", "biasCurrent", "txPower", "rxPower")


def looks_like_transceiver_table(text: str) -> bool:
    return bool(HEADER_RE.search(text))


def expand_interface_name(name: str) -> str:
    """Et2 -> Ethernet2, Et1/1 -> Ethernet1/1."""
    return re.sub(r"^Et(?=\d)", "Ethernet", name, flags=re.I)


def _normalize(name: str) -> str:
    name = name.strip().lower()
    name = re.sub(r"^ethernet(?=\d)", "et", name)
    return re.sub(r"[\s\-_]", "", name)


def _matches(found: str, requested: str) -> bool:
    found_n, requested_n = _normalize(found), _normalize(requested)
    return found_n == requested_n or found_n in requested_n or requested_n in found_n


def parse_transceiver_text(text: str, interface: Optional[str] = None) -> dict[str, dict[str, float]]:
    """Parse the DOM table into {interface: {temperature, voltage, ...}}.

    Rows whose values are all N/A are dropped. When interface is given,
    only matching rows are returned.
    """
    result: dict[str, dict[str, float]] = {}
    in_table = False

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if HEADER_RE.search(line):
            in_table = True
            continue
        if not in_table or SEPARATOR_RE.match(line) or UNITS_RE.match(line):
            continue

        match = ROW_RE.match(line)
        if not match:
            continue

        name = expand_interface_name(match.group(1))
        if interface and not _matches(name, interface):
            continue

        values = [v for v in match.group(2).split() if not TIMESTAMP_RE.match(v)]
        data: dict[str, float] = {}
        for key, value in zip(FIELDS, values):
            if NUMBER_RE.match(value):
                data[key] = float(value)
        if data:
            result[name] = data

    return result
