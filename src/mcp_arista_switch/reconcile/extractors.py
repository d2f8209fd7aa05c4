"""Field extractors for EOS interface payloads.

EOS releases disagree on field names and nesting (`adminStatus` vs
`admin_state`, `accessVlan` vs `switchportInfo.accessVlan`). Each logical
field lists its candidate paths in precedence order; the first path that
yields a usable value wins.
"""
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from ..models import join_vlan_list

Path = tuple[str, ...]

ABSENT_INDICATORS = frozenset({
    "not present", "notpresent", "none", "n/a", "na",
    "absent", "missing", "unplugged", "empty",
})
# Substrings of a cached port type meaning "no optic"
PORT_TYPE_ABSENT = ("not present", "notpresent", "none", "n/a")

TEMP_RANGE = (0.0, 200.0)


def _dig(payload: Mapping[str, Any], path: Path) -> Any:
    value: Any = payload
    for key in path:
        if not isinstance(value, Mapping) or key not in value:
            return None
        value = value[key]
    return value


# --- Coercers: return None to fall through to the next path ---

def lower_str(value: Any) -> Optional[str]:
    text = str(value).strip().lower()
    return text or None


def text(value: Any) -> Optional[str]:
    result = str(value).strip()
    return result or None


def vlan_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def vlan_list(value: Any) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        joined = join_vlan_list(value)
        return joined or None
    result = str(value).strip()
    return result or None


def plain(value: Any) -> Any:
    return value


@dataclass(frozen=True)
class FieldExtractor:
    """Ordered candidate paths for one logical field."""
    paths: tuple[Path, ...]
    coerce: Callable[[Any], Any] = plain
    default: Any = None

    def extract(self, payload: Mapping[str, Any]) -> Any:
        for path in self.paths:
            value = _dig(payload, path)
            if value is None or value == "":
                continue
            coerced = self.coerce(value)
            if coerced is not None:
                return coerced
        return self.default


def _with_switchport(*keys: str) -> tuple[Path, ...]:
    """Each key at top level, then the same keys under switchportInfo."""
    return tuple((k,) for k in keys) + tuple(("switchportInfo", k) for k in keys)


# `show interfaces` / `show interfaces switchport` entries
LIVE_FIELDS: dict[str, FieldExtractor] = {
    "admin_status": FieldExtractor((("adminStatus",), ("admin_state",)), lower_str, "unknown"),
    "oper_status": FieldExtractor((("operStatus",), ("linkStatus",)), lower_str, "unknown"),
    "mode": FieldExtractor(
        (("mode",), ("switchportMode",), ("switchportInfo", "mode")), lower_str, "unknown"
    ),
    "vlan_id": FieldExtractor(
        (("accessVlan",), ("vlanId",), ("switchportInfo", "accessVlan")), vlan_int
    ),
    "native_vlan_id": FieldExtractor(
        _with_switchport("nativeVlan", "nativeVlanId", "trunkNativeVlan", "trunkingNativeVlanId"),
        vlan_int,
    ),
    "trunk_vlans": FieldExtractor(
        (
            ("trunkVlans",),
            ("switchportInfo", "trunkVlans"),
            ("trunkAllowedVlans",),
            ("switchportInfo", "trunkAllowedVlans"),
            ("trunkingVlans",),
            ("switchportInfo", "trunkingVlans"),
        ),
        vlan_list,
    ),
    "speed": FieldExtractor((("bandwidth",), ("speed",), ("linkSpeed",))),
    "description": FieldExtractor((("description",), ("desc",))),
}

# `show interfaces status` entries
STATUS_FIELDS: dict[str, FieldExtractor] = {
    "link_status": FieldExtractor((("linkStatus",),), lower_str, ""),
    "line_protocol_status": FieldExtractor((("lineProtocolStatus",),), lower_str, ""),
    "port_type": FieldExtractor(
        tuple((k,) for k in (
            "type", "Type", "portType", "interfaceType", "moduleType",
            "mediaType", "transceiverType", "physicalMediaType",
        )),
        text,
    ),
    "speed": FieldExtractor((("speed",), ("Speed",), ("bandwidth",))),
}

_TYPE_KEYS = ("type", "portType", "moduleType", "transceiverType", "mediaType")
_TEMP_KEYS = ("temperature", "temp", "temp_c", "tempC", "Temperature", "Temp")

# `show interfaces transceiver` entries
TRANSCEIVER_FIELDS: dict[str, FieldExtractor] = {
    "type": FieldExtractor(
        tuple((k,) for k in _TYPE_KEYS) + tuple(("dom", k) for k in _TYPE_KEYS), lower_str
    ),
    "serial": FieldExtractor(
        tuple((k,) for k in ("serialNumber", "serial_number", "serial", "serialNum")), lower_str
    ),
    "part": FieldExtractor(
        tuple((k,) for k in ("partNumber", "part_number", "partNum", "part")), lower_str
    ),
    "temperature": FieldExtractor(
        tuple((k,) for k in _TEMP_KEYS) + tuple(("dom", k) for k in _TEMP_KEYS),
        lambda v: None if str(v).strip().lower() in ABSENT_INDICATORS else v,
    ),
}


def interface_name_of(key: Any, value: Any, keys: tuple[str, ...] = ("name", "interface")) -> Optional[str]:
    """Name from the entry itself, else the mapping key."""
    if isinstance(value, Mapping):
        for k in keys:
            if value.get(k):
                return str(value[k])
    return key if isinstance(key, str) and key else None


def normalize_live_interface(key: Any, value: Any) -> Optional[dict[str, Any]]:
    """One `show interfaces` entry as Interface field values (None without a name)."""
    name = interface_name_of(key, value)
    if not name:
        return None
    payload = value if isinstance(value, Mapping) else {}
    row: dict[str, Any] = {"interface_name": name}
    for field_name, extractor in LIVE_FIELDS.items():
        row[field_name] = extractor.extract(payload)
    return row


def parse_speed(value: Any) -> Any:
    """Numeric speeds pass through; "10G" style strings become bits/second."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    raw = str(value).strip()
    if re.fullmatch(r"-?\d+(\.\d+)?", raw):
        return int(float(raw)) if float(raw).is_integer() else float(raw)
    digits = re.sub(r"[\sGgMmKk]", "", raw)
    if digits.isdigit():
        return int(digits) * 1_000_000_000
    return None


def transceiver_present(entry: Mapping[str, Any]) -> bool:
    """Whether an optic is plugged in, judged from type, serial and part fields.

    Entries carrying none of those fields (the parsed text table) count as
    present when they report a temperature.
    """
    port_type = TRANSCEIVER_FIELDS["type"].extract(entry)
    if port_type and port_type not in ABSENT_INDICATORS:
        return True
    for field_name in ("serial", "part"):
        value = TRANSCEIVER_FIELDS[field_name].extract(entry)
        if value and value not in ABSENT_INDICATORS:
            return True
    if port_type is None and not any(
        TRANSCEIVER_FIELDS[f].extract(entry) for f in ("serial", "part")
    ):
        return transceiver_temperature(entry) is not None
    return False


def transceiver_temperature(entry: Mapping[str, Any]) -> Optional[float]:
    """Temperature in Celsius, or None when missing or outside (0, 200)."""
    raw = TRANSCEIVER_FIELDS["temperature"].extract(entry)
    if raw is None:
        for key, value in entry.items():
            if "temp" in str(key).lower() and isinstance(value, (int, float)) and not isinstance(value, bool):
                raw = value
                break
    if raw is None:
        return None

    cleaned = re.sub(r"[^0-9.\-]", "", str(raw))
    try:
        temp = float(cleaned)
    except ValueError:
        return None
    low, high = TEMP_RANGE
    return temp if low < temp < high else None


def port_type_absent(port_type: Optional[str]) -> bool:
    if not port_type:
        return False
    lowered = port_type.strip().lower()
    return any(indicator in lowered for indicator in PORT_TYPE_ABSENT)


def normalize_name(name: str) -> str:
    return re.sub(r"[\s\-_]", "", name.strip().lower())


def match_by_name(name: str, mapping: Mapping[str, Any]) -> Any:
    """Look up an interface in a map keyed by (possibly differently formatted) names.

    Exact (case-insensitive) first, then punctuation-insensitive, then
    substring either way.
    """
    lowered = name.strip().lower()
    lowered_map = {str(k).strip().lower(): v for k, v in mapping.items()}
    if lowered in lowered_map:
        return lowered_map[lowered]

    wanted = normalize_name(name)
    for key, value in lowered_map.items():
        if normalize_name(key) == wanted:
            return value
    for key, value in lowered_map.items():
        candidate = normalize_name(key)
        if candidate and (candidate in wanted or wanted in candidate):
            return value
    return None
