"""Data model shared by the eAPI client, reconcilers and config workflow."""
import json
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional


class InterfaceMode(str, Enum):
    """Switching mode of an interface or port-channel."""
    ACCESS = "access"
    TRUNK = "trunk"
    ROUTED = "routed"
    UNKNOWN = "unknown"


class LinkState(str, Enum):
    """Admin/oper status of an interface."""
    UP = "up"
    DOWN = "down"
    UNKNOWN = "unknown"


class BackupType(str, Enum):
    """Why a configuration backup was taken."""
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    BEFORE_CHANGE = "before_change"


class LacpMode(str, Enum):
    """channel-group mode for port-channel members."""
    ACTIVE = "active"
    PASSIVE = "passive"
    ON = "on"


class MatrixState(str, Enum):
    """VLAN membership of one interface in the VLAN matrix."""
    NONE = "none"
    TAGGED = "tagged"
    UNTAGGED = "untagged"


VLAN_MIN = 1
VLAN_MAX = 4094
VLAN_NAME_MAX = 32
INTERFACE_NAME_MAX = 32
PORT_CHANNEL_MIN = 1
PORT_CHANNEL_MAX = 4096

INTERFACE_NAME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9_/\-]*[0-9]+$")
VLAN_NAME_INVALID_RE = re.compile(r"[^a-zA-Z0-9_-]")


def is_valid_vlan_id(value: Any) -> bool:
    """Check a VLAN id (int or numeric string) is in 1-4094."""
    if isinstance(value, bool):
        return False
    try:
        vlan_id = int(str(value).strip())
    except (TypeError, ValueError):
        return False
    return VLAN_MIN <= vlan_id <= VLAN_MAX


def is_valid_interface_name(name: Any) -> bool:
    """Arista style names: Ethernet1, Ethernet1/1, Port-Channel10, Vlan100."""
    if not name or not isinstance(name, str) or len(name) > INTERFACE_NAME_MAX:
        return False
    return bool(INTERFACE_NAME_RE.match(name))


def sanitize_vlan_name(name: str) -> str:
    """EOS VLAN names allow only alphanumerics, '_' and '-', max 32 chars."""
    return VLAN_NAME_INVALID_RE.sub("_", name)[:VLAN_NAME_MAX]


def join_vlan_list(vlans: Iterable[Any]) -> str:
    """Join VLAN ids into the comma-separated form stored in the cache."""
    return ",".join(str(v) for v in vlans)


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


@dataclass
class SwitchTarget:
    """Connection parameters for one managed switch."""
    id: int
    hostname: str
    ip_address: str
    port: int = 443
    use_https: bool = True
    timeout: float = 10
    username: str = ""
    password: str = field(default="", repr=False)

    @property
    def scheme(self) -> str:
        return "https" if self.use_https else "http"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.ip_address}:{self.port}/command-api"

    @property
    def device_id(self) -> str:
        return self.hostname or str(self.id)


@dataclass
class Interface:
    """A physical or port-channel interface as cached/reconciled."""
    interface_name: str
    mode: str = InterfaceMode.UNKNOWN.value
    admin_status: str = LinkState.UNKNOWN.value
    oper_status: str = LinkState.UNKNOWN.value
    vlan_id: Optional[int] = None
    native_vlan_id: Optional[int] = None
    trunk_vlans: Optional[str] = None
    speed: Optional[Any] = None
    description: Optional[str] = None
    port_type: Optional[str] = None
    transceiver_temp: Optional[float] = None
    custom_tag: Optional[str] = None
    is_port_channel_member: bool = False
    port_channel_name: Optional[str] = None
    last_synced: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "Interface":
        return cls(
            interface_name=row["interface_name"],
            mode=row.get("mode") or InterfaceMode.UNKNOWN.value,
            admin_status=row.get("admin_status") or LinkState.UNKNOWN.value,
            oper_status=row.get("oper_status") or LinkState.UNKNOWN.value,
            vlan_id=row.get("vlan_id"),
            native_vlan_id=row.get("native_vlan_id"),
            trunk_vlans=row.get("trunk_vlans"),
            speed=row.get("speed"),
            description=row.get("description"),
            port_type=row.get("port_type"),
            transceiver_temp=row.get("transceiver_temp"),
            custom_tag=row.get("custom_tag"),
            last_synced=_as_datetime(row.get("last_synced")),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_synced"] = self.last_synced.isoformat() if self.last_synced else None
        return data


@dataclass
class Vlan:
    """A VLAN defined on a switch."""
    switch_id: int
    vlan_id: int
    name: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "Vlan":
        return cls(
            switch_id=row["switch_id"],
            vlan_id=row["vlan_id"],
            name=row.get("name"),
            description=row.get("description"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PortChannelMember:
    """A physical interface aggregated into a port-channel."""
    port_channel_id: int
    interface_name: str


@dataclass
class PortChannel:
    """Aggregated (LACP) logical interface."""
    id: int
    switch_id: int
    port_channel_name: str
    port_channel_number: int
    mode: str = InterfaceMode.TRUNK.value
    vlan_id: Optional[int] = None
    native_vlan_id: Optional[int] = None
    trunk_vlans: Optional[str] = None
    lacp_mode: str = LacpMode.ACTIVE.value
    description: Optional[str] = None
    admin_status: str = LinkState.UNKNOWN.value
    oper_status: str = LinkState.UNKNOWN.value
    members: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict, members: Optional[list[str]] = None) -> "PortChannel":
        return cls(
            id=row["id"],
            switch_id=row["switch_id"],
            port_channel_name=row["port_channel_name"],
            port_channel_number=row["port_channel_number"],
            mode=row.get("mode") or InterfaceMode.UNKNOWN.value,
            vlan_id=row.get("vlan_id"),
            native_vlan_id=row.get("native_vlan_id"),
            trunk_vlans=row.get("trunk_vlans"),
            lacp_mode=row.get("lacp_mode") or LacpMode.ACTIVE.value,
            description=row.get("description"),
            admin_status=row.get("admin_status") or LinkState.UNKNOWN.value,
            oper_status=row.get("oper_status") or LinkState.UNKNOWN.value,
            members=list(members or []),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ConfigBackup:
    """Immutable snapshot of a switch configuration."""
    id: int
    switch_id: int
    config_text: str
    config_hash: str
    backup_type: str = BackupType.MANUAL.value
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    notes: Optional[str] = None
    config_changes: Optional[dict] = None

    @classmethod
    def from_row(cls, row: dict) -> "ConfigBackup":
        changes = row.get("config_changes")
        if isinstance(changes, str):
            try:
                changes = json.loads(changes)
            except json.JSONDecodeError:
                changes = None
        return cls(
            id=row["id"],
            switch_id=row["switch_id"],
            config_text=row.get("config_text") or "",
            config_hash=row["config_hash"],
            backup_type=row.get("backup_type") or BackupType.MANUAL.value,
            created_by=row.get("created_by"),
            created_at=_as_datetime(row.get("created_at")),
            notes=row.get("notes"),
            config_changes=changes,
        )

    def metadata(self) -> dict:
        """Summary without the (possibly large) config text."""
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "backup_type": self.backup_type,
        }

    def to_dict(self, include_text: bool = True) -> dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        if not include_text:
            data.pop("config_text")
        return data
