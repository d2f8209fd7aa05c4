"""VLAN matrix: per-interface x per-VLAN membership grid.

Each cell is none, tagged or untagged. Reading derives the grid from
interface mode and VLAN fields; applying turns edited rows back into
access/trunk configuration, one interface at a time.
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Optional

from .datastore import Datastore, utcnow
from .eapi import InterfaceSettings
from .errors import DeviceError, PersistenceError
from .models import InterfaceMode, MatrixState, Vlan, is_valid_interface_name, is_valid_vlan_id
from .reconcile.extractors import normalize_live_interface
from .targets import TargetResolver
from .utils.audit_log import AuditLogger
from .utils.locks import SwitchLocks
from .utils.logging_config import timed_section

logger = logging.getLogger(__name__)

MATRIX_MODES = (InterfaceMode.ACCESS.value, InterfaceMode.TRUNK.value)
DEFAULT_VLAN = 1


@dataclass
class MatrixRow:
    """One interface line of the grid. assignments maps str(vlan_id) to state."""
    interface: str
    mode: str = InterfaceMode.UNKNOWN.value
    assignments: dict[str, str] = field(default_factory=dict)
    is_port_channel_member: bool = False
    port_channel_name: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class VlanMatrix:
    vlans: list[Vlan] = field(default_factory=list)
    interfaces: list[MatrixRow] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "vlans": [{"vlan_id": v.vlan_id, "name": v.name} for v in self.vlans],
            "interfaces": [row.to_dict() for row in self.interfaces],
        }


@dataclass
class MatrixChange:
    """Requested membership for one interface."""
    interface: str
    mode: str
    assignments: dict[Any, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "MatrixChange":
        return cls(
            interface=data.get("interface") or "",
            mode=str(data.get("mode") or "").strip().lower(),
            assignments=dict(data.get("assignments") or {}),
        )


@dataclass
class MatrixApplyResult:
    """success is True only when no interface failed."""
    success: bool = True
    applied: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _trunk_set(trunk_vlans: Optional[str]) -> set[str]:
    if not trunk_vlans:
        return set()
    return {v.strip() for v in str(trunk_vlans).split(",") if v.strip()}


def _as_int(value: Any) -> Optional[int]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def cell_state(
    vlan_id: int,
    mode: str,
    access_vlan: Any,
    native_vlan: Any,
    trunk_vlans: Optional[str],
    has_vlan1: bool,
) -> str:
    """State of one interface/VLAN cell.

    An access port with no access VLAN is shown untagged in VLAN 1 when
    the switch has VLAN 1.
    """
    if mode == InterfaceMode.ACCESS.value:
        access = _as_int(access_vlan)
        if not access:
            if has_vlan1 and vlan_id == DEFAULT_VLAN:
                return MatrixState.UNTAGGED.value
        elif access == vlan_id:
            return MatrixState.UNTAGGED.value
    elif mode == InterfaceMode.TRUNK.value:
        if _as_int(native_vlan) == vlan_id:
            return MatrixState.UNTAGGED.value
        if str(vlan_id) in _trunk_set(trunk_vlans):
            return MatrixState.TAGGED.value
    return MatrixState.NONE.value


def is_ethernet(name: str) -> bool:
    return name.lower().startswith(("ethernet", "et"))


class VlanMatrixEngine:
    """Builds and applies the VLAN matrix for one switch."""

    def __init__(
        self,
        datastore: Datastore,
        resolver: TargetResolver,
        audit: Optional[AuditLogger] = None,
        locks: Optional[SwitchLocks] = None,
    ):
        self.datastore = datastore
        self.resolver = resolver
        self.audit = audit or AuditLogger(datastore)
        self.locks = locks or SwitchLocks()

    async def _ethernet_rows(self, switch_id: int, members: set[str]) -> list[dict[str, Any]]:
        """Ethernet interfaces from the switch, or from the cache if it is unreachable."""
        try:
            client = await self.resolver.client(switch_id)
            async with timed_section("vlan_matrix_read", device_id=client.device_id):
                live = await client.get_interfaces()
        except DeviceError as e:
            logger.warning(f"Switch {switch_id} unavailable, using cached interfaces: {e.message}")
            rows = await self.datastore.query(
                "switch_interfaces", {"switch_id": switch_id}, order_by=("interface_name",)
            )
            return [
                row for row in rows
                if is_ethernet(row["interface_name"]) and row["interface_name"].lower() not in members
            ]

        rows = []
        for key, value in live.items():
            row = normalize_live_interface(key, value)
            if row is None:
                continue
            name = row["interface_name"]
            if name.lower() in members or not is_ethernet(name):
                continue
            rows.append(row)
        return rows

    async def get_matrix(self, switch_id: int) -> VlanMatrix:
        """Grid of cached VLANs against Ethernet interfaces, port-channels and members."""
        await self.resolver.require_switch(switch_id)
        vlans = [
            Vlan.from_row(row)
            for row in await self.datastore.query("switch_vlans", {"switch_id": switch_id}, order_by=("vlan_id",))
        ]
        has_vlan1 = any(v.vlan_id == DEFAULT_VLAN for v in vlans)

        member_rows = await self.datastore.port_channel_members(switch_id)
        members = {row["interface_name"].lower() for row in member_rows}

        entries = await self._ethernet_rows(switch_id, members)
        seen = {row["interface_name"] for row in entries}

        channels = await self.datastore.query(
            "port_channels", {"switch_id": switch_id}, order_by=("port_channel_name",)
        )
        for pc in channels:
            if pc["port_channel_name"] in seen:
                continue
            seen.add(pc["port_channel_name"])
            entries.append({
                "interface_name": pc["port_channel_name"],
                "mode": (pc.get("mode") or InterfaceMode.UNKNOWN.value).lower(),
                "vlan_id": pc.get("vlan_id"),
                "native_vlan_id": pc.get("native_vlan_id"),
                "trunk_vlans": pc.get("trunk_vlans"),
            })
        for member in member_rows:
            if member["interface_name"] in seen:
                continue
            seen.add(member["interface_name"])
            entries.append({
                "interface_name": member["interface_name"],
                "mode": InterfaceMode.UNKNOWN.value,
                "is_port_channel_member": True,
                "port_channel_name": member["port_channel_name"],
            })

        matrix = VlanMatrix(vlans=vlans)
        for entry in entries:
            mode = str(entry.get("mode") or InterfaceMode.UNKNOWN.value).lower()
            matrix.interfaces.append(MatrixRow(
                interface=entry["interface_name"],
                mode=mode,
                assignments={
                    str(v.vlan_id): cell_state(
                        v.vlan_id,
                        mode,
                        entry.get("vlan_id"),
                        entry.get("native_vlan_id"),
                        entry.get("trunk_vlans"),
                        has_vlan1,
                    )
                    for v in vlans
                },
                is_port_channel_member=bool(entry.get("is_port_channel_member")),
                port_channel_name=entry.get("port_channel_name"),
            ))
        return matrix

    @staticmethod
    def _derive(change: MatrixChange) -> tuple[Optional[int], list[int]]:
        """Untagged VLAN and tagged list; raises ValueError with the row's error text."""
        untagged: Optional[int] = None
        tagged: list[int] = []
        for vid, state in change.assignments.items():
            if not str(vid).strip().isdigit() or not is_valid_vlan_id(vid):
                raise ValueError(f"VLAN {vid} is invalid (must be 1-4094)")
            if state == MatrixState.UNTAGGED.value:
                if untagged is not None:
                    raise ValueError("multiple untagged VLANs selected")
                untagged = int(vid)
            elif state == MatrixState.TAGGED.value:
                tagged.append(int(vid))
        return untagged, tagged

    async def apply_matrix(self, switch_id: int, changes: list[Any]) -> MatrixApplyResult:
        """Push each changed row as access/trunk configuration.

        A failing interface adds to errors and the rest are still applied.
        """
        await self.resolver.require_switch(switch_id)
        result = MatrixApplyResult()
        client = await self.resolver.client(switch_id)

        async with self.locks.hold(switch_id):
            owners = {
                row["interface_name"].lower(): row["port_channel_name"]
                for row in await self.datastore.port_channel_members(switch_id)
            }
            channels = {
                row["port_channel_name"].lower(): row
                for row in await self.datastore.query("port_channels", {"switch_id": switch_id})
            }

            for raw in changes:
                change = raw if isinstance(raw, MatrixChange) else MatrixChange.from_dict(raw or {})
                iface = change.interface
                if not iface or not is_valid_interface_name(iface):
                    result.errors.append(f"Invalid interface: {iface or 'unknown'}")
                    continue
                if change.mode not in MATRIX_MODES:
                    result.errors.append(f"Invalid mode for {iface}")
                    continue
                if iface.lower() in owners:
                    result.errors.append(
                        f"Interface {iface}: member of {owners[iface.lower()]}, configure the port channel instead"
                    )
                    continue
                try:
                    untagged, tagged = self._derive(change)
                except ValueError as e:
                    result.errors.append(f"Interface {iface}: {e}")
                    continue

                if change.mode == InterfaceMode.ACCESS.value:
                    if untagged is None:
                        result.errors.append(
                            f"Interface {iface}: access mode requires exactly one untagged VLAN"
                        )
                        continue
                    settings = InterfaceSettings(mode=InterfaceMode.ACCESS.value, access_vlan=untagged)
                    values = {"mode": settings.mode, "vlan_id": untagged, "native_vlan_id": None, "trunk_vlans": None}
                else:
                    if not tagged and untagged is None:
                        result.errors.append(
                            f"Interface {iface}: trunk mode requires at least one VLAN (tagged or untagged)"
                        )
                        continue
                    allowed = ",".join(str(v) for v in tagged) or None
                    settings = InterfaceSettings(
                        mode=InterfaceMode.TRUNK.value, native_vlan=untagged, trunk_vlans=allowed
                    )
                    values = {"mode": settings.mode, "vlan_id": None, "native_vlan_id": untagged, "trunk_vlans": allowed}

                try:
                    await client.configure_interface(iface, settings)
                    channel = channels.get(iface.lower())
                    if channel is not None:
                        await self.datastore.update("port_channels", values, {"id": channel["id"]})
                    else:
                        await self.datastore.delete(
                            "switch_interfaces", {"switch_id": switch_id, "interface_name": iface}
                        )
                        await self.datastore.insert("switch_interfaces", {
                            "switch_id": switch_id,
                            "interface_name": iface,
                            "last_synced": utcnow(),
                            **values,
                        })
                    result.applied += 1
                except (DeviceError, PersistenceError) as e:
                    result.errors.append(f"Interface {iface}: {e.message}")

        result.success = not result.errors
        await self.audit.record_switch_action("Apply VLAN matrix", switch_id, {
            "applied": result.applied,
            "errors": len(result.errors),
        })
        return result
