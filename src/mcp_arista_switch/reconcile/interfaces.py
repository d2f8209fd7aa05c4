"""Interface listing, sync and configuration.

The device is the source of truth; switch_interfaces is a cache rewritten
wholesale by sync_interfaces. Port-channel members never appear as
standalone interfaces, and every port-channel shows up as one entry.
"""
import logging
import re
from typing import Any, Optional

from ..datastore import Datastore, utcnow
from ..eapi import EAPIClient, InterfaceSettings
from ..errors import DeviceError, PersistenceError, ValidationError
from ..models import (
    Interface,
    InterfaceMode,
    LinkState,
    PortChannel,
    is_valid_interface_name,
    is_valid_vlan_id,
)
from ..targets import TargetResolver
from ..utils.audit_log import AuditLogger
from ..utils.locks import SwitchLocks
from ..utils.logging_config import timed_section
from .extractors import (
    STATUS_FIELDS,
    interface_name_of,
    match_by_name,
    normalize_live_interface,
    parse_speed,
    port_type_absent,
    transceiver_present,
    transceiver_temperature,
)
from .schema import SyncResult

logger = logging.getLogger(__name__)

SOURCES = ("cache", "live")
CONFIGURABLE_MODES = (InterfaceMode.ACCESS.value, InterfaceMode.TRUNK.value, InterfaceMode.ROUTED.value)
PORT_CHANNEL_PORT_TYPE = "Port-Channel"
PORT_CHANNEL_NAME_RE = re.compile(r"^(port-channel|po)\d+", re.I)


def is_port_channel_name(name: str) -> bool:
    return bool(PORT_CHANNEL_NAME_RE.match(name))


class InterfaceReconciler:
    """Merges live interface state with the local cache."""

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

    async def _port_channels(self, switch_id: int) -> list[PortChannel]:
        rows = await self.datastore.query(
            "port_channels", {"switch_id": switch_id}, order_by=("port_channel_name",)
        )
        return [PortChannel.from_row(row) for row in rows]

    # === Listing ===

    async def list_interfaces(self, switch_id: int, source: str = "cache") -> list[Interface]:
        """Standalone interfaces plus one entry per port-channel.

        Args:
            switch_id: Switch to list
            source: "cache" (switch_interfaces rows) or "live" (ask the switch)
        """
        if source not in SOURCES:
            raise ValidationError(f"Invalid source: {source} (must be cache or live)", field="source")
        await self.resolver.require_switch(switch_id)

        members = {name.lower() for name in await self.datastore.port_channel_member_names(switch_id)}
        if source == "live":
            client = await self.resolver.client(switch_id)
            async with timed_section("list_interfaces", device_id=client.device_id):
                interfaces = await self._live_interfaces(client, members)
        else:
            interfaces = await self._cached_interfaces(switch_id, members)

        return self._merge_port_channels(interfaces, await self._port_channels(switch_id))

    async def _live_interfaces(self, client: EAPIClient, members: set[str]) -> list[Interface]:
        interfaces = []
        for key, value in (await client.get_interfaces()).items():
            row = normalize_live_interface(key, value)
            if row is None or row["interface_name"].lower() in members:
                continue
            interfaces.append(Interface(**row))

        try:
            await self._enrich_from_status(client, interfaces)
        except DeviceError as e:
            logger.warning(f"{client.device_id}: status enrichment skipped: {e.message}")

        try:
            await self._enrich_from_transceivers(client, interfaces)
        except DeviceError as e:
            logger.warning(f"{client.device_id}: transceiver enrichment skipped: {e.message}")

        return interfaces

    async def _enrich_from_status(self, client: EAPIClient, interfaces: list[Interface]) -> None:
        status = await client.get_interfaces_status()
        by_name: dict[str, dict] = {}
        for key, value in status.items():
            name = interface_name_of(key, value)
            if name:
                by_name[name.lower()] = value if isinstance(value, dict) else {}

        for iface in interfaces:
            entry = by_name.get(iface.interface_name.lower())
            if entry is None:
                continue
            link = STATUS_FIELDS["link_status"].extract(entry)
            protocol = STATUS_FIELDS["line_protocol_status"].extract(entry)

            if iface.admin_status in (None, "", LinkState.UNKNOWN.value) and link:
                iface.admin_status = LinkState.DOWN.value if link == "disabled" else LinkState.UP.value

            if iface.oper_status in (None, "", LinkState.UNKNOWN.value) and (link or protocol):
                up = link == "connected" or protocol == "up"
                iface.oper_status = LinkState.UP.value if up else LinkState.DOWN.value

            port_type = STATUS_FIELDS["port_type"].extract(entry)
            if not iface.port_type and port_type and port_type.lower() != "unknown":
                iface.port_type = port_type

            if iface.speed in (None, ""):
                speed = parse_speed(STATUS_FIELDS["speed"].extract(entry))
                if speed is not None:
                    iface.speed = speed

    async def _enrich_from_transceivers(self, client: EAPIClient, interfaces: list[Interface]) -> None:
        temperatures: dict[str, float] = {}
        for name, entry in (await client.get_transceivers()).items():
            if not isinstance(entry, dict) or not transceiver_present(entry):
                continue
            temp = transceiver_temperature(entry)
            if temp is not None:
                temperatures[name.strip().lower()] = temp

        if not temperatures:
            return
        for iface in interfaces:
            if port_type_absent(iface.port_type):
                continue
            temp = match_by_name(iface.interface_name, temperatures)
            if temp is not None:
                iface.transceiver_temp = temp

    async def _cached_interfaces(self, switch_id: int, members: set[str]) -> list[Interface]:
        rows = await self.datastore.query(
            "switch_interfaces",
            {"switch_id": switch_id},
            order_by=("interface_name", "-last_synced"),
        )
        # Keep the most recently synced row per name
        by_name: dict[str, dict[str, Any]] = {}
        for row in rows:
            name = row.get("interface_name")
            if not name or name.lower() in members or name in by_name:
                continue
            by_name[name] = row
        return [Interface.from_row(by_name[name]) for name in sorted(by_name)]

    @staticmethod
    def _merge_port_channels(interfaces: list[Interface], channels: list[PortChannel]) -> list[Interface]:
        by_name = {iface.interface_name.lower(): iface for iface in interfaces}
        merged = list(interfaces)
        for pc in channels:
            existing = by_name.get(pc.port_channel_name.lower())
            if existing is None:
                existing = Interface(
                    interface_name=pc.port_channel_name,
                    admin_status=pc.admin_status,
                    oper_status=pc.oper_status,
                    description=pc.description,
                )
                merged.append(existing)
            existing.mode = (pc.mode or InterfaceMode.UNKNOWN.value).lower()
            existing.vlan_id = pc.vlan_id
            existing.native_vlan_id = pc.native_vlan_id
            existing.trunk_vlans = pc.trunk_vlans
            existing.port_type = PORT_CHANNEL_PORT_TYPE
            existing.speed = None
        return merged

    # === Sync ===

    async def sync_interfaces(self, switch_id: int) -> SyncResult:
        """Rewrite switch_interfaces from the live switch.

        Members and port-channels are not cached here (port-channels live
        in their own table).
        """
        await self.resolver.require_switch(switch_id)
        client = await self.resolver.client(switch_id)
        result = SyncResult()

        async with self.locks.hold(switch_id):
            async with timed_section("sync_interfaces", device_id=client.device_id):
                live = await client.get_interfaces()
                members = {n.lower() for n in await self.datastore.port_channel_member_names(switch_id)}

                await self.datastore.delete("switch_interfaces", {"switch_id": switch_id})
                synced_at = utcnow()
                for key, value in live.items():
                    row = normalize_live_interface(key, value)
                    if row is None:
                        continue
                    name = row["interface_name"]
                    if name.lower() in members or is_port_channel_name(name):
                        continue
                    if row["speed"] is not None:
                        row["speed"] = str(row["speed"])
                    row["description"] = str(row["description"]) if row["description"] is not None else None
                    try:
                        await self.datastore.insert("switch_interfaces", {
                            "switch_id": switch_id, "last_synced": synced_at, **row,
                        })
                        result.synced_count += 1
                    except PersistenceError as e:
                        result.errors.append(f"Failed to cache interface {name}: {e.message}")

        result.message = f"Synced {result.synced_count} interfaces"
        await self.audit.record_switch_action("Sync interfaces from switch", switch_id, {
            "synced_count": result.synced_count,
            "errors": len(result.errors),
        })
        return result

    # === Configure ===

    @staticmethod
    def _validate_settings(name: str, settings: InterfaceSettings) -> InterfaceSettings:
        """Normalize and validate settings; raises ValidationError."""
        if not name or not is_valid_interface_name(name):
            raise ValidationError("Invalid interface name", field="interface")

        mode = settings.mode.strip().lower() if settings.mode else None
        access_vlan = settings.access_vlan
        trunk_vlans = settings.trunk_vlans
        native_vlan = settings.native_vlan

        if mode is not None:
            if mode not in CONFIGURABLE_MODES:
                raise ValidationError("Invalid interface mode", field="mode")
            if mode == InterfaceMode.ACCESS.value:
                if access_vlan is None or not is_valid_vlan_id(access_vlan):
                    raise ValidationError(
                        "Access mode requires a valid VLAN ID (1-4094)", field="access_vlan"
                    )
                access_vlan = int(access_vlan)
                trunk_vlans = native_vlan = None
            elif mode == InterfaceMode.TRUNK.value:
                if isinstance(trunk_vlans, (list, tuple)):
                    trunk_vlans = ",".join(str(v) for v in trunk_vlans)
                vlans = [v.strip() for v in str(trunk_vlans or "").split(",") if v.strip()]
                if not vlans:
                    raise ValidationError("Trunk mode requires VLAN list", field="trunk_vlans")
                for vlan in vlans:
                    if not is_valid_vlan_id(vlan):
                        raise ValidationError(
                            f"Invalid VLAN ID in trunk list: {vlan}", field="trunk_vlans"
                        )
                trunk_vlans = ",".join(vlans)
                if native_vlan is not None and native_vlan != "":
                    if not is_valid_vlan_id(native_vlan):
                        raise ValidationError(
                            "Invalid native VLAN ID (1-4094)", field="native_vlan"
                        )
                    native_vlan = int(native_vlan)
                else:
                    native_vlan = None
                access_vlan = None
            else:
                access_vlan = trunk_vlans = native_vlan = None
        else:
            access_vlan = trunk_vlans = native_vlan = None

        admin_state = settings.admin_state.strip().lower() if settings.admin_state else None
        if admin_state is not None and admin_state not in ("up", "down"):
            raise ValidationError("Invalid admin state (must be up or down)", field="admin_state")

        description = settings.description.strip() if settings.description is not None else None
        return InterfaceSettings(
            mode=mode,
            access_vlan=access_vlan,
            trunk_vlans=trunk_vlans,
            native_vlan=native_vlan,
            description=description,
            admin_state=admin_state,
        )

    async def configure_interface(
        self,
        switch_id: int,
        name: str,
        settings: InterfaceSettings,
        custom_tag: Optional[str] = None,
    ) -> Interface:
        """Push settings to the switch and update the cached row.

        Returns:
            The cached interface after the update
        """
        name = (name or "").strip()
        settings = self._validate_settings(name, settings)
        await self.resolver.require_switch(switch_id)

        if not settings.is_empty():
            client = await self.resolver.client(switch_id)
            await client.configure_interface(name, settings)

        values: dict[str, Any] = {}
        if settings.mode is not None:
            values["mode"] = settings.mode
            if settings.mode == InterfaceMode.ACCESS.value:
                values.update(vlan_id=settings.access_vlan, trunk_vlans=None, native_vlan_id=None)
            elif settings.mode == InterfaceMode.TRUNK.value:
                values.update(
                    vlan_id=None, trunk_vlans=settings.trunk_vlans, native_vlan_id=settings.native_vlan
                )
        if settings.description is not None:
            values["description"] = settings.description
        if custom_tag is not None:
            values["custom_tag"] = custom_tag.strip()
        if settings.admin_state is not None:
            values["admin_status"] = settings.admin_state
        values["last_synced"] = utcnow()

        where = {"switch_id": switch_id, "interface_name": name}
        if not await self.datastore.query_one("switch_interfaces", where):
            await self.datastore.insert("switch_interfaces", where)
        await self.datastore.update("switch_interfaces", values, where)

        await self.audit.record_switch_action("Configure interface", switch_id, {
            "interface": name,
            "mode": settings.mode,
            "access_vlan": settings.access_vlan,
            "trunk_vlans": settings.trunk_vlans,
            "native_vlan": settings.native_vlan,
            "description": settings.description,
            "admin_state": settings.admin_state,
        })
        row = await self.datastore.query_one("switch_interfaces", where, order_by=("-last_synced",))
        return Interface.from_row(row)

    async def get_transceivers(self, switch_id: int, interface: Optional[str] = None) -> dict:
        """Raw DOM readings, optionally for one interface."""
        client = await self.resolver.client(switch_id)
        return await client.get_transceivers(interface.strip() if interface else None)
