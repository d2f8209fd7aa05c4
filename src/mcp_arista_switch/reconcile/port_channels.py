"""Port-channel (LAG) management.

Port-channels are created and configured on the switch first; the
port_channels and port_channel_members tables record what was pushed.
An interface belongs to at most one port-channel per switch.
"""
import logging
from typing import Any, Iterable, Optional

from ..datastore import Datastore
from ..eapi import InterfaceSettings, port_channel_name
from ..errors import ConflictError, DeviceError, NotFoundError, ValidationError
from ..models import (
    PORT_CHANNEL_MAX,
    PORT_CHANNEL_MIN,
    InterfaceMode,
    LacpMode,
    PortChannel,
    is_valid_interface_name,
    is_valid_vlan_id,
)
from ..targets import TargetResolver
from ..utils.audit_log import AuditLogger

logger = logging.getLogger(__name__)

PORT_CHANNEL_MODES = (InterfaceMode.ACCESS.value, InterfaceMode.TRUNK.value, InterfaceMode.ROUTED.value)
LACP_MODES = tuple(m.value for m in LacpMode)


def _split_vlans(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        value = ",".join(str(v) for v in value)
    return [v.strip() for v in str(value).split(",") if v.strip()]


def _lower(value: Optional[str]) -> Optional[str]:
    return value.strip().lower() if isinstance(value, str) else value


class PortChannelService:
    """Create, configure and delete port-channels and their members."""

    def __init__(
        self,
        datastore: Datastore,
        resolver: TargetResolver,
        audit: Optional[AuditLogger] = None,
    ):
        self.datastore = datastore
        self.resolver = resolver
        self.audit = audit or AuditLogger(datastore)

    # === Reads ===

    async def _members(self, port_channel_id: int) -> list[str]:
        rows = await self.datastore.query(
            "port_channel_members", {"port_channel_id": port_channel_id}, order_by=("interface_name",)
        )
        return [row["interface_name"] for row in rows]

    async def list_port_channels(self, switch_id: int) -> list[PortChannel]:
        """Port-channels ordered by number, each with its member names."""
        await self.resolver.require_switch(switch_id)
        rows = await self.datastore.query(
            "port_channels", {"switch_id": switch_id}, order_by=("port_channel_number",)
        )
        return [PortChannel.from_row(row, await self._members(row["id"])) for row in rows]

    async def get_port_channel(self, switch_id: int, port_channel_id: int) -> PortChannel:
        row = await self.datastore.query_one(
            "port_channels", {"id": port_channel_id, "switch_id": switch_id}
        )
        if not row:
            raise NotFoundError("Port channel not found", resource="port_channel", identifier=port_channel_id)
        return PortChannel.from_row(row, await self._members(port_channel_id))

    async def _known_vlans(self, switch_id: int) -> set[int]:
        rows = await self.datastore.query("switch_vlans", {"switch_id": switch_id})
        return {row["vlan_id"] for row in rows}

    # === Validation ===

    @staticmethod
    def _check_vlans(
        errors: list[str],
        mode: Optional[str],
        vlan_id: Any,
        native_vlan_id: Any,
        trunk_vlans: list[str],
        known: set[int],
        require_access_vlan: bool = True,
    ) -> None:
        """Append VLAN problems for the given mode to errors.

        Cross-checking against known VLANs only happens once the switch's
        VLANs have been cached.
        """
        if mode == InterfaceMode.ACCESS.value:
            if vlan_id is None and not require_access_vlan:
                return
            if not vlan_id or not is_valid_vlan_id(vlan_id):
                errors.append("Access mode requires a valid VLAN ID (1-4094)")
            elif known and int(vlan_id) not in known:
                errors.append(f"VLAN {vlan_id} does not exist on this switch")
        elif mode == InterfaceMode.TRUNK.value:
            for vlan in trunk_vlans:
                if not is_valid_vlan_id(vlan):
                    errors.append(f"Invalid VLAN ID in trunk list: {vlan}")
                elif known and int(vlan) not in known:
                    errors.append(f"VLAN {vlan} does not exist on this switch")
            if native_vlan_id is not None:
                if not is_valid_vlan_id(native_vlan_id):
                    errors.append("Invalid native VLAN ID (1-4094)")
                elif known and int(native_vlan_id) not in known:
                    errors.append(f"Native VLAN {native_vlan_id} does not exist on this switch")

    async def _check_members(
        self,
        errors: list[str],
        switch_id: int,
        members: Iterable[str],
        port_channel: Optional[str] = None,
    ) -> list[str]:
        """Validate member names and that none already belongs to another channel."""
        owners = {
            row["interface_name"].lower(): row["port_channel_name"]
            for row in await self.datastore.port_channel_members(switch_id)
        }
        checked: list[str] = []
        for member in members:
            name = member.strip() if isinstance(member, str) else member
            if not name or not is_valid_interface_name(name):
                errors.append(f"Invalid member interface name: {member}")
                continue
            owner = owners.get(name.lower())
            if owner and owner != port_channel:
                errors.append(f"Interface {name} is already a member of {owner}")
                continue
            if name not in checked:
                checked.append(name)
        return checked

    # === Writes ===

    async def create_port_channel(
        self,
        switch_id: int,
        port_channel_number: Any,
        mode: str = InterfaceMode.TRUNK.value,
        vlan_id: Optional[int] = None,
        native_vlan_id: Optional[int] = None,
        trunk_vlans: Any = None,
        lacp_mode: str = LacpMode.ACTIVE.value,
        description: Optional[str] = None,
        members: Optional[list[str]] = None,
    ) -> PortChannel:
        """Create Port-Channel<number> on the switch, add members, then record it.

        A member the switch refuses is logged and left out of the record.
        """
        await self.resolver.require_switch(switch_id)
        mode = _lower(mode) or InterfaceMode.TRUNK.value
        lacp_mode = _lower(lacp_mode) or LacpMode.ACTIVE.value
        description = description.strip() if description else None
        vlans = _split_vlans(trunk_vlans)

        errors: list[str] = []
        number = None
        if port_channel_number is None or not str(port_channel_number).strip().isdigit():
            errors.append("Port channel number is required and must be a number")
        else:
            number = int(port_channel_number)
            if not PORT_CHANNEL_MIN <= number <= PORT_CHANNEL_MAX:
                errors.append(
                    f"Port channel number must be between {PORT_CHANNEL_MIN} and {PORT_CHANNEL_MAX}"
                )
        if mode not in PORT_CHANNEL_MODES:
            errors.append("Mode must be access, trunk, or routed")
        if lacp_mode not in LACP_MODES:
            errors.append("LACP mode must be active, passive, or on")

        self._check_vlans(errors, mode, vlan_id, native_vlan_id, vlans, await self._known_vlans(switch_id))
        members = await self._check_members(errors, switch_id, members or [])
        if errors:
            raise ValidationError("Validation failed", errors=errors)

        name = port_channel_name(number)
        if await self.datastore.query_one("port_channels", {"switch_id": switch_id, "port_channel_name": name}):
            raise ConflictError("Port channel already exists", port_channel_name=name)

        settings = InterfaceSettings(mode=mode, description=description)
        if mode == InterfaceMode.ACCESS.value:
            settings.access_vlan = int(vlan_id)
        elif mode == InterfaceMode.TRUNK.value:
            settings.native_vlan = int(native_vlan_id) if native_vlan_id else None
            settings.trunk_vlans = ",".join(vlans) or None

        client = await self.resolver.client(switch_id)
        await client.create_port_channel(number, settings)

        added: list[str] = []
        for member in members:
            try:
                await client.add_port_channel_member(member, name, lacp_mode)
                added.append(member)
            except DeviceError as e:
                logger.warning(f"Failed to add member {member} to {name}: {e.message}")

        port_channel_id = await self.datastore.insert("port_channels", {
            "switch_id": switch_id,
            "port_channel_name": name,
            "port_channel_number": number,
            "mode": mode,
            "vlan_id": settings.access_vlan,
            "native_vlan_id": settings.native_vlan,
            "trunk_vlans": settings.trunk_vlans,
            "lacp_mode": lacp_mode,
            "description": description,
        })
        for member in added:
            await self.datastore.insert("port_channel_members", {
                "port_channel_id": port_channel_id,
                "interface_name": member,
            })

        await self.audit.record_switch_action("Create port channel", switch_id, {
            "port_channel_name": name,
            "mode": mode,
            "lacp_mode": lacp_mode,
            "members": added,
        })
        logger.info(f"Created {name} on switch {switch_id} with {len(added)} members")
        return await self.get_port_channel(switch_id, port_channel_id)

    async def configure_port_channel(
        self,
        switch_id: int,
        port_channel_id: int,
        mode: Optional[str] = None,
        vlan_id: Optional[int] = None,
        native_vlan_id: Optional[int] = None,
        trunk_vlans: Any = None,
        description: Optional[str] = None,
        admin_state: Optional[str] = None,
    ) -> PortChannel:
        """Update only the fields given, on the switch and in the record."""
        await self.resolver.require_switch(switch_id)
        port_channel = await self.get_port_channel(switch_id, port_channel_id)
        mode = _lower(mode)
        admin_state = _lower(admin_state)
        vlans = _split_vlans(trunk_vlans)

        errors: list[str] = []
        if mode is not None:
            if mode not in PORT_CHANNEL_MODES:
                errors.append("Mode must be access, trunk, or routed")
            self._check_vlans(
                errors, mode, vlan_id, native_vlan_id, vlans,
                await self._known_vlans(switch_id), require_access_vlan=False,
            )
        if admin_state is not None and admin_state not in ("up", "down"):
            errors.append("Admin state must be up or down")
        if errors:
            raise ValidationError("Validation failed", errors=errors)

        settings = InterfaceSettings(
            mode=mode,
            description=description.strip() if description is not None else None,
            admin_state=admin_state,
        )
        values: dict[str, Any] = {}
        if mode is not None:
            values["mode"] = mode
            values["vlan_id"] = values["native_vlan_id"] = values["trunk_vlans"] = None
            if mode == InterfaceMode.ACCESS.value and vlan_id is not None:
                settings.access_vlan = values["vlan_id"] = int(vlan_id)
            elif mode == InterfaceMode.TRUNK.value:
                if native_vlan_id is not None:
                    settings.native_vlan = values["native_vlan_id"] = int(native_vlan_id)
                if vlans:
                    settings.trunk_vlans = values["trunk_vlans"] = ",".join(vlans)
        if settings.description is not None:
            values["description"] = settings.description
        if admin_state is not None:
            values["admin_status"] = admin_state

        if not settings.is_empty():
            client = await self.resolver.client(switch_id)
            await client.configure_port_channel(port_channel.port_channel_number, settings)
        if values:
            await self.datastore.update("port_channels", values, {"id": port_channel_id})

        await self.audit.record_switch_action("Configure port channel", switch_id, {
            "port_channel_name": port_channel.port_channel_name,
            "config": values,
        })
        return await self.get_port_channel(switch_id, port_channel_id)

    async def add_member(
        self,
        switch_id: int,
        port_channel_id: int,
        interface_name: str,
        lacp_mode: Optional[str] = None,
    ) -> PortChannel:
        """Add an interface to a port-channel; a no-op record-wise if already there.

        lacp_mode defaults to the channel's own mode; an unknown value means active.
        """
        await self.resolver.require_switch(switch_id)
        port_channel = await self.get_port_channel(switch_id, port_channel_id)
        interface_name = interface_name.strip() if interface_name else ""
        if not interface_name or not is_valid_interface_name(interface_name):
            raise ValidationError("Valid interface name is required", field="interface_name")

        errors: list[str] = []
        await self._check_members(errors, switch_id, [interface_name], port_channel.port_channel_name)
        if errors:
            raise ConflictError(errors[0], interface_name=interface_name)

        lacp_mode = _lower(lacp_mode) or port_channel.lacp_mode
        if lacp_mode not in LACP_MODES:
            lacp_mode = LacpMode.ACTIVE.value

        client = await self.resolver.client(switch_id)
        await client.add_port_channel_member(interface_name, port_channel.port_channel_name, lacp_mode)

        if interface_name not in port_channel.members:
            await self.datastore.insert("port_channel_members", {
                "port_channel_id": port_channel_id,
                "interface_name": interface_name,
            })

        await self.audit.record_switch_action("Add port channel member", switch_id, {
            "port_channel_name": port_channel.port_channel_name,
            "interface_name": interface_name,
            "lacp_mode": lacp_mode,
        })
        return await self.get_port_channel(switch_id, port_channel_id)

    async def remove_member(self, switch_id: int, port_channel_id: int, interface_name: str) -> PortChannel:
        await self.resolver.require_switch(switch_id)
        port_channel = await self.get_port_channel(switch_id, port_channel_id)
        interface_name = interface_name.strip() if interface_name else ""
        if not interface_name or not is_valid_interface_name(interface_name):
            raise ValidationError("Valid interface name is required", field="interface_name")

        client = await self.resolver.client(switch_id)
        await client.remove_port_channel_member(interface_name)
        await self.datastore.delete(
            "port_channel_members", {"port_channel_id": port_channel_id, "interface_name": interface_name}
        )

        await self.audit.record_switch_action("Remove port channel member", switch_id, {
            "port_channel_name": port_channel.port_channel_name,
            "interface_name": interface_name,
        })
        return await self.get_port_channel(switch_id, port_channel_id)

    async def delete_port_channel(self, switch_id: int, port_channel_id: int) -> None:
        """Remove the port-channel from the switch; members go with the record."""
        await self.resolver.require_switch(switch_id)
        port_channel = await self.get_port_channel(switch_id, port_channel_id)

        client = await self.resolver.client(switch_id)
        await client.delete_port_channel(port_channel.port_channel_number)
        await self.datastore.delete("port_channels", {"id": port_channel_id})

        await self.audit.record_switch_action("Delete port channel", switch_id, {
            "port_channel_name": port_channel.port_channel_name,
        })
        logger.info(f"Deleted {port_channel.port_channel_name} on switch {switch_id}")
