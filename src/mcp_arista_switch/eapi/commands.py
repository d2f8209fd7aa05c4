"""EOS configuration command builders.

Pure functions so the exact CLI text can be tested without a switch. The
returned lists hold the commands that go inside configuration mode; the
client adds the mode-entry prefix.
"""
import re
from dataclasses import dataclass
from typing import Optional

from ..errors import ValidationError
from ..models import InterfaceMode, LacpMode, sanitize_vlan_name


@dataclass
class InterfaceSettings:
    """Fields to push to an interface or port-channel.

    Only fields that are not None are sent.
    """
    mode: Optional[str] = None
    access_vlan: Optional[int] = None
    trunk_vlans: Optional[str] = None
    native_vlan: Optional[int] = None
    description: Optional[str] = None
    admin_state: Optional[str] = None  # up, down

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.mode,
                self.access_vlan,
                self.trunk_vlans,
                self.native_vlan,
                self.description,
                self.admin_state,
            )
        )


def interface_commands(name: str, settings: InterfaceSettings) -> list[str]:
    """Commands configuring switchport mode, VLANs, admin state and description."""
    commands = [f"interface {name}"]

    if settings.mode == InterfaceMode.ACCESS.value and settings.access_vlan is not None:
        commands.append("switchport mode access")
        commands.append(f"switchport access vlan {settings.access_vlan}")
    elif settings.mode == InterfaceMode.TRUNK.value:
        commands.append("switchport mode trunk")
        # Native (untagged) first, then the tagged allowed list
        if settings.native_vlan is not None:
            commands.append(f"switchport trunk native vlan {settings.native_vlan}")
        if settings.trunk_vlans and settings.trunk_vlans.strip():
            commands.append(f"switchport trunk allowed vlan {settings.trunk_vlans.strip()}")
    elif settings.mode == InterfaceMode.ROUTED.value:
        commands.append("no switchport")

    if settings.admin_state is not None:
        state = settings.admin_state.lower()
        if state == "down":
            commands.append("shutdown")
        elif state == "up":
            commands.append("no shutdown")

    if settings.description is not None:
        if settings.description:
            commands.append(f"description {settings.description}")
        else:
            commands.append("no description")

    return commands


def extract_channel_number(port_channel_name: str) -> int:
    """Port-Channel12 -> 12."""
    match = re.search(r"(\d+)$", port_channel_name) or re.search(r"(\d+)", port_channel_name)
    if not match:
        raise ValidationError(
            f"Unable to extract port channel number from: {port_channel_name}"
        )
    return int(match.group(1))


def port_channel_name(number: int) -> str:
    return f"Port-Channel{number}"


def member_commands(interface: str, port_channel: str, lacp_mode: str = "active") -> list[str]:
    """Commands adding an interface to a port-channel."""
    number = extract_channel_number(port_channel)
    if lacp_mode not in {m.value for m in LacpMode}:
        lacp_mode = LacpMode.ACTIVE.value
    return [f"interface {interface}", f"channel-group {number} mode {lacp_mode}"]


def remove_member_commands(interface: str) -> list[str]:
    return [f"interface {interface}", "no channel-group"]


def vlan_commands(vlan_id: int, name: Optional[str] = None) -> list[str]:
    """Commands creating (or renaming) a VLAN."""
    commands = [f"vlan {vlan_id}"]
    if name:
        commands.append(f"name {sanitize_vlan_name(name)}")
    return commands


def port_channel_commands(number: int, settings: InterfaceSettings) -> list[str]:
    """Create or reconfigure Port-Channel<number>.

    LACP mode belongs to the member interfaces, not the channel.
    """
    return interface_commands(port_channel_name(number), settings)
