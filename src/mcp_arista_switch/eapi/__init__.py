"""Arista eAPI client, command builders and output parsers."""
from .client import EAPIClient, CONFIG_SEQUENCES
from .commands import (
    InterfaceSettings,
    interface_commands,
    port_channel_commands,
    member_commands,
    remove_member_commands,
    vlan_commands,
    extract_channel_number,
    port_channel_name,
)
from .transceiver import parse_transceiver_text

__all__ = [
    "EAPIClient",
    "CONFIG_SEQUENCES",
    "InterfaceSettings",
    "interface_commands",
    "port_channel_commands",
    "member_commands",
    "remove_member_commands",
    "vlan_commands",
    "extract_channel_number",
    "port_channel_name",
    "parse_transceiver_text",
]
