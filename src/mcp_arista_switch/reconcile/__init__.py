"""Reconciliation of live switch state with the local cache.

Usage:
    from mcp_arista_switch.reconcile import InterfaceReconciler

    reconciler = InterfaceReconciler(datastore, resolver, audit, locks)
    interfaces = await reconciler.list_interfaces(3, source="live")
"""

from .interfaces import InterfaceReconciler, is_port_channel_name
from .port_channels import PortChannelService
from .schema import SyncResult
from .vlans import VlanService

__all__ = [
    "InterfaceReconciler",
    "PortChannelService",
    "VlanService",
    "SyncResult",
    "is_port_channel_name",
]
