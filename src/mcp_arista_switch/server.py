"""MCP Server for Arista EOS switch management over eAPI.

Tools exposed:
- list_switches / poll_switch: Managed switches and their polled status
- get_environment / get_mac_address_table / get_logs / get_port_channel_load_balance
- list_interfaces / sync_interfaces / configure_interface / get_transceivers
- list_vlans / sync_vlans / create_vlan / update_vlan / delete_vlan
- list_port_channels / create_port_channel / configure_port_channel
- port_channel_member / delete_port_channel
- get_vlan_matrix / apply_vlan_matrix
- backup_config / sync_config / list_backups / get_backup / diff_backups
- validate_config / apply_config / restore_config / save_config
- get_audit_log: Recent audited actions

Resources:
- switch://{id}/config: latest stored configuration backup
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    TextContent,
    Tool,
    Resource,
)
from pydantic import AnyUrl

from .config import Settings, SwitchInventory
from .config_engine import ApplyOptions, ConfigWorkflow
from .context import AuthContext
from .datastore import Datastore
from .eapi import InterfaceSettings
from .errors import SwitchConsoleError, ValidationError
from .monitor import SwitchMonitor
from .reconcile import InterfaceReconciler, PortChannelService, VlanService
from .targets import TargetResolver
from .utils.audit_log import AuditLogger, get_recent_changes, setup_audit_logging
from .utils.locks import SwitchLocks
from .utils.logging_config import setup_logging, timed_section
from .vlan_matrix import VlanMatrixEngine

logger = logging.getLogger(__name__)

# Error kind -> HTTP-style status carried in error payloads
ERROR_STATUS = {
    "validation": 400,
    "conflict": 409,
    "permission_denied": 403,
    "not_found": 404,
    "device_command": 502,
    "device_communication": 504,
    "device": 502,
    "persistence": 500,
}


@dataclass
class AppContext:
    """Components shared by all tool calls."""
    settings: Settings
    datastore: Datastore
    resolver: TargetResolver
    audit: AuditLogger
    interfaces: InterfaceReconciler
    vlans: VlanService
    port_channels: PortChannelService
    matrix: VlanMatrixEngine
    workflow: ConfigWorkflow
    monitor: SwitchMonitor

    @classmethod
    async def create(cls, settings: Settings, datastore: Optional[Datastore] = None, transport=None) -> "AppContext":
        """Open the datastore, seed the inventory and wire the components."""
        if datastore is None:
            datastore = Datastore(settings.database.resolved_url(), echo=settings.database.echo)
        await datastore.create_schema()

        if settings.inventory:
            await SwitchInventory(settings.inventory).sync_to_datastore(datastore)

        auth = AuthContext.system()
        locks = SwitchLocks()
        audit = AuditLogger(datastore, auth)
        resolver = TargetResolver(datastore, settings.eapi, transport=transport)
        return cls(
            settings=settings,
            datastore=datastore,
            resolver=resolver,
            audit=audit,
            interfaces=InterfaceReconciler(datastore, resolver, audit, locks),
            vlans=VlanService(datastore, resolver, audit, locks),
            port_channels=PortChannelService(datastore, resolver, audit),
            matrix=VlanMatrixEngine(datastore, resolver, audit, locks),
            workflow=ConfigWorkflow(datastore, resolver, audit, auth, settings.workflow, locks),
            monitor=SwitchMonitor(datastore, resolver, audit),
        )

    async def close(self) -> None:
        await self.datastore.close()


# Global application context (initialized on first use)
app: Optional[AppContext] = None


async def get_app() -> AppContext:
    """Get or create the application context."""
    global app
    if app is None:
        settings = Settings.load()
        setup_logging(settings.logging.log_dir)
        setup_audit_logging(settings.logging.log_dir)
        app = await AppContext.create(settings)
    return app


# Create MCP server
server = Server("mcp-arista-switch")


# === TOOLS ===

SWITCH_ID = {"type": "integer", "description": "Switch ID (see list_switches)"}
VLAN_ID = {"type": "integer", "description": "VLAN ID (1-4094)"}
PORT_CHANNEL_ID = {"type": "integer", "description": "Port channel record ID (see list_port_channels)"}
SOURCE = {
    "type": "string",
    "enum": ["cache", "live"],
    "description": "Read the local cache or the switch itself (default: cache)",
    "default": "cache",
}
INTERFACE_MODE = {"type": "string", "enum": ["access", "trunk", "routed"]}


def _schema(properties: Optional[dict] = None, required: Optional[list[str]] = None) -> dict:
    return {"type": "object", "properties": properties or {}, "required": required or []}


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    return [
        Tool(
            name="list_switches",
            description="List all managed switches",
            inputSchema=_schema(),
        ),
        Tool(
            name="poll_switch",
            description="Poll a switch: refresh status, model, firmware version, hostname and environment alert",
            inputSchema=_schema({"switch_id": SWITCH_ID}, ["switch_id"]),
        ),
        Tool(
            name="get_environment",
            description="Get power supply, fan and temperature status",
            inputSchema=_schema({"switch_id": SWITCH_ID}, ["switch_id"]),
        ),
        Tool(
            name="get_mac_address_table",
            description="Get learned MAC addresses, optionally for one VLAN or interface",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "vlan_id": VLAN_ID,
                "interface": {"type": "string", "description": "Interface name (ignored when vlan_id is set)"},
            }, ["switch_id"]),
        ),
        Tool(
            name="get_logs",
            description="Get parsed syslog entries from the switch buffer",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "lines": {"type": "integer", "default": 200, "description": "Newest entries to return (1-5000)"},
                "filter": {"type": "string", "description": "Case-insensitive text filter"},
                "severity": {"type": "array", "items": {"type": "string"}, "description": "e.g. [\"ERROR\", \"WARNING\"]"},
            }, ["switch_id"]),
        ),
        Tool(
            name="get_port_channel_load_balance",
            description="Get port-channel load-balance or traffic distribution",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "port_channel": {"type": "string", "description": "e.g. Port-Channel1"},
            }, ["switch_id"]),
        ),
        Tool(
            name="list_interfaces",
            description="List interfaces of a switch. Port-channel members are folded into their port-channel.",
            inputSchema=_schema({"switch_id": SWITCH_ID, "source": SOURCE}, ["switch_id"]),
        ),
        Tool(
            name="sync_interfaces",
            description="Refresh the interface cache from the switch",
            inputSchema=_schema({"switch_id": SWITCH_ID}, ["switch_id"]),
        ),
        Tool(
            name="configure_interface",
            description="Configure mode, VLANs, admin state and description of an interface",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "interface": {"type": "string", "description": "Interface name (e.g., Ethernet1)"},
                "mode": INTERFACE_MODE,
                "vlan_id": {"type": "integer", "description": "Access VLAN (access mode)"},
                "trunk_vlans": {"type": "string", "description": "Allowed VLANs, comma separated (trunk mode)"},
                "native_vlan_id": {"type": "integer", "description": "Native VLAN (trunk mode)"},
                "admin_state": {"type": "string", "enum": ["up", "down"]},
                "description": {"type": "string"},
                "custom_tag": {"type": "string", "description": "Local label, not pushed to the switch"},
            }, ["switch_id", "interface"]),
        ),
        Tool(
            name="get_transceivers",
            description="Get transceiver DOM readings (temperature, voltage, power)",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "interface": {"type": "string", "description": "Limit to one interface"},
            }, ["switch_id"]),
        ),
        Tool(
            name="list_vlans",
            description="List VLANs of a switch",
            inputSchema=_schema({"switch_id": SWITCH_ID, "source": SOURCE}, ["switch_id"]),
        ),
        Tool(
            name="sync_vlans",
            description="Refresh the VLAN cache from the switch",
            inputSchema=_schema({"switch_id": SWITCH_ID}, ["switch_id"]),
        ),
        Tool(
            name="create_vlan",
            description="Create a VLAN on the switch",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "vlan_id": VLAN_ID,
                "name": {"type": "string", "description": "VLAN name (sanitized for EOS)"},
                "description": {"type": "string"},
            }, ["switch_id", "vlan_id"]),
        ),
        Tool(
            name="update_vlan",
            description="Rename a VLAN or change its description",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "vlan_id": VLAN_ID,
                "name": {"type": "string"},
                "description": {"type": "string"},
            }, ["switch_id", "vlan_id"]),
        ),
        Tool(
            name="delete_vlan",
            description="Delete a VLAN from the switch (VLAN 1 cannot be deleted)",
            inputSchema=_schema({"switch_id": SWITCH_ID, "vlan_id": VLAN_ID}, ["switch_id", "vlan_id"]),
        ),
        Tool(
            name="list_port_channels",
            description="List port-channels with their members",
            inputSchema=_schema({"switch_id": SWITCH_ID}, ["switch_id"]),
        ),
        Tool(
            name="create_port_channel",
            description="Create a port-channel and optionally add members",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "port_channel_number": {"type": "integer", "description": "Channel number (1-4096)"},
                "mode": {**INTERFACE_MODE, "default": "trunk"},
                "vlan_id": {"type": "integer"},
                "native_vlan_id": {"type": "integer"},
                "trunk_vlans": {"type": "string"},
                "lacp_mode": {"type": "string", "enum": ["active", "passive", "on"], "default": "active"},
                "description": {"type": "string"},
                "members": {"type": "array", "items": {"type": "string"}},
            }, ["switch_id", "port_channel_number"]),
        ),
        Tool(
            name="configure_port_channel",
            description="Change mode, VLANs, description or admin state of a port-channel",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "port_channel_id": PORT_CHANNEL_ID,
                "mode": INTERFACE_MODE,
                "vlan_id": {"type": "integer"},
                "native_vlan_id": {"type": "integer"},
                "trunk_vlans": {"type": "string"},
                "description": {"type": "string"},
                "admin_state": {"type": "string", "enum": ["up", "down"]},
            }, ["switch_id", "port_channel_id"]),
        ),
        Tool(
            name="port_channel_member",
            description="Add or remove a port-channel member interface",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "port_channel_id": PORT_CHANNEL_ID,
                "action": {"type": "string", "enum": ["add", "remove"]},
                "interface_name": {"type": "string"},
                "lacp_mode": {"type": "string", "enum": ["active", "passive", "on"]},
            }, ["switch_id", "port_channel_id", "action", "interface_name"]),
        ),
        Tool(
            name="delete_port_channel",
            description="Delete a port-channel from the switch",
            inputSchema=_schema(
                {"switch_id": SWITCH_ID, "port_channel_id": PORT_CHANNEL_ID},
                ["switch_id", "port_channel_id"],
            ),
        ),
        Tool(
            name="get_vlan_matrix",
            description="Interface x VLAN grid with none/tagged/untagged membership",
            inputSchema=_schema({"switch_id": SWITCH_ID}, ["switch_id"]),
        ),
        Tool(
            name="apply_vlan_matrix",
            description="Apply edited VLAN matrix rows. Each failing interface is reported; the rest still apply.",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "changes": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "interface": {"type": "string"},
                            "mode": {"type": "string", "enum": ["access", "trunk"]},
                            "assignments": {
                                "type": "object",
                                "description": "VLAN id -> none | tagged | untagged",
                                "additionalProperties": {"type": "string"},
                            },
                        },
                        "required": ["interface", "mode", "assignments"],
                    },
                },
            }, ["switch_id", "changes"]),
        ),
        Tool(
            name="backup_config",
            description="Back up the running configuration (identical configs are stored once)",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "backup_type": {
                    "type": "string",
                    "enum": ["manual", "scheduled", "before_change"],
                    "default": "manual",
                },
                "notes": {"type": "string"},
            }, ["switch_id"]),
        ),
        Tool(
            name="sync_config",
            description="Store the running configuration as a scheduled backup",
            inputSchema=_schema({"switch_id": SWITCH_ID}, ["switch_id"]),
        ),
        Tool(
            name="list_backups",
            description="List configuration backups, newest first",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "limit": {"type": "integer", "default": 50},
            }, ["switch_id"]),
        ),
        Tool(
            name="get_backup",
            description="Get one configuration backup including its text",
            inputSchema=_schema(
                {"switch_id": SWITCH_ID, "backup_id": {"type": "integer"}},
                ["switch_id", "backup_id"],
            ),
        ),
        Tool(
            name="diff_backups",
            description="Line diff between two configuration backups",
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "backup_id_a": {"type": "integer", "description": "Older backup"},
                "backup_id_b": {"type": "integer", "description": "Newer backup"},
            }, ["switch_id", "backup_id_a", "backup_id_b"]),
        ),
        Tool(
            name="validate_config",
            description="Check configuration text syntax without contacting a switch",
            inputSchema=_schema({"config": {"type": "string"}}, ["config"]),
        ),
        Tool(
            name="apply_config",
            description=(
                "Apply configuration text to a switch. A before-change backup is taken first. "
                "Use validate_only=true to preview the change summary."
            ),
            inputSchema=_schema({
                "switch_id": SWITCH_ID,
                "config": {"type": "string", "description": "EOS configuration text"},
                "auto_backup": {"type": "boolean", "default": True},
                "validate_only": {"type": "boolean", "default": False},
                "reload_on_complete": {"type": "boolean", "default": False},
                "notes": {"type": "string"},
            }, ["switch_id", "config"]),
        ),
        Tool(
            name="restore_config",
            description="Restore a stored backup, replaying it block by block",
            inputSchema=_schema(
                {"switch_id": SWITCH_ID, "backup_id": {"type": "integer"}},
                ["switch_id", "backup_id"],
            ),
        ),
        Tool(
            name="save_config",
            description="Copy running-config to startup-config",
            inputSchema=_schema({"switch_id": SWITCH_ID}, ["switch_id"]),
        ),
        Tool(
            name="get_audit_log",
            description="Get recent audited actions",
            inputSchema=_schema({
                "switch_id": {"type": "integer", "description": "Filter by target id"},
                "action": {"type": "string", "description": "Filter by action name"},
                "limit": {"type": "integer", "default": 20},
            }),
        ),
    ]


def _text(payload: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2, default=str))]


def error_payload(error: SwitchConsoleError) -> dict[str, Any]:
    """Error dict with the status code for its kind."""
    payload = error.to_dict()
    payload["status"] = ERROR_STATUS.get(error.kind, 500)
    return payload


Handler = Callable[[AppContext, dict], Awaitable[list[TextContent]]]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}
    switch_id = arguments.get("switch_id")
    handler = TOOL_HANDLERS.get(name)
    if handler is None:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]

    async with timed_section(f"tool:{name}", device_id=str(switch_id) if switch_id is not None else None):
        try:
            return await handler(await get_app(), arguments)
        except SwitchConsoleError as e:
            logger.warning(f"Tool {name} failed ({e.kind}): {e.message}")
            return _text(error_payload(e))
        except KeyError as e:
            return _text(error_payload(ValidationError(f"Missing argument: {e.args[0]}")))
        except Exception as e:
            logger.exception(f"Tool {name} failed")
            return _text({"error": str(e), "kind": "internal", "status": 500})


# === TOOL HANDLERS ===

async def handle_list_switches(ctx: AppContext, args: dict) -> list[TextContent]:
    """List all managed switches."""
    rows = await ctx.datastore.query("switches", order_by=("hostname",))
    switches = [
        {
            "id": row["id"],
            "hostname": row["hostname"],
            "ip_address": row["ip_address"],
            "model": row.get("model"),
            "location": row.get("location"),
            "status": row.get("status"),
            "firmware_version": row.get("firmware_version"),
            "environment_alert": row.get("environment_alert"),
            "last_polled": row.get("last_polled"),
        }
        for row in rows
    ]
    return _text({"switches": switches})


async def handle_poll_switch(ctx: AppContext, args: dict) -> list[TextContent]:
    switch = await ctx.monitor.poll_switch(args["switch_id"])
    return _text({"success": True, "message": "Switch polled successfully", "switch": switch})


async def handle_get_environment(ctx: AppContext, args: dict) -> list[TextContent]:
    return _text({"success": True, **await ctx.monitor.get_environment(args["switch_id"])})


async def handle_get_mac_address_table(ctx: AppContext, args: dict) -> list[TextContent]:
    entries = await ctx.monitor.get_mac_address_table(
        args["switch_id"], args.get("vlan_id"), args.get("interface")
    )
    return _text({"success": True, "total": len(entries), "mac_address_table": entries})


async def handle_get_logs(ctx: AppContext, args: dict) -> list[TextContent]:
    severity = args.get("severity")
    if isinstance(severity, str):
        severity = [severity]
    logs = await ctx.monitor.get_logs(
        args["switch_id"], args.get("lines", 200), args.get("filter", ""), severity
    )
    return _text({"success": True, **logs})


async def handle_get_port_channel_load_balance(ctx: AppContext, args: dict) -> list[TextContent]:
    stats = await ctx.monitor.get_port_channel_load_balance(args["switch_id"], args.get("port_channel"))
    return _text({"success": True, "load_balance": stats})


async def handle_list_interfaces(ctx: AppContext, args: dict) -> list[TextContent]:
    interfaces = await ctx.interfaces.list_interfaces(args["switch_id"], args.get("source", "cache"))
    return _text({"success": True, "interfaces": [i.to_dict() for i in interfaces]})


async def handle_sync_interfaces(ctx: AppContext, args: dict) -> list[TextContent]:
    result = await ctx.interfaces.sync_interfaces(args["switch_id"])
    return _text(result.to_dict())


async def handle_configure_interface(ctx: AppContext, args: dict) -> list[TextContent]:
    settings = InterfaceSettings(
        mode=args.get("mode"),
        access_vlan=args.get("vlan_id"),
        trunk_vlans=args.get("trunk_vlans"),
        native_vlan=args.get("native_vlan_id"),
        description=args.get("description"),
        admin_state=args.get("admin_state"),
    )
    interface = await ctx.interfaces.configure_interface(
        args["switch_id"], args["interface"], settings, args.get("custom_tag")
    )
    return _text({
        "success": True,
        "message": "Interface configured successfully",
        "interface": interface.to_dict(),
    })


async def handle_get_transceivers(ctx: AppContext, args: dict) -> list[TextContent]:
    transceivers = await ctx.interfaces.get_transceivers(args["switch_id"], args.get("interface"))
    return _text({"success": True, "transceivers": transceivers})


async def handle_list_vlans(ctx: AppContext, args: dict) -> list[TextContent]:
    vlans = await ctx.vlans.list_vlans(args["switch_id"], args.get("source", "cache"))
    return _text({"success": True, "vlans": [v.to_dict() for v in vlans]})


async def handle_sync_vlans(ctx: AppContext, args: dict) -> list[TextContent]:
    result = await ctx.vlans.sync_vlans(args["switch_id"])
    return _text(result.to_dict())


async def handle_create_vlan(ctx: AppContext, args: dict) -> list[TextContent]:
    vlan = await ctx.vlans.create_vlan(
        args["switch_id"], args.get("vlan_id"), args.get("name"), args.get("description")
    )
    return _text({"success": True, "message": "VLAN created successfully", "vlan": vlan.to_dict()})


async def handle_update_vlan(ctx: AppContext, args: dict) -> list[TextContent]:
    vlan = await ctx.vlans.update_vlan(
        args["switch_id"], args.get("vlan_id"), args.get("name"), args.get("description")
    )
    return _text({"success": True, "message": "VLAN updated successfully", "vlan": vlan.to_dict()})


async def handle_delete_vlan(ctx: AppContext, args: dict) -> list[TextContent]:
    await ctx.vlans.delete_vlan(args["switch_id"], args.get("vlan_id"))
    return _text({"success": True, "message": "VLAN deleted successfully"})


async def handle_list_port_channels(ctx: AppContext, args: dict) -> list[TextContent]:
    channels = await ctx.port_channels.list_port_channels(args["switch_id"])
    return _text({"success": True, "port_channels": [pc.to_dict() for pc in channels]})


async def handle_create_port_channel(ctx: AppContext, args: dict) -> list[TextContent]:
    pc = await ctx.port_channels.create_port_channel(
        args["switch_id"],
        args.get("port_channel_number"),
        mode=args.get("mode", "trunk"),
        vlan_id=args.get("vlan_id"),
        native_vlan_id=args.get("native_vlan_id"),
        trunk_vlans=args.get("trunk_vlans"),
        lacp_mode=args.get("lacp_mode", "active"),
        description=args.get("description"),
        members=args.get("members"),
    )
    return _text({
        "success": True,
        "message": "Port channel created successfully",
        "port_channel": pc.to_dict(),
    })


async def handle_configure_port_channel(ctx: AppContext, args: dict) -> list[TextContent]:
    pc = await ctx.port_channels.configure_port_channel(
        args["switch_id"],
        args["port_channel_id"],
        mode=args.get("mode"),
        vlan_id=args.get("vlan_id"),
        native_vlan_id=args.get("native_vlan_id"),
        trunk_vlans=args.get("trunk_vlans"),
        description=args.get("description"),
        admin_state=args.get("admin_state"),
    )
    return _text({
        "success": True,
        "message": "Port channel configured successfully",
        "port_channel": pc.to_dict(),
    })


async def handle_port_channel_member(ctx: AppContext, args: dict) -> list[TextContent]:
    action = args.get("action")
    if action == "add":
        pc = await ctx.port_channels.add_member(
            args["switch_id"], args["port_channel_id"], args.get("interface_name"), args.get("lacp_mode")
        )
        message = "Member added to port channel successfully"
    elif action == "remove":
        pc = await ctx.port_channels.remove_member(
            args["switch_id"], args["port_channel_id"], args.get("interface_name")
        )
        message = "Member removed from port channel successfully"
    else:
        raise ValidationError('Invalid action. Must be "add" or "remove"', field="action")
    return _text({"success": True, "message": message, "port_channel": pc.to_dict()})


async def handle_delete_port_channel(ctx: AppContext, args: dict) -> list[TextContent]:
    await ctx.port_channels.delete_port_channel(args["switch_id"], args["port_channel_id"])
    return _text({"success": True, "message": "Port channel deleted successfully"})


async def handle_get_vlan_matrix(ctx: AppContext, args: dict) -> list[TextContent]:
    matrix = await ctx.matrix.get_matrix(args["switch_id"])
    return _text({"success": True, **matrix.to_dict()})


async def handle_apply_vlan_matrix(ctx: AppContext, args: dict) -> list[TextContent]:
    changes = args.get("changes")
    if not isinstance(changes, list):
        raise ValidationError("Invalid payload: changes required", field="changes")
    result = await ctx.matrix.apply_matrix(args["switch_id"], changes)
    return _text(result.to_dict())


async def handle_backup_config(ctx: AppContext, args: dict) -> list[TextContent]:
    result = await ctx.workflow.backup(
        args["switch_id"], args.get("backup_type", "manual"), args.get("notes")
    )
    return _text({"success": True, **result.to_dict()})


async def handle_sync_config(ctx: AppContext, args: dict) -> list[TextContent]:
    result = await ctx.workflow.sync_running_config(args["switch_id"])
    return _text({"success": True, **result.to_dict()})


async def handle_list_backups(ctx: AppContext, args: dict) -> list[TextContent]:
    backups = await ctx.workflow.list_backups(args["switch_id"], args.get("limit", 50))
    return _text({
        "success": True,
        "backups": [b.to_dict(include_text=False) for b in backups],
    })


async def handle_get_backup(ctx: AppContext, args: dict) -> list[TextContent]:
    backup = await ctx.workflow.get_backup(args["switch_id"], args["backup_id"])
    return _text({"success": True, "backup": backup.to_dict()})


async def handle_diff_backups(ctx: AppContext, args: dict) -> list[TextContent]:
    diff = await ctx.workflow.diff_backups(args["switch_id"], args["backup_id_a"], args["backup_id_b"])
    return _text({"success": True, **diff})


async def handle_validate_config(ctx: AppContext, args: dict) -> list[TextContent]:
    result = ctx.workflow.validate_syntax(args["config"])
    return _text(result.to_dict())


async def handle_apply_config(ctx: AppContext, args: dict) -> list[TextContent]:
    options = ApplyOptions(
        auto_backup=args.get("auto_backup", True),
        validate_only=args.get("validate_only", False),
        reload_on_complete=args.get("reload_on_complete", False),
        notes=args.get("notes"),
    )
    result = await ctx.workflow.apply_config(args["switch_id"], args["config"], options)
    return _text(result.to_dict())


async def handle_restore_config(ctx: AppContext, args: dict) -> list[TextContent]:
    result = await ctx.workflow.restore(args["switch_id"], args["backup_id"])
    return _text(result.to_dict())


async def handle_save_config(ctx: AppContext, args: dict) -> list[TextContent]:
    return _text(await ctx.workflow.save_running_config(args["switch_id"]))


async def handle_get_audit_log(ctx: AppContext, args: dict) -> list[TextContent]:
    """Get recent actions from the audit log file."""
    log_file = Path(ctx.settings.logging.log_dir).expanduser() / "audit.log"
    limit = args.get("limit", 20)
    records = get_recent_changes(
        log_file=str(log_file),
        target_id=args.get("switch_id"),
        action=args.get("action"),
        limit=limit,
    )
    return _text({
        "total_records": len(records),
        "filters": {
            "switch_id": args.get("switch_id"),
            "action": args.get("action"),
            "limit": limit,
        },
        "records": [
            {
                "timestamp": r.timestamp,
                "action": r.action,
                "target_type": r.target_type,
                "target_id": r.target_id,
                "user_id": r.user_id,
                "details": r.details,
            }
            for r in records
        ],
    })


TOOL_HANDLERS: dict[str, Handler] = {
    "list_switches": handle_list_switches,
    "poll_switch": handle_poll_switch,
    "get_environment": handle_get_environment,
    "get_mac_address_table": handle_get_mac_address_table,
    "get_logs": handle_get_logs,
    "get_port_channel_load_balance": handle_get_port_channel_load_balance,
    "list_interfaces": handle_list_interfaces,
    "sync_interfaces": handle_sync_interfaces,
    "configure_interface": handle_configure_interface,
    "get_transceivers": handle_get_transceivers,
    "list_vlans": handle_list_vlans,
    "sync_vlans": handle_sync_vlans,
    "create_vlan": handle_create_vlan,
    "update_vlan": handle_update_vlan,
    "delete_vlan": handle_delete_vlan,
    "list_port_channels": handle_list_port_channels,
    "create_port_channel": handle_create_port_channel,
    "configure_port_channel": handle_configure_port_channel,
    "port_channel_member": handle_port_channel_member,
    "delete_port_channel": handle_delete_port_channel,
    "get_vlan_matrix": handle_get_vlan_matrix,
    "apply_vlan_matrix": handle_apply_vlan_matrix,
    "backup_config": handle_backup_config,
    "sync_config": handle_sync_config,
    "list_backups": handle_list_backups,
    "get_backup": handle_get_backup,
    "diff_backups": handle_diff_backups,
    "validate_config": handle_validate_config,
    "apply_config": handle_apply_config,
    "restore_config": handle_restore_config,
    "save_config": handle_save_config,
    "get_audit_log": handle_get_audit_log,
}


# === RESOURCES ===

@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    ctx = await get_app()
    resources = []

    for row in await ctx.datastore.query("switches", order_by=("id",)):
        resources.append(Resource(
            uri=AnyUrl(f"switch://{row['id']}/config"),
            name=f"{row['hostname']} Configuration",
            description=f"Latest stored configuration backup for {row['hostname']}",
            mimeType="text/plain",
        ))

    return resources


@server.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource."""
    # Parse URI: switch://<switch_id>/config
    uri_str = str(uri)
    if uri_str.startswith("switch://"):
        parts = uri_str[9:].split("/")
        if len(parts) >= 2 and parts[0].isdigit() and parts[1] == "config":
            ctx = await get_app()
            backup = await ctx.workflow.latest_backup(int(parts[0]))
            if backup is None:
                return json.dumps({"error": f"No configuration backup for switch {parts[0]}"})
            return backup.config_text

    return json.dumps({"error": f"Unknown resource: {uri}"})


def main():
    """Run the MCP server."""

    async def run():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options()
            )

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    finally:
        # Cleanup
        if app:
            asyncio.run(app.close())


if __name__ == "__main__":
    main()
