"""Switch health and read-only diagnostics.

Polling refreshes the `switches` row (status, model, firmware, hostname,
environment alert). The other reads go straight to the switch and are not
cached.
"""
import logging
from typing import Any, Iterable, Optional

from .datastore import Datastore, utcnow
from .eapi.syslog import parse_log_text
from .errors import DeviceCommunicationError, DeviceError, PersistenceError, ValidationError
from .models import is_valid_interface_name, is_valid_vlan_id
from .targets import TargetResolver
from .utils.audit_log import AuditLogger
from .utils.logging_config import timed_section

logger = logging.getLogger(__name__)

STATUS_UP = "up"
STATUS_DOWN = "down"
HEALTHY_COMPONENT = ("ok", "connected")
HEALTHY_SYSTEM = ("normal", "ok")
LOG_LINES_DEFAULT = 200
LOG_LINES_MAX = 5000
LAST_ERROR_MAX = 65535


def _entries(source: Any) -> list[dict]:
    values = source.values() if isinstance(source, dict) else source or []
    return [v for v in values if isinstance(v, dict)]


def _component_failed(env: dict, keys: tuple[str, str]) -> bool:
    source = env.get(keys[0]) or env.get(keys[1]) or []
    for entry in _entries(source):
        status = str(entry.get("status") or entry.get("state") or "ok").lower()
        if status not in HEALTHY_COMPONENT:
            return True
    return False


def environment_alert(env: dict) -> bool:
    """True when a PSU or fan is unhealthy, a sensor alerts, or the system status is abnormal."""
    if not env:
        return False
    if _component_failed(env, ("powerSupplySlots", "powerSupplies")):
        return True
    if _component_failed(env, ("fanTraySlots", "fans")):
        return True
    for sensor in _entries(env.get("tempSensors") or env.get("temperature") or []):
        if sensor.get("inAlertState") or sensor.get("alert"):
            return True
    system = str(env.get("systemStatus") or env.get("status") or "normal").lower()
    return system not in HEALTHY_SYSTEM


def mac_entries(table: dict) -> list[dict]:
    """Flatten the unicast table of `show mac address-table`."""
    unicast = table.get("unicastTable") if isinstance(table, dict) else None
    rows = unicast.get("tableEntries") if isinstance(unicast, dict) else None
    return [
        {
            "vlan_id": row.get("vlanId"),
            "mac_address": row.get("macAddress"),
            "type": row.get("entryType") or row.get("type"),
            "interface": row.get("interface"),
            "moves": row.get("moves"),
            "last_move": row.get("lastMove"),
        }
        for row in rows or []
        if isinstance(row, dict)
    ]


class SwitchMonitor:
    """Poll switch status and run read-only diagnostics."""

    def __init__(
        self,
        datastore: Datastore,
        resolver: TargetResolver,
        audit: Optional[AuditLogger] = None,
    ):
        self.datastore = datastore
        self.resolver = resolver
        self.audit = audit or AuditLogger(datastore)

    async def poll_switch(self, switch_id: int) -> dict:
        """Refresh status, model, firmware and hostname from the switch.

        A switch that cannot be read is marked down with the error stored in
        ``last_error``, and the error is raised.
        """
        switch = await self.resolver.require_switch(switch_id)
        client = await self.resolver.client(switch_id)

        try:
            async with timed_section("poll", device_id=client.device_id):
                version = await client.get_version()
                hostname = await client.get_hostname()
        except DeviceError as e:
            await self._mark_down(switch_id, e)
            await self.audit.record_switch_action("Poll switch failed", switch_id, {"error": e.message})
            raise

        now = utcnow()
        values: dict[str, Any] = {"status": STATUS_UP, "last_seen": now, "last_polled": now, "last_error": None}
        if version.get("modelName"):
            values["model"] = version["modelName"]
        if version.get("version"):
            values["firmware_version"] = version["version"]
        if hostname and hostname != switch["hostname"]:
            if await self.datastore.query_one("switches", {"hostname": hostname}):
                logger.warning(f"Switch {switch_id} reports hostname {hostname}, already used by another switch")
            else:
                values["hostname"] = hostname

        try:
            values["environment_alert"] = environment_alert(await client.get_environment())
        except DeviceError as e:
            logger.info(f"Environment check failed for switch {switch_id}: {e.message}")

        await self.datastore.update("switches", values, {"id": switch_id})
        await self.audit.record_switch_action("Poll switch", switch_id, {
            "model": values.get("model"),
            "firmware_version": values.get("firmware_version"),
        })
        return await self.resolver.require_switch(switch_id)

    async def _mark_down(self, switch_id: int, error: DeviceError) -> None:
        try:
            await self.datastore.update("switches", {
                "status": STATUS_DOWN,
                "last_polled": utcnow(),
                "last_error": error.message[:LAST_ERROR_MAX],
            }, {"id": switch_id})
        except PersistenceError as e:
            logger.error(f"Failed to mark switch {switch_id} down: {e.message}")

    async def get_environment(self, switch_id: int) -> dict:
        """Environment data plus the derived alert flag.

        Refused for a switch whose last poll marked it down.
        """
        switch = await self.resolver.require_switch(switch_id)
        if switch.get("status") == STATUS_DOWN:
            raise DeviceCommunicationError(
                "Cannot load environment data: switch is offline", switch_id=switch_id
            )
        client = await self.resolver.client(switch_id)
        env = await client.get_environment()
        return {"environment": env, "alert": environment_alert(env)}

    async def get_mac_address_table(
        self, switch_id: int, vlan_id: Any = None, interface: Optional[str] = None
    ) -> list[dict]:
        errors = []
        if vlan_id is not None and not is_valid_vlan_id(vlan_id):
            errors.append("VLAN ID must be between 1 and 4094")
        if interface and not is_valid_interface_name(interface):
            errors.append(f"Invalid interface name: {interface}")
        if errors:
            raise ValidationError("Validation failed", errors=errors)

        await self.resolver.require_switch(switch_id)
        client = await self.resolver.client(switch_id)
        table = await client.get_mac_address_table(
            int(vlan_id) if vlan_id is not None else None, interface or None
        )
        return mac_entries(table)

    async def get_logs(
        self,
        switch_id: int,
        lines: Any = LOG_LINES_DEFAULT,
        filter_text: str = "",
        severities: Optional[Iterable[str]] = None,
    ) -> dict:
        """Newest ``lines`` syslog entries (1 to 5000), optionally filtered."""
        try:
            limit = int(lines)
        except (TypeError, ValueError):
            limit = LOG_LINES_DEFAULT
        limit = max(1, min(limit, LOG_LINES_MAX))

        await self.resolver.require_switch(switch_id)
        client = await self.resolver.client(switch_id)
        text = await client.get_logs()
        if not text.strip():
            return {"entries": [], "severities": [], "warnings": ["No log output received"]}

        entries = parse_log_text(text, filter_text or "", severities, limit)
        return {
            "entries": [entry.to_dict() for entry in entries],
            "severities": sorted({entry.severity for entry in entries}),
            "warnings": [],
        }

    async def get_port_channel_load_balance(self, switch_id: int, port_channel: Optional[str] = None) -> dict:
        if port_channel and not is_valid_interface_name(port_channel):
            raise ValidationError(f"Invalid port channel name: {port_channel}", field="port_channel")
        await self.resolver.require_switch(switch_id)
        client = await self.resolver.client(switch_id)
        return await client.get_port_channel_load_balance(port_channel or None)
