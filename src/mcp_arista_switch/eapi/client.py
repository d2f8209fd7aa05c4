"""Arista eAPI (JSON-RPC over HTTPS) client.

One client wraps one SwitchTarget. Every call opens its own
httpx.AsyncClient, so credentials only live for the duration of a request.
"""
import itertools
import logging
import re
from typing import Any, Optional, Union

import httpx

from ..errors import DeviceCommandError, DeviceCommunicationError, ValidationError
from ..models import SwitchTarget, is_valid_vlan_id
from ..utils.logging_config import timed
from . import commands as cli
from .commands import InterfaceSettings
from .transceiver import looks_like_transceiver_table, parse_transceiver_text

logger = logging.getLogger(__name__)

Command = Union[str, dict]

FORMATS = ("json", "text")

# Mode-entry prefixes, tried in order
CONFIG_SEQUENCES: tuple[tuple[str, ...], ...] = (
    ("enable", "configure"),
    ("configure",),
    ("enable", "configure terminal"),
    ("configure terminal",),
)

INTERFACE_KEY_RE = re.compile(r"^(Ethernet|Management|Port-Channel)", re.I)

ENVIRONMENT_COMMANDS = ("show system environment all", "show environment all")
ENVIRONMENT_PARTS = (
    ("show environment power", "powerSupplySlots", ("powerSupplySlots", "powerSupplies")),
    ("show environment cooling", "fanTraySlots", ("fanTraySlots", "fans")),
    ("show environment temperature", "tempSensors", ("tempSensors", "temperature")),
)

_request_ids = itertools.count(1)


def _normalize_commands(cmds: list[Command]) -> list[Command]:
    """Keep plain strings and {"cmd": ..., "input": ...} dicts."""
    normalized: list[Command] = []
    for cmd in cmds:
        if isinstance(cmd, str):
            normalized.append(cmd)
        elif isinstance(cmd, dict) and "cmd" in cmd:
            normalized.append(cmd)
        else:
            logger.debug(f"Dropping unsupported eAPI command entry: {cmd!r}")
    return normalized


def _command_text(cmd: Command) -> str:
    return cmd if isinstance(cmd, str) else str(cmd.get("cmd", ""))


def _first(payload: Any) -> Any:
    if isinstance(payload, list):
        return payload[0] if payload else {}
    return payload


def _log_text(results: list) -> str:
    """Log text from a `show logging` batch, newest result first."""
    for item in reversed(results):
        if isinstance(item, str) and item.strip():
            return item
        if not isinstance(item, dict):
            continue
        output = item.get("output")
        if isinstance(output, str) and output.strip():
            return output
        messages = item.get("messages")
        if isinstance(messages, list):
            lines = [m if isinstance(m, str) else m.get("message") for m in messages if isinstance(m, (str, dict))]
            lines = [line for line in lines if line]
            if lines:
                return "\n".join(lines)
    return ""


class EAPIClient:
    """Typed access to one switch's eAPI endpoint."""

    def __init__(
        self,
        target: SwitchTarget,
        verify_ssl: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.target = target
        self.verify_ssl = verify_ssl
        # Injected in tests (httpx.MockTransport)
        self._transport = transport

    @property
    def device_id(self) -> str:
        return self.target.device_id

    # === Transport ===

    @timed("run_cmds")
    async def run_commands(self, cmds: list[Command], fmt: str = "json") -> list:
        """Run commands in one runCmds request and return the result list.

        Raises:
            ValidationError: Unknown output format
            DeviceCommunicationError: Network, TLS, HTTP or decoding failure
            DeviceCommandError: The switch rejected a command
        """
        if fmt not in FORMATS:
            raise ValidationError(f"Unsupported eAPI format: {fmt}")

        normalized = _normalize_commands(cmds)
        request = {
            "jsonrpc": "2.0",
            "method": "runCmds",
            "params": {"version": 1, "cmds": normalized, "format": fmt},
            "id": f"eoscraft-{next(_request_ids)}",
        }

        logger.debug(f"{self.device_id}: runCmds {[_command_text(c) for c in normalized]}")
        try:
            async with httpx.AsyncClient(
                verify=self.verify_ssl,
                timeout=self.target.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.target.base_url,
                    json=request,
                    auth=(self.target.username, self.target.password),
                )
        except httpx.TimeoutException as e:
            raise DeviceCommunicationError(
                f"Timeout talking to {self.device_id}: {e}", switch=self.device_id
            ) from e
        except httpx.TransportError as e:
            raise DeviceCommunicationError(
                f"Connection to {self.device_id} failed: {e}", switch=self.device_id
            ) from e

        if response.status_code != 200:
            raise DeviceCommunicationError(
                f"HTTP Error: {response.status_code}",
                status_code=response.status_code,
                switch=self.device_id,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise DeviceCommunicationError(
                f"JSON Decode Error: {e}", switch=self.device_id
            ) from e

        if not isinstance(data, dict):
            raise DeviceCommunicationError(
                "JSON Decode Error: response is not an object", switch=self.device_id
            )

        if data.get("error"):
            raise self._command_error(data["error"], normalized)

        return data.get("result") or []

    def _command_error(self, error: Any, cmds: list[Command]) -> DeviceCommandError:
        """Translate a JSON-RPC error member into a DeviceCommandError."""
        if not isinstance(error, dict):
            return DeviceCommandError(f"eAPI Error: {error}")

        failed_index = None
        failed_command = None
        messages: list[str] = []
        for index, entry in enumerate(error.get("data") or []):
            if isinstance(entry, dict) and entry.get("errors"):
                failed_index = index
                messages = [str(m) for m in entry["errors"]]
                break
        if failed_index is not None and failed_index < len(cmds):
            failed_command = _command_text(cmds[failed_index])

        return DeviceCommandError(
            f"eAPI Error: {error.get('message') or 'Unknown error'}",
            code=error.get("code"),
            failed_index=failed_index,
            failed_command=failed_command,
            device_messages=messages,
        )

    async def run_command(self, cmd: Command, fmt: str = "json") -> Any:
        """Run a single command and return its result."""
        result = await self.run_commands([cmd], fmt)
        return result[0] if result else {}

    async def run_config_commands(self, commands: list[Command]) -> list:
        """Run commands inside configuration mode.

        Tries each mode-entry sequence in turn; moves on only when the
        switch rejects the mode entry itself. A rejected payload command is
        raised at once and never resent.
        """
        last_error: Optional[DeviceCommandError] = None
        for prefix in CONFIG_SEQUENCES:
            try:
                return await self.run_commands([*prefix, *commands])
            except DeviceCommandError as e:
                if e.failed_index is None or e.failed_index >= len(prefix):
                    raise
                logger.debug(f"{self.device_id}: config entry {list(prefix)} failed: {e.message}")
                last_error = e
        assert last_error is not None
        raise last_error

    # === Reads ===

    async def get_version(self) -> dict:
        return await self.run_command("show version") or {}

    async def get_hostname(self) -> str:
        result = await self.run_command("show hostname")
        return (result or {}).get("hostname", "")

    async def get_vlans(self) -> list[dict]:
        """VLANs as [{"vlan_id", "name", "status", "description"}].

        EOS releases key `show vlan` by VLAN id; some return a list of
        objects with the id inside.
        """
        payload = await self.run_command("show vlan") or {}
        vlans = payload.get("vlans", payload) if isinstance(payload, dict) else payload

        if isinstance(vlans, dict):
            items = list(vlans.items())
        elif isinstance(vlans, list):
            items = [(None, v) for v in vlans]
        else:
            return []

        normalized = []
        for key, value in items:
            value = value if isinstance(value, dict) else {}
            vlan_id = None
            if key is not None and str(key).isdigit() and is_valid_vlan_id(key):
                vlan_id = int(key)
            else:
                for field_name in ("vlanId", "id", "vlan"):
                    candidate = value.get(field_name)
                    if candidate is not None and str(candidate).isdigit():
                        vlan_id = int(candidate)
                        break
            if vlan_id is None or not is_valid_vlan_id(vlan_id):
                continue
            normalized.append({
                "vlan_id": vlan_id,
                "name": value.get("name") or value.get("vlanName") or value.get("nameAlias"),
                "status": value.get("status"),
                "description": value.get("description"),
            })
        return normalized

    async def get_interfaces(self) -> dict:
        result = await self.run_command("show interfaces") or {}
        return result.get("interfaces") or {}

    async def get_interfaces_status(self) -> dict:
        payload = await self.run_command("show interfaces status") or {}
        for key in ("interfaceStatuses", "interfaces", "ports"):
            if isinstance(payload.get(key), dict):
                return payload[key]
        return payload

    async def get_port_channels(self) -> list[dict]:
        payload = await self.run_command("show port-channel") or {}
        channels = payload.get("portChannels")
        if isinstance(channels, dict):
            return [
                {
                    "name": name,
                    "interfaces": data.get("interfaces", {}),
                    "protocol": data.get("protocol"),
                    "flags": data.get("flags"),
                }
                for name, data in channels.items()
            ]
        if isinstance(channels, list):
            return channels
        return []

    async def get_transceivers(self, interface: Optional[str] = None) -> dict:
        """DOM readings keyed by interface name.

        JSON first; text-table fallback when the JSON form is missing or the
        switch rejects it.
        """
        command = "show interfaces transceiver"
        try:
            output = _first(await self.run_commands([command]))
        except DeviceCommandError as e:
            logger.debug(f"{self.device_id}: JSON transceiver read failed ({e.message}), trying text")
            return await self._transceivers_from_text(command, interface)

        output = output if isinstance(output, dict) else {}
        text = output.get("output")
        if isinstance(text, str) and looks_like_transceiver_table(text):
            return parse_transceiver_text(text, interface)

        transceivers = self._find_transceiver_map(output)
        if transceivers:
            if interface:
                wanted = interface.lower()
                for key, value in transceivers.items():
                    if key.lower() in (wanted, wanted.replace(" ", "")):
                        return {key: value}
                return {}
            return transceivers

        return await self._transceivers_from_text(command, interface)

    @staticmethod
    def _find_transceiver_map(output: dict) -> dict:
        if isinstance(output.get("interfaces"), dict):
            return output["interfaces"]
        if isinstance(output.get("output"), dict):
            return output["output"]
        if any(INTERFACE_KEY_RE.match(str(k)) for k in output):
            return output
        for value in output.values():
            if isinstance(value, dict) and isinstance(value.get("interfaces"), dict):
                return value["interfaces"]
        return {}

    async def _transceivers_from_text(self, command: str, interface: Optional[str]) -> dict:
        try:
            output = _first(await self.run_commands([command], "text"))
        except DeviceCommandError as e:
            logger.debug(f"{self.device_id}: text transceiver read failed: {e.message}")
            return {}
        text = output.get("output") if isinstance(output, dict) else None
        if isinstance(text, str):
            return parse_transceiver_text(text, interface)
        return {}

    async def get_environment(self) -> dict:
        """Power, cooling and temperature status.

        Releases without the combined commands answer the per-component
        ones, which are merged into the combined shape.
        """
        for command in ENVIRONMENT_COMMANDS:
            try:
                return await self.run_command(command) or {}
            except DeviceCommandError as e:
                logger.debug(f"{self.device_id}: '{command}' rejected: {e.message}")

        combined: dict = {}
        for command, target_key, keys in ENVIRONMENT_PARTS:
            try:
                payload = await self.run_command(command) or {}
            except DeviceCommandError as e:
                logger.debug(f"{self.device_id}: '{command}' rejected: {e.message}")
                continue
            for key in keys:
                if key in payload:
                    combined[target_key] = payload[key]
                    break
        if combined:
            combined.setdefault("systemStatus", "normal")
        return combined

    async def get_mac_address_table(
        self, vlan_id: Optional[int] = None, interface: Optional[str] = None
    ) -> dict:
        """`show mac address-table`, filtered by VLAN or else by interface."""
        command = "show mac address-table"
        if vlan_id is not None:
            command += f" vlan {vlan_id}"
        elif interface:
            command += f" interface {interface}"
        try:
            return await self.run_command(command) or {}
        except DeviceCommandError as e:
            logger.debug(f"{self.device_id}: '{command}' rejected ({e.message}), trying dynamic table")

        fallback = "show mac address-table dynamic"
        if vlan_id is not None:
            fallback += f" vlan {vlan_id}"
        return await self.run_command(fallback) or {}

    async def get_logs(self) -> str:
        """`show logging` as text, with the pager disabled when allowed."""
        try:
            results = await self.run_commands(["enable", "terminal length 0", "show logging"], "text")
        except DeviceCommandError as e:
            logger.debug(f"{self.device_id}: paged-off log read failed ({e.message}), retrying plain")
            results = await self.run_commands(["enable", "show logging"], "text")
        return _log_text(results)

    async def get_port_channel_load_balance(self, port_channel: Optional[str] = None) -> dict:
        """Load-balance (or traffic distribution) data for port-channels."""
        commands = ["show port-channel load-balance", "show port-channel traffic"]
        if port_channel:
            commands.insert(0, f"show port-channel load-balance {port_channel}")

        last_error: Optional[DeviceCommandError] = None
        for command in commands:
            try:
                return await self.run_command(command) or {}
            except DeviceCommandError as e:
                logger.debug(f"{self.device_id}: '{command}' rejected: {e.message}")
                last_error = e
        assert last_error is not None
        raise last_error

    # === Writes ===

    async def create_vlan(self, vlan_id: int, name: Optional[str] = None) -> list:
        return await self.run_config_commands(cli.vlan_commands(vlan_id, name))

    async def update_vlan_name(self, vlan_id: int, name: str) -> list:
        return await self.run_config_commands(cli.vlan_commands(vlan_id, name))

    async def delete_vlan(self, vlan_id: int) -> list:
        return await self.run_config_commands([f"no vlan {vlan_id}"])

    async def configure_interface(self, interface: str, settings: InterfaceSettings) -> list:
        return await self.run_config_commands(cli.interface_commands(interface, settings))

    async def create_port_channel(self, number: int, settings: Optional[InterfaceSettings] = None) -> list:
        return await self.run_config_commands(
            cli.port_channel_commands(number, settings or InterfaceSettings())
        )

    async def configure_port_channel(self, number: int, settings: InterfaceSettings) -> list:
        return await self.create_port_channel(number, settings)

    async def delete_port_channel(self, number: int) -> list:
        return await self.run_config_commands([f"no interface {cli.port_channel_name(number)}"])

    async def add_port_channel_member(
        self, interface: str, port_channel: str, lacp_mode: str = "active"
    ) -> list:
        return await self.run_config_commands(cli.member_commands(interface, port_channel, lacp_mode))

    async def remove_port_channel_member(self, interface: str) -> list:
        return await self.run_config_commands(cli.remove_member_commands(interface))

    async def save_running_config(self) -> list:
        """copy running-config startup-config."""
        return await self.run_commands(["enable", "copy running-config startup-config"])

    async def apply_config(self, commands: list[Command]) -> list:
        """Send a whole configuration batch after `configure`."""
        return await self.run_commands(["configure", *commands])

    async def reload(self, command: str = "reload now") -> list:
        return await self.run_commands(["enable", command])
