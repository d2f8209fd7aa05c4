"""VLAN cache and device operations."""
import logging
from typing import Any, Optional

from ..datastore import Datastore
from ..errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from ..models import Vlan, is_valid_vlan_id, sanitize_vlan_name
from ..targets import TargetResolver
from ..utils.audit_log import AuditLogger
from ..utils.locks import SwitchLocks
from .schema import SyncResult

logger = logging.getLogger(__name__)

# VLAN 1 is the default VLAN on EOS and cannot be removed
PROTECTED_VLANS = {1: "Default VLAN"}


def _vlan_id(value: Any) -> int:
    if value is None or isinstance(value, bool) or not str(value).strip().isdigit():
        raise ValidationError(
            "Validation failed",
            errors=["VLAN ID is required and must be a number"],
            field="vlan_id",
        )
    if not is_valid_vlan_id(value):
        raise ValidationError(
            "Validation failed", errors=["VLAN ID must be between 1 and 4094"], field="vlan_id"
        )
    return int(value)


class VlanService:
    """List, sync, create, rename and delete VLANs on a switch."""

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

    async def list_vlans(self, switch_id: int, source: str = "cache") -> list[Vlan]:
        """VLANs ordered by id, from the cache or straight from the switch."""
        if source not in ("cache", "live"):
            raise ValidationError(f"Invalid source: {source} (must be cache or live)", field="source")
        await self.resolver.require_switch(switch_id)

        if source == "live":
            client = await self.resolver.client(switch_id)
            return [
                Vlan(switch_id=switch_id, vlan_id=v["vlan_id"], name=v.get("name"), description=v.get("description"))
                for v in await client.get_vlans()
            ]

        rows = await self.datastore.query("switch_vlans", {"switch_id": switch_id}, order_by=("vlan_id",))
        return [Vlan.from_row(row) for row in rows]

    async def get_vlan(self, switch_id: int, vlan_id: int) -> Vlan:
        row = await self.datastore.query_one("switch_vlans", {"switch_id": switch_id, "vlan_id": vlan_id})
        if not row:
            raise NotFoundError("VLAN not found", resource="vlan", identifier=vlan_id)
        return Vlan.from_row(row)

    async def sync_vlans(self, switch_id: int) -> SyncResult:
        """Replace the cached VLAN list with the switch's."""
        await self.resolver.require_switch(switch_id)
        client = await self.resolver.client(switch_id)
        result = SyncResult()

        async with self.locks.hold(switch_id):
            vlans = await client.get_vlans()
            await self.datastore.delete("switch_vlans", {"switch_id": switch_id})
            seen: set[int] = set()
            for vlan in vlans:
                vlan_id = vlan.get("vlan_id")
                if not is_valid_vlan_id(vlan_id) or vlan_id in seen:
                    continue
                seen.add(vlan_id)
                try:
                    await self.datastore.insert("switch_vlans", {
                        "switch_id": switch_id,
                        "vlan_id": vlan_id,
                        "name": vlan.get("name"),
                        "description": vlan.get("description"),
                    })
                    result.synced_count += 1
                except PersistenceError as e:
                    result.errors.append(f"Failed to cache VLAN {vlan_id}: {e.message}")

        result.message = f"Synced {result.synced_count} VLANs"
        await self.audit.record_switch_action("Sync VLANs from switch", switch_id, {
            "synced_count": result.synced_count,
        })
        return result

    async def create_vlan(
        self,
        switch_id: int,
        vlan_id: Any,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Vlan:
        """Create a VLAN on the switch, then cache it.

        The name is sanitized for EOS; when that changes it and no
        description was given, the original name becomes the description.
        """
        if name:
            original = name
            name = sanitize_vlan_name(name)
            if not description and name != original:
                description = original
        vlan_id = _vlan_id(vlan_id)
        await self.resolver.require_switch(switch_id)

        if await self.datastore.query_one("switch_vlans", {"switch_id": switch_id, "vlan_id": vlan_id}):
            raise ConflictError("VLAN already exists", vlan_id=vlan_id)

        client = await self.resolver.client(switch_id)
        await client.create_vlan(vlan_id, name)
        await self.datastore.insert("switch_vlans", {
            "switch_id": switch_id,
            "vlan_id": vlan_id,
            "name": name or None,
            "description": description or None,
        })

        await self.audit.record_vlan_action("Create VLAN", switch_id, vlan_id, {
            "name": name,
            "description": description,
        })
        return await self.get_vlan(switch_id, vlan_id)

    async def update_vlan(
        self,
        switch_id: int,
        vlan_id: Any,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Vlan:
        """Rename (on the switch and in the cache) and/or re-describe a VLAN."""
        vlan_id = _vlan_id(vlan_id)
        await self.resolver.require_switch(switch_id)
        await self.get_vlan(switch_id, vlan_id)

        values: dict[str, Any] = {}
        if name is not None:
            values["name"] = sanitize_vlan_name(name.strip()) or None
        if description is not None:
            values["description"] = description or None

        if values.get("name"):
            client = await self.resolver.client(switch_id)
            await client.update_vlan_name(vlan_id, values["name"])

        if values:
            await self.datastore.update("switch_vlans", values, {"switch_id": switch_id, "vlan_id": vlan_id})

        await self.audit.record_vlan_action("Update VLAN", switch_id, vlan_id, values)
        return await self.get_vlan(switch_id, vlan_id)

    async def delete_vlan(self, switch_id: int, vlan_id: Any) -> None:
        vlan_id = _vlan_id(vlan_id)
        if vlan_id in PROTECTED_VLANS:
            raise ValidationError(
                f"Cannot delete VLAN {vlan_id}: {PROTECTED_VLANS[vlan_id]}", field="vlan_id"
            )
        await self.resolver.require_switch(switch_id)
        await self.get_vlan(switch_id, vlan_id)

        client = await self.resolver.client(switch_id)
        await client.delete_vlan(vlan_id)
        await self.datastore.delete("switch_vlans", {"switch_id": switch_id, "vlan_id": vlan_id})

        await self.audit.record_vlan_action("Delete VLAN", switch_id, vlan_id)
        logger.info(f"Deleted VLAN {vlan_id} on switch {switch_id}")
