"""Tests for interface listing, sync and configuration."""
from datetime import datetime

import pytest

from mcp_arista_switch.eapi import InterfaceSettings
from mcp_arista_switch.errors import DeviceCommunicationError, ValidationError
from mcp_arista_switch.reconcile import InterfaceReconciler, is_port_channel_name

LIVE_INTERFACES = {"interfaces": {
    "Ethernet1": {"name": "Ethernet1", "description": "uplink", "bandwidth": 10000000000},
    "Ethernet2": {"name": "Ethernet2", "adminStatus": "up"},
    "Ethernet3": {"name": "Ethernet3", "adminStatus": "Up", "operStatus": "Down",
                  "switchportInfo": {"mode": "Access", "accessVlan": 20}},
    "Port-Channel1": {"name": "Port-Channel1"},
}}


@pytest.fixture
def reconciler(datastore, resolver, audit) -> InterfaceReconciler:
    return InterfaceReconciler(datastore, resolver, audit)


async def _channel_with_member(datastore, switch_id):
    pc_id = await datastore.insert("port_channels", {
        "switch_id": switch_id,
        "port_channel_name": "Port-Channel1",
        "port_channel_number": 1,
        "mode": "Trunk",
        "trunk_vlans": "10,20",
        "native_vlan_id": 1,
    })
    await datastore.insert("port_channel_members", {
        "port_channel_id": pc_id, "interface_name": "Ethernet2",
    })
    return pc_id


def test_port_channel_names():
    assert is_port_channel_name("Port-Channel1")
    assert is_port_channel_name("po7")
    assert is_port_channel_name("Po10/1")
    assert not is_port_channel_name("Ethernet1")
    assert not is_port_channel_name("Port5")
    assert not is_port_channel_name("PowerSupply1")
    assert not is_port_channel_name("Port-Channel")


class TestListInterfaces:
    """Tests for list_interfaces."""

    @pytest.mark.asyncio
    async def test_live_with_enrichment(self, reconciler, datastore, switch_id, fake_switch):
        """Status and DOM readings fill in what `show interfaces` lacks."""
        await _channel_with_member(datastore, switch_id)
        fake_switch.respond("show interfaces", LIVE_INTERFACES)
        fake_switch.respond("show interfaces status", {"interfaceStatuses": {
            "Ethernet1": {"linkStatus": "connected", "interfaceType": "10GBASE-SR"},
            "Ethernet3": {"linkStatus": "notconnect", "interfaceType": "Not Present"},
        }})
        fake_switch.respond("show interfaces transceiver", {"interfaces": {
            "Ethernet1": {"temperature": 35.5, "serialNumber": "XYZ123"},
        }})

        interfaces = await reconciler.list_interfaces(switch_id, source="live")

        by_name = {i.interface_name: i for i in interfaces}
        assert list(by_name) == ["Ethernet1", "Ethernet3", "Port-Channel1"]

        eth1 = by_name["Ethernet1"]
        assert eth1.admin_status == "up"
        assert eth1.oper_status == "up"
        assert eth1.port_type == "10GBASE-SR"
        assert eth1.transceiver_temp == 35.5
        assert eth1.description == "uplink"

        eth3 = by_name["Ethernet3"]
        assert eth3.mode == "access"
        assert eth3.vlan_id == 20
        assert eth3.oper_status == "down"
        assert eth3.transceiver_temp is None

        pc = by_name["Port-Channel1"]
        assert pc.mode == "trunk"
        assert pc.trunk_vlans == "10,20"
        assert pc.port_type == "Port-Channel"
        assert pc.speed is None

    @pytest.mark.asyncio
    async def test_live_enrichment_failure_tolerated(self, reconciler, switch_id, fake_switch):
        fake_switch.respond("show interfaces", LIVE_INTERFACES)
        fake_switch.fail("show interfaces status")

        interfaces = await reconciler.list_interfaces(switch_id, source="live")

        assert "Ethernet1" in [i.interface_name for i in interfaces]

    @pytest.mark.asyncio
    async def test_cache_keeps_latest_row(self, reconciler, datastore, switch_id, fake_switch):
        for synced, desc in ((datetime(2024, 1, 1), "old"), (datetime(2024, 6, 1), "new")):
            await datastore.insert("switch_interfaces", {
                "switch_id": switch_id,
                "interface_name": "Ethernet1",
                "description": desc,
                "last_synced": synced,
            })

        interfaces = await reconciler.list_interfaces(switch_id)

        assert len(interfaces) == 1
        assert interfaces[0].description == "new"
        assert fake_switch.requests == []

    @pytest.mark.asyncio
    async def test_cache_excludes_members_and_adds_channels(self, reconciler, datastore, switch_id):
        await _channel_with_member(datastore, switch_id)
        for name in ("Ethernet1", "Ethernet2"):
            await datastore.insert("switch_interfaces", {"switch_id": switch_id, "interface_name": name})

        names = [i.interface_name for i in await reconciler.list_interfaces(switch_id)]

        assert names == ["Ethernet1", "Port-Channel1"]

    @pytest.mark.asyncio
    async def test_invalid_source(self, reconciler, switch_id):
        with pytest.raises(ValidationError):
            await reconciler.list_interfaces(switch_id, source="both")


class TestSyncInterfaces:
    """Tests for sync_interfaces."""

    @pytest.mark.asyncio
    async def test_sync_rewrites_cache(self, reconciler, datastore, switch_id, fake_switch):
        await _channel_with_member(datastore, switch_id)
        await datastore.insert("switch_interfaces", {"switch_id": switch_id, "interface_name": "Ethernet9"})
        fake_switch.respond("show interfaces", LIVE_INTERFACES)

        result = await reconciler.sync_interfaces(switch_id)

        assert result.synced_count == 2
        assert result.message == "Synced 2 interfaces"
        rows = await datastore.query("switch_interfaces", {"switch_id": switch_id}, order_by=["interface_name"])
        assert [r["interface_name"] for r in rows] == ["Ethernet1", "Ethernet3"]
        assert rows[0]["speed"] == "10000000000"
        assert rows[0]["last_synced"] is not None

    @pytest.mark.asyncio
    async def test_sync_failure_keeps_cache(self, reconciler, datastore, switch_id, fake_switch):
        """The cache is only cleared once the switch has answered."""
        await datastore.insert("switch_interfaces", {"switch_id": switch_id, "interface_name": "Ethernet9"})
        fake_switch.unreachable = True

        with pytest.raises(DeviceCommunicationError):
            await reconciler.sync_interfaces(switch_id)

        assert len(await datastore.query("switch_interfaces")) == 1
        assert not reconciler.locks.locked(switch_id)


class TestConfigureInterface:
    """Tests for configure_interface."""

    @pytest.mark.asyncio
    async def test_access(self, reconciler, datastore, switch_id, fake_switch):
        iface = await reconciler.configure_interface(
            switch_id, "Ethernet5", InterfaceSettings(mode="ACCESS", access_vlan="30", description=" desk "),
            custom_tag="room-101",
        )

        assert fake_switch.batches[0][2:] == [
            "interface Ethernet5",
            "switchport mode access",
            "switchport access vlan 30",
            "description desk",
        ]
        assert iface.mode == "access"
        assert iface.vlan_id == 30
        assert iface.custom_tag == "room-101"

    @pytest.mark.asyncio
    async def test_trunk_list_normalized(self, reconciler, switch_id, fake_switch):
        iface = await reconciler.configure_interface(
            switch_id, "Ethernet6", InterfaceSettings(mode="trunk", trunk_vlans=[10, 20], native_vlan=5)
        )

        assert iface.trunk_vlans == "10,20"
        assert iface.native_vlan_id == 5
        assert "switchport trunk allowed vlan 10,20" in fake_switch.batches[0]

    @pytest.mark.asyncio
    async def test_tag_only_skips_switch(self, reconciler, switch_id, fake_switch):
        iface = await reconciler.configure_interface(
            switch_id, "Ethernet7", InterfaceSettings(), custom_tag="spare"
        )

        assert iface.custom_tag == "spare"
        assert fake_switch.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name,settings,message", [
        ("Eth 1", InterfaceSettings(), "Invalid interface name"),
        ("Ethernet1", InterfaceSettings(mode="hybrid"), "Invalid interface mode"),
        ("Ethernet1", InterfaceSettings(mode="access"), "Access mode requires a valid VLAN ID (1-4094)"),
        ("Ethernet1", InterfaceSettings(mode="access", access_vlan=4095), "Access mode requires a valid VLAN ID (1-4094)"),
        ("Ethernet1", InterfaceSettings(mode="trunk"), "Trunk mode requires VLAN list"),
        ("Ethernet1", InterfaceSettings(mode="trunk", trunk_vlans="10,x"), "Invalid VLAN ID in trunk list: x"),
        ("Ethernet1", InterfaceSettings(mode="trunk", trunk_vlans="10", native_vlan=0), "Invalid native VLAN ID (1-4094)"),
        ("Ethernet1", InterfaceSettings(admin_state="off"), "Invalid admin state (must be up or down)"),
    ])
    async def test_validation(self, reconciler, switch_id, fake_switch, name, settings, message):
        with pytest.raises(ValidationError) as exc_info:
            await reconciler.configure_interface(switch_id, name, settings)

        assert exc_info.value.message == message
        assert fake_switch.requests == []
