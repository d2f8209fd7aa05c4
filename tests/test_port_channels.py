"""Tests for port-channel management."""
import pytest
import pytest_asyncio

from mcp_arista_switch.errors import ConflictError, NotFoundError, ValidationError
from mcp_arista_switch.reconcile import PortChannelService


@pytest.fixture
def port_channels(datastore, resolver, audit) -> PortChannelService:
    return PortChannelService(datastore, resolver, audit)


@pytest_asyncio.fixture
async def known_vlans(datastore, switch_id):
    for vid in (1, 10, 20):
        await datastore.insert("switch_vlans", {"switch_id": switch_id, "vlan_id": vid})


class TestCreatePortChannel:
    """Tests for create_port_channel."""

    @pytest.mark.asyncio
    async def test_create_trunk_with_members(self, port_channels, datastore, switch_id, fake_switch):
        pc = await port_channels.create_port_channel(
            switch_id, "10", mode="Trunk", native_vlan_id=1, trunk_vlans=[10, 20],
            lacp_mode="passive", members=["Ethernet1", "Ethernet2", "Ethernet1"],
        )

        assert pc.port_channel_name == "Port-Channel10"
        assert pc.mode == "trunk"
        assert pc.trunk_vlans == "10,20"
        assert pc.lacp_mode == "passive"
        assert pc.members == ["Ethernet1", "Ethernet2"]
        assert fake_switch.batches[0][2:] == [
            "interface Port-Channel10",
            "switchport mode trunk",
            "switchport trunk native vlan 1",
            "switchport trunk allowed vlan 10,20",
        ]
        assert fake_switch.batches[1][2:] == ["interface Ethernet1", "channel-group 10 mode passive"]

    @pytest.mark.asyncio
    async def test_rejected_member_left_out(self, port_channels, switch_id, fake_switch):
        """The channel is still created when the switch refuses one member."""
        fake_switch.fail("interface Ethernet2")

        pc = await port_channels.create_port_channel(
            switch_id, 1, members=["Ethernet1", "Ethernet2"]
        )

        assert pc.members == ["Ethernet1"]

    @pytest.mark.asyncio
    async def test_all_errors_reported_together(self, port_channels, switch_id, fake_switch):
        with pytest.raises(ValidationError) as exc_info:
            await port_channels.create_port_channel(
                switch_id, 5000, mode="hybrid", lacp_mode="sometimes", members=["bad name"]
            )

        assert exc_info.value.errors == [
            "Port channel number must be between 1 and 4096",
            "Mode must be access, trunk, or routed",
            "LACP mode must be active, passive, or on",
            "Invalid member interface name: bad name",
        ]
        assert fake_switch.requests == []

    @pytest.mark.asyncio
    async def test_missing_number(self, port_channels, switch_id):
        with pytest.raises(ValidationError) as exc_info:
            await port_channels.create_port_channel(switch_id, None)

        assert exc_info.value.errors == ["Port channel number is required and must be a number"]

    @pytest.mark.asyncio
    async def test_vlans_checked_against_cache(self, port_channels, switch_id, known_vlans):
        with pytest.raises(ValidationError) as exc_info:
            await port_channels.create_port_channel(
                switch_id, 1, mode="trunk", native_vlan_id=30, trunk_vlans="10,99,x"
            )

        assert exc_info.value.errors == [
            "VLAN 99 does not exist on this switch",
            "Invalid VLAN ID in trunk list: x",
            "Native VLAN 30 does not exist on this switch",
        ]

    @pytest.mark.asyncio
    async def test_access_requires_vlan(self, port_channels, switch_id):
        with pytest.raises(ValidationError) as exc_info:
            await port_channels.create_port_channel(switch_id, 1, mode="access")

        assert exc_info.value.errors == ["Access mode requires a valid VLAN ID (1-4094)"]

    @pytest.mark.asyncio
    async def test_duplicate(self, port_channels, switch_id):
        await port_channels.create_port_channel(switch_id, 1)

        with pytest.raises(ConflictError, match="Port channel already exists"):
            await port_channels.create_port_channel(switch_id, 1)

    @pytest.mark.asyncio
    async def test_member_of_other_channel(self, port_channels, switch_id):
        await port_channels.create_port_channel(switch_id, 1, members=["Ethernet1"])

        with pytest.raises(ValidationError) as exc_info:
            await port_channels.create_port_channel(switch_id, 2, members=["Ethernet1"])

        assert exc_info.value.errors == ["Interface Ethernet1 is already a member of Port-Channel1"]


class TestConfigurePortChannel:
    """Tests for configure_port_channel."""

    @pytest.mark.asyncio
    async def test_switch_to_access(self, port_channels, switch_id, fake_switch, known_vlans):
        pc = await port_channels.create_port_channel(switch_id, 1, trunk_vlans="10,20")

        updated = await port_channels.configure_port_channel(
            switch_id, pc.id, mode="access", vlan_id=10, admin_state="DOWN"
        )

        assert updated.mode == "access"
        assert updated.vlan_id == 10
        assert updated.trunk_vlans is None
        assert updated.admin_status == "down"
        assert fake_switch.batches[-1][2:] == [
            "interface Port-Channel1",
            "switchport mode access",
            "switchport access vlan 10",
            "shutdown",
        ]

    @pytest.mark.asyncio
    async def test_description_only(self, port_channels, switch_id, fake_switch):
        pc = await port_channels.create_port_channel(switch_id, 1)

        updated = await port_channels.configure_port_channel(switch_id, pc.id, description=" to core ")

        assert updated.description == "to core"
        assert updated.mode == "trunk"
        assert fake_switch.batches[-1][2:] == ["interface Port-Channel1", "description to core"]

    @pytest.mark.asyncio
    async def test_invalid_admin_state(self, port_channels, switch_id):
        pc = await port_channels.create_port_channel(switch_id, 1)

        with pytest.raises(ValidationError) as exc_info:
            await port_channels.configure_port_channel(switch_id, pc.id, admin_state="maybe")

        assert exc_info.value.errors == ["Admin state must be up or down"]

    @pytest.mark.asyncio
    async def test_not_found(self, port_channels, switch_id):
        with pytest.raises(NotFoundError, match="Port channel not found"):
            await port_channels.configure_port_channel(switch_id, 42, description="x")


class TestMembers:
    """Tests for member add/remove and deletion."""

    @pytest.mark.asyncio
    async def test_add_uses_channel_lacp_mode(self, port_channels, switch_id, fake_switch):
        pc = await port_channels.create_port_channel(switch_id, 3, lacp_mode="on")

        updated = await port_channels.add_member(switch_id, pc.id, " Ethernet7 ")

        assert updated.members == ["Ethernet7"]
        assert fake_switch.batches[-1][2:] == ["interface Ethernet7", "channel-group 3 mode on"]

    @pytest.mark.asyncio
    async def test_add_twice_keeps_one_record(self, port_channels, switch_id):
        pc = await port_channels.create_port_channel(switch_id, 3)

        await port_channels.add_member(switch_id, pc.id, "Ethernet7")
        updated = await port_channels.add_member(switch_id, pc.id, "Ethernet7", lacp_mode="bogus")

        assert updated.members == ["Ethernet7"]

    @pytest.mark.asyncio
    async def test_add_member_of_other_channel(self, port_channels, switch_id, fake_switch):
        await port_channels.create_port_channel(switch_id, 1, members=["Ethernet1"])
        other = await port_channels.create_port_channel(switch_id, 2)
        sent = len(fake_switch.requests)

        with pytest.raises(ConflictError):
            await port_channels.add_member(switch_id, other.id, "Ethernet1")
        assert len(fake_switch.requests) == sent

    @pytest.mark.asyncio
    async def test_add_invalid_name(self, port_channels, switch_id):
        pc = await port_channels.create_port_channel(switch_id, 1)

        with pytest.raises(ValidationError, match="Valid interface name is required"):
            await port_channels.add_member(switch_id, pc.id, "")

    @pytest.mark.asyncio
    async def test_remove_member(self, port_channels, switch_id, fake_switch):
        pc = await port_channels.create_port_channel(switch_id, 1, members=["Ethernet1", "Ethernet2"])

        updated = await port_channels.remove_member(switch_id, pc.id, "Ethernet1")

        assert updated.members == ["Ethernet2"]
        assert fake_switch.batches[-1][2:] == ["interface Ethernet1", "no channel-group"]

    @pytest.mark.asyncio
    async def test_delete_removes_members(self, port_channels, datastore, switch_id, fake_switch):
        pc = await port_channels.create_port_channel(switch_id, 4, members=["Ethernet1"])

        await port_channels.delete_port_channel(switch_id, pc.id)

        assert fake_switch.sent("no interface Port-Channel4")
        assert await port_channels.list_port_channels(switch_id) == []
        assert await datastore.query("port_channel_members") == []
