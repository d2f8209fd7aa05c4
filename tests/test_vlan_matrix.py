"""Tests for the VLAN matrix."""
import pytest
import pytest_asyncio

from mcp_arista_switch.vlan_matrix import MatrixChange, VlanMatrixEngine, cell_state


@pytest.fixture
def engine(datastore, resolver, audit) -> VlanMatrixEngine:
    return VlanMatrixEngine(datastore, resolver, audit)


@pytest_asyncio.fixture
async def vlans(datastore, switch_id):
    for vid, name in ((1, "default"), (10, "servers"), (20, "users")):
        await datastore.insert("switch_vlans", {"switch_id": switch_id, "vlan_id": vid, "name": name})


@pytest_asyncio.fixture
async def channel(datastore, switch_id):
    pc_id = await datastore.insert("port_channels", {
        "switch_id": switch_id,
        "port_channel_name": "Port-Channel1",
        "port_channel_number": 1,
        "mode": "trunk",
        "native_vlan_id": 1,
        "trunk_vlans": "20",
    })
    await datastore.insert("port_channel_members", {"port_channel_id": pc_id, "interface_name": "Ethernet4"})
    return pc_id


LIVE = {"interfaces": {
    "Ethernet1": {"name": "Ethernet1", "mode": "access", "accessVlan": 10},
    "Ethernet2": {"name": "Ethernet2", "mode": "trunk", "nativeVlan": 10, "trunkVlans": "10,20"},
    "Ethernet3": {"name": "Ethernet3", "mode": "access"},
    "Ethernet4": {"name": "Ethernet4", "mode": "trunk"},
    "Management1": {"name": "Management1"},
}}


class TestCellState:
    """Tests for cell_state."""

    def test_access(self):
        assert cell_state(10, "access", 10, None, None, True) == "untagged"
        assert cell_state(20, "access", 10, None, None, True) == "none"

    def test_access_without_vlan_defaults_to_vlan1(self):
        assert cell_state(1, "access", None, None, None, True) == "untagged"
        assert cell_state(1, "access", 0, None, None, False) == "none"

    def test_trunk(self):
        assert cell_state(10, "trunk", None, 10, "10,20", True) == "untagged"
        assert cell_state(20, "trunk", None, 10, "10, 20", True) == "tagged"
        assert cell_state(30, "trunk", None, 10, "10,20", True) == "none"

    def test_other_modes(self):
        assert cell_state(10, "routed", 10, 10, "10", True) == "none"


class TestGetMatrix:
    """Tests for get_matrix."""

    @pytest.mark.asyncio
    async def test_grid(self, engine, switch_id, fake_switch, vlans, channel):
        fake_switch.respond("show interfaces", LIVE)

        matrix = await engine.get_matrix(switch_id)

        assert [v.vlan_id for v in matrix.vlans] == [1, 10, 20]
        rows = {row.interface: row for row in matrix.interfaces}
        assert list(rows) == ["Ethernet1", "Ethernet2", "Ethernet3", "Port-Channel1", "Ethernet4"]
        assert rows["Ethernet1"].assignments == {"1": "none", "10": "untagged", "20": "none"}
        assert rows["Ethernet2"].assignments == {"1": "none", "10": "untagged", "20": "tagged"}
        assert rows["Ethernet3"].assignments["1"] == "untagged"
        assert rows["Port-Channel1"].assignments == {"1": "untagged", "10": "none", "20": "tagged"}

        member = rows["Ethernet4"]
        assert member.is_port_channel_member
        assert member.port_channel_name == "Port-Channel1"
        assert member.mode == "unknown"
        assert set(member.assignments.values()) == {"none"}

    @pytest.mark.asyncio
    async def test_trunk_native_and_tagged(self, engine, switch_id, fake_switch, vlans):
        """Trunk with native 10 and allowed 20 over VLANs 1, 10 and 20."""
        fake_switch.respond("show interfaces", {"interfaces": {
            "Ethernet1": {"name": "Ethernet1", "mode": "trunk", "nativeVlan": 10, "trunkVlans": "20"},
        }})

        matrix = await engine.get_matrix(switch_id)

        assert matrix.interfaces[0].interface == "Ethernet1"
        assert matrix.interfaces[0].assignments == {"1": "none", "10": "untagged", "20": "tagged"}
        assert cell_state(1, "trunk", None, 10, "20", True) == "none"
        assert cell_state(10, "trunk", None, 10, "20", True) == "untagged"
        assert cell_state(20, "trunk", None, 10, "20", True) == "tagged"

    @pytest.mark.asyncio
    async def test_cache_fallback(self, engine, datastore, switch_id, fake_switch, vlans):
        """An unreachable switch falls back to cached interfaces."""
        await datastore.insert("switch_interfaces", {
            "switch_id": switch_id, "interface_name": "Ethernet9", "mode": "access", "vlan_id": 20,
        })
        await datastore.insert("switch_interfaces", {"switch_id": switch_id, "interface_name": "Vlan10"})
        fake_switch.unreachable = True

        matrix = await engine.get_matrix(switch_id)

        assert [row.interface for row in matrix.interfaces] == ["Ethernet9"]
        assert matrix.interfaces[0].assignments["20"] == "untagged"

    @pytest.mark.asyncio
    async def test_to_dict(self, engine, switch_id, fake_switch, vlans):
        fake_switch.respond("show interfaces", {"interfaces": {"Ethernet1": {"mode": "access", "accessVlan": 20}}})

        data = (await engine.get_matrix(switch_id)).to_dict()

        assert data["vlans"][1] == {"vlan_id": 10, "name": "servers"}
        assert data["interfaces"][0]["interface"] == "Ethernet1"


class TestApplyMatrix:
    """Tests for apply_matrix."""

    @pytest.mark.asyncio
    async def test_one_bad_row_does_not_stop_others(self, engine, datastore, switch_id, fake_switch, vlans):
        result = await engine.apply_matrix(switch_id, [
            {"interface": "Ethernet1", "mode": "access", "assignments": {"10": "untagged", "20": "untagged"}},
            {"interface": "Ethernet2", "mode": "Trunk", "assignments": {"10": "untagged", "20": "tagged", "1": "none"}},
            MatrixChange("Ethernet3", "access", {20: "untagged"}),
        ])

        assert not result.success
        assert result.applied == 2
        assert result.errors == ["Interface Ethernet1: multiple untagged VLANs selected"]
        assert ["interface Ethernet2", "switchport mode trunk", "switchport trunk native vlan 10",
                "switchport trunk allowed vlan 20"] == fake_switch.batches[0][2:]

        rows = await datastore.query("switch_interfaces", {"switch_id": switch_id}, order_by=["interface_name"])
        assert [(r["interface_name"], r["mode"], r["vlan_id"]) for r in rows] == [
            ("Ethernet2", "trunk", None),
            ("Ethernet3", "access", 20),
        ]
        assert rows[0]["native_vlan_id"] == 10
        assert rows[0]["trunk_vlans"] == "20"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("change,error", [
        ({"interface": "bad name", "mode": "access"}, "Invalid interface: bad name"),
        ({"mode": "access"}, "Invalid interface: unknown"),
        ({"interface": "Ethernet1", "mode": "routed"}, "Invalid mode for Ethernet1"),
        ({"interface": "Ethernet1", "mode": "access", "assignments": {"10": "tagged"}},
         "Interface Ethernet1: access mode requires exactly one untagged VLAN"),
        ({"interface": "Ethernet1", "mode": "trunk", "assignments": {"10": "none"}},
         "Interface Ethernet1: trunk mode requires at least one VLAN (tagged or untagged)"),
        ({"interface": "Ethernet1", "mode": "trunk", "assignments": {"5000": "tagged"}},
         "Interface Ethernet1: VLAN 5000 is invalid (must be 1-4094)"),
    ])
    async def test_row_errors(self, engine, switch_id, fake_switch, change, error):
        result = await engine.apply_matrix(switch_id, [change])

        assert result.errors == [error]
        assert result.applied == 0
        assert fake_switch.requests == []

    @pytest.mark.asyncio
    async def test_members_rejected_channel_updated(self, engine, datastore, switch_id, fake_switch, channel):
        result = await engine.apply_matrix(switch_id, [
            {"interface": "Ethernet4", "mode": "access", "assignments": {"10": "untagged"}},
            {"interface": "Port-Channel1", "mode": "access", "assignments": {"10": "untagged"}},
        ])

        assert result.errors == [
            "Interface Ethernet4: member of Port-Channel1, configure the port channel instead"
        ]
        assert result.applied == 1
        pc = await datastore.query_one("port_channels", {"id": channel})
        assert (pc["mode"], pc["vlan_id"], pc["trunk_vlans"]) == ("access", 10, None)
        assert await datastore.query("switch_interfaces") == []

    @pytest.mark.asyncio
    async def test_device_error_per_interface(self, engine, switch_id, fake_switch):
        fake_switch.fail("interface Ethernet1")

        result = await engine.apply_matrix(switch_id, [
            {"interface": "Ethernet1", "mode": "access", "assignments": {"10": "untagged"}},
            {"interface": "Ethernet2", "mode": "access", "assignments": {"10": "untagged"}},
        ])

        assert result.applied == 1
        assert result.errors[0].startswith("Interface Ethernet1: eAPI Error")
        assert not engine.locks.locked(switch_id)
