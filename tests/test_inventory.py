"""Tests for switch inventory and settings loading."""
import pytest

from mcp_arista_switch.config import Settings, SwitchInventory
from mcp_arista_switch.errors import ValidationError
from mcp_arista_switch.targets import TargetResolver

INVENTORY = """
defaults:
  username: admin
  password_env: TEST_EOS_PASSWORD
  use_https: true

switches:
  leaf-1:
    ip_address: 192.0.2.11
    model: DCS-7050TX-64
  leaf-2:
    ip_address: 192.0.2.12
    port: 8443
    username: ops

groups:
  leaves:
    - leaf-1
    - leaf-2
    - leaf-9
"""


class TestSwitchInventory:
    """Tests for SwitchInventory class."""

    @pytest.fixture
    def inventory_file(self, tmp_path):
        path = tmp_path / "switches.yaml"
        path.write_text(INVENTORY)
        return str(path)

    def test_load_config(self, inventory_file):
        inv = SwitchInventory(inventory_file)

        assert inv.get_hostnames() == ["leaf-1", "leaf-2"]

    def test_defaults_merged(self, inventory_file):
        """Per-switch values win over defaults."""
        inv = SwitchInventory(inventory_file)

        leaf2 = inv.get_switch_config("leaf-2")
        assert leaf2["username"] == "ops"
        assert leaf2["password_env"] == "TEST_EOS_PASSWORD"
        assert leaf2["port"] == 8443

    def test_unknown_switch(self, inventory_file):
        inv = SwitchInventory(inventory_file)

        with pytest.raises(KeyError, match="Unknown switch"):
            inv.get_switch_config("spine-1")

    def test_groups(self, inventory_file):
        """Unknown group members only warn."""
        inv = SwitchInventory(inventory_file)

        assert inv.get_group_members("leaves") == ["leaf-1", "leaf-2", "leaf-9"]
        with pytest.raises(KeyError):
            inv.get_group_members("spines")

    def test_missing_ip_address(self, tmp_path):
        path = tmp_path / "switches.yaml"
        path.write_text("switches:\n  leaf-1:\n    model: x\n")

        with pytest.raises(ValueError, match="no ip_address"):
            SwitchInventory(str(path))

    @pytest.mark.asyncio
    async def test_sync_to_datastore_upserts(self, inventory_file, datastore):
        inv = SwitchInventory(inventory_file)

        first = await inv.sync_to_datastore(datastore)
        second = await inv.sync_to_datastore(datastore)

        assert first == second
        assert len(await datastore.query("switches")) == 2
        creds = await datastore.query_one("switch_credentials", {"switch_id": first["leaf-2"]})
        assert creds["username"] == "ops"
        assert creds["port"] == 8443
        assert creds["password"] is None

    @pytest.mark.asyncio
    async def test_password_from_environment(self, inventory_file, datastore, monkeypatch):
        """password_env is read only when a target is built."""
        ids = await SwitchInventory(inventory_file).sync_to_datastore(datastore)
        resolver = TargetResolver(datastore)

        monkeypatch.delenv("TEST_EOS_PASSWORD", raising=False)
        with pytest.raises(ValidationError, match="TEST_EOS_PASSWORD"):
            await resolver.target(ids["leaf-1"])

        monkeypatch.setenv("TEST_EOS_PASSWORD", "s3cret")
        target = await resolver.target(ids["leaf-2"])
        assert target.password == "s3cret"
        assert target.base_url == "https://192.0.2.12:8443/command-api"


class TestSettings:
    """Tests for Settings loading."""

    def test_defaults(self):
        settings = Settings()

        assert settings.eapi.default_port == 443
        assert settings.workflow.reload_command == "reload now"
        assert settings.inventory is None

    def test_load_yaml_with_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "eoscraft.yaml"
        path.write_text(
            "eapi:\n  default_timeout: 30\n  verify_ssl: false\n  bogus: 1\n"
            "workflow:\n  max_config_size: 2048\n"
            "inventory: ./switches.yaml\n"
        )
        monkeypatch.setenv("EOSCRAFT_EAPI_VERIFY_SSL", "yes")
        monkeypatch.delenv("EOSCRAFT_INVENTORY", raising=False)
        monkeypatch.delenv("EOSCRAFT_DATABASE_URL", raising=False)
        monkeypatch.delenv("EOSCRAFT_EAPI_TIMEOUT", raising=False)

        settings = Settings.load(str(path))

        assert settings.source == str(path)
        assert settings.eapi.default_timeout == 30
        assert settings.eapi.verify_ssl is True
        assert settings.workflow.max_config_size == 2048
        assert settings.inventory == "./switches.yaml"

    def test_resolved_url_expands_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        settings = Settings.from_dict({"database": {"url": "sqlite+aiosqlite:///~/db/console.db"}})

        url = settings.database.resolved_url()

        assert url == f"sqlite+aiosqlite:///{tmp_path}/db/console.db"
        assert (tmp_path / "db").is_dir()

    def test_memory_url_untouched(self):
        settings = Settings.from_dict({"database": {"url": "sqlite+aiosqlite:///:memory:"}})

        assert settings.database.resolved_url() == "sqlite+aiosqlite:///:memory:"
