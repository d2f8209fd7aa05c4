"""Switch inventory management from YAML configuration."""
import logging
from pathlib import Path
from typing import Optional

import yaml

from ..datastore import Datastore, utcnow

logger = logging.getLogger(__name__)

CREDENTIAL_KEYS = ("username", "password", "password_env", "port", "use_https", "timeout")
SWITCH_KEYS = ("ip_address", "model", "location")


class SwitchInventory:
    """Switches declared in switches.yaml, seeded into the datastore.

    ```yaml
    defaults:
      username: admin
      password_env: EOS_PASSWORD
      use_https: true
    switches:
      leaf-1:
        ip_address: 10.0.0.11
      leaf-2:
        ip_address: 10.0.0.12
        port: 8443
    groups:
      leaves:
        - leaf-1
        - leaf-2
    ```
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._find_config()
        self._config: dict = {}
        self._load_config()

    def _find_config(self) -> str:
        """Find the switches.yaml config file."""
        search_paths = [
            Path.cwd() / "configs" / "switches.yaml",
            Path.cwd() / "switches.yaml",
            Path.home() / ".config" / "eoscraft" / "switches.yaml",
            Path("/etc/eoscraft/switches.yaml"),
        ]

        for path in search_paths:
            if path.exists():
                return str(path)

        raise FileNotFoundError(
            "Could not find switches.yaml. Create one in ./configs/switches.yaml"
        )

    def _load_config(self) -> None:
        """Load the YAML configuration and merge defaults into each switch."""
        with open(self.config_path) as f:
            self._config = yaml.safe_load(f) or {}

        defaults = self._config.get("defaults", {})
        for hostname, switch_config in self._config.get("switches", {}).items():
            for key, value in defaults.items():
                if key not in switch_config:
                    switch_config[key] = value
            if "ip_address" not in switch_config:
                raise ValueError(f"Switch '{hostname}' has no ip_address")

        self._validate_groups()

    def _validate_groups(self) -> None:
        """Warn about group members that reference unknown switches."""
        switches = self._config.get("switches", {})
        for group_name, members in self._config.get("groups", {}).items():
            if not isinstance(members, list):
                logger.warning(f"Group '{group_name}' should be a list of switch names")
                continue
            for hostname in members:
                if hostname not in switches:
                    logger.warning(
                        f"Group '{group_name}' references unknown switch: {hostname}"
                    )

    def get_hostnames(self) -> list[str]:
        return list(self._config.get("switches", {}).keys())

    def get_switch_config(self, hostname: str) -> dict:
        """Get raw config for a switch."""
        switches = self._config.get("switches", {})
        if hostname not in switches:
            raise KeyError(f"Unknown switch: {hostname}")
        return switches[hostname]

    def get_groups(self) -> dict[str, list[str]]:
        return dict(self._config.get("groups", {}))

    def get_group_members(self, group_name: str) -> list[str]:
        """Get switch names in a group.

        Raises:
            KeyError: If group doesn't exist
        """
        groups = self._config.get("groups", {})
        if group_name not in groups:
            raise KeyError(f"Unknown group: {group_name}")
        return list(groups[group_name])

    async def sync_to_datastore(self, datastore: Datastore) -> dict[str, int]:
        """Upsert every switch and its credential row.

        Returns:
            Mapping of hostname to switch id
        """
        ids: dict[str, int] = {}
        for hostname in self.get_hostnames():
            config = self.get_switch_config(hostname)
            switch_values = {k: config[k] for k in SWITCH_KEYS if k in config}
            cred_values = {k: config[k] for k in CREDENTIAL_KEYS if k in config}

            existing = await datastore.query_one("switches", {"hostname": hostname})
            if existing:
                switch_id = existing["id"]
                await datastore.update("switches", switch_values, {"id": switch_id})
            else:
                switch_id = await datastore.insert("switches", {
                    "hostname": hostname, "created_at": utcnow(), **switch_values,
                })

            if cred_values:
                cred_values.setdefault("username", "admin")
                if await datastore.query_one("switch_credentials", {"switch_id": switch_id}):
                    await datastore.update("switch_credentials", cred_values, {"switch_id": switch_id})
                else:
                    await datastore.insert("switch_credentials", {"switch_id": switch_id, **cred_values})

            ids[hostname] = switch_id

        logger.info(f"Inventory synced: {len(ids)} switches from {self.config_path}")
        return ids
