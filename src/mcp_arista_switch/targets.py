"""Switch id -> connection target / eAPI client."""
import logging
import os
from typing import Optional

import httpx

from .config.settings import EAPISettings
from .datastore import Datastore
from .eapi import EAPIClient
from .errors import NotFoundError, ValidationError
from .models import SwitchTarget

logger = logging.getLogger(__name__)


class TargetResolver:
    """Builds SwitchTargets from the switches/switch_credentials tables.

    Passwords named through password_env are read from the environment
    only when a target is built.
    """

    def __init__(
        self,
        datastore: Datastore,
        eapi_settings: Optional[EAPISettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.datastore = datastore
        self.eapi_settings = eapi_settings or EAPISettings()
        self.transport = transport

    async def require_switch(self, switch_id: int) -> dict:
        row = await self.datastore.query_one("switches", {"id": switch_id})
        if not row:
            raise NotFoundError("Switch not found", resource="switch", identifier=switch_id)
        return row

    async def target(self, switch_id: int) -> SwitchTarget:
        switch = await self.require_switch(switch_id)
        creds = await self.datastore.query_one("switch_credentials", {"switch_id": switch_id})
        if not creds:
            raise NotFoundError(
                "Switch credentials not found", resource="switch_credentials", identifier=switch_id
            )

        password = creds.get("password") or ""
        env_name = creds.get("password_env")
        if not password and env_name:
            if env_name not in os.environ:
                raise ValidationError(
                    f"Password environment variable {env_name} is not set",
                    switch_id=switch_id,
                )
            password = os.environ[env_name]

        defaults = self.eapi_settings
        return SwitchTarget(
            id=switch["id"],
            hostname=switch["hostname"],
            ip_address=switch["ip_address"],
            port=creds.get("port") or defaults.default_port,
            use_https=defaults.default_https if creds.get("use_https") is None else bool(creds["use_https"]),
            timeout=creds.get("timeout") or defaults.default_timeout,
            username=creds["username"],
            password=password,
        )

    async def client(self, switch_id: int) -> EAPIClient:
        target = await self.target(switch_id)
        return EAPIClient(target, verify_ssl=self.eapi_settings.verify_ssl, transport=self.transport)
