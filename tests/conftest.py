"""Shared fixtures: in-memory datastore and a scripted eAPI switch."""
import json
from typing import Any

import httpx
import pytest
import pytest_asyncio

from mcp_arista_switch.datastore import Datastore, utcnow
from mcp_arista_switch.models import SwitchTarget
from mcp_arista_switch.targets import TargetResolver
from mcp_arista_switch.utils.audit_log import AuditLogger


class FakeSwitch:
    """Answers runCmds requests from canned results.

    responses is keyed by command text, or by (command, format) to answer
    differently per format. A command listed in failures makes the whole
    request fail at that command the way EOS reports it.
    """

    def __init__(self):
        self.responses: dict[Any, Any] = {}
        self.failures: dict[str, str] = {}
        self.requests: list[dict] = []
        self.status_code = 200
        self.unreachable = False

    def respond(self, command: str, result: Any, fmt: str = None) -> None:
        self.responses[(command, fmt) if fmt else command] = result

    def fail(self, command: str, message: str = "Invalid input (at token 0)") -> None:
        self.failures[command] = message

    @property
    def batches(self) -> list[list[str]]:
        """Command lists of every request, in order."""
        return [
            [c if isinstance(c, str) else c["cmd"] for c in body["params"]["cmds"]]
            for body in self.requests
        ]

    def sent(self, command: str) -> bool:
        return any(command in batch for batch in self.batches)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)

        body = json.loads(request.content)
        self.requests.append(body)
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="error")

        cmds = body["params"]["cmds"]
        fmt = body["params"]["format"]
        results: list[Any] = []
        for index, cmd in enumerate(cmds):
            text = cmd if isinstance(cmd, str) else cmd["cmd"]
            if text in self.failures:
                return httpx.Response(200, json={
                    "jsonrpc": "2.0",
                    "id": body["id"],
                    "error": {
                        "code": 1002,
                        "message": f"CLI command {index + 1} of {len(cmds)} '{text}' failed: invalid command",
                        "data": [*results, {"errors": [self.failures[text]]}],
                    },
                })
            default = {"output": ""} if fmt == "text" else {}
            result = self.responses.get((text, fmt), self.responses.get(text, default))
            if fmt == "text" and isinstance(result, str):
                result = {"output": result}
            results.append(result)

        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": results})


RUNNING_CONFIG = """! device: leaf-1 (DCS-7050TX-64, EOS-4.28.3M)
!
hostname leaf-1
!
vlan 10
   name servers
!
interface Ethernet1
   description uplink
   switchport mode trunk
!
interface Ethernet2
   switchport access vlan 10
!
end
"""


@pytest.fixture
def fake_switch() -> FakeSwitch:
    return FakeSwitch()


@pytest.fixture
def transport(fake_switch) -> httpx.MockTransport:
    return httpx.MockTransport(fake_switch.handler)


@pytest.fixture
def target() -> SwitchTarget:
    return SwitchTarget(
        id=1,
        hostname="leaf-1",
        ip_address="192.0.2.10",
        username="admin",
        password="secret",
    )


@pytest_asyncio.fixture
async def datastore():
    store = Datastore("sqlite+aiosqlite:///:memory:")
    await store.create_schema()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def switch_id(datastore) -> int:
    new_id = await datastore.insert("switches", {
        "hostname": "leaf-1",
        "ip_address": "192.0.2.10",
        "model": "DCS-7050TX-64",
        "created_at": utcnow(),
    })
    await datastore.insert("switch_credentials", {
        "switch_id": new_id,
        "username": "admin",
        "password": "secret",
    })
    return new_id


@pytest.fixture
def resolver(datastore, transport) -> TargetResolver:
    return TargetResolver(datastore, transport=transport)


@pytest.fixture
def audit(datastore) -> AuditLogger:
    return AuditLogger(datastore)
