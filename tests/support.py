"""Fakes and helpers shared by the test modules."""

import asyncio
import contextlib
import json
import socket

from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from rokuservice.lib.remote_base import (
    CommandResult, DeviceInfo, DeviceRemote, RemoteUnavailable, RokuApp,
)
from rokuservice.registry import DeviceRegistry
from rokuservice.server import create_app


class FakeRemote(DeviceRemote):
    """Records every command; can be told to fail from the Nth keypress on."""

    def __init__(self, id, address, name=None, apps=None):
        self._info = DeviceInfo(id=id, address=address, name=name,
                                details={"model-name": "Roku Express"})
        self.apps = list(apps or [])
        self.pressed = []
        self.launched = []
        self.fail_from = None
        self.launch_status = 200
        self.active_app = None
        self.unreachable = False

    @property
    def info(self):
        return self._info

    async def get_apps(self):
        if self.unreachable:
            raise RemoteUnavailable("offline")
        return list(self.apps)

    async def keypress(self, key):
        if self.fail_from is not None and len(self.pressed) >= self.fail_from:
            return CommandResult(False, 503, "Service Unavailable")
        self.pressed.append(key)
        return CommandResult(True, 200, "OK")

    async def launch_app(self, app_id):
        self.launched.append(app_id)
        return CommandResult(200 <= self.launch_status < 300, self.launch_status, "status")

    async def get_active_app(self):
        if self.active_app is None:
            return CommandResult(False, 502, "Roku at this address is unreachable.")
        return CommandResult(True, 200, "OK", app=self.active_app)


class FakeDiscovery:
    """``at`` maps address → remote for targeted probes; ``network`` is what a scan finds."""

    def __init__(self):
        self.at = {}
        self.network = []
        self.probed = []
        self.scans = 0

    async def discover_all(self):
        self.scans += 1
        return list(self.network)

    async def discover_at(self, address):
        self.probed.append(address)
        return self.at.get(address)


CATALOG = [
    RokuApp("12", "Netflix", type="appl", version="4.1"),
    RokuApp("2285", "Hulu", type="appl"),
    RokuApp("837", "YouTube", type="appl"),
]


def seed(path, discovery, *remotes):
    """Persist records for ``remotes`` and make each one reachable at its address."""
    data = {}
    for remote in remotes:
        info = remote.info
        data[info.id] = {"id": info.id, "address": info.address, "name": info.name}
        discovery.at[info.address] = remote
    with open(path, "w") as f:
        json.dump(data, f)


def run(coro):
    return asyncio.run(coro)


@contextlib.asynccontextmanager
async def api_client(discovery, path):
    """Test client over a fresh registry, with no delay between keystrokes."""
    registry = DeviceRegistry(discovery, path)
    app = create_app(registry, keypress_delay=0)
    async with TestClient(TestServer(app)) as client:
        yield client, registry


DEVICE_INFO_XML = """<?xml version="1.0" encoding="UTF-8" ?>
<device-info>
  <udn>29600009-5406-1005-80a6-d83134f0c5b3</udn>
  <serial-number>X1</serial-number>
  <device-id>S00000000001</device-id>
  <vendor-name>Roku</vendor-name>
  <model-name>Roku Express</model-name>
  <user-device-name>LivingRoom</user-device-name>
  <software-version>11.5.0</software-version>
</device-info>
"""

APPS_XML = """<?xml version="1.0" encoding="UTF-8" ?>
<apps>
  <app id="12" type="appl" version="4.1.218">Netflix</app>
  <app id="2285" type="appl" version="6.36.2">Hulu</app>
  <app id="tvinput.hdmi1" type="tvin" version="1.0.0">HDMI 1</app>
</apps>
"""


def fake_roku_app(state: dict) -> web.Application:
    """A tiny ECP device.  ``state`` collects what it was sent.

    state["running"] is the app id that answers /launch with 204;
    state["active"] is the XML body of /query/active-app.
    """
    state.setdefault("keys", [])
    state.setdefault("launched", [])

    async def device_info(request):
        return web.Response(text=state.get("device_info", DEVICE_INFO_XML), content_type="text/xml")

    async def apps(request):
        return web.Response(text=APPS_XML, content_type="text/xml")

    async def active_app(request):
        body = state.get("active", "<active-app><app>Roku</app></active-app>")
        return web.Response(text=body, content_type="text/xml")

    async def keypress(request):
        state["keys"].append(request.match_info["key"])
        return web.Response(status=state.get("keypress_status", 200))

    async def launch(request):
        app_id = request.match_info["app_id"]
        state["launched"].append(app_id)
        if app_id == state.get("running"):
            return web.Response(status=204)
        if app_id not in ("12", "2285", "tvinput.hdmi1"):
            return web.Response(status=404)
        return web.Response(status=200)

    app = web.Application()
    app.router.add_get("/query/device-info", device_info)
    app.router.add_get("/query/apps", apps)
    app.router.add_get("/query/active-app", active_app)
    app.router.add_post("/keypress/{key}", keypress)
    app.router.add_post("/launch/{app_id}", launch)
    return app


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
