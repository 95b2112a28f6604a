#!/usr/bin/env python3
# Roku Service
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Roku Service (roku-service)

HTTP front-end for Roku devices on the local network.  Keeps a registry of
known Rokus (rokus.json) and proxies remote-control commands to them over
ECP.  Serves the JSON API under /api/rokus and a small admin page at /.

Port: 5000, bound to localhost and every local IPv4 address unless
server.host is set in config.json.
"""

import asyncio
import logging
import signal
import socket
import sys

import aiohttp
from aiohttp import web

from .admin import AdminPages
from .api import KEYPRESS_DELAY, MAX_SEND_COUNT, RokuApi
from .lib.config import cfg
from .lib.discovery import DEFAULT_SEARCH_TIMEOUT, DeviceDiscovery
from .lib.ecp import DEFAULT_TIMEOUT, ECP_PORT
from .registry import DEFAULT_STORE_PATH, DeviceRegistry
from .results import internal_error, to_response

logger = logging.getLogger("roku-service")

DEFAULT_PORT = 5000


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Last line of defence: never let an exception reach the client."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return to_response(internal_error())


def create_app(registry: DeviceRegistry, keypress_delay: float = KEYPRESS_DELAY,
               max_count: int = MAX_SEND_COUNT) -> web.Application:
    app = web.Application(middlewares=[error_middleware])
    RokuApi(registry, keypress_delay, max_count).add_routes(app)
    AdminPages(registry).add_routes(app)
    return app


def local_ipv4_addresses() -> list[str]:
    """Every non-loopback IPv4 address of this host."""
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
    except socket.gaierror as e:
        raise RuntimeError(f"Not connected to a network! ({e})") from e
    ips = []
    for *_, sockaddr in infos:
        ip = sockaddr[0]
        if not ip.startswith("127.") and ip not in ips:
            ips.append(ip)
    if not ips:
        raise RuntimeError("No network adapters with an IPv4 address in the system!")
    return ips


def bind_hosts() -> list[str]:
    host = cfg("server", "host")
    if isinstance(host, str) and host:
        return [host]
    if isinstance(host, list) and host:
        return [str(h) for h in host]
    return ["localhost"] + local_ipv4_addresses()


class RokuService:
    """Owns the HTTP session, registry and aiohttp runner for one process."""

    def __init__(self):
        self.port = int(cfg("server", "port", default=DEFAULT_PORT))
        self._http_session: aiohttp.ClientSession | None = None
        self._runner: web.AppRunner | None = None
        self.registry: DeviceRegistry | None = None

    async def start(self):
        hosts = bind_hosts()

        self._http_session = aiohttp.ClientSession()
        discovery = DeviceDiscovery(
            self._http_session,
            ecp_port=int(cfg("discovery", "ecp_port", default=ECP_PORT)),
            search_timeout=float(cfg("discovery", "timeout", default=DEFAULT_SEARCH_TIMEOUT)),
            request_timeout=float(cfg("remote", "timeout", default=DEFAULT_TIMEOUT)),
        )
        self.registry = DeviceRegistry(
            discovery, cfg("registry", "path", default=DEFAULT_STORE_PATH) or DEFAULT_STORE_PATH)

        if cfg("discovery", "on_startup", default=True):
            records = await self.registry.list_devices(force_discovery=True)
            logger.info("Startup discovery: %d Roku(s) known", len(records))

        delay_ms = float(cfg("remote", "keypress_delay_ms", default=KEYPRESS_DELAY * 1000))
        max_count = int(cfg("remote", "max_send_count", default=MAX_SEND_COUNT))
        app = create_app(self.registry, keypress_delay=max(delay_ms, 0) / 1000,
                         max_count=max(max_count, 1))

        self._runner = web.AppRunner(app)
        await self._runner.setup()
        for host in hosts:
            site = web.TCPSite(self._runner, host, self.port)
            await site.start()
            logger.info("Listening on http://%s:%d", host, self.port)

    async def run(self):
        """Start, wait for SIGINT/SIGTERM, stop."""
        try:
            await self.start()
            stop_event = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, stop_event.set)
            await stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self):
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        if self._http_session:
            await self._http_session.close()
            self._http_session = None
        logger.info("Roku service stopped")


def main() -> int:
    level = str(cfg("logging", "level", default="INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        logger.info("Starting web host")
        asyncio.run(RokuService().run())
        return 0
    except Exception:
        logger.critical("Host terminated unexpectedly", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
