"""
Roku discovery on the local network.

Two ways to find a device:
  discover_all()       — SSDP M-SEARCH for ``roku:ecp`` on 239.255.255.250:1900,
                         then probe every responder over ECP
  discover_at(address) — probe one address directly (GET /query/device-info)

Both return live ``EcpRemote`` instances.  A device that does not answer, or
answers with something that is not a Roku, is simply left out.
"""

import asyncio
import logging
import socket
import urllib.parse

import aiohttp

from .ecp import DEFAULT_TIMEOUT, ECP_PORT, EcpRemote
from .remote_base import DeviceRemote

logger = logging.getLogger("roku-service.discovery")

SSDP_ADDR = ("239.255.255.250", 1900)
SSDP_ST = "roku:ecp"
SSDP_MX = 2
DEFAULT_SEARCH_TIMEOUT = 3  # seconds

M_SEARCH = (
    "M-SEARCH * HTTP/1.1\r\n"
    f"HOST: {SSDP_ADDR[0]}:{SSDP_ADDR[1]}\r\n"
    'MAN: "ssdp:discover"\r\n'
    f"MX: {SSDP_MX}\r\n"
    f"ST: {SSDP_ST}\r\n"
    "\r\n"
).encode("ascii")


def parse_ssdp_response(data: bytes) -> str | None:
    """Return the responder's host if ``data`` is a Roku ECP search reply."""
    lines = data.decode("utf-8", errors="replace").split("\r\n")
    if not lines or not lines[0].upper().startswith("HTTP/1.1 200"):
        return None

    headers = {}
    for line in lines[1:]:
        name, sep, value = line.partition(":")
        if sep:
            headers[name.strip().lower()] = value.strip()

    if headers.get("st", "").lower() != SSDP_ST and SSDP_ST not in headers.get("usn", "").lower():
        return None
    location = headers.get("location")
    if not location:
        return None
    return urllib.parse.urlsplit(location).hostname


class _SsdpSearchProtocol(asyncio.DatagramProtocol):
    """Collects the hosts of every Roku that answers an M-SEARCH."""

    def __init__(self):
        self.hosts: list[str] = []
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport):
        self.transport = transport
        # Sent twice; UDP multicast drops packets
        for _ in range(2):
            transport.sendto(M_SEARCH, SSDP_ADDR)

    def datagram_received(self, data: bytes, addr: tuple):
        host = parse_ssdp_response(data)
        if host is None:
            return
        if host not in self.hosts:
            logger.debug("SSDP reply from %s", host)
            self.hosts.append(host)

    def error_received(self, exc):
        logger.warning("SSDP socket error: %s", exc)


class DeviceDiscovery:
    """Finds Roku devices and hands back live remotes."""

    def __init__(self, session: aiohttp.ClientSession, *,
                 ecp_port: int = ECP_PORT,
                 search_timeout: float = DEFAULT_SEARCH_TIMEOUT,
                 request_timeout: float = DEFAULT_TIMEOUT):
        self._session = session
        self.ecp_port = ecp_port
        self.search_timeout = search_timeout
        self.request_timeout = request_timeout

    async def _ssdp_search(self) -> list[str]:
        """Multicast one M-SEARCH and gather replies for ``search_timeout`` seconds."""
        loop = asyncio.get_running_loop()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
            sock.bind(("", 0))
            transport, protocol = await loop.create_datagram_endpoint(
                _SsdpSearchProtocol, sock=sock)
        except OSError:
            sock.close()
            raise
        try:
            await asyncio.sleep(self.search_timeout)
        finally:
            transport.close()
        return protocol.hosts

    async def discover_all(self) -> list[DeviceRemote]:
        """Network-wide search.  Network errors yield an empty list."""
        try:
            hosts = await self._ssdp_search()
        except OSError as e:
            logger.error("SSDP search failed: %s", e)
            return []
        logger.info("SSDP: %d Roku(s) answered", len(hosts))

        remotes = await asyncio.gather(*(self.discover_at(h) for h in hosts))
        found: dict[str, DeviceRemote] = {}
        for remote in remotes:
            if remote is not None:
                found.setdefault(remote.info.id, remote)
        return list(found.values())

    async def discover_at(self, address: str) -> DeviceRemote | None:
        """Targeted probe.  None means nothing Roku-like answered at ``address``."""
        logger.info("Probing %s:%d", address, self.ecp_port)
        return await EcpRemote.probe(
            self._session, address,
            port=self.ecp_port, timeout=self.request_timeout)
