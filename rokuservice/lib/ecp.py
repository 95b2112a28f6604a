"""
Roku remote over the External Control Protocol (ECP).

ECP HTTP API (port 8060, XML responses):
  GET  /query/device-info   — identity, model, user-assigned name
  GET  /query/apps          — installed channels
  GET  /query/active-app    — foreground app (or the home screen)
  POST /keypress/{key}      — named key, or Lit_<char> for a literal character
  POST /launch/{appId}      — start a channel
"""

import asyncio
import logging
import urllib.parse
from xml.etree import ElementTree

import aiohttp

from .remote_base import CommandKey, CommandResult, DeviceInfo, DeviceRemote, RemoteUnavailable, RokuApp

logger = logging.getLogger("roku-service.ecp")

ECP_PORT = 8060
DEFAULT_TIMEOUT = 5  # seconds

# Fields tried in order for the stable device id
_ID_FIELDS = ("serial-number", "device-id", "udn")


def parse_device_info(xml_text: str, address: str) -> DeviceInfo | None:
    """Build a DeviceInfo from a /query/device-info body.  None if unusable."""
    try:
        root = ElementTree.fromstring(xml_text)
    except ElementTree.ParseError as e:
        logger.warning("Malformed device-info from %s: %s", address, e)
        return None

    details = {child.tag: (child.text or "").strip() for child in root}
    device_id = next((details[f] for f in _ID_FIELDS if details.get(f)), None)
    if not device_id:
        logger.warning("Device at %s reported no usable id", address)
        return None
    name = details.get("user-device-name") or None
    return DeviceInfo(id=device_id, address=address, name=name, details=details)


def _parse_app(el: ElementTree.Element) -> RokuApp:
    return RokuApp(
        id=el.get("id", ""),
        text=(el.text or "").strip(),
        type=el.get("type"),
        version=el.get("version"),
    )


def encode_key(key: "CommandKey | str") -> str:
    """ECP path segment for a keypress."""
    if isinstance(key, CommandKey):
        return key.value
    if isinstance(key, str) and len(key) == 1:
        return "Lit_" + urllib.parse.quote(key, safe="")
    raise ValueError(f"not a key or single character: {key!r}")


class EcpRemote(DeviceRemote):
    """One Roku device, controlled over ECP."""

    def __init__(self, session: aiohttp.ClientSession, info: DeviceInfo,
                 port: int = ECP_PORT, timeout: float = DEFAULT_TIMEOUT):
        self._session = session
        self._info = info
        self._port = port
        self._timeout = timeout
        self.base_url = f"http://{info.address}:{port}"

    @classmethod
    async def probe(cls, session: aiohttp.ClientSession, address: str,
                    port: int = ECP_PORT, timeout: float = DEFAULT_TIMEOUT) -> "EcpRemote | None":
        """Ask ``address`` who it is.  Returns a remote, or None if no Roku answers."""
        url = f"http://{address}:{port}/query/device-info"
        try:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
                if resp.status != 200:
                    logger.warning("device-info at %s returned HTTP %d", address, resp.status)
                    return None
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("No ECP device at %s: %s", address, e)
            return None

        info = parse_device_info(text, address)
        if info is None:
            return None
        return cls(session, info, port=port, timeout=timeout)

    @property
    def info(self) -> DeviceInfo:
        return self._info

    # ── ECP HTTP helpers ──

    async def _query(self, path: str) -> ElementTree.Element:
        """GET a query endpoint, parse the XML body."""
        url = f"{self.base_url}{path}"
        try:
            async with self._session.get(
                url, timeout=aiohttp.ClientTimeout(total=self._timeout)
            ) as resp:
                resp.raise_for_status()
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteUnavailable(f"{path} failed on {self._info.address}: {e}") from e
        try:
            return ElementTree.fromstring(text)
        except ElementTree.ParseError as e:
            raise RemoteUnavailable(f"{path} returned malformed XML: {e}") from e

    async def _command(self, path: str) -> CommandResult:
        """POST a command endpoint; the HTTP status is the command status."""
        url = f"{self.base_url}{path}"
        try:
            async with self._session.post(
                url, timeout=aiohttp.ClientTimeout(total=self._timeout)
            ) as resp:
                result = CommandResult(
                    success=200 <= resp.status < 300,
                    status_code=resp.status,
                    status_description=resp.reason or "",
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("ECP %s failed on %s: %s", path, self._info.address, e)
            return CommandResult(False, 502, f"Roku at {self._info.address} is unreachable.")

        if not result.success:
            logger.warning("ECP %s on %s returned HTTP %d", path, self._info.address,
                           result.status_code)
        return result

    # ── DeviceRemote ──

    async def get_apps(self) -> list[RokuApp]:
        root = await self._query("/query/apps")
        return [_parse_app(el) for el in root.iter("app")]

    async def keypress(self, key: "CommandKey | str") -> CommandResult:
        segment = encode_key(key)
        logger.debug("keypress %s -> %s", segment, self._info.address)
        return await self._command(f"/keypress/{segment}")

    async def launch_app(self, app_id: str) -> CommandResult:
        logger.info("Launching app %s on %s", app_id, self._info.address)
        return await self._command(f"/launch/{urllib.parse.quote(app_id, safe='')}")

    async def get_active_app(self) -> CommandResult:
        try:
            root = await self._query("/query/active-app")
        except RemoteUnavailable as e:
            logger.warning("%s", e)
            return CommandResult(False, 502, f"Roku at {self._info.address} is unreachable.")
        el = root.find("app")
        if el is None:
            return CommandResult(False, 502, "Roku did not report an active app.")
        return CommandResult(True, 200, "OK", app=_parse_app(el))
