"""
JSON API — /api/rokus/...

  GET /api/rokus?forceDiscovery=bool          — known devices
  GET /api/rokus/{id}/info                    — device info
  GET /api/rokus/{id}/apps?filter=text        — app catalog, optionally filtered
  GET /api/rokus/{id}/apps/active             — foreground app
  GET /api/rokus/{id}/apps/launch?filter=text — launch the one app matching filter
  GET /api/rokus/{id}/apps/launch/{appId}     — launch by exact id
  GET /api/rokus/{id}/send/{key}/{count?}     — named key, single char or "space"
  GET /api/rokus/{id}/type?text=...           — type text one character at a time

Every handler returns a Success/Failure; ``results.to_response`` turns it
into the HTTP reply.
"""

import asyncio
import functools
import itertools
import logging

from aiohttp import web

from .lib.remote_base import CommandKey, DeviceRemote, RemoteUnavailable, RokuApp
from .registry import DeviceRegistry
from .results import (
    ErrorKind, Failure, Success, command_failed, roku_not_found, to_response,
    validation_error,
)

logger = logging.getLogger("roku-service.api")

KEYPRESS_DELAY = 0.15  # seconds between keystrokes; the Roku drops input sent faster
MAX_SEND_COUNT = 100  # upper bound on /send repeats

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off", ""}


def _parse_bool(value: str | None) -> bool | None:
    if value is None:
        return False
    value = value.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return None


def _parse_count(raw: str | None, max_count: int = MAX_SEND_COUNT) -> "int | Failure":
    if raw is None:
        return 1
    try:
        count = int(raw)
    except ValueError:
        return validation_error("count must be a whole number.", "InvalidCount")
    if count < 1:
        return validation_error("count must be 1 or greater.", "InvalidCount")
    if count > max_count:
        return validation_error(f"count must be {max_count} or less.", "InvalidCount")
    return count


def _parse_key(raw: str) -> "CommandKey | str | None":
    """'space' → ' ', one character → itself, otherwise a named key."""
    if raw.lower() == "space":
        return " "
    if len(raw) == 1:
        return raw
    return CommandKey.parse(raw)


def filter_apps(apps: list[RokuApp], text: str | None) -> list[RokuApp]:
    """Case-insensitive substring match on the app name, sorted by name."""
    if text and text.strip():
        wanted = text.lower()
        apps = [a for a in apps if wanted in a.text.lower()]
    return sorted(apps, key=lambda a: (a.text.casefold(), a.text))


def sort_devices(records) -> list[dict]:
    """Named devices alphabetically (ignoring case) first, then unnamed ones by id."""
    named = sorted((r for r in records if r.name), key=lambda r: (r.name.casefold(), r.name))
    unnamed = sorted((r for r in records if not r.name), key=lambda r: r.id)
    return ([{"id": r.id, "name": r.name} for r in named]
            + [{"id": r.id} for r in unnamed])


class RokuApi:
    """Route handlers for the JSON API, bound to one registry."""

    def __init__(self, registry: DeviceRegistry, keypress_delay: float = KEYPRESS_DELAY,
                 max_count: int = MAX_SEND_COUNT):
        self.registry = registry
        self.keypress_delay = keypress_delay
        self.max_count = max_count

    def add_routes(self, app: web.Application):
        route = self._route
        app.router.add_get("/api/rokus", route(self.list_rokus))
        app.router.add_get("/api/rokus/{roku_id}/info", route(self.get_info))
        app.router.add_get("/api/rokus/{roku_id}/apps", route(self.list_apps))
        app.router.add_get("/api/rokus/{roku_id}/apps/active", route(self.get_active_app))
        app.router.add_get("/api/rokus/{roku_id}/apps/launch", route(self.launch_by_filter))
        app.router.add_get("/api/rokus/{roku_id}/apps/launch/{app_id}", route(self.launch_by_id))
        app.router.add_get("/api/rokus/{roku_id}/send/{key}", route(self.send))
        app.router.add_get("/api/rokus/{roku_id}/send/{key}/{count}", route(self.send))
        app.router.add_get("/api/rokus/{roku_id}/type", route(self.type_text))

    @staticmethod
    def _route(handler):
        @functools.wraps(handler)
        async def wrapped(request: web.Request) -> web.Response:
            return to_response(await handler(request))
        return wrapped

    async def _resolve(self, request: web.Request) -> "DeviceRemote | Failure":
        roku_id = request.match_info["roku_id"]
        remote = await self.registry.get_remote(roku_id)
        if remote is None:
            return roku_not_found(roku_id)
        return remote

    async def _catalog(self, remote: DeviceRemote) -> "list[RokuApp] | Failure":
        try:
            return await remote.get_apps()
        except RemoteUnavailable as e:
            logger.warning("App catalog unavailable: %s", e)
            return Failure(ErrorKind.UPSTREAM, "The Roku did not return its app list.",
                           "RokuUnavailable")

    # ── Devices ──

    async def list_rokus(self, request: web.Request):
        force = _parse_bool(request.query.get("forceDiscovery"))
        if force is None:
            return validation_error("forceDiscovery must be true or false.",
                                    "InvalidForceDiscovery")

        records = await self.registry.list_devices(force)
        logger.info("%d Roku(s) found.", len(records))
        for i, record in enumerate(records, start=1):
            logger.info("%d) %s (id %s)", i, record.name, record.id)
        return Success(sort_devices(records))

    async def get_info(self, request: web.Request):
        remote = await self._resolve(request)
        if isinstance(remote, Failure):
            return remote
        return Success(remote.info.to_dict())

    # ── Apps ──

    async def list_apps(self, request: web.Request):
        remote = await self._resolve(request)
        if isinstance(remote, Failure):
            return remote
        apps = await self._catalog(remote)
        if isinstance(apps, Failure):
            return apps
        return Success([a.to_dict() for a in filter_apps(apps, request.query.get("filter"))])

    async def get_active_app(self, request: web.Request):
        remote = await self._resolve(request)
        if isinstance(remote, Failure):
            return remote
        result = await remote.get_active_app()
        if not result.success:
            return command_failed(result)
        return Success(result.to_dict())

    async def launch_by_filter(self, request: web.Request):
        text = request.query.get("filter", "")
        if not text.strip():
            return validation_error("The filter query string value is required.", "NoFilter")

        remote = await self._resolve(request)
        if isinstance(remote, Failure):
            return remote
        apps = await self._catalog(remote)
        if isinstance(apps, Failure):
            return apps

        matches = filter_apps(apps, text)
        if not matches:
            return Failure(ErrorKind.NOT_FOUND, "no matching apps found", "NoMatch")
        if len(matches) > 1:
            return Failure(ErrorKind.AMBIGUOUS, "More than one app matches.", "AmbiguousMatch",
                           extra={"apps": [a.to_dict() for a in matches]})
        return await self._launch(remote, matches[0])

    async def launch_by_id(self, request: web.Request):
        remote = await self._resolve(request)
        if isinstance(remote, Failure):
            return remote
        apps = await self._catalog(remote)
        if isinstance(apps, Failure):
            return apps

        app_id = request.match_info["app_id"]
        match = next((a for a in apps if a.id == app_id), None)
        if match is None:
            return Failure(ErrorKind.NOT_FOUND, "no matching apps found", "NoMatch")
        return await self._launch(remote, match)

    async def _launch(self, remote: DeviceRemote, app: RokuApp):
        result = await remote.launch_app(app.id)
        if not result.success:
            return command_failed(result)
        if result.status_code == 204:
            return Success({"message": "app is already running.", "code": "AppRunning",
                            "appName": app.text})
        return Success({"message": "app launched.", "code": "AppLaunched", "appName": app.text})

    # ── Keys ──

    async def send(self, request: web.Request):
        key = _parse_key(request.match_info["key"])
        if key is None:
            return validation_error(f"Unknown key '{request.match_info['key']}'.", "UnknownKey")
        count = _parse_count(request.match_info.get("count"), self.max_count)
        if isinstance(count, Failure):
            return count

        remote = await self._resolve(request)
        if isinstance(remote, Failure):
            return remote
        return await self._press_all(remote, itertools.repeat(key, count))

    async def type_text(self, request: web.Request):
        text = request.query.get("text", "")
        if not text:
            return validation_error("text is required.", "NoText")

        remote = await self._resolve(request)
        if isinstance(remote, Failure):
            return remote
        return await self._press_all(remote, text)

    async def _press_all(self, remote: DeviceRemote, keys):
        """Press keys in order, pausing between them; stop at the first failure."""
        for i, key in enumerate(keys):
            if i:
                await asyncio.sleep(self.keypress_delay)
            result = await remote.keypress(key)
            if not result.success:
                return command_failed(result)
        return Success()
