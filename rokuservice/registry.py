# Roku Service
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Device registry — the set of Rokus this service knows about.

Records are keyed by the id each device reports for itself, so a Roku that
moves to a new IP address is merged into its existing record instead of
showing up twice.  Identity, address and name are persisted to a JSON file
(full rewrite on every change); live remotes are not, and are re-created on
first use after a restart by probing the stored address.

One asyncio.Lock guards the in-memory map, the loaded flag and every write
to disk.  Network discovery runs outside the lock.
"""

import asyncio
import json
import logging
import os
import tempfile

from .lib.remote_base import DeviceRemote

logger = logging.getLogger("roku-service.registry")

DEFAULT_STORE_PATH = "rokus.json"


class RegistryLoadError(Exception):
    """The persisted registry exists but could not be read."""


class DeviceRecord:
    """A known Roku.  ``remote`` is the live handle, never persisted."""

    def __init__(self, id: str, address: str, name: str | None = None,
                 remote: DeviceRemote | None = None):
        self.id = id
        self.address = address
        self.name = name
        self.remote = remote

    def to_dict(self) -> dict:
        return {"id": self.id, "address": self.address, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceRecord":
        return cls(id=data["id"], address=data["address"], name=data.get("name"))

    def __repr__(self):
        return f"DeviceRecord(id={self.id!r}, address={self.address!r}, name={self.name!r})"


def _clean_name(name: str | None) -> str | None:
    if name is None:
        return None
    name = name.strip()
    return name or None


class DeviceRegistry:
    """Known devices, lazily loaded from ``path`` and resolved on demand.

    ``discovery`` needs two coroutines: ``discover_all()`` returning a list
    of remotes and ``discover_at(address)`` returning a remote or None.
    """

    def __init__(self, discovery, path: str = DEFAULT_STORE_PATH):
        self._discovery = discovery
        self.path = os.path.abspath(path)
        self._lock = asyncio.Lock()
        self._devices: dict[str, DeviceRecord] = {}
        self._loaded = False

    # ── Public operations ──

    async def list_devices(self, force_discovery: bool = False) -> list[DeviceRecord]:
        """Known devices.  With ``force_discovery``, search the network first."""
        logger.info("list_devices(force_discovery=%s)", force_discovery)
        await self._ensure_loaded()

        if force_discovery:
            remotes = await self._discovery.discover_all()
            logger.info("%d Roku(s) discovered on network", len(remotes))
            async with self._lock:
                for remote in remotes:
                    self._merge(remote, None)
                await self._save()

        async with self._lock:
            return list(self._devices.values())

    async def get_remote(self, device_id: str) -> DeviceRemote | None:
        """Live remote for ``device_id``, or None if unknown or unreachable."""
        await self._ensure_loaded()

        async with self._lock:
            record = self._devices.get(device_id)
            if record is None:
                logger.warning("A roku with ID# %s is not defined.", device_id)
                return None
            if record.remote is not None:
                return record.remote
            address = record.address

        remote = await self._discover_at(address)
        if remote is None:
            return None

        async with self._lock:
            # Another request may have resolved it meanwhile; keep the first
            if record.remote is None:
                record.remote = remote
            return record.remote

    async def add_device(self, address: str, name: str | None = None) -> DeviceRecord | None:
        """Probe ``address`` and register whatever Roku answers there."""
        logger.info("add_device(address=%s, name=%s)", address, name)
        await self._ensure_loaded()

        remote = await self._discover_at(address)
        if remote is None:
            return None

        async with self._lock:
            record = self._merge(remote, name)
            await self._save()
        return record

    # ── Internals ──

    async def _discover_at(self, address: str) -> DeviceRemote | None:
        logger.info("Discovering roku at IP %s", address)
        remote = await self._discovery.discover_at(address)
        if remote is None:
            logger.warning("Roku could not be discovered at %s.", address)
        return remote

    def _merge(self, remote: DeviceRemote, name: str | None) -> DeviceRecord:
        """Fold a freshly discovered device into the map.  Caller holds the lock."""
        info = remote.info
        name = _clean_name(name)

        record = self._devices.get(info.id)
        if record is not None:
            logger.info("Merging existing Roku #%s into list.", info.id)
            record.address = remote.address
            if name is not None:
                record.name = name
        else:
            logger.info("Adding Roku #%s to list.", info.id)
            record = DeviceRecord(
                id=info.id,
                address=remote.address,
                name=name if name is not None else (info.name or None),
            )
            self._devices[record.id] = record

        record.remote = remote
        logger.debug("Name: %s, IP: %s", record.name, record.address)
        return record

    async def _ensure_loaded(self):
        async with self._lock:
            if self._loaded:
                return
            self._devices = self._load()
            self._loaded = True

    def _load(self) -> dict[str, DeviceRecord]:
        try:
            with open(self.path) as f:
                raw = json.load(f)
        except FileNotFoundError:
            logger.info("No registry at %s — starting empty", self.path)
            return {}
        except (OSError, json.JSONDecodeError) as e:
            raise RegistryLoadError(f"Could not read {self.path}: {e}") from e

        try:
            devices = {key: DeviceRecord.from_dict(value) for key, value in raw.items()}
        except (AttributeError, KeyError, TypeError) as e:
            raise RegistryLoadError(f"Unexpected content in {self.path}: {e}") from e

        logger.info("Loaded %d roku(s) from file %s", len(devices), self.path)
        for record in devices.values():
            logger.debug("Roku #%s, IP %s", record.id, record.address)
        return devices

    async def _save(self):
        """Atomically rewrite the whole registry.  Caller holds the lock."""
        logger.info("Saving %d roku(s) to file %s", len(self._devices), self.path)
        data = {key: record.to_dict() for key, record in self._devices.items()}
        await asyncio.to_thread(self._write, data)

    def _write(self, data: dict):
        d = os.path.dirname(self.path)
        os.makedirs(d, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=d, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(tmp, self.path)
        except Exception:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise
