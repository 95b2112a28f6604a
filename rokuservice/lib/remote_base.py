# Roku Service
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Abstract base class and value types for Roku device remotes.

A remote is a live handle on one physical device.  It knows the device's
identity (``info``) and can run remote-control commands against it.  Every
command returns a ``CommandResult`` rather than raising, so callers can pass
the device's own status straight back to their client.

Named keys are listed in ``CommandKey``.  Anything else sent as a keypress is
a single literal character (typing into a search box, for instance).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class RemoteUnavailable(Exception):
    """The device could not be reached to answer a query."""


class CommandKey(str, Enum):
    """Named remote keys understood by the device."""

    HOME = "Home"
    REV = "Rev"
    FWD = "Fwd"
    PLAY = "Play"
    SELECT = "Select"
    LEFT = "Left"
    RIGHT = "Right"
    DOWN = "Down"
    UP = "Up"
    BACK = "Back"
    INSTANT_REPLAY = "InstantReplay"
    INFO = "Info"
    BACKSPACE = "Backspace"
    SEARCH = "Search"
    ENTER = "Enter"
    FIND_REMOTE = "FindRemote"
    VOLUME_DOWN = "VolumeDown"
    VOLUME_MUTE = "VolumeMute"
    VOLUME_UP = "VolumeUp"
    POWER_OFF = "PowerOff"
    POWER_ON = "PowerOn"
    CHANNEL_UP = "ChannelUp"
    CHANNEL_DOWN = "ChannelDown"
    INPUT_TUNER = "InputTuner"
    INPUT_HDMI1 = "InputHDMI1"
    INPUT_HDMI2 = "InputHDMI2"
    INPUT_HDMI3 = "InputHDMI3"
    INPUT_HDMI4 = "InputHDMI4"
    INPUT_AV1 = "InputAV1"

    @classmethod
    def parse(cls, text: str) -> "CommandKey | None":
        """Case-insensitive lookup by key name ("home", "VolumeUp", ...)."""
        wanted = text.strip().lower()
        for key in cls:
            if key.value.lower() == wanted:
                return key
        return None


@dataclass(frozen=True)
class RokuApp:
    id: str
    text: str
    type: str | None = None
    version: str | None = None

    def to_dict(self) -> dict:
        data = {"id": self.id, "text": self.text}
        if self.type:
            data["type"] = self.type
        if self.version:
            data["version"] = self.version
        return data


@dataclass
class DeviceInfo:
    """Identity of a device plus everything it reported about itself."""

    id: str
    address: str
    name: str | None = None
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = dict(self.details)
        data.update({"id": self.id, "address": self.address, "name": self.name})
        return data


@dataclass
class CommandResult:
    success: bool
    status_code: int
    status_description: str
    app: RokuApp | None = None

    def to_dict(self) -> dict:
        data = {
            "isSuccess": self.success,
            "statusCode": self.status_code,
            "statusDescription": self.status_description,
        }
        if self.app is not None:
            data["app"] = self.app.to_dict()
        return data


class DeviceRemote(ABC):
    """Interface every device remote must implement."""

    @property
    @abstractmethod
    def info(self) -> DeviceInfo: ...

    @property
    def address(self) -> str:
        return self.info.address

    @abstractmethod
    async def get_apps(self) -> list[RokuApp]:
        """Installed app catalog.  Raises RemoteUnavailable if unreachable."""

    @abstractmethod
    async def keypress(self, key: "CommandKey | str") -> CommandResult:
        """Press a named key, or type a single literal character."""

    @abstractmethod
    async def launch_app(self, app_id: str) -> CommandResult: ...

    @abstractmethod
    async def get_active_app(self) -> CommandResult:
        """Return a result whose ``app`` is the foreground app on success."""
