"""
Handler results and their HTTP mapping.

API handlers return ``Success`` or ``Failure`` instead of building
responses themselves; ``to_response`` is the single place a result becomes
a status code and a JSON body.
"""

import enum
from dataclasses import dataclass, field

from aiohttp import web

from .lib.remote_base import CommandResult


class ErrorKind(enum.Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    UPSTREAM = "upstream"
    INTERNAL = "internal"


_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.AMBIGUOUS: 400,
    ErrorKind.UPSTREAM: 502,
    ErrorKind.INTERNAL: 500,
}


@dataclass
class Success:
    body: object = None
    status: int = 200


@dataclass
class Failure:
    kind: ErrorKind
    message: str
    code: str
    status: int | None = None   # overrides the kind's default (UPSTREAM)
    extra: dict = field(default_factory=dict)

    @property
    def http_status(self) -> int:
        return self.status or _STATUS[self.kind]

    def to_dict(self) -> dict:
        data = {"message": self.message, "code": self.code}
        data.update(self.extra)
        return data


def validation_error(message: str, code: str) -> Failure:
    return Failure(ErrorKind.VALIDATION, message, code)


def roku_not_found(device_id: str) -> Failure:
    return Failure(ErrorKind.NOT_FOUND, "Roku not found.", "RokuNotFound",
                   extra={"id": device_id})


def command_failed(result: CommandResult) -> Failure:
    """Pass the device's own status through to the client."""
    status = result.status_code if 400 <= result.status_code < 600 else None
    return Failure(ErrorKind.UPSTREAM, result.status_description or "Roku command failed.",
                   "RokuCommandFailed", status=status,
                   extra={"statusCode": result.status_code})


def internal_error() -> Failure:
    return Failure(ErrorKind.INTERNAL, "An unexpected error occurred.", "InternalError")


def to_response(result: "Success | Failure") -> web.Response:
    if isinstance(result, Failure):
        return web.json_response(result.to_dict(), status=result.http_status)
    if result.body is None:
        return web.Response(status=result.status)
    return web.json_response(result.body, status=result.status)
