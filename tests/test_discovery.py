import socket
import types

import aiohttp
from aiohttp.test_utils import TestServer

from rokuservice.lib import discovery as discovery_module
from rokuservice.lib.discovery import M_SEARCH, DeviceDiscovery, parse_ssdp_response

from support import fake_roku_app, run

ROKU_REPLY = (
    b"HTTP/1.1 200 OK\r\n"
    b"Cache-Control: max-age=3600\r\n"
    b"ST: roku:ecp\r\n"
    b"Location: http://192.168.1.134:8060/\r\n"
    b"USN: uuid:roku:ecp:X1\r\n"
    b"\r\n"
)


def test_m_search_asks_for_roku_ecp():
    text = M_SEARCH.decode()
    assert text.startswith("M-SEARCH * HTTP/1.1\r\n")
    assert "ST: roku:ecp\r\n" in text
    assert text.endswith("\r\n\r\n")


def test_parse_roku_reply():
    assert parse_ssdp_response(ROKU_REPLY) == "192.168.1.134"


def test_parse_header_names_are_case_insensitive():
    reply = ROKU_REPLY.replace(b"Location", b"LOCATION").replace(b"ST:", b"st:")
    assert parse_ssdp_response(reply) == "192.168.1.134"


def test_parse_ignores_other_devices():
    reply = ROKU_REPLY.replace(b"ST: roku:ecp", b"ST: urn:schemas-upnp-org:device:ZonePlayer:1")
    reply = reply.replace(b"uuid:roku:ecp:X1", b"uuid:RINCON_000E58")
    assert parse_ssdp_response(reply) is None


def test_parse_ignores_searches_and_garbage():
    assert parse_ssdp_response(M_SEARCH) is None
    assert parse_ssdp_response(b"\x00\xff") is None
    assert parse_ssdp_response(ROKU_REPLY.replace(b"Location: http://192.168.1.134:8060/\r\n", b"")) is None


def test_discover_at():
    async def scenario():
        async with TestServer(fake_roku_app({})) as server:
            async with aiohttp.ClientSession() as session:
                discovery = DeviceDiscovery(session, ecp_port=server.port)
                return await discovery.discover_at(server.host)

    remote = run(scenario())
    assert remote.info.id == "X1"


def test_discover_all_drops_duplicates_and_dead_hosts(monkeypatch):
    async def scenario():
        async with TestServer(fake_roku_app({})) as server:
            async with aiohttp.ClientSession() as session:
                discovery = DeviceDiscovery(session, ecp_port=server.port, request_timeout=2)

                async def fake_search():
                    # The same Roku reported twice, plus a dead host
                    return ["127.0.0.1", "127.0.0.1", "127.0.0.2"]

                monkeypatch.setattr(discovery, "_ssdp_search", fake_search)
                return await discovery.discover_all()

    remotes = run(scenario())
    assert [r.info.id for r in remotes] == ["X1"]


def test_discover_all_network_error_is_empty(monkeypatch):
    async def scenario():
        async with aiohttp.ClientSession() as session:
            discovery = DeviceDiscovery(session)

            async def broken_search():
                raise OSError("Network is unreachable")

            monkeypatch.setattr(discovery, "_ssdp_search", broken_search)
            return await discovery.discover_all()

    assert run(scenario()) == []


class _UnbindableSocket:
    instances = []

    def __init__(self, *args):
        self.closed = False
        _UnbindableSocket.instances.append(self)

    def setsockopt(self, *args):
        pass

    def bind(self, address):
        raise OSError("Address already in use")

    def close(self):
        self.closed = True


def test_search_closes_socket_when_bind_fails(monkeypatch):
    fake_socket = types.SimpleNamespace(
        socket=_UnbindableSocket,
        AF_INET=socket.AF_INET, SOCK_DGRAM=socket.SOCK_DGRAM, IPPROTO_UDP=socket.IPPROTO_UDP,
        IPPROTO_IP=socket.IPPROTO_IP, IP_MULTICAST_TTL=socket.IP_MULTICAST_TTL,
    )
    monkeypatch.setattr(discovery_module, "socket", fake_socket)
    _UnbindableSocket.instances.clear()

    async def scenario():
        async with aiohttp.ClientSession() as session:
            return await DeviceDiscovery(session, search_timeout=0).discover_all()

    assert run(scenario()) == []
    assert [s.closed for s in _UnbindableSocket.instances] == [True]
