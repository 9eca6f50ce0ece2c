"""Tests for decoding game server replies and querying snek."""
from __future__ import annotations

import io
import json
import struct
import urllib.error
import urllib.request
import zlib

import pytest

from dominions_bot.config import Settings
from dominions_bot.models import NationStatus, SnekNation, SubmissionStatus
from dominions_bot.server import (
    DominionsServerConnection,
    ServerConnectionError,
    decode_payload,
    parse_game_data,
    parse_snek_status,
    split_address,
)

SETTINGS = Settings(
    connection_timeout=1.0,
    snek_api_base="https://snek.test/api",
    snek_host_suffix="snek.earth",
    snek_port_offset=30000,
    details_cache_ttl=0,
)


def _game_info(name, statuses, submitted=None, turn=3, timer=120000):
    status_bytes = bytearray(250)
    submitted_bytes = bytearray(250)
    for nation_id, status in statuses.items():
        status_bytes[nation_id] = int(status)
    for nation_id, state in (submitted or {}).items():
        submitted_bytes[nation_id] = int(state)
    return (
        b"\x00\x00"
        + name.encode("utf-8")
        + b"\x00"
        + b"\x01\x00\x00"
        + bytes(status_bytes)
        + bytes(submitted_bytes)
        + bytes(250)
        + struct.pack("<iI", turn, timer)
    )


def test_parse_game_data_skips_empty_slots():
    payload = _game_info(
        "Friday",
        {5: NationStatus.HUMAN, 6: NationStatus.AI, 7: NationStatus.DEFEATED},
        {5: SubmissionStatus.SUBMITTED},
        turn=12,
        timer=7380000,
    )

    game_data = parse_game_data(payload)

    assert game_data.game_name == "Friday"
    assert game_data.turn == 12
    assert game_data.turn_timer == 7380000
    assert [nation.id for nation in game_data.nations] == [5, 6, 7]
    assert game_data.nations[0].submitted == SubmissionStatus.SUBMITTED
    assert game_data.nations[1].status == NationStatus.AI


def test_parse_game_data_negative_turn():
    game_data = parse_game_data(_game_info("Upload", {5: NationStatus.HUMAN}, turn=-1, timer=0))

    assert game_data.turn == -1


def test_parse_game_data_rejects_truncated_payload():
    with pytest.raises(ServerConnectionError, match="truncated"):
        parse_game_data(_game_info("Short", {})[:-4])


def test_parse_game_data_rejects_unknown_status():
    payload = bytearray(_game_info("Odd", {}))
    payload[2 + len("Odd") + 1 + 3 + 9] = 77

    with pytest.raises(ServerConnectionError, match="unknown status"):
        parse_game_data(bytes(payload))


def test_decode_payload_plain_and_compressed():
    body = b"hello dominions"
    plain_header = struct.pack("<BBI", 0x66, 0x48, len(body))
    assert decode_payload(plain_header, body) == body

    compressed = struct.pack("<I", len(body)) + zlib.compress(body)
    compressed_header = struct.pack("<BBI", 0x66, 0x4A, len(compressed))
    assert decode_payload(compressed_header, compressed) == body


def test_decode_payload_rejects_bad_header():
    with pytest.raises(ServerConnectionError):
        decode_payload(struct.pack("<BBI", 0x00, 0x48, 2), b"ab")
    with pytest.raises(ServerConnectionError):
        decode_payload(struct.pack("<BBI", 0x66, 0x48, 5), b"ab")


@pytest.mark.parametrize(
    "address, expected",
    [("example.com:1234", ("example.com", 1234)), ("[::1]:80", ("[::1]", 80))],
)
def test_split_address(address, expected):
    assert split_address(address) == expected


@pytest.mark.parametrize("address", ["no-port", ":123", "host:abc"])
def test_split_address_rejects_malformed(address):
    with pytest.raises(ServerConnectionError):
        split_address(address)


def test_parse_snek_status():
    status = parse_snek_status({"nations": [{"nationid": 5, "name": "Arcoscephale, Golden Era"}]})

    assert status.nations == {5: SnekNation(nation_id=5, name="Arcoscephale, Golden Era")}


def test_parse_snek_status_rejects_malformed():
    with pytest.raises(ServerConnectionError):
        parse_snek_status({})
    with pytest.raises(ServerConnectionError):
        parse_snek_status({"nations": [{"name": "missing id"}]})


def test_snek_game_id_only_for_snek_hosts():
    connection = DominionsServerConnection(SETTINGS)

    assert connection.snek_game_id("dom5.snek.earth:30123") == 123
    assert connection.snek_game_id("example.com:30123") is None


def test_get_snek_data_skips_other_hosts(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr(urllib.request, "urlopen", fail)

    assert DominionsServerConnection(SETTINGS).get_snek_data("example.com:30123") is None


def test_get_snek_data_fetches_status(monkeypatch):
    requested = []

    def fake_urlopen(request, timeout=None):
        requested.append(request.full_url)
        document = {"nations": [{"nationid": 6, "name": "Ermor"}]}
        return io.BytesIO(json.dumps(document).encode("utf-8"))

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    status = DominionsServerConnection(SETTINGS).get_snek_data("dom5.snek.earth:30042")

    assert requested == ["https://snek.test/api/games/42/status"]
    assert status.nations[6].name == "Ermor"


def test_get_snek_data_missing_game_is_none(monkeypatch):
    def not_found(request, timeout=None):
        raise urllib.error.HTTPError(request.full_url, 404, "Not Found", {}, None)

    monkeypatch.setattr(urllib.request, "urlopen", not_found)

    assert DominionsServerConnection(SETTINGS).get_snek_data("dom5.snek.earth:30042") is None


def test_get_snek_data_unreachable_raises(monkeypatch):
    def unreachable(request, timeout=None):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(urllib.request, "urlopen", unreachable)

    with pytest.raises(ServerConnectionError):
        DominionsServerConnection(SETTINGS).get_snek_data("dom5.snek.earth:30042")


def test_get_game_data_unreachable_raises(monkeypatch):
    def refuse(address, timeout=None):
        raise ConnectionRefusedError("refused")

    monkeypatch.setattr("dominions_bot.server.socket.create_connection", refuse)

    with pytest.raises(ServerConnectionError, match="Could not reach"):
        DominionsServerConnection(SETTINGS).get_game_data("example.com:1234")


class FakeSocket:
    """Serves a canned reply and records what the client sent and asked for."""

    def __init__(self, reply):
        self.reply = reply
        self.sent = []
        self.recv_sizes = []

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def sendall(self, data):
        self.sent.append(data)

    def recv(self, size):
        self.recv_sizes.append(size)
        chunk, self.reply = self.reply[:size], self.reply[size:]
        return chunk


def _serve(monkeypatch, reply):
    fake = FakeSocket(reply)
    monkeypatch.setattr(
        "dominions_bot.server.socket.create_connection", lambda address, timeout=None: fake
    )
    return fake


def test_get_game_data_reads_compressed_reply(monkeypatch):
    payload = _game_info("Wired", {5: NationStatus.HUMAN}, {5: SubmissionStatus.PARTIALLY_SUBMITTED}, turn=7)
    body = struct.pack("<I", len(payload)) + zlib.compress(payload)
    fake = _serve(monkeypatch, struct.pack("<BBI", 0x66, 0x4A, len(body)) + body)

    game_data = DominionsServerConnection(SETTINGS).get_game_data("example.com:1234")

    assert game_data.game_name == "Wired"
    assert game_data.turn == 7
    assert game_data.nations[0].submitted == SubmissionStatus.PARTIALLY_SUBMITTED
    assert fake.sent == [
        struct.pack("<BBIB", 0x66, 0x48, 1, 0x03),
        struct.pack("<BBIB", 0x66, 0x48, 1, 0x0B),
    ]


def test_get_game_data_rejects_oversized_reply(monkeypatch):
    fake = _serve(monkeypatch, struct.pack("<BBI", 0x66, 0x48, 0xFFFFFFFF))

    with pytest.raises(ServerConnectionError, match="too large"):
        DominionsServerConnection(SETTINGS).get_game_data("example.com:1234")

    assert fake.recv_sizes == [6]


def test_get_game_data_reads_in_bounded_chunks(monkeypatch):
    payload = _game_info("Chunky", {}) + bytes(200000)
    fake = _serve(monkeypatch, struct.pack("<BBI", 0x66, 0x48, len(payload)) + payload)

    DominionsServerConnection(SETTINGS).get_game_data("example.com:1234")

    assert max(fake.recv_sizes) <= 65536


def test_get_game_data_truncated_reply(monkeypatch):
    _serve(monkeypatch, struct.pack("<BBI", 0x66, 0x48, 100) + b"short")

    with pytest.raises(ServerConnectionError, match="closed before"):
        DominionsServerConnection(SETTINGS).get_game_data("example.com:1234")


@pytest.mark.parametrize("body", [b"\xff\xfe{bad", b"{not json", b""])
def test_get_snek_data_unparseable_body(monkeypatch, body):
    monkeypatch.setattr(urllib.request, "urlopen", lambda request, timeout=None: io.BytesIO(body))

    with pytest.raises(ServerConnectionError, match="invalid JSON"):
        DominionsServerConnection(SETTINGS).get_snek_data("dom5.snek.earth:30123")


def test_get_snek_data_server_error_raises(monkeypatch):
    def server_error(request, timeout=None):
        raise urllib.error.HTTPError(request.full_url, 500, "Internal Server Error", {}, None)

    monkeypatch.setattr(urllib.request, "urlopen", server_error)

    with pytest.raises(ServerConnectionError, match="HTTP 500"):
        DominionsServerConnection(SETTINGS).get_snek_data("dom5.snek.earth:30123")


def test_get_snek_data_rejects_non_object_document(monkeypatch):
    monkeypatch.setattr(urllib.request, "urlopen", lambda request, timeout=None: io.BytesIO(b"[1, 2]"))

    with pytest.raises(ServerConnectionError, match="unexpected document"):
        DominionsServerConnection(SETTINGS).get_snek_data("dom5.snek.earth:30123")
