"""Clients for the running Dominions server and the snek overlay API."""
from __future__ import annotations

import json
import logging
import socket
import struct
import urllib.error
import urllib.request
import zlib
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .config import Settings, get_settings
from .models import GameData, Nation, NationStatus, SnekGameStatus, SnekNation, SubmissionStatus

logger = logging.getLogger(__name__)

_MAGIC = 0x66
_PLAIN = 0x48
_COMPRESSED = 0x4A
_GAME_INFO_REQUEST = 0x03
_DISCONNECT_REQUEST = 0x0B

_NAME_OFFSET = 2
# era, map flag and one reserved byte follow the name terminator
_POST_NAME_BYTES = 3
_NATION_SLOTS = 250

_HEADER_BYTES = 6
_RECV_CHUNK = 65536
# game info replies are a few kilobytes even uncompressed
_MAX_REPLY_BYTES = 1 << 20


class ServerConnectionError(ConnectionError):
    """Raised when a game server or overlay cannot be reached or understood."""


class ServerConnection(Protocol):
    """Fetches live data for the game running at ``address``."""

    def get_game_data(self, address: str) -> GameData:
        """Query the game server itself. Raises ``ServerConnectionError``."""

    def get_snek_data(self, address: str) -> Optional[SnekGameStatus]:
        """Query the overlay service; ``None`` when it does not host the game."""


def split_address(address: str) -> Tuple[str, int]:
    host, sep, port = address.strip().rpartition(":")
    if not sep or not host:
        raise ServerConnectionError(f"Address '{address}' must look like host:port")
    try:
        return host, int(port)
    except ValueError:
        raise ServerConnectionError(f"Invalid port in address '{address}'") from None


def _packet(command: int) -> bytes:
    return struct.pack("<BBIB", _MAGIC, _PLAIN, 1, command)


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    chunks: List[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = sock.recv(min(remaining, _RECV_CHUNK))
        if not chunk:
            raise ServerConnectionError("Connection closed before the reply was complete")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def decode_payload(header: bytes, body: bytes) -> bytes:
    """Strip transport framing, inflating the body when it is compressed."""

    magic, kind, length = struct.unpack("<BBI", header)
    if magic != _MAGIC or length != len(body):
        raise ServerConnectionError("Unexpected reply header from game server")
    if kind == _PLAIN:
        return body
    if kind != _COMPRESSED:
        raise ServerConnectionError(f"Unknown reply type {kind:#x}")
    try:
        # first four bytes carry the inflated size
        return zlib.decompress(body[4:])
    except zlib.error as exc:
        raise ServerConnectionError("Game server reply could not be decompressed") from exc


def parse_game_data(data: bytes) -> GameData:
    """Decode a game info payload into a :class:`GameData` snapshot."""

    name_end = data.find(b"\x00", _NAME_OFFSET)
    if name_end < 0:
        raise ServerConnectionError("Game info payload has no game name")
    game_name = data[_NAME_OFFSET:name_end].decode("utf-8", errors="replace")
    status_start = name_end + 1 + _POST_NAME_BYTES
    submitted_start = status_start + _NATION_SLOTS
    connected_start = submitted_start + _NATION_SLOTS
    turn_start = connected_start + _NATION_SLOTS
    if len(data) < turn_start + 8:
        raise ServerConnectionError("Game info payload is truncated")

    nations: List[Nation] = []
    try:
        for nation_id in range(_NATION_SLOTS):
            status = NationStatus(data[status_start + nation_id])
            if status == NationStatus.EMPTY:
                continue
            nations.append(
                Nation(
                    id=nation_id,
                    status=status,
                    submitted=SubmissionStatus(data[submitted_start + nation_id]),
                )
            )
    except ValueError as exc:
        raise ServerConnectionError(f"Game info payload has an unknown status: {exc}") from exc

    turn, turn_timer = struct.unpack_from("<iI", data, turn_start)
    return GameData(game_name=game_name, nations=nations, turn=turn, turn_timer=turn_timer)


def parse_snek_status(document: Dict[str, Any]) -> SnekGameStatus:
    entries = document.get("nations")
    if not isinstance(entries, list):
        raise ServerConnectionError("Overlay status did not include a nation list")
    nations: Dict[int, SnekNation] = {}
    for entry in entries:
        try:
            nation_id = int(entry["nationid"])
            name = str(entry["name"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ServerConnectionError(f"Malformed overlay nation entry: {entry!r}") from exc
        nations[nation_id] = SnekNation(nation_id=nation_id, name=name)
    return SnekGameStatus(nations=nations)


class DominionsServerConnection:
    """Talks to Dominions servers over TCP and to snek over HTTP.

    Nothing is cached here; every call goes to the network.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def get_game_data(self, address: str) -> GameData:
        host, port = split_address(address)
        timeout = self._settings.connection_timeout
        try:
            with socket.create_connection((host, port), timeout=timeout) as sock:
                sock.sendall(_packet(_GAME_INFO_REQUEST))
                header = _recv_exact(sock, _HEADER_BYTES)
                _, _, length = struct.unpack("<BBI", header)
                if length > _MAX_REPLY_BYTES:
                    raise ServerConnectionError(f"Reply of {length} bytes from {address} is too large")
                body = _recv_exact(sock, length)
                sock.sendall(_packet(_DISCONNECT_REQUEST))
        except ServerConnectionError:
            raise
        except OSError as exc:
            logger.warning("Game server %s unreachable: %s", address, exc)
            raise ServerConnectionError(f"Could not reach {address}: {exc}") from exc
        game_data = parse_game_data(decode_payload(header, body))
        logger.debug("Fetched %s from %s (turn %s)", game_data.game_name, address, game_data.turn)
        return game_data

    def snek_game_id(self, address: str) -> Optional[int]:
        host, port = split_address(address)
        if not host.lower().endswith(self._settings.snek_host_suffix):
            return None
        return port - self._settings.snek_port_offset

    def get_snek_data(self, address: str) -> Optional[SnekGameStatus]:
        game_id = self.snek_game_id(address)
        if game_id is None:
            return None
        url = f"{self._settings.snek_api_base}/games/{game_id}/status"
        request = urllib.request.Request(url, headers={"Accept": "application/json"})
        try:
            with urllib.request.urlopen(request, timeout=self._settings.connection_timeout) as response:
                body = response.read().decode("utf-8")
                document = json.loads(body)
        except urllib.error.HTTPError as exc:
            if exc.code == 404:
                logger.info("snek has no status for game %s", game_id)
                return None
            raise ServerConnectionError(f"snek returned HTTP {exc.code} for game {game_id}") from exc
        except OSError as exc:
            # URLError and socket timeouts both land here
            logger.warning("snek request for game %s failed: %s", game_id, exc)
            raise ServerConnectionError(f"Could not reach snek: {exc}") from exc
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ServerConnectionError("snek returned invalid JSON") from exc
        if not isinstance(document, dict):
            raise ServerConnectionError("snek returned an unexpected document")
        return parse_snek_status(document)


__all__ = [
    "DominionsServerConnection",
    "ServerConnection",
    "ServerConnectionError",
    "decode_payload",
    "parse_game_data",
    "parse_snek_status",
    "split_address",
]
