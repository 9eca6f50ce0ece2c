"""Adopting an already running game server."""

from __future__ import annotations

import logging

from ..models import GameServer, StartedState
from ..server import ServerConnection
from ..state import ServerStore

logger = logging.getLogger(__name__)


def add_server(address: str, alias: str, store: ServerStore, connection: ServerConnection) -> GameServer:
    """Track the game at ``address`` under ``alias``.

    The server must answer before anything is written; a connection failure
    propagates as ``ServerConnectionError`` and leaves the store untouched.
    """

    game_data = connection.get_game_data(address)
    server = GameServer(
        alias=alias,
        state=StartedState(address=address, last_seen_turn=game_data.turn),
        lobby_state=None,
    )
    store.put_server(server)
    logger.info("Added server %s at %s (turn %s)", alias, address, game_data.turn)
    return server


__all__ = ["add_server"]
