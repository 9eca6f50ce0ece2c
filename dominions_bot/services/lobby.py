"""Lobby lifecycle: creating lobbies, signing up nations and starting games."""

from __future__ import annotations

import logging
from typing import Optional

from ..models import Era, GameServer, LobbyState, StartedState
from ..nations import get_nation_desc, is_playable_nation
from ..server import ServerConnection
from ..state import ServerState

logger = logging.getLogger(__name__)


def create_lobby(
    state: ServerState,
    *,
    alias: str,
    owner: int,
    era: Era,
    player_count: int,
    description: Optional[str] = None,
) -> GameServer:
    if player_count <= 0:
        raise ValueError("A lobby needs at least one player slot")
    if state.has_alias(alias):
        raise ValueError(f"Alias '{alias}' is already in use")
    server = GameServer(
        alias=alias,
        state=LobbyState(owner=owner, era=era, player_count=player_count, description=description),
    )
    state.put_server(server)
    logger.info("Created %s lobby %s for %d players", era.label, alias, player_count)
    return server


def register_player(state: ServerState, *, alias: str, player_id: int, nation_id: int) -> str:
    """Sign ``player_id`` up as ``nation_id``; returns the nation name.

    Lobbies enforce the era, free slots and unclaimed nations. Started games
    accept any catalogued nation so players can claim what the server lists.
    """

    if not is_playable_nation(nation_id):
        raise ValueError(f"Nation id {nation_id} cannot be claimed")
    nation_name, nation_era = get_nation_desc(nation_id)
    server = state.game_for_alias(alias)
    registrations = state.players_with_nations_for_alias(alias)
    others = [entry for entry in registrations if entry.player_id != player_id]

    if any(entry.nation_id == nation_id for entry in others):
        raise ValueError(f"{nation_name} is already taken in {alias}")
    if isinstance(server.state, LobbyState):
        lobby = server.state
        if lobby.era is not None and nation_era != lobby.era:
            raise ValueError(f"{nation_name} is not available in a {lobby.era.label} game")
        if len(others) >= lobby.player_count:
            raise ValueError(f"Lobby {alias} is full")

    state.insert_player_into_server(player_id, alias, nation_id)
    logger.info("Registered player %s as %s in %s", player_id, nation_name, alias)
    return nation_name


def unregister_player(state: ServerState, *, alias: str, player_id: int) -> None:
    removed = state.remove_player_from_server(player_id, alias)
    if removed == 0:
        raise ValueError(f"You are not registered in {alias}")
    logger.info("Unregistered player %s from %s", player_id, alias)


def start_game(
    state: ServerState,
    connection: ServerConnection,
    *,
    alias: str,
    address: str,
) -> GameServer:
    """Bind a lobby to a running server, keeping the lobby as provenance."""

    server = state.game_for_alias(alias)
    if not isinstance(server.state, LobbyState):
        raise ValueError(f"{alias} has already started")
    game_data = connection.get_game_data(address)
    started = GameServer(
        alias=alias,
        state=StartedState(address=address, last_seen_turn=game_data.turn),
        lobby_state=server.state,
    )
    state.put_server(started)
    logger.info("Started %s at %s", alias, address)
    return started


def describe(state: ServerState, *, alias: str, description: str) -> None:
    server = state.game_for_alias(alias)
    if server.is_lobby or server.lobby_state is not None:
        state.update_description(alias, description.strip() or None)
        return
    raise ValueError(f"{alias} was added directly and has no lobby to describe")


__all__ = ["create_lobby", "describe", "register_player", "start_game", "unregister_player"]
