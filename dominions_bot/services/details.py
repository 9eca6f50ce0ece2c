"""Reconciles stored registrations with live game data for display.

Remote calls (the game server and snek) are bundled into a :class:`CacheEntry`
that callers may keep for a while; registrations are always read fresh.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from ..models import (
    Era,
    GameData,
    GameServer,
    LobbyState,
    Nation,
    NationStatus,
    Registration,
    SnekGameStatus,
    StartedState,
    SubmissionStatus,
)
from ..nations import get_nation_desc
from ..server import ServerConnection
from ..state import ServerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    game_data: GameData
    option_snek_state: Optional[SnekGameStatus]


@dataclass(frozen=True)
class PlayerDetails:
    nation_id: int
    nation_name: str
    submitted: SubmissionStatus
    player_status: NationStatus


@dataclass(frozen=True)
class RegisteredOnly:
    """Registered for a nation the game does not currently list."""

    player_id: int
    nation_id: int
    nation_name: str


@dataclass(frozen=True)
class RegisteredAndGame:
    player_id: int
    details: PlayerDetails

    @property
    def nation_id(self) -> int:
        return self.details.nation_id

    @property
    def nation_name(self) -> str:
        return self.details.nation_name


@dataclass(frozen=True)
class GameOnly:
    """In the game with nobody registered for it."""

    details: PlayerDetails

    @property
    def nation_id(self) -> int:
        return self.details.nation_id

    @property
    def nation_name(self) -> str:
        return self.details.nation_name


PotentialPlayer = Union[RegisteredOnly, RegisteredAndGame, GameOnly]


def option_player_id(player: PotentialPlayer) -> Optional[int]:
    if isinstance(player, (RegisteredOnly, RegisteredAndGame)):
        return player.player_id
    if isinstance(player, GameOnly):
        return None
    raise TypeError(f"Unknown potential player {player!r}")


@dataclass(frozen=True)
class UploadingPlayer:
    potential_player: PotentialPlayer
    uploaded: bool

    @property
    def nation_id(self) -> int:
        return self.potential_player.nation_id

    @property
    def nation_name(self) -> str:
        return self.potential_player.nation_name

    @property
    def option_player_id(self) -> Optional[int]:
        return option_player_id(self.potential_player)


@dataclass(frozen=True)
class UploadingState:
    uploading_players: List[UploadingPlayer]


@dataclass(frozen=True)
class PlayingState:
    players: List[PotentialPlayer]
    turn: int
    hours_remaining: int
    mins_remaining: int


StartedStateDetails = Union[PlayingState, UploadingState]


@dataclass(frozen=True)
class StartedDetails:
    address: str
    game_name: str
    state: StartedStateDetails


@dataclass(frozen=True)
class LobbyPlayer:
    player_id: int
    nation_id: int
    nation_name: str


@dataclass(frozen=True)
class LobbyDetails:
    players: List[LobbyPlayer]
    era: Optional[Era]
    remaining_slots: int


NationDetails = Union[LobbyDetails, StartedDetails]


@dataclass(frozen=True)
class GameDetails:
    alias: str
    owner: Optional[int]
    description: Optional[str]
    nations: NationDetails
    cache_entry: Optional[CacheEntry]


def get_nation_string(option_snek_state: Optional[SnekGameStatus], nation_id: int) -> str:
    """Prefer the snek name for a nation, falling back to the catalog."""

    if option_snek_state is not None:
        snek_nation = option_snek_state.nations.get(nation_id)
        if snek_nation is not None:
            return snek_nation.name
    nation_name, _ = get_nation_desc(nation_id)
    return nation_name


def _truncating_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator < 0) == (denominator < 0) else -quotient


def time_remaining(turn_timer: int) -> Tuple[int, int]:
    """Split a millisecond turn timer into whole ``(hours, minutes)``."""

    total_mins = _truncating_div(turn_timer, 60 * 1000)
    hours = _truncating_div(total_mins, 60)
    return hours, total_mins - hours * 60


def get_details_for_alias(
    store: ServerStore,
    connection: ServerConnection,
    alias: str,
) -> GameDetails:
    server = store.game_for_alias(alias)
    logger.info("Building details for %s", alias)

    if isinstance(server.state, LobbyState):
        return lobby_details(store, server.state, alias)
    if isinstance(server.state, StartedState):
        return started_details(store, connection, server.state, server.lobby_state, alias)
    raise TypeError(f"Unknown server state for {alias}: {server.state!r}")


def details_from_cache(store: ServerStore, server: GameServer, cache_entry: CacheEntry) -> GameDetails:
    """Rebuild details for a started game from a previously fetched entry."""

    if not isinstance(server.state, StartedState):
        raise ValueError(f"{server.alias} is not a started game")
    return started_details_from_server(
        store,
        server.state,
        server.lobby_state,
        server.alias,
        cache_entry.game_data,
        cache_entry.option_snek_state,
    )


def lobby_details(store: ServerStore, lobby_state: LobbyState, alias: str) -> GameDetails:
    registrations = store.players_with_nations_for_alias(alias)

    players = []
    for registration in registrations:
        nation_name, _ = get_nation_desc(registration.nation_id)
        players.append(
            LobbyPlayer(
                player_id=registration.player_id,
                nation_id=registration.nation_id,
                nation_name=nation_name,
            )
        )
    players.sort(key=lambda player: player.nation_name)

    return GameDetails(
        alias=alias,
        owner=lobby_state.owner,
        description=lobby_state.description,
        nations=LobbyDetails(
            players=players,
            era=lobby_state.era,
            remaining_slots=max(0, lobby_state.player_count - len(players)),
        ),
        cache_entry=None,
    )


def started_details(
    store: ServerStore,
    connection: ServerConnection,
    started_state: StartedState,
    option_lobby_state: Optional[LobbyState],
    alias: str,
) -> GameDetails:
    game_data = connection.get_game_data(started_state.address)
    option_snek_state = connection.get_snek_data(started_state.address)
    return started_details_from_server(
        store,
        started_state,
        option_lobby_state,
        alias,
        game_data,
        option_snek_state,
    )


def started_details_from_server(
    store: ServerStore,
    started_state: StartedState,
    option_lobby_state: Optional[LobbyState],
    alias: str,
    game_data: GameData,
    option_snek_state: Optional[SnekGameStatus],
) -> GameDetails:
    registrations = store.players_with_nations_for_alias(alias)
    potential_players = join_players_with_nations(game_data.nations, registrations, option_snek_state)

    state: StartedStateDetails
    if game_data.turn < 0:
        state = UploadingState(
            uploading_players=[
                UploadingPlayer(potential_player=player, uploaded=_has_uploaded(player))
                for player in potential_players
            ]
        )
    else:
        hours, mins = time_remaining(game_data.turn_timer)
        state = PlayingState(
            players=potential_players,
            turn=game_data.turn,
            hours_remaining=hours,
            mins_remaining=mins,
        )

    return GameDetails(
        alias=alias,
        owner=option_lobby_state.owner if option_lobby_state else None,
        description=option_lobby_state.description if option_lobby_state else None,
        nations=StartedDetails(
            address=started_state.address,
            game_name=game_data.game_name,
            state=state,
        ),
        cache_entry=CacheEntry(game_data=game_data, option_snek_state=option_snek_state),
    )


def _has_uploaded(player: PotentialPlayer) -> bool:
    # anything the server lists has a pretender uploaded
    if isinstance(player, (RegisteredAndGame, GameOnly)):
        return True
    if isinstance(player, RegisteredOnly):
        return False
    raise TypeError(f"Unknown potential player {player!r}")


def join_players_with_nations(
    nations: List[Nation],
    registrations: List[Registration],
    option_snek_state: Optional[SnekGameStatus],
) -> List[PotentialPlayer]:
    """Match live nations to registrations, one entry per nation id."""

    players_by_nation_id: Dict[int, int] = {}
    for registration in registrations:
        players_by_nation_id[registration.nation_id] = registration.player_id

    potential_players: List[PotentialPlayer] = []
    for nation in nations:
        details = PlayerDetails(
            nation_id=nation.id,
            nation_name=get_nation_string(option_snek_state, nation.id),
            submitted=nation.submitted,
            player_status=nation.status,
        )
        player_id = players_by_nation_id.pop(nation.id, None)
        if player_id is not None:
            potential_players.append(RegisteredAndGame(player_id=player_id, details=details))
        else:
            potential_players.append(GameOnly(details=details))

    for nation_id, player_id in players_by_nation_id.items():
        nation_name, _ = get_nation_desc(nation_id)
        potential_players.append(
            RegisteredOnly(player_id=player_id, nation_id=nation_id, nation_name=nation_name)
        )

    potential_players.sort(key=lambda player: player.nation_name)
    return potential_players


__all__ = [
    "CacheEntry",
    "GameDetails",
    "GameOnly",
    "LobbyDetails",
    "LobbyPlayer",
    "PlayerDetails",
    "PlayingState",
    "PotentialPlayer",
    "RegisteredAndGame",
    "RegisteredOnly",
    "StartedDetails",
    "UploadingPlayer",
    "UploadingState",
    "details_from_cache",
    "get_details_for_alias",
    "get_nation_string",
    "join_players_with_nations",
    "lobby_details",
    "started_details",
    "started_details_from_server",
    "time_remaining",
]
