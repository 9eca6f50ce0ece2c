"""Core data models for the Dominions server tracker."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Union


class Era(IntEnum):
    EARLY = 1
    MIDDLE = 2
    LATE = 3

    @property
    def label(self) -> str:
        return {Era.EARLY: "EA", Era.MIDDLE: "MA", Era.LATE: "LA"}[self]


class SubmissionStatus(IntEnum):
    NOT_SUBMITTED = 0
    PARTIALLY_SUBMITTED = 1
    SUBMITTED = 2


class NationStatus(IntEnum):
    EMPTY = 0
    HUMAN = 1
    AI = 2
    INDEPENDENT = 3
    CLOSED = 253
    DEFEATED_THIS_TURN = 254
    DEFEATED = 255

    @property
    def is_active(self) -> bool:
        return self in (NationStatus.HUMAN, NationStatus.AI)


@dataclass(frozen=True)
class LobbyState:
    """Pre-start configuration of a game that players can sign up for."""

    owner: int
    era: Optional[Era]
    player_count: int
    description: Optional[str] = None


@dataclass(frozen=True)
class StartedState:
    """A game bound to a running Dominions server."""

    address: str
    last_seen_turn: int


@dataclass(frozen=True)
class GameServer:
    """A tracked game, keyed by its alias.

    ``lobby_state`` is only populated for started games that began life as a
    lobby; adopted servers never carry one.
    """

    alias: str
    state: Union[LobbyState, StartedState]
    lobby_state: Optional[LobbyState] = None

    @property
    def is_lobby(self) -> bool:
        return isinstance(self.state, LobbyState)


@dataclass(frozen=True)
class Registration:
    player_id: int
    nation_id: int


@dataclass(frozen=True)
class Nation:
    id: int
    status: NationStatus
    submitted: SubmissionStatus


@dataclass(frozen=True)
class GameData:
    """Point-in-time view of a running game as reported by its server.

    A negative ``turn`` means the game is between turns waiting for uploads;
    ``turn_timer`` is the time left on the current turn in milliseconds.
    """

    game_name: str
    nations: List[Nation]
    turn: int
    turn_timer: int


@dataclass(frozen=True)
class SnekNation:
    nation_id: int
    name: str


@dataclass(frozen=True)
class SnekGameStatus:
    nations: Dict[int, SnekNation] = field(default_factory=dict)


__all__ = [
    "Era",
    "GameData",
    "GameServer",
    "LobbyState",
    "Nation",
    "NationStatus",
    "Registration",
    "SnekGameStatus",
    "SnekNation",
    "StartedState",
    "SubmissionStatus",
]
