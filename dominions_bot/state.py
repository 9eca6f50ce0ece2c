"""Persistence for tracked game servers and their registered players."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Protocol, Tuple

from .models import Era, GameServer, LobbyState, Registration, StartedState

logger = logging.getLogger(__name__)

_DB_SCHEMA = """
CREATE TABLE IF NOT EXISTS game_servers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    alias TEXT NOT NULL UNIQUE,
    address TEXT,
    last_seen_turn INTEGER,
    lobby_owner_id INTEGER,
    lobby_description TEXT,
    lobby_era INTEGER,
    lobby_player_count INTEGER
);
CREATE TABLE IF NOT EXISTS players (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    discord_user_id INTEGER NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS server_players (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    server_id INTEGER NOT NULL,
    player_id INTEGER NOT NULL,
    nation_id INTEGER NOT NULL,
    FOREIGN KEY (server_id) REFERENCES game_servers (id) ON DELETE CASCADE,
    FOREIGN KEY (player_id) REFERENCES players (id)
);
CREATE INDEX IF NOT EXISTS idx_server_players_server
    ON server_players (server_id);
"""

_SERVER_COLUMNS = (
    "alias, address, last_seen_turn, lobby_owner_id, lobby_description, lobby_era, lobby_player_count"
)


class StoreError(RuntimeError):
    """Raised when the underlying database cannot service a request."""


class ServerNotFoundError(LookupError):
    """Raised when no game server is stored under an alias."""

    def __init__(self, alias: str) -> None:
        super().__init__(f"No game found with alias '{alias}'")
        self.alias = alias


def _row_to_server(row: Tuple) -> GameServer:
    alias, address, last_seen_turn, owner, description, era, player_count = row
    lobby_state: Optional[LobbyState] = None
    if owner is not None:
        lobby_state = LobbyState(
            owner=int(owner),
            era=Era(era) if era is not None else None,
            player_count=int(player_count or 0),
            description=description,
        )
    if address is not None:
        started = StartedState(address=address, last_seen_turn=int(last_seen_turn or 0))
        return GameServer(alias=alias, state=started, lobby_state=lobby_state)
    if lobby_state is None:
        raise StoreError(f"Game '{alias}' has neither an address nor lobby details")
    return GameServer(alias=alias, state=lobby_state)


def _server_to_row(server: GameServer) -> Tuple:
    if isinstance(server.state, LobbyState):
        address = None
        last_seen_turn = None
        lobby = server.state
    elif isinstance(server.state, StartedState):
        address = server.state.address
        last_seen_turn = server.state.last_seen_turn
        lobby = server.lobby_state
    else:
        raise TypeError(f"Unexpected server state {server.state!r}")
    return (
        server.alias,
        address,
        last_seen_turn,
        lobby.owner if lobby else None,
        lobby.description if lobby else None,
        int(lobby.era) if lobby and lobby.era is not None else None,
        lobby.player_count if lobby else None,
    )


class ServerStore(Protocol):
    """Read/write access to tracked games used by the services layer."""

    def game_for_alias(self, alias: str) -> GameServer:
        """Return the stored game or raise ``ServerNotFoundError``."""

    def players_with_nations_for_alias(self, alias: str) -> List[Registration]:
        """Return every registration for the game, oldest first."""

    def put_server(self, server: GameServer) -> None:
        """Persist ``server`` under its alias."""


class ServerState:
    """High level interface over the sqlite store of game servers."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._ensure_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            with closing(sqlite3.connect(self._db_path)) as conn:
                conn.execute("PRAGMA foreign_keys = ON")
                yield conn
        except sqlite3.Error as exc:
            logger.error("Database error on %s: %s", self._db_path, exc)
            raise StoreError(str(exc)) from exc

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(_DB_SCHEMA)
            conn.commit()

    def _server_id(self, conn: sqlite3.Connection, alias: str) -> int:
        row = conn.execute("SELECT id FROM game_servers WHERE alias = ?", (alias,)).fetchone()
        if row is None:
            raise ServerNotFoundError(alias)
        return int(row[0])

    # Game servers -------------------------------------------------------
    def game_for_alias(self, alias: str) -> GameServer:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_SERVER_COLUMNS} FROM game_servers WHERE alias = ?",
                (alias,),
            ).fetchone()
        if row is None:
            raise ServerNotFoundError(alias)
        return _row_to_server(row)

    def has_alias(self, alias: str) -> bool:
        with self._connect() as conn:
            row = conn.execute("SELECT 1 FROM game_servers WHERE alias = ?", (alias,)).fetchone()
        return row is not None

    def put_server(self, server: GameServer) -> None:
        """Insert a server or overwrite the stored one with the same alias.

        Overwriting keeps the row id, so registrations stay attached.
        """

        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO game_servers ({_SERVER_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(alias) DO UPDATE SET "
                "address = excluded.address, "
                "last_seen_turn = excluded.last_seen_turn, "
                "lobby_owner_id = excluded.lobby_owner_id, "
                "lobby_description = excluded.lobby_description, "
                "lobby_era = excluded.lobby_era, "
                "lobby_player_count = excluded.lobby_player_count",
                _server_to_row(server),
            )
            conn.commit()
        logger.debug("Stored game server %s", server.alias)

    def all_servers(self) -> List[GameServer]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_SERVER_COLUMNS} FROM game_servers ORDER BY alias"
            ).fetchall()
        return [_row_to_server(row) for row in rows]

    def remove_server(self, alias: str) -> None:
        with self._connect() as conn:
            server_id = self._server_id(conn, alias)
            conn.execute("DELETE FROM server_players WHERE server_id = ?", (server_id,))
            conn.execute("DELETE FROM game_servers WHERE id = ?", (server_id,))
            conn.commit()

    def update_last_seen_turn(self, alias: str, turn: int) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE game_servers SET last_seen_turn = ? WHERE alias = ? AND address IS NOT NULL",
                (turn, alias),
            )
            conn.commit()
        if cursor.rowcount == 0:
            raise ServerNotFoundError(alias)

    def update_description(self, alias: str, description: Optional[str]) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE game_servers SET lobby_description = ? "
                "WHERE alias = ? AND lobby_owner_id IS NOT NULL",
                (description, alias),
            )
            conn.commit()
        if cursor.rowcount == 0:
            raise ServerNotFoundError(alias)

    # Registrations ------------------------------------------------------
    def players_with_nations_for_alias(self, alias: str) -> List[Registration]:
        with self._connect() as conn:
            server_id = self._server_id(conn, alias)
            rows = conn.execute(
                "SELECT p.discord_user_id, sp.nation_id FROM server_players sp "
                "JOIN players p ON p.id = sp.player_id "
                "WHERE sp.server_id = ? ORDER BY sp.id",
                (server_id,),
            ).fetchall()
        return [Registration(player_id=int(row[0]), nation_id=int(row[1])) for row in rows]

    def insert_player_into_server(self, player_id: int, alias: str, nation_id: int) -> None:
        """Register ``player_id`` as ``nation_id``, replacing any earlier pick."""

        with self._connect() as conn:
            server_id = self._server_id(conn, alias)
            conn.execute(
                "INSERT OR IGNORE INTO players (discord_user_id) VALUES (?)",
                (player_id,),
            )
            row_id = conn.execute(
                "SELECT id FROM players WHERE discord_user_id = ?", (player_id,)
            ).fetchone()[0]
            conn.execute(
                "DELETE FROM server_players WHERE server_id = ? AND player_id = ?",
                (server_id, row_id),
            )
            conn.execute(
                "INSERT INTO server_players (server_id, player_id, nation_id) VALUES (?, ?, ?)",
                (server_id, row_id, nation_id),
            )
            conn.commit()

    def remove_player_from_server(self, player_id: int, alias: str) -> int:
        """Drop a player's registrations for ``alias``; returns rows removed."""

        with self._connect() as conn:
            server_id = self._server_id(conn, alias)
            cursor = conn.execute(
                "DELETE FROM server_players WHERE server_id = ? AND player_id IN "
                "(SELECT id FROM players WHERE discord_user_id = ?)",
                (server_id, player_id),
            )
            conn.commit()
        return cursor.rowcount


__all__ = ["ServerNotFoundError", "ServerState", "ServerStore", "StoreError"]
