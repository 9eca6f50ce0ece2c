"""High-level service wiring the store, the server connection and the cache."""
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .config import Settings, get_settings
from .models import Era, GameServer, LobbyState, StartedState
from .nations import find_nation, nations_for_era
from .server import DominionsServerConnection, ServerConnection
from .services.add_server import add_server as add_server_flow
from .services import lobby
from .services.details import CacheEntry, GameDetails, details_from_cache, get_details_for_alias
from .state import ServerState

logger = logging.getLogger(__name__)


class DetailsCache:
    """Remembers remote fetches per alias for a short freshness window.

    Only :class:`CacheEntry` values live here; stored registrations are never
    cached.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, CacheEntry]] = {}
        self._lock = threading.Lock()

    def get(self, alias: str) -> Optional[CacheEntry]:
        if self._ttl <= 0:
            return None
        with self._lock:
            cached = self._entries.get(alias)
            if cached is None:
                return None
            stored_at, entry = cached
            if self._clock() - stored_at >= self._ttl:
                del self._entries[alias]
                return None
            return entry

    def put(self, alias: str, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[alias] = (self._clock(), entry)

    def invalidate(self, alias: str) -> None:
        with self._lock:
            self._entries.pop(alias, None)


class ServerService:
    """Entry point used by the Discord layer for every game command."""

    def __init__(
        self,
        db_path: Path,
        *,
        connection: Optional[ServerConnection] = None,
        settings: Optional[Settings] = None,
        cache: Optional[DetailsCache] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.state = ServerState(db_path)
        self.connection = connection or DominionsServerConnection(self.settings)
        self.cache = cache or DetailsCache(self.settings.details_cache_ttl)

    def add_server(self, address: str, alias: str) -> GameServer:
        if self.state.has_alias(alias):
            raise ValueError(f"Alias '{alias}' is already in use")
        server = add_server_flow(address, alias, self.state, self.connection)
        self.cache.invalidate(alias)
        return server

    def details(self, alias: str, *, use_cache: bool = True) -> GameDetails:
        server = self.state.game_for_alias(alias)
        cached = self.cache.get(alias) if use_cache else None
        if cached is not None and isinstance(server.state, StartedState):
            logger.debug("Using cached server data for %s", alias)
            return details_from_cache(self.state, server, cached)
        details = get_details_for_alias(self.state, self.connection, alias)
        if details.cache_entry is not None:
            self.cache.put(alias, details.cache_entry)
            self._track_turn(server, details.cache_entry)
        return details

    def _track_turn(self, server: GameServer, entry: CacheEntry) -> None:
        if not isinstance(server.state, StartedState):
            return
        turn = entry.game_data.turn
        if turn >= 0 and turn != server.state.last_seen_turn:
            self.state.update_last_seen_turn(server.alias, turn)

    def create_lobby(
        self,
        alias: str,
        owner: int,
        era: Era,
        player_count: int,
        description: Optional[str] = None,
    ) -> GameServer:
        return lobby.create_lobby(
            self.state,
            alias=alias,
            owner=owner,
            era=era,
            player_count=player_count,
            description=description,
        )

    def register(self, alias: str, player_id: int, nation_id: int) -> str:
        return lobby.register_player(self.state, alias=alias, player_id=player_id, nation_id=nation_id)

    def _era_for(self, alias: str) -> Optional[Era]:
        server = self.state.game_for_alias(alias)
        lobby_state = server.state if isinstance(server.state, LobbyState) else server.lobby_state
        return lobby_state.era if lobby_state is not None else None

    def nation_options(self, alias: str) -> List[Tuple[int, str]]:
        """Nations a player could pick for ``alias``, grouped by era."""

        era = self._era_for(alias)
        eras = [era] if era is not None else list(Era)
        return [entry for option_era in eras for entry in nations_for_era(option_era)]

    def register_nation(self, alias: str, player_id: int, nation: str) -> str:
        """Register by nation name, resolved within the game's era when one is known."""

        nation_id = find_nation(nation, self._era_for(alias))
        return self.register(alias, player_id, nation_id)

    def unregister(self, alias: str, player_id: int) -> None:
        lobby.unregister_player(self.state, alias=alias, player_id=player_id)

    def start_game(self, alias: str, address: str) -> GameServer:
        server = lobby.start_game(self.state, self.connection, alias=alias, address=address)
        self.cache.invalidate(alias)
        return server

    def describe(self, alias: str, description: str) -> None:
        lobby.describe(self.state, alias=alias, description=description)

    def list_servers(self) -> List[GameServer]:
        return self.state.all_servers()

    def remove_server(self, alias: str) -> None:
        self.state.remove_server(alias)
        self.cache.invalidate(alias)
        logger.info("Removed server %s", alias)


__all__ = ["DetailsCache", "ServerService"]
