"""Tests for adopting an already running game server."""

from __future__ import annotations

import pytest

from dominions_bot.models import GameData, GameServer, StartedState
from dominions_bot.server import ServerConnectionError
from dominions_bot.services.add_server import add_server
from dominions_bot.state import ServerNotFoundError, ServerState

TEST_ADDRESS = "address:1234"
TEST_ALIAS = ":butts:"
TEST_GAMEDATA = GameData(game_name=TEST_ALIAS, nations=[], turn=32, turn_timer=3 * 360)


class UnreachableConnection:
    def get_game_data(self, address):
        raise ServerConnectionError(f"could not reach {address}")

    def get_snek_data(self, address):
        raise AssertionError("snek should not be queried when adding a server")


class FixedConnection:
    def get_game_data(self, address):
        if address == TEST_ADDRESS:
            return TEST_GAMEDATA
        raise ServerConnectionError(f"could not reach {address}")

    def get_snek_data(self, address):
        return None


def test_should_return_error_on_no_connection(tmp_path):
    state = ServerState(tmp_path / "state.db")

    with pytest.raises(ServerConnectionError):
        add_server(TEST_ADDRESS, TEST_ALIAS, state, UnreachableConnection())

    with pytest.raises(ServerNotFoundError):
        state.game_for_alias(TEST_ALIAS)
    assert state.all_servers() == []


def test_should_insert_started_server_into_db(tmp_path):
    state = ServerState(tmp_path / "state.db")

    add_server(TEST_ADDRESS, TEST_ALIAS, state, FixedConnection())

    expected = GameServer(
        alias=TEST_ALIAS,
        state=StartedState(address=TEST_ADDRESS, last_seen_turn=TEST_GAMEDATA.turn),
        lobby_state=None,
    )
    assert state.game_for_alias(TEST_ALIAS) == expected


def test_add_server_writes_exactly_once(tmp_path):
    class RecordingStore:
        def __init__(self):
            self.written = []

        def game_for_alias(self, alias):
            raise ServerNotFoundError(alias)

        def players_with_nations_for_alias(self, alias):
            return []

        def put_server(self, server):
            self.written.append(server)

    store = RecordingStore()
    add_server(TEST_ADDRESS, TEST_ALIAS, store, FixedConnection())
    assert len(store.written) == 1

    failing = RecordingStore()
    with pytest.raises(ServerConnectionError):
        add_server("elsewhere:1", TEST_ALIAS, failing, FixedConnection())
    assert failing.written == []
