"""Application services for tracked games."""

from .add_server import add_server
from .details import get_details_for_alias
from .lobby import create_lobby, describe, register_player, start_game, unregister_player

__all__ = [
    "add_server",
    "create_lobby",
    "describe",
    "get_details_for_alias",
    "register_player",
    "start_game",
    "unregister_player",
]
