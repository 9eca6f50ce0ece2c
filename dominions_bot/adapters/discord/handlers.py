"""Discord message helpers and error formatting."""

from __future__ import annotations

import logging
from typing import Iterable

from ...server import ServerConnectionError
from ...state import ServerNotFoundError, StoreError

logger = logging.getLogger(__name__)

_MAX_MESSAGE_LENGTH = 1900


def clamp_text(text: str) -> str:
    """Ensure Discord-compatible message length."""

    if len(text) <= _MAX_MESSAGE_LENGTH:
        return text
    return text[: _MAX_MESSAGE_LENGTH - 1].rstrip() + "…"


def format_message(lines: Iterable[str]) -> str:
    """Join message lines and clamp to Discord limits."""

    message = "\n".join(line for line in lines if line is not None)
    return clamp_text(message)


def error_message(exc: Exception) -> str:
    """Map a service failure to the text shown to the user."""

    if isinstance(exc, ServerNotFoundError):
        return str(exc)
    if isinstance(exc, ServerConnectionError):
        return "Server unavailable, try again later."
    if isinstance(exc, StoreError):
        return "Internal error, the game database could not be read."
    if isinstance(exc, ValueError):
        return str(exc)
    logger.error("Unmapped command failure: %s", exc)
    return "Something went wrong."


__all__ = ["clamp_text", "error_message", "format_message"]
