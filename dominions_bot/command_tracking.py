"""Discord command tracking decorator."""
from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable

import discord

logger = logging.getLogger(__name__)


def track_command(func: Callable) -> Callable:
    """Decorator logging Discord command usage and latency."""

    @functools.wraps(func)
    async def wrapper(interaction: discord.Interaction, *args, **kwargs) -> Any:
        command_name = func.__name__
        user_id = str(interaction.user.id)
        guild_id = str(interaction.guild_id) if interaction.guild_id else "dm"
        start_time = time.time()
        success = False

        try:
            result = await func(interaction, *args, **kwargs)
            success = True
            return result

        except Exception as e:
            logger.error("Command %s failed for %s: %s", command_name, user_id, type(e).__name__)
            raise

        finally:
            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "command=%s user=%s guild=%s success=%s duration_ms=%.1f",
                command_name,
                user_id,
                guild_id,
                success,
                duration_ms,
            )

    return wrapper


__all__ = ["track_command"]
