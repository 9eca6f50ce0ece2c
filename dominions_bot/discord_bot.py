"""Discord bot entry point for the Dominions server tracker."""
from __future__ import annotations

import asyncio
import functools
import logging
import os
from pathlib import Path
from typing import Any, Callable, List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from .adapters.discord.builders import build_details_embed, details_lines, server_list_line
from .adapters.discord.handlers import error_message, format_message
from .command_tracking import track_command
from .models import Era
from .server import ServerConnectionError
from .service import ServerService
from .state import ServerNotFoundError, StoreError

logger = logging.getLogger(__name__)

_HANDLED_ERRORS = (ServerNotFoundError, ServerConnectionError, StoreError, ValueError)

_ERA_CHOICES = [
    app_commands.Choice(name="Early Age", value=int(Era.EARLY)),
    app_commands.Choice(name="Middle Age", value=int(Era.MIDDLE)),
    app_commands.Choice(name="Late Age", value=int(Era.LATE)),
]


async def _in_executor(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking service call off the event loop."""

    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


def build_bot(db_path: Path, intents: Optional[discord.Intents] = None) -> commands.Bot:
    intents = intents or discord.Intents.default()
    app_id_raw = os.environ.get("DISCORD_APP_ID")
    application_id: Optional[int] = None
    if app_id_raw:
        try:
            application_id = int(app_id_raw)
        except ValueError:
            logger.warning("Invalid DISCORD_APP_ID: %s", app_id_raw)
    bot = commands.Bot(command_prefix="/", intents=intents, application_id=application_id)
    service = ServerService(db_path)
    setattr(bot, "state_service", service)

    async def _fail(interaction: discord.Interaction, exc: Exception) -> None:
        if isinstance(exc, (ServerConnectionError, StoreError)):
            logger.exception("Command failed: %s", exc)
        await interaction.followup.send(error_message(exc), ephemeral=True)

    @bot.event
    async def on_ready() -> None:
        logger.info("Dominions bot connected as %s", bot.user)
        try:
            synced = await bot.tree.sync()
            logger.info("Synced %d commands", len(synced))
        except Exception as exc:  # pragma: no cover - logging only
            logger.exception("Failed to sync commands: %s", exc)

    @app_commands.command(name="add_server", description="Track a game that is already running")
    @app_commands.describe(alias="Name to refer to the game by", address="Server address as host:port")
    @track_command
    async def add_server(interaction: discord.Interaction, alias: str, address: str) -> None:
        await interaction.response.defer(ephemeral=True)
        try:
            await _in_executor(service.add_server, address, alias)
        except _HANDLED_ERRORS as exc:
            await _fail(interaction, exc)
            return
        await interaction.followup.send(f"Now tracking **{alias}** at {address}", ephemeral=True)

    @app_commands.command(name="details", description="Show nations and turn status for a game")
    @track_command
    async def details(interaction: discord.Interaction, alias: str) -> None:
        await interaction.response.defer()
        try:
            game_details = await _in_executor(service.details, alias)
        except _HANDLED_ERRORS as exc:
            await _fail(interaction, exc)
            return
        logger.debug("Details for %s: %s", alias, details_lines(game_details))
        await interaction.followup.send(embed=build_details_embed(game_details))

    @app_commands.command(name="lobby", description="Open a lobby players can sign up for")
    @app_commands.describe(
        alias="Name to refer to the game by",
        era="Age the game will be played in",
        players="Number of player slots",
        description="Optional notes shown with the lobby",
    )
    @app_commands.choices(era=_ERA_CHOICES)
    @track_command
    async def lobby(
        interaction: discord.Interaction,
        alias: str,
        era: app_commands.Choice[int],
        players: int,
        description: Optional[str] = None,
    ) -> None:
        await interaction.response.defer(ephemeral=True)
        try:
            await _in_executor(
                service.create_lobby,
                alias,
                interaction.user.id,
                Era(era.value),
                players,
                description,
            )
        except _HANDLED_ERRORS as exc:
            await _fail(interaction, exc)
            return
        await interaction.followup.send(
            f"Created {era.name} lobby **{alias}** with {players} slots", ephemeral=True
        )

    @app_commands.command(name="register", description="Claim a nation in a game")
    @app_commands.describe(alias="Game alias", nation="Nation name or unique prefix")
    @track_command
    async def register(interaction: discord.Interaction, alias: str, nation: str) -> None:
        await interaction.response.defer(ephemeral=True)
        try:
            nation_name = await _in_executor(
                service.register_nation, alias, interaction.user.id, nation
            )
        except _HANDLED_ERRORS as exc:
            await _fail(interaction, exc)
            return
        await interaction.followup.send(f"Registered as {nation_name} in **{alias}**", ephemeral=True)

    @register.autocomplete("nation")
    async def register_nation_autocomplete(
        interaction: discord.Interaction, current: str
    ) -> List[app_commands.Choice[str]]:
        alias = getattr(interaction.namespace, "alias", None)
        if not alias:
            return []
        try:
            options = service.nation_options(alias)
        except _HANDLED_ERRORS:
            return []
        needle = current.lower()
        return [
            app_commands.Choice(name=name, value=name)
            for _, name in options
            if name.lower().startswith(needle)
        ][:25]

    @app_commands.command(name="unregister", description="Give up your nation in a game")
    @track_command
    async def unregister(interaction: discord.Interaction, alias: str) -> None:
        await interaction.response.defer(ephemeral=True)
        try:
            await _in_executor(service.unregister, alias, interaction.user.id)
        except _HANDLED_ERRORS as exc:
            await _fail(interaction, exc)
            return
        await interaction.followup.send(f"Unregistered from **{alias}**", ephemeral=True)

    @app_commands.command(name="start", description="Bind a lobby to its running server")
    @app_commands.describe(alias="Lobby alias", address="Server address as host:port")
    @track_command
    async def start(interaction: discord.Interaction, alias: str, address: str) -> None:
        await interaction.response.defer(ephemeral=True)
        try:
            await _in_executor(service.start_game, alias, address)
        except _HANDLED_ERRORS as exc:
            await _fail(interaction, exc)
            return
        await interaction.followup.send(f"**{alias}** is now running at {address}", ephemeral=True)

    @app_commands.command(name="describe", description="Set the description of a lobby")
    @track_command
    async def describe(interaction: discord.Interaction, alias: str, description: str) -> None:
        await interaction.response.defer(ephemeral=True)
        try:
            await _in_executor(service.describe, alias, description)
        except _HANDLED_ERRORS as exc:
            await _fail(interaction, exc)
            return
        await interaction.followup.send(f"Updated description for **{alias}**", ephemeral=True)

    @app_commands.command(name="servers", description="List tracked games")
    @track_command
    async def servers(interaction: discord.Interaction) -> None:
        await interaction.response.defer()
        try:
            tracked = await _in_executor(service.list_servers)
        except _HANDLED_ERRORS as exc:
            await _fail(interaction, exc)
            return
        if not tracked:
            await interaction.followup.send("No games are being tracked.")
            return
        await interaction.followup.send(format_message(server_list_line(server) for server in tracked))

    @app_commands.command(name="remove_server", description="Stop tracking a game")
    @track_command
    async def remove_server(interaction: discord.Interaction, alias: str) -> None:
        await interaction.response.defer(ephemeral=True)
        try:
            await _in_executor(service.remove_server, alias)
        except _HANDLED_ERRORS as exc:
            await _fail(interaction, exc)
            return
        await interaction.followup.send(f"Stopped tracking **{alias}**", ephemeral=True)

    bot.tree.add_command(add_server)
    bot.tree.add_command(details)
    bot.tree.add_command(lobby)
    bot.tree.add_command(register)
    bot.tree.add_command(unregister)
    bot.tree.add_command(start)
    bot.tree.add_command(describe)
    bot.tree.add_command(servers)
    bot.tree.add_command(remove_server)
    return bot


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    token = os.environ.get("DISCORD_TOKEN")
    if not token:
        raise RuntimeError("DISCORD_TOKEN environment variable must be set")
    db_path = Path(os.environ.get("DOMINIONS_BOT_DB", "dominions_bot.db"))
    bot = build_bot(db_path)
    bot.run(token)


__all__ = ["build_bot", "main"]
