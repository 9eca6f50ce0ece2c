"""Discord embed/message builders.

Pure construction helpers that turn :class:`GameDetails` into Discord UI
objects. Keeping them apart from the command handlers makes them easy to
unit test.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

import discord

from ...models import GameServer, LobbyState, NationStatus, SubmissionStatus
from ...services.details import (
    GameDetails,
    GameOnly,
    LobbyDetails,
    PlayingState,
    PotentialPlayer,
    RegisteredAndGame,
    RegisteredOnly,
    StartedDetails,
    UploadingState,
)

_SUBMISSION_LABELS = {
    SubmissionStatus.NOT_SUBMITTED: "waiting",
    SubmissionStatus.PARTIALLY_SUBMITTED: "partial",
    SubmissionStatus.SUBMITTED: "submitted",
}


def _mention(player_id: Optional[int]) -> str:
    return f"<@{player_id}>" if player_id is not None else "nobody"


def _status_label(status: NationStatus, submitted: SubmissionStatus) -> str:
    if status == NationStatus.AI:
        return "AI"
    if status in (NationStatus.DEFEATED, NationStatus.DEFEATED_THIS_TURN):
        return "defeated"
    if status == NationStatus.CLOSED:
        return "closed"
    return _SUBMISSION_LABELS[submitted]


def potential_player_line(player: PotentialPlayer) -> str:
    if isinstance(player, RegisteredAndGame):
        details = player.details
        label = _status_label(details.player_status, details.submitted)
        return f"{details.nation_name}: {_mention(player.player_id)} ({label})"
    if isinstance(player, GameOnly):
        details = player.details
        label = _status_label(details.player_status, details.submitted)
        return f"{details.nation_name}: unclaimed ({label})"
    if isinstance(player, RegisteredOnly):
        return f"{player.nation_name}: {_mention(player.player_id)} (not in game)"
    raise TypeError(f"Unknown potential player {player!r}")


def details_lines(details: GameDetails) -> List[str]:
    """Plain-text summary used for the embed body and for logging."""

    lines: List[str] = []
    nations = details.nations
    if isinstance(nations, LobbyDetails):
        era = nations.era.label if nations.era is not None else "any era"
        lines.append(f"Lobby ({era}), {nations.remaining_slots} slot(s) open")
        for player in nations.players:
            lines.append(f"{player.nation_name}: {_mention(player.player_id)}")
    elif isinstance(nations, StartedDetails):
        state = nations.state
        if isinstance(state, PlayingState):
            lines.append(
                f"Turn {state.turn} ({state.hours_remaining}h {state.mins_remaining}m remaining)"
            )
            lines.extend(potential_player_line(player) for player in state.players)
        elif isinstance(state, UploadingState):
            lines.append("Waiting for pretenders")
            for entry in state.uploading_players:
                marker = "uploaded" if entry.uploaded else "not uploaded"
                lines.append(f"{entry.nation_name}: {_mention(entry.option_player_id)} ({marker})")
        else:
            raise TypeError(f"Unknown started state {state!r}")
    else:
        raise TypeError(f"Unknown nation details {nations!r}")
    return lines


def build_details_embed(details: GameDetails) -> discord.Embed:
    """Construct the embed shown by `/details`."""

    nations = details.nations
    title = details.alias
    if isinstance(nations, StartedDetails):
        title = f"{details.alias} ({nations.game_name})"
    embed = discord.Embed(
        title=title,
        colour=discord.Color.dark_gold(),
        timestamp=datetime.now(timezone.utc),
    )
    lines = details_lines(details)
    embed.description = lines[0]
    players = "\n".join(lines[1:]) or "No nations yet"
    embed.add_field(name="Nations", value=players[:1024], inline=False)
    if isinstance(nations, StartedDetails):
        embed.add_field(name="Address", value=nations.address, inline=True)
    if details.owner is not None:
        embed.add_field(name="Owner", value=_mention(details.owner), inline=True)
    if details.description:
        embed.add_field(name="Description", value=details.description[:1024], inline=False)
    return embed


def server_list_line(server: GameServer) -> str:
    if isinstance(server.state, LobbyState):
        lobby = server.state
        era = lobby.era.label if lobby.era is not None else "any era"
        return f"**{server.alias}**: lobby ({era}, {lobby.player_count} players)"
    return f"**{server.alias}**: {server.state.address} (turn {server.state.last_seen_turn})"


__all__ = ["build_details_embed", "details_lines", "potential_player_line", "server_list_line"]
