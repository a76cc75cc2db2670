"""
Discord client for the tracker.

Registers the /track slash command, answers interactions through the track
handler, delivers notifications as channel messages and runs the tracker
service for as long as the client is connected.
"""

from typing import Optional

import discord
import structlog
from discord import app_commands

from commands.track import GENERIC_FAILURE_REPLY, TrackRequestHandler
from scheduler.tracker_service import TrackerService
from utilities.config import BotConfig

logger = structlog.get_logger(__name__)


class DiscordMessenger:
    """Messenger that posts to Discord channels by id."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def send_message(self, channel_id: int, content: str) -> None:
        # Partial messageables need no cache, so sends work before the gateway is ready
        channel = self.client.get_partial_messageable(channel_id)
        await channel.send(content)


class TrackerBot(discord.Client):
    """Discord client hosting the track command and the tracker service."""

    def __init__(self, config: BotConfig, track_handler: TrackRequestHandler, sync_commands: bool = True):
        super().__init__(intents=discord.Intents.default())
        self.config = config
        self.track_handler = track_handler
        self.sync_on_setup = sync_commands
        self.service: Optional[TrackerService] = None
        self.tree = app_commands.CommandTree(self)
        self.logger = logger.bind(component="discord_bot")

        self._register_commands()

    def attach_service(self, service: TrackerService) -> None:
        """Run the given service while the client is connected."""
        self.service = service

    def _register_commands(self) -> None:
        @self.tree.command(name="track", description="Track updates for a given manga.")
        @app_commands.describe(url="Manga URL or Id.")
        async def track(interaction: discord.Interaction, url: str) -> None:
            await self.handle_track(interaction, url)

    async def setup_hook(self) -> None:
        if self.sync_on_setup:
            await self.sync_commands()
        if self.service is not None:
            await self.service.start()

    async def sync_commands(self) -> None:
        """
        Register application commands.

        Commands are registered in the configured guild when one is set, since
        global commands can take up to an hour to appear.
        """
        if self.config.guild_id is not None:
            guild = discord.Object(id=self.config.guild_id)
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
        else:
            synced = await self.tree.sync()

        self.logger.info(
            "Application commands registered",
            guild_id=self.config.guild_id,
            commands=[command.name for command in synced]
        )

    async def on_ready(self) -> None:
        self.logger.info("MangaDex discord bot is now connected", user=str(self.user))

    async def close(self) -> None:
        if self.service is not None:
            await self.service.stop()
        await super().close()

    async def handle_track(self, interaction: discord.Interaction, reference: str) -> None:
        """Answer a /track interaction."""
        # Resolving a new manga takes two upstream calls, longer than Discord's reply window
        await interaction.response.defer(thinking=True)

        try:
            reply = await self.track_handler.handle(reference, interaction.channel_id)
            message = reply.message
        except Exception as e:
            self.logger.error(
                "Error handling application command",
                command="track",
                reference=reference,
                error=str(e)
            )
            message = GENERIC_FAILURE_REPLY

        try:
            await interaction.followup.send(message)
        except discord.HTTPException as e:
            self.logger.error("Failed to respond to interaction", command="track", error=str(e))
