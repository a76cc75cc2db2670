"""
Main entry point for the MangaDex tracker bot.

Usage:
    python main.py          # Run the Discord bot and the periodic scanner
    python main.py --once   # Run a single scan cycle, deliver notifications and exit
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from bot.discord_bot import DiscordMessenger, TrackerBot
from commands.track import TrackRequestHandler
from scheduler.notification_fanout import LoggingMessenger
from scheduler.tracker_service import TrackerService
from tracker.database import TrackingStore
from tracker.errors import StoreUnavailable
from tracker.mangadex_client import MangaDexClient
from utilities.config import config
from utilities.logger import setup_logging, get_logger


async def main():
    """Main function to run the bot."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    logger = get_logger(__name__)

    run_once = False
    if len(sys.argv) > 1:
        if sys.argv[1] == '--once':
            run_once = True
        else:
            print(f"Unknown argument: {sys.argv[1]}")
            print("Usage: python main.py [--once]")
            sys.exit(1)

    if not config.discord_token and not (run_once and config.dry_run):
        logger.error("MANGADEX_BOT_DISCORD_TOKEN is not set")
        sys.exit(1)

    logger.info("Starting MangaDex tracker bot", run_once=run_once, dry_run=config.dry_run)

    store = TrackingStore(
        connection_url=config.connection_string,
        database_name=config.database,
        collection_name=config.collection
    )

    try:
        await store.connect()
        logger.info("Tracking store ready", tracked_manga=await store.count())
    except StoreUnavailable as e:
        logger.error("Could not connect to the tracking store", error=str(e))
        sys.exit(1)

    try:
        client = MangaDexClient()
        # Single-pass runs only send messages; commands are registered by the daemon
        bot = TrackerBot(config, TrackRequestHandler(store, client), sync_commands=not run_once)
        messenger = LoggingMessenger() if config.dry_run else DiscordMessenger(bot)
        service = TrackerService(config, store, client, messenger)

        if run_once:
            if config.dry_run:
                result = await service.run_once()
            else:
                async with bot:
                    # HTTP login is enough to send messages; no gateway connection needed
                    await bot.login(config.discord_token)
                    result = await service.run_once()

            logger.info(
                "Single scan completed",
                mangas_checked=result.mangas_checked,
                updates_detected=result.updates_detected,
                errors=len(result.errors)
            )
            if not result.success:
                sys.exit(1)
        else:
            bot.attach_service(service)
            async with bot:
                await bot.start(config.discord_token)

    finally:
        await store.disconnect()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    run()
