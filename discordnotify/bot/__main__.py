"""
discordnotify.bot.__main__ — Entry point for ``python -m discordnotify.bot``
============================================================================

Wiring:
1. Load .env (optional ``DISCORD_TOKEN`` override).
2. Load settings.yaml (soft settings) and configure logging.
3. Resolve the token — environment, stored credential, or interactive prompt.
4. Create the NotifyClient and run it (blocking — runs the asyncio event
   loop until Ctrl+C or SIGTERM).

Run with::

    python -m discordnotify.bot
"""

from __future__ import annotations

import logging
import sys

import discord
from dotenv import load_dotenv

from discordnotify.bot.core import NotifyClient
from discordnotify.config import ConfigError, load_config, resolve_token

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("discordnotify")


def main() -> None:
    """Bootstrap and run the notification relay."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    try:
        cfg = load_config()
    except ConfigError as exc:
        logger.critical("%s", exc)
        sys.exit(1)
    logging.getLogger().setLevel(cfg.log_level)

    # 3. Credentials.
    try:
        token = resolve_token()
    except ConfigError as exc:
        logger.critical("Could not obtain a Discord token: %s", exc)
        sys.exit(1)

    # 4. Client.
    client = NotifyClient(cfg=cfg)

    logger.info("Starting discordnotify…")
    try:
        client.run(token, log_handler=None)
    except discord.LoginFailure:
        logger.critical(
            "Discord rejected the token.  Clear \"Token\" in the credential "
            "file (or unset DISCORD_TOKEN) and log in again."
        )
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
