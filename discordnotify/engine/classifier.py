"""
discordnotify.engine.classifier — Deliver/Suppress Decision
============================================================

Pure decision function: given a :class:`MessageEvent`, the live
:class:`PreferenceIndex` and the current user's id, decide whether the
message should raise a desktop notification.

Gates, in order:
1. Own messages never notify.
2. A muted guild or channel never notifies.
3. @everyone / @here in a guild that suppresses everyone never notifies.
4. Mentions-only guild or channel: deliver only on a direct mention.
5. Everything else is delivered.
"""

from __future__ import annotations

import logging

from discordnotify.engine.events import MessageEvent
from discordnotify.engine.preferences import NotificationLevel, PreferenceIndex

logger = logging.getLogger(__name__)

__all__ = ["should_notify"]


def should_notify(
    event: MessageEvent, index: PreferenceIndex, current_user_id: int | None
) -> bool:
    """Return True if *event* should produce a notification."""
    if current_user_id is not None and event.author_id == current_user_id:
        logger.debug("Suppress: own message in channel %s", event.channel_id)
        return False

    guild_level = index.classify(event.guild_id)
    channel_level = index.classify(event.channel_id)

    if NotificationLevel.MUTED in (guild_level, channel_level):
        logger.debug(
            "Suppress: guild %s / channel %s muted", event.guild_id, event.channel_id
        )
        return False

    # A direct mention alongside @everyone is still suppressed here.
    if event.mention_everyone and index.is_suppressing_everyone(event.guild_id):
        logger.debug("Suppress: @everyone in guild %s", event.guild_id)
        return False

    if NotificationLevel.MENTIONS_ONLY in (guild_level, channel_level):
        mentioned = current_user_id is not None and current_user_id in event.mentions
        logger.debug(
            "%s: mentions-only guild %s / channel %s",
            "Deliver" if mentioned else "Suppress",
            event.guild_id, event.channel_id,
        )
        return mentioned

    return True
