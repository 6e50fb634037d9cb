"""
discordnotify.engine.events — Normalized Gateway Events
========================================================

Every gateway payload the relay cares about is normalized into one of the
frozen dataclasses below before it reaches the synchronizer or the
classifier.  Parsing is lenient: missing keys fall back to defaults and
snowflakes may arrive as strings or ints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from discordnotify.engine.preferences import NotificationLevel

if TYPE_CHECKING:
    import discord

__all__ = [
    "ChannelOverride",
    "GuildInfo",
    "GuildSettings",
    "MessageEvent",
    "ReadySnapshot",
    "SettingsDelta",
    "parse_snowflake",
]


def parse_snowflake(value: Any) -> int | None:
    """Return *value* as an int snowflake, or None if absent/invalid."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _is_muted(raw: dict[str, Any], now: datetime | None = None) -> bool:
    """Read the ``muted`` flag, honouring an expired ``mute_config``.

    Discord leaves ``muted: true`` on timed mutes until a client clears it,
    so a past ``end_time`` means the mute is over.
    """
    if not raw.get("muted"):
        return False
    end_time = (raw.get("mute_config") or {}).get("end_time")
    if not end_time:
        return True
    try:
        ends = datetime.fromisoformat(str(end_time).replace("Z", "+00:00"))
    except ValueError:
        return True
    if ends.tzinfo is None:
        ends = ends.replace(tzinfo=UTC)
    return ends > (now or datetime.now(UTC))


# ---------------------------------------------------------------------------
# Preference records
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ChannelOverride:
    """Per-channel notification record nested under a guild's settings."""

    channel_id: int
    level: NotificationLevel = NotificationLevel.DEFAULT
    muted: bool = False

    @classmethod
    def from_payload(cls, raw: dict[str, Any], now: datetime | None = None) -> ChannelOverride | None:
        channel_id = parse_snowflake(raw.get("channel_id"))
        if channel_id is None:
            return None
        return cls(
            channel_id=channel_id,
            level=NotificationLevel.from_wire(raw.get("message_notifications")),
            muted=_is_muted(raw, now),
        )


@dataclass(frozen=True, slots=True)
class GuildSettings:
    """The user's notification settings for one guild.

    Built from a READY ``user_guild_settings`` entry or a
    ``USER_GUILD_SETTINGS_UPDATE`` payload; consumed once by the
    synchronizer.
    """

    guild_id: int
    level: NotificationLevel = NotificationLevel.DEFAULT
    muted: bool = False
    suppress_everyone: bool = False
    channel_overrides: tuple[ChannelOverride, ...] = ()

    @classmethod
    def from_payload(cls, raw: dict[str, Any], now: datetime | None = None) -> GuildSettings | None:
        """Parse one settings entry.  Entries without a guild (DM settings) yield None."""
        guild_id = parse_snowflake(raw.get("guild_id"))
        if guild_id is None:
            return None

        # Older payloads send overrides as a dict keyed by channel id.
        raw_overrides = raw.get("channel_overrides") or []
        if isinstance(raw_overrides, dict):
            raw_overrides = [
                {"channel_id": key, **value} for key, value in raw_overrides.items()
            ]
        overrides = tuple(
            ov for ov in (ChannelOverride.from_payload(o, now) for o in raw_overrides)
            if ov is not None
        )
        return cls(
            guild_id=guild_id,
            level=NotificationLevel.from_wire(raw.get("message_notifications")),
            muted=_is_muted(raw, now),
            suppress_everyone=bool(raw.get("suppress_everyone")),
            channel_overrides=overrides,
        )


# A USER_GUILD_SETTINGS_UPDATE carries the full new state of one guild.
SettingsDelta = GuildSettings


@dataclass(frozen=True, slots=True)
class GuildInfo:
    """A guild the user belongs to, with its server-wide default setting."""

    guild_id: int
    default_level: NotificationLevel = NotificationLevel.DEFAULT

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> GuildInfo | None:
        guild_id = parse_snowflake(raw.get("id"))
        if guild_id is None:
            return None
        # User-account READY nests guild fields under "properties".
        props = raw.get("properties") or raw
        return cls(
            guild_id=guild_id,
            default_level=NotificationLevel.from_wire(
                props.get("default_message_notifications")
            ),
        )


@dataclass(frozen=True, slots=True)
class ReadySnapshot:
    """Full preference state delivered once at session start."""

    user_id: int | None
    guilds: tuple[GuildInfo, ...] = ()
    settings: tuple[GuildSettings, ...] = ()

    @classmethod
    def from_payload(cls, data: dict[str, Any], now: datetime | None = None) -> ReadySnapshot:
        user_id = parse_snowflake((data.get("user") or {}).get("id"))
        guilds = tuple(
            g for g in (GuildInfo.from_payload(raw) for raw in data.get("guilds") or [])
            if g is not None
        )

        raw_settings = data.get("user_guild_settings") or []
        if isinstance(raw_settings, dict):
            raw_settings = raw_settings.get("entries") or []
        settings = tuple(
            s for s in (GuildSettings.from_payload(raw, now) for raw in raw_settings)
            if s is not None
        )
        return cls(user_id=user_id, guilds=guilds, settings=settings)

    def settings_for(self, guild_id: int) -> GuildSettings | None:
        for entry in self.settings:
            if entry.guild_id == guild_id:
                return entry
        return None


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MessageEvent:
    """One incoming chat message, reduced to what the classifier needs."""

    author_id: int
    channel_id: int
    guild_id: int | None = None
    mention_everyone: bool = False
    mentions: frozenset[int] = field(default_factory=frozenset)

    @classmethod
    def from_message(cls, message: discord.Message) -> MessageEvent:
        return cls(
            author_id=message.author.id,
            channel_id=message.channel.id,
            guild_id=message.guild.id if message.guild else None,
            mention_everyone=message.mention_everyone,
            mentions=frozenset(user.id for user in message.mentions),
        )

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> MessageEvent:
        mentions = frozenset(
            uid for uid in (parse_snowflake(u.get("id")) for u in data.get("mentions") or [])
            if uid is not None
        )
        return cls(
            author_id=parse_snowflake((data.get("author") or {}).get("id")) or 0,
            channel_id=parse_snowflake(data.get("channel_id")) or 0,
            guild_id=parse_snowflake(data.get("guild_id")),
            mention_everyone=bool(data.get("mention_everyone")),
            mentions=mentions,
        )
