"""
discordnotify — Desktop Notifications for Discord
==================================================
Keeps a gateway session open, classifies every incoming message against
the user's per-guild and per-channel notification settings, and raises a
desktop notification for the ones that should alert.

Package layout::

    discordnotify/
    ├── config.py          # settings.yaml + {"Token": ...} credential file
    ├── engine/
    │   ├── preferences.py # PreferenceIndex (mute / mentions-only / @everyone)
    │   ├── events.py      # Gateway payload → frozen dataclasses
    │   └── classifier.py  # should_notify() decision
    ├── services/
    │   ├── sync.py        # READY / settings-update → PreferenceIndex
    │   ├── notifier.py    # plyer desktop notifications
    │   └── icons.py       # Guild icon fetch + temp file staging
    └── bot/
        ├── core.py        # NotifyClient (discord.Client subclass)
        └── __main__.py    # python -m discordnotify.bot
"""

__version__ = "0.1.0"
