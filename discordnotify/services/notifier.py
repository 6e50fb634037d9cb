"""
discordnotify.services.notifier — Desktop Notification Dispatcher
==================================================================

Thin wrapper over :mod:`plyer`'s cross-platform notification facade
(libnotify/D-Bus on Linux, Notification Center on macOS, toast on
Windows).  Fire-and-forget: a failed notification is logged, never raised.
"""

from __future__ import annotations

import logging
from typing import Any

from plyer import notification

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Render a desktop notification with an optional icon file.

    Parameters
    ----------
    app_name:
        Application name reported to the notification server.
    timeout:
        Seconds the notification stays visible.
    backend:
        Object with a plyer-compatible ``notify(**kwargs)``.  Defaults to
        ``plyer.notification``.
    """

    def __init__(self, app_name: str = "Discord", timeout: int = 10, backend: Any = None) -> None:
        self.app_name = app_name
        self.timeout = timeout
        self._backend = backend if backend is not None else notification

    def show(self, title: str, body: str, icon_path: str | None = None) -> None:
        """Show a notification.  Errors are logged and swallowed."""
        try:
            self._backend.notify(
                title=title,
                message=body,
                app_name=self.app_name,
                app_icon=icon_path or "",
                timeout=self.timeout,
            )
            logger.debug("Notification shown: %s — %s", title, body)
        except Exception:
            # plyer raises NotImplementedError when no platform backend exists
            logger.exception("Failed to show notification %r", title)
