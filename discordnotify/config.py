"""
discordnotify.config — Settings & Credential Loader
====================================================

Two files live in the per-user config directory
(``$XDG_CONFIG_HOME/discordnotify`` or ``~/.config/discordnotify``):

* ``settings.yaml`` — optional soft settings (notification text, timeouts,
  log level).  Missing file → defaults.
* ``config.json`` — the credential record ``{"Token": "..."}``.  Created
  empty on first run and filled in by the interactive login prompt.

A ``DISCORD_TOKEN`` environment variable (``.env`` is honoured via
python-dotenv in the entry point) takes precedence over the stored token.

Usage::

    from discordnotify.config import load_config, resolve_token

    cfg = load_config()
    token = resolve_token()
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, fields
from getpass import getpass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

APP_DIR_NAME = "discordnotify"
SETTINGS_FILE = "settings.yaml"
CREDENTIALS_FILE = "config.json"
TOKEN_ENV_VAR = "DISCORD_TOKEN"


class ConfigError(RuntimeError):
    """Configuration or credentials are missing or unreadable."""


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class NotifyConfig:
    """Immutable soft settings loaded from ``settings.yaml``."""

    # Notification text
    app_name: str = "Discord"
    title: str = "Discord"
    body: str = "New message"
    show_guild_name: bool = False  # Append " in <guild>" to the body

    # Timeouts (seconds)
    icon_timeout: float = 5.0
    notification_timeout: int = 10

    log_level: str = "INFO"


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
def config_dir() -> Path:
    """Return the config directory, creating it (mode 0o774) if needed."""
    base = os.getenv("XDG_CONFIG_HOME") or Path.home() / ".config"
    directory = Path(base) / APP_DIR_NAME
    if not directory.exists():
        try:
            directory.mkdir(mode=0o774, parents=True)
        except OSError as exc:
            raise ConfigError(f"Cannot create config directory {directory}: {exc}") from exc
        logger.info("Created config directory %s", directory)
    return directory


# ---------------------------------------------------------------------------
# Soft settings
# ---------------------------------------------------------------------------
def load_config(path: str | Path | None = None) -> NotifyConfig:
    """Read *path* (default: ``settings.yaml`` in :func:`config_dir`).

    A missing file yields the defaults; unknown keys are ignored.

    Raises
    ------
    ConfigError
        If the file is not valid YAML, not a mapping, or holds a
        non-numeric timeout or an unknown log level.
    """
    config_path = Path(path) if path is not None else config_dir() / SETTINGS_FILE
    if not config_path.exists():
        logger.debug("No %s — using default settings", config_path)
        return NotifyConfig()

    try:
        with open(config_path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed settings file {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Settings file {config_path} must contain a mapping")

    known = {f.name for f in fields(NotifyConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning("Ignoring unknown settings: %s", ", ".join(unknown))

    defaults = NotifyConfig()
    try:
        icon_timeout = float(raw.get("icon_timeout", defaults.icon_timeout))
        notification_timeout = int(raw.get("notification_timeout", defaults.notification_timeout))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid timeout in {config_path}: {exc}") from exc

    log_level = str(raw.get("log_level", defaults.log_level)).upper()
    if log_level not in logging.getLevelNamesMapping():
        raise ConfigError(f"Unknown log_level {log_level!r} in {config_path}")

    return NotifyConfig(
        app_name=str(raw.get("app_name", defaults.app_name)),
        title=str(raw.get("title", defaults.title)),
        body=str(raw.get("body", defaults.body)),
        show_guild_name=bool(raw.get("show_guild_name", defaults.show_guild_name)),
        icon_timeout=icon_timeout,
        notification_timeout=notification_timeout,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------
def credentials_path() -> Path:
    return config_dir() / CREDENTIALS_FILE


def save_token(path: str | Path, token: str) -> None:
    """Write the credential record ``{"Token": token}`` to *path*."""
    Path(path).write_text(json.dumps({"Token": token}), encoding="utf-8")


def load_token(path: str | Path) -> str:
    """Return the stored token (``""`` if none).

    A missing file is first written with an empty token.

    Raises
    ------
    ConfigError
        If the file is unreadable or not a JSON object.
    """
    cred_path = Path(path)
    if not cred_path.exists():
        save_token(cred_path, "")
        logger.info("Created empty credential file %s", cred_path)

    try:
        record = json.loads(cred_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Error decoding credential file {cred_path}: {exc}") from exc

    if not isinstance(record, dict):
        raise ConfigError(f"Credential file {cred_path} must contain a JSON object")
    return str(record.get("Token") or "")


def prompt_token() -> str:
    """Ask for the user-account token on the terminal (input is not echoed).

    Bot tokens log in but never receive the user's notification settings.
    """
    return getpass("Enter your Discord user token: ")


def resolve_token(
    path: str | Path | None = None,
    prompt: Callable[[], str] = prompt_token,
) -> str:
    """Pick the token: environment, then stored record, then the prompt.

    A token obtained from the prompt is saved back to *path*.

    Raises
    ------
    ConfigError
        If the prompt returns an empty token.
    """
    env_token = os.getenv(TOKEN_ENV_VAR)
    if env_token:
        logger.debug("Using token from %s", TOKEN_ENV_VAR)
        return env_token.strip()

    cred_path = Path(path) if path is not None else credentials_path()
    token = load_token(cred_path)
    if token:
        return token

    token = prompt().strip()
    if not token:
        raise ConfigError("No token entered")
    save_token(cred_path, token)
    logger.info("Token saved to %s", cred_path)
    return token
