"""
config.py - JSON configuration loading for hawkdog.

The config file is looked up in this order unless a path is given
explicitly:

1. ``$HAWKDOG_CONFIG``
2. ``~/.config/hawkdog/config.json``
3. ``~/.config/sentinel-watch/config.json`` (legacy location)

Keys use the camelCase names of the JSON file; the :class:`Config`
dataclass exposes them as snake_case attributes.
"""

from __future__ import annotations

import enum
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hawkdog.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_CONFIG = "HAWKDOG_CONFIG"

DEFAULT_MSMTP_ACCOUNT = "idlepig"
DEFAULT_MIN_INTERVAL = 60
DEFAULT_STARTUP_SUPPRESS = 90


def default_sentinel_path() -> Path:
    return Path.home() / ".clawdbot" / "credentials" / "aws_creds_cache.ini"


def config_candidates() -> list[Path]:
    """Return the config locations to try, most preferred first."""
    candidates: list[Path] = []
    env = os.environ.get(ENV_CONFIG)
    if env:
        candidates.append(Path(env).expanduser())
    base = Path.home() / ".config"
    candidates.append(base / "hawkdog" / "config.json")
    candidates.append(base / "sentinel-watch" / "config.json")
    return candidates


class SignatureMode(str, enum.Enum):
    """How events are fingerprinted for the rate limiter."""

    PER_CLASS = "per-class"  # one limiter slot per distinct event mask
    SINGLE = "single"  # every event shares one slot


class WatchBackend(str, enum.Enum):
    AUTO = "auto"
    INOTIFY = "inotify"
    WATCHDOG = "watchdog"


@dataclass
class Config:
    """Validated runtime configuration.

    Attributes:
        sentinel_path:     Absolute path of the decoy credentials file.
        telegram_bot_token: Bot token used in the sendMessage URL.
        telegram_chat_id:  Numeric chat to deliver alerts to.
        email_to:          Alert recipient address.
        email_from:        ``From:`` header of alert emails.
        msmtp_account:     ``msmtp -a`` account name.
        alert_min_interval: Seconds before an identical alert may repeat.
        startup_suppress:  Seconds after start during which every event
                           is ignored.
        signature_mode:    Rate limiter fingerprint policy.
        watch_backend:     Event source implementation to use.
        lookup_openers:    Log processes holding the sentinel open.
    """

    telegram_bot_token: str
    telegram_chat_id: int
    email_to: str
    email_from: str
    sentinel_path: Path = field(default_factory=default_sentinel_path)
    msmtp_account: str = DEFAULT_MSMTP_ACCOUNT
    alert_min_interval: int = DEFAULT_MIN_INTERVAL
    startup_suppress: int = DEFAULT_STARTUP_SUPPRESS
    signature_mode: SignatureMode = SignatureMode.PER_CLASS
    watch_backend: WatchBackend = WatchBackend.AUTO
    lookup_openers: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Build a Config from the decoded JSON object.

        Raises:
            ConfigError: if a required key is missing or a value has the
                wrong type.
        """
        if not isinstance(data, dict):
            raise ConfigError("config must be a JSON object")

        sentinel = data.get("sentinelPath")
        if sentinel is None:
            sentinel_path = default_sentinel_path()
        else:
            if not isinstance(sentinel, str) or not sentinel.strip():
                raise ConfigError("sentinelPath required")
            sentinel_path = Path(sentinel).expanduser()
        if not sentinel_path.is_absolute():
            raise ConfigError(f"sentinelPath must be absolute: {sentinel_path}")

        token = _require_str(data, "telegramBotToken")
        chat_id = _as_int(data.get("telegramChatId"), "telegramChatId", 0)
        if chat_id == 0:
            raise ConfigError("telegramChatId required")
        email_to = data.get("emailTo")
        email_from = data.get("emailFrom")
        if not email_to or not email_from:
            raise ConfigError("emailTo and emailFrom required")
        if not isinstance(email_to, str) or not isinstance(email_from, str):
            raise ConfigError("emailTo and emailFrom must be strings")

        account = data.get("msmtpAccount") or DEFAULT_MSMTP_ACCOUNT
        if not isinstance(account, str):
            raise ConfigError("msmtpAccount must be a string")

        interval = _as_int(
            data.get("alertMinIntervalSeconds"), "alertMinIntervalSeconds", DEFAULT_MIN_INTERVAL
        )
        if interval <= 0:
            interval = DEFAULT_MIN_INTERVAL

        suppress = _as_int(
            data.get("startupSuppressSeconds"), "startupSuppressSeconds", DEFAULT_STARTUP_SUPPRESS
        )
        if suppress < 0:
            suppress = 0

        lookup = data.get("lookupOpeners", True)
        if not isinstance(lookup, bool):
            raise ConfigError("lookupOpeners must be true or false")

        return cls(
            telegram_bot_token=token,
            telegram_chat_id=chat_id,
            email_to=email_to,
            email_from=email_from,
            sentinel_path=sentinel_path,
            msmtp_account=account,
            alert_min_interval=interval,
            startup_suppress=suppress,
            signature_mode=_as_enum(SignatureMode, data.get("signatureMode"), "signatureMode"),
            watch_backend=_as_enum(WatchBackend, data.get("watchBackend"), "watchBackend"),
            lookup_openers=lookup,
        )


def find_config_file() -> Path:
    """Return the first existing config file from :func:`config_candidates`."""
    candidates = config_candidates()
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    tried = ", ".join(str(c) for c in candidates)
    raise ConfigError(f"no config file found (tried {tried})")


def load_config(path: str | Path | None = None) -> Config:
    """Read, parse and validate the hawkdog config file."""
    config_path = Path(path).expanduser() if path is not None else find_config_file()
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"read config {config_path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"parse config {config_path}: {exc}") from exc

    config = Config.from_dict(data)
    logger.debug("Loaded config from %s (sentinel=%s)", config_path, config.sentinel_path)
    return config


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not value:
        raise ConfigError(f"{key} required")
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value


def _as_int(value: Any, key: str, default: int) -> int:
    if value is None:
        return default
    # bool is an int subclass; "true" is never a sensible number here
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ConfigError(f"{key} must be an integer, got {value!r}")


def _as_enum(enum_cls: type[enum.Enum], value: Any, key: str) -> Any:
    members = list(enum_cls)
    if value is None:
        return members[0]
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in members)
        raise ConfigError(f"{key} must be one of: {allowed}") from None
