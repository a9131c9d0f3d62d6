"""
notifier.py - Out-of-band alert delivery for hawkdog.

Two independent channels carry every alert:

* Telegram, through the Bot API ``sendMessage`` endpoint (``requests``).
* Email, piped into the local ``msmtp`` binary.

:class:`Notifier` always tries both.  A failure on one channel is
recorded in the returned :class:`NotifyResult` and never stops the other
channel or propagates to the caller.
"""

from __future__ import annotations

import logging
import socket
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import requests

from hawkdog.config import Config
from hawkdog.errors import ChannelError

logger = logging.getLogger(__name__)

ALERT_TITLE = "hawkdog alert"
TEST_TITLE = "hawkdog test"

TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"
TELEGRAM_TIMEOUT = 10.0
MSMTP_TIMEOUT = 30.0


def hostname() -> str:
    """Return the local host name, or ``"unknown"``."""
    try:
        name = socket.gethostname()
    except OSError:
        name = ""
    return name or "unknown"


def timestamp(when: datetime | None = None) -> str:
    """Return *when* (default: now) as RFC 3339 local time."""
    when = when or datetime.now().astimezone()
    if when.tzinfo is None:
        when = when.astimezone()
    return when.isoformat(timespec="seconds")


@dataclass(frozen=True)
class AlertMessage:
    """A rendered-on-demand alert.

    ``event`` is ``None`` for the self-test message, which has no event
    line.
    """

    title: str
    path: str
    time: str
    host: str
    event: str | None = None

    @classmethod
    def for_event(cls, path: str | Path, event: str, when: datetime | None = None) -> "AlertMessage":
        return cls(title=ALERT_TITLE, path=str(path), event=event, time=timestamp(when), host=hostname())

    @classmethod
    def self_test(cls, path: str | Path, when: datetime | None = None) -> "AlertMessage":
        return cls(title=TEST_TITLE, path=str(path), time=timestamp(when), host=hostname())

    def render(self) -> str:
        lines = [self.title, "", f"path: {self.path}"]
        if self.event is not None:
            lines.append(f"event: {self.event}")
        lines.append(f"time: {self.time}")
        lines.append(f"host: {self.host}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------

class TelegramChannel:
    """Sends plain-text messages to one Telegram chat."""

    name = "telegram"

    def __init__(
        self,
        bot_token: str,
        chat_id: int,
        timeout: float = TELEGRAM_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.url = TELEGRAM_API.format(token=bot_token)
        self._bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout
        self._session = session or requests.Session()

    def send(self, message: AlertMessage) -> None:
        payload = {"chat_id": self.chat_id, "text": message.render()}
        try:
            resp = self._session.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ChannelError(self.name, f"telegram request failed: {self._redact(exc)}") from exc
        if not 200 <= resp.status_code < 300:
            raise ChannelError(
                self.name, f"telegram http {resp.status_code}: {resp.text.strip()}"
            )

    def _redact(self, exc: Exception) -> str:
        # The URL embeds the bot token
        detail = str(exc) or type(exc).__name__
        if self._bot_token:
            detail = detail.replace(self._bot_token, "<token>")
        return f"{type(exc).__name__}: {detail}"


class MsmtpChannel:
    """Hands messages to ``msmtp`` for delivery to one recipient."""

    name = "email"

    def __init__(
        self,
        account: str,
        sender: str,
        recipient: str,
        command: str = "msmtp",
        timeout: float = MSMTP_TIMEOUT,
    ) -> None:
        self.account = account
        self.sender = sender
        self.recipient = recipient
        self.command = command
        self.timeout = timeout

    def compose(self, message: AlertMessage) -> str:
        return (
            f"From: {self.sender}\n"
            f"To: {self.recipient}\n"
            f"Subject: {message.title}\n"
            f"\n"
            f"{message.render()}\n"
        )

    def send(self, message: AlertMessage) -> None:
        argv = [self.command, "-a", self.account, self.recipient]
        try:
            proc = subprocess.run(
                argv,
                input=self.compose(message),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ChannelError(self.name, f"msmtp failed: {self.command} not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise ChannelError(self.name, f"msmtp failed: timed out after {self.timeout:g}s") from exc
        except OSError as exc:
            raise ChannelError(self.name, f"msmtp failed: {exc}") from exc
        if proc.returncode != 0:
            output = (proc.stdout or "").strip()
            raise ChannelError(self.name, f"msmtp failed: exit {proc.returncode}: {output}")


# ---------------------------------------------------------------------------
# Dual-channel notifier
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChannelResult:
    channel: str
    ok: bool
    error: str = ""


@dataclass(frozen=True)
class NotifyResult:
    telegram: ChannelResult
    email: ChannelResult

    @property
    def ok(self) -> bool:
        return self.telegram.ok and self.email.ok

    def __iter__(self):
        yield self.telegram
        yield self.email


class Notifier:
    """Delivers one message over Telegram and email, independently."""

    def __init__(self, telegram: TelegramChannel, email: MsmtpChannel) -> None:
        self.telegram = telegram
        self.email = email

    @classmethod
    def from_config(cls, config: Config) -> "Notifier":
        return cls(
            TelegramChannel(config.telegram_bot_token, config.telegram_chat_id),
            MsmtpChannel(config.msmtp_account, config.email_from, config.email_to),
        )

    def notify(self, message: AlertMessage) -> NotifyResult:
        return NotifyResult(
            telegram=self._attempt(self.telegram, message),
            email=self._attempt(self.email, message),
        )

    @staticmethod
    def _attempt(channel, message: AlertMessage) -> ChannelResult:  # noqa: ANN001
        try:
            channel.send(message)
        except ChannelError as exc:
            return ChannelResult(channel.name, ok=False, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error on %s channel", channel.name)
            return ChannelResult(channel.name, ok=False, error=f"{channel.name}: {exc}")
        return ChannelResult(channel.name, ok=True)


def log_result(result: NotifyResult) -> None:
    """Write one operational log line per channel outcome."""
    for outcome in result:
        if outcome.ok:
            logger.info("%s sent", outcome.channel)
        else:
            logger.error("%s send failed: %s", outcome.channel, outcome.error)
