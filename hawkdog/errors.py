"""
errors.py - Exception taxonomy and process exit codes for hawkdog.

Fatal errors carry the exit code ``main()`` should terminate with.
``ChannelError`` is the only non-fatal member: the notifier catches it
per channel and the watch loop carries on.
"""

from __future__ import annotations

EXIT_OK = 0
EXIT_RUNTIME = 1
EXIT_CONFIG = 2
EXIT_DELIVERY = 3


class HawkdogError(Exception):
    """Base class for every error hawkdog raises on purpose."""

    exit_code: int = EXIT_RUNTIME


class ConfigError(HawkdogError):
    """A required setting is missing or a value is unusable."""

    exit_code = EXIT_CONFIG


class ProvisionError(HawkdogError):
    """The sentinel file or its directory could not be set up."""


class SubscriptionError(HawkdogError):
    """The kernel watch could not be created, attached or read."""


class EventDecodeError(SubscriptionError):
    """A notification buffer did not contain well-formed records."""


class ChannelError(HawkdogError):
    """Delivery over one notification channel failed."""

    exit_code = EXIT_DELIVERY

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(message)
        self.channel = channel


class WouldBlock(Exception):
    """No events are ready yet; back off and poll again."""
