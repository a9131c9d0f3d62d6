"""
policy.py - Alert decision logic for hawkdog.

Decides, for each raw event, whether an alert should go out:

  1. Drop everything during the startup suppression window.
  2. Fingerprint the event (per event class, or one shared slot).
  3. Drop it if the same fingerprint already alerted less than
     ``min_interval`` seconds ago.
  4. Otherwise approve it and record the fingerprint and time.

The policy itself is stateless; all bookkeeping lives in an
:class:`AlertState` owned by the caller.  Times are plain float seconds
from whatever clock the caller uses (the watcher uses
``time.monotonic``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from hawkdog.config import SignatureMode
from hawkdog.events import RawEvent, describe_mask

logger = logging.getLogger(__name__)

SINGLE_SIGNATURE = "any"

REASON_APPROVED = "approved"
REASON_STARTUP = "startup"
REASON_RATE_LIMITED = "rate_limited"


@dataclass
class AlertState:
    """Mutable rate-limit bookkeeping for one watcher process.

    ``last_alert_time`` is ``None`` until the first alert is approved.
    """

    start_time: float
    last_alert_time: float | None = None
    last_signature: str | None = None
    alerts_sent: int = 0
    suppressed: int = 0


@dataclass(frozen=True)
class Decision:
    approved: bool
    reason: str
    description: str = ""
    signature: str = ""


class AlertPolicy:
    """Startup suppression plus per-signature rate limiting.

    Parameters:
        min_interval:     Seconds an approved signature blocks repeats.
        startup_suppress: Seconds after ``state.start_time`` during which
                          every event is suppressed.  ``0`` disables it.
        signature_mode:   Whether different event classes rate-limit
                          independently.
    """

    def __init__(
        self,
        min_interval: float,
        startup_suppress: float = 0,
        signature_mode: SignatureMode = SignatureMode.PER_CLASS,
    ) -> None:
        self.min_interval = min_interval
        self.startup_suppress = max(startup_suppress, 0)
        self.signature_mode = SignatureMode(signature_mode)

    def signature(self, event: RawEvent) -> str:
        if self.signature_mode is SignatureMode.SINGLE:
            return SINGLE_SIGNATURE
        return f"0x{event.mask:x}"

    def should_alert(self, event: RawEvent, now: float, state: AlertState) -> Decision:
        """Return the decision for *event* observed at *now*.

        ``state`` is updated only when the event is approved (apart from
        the informational ``suppressed`` counter).
        """
        if self.startup_suppress > 0 and now - state.start_time < self.startup_suppress:
            state.suppressed += 1
            logger.debug(
                "Suppressed %s during startup window (%.1fs into %ss)",
                describe_mask(event.mask),
                now - state.start_time,
                self.startup_suppress,
            )
            return Decision(approved=False, reason=REASON_STARTUP)

        sig = self.signature(event)
        if (
            state.last_alert_time is not None
            and sig == state.last_signature
            and now - state.last_alert_time < self.min_interval
        ):
            state.suppressed += 1
            logger.debug(
                "Rate limited %s (%.1fs since last alert, interval %ss)",
                sig,
                now - state.last_alert_time,
                self.min_interval,
            )
            return Decision(approved=False, reason=REASON_RATE_LIMITED, signature=sig)

        state.last_alert_time = now
        state.last_signature = sig
        state.alerts_sent += 1
        return Decision(
            approved=True,
            reason=REASON_APPROVED,
            description=describe_mask(event.mask),
            signature=sig,
        )
