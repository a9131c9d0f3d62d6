"""
watcher.py - The hawkdog watch loop.

Wires the pieces into a single-threaded pipeline:

  1. Provision the sentinel (once).
  2. Subscribe to its filesystem events.
  3. Poll forever; run each event through the alert policy.
  4. On approval, notify over both channels and log the outcome.

Delivery failures are logged and otherwise ignored.  Provisioning and
subscription failures, and any read failure other than "no data yet",
end the loop by propagating to the caller.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Callable

from hawkdog.config import Config
from hawkdog.errors import WouldBlock
from hawkdog.events import IN_IGNORED, RawEvent
from hawkdog.monitor import POLL_INTERVAL, EventSource, open_source
from hawkdog.notifier import AlertMessage, Notifier, NotifyResult, log_result
from hawkdog.policy import AlertPolicy, AlertState, Decision
from hawkdog.process_monitor import find_openers
from hawkdog.sentinel import ensure_sentinel

logger = logging.getLogger(__name__)


class Phase(str, enum.Enum):
    INIT = "init"
    PROVISIONING = "provisioning"
    SUBSCRIBING = "subscribing"
    WATCHING = "watching"
    STOPPED = "stopped"
    FATAL = "fatal"


class Watcher:
    """Owns the event source, the alert state and the watch loop.

    Parameters:
        config:         Validated configuration.
        notifier:       Dual-channel notifier used for approved alerts.
        source_factory: ``(path, backend) -> EventSource``; swapped out in
                        tests.
        clock:          Monotonic clock for the policy.
        sleep:          Back-off function called after an empty poll.
    """

    def __init__(
        self,
        config: Config,
        notifier: Notifier,
        source_factory: Callable[..., EventSource] = open_source,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self.config = config
        self.notifier = notifier
        self.policy = AlertPolicy(
            min_interval=config.alert_min_interval,
            startup_suppress=config.startup_suppress,
            signature_mode=config.signature_mode,
        )
        self.state = AlertState(start_time=clock())
        self.phase = Phase.INIT
        self._source_factory = source_factory
        self._clock = clock
        self._sleep = sleep
        self._poll_interval = poll_interval
        self._stop = threading.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Ask the loop to finish after the current poll or sleep."""
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def run(self) -> None:
        """Provision, subscribe and watch until :meth:`stop` is called."""
        path = self.config.sentinel_path
        try:
            self.phase = Phase.PROVISIONING
            ensure_sentinel(path)

            self.phase = Phase.SUBSCRIBING
            source = self._source_factory(path, self.config.watch_backend)
        except Exception:
            self.phase = Phase.FATAL
            raise

        logger.info(
            "Watching %s (min interval %ss, startup suppress %ss, signatures %s)",
            path,
            self.config.alert_min_interval,
            self.config.startup_suppress,
            self.config.signature_mode.value,
        )
        self.phase = Phase.WATCHING
        try:
            with source:
                self._loop(source)
        except Exception:
            self.phase = Phase.FATAL
            raise
        self.phase = Phase.STOPPED
        logger.info(
            "Watcher stopped (%d alert(s) sent, %d suppressed)",
            self.state.alerts_sent,
            self.state.suppressed,
        )

    def _loop(self, source: EventSource) -> None:
        while not self.stopping:
            try:
                events = source.poll()
            except WouldBlock:
                if self.stopping:
                    break
                self._sleep(self._poll_interval)
                continue

            now = self._clock()
            for event in events:
                self.handle_event(event, now)

    # ------------------------------------------------------------------
    # Per-event handling
    # ------------------------------------------------------------------

    def handle_event(self, event: RawEvent, now: float) -> Decision:
        """Run *event* through the policy and notify if approved."""
        if event.mask & IN_IGNORED:
            logger.error(
                "Kernel dropped the watch on %s; the sentinel was deleted or moved",
                self.config.sentinel_path,
            )

        decision = self.policy.should_alert(event, now, self.state)
        if not decision.approved:
            return decision

        logger.warning("🚨 Sentinel touched: %s %s", self.config.sentinel_path, decision.description)
        if self.config.lookup_openers:
            for info in find_openers(self.config.sentinel_path):
                logger.warning("Sentinel held open by %s", info.describe())

        message = AlertMessage.for_event(self.config.sentinel_path, decision.description)
        log_result(self.notifier.notify(message))
        return decision


def self_test(config: Config, notifier: Notifier) -> NotifyResult:
    """Send one test message over both channels."""
    message = AlertMessage.self_test(config.sentinel_path)
    logger.info("Sending test alert for %s", config.sentinel_path)
    result = notifier.notify(message)
    log_result(result)
    return result
