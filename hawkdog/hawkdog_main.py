#!/usr/bin/env python3
"""
hawkdog_main.py - CLI entry point for hawkdog.

Sub-commands
------------
watch      Provision the sentinel and alert on every access to it.
           This is the default when no sub-command is given.

test       Send a test alert over Telegram and email, then exit.
           Prints ``ok`` when both channels delivered.

provision  Create the sentinel if needed and print its path and token.

Usage
-----
    hawkdog                          # same as "hawkdog watch"
    hawkdog --config ./config.json test
    python -m hawkdog.hawkdog_main provision
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys

from hawkdog.config import Config, load_config
from hawkdog.errors import EXIT_DELIVERY, EXIT_OK, EXIT_RUNTIME, HawkdogError
from hawkdog.notifier import Notifier
from hawkdog.sentinel import ensure_sentinel, read_token
from hawkdog.watcher import Watcher, self_test

logger = logging.getLogger("hawkdog")


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    # urllib3 logs full request URLs at DEBUG, and ours contain the bot token
    logging.getLogger("urllib3").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Sub-commands
# ---------------------------------------------------------------------------

def cmd_watch(config: Config, args: argparse.Namespace) -> int:
    """Run the watch loop until SIGINT/SIGTERM."""
    watcher = Watcher(config, Notifier.from_config(config))

    def _on_signal(signum, frame) -> None:  # noqa: ANN001
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        watcher.stop()

    previous = {
        signum: signal.signal(signum, _on_signal) for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        watcher.run()
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
    return EXIT_OK


def cmd_test(config: Config, args: argparse.Namespace) -> int:
    """Deliver a test message over both channels."""
    result = self_test(config, Notifier.from_config(config))
    if not result.ok:
        return EXIT_DELIVERY
    print("ok")
    return EXIT_OK


def cmd_provision(config: Config, args: argparse.Namespace) -> int:
    """Ensure the sentinel exists and report its token."""
    created = ensure_sentinel(config.sentinel_path)
    token = read_token(config.sentinel_path)
    print(f"path:  {config.sentinel_path}")
    print(f"token: {token or '(not found)'}")
    print(f"state: {'created' if created else 'existing'}")
    return EXIT_OK


_COMMANDS = {
    "watch": cmd_watch,
    "test": cmd_test,
    "provision": cmd_provision,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="hawkdog",
        description="hawkdog - decoy credentials file with Telegram and email alerts.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.json (default: $HAWKDOG_CONFIG, then ~/.config/hawkdog/config.json).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("watch", help="Watch the sentinel and send alerts (default).")
    sub.add_parser("test", help="Send a test alert and exit.")
    sub.add_parser("provision", help="Create the sentinel and print its token.")
    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    """Parse CLI args, load config and dispatch to the sub-command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    command = args.command or "watch"
    try:
        config = load_config(args.config)
        return _COMMANDS[command](config, args)
    except HawkdogError as exc:
        logger.error("%s", exc)
        return exc.exit_code
    except OSError as exc:
        logger.error("%s failed: %s", command, exc)
        return EXIT_RUNTIME


if __name__ == "__main__":
    sys.exit(main())
