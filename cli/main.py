"""Command-line entry points for listing and replaying recorded sessions."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

# Allow `python cli/main.py ...` execution from IDEs by adding repo root to sys.path.
if __package__ in {None, ""}:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

from configs.loader import ConfigLoader, ConfigValidationError, HarnessConfig
from harness.environment import ReplayHarness
from harness.errors import HarnessStateError, HostLifecycleFailure, TeardownFailure
from harness.waiting import PredicateTimeout, WaitCancelled
from recording.events import RecordingFormatError
from recording.store import RecordingStore, SessionNotFound

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2

_REPLAY_ERRORS = (
    SessionNotFound,
    RecordingFormatError,
    PredicateTimeout,
    WaitCancelled,
    HostLifecycleFailure,
    HarnessStateError,
    TeardownFailure,
)


def _load_config(args: argparse.Namespace) -> HarnessConfig:
    config = ConfigLoader.load(args.config) if args.config else HarnessConfig()
    if args.recordings:
        config = config.with_overrides(recordings_dir=args.recordings)
    return config


def _list(config: HarnessConfig) -> int:
    recordings = RecordingStore(config.recordings_dir).list_recordings()
    if not recordings:
        print(f"No recordings found in {config.recordings_dir}")
        return EXIT_OK
    for descriptor in recordings:
        print(f"{descriptor.title}\tseed={descriptor.seed}\t{descriptor.path}")
    return EXIT_OK


def _play(config: HarnessConfig, title: str, headless: bool) -> int:
    harness = ReplayHarness(config)
    try:
        harness.start(title, headless)
        print(f"Replaying '{title}'")
        elapsed = harness.wait_for_replay_end()
        LOGGER.info("Replay '%s' reached FINISHED after %.2fs", title, elapsed)
        print(f"Replay '{title}' finished")
    except _REPLAY_ERRORS as exc:
        print(f"Replay '{title}' failed: {exc}", file=sys.stderr)
        try:
            harness.teardown()
        except TeardownFailure as secondary:
            print(f"Teardown also failed: {secondary}", file=sys.stderr)
        return EXIT_FAILED
    try:
        harness.teardown()
    except TeardownFailure as exc:
        print(f"Replay '{title}' failed during teardown: {exc}", file=sys.stderr)
        return EXIT_FAILED
    return EXIT_OK


def _menu(config: HarnessConfig, headless: bool) -> int:
    harness = ReplayHarness(config)
    try:
        host = harness.open_main_menu(headless)
        print(f"Main menu open (host status: {host.status.value})")
    except _REPLAY_ERRORS as exc:
        print(f"Main menu failed: {exc}", file=sys.stderr)
        try:
            harness.teardown()
        except TeardownFailure as secondary:
            print(f"Teardown also failed: {secondary}", file=sys.stderr)
        return EXIT_FAILED
    try:
        harness.teardown()
    except TeardownFailure as exc:
        print(f"Main menu failed during teardown: {exc}", file=sys.stderr)
        return EXIT_FAILED
    return EXIT_OK


def run_cli(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="replay-harness")
    parser.add_argument("--config", help="Harness config file (.yaml, .yml or .json).")
    parser.add_argument("--recordings", help="Recordings directory; overrides the config.")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    sub = parser.add_subparsers(dest="command", required=False)

    sub.add_parser("list", help="List available recordings.")

    play_cmd = sub.add_parser("play", help="Replay a recording to the end.")
    play_cmd.add_argument("title")
    play_cmd.add_argument("--headed", action="store_true", help="Use display, audio and input devices.")

    menu_cmd = sub.add_parser("menu", help="Open the main menu and shut down again.")
    menu_cmd.add_argument("--headed", action="store_true", help="Use display, audio and input devices.")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return EXIT_USAGE

    try:
        config = _load_config(args)
    except ConfigValidationError as exc:
        print(f"Invalid config: {exc}", file=sys.stderr)
        return EXIT_USAGE

    if args.command == "list":
        return _list(config)
    if args.command == "play":
        return _play(config, args.title, headless=config.headless and not args.headed)
    if args.command == "menu":
        return _menu(config, headless=config.headless and not args.headed)
    return EXIT_USAGE


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
