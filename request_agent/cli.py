"""CLI entry point for request-agent.

Handles argument parsing and dispatches to validate, check or receive mode.
Emitted events are written to stdout as JSON lines; diagnostics go to stderr.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from request_agent.config_loader import (
    build_options,
    format_validation_report,
    is_blank,
    load_options,
    load_raw_options,
    parse_basic_auth,
    parse_boolish,
    validate_options,
)
from request_agent.dispatcher import Dispatcher
from request_agent.errors import ConfigError, TemplateRenderError
from request_agent.files import LocalFileProvider
from request_agent.logging_config import configure_logs
from request_agent.models import AgentOptions, Event
from request_agent.templating import JinjaTemplateResolver
from request_agent.transport import HttpxTransport


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class ValidateArgs:
    """Arguments for validate mode."""

    config: Path


@dataclass
class CheckArgs:
    """Arguments for check mode (one scheduled cycle)."""

    config: Path
    raise_for_status: bool = False
    files_dir: Path | None = None


@dataclass
class ReceiveArgs:
    """Arguments for receive mode (one cycle per event)."""

    config: Path
    events: Path
    raise_for_status: bool = False
    files_dir: Path | None = None


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with validate, check and receive subcommands."""
    parser = argparse.ArgumentParser(
        prog="request-agent",
        description="Send templated HTTP requests for incoming events or on a schedule.",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="INFO",
        dest="log_level",
        help="Log level for request-agent loggers (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Execution mode")

    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate an options file and report every problem found",
    )
    validate_parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to agent options file (YAML)",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Run one scheduled cycle (no triggering event)",
    )
    receive_parser = subparsers.add_parser(
        "receive",
        help="Run one cycle per event read from a file",
    )
    receive_parser.add_argument(
        "--events",
        type=Path,
        required=True,
        help="Path to events file (JSON array or JSON lines of event payloads)",
    )

    for sub in (check_parser, receive_parser):
        sub.add_argument(
            "--config",
            type=Path,
            required=True,
            help="Path to agent options file (YAML)",
        )
        sub.add_argument(
            "--raise-for-status",
            action="store_true",
            default=False,
            dest="raise_for_status",
            help="Treat non-2xx responses as errors",
        )
        sub.add_argument(
            "--files-dir",
            type=Path,
            default=None,
            dest="files_dir",
            help="Base directory for resolving event file pointers",
        )

    return parser


def parse_args(args: list[str] | None = None) -> tuple[ValidateArgs | CheckArgs | ReceiveArgs, str]:
    """Parse command-line arguments.

    Args:
        args: Command-line arguments to parse. If None, uses sys.argv[1:].

    Returns:
        The typed args dataclass for the subcommand and the log level name.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    if namespace.command == "validate":
        parsed: ValidateArgs | CheckArgs | ReceiveArgs = ValidateArgs(config=namespace.config)
    elif namespace.command == "check":
        parsed = CheckArgs(
            config=namespace.config,
            raise_for_status=namespace.raise_for_status,
            files_dir=namespace.files_dir,
        )
    elif namespace.command == "receive":
        parsed = ReceiveArgs(
            config=namespace.config,
            events=namespace.events,
            raise_for_status=namespace.raise_for_status,
            files_dir=namespace.files_dir,
        )
    else:
        # Should not happen with required=True on subparsers
        parser.error(f"Unknown command: {namespace.command}")
    return parsed, namespace.log_level


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed, log_level = parse_args(argv)
        configure_logs(getattr(logging, log_level))

        if isinstance(parsed, ValidateArgs):
            return run_validate(parsed)
        elif isinstance(parsed, CheckArgs):
            return run_check(parsed)
        else:
            return run_receive(parsed)

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def run_validate(args: ValidateArgs) -> int:
    """Run validate mode: print the full report, exit 1 on any error."""
    try:
        raw = load_raw_options(args.config)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    result = validate_options(raw)
    if result.errors or result.warnings:
        print(format_validation_report(result), file=sys.stderr)
    if not result.is_valid:
        return 1

    try:
        build_options(raw)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"{args.config}: OK")
    return 0


def run_check(args: CheckArgs) -> int:
    """Run check mode: one cycle with no triggering event."""
    return _run_dispatcher(args, events=None)


def run_receive(args: ReceiveArgs) -> int:
    """Run receive mode: one cycle per event in the events file."""
    try:
        events = load_events(args.events)
    except ValueError as e:
        print(f"Error loading events: {e}", file=sys.stderr)
        return 1
    return _run_dispatcher(args, events=events)


def _run_dispatcher(args: CheckArgs | ReceiveArgs, events: list[Event] | None) -> int:
    try:
        options = load_options(args.config)
        transport = build_transport(options, raise_for_status=args.raise_for_status)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    file_provider = LocalFileProvider(args.files_dir) if args.files_dir else None

    with transport:
        dispatcher = Dispatcher(
            options,
            transport,
            emit=_print_event,
            file_provider=file_provider,
        )
        if events is None:
            dispatcher.on_schedule()
        else:
            dispatcher.on_events(events)
    return 0


def build_transport(options: AgentOptions, raise_for_status: bool = False) -> HttpxTransport:
    """Create the HTTP transport from the connection-level options.

    These options are rendered once, without an event, since the client is
    shared by every cycle.

    Raises:
        ConfigError: If a connection option renders to an invalid value.
    """
    resolver = JinjaTemplateResolver()
    try:
        disable_ssl = resolver.interpolate(options.disable_ssl_verification, {})
        basic_auth = parse_basic_auth(resolver.interpolate(options.basic_auth, {}))
        verify_ssl = is_blank(disable_ssl) or not parse_boolish(disable_ssl)
        user_agent = resolver.interpolate(options.user_agent, {})
    except (TemplateRenderError, ValueError) as e:
        raise ConfigError(f"Invalid connection option: {e}") from e

    return HttpxTransport(
        basic_auth=basic_auth,
        verify_ssl=verify_ssl,
        user_agent=user_agent or None,
        raise_for_status=raise_for_status,
    )


def load_events(events_path: Path) -> list[Event]:
    """Load events from a JSON array or JSON lines file.

    Each item is an event payload object.

    Raises:
        ValueError: If the file is missing or not valid JSON, or an item is
            not an object.
    """
    if not events_path.exists():
        raise ValueError(f"Events file not found: {events_path}")

    text = events_path.read_text(encoding="utf-8").strip()
    if not text:
        return []

    try:
        if text.startswith("["):
            items = json.loads(text)
        else:
            items = [json.loads(line) for line in text.splitlines() if line.strip()]
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in events file: {e}") from e

    events = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"Event #{index} must be a JSON object")
        events.append(Event(payload=item))
    return events


def _print_event(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, default=str), flush=True)


if __name__ == "__main__":
    raise SystemExit(main())
