"""Application entry point and CLI for mail-dispatcher.

Loads the YAML configuration, configures logging, builds the dispatcher from
the configured provider plugins, sends one message (optionally several times
to show duplicate suppression) and prints the results and the audit log.

Architecture:
- No provider-specific code or references (maintains plugin isolation)
- Configuration and the plugin loader handle all provider concerns
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import NoReturn

from mail_dispatcher.core.config import (
    ConfigurationError,
    EnvironmentVariableError,
    load_main_config,
)
from mail_dispatcher.core.dispatcher import MessageDispatcher
from mail_dispatcher.plugins.loader import PluginLoaderError
from mail_dispatcher.types import Message, SendResult
from mail_dispatcher.utils.formatting import format_log, format_send_result
from mail_dispatcher.utils.logging import configure_logging

__all__ = ["main"]

# Default configuration path
DEFAULT_CONFIG_PATH: Path = Path("config/mail-dispatcher.yaml")

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_DISPATCH_FAILURE = 2


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the mail-dispatcher application.

    Args:
        argv: Argument list; defaults to ``sys.argv[1:]``

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="mail-dispatcher",
        description="Send messages through an ordered chain of delivery providers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mail-dispatcher send --to user@example.com --subject Hi --body Hello
  mail-dispatcher --config /path/to/config.yaml send --to a@b.c --subject S --body B --repeat 2
  mail-dispatcher --log-level DEBUG send --to a@b.c --subject S --body B --json
        """,
    )

    _ = parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to main configuration file (default: {DEFAULT_CONFIG_PATH})",
        metavar="PATH",
    )

    _ = parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration",
        metavar="LEVEL",
    )

    _ = parser.add_argument(
        "--no-syslog",
        action="store_true",
        help="Disable syslog integration (useful for development)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    send_parser = subparsers.add_parser("send", help="Send a message")
    _ = send_parser.add_argument("--to", required=True, help="Recipient address", metavar="RECIPIENT")
    _ = send_parser.add_argument("--subject", required=True, help="Message subject")
    _ = send_parser.add_argument("--body", required=True, help="Message body")
    _ = send_parser.add_argument(
        "--repeat",
        type=int,
        default=1,
        help="Send the same message N times (default: 1)",
        metavar="N",
    )
    _ = send_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline in seconds for each send (overrides config)",
        metavar="SECONDS",
    )
    _ = send_parser.add_argument(
        "--json",
        action="store_true",
        help="Print results and the audit log as JSON",
    )

    args = parser.parse_args(argv)
    repeat: int = args.repeat  # pyright: ignore[reportAny]  # argparse boundary
    if repeat < 1:
        parser.error("--repeat must be at least 1")
    timeout: float | None = args.timeout  # pyright: ignore[reportAny]  # argparse boundary
    if timeout is not None and timeout <= 0:
        parser.error("--timeout must be greater than zero")
    return args


def _result_record(result: SendResult) -> dict[str, object]:
    return {
        "success": result.success,
        "provider_name": result.provider_name,
        "error": str(result.error) if result.error is not None else None,
        "attempts": result.attempts,
    }


async def async_main(
    *,
    config_path: Path,
    message: Message,
    repeat: int = 1,
    timeout: float | None = None,
    log_level: str | None = None,
    enable_syslog: bool = True,
    as_json: bool = False,
) -> int:
    """Load configuration, send the message and print the outcome.

    Args:
        config_path: Path to main configuration file
        message: Message to send
        repeat: Number of times to send the message
        timeout: Per-send deadline in seconds
        log_level: Override log level from config
        enable_syslog: Enable syslog integration
        as_json: Print JSON instead of text

    Returns:
        Exit code: 0 if the last send succeeded, 2 otherwise

    Raises:
        ConfigurationError: If configuration is invalid
        PluginLoaderError: If a configured provider cannot be created
    """
    config = load_main_config(config_path)

    if log_level is not None:
        config.application.log_level = log_level

    configure_logging(
        log_level=config.application.log_level,
        enable_syslog=enable_syslog and config.application.syslog_enabled,
        enable_console=True,
    )

    logger = logging.getLogger(__name__)
    logger.info("Mail-dispatcher starting", extra={"config_path": str(config_path)})

    results: list[SendResult] = []
    async with MessageDispatcher.from_main_config(config) as dispatcher:
        for _ in range(repeat):
            results.append(await dispatcher.send(message, timeout=timeout))
        outcomes = dispatcher.get_log()

    if as_json:
        document = {
            "results": [_result_record(result) for result in results],
            "log": [outcome.to_dict() for outcome in outcomes],
        }
        print(json.dumps(document, indent=2))
    else:
        for result in results:
            print(format_send_result(result))
        if outcomes:
            print()
            print(format_log(outcomes))

    return EXIT_SUCCESS if results[-1].success else EXIT_DISPATCH_FAILURE


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """Main entry point for the mail-dispatcher application.

    Exit Codes:
        0: Last send succeeded
        1: Configuration or provider plugin error
        2: Last send failed (duplicate, rate limited, exhausted or timed out)
    """
    args = parse_arguments(argv)

    # Extract args with type annotations to avoid reportAny at argparse boundary
    config_path_arg: Path = args.config  # pyright: ignore[reportAny]  # argparse boundary
    log_level_arg: str | None = args.log_level  # pyright: ignore[reportAny]  # argparse boundary
    no_syslog_arg: bool = args.no_syslog  # pyright: ignore[reportAny]  # argparse boundary
    recipient_arg: str = args.to  # pyright: ignore[reportAny]  # argparse boundary
    subject_arg: str = args.subject  # pyright: ignore[reportAny]  # argparse boundary
    body_arg: str = args.body  # pyright: ignore[reportAny]  # argparse boundary
    repeat_arg: int = args.repeat  # pyright: ignore[reportAny]  # argparse boundary
    timeout_arg: float | None = args.timeout  # pyright: ignore[reportAny]  # argparse boundary
    json_arg: bool = args.json  # pyright: ignore[reportAny]  # argparse boundary

    try:
        exit_code = asyncio.run(
            async_main(
                config_path=config_path_arg,
                message=Message(recipient=recipient_arg, subject=subject_arg, body=body_arg),
                repeat=repeat_arg,
                timeout=timeout_arg,
                log_level=log_level_arg,
                enable_syslog=not no_syslog_arg,
                as_json=json_arg,
            )
        )

    except ConfigurationError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except EnvironmentVariableError as exc:
        print(f"Environment variable error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except PluginLoaderError as exc:
        print(f"Provider error: {exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(EXIT_DISPATCH_FAILURE)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
