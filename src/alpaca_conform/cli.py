from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional, Sequence

from .config.device_uri import parse_alpaca_uri
from .config.settings import ConformSettings, load_settings
from .log import configure_logging
from .protocol.tester import AlpacaProtocolTester
from .report import write_results
from .session import ConformSession

logger = logging.getLogger(__name__)

VALIDATION_FAILED = -99


def _install_signal_handlers(session: ConformSession) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, session.cancel)
        except (NotImplementedError, RuntimeError):  # pragma: no cover - platform dependent
            logger.debug("cli.signal_handler_unavailable signal=%s", signum)


async def protocol_command(settings: ConformSettings) -> int:
    """Run the Alpaca protocol checks against the configured device and write the results file."""
    session = ConformSession(settings)
    _install_signal_handlers(session)

    tester = AlpacaProtocolTester(settings, session)
    return_code = await tester.run()

    results_path = write_results(settings.results_file, session.to_results(return_code))
    logger.info("cli.results_written path=%s return_code=%s", results_path, return_code)
    return return_code


def _apply_overrides(settings: ConformSettings, args) -> ConformSettings:
    update: dict[str, object] = {}
    if args.results_file:
        update["results_file"] = Path(args.results_file)
    if args.log_file:
        update["log_file"] = Path(args.log_file)
    if args.strict:
        update["strict_checks"] = True
    if args.debug:
        update["debug"] = True
    return settings.model_copy(update=update) if update else settings


def _add_common_arguments(parser) -> None:
    parser.add_argument(
        "--config",
        type=str,
        help="Path to a settings YAML file to load in addition to environment variables.",
    )
    parser.add_argument("--results-file", type=str, help="Where to write the JSON results file.")
    parser.add_argument("--log-file", type=str, help="Also write the run log to this rotating log file.")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Report tolerated protocol deviations as issues instead of information messages.",
    )
    parser.add_argument("--debug", action="store_true", help="Log every request and response in detail.")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point for checking an Alpaca device's protocol implementation."""
    import argparse

    parser = argparse.ArgumentParser(description="ASCOM Alpaca protocol conformance checker")
    subparsers = parser.add_subparsers(dest="command", required=True)

    uri_parser = subparsers.add_parser(
        "alpacaprotocol",
        help="Check the Alpaca protocol of the device named by an Alpaca URI.",
    )
    uri_parser.add_argument(
        "uri",
        type=str,
        help="Device URI, for example http://192.168.1.20:11111/api/v1/telescope/0",
    )
    _add_common_arguments(uri_parser)

    settings_parser = subparsers.add_parser(
        "alpacaprotocol-settings",
        help="Check the Alpaca protocol of the device configured in settings.",
    )
    _add_common_arguments(settings_parser)

    args = parser.parse_args(argv)

    settings = _apply_overrides(load_settings(config_path=args.config), args)
    if args.command == "alpacaprotocol":
        try:
            settings = parse_alpaca_uri(args.uri).apply(settings)
        except ValueError as exc:
            print(f"Cannot start test:\n{exc}")
            return VALIDATION_FAILED

    configure_logging(settings)

    message = settings.validation_message()
    if message:
        print(f"Cannot start test:\n{message}")
        return VALIDATION_FAILED

    return asyncio.run(protocol_command(settings))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
