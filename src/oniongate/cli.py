"""
Command-line entry point.

Exit status: 0 after a clean shutdown, 1 when the service failed at
runtime, 2 when it could not start.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from oniongate.config import DEFAULT_ARTI_CONFIG, Settings
from oniongate.logging import configure_logging
from oniongate.orchestrator import Orchestrator
from oniongate.runtime.data import ServiceRuntimeError, StartupError

logger = logging.getLogger("oniongate")

EXIT_OK = 0
EXIT_RUNTIME_ERROR = 1
EXIT_STARTUP_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oniongate",
        description="Serve a site on a public port and as an arti onion service.",
    )
    parser.add_argument("-c", "--config", dest="arti_config",
                        help=f"arti configuration file (default: {DEFAULT_ARTI_CONFIG})")
    parser.add_argument("--arti", dest="arti_binary", help="path to the arti binary")
    parser.add_argument("--nickname", help="onion service nickname used for address discovery")
    parser.add_argument("--onion-port", type=int, help="loopback port the onion service forwards to")
    parser.add_argument("--max-attempts", type=int, help="helper launches before giving up (default: 5)")
    parser.add_argument("--restart-backoff", type=float, help="seconds to wait before relaunching the helper")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env(**vars(args))
        configure_logging(settings.log_level)
    except (StartupError, ValueError) as e:
        configure_logging()
        logger.error(f"error: {e}")
        return EXIT_STARTUP_ERROR

    try:
        asyncio.run(Orchestrator(settings).run())
    except StartupError as e:
        logger.error(f"error: {e}")
        return EXIT_STARTUP_ERROR
    except ServiceRuntimeError as e:
        logger.error(f"error: {e}")
        return EXIT_RUNTIME_ERROR
    except Exception:
        # Includes exception groups raised out of the serving task group
        logger.exception("error: unexpected failure while serving")
        return EXIT_RUNTIME_ERROR
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
