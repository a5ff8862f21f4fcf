#!/usr/bin/env python3
"""Skill bridge CLI - run a skill handler against the live debug relay.

Usage:
    skillbridge --debugServer --accessToken Atza|xxx... --skillId amzn1.ask.skill.xxx --handler my_skill:handler
    skillbridge --debugServer --region EU --handler my_skill:skill

Environment variables (alternative to args):
    ASK_DEBUG_SERVER               Start the debug session (true/false)
    ASK_ACCESS_TOKEN               Login-with-Amazon access token
    ASK_SKILL_ID                   Skill ID
    ASK_REGION                     Relay region: NA, FE or EU (default: NA)
    SKILL_BRIDGE_SEND_TIMEOUT      Seconds allowed per response write (default: 5)
    SKILL_BRIDGE_RECOVER_PAYLOADS  Answer malformed payloads with a failure frame
"""

import argparse
import asyncio
import importlib
import logging
import os
import signal
import sys
from datetime import datetime
from typing import Optional, Sequence

from dotenv import load_dotenv
from pydantic import BaseModel

from .config import DebugConfig, get_config_value, load_config
from .errors import ConfigurationError, ConnectivityError, DecodeError
from .handler import Handler
from .regions import REGION_ENDPOINTS

log = logging.getLogger("skillbridge")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

class DebugBridgeCLI:
    """Supervisor for a single debug session.

    Owns the process-level concerns the session itself stays out of: signal
    handling, turning typed errors into exit codes, and run statistics.
    """

    def __init__(
        self,
        config: DebugConfig,
        handler: Handler,
        request_model: Optional[type[BaseModel]] = None,
    ):
        self.config = config
        self.handler = handler
        self.request_model = request_model
        self.session = None

        # Metrics
        self._requests = 0
        self._failures = 0
        self._start_time: Optional[datetime] = None

    async def run(self) -> int:
        """Run the debug session. Returns exit code."""
        from .session import DebugSession

        self._start_time = datetime.now()

        try:
            self.config.validate()
        except ConfigurationError as e:
            log.error(str(e))
            return EXIT_CONFIG

        self.session = DebugSession(
            access_token=self.config.access_token,
            skill_id=self.config.skill_id,
            handler=self.handler,
            region=self.config.region,
            request_model=self.request_model,
            recover_malformed_payloads=self.config.recover_malformed_payloads,
            send_timeout=self.config.send_timeout or None,
        )
        self.session.on_frame_complete = self._on_frame_complete

        # Setup signal handlers
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.session.shutdown)

        log.info("=" * 50)
        log.info("Skill debug bridge - Starting")
        log.info(f"Skill: {self.config.skill_id} | Region: {self.config.region}")
        log.info("=" * 50)

        try:
            await self.session.run()
            return EXIT_OK
        except ConfigurationError as e:
            log.error(f"Configuration error: {e}")
            return EXIT_CONFIG
        except (ConnectivityError, DecodeError) as e:
            log.error(f"Fatal error: {e}")
            return EXIT_FATAL
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            self._log_stats()
            log.info("Goodbye!")

    def _on_frame_complete(self, request_id: str, succeeded: bool, elapsed_ms: float) -> None:
        """Called when a response frame has been written."""
        self._requests += 1
        if not succeeded:
            self._failures += 1
        outcome = "success" if succeeded else "failure"
        log.info(f"Request #{self._requests}: {request_id} | {outcome} | {elapsed_ms:.0f}ms")

    def _log_stats(self) -> None:
        if not self._start_time:
            return
        elapsed = (datetime.now() - self._start_time).total_seconds()
        log.info(
            f"Stats: {elapsed / 60:.1f}m uptime | "
            f"{self._requests} requests | "
            f"{self._failures} failures"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Skill bridge - run a skill handler locally against the live debug relay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  skillbridge --debugServer --accessToken $TOKEN --skillId amzn1.ask.skill.xxx --handler my_skill:handler
  skillbridge --debugServer --region FE --handler my_skill:skill

Regions:
  """ + "\n  ".join(f"{code:<4}{host}" for code, host in REGION_ENDPOINTS.items()),
    )

    parser.add_argument(
        "--debugServer", "--debug-server",
        dest="debug_server",
        action="store_true",
        default=get_config_value("DEBUG_SERVER", False),
        help="Start a skill debug session (or set ASK_DEBUG_SERVER)",
    )
    parser.add_argument(
        "--accessToken", "--access-token",
        dest="access_token",
        default=get_config_value("ACCESS_TOKEN", ""),
        help="Developer access token (or set ASK_ACCESS_TOKEN env var)",
    )
    parser.add_argument(
        "--skillId", "--skill-id",
        dest="skill_id",
        default=get_config_value("SKILL_ID", ""),
        help="The skill ID (or set ASK_SKILL_ID env var)",
    )
    parser.add_argument(
        "--region",
        default=get_config_value("REGION", "NA"),
        help="The skill run region: NA, FE or EU (default: NA)",
    )
    parser.add_argument(
        "--handler",
        default=None,
        help="Handler to run, as module:attribute (a function or a Skill)",
    )
    parser.add_argument(
        "--send-timeout",
        type=float,
        default=get_config_value("SEND_TIMEOUT", 5.0),
        help="Seconds allowed for writing one response frame, 0 for no limit (default: 5)",
    )
    parser.add_argument(
        "--recover-malformed-payloads",
        action="store_true",
        default=get_config_value("RECOVER_PAYLOADS", False),
        help="Answer malformed request payloads with a failure frame instead of ending the session",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def parse_config(argv: Optional[Sequence[str]] = None, application_id: str = ""):
    """Parse switches into a DebugConfig.

    Returns:
        Tuple of (config, parsed args)
    """
    args = build_parser().parse_args(argv)
    config = DebugConfig(
        debug_server=args.debug_server,
        access_token=args.access_token,
        skill_id=args.skill_id or application_id,
        region=args.region,
        send_timeout=args.send_timeout,
        recover_malformed_payloads=args.recover_malformed_payloads,
    )
    return config, args


def load_handler(target: str):
    """Import ``module:attribute`` and return (handler, request_model).

    The attribute may be a plain handler function or a Skill.
    """
    from .dispatcher import Skill

    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(f"Handler must look like module:attribute, got {target!r}")

    # Console scripts do not put the working directory on sys.path
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import handler module {module_name!r}: {e}") from e

    obj = getattr(module, attr, None)
    if obj is None:
        raise ConfigurationError(f"Module {module_name!r} has no attribute {attr!r}")
    if isinstance(obj, Skill):
        return obj.handler, obj.request_model
    if not callable(obj):
        raise ConfigurationError(f"Handler {target!r} is not callable")
    return obj, None


def run_debug_session(
    config: DebugConfig,
    handler: Handler,
    request_model: Optional[type[BaseModel]] = None,
) -> int:
    """Run one debug session to completion. Returns exit code."""
    return asyncio.run(DebugBridgeCLI(config, handler, request_model).run())


def main(argv: Optional[Sequence[str]] = None):
    """CLI entry point."""
    load_dotenv()
    load_config.cache_clear()

    try:
        config, args = parse_config(argv)
    except ConfigurationError as e:
        setup_logging()
        log.error(str(e))
        sys.exit(EXIT_CONFIG)
    setup_logging(args.verbose)

    if not config.debug_server:
        log.info("Not in debug mode: invocations are driven by the Lambda runtime.")
        log.info("Point the function handler at your Skill's lambda_handler, or pass --debugServer.")
        sys.exit(EXIT_OK)

    if not args.handler:
        log.error("Handler required. Use --handler module:attribute")
        sys.exit(EXIT_CONFIG)

    try:
        handler, request_model = load_handler(args.handler)
    except ConfigurationError as e:
        log.error(str(e))
        sys.exit(EXIT_CONFIG)

    sys.exit(run_debug_session(config, handler, request_model))


if __name__ == "__main__":
    main()
