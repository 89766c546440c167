"""Shared argument handling for the snow-ticket command-line tools."""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from typing import Optional

from fnal_snow.config import ConfigError
from fnal_snow.servicenow_api import QueryResult, ServiceNowError
from fnal_snow.snow import TICKET_TYPES, Snow, TicketTypeError
from fnal_snow.tickets.base import UnsupportedOperation, to_epoch

LOGGER = logging.getLogger(__name__)

SUBTYPES = ("open", "closed", "unresolved", "cancelled", "all")

# Errors reported as "error: ..." with exit status 1.
CLI_ERRORS = (ConfigError, ServiceNowError, TicketTypeError, UnsupportedOperation, ValueError)


def configure_logging(verbosity: int, debug: bool = False) -> None:
    level = logging.WARNING
    if debug or verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s - %(message)s")


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=None,
        help="YAML configuration file (default: $SNOW_CONFIG or /etc/snow/config.yaml).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log every ServiceNow query and update.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity.",
    )


def add_type_arguments(parser: argparse.ArgumentParser, subtype: bool = True) -> None:
    parser.add_argument(
        "--type",
        default="incident",
        choices=sorted(TICKET_TYPES),
        help="Ticket type (default: incident).",
    )
    if subtype:
        parser.add_argument(
            "--subtype",
            default=None,
            choices=SUBTYPES,
            help="Only list open, closed, unresolved or cancelled tickets.",
        )


def timestamp(value: str) -> int:
    """argparse type for epoch seconds or 'YYYY-MM-DD[ HH:MM[:SS]]' dates."""
    epoch = to_epoch(value)
    if epoch is None:
        raise argparse.ArgumentTypeError(f"invalid timestamp: {value}")
    return int(epoch)


def current_user() -> str:
    return getpass.getuser()


def open_snow(args: argparse.Namespace) -> Snow:
    LOGGER.debug("Opening Service Now connection (config=%s)", args.config or "default")
    return Snow.init(args.config, debug=args.debug)


def report_error(message: str) -> int:
    print(f"error: {message}", file=sys.stderr)
    return 1


def single_ticket(snow: Snow, number: str) -> Optional[QueryResult]:
    """Return the one ticket matching ``number``; report and return None otherwise."""
    results = snow.tkt_by_number(number)
    if not results:
        report_error(f"no matching ticket: {number}")
        return None
    if len(results) > 1:
        report_error(f"{len(results)} tickets match {number}")
        return None
    return results[0]
