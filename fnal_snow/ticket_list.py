"""snow-ticket-list: list tickets by assignee, group or submitter."""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from fnal_snow import cli_common
from fnal_snow.snow import Snow

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="List Service Now tickets assigned to a user or group, or submitted by a user.",
    )
    who = parser.add_mutually_exclusive_group()
    who.add_argument("--user", help="List tickets assigned to this user (default: the current user).")
    who.add_argument("--group", help="List tickets assigned to this group.")
    who.add_argument("--submitted-by", metavar="USER", help="List tickets submitted by this user.")
    parser.add_argument(
        "--unassigned",
        action="store_true",
        help="With --group, list unresolved tickets with no assignee.",
    )
    parser.add_argument(
        "--submit-before",
        type=cli_common.timestamp,
        metavar="TIMESTAMP",
        help="With --group, list unresolved tickets submitted before this time "
        "(epoch seconds or YYYY-MM-DD HH:MM:SS).",
    )
    cli_common.add_type_arguments(parser)
    cli_common.add_common_arguments(parser)
    args = parser.parse_args(argv)
    if (args.unassigned or args.submit_before) and not args.group:
        parser.error("--unassigned and --submit-before require --group")
    if args.unassigned and args.submit_before:
        parser.error("--unassigned and --submit-before are mutually exclusive")
    return args


def list_tickets(snow: Snow, args: argparse.Namespace) -> str:
    subtype = None if args.subtype == "all" else args.subtype
    LOGGER.debug("Listing %s tickets (subtype=%s)", args.type, subtype or "all")
    if args.group:
        if args.unassigned:
            return snow.text_tktlist_unassigned(args.type, args.group)
        if args.submit_before:
            return snow.text_tktlist_unresolved(args.type, args.group, args.submit_before)
        return snow.text_tktlist_group(args.type, args.group, subtype)
    if args.submitted_by:
        return snow.text_tktlist_submit(args.type, args.submitted_by, subtype)
    return snow.text_tktlist_assignee(args.type, args.user or cli_common.current_user(), subtype)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    cli_common.configure_logging(args.verbose, args.debug)

    try:
        snow = cli_common.open_snow(args)
        print(list_tickets(snow, args), end="")
    except cli_common.CLI_ERRORS as exc:
        return cli_common.report_error(str(exc))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
