"""snow-ticket-create: open a new ticket."""

from __future__ import annotations

import argparse
import logging
from typing import Any, Optional, Sequence

from fnal_snow import cli_common

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a new Service Now ticket.")
    parser.add_argument("--summary", required=True, help="Short description of the ticket.")
    parser.add_argument("--description", default="", help="Full description.")
    parser.add_argument("--caller", help="Username of the caller (default: the current user).")
    parser.add_argument("--group", help="Assignment group name.")
    parser.add_argument("--urgency", type=int, choices=(1, 2, 3, 4), help="Urgency, 1 (highest) to 4.")
    cli_common.add_type_arguments(parser, subtype=False)
    cli_common.add_common_arguments(parser)
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    cli_common.configure_logging(args.verbose, args.debug)

    try:
        snow = cli_common.open_snow(args)
        fields: dict[str, Any] = {
            "short_description": args.summary,
            "description": args.description,
        }
        caller = args.caller or cli_common.current_user()
        user = snow.user_by_username(caller)
        if not user:
            return cli_common.report_error(f"no such user: {caller}")
        fields["caller_id"] = user["sys_id"]
        if args.group:
            group = snow.group_by_groupname(args.group)
            if not group:
                return cli_common.report_error(f"no such group: {args.group}")
            fields["assignment_group"] = group["sys_id"]
        if args.urgency:
            fields["urgency"] = args.urgency

        LOGGER.info("Creating %s: %s", args.type, args.summary)
        number = snow.tkt_create(args.type, **fields)
        if not number:
            return cli_common.report_error("failed to create ticket")
        print(f"created {number}")
        for tkt in snow.tkt_by_number(number):
            print()
            print(snow.tkt_string_short(tkt), end="")
    except cli_common.CLI_ERRORS as exc:
        return cli_common.report_error(str(exc))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
