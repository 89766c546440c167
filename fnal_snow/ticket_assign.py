"""snow-ticket-assign: assign a ticket to a group and/or user."""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from fnal_snow import cli_common

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Assign a Service Now ticket to a group and/or user.")
    parser.add_argument("number", help="Ticket number.")
    parser.add_argument("--group", help="Assignment group name.")
    who = parser.add_mutually_exclusive_group()
    who.add_argument("--user", help="Username of the new assignee.")
    who.add_argument("--unassign", action="store_true", help="Clear the assignee.")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Skip the check that the user is a member of the assignment group.",
    )
    cli_common.add_common_arguments(parser)
    args = parser.parse_args(argv)
    if not (args.group or args.user or args.unassign):
        parser.error("nothing to do: give --group, --user or --unassign")
    return args


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    cli_common.configure_logging(args.verbose, args.debug)

    try:
        snow = cli_common.open_snow(args)
        tkt = cli_common.single_ticket(snow, args.number)
        if tkt is None:
            return 1

        group_id = None
        group_name = tkt.result.get("dv_assignment_group", "")
        if args.group:
            group = snow.group_by_groupname(args.group)
            if not group:
                return cli_common.report_error(f"no such group: {args.group}")
            group_id, group_name = group["sys_id"], args.group

        user_id = None
        if args.unassign:
            user_id = ""
        elif args.user:
            user = snow.user_by_username(args.user)
            if not user:
                return cli_common.report_error(f"no such user: {args.user}")
            if not args.force and group_name and not snow.user_in_group(args.user, group_name):
                return cli_common.report_error(f"user '{args.user}' is not in group '{group_name}'")
            user_id = user["sys_id"]

        LOGGER.info("Assigning %s (group=%s user=%s)", tkt.result.get("number"), group_id, user_id)
        updated = snow.tkt_assign(tkt, group_id, user_id)
        if len(updated) != 1:
            return cli_common.report_error(f"{len(updated)} tickets updated for {args.number}")
        print(snow.tkt_string_assignee(updated[0]), end="")
    except cli_common.CLI_ERRORS as exc:
        return cli_common.report_error(str(exc))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
