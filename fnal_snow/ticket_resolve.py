"""snow-ticket-resolve: resolve (or re-open) a ticket."""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from fnal_snow import cli_common

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve or re-open a Service Now ticket.")
    parser.add_argument("number", help="Ticket number.")
    parser.add_argument("--close-code", help="Resolution code.")
    parser.add_argument("--text", help="Resolution notes.")
    parser.add_argument("--user", help="Username to record as the resolver (default: the current user).")
    parser.add_argument("--reopen", action="store_true", help="Re-open a resolved ticket instead.")
    cli_common.add_common_arguments(parser)
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    cli_common.configure_logging(args.verbose, args.debug)

    try:
        snow = cli_common.open_snow(args)
        tkt = cli_common.single_ticket(snow, args.number)
        if tkt is None:
            return 1
        number = tkt.result.get("number")
        resolved = snow.tkt_is_resolved(tkt)

        if args.reopen:
            if not resolved:
                return cli_common.report_error(f"{number} is not resolved")
            LOGGER.info("Re-opening %s", number)
            updated = snow.tkt_reopen(tkt)
        else:
            if resolved:
                return cli_common.report_error(f"{number} is already resolved")
            username = args.user or cli_common.current_user()
            user = snow.user_by_username(username)
            LOGGER.info("Resolving %s as %s", number, username)
            updated = snow.tkt_resolve(
                tkt,
                text=args.text,
                close_code=args.close_code,
                user=user["sys_id"] if user else username,
            )

        if len(updated) != 1:
            return cli_common.report_error(f"{len(updated)} tickets updated for {args.number}")
        print(snow.tkt_string_short(updated[0]), end="")
    except cli_common.CLI_ERRORS as exc:
        return cli_common.report_error(str(exc))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
