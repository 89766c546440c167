"""snow-ticket-journal: show a ticket's journal, or add an entry to it."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from fnal_snow import cli_common

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Show or add to the journal of a Service Now ticket.")
    parser.add_argument("number", help="Ticket number.")
    entry = parser.add_mutually_exclusive_group()
    entry.add_argument("--comment", help="Add a customer-visible comment.")
    entry.add_argument("--worknote", help="Add an internal work note.")
    cli_common.add_common_arguments(parser)
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    cli_common.configure_logging(args.verbose, args.debug)

    try:
        snow = cli_common.open_snow(args)
        if args.comment or args.worknote:
            tkt = cli_common.single_ticket(snow, args.number)
            if tkt is None:
                return 1
            LOGGER.info("Adding a %s to %s", "comment" if args.comment else "work note", tkt.result.get("number"))
            if args.comment:
                updated = snow.tkt_update(tkt, comments=args.comment)
            else:
                updated = snow.tkt_update(tkt, work_notes=args.worknote)
            if len(updated) != 1:
                return cli_common.report_error(f"{len(updated)} tickets updated for {args.number}")
            tickets = updated
        else:
            tickets = snow.tkt_by_number(args.number)
            if not tickets:
                print(f"no matching ticket: {args.number}", file=sys.stderr)
                return 1

        for tkt in tickets:
            journal = snow.tkt_string_journal(tkt)
            if journal.strip():
                print(journal, end="")
            else:
                print(f"{tkt.result.get('number')}: no journal entries")
    except cli_common.CLI_ERRORS as exc:
        return cli_common.report_error(str(exc))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
