"""snow-ticket: print reports on Service Now tickets."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from fnal_snow import cli_common

LOGGER = logging.getLogger(__name__)

REPORTS = (
    "base",
    "short",
    "debug",
    "primary",
    "requestor",
    "assignee",
    "description",
    "journal",
    "resolution",
)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print information about Service Now tickets.")
    parser.add_argument(
        "numbers",
        nargs="+",
        help="Ticket number(s), e.g. INC000000123456, RITM0012345 or just 123456.",
    )
    parser.add_argument(
        "--report",
        default="base",
        choices=REPORTS,
        help="Which report to print (default: base).",
    )
    cli_common.add_common_arguments(parser)
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    cli_common.configure_logging(args.verbose, args.debug)

    status = 0
    try:
        snow = cli_common.open_snow(args)
        report = getattr(snow, f"tkt_string_{args.report}")
        printed = 0
        for number in args.numbers:
            LOGGER.debug("%s report for %s", args.report, number)
            results = snow.tkt_by_number(number)
            if not results:
                print(f"no matching ticket: {number}", file=sys.stderr)
                status = 1
                continue
            for tkt in results:
                if printed:
                    print()
                print(report(tkt), end="")
                printed += 1
    except cli_common.CLI_ERRORS as exc:
        return cli_common.report_error(str(exc))
    return status


if __name__ == "__main__":
    raise SystemExit(main())
