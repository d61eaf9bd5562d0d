import argparse
import csv
import io
import logging
import sys
from decimal import Decimal
from typing import Mapping, Optional, Sequence, TextIO

from models import ClientAccount, quantize_amount
from payments_engine import PaymentsEngine, InputFileError

logger = logging.getLogger(__name__)

OUTPUT_FIELDS = ["client", "available", "held", "total", "locked"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toy-ledger",
        description="Apply a CSV of transactions to client accounts and print the final balances.",
    )
    parser.add_argument("transactions", help="Path to the transactions CSV file.")
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Write the accounts CSV to this file instead of stdout.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log ignored transactions and run stats to stderr (-vv for debug output).",
    )
    return parser


def configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def format_amount(value: Decimal) -> str:
    """Format decimal with exactly 4 decimal places."""
    return f"{quantize_amount(value):f}"


def write_accounts(accounts: Mapping[int, ClientAccount], stream: TextIO) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_FIELDS)
    for client_id in sorted(accounts.keys()):
        account = accounts[client_id]
        writer.writerow([
            client_id,
            format_amount(account.available),
            format_amount(account.held),
            format_amount(account.total),
            str(account.locked).lower(),
        ])


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    engine = PaymentsEngine()
    try:
        accounts = engine.process_file(args.transactions)
    except InputFileError as e:
        logger.error(str(e))
        return 1

    # Render fully before writing so a failure never leaves a partial table
    buffer = io.StringIO()
    write_accounts(accounts, buffer)

    if args.output is None:
        sys.stdout.write(buffer.getvalue())
        return 0

    try:
        with open(args.output, "w", newline="") as f:
            f.write(buffer.getvalue())
    except OSError as e:
        logger.error(f"Cannot write accounts file {args.output}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
