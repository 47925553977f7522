import csv
import logging
import os
import sys

from payments_engine import PaymentsEngine, write_accounts

LOG_LEVEL_ENV = "PAYMENTS_LOG_LEVEL"
DEFAULT_LOG_LEVEL = logging.WARNING


def configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "").upper()
    level = logging.getLevelName(level_name) if level_name else DEFAULT_LOG_LEVEL
    if not isinstance(level, int):
        level = DEFAULT_LOG_LEVEL

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python main.py <input.csv>", file=sys.stderr)
        return 1

    configure_logging()

    filepath = args[0]
    engine = PaymentsEngine()
    try:
        accounts = engine.process_file(filepath)
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        print(f"Cannot read {filepath}: {e}", file=sys.stderr)
        return 1

    write_accounts(accounts, sys.stdout)

    stats = engine.stats
    print(
        f"Processed: {stats.processed}, "
        f"Failed: {stats.failed}, "
        f"Skipped rows: {stats.skipped_rows}, "
        f"Elapsed: {engine.elapsed:.3f}s",
        file=sys.stderr
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
