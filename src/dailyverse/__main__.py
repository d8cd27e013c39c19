'''Command line entry point.

    dailyverse generate [--date YYYY-MM-DD] [--reference REF] [--force]
    dailyverse show [--date YYYY-MM-DD]
    dailyverse serve [--host HOST] [--port PORT]
'''
import argparse
import asyncio
import json
import logging
import sys

from . import config
from .errors import DailyVerseError
from .generate import generate_daily
from .store import DailyStore

logger = logging.getLogger("dailyverse")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dailyverse", description="Daily verse generator")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--out", default=config.OUTPUT_DIR, help="output directory (default: %(default)s)")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="generate (or reuse) the verse for a date")
    gen.add_argument("--date", help="ISO date (default: today in %s)" % config.TIMEZONE)
    gen.add_argument("--reference", help="force this reference (skips selection)")
    gen.add_argument("--force", action="store_true", help="regenerate even if the date exists")

    show = sub.add_parser("show", help="print the served snapshot or an archive entry")
    show.add_argument("--date", help="archive date to show (default: current)")

    serve = sub.add_parser("serve", help="run the HTTP server")
    serve.add_argument("--host", default="localhost")
    serve.add_argument("--port", type=int, default=3000)
    return parser


def main(argv: list[str]) -> int:
    args = build_parser().parse_args(argv[1:])
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    match args.command:
        case "generate":
            try:
                record = asyncio.run(generate_daily(args.date, args.reference,
                    force=args.force, out_dir=args.out))
            except (DailyVerseError, ValueError) as err:
                logger.error("generation failed: %s", err)
                return 1
            print(f"{record.date}: {record.reference} ({record.rating.reason or record.rating.category})")
        case "show":
            store = DailyStore(args.out)
            data = store.load_archive_entry(args.date) if args.date else store.load_current()
            if data is None:
                logger.error("nothing to show")
                return 1
            print(json.dumps(data, indent=2, ensure_ascii=False))
        case "serve":
            from .app import app
            app.config["OUTPUT_DIR"] = args.out
            app.run(host=args.host, port=args.port)
    return 0


def entry():
    sys.exit(main(sys.argv))


if __name__ == "__main__":
    entry()
