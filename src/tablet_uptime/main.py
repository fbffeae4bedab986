import argparse
import json
import logging
import sys
import time
from datetime import date
from pathlib import Path

from . import analyze
from .data import fetch_heartbeats, parse_heartbeats, parse_timestamp, select_heartbeats
from .errors import InvalidWindow, WindowTooLarge
from .logging_utils import setup_logging
from .options import Options

logger = logging.getLogger(__name__)

VIEWS = ("timeline", "week", "month")


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tablet-uptime",
        description="Compute uptime views for one device from a heartbeat export",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", type=Path, help="Local JSON heartbeat export")
    source.add_argument("--url", help="Remote JSON heartbeat export")
    parser.add_argument("--device", required=True, help="Device id to analyse")
    parser.add_argument("--view", choices=VIEWS, default="timeline")
    parser.add_argument("--mode", default="rolling24h", help="rolling24h or fixedRange")
    parser.add_argument("--interval", type=int, help="Bucket width in minutes")
    parser.add_argument("--start-date", type=date.fromisoformat)
    parser.add_argument("--end-date", type=date.fromisoformat)
    parser.add_argument("--preset", help="Named date range such as 7d or 30d")
    parser.add_argument("--year", type=int)
    parser.add_argument("--month", type=int)
    parser.add_argument(
        "--timezone",
        default=Options.timezone,
        help="IANA timezone used for local days and hours",
    )
    parser.add_argument(
        "--grace-minutes", type=int, default=Options.grace_minutes
    )
    parser.add_argument(
        "--now",
        type=parse_timestamp,
        help="Evaluate as of this instant (ISO, optionally with Z) instead of the current time",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Write JSON here instead of standard output",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> dict:
    options = Options(timezone=args.timezone, grace_minutes=args.grace_minutes)
    rows = fetch_heartbeats(args.file, args.url)
    heartbeats = select_heartbeats(parse_heartbeats(rows), args.device)
    logger.info("Loaded %d heartbeats for %s", len(heartbeats), args.device)

    if args.view == "week":
        result = analyze.week_view(heartbeats, options=options, now=args.now)
    elif args.view == "month":
        result = analyze.month_view(
            heartbeats, args.year, args.month, options=options, now=args.now
        )
    else:
        result = analyze.timeline(
            heartbeats,
            mode=args.mode,
            interval_minutes=args.interval,
            options=options,
            now=args.now,
            start_date=args.start_date,
            end_date=args.end_date,
            preset=args.preset,
        )
    payload = {"device_id": args.device}
    payload.update(result.to_dict())
    return payload


def main(argv=None) -> int:
    args = _parse_args(argv)
    setup_logging(args.debug)

    start = time.monotonic()
    try:
        payload = run(args)
    except (InvalidWindow, WindowTooLarge) as exc:
        logger.error("Invalid window: %s", exc)
        return 2
    except ValueError as exc:
        # unknown timezone or an unreadable export
        logger.error("%s", exc)
        return 1

    text = json.dumps(payload, indent=2)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text + "\n", encoding="utf-8")
        logger.info("Wrote %s view to %s", args.view, args.output)
    else:
        sys.stdout.write(text + "\n")
    logger.debug("Finished in %.2fs", time.monotonic() - start)
    return 0


if __name__ == "__main__":
    sys.exit(main())
