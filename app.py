"""
app.py – Command-line entry point.

Runs one IMDb -> Trakt sync and exits, or keeps running on the configured
``sync_schedule``.  Exit status is 0 on success and 1 on any failure.
"""

from __future__ import annotations

import argparse
import logging
import sys

from config import load_config, validate_config
from errors import MissingConfigError
from scheduler import start_scheduler
from sync import run_sync

logger = logging.getLogger(__name__)

LOG_FORMAT: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="imdb-trakt-sync",
        description="Mirror IMDb lists, watchlist and ratings to Trakt.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="run a single sync even if SYNC_SCHEDULE is set",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        config = load_config()
    except ValueError:
        configure_logging("INFO")
        logger.exception("Failure loading configuration")
        return 1
    configure_logging(config.get("log_level", "INFO"))

    missing = validate_config(config)
    if missing:
        logger.error("Failure validating configuration: %s", MissingConfigError(missing))
        return 1

    try:
        if config.get("sync_schedule") and not args.once:
            start_scheduler(config)
        else:
            run_sync(config)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except Exception:
        logger.exception("Sync failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
