# main.py

"""Entry point for the tweet_harvest command line."""

import argparse
import asyncio
import logging
import sys

from tweet_harvest.config.logging_config import setup_logging

logger = logging.getLogger("tweet_harvest.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="tweet_harvest",
        description=(
            "Collect the full reachable post history of X/Twitter "
            "accounts under the API's rate limits."
        ),
    )
    parser.add_argument(
        "usernames",
        nargs="*",
        help="Account names to collect (comma or space separated).",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format for the summary (default: json).",
    )
    parser.add_argument(
        "--no-cache",
        action="store_false",
        dest="use_cache",
        help="Ignore recent cached results and collect again.",
    )
    parser.add_argument(
        "--cache-stats",
        action="store_true",
        default=False,
        dest="cache_stats",
        help="Show what is cached and exit.",
    )
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        default=False,
        dest="clear_cache",
        help="Remove all cached collections and exit.",
    )
    return parser


def _run_collect(args: argparse.Namespace) -> None:
    from tweet_harvest.cli.runner import cli_collect

    exit_code = asyncio.run(
        cli_collect(
            usernames=args.usernames,
            output_format=args.output_format,
            use_cache=args.use_cache,
        )
    )
    sys.exit(exit_code)


def main() -> None:
    """Route to a cache command or a collection run."""
    log_file = setup_logging()
    logger.info("tweet_harvest starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.clear_cache:
        from tweet_harvest.cli.runner import run_clear_cache

        sys.exit(run_clear_cache())
    elif args.cache_stats:
        from tweet_harvest.cli.runner import run_cache_stats

        sys.exit(run_cache_stats())
    elif not args.usernames:
        parser.print_help(sys.stderr)
        sys.exit(2)
    else:
        try:
            _run_collect(args)
        except Exception:
            logger.critical("Fatal error during collection", exc_info=True)
            raise


if __name__ == "__main__":
    main()
