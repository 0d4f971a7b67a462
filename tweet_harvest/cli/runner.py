# tweet_harvest/cli/runner.py

"""Headless CLI runner around the collection orchestrator."""

import asyncio
import json
import logging
import signal
import sys

from rich.console import Console
from rich.table import Table

from tweet_harvest.config.settings import Settings
from tweet_harvest.services.collection_orchestrator import (
    AccountCollection,
    CollectionOrchestrator,
    HarvestReport,
)
from tweet_harvest.sources.twitter_source import TwitterSource
from tweet_harvest.storage.result_cache import ResultCache
from tweet_harvest.storage.session_storage import FileStorage

logger = logging.getLogger("tweet_harvest.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def parse_usernames(raw: list[str]) -> list[str]:
    """Split comma-separated arguments, drop blanks and duplicates."""
    seen: dict[str, None] = {}
    for arg in raw:
        for name in arg.split(","):
            cleaned = name.strip().lstrip("@").lower()
            if cleaned:
                seen.setdefault(cleaned, None)
    return list(seen)


def build_cache() -> ResultCache:
    """Cache persisted under ``data/cache`` so runs can reuse results."""
    return ResultCache(storage=FileStorage())


def _summary_dict(collection: AccountCollection) -> dict[str, object]:
    meta = collection.result.metadata
    stats = collection.result.stats
    return {
        "username": collection.username,
        "from_cache": collection.from_cache,
        "metadata": meta.to_dict(),
        "stats": stats.to_dict(),
    }


def _print_table(report: HarvestReport) -> None:
    """Render a Rich table of per-account summaries to stdout."""
    table = Table(
        title="Collection Summary",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Account", style="bold")
    table.add_column("Posts", justify="right", style="green")
    table.add_column("Pages", justify="right")
    table.add_column("Span (days)", justify="right")
    table.add_column("Avg likes", justify="right")
    table.add_column("Media %", justify="right")
    table.add_column("More data", justify="center")
    table.add_column("Errors", style="red")

    for c in report.collections:
        meta = c.result.metadata
        stats = c.result.stats
        account = f"@{c.username}" + (" (cached)" if c.from_cache else "")
        table.add_row(
            account,
            f"{meta.total_collected:,}",
            str(meta.pages_processed),
            str(meta.time_span_days),
            str(stats.avg_likes),
            f"{stats.has_media_percent}%",
            "yes" if meta.has_more_data else "no",
            "\n".join(meta.errors) or "-",
        )

    Console().print(table)


async def cli_collect(
    usernames: list[str],
    output_format: str,
    use_cache: bool = True,
) -> int:
    """Collect the given accounts and return an exit code (0=ok, 1=fail)."""
    names = parse_usernames(usernames)
    if not names:
        _err.print("[red]No usernames given.[/red]")
        return 1

    if not Settings.TWITTER_BEARER_TOKEN:
        _err.print("[red]TWITTER_BEARER_TOKEN is required[/red]")
        return 1

    orchestrator = CollectionOrchestrator(
        source_factory=TwitterSource,
        cache=build_cache(),
    )
    _err.print(
        f"[bold]Collecting:[/bold] {', '.join('@' + n for n in names)}"
    )

    # Ctrl+C stops at the next page boundary and keeps collected data
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.request_stop)
    except NotImplementedError:
        logger.debug("Signal handlers unsupported on this platform")

    report = await orchestrator.collect_accounts(names, use_cache)

    for error_msg in report.errors:
        _err.print(f"[red]Error: {error_msg}[/red]")

    if not report.collections:
        _err.print("[yellow]Nothing collected.[/yellow]")
        return 1

    quota = orchestrator.gate.status()
    _err.print(
        f"[green]✓ {report.total_records:,} posts from "
        f"{len(report.collections)} account(s)"
        f" ({report.cache_hits} from cache)[/green]"
    )
    _err.print(
        f"[dim]Request quota: {quota.used}/{quota.total} used "
        f"this window[/dim]"
    )

    for c in report.collections:
        if c.result.metadata.errors or c.result.metadata.has_more_data:
            _err.print(
                f"[yellow]@{c.username} is incomplete; "
                f"run again later for more.[/yellow]"
            )

    if output_format == "table":
        _print_table(report)
    else:
        json.dump(
            [_summary_dict(c) for c in report.collections],
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")

    return 0 if not report.errors else 1


def run_cache_stats() -> int:
    """Print cache statistics."""
    stats = build_cache().stats()
    if not stats.is_valid:
        _err.print("[yellow]Cache is empty or expired.[/yellow]")
        return 0

    table = Table(
        title="Cached Collections",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Account", style="bold")
    table.add_column("Posts", justify="right", style="green")
    table.add_column("Span (days)", justify="right")
    table.add_column("Collected", style="dim")

    for entry in stats.entries:
        table.add_row(
            f"@{entry.key}",
            f"{entry.record_count:,}",
            str(entry.time_span_days),
            entry.collection_time.strftime("%Y-%m-%d %H:%M:%S UTC"),
        )

    Console().print(table)
    last = (
        stats.last_updated.strftime("%Y-%m-%d %H:%M:%S UTC")
        if stats.last_updated
        else "never"
    )
    _err.print(
        f"[dim]{stats.total_entries} accounts, "
        f"{stats.total_records:,} posts, "
        f"{round(stats.size_bytes / 1024)} KB, updated {last}[/dim]"
    )
    return 0


def run_clear_cache() -> int:
    """Remove every cached collection."""
    build_cache().clear()
    _err.print("[green]✓ Cache cleared[/green]")
    return 0
