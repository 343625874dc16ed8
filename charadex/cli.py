"""charadex CLI entry point."""

import argparse
import asyncio
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import Config
from .core.crawl_queue import CrawlQueue
from .core.importer import ImportWorkJob
from .core.shutdown import stop_on_signals
from .core.smart_queue import SmartQueueJob
from .core.updater import UpdateWorkJob
from .db.indexes import generate_indexes
from .db.store import CatalogStore
from .enums import WorkType
from .logging_config import setup_logging
from .ranking.engine import RankingEngine
from .scrapers import registry
from .scrapers.base import SearchCriteria
from .scrapers.cache import WorkCache
from .scrapers.errors import CatalogError, WorkNotFoundError
from .utils.title_utils import is_valid_slug

console = Console()

RARITY_STYLES = {
    "legendary": "bold yellow",
    "epic": "magenta",
    "rare": "blue",
    "uncommon": "green",
    "common": "dim",
}

CACHE_PREVIEW = 10


def print_banner():
    banner = Text()
    banner.append("charadex", style="bold cyan")
    banner.append(" - anime, manga and game character catalog", style="cyan")
    console.print(Panel(banner, border_style="cyan", padding=(0, 2)))


def work_ref(value: str) -> tuple[str, str]:
    """argparse type for ``type/id`` arguments such as ``anime/cowboy-bebop``."""
    work_type, sep, work_id = value.partition("/")
    if not sep or work_type not in {t.value for t in WorkType} or not is_valid_slug(work_id):
        raise argparse.ArgumentTypeError(f"expected type/id (e.g. anime/cowboy-bebop), got '{value}'")
    return work_type, work_id


def _store() -> CatalogStore:
    return CatalogStore(Config.get_data_dir())


def _crawl_queue(args) -> CrawlQueue:
    data_dir = Config.get_data_dir()
    importer = ImportWorkJob.for_type(data_dir, args.type, args.source)
    return CrawlQueue(
        data_dir,
        args.type,
        importer,
        max_works=getattr(args, "max", None) or 50,
        character_limit=Config.CHARACTER_LIMIT,
        delay_between_imports=Config.DELAY_BETWEEN_IMPORTS,
        delay_between_pages=Config.DELAY_BETWEEN_PAGES,
    )


# ─── Commands ────────────────────────────────────────────────────────────────

async def cmd_import(args):
    job = ImportWorkJob.for_type(Config.get_data_dir(), args.type, args.source)
    criteria = SearchCriteria(id=args.id, search=args.search, slug=args.slug, type=WorkType(args.type))
    result = await job.import_work(
        criteria, skip_characters=args.skip_characters, character_limit=args.limit
    )
    work = result["work"]
    chars = result["characters"] or {}
    console.print(
        f"[green]Imported {work['title']}[/green] ({work['type']}/{work['id']}): "
        f"{chars.get('added', 0)} new, {chars.get('updated', 0)} updated, "
        f"{chars.get('total', 0)} characters in {result['duration']}s"
    )


async def cmd_lookup(args):
    source = registry.resolve_source(args.type, args.source)
    client = registry.create_client(source)
    try:
        results = await client.search_multiple_media(args.query, WorkType(args.type), limit=args.limit)
    finally:
        client.close()

    rows = registry.get_normalizer(source).normalize_media_list(results)
    if not rows:
        console.print(f"[yellow]No {args.type} matching '{args.query}' on {source}[/yellow]")
        return

    table = Table(title=f"{source} results for '{args.query}'")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Year")
    table.add_column("Format")
    table.add_column("Popularity", justify="right")
    for row in rows:
        table.add_row(
            str(row["id"]), row["title"] or "?", str(row.get("year") or ""),
            str(row.get("format") or ""), str(row.get("popularity") or ""),
        )
    console.print(table)
    console.print(f"[dim]Import one with: charadex import --type {args.type} --source {source} --id <ID>[/dim]")


async def cmd_crawl(args):
    queue = _crawl_queue(args)
    with stop_on_signals(queue.request_stop):
        report = await queue.crawl(max_works=args.max, continue_from_queue=args.continue_queue)
    console.print(
        f"[green]Crawl finished[/green]: {report['processed']} processed, "
        f"{report['skipped']} skipped, {report['failed']} failed, {report['remaining']} remaining"
    )
    console.print(
        f"[dim]Totals: {report['total_processed']} works, {report['total_characters']} characters[/dim]"
    )


async def cmd_grow_queue(args):
    result = await _crawl_queue(args).grow_queue(count=args.count, page=args.page)
    console.print(f"[green]Added {result['added']} works[/green] ({result['total_queue']} queued)")


async def cmd_status(args):
    status = _crawl_queue(args).status()
    console.print(Panel(
        f"Phase: {status['phase']}\n"
        f"Queued: {status['queue_length']}\n"
        f"Processed: {status['processed_count']}\n"
        f"Characters: {status['total_characters']}\n"
        f"Last run: {status['last_run'] or 'never'}",
        title=f"[dim]{status['type']} crawl[/dim]",
        border_style="dim",
    ))
    for position, entry in enumerate(status["next"], start=1):
        console.print(f"  {position}. {entry['title']} [dim](id {entry['id']})[/dim]")
    if args.processed:
        listing = _crawl_queue(args).list_processed(limit=args.processed)
        console.print(f"\n[dim]{listing['total']} processed ids:[/dim] {', '.join(listing['ids'])}")


async def cmd_clear_queue(args):
    _crawl_queue(args).clear_queue()
    console.print("[green]Queue cleared[/green]")


async def cmd_update(args):
    job = UpdateWorkJob.for_data_dir(Config.get_data_dir(), update_characters=not args.skip_characters)
    if args.work:
        work_type, work_id = args.work
        result = await job.update_work(work_type, work_id)
        console.print(f"[green]Updated {work_type}/{work_id}[/green]")
        if result["characters"]:
            console.print(f"[dim]{result['characters']['total']} characters[/dim]")
    else:
        report = await job.update_all(delay_between=args.delay)
        console.print(
            f"[green]{report['updated']}/{report['total']} works updated[/green], {report['errors']} errors"
        )


async def cmd_search(args):
    work_type, work_id = args.work
    results = _store().find_characters(work_type, work_id, name=args.query, role=args.role, tag=args.tag)
    console.print(f"\n[bold]{len(results)} characters found[/bold]\n")
    for character in results:
        console.print(f"  {character.get('name')} [dim]({character.get('role') or 'unknown'})[/dim]")
        if character.get("alt_names"):
            console.print(f"    [dim]Aka: {', '.join(character['alt_names'])}[/dim]")


async def cmd_stats(args):
    work_type, work_id = args.work
    stats = _store().get_work_stats(work_type, work_id)
    if stats is None:
        raise WorkNotFoundError(f"No characters stored for {work_type}/{work_id}")

    lines = [
        f"ID: {stats['work_id']}",
        f"Type: {stats['type']}",
        f"Characters: {stats['total_characters']}",
        "",
        *(f"  {role}: {count}" for role, count in sorted(stats["by_role"].items())),
        "",
        f"Last updated: {stats['last_updated'] or 'never'}",
    ]
    console.print(Panel("\n".join(lines), title=f"[bold]{stats['title'] or work_id}[/bold]", border_style="dim"))


async def cmd_list(args):
    store = _store()
    current_type = None
    count = 0
    for work_type, work_id in store.list_works(args.type):
        if work_type != current_type:
            console.print(f"\n[bold]{work_type.upper()}[/bold]")
            current_type = work_type
        info = store.get_work(work_type, work_id) or {}
        console.print(f"  - {info.get('title') or work_id} [dim]({work_id})[/dim]")
        count += 1
    if not count:
        console.print("[dim]No works stored yet[/dim]")


async def cmd_cache(args):
    data_dir = Config.get_data_dir()
    cache = WorkCache.for_data_dir(data_dir)
    cache.load()

    if args.action == "clear":
        cache.clear()
        cache.save()
        console.print("[green]Work cache cleared[/green]")
        return
    if args.action == "rebuild":
        total = cache.rebuild_from(CatalogStore(data_dir))
        cache.save()
        console.print(f"[green]Work cache rebuilt[/green]: {total} works")
        return

    stats = cache.stats()
    console.print(f"File: {stats['cache_file']}\nWorks: {stats['total_works']}")
    recent = cache.list_processed()[-CACHE_PREVIEW:]
    if recent:
        console.print("\n[dim]Most recently processed:[/dim]")
    for work_id in recent:
        metadata = cache.get_metadata(work_id) or {}
        processed_at = (metadata.get("processedAt") or "")[:10] or "n/a"
        console.print(f"  {work_id} {metadata.get('title') or ''} [dim]({processed_at})[/dim]")


async def cmd_rank(args):
    snapshot = RankingEngine(Config.get_data_dir()).run()
    table = Table(title=f"Top {args.top} of {snapshot.total_characters} characters")
    table.add_column("#", justify="right")
    table.add_column("Character")
    table.add_column("Work")
    table.add_column("Rarity")
    table.add_column("Score", justify="right")
    for row in snapshot.characters[: args.top]:
        table.add_row(
            str(row.rank), row.name, row.workTitle,
            Text(row.rarity, style=RARITY_STYLES.get(row.rarity, "")), f"{row.score:.4f}",
        )
    console.print(table)
    console.print("[dim]" + ", ".join(f"{k}: {v}" for k, v in snapshot.distribution.items()) + "[/dim]")


async def cmd_index(args):
    stats = generate_indexes(Config.get_data_dir())
    console.print(
        f"[green]Indexes written[/green]: {stats['total_works']} works, "
        f"{stats['total_characters']} characters"
    )


async def cmd_smart_queue(args):
    job = SmartQueueJob(Config.get_data_dir(), work_types=tuple(WorkType(t) for t in args.types))
    if args.reset:
        job.reset()
        return
    state = await job.run(max_cycles=args.cycles)
    console.print(
        f"[cyan]Smart queue stopped after {state['stats']['totalCycles']} cycles[/cyan] "
        f"({state['stats']['totalProcessed']} works)"
    )


# ─── Parser ──────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="charadex", description="Character catalog pipeline")
    parser.add_argument("--log-level", default=Config.LOG_LEVEL, help="Logging level (default: from LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)
    types = [t.value for t in WorkType]

    def typed(name, help_text, handler):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--type", choices=types, default="anime", help="Work type (default: anime)")
        p.add_argument("--source", help="anilist, mal or rawg (default: by type)")
        p.set_defaults(handler=handler)
        return p

    p = typed("import", "Import one work and its characters", cmd_import)
    target = p.add_mutually_exclusive_group(required=True)
    target.add_argument("--id", help="Source id")
    target.add_argument("--search", help="Title to search for")
    target.add_argument("--slug", help="Source slug (RAWG)")
    p.add_argument("--limit", type=int, help="Maximum characters to import")
    p.add_argument("--skip-characters", action="store_true", help="Only import the work record")

    p = typed("lookup", "Search a source for works to import", cmd_lookup)
    p.add_argument("query", help="Title to search for")
    p.add_argument("--limit", type=int, default=10, help="Results to show (default: 10)")

    p = typed("crawl", "Discover popular works and import them", cmd_crawl)
    p.add_argument("--max", type=int, default=50, help="Maximum works this run (default: 50)")
    p.add_argument("--continue", dest="continue_queue", action="store_true",
                   help="Drain the existing queue before discovering more")

    p = typed("grow-queue", "Discover works without importing them", cmd_grow_queue)
    p.add_argument("--count", type=int, default=20, help="Works to add (default: 20)")
    p.add_argument("--page", type=int, default=1, help="First discovery page (default: 1)")

    p = typed("status", "Show crawl state", cmd_status)
    p.add_argument("--processed", type=int, default=0, metavar="N", help="Also list N processed ids")

    typed("clear-queue", "Drop all queued works", cmd_clear_queue)

    p = sub.add_parser("update", help="Re-fetch stored works from their source")
    p.add_argument("work", nargs="?", type=work_ref, help="type/id of a single work (default: all)")
    p.add_argument("--skip-characters", action="store_true", help="Only refresh the work record")
    p.add_argument("--delay", type=float, default=0, help="Seconds between works")
    p.set_defaults(handler=cmd_update)

    p = sub.add_parser("search", help="Find characters of a stored work")
    p.add_argument("work", type=work_ref, help="type/id of the work")
    p.add_argument("query", nargs="?", help="Name or alternative-name substring")
    p.add_argument("--role", help="Exact role, e.g. protagonist")
    p.add_argument("--tag", help="Exact tag")
    p.set_defaults(handler=cmd_search)

    p = sub.add_parser("stats", help="Character counts of a stored work")
    p.add_argument("work", type=work_ref, help="type/id of the work")
    p.set_defaults(handler=cmd_stats)

    p = sub.add_parser("list", help="List stored works")
    p.add_argument("type", nargs="?", choices=types, help="Only this work type")
    p.set_defaults(handler=cmd_list)

    p = sub.add_parser("cache", help="Inspect or reset the processed-work cache")
    p.add_argument("action", choices=["status", "clear", "rebuild"], help="rebuild re-derives it from the store")
    p.set_defaults(handler=cmd_cache)

    p = sub.add_parser("rank", help="Compute rarity tiers and the global ranking")
    p.add_argument("--top", type=int, default=10, help="Rows to print (default: 10)")
    p.set_defaults(handler=cmd_rank)

    p = sub.add_parser("index", help="Regenerate index.json files and database stats")
    p.set_defaults(handler=cmd_index)

    p = sub.add_parser("smart-queue", help="Rotate slow crawls over several types until stopped")
    p.add_argument("--types", nargs="+", choices=types, default=["anime", "manga"])
    p.add_argument("--cycles", type=int, default=0, help="Stop after N cycles (default: run forever)")
    p.add_argument("--reset", action="store_true", help="Reset the rotation state and exit")
    p.set_defaults(handler=cmd_smart_queue)

    return parser


def main(argv=None):
    """Entry point for the CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    print_banner()

    for issue in Config.validate():
        console.print(f"[yellow]• {issue}[/yellow]")

    try:
        asyncio.run(args.handler(args))
    except CatalogError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted[/dim]")
        sys.exit(130)


if __name__ == "__main__":
    main()
