"""CLI entry point for kindex."""

import logging
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import DEFAULT_CONFIG, copy_config, load_config
from .embeddings import get_embedder
from .errors import KindexError
from .service import KnowledgeBase

console = Console()


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--root", default=None, help="Knowledge store root (overrides config)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path, root, verbose):
    """kindex - ingest, index and search your knowledge documents."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["root"] = root
    ctx.obj["verbose"] = verbose


def _get_config(ctx) -> dict:
    config = load_config(ctx.obj.get("config_path"))
    if ctx.obj.get("root"):
        config["root_path"] = str(Path(ctx.obj["root"]).expanduser().resolve())
    level = "DEBUG" if ctx.obj.get("verbose") else config.get("log_level", "INFO")
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    return config


def _get_kb(ctx) -> KnowledgeBase:
    config = _get_config(ctx)
    return KnowledgeBase(config["root_path"], config=config, embedder=get_embedder(config))


def _split(values: tuple[str, ...]) -> list[str]:
    """Accept both repeated options and comma-separated values."""
    out = []
    for value in values:
        out.extend(v.strip() for v in value.split(",") if v.strip())
    return out


@cli.command()
@click.option("--path", default=None, help="Custom store path")
@click.pass_context
def init(ctx, path):
    """Initialize a new knowledge store and configuration."""
    config = _get_config(ctx)
    root = Path(path).expanduser().resolve() if path else Path(config["root_path"])

    console.print(f"[bold green]Initializing kindex at {root}[/]")
    kb = KnowledgeBase(root, config=config)
    kb.initialize()

    config_file = root.parent / "config.yaml"
    if not config_file.exists():
        cfg = copy_config(DEFAULT_CONFIG)
        cfg["root_path"] = str(root)
        config_file.write_text(yaml.dump(cfg, default_flow_style=False, sort_keys=False))
        console.print(f"  Created config: {config_file}")

    console.print("[bold green]✓ kindex initialized![/]")
    console.print("  Run: kindex add <file> --title ... --category ...")


@cli.command()
@click.argument("file_path", type=click.Path(dir_okay=False))
@click.option("--title", "-t", required=True, help="Document title")
@click.option("--category", "-k", required=True, help="Category tag")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable or comma-separated)")
@click.option("--description", "-d", default="", help="Short description")
@click.option("--post-type", "post_types", multiple=True, help="Post type the document feeds")
@click.option("--text-file", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Pre-extracted UTF-8 text for formats without a built-in parser")
@click.pass_context
def add(ctx, file_path, title, category, tags, description, post_types, text_file):
    """Add a document to the knowledge index."""
    kb = _get_kb(ctx)
    text = Path(text_file).read_text(encoding="utf-8") if text_file else None
    try:
        summary = kb.add(
            file_path,
            title=title,
            category=category,
            tags=_split(tags),
            description=description,
            post_types=_split(post_types),
            text=text,
        )
    except KindexError as e:
        console.print(f"[red]{e}[/]")
        ctx.exit(1)

    console.print(f"[green]✓ Added {summary['id']}[/] {summary['title']}")
    console.print(f"  Status: {summary['status']}, chunks: {summary['chunkCount']}, embedded: {summary['embedded']}")


@cli.command()
@click.argument("query")
@click.option("--category", "-k", default=None, help="Filter by category")
@click.option("--tag", "tags", multiple=True, help="Filter by tag")
@click.option("--n", "-n", "limit", default=None, type=int, help="Number of results")
@click.pass_context
def search(ctx, query, category, tags, limit):
    """Search the knowledge index."""
    kb = _get_kb(ctx)
    try:
        results = kb.search(query, category=category, tags=_split(tags), limit=limit)
    except KindexError as e:
        console.print(f"[red]{e}[/]")
        ctx.exit(1)

    if not results:
        console.print("[yellow]No results found.[/]")
        return

    table = Table(title="Search Results")
    table.add_column("#", style="dim", width=3)
    table.add_column("Title", style="cyan")
    table.add_column("Category")
    table.add_column("Tags")
    table.add_column("Score", justify="right", style="green")
    table.add_column("ID", style="dim")

    for i, r in enumerate(results, 1):
        score = f"{r['score']:.3f}" if isinstance(r["score"], float) else str(r["score"])
        table.add_row(str(i), r["title"], r["category"], ", ".join(r["tags"]), score, r["id"])

    console.print(table)


@cli.command("list")
@click.option("--category", "-k", default=None, help="Filter by category")
@click.option("--status", default=None, type=click.Choice(["pending", "completed", "error"]))
@click.option("--sort", "sort_by", default="createdAt",
              type=click.Choice(["createdAt", "updatedAt", "usageCount"]))
@click.pass_context
def list_cmd(ctx, category, status, sort_by):
    """List indexed documents."""
    kb = _get_kb(ctx)
    try:
        items = kb.list_items(category=category, status=status, sort_by=sort_by)
    except KindexError as e:
        console.print(f"[red]{e}[/]")
        ctx.exit(1)

    if not items:
        console.print("[yellow]No documents indexed.[/]")
        return

    table = Table(title=f"Documents ({len(items)})")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Category")
    table.add_column("Status")
    table.add_column("Chunks", justify="right")
    table.add_column("Used", justify="right")
    for s in items:
        table.add_row(s["id"], s["title"], s["category"], s["status"],
                      str(s["chunkCount"]), str(s["timesReferenced"]))
    console.print(table)


@cli.command()
@click.argument("item_id")
@click.option("--chunks", "show_chunks", is_flag=True, help="Print the item's chunks")
@click.pass_context
def show(ctx, item_id, show_chunks):
    """Show one document."""
    kb = _get_kb(ctx)
    try:
        item = kb.get(item_id)
        chunks = kb.get_chunks(item_id) if show_chunks and item.processing.chunked else []
    except KindexError as e:
        console.print(f"[red]{e}[/]")
        ctx.exit(1)

    data = item.to_dict()
    data.pop("embedding", None)
    console.print(yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True))
    for chunk in chunks:
        console.print(f"[bold]#{chunk.index}[/] [dim][{chunk.start_offset}, {chunk.end_offset})[/]")
        console.print(chunk.content)


@cli.command()
@click.argument("item_id")
@click.option("--remove-file", is_flag=True, help="Also delete the stored copy")
@click.pass_context
def delete(ctx, item_id, remove_file):
    """Delete a document from the index."""
    kb = _get_kb(ctx)
    try:
        result = kb.delete(item_id, remove_file=remove_file)
    except KindexError as e:
        console.print(f"[red]{e}[/]")
        ctx.exit(1)
    console.print(f"[green]✓ Deleted {result['deleted']}[/] {result['title']}")


@cli.command()
@click.argument("item_id")
@click.option("--post", "generated_post", is_flag=True, help="Also count a generated post")
@click.pass_context
def use(ctx, item_id, generated_post):
    """Record that a document was referenced."""
    kb = _get_kb(ctx)
    try:
        item = kb.record_usage(item_id, generated_post=generated_post)
    except KindexError as e:
        console.print(f"[red]{e}[/]")
        ctx.exit(1)
    console.print(f"[green]✓ {item.title}[/] referenced {item.usage.times_referenced} time(s), "
                  f"{item.usage.generated_posts_count} post(s)")


@cli.command()
@click.option("--force", is_flag=True, help="Request a full re-processing pass")
@click.pass_context
def sync(ctx, force):
    """Reconcile the index with the stored files."""
    kb = _get_kb(ctx)
    console.print("[blue]Reconciling index...[/]")
    try:
        result = kb.sync(force=force)
    except KindexError as e:
        console.print(f"[red]{e}[/]")
        ctx.exit(1)

    console.print("[green]✓ Sync complete[/]")
    console.print(f"  Orphaned items removed: {result['orphaned']}")
    console.print(f"  Untracked files: {result['newFiles']}")
    for path in result["untracked"]:
        console.print(f"    → {path}")
    if result["untracked"]:
        console.print("  [dim]Register them with 'kindex add'.[/]")


@cli.command()
@click.pass_context
def embed(ctx):
    """Embed documents that have no embedding yet."""
    kb = _get_kb(ctx)
    try:
        count = kb.embed_pending()
    except KindexError as e:
        console.print(f"[red]{e}[/]")
        ctx.exit(1)
    console.print(f"[green]✓ Embedded {count} document(s)[/]")


@cli.command()
@click.pass_context
def stats(ctx):
    """Show index statistics."""
    kb = _get_kb(ctx)
    try:
        s = kb.stats()
    except KindexError as e:
        console.print(f"[red]{e}[/]")
        ctx.exit(1)

    console.print("\n[bold]📊 Index Statistics[/]")
    console.print(f"  Total documents: {s['totalItems']}")
    console.print(f"  Total chunks: {s['totalChunks']}")
    console.print(f"  Embedded documents: {s['embeddedItems']}")
    console.print(f"  References: {s['totalReferences']}, generated posts: {s['totalGeneratedPosts']}")
    console.print("\n  [bold]Categories:[/]")
    for category, count in sorted(s["perCategoryCounts"].items()):
        console.print(f"    {category}: {count}")
    chunking = s["config"]["chunking"]
    console.print(f"\n  Chunking: {chunking['maxChunkSize']} chars, overlap {chunking['overlap']}")


if __name__ == "__main__":
    cli()
