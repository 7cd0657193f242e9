"""
CLI commands for workspace-indexer.

Provides the `wsi` command-line interface for project initialization,
indexing, block inspection, semantic search and status checks.
"""

import asyncio
import signal
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from config import ConfigurationLoader
from core.embeddings import InitError, LocalEmbeddingProvider, ProviderNotReady
from core.indexer import CancellationToken, CodebaseIndexer, IndexingFailed, IndexingRun
from core.logging_setup import setup_logging
from core.models import ProjectConfig, SourceDocument
from core.parser import GrammarUnavailable, QueryError, SyntaxTreeCache, extract_blocks, language_for_path
from core.storage import InMemoryVectorStore, PersistenceFailure, QdrantVectorStore

from . import __version__

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="wsi")
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def main(verbose: bool):
    """
    Workspace Indexer CLI.

    Index a source tree into semantic block embeddings and search it.
    """
    setup_logging(level="DEBUG" if verbose else None)


def _project_option(function):
    return click.option(
        '--project', '-p',
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        default=None,
        help='Project root (default: current directory)'
    )(function)


def _load_config(project: Optional[Path]) -> ProjectConfig:
    return ConfigurationLoader().load_project_config(project or Path.cwd())


@main.command()
@_project_option
@click.option('--force', '-f', is_flag=True, help='Overwrite existing configuration')
def init(project: Optional[Path], force: bool):
    """Write the project configuration."""
    project_path = (project or Path.cwd()).resolve()
    loader = ConfigurationLoader()

    existing = loader.load_project_config(project_path)
    if existing.is_initialized and not force:
        console.print("[yellow]⚠️  Project already initialized. Use --force to overwrite.[/yellow]")
        return

    try:
        config = loader.setup_project(project_path, overwrite=force)
    except ValueError as e:
        console.print(f"[red]❌ Failed to create configuration: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✅ Created {config.get_config_file()}[/green]")
    console.print(f"[blue]📂 Project: {config.name}[/blue]")
    console.print(f"[blue]🗄️  Collection: {config.qdrant.collection_name}[/blue]")
    if not config.embedding.is_model_available:
        console.print(f"[yellow]⚠️  Model files not found at {config.embedding.model_path}[/yellow]")


@main.command()
@_project_option
@click.argument('directories', nargs=-1, type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option(
    '--store',
    type=click.Choice(['memory', 'qdrant']),
    default='qdrant',
    show_default=True,
    help='Where embeddings are written'
)
def index(project: Optional[Path], directories: Tuple[Path, ...], store: str):
    """Index DIRECTORIES (default: the project root)."""
    config = _load_config(project)
    targets = list(directories) or [config.path]

    console.print("[blue]📚 Starting indexing...[/blue]")
    try:
        run = asyncio.run(_run_indexing(config, targets, store))
    except InitError as e:
        console.print(f"[red]❌ Embedding provider unavailable: {e}[/red]")
        sys.exit(1)
    except IndexingFailed as e:
        console.print(f"[red]❌ Indexing failed: {e}[/red]")
        sys.exit(1)

    if run.is_cancelled:
        console.print(f"[yellow]⚠️  Indexing cancelled after {run.processed_count}/{run.total_count} files[/yellow]")
        return

    console.print(
        f"[green]🎉 Indexed {run.files_indexed} files "
        f"({run.blocks_indexed} blocks, {run.files_skipped} skipped) "
        f"in {run.duration_seconds:.1f}s[/green]"
    )


async def _run_indexing(config: ProjectConfig, directories: List[Path], store_kind: str) -> IndexingRun:
    embedder = LocalEmbeddingProvider(config.embedding)
    await embedder.init()

    if store_kind == 'memory':
        store = InMemoryVectorStore()
    else:
        store = QdrantVectorStore(config.qdrant)

    indexer = CodebaseIndexer(embedder, store, SyntaxTreeCache(), config.indexing)
    token = CancellationToken()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        pass

    updates = indexer.refresh(directories, token)
    run = indexer.current_run

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            transient=True
        ) as progress:
            task = progress.add_task("Scanning...", total=None)
            async for update in updates:
                progress.update(
                    task,
                    total=update.total_count,
                    completed=update.processed_count,
                    description=update.description
                )
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        if isinstance(store, QdrantVectorStore):
            await store.close()

    return run


@main.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def blocks(file: Path):
    """List the methods and classes extracted from FILE."""
    language_id = language_for_path(file)
    if language_id is None:
        console.print(f"[red]❌ Unsupported file type: {file.suffix}[/red]")
        sys.exit(1)

    document = SourceDocument(
        identity=str(file.resolve()),
        text=file.read_text(encoding='utf-8'),
        language_id=language_id
    )

    try:
        parsed = SyntaxTreeCache().parse(document)
        extracted = extract_blocks(parsed)
    except (GrammarUnavailable, QueryError) as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    table = Table(title=f"{file.name} ({language_id})")
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Lines", style="dim")
    table.add_column("Comment", style="dim")

    for block in extracted:
        block_range = block.block_range
        comment = ""
        if block.comment_range is not None:
            comment = f"{block.comment_range.start.line + 1}-{block.comment_range.end.line + 1}"
        table.add_row(
            block.kind.value,
            block.identifier,
            f"{block_range.start.line + 1}-{block_range.end.line + 1}",
            comment
        )

    console.print(table)


@main.command()
@_project_option
@click.argument('query')
@click.option('--limit', '-n', default=10, show_default=True, type=click.IntRange(1, 100), help='Number of results')
def search(project: Optional[Path], query: str, limit: int):
    """Find the blocks closest to QUERY in the Qdrant collection."""
    config = _load_config(project)

    try:
        hits = asyncio.run(_run_search(config, query, limit))
    except (InitError, ProviderNotReady) as e:
        console.print(f"[red]❌ Embedding provider unavailable: {e}[/red]")
        sys.exit(1)
    except PersistenceFailure as e:
        console.print(f"[red]❌ Search failed: {e}[/red]")
        sys.exit(1)

    if not hits:
        console.print("[yellow]No results[/yellow]")
        return

    table = Table(title=f"Results for '{query}'")
    table.add_column("#", style="dim", no_wrap=True)
    table.add_column("Score", style="green")
    table.add_column("Block", style="cyan")
    table.add_column("Location", style="white")

    for hit in hits:
        record = hit.record
        table.add_row(
            str(hit.rank),
            f"{hit.score:.3f}",
            record.block_identifier,
            f"{record.document_identity}:{record.source_range.start.line + 1}"
        )

    console.print(table)


async def _run_search(config: ProjectConfig, query: str, limit: int):
    embedder = LocalEmbeddingProvider(config.embedding)
    await embedder.init()

    store = QdrantVectorStore(config.qdrant)
    try:
        indexer = CodebaseIndexer(embedder, store, config=config.indexing)
        return await indexer.search(query, limit)
    finally:
        await store.close()


@main.command()
@_project_option
def status(project: Optional[Path]):
    """Check configuration, model files and Qdrant."""
    config = _load_config(project)

    table = Table(title="Workspace Indexer Status")
    table.add_column("Component", style="cyan", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    if config.is_initialized:
        table.add_row("Project Config", "[green]✅ Initialized[/green]", str(config.get_config_file()))
    else:
        table.add_row("Project Config", "[yellow]⚠️  Defaults[/yellow]", "Run 'wsi init' to save a configuration")

    if config.embedding.is_model_available:
        table.add_row("Embedding Model", "[green]✅ Available[/green]", str(config.embedding.model_path))
    else:
        table.add_row("Embedding Model", "[red]❌ Missing[/red]", str(config.embedding.model_path))

    health = asyncio.run(_check_qdrant(config))
    if health["status"] == "healthy":
        table.add_row("Qdrant Database", "[green]✅ Connected[/green]", config.qdrant.url)
    else:
        table.add_row("Qdrant Database", "[red]❌ Not available[/red]", health.get("error", config.qdrant.url))

    console.print(table)


async def _check_qdrant(config: ProjectConfig):
    store = QdrantVectorStore(config.qdrant)
    try:
        return await store.health_check()
    finally:
        await store.close()


if __name__ == "__main__":
    main()
