"""
RVDB CLI Commands

Command line interface for connecting, exporting and searching a Redis Vector DB.

Example:
    rvdb ping
    rvdb export -o redis_data_export.json
    rvdb search "invoices overdue" -k 5
"""

import asyncio
import json
import logging
import signal
import sys
from contextlib import suppress

import click
import structlog
from dotenv import load_dotenv

from rvdb import __version__
from rvdb.config import ExportConfig, RedisConfig, SearchConfig
from rvdb.embeddings import SentenceTransformerEmbedder
from rvdb.export import ExportState, RedisExporter
from rvdb.search import SimilaritySearchEngine
from rvdb.storage import RedisSession


# ============================================================================
# Helper Functions
# ============================================================================

def configure_logging(verbose: bool = False):
    """Configure structlog console output (stderr, stdout resta per i risultati)."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, stream=sys.stderr, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def run_async(coro):
    """Run async coroutine and return result."""
    return asyncio.run(coro)


def _install_cancel_handler(token):
    """Ctrl+C richiede la cancellazione cooperativa invece di interrompere."""
    loop = asyncio.get_running_loop()
    # non disponibile su Windows né fuori dal main thread
    with suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted")


# ============================================================================
# CLI
# ============================================================================

@click.group()
@click.version_option(version=__version__, prog_name='rvdb')
@click.option('--env-file', type=click.Path(dir_okay=False), default=None, help='Load settings from a .env file')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(env_file, verbose):
    """RVDB Command Line Interface - Redis export and vector similarity search."""
    load_dotenv(env_file)
    configure_logging(verbose)


@cli.command('ping')
def ping():
    """Check connectivity to Redis.

    Example:
        rvdb ping
    """
    async def check():
        async with RedisSession(RedisConfig()) as session:
            return await session.health_check()

    try:
        health = run_async(check())
    except Exception as e:
        click.echo(f"❌ Failed to connect to Redis: {e}", err=True)
        sys.exit(1)

    if health["status"] != "healthy":
        click.echo(f"❌ {health['message']}", err=True)
        sys.exit(1)

    details = health["details"]
    click.echo(f"✅ Connected to Redis {details['redis_version']} ({details['keys']} keys)")


@cli.command('info')
def info():
    """Show connection settings and server details as JSON."""
    config = RedisConfig()

    async def collect():
        async with RedisSession(config) as session:
            return await session.health_check()

    try:
        health = run_async(collect())
    except Exception as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps({"target": config.describe(), **health}, indent=2, default=str))


@cli.command('export')
@click.option('--output', '-o', type=click.Path(dir_okay=False), default=None, help='Output file (default: RVDB_EXPORT_PATH)')
@click.option('--batch-size', type=click.IntRange(min=1), default=None, help='SCAN COUNT hint')
@click.option('--match', default=None, help='Only export keys matching this pattern')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation on large datasets')
def export(output, batch_size, match, yes):
    """Export the whole keyspace to a JSON manifest.

    Press Ctrl+C to cancel: the partial file is removed.

    Example:
        rvdb export -o redis_data_export.json --batch-size 500
    """
    export_config = ExportConfig()
    if batch_size is not None:
        export_config.scan_batch_size = batch_size

    async def run():
        async with RedisSession(RedisConfig()) as session:
            total = await session.key_count()
            if total > export_config.large_dataset_threshold and not yes:
                if not click.confirm(
                    f"Large dataset detected ({total} keys). Export may take time. Continue?"
                ):
                    return None

            exporter = RedisExporter(session, export_config)
            controller = exporter.create_controller()
            _install_cancel_handler(controller.token)

            async def report():
                async for snapshot in controller.progress:
                    if snapshot.state is ExportState.RUNNING:
                        click.echo(f"  {snapshot.message}")

            reporter = asyncio.create_task(report())
            try:
                return await exporter.export(output, controller=controller, match=match)
            finally:
                controller.progress.close()
                await reporter

    try:
        result = run_async(run())
    except Exception as e:
        click.echo(f"❌ Error during export: {e}", err=True)
        sys.exit(1)

    if result is None:
        click.echo("Export aborted.")
        return

    if result.state is ExportState.CANCELLED:
        click.echo(f"Export cancelled after {result.exported_count} keys. Partial file removed.")
        sys.exit(130)

    for warning in result.warnings:
        click.echo(f"⚠️  {warning}")
    click.echo(f"✅ Exported {result.exported_count} keys to {result.path} ({result.duration_seconds:.1f}s)")


@cli.command('search')
@click.argument('query')
@click.option('-k', 'top_k', type=int, default=None, help='Number of results (default: RVDB_SEARCH_TOP_K)')
@click.option('--model', default=None, help='sentence-transformers model name')
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']), default='table', help='Output format')
def search(query, top_k, model, output_format):
    """Find the stored embeddings most similar to QUERY.

    Example:
        rvdb search "late invoices" -k 3 --format json
    """
    async def run():
        async with RedisSession(RedisConfig()) as session:
            engine = SimilaritySearchEngine(
                session,
                SentenceTransformerEmbedder(model_name=model),
                SearchConfig(),
            )
            return await engine.search(query, top_k)

    try:
        results = run_async(run())
    except Exception as e:
        click.echo(f"❌ Search failed: {e}", err=True)
        sys.exit(1)

    if output_format == 'json':
        click.echo(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False))
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'Similarity':<12} {'Key':<30} {'Description':<36}")
    click.echo("=" * 80)
    for r in results:
        click.echo(f"{r.similarity:<12.4f} {r.key[:30]:<30} {r.description[:36]:<36}")
    click.echo("=" * 80)
    click.echo(f"\nTotal: {len(results)} results")


@cli.command('index')
@click.argument('key')
@click.argument('text')
@click.option('--description', default=None, help='Description stored with the embedding (default: TEXT)')
@click.option('--model', default=None, help='sentence-transformers model name')
def index(key, text, description, model):
    """Embed TEXT and store it in hash KEY.

    Example:
        rvdb index doc:1 "Invoice 42 is overdue"
    """
    async def run():
        async with RedisSession(RedisConfig()) as session:
            engine = SimilaritySearchEngine(session, SentenceTransformerEmbedder(model_name=model))
            await engine.index_text(key, text, description=description)

    try:
        run_async(run())
    except Exception as e:
        click.echo(f"❌ Indexing failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"✅ Indexed {key}")


if __name__ == '__main__':
    cli()
