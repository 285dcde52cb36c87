"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import json
import logging
import os
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from plexsync import __version__
from plexsync.azure import BlobObjectFetcher, ServiceBusClient
from plexsync.core import (
    CategoryResolver,
    InboundMessage,
    JobOutcomeReporter,
    MessageHandler,
    QueueListener,
    TreeDownloader,
)
from plexsync.exceptions import PlexSyncError, TreeParseError
from plexsync.models.config import ListenerConfig
from plexsync.models.stats import JobStats
from plexsync.models.tree import parse_tree
from plexsync.storage.config_manager import ConfigManager
from plexsync.utils.config_validator import (
    TREE_SCHEMA,
    export_schema,
    validate_config_schema,
    validate_tree_schema,
)
from plexsync.utils.structured_logger import create_job_logger

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_job_summary,
    print_plan_table,
    print_validation_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("plexsync")

app = typer.Typer(
    name="plexsync",
    help=(
        "Mirrors folder trees announced on an Azure Service Bus queue from Blob"
        " Storage into local media libraries."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "plexsync"


DEFAULT_CONFIG_FILE = get_config_dir() / "config.ini"


class ConsoleChannel:
    """Outcome channel that prints notifications instead of queueing them."""

    def __init__(self, name: str, style: str):
        self.name = name
        self.style = style

    async def send(self, text: str) -> None:
        console.print(f"[{self.style}]→ {self.name}:[/{self.style}] {escape(text)}")


def _config_file(ctx: typer.Context) -> Path:
    return (ctx.obj or {}).get("config_file", DEFAULT_CONFIG_FILE)


def _load_config(ctx: typer.Context) -> ListenerConfig:
    config = ConfigManager(_config_file(ctx)).load_config()
    # -v on the command line wins over the configured level
    if not (ctx.obj or {}).get("verbose"):
        logging.getLogger("plexsync").setLevel(config.log_level)
    return config


def _read_tree_file(tree_file: Path) -> bytes:
    try:
        return tree_file.read_bytes()
    except OSError as e:
        console.print(f"[red]✗ Could not read {escape(str(tree_file))}: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_FILE,
        "--config",
        "-c",
        help="Path to the configuration file.",
        envvar="PLEXSYNC_CONFIG",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """plexsync: queue-driven media library sync."""
    if version:
        console.print(f"[bold]plexsync[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    ctx.obj = {"config_file": config_file, "verbose": verbose}
    if verbose >= 2:
        logging.getLogger("plexsync").setLevel("DEBUG")

    if show_config:
        if not config_file.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]plexsync init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(config_file)
        config_manager.read()
        print_config(config_file, config_manager.get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    ctx: typer.Context,
    connection_string: str = typer.Option(
        "", "--connection-string", help="Service Bus namespace connection string."
    ),
    container_url: str = typer.Option(
        "", "--container-url", help="URL of the blob container to mirror from."
    ),
    sas_token: str = typer.Option(
        "", "--sas-token", help="SAS token granting read access to the container."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing file without asking."
    ),
):
    """Create a configuration file with default queues and mappings."""
    config_file = _config_file(ctx)
    if (
        config_file.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        "connection_string": connection_string,
        "container_url": container_url,
        "sas_token": sas_token,
    }
    ConfigManager(config_file).save_new_config(settings)
    console.print(
        f"\n[bold green]✓ Configuration saved to '{config_file}'[/bold green]"
    )
    console.print(
        "Edit the [cyan][media_mappings][/cyan] section, then run "
        "[cyan]plexsync validate[/cyan]."
    )


@app.command()
def listen(ctx: typer.Context):
    """Listen to the queue and mirror every tree it announces."""
    config = _load_config(ctx)

    async def _listen_async():
        resolver = CategoryResolver(config.category_mapping)
        await asyncio.to_thread(resolver.ensure_destination_roots)
        job_logger = create_job_logger(
            Path(config.json_log_dir) if config.json_log_dir else None
        )
        connections = config.max_concurrent_calls * 2

        bus = ServiceBusClient(config.connection_string, max_connections=connections)
        fetcher = BlobObjectFetcher(
            config.container_url, config.sas_token, max_connections=connections
        )
        try:
            async with bus, fetcher:
                transport = bus.get_receiver(
                    config.listen_queue, config.receive_timeout
                )
                handler = MessageHandler(
                    TreeDownloader(resolver, fetcher, config.verify_size, job_logger),
                    JobOutcomeReporter(
                        bus.get_sender(config.success_queue),
                        bus.get_sender(config.error_queue),
                    ),
                    transport=transport,
                    job_logger=job_logger,
                    lock_renewal_interval=config.lock_renewal_interval,
                )
                listener = QueueListener(
                    transport, handler, config.max_concurrent_calls
                )

                loop = asyncio.get_running_loop()
                if os.name != "nt":
                    loop.add_signal_handler(signal.SIGTERM, listener.stop)

                console.print(
                    f"[bold cyan]Listening on '{escape(config.listen_queue)}'...[/]"
                    " Press Ctrl+C to exit."
                )
                await listener.run()
                handled = listener.messages_handled
                console.print(f"[green]✓ Handled {handled} message(s).[/green]")
        finally:
            job_logger.logger.close()

    asyncio.run(_listen_async())


@app.command()
def sync(
    ctx: typer.Context,
    tree_file: Path = typer.Argument(..., help="JSON file describing a folder tree."),
    message_id: str = typer.Option(
        "local", "--id", help="Identifier used in logs and the outcome notice."
    ),
):
    """Mirror one tree from a local JSON file, without the queue."""
    config = _load_config(ctx)
    body = _read_tree_file(tree_file)

    async def _sync_async():
        resolver = CategoryResolver(config.category_mapping)
        await asyncio.to_thread(resolver.ensure_destination_roots)
        job_logger = create_job_logger(
            Path(config.json_log_dir) if config.json_log_dir else None
        )
        try:
            async with BlobObjectFetcher(
                config.container_url, config.sas_token
            ) as fetcher:
                handler = MessageHandler(
                    TreeDownloader(resolver, fetcher, config.verify_size, job_logger),
                    JobOutcomeReporter(
                        ConsoleChannel(config.success_queue, "green"),
                        ConsoleChannel(config.error_queue, "red"),
                    ),
                    job_logger=job_logger,
                )
                stats = JobStats()
                outcome = await handler.handle(
                    InboundMessage(id=message_id, body=body), stats
                )
                return outcome, stats
        finally:
            job_logger.logger.close()

    outcome, stats = asyncio.run(_sync_async())
    print_job_summary(outcome, stats)
    if not outcome.success:
        raise typer.Exit(code=1)


@app.command()
def plan(
    ctx: typer.Context,
    tree_file: Path = typer.Argument(..., help="JSON file describing a folder tree."),
):
    """Show where each file of a tree would be written, without downloading."""
    config = _load_config(ctx)
    body = _read_tree_file(tree_file)

    try:
        document = json.loads(body)
    except json.JSONDecodeError as e:
        raise TreeParseError(f"{tree_file} is not valid JSON: {e}") from e
    is_valid, errors = validate_tree_schema(document)
    if not is_valid:
        # The schema uses the canonical lower-case keys; the parser is lenient
        for error in errors:
            console.print(f"[yellow]⚠ Schema: {escape(error)}[/yellow]")

    tree = parse_tree(body)
    if tree is None:
        raise TreeParseError(f"{tree_file} does not describe a folder tree.")

    resolver = CategoryResolver(config.category_mapping)
    downloader = TreeDownloader(resolver, fetcher=None)
    files, skipped = downloader.plan(tree)
    print_plan_table(files, skipped)


@app.command()
def validate(ctx: typer.Context):
    """Validate the current configuration."""
    config_file = _config_file(ctx)
    config_manager = ConfigManager(config_file)
    try:
        config = config_manager.load_config()
    except PlexSyncError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    is_valid, errors = validate_config_schema(config_manager.get_config_as_dict())
    for error in errors:
        console.print(f"[yellow]⚠ {escape(error)}[/yellow]")
    print_validation_table(config)
    if not is_valid:
        raise typer.Exit(code=1)


@app.command()
def schema(
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the schema to this file."
    ),
):
    """Print the JSON Schema of the messages the listener accepts."""
    if output:
        export_schema(TREE_SCHEMA, output)
        console.print(f"[green]✓ Schema written to '{escape(str(output))}'[/green]")
    else:
        console.print_json(json.dumps(TREE_SCHEMA))
