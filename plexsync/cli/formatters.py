"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from plexsync.core.tree_downloader import FolderStep, PlannedFile
from plexsync.models.config import ListenerConfig
from plexsync.models.outcome import JobOutcome
from plexsync.models.stats import JobStats
from plexsync.utils.formatting import format_duration, format_size, mask_secret


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the file shown above, or run `plexsync init` to create one.",
            "• Run `plexsync validate` to see every invalid setting at once.",
        ],
        "TreeParseError": [
            "• The message must be a JSON object with 'name', 'files' and "
            "'subfolders'.",
            "• Run `plexsync schema` to print the expected format.",
        ],
        "TransportError": [
            "• Verify the Service Bus connection string and queue names.",
            "• The shared access policy needs Listen and Send rights.",
        ],
        "FetchError": [
            "• The blob may have been removed from the container.",
            "• Check that the SAS token grants read access and has not expired.",
        ],
        "BlobNotFoundError": [
            "• The tree references a blob that is not in the container.",
            "• Blob names are case-sensitive.",
        ],
        "ClientConnectorError": [
            "• A network connection issue occurred.",
            "• Azure might be temporarily unreachable. Try again in a few minutes.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Check your internet connection.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    lines = []
    for key, value in config_data.items():
        if key in ("connection_string", "sas_token"):
            value = mask_secret(str(value)) or "[not set]"
        elif isinstance(value, dict):
            value = ", ".join(f"{k} → {v}" for k, v in value.items())
        lines.append(f"{key} = {value}")

    console.print(
        Panel(
            escape("\n".join(lines)),
            title=f"Configuration ([dim]{escape(str(config_path))}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: ListenerConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    credentials = config.service_bus_credentials
    table.add_row("Namespace:", escape(credentials.get("Endpoint", "?")))
    table.add_row(
        "Access Policy:", escape(credentials.get("SharedAccessKeyName", "?"))
    )
    table.add_row("Listen Queue:", escape(config.listen_queue))
    table.add_row(
        "Outcome Queues:",
        f"[green]{escape(config.success_queue)}[/green] / "
        f"[red]{escape(config.error_queue)}[/red]",
    )
    table.add_row("Concurrent Calls:", str(config.max_concurrent_calls))
    table.add_row("Lock Renewal:", f"every {config.lock_renewal_interval}s")
    table.add_row("Container:", f"[dim]{escape(config.container_url)}[/dim]")
    table.add_row("SAS Token:", "✓ Set" if config.sas_token else "✗ Not set")
    table.add_row(
        "Size Verification:", "✓ Enabled" if config.verify_size else "✗ Disabled"
    )
    for category, root in config.media_mappings.items():
        table.add_row(f"  {escape(category)}:", f"[dim]{escape(root)}[/dim]")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_plan_table(files: list[PlannedFile], skipped: list[FolderStep]):
    """Displays where each blob of a tree would be written."""
    console = Console()
    table = Table(title="Download Plan", box=box.SIMPLE_HEAVY)
    table.add_column("Blob", style="cyan")
    table.add_column("Local Path")
    table.add_column("Size", justify="right", style="green")
    for planned in files:
        table.add_row(
            escape(planned.key),
            escape(str(planned.local_path)),
            format_size(planned.size),
        )
    console.print(table)

    for step in skipped:
        console.print(
            f"  [yellow]○ Skipped[/yellow] {escape(step.path)} "
            f"[dim]({escape(step.skip_reason or '')})[/dim]"
        )

    total = sum(planned.size for planned in files)
    console.print(
        f"\n[bold]{len(files)}[/bold] file(s), [bold]{format_size(total)}[/bold], "
        f"{len(skipped)} skipped folder(s)."
    )


def print_job_summary(outcome: JobOutcome, stats: JobStats):
    """Displays the final summary of a single job."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.files_fetched}[/bold green]"
    )
    if stats.branches_skipped > 0:
        stats_table.add_row(
            "○ Skipped Folders:", f"[yellow]{stats.branches_skipped}[/yellow]"
        )
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.bytes_fetched)}[/cyan]"
    )
    stats_table.add_row(
        "Time Elapsed:", f"[blue]{format_duration(stats.elapsed)}[/blue]"
    )
    if outcome.reason:
        stats_table.add_row("✗ Error:", f"[red]{escape(outcome.reason)}[/red]")

    if outcome.success:
        title, border_color = "[bold]Sync Complete![/bold]", "green"
    else:
        title, border_color = "[bold]Sync Failed[/bold]", "red"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
