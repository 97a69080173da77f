"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "processing": "cyan",
    "complete": "green",
    "failed": "red",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def format_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def create_job_table(job: dict[str, Any]) -> Table:
    """Create a two-column table describing one job"""
    table = Table(title=f"Job {job['id']}", box=box.ROUNDED, show_header=False)

    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    table.add_row("Name", job["job_name"])
    table.add_row("Status", format_status(job["status"]))
    table.add_row("Attempts", f"{job['attempts']}/{job['max_attempts']}")
    table.add_row("Run at", str(job["run_at"]))
    table.add_row("Locked by", job.get("locked_by") or "-")
    table.add_row("Locked at", str(job.get("locked_at") or "-"))
    table.add_row("Error", job.get("error") or "-")
    table.add_row("Payload", str(job.get("payload") or {}))

    return table


def create_metrics_table(metrics: dict[str, Any]) -> Table:
    """Create formatted table for queue depth by status"""
    table = Table(title="Queue Metrics", box=box.ROUNDED)

    table.add_column("Status", justify="left", style="bold")
    table.add_column("Jobs", justify="right", style="magenta")

    for status in ("pending", "processing", "failed"):
        table.add_row(format_status(status), str(metrics.get(status, 0)))

    return table
