"""DAM Queue CLI - Main Entry Point"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from damqueue.config.logging import get_logger, setup_logging
from damqueue.config.settings import get_settings
from damqueue.v1.infra.jobs.worker import run_worker

from .commands import jobs
from .utils import runtime
from .utils.formatting import create_metrics_table, print_error, print_info

console = Console()
logger = get_logger(__name__)

app = typer.Typer(
    name="damctl",
    help="🗂 DAM Queue - background asset processing",
    rich_markup_mode="rich",
)

app.add_typer(jobs.app, name="jobs")


@app.command()
def worker():
    """⚙️ Run a queue worker until SIGINT/SIGTERM"""
    settings = get_settings()
    setup_logging(settings)

    try:
        stopped_by = asyncio.run(run_worker(settings, runtime.open_database(settings)))
    except Exception as e:
        logger.error("Fatal worker error", error=str(e))
        raise typer.Exit(1) from None

    if stopped_by:
        print_info(f"Worker stopped ({stopped_by})")


@app.command()
def stats():
    """📊 Show queue depth by status"""
    try:
        metrics = runtime.run_with_service(lambda service: service.queue_metrics())
    except Exception as e:
        print_error(f"Failed to fetch queue metrics: {e}")
        raise typer.Exit(1) from None

    console.print(create_metrics_table(metrics.model_dump()))


@app.command()
def version():
    """📎 Show version information"""
    from damqueue import __version__

    console.print(Panel(
        f"🗂 [bold cyan]DAM Queue[/bold cyan]\n\n"
        f"• Version: [green]{__version__}[/green]",
        title="Version Info",
        border_style="cyan"
    ))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    show_version: Optional[bool] = typer.Option(
        None, "--version", "-v", help="Show version and exit"
    ),
):
    """
    🗂 DAM Queue CLI

    Run workers, enqueue jobs and inspect the processing queue.
    """
    if show_version:
        from damqueue import __version__
        console.print(f"DAM Queue v{__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


if __name__ == "__main__":
    app()
