"""Job Commands - enqueue, inspect and requeue jobs"""

import json
from datetime import UTC, datetime, timedelta
from typing import Optional
from uuid import UUID

import typer
from rich.console import Console

from damqueue.v1.infra.jobs.schemas import JobCreate, JobResponse

from ..utils import runtime
from ..utils.formatting import create_job_table, print_error, print_info, print_success

console = Console()
app = typer.Typer(name="jobs", help="Enqueue and manage queue jobs")


def _parse_payload(raw: str) -> dict:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"payload is not valid JSON: {e}") from None
    if not isinstance(payload, dict):
        raise typer.BadParameter("payload must be a JSON object")
    return payload


@app.command("enqueue")
def enqueue(
    job_name: str = typer.Argument(..., help="Handler name, e.g. dam.process-version"),
    payload: str = typer.Option("{}", "--payload", "-p", help="JSON object payload"),
    max_attempts: Optional[int] = typer.Option(
        None, "--max-attempts", min=1, help="Attempts before permanent failure"
    ),
    delay_ms: int = typer.Option(
        0, "--delay-ms", min=0, help="Delay before the job becomes eligible"
    ),
):
    """➕ Enqueue a job"""
    body = _parse_payload(payload)
    run_at = datetime.now(UTC) + timedelta(milliseconds=delay_ms) if delay_ms else None

    try:
        result = runtime.run_with_service(
            lambda service: service.enqueue_job(
                JobCreate(
                    job_name=job_name,
                    payload=body,
                    run_at=run_at,
                    max_attempts=max_attempts,
                )
            )
        )
    except Exception as e:
        print_error(f"Failed to enqueue job: {e}")
        raise typer.Exit(1) from None

    print_success(f"Enqueued {job_name} as {result.job_id}")
    print_info(f"Runs at {result.run_at.isoformat()}")


@app.command("process-version")
def process_version(
    asset_id: str = typer.Argument(..., help="Asset ID"),
    version_id: str = typer.Argument(..., help="Asset version ID"),
):
    """🖼 Queue processing for an asset version"""
    try:
        result = runtime.run_with_service(
            lambda service: service.enqueue_version_processing(asset_id, version_id)
        )
    except Exception as e:
        print_error(f"Failed to enqueue version processing: {e}")
        raise typer.Exit(1) from None

    print_success(f"Queued processing of version {version_id} as job {result.job_id}")


@app.command("show")
def show(job_id: UUID = typer.Argument(..., help="Job ID")):
    """🔍 Show one job"""
    job = runtime.run_with_service(lambda service: service.get_job(job_id))
    if job is None:
        print_error(f"Job {job_id} not found")
        raise typer.Exit(1)

    console.print(create_job_table(JobResponse.model_validate(job).model_dump()))


@app.command("requeue")
def requeue(job_id: UUID = typer.Argument(..., help="Failed job ID")):
    """🔁 Requeue a failed job with a fresh attempt budget"""
    if not runtime.run_with_service(lambda service: service.requeue_job(job_id)):
        print_error(f"Job {job_id} not found or not failed")
        raise typer.Exit(1)

    print_success(f"Requeued job {job_id}")
