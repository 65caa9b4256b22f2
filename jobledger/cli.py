"""
JobLedger CLI - inspect and administer the execution ledger.

Usage:
    jobledger --help              Show all commands
    jobledger migrate             Bring the schema up to date
    jobledger version             Show schema version and history
    jobledger paused              List paused jobs
    jobledger pause JOB...        Pause jobs
    jobledger resume JOB...       Resume paused jobs
    jobledger executions          List successful executions
    jobledger executions --failed List failed executions
    jobledger stats JOB           Show run statistics for one job
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer

from jobledger.config import get_settings
from jobledger.core.errors import LedgerError
from jobledger.core.logging import setup_logging
from jobledger.core.retry import retry_with_backoff
from jobledger.store import JobLedger, connect

T = TypeVar("T")

app = typer.Typer(
    name="jobledger",
    help="JobLedger CLI - execution history and paused jobs",
    no_args_is_help=True,
)


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


def _run(action: Callable[[JobLedger], Awaitable[T]]) -> T:
    """Connect (migrating if needed), run one action and close the ledger."""

    async def _main() -> T:
        settings = get_settings()
        setup_logging(settings.debug)
        async with await connect(settings) as ledger:
            return await action(ledger)

    try:
        return asyncio.run(_main())
    except LedgerError as e:
        _print_error(str(e))
        raise typer.Exit(code=1) from e


@app.command()
def migrate() -> None:
    """Bring the database schema up to the latest version."""
    version = _run(lambda ledger: ledger.schema_version())
    _print_success(f"Schema at version {version}")


@app.command()
def version() -> None:
    """Show the schema version and when each version was applied."""
    history = _run(lambda ledger: ledger.schema_history())
    if not history:
        typer.echo("No schema versions applied")
        return
    for record in history:
        typer.echo(f"{record.version:>4}  {record.applied_at:%Y-%m-%d %H:%M:%S}")


@app.command()
def paused() -> None:
    """List paused job ids."""
    job_ids = _run(
        lambda ledger: retry_with_backoff(ledger.get_paused_job_ids, operation_name="paused")
    )
    for job_id in sorted(job_ids):
        typer.echo(job_id)


@app.command()
def pause(jobs: list[str] = typer.Argument(..., help="Job ids to pause")) -> None:
    """Pause one or more jobs."""
    _run(
        lambda ledger: retry_with_backoff(
            lambda: ledger.pause_jobs(jobs), operation_name=f"pause:{','.join(jobs)}"
        )
    )
    _print_success(f"Paused {len(set(jobs))} job(s)")


@app.command()
def resume(jobs: list[str] = typer.Argument(..., help="Job ids to resume")) -> None:
    """Resume one or more paused jobs."""
    _run(
        lambda ledger: retry_with_backoff(
            lambda: ledger.unpause_jobs(jobs), operation_name=f"resume:{','.join(jobs)}"
        )
    )
    _print_success(f"Resumed {len(set(jobs))} job(s)")


@app.command()
def executions(
    failed: bool = typer.Option(False, "--failed", help="List failed executions instead"),
) -> None:
    """List executions by outcome, oldest end time first."""
    records = _run(
        lambda ledger: retry_with_backoff(
            lambda: ledger.get_execution_log(not failed), operation_name="executions"
        )
    )
    for record in records:
        status = "success" if record.success else "failure"
        typer.echo(
            f"{record.id}  {record.job}  {record.start_time:%Y-%m-%d %H:%M:%S}  "
            f"{record.duration_seconds:.1f}s  {status}"
        )


@app.command()
def stats(job: str = typer.Argument(..., help="Job id")) -> None:
    """Show start time, duration and status of every run of a job."""
    entries = _run(
        lambda ledger: retry_with_backoff(
            lambda: ledger.get_execution_stats(job), operation_name=f"stats:{job}"
        )
    )
    if not entries:
        typer.echo(f"No executions for {job}")
        return
    for entry in entries:
        typer.echo(
            f"{entry.start_time:%Y-%m-%d %H:%M:%S}  {entry.duration_seconds:.1f}s  {entry.status}"
        )


if __name__ == "__main__":
    app()
