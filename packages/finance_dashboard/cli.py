# ruff: noqa: I001
"""CLI for the ``finance_dashboard`` package.

A Typer-based console interface over
:class:`~finance_dashboard.workflows.dashboard_flow.DashboardSession`.
Endpoint settings (``FD_DISPATCH_URL``, ``FD_STATUS_URL``, ...) are loaded from
a local ``.env`` using ``python-dotenv`` before any command runs.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .config import DispatcherConfig
from .dispatcher import AnalysisDispatcher, CancellationToken
from .errors import AnalysisCancelledError
from .logging_setup import configure_logging
from .workflows.dashboard_flow import DashboardSession, DashboardView, format_metrics


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Analyze a CSV or Excel transaction ledger and print dashboard metrics. "
        "Loads FD_* endpoint settings from a local .env before running."
    ),
)


# Module-level option object to satisfy ruff B008 (no calls in parameter
# defaults).
FILE_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--file",
    help="Path to a .csv, .xlsx or .xls transaction file",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the session reports missing files with a readable error
    readable=True,
)


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def _upload(session: DashboardSession, file: Path) -> None:
    try:
        session.upload(file)
    except OSError as e:
        raise _fail(f"could not read '{file}': {e.strerror or e}") from e
    if session.error:
        raise _fail(session.error)


def _echo_view(view: DashboardView) -> None:
    for label, value in format_metrics(view.metrics).items():
        typer.echo(f"{label}: {value}")

    typer.echo("")
    typer.echo(view.result.summary)
    if view.result.suggestions:
        typer.echo("Suggestions:")
        for suggestion in view.result.suggestions:
            typer.echo(f"  - {suggestion}")

    typer.echo("")
    typer.echo("Income vs. Expenses:")
    for point in view.series.income_expense_by_period:
        typer.echo(
            f"  {point['period']}\tincome={point['income']:,.2f}\texpenses={point['expenses']:,.2f}"
        )
    typer.echo("Expense Categories:")
    for share in view.series.expense_share_by_category:
        typer.echo(f"  {share['category']}: {share['value']:g}%")


@app.command("analyze")
def analyze_cmd(
    file: Annotated[Path, FILE_OPTION],
    *,
    local: bool = typer.Option(
        False, help="Skip the remote service and compute metrics locally."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the dashboard as JSON."),
    timeout: float | None = typer.Option(
        None,
        min=0.0,
        help="Cancel a polling analysis after this many seconds (default: wait until done).",
    ),
) -> None:
    """Parse, normalize and analyze a ledger file, then print the dashboard."""

    dispatcher: AnalysisDispatcher | None = None
    if not local:
        try:
            config = DispatcherConfig.from_env()
        except ValueError as e:
            raise _fail(f"{e} (use --local to analyze offline)") from e
        dispatcher = AnalysisDispatcher(config)

    session = DashboardSession(dispatcher)
    _upload(session, file)

    token = CancellationToken()
    timer: threading.Timer | None = None
    if timeout is not None:
        timer = threading.Timer(timeout, token.cancel)
        timer.daemon = True
        timer.start()
    try:
        view = session.build_dashboard(cancel_token=token)
    except AnalysisCancelledError as e:
        raise _fail(f"analysis did not finish within {timeout:g}s") from e
    finally:
        if timer is not None:
            timer.cancel()

    if view is None:
        raise _fail(session.error or "analysis failed")

    if as_json:
        typer.echo(json.dumps(view.to_payload(), indent=2, default=str))
    else:
        _echo_view(view)


@app.command("preview")
def preview_cmd(
    file: Annotated[Path, FILE_OPTION],
    *,
    rows: int = typer.Option(5, min=1, help="Number of transactions to show."),
) -> None:
    """Print the first transactions of a ledger file as parsed."""

    session = DashboardSession(None)
    _upload(session, file)
    transactions = session.transactions or []
    if not transactions:
        typer.echo("No transactions found.")
        return

    header = list(transactions[0].fields.keys())
    typer.echo("\t".join(header))
    for tx in transactions[:rows]:
        typer.echo("\t".join("" if tx.fields.get(h) is None else str(tx.fields.get(h)) for h in header))
    if len(transactions) > rows:
        typer.echo(f"Showing {rows} of {len(transactions)} transactions")


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    log_level: str | None = typer.Option(
        None, help="Log level (falls back to FD_LOG_LEVEL, then INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    try:
        configure_logging(log_level)
    except ValueError as e:
        raise _fail(str(e)) from e

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m finance_dashboard.cli`
    app()
