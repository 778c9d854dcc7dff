# ruff: noqa: I001
"""CLI for the ``ledger_indexer`` package.

Typer-based console interface over the pipelines. Settings are resolved once
in the root callback (CLI options over environment over defaults, with a
local ``.env`` loaded through ``python-dotenv``) and handed to each command
through the Typer context. Business logic lives in the pipeline modules; this
module only wires collaborators together and turns known failures into
``Error: ...`` on stderr with exit code 1.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .batching import LedgerRange
from .config import Settings
from .db.client import Database
from .db.ledgers import SqlLedgerSource
from .export import (
    DEFAULT_BATCH_SIZE,
    ExportConfig,
    ExportPipeline,
    ExportRangeError,
    SignedNumber,
    resolve_start,
)
from .gaps import fill_gaps
from .ingest import IngestConfig, IngestPipeline, LedgerGapError
from .logging_setup import configure_logging, get_logger, set_level
from .sink import ElasticsearchSink, SinkError
from .submission import DEFAULT_RETRIES, RetriesExhaustedError

logger = get_logger("ledger_indexer.cli")

# Failures reported as "Error: ..." with exit code 1.
_KNOWN_ERRORS: tuple[type[Exception], ...] = (
    ExportRangeError,
    RetriesExhaustedError,
    LedgerGapError,
    SinkError,
    RuntimeError,
    ValueError,
)


# ---- Small module-level helpers used by CLI commands -------------------------


def _fail(message: str) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    raise typer.Exit(1)


def _settings(ctx: typer.Context) -> Settings:
    settings = ctx.obj
    if not isinstance(settings, Settings):  # pragma: no cover - set by the root callback
        settings = Settings.from_env()
    return settings


def _source(settings: Settings) -> SqlLedgerSource:
    return SqlLedgerSource(Database(settings.database_url))


def _sink(settings: Settings) -> ElasticsearchSink:
    return ElasticsearchSink(settings.es_url)


def _db_span(source: SqlLedgerSource) -> LedgerRange:
    first, last = source.first_ledger_seq(), source.last_ledger_seq()
    if first is None or last is None:
        raise ExportRangeError("no ledgers in the database")
    return LedgerRange(first, last + 1)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Index ledger history (headers, transactions, operations, balances) into an "
        "Elasticsearch-compatible search backend. Loads settings from a local .env."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects these when used as defaults below.
RETRIES_OPTION: OptionInfo = typer.Option(
    DEFAULT_RETRIES, "--retries", min=0, help="Retries per bulk submission before giving up."
)
DRY_RUN_OPTION: OptionInfo = typer.Option(
    False, "--dry-run", help="Build documents but do not submit anything."
)

# Negative starts such as ``-5`` must reach the START argument, not the option parser.
_SIGNED_ARGS = {"ignore_unknown_options": True}


@app.command("create-index")
def create_index_cmd(
    ctx: typer.Context,
    force: Annotated[
        bool, typer.Option("--force", help="Delete and recreate existing indexes.")
    ] = False,
) -> None:
    """Create the ledgers/transactions/operations/balances indexes."""

    sink = _sink(_settings(ctx))
    try:
        created = sink.create_indexes(force=force)
    except _KNOWN_ERRORS as e:
        _fail(f"create-index failed: {e}")
    for name in created:
        print(f"created\t{name}")


@app.command("export", context_settings=_SIGNED_ARGS)
def export_cmd(
    ctx: typer.Context,
    start: Annotated[
        str,
        typer.Argument(
            help="First ledger: absolute, +N from the first known, -N back from the last."
        ),
    ],
    count: Annotated[int, typer.Argument(help="Number of ledgers to export.")],
    batch: Annotated[
        int, typer.Option("--batch", "-b", min=1, help="Ledgers per bulk submission.")
    ] = DEFAULT_BATCH_SIZE,
    retries: int = RETRIES_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    verbose: Annotated[
        bool, typer.Option("--verbose", help="Log at DEBUG, including dry-run payloads.")
    ] = False,
) -> None:
    """Export the ledger range [START, START+COUNT)."""

    settings = _settings(ctx)
    if verbose:
        set_level("DEBUG")
    try:
        signed = SignedNumber.parse(start)
        if count <= 0:
            raise ExportRangeError(f"nothing to export: count={count}")
        source = _source(settings)
        first = last = None
        if signed.explicit or signed.value == 0:
            first, last = source.first_ledger_seq(), source.last_ledger_seq()
        config = ExportConfig(
            start=resolve_start(signed, first=first, last=last),
            count=count,
            batch_size=batch,
            retries=retries,
            concurrency=settings.concurrency,
            dry_run=dry_run,
        )
        result = ExportPipeline(source, _sink(settings), config).run()
    except _KNOWN_ERRORS as e:
        _fail(str(e))

    print(
        f"ledgers={result.ledgers} documents={result.documents} "
        f"batches={result.batches} submissions={result.submissions}"
    )


@app.command("ingest", context_settings=_SIGNED_ARGS)
def ingest_cmd(
    ctx: typer.Context,
    start: Annotated[
        str | None,
        typer.Argument(help="Ledger to start from (default: after the last indexed ledger)."),
    ] = None,
    retries: int = RETRIES_OPTION,
    poll_interval: Annotated[
        float, typer.Option("--poll-interval", min=0.0, help="Seconds between polls.")
    ] = 1.0,
) -> None:
    """Follow the database and index every newly closed ledger."""

    settings = _settings(ctx)
    try:
        source = _source(settings)
        sink = _sink(settings)
        if start is None:
            indexed = sink.ledger_stats().max_seq
            if indexed is not None:
                first = indexed + 1
            else:
                first = resolve_start(
                    SignedNumber(0),
                    first=source.first_ledger_seq(),
                    last=source.last_ledger_seq(),
                )
        else:
            first = resolve_start(
                SignedNumber.parse(start),
                first=source.first_ledger_seq(),
                last=source.last_ledger_seq(),
            )
        pipeline = IngestPipeline(sink, IngestConfig(start=first, retries=retries))
        pipeline.run(source.follow(first, poll_interval=poll_interval))
    except _KNOWN_ERRORS as e:
        _fail(str(e))


@app.command("stats")
def stats_cmd(ctx: typer.Context) -> None:
    """Print the ledger range held by the database."""

    try:
        source = _source(_settings(ctx))
        first, last, count = (
            source.first_ledger_seq(),
            source.last_ledger_seq(),
            source.ledger_count(),
        )
    except _KNOWN_ERRORS as e:
        _fail(f"stats failed: {e}")
    print(f"first\t{first if first is not None else '-'}")
    print(f"last\t{last if last is not None else '-'}")
    print(f"count\t{count}")


@app.command("es-stats")
def es_stats_cmd(ctx: typer.Context) -> None:
    """Print the ledger range held by the index."""

    try:
        stats = _sink(_settings(ctx)).ledger_stats()
    except _KNOWN_ERRORS as e:
        _fail(f"es-stats failed: {e}")
    print(f"first\t{stats.min_seq if stats.min_seq is not None else '-'}")
    print(f"last\t{stats.max_seq if stats.max_seq is not None else '-'}")
    print(f"count\t{stats.count}")


@app.command("fill-gaps")
def fill_gaps_cmd(
    ctx: typer.Context,
    dry_run: bool = DRY_RUN_OPTION,
    batch: Annotated[
        int, typer.Option("--batch", "-b", min=1, help="Ledgers per bulk submission.")
    ] = DEFAULT_BATCH_SIZE,
    retries: int = RETRIES_OPTION,
) -> None:
    """Re-export every database ledger missing from the index."""

    settings = _settings(ctx)
    try:
        source = _source(settings)
        sink = _sink(settings)
        span = _db_span(source)
        report = fill_gaps(
            source,
            sink,
            span,
            present=sink.indexed_ledger_seqs(span.first, span.end),
            batch_size=batch,
            retries=retries,
            concurrency=settings.concurrency,
            dry_run=dry_run,
        )
    except _KNOWN_ERRORS as e:
        _fail(str(e))

    for gap in report.gaps:
        print(f"gap\t{gap.first}\t{gap.last}\t{gap.count}")
    print(f"gaps={len(report.gaps)} missing={report.missing} filled={len(report.results)}")


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    database_url: Annotated[
        str | None,
        typer.Option("--database-url", help="Override DATABASE_URL (falls back to env var)."),
    ] = None,
    es_url: Annotated[
        str | None,
        typer.Option("--es-url", help="Override ES_URL (default http://localhost:9200)."),
    ] = None,
    concurrency: Annotated[
        int | None,
        typer.Option(
            "--concurrency", "-c", min=1, help="Ledger build workers (env CONCURRENCY, default 5)."
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Log level (env LEDGER_INDEXER_LOG_LEVEL, default INFO)."),
    ] = None,
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables), configures logging and resolves the
    settings shared by every subcommand.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    try:
        # Central logging setup so child loggers inherit configuration
        configure_logging(log_level)
        ctx.obj = Settings.from_env().with_overrides(
            database_url=database_url, es_url=es_url, concurrency=concurrency
        )
    except ValueError as e:
        _fail(str(e))

    if ctx.invoked_subcommand is None:
        # No subcommand provided - show help
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m ledger_indexer.cli`
    app()
