"""Command-line interface for lifecycle administration and maintenance."""

import json
import logging
import sys
import threading
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import click
import structlog

from lostfound import __version__
from lostfound.errors import AdminError, get_error_title, get_user_message
from lostfound.ledger import ActionType, Actor, ActorRole, LedgerFilters, TargetType
from lostfound.lifecycle import ItemStatus
from lostfound.maintenance import (
    DEFAULT_JOB_SPECS,
    CancellationToken,
    InProcessScheduler,
    JobType,
    load_job_specs,
)
from lostfound.notify import RecordingNotificationSender
from lostfound.observability import (
    bind_job_context,
    clear_job_context,
    configure_logging,
    level_from_name,
)
from lostfound.service import LifecycleService, build_service
from lostfound.settings import AppSettings, get_settings
from lostfound.store import SqliteDocumentStore


logger = structlog.get_logger()

STATUS_CHOICE = click.Choice([s.value for s in ItemStatus], case_sensitive=False)


@dataclass
class CliOptions:
    """Options shared by every command."""

    settings: AppSettings
    json_output: bool = False


@contextmanager
def _open_service(options: CliOptions) -> Generator[LifecycleService]:
    """Build the service for one command and tear it down afterwards."""
    settings = options.settings
    store = SqliteDocumentStore(settings.db_path, max_batch_ops=settings.store_max_batch_ops)
    service = build_service(settings, notifier=RecordingNotificationSender(), store=store)
    try:
        yield service
    except AdminError as e:
        logger.error("command_failed", component="cli", **e.to_dict())
        click.echo(f"{get_error_title(e)}: {get_user_message(e)}", err=True)
        sys.exit(1)
    finally:
        service.close()
        store.close()


def _actor(actor_id: str, actor_email: str, role: str) -> Actor:
    return Actor(id=actor_id, email=actor_email, role=ActorRole(role.upper()))


def _echo(options: CliOptions, payload: dict[str, Any], lines: list[str]) -> None:
    if options.json_output:
        click.echo(json.dumps(payload, indent=2, default=str))
    else:
        for line in lines:
            click.echo(line)


def _actor_options(fn: Any) -> Any:
    fn = click.option(
        "--role",
        default=ActorRole.ADMIN.value,
        type=click.Choice([r.value for r in ActorRole], case_sensitive=False),
        help="Actor role.",
    )(fn)
    fn = click.option("--actor-email", required=True, help="Acting user's email.")(fn)
    return click.option("--actor-id", required=True, help="Acting user's id.")(fn)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to SQLite database (overrides LOSTFOUND_DB_PATH).",
)
@click.option(
    "--json-logs/--console-logs",
    default=None,
    help="Log format (overrides LOSTFOUND_LOG_JSON).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("--json", "json_output", is_flag=True, help="Print results as JSON.")
@click.pass_context
def cli(
    ctx: click.Context,
    db_path: Path | None,
    json_logs: bool | None,
    verbose: bool,
    json_output: bool,
) -> None:
    """Lost-and-found lifecycle administration."""
    settings = get_settings()
    overrides: dict[str, Any] = {}
    if db_path is not None:
        overrides["db_path"] = db_path
    if json_logs is not None:
        overrides["log_json"] = json_logs
    if overrides:
        settings = settings.model_copy(update=overrides)

    level = logging.DEBUG if verbose else level_from_name(settings.log_level)
    configure_logging(level=level, json_format=settings.log_json)
    ctx.obj = CliOptions(settings=settings, json_output=json_output)


@cli.command()
@click.argument("name")
@click.option("--category", default="", help="Item category.")
@click.option("--location", default="", help="Where the item was found.")
@click.option("--item-id", default=None, help="Explicit item id.")
@_actor_options
@click.pass_obj
def report(  # noqa: PLR0913
    options: CliOptions,
    name: str,
    category: str,
    location: str,
    item_id: str | None,
    actor_id: str,
    actor_email: str,
    role: str,
) -> None:
    """Report a new item."""
    with _open_service(options) as service:
        outcome = service.report_item(
            _actor(actor_id, actor_email, role), name, category, location, item_id
        )
        item = outcome.value
        _echo(
            options,
            {"item": item.model_dump(mode="json"), "audit_ok": outcome.audit_ok},
            [f"Reported item {item.id} ({item.name})"],
        )
        if not outcome.audit_ok:
            click.echo("Warning: audit entry could not be written", err=True)


@cli.command()
@click.argument("item_id")
@click.argument("status", type=STATUS_CHOICE)
@click.option("--reason", default="", help="Reason for the change.")
@click.option("--recipient", default=None, help="Donation recipient (DONATED).")
@click.option("--value", "estimated_value", type=float, default=None, help="Estimated value.")
@_actor_options
@click.pass_obj
def transition(  # noqa: PLR0913
    options: CliOptions,
    item_id: str,
    status: str,
    reason: str,
    recipient: str | None,
    estimated_value: float | None,
    actor_id: str,
    actor_email: str,
    role: str,
) -> None:
    """Change an item's status."""
    with _open_service(options) as service:
        outcome = service.transition_item_status(
            item_id,
            ItemStatus(status.upper()),
            _actor(actor_id, actor_email, role),
            reason,
            recipient=recipient,
            estimated_value=estimated_value,
        )
        item = outcome.value
        _echo(
            options,
            {"item": item.model_dump(mode="json"), "audit_ok": outcome.audit_ok},
            [f"Item {item.id} is now {item.status.value}"],
        )
        if not outcome.audit_ok:
            click.echo("Warning: audit entry could not be written", err=True)


@cli.command()
@click.pass_obj
def sweep(options: CliOptions) -> None:
    """Flag aged ACTIVE items for donation."""
    run_id = uuid.uuid4().hex[:12]
    bind_job_context(run_id, "eligibility-sweep")
    try:
        with _open_service(options) as service:
            result = service.run_eligibility_sweep()
    finally:
        clear_job_context()
    _echo(
        options,
        {
            "flagged_count": result.flagged_count,
            "scanned_count": result.scanned_count,
            "flagged_ids": result.flagged_ids,
            "errors": [f.to_dict() for f in result.errors],
            "audit_errors": [f.to_dict() for f in result.audit_errors],
            "anomalies": [
                {"item_id": a.item_id, "anomaly": a.anomaly.value} for a in result.anomalies
            ],
        },
        [
            f"Flagged {result.flagged_count} of {result.scanned_count} active items",
            f"  Errors: {len(result.errors)}",
            f"  Anomalies: {len(result.anomalies)}",
        ],
    )
    if result.errors:
        sys.exit(1)


@cli.command()
@click.pass_obj
def archive(options: CliOptions) -> None:
    """Move aged ledger entries into monthly archive partitions."""
    run_id = uuid.uuid4().hex[:12]
    bind_job_context(run_id, "archive-compaction")
    try:
        with _open_service(options) as service:
            result = service.run_archive_compaction()
    finally:
        clear_job_context()
    _echo(
        options,
        {
            "archived_count": result.archived_count,
            "batch_sizes": result.batch_sizes,
            "partitions": result.partitions,
            "error_count": len(result.errors),
        },
        [
            f"Archived {result.archived_count} entries in {len(result.batch_sizes)} batches",
            f"  Partitions: {', '.join(result.partitions) or 'none'}",
            f"  Failed: {len(result.errors)}",
        ],
    )
    if result.errors:
        sys.exit(1)


@cli.command()
@click.option("--actor-id", default=None, help="Filter by actor id.")
@click.option(
    "--action",
    "action_type",
    type=click.Choice([a.value for a in ActionType], case_sensitive=False),
    default=None,
    help="Filter by action type.",
)
@click.option(
    "--target-type",
    type=click.Choice([t.value for t in TargetType], case_sensitive=False),
    default=None,
    help="Filter by target type.",
)
@click.option("--target-id", default=None, help="Filter by target id.")
@click.option("--since", type=click.DateTime(), default=None, help="Start (inclusive).")
@click.option("--until", type=click.DateTime(), default=None, help="End (exclusive).")
@click.option("--limit", type=int, default=None, help="Page size.")
@click.option("--cursor", default=None, help="Cursor from a previous page.")
@click.option("--archive", "partition", default=None, help="Archive month (YYYY-MM).")
@click.pass_obj
def logs(  # noqa: PLR0913
    options: CliOptions,
    actor_id: str | None,
    action_type: str | None,
    target_type: str | None,
    target_id: str | None,
    since: datetime | None,
    until: datetime | None,
    limit: int | None,
    cursor: str | None,
    partition: str | None,
) -> None:
    """List ledger entries, newest first."""
    filters = LedgerFilters(
        actor_id=actor_id,
        action_type=ActionType(action_type.upper()) if action_type else None,
        target_type=TargetType(target_type.upper()) if target_type else None,
        target_id=target_id,
        start=since,
        end=until,
    )
    page_size = limit or options.settings.default_page_size
    with _open_service(options) as service:
        if partition:
            page = service.ledger.query_archive(partition, filters, cursor, page_size)
        else:
            page = service.query_activity_logs(filters, cursor, page_size)
    _echo(
        options,
        {
            "entries": [e.model_dump(mode="json") for e in page.entries],
            "next_cursor": page.next_cursor,
        },
        [
            *(
                f"{e.timestamp:%Y-%m-%d %H:%M:%S} {e.action_type.display_name:<28} "
                f"{e.actor_email:<28} {e.description}"
                for e in page.entries
            ),
            *([f"Next page: --cursor {page.next_cursor}"] if page.next_cursor else []),
        ],
    )


@cli.command()
@click.argument("text")
@click.pass_obj
def search(options: CliOptions, text: str) -> None:
    """Search recent ledger entries (approximate)."""
    with _open_service(options) as service:
        entries = service.search_activity_logs(text)
    _echo(
        options,
        {"entries": [e.model_dump(mode="json") for e in entries]},
        [
            f"{e.timestamp:%Y-%m-%d %H:%M:%S} {e.action_type.display_name:<28} {e.description}"
            for e in entries
        ]
        or ["No matching entries in the recent window"],
    )


@cli.command()
@click.pass_obj
def stats(options: CliOptions) -> None:
    """Show item status counts and donation statistics."""
    with _open_service(options) as service:
        counts = service.get_status_counts()
        donations = service.get_donation_stats()
        archivable = service.archivable_count()
    lines = ["Item Status Counts", "=" * 40]
    lines += [f"  {s.display_name}: {counts.count(s)}" for s in ItemStatus]
    lines += [
        "",
        "Donations",
        "=" * 40,
        f"  Donated: {donations.total_donated} (value {donations.total_value:.2f})",
        f"  Pending: {donations.pending}  Ready: {donations.ready}",
        f"  Most donated category: {donations.most_donated_category or '-'}",
        f"  Donation rate: {donations.donation_rate:.1%}",
        "",
        f"Archivable ledger entries: {archivable}",
    ]
    _echo(
        options,
        {
            "status_counts": counts.model_dump(mode="json"),
            "donation_stats": donations.model_dump(mode="json"),
            "archivable_entries": archivable,
        },
        lines,
    )


@cli.command()
@click.option(
    "--jobs",
    "jobs_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="YAML file of job specs (daily sweep and monthly archive if omitted).",
)
@click.pass_obj
def schedule(options: CliOptions, jobs_path: Path | None) -> None:
    """Run maintenance jobs on a schedule until interrupted."""
    specs = load_job_specs(jobs_path) if jobs_path else list(DEFAULT_JOB_SPECS)
    stop = threading.Event()

    with _open_service(options) as service:

        def run_sweep(token: CancellationToken, payload: dict[str, str]) -> int:  # noqa: ARG001
            return service.run_eligibility_sweep(token).flagged_count

        def run_archive(token: CancellationToken, payload: dict[str, str]) -> int:  # noqa: ARG001
            return service.run_archive_compaction(token).archived_count

        scheduler = InProcessScheduler(
            {JobType.ELIGIBILITY_SWEEP: run_sweep, JobType.ARCHIVE_COMPACTION: run_archive}
        )
        with scheduler:
            for spec in specs:
                handle = scheduler.schedule(spec)
                click.echo(f"Scheduled {spec.name} ({handle.job_id})")
            try:
                stop.wait()
            except KeyboardInterrupt:
                click.echo("Stopping scheduler")


if __name__ == "__main__":
    cli()
