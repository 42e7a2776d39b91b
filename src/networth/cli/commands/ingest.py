"""Email ingestion command."""

import logging
import threading

import click
from networth.cli.error_handling import handle_domain_error
from networth.config import get_settings
from networth.domain.errors import DomainError, UnauthenticatedError
from networth.domain.ingestion import IngestionOrchestrator
from networth.domain.rules import load_rules
from networth.domain.triggers import IngestionScheduler, trigger_manual_ingestion
from networth.mail.imap import ImapMailSource

logger = logging.getLogger(__name__)


def _mail_source(ctx, settings):
    """Mail source from the context (tests) or from IMAP settings."""
    if ctx.obj.get("mail_source") is not None:
        return ctx.obj["mail_source"]
    try:
        return ImapMailSource(settings.imap_config())
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


@click.command("ingest")
@click.option(
    "--rules",
    "rules_path",
    type=click.Path(),
    help="JSON file with extraction rules (defaults to NETWORTH_RULES_PATH)",
)
@click.option("--token", help="API token authorizing a manual sync")
@click.option("--watch", is_flag=True, help="Keep running and sync on a schedule")
@click.option("--max-messages", type=int, help="Messages read per rule per pass")
@click.option("--timeout", type=float, help="Seconds after which a pass stops early")
@click.pass_context
def ingest(ctx, rules_path: str | None, token: str | None, watch: bool,
           max_messages: int | None, timeout: float | None):
    """Sync balances from bank notification emails.

    Without --watch, runs one pass and requires --token to match
    NETWORTH_API_TOKEN. With --watch, runs a pass every
    NETWORTH_INGEST_INTERVAL_HOURS hours until interrupted.

    Examples:
        networth ingest --token "$TOKEN"
        networth ingest --rules rules.json --watch
    """
    db = ctx.obj["db"]
    settings = get_settings()
    errors = settings.validate()
    for error in errors:
        click.echo(f"Error: {error}", err=True)
    if errors:
        ctx.exit(1)

    rules_path = rules_path or settings.rules_path
    if not rules_path:
        click.echo("Error: No rules file given (use --rules or NETWORTH_RULES_PATH)", err=True)
        ctx.exit(1)
    try:
        rules = load_rules(rules_path)
    except DomainError as e:
        handle_domain_error(ctx, e)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    mail_source = _mail_source(ctx, settings)
    orchestrator = IngestionOrchestrator(
        db,
        mail_source,
        rules,
        max_messages=max_messages or settings.max_messages,
        timeout=timeout if timeout is not None else settings.pass_timeout,
    )

    try:
        if watch:
            scheduler = IngestionScheduler(orchestrator, interval=settings.ingest_interval)
            click.echo(f"Syncing every {settings.ingest_interval}. Press Ctrl+C to stop.")
            try:
                scheduler.run(threading.Event())
            except KeyboardInterrupt:
                click.echo("\nStopped.")
            return

        try:
            result = trigger_manual_ingestion(orchestrator, token, settings.api_token)
        except UnauthenticatedError as e:
            handle_domain_error(ctx, e)

        click.echo(result["message"])
        if not result["success"]:
            ctx.exit(1)
    finally:
        if hasattr(mail_source, "disconnect"):
            mail_source.disconnect()


def register_commands(cli):
    """Register ingest command with main CLI."""
    cli.add_command(ingest)
