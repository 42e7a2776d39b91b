"""Main CLI entry point."""

import logging

import click
from networth.database.factories import create_sqlite_database

# Import and register all commands at module level
from networth.cli.commands import (
    account,
    import_cmd,
    ingest,
    ledger,
    summary,
)


def setup_logging(verbose: bool, debug: bool) -> None:
    """Configure logging for the networth package."""
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("networth").setLevel(level)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides NETWORTH_DB_PATH environment variable)",
    envvar="NETWORTH_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Log progress messages")
@click.option("--debug", is_flag=True, help="Log debug messages")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool, debug: bool):
    """Networth - Net-worth tracking application.

    Track bank, debt and asset balances. Balances are updated from bank
    notification emails and from CSV balance histories.
    """
    ctx.ensure_object(dict)
    setup_logging(verbose, debug)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
import_cmd.register_commands(cli)
ingest.register_commands(cli)
ledger.register_commands(cli)
summary.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
