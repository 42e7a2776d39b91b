"""CLI helpers for date range options."""

from datetime import date

import click

from networth.utils.date_parser import get_date_range, parse_date

PERIODS = ("this-month", "this-year", "this-week", "last-month", "last-year", "last-week")


def period_options(command):
    """Add --start-date, --end-date and one flag per period to a command.

    The period flags arrive in the command as keyword arguments named after
    the period (``this_month``, ``last_week``, ...).
    """
    for period in reversed(PERIODS):
        command = click.option(
            f"--{period}", is_flag=True, help=f"Limit to {period.replace('-', ' ')}"
        )(command)
    command = click.option("--end-date", help="End date (DD/MM/YYYY, YYYY-MM-DD or relative)")(command)
    command = click.option("--start-date", help="Start date (DD/MM/YYYY, YYYY-MM-DD or relative)")(command)
    return command


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
    period_flags: dict[str, bool],
) -> tuple[date | None, date | None]:
    """Resolve a date range from one period flag or explicit dates."""
    selected = [name.replace("_", "-") for name, is_set in period_flags.items() if is_set]

    if len(selected) > 1:
        click.echo(
            f"Error: Only one period option ({', '.join('--' + p for p in PERIODS)}) can be specified at a time.",
            err=True,
        )
        ctx.exit(1)

    if selected and (start_date or end_date):
        click.echo(
            "Error: Period options cannot be combined with --start-date or --end-date.",
            err=True,
        )
        ctx.exit(1)

    if selected:
        return get_date_range(selected[0])

    start = end = None
    try:
        if start_date:
            start = parse_date(start_date)
    except ValueError as e:
        click.echo(f"Error: Invalid start date: {e}", err=True)
        ctx.exit(1)
    try:
        if end_date:
            end = parse_date(end_date)
    except ValueError as e:
        click.echo(f"Error: Invalid end date: {e}", err=True)
        ctx.exit(1)

    if start and end and start > end:
        click.echo("Error: Start date must be on or before end date.", err=True)
        ctx.exit(1)
    return start, end
