"""Net-worth summary command."""

import click
from networth.cli.date_filters import resolve_cli_date_range
from networth.domain.summary import NetWorthService


@click.command("summary")
@click.option("--history", "show_history", is_flag=True, help="Show the daily net-worth history")
@click.option("--start-date", help="First day of the history")
@click.pass_context
def summary(ctx, show_history: bool, start_date: str | None):
    """Show total assets, debts, net worth and cash flow.

    Cash flow is bank balances minus credit-card debt.

    Examples:
        networth summary
        networth summary --history --start-date "this month"
    """
    db = ctx.obj["db"]
    service = NetWorthService(db)
    start, _ = resolve_cli_date_range(ctx, start_date=start_date, end_date=None, period_flags={})

    result = service.summary(start_date=start)

    click.echo("\nNet worth summary")
    click.echo("=" * 40)
    click.echo(f"{'Total assets':<20} {result.total_assets:>18,.2f}")
    click.echo(f"{'Total debts':<20} {result.total_debts:>18,.2f}")
    click.echo("-" * 40)
    click.echo(f"{'Net worth':<20} {result.net_worth:>18,.2f}")
    click.echo(f"{'Change (day)':<20} {result.net_worth_change:>17,.2f}%")
    click.echo(f"{'Cash flow':<20} {result.cash_flow:>18,.2f}")

    if show_history and result.history:
        click.echo(f"\n{'Date':<12} {'Net worth':>16} {'Cash flow':>16}")
        click.echo("-" * 46)
        for point in result.history:
            click.echo(f"{point.day:%d/%m/%Y}   {point.net_worth:>16,.2f} {point.cash_flow:>16,.2f}")


def register_commands(cli):
    """Register summary command with main CLI."""
    cli.add_command(summary)
