"""Command-line interface for the ledger."""

import argparse
import sys
import uuid
from decimal import Decimal
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from strato_ledger import __version__
from strato_ledger.config import ConfigError, load_config
from strato_ledger.ingestion.orchestrator import IngestionReport
from strato_ledger.models.report import SourceBreakdown, SummaryStats
from strato_ledger.models.transaction import DEFAULT_CATEGORY, MANUAL_SOURCE, Transaction
from strato_ledger.processing.aggregator import TimeWindow
from strato_ledger.session import LedgerSession
from strato_ledger.utils.date_utils import format_date, parse_date
from strato_ledger.utils.decimal_utils import format_currency, parse_amount
from strato_ledger.utils.logging_config import get_logger, setup_logging

# Load environment variables from .env file (if it exists)
load_dotenv()

console = Console()
logger = get_logger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="strato-ledger",
        description="Consolidate pix wallet and credit-card feeds into one monthly ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s periods --set 2024-01 2024-02
  %(prog)s sources --set nubank_pf_pix=https://docs.google.com/spreadsheets/d/<id>/edit
  %(prog)s summary
  %(prog)s dashboard --window 7days
  %(prog)s add --date 15/01/2024 --description "Freela" --amount 500 --label "Pix Inter"
  %(prog)s add --date 16/01/2024 --description "Mercado" --amount=-50,00
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to settings.yaml (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=Path("config"),
        help="Base config directory (default: ./config)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (-v, -vv)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    periods = subparsers.add_parser("periods", help="Show or change the selected months")
    periods_group = periods.add_mutually_exclusive_group()
    periods_group.add_argument("--set", nargs="*", metavar="YYYY-MM", help="Replace the selection")
    periods_group.add_argument("--toggle", metavar="YYYY-MM", help="Add or remove one month")
    periods_group.add_argument("--year", type=int, help="Add every month of a year")
    periods.add_argument("--no-refresh", action="store_true", help="Do not fetch after changing")

    sources = subparsers.add_parser("sources", help="Show or set feed URLs for a month")
    sources.add_argument("--period", metavar="YYYY-MM", help="Month to configure (default: first selected)")
    sources.add_argument(
        "--set",
        nargs="+",
        metavar="KEY=URL",
        help="Set source URLs (an empty URL disables the source)",
    )
    sources.add_argument("--no-refresh", action="store_true", help="Do not fetch after changing")

    subparsers.add_parser("refresh", help="Re-fetch every configured feed of the selected months")
    subparsers.add_parser("summary", help="Show income, expense and balance totals")

    listing = subparsers.add_parser("list", help="List transactions, newest first")
    listing.add_argument("--limit", type=int, default=None, help="Show at most N transactions")

    add = subparsers.add_parser("add", help="Add or edit a manual transaction")
    add.add_argument("--date", required=True, help="Date as DD/MM/YYYY")
    add.add_argument("--description", required=True)
    add.add_argument(
        "--amount",
        required=True,
        help="Signed amount: positive income, negative expense (write negatives as --amount=-50,00)",
    )
    add.add_argument("--category", default=DEFAULT_CATEGORY)
    add.add_argument("--label", default=None, help="Free-text source label, e.g. 'Pix Inter'")
    add.add_argument("--id", default=None, help="Id of an existing manual transaction to edit")

    delete = subparsers.add_parser("delete", help="Delete a manual transaction")
    delete.add_argument("id")

    ignore = subparsers.add_parser("ignore", help="Toggle the ignored flag of a transaction")
    ignore.add_argument("id")

    dashboard = subparsers.add_parser("dashboard", help="Show per-source breakdowns and monthly evolution")
    dashboard.add_argument(
        "--window",
        choices=[w.value for w in TimeWindow],
        default=TimeWindow.ALL.value,
        help="Time window (default: all)",
    )
    dashboard.add_argument("--start", type=parse_date, default=None, help="Custom window start")
    dashboard.add_argument("--end", type=parse_date, default=None, help="Custom window end")

    subparsers.add_parser("validate-config", help="Validate configuration files only")

    return parser


def get_log_level(verbosity: int) -> str:
    """Convert verbosity count to log level.

    Args:
        verbosity: Number of -v flags.

    Returns:
        Log level string.
    """
    if verbosity >= 2:
        return "DEBUG"
    elif verbosity >= 1:
        return "INFO"
    else:
        return "WARNING"


def parse_source_assignments(values: list[str]) -> dict[str, str]:
    """Parse KEY=URL pairs from the command line.

    Raises:
        ValueError: If a pair has no '=' or an empty key.
    """
    assignments: dict[str, str] = {}
    for value in values:
        key, sep, url = value.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=URL, got {value!r}")
        assignments[key.strip()] = url.strip()
    return assignments


def validate_config(args: argparse.Namespace) -> int:
    """Validate configuration files.

    Args:
        args: Parsed command-line arguments.

    Returns:
        0 if valid, 1 if errors found.
    """
    console.print("[bold]Validating configuration files...[/bold]\n")

    errors = []
    warnings = []

    config_dir = args.config_dir
    if not config_dir.exists():
        warnings.append(f"Config directory not found: {config_dir}")

    settings_path = args.config or (config_dir / "settings.yaml")
    if settings_path.exists():
        console.print(f"[green]✓[/green] Settings: {settings_path}")
    else:
        warnings.append(f"Settings file not found: {settings_path}")

    try:
        config = load_config(settings_path=args.config, config_dir=config_dir)
        registry = config.build_registry()
        console.print("\n[green]✓[/green] Configuration loaded successfully")
        console.print(f"  - State directory: {config.state_dir}")
        console.print(f"  - Credit-card source: {config.credit_source}")
        console.print(f"  - {len(registry.sources)} sources")
        if config.credit_source not in registry.sources:
            warnings.append(f"Credit-card source '{config.credit_source}' has no label configured")
    except (ConfigError, OSError) as e:
        errors.append(f"Failed to load configuration: {e}")

    if warnings:
        console.print("\n[yellow]Warnings:[/yellow]")
        for w in warnings:
            console.print(f"  - {w}")

    if errors:
        console.print("\n[red]Errors:[/red]")
        for err in errors:
            console.print(f"  - {err}")
        return 1

    console.print("\n[green]Configuration is valid.[/green]")
    return 0


def create_progress() -> Progress:
    """Create a spinner for long-running fetches."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    )


def display_report(report: Optional[IngestionReport]) -> None:
    """Print the outcome of a refresh."""
    if report is None:
        console.print("[yellow]No months selected; nothing to fetch.[/yellow]")
        return
    if report.superseded:
        console.print("[yellow]Refresh superseded by a newer one; results discarded.[/yellow]")
        return

    console.print(
        f"[green]Fetched {report.total_rows} transactions "
        f"from {len(report.outcomes)} feed(s)[/green]"
    )
    if report.failures:
        console.print(f"\n[red]Failed feeds ({len(report.failures)}):[/red]")
        for outcome in report.failures:
            console.print(f"  - {outcome.period} {outcome.source}: {outcome.error}")


def _money(amount: Decimal) -> str:
    style = "green" if amount >= 0 else "red"
    return f"[{style}]{format_currency(amount)}[/{style}]"


def display_summary(stats: SummaryStats) -> None:
    table = Table(title="Summary")
    table.add_column("")
    table.add_column("Total", justify="right")
    table.add_column("Pix", justify="right")
    table.add_column("Credit card", justify="right")

    table.add_row("Income", _money(stats.income_total), _money(stats.income_pix), _money(stats.income_credit))
    table.add_row(
        "Expenses",
        _money(-stats.expenses_total),
        _money(-stats.expenses_pix),
        _money(-stats.expenses_credit),
    )
    table.add_row(
        "[bold]Balance[/bold]",
        _money(stats.balance),
        _money(stats.balance_pix),
        _money(stats.balance_credit),
    )
    console.print(table)


def display_breakdown(title: str, breakdown: SourceBreakdown) -> None:
    table = Table(title=title)
    table.add_column("Source")
    table.add_column("Value", justify="right")
    table.add_column("Share", justify="right")

    for entry in breakdown.entries:
        table.add_row(
            f"[{entry.color}]■[/] {entry.label}",
            format_currency(entry.value),
            f"{entry.share}%",
        )
    if not breakdown.entries:
        table.add_row("[dim]no data[/dim]", "", "")
    console.print(table)


def display_transactions(session: LedgerSession, limit: Optional[int] = None) -> None:
    transactions = session.listing()
    if limit is not None:
        transactions = transactions[:limit]

    table = Table(title=f"Transactions ({', '.join(session.selected_periods)})")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Category")
    table.add_column("Source")
    table.add_column("Amount", justify="right")
    table.add_column("Id", style="dim")

    for txn in transactions:
        ignored = session.store.is_ignored(txn.id)
        label = session.registry.label_for(txn.source, txn.manual_source_label)
        description = escape(txn.description)
        if ignored:
            description = f"[strike]{description}[/strike]"
        table.add_row(txn.date, description, txn.category, label, _money(txn.amount), txn.id)

    console.print(table)


def build_manual_transaction(args: argparse.Namespace, session: LedgerSession) -> Transaction:
    """Build the manual transaction described by the 'add' arguments.

    Raises:
        ValueError: If the amount is not numeric or --id names a
            transaction that is not a manual entry.
    """
    amount = parse_amount(args.amount)
    if amount is None:
        raise ValueError(f"Invalid amount: {args.amount!r}")

    transaction_id = args.id or f"{MANUAL_SOURCE}-{uuid.uuid4().hex[:12]}"
    if args.id:
        existing = session.find(args.id)
        if existing is not None and not existing.is_manual:
            raise ValueError(f"Transaction {args.id} came from a feed and cannot be edited")

    return Transaction.create(
        id=transaction_id,
        date=args.date.strip(),
        description=args.description.strip(),
        amount=amount,
        source=MANUAL_SOURCE,
        category=args.category or DEFAULT_CATEGORY,
        manual_source_label=args.label,
    )


def run_command(args: argparse.Namespace, session: LedgerSession) -> int:
    """Dispatch one subcommand against an open session.

    Returns:
        Exit code.
    """
    command = args.command

    if command == "periods":
        report = None
        refresh = not args.no_refresh
        try:
            if args.set is not None:
                report = session.select_periods(args.set, refresh=refresh)
            elif args.toggle:
                report = session.toggle_period(args.toggle, refresh=refresh)
            elif args.year:
                report = session.select_year(args.year, refresh=refresh)
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            return 1
        console.print(f"Selected months: {', '.join(session.selected_periods) or '(none)'}")
        console.print(f"State: {session.state.value}")
        if report is not None:
            display_report(report)
        return 0

    if command == "sources":
        period = args.period or (session.selected_periods[0] if session.selected_periods else None)
        if period is None:
            console.print("[red]Error: no month selected; pass --period[/red]")
            return 1

        if args.set:
            try:
                mapping = session.sources_for(period)
                mapping.update(parse_source_assignments(args.set))
                with create_progress() as progress:
                    progress.add_task("Fetching feeds...", total=None)
                    report = session.update_sources(period, mapping, refresh=not args.no_refresh)
            except ValueError as e:
                console.print(f"[red]Error: {e}[/red]")
                return 1
            if report is not None:
                display_report(report)

        table = Table(title=f"Sources for {period}")
        table.add_column("Key")
        table.add_column("Label")
        table.add_column("URL")
        configured = session.sources_for(period)
        for key in session.registry.fetchable_keys:
            table.add_row(key, session.registry.label_for(key), configured.get(key, "") or "[dim]-[/dim]")
        for key, url in configured.items():
            if key not in session.registry.sources:
                table.add_row(key, session.registry.label_for(key), url)
        console.print(table)
        return 0

    if command == "refresh":
        with create_progress() as progress:
            progress.add_task("Fetching feeds...", total=None)
            report = session.refresh()
        display_report(report)
        return 0

    if command == "summary":
        display_summary(session.summary())
        return 0

    if command == "list":
        display_transactions(session, limit=args.limit)
        return 0

    if command == "add":
        try:
            transaction = build_manual_transaction(args, session)
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            return 1

        result = session.add_or_edit_manual(transaction)
        if not result.success:
            console.print(f"[red]Error: {result.error}[/red]")
            return 1
        action = "Updated" if result.replaced else "Added"
        console.print(f"[green]{action} {transaction.id} in {result.period}[/green]")
        return 0

    if command == "delete":
        if not session.delete_manual(args.id):
            console.print(f"[red]Error: no manual transaction with id {args.id}[/red]")
            return 1
        console.print(f"[green]Deleted {args.id}[/green]")
        return 0

    if command == "ignore":
        ignored = session.toggle_ignore(args.id)
        state = "ignored" if ignored else "restored"
        console.print(f"{args.id}: {state}")
        return 0

    if command == "dashboard":
        window = TimeWindow(args.window)
        data = session.dashboard(window, start=args.start, end=args.end)
        window_label = window.value
        if window is TimeWindow.CUSTOM and args.start and args.end:
            window_label = f"{format_date(args.start)} - {format_date(args.end)}"
        console.print(f"[bold]Window:[/bold] {window_label} ({data.transaction_count} transactions)")
        display_breakdown("Expenses by source", data.expense_by_source)
        display_breakdown("Balance by source", data.balance_by_source)

        table = Table(title="Monthly evolution")
        table.add_column("Month")
        table.add_column("Income", justify="right")
        table.add_column("Expenses", justify="right")
        table.add_column("Balance", justify="right")
        for point in data.evolution:
            table.add_row(point.month, _money(point.income), _money(-point.expense), _money(point.balance))
        console.print(table)
        return 0

    console.print(f"[red]Unknown command: {command}[/red]")
    return 1


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Set up logging
    log_level = get_log_level(args.verbose)
    setup_logging(level=log_level, console_output=args.verbose > 0)

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "validate-config":
        return validate_config(args)

    try:
        config = load_config(settings_path=args.config, config_dir=args.config_dir)
    except (ConfigError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("Run 'strato-ledger validate-config' to check configuration files.")
        return 1

    if config.logging.file:
        setup_logging(level=log_level, log_file=config.logging.file, console_output=args.verbose > 0)

    session = LedgerSession(config)
    try:
        return run_command(args, session)
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
