"""CLI entry point for reporting module."""

import asyncio
import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from src.core.config import settings, LOG_FORMAT
from src.reporting.exceptions import ReportingError
from src.reporting.renderer import render_report_html, resolve_columns, format_value
from src.reporting.service import report_dispatcher, report_generator

console = Console()

STATUS_STYLES = {"sent": "green", "failed": "red", "skipped": "yellow"}


def _print_outcomes(outcomes) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Report", width=38)
    table.add_column("Type", width=18)
    table.add_column("Status", justify="center")
    table.add_column("Next Run")
    table.add_column("Error")

    for outcome in outcomes:
        style = STATUS_STYLES.get(outcome.status, "white")
        table.add_row(
            outcome.report_id,
            outcome.report_type,
            f"[{style}]{outcome.status}[/{style}]",
            outcome.next_run_at.isoformat() if outcome.next_run_at else "",
            outcome.error or "",
        )
    console.print(table)


async def run_due() -> int:
    outcomes = await report_dispatcher.run_scheduled_reports()
    if not outcomes:
        console.print("[dim]No reports due.[/dim]")
        return 0
    _print_outcomes(outcomes)
    return 1 if any(o.status == "failed" for o in outcomes) else 0


async def run_one(report_id: str) -> int:
    outcome = await report_dispatcher.run_report_now(report_id)
    _print_outcomes([outcome])
    return 0


async def generate(args) -> int:
    params = {
        key: value
        for key, value in {
            "start_date": args.start_date,
            "end_date": args.end_date,
            "status": args.status,
            "role": args.role,
        }.items()
        if value is not None
    }
    payload = await report_generator.generate(args.report_type, params)

    console.print(f"\n[bold blue]{payload.report_name}[/bold blue]  [dim]{payload.total} row(s)[/dim]\n")
    if payload.summary:
        for key, value in payload.summary.items():
            if key != "status_counts":
                console.print(f"   • {key}: {format_value(value)}")

    if isinstance(payload.data, list) and payload.data:
        columns = resolve_columns(payload.data, payload.columns)
        table = Table(show_header=True, header_style="bold magenta")
        for col in columns:
            table.add_column(col)
        for row in payload.data[: args.limit]:
            table.add_row(*(format_value(row.get(col)) for col in columns))
        console.print(table)
        if payload.total > args.limit:
            console.print(f"[dim]... {payload.total - args.limit} more row(s)[/dim]")

    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(render_report_html(payload), encoding="utf-8")
        console.print(f"[green]HTML written to {output}[/green]")
    return 0


def main():
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Escrowise scheduled reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Send every report that is due now
  python -m src.reporting run-due

  # Run one scheduled report immediately
  python -m src.reporting run 6f1c...

  # Preview a financial report for January and save the email HTML
  python -m src.reporting generate financial --start-date 2024-01-01 --end-date 2024-01-31 --output outputs/financial.html
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run-due", help="Dispatch all active reports whose next run has passed")

    run_parser = subparsers.add_parser("run", help="Run one scheduled report now")
    run_parser.add_argument("report_id")

    gen_parser = subparsers.add_parser("generate", help="Generate a report without sending it")
    gen_parser.add_argument("report_type")
    gen_parser.add_argument("--start-date", help="ISO date or datetime (inclusive)")
    gen_parser.add_argument("--end-date", help="ISO date (whole day included) or datetime (inclusive)")
    gen_parser.add_argument("--status", help="Status filter (transactions, disputes, financial)")
    gen_parser.add_argument("--role", help="Role filter (users)")
    gen_parser.add_argument("--limit", type=int, default=25, help="Rows to print (default: 25)")
    gen_parser.add_argument("--output", help="Write the rendered HTML to this file")

    args = parser.parse_args()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    if args.command == "run-due":
        coro = run_due()
    elif args.command == "run":
        coro = run_one(args.report_id)
    else:
        coro = generate(args)

    try:
        sys.exit(asyncio.run(coro))
    except KeyboardInterrupt:
        console.print("\n\nReport run cancelled.")
        sys.exit(1)
    except ReportingError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == '__main__':
    main()
