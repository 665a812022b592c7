#!/usr/bin/env python3
"""
Recompute ELO ratings from approved measurement entries
"""
import asyncio
import argparse
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from supabase import create_client
import os
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from config.settings import ELO_CONFIG, LOG_LEVEL
from src.elo.data_adapter import SupabaseEloStore
from src.elo.recompute import EloRecomputeEngine, RecomputeOptions, WeightStrategy
import logging

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

console = Console()
# Load environment variables - prioritize .env.local if it exists
env_local = Path('.env.local')
if env_local.exists():
    load_dotenv(env_local, override=True)
else:
    load_dotenv()


def print_results_table(results, title="ELO Recompute Results"):
    if not results:
        console.print("[yellow]No ratings recomputed[/yellow]")
        return

    table = Table(title=title)
    table.add_column("User", style="cyan")
    table.add_column("Class", style="blue")
    table.add_column("Old ELO", justify="right")
    table.add_column("New ELO", style="green", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Tier", style="yellow")
    table.add_column("Metrics", justify="right")
    table.add_column("Population", justify="right")

    for result in results:
        change_style = "green" if result.change > 0 else "red" if result.change < 0 else "dim"
        tier = f"{result.old_tier} → {result.new_tier}" if result.tier_changed else result.new_tier
        table.add_row(
            str(result.user_id),
            str(result.category_id),
            f"{result.old_elo:.1f}",
            f"{result.new_elo:.1f}",
            f"[{change_style}]{result.change:+.1f}[/{change_style}]",
            tier,
            str(result.factors.metric_count),
            str(result.factors.population_size),
        )

    console.print(table)


def print_failures(failures):
    for failure in failures:
        console.print(f"  [red]✗ {failure.user_id} / {failure.category_id or 'all'}: {failure.error}[/red]")


async def main():
    parser = argparse.ArgumentParser(description='Recompute ELO ratings')
    parser.add_argument(
        '--type',
        choices=['user_category', 'category_all', 'user_overall', 'batch'],
        required=True,
        help='Recompute scope'
    )
    parser.add_argument('--user-id', type=str, default=None, help='User to recompute')
    parser.add_argument('--category-id', type=str, default=None, help='Class to recompute')
    parser.add_argument('--user-ids', type=str, nargs='+', default=None, help='Users for batch recompute')
    parser.add_argument('--rolling-days', type=int, default=None,
                        help=f"Rolling window in days (default: {ELO_CONFIG['rolling_days']})")
    parser.add_argument('--min-population', type=int, default=None,
                        help=f"Minimum population before widening filters (default: {ELO_CONFIG['min_population_size']})")
    parser.add_argument('--weight-strategy', choices=[s.value for s in WeightStrategy], default=None,
                        help=f"Metric weighting (default: {ELO_CONFIG['weight_strategy']})")
    parser.add_argument('--no-adjustments', action='store_true', help='Disable demographic adjustments')

    args = parser.parse_args()

    if args.type in ('user_category', 'user_overall') and not args.user_id:
        parser.error(f"--user-id is required for --type {args.type}")
    if args.type in ('user_category', 'category_all') and not args.category_id:
        parser.error(f"--category-id is required for --type {args.type}")
    if args.type == 'batch' and not args.user_ids:
        parser.error("--user-ids is required for --type batch")

    # Initialize Supabase client
    supabase_url = os.getenv('SUPABASE_URL')
    supabase_key = os.getenv('SUPABASE_SERVICE_ROLE_KEY')

    if not supabase_url or not supabase_key:
        console.print("[red]Error: SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in .env[/red]")
        sys.exit(1)

    supabase = create_client(supabase_url, supabase_key)

    options = RecomputeOptions.from_settings(
        rolling_days=args.rolling_days,
        min_population_size=args.min_population,
        weight_strategy=args.weight_strategy,
        enable_adjustments=False if args.no_adjustments else None,
    )
    engine = EloRecomputeEngine(
        SupabaseEloStore(supabase),
        options,
        base_enrollment_elo=ELO_CONFIG['base_enrollment_elo'],
        primary_enrollment_elo=ELO_CONFIG['primary_enrollment_elo'],
    )

    console.print(f"\n[bold green]ELO Recompute ({args.type})[/bold green]")
    console.print(f"  Rolling days: {options.rolling_days}")
    console.print(f"  Weight strategy: {options.weight_strategy.value}")
    console.print(f"  Adjustments: {options.enable_adjustments}")
    console.print("")

    results = []
    failures = []

    if args.type == 'user_category':
        results = [await engine.recompute_user_category_elo(args.user_id, args.category_id)]
    elif args.type == 'category_all':
        report = await engine.recompute_category_elos_report(args.category_id)
        results, failures = report.results, report.failures
    elif args.type == 'batch':
        report = await engine.batch_recompute_elos_report(args.user_ids, args.category_id)
        results, failures = report.results, report.failures
    else:
        overall = await engine.recompute_overall_elo(args.user_id)
        summary_text = (
            f"[bold]OVERALL ELO[/bold]\n"
            f"• User: [cyan]{overall.user_id}[/cyan]\n"
            f"• Old: [cyan]{overall.old_elo:.1f}[/cyan]\n"
            f"• New: [green]{overall.new_elo:.1f}[/green]\n"
            f"• Change: [yellow]{overall.change:+.1f}[/yellow]"
        )
        console.print(Panel(summary_text, title="📊 Overall Recompute", border_style="bright_blue"))
        return

    print_results_table(results)

    if failures:
        console.print(f"\n[red]{len(failures)} recomputes failed:[/red]")
        print_failures(failures)

    warnings = [w for r in results for w in r.warnings]
    tier_changes = sum(1 for r in results if r.tier_changed)
    summary_text = (
        f"[bold]RECOMPUTE SUMMARY[/bold]\n"
        f"• Recomputed: [cyan]{len(results):,}[/cyan]\n"
        f"• Failed: [red]{len(failures):,}[/red]\n"
        f"• Tier changes: [yellow]{tier_changes:,}[/yellow]\n"
        f"• Ledger warnings: [yellow]{len(warnings):,}[/yellow]"
    )
    console.print("\n")
    console.print(Panel(summary_text, title="📊 Run Summary", border_style="bright_blue"))


if __name__ == '__main__':
    try:
        asyncio.run(main())
        sys.exit(0)
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]💥 Fatal error: {e}[/red]")
        import traceback
        traceback.print_exc()
        sys.exit(1)
