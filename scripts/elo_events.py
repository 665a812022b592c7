#!/usr/bin/env python3
"""
Query the ELO event ledger and run retention cleanup
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
from src.base import EloEventType
from src.elo.data_adapter import SupabaseEloStore
from src.elo.events import (
    cleanup_old_elo_events,
    get_elo_leaderboard_changes,
    get_recent_elo_events,
    get_user_elo_events,
    get_user_elo_stats,
)
import logging

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

console = Console()
load_dotenv()


def print_events(events, title):
    if not events:
        console.print("[yellow]No events found[/yellow]")
        return

    table = Table(title=title)
    table.add_column("When", style="dim")
    table.add_column("User", style="cyan")
    table.add_column("Class", style="blue")
    table.add_column("Type", style="yellow")
    table.add_column("Old", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Change", justify="right")

    for event in events:
        change_style = "green" if event.change > 0 else "red"
        table.add_row(
            event.created_at.strftime('%Y-%m-%d %H:%M') if event.created_at else '',
            event.user_id,
            event.category_id or '-',
            event.event_type.value,
            f"{event.old_value:.1f}",
            f"{event.new_value:.1f}",
            f"[{change_style}]{event.change:+.1f}[/{change_style}]",
        )

    console.print(table)


async def main():
    parser = argparse.ArgumentParser(description='ELO event ledger tools')
    subparsers = parser.add_subparsers(dest='command', required=True)

    recent = subparsers.add_parser('recent', help='Recent events across all users')
    recent.add_argument('--limit', type=int, default=20)
    recent.add_argument('--offset', type=int, default=0)
    recent.add_argument('--event-type', choices=[t.value for t in EloEventType], default=None)

    user = subparsers.add_parser('user', help='Events for one user')
    user.add_argument('user_id')
    user.add_argument('--limit', type=int, default=50)
    user.add_argument('--offset', type=int, default=0)

    stats = subparsers.add_parser('stats', help='ELO change statistics for one user')
    stats.add_argument('user_id')
    stats.add_argument('--days', type=int, default=30)

    leaderboard = subparsers.add_parser('leaderboard', help='Biggest ELO movers')
    leaderboard.add_argument('--days', type=int, default=7)
    leaderboard.add_argument('--limit', type=int, default=20)

    cleanup = subparsers.add_parser('cleanup', help='Delete old events')
    cleanup.add_argument('--days-old', type=int, default=ELO_CONFIG['event_retention_days'])

    args = parser.parse_args()

    supabase_url = os.getenv('SUPABASE_URL')
    supabase_key = os.getenv('SUPABASE_SERVICE_ROLE_KEY')

    if not supabase_url or not supabase_key:
        console.print("[red]Error: SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in .env[/red]")
        sys.exit(1)

    store = SupabaseEloStore(create_client(supabase_url, supabase_key))

    if args.command == 'recent':
        events = await get_recent_elo_events(store, args.limit, args.offset, args.event_type)
        print_events(events, "Recent ELO Events")

    elif args.command == 'user':
        events = await get_user_elo_events(store, args.user_id, args.limit, args.offset)
        print_events(events, f"ELO Events for {args.user_id}")

    elif args.command == 'stats':
        user_stats = await get_user_elo_stats(store, args.user_id, args.days)
        summary_text = (
            f"[bold]Last {args.days} days[/bold]\n"
            f"• Events: [cyan]{user_stats.event_count:,}[/cyan]\n"
            f"• Total change: [cyan]{user_stats.total_change:+.1f}[/cyan]\n"
            f"• Average change: [cyan]{user_stats.average_change:+.2f}[/cyan]\n"
            f"• Best gain: [green]{user_stats.best_gain:+.1f}[/green]\n"
            f"• Worst loss: [red]{user_stats.worst_loss:+.1f}[/red]\n"
            f"• Tier changes: [yellow]{user_stats.tier_changes:,}[/yellow]"
        )
        console.print(Panel(summary_text, title=f"📊 {args.user_id}", border_style="bright_blue"))

    elif args.command == 'leaderboard':
        movers = await get_elo_leaderboard_changes(store, args.days, args.limit)
        table = Table(title=f"Biggest ELO Movers (last {args.days} days)")
        table.add_column("#", style="cyan", justify="right")
        table.add_column("User", style="cyan")
        table.add_column("Total Change", style="green", justify="right")
        table.add_column("Events", justify="right")
        table.add_column("Best Gain", justify="right")
        for position, mover in enumerate(movers, start=1):
            table.add_row(
                str(position),
                mover.user_id,
                f"{mover.total_change:+.1f}",
                str(mover.event_count),
                f"{mover.best_gain:+.1f}",
            )
        console.print(table)

    elif args.command == 'cleanup':
        deleted = await cleanup_old_elo_events(store, args.days_old)
        console.print(f"[green]✓ Deleted {deleted:,} events older than {args.days_old} days[/green]")


if __name__ == '__main__':
    try:
        asyncio.run(main())
        sys.exit(0)
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]💥 Fatal error: {e}[/red]")
        sys.exit(1)
