"""
Volaria Almanac CLI
===================

Command-line interface for the almanac jobs.

Usage:
    python -m almanac <command> [options]

Commands:
    db:init                        Create database tables
    season:ingest FILE             Ingest a season submission (JSON)
    cup:ingest FILE                Record a cup season (JSON) and refresh honours
    honours:sync                   Rebuild cup and continental honours
    clubs:sync                     Rebuild club careers from league tables
    club:show CLUB_ID              Show a club's lineage-merged career
    stability:recalc               Recalculate club stability
    rankings:locations             Location trophy rankings
    rankings:nations               Nation strength rankings

Examples:
    python -m almanac season:ingest seasons/tfa-2023-24.json
    python -m almanac cup:ingest cups/turuliand-cup-2023-24.json
    python -m almanac clubs:sync --nation-id 6f1c...
    python -m almanac rankings:locations --type settlement --limit 10
    python -m almanac rankings:nations --by-coefficient
"""

import sys
from functools import wraps
from typing import Optional
from uuid import UUID

import click
from rich.console import Console

from almanac import __version__
from almanac.config import configure_logging
from almanac.errors import AlmanacError

console = Console()


def parse_uuid(value: Optional[str]) -> Optional[UUID]:
    """Parse a UUID option value."""
    if value is None:
        return None
    try:
        return UUID(value)
    except ValueError:
        raise click.BadParameter(f"Invalid id: {value}")


def reports_errors(func):
    """Print almanac errors in red and exit with status 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except AlmanacError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
    return wrapper


@click.group()
@click.version_option(version=__version__)
def cli():
    """Volaria Almanac - season ingestion, career statistics and rankings."""
    configure_logging()


# =============================================================================
# DATABASE COMMANDS
# =============================================================================

@cli.command("db:init")
@reports_errors
def cmd_db_init():
    """Create all tables that don't exist yet."""
    from almanac.database import check_database_connection, init_db

    if not check_database_connection():
        console.print("[red]Database is not reachable.[/red]")
        sys.exit(1)

    init_db()
    console.print("[green]Tables created.[/green]")


# =============================================================================
# INGEST COMMANDS
# =============================================================================

@cli.command("season:ingest")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@reports_errors
def cmd_season_ingest(file: str):
    """Ingest a season submission from a JSON file."""
    from almanac.jobs.ingest import load_submission, run_season_ingest

    console.print("\n[bold]Volaria Almanac - Season Ingestion[/bold]\n")
    run_season_ingest(load_submission(file))


@cli.command("cup:ingest")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@reports_errors
def cmd_cup_ingest(file: str):
    """Record a cup season from a JSON file and refresh club honours."""
    from almanac.jobs.honours import load_cup_submission, run_cup_ingest

    console.print("\n[bold]Volaria Almanac - Cup Ingestion[/bold]\n")
    run_cup_ingest(load_cup_submission(file))


@cli.command("honours:sync")
@click.option("--nation-id", type=str, default=None, help="Only rebuild clubs of this nation")
@reports_errors
def cmd_honours_sync(nation_id: Optional[str]):
    """Rebuild cup and continental honours from recorded cup seasons."""
    from almanac.jobs.honours import run_honours_sync

    console.print("\n[bold]Volaria Almanac - Honours Sync[/bold]\n")
    run_honours_sync(nation_id=parse_uuid(nation_id))


@cli.command("clubs:sync")
@click.option("--nation-id", type=str, default=None, help="Only rebuild clubs of this nation")
@reports_errors
def cmd_clubs_sync(nation_id: Optional[str]):
    """Rebuild club career counters from league table entries."""
    from almanac.jobs.sync import run_club_sync

    console.print("\n[bold]Volaria Almanac - Club Sync[/bold]\n")
    run_club_sync(nation_id=parse_uuid(nation_id))


@cli.command("stability:recalc")
@click.option("--nation-id", type=str, default=None, help="Only recalculate clubs of this nation")
@reports_errors
def cmd_stability_recalc(nation_id: Optional[str]):
    """Recalculate stability points for clubs."""
    from almanac.jobs.stability import run_stability_recalculation

    console.print("\n[bold]Volaria Almanac - Stability[/bold]\n")
    run_stability_recalculation(nation_id=parse_uuid(nation_id))


# =============================================================================
# CLUB COMMANDS
# =============================================================================

@cli.command("club:show")
@click.argument("club_id")
@click.option("--history/--no-history", default=True, help="Show the combined season history")
@reports_errors
def cmd_club_show(club_id: str, history: bool):
    """Show a club's career merged with its former names."""
    from rich.table import Table

    from almanac.database import get_sync_session
    from almanac.errors import ValidationError
    from almanac.lineage import combined_season_history, resolve_lineage
    from almanac.models import Club
    from almanac.store import SqlAlchemyStore

    with get_sync_session() as session:
        store = SqlAlchemyStore(session)
        club = store.get(Club, parse_uuid(club_id))
        if club is None:
            raise ValidationError(f"Club {club_id} does not exist")

        merged = resolve_lineage(store, club)
        seasons = combined_season_history(store, club) if history else []

        console.print(f"\n[bold]{merged.name}[/bold]\n")
        console.print(f"[cyan]Seasons:[/cyan] {merged.seasons_played} ({merged.seasons_top_flight} top flight)")
        console.print(f"[cyan]Record:[/cyan] W{merged.total_wins} D{merged.total_draws} L{merged.total_losses}")
        console.print(f"[cyan]Goals:[/cyan] {merged.total_goals_scored}-{merged.total_goals_conceded}")
        console.print(f"[cyan]League titles:[/cyan] {merged.league_titles} {merged.title_years or ''}")
        console.print(f"[cyan]Lower tier titles:[/cyan] {merged.lower_tier_titles}")
        console.print(f"[cyan]Promotions / relegations:[/cyan] {merged.promotions} / {merged.relegations}")
        console.print(
            f"[cyan]Domestic cup:[/cyan] {merged.domestic_cup_titles} {merged.domestic_cup_title_years or ''}"
            f" (best: {merged.domestic_cup_best_finish or '-'})"
        )
        console.print(f"[cyan]VCC / CCC titles:[/cyan] {merged.vcc_titles} / {merged.ccc_titles}")
        best = merged.best_finish
        if best.position is not None:
            console.print(f"[cyan]Best finish:[/cyan] {best.position} in tier {best.tier} ({best.year})")

        if not seasons:
            return

        table = Table(title="Season History")
        table.add_column("Year", style="cyan")
        table.add_column("Club")
        table.add_column("Pos", justify="right")
        table.add_column("P", justify="right")
        table.add_column("GD", justify="right")
        table.add_column("Pts", justify="right")
        table.add_column("Status")

        for entry in seasons:
            status_style = {
                "champion": "bold yellow",
                "promoted": "green",
                "playoff_winner": "green",
                "playoff": "blue",
                "relegated": "red",
            }.get(entry.status, "")

            table.add_row(
                entry.year,
                entry.club_name,
                str(entry.position),
                str(entry.played),
                str(entry.goal_difference),
                str(entry.points),
                f"[{status_style}]{entry.status}[/]" if status_style else entry.status,
            )

        console.print(table)


# =============================================================================
# RANKING COMMANDS
# =============================================================================

@cli.command("rankings:locations")
@click.option("--nation-id", type=str, default=None, help="Only rank locations of this nation")
@click.option("--type", "location_type", type=click.Choice(["region", "district", "settlement"]), default=None)
@click.option("--limit", type=int, default=20, help="Number of locations to show")
@reports_errors
def cmd_rankings_locations(nation_id: Optional[str], location_type: Optional[str], limit: int):
    """Rank locations by trophy score."""
    from almanac.jobs.rankings import run_location_rankings

    console.print("\n[bold]Volaria Almanac - Location Rankings[/bold]\n")
    run_location_rankings(nation_id=parse_uuid(nation_id), location_type=location_type, limit=limit)


@cli.command("rankings:nations")
@click.option("--by-coefficient", is_flag=True, help="Order by coefficient rank instead of strength")
@reports_errors
def cmd_rankings_nations(by_coefficient: bool):
    """Rank nations by strength score."""
    from almanac.jobs.rankings import run_nation_rankings

    console.print("\n[bold]Volaria Almanac - Nation Rankings[/bold]\n")
    run_nation_rankings(by_coefficient=by_coefficient)


if __name__ == "__main__":
    cli()
