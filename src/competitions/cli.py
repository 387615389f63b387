"""Command-line interface for competitions."""

import logging
from contextlib import contextmanager
from datetime import datetime

import click


def _parse_date(value: str):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise click.BadParameter(f"Invalid date '{value}', expected YYYY-MM-DD")


def _parse_sets(values: tuple[str, ...]) -> list[tuple[int, int]]:
    sets = []
    for value in values:
        try:
            left, right = value.split("-")
            sets.append((int(left), int(right)))
        except ValueError:
            raise click.BadParameter(f"Invalid set score '{value}', expected e.g. 11-7")
    return sets


@contextmanager
def _session_scope(ctx: click.Context):
    """Open a session on the configured database and close it on exit."""
    from competitions.storage import DatabaseManager

    db = DatabaseManager(ctx.obj["config"]["database_path"])
    db.create_tables()
    session = db.get_session()
    try:
        yield session
    finally:
        session.close()


def _fail(message: str):
    click.echo(f"[ERROR] {message}", err=True)
    raise click.Abort()


@click.group()
@click.version_option(version="0.1.0")
@click.option("--config", "config_path", required=False, help="Path to config YAML file")
@click.option("--db", "db_path", required=False, help="Path to SQLite database (overrides config)")
@click.option("--log-level", required=False, help="Logging level (overrides config)")
@click.pass_context
def cli(ctx: click.Context, config_path: str, db_path: str, log_level: str):
    """Competitions - tournament groups and standings manager."""
    from competitions.config_loader import ConfigError, load_and_validate_config

    try:
        cfg = load_and_validate_config(config_path)
    except ConfigError as e:
        click.echo(f"[ERROR] Configuration Error: {e}", err=True)
        raise click.Abort()

    if db_path:
        cfg["database_path"] = db_path
    if log_level:
        cfg["log_level"] = log_level.upper()

    logging.basicConfig(
        level=getattr(logging, cfg["log_level"], logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config": cfg}


@cli.command()
@click.pass_context
def init_db(ctx: click.Context):
    """Create the database tables."""
    from competitions.storage import DatabaseManager

    db = DatabaseManager(ctx.obj["config"]["database_path"])
    db.create_tables()
    click.echo(f"[SUCCESS] Database ready at {db.db_path}")


@cli.command()
@click.option("--name", required=True, help="Sport name (e.g., 'Tenis de Mesa')")
@click.pass_context
def add_sport(ctx: click.Context, name: str):
    """Add a sport.

    Example:
        competitions add-sport --name Padel
    """
    from competitions.storage import SportRepository
    from competitions.validation import validate_sport_name

    is_valid, error_msg = validate_sport_name(name)
    if not is_valid:
        _fail(error_msg)

    with _session_scope(ctx) as session:
        repo = SportRepository(session)
        if repo.get_by_name(name) is not None:
            _fail(f"Sport {name} already exists")

        sport = repo.create(name)
        click.echo(f"[SUCCESS] Sport {sport.name} created (id {sport.id})")


@cli.command()
@click.option("--name", required=True, help="Category name")
@click.pass_context
def add_category(ctx: click.Context, name: str):
    """Add a category."""
    from competitions.storage import CategoryRepository

    with _session_scope(ctx) as session:
        repo = CategoryRepository(session)
        if repo.get_by_name(name) is not None:
            _fail(f"Category {name} already exists")

        category = repo.create(name)
        click.echo(f"[SUCCESS] Category {category.name} created (id {category.id})")


@cli.command()
@click.option("--name", required=True, help="Tournament name")
@click.option("--start", required=True, help="Start date (YYYY-MM-DD)")
@click.option("--end", required=True, help="End date (YYYY-MM-DD)")
@click.option("--sport-id", required=True, type=int, help="Sport ID")
@click.pass_context
def create_tournament(ctx: click.Context, name: str, start: str, end: str, sport_id: int):
    """Create a tournament.

    Example:
        competitions create-tournament --name "Open" --start 2026-05-01 --end 2026-05-03 --sport-id 1
    """
    from competitions.storage import SportRepository, TournamentRepository
    from competitions.validation import validate_tournament

    start_date = _parse_date(start)
    end_date = _parse_date(end)

    is_valid, error_msg = validate_tournament(name, start_date, end_date, sport_id)
    if not is_valid:
        _fail(error_msg)

    with _session_scope(ctx) as session:
        if SportRepository(session).get_by_id(sport_id) is None:
            _fail(f"Sport {sport_id} not found")

        tournament = TournamentRepository(session).create(name, start_date, end_date, sport_id)
        click.echo(f"[SUCCESS] Tournament {tournament.name} created (id {tournament.id})")


@cli.command()
@click.option("--name", required=True, help="Player name")
@click.option("--rating", default=0, type=int, help="Rating used for seeding")
@click.pass_context
def add_player(ctx: click.Context, name: str, rating: int):
    """Add a player."""
    from competitions.storage import PlayerRepository

    with _session_scope(ctx) as session:
        player = PlayerRepository(session).create(name, rating)
        click.echo(f"[SUCCESS] Player {player.name} created (id {player.id}, rating {player.rating})")


@cli.command()
@click.option("--tournament-id", required=True, type=int, help="Tournament ID")
@click.option("--category-id", required=True, type=int, help="Category ID")
@click.option("--modality", type=click.Choice(["simples", "duplas"]), default="simples")
@click.option("--player-id", type=int, help="Player ID (singles)")
@click.option("--pair-id", type=int, help="Pair ID (doubles)")
@click.pass_context
def register(ctx: click.Context, tournament_id: int, category_id: int, modality: str, player_id: int, pair_id: int):
    """Register a player or pair in a tournament category."""
    from competitions.storage import (
        CategoryRepository,
        PlayerRepository,
        RegistrationRepository,
        TournamentRepository,
    )
    from competitions.validation import validate_registration

    is_valid, error_msg = validate_registration(category_id, modality, player_id, pair_id)
    if not is_valid:
        _fail(error_msg)

    with _session_scope(ctx) as session:
        if TournamentRepository(session).get_by_id(tournament_id) is None:
            _fail(f"Tournament {tournament_id} not found")
        if CategoryRepository(session).get_by_id(category_id) is None:
            _fail(f"Category {category_id} not found")
        if player_id is not None and PlayerRepository(session).get_by_id(player_id) is None:
            _fail(f"Player {player_id} not found")

        registration_repo = RegistrationRepository(session)
        if registration_repo.find_existing(tournament_id, category_id, player_id, pair_id) is not None:
            _fail("Already registered in this tournament category")

        registration = registration_repo.create(
            tournament_id, category_id, modality, player_id=player_id, pair_id=pair_id
        )
        click.echo(f"[SUCCESS] Registration {registration.id} created")


@cli.command()
@click.option("--tournament-id", required=True, type=int, help="Tournament ID")
@click.option("--category-id", required=True, type=int, help="Category ID")
@click.option("--method", type=click.Choice(["ranked", "unranked"]), help="Distribution method (overrides config)")
@click.option("--fixtures/--no-fixtures", default=None, help="Create pending round robin matches")
@click.pass_context
def build_groups(ctx: click.Context, tournament_id: int, category_id: int, method: str, fixtures: bool):
    """Build the groups of a tournament category.

    Example:
        competitions build-groups --tournament-id 1 --category-id 2 --method ranked
    """
    from competitions.group_builder import GroupFormationError
    from competitions.models import DistributionMethod
    from competitions.storage import GroupRepository, RegistrationRepository

    cfg = ctx.obj["config"]
    method = DistributionMethod(method) if method else cfg["distribution_method"]
    create_fixtures = cfg["create_fixtures"] if fixtures is None else fixtures

    with _session_scope(ctx) as session:
        registrations = RegistrationRepository(session).get_by_tournament(tournament_id, category_id)
        names = {r.id: r.display_name for r in registrations}

        click.echo(f"[BUILD] Creating groups ({method.value}) for tournament {tournament_id}, category {category_id}...")
        try:
            groups = GroupRepository(session).create_groups(
                tournament_id, category_id, method=method, create_fixtures=create_fixtures
            )
        except GroupFormationError as e:
            _fail(str(e))

        click.echo(f"[SUCCESS] Created {len(groups)} groups")
        for group in groups:
            members = ", ".join(names.get(pid, str(pid)) for pid in group.participant_ids)
            click.echo(f"  {group.name} (id {group.id}): {members}")


@cli.command()
@click.option("--group-id", required=True, type=int, help="Group ID")
@click.option("--p1", "participant1_id", required=True, type=int, help="Registration ID of side 1")
@click.option("--p2", "participant2_id", required=True, type=int, help="Registration ID of side 2")
@click.option("--set", "set_scores", multiple=True, help="Set score as P1-P2 (repeatable), e.g. --set 11-7")
@click.pass_context
def record_match(ctx: click.Context, group_id: int, participant1_id: int, participant2_id: int, set_scores: tuple):
    """Record a group match with its set scores."""
    from competitions.storage import GroupRepository, MatchRepository
    from competitions.validation import validate_match_sets

    if participant1_id == participant2_id:
        _fail(f"Participant {participant1_id} cannot play against itself")

    sets = _parse_sets(set_scores)
    is_valid, error_msg = validate_match_sets(sets)
    if not is_valid:
        _fail(error_msg)

    with _session_scope(ctx) as session:
        group = GroupRepository(session).get_by_id(group_id)
        if group is None:
            _fail(f"Group {group_id} not found")

        members = set(group.participant_ids)
        if participant1_id not in members or participant2_id not in members:
            _fail(f"Both participants must belong to {group.name}")

        match = MatchRepository(session).create(group_id, participant1_id, participant2_id, sets)
        click.echo(f"[SUCCESS] Match {match.id} recorded ({len(sets)} sets)")


@cli.command()
@click.option("--group-id", required=True, type=int, help="Group ID")
@click.pass_context
def group_winners(ctx: click.Context, group_id: int):
    """Show the winners of a group.

    Example:
        competitions group-winners --group-id 1
    """
    from competitions.standings import determine_group_winners
    from competitions.storage import GroupRepository

    with _session_scope(ctx) as session:
        group_repo = GroupRepository(session)
        if group_repo.get_by_id(group_id) is None:
            _fail(f"Group {group_id} not found")

        result = determine_group_winners(
            group_repo.get_statistics(group_id), ctx.obj["config"]["winners_per_group"]
        )

    if result.is_insufficient:
        click.echo(f"[INFO] {result.message}")
        return

    for winner in result.winners:
        click.echo(
            f"  {winner.position}. {winner.name or winner.participant_id} - "
            f"{winner.sets_won} sets, {winner.points_won} pts ({winner.criterion.value})"
        )


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, help="Port to bind to")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int):
    """Launch the JSON API.

    Example:
        competitions serve --host 0.0.0.0 --port 8080
    """
    import uvicorn

    from competitions.webapp.app import create_app
    from competitions.storage import DatabaseManager

    cfg = ctx.obj["config"]
    app = create_app(DatabaseManager(cfg["database_path"]), cfg)

    click.echo(f"[INFO] Starting API at http://{host}:{port}")
    click.echo("[INFO] Press CTRL+C to stop")

    try:
        uvicorn.run(app, host=host, port=port, log_level=cfg["log_level"].lower())
    except KeyboardInterrupt:
        click.echo("\n[INFO] Shutting down...")


if __name__ == "__main__":
    cli()
