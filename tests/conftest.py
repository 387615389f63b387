"""Shared fixtures: a throwaway SQLite database per test."""

from datetime import date

import pytest

from competitions.storage import (
    CategoryRepository,
    DatabaseManager,
    PlayerRepository,
    RegistrationRepository,
    SportRepository,
    TournamentRepository,
)


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Keep the default data directory inside the test's tmp dir."""
    monkeypatch.setenv("COMPETITIONS_DATA_DIR", str(tmp_path / "data"))
    return tmp_path / "data"


@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager(tmp_path / "test.sqlite")
    manager.create_tables()
    return manager


@pytest.fixture
def session(db):
    session = db.get_session()
    yield session
    session.close()


@pytest.fixture
def tournament(session):
    sport = SportRepository(session).create("Tenis de Mesa")
    return TournamentRepository(session).create(
        "Open de Verão", date(2026, 1, 10), date(2026, 1, 12), sport.id
    )


@pytest.fixture
def category(session):
    return CategoryRepository(session).create("Masculino A")


@pytest.fixture
def register_players(session, tournament, category):
    """Return a helper registering one player per rating, in the given order."""

    def register(ratings):
        player_repo = PlayerRepository(session)
        registration_repo = RegistrationRepository(session)
        registrations = []
        for idx, rating in enumerate(ratings, start=1):
            player = player_repo.create(f"Jogador {idx}", rating)
            registrations.append(
                registration_repo.create(tournament.id, category.id, "simples", player_id=player.id)
            )
        return [r.id for r in registrations]

    return register
