"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner

from competitions.cli import cli


@pytest.fixture
def run(tmp_path):
    """Invoke the CLI against a database in the test's tmp dir."""
    runner = CliRunner()
    db_path = str(tmp_path / "cli.sqlite")

    def invoke(*args):
        return runner.invoke(cli, ["--db", db_path, *args])

    return invoke


@pytest.fixture
def tournament(run):
    assert run("add-sport", "--name", "Tenis de Mesa").exit_code == 0
    assert run("add-category", "--name", "Livre").exit_code == 0
    result = run(
        "create-tournament", "--name", "Open", "--start", "2026-05-01", "--end", "2026-05-03", "--sport-id", "1"
    )
    assert result.exit_code == 0, result.output
    return 1


def add_players(run, ratings):
    for idx, rating in enumerate(ratings, start=1):
        assert run("add-player", "--name", f"P{idx}", "--rating", str(rating)).exit_code == 0
        result = run("register", "--tournament-id", "1", "--category-id", "1", "--player-id", str(idx))
        assert result.exit_code == 0, result.output


def test_init_db(run, tmp_path):
    result = run("init-db")

    assert result.exit_code == 0
    assert "[SUCCESS]" in result.output
    assert (tmp_path / "cli.sqlite").exists()


def test_invalid_sport(run):
    result = run("add-sport", "--name", "Futebol")

    assert result.exit_code != 0
    assert "[ERROR]" in result.output


def test_invalid_dates(run, tournament):
    result = run(
        "create-tournament", "--name", "Copa", "--start", "2026-05-03", "--end", "2026-05-01", "--sport-id", "1"
    )
    assert result.exit_code != 0
    assert "[ERROR]" in result.output

    result = run("create-tournament", "--name", "Copa", "--start", "03/05/2026", "--end", "2026-05-01", "--sport-id", "1")
    assert result.exit_code != 0


def test_build_groups_and_winners(run, tournament):
    """Test the full flow from registrations to group winners."""
    add_players(run, [60, 50, 40, 30, 20, 10])

    result = run("build-groups", "--tournament-id", "1", "--category-id", "1", "--method", "ranked")
    assert result.exit_code == 0, result.output
    assert "Created 2 groups" in result.output
    assert "Grupo 1 (id 1): P1, P4, P5" in result.output
    assert "Grupo 2 (id 2): P2, P3, P6" in result.output

    result = run("group-winners", "--group-id", "1")
    assert result.exit_code == 0

    for args in [
        ("--p1", "1", "--p2", "4", "--set", "11-5", "--set", "11-7"),
        ("--p1", "4", "--p2", "5", "--set", "11-9", "--set", "9-11", "--set", "11-8"),
        ("--p1", "1", "--p2", "5", "--set", "11-13", "--set", "11-4"),
    ]:
        result = run("record-match", "--group-id", "1", *args)
        assert result.exit_code == 0, result.output

    result = run("group-winners", "--group-id", "1")
    assert result.exit_code == 0
    assert "1. P1 - 3 sets, 44 pts (Total de Sets Ganhos)" in result.output
    assert "2. P5 - 2 sets, 45 pts (Total de Sets Ganhos)" in result.output


def test_build_groups_unpartitionable(run, tournament):
    add_players(run, [1, 2, 3, 4, 5, 6, 7])

    result = run("build-groups", "--tournament-id", "1", "--category-id", "1", "--method", "unranked")

    assert result.exit_code != 0
    assert "[ERROR]" in result.output
    assert "cannot be partitioned" in result.output


def test_record_match_errors(run, tournament):
    add_players(run, [6, 5, 4, 3, 2, 1])
    run("build-groups", "--tournament-id", "1", "--category-id", "1")

    result = run("record-match", "--group-id", "1", "--p1", "1", "--p2", "2", "--set", "11-3")
    assert result.exit_code != 0
    assert "must belong" in result.output

    result = run("record-match", "--group-id", "1", "--p1", "1", "--p2", "4", "--set", "eleven")
    assert result.exit_code != 0

    result = run("record-match", "--group-id", "9", "--p1", "1", "--p2", "4", "--set", "11-3")
    assert result.exit_code != 0


def test_group_winners_without_matches(run, tournament):
    add_players(run, [3, 2, 1])
    run("build-groups", "--tournament-id", "1", "--category-id", "1")

    result = run("--log-level", "debug", "group-winners", "--group-id", "1")

    assert result.exit_code == 0
    assert "1. P1" in result.output


def test_record_match_against_itself(run, tournament):
    add_players(run, [3, 2, 1])
    run("build-groups", "--tournament-id", "1", "--category-id", "1")

    result = run("record-match", "--group-id", "1", "--p1", "2", "--p2", "2", "--set", "11-0")

    assert result.exit_code != 0
    assert "[ERROR]" in result.output
    assert "against itself" in result.output


def test_duplicate_sport_and_category(run, tournament):
    result = run("add-sport", "--name", "Tenis de Mesa")
    assert result.exit_code != 0
    assert "already exists" in result.output

    result = run("add-category", "--name", "Livre")
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_register_checks(run, tournament):
    add_players(run, [5])

    result = run("register", "--tournament-id", "1", "--category-id", "1", "--player-id", "1")
    assert result.exit_code != 0
    assert "Already registered" in result.output

    result = run("register", "--tournament-id", "1", "--category-id", "1", "--player-id", "42")
    assert result.exit_code != 0
    assert "Player 42 not found" in result.output

    result = run("register", "--tournament-id", "1", "--category-id", "9", "--player-id", "1")
    assert result.exit_code != 0
    assert "Category 9 not found" in result.output


def test_build_groups_twice(run, tournament):
    add_players(run, [3, 2, 1])
    assert run("build-groups", "--tournament-id", "1", "--category-id", "1").exit_code == 0

    result = run("build-groups", "--tournament-id", "1", "--category-id", "1")

    assert result.exit_code != 0
    assert "already has groups" in result.output
