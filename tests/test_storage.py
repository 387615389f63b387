"""Tests for the SQLite storage layer."""

from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from competitions import storage
from competitions.group_builder import InsufficientParticipants, UnpartitionableCount
from competitions.models import Criterion, DistributionMethod, Modality
from competitions.standings import determine_group_winners
from competitions.storage import (
    CategoryRepository,
    GroupMembershipORM,
    GroupORM,
    GroupRepository,
    GroupsAlreadyExist,
    MatchORM,
    MatchRepository,
    PlayerRepository,
    RegistrationORM,
    RegistrationRepository,
    SportRepository,
    TournamentRepository,
    group_from_orm,
)


def test_ranked_participants_sorted_by_rating(session, tournament, category, register_players):
    """Test that singles registrations come sorted by rating, registration order on ties."""
    ids = register_players([7, 10, 5, 10, 6])

    # A doubles registration never takes part in the ranked list
    RegistrationRepository(session).create(tournament.id, category.id, Modality.DOUBLES, pair_id=1)

    participants = RegistrationRepository(session).get_ranked_participants(tournament.id, category.id)

    assert [p.participant_id for p in participants] == [ids[1], ids[3], ids[0], ids[4], ids[2]]
    assert [p.rating for p in participants] == [10, 10, 7, 6, 5]


def test_create_groups_ranked(session, tournament, category, register_players):
    """Test that ranked groups are snake seeded and saved with their members."""
    ids = register_players([7, 10, 5, 9, 6, 8])
    group_repo = GroupRepository(session)

    groups = group_repo.create_groups(tournament.id, category.id, DistributionMethod.RANKED)

    # Rating order: 10, 9, 8, 7, 6, 5 -> snake into 2 groups
    assert [g.participant_ids for g in groups] == [
        [ids[1], ids[0], ids[4]],
        [ids[3], ids[5], ids[2]],
    ]

    saved = group_repo.get_by_category(tournament.id, category.id)
    assert [group_from_orm(g) for g in saved] == groups
    assert [g.name for g in saved] == ["Grupo 1", "Grupo 2"]


def test_create_groups_unranked(session, tournament, category, register_players):
    """Test that unranked groups follow registration order."""
    ids = register_players([1, 9, 2, 8, 3, 7, 4, 6, 5])

    groups = GroupRepository(session).create_groups(
        tournament.id, category.id, DistributionMethod.UNRANKED
    )

    assert [g.participant_ids for g in groups] == [ids[:5], ids[5:]]


def test_create_groups_unpartitionable(session, tournament, category, register_players):
    """Test that a failed distribution saves nothing."""
    register_players([1, 2, 3, 4, 5, 6, 7])
    group_repo = GroupRepository(session)

    with pytest.raises(UnpartitionableCount):
        group_repo.create_groups(tournament.id, category.id, DistributionMethod.UNRANKED)

    assert group_repo.get_by_category(tournament.id, category.id) == []


def test_create_groups_insufficient(session, tournament, category, register_players):
    register_players([1, 2])

    with pytest.raises(InsufficientParticipants):
        GroupRepository(session).create_groups(tournament.id, category.id)


def test_create_groups_rolls_back_on_failure(session, tournament, category, register_players, monkeypatch):
    """Test that a failure after some rows were written rolls everything back."""
    register_players([6, 5, 4, 3, 2, 1])

    def fail(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(storage, "create_group_matches", fail)

    with pytest.raises(RuntimeError, match="disk full"):
        GroupRepository(session).create_groups(tournament.id, category.id, create_fixtures=True)

    assert session.query(GroupORM).count() == 0
    assert session.query(GroupMembershipORM).count() == 0
    assert session.query(MatchORM).count() == 0


def test_create_groups_with_fixtures(session, tournament, category, register_players):
    """Test that round robin matches are created for every group."""
    register_players([6, 5, 4, 3, 2, 1])
    group_repo = GroupRepository(session)

    groups = group_repo.create_groups(tournament.id, category.id, create_fixtures=True)

    match_repo = MatchRepository(session)
    for group in groups:
        matches = match_repo.get_by_group(group.id)
        assert len(matches) == 3
        assert all(m.status == "pending" for m in matches)
        assert {m.participant1_id for m in matches} | {m.participant2_id for m in matches} == set(group.participant_ids)

    assert sorted(m.match_number for m in session.query(MatchORM).all()) == [1, 2, 3, 4, 5, 6]


def test_group_statistics_and_winners(session, tournament, category, register_players):
    """Test that statistics are derived from recorded matches."""
    ids = register_players([30, 20, 10])
    group_repo = GroupRepository(session)
    group = group_repo.create_groups(tournament.id, category.id)[0]
    a, b, c = group.participant_ids

    match_repo = MatchRepository(session)
    match_repo.create(group.id, a, b, [(11, 8), (8, 11), (11, 9)])
    match_repo.create(group.id, b, c, [(11, 5), (11, 4)])
    match_repo.create(group.id, a, c, [(9, 11), (11, 7), (11, 3)])

    statistics = group_repo.get_statistics(group.id)

    # a: 2 + 2 sets, 30 + 31 pts / b: 1 + 2 sets, 28 + 22 pts / c: 0 + 1 sets, 9 + 21 pts
    assert [(s.participant_id, s.sets_won, s.points_won) for s in statistics] == [
        (a, 4, 61),
        (b, 3, 50),
        (c, 1, 30),
    ]
    assert statistics[0].name == "Jogador 1"
    assert a == ids[0]

    result = determine_group_winners(statistics)
    assert [(w.participant_id, w.criterion) for w in result.winners] == [
        (a, Criterion.SETS_WON),
        (b, Criterion.SETS_WON),
    ]


def test_group_statistics_unknown_group(session):
    assert GroupRepository(session).get_statistics(999) == []


def test_record_result(session, tournament, category, register_players):
    register_players([3, 2, 1])
    group = GroupRepository(session).create_groups(tournament.id, category.id, create_fixtures=True)[0]
    match_repo = MatchRepository(session)
    match = match_repo.get_by_group(group.id)[0]

    updated = match_repo.record_result(match.id, [(11, 2), (11, 3)])

    assert updated.status == "completed"
    assert [(s.set_number, s.participant1_points, s.participant2_points) for s in updated.sets] == [
        (1, 11, 2),
        (2, 11, 3),
    ]
    assert match_repo.record_result(999, [(11, 2)]) is None


def test_delete_groups_by_category(session, tournament, category, register_players):
    register_players([3, 2, 1, 4, 5, 6])
    group_repo = GroupRepository(session)
    group_repo.create_groups(tournament.id, category.id, create_fixtures=True)

    assert group_repo.delete_by_category(tournament.id, category.id) == 2
    assert session.query(GroupMembershipORM).count() == 0
    assert session.query(MatchORM).count() == 0


def test_sport_and_tournament_crud(session):
    sport_repo = SportRepository(session)
    padel = sport_repo.create("Padel")
    sport_repo.create("Badminton")

    assert [s.name for s in sport_repo.get_all()] == ["Badminton", "Padel"]
    assert sport_repo.get_by_name("Padel").id == padel.id

    tournament_repo = TournamentRepository(session)
    older = tournament_repo.create("Etapa 1", date(2026, 2, 1), date(2026, 2, 2), padel.id)
    newer = tournament_repo.create("Etapa 2", date(2026, 4, 1), date(2026, 4, 2), padel.id)

    assert [t.id for t in tournament_repo.get_all()] == [newer.id, older.id]
    assert [t.id for t in tournament_repo.get_by_sport(padel.id)] == [newer.id, older.id]
    assert tournament_repo.delete(older.id)
    assert not tournament_repo.delete(older.id)


def test_player_rating_update(session):
    player_repo = PlayerRepository(session)
    player = player_repo.create("Ana", 1500)

    assert player_repo.update_rating(player.id, 1620)
    assert player_repo.get_by_id(player.id).rating == 1620
    assert not player_repo.update_rating(999, 1)


def test_create_groups_twice_is_refused(session, tournament, category, register_players):
    """Test that a category keeps a single partition."""
    register_players([6, 5, 4, 3, 2, 1])
    group_repo = GroupRepository(session)
    group_repo.create_groups(tournament.id, category.id)

    with pytest.raises(GroupsAlreadyExist):
        group_repo.create_groups(tournament.id, category.id)

    assert len(group_repo.get_by_category(tournament.id, category.id)) == 2
    assert session.query(GroupMembershipORM).count() == 6


def test_registration_is_unique_per_category(session, tournament, category):
    player = PlayerRepository(session).create("Ana", 1500)
    registration_repo = RegistrationRepository(session)
    first = registration_repo.create(tournament.id, category.id, player_id=player.id)

    assert registration_repo.find_existing(tournament.id, category.id, player_id=player.id).id == first.id
    assert registration_repo.find_existing(tournament.id, category.id, pair_id=3) is None

    other_category = CategoryRepository(session).create("Feminino A")
    assert registration_repo.create(tournament.id, other_category.id, player_id=player.id).id != first.id

    session.add(RegistrationORM(tournament_id=tournament.id, category_id=category.id, player_id=player.id))
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()


def test_delete_tournament_with_groups(session, tournament, category, register_players):
    """Test that deleting a tournament removes its registrations, groups and matches."""
    register_players([3, 2, 1])
    GroupRepository(session).create_groups(tournament.id, category.id, create_fixtures=True)

    assert TournamentRepository(session).delete(tournament.id)

    assert session.query(RegistrationORM).count() == 0
    assert session.query(GroupORM).count() == 0
    assert session.query(GroupMembershipORM).count() == 0
    assert session.query(MatchORM).count() == 0


def test_sport_with_tournaments_is_kept(session, tournament):
    sport_repo = SportRepository(session)

    with pytest.raises(ValueError):
        sport_repo.delete(tournament.sport_id)

    assert sport_repo.get_by_id(tournament.sport_id) is not None
    assert not sport_repo.delete(999)


def test_update_sport_and_tournament(session, tournament):
    sport = SportRepository(session).update(tournament.sport_id, "Padel")
    assert sport.name == "Padel"
    assert SportRepository(session).update(999, "Squash") is None

    tournament_repo = TournamentRepository(session)
    updated = tournament_repo.update(tournament.id, "Open de Outono", date(2026, 4, 1), date(2026, 4, 5), sport.id)
    assert updated.name == "Open de Outono"
    assert updated.end_date == date(2026, 4, 5)
    assert tournament_repo.update(999, "X", date(2026, 4, 1), date(2026, 4, 5), sport.id) is None
