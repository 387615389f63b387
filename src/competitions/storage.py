"""SQLite storage layer for competitions.

Provides ORM models and repository pattern for data persistence.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import NullPool

from competitions.group_builder import GroupFormationError, create_group_matches, create_groups
from competitions.models import (
    DistributionMethod,
    Group,
    GroupStatistics,
    Match,
    MatchStatus,
    Modality,
    RankedParticipant,
    Set,
)
from competitions.paths import get_default_db_path
from competitions.standings import aggregate_group_statistics

logger = logging.getLogger(__name__)

Base = declarative_base()


class GroupsAlreadyExist(GroupFormationError):
    """The tournament category already has stored groups."""

    def __init__(self, tournament_id: int, category_id: int):
        self.tournament_id = tournament_id
        self.category_id = category_id
        super().__init__(
            f"Tournament {tournament_id} category {category_id} already has groups"
        )


# ============================================================================
# ORM Models
# ============================================================================


class SportORM(Base):
    """Sport table."""

    __tablename__ = "sports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True)

    tournaments = relationship("TournamentORM", back_populates="sport")


class TournamentORM(Base):
    """Tournament table."""

    __tablename__ = "tournaments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    sport_id = Column(Integer, ForeignKey("sports.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    sport = relationship("SportORM", back_populates="tournaments")
    registrations = relationship("RegistrationORM", back_populates="tournament", cascade="all, delete-orphan")
    groups = relationship("GroupORM", back_populates="tournament", cascade="all, delete-orphan")


class CategoryORM(Base):
    """Category table (e.g. "Masculino A", "Sub-15")."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True)


class PlayerORM(Base):
    """Player table.

    The rating is used to seed singles registrations (higher = stronger).
    """

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    rating = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


class RegistrationORM(Base):
    """Registration of a player or pair in a tournament category.

    The registration id is the participant id used by groups and matches.
    """

    __tablename__ = "registrations"
    __table_args__ = (
        UniqueConstraint("tournament_id", "category_id", "player_id", name="uq_registration_player"),
        UniqueConstraint("tournament_id", "category_id", "pair_id", name="uq_registration_pair"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    modality = Column(String(10), nullable=False, default=Modality.SINGLES.value)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=True)  # singles
    pair_id = Column(Integer, nullable=True)  # doubles
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    tournament = relationship("TournamentORM", back_populates="registrations")
    player = relationship("PlayerORM")

    @property
    def display_name(self) -> str:
        if self.player is not None:
            return self.player.name
        return f"Dupla {self.pair_id}"


class GroupORM(Base):
    """Group table."""

    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    name = Column(String(20), nullable=False)  # Grupo 1, Grupo 2, etc.
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    tournament = relationship("TournamentORM", back_populates="groups")
    memberships = relationship(
        "GroupMembershipORM",
        back_populates="group",
        order_by="GroupMembershipORM.position",
        cascade="all, delete-orphan",
    )
    matches = relationship("MatchORM", back_populates="group", cascade="all, delete-orphan")

    @property
    def participant_ids(self) -> list[int]:
        """Member registration ids in distribution order."""
        return [m.registration_id for m in self.memberships]


class GroupMembershipORM(Base):
    """Group membership table (group <-> registration)."""

    __tablename__ = "group_memberships"

    group_id = Column(Integer, ForeignKey("groups.id"), primary_key=True)
    registration_id = Column(Integer, ForeignKey("registrations.id"), primary_key=True)
    position = Column(Integer, nullable=False)  # 1-based order within group

    # Relationships
    group = relationship("GroupORM", back_populates="memberships")
    registration = relationship("RegistrationORM")


class MatchORM(Base):
    """Match table."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=True)
    participant1_id = Column(Integer, ForeignKey("registrations.id"), nullable=False)
    participant2_id = Column(Integer, ForeignKey("registrations.id"), nullable=False)
    match_number = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default=MatchStatus.PENDING.value)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    group = relationship("GroupORM", back_populates="matches")
    sets = relationship(
        "SetORM",
        back_populates="match",
        order_by="SetORM.set_number",
        cascade="all, delete-orphan",
    )


class SetORM(Base):
    """Set table."""

    __tablename__ = "sets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    set_number = Column(Integer, nullable=False)
    participant1_points = Column(Integer, nullable=False)
    participant2_points = Column(Integer, nullable=False)

    match = relationship("MatchORM", back_populates="sets")


def match_from_orm(match_orm: MatchORM) -> Match:
    """Convert a MatchORM (with its sets) to the domain model."""
    return Match(
        id=match_orm.id,
        participant1_id=match_orm.participant1_id,
        participant2_id=match_orm.participant2_id,
        group_id=match_orm.group_id,
        match_number=match_orm.match_number,
        status=MatchStatus(match_orm.status),
        sets=[
            Set(
                set_number=s.set_number,
                player1_points=s.participant1_points,
                player2_points=s.participant2_points,
            )
            for s in match_orm.sets
        ],
    )


def group_from_orm(group_orm: GroupORM) -> Group:
    """Convert a GroupORM to the domain model."""
    return Group(
        id=group_orm.id,
        name=group_orm.name,
        tournament_id=group_orm.tournament_id,
        category_id=group_orm.category_id,
        participant_ids=group_orm.participant_ids,
    )


# ============================================================================
# Database Manager
# ============================================================================


class DatabaseManager:
    """Manages SQLite database connection and session."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file (default in data dir)
        """
        self.db_path = Path(db_path) if db_path else get_default_db_path()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Use NullPool for SQLite to avoid connection pool issues
        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            echo=False,
            poolclass=NullPool,
            connect_args={"check_same_thread": False},
        )
        self.SessionLocal = sessionmaker(bind=self.engine)

    def create_tables(self):
        """Create all tables in the database."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self):
        """Drop all tables (use with caution!)."""
        Base.metadata.drop_all(self.engine)

    def get_session(self):
        """Get a new database session."""
        return self.SessionLocal()


# ============================================================================
# Repositories
# ============================================================================


class SportRepository:
    """Repository for Sport operations."""

    def __init__(self, session):
        self.session = session

    def create(self, name: str) -> SportORM:
        sport = SportORM(name=name)
        self.session.add(sport)
        self.session.commit()
        return sport

    def get_all(self) -> list[SportORM]:
        return self.session.query(SportORM).order_by(SportORM.name).all()

    def get_by_id(self, sport_id: int) -> Optional[SportORM]:
        return self.session.query(SportORM).filter(SportORM.id == sport_id).first()

    def get_by_name(self, name: str) -> Optional[SportORM]:
        return self.session.query(SportORM).filter(SportORM.name == name).first()

    def update(self, sport_id: int, name: str) -> Optional[SportORM]:
        sport = self.get_by_id(sport_id)
        if sport is None:
            return None
        sport.name = name
        self.session.commit()
        return sport

    def delete(self, sport_id: int) -> bool:
        """Delete a sport that no tournament refers to.

        Raises:
            ValueError: If tournaments of the sport exist
        """
        sport = self.get_by_id(sport_id)
        if sport:
            if sport.tournaments:
                raise ValueError(f"Sport {sport_id} still has tournaments")
            self.session.delete(sport)
            self.session.commit()
            return True
        return False


class TournamentRepository:
    """Repository for Tournament operations."""

    def __init__(self, session):
        self.session = session

    def create(self, name: str, start_date, end_date, sport_id: int) -> TournamentORM:
        """Create a new tournament."""
        tournament = TournamentORM(
            name=name,
            start_date=start_date,
            end_date=end_date,
            sport_id=sport_id,
        )
        self.session.add(tournament)
        self.session.commit()
        return tournament

    def get_all(self) -> list[TournamentORM]:
        """Get all tournaments ordered by start date (newest first)."""
        return self.session.query(TournamentORM).order_by(
            TournamentORM.start_date.desc(), TournamentORM.id.desc()
        ).all()

    def get_by_id(self, tournament_id: int) -> Optional[TournamentORM]:
        return self.session.query(TournamentORM).filter(
            TournamentORM.id == tournament_id
        ).first()

    def get_by_sport(self, sport_id: int) -> list[TournamentORM]:
        return self.session.query(TournamentORM).filter(
            TournamentORM.sport_id == sport_id
        ).order_by(TournamentORM.start_date.desc(), TournamentORM.id.desc()).all()

    def update(self, tournament_id: int, name: str, start_date, end_date, sport_id: int) -> Optional[TournamentORM]:
        """Replace the editable fields of a tournament."""
        tournament = self.get_by_id(tournament_id)
        if tournament is None:
            return None

        tournament.name = name
        tournament.start_date = start_date
        tournament.end_date = end_date
        tournament.sport_id = sport_id
        self.session.commit()
        return tournament

    def delete(self, tournament_id: int) -> bool:
        """Delete a tournament with its groups, matches and registrations."""
        tournament = self.get_by_id(tournament_id)
        if tournament:
            self.session.delete(tournament)
            self.session.commit()
            return True
        return False


class CategoryRepository:
    """Repository for Category operations."""

    def __init__(self, session):
        self.session = session

    def create(self, name: str) -> CategoryORM:
        category = CategoryORM(name=name)
        self.session.add(category)
        self.session.commit()
        return category

    def get_all(self) -> list[CategoryORM]:
        return self.session.query(CategoryORM).order_by(CategoryORM.name).all()

    def get_by_id(self, category_id: int) -> Optional[CategoryORM]:
        return self.session.query(CategoryORM).filter(CategoryORM.id == category_id).first()

    def get_by_name(self, name: str) -> Optional[CategoryORM]:
        return self.session.query(CategoryORM).filter(CategoryORM.name == name).first()


class PlayerRepository:
    """Repository for Player operations."""

    def __init__(self, session):
        self.session = session

    def create(self, name: str, rating: int = 0) -> PlayerORM:
        player = PlayerORM(name=name, rating=rating)
        self.session.add(player)
        self.session.commit()
        self.session.refresh(player)
        return player

    def get_by_id(self, player_id: int) -> Optional[PlayerORM]:
        return self.session.query(PlayerORM).filter(PlayerORM.id == player_id).first()

    def get_all(self) -> list[PlayerORM]:
        return self.session.query(PlayerORM).order_by(PlayerORM.rating.desc()).all()

    def update_rating(self, player_id: int, rating: int) -> bool:
        result = self.session.query(PlayerORM).filter(
            PlayerORM.id == player_id
        ).update({"rating": rating})
        self.session.commit()
        return result > 0


class RegistrationRepository:
    """Repository for Registration operations."""

    def __init__(self, session):
        self.session = session

    def create(
        self,
        tournament_id: int,
        category_id: int,
        modality: Modality = Modality.SINGLES,
        player_id: Optional[int] = None,
        pair_id: Optional[int] = None,
    ) -> RegistrationORM:
        """Register a player (singles) or a pair (doubles) in a category."""
        registration = RegistrationORM(
            tournament_id=tournament_id,
            category_id=category_id,
            modality=Modality(modality).value,
            player_id=player_id,
            pair_id=pair_id,
        )
        self.session.add(registration)
        self.session.commit()
        self.session.refresh(registration)
        return registration

    def get_by_id(self, registration_id: int) -> Optional[RegistrationORM]:
        return self.session.query(RegistrationORM).filter(
            RegistrationORM.id == registration_id
        ).first()

    def get_by_tournament(self, tournament_id: int, category_id: int = None) -> list[RegistrationORM]:
        query = self.session.query(RegistrationORM).filter(
            RegistrationORM.tournament_id == tournament_id
        )
        if category_id is not None:
            query = query.filter(RegistrationORM.category_id == category_id)
        return query.order_by(RegistrationORM.id).all()

    def get_ranked_participants(self, tournament_id: int, category_id: int) -> list[RankedParticipant]:
        """Get singles registrations of a category sorted by player rating (desc).

        Registrations with equal ratings keep registration order.
        """
        rows = (
            self.session.query(RegistrationORM.id, PlayerORM.rating)
            .join(PlayerORM, RegistrationORM.player_id == PlayerORM.id)
            .filter(
                RegistrationORM.tournament_id == tournament_id,
                RegistrationORM.category_id == category_id,
                RegistrationORM.modality == Modality.SINGLES.value,
            )
            .order_by(PlayerORM.rating.desc(), RegistrationORM.id.asc())
            .all()
        )
        return [RankedParticipant(participant_id=reg_id, rating=rating) for reg_id, rating in rows]

    def find_existing(
        self,
        tournament_id: int,
        category_id: int,
        player_id: Optional[int] = None,
        pair_id: Optional[int] = None,
    ) -> Optional[RegistrationORM]:
        """Find a registration of the same player or pair in a tournament category."""
        query = self.session.query(RegistrationORM).filter(
            RegistrationORM.tournament_id == tournament_id,
            RegistrationORM.category_id == category_id,
        )
        if player_id is not None:
            return query.filter(RegistrationORM.player_id == player_id).first()
        if pair_id is not None:
            return query.filter(RegistrationORM.pair_id == pair_id).first()
        return None


class GroupRepository:
    """Repository for Group operations."""

    def __init__(self, session):
        self.session = session

    def create_groups(
        self,
        tournament_id: int,
        category_id: int,
        method: DistributionMethod = DistributionMethod.RANKED,
        create_fixtures: bool = False,
    ) -> list[Group]:
        """Split the registrations of a category into groups and save them.

        Reads the participants, distributes them, and inserts the group rows,
        membership rows and (optionally) pending round robin matches in a
        single transaction. Nothing is saved if any step fails.

        Args:
            tournament_id: Tournament ID
            category_id: Category ID
            method: Distribution variant
            create_fixtures: Also create the pending matches of each group

        Returns:
            Saved groups with database IDs

        Raises:
            GroupsAlreadyExist: The category already has groups
            InsufficientParticipants: Fewer than 3 participants
            UnpartitionableCount: No valid unranked decomposition
        """
        if self.get_by_category(tournament_id, category_id):
            raise GroupsAlreadyExist(tournament_id, category_id)

        registrations = RegistrationRepository(self.session)
        participants = registrations.get_ranked_participants(tournament_id, category_id)
        if DistributionMethod(method) == DistributionMethod.UNRANKED:
            participants = sorted(participants, key=lambda p: p.participant_id)

        try:
            groups = create_groups(participants, tournament_id, category_id, method)

            match_number = 1
            for group in groups:
                group_orm = GroupORM(
                    tournament_id=tournament_id,
                    category_id=category_id,
                    name=group.name,
                )
                self.session.add(group_orm)
                self.session.flush()
                group.id = group_orm.id

                for position, participant_id in enumerate(group.participant_ids, start=1):
                    self.session.add(
                        GroupMembershipORM(
                            group_id=group_orm.id,
                            registration_id=participant_id,
                            position=position,
                        )
                    )

                if create_fixtures:
                    for match in create_group_matches(group, match_number):
                        self.session.add(
                            MatchORM(
                                group_id=group_orm.id,
                                participant1_id=match.participant1_id,
                                participant2_id=match.participant2_id,
                                match_number=match.match_number,
                                status=match.status.value,
                            )
                        )
                        match_number += 1

            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.warning(
                "Group creation rolled back for tournament %s category %s",
                tournament_id, category_id,
            )
            raise

        return groups

    def get_by_id(self, group_id: int) -> Optional[GroupORM]:
        return self.session.query(GroupORM).filter(GroupORM.id == group_id).first()

    def get_by_category(self, tournament_id: int, category_id: int) -> list[GroupORM]:
        return self.session.query(GroupORM).filter(
            GroupORM.tournament_id == tournament_id,
            GroupORM.category_id == category_id,
        ).order_by(GroupORM.id).all()

    def get_by_tournament(self, tournament_id: int) -> list[GroupORM]:
        return self.session.query(GroupORM).filter(
            GroupORM.tournament_id == tournament_id
        ).order_by(GroupORM.id).all()

    def get_statistics(self, group_id: int) -> list[GroupStatistics]:
        """Derive per-participant statistics of a group from its matches.

        Returns:
            Statistics of every member (empty if the group does not exist)
        """
        group_orm = self.get_by_id(group_id)
        if group_orm is None:
            return []

        names = {m.registration_id: m.registration.display_name for m in group_orm.memberships}
        matches = [match_from_orm(m) for m in group_orm.matches]
        return aggregate_group_statistics(matches, group_orm.participant_ids, names)

    def delete_by_category(self, tournament_id: int, category_id: int) -> int:
        """Delete the groups of a category (with memberships and matches)."""
        groups = self.get_by_category(tournament_id, category_id)
        for group in groups:
            self.session.delete(group)
        self.session.commit()
        return len(groups)


class MatchRepository:
    """Repository for Match operations."""

    def __init__(self, session):
        self.session = session

    def create(
        self,
        group_id: int,
        participant1_id: int,
        participant2_id: int,
        sets: list[tuple[int, int]] = None,
    ) -> MatchORM:
        """Create a group match, completed if sets are given.

        Args:
            group_id: Group ID
            participant1_id: Registration ID of side 1
            participant2_id: Registration ID of side 2
            sets: (side1_points, side2_points) per set
        """
        match_orm = MatchORM(
            group_id=group_id,
            participant1_id=participant1_id,
            participant2_id=participant2_id,
            status=MatchStatus.COMPLETED.value if sets else MatchStatus.PENDING.value,
        )
        for number, (p1_points, p2_points) in enumerate(sets or [], start=1):
            match_orm.sets.append(
                SetORM(set_number=number, participant1_points=p1_points, participant2_points=p2_points)
            )
        self.session.add(match_orm)
        self.session.commit()
        return match_orm

    def get_by_id(self, match_id: int) -> Optional[MatchORM]:
        return self.session.query(MatchORM).filter(MatchORM.id == match_id).first()

    def get_by_group(self, group_id: int) -> list[MatchORM]:
        return self.session.query(MatchORM).filter(
            MatchORM.group_id == group_id
        ).order_by(MatchORM.match_number, MatchORM.id).all()

    def record_result(self, match_id: int, sets: list[tuple[int, int]]) -> Optional[MatchORM]:
        """Replace the sets of a match and mark it completed."""
        match_orm = self.get_by_id(match_id)
        if match_orm is None:
            return None

        match_orm.sets = [
            SetORM(set_number=number, participant1_points=p1_points, participant2_points=p2_points)
            for number, (p1_points, p2_points) in enumerate(sets, start=1)
        ]
        match_orm.status = MatchStatus.COMPLETED.value
        self.session.commit()
        return match_orm
