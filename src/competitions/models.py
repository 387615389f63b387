"""Data models for competitions.

Domain model hierarchy:
- Sport groups Tournaments
- Tournament contains Registrations (one per competitor and category)
- Category registrations are split into Groups (round robin)
- Group contains Matches
- Match contains Sets
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


class Modality(str, Enum):
    """Registration modality."""

    SINGLES = "simples"
    DOUBLES = "duplas"


class MatchStatus(str, Enum):
    """Match status."""

    PENDING = "pending"  # Not yet played
    COMPLETED = "completed"


class DistributionMethod(str, Enum):
    """How participants are split into groups."""

    RANKED = "ranked"  # Snake seeding by rating
    UNRANKED = "unranked"  # Sequential fill, groups of 5/4/3


class Criterion(str, Enum):
    """Statistic that decided a winner's position."""

    SETS_WON = "Total de Sets Ganhos"
    POINTS_WON = "Total de Pontos Conquistados"


SPORT_NAMES = (
    "Beach Tenis",
    "Tenis de Mesa",
    "Tenis",
    "Pickleball",
    "Squash",
    "Badminton",
    "Padel",
)


# ============================================================================
# Core Domain Models
# ============================================================================


@dataclass
class Sport:
    """Sport practised in a tournament."""

    id: int
    name: str


@dataclass
class Tournament:
    """Tournament of one sport, held between two dates."""

    id: int
    name: str
    start_date: date
    end_date: date
    sport_id: int


@dataclass
class Registration:
    """Registration of a player (singles) or a pair (doubles) in a category."""

    id: int
    tournament_id: int
    category_id: int
    modality: Modality = Modality.SINGLES
    player_id: Optional[int] = None
    pair_id: Optional[int] = None


@dataclass(frozen=True)
class RankedParticipant:
    """Participant with the rating used for seeding (higher = stronger)."""

    participant_id: int
    rating: int = 0


@dataclass
class Set:
    """A single set within a match."""

    set_number: int
    player1_points: int
    player2_points: int

    @property
    def winner_player_num(self) -> Optional[int]:
        """Return 1 or 2 for winner, None if tied."""
        if self.player1_points > self.player2_points:
            return 1
        elif self.player2_points > self.player1_points:
            return 2
        return None

    def __str__(self) -> str:
        return f"{self.player1_points}-{self.player2_points}"


@dataclass
class Match:
    """A group match between two participants."""

    id: int
    participant1_id: int
    participant2_id: int
    group_id: Optional[int] = None
    match_number: Optional[int] = None
    status: MatchStatus = MatchStatus.PENDING
    sets: list[Set] = field(default_factory=list)

    @property
    def participant1_sets_won(self) -> int:
        """Count sets won by participant 1."""
        return sum(1 for s in self.sets if s.winner_player_num == 1)

    @property
    def participant2_sets_won(self) -> int:
        """Count sets won by participant 2."""
        return sum(1 for s in self.sets if s.winner_player_num == 2)

    @property
    def participant1_total_points(self) -> int:
        return sum(s.player1_points for s in self.sets)

    @property
    def participant2_total_points(self) -> int:
        return sum(s.player2_points for s in self.sets)

    def __str__(self) -> str:
        score = f"{self.participant1_sets_won}-{self.participant2_sets_won}" if self.sets else "vs"
        return f"Match {self.id}: P{self.participant1_id} {score} P{self.participant2_id}"


# ============================================================================
# Group Formation & Standings Models
# ============================================================================


@dataclass
class Group:
    """A round-robin group of one (tournament, category) pair.

    Membership is fixed once the group is created.
    """

    id: int
    name: str  # "Grupo 1", "Grupo 2", etc.
    tournament_id: int
    category_id: int
    participant_ids: list[int] = field(default_factory=list)

    @property
    def size(self) -> int:
        """Number of participants in group."""
        return len(self.participant_ids)

    def __str__(self) -> str:
        return f"{self.name} ({self.size} participants)"


@dataclass
class GroupStatistics:
    """Aggregated results of one participant within a group."""

    participant_id: int
    sets_won: int = 0
    points_won: int = 0
    name: Optional[str] = None


@dataclass
class Winner:
    """A ranked group winner and the criterion that decided the position."""

    position: int
    participant_id: int
    criterion: Criterion
    sets_won: int
    points_won: int
    name: Optional[str] = None

    def to_dict(self) -> dict:
        """Serialize with the API field names."""
        return {
            "posicao": self.position,
            "id_jogador": self.participant_id,
            "nome_jogador": self.name,
            "criterio": self.criterion.value,
            "sets_ganhos": self.sets_won,
            "pontos_ganhos": self.points_won,
        }


@dataclass
class WinnersResult:
    """Winners of a group, or a message when they cannot be determined."""

    winners: list[Winner] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def is_insufficient(self) -> bool:
        return not self.winners

    def to_dict(self) -> dict:
        if self.is_insufficient:
            return {"message": self.message}
        return {"vencedores": [w.to_dict() for w in self.winners]}
