"""Group standings: statistics aggregation and winner ranking."""

import logging
from typing import Iterable, Optional, Sequence

from competitions.models import Criterion, GroupStatistics, Match, Winner, WinnersResult

logger = logging.getLogger(__name__)

WINNERS_PER_GROUP = 2
INSUFFICIENT_MESSAGE = "Não há jogadores suficientes para definir vencedores"


def aggregate_group_statistics(
    matches: Iterable[Match],
    participant_ids: Sequence[int],
    names: Optional[dict[int, str]] = None,
) -> list[GroupStatistics]:
    """Compute sets won and points won per participant from match records.

    Only matches between two distinct members of the group count. A set is credited
    to the side that scored more points in it; points are the participant's
    own points across every set played.

    Args:
        matches: Matches of the group (any status, sets as recorded)
        participant_ids: Members of the group; members without matches get zeros
        names: Optional participant display names

    Returns:
        GroupStatistics ordered by sets won, then points won (both desc)
    """
    names = names or {}
    stats = {
        pid: GroupStatistics(participant_id=pid, name=names.get(pid))
        for pid in participant_ids
    }

    for match in matches:
        if match.participant1_id not in stats or match.participant2_id not in stats:
            continue
        if match.participant1_id == match.participant2_id:
            logger.warning("Ignoring match %s: participant %s against itself", match.id, match.participant1_id)
            continue

        p1 = stats[match.participant1_id]
        p2 = stats[match.participant2_id]
        p1.sets_won += match.participant1_sets_won
        p2.sets_won += match.participant2_sets_won
        p1.points_won += match.participant1_total_points
        p2.points_won += match.participant2_total_points

    return rank_group_statistics(list(stats.values()))


def rank_group_statistics(statistics: Sequence[GroupStatistics]) -> list[GroupStatistics]:
    """Sort by sets won, then points won, both descending.

    The sort is stable: participants equal on both keep their input order.
    """
    return sorted(statistics, key=lambda s: (-s.sets_won, -s.points_won))


def determine_group_winners(
    statistics: Sequence[GroupStatistics],
    count: int = WINNERS_PER_GROUP,
) -> WinnersResult:
    """Rank a group and report its top participants.

    Position 1 is always credited to sets won. Every following position is
    credited to points scored when its sets won equal those of the position
    right above it; otherwise to sets won.

    Args:
        statistics: Statistics of every participant of the group
        count: Number of winners to report

    Returns:
        WinnersResult with ``count`` winners, or an empty result carrying a
        message when fewer than ``count`` participants have statistics
    """
    if count < 1:
        raise ValueError(f"Number of winners must be at least 1, got {count}")

    if len(statistics) < max(count, 2):
        logger.info("Only %d participants with statistics, no winners defined", len(statistics))
        return WinnersResult(message=INSUFFICIENT_MESSAGE)

    ranked = rank_group_statistics(statistics)

    winners = []
    for idx in range(count):
        stats = ranked[idx]
        criterion = Criterion.SETS_WON
        if idx > 0 and stats.sets_won == ranked[idx - 1].sets_won:
            criterion = Criterion.POINTS_WON

        winners.append(
            Winner(
                position=idx + 1,
                participant_id=stats.participant_id,
                criterion=criterion,
                sets_won=stats.sets_won,
                points_won=stats.points_won,
                name=stats.name,
            )
        )

    return WinnersResult(winners=winners)
