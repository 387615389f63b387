"""Group builder with bucket sizing, snake seeding and round robin fixtures."""

import logging
from typing import Sequence, TypeVar, Union

from competitions.models import (
    DistributionMethod,
    Group,
    Match,
    MatchStatus,
    RankedParticipant,
)

logger = logging.getLogger(__name__)

MIN_GROUP_SIZE = 3
MAX_GROUP_SIZE = 5

T = TypeVar("T")


class GroupFormationError(ValueError):
    """Participants cannot be split into groups."""

    pass


class InsufficientParticipants(GroupFormationError):
    """Too few participants to form groups or rank winners."""

    def __init__(self, count: int, minimum: int = MIN_GROUP_SIZE):
        self.count = count
        self.minimum = minimum
        super().__init__(f"At least {minimum} participants required, got {count}")


class UnpartitionableCount(GroupFormationError):
    """No combination of groups of 3-5 adds up to the participant count."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"{count} participants cannot be partitioned into groups of 3 to 5")


def calculate_group_sizes(num_participants: int) -> list[int]:
    """Calculate group sizes for the unranked distribution.

    Searches the number of groups of 5 from ``num_participants // 5`` down to
    zero and takes the first count whose remainder splits evenly into groups
    of 4, or failing that into groups of 3.

    Args:
        num_participants: Total number of participants

    Returns:
        List of group sizes, groups of 5 first

    Raises:
        InsufficientParticipants: If fewer than 3 participants
        UnpartitionableCount: If no decomposition exists (e.g. 7)

    Examples:
        >>> calculate_group_sizes(9)
        [5, 4]
        >>> calculate_group_sizes(11)
        [5, 3, 3]
        >>> calculate_group_sizes(12)
        [4, 4, 4]
    """
    if num_participants < MIN_GROUP_SIZE:
        raise InsufficientParticipants(num_participants)

    for groups_of_five in range(num_participants // MAX_GROUP_SIZE, -1, -1):
        remaining = num_participants - groups_of_five * MAX_GROUP_SIZE
        if remaining % 4 == 0:
            return [5] * groups_of_five + [4] * (remaining // 4)
        if remaining % 3 == 0:
            return [5] * groups_of_five + [3] * (remaining // 3)

    raise UnpartitionableCount(num_participants)


def distribute_unranked(participant_ids: Sequence[int]) -> list[list[int]]:
    """Split participants into groups of 3-5, filling groups in input order.

    Args:
        participant_ids: Participant identifiers

    Returns:
        List of groups, each a list of participant ids
    """
    sizes = calculate_group_sizes(len(participant_ids))

    groups = []
    start = 0
    for size in sizes:
        groups.append(list(participant_ids[start:start + size]))
        start += size

    logger.debug("Unranked distribution of %d participants: %s", len(participant_ids), sizes)
    return groups


def calculate_ranked_group_count(num_participants: int) -> int:
    """Choose the number of groups for the ranked distribution.

    Picks the group count ``g`` in ``1..n // 3`` with the smallest remainder
    ``n % g`` while every group still averages at least 3 participants. On
    equal remainders the larger count wins, so 6 participants give 2 groups.

    Returns:
        Number of groups (1 when no count qualifies)
    """
    best_count = 1
    best_remainder = None

    for count in range(1, num_participants // MIN_GROUP_SIZE + 1):
        if num_participants // count < MIN_GROUP_SIZE:
            continue
        remainder = num_participants % count
        if best_remainder is None or remainder <= best_remainder:
            best_count = count
            best_remainder = remainder

    return best_count


def distribute_seeds_snake(items: Sequence[T], num_groups: int) -> list[list[T]]:
    """Distribute seeded items into groups using snake/serpentine method.

    Seeds flow in a snake pattern:
    - Group A: 1, 8, 9, 16
    - Group B: 2, 7, 10, 15
    - Group C: 3, 6, 11, 14
    - Group D: 4, 5, 12, 13

    Args:
        items: Items sorted by seed (best first)
        num_groups: Number of groups to create

    Returns:
        List of lists, each containing the items of one group
    """
    if num_groups < 1:
        raise ValueError(f"Number of groups must be at least 1, got {num_groups}")

    groups = [[] for _ in range(num_groups)]

    for idx, item in enumerate(items):
        row = idx // num_groups
        col = idx % num_groups

        # Even rows go left-to-right, odd rows right-to-left
        if row % 2 == 0:
            group_idx = col
        else:
            group_idx = num_groups - 1 - col

        groups[group_idx].append(item)

    return groups


def distribute_ranked(participants: Sequence[RankedParticipant]) -> list[list[int]]:
    """Split rating-sorted participants into groups using snake seeding.

    The group size bound is not enforced here: 7 participants end up in a
    single group of 7.

    Args:
        participants: Participants sorted by rating, strongest first

    Returns:
        List of groups, each a list of participant ids
    """
    if len(participants) < MIN_GROUP_SIZE:
        raise InsufficientParticipants(len(participants))

    num_groups = calculate_ranked_group_count(len(participants))
    ids = [p.participant_id for p in participants]

    logger.debug("Ranked distribution of %d participants into %d groups", len(ids), num_groups)
    return distribute_seeds_snake(ids, num_groups)


def generate_round_robin_fixtures(group_size: int) -> list[tuple[int, int]]:
    """Generate round robin fixtures for a group.

    Orders are chosen so the pairing between the first and second seeds of
    the group (or 2 vs 3 for groups of 3 and 4) is played last.

    Args:
        group_size: Number of participants in the group

    Returns:
        List of (position1, position2) tuples (1-indexed) in playing order
    """
    if group_size < 2:
        raise ValueError(f"Group size must be at least 2, got {group_size}")

    if group_size == 3:
        return [(1, 3), (1, 2), (2, 3)]
    elif group_size == 4:
        return [(1, 3), (2, 4), (1, 2), (3, 4), (1, 4), (2, 3)]
    elif group_size == 5:
        # Berger table, nobody plays twice in a row
        return [
            (1, 4), (2, 5),
            (3, 4), (1, 5),
            (2, 3), (4, 5),
            (1, 3), (2, 4),
            (3, 5), (1, 2),
        ]

    matches = []
    for i in range(1, group_size + 1):
        for j in range(i + 1, group_size + 1):
            matches.append((i, j))
    return matches


def distribute(
    participants: Sequence[Union[RankedParticipant, int]],
    method: DistributionMethod = DistributionMethod.RANKED,
) -> list[list[int]]:
    """Dispatch to the distribution variant for ``method``.

    Plain ids are accepted for the unranked variant; for the ranked variant
    they are treated as already sorted with no rating.
    """
    items = [p if isinstance(p, RankedParticipant) else RankedParticipant(p) for p in participants]

    if DistributionMethod(method) == DistributionMethod.UNRANKED:
        return distribute_unranked([p.participant_id for p in items])
    return distribute_ranked(items)


def create_groups(
    participants: Sequence[Union[RankedParticipant, int]],
    tournament_id: int,
    category_id: int,
    method: DistributionMethod = DistributionMethod.RANKED,
) -> list[Group]:
    """Create unsaved Group objects for one tournament category.

    Args:
        participants: Ranked participants (rating desc) or participant ids
        tournament_id: Tournament the groups belong to
        category_id: Category the groups belong to
        method: Distribution variant

    Returns:
        Groups named "Grupo 1", "Grupo 2", ... with id 0 (set by database)
    """
    partition = distribute(participants, method)

    groups = [
        Group(
            id=0,
            name=f"Grupo {idx}",
            tournament_id=tournament_id,
            category_id=category_id,
            participant_ids=member_ids,
        )
        for idx, member_ids in enumerate(partition, start=1)
    ]

    logger.info(
        "Created %d groups for tournament %s category %s (%s)",
        len(groups), tournament_id, category_id, DistributionMethod(method).value,
    )
    return groups


def create_group_matches(group: Group, first_match_number: int = 1) -> list[Match]:
    """Create the pending round robin matches of a group."""
    matches = []
    fixtures = generate_round_robin_fixtures(group.size)

    for offset, (pos1, pos2) in enumerate(fixtures):
        matches.append(
            Match(
                id=0,  # Will be set by database
                participant1_id=group.participant_ids[pos1 - 1],
                participant2_id=group.participant_ids[pos2 - 1],
                group_id=group.id,
                match_number=first_match_number + offset,
                status=MatchStatus.PENDING,
            )
        )

    return matches
