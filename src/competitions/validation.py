"""Validation rules for competitions input data.

Each rule returns a ``(is_valid, error_message)`` tuple; the message is empty
when the data is valid.
"""

from datetime import date
from typing import Optional

from competitions.models import SPORT_NAMES, DistributionMethod, Modality

MAX_TOURNAMENT_NAME_LENGTH = 100


class ValidationError(Exception):
    """Raised when validation fails."""

    pass


def validate_sport_name(name: str) -> tuple[bool, str]:
    """Validate a sport name against the supported sports.

    Examples:
        >>> validate_sport_name("Padel")
        (True, '')
        >>> validate_sport_name("Futebol")[0]
        False
    """
    if name not in SPORT_NAMES:
        return False, f"Esporte inválido: '{name}' (permitidos: {', '.join(SPORT_NAMES)})"
    return True, ""


def validate_tournament(
    name: str, start_date: date, end_date: date, sport_id: int
) -> tuple[bool, str]:
    """Validate tournament data.

    Rules:
    - Name is required and at most 100 characters
    - End date cannot be before start date
    - Sport id must be positive
    """
    if not name or not name.strip():
        return False, "O nome do torneio é obrigatório"

    if len(name) > MAX_TOURNAMENT_NAME_LENGTH:
        return False, f"O nome do torneio deve ter no máximo {MAX_TOURNAMENT_NAME_LENGTH} caracteres"

    if end_date < start_date:
        return False, "A data de término não pode ser anterior à data de início"

    if sport_id <= 0:
        return False, "O esporte deve ser informado"

    return True, ""


def validate_registration(
    category_id: int,
    modality: str,
    player_id: Optional[int] = None,
    pair_id: Optional[int] = None,
) -> tuple[bool, str]:
    """Validate a registration in a tournament category.

    Singles registrations need a player, doubles registrations need a pair,
    and a registration never carries both.

    Examples:
        >>> validate_registration(1, "simples", player_id=7)
        (True, '')
        >>> validate_registration(1, "duplas", player_id=7)[0]
        False
    """
    if category_id <= 0:
        return False, "A categoria deve ser informada"

    valid_modalities = [m.value for m in Modality]
    if modality not in valid_modalities:
        return False, f"Modalidade inválida: '{modality}' (permitidas: {', '.join(valid_modalities)})"

    if player_id is not None and pair_id is not None:
        return False, "Informe o jogador ou a dupla, não ambos"

    if modality == Modality.SINGLES.value and player_id is None:
        return False, "Inscrições em simples exigem um jogador"

    if modality == Modality.DOUBLES.value and pair_id is None:
        return False, "Inscrições em duplas exigem uma dupla"

    return True, ""


def validate_group_request(category_id: int, method: str) -> tuple[bool, str]:
    """Validate a request to build the groups of a category."""
    if category_id <= 0:
        return False, "A categoria deve ser informada"

    valid_methods = [m.value for m in DistributionMethod]
    if method not in valid_methods:
        return False, f"Método de distribuição inválido: '{method}' (permitidos: {', '.join(valid_methods)})"

    return True, ""


def validate_set_score(score_a: int, score_b: int) -> tuple[bool, str]:
    """Validate a single set score: non-negative and with a winner."""
    if score_a < 0 or score_b < 0:
        return False, "Os pontos não podem ser negativos"

    if score_a == score_b:
        return False, "O set não pode terminar empatado"

    return True, ""


def validate_match_sets(sets: list[tuple[int, int]]) -> tuple[bool, str]:
    """Validate every set of a match."""
    if not sets:
        return False, "A partida deve ter pelo menos um set"

    for idx, (score_a, score_b) in enumerate(sets, start=1):
        is_valid, error_msg = validate_set_score(score_a, score_b)
        if not is_valid:
            return False, f"Set {idx}: {error_msg}"

    return True, ""


def validate_match_participants(
    participant1_id: int, participant2_id: int, group_members: list[int]
) -> tuple[bool, str]:
    """Validate the two sides of a group match.

    Args:
        participant1_id: Registration ID of side 1
        participant2_id: Registration ID of side 2
        group_members: Registration IDs of the group

    Returns:
        Tuple of (is_valid, error_message)
    """
    if participant1_id == participant2_id:
        return False, "Um participante não pode jogar contra si mesmo"

    if participant1_id not in group_members or participant2_id not in group_members:
        return False, "Os dois participantes devem pertencer ao grupo"

    return True, ""


def ensure_valid(result: tuple[bool, str]) -> None:
    """Raise ValidationError when a rule result is invalid."""
    is_valid, error_msg = result
    if not is_valid:
        raise ValidationError(error_msg)
