"""FastAPI JSON API for competitions."""

import logging
from datetime import date
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from competitions.config_loader import load_and_validate_config
from competitions.group_builder import InsufficientParticipants, UnpartitionableCount
from competitions.models import DistributionMethod
from competitions.standings import determine_group_winners
from competitions.storage import (
    CategoryRepository,
    DatabaseManager,
    GroupRepository,
    GroupsAlreadyExist,
    MatchRepository,
    PlayerRepository,
    RegistrationRepository,
    SportRepository,
    TournamentRepository,
    group_from_orm,
)
from competitions.validation import (
    validate_group_request,
    validate_match_participants,
    validate_match_sets,
    validate_registration,
    validate_sport_name,
    validate_tournament,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Request bodies
# ============================================================================


class SportInput(BaseModel):
    nome: str


class CategoryInput(BaseModel):
    nome: str


class PlayerInput(BaseModel):
    nome: str
    rating: int = 0


class TournamentInput(BaseModel):
    nome: str
    data_inicio: date
    data_fim: date
    id_esporte: int


class RegistrationInput(BaseModel):
    id_categoria: int
    tipo_modalidade: str = "simples"
    id_jogador: Optional[int] = None
    id_dupla: Optional[int] = None


class CreateGroupsInput(BaseModel):
    id_categoria: int
    metodo: Optional[str] = None
    criar_jogos: Optional[bool] = None


class MatchInput(BaseModel):
    id_jogador_torneio1: int
    id_jogador_torneio2: int
    sets: list[tuple[int, int]] = []


# ============================================================================
# Serialization helpers
# ============================================================================


def sport_to_dict(sport) -> dict:
    return {"id": sport.id, "nome": sport.name}


def player_to_dict(player) -> dict:
    return {"id": player.id, "nome": player.name, "rating": player.rating}


def tournament_to_dict(tournament) -> dict:
    return {
        "id": tournament.id,
        "nome": tournament.name,
        "data_inicio": tournament.start_date.isoformat(),
        "data_fim": tournament.end_date.isoformat(),
        "id_esporte": tournament.sport_id,
    }


def registration_to_dict(registration) -> dict:
    return {
        "id": registration.id,
        "id_torneio": registration.tournament_id,
        "id_categoria": registration.category_id,
        "tipo_modalidade": registration.modality,
        "id_jogador": registration.player_id,
        "id_dupla": registration.pair_id,
    }


def group_to_dict(group) -> dict:
    return {
        "id": group.id,
        "id_torneio": group.tournament_id,
        "id_categoria": group.category_id,
        "nome": group.name,
        "jogadores": group.participant_ids,
    }


def _bad_request(error_msg: str) -> HTTPException:
    return HTTPException(status_code=400, detail=error_msg)


# ============================================================================
# Application
# ============================================================================


def get_session(request: Request):
    """Yield a database session bound to the app's database manager."""
    session = request.app.state.db_manager.get_session()
    try:
        yield session
    finally:
        session.close()


def create_app(
    db_manager: Optional[DatabaseManager] = None,
    config: Optional[dict[str, Any]] = None,
) -> FastAPI:
    """Build the API around a database manager and validated config.

    Both default to the values of the default configuration, so the app can
    be served with ``uvicorn --factory competitions.webapp.app:create_app``.
    """
    config = config or load_and_validate_config()
    db_manager = db_manager or DatabaseManager(config["database_path"])
    db_manager.create_tables()

    app = FastAPI(title="Competitions API", version="0.1.0")
    app.state.db_manager = db_manager
    app.state.config = config

    @app.exception_handler(InsufficientParticipants)
    async def insufficient_participants_handler(request: Request, exc: InsufficientParticipants):
        return JSONResponse({"detail": str(exc)}, status_code=400)

    @app.exception_handler(UnpartitionableCount)
    async def unpartitionable_count_handler(request: Request, exc: UnpartitionableCount):
        return JSONResponse({"detail": str(exc)}, status_code=422)

    @app.exception_handler(GroupsAlreadyExist)
    async def groups_already_exist_handler(request: Request, exc: GroupsAlreadyExist):
        return JSONResponse({"detail": str(exc)}, status_code=409)

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    # ------------------------------------------------------------------ sports

    @app.get("/sports")
    def list_sports(session=Depends(get_session)):
        return [sport_to_dict(s) for s in SportRepository(session).get_all()]

    @app.post("/sports", status_code=201)
    def create_sport(body: SportInput, session=Depends(get_session)):
        is_valid, error_msg = validate_sport_name(body.nome)
        if not is_valid:
            raise _bad_request(error_msg)

        repo = SportRepository(session)
        if repo.get_by_name(body.nome) is not None:
            raise HTTPException(status_code=409, detail=f"Esporte '{body.nome}' já cadastrado")
        return sport_to_dict(repo.create(body.nome))

    @app.get("/sports/{sport_id}")
    def get_sport(sport_id: int, session=Depends(get_session)):
        sport = SportRepository(session).get_by_id(sport_id)
        if sport is None:
            raise HTTPException(status_code=404, detail="Esporte não encontrado")
        return sport_to_dict(sport)

    @app.put("/sports/{sport_id}")
    def update_sport(sport_id: int, body: SportInput, session=Depends(get_session)):
        is_valid, error_msg = validate_sport_name(body.nome)
        if not is_valid:
            raise _bad_request(error_msg)

        repo = SportRepository(session)
        existing = repo.get_by_name(body.nome)
        if existing is not None and existing.id != sport_id:
            raise HTTPException(status_code=409, detail=f"Esporte '{body.nome}' já cadastrado")

        sport = repo.update(sport_id, body.nome)
        if sport is None:
            raise HTTPException(status_code=404, detail="Esporte não encontrado para atualizar")
        return sport_to_dict(sport)

    @app.delete("/sports/{sport_id}")
    def delete_sport(sport_id: int, session=Depends(get_session)):
        try:
            deleted = SportRepository(session).delete(sport_id)
        except ValueError:
            raise HTTPException(status_code=409, detail="Esporte possui torneios cadastrados")
        if not deleted:
            raise HTTPException(status_code=404, detail="Esporte não encontrado para deletar")
        return {"message": "Esporte deletado com sucesso"}

    # ------------------------------------------------------ categories/players

    @app.get("/categories")
    def list_categories(session=Depends(get_session)):
        return [{"id": c.id, "nome": c.name} for c in CategoryRepository(session).get_all()]

    @app.post("/categories", status_code=201)
    def create_category(body: CategoryInput, session=Depends(get_session)):
        if not body.nome.strip():
            raise _bad_request("O nome da categoria é obrigatório")

        repo = CategoryRepository(session)
        if repo.get_by_name(body.nome) is not None:
            raise HTTPException(status_code=409, detail=f"Categoria '{body.nome}' já cadastrada")
        category = repo.create(body.nome)
        return {"id": category.id, "nome": category.name}

    @app.get("/players")
    def list_players(session=Depends(get_session)):
        return [player_to_dict(p) for p in PlayerRepository(session).get_all()]

    @app.post("/players", status_code=201)
    def create_player(body: PlayerInput, session=Depends(get_session)):
        if not body.nome.strip():
            raise _bad_request("O nome do jogador é obrigatório")
        return player_to_dict(PlayerRepository(session).create(body.nome, body.rating))

    # ------------------------------------------------------------- tournaments

    @app.get("/tournaments")
    def list_tournaments(session=Depends(get_session)):
        return [tournament_to_dict(t) for t in TournamentRepository(session).get_all()]

    @app.post("/tournaments", status_code=201)
    def create_tournament(body: TournamentInput, session=Depends(get_session)):
        is_valid, error_msg = validate_tournament(body.nome, body.data_inicio, body.data_fim, body.id_esporte)
        if not is_valid:
            raise _bad_request(error_msg)

        if SportRepository(session).get_by_id(body.id_esporte) is None:
            raise HTTPException(status_code=404, detail="Esporte não encontrado")

        tournament = TournamentRepository(session).create(
            body.nome, body.data_inicio, body.data_fim, body.id_esporte
        )
        return tournament_to_dict(tournament)

    @app.get("/tournaments/{tournament_id}")
    def get_tournament(tournament_id: int, session=Depends(get_session)):
        tournament = TournamentRepository(session).get_by_id(tournament_id)
        if tournament is None:
            raise HTTPException(status_code=404, detail="Torneio não encontrado")
        return tournament_to_dict(tournament)

    @app.put("/tournaments/{tournament_id}")
    def update_tournament(tournament_id: int, body: TournamentInput, session=Depends(get_session)):
        is_valid, error_msg = validate_tournament(body.nome, body.data_inicio, body.data_fim, body.id_esporte)
        if not is_valid:
            raise _bad_request(error_msg)

        if SportRepository(session).get_by_id(body.id_esporte) is None:
            raise HTTPException(status_code=404, detail="Esporte não encontrado")

        tournament = TournamentRepository(session).update(
            tournament_id, body.nome, body.data_inicio, body.data_fim, body.id_esporte
        )
        if tournament is None:
            raise HTTPException(status_code=404, detail="Torneio não encontrado para atualizar")
        return tournament_to_dict(tournament)

    @app.delete("/tournaments/{tournament_id}")
    def delete_tournament(tournament_id: int, session=Depends(get_session)):
        if not TournamentRepository(session).delete(tournament_id):
            raise HTTPException(status_code=404, detail="Torneio não encontrado para deletar")
        return {"message": "Torneio deletado com sucesso"}

    # ----------------------------------------------------------- registrations

    @app.get("/tournaments/{tournament_id}/registrations")
    def list_registrations(tournament_id: int, id_categoria: Optional[int] = None, session=Depends(get_session)):
        registrations = RegistrationRepository(session).get_by_tournament(tournament_id, id_categoria)
        return [registration_to_dict(r) for r in registrations]

    @app.post("/tournaments/{tournament_id}/registrations", status_code=201)
    def create_registration(tournament_id: int, body: RegistrationInput, session=Depends(get_session)):
        is_valid, error_msg = validate_registration(
            body.id_categoria, body.tipo_modalidade, body.id_jogador, body.id_dupla
        )
        if not is_valid:
            raise _bad_request(error_msg)

        if TournamentRepository(session).get_by_id(tournament_id) is None:
            raise HTTPException(status_code=404, detail="Torneio não encontrado")
        if CategoryRepository(session).get_by_id(body.id_categoria) is None:
            raise HTTPException(status_code=404, detail="Categoria não encontrada")
        if body.id_jogador is not None and PlayerRepository(session).get_by_id(body.id_jogador) is None:
            raise HTTPException(status_code=404, detail="Jogador não encontrado")

        repo = RegistrationRepository(session)
        if repo.find_existing(tournament_id, body.id_categoria, body.id_jogador, body.id_dupla) is not None:
            raise HTTPException(
                status_code=409,
                detail="Este jogador ou dupla já está inscrito neste torneio/categoria.",
            )

        registration = repo.create(
            tournament_id,
            body.id_categoria,
            body.tipo_modalidade,
            player_id=body.id_jogador,
            pair_id=body.id_dupla,
        )
        return registration_to_dict(registration)

    # ------------------------------------------------------------------ groups

    @app.post("/tournaments/{tournament_id}/groups", status_code=201)
    def create_groups(tournament_id: int, body: CreateGroupsInput, session=Depends(get_session)):
        method = body.metodo or app.state.config["distribution_method"].value
        is_valid, error_msg = validate_group_request(body.id_categoria, method)
        if not is_valid:
            raise _bad_request(error_msg)

        if TournamentRepository(session).get_by_id(tournament_id) is None:
            raise HTTPException(status_code=404, detail="Torneio não encontrado")

        create_fixtures = body.criar_jogos
        if create_fixtures is None:
            create_fixtures = app.state.config["create_fixtures"]

        groups = GroupRepository(session).create_groups(
            tournament_id,
            body.id_categoria,
            method=DistributionMethod(method),
            create_fixtures=create_fixtures,
        )
        return [group_to_dict(g) for g in groups]

    @app.get("/groups/{group_id}")
    def get_group(group_id: int, session=Depends(get_session)):
        group_orm = GroupRepository(session).get_by_id(group_id)
        if group_orm is None:
            raise HTTPException(status_code=404, detail="Grupo não encontrado")
        return group_to_dict(group_from_orm(group_orm))

    @app.post("/groups/{group_id}/matches", status_code=201)
    def create_match(group_id: int, body: MatchInput, session=Depends(get_session)):
        group_orm = GroupRepository(session).get_by_id(group_id)
        if group_orm is None:
            raise HTTPException(status_code=404, detail="Grupo não encontrado")

        is_valid, error_msg = validate_match_participants(
            body.id_jogador_torneio1, body.id_jogador_torneio2, group_orm.participant_ids
        )
        if not is_valid:
            raise _bad_request(error_msg)

        sets = [tuple(s) for s in body.sets]
        if sets:
            is_valid, error_msg = validate_match_sets(sets)
            if not is_valid:
                raise _bad_request(error_msg)

        match = MatchRepository(session).create(
            group_id, body.id_jogador_torneio1, body.id_jogador_torneio2, sets
        )
        return {"id": match.id, "id_grupo": group_id, "situacao": match.status, "sets": len(sets)}

    @app.get("/groups/{group_id}/winners")
    def group_winners(group_id: int, session=Depends(get_session)):
        group_repo = GroupRepository(session)
        if group_repo.get_by_id(group_id) is None:
            raise HTTPException(status_code=404, detail="Grupo não encontrado")

        result = determine_group_winners(
            group_repo.get_statistics(group_id), app.state.config["winners_per_group"]
        )
        return result.to_dict()

    return app
