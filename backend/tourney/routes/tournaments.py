import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from sqlmodel import Session, select

from tourney.database import get_session
from tourney.models.match import Match
from tourney.models.pool import Pool, PoolTeam
from tourney.models.tournament import Tournament, TournamentType
from tourney.services.batch_editor import EditorSessionRegistry
from tourney.utils.fields import parse_field_numbers
from tourney.utils.guards import get_editor_registry, get_tournament_or_404

router = APIRouter()
logger = logging.getLogger(__name__)


def check_league_settings(
    start_date: Optional[date],
    end_date: Optional[date],
    number_of_groups: Optional[int],
    teams_per_group: Optional[int],
    has_playoff: Optional[bool],
    teams_to_playoff: Optional[int],
) -> None:
    """Raise ValueError when a tournament's league settings are inconsistent."""
    if start_date and end_date and end_date < start_date:
        raise ValueError("end_date must be >= start_date")
    if number_of_groups is not None and number_of_groups < 1:
        raise ValueError("number_of_groups must be >= 1")
    if teams_per_group is not None and teams_per_group < 2:
        raise ValueError("teams_per_group must be >= 2")
    if teams_to_playoff is not None and teams_to_playoff < 2:
        raise ValueError("teams_to_playoff must be >= 2")
    if has_playoff and teams_to_playoff is None:
        raise ValueError("teams_to_playoff must be >= 2 when has_playoff is set")


def _validate_fields(v):
    if v is None:
        return None
    fields = parse_field_numbers(v)
    if not fields:
        raise ValueError("field_numbers must list at least one field")
    return fields


class TournamentCreate(BaseModel):
    name: str
    tournament_type: TournamentType = TournamentType.LEAGUE
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    number_of_groups: Optional[int] = None
    teams_per_group: Optional[int] = None
    has_playoff: bool = False
    teams_to_playoff: Optional[int] = None
    field_numbers: Optional[List[int]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Tournament name is required")
        return v.strip()

    @field_validator("field_numbers", mode="before")
    @classmethod
    def validate_field_numbers(cls, v):
        return _validate_fields(v)

    @model_validator(mode="after")
    def validate_league_settings(self):
        check_league_settings(
            self.start_date,
            self.end_date,
            self.number_of_groups,
            self.teams_per_group,
            self.has_playoff,
            self.teams_to_playoff,
        )
        return self


class TournamentUpdate(BaseModel):
    name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    number_of_groups: Optional[int] = None
    teams_per_group: Optional[int] = None
    has_playoff: Optional[bool] = None
    teams_to_playoff: Optional[int] = None
    field_numbers: Optional[List[int]] = None

    @field_validator("field_numbers", mode="before")
    @classmethod
    def validate_field_numbers(cls, v):
        return _validate_fields(v)

    @model_validator(mode="after")
    def validate_league_settings(self):
        # has_playoff without teams_to_playoff is checked against the stored row
        check_league_settings(
            self.start_date,
            self.end_date,
            self.number_of_groups,
            self.teams_per_group,
            False,
            self.teams_to_playoff,
        )
        return self


class TournamentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    tournament_type: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    number_of_groups: Optional[int] = None
    teams_per_group: Optional[int] = None
    has_playoff: bool
    teams_to_playoff: Optional[int] = None
    field_numbers: Optional[List[int]] = None
    created_at: datetime
    updated_at: datetime


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.id)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a new tournament"""
    data = tournament_data.model_dump()
    data["tournament_type"] = tournament_data.tournament_type.value
    tournament = Tournament(**data)
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    return get_tournament_or_404(session, tournament_id)


@router.put("/tournaments/{tournament_id}", response_model=TournamentResponse)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, session: Session = Depends(get_session)):
    tournament = get_tournament_or_404(session, tournament_id)

    changes = tournament_data.model_dump(exclude_unset=True)
    merged = {**tournament.model_dump(), **changes}
    try:
        check_league_settings(
            merged["start_date"],
            merged["end_date"],
            merged["number_of_groups"],
            merged["teams_per_group"],
            merged["has_playoff"],
            merged["teams_to_playoff"],
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    for key, value in changes.items():
        setattr(tournament, key, value)

    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(
    tournament_id: int,
    session: Session = Depends(get_session),
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    """Delete a tournament with its matches and pools (child -> parent)."""
    tournament = get_tournament_or_404(session, tournament_id)

    for match in session.exec(select(Match).where(Match.tournament_id == tournament_id)).all():
        session.delete(match)
    session.flush()

    pools = session.exec(select(Pool).where(Pool.tournament_id == tournament_id)).all()
    for pool in pools:
        for member in session.exec(select(PoolTeam).where(PoolTeam.pool_id == pool.id)).all():
            session.delete(member)
    session.flush()
    for pool in pools:
        session.delete(pool)
    session.flush()

    session.delete(tournament)
    session.commit()
    closed = registry.close_tournament(tournament_id)
    if closed:
        logger.info("Closed %d editor session(s) of deleted tournament %d", closed, tournament_id)
    return None
