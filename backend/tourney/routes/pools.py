"""
Pool Management API Routes

Pools group a tournament's teams for round-robin play:
- create pools by name, by count (A, B, C, ...) or from the tournament's number_of_groups
- list pools with their member teams
- assign / remove teams (one pool per team per tournament, capped by teams_per_group)
"""

import logging
import string
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, model_validator
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tourney.database import get_session
from tourney.models.match import Match
from tourney.models.pool import Pool, PoolStage, PoolTeam
from tourney.models.team import Team
from tourney.utils.guards import get_pool_or_404, get_tournament_or_404

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class PoolCreateRequest(BaseModel):
    names: Optional[List[str]] = None
    count: Optional[int] = None
    stage: PoolStage = PoolStage.PRELIMINARY

    @model_validator(mode="after")
    def validate_names_or_count(self):
        if self.names is not None and self.count is not None:
            raise ValueError("Provide either names or count, not both")
        if self.count is not None and not 1 <= self.count <= 26:
            raise ValueError("count must be between 1 and 26")
        if self.names is not None:
            cleaned = [n.strip() for n in self.names]
            if not cleaned or any(not n for n in cleaned):
                raise ValueError("Pool names must be non-empty")
            if len(set(cleaned)) != len(cleaned):
                raise ValueError("Pool names must be unique")
            self.names = cleaned
        return self


class PoolTeamsRequest(BaseModel):
    team_ids: List[int]


class PoolTeamResponse(BaseModel):
    team_id: int
    team_name: str


class PoolResponse(BaseModel):
    id: int
    tournament_id: int
    pool_name: str
    stage: str
    teams: List[PoolTeamResponse]


class AvailableTeamResponse(BaseModel):
    id: int
    team_name: str


# ============================================================================
# Helpers
# ============================================================================


def default_pool_names(count: int) -> List[str]:
    """A, B, C, ... for ``count`` pools."""
    return list(string.ascii_uppercase[:count])


def _pool_response(session: Session, pool: Pool) -> PoolResponse:
    members = session.exec(select(PoolTeam).where(PoolTeam.pool_id == pool.id).order_by(PoolTeam.id)).all()
    teams = []
    for member in members:
        team = session.get(Team, member.team_id)
        if team:
            teams.append(PoolTeamResponse(team_id=team.id, team_name=team.team_name))
    return PoolResponse(
        id=pool.id, tournament_id=pool.tournament_id, pool_name=pool.pool_name, stage=pool.stage, teams=teams
    )


def _assigned_team_ids(session: Session, tournament_id: int) -> set:
    pool_ids = [p.id for p in session.exec(select(Pool).where(Pool.tournament_id == tournament_id)).all()]
    if not pool_ids:
        return set()
    members = session.exec(select(PoolTeam).where(PoolTeam.pool_id.in_(pool_ids))).all()
    return {m.team_id for m in members}


# ============================================================================
# Pool Endpoints
# ============================================================================


@router.get("/tournaments/{tournament_id}/pools", response_model=List[PoolResponse])
def list_pools(tournament_id: int, session: Session = Depends(get_session)):
    """List pools (ordered by name) with their teams."""
    get_tournament_or_404(session, tournament_id)
    pools = session.exec(
        select(Pool).where(Pool.tournament_id == tournament_id).order_by(Pool.pool_name, Pool.id)
    ).all()
    return [_pool_response(session, pool) for pool in pools]


@router.post("/tournaments/{tournament_id}/pools", response_model=List[PoolResponse], status_code=201)
def create_pools(
    tournament_id: int, request: Optional[PoolCreateRequest] = None, session: Session = Depends(get_session)
):
    """
    Create pools for a tournament.

    - names: explicit pool names
    - count: that many pools named A, B, C, ...
    - neither: initialise from tournament.number_of_groups, only if no pools exist yet
    """
    tournament = get_tournament_or_404(session, tournament_id)
    request = request or PoolCreateRequest()

    if request.names is not None:
        names = request.names
    elif request.count is not None:
        names = default_pool_names(request.count)
    else:
        existing = session.exec(select(Pool).where(Pool.tournament_id == tournament_id)).first()
        if existing:
            raise HTTPException(status_code=409, detail="Pools already exist for this tournament")
        if not tournament.number_of_groups:
            raise HTTPException(status_code=400, detail="Tournament has no number_of_groups; pass names or count")
        names = default_pool_names(min(tournament.number_of_groups, 26))

    pools = [Pool(tournament_id=tournament_id, pool_name=name, stage=request.stage.value) for name in names]
    try:
        session.add_all(pools)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="A pool with one of these names already exists")

    for pool in pools:
        session.refresh(pool)
    logger.info("Created %d pools for tournament %d", len(pools), tournament_id)
    return [_pool_response(session, pool) for pool in pools]


@router.delete("/tournaments/{tournament_id}/pools/{pool_id}", status_code=204)
def delete_pool(tournament_id: int, pool_id: int, session: Session = Depends(get_session)):
    """Delete an unscheduled pool and its memberships."""
    pool = get_pool_or_404(session, pool_id, tournament_id)

    if session.exec(select(Match).where(Match.pool_id == pool_id)).first():
        raise HTTPException(status_code=409, detail="Pool has scheduled matches; regenerate the schedule first")

    for member in session.exec(select(PoolTeam).where(PoolTeam.pool_id == pool_id)).all():
        session.delete(member)
    session.flush()
    session.delete(pool)
    session.commit()
    return None


@router.get("/tournaments/{tournament_id}/available-teams", response_model=List[AvailableTeamResponse])
def list_available_teams(tournament_id: int, session: Session = Depends(get_session)):
    """Teams not yet assigned to any pool of this tournament, by name."""
    get_tournament_or_404(session, tournament_id)
    assigned = _assigned_team_ids(session, tournament_id)
    teams = session.exec(select(Team).order_by(Team.team_name)).all()
    return [AvailableTeamResponse(id=t.id, team_name=t.team_name) for t in teams if t.id not in assigned]


@router.post("/pools/{pool_id}/teams", response_model=PoolResponse, status_code=201)
def add_pool_teams(pool_id: int, request: PoolTeamsRequest, session: Session = Depends(get_session)):
    """
    Assign teams to a pool.

    Rejects:
    - unknown teams (404)
    - duplicates in the request or teams already in a pool of this tournament (409)
    - going over the tournament's teams_per_group (400)
    """
    pool = get_pool_or_404(session, pool_id)
    tournament = get_tournament_or_404(session, pool.tournament_id)

    if len(set(request.team_ids)) != len(request.team_ids):
        raise HTTPException(status_code=409, detail="Duplicate team ids in request")

    for team_id in request.team_ids:
        if not session.get(Team, team_id):
            raise HTTPException(status_code=404, detail=f"Team {team_id} not found")

    assigned = _assigned_team_ids(session, pool.tournament_id)
    clashing = [tid for tid in request.team_ids if tid in assigned]
    if clashing:
        raise HTTPException(status_code=409, detail=f"Teams {clashing} are already assigned to a pool")

    if tournament.teams_per_group:
        current = len(session.exec(select(PoolTeam).where(PoolTeam.pool_id == pool_id)).all())
        available = tournament.teams_per_group - current
        if len(request.team_ids) > available:
            raise HTTPException(
                status_code=400, detail=f"Can only add {max(available, 0)} more teams to pool {pool.pool_name}"
            )

    session.add_all([PoolTeam(pool_id=pool_id, team_id=tid) for tid in request.team_ids])
    session.commit()
    return _pool_response(session, pool)


@router.delete("/pools/{pool_id}/teams/{team_id}", status_code=204)
def remove_pool_team(pool_id: int, team_id: int, session: Session = Depends(get_session)):
    get_pool_or_404(session, pool_id)
    member = session.exec(select(PoolTeam).where(PoolTeam.pool_id == pool_id, PoolTeam.team_id == team_id)).first()
    if not member:
        raise HTTPException(status_code=404, detail="Team is not in this pool")

    session.delete(member)
    session.commit()
    return None
