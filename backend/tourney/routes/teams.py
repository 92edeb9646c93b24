"""
Team Management API Routes
Provides CRUD operations for the tournament-wide team register.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, or_, select

from tourney.database import get_session
from tourney.models.match import Match
from tourney.models.pool import PoolTeam
from tourney.models.team import Team

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class TeamCreateRequest(BaseModel):
    team_name: str
    manager_name: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[str] = None

    @field_validator("team_name")
    @classmethod
    def validate_team_name(cls, v):
        if not v or not v.strip():
            raise ValueError("team_name is required")
        return v.strip()


class TeamUpdateRequest(BaseModel):
    team_name: Optional[str] = None
    manager_name: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[str] = None


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    team_name: str
    manager_name: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime


# ============================================================================
# Team CRUD Endpoints
# ============================================================================


@router.get("/teams", response_model=List[TeamResponse])
def get_teams(session: Session = Depends(get_session)):
    """Get all teams ordered by name."""
    return session.exec(select(Team).order_by(Team.team_name)).all()


def _save_team(session: Session, team: Team) -> Team:
    try:
        session.add(team)
        session.commit()
        session.refresh(team)
        return team
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail=f"Team with name '{team.team_name}' already exists")


@router.post("/teams", response_model=TeamResponse, status_code=201)
def create_team(request: TeamCreateRequest, session: Session = Depends(get_session)):
    """
    Create a new team.

    Constraints:
    - team_name must be unique
    """
    return _save_team(session, Team(**request.model_dump()))


@router.patch("/teams/{team_id}", response_model=TeamResponse)
def update_team(team_id: int, request: TeamUpdateRequest, session: Session = Depends(get_session)):
    team = session.get(Team, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")

    for key, value in request.model_dump(exclude_unset=True).items():
        setattr(team, key, value.strip() if key == "team_name" and value else value)
    if not team.team_name:
        raise HTTPException(status_code=400, detail="team_name cannot be empty")

    return _save_team(session, team)


@router.delete("/teams/{team_id}", status_code=204)
def delete_team(team_id: int, session: Session = Depends(get_session)):
    """
    Delete a team.

    Teams that already appear in a match cannot be deleted; pool memberships
    are removed along with the team.
    """
    team = session.get(Team, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")

    scheduled = session.exec(
        select(Match).where(or_(Match.home_team_id == team_id, Match.away_team_id == team_id))
    ).first()
    if scheduled:
        raise HTTPException(status_code=409, detail="Team has scheduled matches; regenerate the schedule first")

    for member in session.exec(select(PoolTeam).where(PoolTeam.team_id == team_id)).all():
        session.delete(member)
    session.flush()

    session.delete(team)
    session.commit()
    return None
