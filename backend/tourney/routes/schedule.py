"""
Schedule API Routes
Round-robin generation of a tournament's pool matches and the match listing.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session, select

from tourney.database import get_session
from tourney.models.match import Match
from tourney.models.pool import Pool
from tourney.models.team import Team
from tourney.services.match_store import MatchStore, StoreError
from tourney.services.schedule_generator import ScheduleGenerationError, regenerate_schedule
from tourney.utils.fields import resolve_field_numbers
from tourney.utils.guards import get_tournament_or_404

router = APIRouter()


class MatchResponse(BaseModel):
    id: int
    match_order: int
    pool_id: Optional[int] = None
    pool_name: Optional[str] = None
    home_team_id: int
    away_team_id: int
    home_team_name: Optional[str] = None
    away_team_name: Optional[str] = None
    field_number: int
    schedule_date: Optional[date] = None
    schedule_time: Optional[str] = None  # HH:MM
    status: str
    version: int


def match_response(match, pool_name=None, home_team_name=None, away_team_name=None) -> MatchResponse:
    """Build a response from a Match row or a ScheduledMatch snapshot."""
    return MatchResponse(
        id=match.id,
        match_order=match.match_order,
        pool_id=match.pool_id,
        pool_name=pool_name if pool_name is not None else getattr(match, "pool_name", None),
        home_team_id=match.home_team_id,
        away_team_id=match.away_team_id,
        home_team_name=home_team_name if home_team_name is not None else getattr(match, "home_team_name", None),
        away_team_name=away_team_name if away_team_name is not None else getattr(match, "away_team_name", None),
        field_number=match.field_number,
        schedule_date=match.schedule_date,
        schedule_time=match.schedule_time.strftime("%H:%M") if match.schedule_time else None,
        status=match.status,
        version=match.version,
    )


def _with_names(session: Session, matches: List[Match]) -> List[MatchResponse]:
    teams = {}
    pools = {}
    responses = []
    for match in matches:
        for team_id in (match.home_team_id, match.away_team_id):
            if team_id not in teams:
                teams[team_id] = session.get(Team, team_id)
        if match.pool_id is not None and match.pool_id not in pools:
            pools[match.pool_id] = session.get(Pool, match.pool_id)
        pool = pools.get(match.pool_id)
        home = teams.get(match.home_team_id)
        away = teams.get(match.away_team_id)
        responses.append(
            match_response(
                match,
                pool_name=pool.pool_name if pool else None,
                home_team_name=home.team_name if home else None,
                away_team_name=away.team_name if away else None,
            )
        )
    return responses


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse])
def list_matches(
    tournament_id: int,
    pool_id: Optional[int] = Query(default=None),
    session: Session = Depends(get_session),
):
    """Non-playoff matches in match_order, optionally for one pool."""
    get_tournament_or_404(session, tournament_id)
    query = select(Match).where(Match.tournament_id == tournament_id, Match.is_playoff == False)  # noqa: E712
    if pool_id is not None:
        query = query.where(Match.pool_id == pool_id)
    matches = session.exec(query.order_by(Match.match_order, Match.id)).all()
    return _with_names(session, list(matches))


@router.post("/tournaments/{tournament_id}/schedule/generate", response_model=List[MatchResponse])
def generate_schedule(tournament_id: int, session: Session = Depends(get_session)):
    """
    Regenerate the round-robin schedule.

    Replaces every non-playoff match of the tournament (manual edits to those
    matches are lost); playoff matches are untouched.  If the store fails the
    previous schedule stays in place.
    """
    tournament = get_tournament_or_404(session, tournament_id)
    store = MatchStore(session)

    try:
        matches = regenerate_schedule(store, tournament_id, resolve_field_numbers(tournament.field_numbers))
    except ScheduleGenerationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=503, detail=f"Failed to generate schedule: {e}")

    return _with_names(session, matches)
