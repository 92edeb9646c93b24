"""
Lookup Guards

Reusable lookups that turn a missing or foreign record into a 404:
- Tournament by id
- Pool by id (optionally scoped to a tournament)
- Open editor session by token (scoped to a tournament)
- The app-wide editor session registry (FastAPI dependency)
"""

from fastapi import HTTPException, Request
from sqlmodel import Session

from tourney.models.pool import Pool
from tourney.models.tournament import Tournament
from tourney.services.batch_editor import EditorSession, EditorSessionRegistry


def get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    """
    Get a tournament or raise 404.

    Raises:
        HTTPException 404: Tournament not found
    """
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def get_pool_or_404(session: Session, pool_id: int, tournament_id: int = None) -> Pool:
    """
    Get a pool or raise 404.

    Args:
        session: Database session
        pool_id: Pool ID
        tournament_id: Optional tournament ID for ownership validation

    Raises:
        HTTPException 404: Pool not found or doesn't belong to tournament
    """
    pool = session.get(Pool, pool_id)
    if not pool:
        raise HTTPException(status_code=404, detail="Pool not found")

    if tournament_id and pool.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail=f"Pool {pool_id} does not belong to tournament {tournament_id}")

    return pool


def get_editor_registry(request: Request) -> EditorSessionRegistry:
    return request.app.state.editor_registry


def get_editor_or_404(registry: EditorSessionRegistry, token: str, tournament_id: int) -> EditorSession:
    editor = registry.get(token)
    if editor is None or editor.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Editor session not found")
    return editor
