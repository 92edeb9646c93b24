"""
Batch Schedule Editor API Routes

An editor session is opened per operator and tournament; its token addresses
the selection, time preview and undo history kept on the server:

    POST   /tournaments/{id}/editor                       open (loads matches)
    GET    /tournaments/{id}/editor/{token}               current state
    DELETE /tournaments/{id}/editor/{token}               close
    PUT    /tournaments/{id}/editor/{token}/filter        pool filter
    POST   /tournaments/{id}/editor/{token}/selection     select/deselect/toggle/all/none/clear
    POST   /tournaments/{id}/editor/{token}/batch/date
    POST   /tournaments/{id}/editor/{token}/batch/field
    POST   /tournaments/{id}/editor/{token}/time-preview
    PATCH  /tournaments/{id}/editor/{token}/time-preview/{index}
    POST   /tournaments/{id}/editor/{token}/time-preview/{index}/recalculate
    POST   /tournaments/{id}/editor/{token}/time-preview/commit
    POST   /tournaments/{id}/editor/{token}/reorder
    POST   /tournaments/{id}/editor/{token}/undo

Errors: 400 validation, 404 unknown token, 409 stale rows, 503 store failure.
"""

from contextlib import contextmanager
from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from tourney.database import get_session
from tourney.routes.schedule import MatchResponse, match_response
from tourney.services.batch_editor import (
    BatchUpdate,
    EditorSession,
    EditorSessionRegistry,
    EditorValidationError,
)
from tourney.services.match_store import MatchStore, StaleRecordError, StoreError
from tourney.services.time_ladder import TimeLadderError, TimeSettings, parse_hhmm
from tourney.utils.env import env_int
from tourney.utils.fields import resolve_field_numbers
from tourney.utils.guards import get_editor_or_404, get_editor_registry, get_tournament_or_404

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class FilterRequest(BaseModel):
    pool_id: Optional[int] = None


class SelectionRequest(BaseModel):
    # "all" and "none" act on the matches in the current pool filter only
    action: Literal["select", "deselect", "toggle", "all", "none", "clear"]
    match_ids: List[int] = []


class BatchDateRequest(BaseModel):
    schedule_date: date


class BatchFieldRequest(BaseModel):
    field_number: int


class TimePreviewRequest(BaseModel):
    start_time: str = "08:00"
    duration: int = 90
    interval: int = 15

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        parse_hhmm(v)
        return v


class TimeOverrideRequest(BaseModel):
    start_time: str


class ReorderRequest(BaseModel):
    source_index: int
    destination_index: int


class TimePreviewRowResponse(BaseModel):
    match_id: int
    start_time: str
    end_time: str


class BatchUpdateResponse(BaseModel):
    kind: str
    match_ids: List[int]


class EditorStateResponse(BaseModel):
    token: str
    tournament_id: int
    field_numbers: List[int]
    pool_filter: Optional[int] = None
    matches: List[MatchResponse]
    selection: List[int]
    time_preview: List[TimePreviewRowResponse]
    can_undo: bool
    last_update: Optional[BatchUpdateResponse] = None


def editor_state(editor: EditorSession) -> EditorStateResponse:
    last = editor.undo_stack[-1] if editor.undo_stack else None
    return EditorStateResponse(
        token=editor.token,
        tournament_id=editor.tournament_id,
        field_numbers=editor.field_numbers,
        pool_filter=editor.pool_filter,
        matches=[match_response(m) for m in editor.visible_matches()],
        selection=editor.selection,
        time_preview=[
            TimePreviewRowResponse(match_id=r.match_id, start_time=r.start_time, end_time=r.end_time)
            for r in editor.time_preview
        ],
        can_undo=bool(editor.undo_stack),
        last_update=_batch_response(last) if last else None,
    )


def _batch_response(record: BatchUpdate) -> BatchUpdateResponse:
    return BatchUpdateResponse(kind=record.kind, match_ids=record.match_ids)


@contextmanager
def editor_errors():
    """Translate editor and store failures into HTTP errors."""
    try:
        yield
    except (EditorValidationError, TimeLadderError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StaleRecordError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))


@contextmanager
def editing(registry: EditorSessionRegistry, token: str, tournament_id: int):
    """Hold the session's lock for the rest of the request; map editor errors to HTTP."""
    editor = get_editor_or_404(registry, token, tournament_id)
    with editor.lock, editor_errors():
        yield editor


def _undo_depth() -> int:
    return env_int("EDITOR_UNDO_DEPTH", 1)


# ============================================================================
# Session lifecycle
# ============================================================================


@router.post("/tournaments/{tournament_id}/editor", response_model=EditorStateResponse, status_code=201)
def open_editor(
    tournament_id: int,
    session: Session = Depends(get_session),
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    tournament = get_tournament_or_404(session, tournament_id)
    editor = EditorSession(
        tournament_id=tournament_id,
        field_numbers=resolve_field_numbers(tournament.field_numbers),
        undo_depth=_undo_depth(),
    )
    with editor_errors():
        editor.refresh(MatchStore(session))
    registry.open(editor)
    return editor_state(editor)


@router.get("/tournaments/{tournament_id}/editor/{token}", response_model=EditorStateResponse)
def get_editor(
    tournament_id: int,
    token: str,
    reload: bool = False,
    session: Session = Depends(get_session),
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    with editing(registry, token, tournament_id) as editor:
        if reload:
            editor.refresh(MatchStore(session))
        return editor_state(editor)


@router.delete("/tournaments/{tournament_id}/editor/{token}", status_code=204)
def close_editor(tournament_id: int, token: str, registry: EditorSessionRegistry = Depends(get_editor_registry)):
    get_editor_or_404(registry, token, tournament_id)
    registry.close(token)
    return None


# ============================================================================
# Filter and selection
# ============================================================================


@router.put("/tournaments/{tournament_id}/editor/{token}/filter", response_model=EditorStateResponse)
def set_filter(
    tournament_id: int,
    token: str,
    request: FilterRequest,
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    with editing(registry, token, tournament_id) as editor:
        editor.set_pool_filter(request.pool_id)
        return editor_state(editor)


@router.post("/tournaments/{tournament_id}/editor/{token}/selection", response_model=EditorStateResponse)
def update_selection(
    tournament_id: int,
    token: str,
    request: SelectionRequest,
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    with editing(registry, token, tournament_id) as editor:
        if request.action == "select":
            editor.select(request.match_ids)
        elif request.action == "deselect":
            editor.deselect(request.match_ids)
        elif request.action == "toggle":
            for match_id in request.match_ids:
                editor.toggle(match_id)
        elif request.action == "all":
            editor.select_all()
        elif request.action == "none":
            editor.deselect_all()
        else:
            editor.clear_selection()
        return editor_state(editor)


# ============================================================================
# Batch mutations
# ============================================================================


@router.post("/tournaments/{tournament_id}/editor/{token}/batch/date", response_model=EditorStateResponse)
def batch_date(
    tournament_id: int,
    token: str,
    request: BatchDateRequest,
    session: Session = Depends(get_session),
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    with editing(registry, token, tournament_id) as editor:
        editor.batch_update_date(MatchStore(session), request.schedule_date)
        return editor_state(editor)


@router.post("/tournaments/{tournament_id}/editor/{token}/batch/field", response_model=EditorStateResponse)
def batch_field(
    tournament_id: int,
    token: str,
    request: BatchFieldRequest,
    session: Session = Depends(get_session),
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    with editing(registry, token, tournament_id) as editor:
        editor.batch_update_field(MatchStore(session), request.field_number)
        return editor_state(editor)


@router.post("/tournaments/{tournament_id}/editor/{token}/time-preview", response_model=EditorStateResponse)
def time_preview(
    tournament_id: int,
    token: str,
    request: TimePreviewRequest,
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    with editing(registry, token, tournament_id) as editor:
        editor.preview_times(
            TimeSettings(start_time=request.start_time, duration=request.duration, interval=request.interval)
        )
        return editor_state(editor)


@router.post("/tournaments/{tournament_id}/editor/{token}/time-preview/commit", response_model=EditorStateResponse)
def commit_time_preview(
    tournament_id: int,
    token: str,
    session: Session = Depends(get_session),
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    with editing(registry, token, tournament_id) as editor:
        editor.commit_times(MatchStore(session))
        return editor_state(editor)


@router.patch("/tournaments/{tournament_id}/editor/{token}/time-preview/{index}", response_model=EditorStateResponse)
def override_time_preview(
    tournament_id: int,
    token: str,
    index: int,
    request: TimeOverrideRequest,
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    with editing(registry, token, tournament_id) as editor:
        editor.override_preview_time(index, request.start_time)
        return editor_state(editor)


@router.post(
    "/tournaments/{tournament_id}/editor/{token}/time-preview/{index}/recalculate",
    response_model=EditorStateResponse,
)
def recalculate_time_preview(
    tournament_id: int,
    token: str,
    index: int,
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    with editing(registry, token, tournament_id) as editor:
        editor.recalculate_following(index)
        return editor_state(editor)


@router.post("/tournaments/{tournament_id}/editor/{token}/reorder", response_model=EditorStateResponse)
def reorder(
    tournament_id: int,
    token: str,
    request: ReorderRequest,
    session: Session = Depends(get_session),
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    with editing(registry, token, tournament_id) as editor:
        editor.reorder(MatchStore(session), request.source_index, request.destination_index)
        return editor_state(editor)


@router.post("/tournaments/{tournament_id}/editor/{token}/undo", response_model=EditorStateResponse)
def undo(
    tournament_id: int,
    token: str,
    session: Session = Depends(get_session),
    registry: EditorSessionRegistry = Depends(get_editor_registry),
):
    with editing(registry, token, tournament_id) as editor:
        editor.undo(MatchStore(session))
        return editor_state(editor)
