"""
Tests for the in-process editor session registry and per-session locking.
"""

import pytest
from fastapi import HTTPException

from tourney.routes.schedule_editor import editing
from tourney.services.batch_editor import EditorSession, EditorSessionRegistry, EditorValidationError


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_idle_sessions_are_swept_on_open(clock: FakeClock):
    registry = EditorSessionRegistry(idle_timeout=60, clock=clock)
    stale = registry.open(EditorSession(tournament_id=1))
    clock.now = 30
    active = registry.open(EditorSession(tournament_id=1))

    clock.now = 80
    registry.get(active.token)
    registry.open(EditorSession(tournament_id=2))

    assert registry.get(stale.token) is None
    assert registry.get(active.token) is active
    assert len(registry) == 2


def test_least_recently_used_session_is_evicted_at_capacity(clock: FakeClock):
    registry = EditorSessionRegistry(max_sessions=2, clock=clock)
    first = registry.open(EditorSession(tournament_id=1))
    clock.now = 1
    second = registry.open(EditorSession(tournament_id=1))
    clock.now = 2
    registry.get(first.token)

    clock.now = 3
    third = registry.open(EditorSession(tournament_id=1))

    assert len(registry) == 2
    assert registry.get(second.token) is None
    assert registry.get(first.token) is first
    assert registry.get(third.token) is third


def test_close_tournament_only_closes_its_sessions(clock: FakeClock):
    registry = EditorSessionRegistry(clock=clock)
    registry.open(EditorSession(tournament_id=1))
    registry.open(EditorSession(tournament_id=1))
    other = registry.open(EditorSession(tournament_id=2))

    assert registry.close_tournament(1) == 2
    assert registry.close_tournament(1) == 0
    assert len(registry) == 1
    assert registry.get(other.token) is other


def test_editing_holds_session_lock_for_the_request():
    registry = EditorSessionRegistry()
    editor = registry.open(EditorSession(tournament_id=5))

    with editing(registry, editor.token, 5) as held:
        assert held is editor
        assert editor.lock.locked()
    assert not editor.lock.locked()


def test_editing_releases_lock_and_maps_errors():
    registry = EditorSessionRegistry()
    editor = registry.open(EditorSession(tournament_id=5))

    with pytest.raises(HTTPException) as exc_info:
        with editing(registry, editor.token, 5):
            raise EditorValidationError("No matches selected")

    assert exc_info.value.status_code == 400
    assert not editor.lock.locked()


def test_editing_unknown_token_is_404():
    with pytest.raises(HTTPException) as exc_info:
        with editing(EditorSessionRegistry(), "missing", 5):
            pass
    assert exc_info.value.status_code == 404
