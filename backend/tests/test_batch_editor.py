"""
Tests for the batch schedule editor session.

Covers selection, batch date/field/time updates, reorder renumbering,
undo, and the two-phase behaviour on store failures and stale rows.
"""

from datetime import date, time

import pytest
from sqlmodel import Session

from tourney.models import Match
from tourney.services.batch_editor import EditorSession, EditorValidationError
from tourney.services.match_store import MatchStore, StaleRecordError, StoreError
from tourney.services.schedule_generator import regenerate_schedule
from tourney.services.time_ladder import TimeSettings


@pytest.fixture
def store(session: Session):
    return MatchStore(session)


@pytest.fixture
def editor(store: MatchStore, league):
    regenerate_schedule(store, league["tournament_id"], [1, 2])
    editor = EditorSession(tournament_id=league["tournament_id"], field_numbers=[1, 2])
    editor.refresh(store)
    return editor


def _ids(editor):
    return [m.id for m in editor.matches]


def _stored(session: Session, match_id: int) -> Match:
    session.expire_all()
    return session.get(Match, match_id)


# ============================================================================
# Loading, filter and selection
# ============================================================================


def test_refresh_loads_matches_in_order_with_names(editor: EditorSession):
    assert [m.match_order for m in editor.matches] == list(range(1, 10))
    first = editor.matches[0]
    assert (first.home_team_name, first.away_team_name, first.pool_name) == ("Team 1", "Team 2", "A")


def test_select_keeps_selection_order_and_ignores_duplicates(editor: EditorSession):
    ids = _ids(editor)
    editor.select([ids[3], ids[1]])
    editor.select([ids[1], ids[0]])
    assert editor.selection == [ids[3], ids[1], ids[0]]

    editor.deselect([ids[1]])
    assert editor.selection == [ids[3], ids[0]]


def test_toggle_and_clear(editor: EditorSession):
    ids = _ids(editor)
    editor.toggle(ids[2])
    assert editor.selection == [ids[2]]
    editor.toggle(ids[2])
    assert editor.selection == []

    editor.select(ids[:3])
    editor.clear_selection()
    assert editor.selection == []


def test_select_unknown_match_is_rejected(editor: EditorSession):
    with pytest.raises(EditorValidationError):
        editor.select([999999])
    assert editor.selection == []


def test_select_all_respects_pool_filter(editor: EditorSession, league):
    editor.set_pool_filter(league["pool_b_id"])
    editor.select_all()

    assert len(editor.selection) == 3
    assert all(m.pool_id == league["pool_b_id"] for m in editor.selected_matches())

    editor.set_pool_filter(None)
    editor.select_all()
    assert sorted(editor.selection) == sorted(_ids(editor))
    assert len(editor.selection) == len(_ids(editor))


def test_select_all_keeps_picks_from_other_pools(editor: EditorSession, league):
    pool_a_pick = editor.matches[0]
    assert pool_a_pick.pool_id == league["pool_a_id"]
    editor.select([pool_a_pick.id])

    editor.set_pool_filter(league["pool_b_id"])
    editor.select_all()

    pool_b_ids = [m.id for m in editor.visible_matches()]
    assert editor.selection == [pool_a_pick.id] + pool_b_ids


def test_deselect_all_only_drops_filtered_matches(editor: EditorSession, league):
    ids = _ids(editor)
    editor.select([ids[0], ids[1]])
    editor.set_pool_filter(league["pool_b_id"])
    editor.select_all()

    editor.deselect_all()

    assert editor.selection == [ids[0], ids[1]]
    assert all(m.pool_id == league["pool_a_id"] for m in editor.selected_matches())


# ============================================================================
# Batch date / field
# ============================================================================


def test_batch_date_updates_only_selected(editor: EditorSession, store: MatchStore, session: Session):
    ids = _ids(editor)
    editor.select(ids[:2])
    record = editor.batch_update_date(store, date(2026, 3, 14))

    assert record.kind == "date"
    assert record.match_ids == ids[:2]
    assert all(snap.schedule_date is None for snap in record.matches)
    assert _stored(session, ids[0]).schedule_date == date(2026, 3, 14)
    assert _stored(session, ids[1]).schedule_date == date(2026, 3, 14)
    assert _stored(session, ids[2]).schedule_date is None
    # Selection is not cleared automatically
    assert editor.selection == ids[:2]


def test_batch_date_is_idempotent(editor: EditorSession, store: MatchStore):
    ids = _ids(editor)
    editor.select(ids[:3])
    editor.batch_update_date(store, date(2026, 3, 14))
    once = [(m.id, m.schedule_date, m.field_number, m.match_order) for m in editor.matches]

    editor.batch_update_date(store, date(2026, 3, 14))
    twice = [(m.id, m.schedule_date, m.field_number, m.match_order) for m in editor.matches]

    assert once == twice


def test_batch_field_update(editor: EditorSession, store: MatchStore, session: Session):
    ids = _ids(editor)
    editor.select([ids[0], ids[2], ids[4]])
    editor.batch_update_field(store, 2)

    assert [_stored(session, mid).field_number for mid in (ids[0], ids[2], ids[4])] == [2, 2, 2]
    assert _stored(session, ids[1]).field_number == 2
    assert _stored(session, ids[6]).field_number == 1


def test_batch_validation_happens_before_store(editor: EditorSession, store: MatchStore):
    with pytest.raises(EditorValidationError):
        editor.batch_update_date(store, date(2026, 3, 14))  # empty selection

    editor.select(_ids(editor)[:1])
    with pytest.raises(EditorValidationError):
        editor.batch_update_date(store, None)
    with pytest.raises(EditorValidationError):
        editor.batch_update_field(store, 3)
    assert editor.undo_stack == []


class FailingUpsertStore(MatchStore):
    def upsert(self, model, rows, expected_versions=None):
        raise StoreError("store unavailable")


def test_failed_store_call_leaves_local_state_untouched(editor: EditorSession, session: Session):
    ids = _ids(editor)
    editor.select(ids[:2])
    before = list(editor.matches)

    with pytest.raises(StoreError):
        editor.batch_update_date(FailingUpsertStore(session), date(2026, 3, 14))

    assert editor.matches == before
    assert editor.undo_stack == []


def test_stale_rows_raise_conflict(editor: EditorSession, store: MatchStore, session: Session):
    ids = _ids(editor)
    # Another session edits the first match after this editor loaded it
    store.update(Match, {"field_number": 2}, Match.id == ids[0])

    editor.select(ids[:2])
    with pytest.raises(StaleRecordError) as exc_info:
        editor.batch_update_date(store, date(2026, 3, 14))

    assert exc_info.value.stale_ids == [ids[0]]
    assert _stored(session, ids[1]).schedule_date is None

    editor.refresh(store)
    editor.batch_update_date(store, date(2026, 3, 14))
    assert _stored(session, ids[0]).schedule_date == date(2026, 3, 14)


# ============================================================================
# Time ladder
# ============================================================================


def test_time_preview_follows_selection_order(editor: EditorSession):
    ids = _ids(editor)
    editor.select([ids[2], ids[0], ids[1]])
    preview = editor.preview_times(TimeSettings(start_time="08:00", duration=90, interval=15))

    assert [(r.match_id, r.start_time, r.end_time) for r in preview] == [
        (ids[2], "08:00", "09:30"),
        (ids[0], "09:45", "11:15"),
        (ids[1], "11:30", "13:00"),
    ]


def test_time_commit_with_override_and_recalculate(editor: EditorSession, store: MatchStore, session: Session):
    ids = _ids(editor)
    editor.select(ids[:3])
    editor.preview_times(TimeSettings())
    editor.override_preview_time(1, "10:00")
    editor.recalculate_following(1)

    record = editor.commit_times(store)

    assert record.kind == "time"
    assert [_stored(session, mid).schedule_time for mid in ids[:3]] == [time(8, 0), time(10, 0), time(11, 45)]
    assert editor.time_preview == []


def test_time_commit_requires_preview(editor: EditorSession, store: MatchStore):
    with pytest.raises(EditorValidationError):
        editor.commit_times(store)
    with pytest.raises(EditorValidationError):
        editor.override_preview_time(0, "09:00")


# ============================================================================
# Reorder
# ============================================================================


def test_reorder_moves_first_to_third(editor: EditorSession, store: MatchStore):
    a, b, c, d = _ids(editor)[:4]
    editor.reorder(store, 0, 2)

    assert _ids(editor)[:4] == [b, c, a, d]
    assert [m.match_order for m in editor.matches] == list(range(1, 10))


def test_reorder_within_pool_filter_keeps_global_order_dense(
    editor: EditorSession, store: MatchStore, session: Session, league
):
    ids = _ids(editor)
    m7, m8, m9 = ids[6:9]
    editor.set_pool_filter(league["pool_b_id"])
    visible = editor.reorder(store, 0, 2)

    assert [m.id for m in visible] == [m8, m9, m7]
    assert [_stored(session, mid).match_order for mid in (m8, m9, m7)] == [7, 8, 9]
    assert [_stored(session, mid).match_order for mid in ids[:6]] == [1, 2, 3, 4, 5, 6]


def test_reorder_carries_other_fields_forward(editor: EditorSession, store: MatchStore, session: Session):
    ids = _ids(editor)
    # Score recorded elsewhere; not part of the editor's working copy
    store.update(Match, {"home_score": 5}, Match.id == ids[0])

    editor.reorder(store, 0, 1)

    stored = _stored(session, ids[0])
    assert stored.match_order == 2
    assert stored.home_score == 5


def test_reorder_rejects_bad_indexes(editor: EditorSession, store: MatchStore):
    with pytest.raises(EditorValidationError):
        editor.reorder(store, 0, 42)
    with pytest.raises(EditorValidationError):
        editor.reorder(store, -1, 0)


# ============================================================================
# Undo
# ============================================================================


def test_undo_reverts_only_last_batch(editor: EditorSession, store: MatchStore, session: Session):
    ids = _ids(editor)
    editor.select([ids[2]])
    editor.batch_update_date(store, date(2026, 3, 1))

    editor.clear_selection()
    editor.select(ids[:2])
    editor.batch_update_date(store, date(2026, 3, 2))

    record = editor.undo(store)

    assert record.match_ids == ids[:2]
    assert _stored(session, ids[0]).schedule_date is None
    assert _stored(session, ids[1]).schedule_date is None
    assert _stored(session, ids[2]).schedule_date == date(2026, 3, 1)
    # Depth 1: the earlier batch is no longer undoable
    assert editor.undo_stack == []
    with pytest.raises(EditorValidationError):
        editor.undo(store)


def test_undo_field_restores_per_match_values(editor: EditorSession, store: MatchStore, session: Session):
    ids = _ids(editor)
    editor.select(ids[:4])
    editor.batch_update_field(store, 2)
    editor.undo(store)

    assert [_stored(session, mid).field_number for mid in ids[:4]] == [1, 2, 1, 2]


def test_undo_time_batch(editor: EditorSession, store: MatchStore, session: Session):
    ids = _ids(editor)
    editor.select(ids[:2])
    editor.preview_times(TimeSettings(start_time="09:00"))
    editor.commit_times(store)
    editor.undo(store)

    assert [_stored(session, mid).schedule_time for mid in ids[:2]] == [None, None]


def test_deeper_undo_stack(store: MatchStore, league):
    regenerate_schedule(store, league["tournament_id"], [1, 2])
    editor = EditorSession(tournament_id=league["tournament_id"], undo_depth=2)
    editor.refresh(store)
    ids = _ids(editor)

    editor.select(ids[:1])
    editor.batch_update_date(store, date(2026, 3, 1))
    editor.batch_update_field(store, 2)
    editor.batch_update_date(store, date(2026, 3, 9))

    assert [r.kind for r in editor.undo_stack] == ["field", "date"]
    editor.undo(store)
    assert editor.matches[0].schedule_date == date(2026, 3, 1)
    editor.undo(store)
    assert editor.matches[0].field_number == 1
