"""
Batch Schedule Editor
=====================
Session-scoped editing of an already generated schedule.

An EditorSession holds one operator's working copy of a tournament's
non-playoff matches together with:

- the pool filter and the ordered selection (never persisted)
- the pending time-ladder preview
- an undo stack of BatchUpdate records (depth 1 by default)

Every mutating operation is two-phase: the new values are staged, written
through the store guarded by the versions held in the working copy, and only
applied locally once the store confirms.  A failed write leaves the session
exactly as it was.

The store is passed into each call; the session itself holds no database
handle and can outlive the request that created it.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, time
from time import monotonic
from typing import Any, Callable, Dict, List, Optional, Sequence

from tourney.models import Match, Pool, Team
from tourney.services.match_store import MatchStore
from tourney.services.time_ladder import (
    TimeLadderError,
    TimePreviewRow,
    TimeSettings,
    build_time_preview,
    override_start_time,
    parse_hhmm,
    recalculate_following,
)

logger = logging.getLogger(__name__)

BATCH_KINDS = ("date", "time", "field")

# Match attribute touched by each batch kind
KIND_ATTRIBUTE = {"date": "schedule_date", "time": "schedule_time", "field": "field_number"}


class EditorValidationError(Exception):
    """Rejected before any store call."""
    pass


@dataclass(frozen=True)
class ScheduledMatch:
    """Detached copy of one Match row plus display names."""

    id: int
    match_order: int
    pool_id: Optional[int]
    home_team_id: int
    away_team_id: int
    field_number: int
    schedule_date: Optional[date]
    schedule_time: Optional[time]
    status: str
    version: int
    pool_name: Optional[str] = None
    home_team_name: Optional[str] = None
    away_team_name: Optional[str] = None


@dataclass
class BatchUpdate:
    kind: str  # "date" | "time" | "field"
    value: Any
    matches: List[ScheduledMatch]  # snapshots taken before the mutation

    @property
    def match_ids(self) -> List[int]:
        return [m.id for m in self.matches]


@dataclass
class EditorSession:
    tournament_id: int
    field_numbers: List[int] = field(default_factory=lambda: [1, 2])
    undo_depth: int = 1
    token: str = field(default_factory=lambda: uuid.uuid4().hex)

    matches: List[ScheduledMatch] = field(default_factory=list)
    pool_filter: Optional[int] = None
    selection: List[int] = field(default_factory=list)
    time_settings: Optional[TimeSettings] = None
    time_preview: List[TimePreviewRow] = field(default_factory=list)
    undo_stack: List[BatchUpdate] = field(default_factory=list)

    # Held by the HTTP layer for the whole of each request on this session
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    last_used: float = field(default=0.0, repr=False, compare=False)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def refresh(self, store: MatchStore) -> None:
        """Reload the working copy; drops selected ids that no longer exist."""
        rows = store.select(
            Match,
            Match.tournament_id == self.tournament_id,
            Match.is_playoff == False,  # noqa: E712
            order_by=[Match.match_order, Match.id],
        )
        teams = store.get_many(Team, {r.home_team_id for r in rows} | {r.away_team_id for r in rows})
        pools = store.get_many(Pool, {r.pool_id for r in rows if r.pool_id is not None})

        self.matches = [_snapshot(row, teams, pools) for row in rows]
        known = {m.id for m in self.matches}
        self.selection = [mid for mid in self.selection if mid in known]
        self.time_preview = [row for row in self.time_preview if row.match_id in known]

    def _by_id(self) -> Dict[int, ScheduledMatch]:
        return {m.id: m for m in self.matches}

    def _absorb(self, rows: Sequence[Match]) -> None:
        """Fold confirmed store rows back into the working copy."""
        fresh = {row.id: row for row in rows}
        updated = []
        for m in self.matches:
            row = fresh.get(m.id)
            if row is None:
                updated.append(m)
                continue
            updated.append(
                replace(
                    m,
                    match_order=row.match_order,
                    field_number=row.field_number,
                    schedule_date=row.schedule_date,
                    schedule_time=row.schedule_time,
                    status=row.status,
                    version=row.version,
                )
            )
        self.matches = sorted(updated, key=lambda m: (m.match_order, m.id))

    # ------------------------------------------------------------------
    # Filter and selection
    # ------------------------------------------------------------------

    def set_pool_filter(self, pool_id: Optional[int]) -> None:
        self.pool_filter = pool_id

    def visible_matches(self) -> List[ScheduledMatch]:
        if self.pool_filter is None:
            return list(self.matches)
        return [m for m in self.matches if m.pool_id == self.pool_filter]

    def _require_known(self, match_ids: Sequence[int]) -> None:
        known = self._by_id()
        missing = [mid for mid in match_ids if mid not in known]
        if missing:
            raise EditorValidationError(f"Unknown match ids: {missing}")

    def select(self, match_ids: Sequence[int]) -> None:
        self._require_known(match_ids)
        for mid in match_ids:
            if mid not in self.selection:
                self.selection.append(mid)

    def deselect(self, match_ids: Sequence[int]) -> None:
        drop = set(match_ids)
        self.selection = [mid for mid in self.selection if mid not in drop]

    def toggle(self, match_id: int) -> None:
        if match_id in self.selection:
            self.deselect([match_id])
        else:
            self.select([match_id])

    def select_all(self) -> None:
        """Add every match in the current filter to the selection, in display order."""
        self.select([m.id for m in self.visible_matches() if m.id not in self.selection])

    def deselect_all(self) -> None:
        """Drop the matches in the current filter; picks made under other filters stay."""
        self.deselect([m.id for m in self.visible_matches()])

    def clear_selection(self) -> None:
        self.selection = []

    def selected_matches(self) -> List[ScheduledMatch]:
        known = self._by_id()
        return [known[mid] for mid in self.selection if mid in known]

    def _require_selection(self) -> List[ScheduledMatch]:
        selected = self.selected_matches()
        if not selected:
            raise EditorValidationError("No matches selected")
        return selected

    # ------------------------------------------------------------------
    # Batch mutations
    # ------------------------------------------------------------------

    def _apply_batch(self, store: MatchStore, kind: str, value: Any, changes: Dict[int, Any]) -> BatchUpdate:
        attribute = KIND_ATTRIBUTE[kind]
        known = self._by_id()
        snapshots = [known[mid] for mid in changes]
        rows = [{"id": mid, attribute: new_value} for mid, new_value in changes.items()]
        expected = {mid: known[mid].version for mid in changes}

        saved = store.upsert(Match, rows, expected_versions=expected)

        self._absorb(saved)
        record = BatchUpdate(kind=kind, value=value, matches=snapshots)
        self.undo_stack.append(record)
        del self.undo_stack[: max(0, len(self.undo_stack) - self.undo_depth)]
        logger.info(
            "Batch %s update applied to %d matches in tournament %d", kind, len(changes), self.tournament_id
        )
        return record

    def batch_update_date(self, store: MatchStore, new_date: Optional[date]) -> BatchUpdate:
        if new_date is None:
            raise EditorValidationError("A date is required")
        selected = self._require_selection()
        return self._apply_batch(store, "date", new_date, {m.id: new_date for m in selected})

    def batch_update_field(self, store: MatchStore, field_number: Optional[int]) -> BatchUpdate:
        if field_number not in self.field_numbers:
            raise EditorValidationError(
                f"Field {field_number} is not one of the configured fields {self.field_numbers}"
            )
        selected = self._require_selection()
        return self._apply_batch(store, "field", field_number, {m.id: field_number for m in selected})

    # ------------------------------------------------------------------
    # Time ladder
    # ------------------------------------------------------------------

    def preview_times(self, settings: TimeSettings) -> List[TimePreviewRow]:
        selected = self._require_selection()
        self.time_settings = settings
        self.time_preview = build_time_preview([m.id for m in selected], settings)
        return self.time_preview

    def _require_preview(self) -> TimeSettings:
        if not self.time_preview or self.time_settings is None:
            raise EditorValidationError("No time preview to work on; build one first")
        return self.time_settings

    def override_preview_time(self, index: int, start_time: str) -> List[TimePreviewRow]:
        settings = self._require_preview()
        try:
            override_start_time(self.time_preview, index, start_time, settings.duration)
        except TimeLadderError as exc:
            raise EditorValidationError(str(exc)) from exc
        return self.time_preview

    def recalculate_following(self, index: int) -> List[TimePreviewRow]:
        settings = self._require_preview()
        try:
            recalculate_following(self.time_preview, index, settings)
        except TimeLadderError as exc:
            raise EditorValidationError(str(exc)) from exc
        return self.time_preview

    def commit_times(self, store: MatchStore) -> BatchUpdate:
        settings = self._require_preview()
        self._require_known([row.match_id for row in self.time_preview])
        changes = {}
        for row in self.time_preview:
            minutes = parse_hhmm(row.start_time)
            changes[row.match_id] = time(minutes // 60, minutes % 60)

        record = self._apply_batch(store, "time", settings, changes)
        self.time_preview = []
        self.time_settings = None
        return record

    # ------------------------------------------------------------------
    # Reorder
    # ------------------------------------------------------------------

    def reorder(self, store: MatchStore, source_index: int, destination_index: int) -> List[ScheduledMatch]:
        """
        Move one match within the filtered view and renumber match_order.

        The filtered matches keep the positions they occupy in the full
        list; only their relative order changes.  The whole list is then
        renumbered 1..N so match_order stays dense across pools.
        """
        visible = self.visible_matches()
        for name, index in (("source", source_index), ("destination", destination_index)):
            if not 0 <= index < len(visible):
                raise EditorValidationError(f"{name} index {index} out of range (0..{len(visible) - 1})")
        if source_index == destination_index:
            return visible

        moved = visible.pop(source_index)
        visible.insert(destination_index, moved)

        visible_ids = {m.id for m in visible}
        refill = iter(visible)
        ordered = [next(refill) if m.id in visible_ids else m for m in self.matches]
        new_orders = {m.id: position for position, m in enumerate(ordered, start=1)}
        known = self._by_id()
        changed = [mid for mid, order in new_orders.items() if known[mid].match_order != order]

        # Re-read right before writing so fields outside the working copy survive
        current = store.get_many(Match, changed)
        missing = [mid for mid in changed if mid not in current]
        if missing:
            raise EditorValidationError(f"Matches {missing} no longer exist; refresh the schedule")
        rows = []
        for mid in changed:
            data = current[mid].model_dump(exclude={"version", "created_at", "updated_at"})
            data["match_order"] = new_orders[mid]
            rows.append(data)
        expected = {mid: current[mid].version for mid in changed}

        saved = store.upsert(Match, rows, expected_versions=expected)
        self._absorb(saved)
        logger.info(
            "Reordered match %d to position %d (%d matches renumbered) in tournament %d",
            moved.id,
            new_orders[moved.id],
            len(changed),
            self.tournament_id,
        )
        return self.visible_matches()

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------

    def undo(self, store: MatchStore) -> BatchUpdate:
        """Restore the field touched by the latest batch on the matches it touched."""
        if not self.undo_stack:
            raise EditorValidationError("Nothing to undo")
        record = self.undo_stack[-1]
        attribute = KIND_ATTRIBUTE[record.kind]

        known = self._by_id()
        restorable = [snap for snap in record.matches if snap.id in known]
        rows = [{"id": snap.id, attribute: getattr(snap, attribute)} for snap in restorable]
        expected = {snap.id: known[snap.id].version for snap in restorable}

        if rows:
            store.upsert(Match, rows, expected_versions=expected)

        self.undo_stack.pop()
        self.refresh(store)
        logger.info(
            "Undid batch %s update on %d matches in tournament %d", record.kind, len(rows), self.tournament_id
        )
        return record


def _snapshot(row: Match, teams: Dict[int, Team], pools: Dict[int, Pool]) -> ScheduledMatch:
    home = teams.get(row.home_team_id)
    away = teams.get(row.away_team_id)
    pool = pools.get(row.pool_id) if row.pool_id is not None else None
    return ScheduledMatch(
        id=row.id,
        match_order=row.match_order,
        pool_id=row.pool_id,
        home_team_id=row.home_team_id,
        away_team_id=row.away_team_id,
        field_number=row.field_number,
        schedule_date=row.schedule_date,
        schedule_time=row.schedule_time,
        status=row.status,
        version=row.version,
        pool_name=pool.pool_name if pool else None,
        home_team_name=home.team_name if home else None,
        away_team_name=away.team_name if away else None,
    )


class EditorSessionRegistry:
    """
    In-process holder of open editor sessions, keyed by token.

    Sessions untouched for ``idle_timeout`` seconds are swept whenever a new
    session is opened. Beyond ``max_sessions`` the least recently used
    session is evicted.
    """

    def __init__(self, idle_timeout: float = 3600, max_sessions: int = 200, clock: Callable[[], float] = monotonic):
        self.idle_timeout = idle_timeout
        self.max_sessions = max_sessions
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, EditorSession] = {}

    def open(self, editor: EditorSession) -> EditorSession:
        with self._lock:
            now = self._clock()
            self._sweep(now)
            while len(self._sessions) >= self.max_sessions:
                oldest = min(self._sessions.values(), key=lambda e: e.last_used)
                del self._sessions[oldest.token]
                logger.info("Evicted editor session %s (tournament %d)", oldest.token, oldest.tournament_id)
            editor.last_used = now
            self._sessions[editor.token] = editor
        return editor

    def get(self, token: str) -> Optional[EditorSession]:
        with self._lock:
            editor = self._sessions.get(token)
            if editor is not None:
                editor.last_used = self._clock()
            return editor

    def close(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def close_tournament(self, tournament_id: int) -> int:
        """Close every session editing the tournament; returns how many were open."""
        with self._lock:
            tokens = [t for t, e in self._sessions.items() if e.tournament_id == tournament_id]
            for token in tokens:
                del self._sessions[token]
        return len(tokens)

    def _sweep(self, now: float) -> None:
        expired = [t for t, e in self._sessions.items() if now - e.last_used > self.idle_timeout]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.info("Expired %d idle editor session(s)", len(expired))

    def __len__(self) -> int:
        return len(self._sessions)
