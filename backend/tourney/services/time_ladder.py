"""
Time ladder for batch scheduling.

Lays a selection of matches out back to back: each match starts at the
previous match's end plus a fixed interval.  Clock arithmetic is minutes of
day modulo 1440, so a ladder running past midnight wraps to 00:xx without
touching the schedule date.
"""

import re
from dataclasses import dataclass
from typing import List, Sequence

MINUTES_PER_DAY = 24 * 60

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::[0-5]\d)?$")


class TimeLadderError(ValueError):
    pass


def parse_hhmm(value: str) -> int:
    """'HH:MM' (or 'HH:MM:SS') -> minutes of day."""
    match = _HHMM.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise TimeLadderError(f"Invalid time '{value}', expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes_to_time(value: str, minutes: int) -> str:
    return format_hhmm(parse_hhmm(value) + minutes)


@dataclass(frozen=True)
class TimeSettings:
    start_time: str = "08:00"
    duration: int = 90  # minutes
    interval: int = 15  # minutes between one match's end and the next start

    def __post_init__(self):
        object.__setattr__(self, "start_time", format_hhmm(parse_hhmm(self.start_time)))
        if self.duration <= 0:
            raise TimeLadderError(f"duration must be > 0, got {self.duration}")
        if self.interval < 0:
            raise TimeLadderError(f"interval must be >= 0, got {self.interval}")


@dataclass
class TimePreviewRow:
    match_id: int
    start_time: str
    end_time: str


def _ladder(match_ids: Sequence[int], start_time: str, settings: TimeSettings) -> List[TimePreviewRow]:
    rows = []
    current = start_time
    for match_id in match_ids:
        end = add_minutes_to_time(current, settings.duration)
        rows.append(TimePreviewRow(match_id=match_id, start_time=current, end_time=end))
        current = add_minutes_to_time(end, settings.interval)
    return rows


def build_time_preview(match_ids: Sequence[int], settings: TimeSettings) -> List[TimePreviewRow]:
    return _ladder(match_ids, settings.start_time, settings)


def override_start_time(preview: List[TimePreviewRow], index: int, start_time: str, duration: int) -> None:
    """Hand-edit one row; later rows keep their values until recalculated."""
    _check_index(preview, index)
    start = format_hhmm(parse_hhmm(start_time))
    preview[index].start_time = start
    preview[index].end_time = add_minutes_to_time(start, duration)


def recalculate_following(preview: List[TimePreviewRow], index: int, settings: TimeSettings) -> None:
    """Re-run the ladder from row ``index`` using that row's current start."""
    _check_index(preview, index)
    tail = _ladder([row.match_id for row in preview[index:]], preview[index].start_time, settings)
    preview[index:] = tail


def _check_index(preview: List[TimePreviewRow], index: int) -> None:
    if not 0 <= index < len(preview):
        raise TimeLadderError(f"Preview row {index} out of range (0..{len(preview) - 1})")
