from datetime import date, datetime, time
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tourney.models.tournament import Tournament


class MatchStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MatchStage(str, Enum):
    PRELIMINARY = "PRELIMINARY"
    SUPER_ROUND = "SUPER_ROUND"
    PLAYOFF = "PLAYOFF"
    BRONZE = "BRONZE"
    FINAL = "FINAL"


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    pool_id: Optional[int] = Field(default=None, foreign_key="pool.id")
    home_team_id: int = Field(foreign_key="team.id")
    away_team_id: int = Field(foreign_key="team.id")

    # Dense 1..N over the tournament's non-playoff matches
    match_order: int
    field_number: int
    schedule_date: Optional[date] = Field(default=None)
    schedule_time: Optional[time] = Field(default=None)

    status: str = Field(default=MatchStatus.SCHEDULED.value)
    stage: str = Field(default=MatchStage.PRELIMINARY.value)
    is_playoff: bool = Field(default=False, index=True)
    home_score: int = Field(default=0)
    away_score: int = Field(default=0)

    # Optimistic concurrency token, bumped on every write through MatchStore
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
