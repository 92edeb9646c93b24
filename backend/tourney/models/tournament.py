from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tourney.models.match import Match
    from tourney.models.pool import Pool


class TournamentType(str, Enum):
    LEAGUE = "LEAGUE"
    SINGLE_ELIMINATION = "SINGLE_ELIMINATION"
    DOUBLE_ELIMINATION = "DOUBLE_ELIMINATION"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    tournament_type: str = Field(default=TournamentType.LEAGUE.value)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    number_of_groups: Optional[int] = None
    teams_per_group: Optional[int] = None
    has_playoff: bool = Field(default=False)
    teams_to_playoff: Optional[int] = None
    # None means "use FIELD_NUMBERS from the environment"
    field_numbers: Optional[List[int]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    pools: List["Pool"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")
