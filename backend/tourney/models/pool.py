from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tourney.models.team import Team
    from tourney.models.tournament import Tournament


class PoolStage(str, Enum):
    PRELIMINARY = "PRELIMINARY"
    SUPER_ROUND = "SUPER_ROUND"


class Pool(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "pool_name", name="uq_tournament_pool_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    pool_name: str
    stage: str = Field(default=PoolStage.PRELIMINARY.value)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="pools")
    members: List["PoolTeam"] = Relationship(back_populates="pool")


class PoolTeam(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("pool_id", "team_id", name="uq_pool_team"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    pool_id: int = Field(foreign_key="pool.id", index=True)
    team_id: int = Field(foreign_key="team.id", index=True)

    # Standings (maintained by scoring, not by scheduling)
    wins: int = Field(default=0)
    losses: int = Field(default=0)
    runs_for: int = Field(default=0)
    runs_against: int = Field(default=0)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    pool: "Pool" = Relationship(back_populates="members")
    team: "Team" = Relationship(back_populates="pool_memberships")
