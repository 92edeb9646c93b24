from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tourney.models.pool import PoolTeam


class Team(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    team_name: str = Field(unique=True, index=True)
    manager_name: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    pool_memberships: List["PoolTeam"] = Relationship(back_populates="team")
