from tourney.models.match import Match, MatchStage, MatchStatus
from tourney.models.pool import Pool, PoolStage, PoolTeam
from tourney.models.team import Team
from tourney.models.tournament import Tournament, TournamentType

__all__ = [
    "Tournament",
    "TournamentType",
    "Team",
    "Pool",
    "PoolStage",
    "PoolTeam",
    "Match",
    "MatchStage",
    "MatchStatus",
]
