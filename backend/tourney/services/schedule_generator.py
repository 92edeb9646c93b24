"""
Pool Schedule Generator
=======================
Builds the non-playoff match list of a tournament from its pools.

Algorithm:
  1. Pools are read ordered by pool_name; members in stored order.
  2. Within a pool every unordered pair (i, j), i < j, plays once.
     The first-listed team is home.  A pool of n teams yields n*(n-1)/2
     matches; pools of 0 or 1 teams yield nothing.
  3. Pool lists are concatenated in pool order.  One global counter walks
     the configured fields (1, 2, 1, 2, ... for the default pair) and a
     second one assigns match_order 1..N, both ignoring pool boundaries.

Regeneration replaces every non-playoff match of the tournament.  The delete
and the insert run inside one store transaction, so a failed insert leaves
the previous schedule in place.
"""

import logging
from dataclasses import dataclass, field
from itertools import cycle
from typing import List, Sequence, Tuple

from tourney.models import Match, MatchStage, MatchStatus, Pool, PoolTeam
from tourney.services.match_store import MatchStore

logger = logging.getLogger(__name__)


class ScheduleGenerationError(Exception):
    """The tournament cannot be scheduled as it stands."""
    pass


@dataclass
class PoolRoster:
    pool_id: int
    pool_name: str
    team_ids: List[int] = field(default_factory=list)


def round_robin_pairs(team_ids: Sequence[int]) -> List[Tuple[int, int]]:
    """All (home, away) pairs for one pool; earlier-listed team is home."""
    pairs = []
    for i in range(len(team_ids)):
        for j in range(i + 1, len(team_ids)):
            pairs.append((team_ids[i], team_ids[j]))
    return pairs


def build_pool_schedule(tournament_id: int, pools: Sequence[PoolRoster], field_numbers: Sequence[int]) -> List[Match]:
    """Unsaved Match rows for every pool, in play order."""
    if not field_numbers:
        raise ScheduleGenerationError("At least one field number must be configured")

    fields = cycle(field_numbers)
    matches: List[Match] = []
    for pool in pools:
        for home_team_id, away_team_id in round_robin_pairs(pool.team_ids):
            matches.append(
                Match(
                    tournament_id=tournament_id,
                    pool_id=pool.pool_id,
                    home_team_id=home_team_id,
                    away_team_id=away_team_id,
                    field_number=next(fields),
                    match_order=len(matches) + 1,
                    status=MatchStatus.SCHEDULED.value,
                    stage=MatchStage.PRELIMINARY.value,
                    is_playoff=False,
                )
            )
    return matches


def load_pool_rosters(store: MatchStore, tournament_id: int) -> List[PoolRoster]:
    pools = store.select(Pool, Pool.tournament_id == tournament_id, order_by=[Pool.pool_name, Pool.id])
    if not pools:
        return []

    members = store.select(
        PoolTeam,
        PoolTeam.pool_id.in_([pool.id for pool in pools]),
        order_by=[PoolTeam.id],
    )
    rosters = {pool.id: PoolRoster(pool_id=pool.id, pool_name=pool.pool_name) for pool in pools}
    for member in members:
        roster = rosters[member.pool_id]
        if member.team_id not in roster.team_ids:
            roster.team_ids.append(member.team_id)
    return [rosters[pool.id] for pool in pools]


def regenerate_schedule(store: MatchStore, tournament_id: int, field_numbers: Sequence[int]) -> List[Match]:
    """
    Replace the tournament's non-playoff matches with a fresh round robin.

    Raises:
        ScheduleGenerationError: tournament has no pools, or no fields configured
        StoreError: the store rejected the delete or the insert (nothing changed)
    """
    rosters = load_pool_rosters(store, tournament_id)
    if not rosters:
        raise ScheduleGenerationError(f"Tournament {tournament_id} has no pools to schedule")

    matches = build_pool_schedule(tournament_id, rosters, field_numbers)

    with store.transaction():
        removed = store.delete(Match, Match.tournament_id == tournament_id, Match.is_playoff == False)  # noqa: E712
        store.insert(matches)

    for match in matches:
        store.session.refresh(match)

    logger.info(
        "Generated %d matches across %d pools for tournament %d (replaced %d)",
        len(matches),
        len(rosters),
        tournament_id,
        removed,
    )
    return matches
