"""
Fairness selection: who plays next.

Players with the fewest games go first. Ties are settled by a pluggable
policy; the default prefers players whose skill sits closest to the roster
average, which keeps the selected group interchangeable.
"""

import random
from typing import Callable, Dict, List, Sequence

from fairmatch.models import Player

# policy(tied_players, roster) -> tied_players in preferred order
TieBreak = Callable[[List[Player], Sequence[Player]], List[Player]]


def mean_skill(roster: Sequence[Player]) -> float:
    if not roster:
        return 0.0
    return sum(p.skill for p in roster) / len(roster)


def closest_to_mean(tied: List[Player], roster: Sequence[Player]) -> List[Player]:
    avg = mean_skill(roster)
    return sorted(tied, key=lambda p: abs(p.skill - avg))


def random_tiebreak(rng: random.Random) -> TieBreak:
    def policy(tied: List[Player], roster: Sequence[Player]) -> List[Player]:
        shuffled = list(tied)
        rng.shuffle(shuffled)
        return shuffled
    return policy


def select_players(
    roster: Sequence[Player],
    play_counts: Dict[str, int],
    required_count: int,
    tiebreak: TieBreak = closest_to_mean,
) -> List[Player]:
    """Order the whole roster by fairness and take the first ``required_count``."""
    by_count: Dict[int, List[Player]] = {}
    for player in roster:
        by_count.setdefault(play_counts.get(player.id, 0), []).append(player)

    ordered: List[Player] = []
    for count in sorted(by_count):
        ordered.extend(tiebreak(by_count[count], roster))

    return ordered[:min(required_count, len(ordered))]
