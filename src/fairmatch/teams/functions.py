import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from fairmatch.errors import InsufficientPlayers, InvalidConfiguration
from fairmatch.models import Player, team_players_needed


@dataclass
class TeamSplit:
    team_a: List[Player] = field(default_factory=list)
    team_b: List[Player] = field(default_factory=list)
    double_sider: Optional[Player] = None


def partition_teams(selected: Sequence[Player], team_size: int, allow_double_sider: bool) -> TeamSplit:
    """
    Split the selected players into two teams of ``team_size``.
    Strongest first, alternating sides so skill totals stay close.
    With a double sider, the strongest player is taken out first and
    then added to both teams.
    """
    required = team_players_needed(team_size, allow_double_sider)
    if len(selected) < required:
        detail = f" for teams of {team_size}" + (" with double sider" if allow_double_sider else "")
        raise InsufficientPlayers(required, len(selected), detail)
    if len(selected) > required:
        raise InvalidConfiguration(f"Expected exactly {required} selected players, got {len(selected)}")

    pool = list(selected)
    double_sider = None
    if allow_double_sider:
        # max() keeps the first of equal ratings, i.e. selection order
        double_sider = max(pool, key=lambda p: p.skill)
        pool.remove(double_sider)

    # sorted() is stable, equal skill keeps selection order
    ordered = sorted(pool, key=lambda p: -p.skill)

    split = TeamSplit(double_sider=double_sider)
    for index, player in enumerate(ordered):
        if index % 2 == 0:
            if len(split.team_a) < team_size:
                split.team_a.append(player)
            else:
                split.team_b.append(player)
        else:
            if len(split.team_b) < team_size:
                split.team_b.append(player)
            else:
                split.team_a.append(player)

    if double_sider is not None:
        split.team_a.append(double_sider)
        split.team_b.append(double_sider)
    return split


def toss(rng: random.Random) -> str:
    return "A" if rng.random() < 0.5 else "B"


def team_skill(team: Sequence[Player]) -> float:
    return sum(p.skill for p in team)
