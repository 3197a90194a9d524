import random

import pytest

from conftest import make_players
from fairmatch.errors import InsufficientPlayers, InvalidConfiguration
from fairmatch.models import MatchConfig, Mode, team_players_needed
from fairmatch.teams.functions import partition_teams, team_skill, toss


def ids(players):
    return [p.id for p in players]


def test_alternating_split_by_skill():
    selected = make_players(("W", 5), ("X", 9), ("Y", 3), ("Z", 7))
    split = partition_teams(selected, 2, False)
    assert ids(split.team_a) == ["X", "W"]
    assert ids(split.team_b) == ["Z", "Y"]
    assert split.double_sider is None


def test_double_sider_is_strongest_and_on_both_teams():
    selected = make_players(("A", 4), ("B", 9), ("C", 8), ("D", 6), ("E", 2))
    split = partition_teams(selected, 2, True)
    assert split.double_sider.id == "B"
    assert ids(split.team_a) == ["C", "A", "B"]
    assert ids(split.team_b) == ["D", "E", "B"]


def test_double_sider_tie_goes_to_first_selected():
    selected = make_players(("A", 7), ("B", 7), ("C", 3), ("D", 3), ("E", 3))
    split = partition_teams(selected, 2, True)
    assert split.double_sider.id == "A"


@pytest.mark.parametrize("team_size", [1, 2, 3, 5])
@pytest.mark.parametrize("double", [False, True])
def test_each_team_gets_team_size_regulars(team_size, double):
    count = team_players_needed(team_size, double)
    selected = make_players(*[(f"P{i}", (i % 10) + 1) for i in range(count)])
    split = partition_teams(selected, team_size, double)
    extra = 1 if double else 0
    assert len(split.team_a) == team_size + extra
    assert len(split.team_b) == team_size + extra
    regulars = set(ids(split.team_a)) | set(ids(split.team_b))
    assert len(regulars) == count


@pytest.mark.parametrize("team_size", [1, 2, 4])
@pytest.mark.parametrize("double", [False, True])
def test_config_and_partitioner_agree_on_player_count(team_size, double):
    cfg = MatchConfig(mode=Mode.TEAMS, team_size=team_size, allow_double_sider=double)
    assert cfg.required_count == team_players_needed(team_size, double)
    assert cfg.required_count == team_size * 2 + (1 if double else 0)


def test_small_pool_is_rejected():
    with pytest.raises(InsufficientPlayers) as exc:
        partition_teams(make_players("A", "B", "C"), 2, False)
    assert exc.value.required == 4
    assert exc.value.available == 3


def test_large_pool_is_rejected():
    with pytest.raises(InvalidConfiguration):
        partition_teams(make_players("A", "B", "C"), 1, False)


def test_split_keeps_skill_close():
    selected = make_players(("A", 10), ("B", 9), ("C", 8), ("D", 7), ("E", 6), ("F", 5))
    split = partition_teams(selected, 3, False)
    assert abs(team_skill(split.team_a) - team_skill(split.team_b)) <= 3


def test_toss_uses_both_sides():
    rng = random.Random(11)
    outcomes = {toss(rng) for _ in range(50)}
    assert outcomes == {"A", "B"}
