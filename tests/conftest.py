import pytest

from fairmatch.models import Player


def make_players(*specs):
    """make_players("A", ("B", 7), ...) -> players with id == name."""
    players = []
    for spec in specs:
        if isinstance(spec, tuple):
            name, skill = spec
        else:
            name, skill = spec, 5
        players.append(Player(id=name, name=name, skill=skill))
    return players


@pytest.fixture
def four_players():
    return make_players("A", "B", "C", "D")
