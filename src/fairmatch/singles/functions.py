from typing import List, Sequence

from fairmatch.models import Player


def rotate(roster: Sequence[Player], offset: int) -> List[Player]:
    """Cyclic left rotation of the play order."""
    if not roster:
        return []
    shift = offset % len(roster)
    return list(roster[shift:]) + list(roster[:shift])
