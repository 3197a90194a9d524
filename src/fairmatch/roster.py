import re
from typing import List, Optional, Sequence, Tuple

from fairmatch.errors import DuplicateName, InvalidConfiguration
from fairmatch.models import DEFAULT_SKILL, Player, check_skill, generate_id

# "Name" or "Name:7"
_ENTRY = re.compile(r"^(?P<name>[^:]+?)\s*(?::\s*(?P<skill>\d+(?:\.\d+)?))?$")


def parse_names(text: str) -> List[Tuple[str, Optional[float]]]:
    """Split a comma or newline separated list into (name, skill) entries."""
    entries = []
    for raw in re.split(r"[,\n]", text):
        raw = raw.strip()
        if not raw:
            continue
        m = _ENTRY.match(raw)
        if not m:
            raise InvalidConfiguration(f"Cannot read player entry {raw!r}")
        skill = m.group("skill")
        entries.append((m.group("name").strip(), float(skill) if skill else None))
    return entries


def build_roster(entries: Sequence[Tuple[str, Optional[float]]]) -> List[Player]:
    players: List[Player] = []
    seen = set()
    for name, skill in entries:
        key = name.lower()
        if key in seen:
            raise DuplicateName(f"Player {name!r} is already on the roster")
        seen.add(key)
        if skill is None:
            skill = DEFAULT_SKILL
        check_skill(skill)
        players.append(Player(id=generate_id(), name=name, skill=skill))
    return players
