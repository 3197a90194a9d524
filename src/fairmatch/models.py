from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

from fairmatch.errors import InvalidConfiguration

MIN_SKILL = 1
MAX_SKILL = 10
DEFAULT_SKILL = 5


def generate_id():
    import uuid
    return str(uuid.uuid4())[:8]


class Mode(str, Enum):
    SINGLES = "Singles"
    TEAMS = "Teams"


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    skill: float = DEFAULT_SKILL

    def with_skill(self, skill: float) -> "Player":
        check_skill(skill)
        return replace(self, skill=skill)


def check_skill(skill: float) -> None:
    if not MIN_SKILL <= skill <= MAX_SKILL:
        raise InvalidConfiguration(f"Skill rating must be between {MIN_SKILL} and {MAX_SKILL}, got {skill}")


def team_players_needed(team_size: int, allow_double_sider: bool) -> int:
    regulars = team_size * 2
    return regulars + 1 if allow_double_sider else regulars


@dataclass
class MatchConfig:
    mode: Mode = Mode.TEAMS
    team_size: int = 2
    allow_double_sider: bool = False
    match_count: int = 1
    delegate: bool = False  # ask the external service first

    @property
    def required_count(self) -> int:
        """Smallest roster that can fill one match."""
        if self.mode == Mode.SINGLES:
            return 2
        return team_players_needed(self.team_size, self.allow_double_sider)

    def validate(self) -> None:
        if self.mode == Mode.TEAMS and self.team_size < 1:
            raise InvalidConfiguration("Team size must be at least 1")
        if self.match_count < 1:
            raise InvalidConfiguration("Number of matches must be at least 1")


@dataclass
class Match:
    number: int
    mode: Mode
    participants: List[Player]
    sitting_out: List[Player] = field(default_factory=list)
    # Teams
    team_a: List[Player] = field(default_factory=list)
    team_b: List[Player] = field(default_factory=list)
    double_sider: Optional[Player] = None
    toss_winner: Optional[str] = None  # "A" | "B"
    # Singles
    sequence: List[Player] = field(default_factory=list)
    reasoning: Optional[str] = None

    def to_dict(self) -> dict:
        def ids(players: List[Player]) -> List[dict]:
            return [{"id": p.id, "name": p.name, "skill": p.skill} for p in players]

        data = {
            "number": self.number,
            "mode": self.mode.value,
            "participants": ids(self.participants),
            "sitting_out": ids(self.sitting_out),
        }
        if self.mode == Mode.TEAMS:
            data.update({
                "team_a": ids(self.team_a),
                "team_b": ids(self.team_b),
                "double_sider": ids([self.double_sider])[0] if self.double_sider else None,
                "toss_winner": self.toss_winner,
            })
        else:
            data["sequence"] = ids(self.sequence)
        if self.reasoning:
            data["reasoning"] = self.reasoning
        return data
