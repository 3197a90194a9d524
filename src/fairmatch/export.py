from pathlib import Path
from typing import Iterable, List

from jinja2 import Environment, FileSystemLoader

from fairmatch.models import Match, Player

TEMPLATES_DIR = Path(__file__).parent / "templates"


def _names(players: Iterable[Player]) -> str:
    return ", ".join(p.name for p in players)


env = Environment(loader=FileSystemLoader(str(TEMPLATES_DIR)), autoescape=False)
env.filters["names"] = _names


def format_match(match: Match) -> str:
    return env.get_template("match.txt").render(match=match).strip()


def format_matches(matches: List[Match]) -> str:
    """Plain-text summary for copying or sharing, one paragraph per match."""
    return "\n\n".join(format_match(m) for m in matches)
