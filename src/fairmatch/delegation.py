"""
Delegated team generation through a chat-completion endpoint.

The service is optional and unreliable. Every failure (no key, transport
error, bad status, unparsable or inconsistent reply) comes back as a
``DelegationFailure`` value instead of an exception, so the session can
fall back to the deterministic generator for the whole batch.
"""

import json
import logging
import random
import re
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Sequence, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fairmatch import config as settings
from fairmatch.models import Match, MatchConfig, Mode, Player
from fairmatch.teams.functions import toss

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional sports scheduling assistant. You output ONLY valid JSON, "
    "never markdown or explanations. Your goal is to create the most fair, diverse "
    "and balanced team matchups possible."
)

_FENCE = re.compile(r"```(?:json)?\s*")


@dataclass
class DelegationFailure:
    reason: str


class _ReplyMismatch(ValueError):
    pass


class DelegatedMatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    match_number: int = Field(alias="matchNumber")
    team_a: List[str] = Field(alias="teamA")
    team_b: List[str] = Field(alias="teamB")
    double_sider: Optional[str] = Field(default=None, alias="doubleSider")
    players_out: List[str] = Field(default_factory=list, alias="playersOut")
    toss_winner: Optional[Literal["A", "B"]] = Field(default=None, alias="tossWinner")
    reasoning: str = ""


class DelegatedReply(BaseModel):
    matches: List[DelegatedMatch]


def strip_code_fences(content: str) -> str:
    return _FENCE.sub("", content).strip()


def build_prompt(
    roster: Sequence[Player],
    play_counts: Dict[str, int],
    recent_history: Sequence[Match],
    config: MatchConfig,
    count: int,
) -> str:
    players = [{"id": p.id, "name": p.name, "skillLevel": p.skill} for p in roster]
    counts = [
        {"playerId": p.id, "playerName": p.name, "timesPlayed": play_counts.get(p.id, 0)}
        for p in roster
    ]
    previous = [
        {
            "matchId": m.number,
            "teamA": [p.id for p in m.team_a],
            "teamB": [p.id for p in m.team_b],
            "doubleSider": m.double_sider.id if m.double_sider else None,
        }
        for m in recent_history[-5:]
    ]
    double_sider_line = (
        "ENABLED (one skilled player plays on both teams)" if config.allow_double_sider else "DISABLED"
    )
    double_sider_field = '"doubleSider": "player-id-5",\n      ' if config.allow_double_sider else ""
    team_rule = f"EXACTLY {config.team_size} players" + (
        " each, not counting the double sider" if config.allow_double_sider else ""
    )

    return f"""You are an expert sports match scheduler creating the most fair and diverse team combinations possible.

# CONTEXT
Players: {json.dumps(players, indent=2)}

Current Play Count: {json.dumps(counts, indent=2)}

Previous Matches (last 5): {json.dumps(previous, indent=2)}

# CONFIGURATION
- Mode: {config.mode.value}
- Team Size: {config.team_size} players per team
- Double Sider Mode: {double_sider_line}
- Total Matches to Generate: {count}

# OBJECTIVES (in order of importance)
1. Rotation fairness: players with the lowest play counts play first; keep cumulative counts even.
2. Diversity: never repeat an exact team composition; separate players who were teammates recently.
3. Skill balance: keep the total skill of team A and team B within 0.5 of each other.
4. Double sider (if enabled): the highest skilled player who has not been overused; counts as playing twice.

Players who sit out should be those with the highest play counts.

# OUTPUT FORMAT
Respond with ONLY a JSON object, no markdown and no text outside it:

{{
  "matches": [
    {{
      "matchNumber": 1,
      "teamA": ["player-id-1", "player-id-2"],
      "teamB": ["player-id-3", "player-id-4"],
      {double_sider_field}"playersOut": ["player-id-6"],
      "tossWinner": "A",
      "reasoning": "Brief explanation of why this composition is fair and diverse"
    }}
  ]
}}

# RULES
- Player ids must exactly match the ids above.
- teamA and teamB must each list {team_rule}.
- The double sider (if enabled) is given in "doubleSider" and not repeated in teamA or teamB.
- playersOut lists every player who is not playing.
- tossWinner is "A" or "B".

Generate {count} matches now."""


def parse_reply(
    content: str,
    roster: Sequence[Player],
    config: MatchConfig,
    count: int,
    rng: Optional[random.Random] = None,
) -> Union[List[Match], DelegationFailure]:
    """Validate a raw reply against the roster and turn it into matches."""
    try:
        reply = DelegatedReply.model_validate_json(strip_code_fences(content))
    except ValidationError as exc:
        return DelegationFailure(f"malformed reply ({exc.error_count()} validation errors)")

    if len(reply.matches) != count:
        return DelegationFailure(f"expected {count} matches, got {len(reply.matches)}")

    rng = rng or random.Random()
    by_id = {p.id: p for p in roster}
    matches = []
    try:
        for number, item in enumerate(reply.matches, start=1):
            matches.append(_to_match(item, number, roster, by_id, config, rng))
    except _ReplyMismatch as exc:
        return DelegationFailure(str(exc))
    return matches


def _to_match(
    item: DelegatedMatch,
    number: int,
    roster: Sequence[Player],
    by_id: Dict[str, Player],
    config: MatchConfig,
    rng: random.Random,
) -> Match:
    referenced = item.team_a + item.team_b + item.players_out
    if item.double_sider is not None:
        referenced.append(item.double_sider)
    unknown = [pid for pid in referenced if pid not in by_id]
    if unknown:
        raise _ReplyMismatch(f"match {number}: unknown player ids {unknown}")

    double_sider = None
    if config.allow_double_sider:
        if item.double_sider is None:
            raise _ReplyMismatch(f"match {number}: double sider missing")
        double_sider = by_id[item.double_sider]
    elif item.double_sider is not None:
        raise _ReplyMismatch(f"match {number}: double sider given but not enabled")

    # Some replies repeat the double sider inside both teams
    regular_a = [pid for pid in item.team_a if pid != item.double_sider]
    regular_b = [pid for pid in item.team_b if pid != item.double_sider]
    for label, team in (("A", regular_a), ("B", regular_b)):
        if len(team) != config.team_size or len(set(team)) != len(team):
            raise _ReplyMismatch(f"match {number}: team {label} must have {config.team_size} distinct players")
    if set(regular_a) & set(regular_b):
        raise _ReplyMismatch(f"match {number}: a player is on both teams")

    playing = regular_a + regular_b + ([item.double_sider] if double_sider else [])
    expected_out = {p.id for p in roster} - set(playing)
    if set(item.players_out) != expected_out or len(item.players_out) != len(expected_out):
        raise _ReplyMismatch(f"match {number}: sitting out list does not match the roster")

    team_a = [by_id[pid] for pid in regular_a]
    team_b = [by_id[pid] for pid in regular_b]
    if double_sider is not None:
        team_a.append(double_sider)
        team_b.append(double_sider)

    return Match(
        number=number,
        mode=Mode.TEAMS,
        participants=[by_id[pid] for pid in playing],
        sitting_out=[p for p in roster if p.id in expected_out],
        team_a=team_a,
        team_b=team_b,
        double_sider=double_sider,
        toss_winner=item.toss_winner or toss(rng),
        reasoning=item.reasoning or None,
    )


class MatchService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        url: str = settings.GROQ_API_URL,
        model: str = settings.GROQ_MODEL,
        temperature: float = settings.GROQ_TEMPERATURE,
        max_tokens: int = settings.GROQ_MAX_TOKENS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = settings.GROQ_API_KEY if api_key is None else api_key
        self.url = url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = client

    async def try_generate(
        self,
        roster: Sequence[Player],
        play_counts: Dict[str, int],
        recent_history: Sequence[Match],
        config: MatchConfig,
        count: int,
        rng: Optional[random.Random] = None,
    ) -> Union[List[Match], DelegationFailure]:
        if not self.api_key:
            return DelegationFailure("missing credential")

        prompt = build_prompt(roster, play_counts, recent_history, config, count)
        try:
            content = await self._complete(prompt)
        except httpx.HTTPError as exc:
            return DelegationFailure(f"transport error: {exc!r}")
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            return DelegationFailure(f"unexpected response body: {exc!r}")

        return parse_reply(content, roster, config, count, rng)

    async def _complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        if self.client is not None:
            response = await self.client.post(self.url, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=settings.GROQ_TIMEOUT) as client:
                response = await client.post(self.url, json=payload, headers=headers)

        response.raise_for_status()
        content = response.json()["choices"][0]["message"]["content"]
        if not isinstance(content, str):
            raise TypeError(f"message content is {type(content).__name__}")
        logger.debug(f"Delegated reply: {len(content)} characters")
        return content
