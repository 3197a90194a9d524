"""
Match session: owns play counts and recent history for one roster and
configuration, and hands out batches of matches.

    session = MatchSession(players, MatchConfig(mode=Mode.TEAMS, team_size=2))
    matches = await session.generate_matches(3)

Which code actually builds the batch is up to the producer. The
deterministic producer follows the fairness rules directly; the delegating
producer asks the external service first and falls back to the
deterministic one for the whole batch when the reply is unusable.
"""

import logging
import random
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Sequence

from fairmatch import config as settings
from fairmatch.delegation import DelegationFailure, MatchService
from fairmatch.errors import InsufficientPlayers, InvalidConfiguration
from fairmatch.models import Match, MatchConfig, Mode, Player, check_skill
from fairmatch.selection import TieBreak, closest_to_mean, select_players
from fairmatch.singles.functions import rotate
from fairmatch.teams.functions import partition_teams, team_skill, toss

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    play_counts: Dict[str, int]
    history: Deque[Match] = field(default_factory=deque)
    rotation_offset: int = 0


class DeterministicProducer:
    async def produce(self, session: "MatchSession", count: int) -> List[Match]:
        return session.produce_deterministic(count)


class DelegatingProducer:
    """Try the external service for Teams batches, fall back on any failure."""

    def __init__(self, service: MatchService):
        self.service = service

    async def produce(self, session: "MatchSession", count: int) -> List[Match]:
        if session.config.mode != Mode.TEAMS:
            return session.produce_deterministic(count)

        result = await self.service.try_generate(
            session.roster,
            session.play_counts,
            session.recent_history(),
            session.config,
            count,
            rng=session.rng,
        )
        if isinstance(result, DelegationFailure):
            logger.warning(f"Delegated generation failed ({result.reason}), using deterministic fallback")
            return session.produce_deterministic(count)

        for match in result:
            session.record(match)
        logger.info(f"Delegated generation produced {len(result)} matches")
        return result


class MatchSession:
    def __init__(
        self,
        roster: Sequence[Player],
        config: MatchConfig,
        producer=None,
        rng: Optional[random.Random] = None,
        tiebreak: TieBreak = closest_to_mean,
        history_size: int = settings.HISTORY_SIZE,
    ):
        config.validate()
        _check_roster(roster)

        self.roster: List[Player] = list(roster)
        self.config = config
        self.rng = rng or random.Random()
        self.tiebreak = tiebreak
        if producer is None:
            producer = DelegatingProducer(MatchService()) if config.delegate else DeterministicProducer()
        self.producer = producer

        self._state = SessionState(
            play_counts={p.id: 0 for p in self.roster},
            history=deque(maxlen=max(5, history_size)),
        )
        self._generating = False

    # ---------------- read-only views ---------------- #
    @property
    def play_counts(self) -> Dict[str, int]:
        return dict(self._state.play_counts)

    @property
    def history(self) -> List[Match]:
        return list(self._state.history)

    @property
    def rotation_offset(self) -> int:
        return self._state.rotation_offset

    def recent_history(self, limit: int = 5) -> List[Match]:
        if limit <= 0:
            return []
        return list(self._state.history)[-limit:]

    # ---------------- roster updates ---------------- #
    def update_skill(self, player_id: str, skill: float) -> Player:
        if self._generating:
            raise RuntimeError("Cannot update skills while generating matches")
        check_skill(skill)
        for index, player in enumerate(self.roster):
            if player.id == player_id:
                self.roster[index] = player.with_skill(skill)
                return self.roster[index]
        raise KeyError(player_id)

    # ---------------- generation ---------------- #
    def check_ready(self, count: int) -> None:
        """Raise before anything is touched if a batch of ``count`` cannot be built."""
        if count < 1:
            raise InvalidConfiguration("Number of matches must be at least 1")
        required = self.config.required_count
        if len(self.roster) < required:
            detail = ""
            if self.config.mode == Mode.TEAMS:
                detail = f" for teams of {self.config.team_size}"
                if self.config.allow_double_sider:
                    detail += " with double sider"
            raise InsufficientPlayers(required, len(self.roster), detail)

    async def generate_matches(self, count: Optional[int] = None) -> List[Match]:
        if count is None:
            count = self.config.match_count
        if self._generating:
            raise RuntimeError("Match generation already in progress for this session")
        self.check_ready(count)

        self._generating = True
        try:
            matches = await self.producer.produce(self, count)
        finally:
            self._generating = False

        logger.info(f"Generated {len(matches)} {self.config.mode.value} matches for {len(self.roster)} players")
        return matches

    def produce_deterministic(self, count: int) -> List[Match]:
        matches: List[Match] = []
        for number in range(1, count + 1):
            if self.config.mode == Mode.SINGLES:
                match = self.build_singles_match(number)
            else:
                match = self.build_teams_match(number)
            self.record(match)
            matches.append(match)
        return matches

    def build_singles_match(self, number: int) -> Match:
        order = rotate(self.roster, self._state.rotation_offset)
        return Match(
            number=number,
            mode=Mode.SINGLES,
            participants=order,
            sequence=list(order),
        )

    def build_teams_match(self, number: int) -> Match:
        cfg = self.config
        selected = select_players(self.roster, self._state.play_counts, cfg.required_count, self.tiebreak)
        split = partition_teams(selected, cfg.team_size, cfg.allow_double_sider)
        logger.debug(f"Match {number}: team skill {team_skill(split.team_a)} vs {team_skill(split.team_b)}")

        chosen = {p.id for p in selected}
        sitting_out = [p for p in self.roster if p.id not in chosen]
        return Match(
            number=number,
            mode=Mode.TEAMS,
            participants=selected,
            sitting_out=sitting_out,
            team_a=split.team_a,
            team_b=split.team_b,
            double_sider=split.double_sider,
            toss_winner=toss(self.rng),
        )

    def record(self, match: Match) -> None:
        """Apply one finished match to play counts and history."""
        counts = self._state.play_counts
        for player in match.participants:
            increment = 2 if match.double_sider is not None and player.id == match.double_sider.id else 1
            counts[player.id] = counts.get(player.id, 0) + increment
        self._state.history.append(match)
        if match.mode == Mode.SINGLES and self.roster:
            self._state.rotation_offset = (self._state.rotation_offset + 1) % len(self.roster)


def _check_roster(roster: Sequence[Player]) -> None:
    seen = set()
    for player in roster:
        if not player.id:
            raise InvalidConfiguration(f"Player {player.name!r} has no id")
        if player.id in seen:
            raise InvalidConfiguration(f"Duplicate player id {player.id!r}")
        seen.add(player.id)
        check_skill(player.skill)
