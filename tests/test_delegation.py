"""
Delegated generation: request shape, reply validation and fallback to the
deterministic generator.
"""
import asyncio
import json
import random

import httpx
import pytest

from conftest import make_players
from fairmatch.delegation import (
    DelegationFailure,
    MatchService,
    build_prompt,
    parse_reply,
    strip_code_fences,
)
from fairmatch.models import MatchConfig, Mode
from fairmatch.session import DelegatingProducer, MatchSession


def completion(content, status=200):
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    return httpx.Response(status, json=body)


def reply(*matches):
    return json.dumps({"matches": list(matches)})


def run_session(roster, cfg, handler, count, seed=4):
    """Build a delegating session around a fake transport and generate a batch."""
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            service = MatchService(api_key="test-key", client=client)
            session = MatchSession(roster, cfg, producer=DelegatingProducer(service), rng=random.Random(seed))
            matches = await session.generate_matches(count)
            return session, matches
    return asyncio.run(go())


def deterministic(roster, cfg, count, seed=4):
    session = MatchSession(roster, cfg, rng=random.Random(seed))
    matches = asyncio.run(session.generate_matches(count))
    return session, matches


def shape(matches):
    return [
        ([p.id for p in m.team_a], [p.id for p in m.team_b], [p.id for p in m.sitting_out], m.toss_winner)
        for m in matches
    ]


@pytest.fixture
def roster():
    return make_players(("A", 8), ("B", 6), ("C", 5), ("D", 4), ("E", 3))


@pytest.fixture
def cfg():
    return MatchConfig(mode=Mode.TEAMS, team_size=2)


# ---------------- success ---------------- #

def test_delegated_reply_is_used(roster, cfg):
    requests = []

    def handler(request):
        requests.append(request)
        content = "```json\n" + reply({
            "matchNumber": 1,
            "teamA": ["A", "D"],
            "teamB": ["B", "C"],
            "playersOut": ["E"],
            "tossWinner": "B",
            "reasoning": "E sits out, skill totals 12 vs 11",
        }) + "\n```"
        return completion(content)

    session, [match] = run_session(roster, cfg, handler, 1)

    assert [p.id for p in match.team_a] == ["A", "D"]
    assert [p.id for p in match.team_b] == ["B", "C"]
    assert [p.id for p in match.sitting_out] == ["E"]
    assert match.toss_winner == "B"
    assert match.reasoning.startswith("E sits out")
    assert session.play_counts == {"A": 1, "B": 1, "C": 1, "D": 1, "E": 0}
    assert len(session.history) == 1

    [request] = requests
    assert request.headers["Authorization"] == "Bearer test-key"
    body = json.loads(request.content)
    assert body["response_format"] == {"type": "json_object"}
    assert body["temperature"] == 0.8
    assert body["messages"][0]["role"] == "system"
    assert '"id": "E"' in body["messages"][1]["content"]


def test_delegated_double_sider_counts_twice(roster):
    cfg = MatchConfig(mode=Mode.TEAMS, team_size=2, allow_double_sider=True)

    def handler(request):
        return completion(reply({
            "matchNumber": 1,
            "teamA": ["B", "E", "A"],
            "teamB": ["C", "D", "A"],
            "doubleSider": "A",
            "playersOut": [],
            "tossWinner": "A",
            "reasoning": "",
        }))

    session, [match] = run_session(roster, cfg, handler, 1)
    assert match.double_sider.id == "A"
    assert [p.id for p in match.team_a] == ["B", "E", "A"]
    assert [p.id for p in match.team_b] == ["C", "D", "A"]
    assert match.reasoning is None
    assert session.play_counts == {"A": 2, "B": 1, "C": 1, "D": 1, "E": 1}


def test_singles_never_calls_the_service(roster):
    def handler(request):
        raise AssertionError("no request expected")

    cfg = MatchConfig(mode=Mode.SINGLES)
    session, matches = run_session(roster, cfg, handler, 2)
    assert [p.id for p in matches[1].sequence] == ["B", "C", "D", "E", "A"]


# ---------------- fallback ---------------- #

def test_transport_failure_falls_back_to_deterministic(roster, cfg):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    session, matches = run_session(roster, cfg, handler, 6)
    expected_session, expected = deterministic(roster, cfg, 6)

    assert len(matches) == 6
    assert shape(matches) == shape(expected)
    assert session.play_counts == expected_session.play_counts


def test_one_bad_match_falls_back_for_the_whole_batch(roster, cfg):
    def handler(request):
        return completion(reply(
            {"matchNumber": 1, "teamA": ["A", "D"], "teamB": ["B", "C"], "playersOut": ["E"], "tossWinner": "A"},
            {"matchNumber": 2, "teamA": ["A", "Z"], "teamB": ["B", "C"], "playersOut": ["D", "E"], "tossWinner": "B"},
        ))

    session, matches = run_session(roster, cfg, handler, 2)
    expected_session, expected = deterministic(roster, cfg, 2)

    assert shape(matches) == shape(expected)
    assert session.play_counts == expected_session.play_counts
    assert len(session.history) == 2
    assert all(m.reasoning is None for m in session.history)


@pytest.mark.parametrize("make_response", [
    lambda: completion("", status=500),
    lambda: completion("not json at all"),
    lambda: httpx.Response(200, json={"unexpected": True}),
    lambda: completion(reply({"matchNumber": 1, "teamA": ["A", "Z"], "teamB": ["B", "C"], "playersOut": ["D", "E"]})),
    lambda: completion(reply()),
])
def test_bad_replies_fall_back(roster, cfg, make_response):
    def handler(request):
        return make_response()

    session, matches = run_session(roster, cfg, handler, 1)
    _, expected = deterministic(roster, cfg, 1)
    assert shape(matches) == shape(expected)
    assert sum(session.play_counts.values()) == 4


def test_missing_credential_skips_the_call(roster, cfg):
    def handler(request):
        raise AssertionError("no request expected")

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            service = MatchService(api_key="", client=client)
            return await service.try_generate(roster, {}, [], cfg, 1)

    result = asyncio.run(go())
    assert isinstance(result, DelegationFailure)
    assert "credential" in result.reason


# ---------------- reply validation ---------------- #

def good_match(**overrides):
    item = {
        "matchNumber": 1,
        "teamA": ["A", "D"],
        "teamB": ["B", "C"],
        "playersOut": ["E"],
        "tossWinner": "A",
        "reasoning": "ok",
    }
    item.update(overrides)
    return item


def test_parse_reply_accepts_valid_reply(roster, cfg):
    result = parse_reply(reply(good_match()), roster, cfg, 1)
    assert not isinstance(result, DelegationFailure)
    assert [p.id for p in result[0].participants] == ["A", "D", "B", "C"]


def test_parse_reply_draws_missing_toss(roster, cfg):
    item = good_match()
    del item["tossWinner"]
    [match] = parse_reply(reply(item), roster, cfg, 1, random.Random(0))
    assert match.toss_winner in {"A", "B"}


@pytest.mark.parametrize("overrides,reason", [
    ({"teamA": ["A", "Q"]}, "unknown player"),
    ({"teamA": ["A"]}, "team A"),
    ({"teamB": ["B", "A"]}, "both teams"),
    ({"playersOut": []}, "sitting out"),
    ({"doubleSider": "E", "playersOut": []}, "not enabled"),
])
def test_parse_reply_rejects_inconsistent_matches(roster, cfg, overrides, reason):
    result = parse_reply(reply(good_match(**overrides)), roster, cfg, 1)
    assert isinstance(result, DelegationFailure)
    assert reason in result.reason


def test_parse_reply_rejects_bad_toss(roster, cfg):
    result = parse_reply(reply(good_match(tossWinner="C")), roster, cfg, 1)
    assert isinstance(result, DelegationFailure)


def test_parse_reply_requires_double_sider_when_enabled(roster):
    cfg = MatchConfig(mode=Mode.TEAMS, team_size=2, allow_double_sider=True)
    result = parse_reply(reply(good_match(playersOut=[])), roster, cfg, 1)
    assert isinstance(result, DelegationFailure)
    assert "double sider missing" in result.reason


def test_parse_reply_rejects_wrong_batch_size(roster, cfg):
    result = parse_reply(reply(good_match(), good_match(matchNumber=2)), roster, cfg, 1)
    assert isinstance(result, DelegationFailure)
    assert "expected 1" in result.reason


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_prompt_mentions_config_and_history(roster):
    cfg = MatchConfig(mode=Mode.TEAMS, team_size=2, allow_double_sider=True)
    _, history = deterministic(roster, cfg, 7)
    prompt = build_prompt(roster, {"A": 3}, history, cfg, 4)

    assert "Team Size: 2 players per team" in prompt
    assert "ENABLED" in prompt
    assert '"doubleSider": "player-id-5"' in prompt
    assert "Generate 4 matches now." in prompt
    assert prompt.count('"matchId"') == 5
    assert '"timesPlayed": 3' in prompt
