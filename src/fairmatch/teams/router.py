import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Form, HTTPException
from fastapi.responses import PlainTextResponse, RedirectResponse

from fairmatch.export import format_matches
from fairmatch.models import MatchConfig, Mode, generate_id
from fairmatch.roster import build_roster, parse_names
from fairmatch.session import MatchSession
from fairmatch.storage import StoredSession, get_store, get_stored, summarize

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/teams', tags=['Teams'])


@router.post("/create")
async def create_teams(
    player_names: str = Form(...),
    team_size: int = Form(2),
    double_sider: bool = Form(False),
    match_count: int = Form(1),
    delegate: bool = Form(False),
    store: Dict[str, StoredSession] = Depends(get_store),
):
    cfg = MatchConfig(
        mode=Mode.TEAMS,
        team_size=team_size,
        allow_double_sider=double_sider,
        match_count=match_count,
        delegate=delegate,
    )
    try:
        roster = build_roster(parse_names(player_names))
        session = MatchSession(roster, cfg)
        session.check_ready(cfg.match_count)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    sid = generate_id()
    store[sid] = StoredSession(id=sid, session=session)
    logger.info(f"Created teams session {sid} with {len(roster)} players")
    return RedirectResponse(f"/teams/{sid}", status_code=303)


@router.get("/{sid}")
async def teams_view(sid: str, store: Dict[str, StoredSession] = Depends(get_store)):
    return summarize(get_stored(store, sid, Mode.TEAMS))


@router.post("/{sid}/generate")
async def teams_generate(
    sid: str,
    count: Optional[int] = Form(None),
    store: Dict[str, StoredSession] = Depends(get_store),
):
    stored = get_stored(store, sid, Mode.TEAMS)
    try:
        matches = await stored.session.generate_matches(count)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except RuntimeError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    stored.last_batch = matches
    return {
        "matches": [m.to_dict() for m in matches],
        "play_counts": stored.session.play_counts,
    }


@router.get("/{sid}/share", response_class=PlainTextResponse)
async def teams_share(sid: str, store: Dict[str, StoredSession] = Depends(get_store)):
    stored = get_stored(store, sid, Mode.TEAMS)
    return format_matches(stored.last_batch)


@router.post("/{sid}/skill")
async def teams_skill(
    sid: str,
    player_id: str = Form(...),
    skill: float = Form(...),
    store: Dict[str, StoredSession] = Depends(get_store),
):
    stored = get_stored(store, sid, Mode.TEAMS)
    try:
        player = stored.session.update_skill(player_id, skill)
    except KeyError:
        raise HTTPException(status_code=404, detail="Player not found")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except RuntimeError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {"id": player.id, "name": player.name, "skill": player.skill}


@router.post("/{sid}/delete")
async def teams_delete(sid: str, store: Dict[str, StoredSession] = Depends(get_store)):
    store.pop(sid, None)
    return RedirectResponse("/", status_code=303)
