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

router = APIRouter(prefix='/singles', tags=['Singles'])


@router.post("/create")
async def create_singles(
    player_names: str = Form(...),
    match_count: int = Form(1),
    store: Dict[str, StoredSession] = Depends(get_store),
):
    cfg = MatchConfig(mode=Mode.SINGLES, match_count=match_count)
    try:
        roster = build_roster(parse_names(player_names))
        session = MatchSession(roster, cfg)
        session.check_ready(cfg.match_count)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    sid = generate_id()
    store[sid] = StoredSession(id=sid, session=session)
    logger.info(f"Created singles session {sid} with {len(roster)} players")
    return RedirectResponse(f"/singles/{sid}", status_code=303)


@router.get("/{sid}")
async def singles_view(sid: str, store: Dict[str, StoredSession] = Depends(get_store)):
    stored = get_stored(store, sid, Mode.SINGLES)
    summary = summarize(stored)
    summary["rotation_offset"] = stored.session.rotation_offset
    return summary


@router.post("/{sid}/generate")
async def singles_generate(
    sid: str,
    count: Optional[int] = Form(None),
    store: Dict[str, StoredSession] = Depends(get_store),
):
    stored = get_stored(store, sid, Mode.SINGLES)
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
async def singles_share(sid: str, store: Dict[str, StoredSession] = Depends(get_store)):
    stored = get_stored(store, sid, Mode.SINGLES)
    return format_matches(stored.last_batch)


@router.post("/{sid}/delete")
async def singles_delete(sid: str, store: Dict[str, StoredSession] = Depends(get_store)):
    store.pop(sid, None)
    return RedirectResponse("/", status_code=303)
