from dataclasses import dataclass, field
from typing import Dict, List

from fastapi import HTTPException

from fairmatch.models import Match, Mode
from fairmatch.session import MatchSession


@dataclass
class StoredSession:
    id: str
    session: MatchSession
    last_batch: List[Match] = field(default_factory=list)


# In-memory storage, gone on restart
sessions_db: Dict[str, StoredSession] = {}


def get_store() -> Dict[str, StoredSession]:
    return sessions_db


def get_stored(store: Dict[str, StoredSession], sid: str, mode: Mode) -> StoredSession:
    stored = store.get(sid)
    if not stored or stored.session.config.mode != mode:
        raise HTTPException(status_code=404, detail="Session not found")
    return stored


def summarize(stored: StoredSession) -> dict:
    session = stored.session
    cfg = session.config
    counts = session.play_counts
    return {
        "id": stored.id,
        "mode": cfg.mode.value,
        "team_size": cfg.team_size,
        "allow_double_sider": cfg.allow_double_sider,
        "match_count": cfg.match_count,
        "delegate": cfg.delegate,
        "players": [
            {"id": p.id, "name": p.name, "skill": p.skill, "played": counts[p.id]}
            for p in session.roster
        ],
        "history": [m.to_dict() for m in session.history],
    }
