import logging

from fastapi import FastAPI

from fairmatch import config
from fairmatch.singles.router import router as singles_router
from fairmatch.storage import sessions_db
from fairmatch.teams.router import router as teams_router

logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

app = FastAPI(title="FairMatch")
app.include_router(teams_router)
app.include_router(singles_router)


@app.get("/")
async def index():
    return {
        "sessions": [
            {"id": sid, "mode": s.session.config.mode.value, "players": len(s.session.roster)}
            for sid, s in sessions_db.items()
        ]
    }
