import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tourney.database import init_db
from tourney.routes import pools, schedule, schedule_editor, teams, tournaments
from tourney.services.batch_editor import EditorSessionRegistry
from tourney.utils.env import env_int

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Tourney Scheduler API")

# Open batch-editor sessions are kept in process; idle ones are swept on open
app.state.editor_registry = EditorSessionRegistry(
    idle_timeout=env_int("EDITOR_IDLE_MINUTES", 60) * 60,
    max_sessions=env_int("EDITOR_MAX_SESSIONS", 200),
)

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(teams.router, prefix="/api", tags=["teams"])
app.include_router(pools.router, prefix="/api", tags=["pools"])
app.include_router(schedule.router, prefix="/api", tags=["schedule"])
app.include_router(schedule_editor.router, prefix="/api", tags=["schedule-editor"])


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables
    logger.info("Registered %d routes", len(app.routes))


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify the service is up"""
    return {"app_name": "Tourney Scheduler API", "status": "healthy"}
