"""
Fortress Game API Server
========================

HTTP surface over the session orchestrator.

Endpoints:
- POST   /api/v1/sessions                         -> open a session
- DELETE /api/v1/sessions/{id}                    -> close a session
- POST   /api/v1/sessions/{id}/commands           -> dispatch a command
- POST   /api/v1/sessions/{id}/external-events    -> collaborator events
- GET    /api/v1/sessions/{id}/events             -> event log (since=N)
- GET    /api/v1/sessions/{id}/state              -> projected game state
- GET    /api/v1/sessions/{id}/views/{view}       -> reputation | quest-summary | battle | narrative
- GET    /api/v1/sessions/{id}/diagnostics        -> recent errors
- POST   /api/v1/sessions/{id}/saves              -> save game
- GET    /api/v1/saves                            -> list saves
- POST   /api/v1/saves/{name}/load                -> load save into a new session
- DELETE /api/v1/saves/{name}                     -> delete save

Typed failures map to 400 (validation), 404 (not found), 409 (structural),
422 (unknown command or event type).

Usage:
    uvicorn fortress.api.server:app --reload
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import GameConfig, configure_logging
from ..contracts.base import GameError
from ..engine import GameEngine
from .mapper import map_error, map_save_preview, map_state_to_dto, status_for

logger = logging.getLogger(__name__)

VIEWS = ("reputation", "quest-summary", "battle", "narrative")


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CreateSessionRequest(BaseModel):
    session_id: Optional[str] = None


class CommandRequest(BaseModel):
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)


class ExternalEventsRequest(BaseModel):
    events: List[Dict[str, Any]]


class SaveRequest(BaseModel):
    save_name: str


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(engine: Optional[GameEngine] = None) -> FastAPI:
    """
    Build the API. Without an explicit engine one is created on startup
    from FORTRESS_* environment settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "engine", None) is None:
            config = GameConfig.from_env()
            configure_logging(config.log_level)
            logger.info("initializing game engine (storage backend: %s)", config.storage_backend)
            app.state.engine = GameEngine(config)
        yield
        logger.info("shutting down game engine")

    app = FastAPI(
        title="Fortress Game API",
        version="0.1.0",
        description="Event-sourced narrative strategy game sessions",
        lifespan=lifespan
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError):
        return JSONResponse(status_code=status_for(exc), content=map_error(exc))

    def current_engine() -> GameEngine:
        if app.state.engine is None:
            raise HTTPException(status_code=503, detail="Engine not initialized")
        return app.state.engine

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    @app.get("/health")
    async def health_check():
        engine = current_engine()
        return {"status": "online", "sessions": len(engine.session_ids())}

    @app.post("/api/v1/sessions", status_code=201)
    def create_session(request: Optional[CreateSessionRequest] = None):
        session_id = current_engine().create_session(request.session_id if request else None)
        return {"sessionId": session_id}

    @app.delete("/api/v1/sessions/{session_id}")
    def close_session(session_id: str):
        current_engine().close_session(session_id)
        return {"sessionId": session_id, "closed": True}

    @app.post("/api/v1/sessions/{session_id}/commands")
    def dispatch_command(session_id: str, request: CommandRequest):
        result = current_engine().dispatch(session_id, {"type": request.type, "data": request.data})
        return result.to_dict()

    @app.post("/api/v1/sessions/{session_id}/external-events")
    def submit_external(session_id: str, request: ExternalEventsRequest):
        return current_engine().submit_external(session_id, request.events).to_dict()

    @app.get("/api/v1/sessions/{session_id}/events")
    def get_events(session_id: str, since: int = 0):
        events = current_engine().events(session_id, since=max(0, since))
        return {"sessionId": session_id, "since": since, "events": [e.to_wire() for e in events]}

    @app.get("/api/v1/sessions/{session_id}/state")
    def get_state(session_id: str):
        return map_state_to_dto(current_engine().game_state(session_id))

    @app.get("/api/v1/sessions/{session_id}/views/{view}")
    def get_view(session_id: str, view: str):
        engine = current_engine()
        if view == "reputation":
            return engine.reputation_view(session_id).to_dict()
        if view == "quest-summary":
            return engine.quest_summary_view(session_id).to_dict()
        if view == "battle":
            return engine.battle_view(session_id).to_dict()
        if view == "narrative":
            return engine.narrative_view(session_id).to_dict()
        raise HTTPException(status_code=404, detail=f"Unknown view '{view}', expected one of {', '.join(VIEWS)}")

    @app.get("/api/v1/sessions/{session_id}/diagnostics")
    def get_diagnostics(session_id: str):
        session = current_engine().get_session(session_id)
        return {
            "sessionId": session_id,
            "errors": [e.to_dict() for e in session.diagnostics.error_history()],
        }

    @app.post("/api/v1/sessions/{session_id}/saves", status_code=201)
    def save_game(session_id: str, request: SaveRequest):
        return map_save_preview(current_engine().save_game(session_id, request.save_name))

    @app.get("/api/v1/saves")
    def list_saves():
        return {"saves": [map_save_preview(p) for p in current_engine().list_saves()]}

    @app.post("/api/v1/saves/{save_name}/load", status_code=201)
    def load_save(save_name: str):
        return {"sessionId": current_engine().load_game(save_name)}

    @app.delete("/api/v1/saves/{save_name}")
    def delete_save(save_name: str):
        if not current_engine().delete_save(save_name):
            raise HTTPException(status_code=404, detail=f"Save not found: {save_name}")
        return {"saveName": save_name, "deleted": True}

    return app


app = create_app()
