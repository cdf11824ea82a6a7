from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from planner.config import settings
from planner.catalog.loader import Catalog, load_catalog
from planner.conversation.dialog_manager import DialogueController
from planner.errors import CatalogError, ProfileInvariantError, SessionBusyError, SessionNotFoundError
from planner.llm.phrasing import create_phraser
from planner.obs.context import session_id_var
from planner.obs.logger import log_event
from planner.obs.metrics import get_metrics_snapshot
from planner.obs.middleware import ObservabilityMiddleware
from planner.session.store import SessionStore

load_dotenv()


class TurnIn(BaseModel):
    text: str = Field(..., min_length=1, max_length=4096)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    print("[INFO] Starting trip planner")

    try:
        app.state.catalog = load_catalog(settings.CATALOG_PATH)
    except CatalogError as e:
        # Serve with an empty catalog: every trip ends in the human follow-up path
        log_event("catalog_unavailable", level="ERROR", error=str(e))
        app.state.catalog = Catalog()

    app.state.phraser = create_phraser()
    app.state.controller = DialogueController(app.state.catalog, app.state.phraser)
    app.state.sessions = SessionStore(ttl_seconds=settings.SESSION_TTL_SECONDS)

    yield

    # Shutdown
    print("[INFO] Shutting down trip planner")
    app.state.phraser.close()


api = FastAPI(
    title="Trip Planner",
    version="1.0.0",
    lifespan=lifespan
)


def _session_or_404(request: Request, session_id: str):
    try:
        session = request.app.state.sessions.require(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Unknown or expired session")
    session_id_var.set(session.session_id)
    return session


@api.get("/")
async def root():
    return {
        "service": "Trip Planner",
        "version": "1.0.0",
        "status": "running",
    }


@api.get("/health")
async def health(request: Request):
    catalog = getattr(request.app.state, "catalog", None)
    return {
        "status": "healthy",
        "service": "trip-planner",
        "packages": len(catalog) if catalog is not None else 0,
    }


@api.get("/metrics")
async def metrics(request: Request):
    snapshot = get_metrics_snapshot()
    phraser = getattr(request.app.state, "phraser", None)
    sessions = getattr(request.app.state, "sessions", None)
    snapshot.update({
        "circuit_breaker": phraser.breaker.get_state() if phraser else None,
        "active_sessions": len(sessions) if sessions is not None else 0,
    })
    return snapshot


@api.get("/planner/catalog/destinations")
async def destinations(request: Request):
    return {"destinations": request.app.state.catalog.destination_names}


# Sync handlers run in FastAPI's threadpool; phrasing calls block.
@api.post("/planner/sessions", status_code=201)
def create_session(request: Request):
    session = request.app.state.sessions.create()
    result = request.app.state.controller.start(session)
    return {
        "session_id": session.session_id,
        **result.model_dump(mode="json"),
    }


@api.post("/planner/sessions/{session_id}/turns")
def submit_turn(request: Request, session_id: str, body: TurnIn):
    session = _session_or_404(request, session_id)
    try:
        result = request.app.state.controller.submit_user_turn(session, body.text)
    except SessionBusyError:
        raise HTTPException(status_code=409, detail="Assistant is still composing the previous reply")
    except ProfileInvariantError as e:
        # State can no longer be trusted; drop the session
        request.app.state.sessions.discard(session_id)
        return JSONResponse({"error": "session_aborted", "detail": str(e)}, status_code=500)
    request.app.state.sessions.touch(session_id)
    return result.model_dump(mode="json")


@api.get("/planner/sessions/{session_id}")
def get_session(request: Request, session_id: str):
    return _session_or_404(request, session_id).snapshot()


@api.delete("/planner/sessions/{session_id}")
def discard_session(request: Request, session_id: str):
    if not request.app.state.sessions.discard(session_id):
        raise HTTPException(status_code=404, detail="Unknown or expired session")
    return {"status": "discarded", "session_id": session_id}


@api.post("/admin/circuit/{name}/reset")
async def reset_circuit_breaker(request: Request, name: str):
    """Admin endpoint to manually reset a circuit breaker"""
    breaker = request.app.state.phraser.breaker
    if name == breaker.name:
        breaker.reset()
        return {"status": "reset", "breaker": name}
    raise HTTPException(status_code=404, detail="Unknown circuit breaker")


# Apply middleware
app = ObservabilityMiddleware(api)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=True,
        log_level="info"
    )
