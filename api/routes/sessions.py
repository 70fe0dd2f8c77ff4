"""Session endpoints - the driver's control surface over HTTP."""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from collections import OrderedDict
from typing import Any, Dict, Optional
import logging
import uuid

from memsim.runtime.driver import ExecutionDriver

logger = logging.getLogger(__name__)

router = APIRouter()


class SessionStore:
    """
    In-memory map of session id to ExecutionDriver.

    Holds at most `max_sessions` drivers; creating one more evicts the
    least recently used session.
    """

    def __init__(self, max_sessions: int = 64):
        self.max_sessions = max_sessions
        self._drivers: "OrderedDict[str, ExecutionDriver]" = OrderedDict()

    def create(self) -> str:
        while len(self._drivers) >= self.max_sessions:
            evicted, driver = self._drivers.popitem(last=False)
            driver.pause()
            logger.info("Evicted idle session %s", evicted)
        session_id = uuid.uuid4().hex
        self._drivers[session_id] = ExecutionDriver()
        return session_id

    def get(self, session_id: str) -> ExecutionDriver:
        driver = self._drivers.get(session_id)
        if driver is None:
            raise HTTPException(status_code=404, detail=f"Unknown session {session_id}")
        self._drivers.move_to_end(session_id)
        return driver

    def delete(self, session_id: str) -> None:
        self.get(session_id).pause()
        del self._drivers[session_id]

    def pause_all(self) -> None:
        for driver in self._drivers.values():
            driver.pause()

    def __len__(self) -> int:
        return len(self._drivers)


store = SessionStore()


class CreateSessionRequest(BaseModel):
    """Request body for creating a session."""
    code: str
    speed_ms: Optional[int] = Field(default=None, ge=100, le=2000)


class CodeRequest(BaseModel):
    """Request body for loading new source code."""
    code: str


class SpeedRequest(BaseModel):
    """Request body for changing the auto-run interval."""
    speed_ms: int = Field(ge=100, le=2000)


class SessionResponse(BaseModel):
    """Response body for a new session."""
    session_id: str
    snapshot: Dict[str, Any]


@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def create_session(request: CreateSessionRequest):
    """Create a session and load its program."""
    session_id = store.create()
    driver = store.get(session_id)
    if request.speed_ms is not None:
        driver.set_speed(request.speed_ms)
    driver.set_code(request.code)
    logger.info("Created session %s", session_id)
    return SessionResponse(session_id=session_id, snapshot=driver.snapshot())


@router.get("/sessions/{session_id}")
async def get_snapshot(session_id: str):
    """Current snapshot of a session."""
    return store.get(session_id).snapshot()


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str):
    """Stop and discard a session."""
    store.delete(session_id)


@router.post("/sessions/{session_id}/code")
async def set_code(session_id: str, request: CodeRequest):
    """Replace the program and start over."""
    driver = store.get(session_id)
    driver.set_code(request.code)
    return driver.snapshot()


@router.post("/sessions/{session_id}/step")
async def step(session_id: str):
    """Execute one statement."""
    driver = store.get(session_id)
    driver.step()
    return driver.snapshot()


@router.post("/sessions/{session_id}/step-back")
async def step_back(session_id: str):
    """Undo the last step."""
    driver = store.get(session_id)
    driver.step_back()
    return driver.snapshot()


@router.post("/sessions/{session_id}/reset")
async def reset(session_id: str):
    """Re-parse the program and clear history, errors and log."""
    driver = store.get(session_id)
    driver.reset()
    return driver.snapshot()


@router.post("/sessions/{session_id}/run")
async def run(session_id: str):
    """Start the timed auto-run loop on the server's event loop."""
    driver = store.get(session_id)
    driver.run()
    return driver.snapshot()


@router.post("/sessions/{session_id}/pause")
async def pause(session_id: str):
    """Stop the auto-run loop."""
    driver = store.get(session_id)
    driver.pause()
    return driver.snapshot()


@router.post("/sessions/{session_id}/speed")
async def set_speed(session_id: str, request: SpeedRequest):
    """Change the auto-run interval; a running loop restarts with it."""
    driver = store.get(session_id)
    driver.set_speed(request.speed_ms)
    return driver.snapshot()
