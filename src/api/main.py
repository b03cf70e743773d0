from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from Pool.supervisor import Supervisor
from Utils.messages import FoundRecord


# =========================
# Response models
# =========================
class StatusResponse(BaseModel):
    running: bool
    reason: Optional[str] = None
    workers_alive: int
    workers: int
    current_delay: float
    tried_total: int
    tried_appended: int
    duplicates: int
    probe_failures: int
    worker_crashes: int
    found: int
    next_sequence: int


class WorkerStats(BaseModel):
    worker: int
    probed: int
    skipped: int
    failures: int
    positives: int
    restarts: int
    avg_latency: float


def create_app(supervisor: Supervisor) -> FastAPI:
    """Read-only view of a running pool plus a stop switch."""
    app = FastAPI(title="Probe Pool Status API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/", include_in_schema=False)
    def root():
        return RedirectResponse(url="/docs")

    @app.get("/api/status", response_model=StatusResponse)
    def status():
        return supervisor.status()

    @app.get("/api/workers", response_model=List[WorkerStats])
    def workers():
        return supervisor.ctx.metrics.snapshot()

    @app.get("/api/found", response_model=List[FoundRecord])
    def found():
        return supervisor.ctx.store.found_records()

    @app.post("/api/stop")
    def stop():
        if not supervisor.running:
            raise HTTPException(status_code=409, detail="Pool is not running")
        supervisor.stop()
        return {"status": "stopping"}

    return app
