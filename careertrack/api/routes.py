"""
FastAPI Routes for CareerTrack

REST and WebSocket surface the presentation layer reads from: the job
list with per-job analysis status, aggregate stats, view state, and the
mutators that drive the backend.

Run with: uvicorn careertrack.api.routes:app --reload
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Dict, Any, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from careertrack import __version__
from careertrack.core.config import get_settings
from careertrack.core.errors import ErrorKind, ErrorReport
from careertrack.core.schemas import (
    JobDraft, JobRecord, JobStats, ApplicationTab, AnalysisRequestState
)
from careertrack.services.workspace import CareerWorkspace, create_workspace

logger = logging.getLogger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================

class SelectionRequest(BaseModel):
    """Open a job in the analysis modal."""
    job_id: str = Field(alias="jobId")

    class Config:
        populate_by_name = True


class TabRequest(BaseModel):
    """Switch the active tab."""
    tab: ApplicationTab


class ResumeRequest(BaseModel):
    """Resume text to analyze."""
    resume_text: str = Field(alias="resumeText")

    class Config:
        populate_by_name = True


# ============================================================================
# Helpers
# ============================================================================

def get_workspace(request: Request) -> CareerWorkspace:
    return request.app.state.workspace


def _job_view(workspace: CareerWorkspace, job: JobRecord) -> Dict[str, Any]:
    data = job.model_dump(mode="json", by_alias=True)
    data["analysisStatus"] = workspace.orchestrator.status_of(job.id).value
    data["collapsed"] = workspace.ui.is_collapsed(job.id)
    return data


def _stats_view(stats: JobStats) -> Dict[str, Any]:
    return {
        "total": stats.total,
        "byStatus": {status.value: count for status, count in stats.by_status.items()},
    }


def _raise_for(error: Optional[ErrorReport], default: str = "Request failed"):
    """Turn a controller error slot into an HTTP error."""
    if error is None:
        raise HTTPException(status_code=500, detail=default)
    if error.kind == ErrorKind.VALIDATION:
        status_code = 404 if error.field == "id" else 400
    else:
        status_code = 502
    raise HTTPException(status_code=status_code, detail=error.model_dump(mode="json"))


# ============================================================================
# WebSocket Connections
# ============================================================================

class ConnectionManager:
    """Manages WebSocket connections and pushes analysis updates."""

    def __init__(self):
        self.active_connections: Dict[int, WebSocket] = {}
        self._broadcasts: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> int:
        await websocket.accept()
        key = id(websocket)
        self.active_connections[key] = websocket
        return key

    def disconnect(self, key: int):
        if key in self.active_connections:
            del self.active_connections[key]

    async def broadcast(self, message: Dict):
        for key, connection in list(self.active_connections.items()):
            try:
                await connection.send_json(message)
            except (WebSocketDisconnect, RuntimeError):
                self.disconnect(key)

    def notify_analysis(self, job_id: str, state: AnalysisRequestState,
                        error: Optional[ErrorReport] = None):
        """Orchestrator callback; schedules a broadcast on the running loop."""
        if not self.active_connections:
            return
        message = {
            "type": "analysis",
            "jobId": job_id,
            "status": state.value,
            "error": error.model_dump(mode="json") if error else None,
        }
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.broadcast(message))
        self._broadcasts.add(task)
        task.add_done_callback(self._finish_broadcast)

    def _finish_broadcast(self, task: asyncio.Task):
        self._broadcasts.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Analysis broadcast failed: {task.exception()}")


# ============================================================================
# FastAPI App Setup
# ============================================================================

def create_app(workspace: Optional[CareerWorkspace] = None) -> FastAPI:
    """
    Build the API around a workspace.

    Args:
        workspace: Prebuilt workspace (tests); defaults to the HTTP-backed one

    Returns:
        FastAPI application
    """
    settings = get_settings()
    manager = ConnectionManager()

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Job application tracking with AI compatibility analysis",
        version=__version__
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    workspace = workspace or create_workspace()
    previous_callback = workspace.orchestrator.notification_callback

    def notify(job_id, state, error=None):
        previous_callback(job_id, state, error)
        manager.notify_analysis(job_id, state, error)

    workspace.orchestrator.notification_callback = notify
    app.state.workspace = workspace
    app.state.manager = manager

    # ------------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------------

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.utcnow().isoformat(),
            "version": __version__
        }

    # ------------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------------

    @app.get("/jobs")
    async def list_jobs(ws: CareerWorkspace = Depends(get_workspace)):
        """Current job list, stats and error slot."""
        return {
            "jobs": [_job_view(ws, job) for job in ws.jobs.jobs],
            "stats": _stats_view(ws.jobs.stats()),
            "loading": ws.jobs.loading,
            "error": ws.jobs.error.model_dump(mode="json") if ws.jobs.error else None,
        }

    @app.post("/jobs/refresh")
    async def refresh_jobs(ws: CareerWorkspace = Depends(get_workspace)):
        """Reload the list from the backend."""
        if not await ws.jobs.refresh():
            _raise_for(ws.jobs.error, "Failed to load jobs")
        return {"total": len(ws.jobs.jobs)}

    @app.post("/jobs", status_code=201)
    async def create_job(draft: JobDraft, ws: CareerWorkspace = Depends(get_workspace)):
        """Create a job; long descriptions are analyzed automatically."""
        job = await ws.jobs.create(draft)
        if job is None:
            _raise_for(ws.jobs.error, "Failed to save job")
        return _job_view(ws, job)

    @app.put("/jobs/{job_id}")
    async def update_job(job_id: str, draft: JobDraft,
                         ws: CareerWorkspace = Depends(get_workspace)):
        """Edit a job."""
        job = await ws.jobs.update(job_id, draft)
        if job is None:
            _raise_for(ws.jobs.error, "Failed to save job")
        return _job_view(ws, job)

    @app.delete("/jobs/{job_id}")
    async def delete_job(job_id: str, ws: CareerWorkspace = Depends(get_workspace)):
        """Delete a job (the client has already confirmed)."""
        if not await ws.jobs.remove(job_id):
            _raise_for(ws.jobs.error, "Failed to delete job")
        return {"status": "deleted", "jobId": job_id}

    @app.get("/stats")
    async def get_stats(ws: CareerWorkspace = Depends(get_workspace)):
        return _stats_view(ws.jobs.stats())

    # ------------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------------

    @app.post("/jobs/{job_id}/analyze", status_code=202)
    async def analyze_job(job_id: str, ws: CareerWorkspace = Depends(get_workspace)):
        """Start (or keep running) the compatibility analysis for a job."""
        ws.jobs.clear_error()
        ws.orchestrator.clear_error()
        task = ws.jobs.analyze(job_id)
        if task is None and not ws.orchestrator.is_analyzing(job_id):
            _raise_for(ws.jobs.error or ws.orchestrator.last_error, "Analysis not started")
        return {"jobId": job_id, "status": ws.orchestrator.status_of(job_id).value}

    @app.get("/jobs/{job_id}/analysis")
    async def get_analysis(job_id: str, ws: CareerWorkspace = Depends(get_workspace)):
        """Analysis status and latest merged result for a job."""
        job = ws.jobs.get(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return {
            "jobId": job_id,
            "status": ws.orchestrator.status_of(job_id).value,
            "compatibilityScore": job.compatibility_score,
            "analysis": job.analysis.model_dump(by_alias=True) if job.analysis else None,
            "polishedResume": job.polished_resume,
        }

    # ------------------------------------------------------------------------
    # View State
    # ------------------------------------------------------------------------

    @app.get("/ui")
    async def get_ui_state(ws: CareerWorkspace = Depends(get_workspace)):
        selected = ws.ui.selected_job
        return {
            "activeTab": ws.ui.active_tab.value,
            "selectedJob": _job_view(ws, selected) if selected else None,
            "expanded": ws.ui.expanded_ids(),
            "showForm": ws.ui.show_form,
            "editingId": ws.ui.editing_id,
        }

    @app.post("/ui/jobs/{job_id}/toggle")
    async def toggle_job(job_id: str, ws: CareerWorkspace = Depends(get_workspace)):
        return {"jobId": job_id, "collapsed": ws.ui.toggle_collapsed(job_id)}

    @app.put("/ui/selection")
    async def select_job(request: SelectionRequest, ws: CareerWorkspace = Depends(get_workspace)):
        if ws.jobs.get(request.job_id) is None:
            raise HTTPException(status_code=404, detail="Job not found")
        ws.ui.open_analysis(request.job_id)
        return {"selectedJobId": request.job_id}

    @app.delete("/ui/selection")
    async def clear_selection(ws: CareerWorkspace = Depends(get_workspace)):
        ws.ui.close_analysis()
        return {"selectedJobId": None}

    @app.put("/ui/tab")
    async def set_tab(request: TabRequest, ws: CareerWorkspace = Depends(get_workspace)):
        ws.ui.set_tab(request.tab)
        return {"activeTab": ws.ui.active_tab.value}

    # ------------------------------------------------------------------------
    # Resume Analysis
    # ------------------------------------------------------------------------

    @app.post("/resume/analyze")
    async def analyze_resume(request: ResumeRequest, ws: CareerWorkspace = Depends(get_workspace)):
        if ws.resume.analyzing:
            raise HTTPException(status_code=409, detail="Resume analysis already in progress")
        result = await ws.resume.submit(request.resume_text)
        if result is None:
            _raise_for(ws.resume.error, "Failed to analyze resume")
        return result.model_dump(mode="json", by_alias=True)

    @app.get("/resume/history")
    async def resume_history(ws: CareerWorkspace = Depends(get_workspace)):
        return {
            "history": [r.model_dump(mode="json", by_alias=True) for r in ws.resume.history],
            "error": ws.resume.error.model_dump(mode="json") if ws.resume.error else None,
        }

    @app.post("/resume/history/refresh")
    async def refresh_resume_history(ws: CareerWorkspace = Depends(get_workspace)):
        if not await ws.resume.refresh_history():
            _raise_for(ws.resume.error, "Failed to load resume history")
        return {"total": len(ws.resume.history)}

    @app.delete("/resume/{resume_id}")
    async def delete_resume(resume_id: str, ws: CareerWorkspace = Depends(get_workspace)):
        if not await ws.resume.remove(resume_id):
            _raise_for(ws.resume.error, "Failed to delete resume")
        return {"status": "deleted", "resumeId": resume_id}

    # ------------------------------------------------------------------------
    # WebSocket for Real-time Updates
    # ------------------------------------------------------------------------

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        Pushes {"type": "analysis", "jobId", "status"} on every analysis
        state change.

        Accepts:
        - {"type": "ping"}
        - {"type": "get_status", "jobId": "..."}

        Anything else that is not a JSON object gets an "error" reply.
        """
        key = await manager.connect(websocket)
        try:
            while True:
                try:
                    data = await websocket.receive_json()
                except ValueError:
                    await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                    continue

                if not isinstance(data, dict):
                    await websocket.send_json({"type": "error", "message": "Expected an object"})
                    continue

                if data.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})

                elif data.get("type") == "get_status":
                    job_id = data.get("jobId", "")
                    await websocket.send_json({
                        "type": "analysis",
                        "jobId": job_id,
                        "status": workspace.orchestrator.status_of(job_id).value,
                        "error": None,
                    })

        except WebSocketDisconnect:
            logger.debug("WebSocket client disconnected")
        finally:
            manager.disconnect(key)

    # ------------------------------------------------------------------------
    # Startup / Shutdown
    # ------------------------------------------------------------------------

    @app.on_event("startup")
    async def startup_event():
        """Load the job list on startup."""
        logger.info(f"{settings.app_name} API starting up...")
        if not await workspace.jobs.refresh():
            logger.warning("Initial job load failed; the list starts empty")
        await workspace.resume.refresh_history()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown."""
        logger.info(f"{settings.app_name} API shutting down...")
        await workspace.close()

    return app


logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = create_app()
