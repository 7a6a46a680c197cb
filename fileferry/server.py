"""HTTP front end (FastAPI) for the delegation engine.

Endpoints are ``async def`` so they run on the event loop thread, the same
thread that consumes worker output and fires the idle timer.

  POST /tasks/copy     {"sources": [...], "destination": "...", ...}
  POST /tasks/move
  POST /worker/stop    abort all background work (idempotent)
  GET  /worker         worker status snapshot
  GET  /messages       recent notifications
  GET  /health

CLI will import this module and call create_app().
"""
from __future__ import annotations
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field
from typing import List, Optional

from .core.config_loader import Settings
from .core.dispatcher import Dispatcher
from .core.errors import SpawnError, TransmissionError
from .core.logging import core_logger
from .core.notifier import Notifier
from .core.process_manager import ProcessManager
from .core.tasks import CopyTask, MoveTask, OverwritePolicy


class CopyRequest(BaseModel):
    sources: List[str] = Field(min_length=1)
    destination: str
    overwrite: OverwritePolicy = "always"
    preserve_metadata: bool = True


class MoveRequest(BaseModel):
    sources: List[str] = Field(min_length=1)
    destination: str
    overwrite: OverwritePolicy = "always"


def create_app(settings: Optional[Settings] = None, manager: Optional[ProcessManager] = None):
    settings = settings or Settings()
    if manager is None:
        manager = ProcessManager(settings, notifier=Notifier(settings.message_history))
    dispatcher = Dispatcher(manager)
    notifier = manager.notifier

    app = FastAPI(title="fileferry", version="0.1.0")

    def _submit(task):
        try:
            task_id = dispatcher.submit(task)
        except SpawnError as e:
            raise HTTPException(status_code=503, detail=str(e))
        except TransmissionError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {"task_id": task_id, "kind": task.kind, "outstanding": manager.outstanding}

    @app.get("/health")
    async def health():
        return {"status": "ok", "worker": manager.worker_status()}

    @app.post("/tasks/copy")
    async def submit_copy(req: CopyRequest):
        return _submit(CopyTask(**req.model_dump()))

    @app.post("/tasks/move")
    async def submit_move(req: MoveRequest):
        return _submit(MoveTask(**req.model_dump()))

    @app.post("/worker/stop")
    async def stop_worker():
        was_running = manager.stop()
        if was_running:
            notifier.notify("background worker stopped; pending tasks discarded")
        return {"stopped": was_running, "outstanding": manager.outstanding}

    @app.get("/worker")
    async def worker_status():
        return manager.status()

    @app.get("/messages")
    async def messages(limit: Optional[int] = Query(None, ge=0)):
        return {"messages": notifier.recent(limit)}

    @app.on_event("shutdown")
    async def _shutdown():  # pragma: no cover - server teardown
        if manager.stop():
            core_logger.info("worker stopped on shutdown")

    # Expose references for instrumentation/introspection
    app.state.process_manager = manager
    app.state.dispatcher = dispatcher
    app.state.settings = settings
    return app

__all__ = ["create_app", "CopyRequest", "MoveRequest"]
