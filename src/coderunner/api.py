from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.schemas import AbortRequest, ExecutionRequest, ExecutionResponse
from .logging import setup_logging
from .services.assembler import failure_response
from .services.orchestrator import Orchestrator
from .settings import Settings, get_settings

log = structlog.get_logger(__name__)


def _dump(resp: ExecutionResponse, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=resp.model_dump(by_alias=True, exclude_none=True))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    s = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(s.log_level, json=s.log_json)
        app.state.orchestrator = Orchestrator(s)
        log.info("service.started", work_root=str(s.work_root), deadline_s=s.deadline_s)
        yield
        log.info("service.stopped", inflight=app.state.orchestrator.inflight())

    app = FastAPI(title="Code Runner API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=s.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.get("/")
    async def root():
        return {"message": "Welcome to the code runner API"}

    @app.get("/health")
    async def health(request: Request):
        return {"ok": True, "inflight": request.app.state.orchestrator.inflight()}

    @app.post("/api/execute")
    async def execute(req: ExecutionRequest, request: Request):
        if not req.code or not req.language:
            resp = failure_response("Code and language are required")
            resp.result.complexity.explanation = "Invalid input parameters"
            resp.ai_feedback.summary = "Invalid input parameters"
            return _dump(resp, status_code=400)

        log.info("execute.requested", language=req.language, code_len=len(req.code))
        resp = await request.app.state.orchestrator.execute(req)
        return _dump(resp)

    @app.post("/api/abort")
    async def abort(req: AbortRequest, request: Request):
        return {"success": request.app.state.orchestrator.abort(req.job_id)}

    return app


app = create_app()


def main() -> None:
    s = get_settings()
    uvicorn.run(app, host=s.host, port=s.port)
