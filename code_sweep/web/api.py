"""FastAPI routes: analyze a project, preview and validate a cleanup, execute it, roll it back."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ValidationError

from code_sweep.config import SweepConfig, load_config
from code_sweep.errors import (
    BackupFailureError,
    BackupNotFoundError,
    ConfigError,
    ExecutionInProgressError,
    InvalidTransitionError,
    RemovalError,
)
from code_sweep.models import DependencyGraph, to_jsonable
from code_sweep.pipeline import (
    graph_report,
    list_backups,
    run_analysis,
    run_cleanup,
    run_preview,
    run_rollback,
    run_safety_check,
    run_validation,
)
from code_sweep.web.state import AnalysisSession, state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# --- Request models ---

class AnalyzeRequest(BaseModel):
    path: str
    config: dict[str, Any] | None = None

class FilesRequest(BaseModel):
    analysis_id: str
    files: list[str] | None = None

class CleanupRequest(BaseModel):
    analysis_id: str
    files: list[str] | None = None
    backup: bool | None = None
    validate_build: bool | None = None

class RollbackRequest(BaseModel):
    analysis_id: str
    rollback_id: str


# --- Path safety ---

def _validate_path(request: Request, p: str) -> Path:
    """Ensure path is an existing directory under the allowed root."""
    resolved = Path(p).expanduser().resolve()
    if not resolved.exists():
        raise HTTPException(404, f"Path not found: {resolved}")
    if not resolved.is_dir():
        raise HTTPException(400, "Path must be a directory")
    allowed: Path = request.app.state.allowed_root
    if not resolved.is_relative_to(allowed):
        raise HTTPException(403, f"Path must be under {allowed}")
    return resolved


def _merge_config(root: Path, overrides: dict[str, Any] | None) -> SweepConfig:
    try:
        base = load_config(root)
    except ConfigError as e:
        raise HTTPException(400, str(e))
    if not overrides:
        return base
    data = base.model_dump(by_alias=True)
    for key, value in overrides.items():
        if key == "safety" and isinstance(value, dict):
            data["safety"] = {**data["safety"], **value}
        else:
            data[key] = value
    try:
        return SweepConfig.model_validate(data)
    except ValidationError as e:
        raise HTTPException(400, f"Invalid config: {e.errors()[0]['msg']}")


# --- Session helpers ---

def _session(analysis_id: str) -> AnalysisSession:
    session = state.get(analysis_id)
    if not session:
        raise HTTPException(404, "Analysis not found")
    if session.status == "failed":
        raise HTTPException(400, f"Analysis failed: {session.error}")
    return session


def _current_graph(session: AnalysisSession) -> DependencyGraph:
    """The session's graph, rebuilt first if files changed since it was made."""
    if session.graph is None or session.status == "stale":
        session.graph = run_analysis(session.root, session.config)
        session.status = "ready"
    return session.graph


def _session_summary(session: AnalysisSession) -> dict[str, Any]:
    return {
        "analysis_id": session.id,
        "root": str(session.root),
        "status": session.status,
        "timestamp": session.timestamp,
        "error": session.error,
    }


# --- Endpoints ---

@router.post("/analyze")
async def analyze(req: AnalyzeRequest, request: Request):
    root = _validate_path(request, req.path)
    config = _merge_config(root, req.config)
    session = AnalysisSession(root=root, config=config)
    state.add(session)

    try:
        session.graph = await asyncio.to_thread(run_analysis, root, config)
    except Exception as e:
        logger.exception("Analysis of %s failed", root)
        session.status = "failed"
        session.error = str(e)
        raise HTTPException(500, f"Analysis failed: {e}")
    session.status = "ready"

    return {**_session_summary(session), "report": graph_report(session.graph, config)}


@router.get("/analyses")
async def list_analyses():
    return {"analyses": [_session_summary(s) for s in state.sessions.values()]}


@router.get("/analysis/{analysis_id}")
async def get_analysis(analysis_id: str):
    session = _session(analysis_id)
    graph = await asyncio.to_thread(_current_graph, session)
    return {**_session_summary(session), "report": graph_report(graph, session.config)}


@router.delete("/analysis/{analysis_id}")
async def delete_analysis(analysis_id: str):
    if not state.delete(analysis_id):
        raise HTTPException(404, "Analysis not found")
    return {"deleted": analysis_id}


@router.post("/validate")
async def validate(req: FilesRequest):
    session = _session(req.analysis_id)

    def _run():
        graph = _current_graph(session)
        if req.files:
            return run_validation(session.root, req.files, session.config, graph=graph)
        return run_safety_check(session.root, session.config, graph=graph)

    return to_jsonable(await asyncio.to_thread(_run))


@router.post("/preview")
async def preview(req: FilesRequest):
    session = _session(req.analysis_id)

    def _run():
        graph = _current_graph(session)
        return run_preview(session.root, session.config, graph=graph, candidates=req.files)

    result = await asyncio.to_thread(_run)
    return {**to_jsonable(result), "paths": result.paths}


@router.post("/cleanup/dry-run")
async def cleanup_dry_run(req: CleanupRequest):
    session = _session(req.analysis_id)

    def _run():
        graph = _current_graph(session)
        return run_cleanup(
            session.root,
            session.config,
            dry_run=True,
            backup=req.backup,
            validate_build=req.validate_build,
            candidates=req.files,
            graph=graph,
        )

    return to_jsonable(await asyncio.to_thread(_run))


@router.post("/cleanup/execute")
async def cleanup_execute(req: CleanupRequest):
    session = _session(req.analysis_id)
    try:
        result = await asyncio.to_thread(
            run_cleanup,
            session.root,
            session.config,
            dry_run=False,
            backup=req.backup,
            validate_build=req.validate_build,
            candidates=req.files,
        )
    except ExecutionInProgressError as e:
        raise HTTPException(409, str(e))
    except InvalidTransitionError as e:
        raise HTTPException(409, str(e))
    except (BackupFailureError, RemovalError) as e:
        state.mark_stale(session.root)
        raise HTTPException(500, str(e))

    state.mark_stale(session.root)
    if result.rollback_id:
        session.rollback_ids.append(result.rollback_id)
    return to_jsonable(result)


@router.post("/rollback")
async def rollback(req: RollbackRequest):
    session = _session(req.analysis_id)
    try:
        result = await asyncio.to_thread(run_rollback, session.root, req.rollback_id, session.config)
    except BackupNotFoundError as e:
        raise HTTPException(404, str(e))
    except ExecutionInProgressError as e:
        raise HTTPException(409, str(e))

    state.mark_stale(session.root)
    return to_jsonable(result)


@router.get("/backups")
async def backups(analysis_id: str):
    """Backups of the analyzed project root (``?analysis_id=...``)."""
    session = _session(analysis_id)
    records = await asyncio.to_thread(list_backups, session.root, session.config)
    return {
        "backups": [
            {
                "rollback_id": r.rollback_id,
                "created": r.created,
                "files": len(r.entries),
                "restored": r.restored,
            }
            for r in records
        ]
    }
