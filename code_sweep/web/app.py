"""FastAPI application factory."""

from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI

from code_sweep.web.api import router


def create_app(allowed_root: Path | None = None) -> FastAPI:
    """Build the API app. Only projects under ``allowed_root`` (default: home) can be analyzed."""
    app = FastAPI(title="code-sweep", version="0.1.0")
    app.state.allowed_root = Path(allowed_root or Path.home()).expanduser().resolve()
    app.include_router(router)
    return app
