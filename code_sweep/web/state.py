"""In-memory state for the HTTP API, no database required."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from code_sweep.config import SweepConfig
from code_sweep.models import DependencyGraph


@dataclass
class AnalysisSession:
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    root: Path = field(default_factory=Path.cwd)
    config: SweepConfig = field(default_factory=SweepConfig)
    graph: DependencyGraph | None = None
    status: str = "analyzing"  # analyzing → ready | stale | failed
    error: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    rollback_ids: list[str] = field(default_factory=list)


class AppState:
    """Singleton in-memory state shared by all API routes."""

    def __init__(self):
        self.sessions: dict[str, AnalysisSession] = {}
        self._lock = threading.Lock()

    def add(self, session: AnalysisSession) -> None:
        with self._lock:
            self.sessions[session.id] = session

    def get(self, analysis_id: str) -> AnalysisSession | None:
        return self.sessions.get(analysis_id)

    def delete(self, analysis_id: str) -> bool:
        with self._lock:
            return self.sessions.pop(analysis_id, None) is not None

    def mark_stale(self, root: Path) -> None:
        """Invalidate every analysis of ``root`` after files changed on disk."""
        with self._lock:
            for session in self.sessions.values():
                if session.root == root and session.status == "ready":
                    session.status = "stale"


# Module-level singleton: every router imports this
state = AppState()
