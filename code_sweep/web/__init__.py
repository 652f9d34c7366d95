"""HTTP API for code-sweep (requires the ``web`` extra)."""

from code_sweep.web.app import create_app

__all__ = ["create_app"]
