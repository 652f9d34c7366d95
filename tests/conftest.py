"""Shared fixtures: small projects written to a temporary directory."""

from __future__ import annotations

from pathlib import Path

import pytest


def write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


def snapshot(root: Path) -> dict[str, bytes]:
    """Every file under ``root`` (backups excluded) with its bytes."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file() and ".code-sweep" not in p.relative_to(root).parts
    }


@pytest.fixture
def make_project(tmp_path):
    def _make(files: dict[str, str | bytes], name: str = "project") -> Path:
        return write_tree(tmp_path / name, files)
    return _make


# A small React-style app used across test modules
WEB_APP = {
    "package.json": '{"name": "web-app", "main": "src/index.tsx"}',
    "src/index.tsx": (
        "import React from 'react';\n"
        "import { App } from './App';\n"
        "import './styles/main.css';\n"
    ),
    "src/App.tsx": (
        "import { helper } from './utils/helper';\n"
        "export const App = () => <img src={'/logo.png'} alt=\"logo\" />;\n"
    ),
    "src/utils/helper.ts": "export function helper() { return 1; }\n",
    "src/utils/unused.ts": "export const unused = true;\n",
    "src/styles/main.css": ".hero { background: url(../../assets/hero.png); }\n",
    "assets/hero.png": b"\x89PNG hero",
    "assets/unused.png": b"\x89PNG unused",
    "public/logo.png": b"\x89PNG logo",
}
