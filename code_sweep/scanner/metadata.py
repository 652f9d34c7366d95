"""Entry points declared in project metadata (package.json, pyproject.toml)."""

from __future__ import annotations

import json
import logging
import posixpath
import re
import shlex
import tomllib
from pathlib import Path

from code_sweep.errors import ParseError
from code_sweep.fs import FileSystem
from code_sweep.models import Reference, ReferenceKind
from code_sweep.scanner.base import looks_like_path
from code_sweep.scanner.js_parser import strip_comments

logger = logging.getLogger(__name__)

_PACKAGE_FIELDS = ("main", "module", "browser", "types", "typings", "source")


def _strings(value) -> list[str]:
    """Flatten the string leaves of a nested JSON value."""
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        return [s for v in value.values() for s in _strings(v)]
    if isinstance(value, list):
        return [s for v in value for s in _strings(v)]
    return []


def _declared(spec: str, root_relative: bool = False) -> Reference:
    return Reference(spec, ReferenceKind.STATIC, optional=True, root_relative=root_relative)


def package_json_entries(data: dict) -> list[Reference]:
    refs: list[Reference] = []
    for field_name in _PACKAGE_FIELDS:
        for value in _strings(data.get(field_name)):
            refs.append(_declared(value))
    for value in _strings(data.get("bin")):
        refs.append(_declared(value))
    for value in _strings(data.get("exports")):
        if value.startswith("./") and "*" not in value:
            refs.append(_declared(value))

    # files run directly by npm scripts ("node scripts/seed.js")
    for command in _strings(data.get("scripts")):
        try:
            tokens = shlex.split(command)
        except ValueError:
            tokens = command.split()
        for token in tokens:
            if looks_like_path(token) and "/" in token:
                refs.append(_declared(token))
    return refs


def pyproject_entries(data: dict) -> list[Reference]:
    project = data.get("project", {})
    targets: list[str] = []
    for table in ("scripts", "gui-scripts"):
        targets.extend(_strings(project.get(table)))
    for group in project.get("entry-points", {}).values():
        targets.extend(_strings(group))
    # setuptools / poetry script tables
    targets.extend(_strings(data.get("tool", {}).get("poetry", {}).get("scripts")))

    refs: list[Reference] = []
    for target in targets:
        module = target.split(":", 1)[0].strip()
        if module:
            refs.append(_declared(module.replace(".", "/"), root_relative=True))
    return refs


def declared_entries(root: Path, fs: FileSystem) -> list[Reference]:
    """Entry references declared by the root's package.json and pyproject.toml.

    Unreadable metadata is logged and ignored; it never aborts an analysis.
    """
    refs: list[Reference] = []

    package_json = root / "package.json"
    if fs.exists(package_json):
        try:
            data = json.loads(fs.read_text(package_json))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable package.json: %s", e)
        else:
            if isinstance(data, dict):
                refs.extend(package_json_entries(data))

    pyproject = root / "pyproject.toml"
    if fs.exists(pyproject):
        try:
            data = tomllib.loads(fs.read_text(pyproject))
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Ignoring unreadable pyproject.toml: %s", e)
        else:
            refs.extend(pyproject_entries(data))

    logger.debug("Declared entries: %s", [r.specifier for r in refs])
    return refs


_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def tsconfig_aliases(root: Path, fs: FileSystem) -> dict[str, str]:
    """Path aliases from ``compilerOptions.paths`` of tsconfig.json/jsconfig.json.

    ``{"@/*": ["./src/*"]}`` becomes ``{"@/": "src/"}``.
    """
    aliases: dict[str, str] = {}
    for name in ("tsconfig.json", "jsconfig.json"):
        path = root / name
        if not fs.exists(path):
            continue
        try:
            # tsconfig allows comments and trailing commas
            text = _TRAILING_COMMA_RE.sub(r"\1", strip_comments(fs.read_text(path), name))
            data = json.loads(text)
        except (OSError, ValueError, ParseError) as e:
            logger.warning("Ignoring unreadable %s: %s", name, e)
            continue
        options = data.get("compilerOptions", {}) if isinstance(data, dict) else {}
        base_url = str(options.get("baseUrl", ".")).strip()
        for key, targets in (options.get("paths") or {}).items():
            if not targets or not isinstance(targets, list):
                continue
            target = posixpath.normpath(posixpath.join(base_url, str(targets[0]).rstrip("*")))
            prefix = key.rstrip("*")
            if not prefix:
                continue
            target = "" if target == "." else target
            if key.endswith("*") and target:
                target += "/"
            aliases.setdefault(prefix, target)
    return aliases
