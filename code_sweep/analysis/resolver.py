"""Resolve reference specifiers to project-relative paths."""

from __future__ import annotations

import itertools
import logging
import posixpath
import re
from dataclasses import dataclass

from code_sweep.config import SweepConfig
from code_sweep.models import Reference, ReferenceKind
from code_sweep.scanner.base import is_external
from code_sweep.scanner.patterns import (
    INDEX_FILES,
    RESOLVE_SUFFIXES,
    SOURCE_EXTENSIONS,
    STYLESHEET_EXTENSIONS,
    glob_filter,
)

logger = logging.getLogger(__name__)

_SLOT_RE = re.compile(r"\$\{[^}]*\}")
_GLOB_CHARS = ("*", "?", "[", "{")
# ESM TypeScript imports name the emitted file ("./util.js" for util.ts)
_EMITTED_TO_SOURCE = {".js": (".ts", ".tsx"), ".jsx": (".tsx",), ".mjs": (".mts",), ".cjs": (".cts",)}
# Aliases most bundler templates ship with
_CONVENTIONAL_ALIASES = {"@/": ("src/", ""), "~/": ("src/", "")}
_MAX_TEMPLATE_CANDIDATES = 5000


@dataclass(frozen=True)
class Resolution:
    targets: tuple[str, ...] = ()
    external: bool = False
    uncertain: bool = False

    @property
    def unresolved(self) -> bool:
        return not self.targets and not self.external


def resolve_import_path(specifier: str, current_file: str) -> str:
    """Join a relative specifier onto the importing file's directory.

    Bare and aliased specifiers (``react``, ``@/utils``) come back unchanged;
    no extension probing happens here.
    """
    if not specifier.startswith(("./", "../")) and specifier not in (".", ".."):
        return specifier
    joined = posixpath.normpath(posixpath.join(posixpath.dirname(current_file), specifier))
    return "" if joined == "." else joined


class PathResolver:
    """Resolve references against a fixed inventory of known paths."""

    def __init__(self, known_paths, config: SweepConfig, aliases: dict[str, str] | None = None):
        self.known = frozenset(known_paths)
        self._sorted = sorted(self.known)
        self.config = config
        merged = dict(aliases or {})
        merged.update(config.aliases)
        # longest prefix first
        self.aliases = sorted(merged.items(), key=lambda kv: -len(kv[0]))

    # ── public API ──────────────────────────────────────────

    def resolve(self, ref: Reference, current: str) -> Resolution:
        if ref.opaque:
            return Resolution(uncertain=True)
        if ref.kind == ReferenceKind.GLOB:
            return self._resolve_glob(ref, current)
        if ref.template:
            return self._resolve_template(ref, current)
        if is_external(ref.specifier):
            return Resolution(external=True)

        target = self.resolve_specifier(ref.specifier, current, ref)
        if target is not None:
            return Resolution(targets=(target,))
        if ref.kind in (ReferenceKind.STRING_LITERAL, ReferenceKind.STYLESHEET_URL):
            return Resolution()
        # Bare names and unresolved dotted Python modules are packages
        spec = ref.specifier
        if ref.root_relative or self._is_bare(spec) and (
                current.lower().endswith(SOURCE_EXTENSIONS) or spec.startswith(("~", "@"))):
            return Resolution(external=True)
        return Resolution()

    def resolve_specifier(self, spec: str, current: str, ref: Reference | None = None) -> str | None:
        """Resolve one concrete specifier to a known path, or None."""
        kind = ref.kind if ref else ReferenceKind.STATIC
        if ref is not None and ref.root_relative:
            return self._from_source_roots(spec)

        aliased = self._apply_alias(spec)
        if aliased is not None:
            for candidate in aliased:
                hit = self._probe(candidate, current)
                if hit:
                    return hit
            return None

        if spec.startswith(("./", "../")) or spec in (".", ".."):
            return self._probe(resolve_import_path(spec, current), current)

        if spec.startswith("/"):
            bare = spec.lstrip("/")
            candidates = [bare]
            if self.config.public_dir:
                candidates.append(f"{self.config.public_dir}/{bare}")
            for candidate in candidates:
                hit = self._probe(candidate, current)
                if hit:
                    return hit
            return None

        if kind in (ReferenceKind.STRING_LITERAL, ReferenceKind.STYLESHEET_URL) or \
                not current.lower().endswith(SOURCE_EXTENSIONS):
            # co-located first, then project root, then public dir
            for candidate in self._plain_candidates(spec, current):
                hit = self._probe(candidate, current)
                if hit:
                    return hit
            return None

        # bare specifier: a baseUrl-style import if it names a project file
        return self._from_source_roots(spec)

    # ── helpers ─────────────────────────────────────────────

    def _plain_candidates(self, spec: str, current: str) -> list[str]:
        here = posixpath.normpath(posixpath.join(posixpath.dirname(current), spec))
        candidates = [here, posixpath.normpath(spec)]
        if self.config.public_dir:
            candidates.append(f"{self.config.public_dir}/{posixpath.normpath(spec)}")
        return candidates

    def _from_source_roots(self, spec: str) -> str | None:
        for source_root in self.config.source_roots:
            candidate = posixpath.join(source_root, spec) if source_root else spec
            hit = self._probe(candidate, "")
            if hit:
                return hit
        return None

    def _apply_alias(self, spec: str) -> list[str] | None:
        for prefix, target in self.aliases:
            if spec == prefix.rstrip("/") or spec.startswith(prefix):
                return [target + spec[len(prefix):]]
        for prefix, targets in _CONVENTIONAL_ALIASES.items():
            if spec.startswith(prefix):
                return [t + spec[len(prefix):] for t in targets]
        return None

    def _probe(self, base: str, current: str) -> str | None:
        """Find ``base`` in the inventory trying suffixes, index files and partials."""
        base = posixpath.normpath(base) if base else ""
        if base.startswith("../") or base == "..":
            return None
        if base == ".":
            base = ""

        if base:
            for suffix in RESOLVE_SUFFIXES:
                if base + suffix in self.known:
                    return base + suffix
            ext = posixpath.splitext(base)[1]
            for replacement in _EMITTED_TO_SOURCE.get(ext, ()):
                candidate = base[: -len(ext)] + replacement
                if candidate in self.known:
                    return candidate
        for index in INDEX_FILES:
            candidate = f"{base}/{index}" if base else index
            if candidate in self.known:
                return candidate
        if base and self._is_stylesheet(current):
            # Sass partials: "variables" → "_variables.scss"
            head, tail = posixpath.split(base)
            for ext in ("", ) + STYLESHEET_EXTENSIONS:
                candidate = posixpath.join(head, f"_{tail}{ext}")
                if candidate in self.known:
                    return candidate
        return None

    def _resolve_glob(self, ref: Reference, current: str) -> Resolution:
        pattern = self._anchor(ref.specifier, current)
        if pattern is None:
            return Resolution(external=True)
        matches = set(glob_filter(self._sorted, pattern))
        for exclude in ref.excludes:
            anchored = self._anchor(exclude, current)
            if anchored:
                matches -= set(glob_filter(self._sorted, anchored))
        matches.discard(current)

        uncertain = False
        if ref.pattern_filter:
            base = self._static_prefix(pattern)
            try:
                rx = re.compile(ref.pattern_filter)
            except re.error:
                logger.debug("Unusable glob filter %r in %s", ref.pattern_filter, current)
                uncertain = True
            else:
                matches = {
                    m for m in matches
                    if rx.search("./" + (m[len(base) + 1:] if base else m))
                }
        return Resolution(targets=tuple(sorted(matches)), uncertain=uncertain)

    def _resolve_template(self, ref: Reference, current: str) -> Resolution:
        template = ref.specifier
        slots = len(_SLOT_RE.findall(template))

        # 1. substitute literals from the same file into the slots
        hits: set[str] = set()
        if ref.fills and len(ref.fills) ** slots <= _MAX_TEMPLATE_CANDIDATES:
            for combo in itertools.product(ref.fills, repeat=slots):
                values = iter(combo)
                spec = _SLOT_RE.sub(lambda _m: next(values), template)
                if is_external(spec):
                    continue
                hit = self.resolve_specifier(spec, current, ref)
                if hit and hit != current:
                    hits.add(hit)
        if hits:
            return Resolution(targets=tuple(sorted(hits)))

        # 2. degrade to a glob over the slots
        shape = _SLOT_RE.sub("*", template)
        if ref.root_relative:
            patterns = [posixpath.join(r, shape) if r else shape for r in self.config.source_roots]
        else:
            anchored = self._anchor(shape, current)
            patterns = [anchored] if anchored else []
        matches: set[str] = set()
        for pattern in patterns:
            matches.update(glob_filter(self._sorted, pattern))
            if not posixpath.splitext(pattern)[1]:
                matches.update(glob_filter(self._sorted, pattern + ".*"))
                matches.update(glob_filter(self._sorted, pattern + "/index.*"))
        matches.discard(current)
        return Resolution(targets=tuple(sorted(matches)), uncertain=True)

    def _anchor(self, pattern: str, current: str) -> str | None:
        """Make a glob project-relative, or None when it points outside the project."""
        aliased = self._apply_alias(pattern)
        if aliased is not None:
            pattern = aliased[0]
        elif pattern.startswith("/"):
            pattern = pattern.lstrip("/")
        elif pattern.startswith(("./", "../")):
            pattern = posixpath.join(posixpath.dirname(current), pattern)
        elif self._is_bare(pattern):
            return None
        pattern = posixpath.normpath(pattern)
        if pattern.startswith(".."):
            return None
        return pattern

    @staticmethod
    def _static_prefix(pattern: str) -> str:
        parts: list[str] = []
        for part in pattern.split("/"):
            if any(c in part for c in _GLOB_CHARS):
                break
            parts.append(part)
        return "/".join(parts)

    @staticmethod
    def _is_bare(spec: str) -> bool:
        return not spec.startswith((".", "/"))

    @staticmethod
    def _is_stylesheet(path: str) -> bool:
        return path.lower().endswith(STYLESHEET_EXTENSIONS)
