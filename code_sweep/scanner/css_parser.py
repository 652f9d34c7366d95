"""Stylesheet reference parser (@import, @use, @forward, url())."""

from __future__ import annotations

import re

from code_sweep.errors import ParseError
from code_sweep.models import ParseResult, Reference, ReferenceKind
from code_sweep.scanner.base import BaseParser, LineIndex, clean_specifier, is_external

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT_RE = re.compile(r"(?<![:\"'])//[^\n]*")
_AT_IMPORT_RE = re.compile(
    r"@(?:import|use|forward)\s+(?:url\(\s*)?(['\"])([^'\"\n]+)\1"
)
_AT_IMPORT_BARE_URL_RE = re.compile(r"@import\s+url\(\s*([^'\"\s)][^)\s]*)\s*\)")
_URL_RE = re.compile(r"(?<![\w-])url\(\s*(?:(['\"])([^'\"\n]*)\1|([^'\")\s][^)\s]*))\s*\)")
_CSS_EXPORT_RE = re.compile(r"^\s*\.([A-Za-z_][\w-]*)", re.MULTILINE)


def _blank(match: re.Match) -> str:
    return "".join("\n" if c == "\n" else " " for c in match.group(0))


class CssParser(BaseParser):
    extensions = (".css", ".scss", ".sass", ".less")

    def parse(self, text: str, path: str) -> ParseResult:
        if text.count("/*") > len(_COMMENT_RE.findall(text)):
            raise ParseError(path, "unterminated comment")
        code = _COMMENT_RE.sub(_blank, text)
        if not path.endswith(".css"):
            code = _LINE_COMMENT_RE.sub(_blank, code)

        lines = LineIndex(code)
        result = ParseResult(path=path)
        imported: set[int] = set()

        for m in _AT_IMPORT_RE.finditer(code):
            spec = clean_specifier(m.group(2))
            imported.add(m.start(2))
            if is_external(spec):
                continue
            # Sass module system: "sass:math" and friends are built in
            if spec.startswith("sass:"):
                continue
            result.references.append(Reference(spec, ReferenceKind.STATIC, lines.line_of(m.start(2))))
        for m in _AT_IMPORT_BARE_URL_RE.finditer(code):
            imported.add(m.start(1))
            spec = clean_specifier(m.group(1))
            if not is_external(spec):
                result.references.append(Reference(spec, ReferenceKind.STATIC, lines.line_of(m.start(1))))

        for m in _URL_RE.finditer(code):
            start = m.start(2) if m.group(2) is not None else m.start(3)
            if start in imported:
                continue
            raw = m.group(2) if m.group(2) is not None else m.group(3)
            spec = clean_specifier(raw)
            if not spec or is_external(raw) or spec.startswith(("var(", "$", "@")):
                continue
            result.references.append(
                Reference(spec, ReferenceKind.STYLESHEET_URL, lines.line_of(start))
            )

        result.references.sort(key=lambda r: (r.line, r.specifier))
        # CSS modules expose their class names
        if ".module." in path:
            result.exported_symbols = set(_CSS_EXPORT_RE.findall(code))
        return result
