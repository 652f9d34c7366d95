"""JavaScript/TypeScript reference parser using regex patterns."""

from __future__ import annotations

import re

from code_sweep.errors import ParseError
from code_sweep.models import ParseResult, Reference, ReferenceKind
from code_sweep.scanner.base import (
    BaseParser,
    LineIndex,
    clean_specifier,
    is_external,
    looks_like_path,
    string_reference,
)

# Declarative imports and re-exports
_STATIC_RE = re.compile(
    r"(?:^|[;}\n])[ \t]*(?:import|export)\s+(?:type\s+)?"
    r"(?:[\w$*{}\s,]+?\s+from\s*)?(['\"])([^'\"\n]+)\1",
)
_REQUIRE_RE = re.compile(r"\brequire(?:\.resolve)?\s*\(\s*(['\"])([^'\"\n]+)\1\s*[,)]")

# Lazy loads
_DYNAMIC_LITERAL_RE = re.compile(r"(?<![\w$.])import\s*\(\s*(['\"])([^'\"\n]+)\1")
_DYNAMIC_TEMPLATE_RE = re.compile(r"(?<![\w$.])(?:import|require)\s*\(\s*`([^`]*)`")
_DYNAMIC_OPAQUE_RE = re.compile(r"(?<![\w$.])(?:import|require)\s*\(\s*(?![\s'\"`)])([^),]+)")

# Build-tool globs
_VITE_GLOB_RE = re.compile(
    r"\bimport\.meta\.glob(?:Eager)?\s*\(\s*(\[[^\]]*\]|(['\"])[^'\"\n]+\2)"
)
_REQUIRE_CONTEXT_RE = re.compile(
    r"\brequire\.context\s*\(\s*(['\"])([^'\"\n]+)\1"
    r"(?:\s*,\s*(true|false))?"
    r"(?:\s*,\s*/((?:\\/|[^/\n])+)/[dgimsuy]*)?"
)

_STRING_RE = re.compile(r"(['\"])((?:\\.|(?!\1)[^\\\n])*)\1|`([^`$\\]*)`")
_TEMPLATE_STRING_RE = re.compile(r"`((?:[^`\\]|\\.)*\$\{(?:[^`\\]|\\.)*)`")
_SLOT_RE = re.compile(r"\$\{[^}]*\}")
_FILL_RE = re.compile(r"^[\w@.\-/]{1,120}$")

# Statement shape used to detect malformed imports
_IMPORT_START_RE = re.compile(r"^[ \t]*import\b(?!\s*[(.])", re.MULTILINE)
_IMPORT_WELLFORMED_RE = re.compile(
    r"import\s+(?:type\s+)?(?:[\w$*{}\s,]+?\s+from\s*)?['\"]"
    r"|import\s+[\w$]+\s*=\s*require\s*\("
    r"|import\s+type\s*\{"
)

# Exports
_EXPORT_DECL_RE = re.compile(
    r"\bexport\s+(?:declare\s+)?(?:default\s+)?(?:async\s+)?(?:abstract\s+)?"
    r"(?:function\*?|const|let|var|class|interface|type|enum|namespace)\s+([\w$]+)"
)
_EXPORT_DEFAULT_RE = re.compile(r"\bexport\s+default\b")
_EXPORT_LIST_RE = re.compile(r"\bexport\s+(?:type\s+)?\{([^}]*)\}")
_CJS_MEMBER_RE = re.compile(r"\b(?:module\.)?exports\.([\w$]+)\s*=")
_CJS_OBJECT_RE = re.compile(r"\bmodule\.exports\s*=\s*\{")
_CJS_NAME_RE = re.compile(r"\bmodule\.exports\s*=\s*([\w$]+)\s*;?\s*$", re.MULTILINE)
_SCRIPT_BLOCK_RE = re.compile(r"<script\b[^>]*>(.*?)</script>", re.DOTALL | re.IGNORECASE)
_OBJECT_KEY_RE = re.compile(r"(?:^|,)\s*(?:async\s+)?['\"]?([\w$]+)['\"]?\s*(?=[:,(]|$)")


# Tokens after which "/" opens a regex literal rather than dividing
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};")
_REGEX_KEYWORDS = frozenset({
    "return", "typeof", "case", "delete", "void", "throw", "in", "of",
    "new", "yield", "await", "do", "else", "instanceof",
})
_REGEX_FLAGS = frozenset("dgimsuvy")


def _is_word_char(c: str) -> bool:
    return c.isalnum() or c in ("_", "$")


def _regex_end(source: str, start: int) -> int:
    """Index just past the regex literal opening at ``start``, or -1 if none closes on this line."""
    j, n = start + 1, len(source)
    in_class = False
    while j < n:
        c = source[j]
        if c == "\\":
            j += 2
            continue
        if c == "\n":
            return -1
        if in_class:
            if c == "]":
                in_class = False
        elif c == "[":
            in_class = True
        elif c == "/":
            j += 1
            while j < n and source[j] in _REGEX_FLAGS:
                j += 1
            return j
        j += 1
    return -1


def strip_comments(source: str, path: str = "") -> str:
    """Blank out comments while keeping strings, offsets and line numbers.

    Regex literals are kept with their quote characters blanked, so a ``//``
    or ``/*`` inside one is not read as a comment.
    Raises ``ParseError`` for an unterminated block comment.
    """
    out: list[str] = []
    i, n = 0, len(source)
    line = 1
    prev = ""  # last significant character outside comments
    word = ""  # identifier ending at ``prev``
    while i < n:
        ch = source[i]
        nxt = source[i + 1] if i + 1 < n else ""
        if ch == "/" and nxt == "/":
            end = source.find("\n", i)
            end = n if end == -1 else end
            out.append(" " * (end - i))
            i = end
        elif ch == "/" and nxt == "*":
            end = source.find("*/", i + 2)
            if end == -1:
                raise ParseError(path, "unterminated block comment", line)
            chunk = source[i:end + 2]
            out.append("".join("\n" if c == "\n" else " " for c in chunk))
            line += chunk.count("\n")
            i = end + 2
        elif ch == "/" and (not prev or prev in _REGEX_PRECEDERS or word in _REGEX_KEYWORDS):
            end = _regex_end(source, i)
            if end == -1:
                out.append(ch)
                i += 1
            else:
                out.append("".join(" " if c in "'\"`" else c for c in source[i:end]))
                i = end
            prev, word = "/", ""
        elif ch in ("'", '"', "`"):
            j = i + 1
            while j < n:
                c = source[j]
                if c == "\\":
                    j += 2
                    continue
                if c == ch or (c == "\n" and ch != "`"):
                    break
                j += 1
            prev, word = ch, ""
            if j >= n or source[j] != ch:
                # stray quote (JSX text): keep it as a plain char
                out.append(ch)
                i += 1
                continue
            chunk = source[i:j + 1]
            out.append(chunk)
            line += chunk.count("\n")
            i = j + 1
        else:
            if ch == "\n":
                line += 1
            elif not ch.isspace():
                if _is_word_char(ch):
                    word = word + ch if _is_word_char(prev) else ch
                else:
                    word = ""
                prev = ch
            out.append(ch)
            i += 1
    return "".join(out)


class JsParser(BaseParser):
    extensions = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue", ".svelte")

    def parse(self, text: str, path: str) -> ParseResult:
        if path.endswith((".vue", ".svelte")):
            text = script_blocks(text)
        code = strip_comments(text, path)
        self._check_imports(code, path)
        lines = LineIndex(code)
        result = ParseResult(path=path)
        claimed: list[tuple[int, int]] = []  # spans of strings already consumed

        def add(ref: Reference, span: tuple[int, int]) -> None:
            result.references.append(ref)
            claimed.append(span)

        for m in _STATIC_RE.finditer(code):
            add(Reference(clean_specifier(m.group(2)), ReferenceKind.STATIC,
                          lines.line_of(m.start(2))), m.span(2))
        for m in _REQUIRE_RE.finditer(code):
            add(Reference(clean_specifier(m.group(2)), ReferenceKind.STATIC,
                          lines.line_of(m.start(2))), m.span(2))
        for m in _DYNAMIC_LITERAL_RE.finditer(code):
            add(Reference(clean_specifier(m.group(2)), ReferenceKind.DYNAMIC,
                          lines.line_of(m.start(2))), m.span(2))

        fills = self._collect_fills(code)
        for m in _DYNAMIC_TEMPLATE_RE.finditer(code):
            body = m.group(1)
            line = lines.line_of(m.start(1))
            if "${" in body:
                ref = Reference(body, ReferenceKind.DYNAMIC, line, template=True, fills=fills)
            else:
                ref = Reference(clean_specifier(body), ReferenceKind.DYNAMIC, line)
            add(ref, m.span(1))
        for m in _DYNAMIC_OPAQUE_RE.finditer(code):
            if any(s <= m.start(1) < e for s, e in claimed):
                continue
            expression = m.group(1).strip()
            add(Reference(expression, ReferenceKind.DYNAMIC, lines.line_of(m.start(1)),
                          opaque=True), m.span(1))

        for m in _VITE_GLOB_RE.finditer(code):
            self._add_vite_glob(m, lines, add)
        for m in _REQUIRE_CONTEXT_RE.finditer(code):
            directory = m.group(2).rstrip("/")
            recursive = m.group(3) != "false"
            pattern = f"{directory}/**/*" if recursive else f"{directory}/*"
            add(Reference(pattern, ReferenceKind.GLOB, lines.line_of(m.start(2)),
                          pattern_filter=m.group(4)), m.span(2))

        # Path-shaped strings that are not part of an import
        for m in _STRING_RE.finditer(code):
            start = m.start(2) if m.group(2) is not None else m.start(3)
            if any(s <= start < e for s, e in claimed):
                continue
            value = m.group(2) if m.group(2) is not None else m.group(3)
            if looks_like_path(value):
                result.references.append(string_reference(value, lines.line_of(start)))
        for m in _TEMPLATE_STRING_RE.finditer(code):
            if any(s <= m.start(1) < e for s, e in claimed):
                continue
            body = m.group(1)
            if looks_like_path(_SLOT_RE.sub("x", body)):
                result.references.append(Reference(
                    body, ReferenceKind.STRING_LITERAL, lines.line_of(m.start(1)),
                    template=True, optional=True, fills=fills,
                ))

        result.references.sort(key=lambda r: (r.line, r.specifier))
        result.exported_symbols = self._parse_exports(code)
        return result

    def parse_imports(self, text: str, path: str = "") -> list[str]:
        """Specifiers of every reference in ``text``, in source order."""
        return [ref.specifier for ref in self.parse(text, path).references]

    # ── helpers ─────────────────────────────────────────────

    @staticmethod
    def _check_imports(code: str, path: str) -> None:
        lines = LineIndex(code)
        for m in _IMPORT_START_RE.finditer(code):
            stmt = code[m.start():m.start() + 4000].lstrip()
            if not _IMPORT_WELLFORMED_RE.match(stmt):
                raise ParseError(path, "malformed import statement", lines.line_of(m.start()))

    @staticmethod
    def _collect_fills(code: str) -> tuple[str, ...]:
        values: set[str] = set()
        for m in _STRING_RE.finditer(code):
            value = m.group(2) if m.group(2) is not None else m.group(3)
            if value and _FILL_RE.match(value) and not is_external(value):
                values.add(value)
        return tuple(sorted(values))

    @staticmethod
    def _add_vite_glob(m: re.Match, lines: LineIndex, add) -> None:
        raw = m.group(1)
        patterns = [s[1:-1] for s in re.findall(r"'[^']*'|\"[^\"]*\"", raw)]
        includes = [p for p in patterns if not p.startswith("!")]
        excludes = tuple(p[1:] for p in patterns if p.startswith("!"))
        for pattern in includes:
            add(Reference(pattern, ReferenceKind.GLOB, lines.line_of(m.start(1)),
                          excludes=excludes), m.span(1))

    @staticmethod
    def _parse_exports(code: str) -> set[str]:
        symbols: set[str] = set()
        symbols.update(_EXPORT_DECL_RE.findall(code))
        if _EXPORT_DEFAULT_RE.search(code):
            symbols.add("default")
        for group in _EXPORT_LIST_RE.findall(code):
            for part in group.split(","):
                part = part.strip()
                if not part:
                    continue
                if " as " in part:
                    part = part.split(" as ")[-1].strip()
                symbols.add(part)
        symbols.update(_CJS_MEMBER_RE.findall(code))
        for m in _CJS_OBJECT_RE.finditer(code):
            body = _balanced_body(code, m.end() - 1)
            symbols.update(_OBJECT_KEY_RE.findall(_flatten(body)))
        for name in _CJS_NAME_RE.findall(code):
            symbols.add(name)
        return symbols


def script_blocks(text: str) -> str:
    """Keep only ``<script>`` bodies of a single-file component, blanking the rest."""
    out = ["\n" if c == "\n" else " " for c in text]
    for m in _SCRIPT_BLOCK_RE.finditer(text):
        out[m.start(1):m.end(1)] = text[m.start(1):m.end(1)]
    return "".join(out)


def _balanced_body(code: str, open_index: int) -> str:
    """Text between the brace at ``open_index`` and its matching close brace."""
    depth = 0
    for i in range(open_index, len(code)):
        if code[i] == "{":
            depth += 1
        elif code[i] == "}":
            depth -= 1
            if depth == 0:
                return code[open_index + 1:i]
    return code[open_index + 1:]


def _flatten(body: str) -> str:
    """Keep only depth-0 text of an object literal body."""
    out: list[str] = []
    depth = 0
    for ch in body:
        if ch in "{[(":
            depth += 1
        elif ch in "}])":
            depth -= 1
        elif depth == 0:
            out.append(" " if ch == "\n" else ch)
    return "".join(out)
