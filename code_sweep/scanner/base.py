"""Abstract base parser."""

from __future__ import annotations

import abc
import bisect
import re

from code_sweep.models import ParseResult, Reference, ReferenceKind
from code_sweep.scanner.patterns import ASSET_EXTENSIONS, SOURCE_EXTENSIONS

_KNOWN_EXTENSIONS = frozenset(ASSET_EXTENSIONS + SOURCE_EXTENSIONS)

_PATH_SHAPED_RE = re.compile(
    r"^(?:\.{1,2}/|/)?(?:[\w@\-\[\].]+/)*[\w@\-\[\].]+\.([A-Za-z0-9]{1,8})$"
)
_EXTERNAL_PREFIXES = ("http://", "https://", "//", "data:", "mailto:", "tel:", "#", "blob:")


class BaseParser(abc.ABC):
    """Base class for per-language reference parsers."""

    extensions: tuple[str, ...]

    @abc.abstractmethod
    def parse(self, text: str, path: str) -> ParseResult:
        """Extract references and exported symbols from ``text``.

        Raises ``ParseError`` when the file is malformed.
        """

    def handles(self, path: str) -> bool:
        return path.lower().endswith(self.extensions)


class LineIndex:
    """Offset → line number lookup."""

    def __init__(self, text: str):
        self._starts = [0] + [m.end() for m in re.finditer(r"\n", text)]

    def line_of(self, offset: int) -> int:
        return bisect.bisect_right(self._starts, offset)


def is_external(specifier: str) -> bool:
    return specifier.startswith(_EXTERNAL_PREFIXES) or ":" in specifier.split("/", 1)[0]


def looks_like_path(value: str) -> bool:
    """True for strings shaped like a file path with a known extension."""
    if not value or len(value) > 300 or is_external(value):
        return False
    m = _PATH_SHAPED_RE.match(value)
    if not m:
        return False
    ext = "." + m.group(1).lower()
    if ext not in _KNOWN_EXTENSIONS:
        return False
    # bare names need to be assets ("logo.png"), source files need a directory
    return "/" in value or ext in ASSET_EXTENSIONS


def clean_specifier(specifier: str) -> str:
    """Drop query strings and fragments (``./icon.svg?raw``, ``font.woff#iefix``)."""
    for sep in ("?", "#"):
        if sep in specifier:
            specifier = specifier.split(sep, 1)[0]
    return specifier.strip()


def string_reference(value: str, line: int) -> Reference:
    return Reference(
        specifier=clean_specifier(value),
        kind=ReferenceKind.STRING_LITERAL,
        line=line,
        optional=True,
    )
