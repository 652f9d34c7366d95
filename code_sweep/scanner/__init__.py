"""Parser registry and dispatcher."""

from __future__ import annotations

from code_sweep.scanner.base import BaseParser
from code_sweep.scanner.css_parser import CssParser
from code_sweep.scanner.html_parser import HtmlParser
from code_sweep.scanner.js_parser import JsParser
from code_sweep.scanner.python_parser import PythonParser

_PARSERS: tuple[BaseParser, ...] = (JsParser(), PythonParser(), CssParser(), HtmlParser())


def get_parser(path: str) -> BaseParser | None:
    """Return the parser for ``path``, or None for files with no references (images, fonts)."""
    for parser in _PARSERS:
        if parser.handles(path):
            return parser
    return None


__all__ = [
    "BaseParser",
    "CssParser",
    "HtmlParser",
    "JsParser",
    "PythonParser",
    "get_parser",
]
