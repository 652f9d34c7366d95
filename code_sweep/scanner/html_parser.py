"""HTML/template reference parser: tag attributes plus inline <script> and <style> blocks."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from html.parser import HTMLParser

from code_sweep.errors import ParseError
from code_sweep.models import ParseResult, Reference, ReferenceKind
from code_sweep.scanner.base import (
    BaseParser,
    clean_specifier,
    is_external,
    looks_like_path,
    string_reference,
)
from code_sweep.scanner.css_parser import CssParser
from code_sweep.scanner.js_parser import JsParser

logger = logging.getLogger(__name__)

# Attributes that point at another file
_LINK_ATTRS = {"src", "href", "poster", "data", "action", "data-src", "xlink:href"}
# Script types that contain executable JS (absent type= also means JS)
_NON_JS_TYPES = {"application/json", "application/ld+json", "importmap"}
_QUOTED_RE = re.compile(r"(['\"])([^'\"\n<>{}]+)\1")
_TEMPLATE_SYNTAX = ("{{", "{%", "<%", "${")


class _InlineBlock:
    __slots__ = ("tag", "attrs", "start_line", "parts")

    def __init__(self, tag: str, attrs: dict[str, str | None], start_line: int):
        self.tag = tag
        self.attrs = attrs
        self.start_line = start_line
        self.parts: list[str] = []


class _ReferenceFinder(HTMLParser):
    """Collect attribute references and inline code blocks."""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.references: list[Reference] = []
        self.blocks: list[tuple[str, dict[str, str | None], int, str]] = []
        self._current: _InlineBlock | None = None

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]):
        line = self.getpos()[0]
        attr_map = dict(attrs)
        for name, value in attrs:
            if not value:
                continue
            if name in _LINK_ATTRS:
                self._add(value, line, optional=(tag == "a" or name == "action"))
            elif name in ("srcset", "imagesrcset"):
                for candidate in value.split(","):
                    url = candidate.strip().split(" ")[0]
                    if url:
                        self._add(url, line)
            elif name == "style":
                self.blocks.append(("style", {}, line, value))
        if tag in ("script", "style"):
            self._current = _InlineBlock(tag, attr_map, line)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]):
        self.handle_starttag(tag, attrs)
        if tag in ("script", "style"):
            self._current = None

    def handle_data(self, data: str):
        if self._current is not None:
            self._current.parts.append(data)

    def handle_endtag(self, tag: str):
        block = self._current
        if block is not None and tag == block.tag:
            self.blocks.append((block.tag, block.attrs, block.start_line, "".join(block.parts)))
            self._current = None

    def _add(self, value: str, line: int, optional: bool = False) -> None:
        value = value.strip()
        if is_external(value) or any(token in value for token in _TEMPLATE_SYNTAX):
            return
        spec = clean_specifier(value)
        if not spec or spec in (".", "/"):
            return
        # links without an extension are routes, not files
        if optional and not looks_like_path(spec):
            return
        self.references.append(Reference(spec, ReferenceKind.STATIC, line, optional=optional))


class HtmlParser(BaseParser):
    extensions = (".html", ".htm", ".hbs", ".ejs", ".njk", ".jinja", ".jinja2", ".j2", ".mustache")

    def __init__(self):
        self._js = JsParser()
        self._css = CssParser()

    def parse(self, text: str, path: str) -> ParseResult:
        finder = _ReferenceFinder()
        finder.feed(text)
        finder.close()

        result = ParseResult(path=path, references=list(finder.references))
        for tag, attrs, start_line, content in finder.blocks:
            if not content.strip():
                continue
            if tag == "script":
                if (attrs.get("type") or "").lower() in _NON_JS_TYPES:
                    continue
                nested = self._parse_inline(self._js, content, path, start_line, "script.js")
            else:
                nested = self._parse_inline(self._css, content, path, start_line, "style.css")
            result.references.extend(nested)

        # Quoted paths in template expressions ({{ asset('img/logo.png') }})
        seen = {ref.specifier for ref in result.references}
        for m in _QUOTED_RE.finditer(text):
            value = m.group(2)
            if looks_like_path(value) and clean_specifier(value) not in seen:
                line = text.count("\n", 0, m.start()) + 1
                result.references.append(string_reference(value, line))
                seen.add(clean_specifier(value))

        result.references.sort(key=lambda r: (r.line, r.specifier))
        return result

    @staticmethod
    def _parse_inline(parser: BaseParser, content: str, path: str, start_line: int,
                      virtual_name: str) -> list[Reference]:
        try:
            nested = parser.parse(content, f"{path}#{virtual_name}")
        except ParseError as e:
            logger.debug("Skipping inline block in %s: %s", path, e)
            return []
        offset = start_line - 1
        return [replace(ref, line=ref.line + offset) for ref in nested.references]
