"""Extension tables, default path patterns, and glob matching."""

from __future__ import annotations

import fnmatch
import functools
import re

SOURCE_EXTENSIONS: tuple[str, ...] = (
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".vue", ".svelte", ".py",
)

STYLESHEET_EXTENSIONS: tuple[str, ...] = (".css", ".scss", ".sass", ".less")

TEMPLATE_EXTENSIONS: tuple[str, ...] = (
    ".html", ".htm", ".hbs", ".ejs", ".njk", ".jinja", ".jinja2", ".j2", ".mustache",
)

ASSET_EXTENSIONS: tuple[str, ...] = (
    # images
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".avif", ".ico", ".bmp",
    # fonts
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    # media and documents
    ".mp4", ".webm", ".mp3", ".wav", ".ogg", ".pdf",
    # data fixtures
    ".json", ".yaml", ".yml", ".csv", ".xml", ".txt",
) + STYLESHEET_EXTENSIONS + TEMPLATE_EXTENSIONS

# Suffixes probed when a specifier omits its extension
RESOLVE_SUFFIXES: tuple[str, ...] = ("",) + SOURCE_EXTENSIONS + (".json", ".css", ".scss")

INDEX_FILES: tuple[str, ...] = (
    "index.ts", "index.tsx", "index.js", "index.jsx", "index.mjs", "index.cjs",
    "index.vue", "__init__.py",
)

_JS = "{js,jsx,ts,tsx,mjs,cjs}"
_ROUTE_FILES = "{page,layout,loading,error,not-found,template,default,route,global-error}"

DEFAULT_ENTRY_PATTERNS: tuple[str, ...] = (
    f"/index.{_JS}",
    f"/main.{_JS}",
    f"/server.{_JS}",
    f"/app.{_JS}",
    f"src/index.{_JS}",
    f"src/main.{_JS}",
    f"src/server.{_JS}",
    "src/App.{jsx,tsx}",
    f"/middleware.{_JS}",
    f"src/middleware.{_JS}",
    f"/instrumentation.{_JS}",
    # file-based routing
    f"pages/**/*.{_JS}",
    f"src/pages/**/*.{_JS}",
    f"app/**/{_ROUTE_FILES}.{_JS}",
    f"src/app/**/{_ROUTE_FILES}.{_JS}",
    f"**/routes/**/route.{_JS}",
    # Python
    "/main.py",
    "/app.py",
    "manage.py",
    "wsgi.py",
    "asgi.py",
    "**/__main__.py",
    # HTML shells served as-is
    "/index.html",
    "/public/index.html",
)

DEFAULT_CONFIG_PATTERNS: tuple[str, ...] = (
    "package.json",
    "tsconfig*.json",
    "jsconfig*.json",
    "*.config.{js,cjs,mjs,ts,cts,mts,json}",
    ".eslintrc*",
    "eslint.config.*",
    ".prettierrc*",
    ".babelrc*",
    ".stylelintrc*",
    ".swcrc",
    "webpack*.js",
    "next-env.d.ts",
    "setup.py",
    "setup.cfg",
    "pyproject.toml",
    "tox.ini",
    "noxfile.py",
    "conftest.py",
    ".code-sweep.json",
)

DEFAULT_TEST_PATTERNS: tuple[str, ...] = (
    f"*.test.{_JS}",
    f"*.spec.{_JS}",
    f"**/__tests__/**/*.{_JS}",
    "test_*.py",
    "*_test.py",
)

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    "**/*.d.ts",
    "**/favicon.ico",
    "**/robots.txt",
    "**/sitemap.xml",
    "**/manifest.json",
    "**/.well-known/**",
)

DEFAULT_IGNORE_DIRS: tuple[str, ...] = (
    "node_modules", ".git", "__pycache__", ".dart_tool",
    "build", "dist", "out", ".next", ".nuxt", ".turbo", ".cache",
    "coverage", ".venv", "venv", "env", ".eggs", "*.egg-info",
    ".pytest_cache", ".mypy_cache", ".code-sweep",
)

TEST_DIRECTORIES: tuple[str, ...] = ("tests", "test", "__tests__", "spec", "__mocks__")


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives (nested groups allowed)."""
    start = pattern.find("{")
    if start == -1:
        return [pattern]
    depth = 0
    for end in range(start, len(pattern)):
        if pattern[end] == "{":
            depth += 1
        elif pattern[end] == "}":
            depth -= 1
            if depth == 0:
                break
    else:
        return [pattern]

    options: list[str] = []
    depth = 0
    current = ""
    for ch in pattern[start + 1:end]:
        if ch == "," and depth == 0:
            options.append(current)
            current = ""
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        current += ch
    options.append(current)

    head, tail = pattern[:start], pattern[end + 1:]
    expanded: list[str] = []
    for option in options:
        expanded.extend(expand_braces(head + option + tail))
    return expanded


@functools.lru_cache(maxsize=2048)
def _compile(pattern: str) -> re.Pattern[str]:
    """Translate a glob into a regex. ``*`` stops at ``/``, ``**/`` spans directories."""
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    i += 1
                    out.append("(?:.*/)?")
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "[":
            close = pattern.find("]", i + 1)
            if close == -1:
                out.append(re.escape(ch))
            else:
                body = pattern[i + 1:close].replace("\\", "\\\\")
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = close + 1
                continue
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("".join(out) + r"\Z")


def match_path(path: str, pattern: str) -> bool:
    """Match a project-relative POSIX path against a glob pattern.

    Patterns without a ``/`` match any single path segment (``node_modules``,
    ``*.config.js``). Patterns with a ``/`` (a leading one included, as in
    ``/index.ts``) are anchored at the project root and also match everything
    beneath a matching directory.
    """
    pattern = pattern.strip()
    if pattern.startswith("./"):
        pattern = pattern[2:]
    for option in expand_braces(pattern):
        bare = option.rstrip("/")
        if not bare:
            continue
        if "/" not in bare:
            if any(fnmatch.fnmatchcase(part, bare) for part in path.split("/")):
                return True
            continue
        bare = bare.lstrip("/")
        if _compile(bare).match(path) or _compile(bare + "/**").match(path):
            return True
    return False


def first_match(path: str, patterns) -> str | None:
    for pattern in patterns:
        if match_path(path, pattern):
            return pattern
    return None


def glob_filter(paths, pattern: str) -> list[str]:
    """Return the paths matching an anchored glob (no segment shortcut)."""
    matches: list[str] = []
    options = [o.lstrip("/") for o in expand_braces(pattern)]
    compiled = [_compile(o) for o in options if o]
    for path in paths:
        if any(rx.match(path) for rx in compiled):
            matches.append(path)
    return sorted(matches)


def is_test_path(path: str, patterns) -> bool:
    return first_match(path, patterns) is not None


def in_test_directory(path: str) -> bool:
    return any(part in TEST_DIRECTORIES for part in path.split("/")[:-1])
