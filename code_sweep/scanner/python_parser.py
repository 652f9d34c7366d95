"""Python reference parser using the ast module."""

from __future__ import annotations

import ast

from code_sweep.errors import ParseError
from code_sweep.models import ParseResult, Reference, ReferenceKind
from code_sweep.scanner.base import BaseParser, looks_like_path, string_reference

_DYNAMIC_LOADERS = {"import_module", "__import__"}


def _relative_prefix(level: int) -> str:
    return "./" if level == 1 else "../" * (level - 1)


def _module_path(module: str) -> str:
    return module.replace(".", "/")


class PythonParser(BaseParser):
    extensions = (".py",)

    def parse(self, text: str, path: str) -> ParseResult:
        try:
            tree = ast.parse(text, filename=path)
        except SyntaxError as e:
            raise ParseError(path, e.msg or "invalid syntax", e.lineno) from e

        result = ParseResult(path=path)
        docstrings = self._docstring_nodes(tree)
        skip = set(docstrings)  # constants that are not file paths
        fills = tuple(sorted({
            node.value for node in ast.walk(tree)
            if isinstance(node, ast.Constant) and isinstance(node.value, str)
            and 0 < len(node.value) <= 120 and node not in docstrings
            and "\n" not in node.value
        }))

        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    result.references.extend(self._absolute(alias.name, node.lineno))
            elif isinstance(node, ast.ImportFrom):
                result.references.extend(self._from_import(node))
            elif isinstance(node, ast.Call):
                ref = self._dynamic_call(node, fills)
                if ref is not None:
                    result.references.append(ref)
                    skip.add(node.args[0])
            elif (isinstance(node, ast.Constant) and isinstance(node.value, str)
                    and node not in skip and looks_like_path(node.value)):
                result.references.append(string_reference(node.value, node.lineno))

        result.references.sort(key=lambda r: (r.line, r.specifier))
        result.exported_symbols = self._exports(tree)
        return result

    # ── imports ─────────────────────────────────────────────

    @staticmethod
    def _absolute(module: str, line: int, optional: bool = False) -> list[Reference]:
        parts = module.split(".")
        refs = [Reference(_module_path(module), ReferenceKind.STATIC, line,
                          root_relative=True, optional=optional)]
        # parent packages run their __init__ first
        for i in range(1, len(parts)):
            refs.append(Reference("/".join(parts[:i]), ReferenceKind.STATIC, line,
                                  root_relative=True, optional=True))
        return refs

    def _from_import(self, node: ast.ImportFrom) -> list[Reference]:
        names = [a.name for a in node.names if a.name != "*"]
        if not node.level:
            refs = self._absolute(node.module or "", node.lineno)
            base = _module_path(node.module or "")
            for name in names:
                refs.append(Reference(f"{base}/{name}", ReferenceKind.STATIC, node.lineno,
                                      root_relative=True, optional=True))
            return refs

        prefix = _relative_prefix(node.level)
        if node.module:
            base = prefix + _module_path(node.module)
            refs = [Reference(base, ReferenceKind.STATIC, node.lineno)]
        else:
            base = prefix.rstrip("/") or "."
            refs = [Reference(base, ReferenceKind.STATIC, node.lineno, optional=True)]
        for name in names:
            refs.append(Reference(f"{base}/{name}", ReferenceKind.STATIC, node.lineno,
                                  optional=True))
        return refs

    @staticmethod
    def _dynamic_call(node: ast.Call, fills: tuple[str, ...]) -> Reference | None:
        func = node.func
        name = func.attr if isinstance(func, ast.Attribute) else getattr(func, "id", None)
        if name not in _DYNAMIC_LOADERS or not node.args:
            return None

        arg = node.args[0]
        if isinstance(arg, ast.Constant) and isinstance(arg.value, str):
            module = arg.value
            if module.startswith("."):
                level = len(module) - len(module.lstrip("."))
                spec = _relative_prefix(level) + _module_path(module.lstrip("."))
                return Reference(spec, ReferenceKind.DYNAMIC, node.lineno)
            return Reference(_module_path(module), ReferenceKind.DYNAMIC, node.lineno,
                             root_relative=True)

        if isinstance(arg, ast.JoinedStr):
            body = ""
            for value in arg.values:
                if isinstance(value, ast.Constant):
                    body += _module_path(str(value.value))
                else:
                    body += "${" + ast.unparse(value.value) + "}"
            return Reference(body, ReferenceKind.DYNAMIC, node.lineno, template=True,
                             root_relative=not body.startswith("."), fills=fills)

        return Reference(ast.unparse(arg), ReferenceKind.DYNAMIC, node.lineno, opaque=True)

    # ── exports ─────────────────────────────────────────────

    @staticmethod
    def _exports(tree: ast.Module) -> set[str]:
        symbols: set[str] = set()
        declared: list[str] | None = None
        for node in tree.body:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                symbols.add(node.name)
            elif isinstance(node, (ast.Assign, ast.AnnAssign)):
                targets = node.targets if isinstance(node, ast.Assign) else [node.target]
                for target in targets:
                    if not isinstance(target, ast.Name):
                        continue
                    if target.id == "__all__" and isinstance(node.value, (ast.List, ast.Tuple)):
                        declared = [
                            elt.value for elt in node.value.elts
                            if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
                        ]
                    else:
                        symbols.add(target.id)
        if declared is not None:
            return set(declared)
        return {s for s in symbols if not s.startswith("_")}

    @staticmethod
    def _docstring_nodes(tree: ast.Module) -> set[ast.AST]:
        nodes: set[ast.AST] = set()
        for node in ast.walk(tree):
            if isinstance(node, (ast.Module, ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
                body = node.body
                if (body and isinstance(body[0], ast.Expr)
                        and isinstance(body[0].value, ast.Constant)
                        and isinstance(body[0].value.value, str)):
                    nodes.add(body[0].value)
        return nodes
