"""Tests for specifier resolution."""

import pytest

from code_sweep.analysis.resolver import PathResolver, resolve_import_path
from code_sweep.config import SweepConfig
from code_sweep.models import Reference, ReferenceKind

KNOWN = [
    "assets/logo.png",
    "public/favicon.png",
    "src/App.tsx",
    "src/Component.tsx",
    "src/component.tsx",
    "src/components/Button.tsx",
    "src/components/utils.ts",
    "src/icons/a.svg",
    "src/icons/b.png",
    "src/lib/api/index.ts",
    "src/modules/a.ts",
    "src/modules/b.ts",
    "src/modules/c.css",
    "src/pages/About.tsx",
    "src/pages/Home.tsx",
    "src/util.ts",
    "styles/_variables.scss",
    "styles/main.scss",
    "app/__init__.py",
    "app/models.py",
]


@pytest.fixture
def resolver():
    return PathResolver(KNOWN, SweepConfig(aliases={"~lib/": "src/lib/"}))


def _static(spec, **kw):
    return Reference(spec, ReferenceKind.STATIC, **kw)


@pytest.mark.parametrize("spec, current, expected", [
    ("./utils", "src/components/Button.tsx", "src/components/utils"),
    ("../../lib/api", "src/components/forms/Input.tsx", "src/lib/api"),
    ("react", "src/components/Button.tsx", "react"),
    ("@/utils", "src/components/Button.tsx", "@/utils"),
])
def test_resolve_import_path(spec, current, expected):
    assert resolve_import_path(spec, current) == expected


class TestStaticResolution:
    def test_relative_with_extension_probe(self, resolver):
        res = resolver.resolve(_static("./utils"), "src/components/Button.tsx")
        assert res.targets == ("src/components/utils.ts",)

    def test_directory_index(self, resolver):
        res = resolver.resolve(_static("../lib/api"), "src/components/Button.tsx")
        assert res.targets == ("src/lib/api/index.ts",)

    def test_case_sensitive(self, resolver):
        res = resolver.resolve(_static("./Component"), "src/App.tsx")
        assert res.targets == ("src/Component.tsx",)

    def test_emitted_js_extension_maps_to_ts(self, resolver):
        res = resolver.resolve(_static("./util.js"), "src/App.tsx")
        assert res.targets == ("src/util.ts",)

    def test_bare_package_is_external(self, resolver):
        res = resolver.resolve(_static("react"), "src/App.tsx")
        assert res.external
        assert not res.unresolved

    def test_missing_relative_is_unresolved(self, resolver):
        res = resolver.resolve(_static("./missing"), "src/App.tsx")
        assert res.unresolved

    def test_aliases(self, resolver):
        assert resolver.resolve(_static("@/lib/api"), "src/App.tsx").targets == ("src/lib/api/index.ts",)
        assert resolver.resolve(_static("~lib/api"), "src/App.tsx").targets == ("src/lib/api/index.ts",)

    def test_sass_partial(self, resolver):
        res = resolver.resolve(_static("variables"), "styles/main.scss")
        assert res.targets == ("styles/_variables.scss",)

    def test_python_root_relative(self, resolver):
        res = resolver.resolve(_static("app/models", root_relative=True), "main.py")
        assert res.targets == ("app/models.py",)
        res = resolver.resolve(_static("app", root_relative=True), "main.py")
        assert res.targets == ("app/__init__.py",)
        assert resolver.resolve(_static("requests", root_relative=True), "main.py").external


class TestStringResolution:
    def test_server_root_against_project_and_public(self, resolver):
        ref = Reference("/assets/logo.png", ReferenceKind.STRING_LITERAL, optional=True)
        assert resolver.resolve(ref, "src/App.tsx").targets == ("assets/logo.png",)
        ref = Reference("/favicon.png", ReferenceKind.STRING_LITERAL, optional=True)
        assert resolver.resolve(ref, "src/App.tsx").targets == ("public/favicon.png",)

    def test_unmatched_string_is_neither_external_nor_target(self, resolver):
        ref = Reference("img/none.png", ReferenceKind.STRING_LITERAL, optional=True)
        res = resolver.resolve(ref, "src/App.tsx")
        assert res.targets == ()
        assert not res.external


class TestDynamicResolution:
    def test_opaque_is_uncertain(self, resolver):
        res = resolver.resolve(
            Reference("loadName()", ReferenceKind.DYNAMIC, opaque=True), "src/App.tsx",
        )
        assert res.uncertain
        assert res.targets == ()

    def test_glob(self, resolver):
        res = resolver.resolve(Reference("./modules/*.ts", ReferenceKind.GLOB), "src/main.ts")
        assert res.targets == ("src/modules/a.ts", "src/modules/b.ts")

    def test_glob_excludes(self, resolver):
        ref = Reference("./modules/*", ReferenceKind.GLOB, excludes=("./modules/*.css",))
        assert resolver.resolve(ref, "src/main.ts").targets == ("src/modules/a.ts", "src/modules/b.ts")

    def test_require_context_filter(self, resolver):
        ref = Reference("./icons/*", ReferenceKind.GLOB, pattern_filter=r"\.svg$")
        assert resolver.resolve(ref, "src/icons.js").targets == ("src/icons/a.svg",)

    def test_template_with_fills(self, resolver):
        ref = Reference("./pages/${p}", ReferenceKind.DYNAMIC, template=True,
                        fills=("Home", "missing"))
        res = resolver.resolve(ref, "src/router.ts")
        assert res.targets == ("src/pages/Home.tsx",)
        assert not res.uncertain

    def test_template_degrades_to_glob(self, resolver):
        ref = Reference("./pages/${p}", ReferenceKind.DYNAMIC, template=True)
        res = resolver.resolve(ref, "src/router.ts")
        assert res.targets == ("src/pages/About.tsx", "src/pages/Home.tsx")
        assert res.uncertain
