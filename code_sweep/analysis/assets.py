"""Asset usage tracker: maps static assets to the files that reference them."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from code_sweep.models import (
    AssetNode,
    DependencyGraph,
    InventoryEntry,
    ReferenceKind,
    UsageType,
)

# Strongest evidence first
_USAGE_PRIORITY = (UsageType.STATIC_IMPORT, UsageType.STYLESHEET_URL, UsageType.STRING_LITERAL)

_KIND_TO_USAGE = {
    ReferenceKind.STATIC: UsageType.STATIC_IMPORT,
    ReferenceKind.DYNAMIC: UsageType.STATIC_IMPORT,
    ReferenceKind.GLOB: UsageType.STATIC_IMPORT,
    ReferenceKind.STYLESHEET_URL: UsageType.STYLESHEET_URL,
    ReferenceKind.STRING_LITERAL: UsageType.STRING_LITERAL,
}


def usage_type_for(kinds: Iterable[ReferenceKind]) -> UsageType | None:
    usages = {_KIND_TO_USAGE[k] for k in kinds}
    for usage in _USAGE_PRIORITY:
        if usage in usages:
            return usage
    return None


def is_public_path(path: str, public_dir: str) -> bool:
    return bool(public_dir) and path.startswith(public_dir + "/")


def build_asset_nodes(
    entries: Iterable[InventoryEntry],
    inbound: Mapping[str, Iterable[str]],
    edge_kinds: Mapping[tuple[str, str], set[ReferenceKind]],
    public_dir: str,
) -> dict[str, AssetNode]:
    """One ``AssetNode`` per asset entry with its referrers and strongest usage."""
    nodes: dict[str, AssetNode] = {}
    for entry in entries:
        referrers = frozenset(inbound.get(entry.path, ()))
        kinds: set[ReferenceKind] = set()
        for referrer in referrers:
            kinds |= edge_kinds.get((referrer, entry.path), set())
        nodes[entry.path] = AssetNode(
            path=entry.path,
            referenced_in=referrers,
            usage_type=usage_type_for(kinds),
            is_public=is_public_path(entry.path, public_dir),
            size=entry.size,
            extension=entry.extension,
        )
    return nodes


@dataclass
class AssetUsageReport:
    used: list[str] = field(default_factory=list)
    unused: list[str] = field(default_factory=list)
    # referenced only from files that are themselves unreachable
    dead_referrers_only: list[str] = field(default_factory=list)
    public_unused: list[str] = field(default_factory=list)
    by_usage: dict[str, int] = field(default_factory=dict)
    unused_bytes: int = 0


def asset_usage_report(graph: DependencyGraph) -> AssetUsageReport:
    report = AssetUsageReport()
    for path in sorted(graph.assets):
        node = graph.assets[path]
        if node.usage_type is not None:
            key = node.usage_type.value
            report.by_usage[key] = report.by_usage.get(key, 0) + 1
        if not graph.asset_is_unused(path):
            report.used.append(path)
            continue
        report.unused.append(path)
        report.unused_bytes += node.size
        if node.referenced_in:
            report.dead_referrers_only.append(path)
        if node.is_public:
            report.public_unused.append(path)
    return report
