"""Reachability traversal and cycle detection over an index-based adjacency list."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping


def reachable_from(roots: Iterable[str], adjacency: Mapping[str, Iterable[str]]) -> set[str]:
    """BFS from ``roots``; every node is visited once."""
    visited: set[str] = set()
    queue = deque()
    for root in roots:
        if root not in visited:
            visited.add(root)
            queue.append(root)
    while queue:
        current = queue.popleft()
        for neighbor in adjacency.get(current, ()):
            if neighbor not in visited:
                visited.add(neighbor)
                queue.append(neighbor)
    return visited


def strongly_connected_components(
    nodes: Iterable[str],
    adjacency: Mapping[str, Iterable[str]],
) -> list[list[str]]:
    """Tarjan's algorithm, iterative so deep graphs never hit the recursion limit."""
    order = sorted(set(nodes))
    index_of = {node: i for i, node in enumerate(order)}
    successors = [
        sorted(index_of[n] for n in set(adjacency.get(node, ())) if n in index_of)
        for node in order
    ]

    n = len(order)
    index = [-1] * n
    lowlink = [0] * n
    on_stack = [False] * n
    stack: list[int] = []
    components: list[list[str]] = []
    counter = 0

    for start in range(n):
        if index[start] != -1:
            continue
        # (node, position in its successor list)
        work = [(start, 0)]
        index[start] = lowlink[start] = counter
        counter += 1
        stack.append(start)
        on_stack[start] = True

        while work:
            node, pos = work[-1]
            succ = successors[node]
            if pos < len(succ):
                work[-1] = (node, pos + 1)
                nxt = succ[pos]
                if index[nxt] == -1:
                    index[nxt] = lowlink[nxt] = counter
                    counter += 1
                    stack.append(nxt)
                    on_stack[nxt] = True
                    work.append((nxt, 0))
                elif on_stack[nxt]:
                    lowlink[node] = min(lowlink[node], index[nxt])
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])
            if lowlink[node] == index[node]:
                component: list[str] = []
                while True:
                    member = stack.pop()
                    on_stack[member] = False
                    component.append(order[member])
                    if member == node:
                        break
                components.append(sorted(component))

    return components


def find_circular_groups(
    nodes: Iterable[str],
    adjacency: Mapping[str, Iterable[str]],
) -> list[tuple[str, ...]]:
    """SCCs with more than one member, or a single node referencing itself."""
    groups: list[tuple[str, ...]] = []
    for component in strongly_connected_components(nodes, adjacency):
        if len(component) > 1:
            groups.append(tuple(component))
        elif component[0] in set(adjacency.get(component[0], ())):
            groups.append(tuple(component))
    groups.sort()
    return groups
