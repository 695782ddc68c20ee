# dayplan/linkgraph.py
"""Trigger graph over TaskLinks (task id -> linked task ids)."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from .model import TaskLink

WHITE, GREY, BLACK = 0, 1, 2


def link_graph(links: Iterable[TaskLink]) -> Dict[str, List[str]]:
    graph: Dict[str, List[str]] = {}
    for l in links:
        graph.setdefault(l.trigger_task_id, []).append(l.linked_task_id)
    return graph


def find_link_cycle(links: Iterable[TaskLink]) -> Optional[List[str]]:
    """Return a task-id path `[a, b, ..., a]` if the link graph has a cycle.

    Iterative DFS; chain length is not bounded by the recursion limit.
    """
    graph = link_graph(links)
    color: Dict[str, int] = {}

    for root in sorted(graph):
        if color.get(root, WHITE) != WHITE:
            continue
        color[root] = GREY
        path: List[str] = [root]
        pending: List[Iterator[str]] = [iter(graph[root])]

        while pending:
            nxt = next(pending[-1], None)
            if nxt is None:
                pending.pop()
                color[path.pop()] = BLACK
                continue
            c = color.get(nxt, WHITE)
            if c == GREY:
                return path[path.index(nxt):] + [nxt]
            if c == WHITE:
                color[nxt] = GREY
                path.append(nxt)
                pending.append(iter(graph.get(nxt, ())))
    return None
