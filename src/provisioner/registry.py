"""Ordered registry of named actions and their dependency graph."""
from __future__ import annotations

import heapq
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Set

from .actions.base import Action
from .errors import CycleDetected, DuplicateName, UnknownDependency


class StepRegistry:
    """Actions keyed by name, kept in registration order."""

    def __init__(self, actions: Iterable[Action] = ()) -> None:
        self._actions: Dict[str, Action] = {}
        actions = list(actions)
        if actions:
            self.register_many(actions)

    def register(self, action: Action) -> Action:
        """Add one action whose dependencies are all registered already."""

        if action.name in self._actions:
            raise DuplicateName(f"action {action.name!r} is already registered", action=action.name)
        if action.name in action.depends_on:
            raise CycleDetected([action.name])
        missing = sorted(dep for dep in action.depends_on if dep not in self._actions)
        if missing:
            raise UnknownDependency(
                f"depends on unregistered {', '.join(missing)}", action=action.name
            )
        self._actions[action.name] = action
        return action

    def register_many(self, actions: Iterable[Action]) -> None:
        """
        Add a batch of actions atomically.

        Dependencies may point at other members of the batch, so the batch can
        be given in any order. Nothing is registered if any action is rejected.
        """
        batch: Dict[str, Action] = {}
        for action in actions:
            if action.name in self._actions or action.name in batch:
                raise DuplicateName(f"action {action.name!r} is already registered", action=action.name)
            batch[action.name] = action

        known = set(self._actions) | set(batch)
        for action in batch.values():
            missing = sorted(dep for dep in action.depends_on if dep not in known)
            if missing:
                raise UnknownDependency(
                    f"depends on unregistered {', '.join(missing)}", action=action.name
                )

        combined = dict(self._actions)
        combined.update(batch)
        cycles = find_cycles({name: action.depends_on for name, action in combined.items()})
        if cycles:
            raise CycleDetected(cycles[0])
        self._actions = combined

    def get(self, name: str) -> Action:
        return self._actions[name]

    def names(self) -> List[str]:
        return list(self._actions)

    def resolve_order(self) -> List[Action]:
        """Topological order; ties are broken by registration order."""

        position = {name: index for index, name in enumerate(self._actions)}
        remaining = {name: len(action.depends_on) for name, action in self._actions.items()}
        dependents: Dict[str, List[str]] = {name: [] for name in self._actions}
        for action in self._actions.values():
            for dep in action.depends_on:
                dependents.setdefault(dep, []).append(action.name)

        ready = [(position[name], name) for name, count in remaining.items() if count == 0]
        heapq.heapify(ready)
        ordered: List[Action] = []
        while ready:
            _, name = heapq.heappop(ready)
            ordered.append(self._actions[name])
            for child in dependents.get(name, []):
                remaining[child] -= 1
                if remaining[child] == 0:
                    heapq.heappush(ready, (position[child], child))

        if len(ordered) != len(self._actions):
            cycles = find_cycles({name: action.depends_on for name, action in self._actions.items()})
            raise CycleDetected(cycles[0] if cycles else [n for n, c in remaining.items() if c])
        return ordered

    def __len__(self) -> int:
        return len(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __iter__(self) -> Iterator[Action]:
        return iter(self._actions.values())


def find_cycles(graph: Mapping[str, Iterable[str]]) -> List[List[str]]:
    """
    Return the member lists of every cycle in ``graph`` (node -> dependencies).

    Uses Tarjan's strongly connected components, so nodes that merely depend
    on a cycle are not reported as part of it.
    """
    index_of: Dict[str, int] = {}
    lowlink: Dict[str, int] = {}
    on_stack: Set[str] = set()
    stack: List[str] = []
    cycles: List[List[str]] = []
    counter = 0

    for root in graph:
        if root in index_of:
            continue
        # iterative DFS: (node, iterator over its edges)
        work: List[tuple] = [(root, iter(graph.get(root, ())))]
        index_of[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        while work:
            node, edges = work[-1]
            advanced: Optional[str] = None
            for dep in edges:
                if dep not in graph:
                    continue
                if dep not in index_of:
                    advanced = dep
                    break
                if dep in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[dep])
            if advanced is not None:
                index_of[advanced] = lowlink[advanced] = counter
                counter += 1
                stack.append(advanced)
                on_stack.add(advanced)
                work.append((advanced, iter(graph.get(advanced, ()))))
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])
            if lowlink[node] == index_of[node]:
                component: List[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                if len(component) > 1 or node in set(graph.get(node, ())):
                    cycles.append(sorted(component))
    return cycles


__all__ = ["StepRegistry", "find_cycles"]
