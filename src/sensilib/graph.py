"""
Dependency ordering of market objects.

A curve depends on the curves its calibrator needs (prerequisites) and on
the curves it is built from (components). Whenever curves are bumped, they
and everything that depends on them must be refitted prerequisites first.

DependencyGraph discovers the full parent closure of a set of items and
orders it topologically (Kahn's algorithm). A cycle is reported as
CyclicDependencyError instead of looping.
"""

from contextlib import contextmanager
from typing import Callable, Dict, Generic, Iterable, Iterator, List, Set, TypeVar

import structlog

from .errors import CyclicDependencyError


logger = structlog.get_logger(__name__)

T = TypeVar("T")

ParentGetter = Callable[[T], Iterable[T]]


def curve_parents(curve) -> List:
    """Prerequisite and component curves of a curve."""
    parents = []
    seen: Set[int] = set()
    for parent in list(curve.prerequisite_curves()) + list(curve.component_curves()):
        if parent is None or parent is curve or id(parent) in seen:
            continue
        seen.add(id(parent))
        parents.append(parent)
    return parents


class DependencyGraph(Generic[T]):
    """
    Topologically ordered closure of items under a parent relation.

    Iteration yields every item after all of its parents. Items are keyed by
    identity, so unhashable or value-equal objects are handled correctly.

    Attributes:
        items: The items the graph was built from
    """

    def __init__(self, items: Iterable[T], get_parents: ParentGetter = curve_parents):
        self.items = list(items)
        self._get_parents = get_parents
        self._nodes: Dict[int, T] = {}
        self._parents: Dict[int, List[int]] = {}
        for item in self.items:
            self._discover(item)
        self._ordered = self._sort()

    def _discover(self, root: T) -> None:
        stack = [root]
        while stack:
            item = stack.pop()
            key = id(item)
            if key in self._nodes:
                continue
            self._nodes[key] = item
            parents = [p for p in self._get_parents(item) if p is not None]
            self._parents[key] = [id(p) for p in parents]
            stack.extend(p for p in parents if id(p) not in self._nodes)

    def _sort(self) -> List[T]:
        # Discovery order breaks ties so results are deterministic
        order = list(self._nodes)
        position = {key: i for i, key in enumerate(order)}
        children: Dict[int, List[int]] = {key: [] for key in order}
        pending = {key: 0 for key in order}
        for key in order:
            for parent in set(self._parents[key]):
                children[parent].append(key)
                pending[key] += 1

        ready = sorted((k for k in order if pending[k] == 0), key=position.get)
        result: List[T] = []
        while ready:
            key = ready.pop(0)
            result.append(self._nodes[key])
            released = []
            for child in children[key]:
                pending[child] -= 1
                if pending[child] == 0:
                    released.append(child)
            ready = sorted(ready + released, key=position.get)

        if len(result) != len(order):
            stuck = [self._name(self._nodes[k]) for k in order if pending[k] > 0]
            raise CyclicDependencyError(f"Cyclic dependency between: {', '.join(stuck)}")
        return result

    @staticmethod
    def _name(item) -> str:
        return str(getattr(item, "name", item))

    def __iter__(self) -> Iterator[T]:
        return iter(self._ordered)

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, item) -> bool:
        return id(item) in self._nodes

    def ordered(self) -> List[T]:
        """Items with prerequisites first."""
        return list(self._ordered)

    def reverse_ordered(self) -> List[T]:
        """Items with dependents first."""
        return list(reversed(self._ordered))

    def parents_of(self, item: T) -> List[T]:
        return [self._nodes[k] for k in self._parents.get(id(item), [])]

    @staticmethod
    def get_descendants(items: Iterable[T], population: Iterable[T],
                        get_parents: ParentGetter = curve_parents) -> List[T]:
        """
        Items plus every member of the population depending on them.

        Args:
            items: Starting items
            population: Candidates that may depend on the items
            get_parents: Parent relation

        Returns:
            The items and their transitive dependents within the population,
            in topological order
        """
        items = list(items)
        population = list(population)
        graph = DependencyGraph(items + population, get_parents)
        selected: Set[int] = {id(i) for i in items}
        for node in graph:
            if id(node) in selected:
                continue
            if any(id(p) in selected for p in graph.parents_of(node)):
                selected.add(id(node))
        keep = selected & ({id(i) for i in items} | {id(p) for p in population})
        return [node for node in graph if id(node) in keep]


# Curves registered by an active dependency scope, keyed by identity
_active_scopes: Dict[int, int] = {}


def is_in_dependency_scope(curve) -> bool:
    """Whether a curve is registered by an active dependency scope."""
    return _active_scopes.get(id(curve), 0) > 0


@contextmanager
def curve_dependency_scope(curves: Iterable) -> Iterator[DependencyGraph]:
    """
    Build a dependency graph and register its curves for the scope duration.

    Registration is reference counted so scopes may nest; every curve is
    unregistered on exit, including when the body raises.

    Yields:
        DependencyGraph over the curves and their parents
    """
    graph = DependencyGraph(curves)
    keys = [id(c) for c in graph]
    for key in keys:
        _active_scopes[key] = _active_scopes.get(key, 0) + 1
    logger.debug("dependency_scope: enter", curves=len(keys))
    try:
        yield graph
    finally:
        for key in keys:
            count = _active_scopes.get(key, 0) - 1
            if count > 0:
                _active_scopes[key] = count
            else:
                _active_scopes.pop(key, None)
        logger.debug("dependency_scope: exit", curves=len(keys))


__all__ = [
    "DependencyGraph",
    "curve_parents",
    "curve_dependency_scope",
    "is_in_dependency_scope",
]
