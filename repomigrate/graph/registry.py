"""Immutable module registry backed by a networkx dependency graph.

The registry is validated completely at load time: duplicate names,
unknown dependencies, cycles and dependencies on later phases are all
rejected before any module is touched. After construction the graph is
frozen, so concurrent readers need no locking.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple, Union

import networkx as nx

from repomigrate.errors import (
    CycleDetected,
    DuplicateModule,
    PhaseOrderViolation,
    UnknownDependency,
    UnknownModule,
)
from repomigrate.graph.catalog import load_catalog
from repomigrate.graph.models import CatalogEntry, Module

logger = logging.getLogger("repomigrate.graph.registry")


class ModuleRegistry:
    """Static catalog of modules with dependency-ordered queries.

    Edges point from a module to each of its dependencies.
    """

    def __init__(self, modules: Sequence[Module]) -> None:
        """Build and validate the registry.

        Args:
            modules: Modules in declaration order.

        Raises:
            DuplicateModule: Two modules share a name.
            UnknownDependency: A dependency is not in the catalog.
            CycleDetected: Dependency edges form a cycle.
            PhaseOrderViolation: A module depends on a later phase.
        """
        self._modules: Dict[str, Module] = {}
        for module in modules:
            if module.name in self._modules:
                raise DuplicateModule(module.name)
            self._modules[module.name] = module

        graph = nx.DiGraph()
        for module in modules:
            graph.add_node(module.name)
        for module in modules:
            for dependency in module.depends_on:
                if dependency not in self._modules:
                    raise UnknownDependency(module.name, dependency)
                graph.add_edge(module.name, dependency)

        if not nx.is_directed_acyclic_graph(graph):
            raw_cycle = nx.find_cycle(graph)
            raise CycleDetected([edge[0] for edge in raw_cycle])

        for module in modules:
            for dependency in module.depends_on:
                dep_phase = self._modules[dependency].phase
                if dep_phase > module.phase:
                    raise PhaseOrderViolation(
                        module.name, module.phase, dependency, dep_phase
                    )

        declared = {module.name: index for index, module in enumerate(modules)}
        # Dependencies first; ties broken by declaration order.
        topo = list(
            nx.lexicographical_topological_sort(
                graph.reverse(copy=True), key=lambda name: declared[name]
            )
        )
        position = {name: index for index, name in enumerate(topo)}
        self._ordered: Tuple[Module, ...] = tuple(
            sorted(
                self._modules.values(),
                key=lambda m: (m.phase, position[m.name]),
            )
        )
        self._graph = nx.freeze(graph)
        logger.info(
            "Registry loaded: %d modules in %d phase(s)",
            len(self._modules),
            len(self.phases()),
        )

    @classmethod
    def from_catalog(cls, entries: Sequence[CatalogEntry]) -> "ModuleRegistry":
        return cls([entry.to_module() for entry in entries])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def __iter__(self) -> Iterator[Module]:
        return iter(self._ordered)

    @property
    def graph(self) -> nx.DiGraph:
        """Frozen dependency graph (module -> dependency)."""
        return self._graph

    def get(self, name: str) -> Module:
        """Return module ``name``.

        Raises:
            UnknownModule: If the name is not registered.
        """
        try:
            return self._modules[name]
        except KeyError:
            raise UnknownModule(name) from None

    def phases(self) -> List[int]:
        return sorted({module.phase for module in self._modules.values()})

    def list_modules(self, phase: Optional[int] = None) -> Tuple[Module, ...]:
        """Return modules in phase order, dependencies before dependents.

        Args:
            phase: Restrict to one phase (all phases when None).
        """
        if phase is None:
            return self._ordered
        return tuple(module for module in self._ordered if module.phase == phase)

    def topological_order(self) -> List[str]:
        return [module.name for module in self._ordered]

    def dependencies_of(self, name: str) -> FrozenSet[Module]:
        """Direct dependencies of ``name``."""
        self.get(name)
        return frozenset(self._modules[dep] for dep in self._graph.successors(name))

    def dependents_of(self, name: str) -> FrozenSet[Module]:
        """Modules that directly depend on ``name``."""
        self.get(name)
        return frozenset(self._modules[dep] for dep in self._graph.predecessors(name))

    def transitive_dependents(self, name: str) -> FrozenSet[str]:
        """Names of every module with a dependency path to ``name``."""
        self.get(name)
        return frozenset(nx.ancestors(self._graph, name))


def load_registry(source: Union[str, Path, None] = None) -> ModuleRegistry:
    """Load and validate the registry from a catalog file or the built-in plan."""
    return ModuleRegistry.from_catalog(load_catalog(source))


__all__ = ["ModuleRegistry", "load_registry"]
