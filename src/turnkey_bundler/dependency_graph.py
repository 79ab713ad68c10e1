# -*- coding: utf-8 -*-
import logging

import networkx

from turnkey_bundler.errors import AmbiguousIdentityError
from turnkey_bundler.errors import CyclicDependencyError


logger = logging.getLogger(__name__)


def reach_set(graph, roots):
    """Finds all of the vertices that can be reached from `roots`, including the roots.

    Args:
        graph (networkx.DiGraph): The graph to traverse along its outgoing edges.
        roots (iterable): The vertices to start from.
    Returns:
        set: The reachable vertices.
    """
    visited = set()
    pending = set(roots)
    while pending:
        vertex = pending.pop()
        visited.add(vertex)
        for successor in graph.successors(vertex):
            if successor not in visited:
                pending.add(successor)
    return visited


def build_identity_lookup(libraries):
    """Maps fuzzy names to analyzable libraries, keeping the least fuzzily named on collisions."""
    lookup = {}
    for library in libraries:
        existing = lookup.get(library.fuzzy_name)
        if existing is None or existing == library:
            lookup[library.fuzzy_name] = library
            continue
        difference = existing.fuzzy_mismatch - library.fuzzy_mismatch
        if difference == 0:
            raise AmbiguousIdentityError((
                'The equally fuzzy libraries %r and %r share the fuzzy name "%s" and can\'t be '
                'told apart.'
            ) % (existing, library, library.fuzzy_name))
        if difference > 0:
            logger.debug('Preferring %r over %r for "%s".' % (
                library, existing, library.fuzzy_name))
            lookup[library.fuzzy_name] = library
    return lookup


def sort_key(library):
    return (str(library.fuzzy_name), str(library.linkage_name), repr(library))


class DependencyGraph(object):
    """An immutable graph of libraries and the libraries that they link against.

    Edges point from a library to its dependencies. The analyzed libraries are guaranteed to be
    free of dependency cycles. Dependencies that couldn't be matched to an analyzed library are
    kept as speculative (system) libraries, which never have dependencies of their own.
    """
    def __init__(self, graph):
        self._graph = graph

    @classmethod
    def of(cls, libraries):
        """Builds the dependency graph for a collection of analyzable libraries.

        Dependencies are matched to the analyzed libraries by their fuzzy names, so that
        `libfoo.so.1` resolves to a bundled `libfoo.so.1.2.3`.

        Raises:
            AmbiguousIdentityError: If two libraries can't be told apart by their fuzzy names.
            CyclicDependencyError: If the libraries depend on each other in a loop.
        """
        libraries = list(libraries)
        lookup = build_identity_lookup(libraries)

        graph = networkx.DiGraph()
        for library in libraries:
            graph.add_node(library, analyzable=True)

        speculative_libraries = {}
        for library in libraries:
            for dependency in sorted(library.library_dependencies, key=sort_key):
                target = lookup.get(dependency.fuzzy_name)
                if target is None:
                    target = speculative_libraries.setdefault(dependency.fuzzy_name, dependency)
                    graph.add_node(target, analyzable=False)
                graph.add_edge(library, target)

        if not networkx.is_directed_acyclic_graph(graph):
            cycle = networkx.find_cycle(graph)
            raise CyclicDependencyError([source for (source, target) in cycle])

        return cls(graph)

    def __contains__(self, library):
        return library in self._graph

    def __len__(self):
        return self._graph.number_of_nodes()

    def __repr__(self):
        edges = ', '.join('%s -> %s' % (source.fuzzy_name, target.fuzzy_name)
                          for (source, target) in sorted(self._graph.edges, key=lambda edge: (
                              sort_key(edge[0]), sort_key(edge[1]))))
        return '<DependencyGraph(%s)>' % edges

    def is_analyzable(self, library):
        return self._graph.nodes[library]['analyzable']

    @property
    def libraries(self):
        """set: All of the libraries in the graph, analyzable and speculative."""
        return set(self._graph.nodes)

    def dependencies_of(self, library):
        """set: The direct dependencies of a library within this graph."""
        return set(self._graph.successors(library))

    def reach_set(self, roots):
        return reach_set(self._graph, roots)

    def subgraph_from(self, roots):
        """Creates a new graph containing only `roots` and their transitive dependencies."""
        return DependencyGraph(self._graph.subgraph(self.reach_set(roots)).copy())

    @property
    def linkage_roots(self):
        """set: The analyzable libraries that no other library in this graph depends on."""
        return set(library for library in self._graph.nodes
                   if self.is_analyzable(library) and self._graph.in_degree(library) == 0)

    @property
    def local_libraries_in_load_order(self):
        """list: The analyzable libraries, each one placed before all of its dependencies.

        Ties are broken by name so that the order is reproducible.
        """
        return [library for library in
                networkx.lexicographical_topological_sort(self._graph, key=sort_key)
                if self.is_analyzable(library)]

    @property
    def system_libraries(self):
        """set: The speculative libraries, these are expected to be present on the target."""
        return set(library for library in self._graph.nodes if not self.is_analyzable(library))
