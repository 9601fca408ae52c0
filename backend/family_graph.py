"""Indexed, read-only snapshot of a family's people and relationship edges."""

import logging
from collections.abc import Collection, Iterable, Iterator
from datetime import date

import networkx as nx

from family_models import Gender, MarriageEdge, ParentChildEdge, Person

logger = logging.getLogger("fambam.family_graph")


class FamilyGraph:
    """Lookup tables over one family universe.

    People keep their input order, and every adjacency list keeps edge input
    order, so traversals over the graph are deterministic. Edges that point
    at someone outside the snapshot (or outside ``scope``) are set aside
    instead of failing the whole build.

    Args:
        people: Family members
        parent_child_edges: Parent -> child links
        marriage_edges: Spouse pairs
        scope: Optional person ids to restrict the graph to
    """

    def __init__(
        self,
        people: Iterable[Person],
        parent_child_edges: Iterable[ParentChildEdge],
        marriage_edges: Iterable[MarriageEdge],
        scope: Collection[int] | None = None,
    ):
        allowed = set(scope) if scope is not None else None

        self.people: dict[int, Person] = {}
        for person in people:
            if allowed is not None and person.id not in allowed:
                continue
            if person.id in self.people:
                logger.debug(f"Ignoring duplicate person record {person.id}")
                continue
            self.people[person.id] = person

        self._order = {pid: index for index, pid in enumerate(self.people)}
        self._parents: dict[int, list[int]] = {pid: [] for pid in self.people}
        self._children: dict[int, list[int]] = {pid: [] for pid in self.people}
        self._marriages_of: dict[int, list[MarriageEdge]] = {pid: [] for pid in self.people}

        self.parent_child_edges: list[ParentChildEdge] = []
        self.dangling_parent_child: list[ParentChildEdge] = []
        for edge in parent_child_edges:
            if edge.parent_id not in self.people or edge.child_id not in self.people:
                self.dangling_parent_child.append(edge)
                continue
            if edge.child_id in self._children[edge.parent_id]:
                continue
            self._children[edge.parent_id].append(edge.child_id)
            self._parents[edge.child_id].append(edge.parent_id)
            self.parent_child_edges.append(edge)

        self.marriages: list[MarriageEdge] = []
        self.dangling_marriages: list[MarriageEdge] = []
        seen_pairs: set[frozenset[int]] = set()
        for marriage in marriage_edges:
            if marriage.spouse1_id not in self.people or marriage.spouse2_id not in self.people:
                self.dangling_marriages.append(marriage)
                continue
            if marriage.pair in seen_pairs:
                continue
            seen_pairs.add(marriage.pair)
            self.marriages.append(marriage)
            self._marriages_of[marriage.spouse1_id].append(marriage)
            self._marriages_of[marriage.spouse2_id].append(marriage)

        if self.dangling_parent_child or self.dangling_marriages:
            logger.debug(
                f"Skipped {len(self.dangling_parent_child)} parent-child and "
                f"{len(self.dangling_marriages)} marriage edges with unknown people"
            )

        self._cyclic_edges: set[tuple[int, int]] | None = None

    def __len__(self) -> int:
        return len(self.people)

    def __contains__(self, person_id: object) -> bool:
        return person_id in self.people

    def __iter__(self) -> Iterator[int]:
        return iter(self.people)

    def parents_of(self, person_id: int) -> list[int]:
        return self._parents.get(person_id, [])

    def children_of(self, person_id: int) -> list[int]:
        return self._children.get(person_id, [])

    def marriages_of(self, person_id: int, active_only: bool = False) -> list[MarriageEdge]:
        marriages = self._marriages_of.get(person_id, [])
        if active_only:
            return [m for m in marriages if m.is_active]
        return marriages

    def stored_generations(self) -> dict[int, int]:
        """Generation levels already recorded on the person records."""
        return {
            pid: person.generation_level
            for pid, person in self.people.items()
            if person.generation_level is not None
        }

    def position(self, person_id: int) -> int:
        """Input position of a person, used as the final tie-breaker everywhere."""
        return self._order[person_id]

    def by_birth(self, person_ids: Iterable[int]) -> list[int]:
        """Sort ids by birth date (unknown dates last), then input order."""
        def key(pid: int) -> tuple[bool, date, int]:
            birth = self.people[pid].birth_date
            return (birth is None, birth or date.min, self._order[pid])

        return sorted(person_ids, key=key)

    def parents_male_first(self, person_id: int) -> list[int]:
        return sorted(
            self.parents_of(person_id),
            key=lambda pid: (self.people[pid].gender != Gender.MALE, self._order[pid]),
        )

    # ------------------------------------------------------------------------
    # networkx views
    # ------------------------------------------------------------------------

    def parent_graph(self) -> nx.DiGraph:
        """Directed parent -> child graph of the snapshot."""
        G = nx.DiGraph()
        G.add_nodes_from(self.people)
        G.add_edges_from((e.parent_id, e.child_id) for e in self.parent_child_edges)
        return G

    def cyclic_edges(self) -> set[tuple[int, int]]:
        """Parent-child edges that lie on a cycle (bad data)."""
        if self._cyclic_edges is None:
            G = self.parent_graph()
            edges: set[tuple[int, int]] = set()
            for component in nx.strongly_connected_components(G):
                if len(component) > 1:
                    edges.update(G.subgraph(component).edges())
            if edges:
                logger.warning(f"Parent-child data contains {len(edges)} edges on cycles")
            self._cyclic_edges = edges
        return self._cyclic_edges

    def find_cycle(self) -> list[int] | None:
        """Return the people on one parent-child cycle, or None when acyclic."""
        try:
            cycle = nx.find_cycle(self.parent_graph(), orientation="original")
        except nx.NetworkXNoCycle:
            return None
        return [edge[0] for edge in cycle]
