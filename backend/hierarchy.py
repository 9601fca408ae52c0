"""Couple-centric family hierarchy for the tree view.

The tree is rooted at a couple. Their children form the children
row; everyone else is grouped by generation level. Within every couple node
the biological descendant is ``spouse1`` and the person who married into the
family is ``spouse2``, which is how the renderer tells blood lineage from
marriage.
"""

import logging
from collections.abc import Collection, Iterable, Mapping
from datetime import date

from family_graph import FamilyGraph
from family_models import (
    CoupleNode,
    GenerationGroup,
    HierarchyNode,
    HierarchyTree,
    IndividualNode,
    MarriageEdge,
    MarriageInfo,
    ParentChildEdge,
    ParentRef,
    Person,
    RootCouple,
)
from generations import compute_generations

logger = logging.getLogger("fambam.hierarchy")

NO_ROOT_COUPLE_MESSAGE = "No root couple found"


def build_hierarchy(
    people: Iterable[Person],
    parent_child_edges: Iterable[ParentChildEdge],
    marriage_edges: Iterable[MarriageEdge],
    generations: Mapping[int, int] | None = None,
    scope: Collection[int] | None = None,
) -> HierarchyTree:
    """
    Build the rendering hierarchy for a family.

    Args:
        people: Family members
        parent_child_edges: Parent -> child links
        marriage_edges: Spouse pairs
        generations: Precomputed generation levels; computed when omitted
        scope: Optional person ids to restrict the tree to

    Returns:
        HierarchyTree; when no couple can anchor the tree, an empty tree
        carrying ``NO_ROOT_COUPLE_MESSAGE``
    """
    graph = FamilyGraph(people, parent_child_edges, marriage_edges, scope=scope)
    return build_hierarchy_for_graph(graph, generations)


def build_hierarchy_for_graph(graph: FamilyGraph, generations: Mapping[int, int] | None = None) -> HierarchyTree:
    if generations is None:
        generations = compute_generations(graph)
    return HierarchyBuilder(graph, generations).build()


def marriage_info(marriage: MarriageEdge) -> MarriageInfo:
    return MarriageInfo(
        id=marriage.id,
        marriage_date=marriage.marriage_date,
        marriage_place=marriage.marriage_place,
        status=marriage.status,
    )


class HierarchyBuilder:
    """Single-use builder; tracks which people have been placed so far."""

    def __init__(self, graph: FamilyGraph, generations: Mapping[int, int]):
        self.graph = graph
        self.levels: dict[int, int] = {}
        for pid, person in graph.people.items():
            level = generations.get(pid, person.generation_level)
            if level is None:
                logger.debug(f"Person {pid} has no generation level, placing at 0")
                level = 0
            self.levels[pid] = level
        self.placed: set[int] = set()

    def build(self) -> HierarchyTree:
        root = self.select_root_couple()
        if root is None:
            logger.info("No marriage between known people; returning empty hierarchy")
            return HierarchyTree(message=NO_ROOT_COUPLE_MESSAGE)

        self.placed.update((root.spouse1_id, root.spouse2_id))
        root_couple = RootCouple(
            spouse1=self._view(root.spouse1_id),
            spouse2=self._view(root.spouse2_id),
            marriage_info=marriage_info(root),
        )
        logger.debug(f"Root couple: {root.spouse1_id} & {root.spouse2_id}")

        children_row = self.build_children_row(root)
        additional_generations = self.build_generation_groups()

        placed_levels = [self.levels[pid] for pid in self.placed]
        return HierarchyTree(
            root_couple=root_couple,
            children_row=children_row,
            additional_generations=additional_generations,
            total_members=len(self.placed),
            total_generations=max(placed_levels) - min(placed_levels) + 1,
            root_generation=min(self.levels[root.spouse1_id], self.levels[root.spouse2_id]),
        )

    def select_root_couple(self) -> MarriageEdge | None:
        """
        Earliest generation first, then marriage date, then spouse1 birth date (unknown dates last).

        Every marriage between known people is a candidate, whatever its status:
        a divorced founding couple still anchors the tree.
        """
        candidates = self.graph.marriages
        if not candidates:
            return None

        def key(indexed: tuple[int, MarriageEdge]) -> tuple:
            index, marriage = indexed
            spouse1 = self.graph.people[marriage.spouse1_id]
            return (
                min(self.levels[marriage.spouse1_id], self.levels[marriage.spouse2_id]),
                marriage.marriage_date is None,
                marriage.marriage_date or date.min,
                spouse1.birth_date is None,
                spouse1.birth_date or date.min,
                index,
            )

        return min(enumerate(candidates), key=key)[1]

    def build_children_row(self, root: MarriageEdge) -> list[HierarchyNode]:
        """Children of either root spouse, each paired with a married-in spouse if any."""
        child_ids: list[int] = []
        for parent_id in (root.spouse1_id, root.spouse2_id):
            for child_id in self.graph.children_of(parent_id):
                if child_id not in child_ids and child_id not in self.placed:
                    child_ids.append(child_id)

        row = []
        for child_id in self.graph.by_birth(child_ids):
            if child_id in self.placed:
                continue
            row.append(self._make_node(child_id, biological=True))
        return row

    def build_generation_groups(self) -> list[GenerationGroup]:
        """Group everyone not yet placed by generation level."""
        by_level: dict[int, list[int]] = {}
        for pid in self.graph:
            if pid not in self.placed:
                by_level.setdefault(self.levels[pid], []).append(pid)

        groups = []
        for level in sorted(by_level):
            nodes = []
            for pid in self.graph.by_birth(by_level[level]):
                if pid in self.placed:
                    continue
                nodes.append(self._make_node(pid))
            if nodes:
                groups.append(GenerationGroup(level=level, members=nodes))
        return groups

    def _make_node(self, member_id: int, biological: bool = False) -> HierarchyNode:
        """
        Couple node when the member has an active, unplaced spouse; individual node otherwise.

        With ``biological`` the member is known to descend from the family.
        Otherwise whichever spouse has parents is treated as the descendant,
        defaulting to the member when both or neither do.
        """
        marriage = self._active_marriage(member_id)
        if marriage is None:
            self.placed.add(member_id)
            return IndividualNode(member=self._view(member_id), parents=self._parent_refs(member_id))

        first, second = member_id, marriage.other_spouse(member_id)
        if not biological and not self.graph.parents_of(first) and self.graph.parents_of(second):
            first, second = second, first
        self.placed.update((first, second))
        return CoupleNode(
            spouse1=self._view(first),
            spouse2=self._view(second),
            marriage_info=marriage_info(marriage),
            parents=self._parent_refs(first),
        )

    def _active_marriage(self, person_id: int) -> MarriageEdge | None:
        for marriage in self.graph.marriages_of(person_id, active_only=True):
            if marriage.other_spouse(person_id) not in self.placed:
                return marriage
        return None

    def _parent_refs(self, person_id: int) -> list[ParentRef]:
        refs = []
        for parent_id in self.graph.parents_male_first(person_id):
            parent = self.graph.people[parent_id]
            refs.append(ParentRef(id=parent.id, first_name=parent.first_name, last_name=parent.last_name))
        return refs

    def _view(self, person_id: int) -> Person:
        return self.graph.people[person_id].model_copy(update={"generation_level": self.levels[person_id]})
