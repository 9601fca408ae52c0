"""In-memory family storage.

Holds members, parent-child links and marriages for one family universe.
Every write that changes the relationship graph recalculates generation
levels before it returns, so readers never see stale generations.
"""

import logging
import threading
from collections import deque
from collections.abc import Iterable, Mapping

from family_graph import FamilyGraph
from family_models import (
    MarriageCreate,
    MarriageEdge,
    MarriageUpdate,
    MemberCreate,
    MemberUpdate,
    ParentChildCreate,
    ParentChildEdge,
    ParentChildUpdate,
    Person,
)
from generations import compute_generations

logger = logging.getLogger("fambam.family_store")


class FamilyStoreError(Exception):
    """Base class for rejected store operations."""


class MemberNotFoundError(FamilyStoreError):
    pass


class RelationshipNotFoundError(FamilyStoreError):
    pass


class DuplicateRelationshipError(FamilyStoreError):
    pass


class InvalidRelationshipError(FamilyStoreError):
    pass


class CircularAncestryError(FamilyStoreError):
    pass


class FamilyStore:
    """
    Thread-safe in-memory store.

    The API calls it from FastAPI's threadpool, so every read and write takes
    the same re-entrant lock.

    Args:
        root_person_id: Optional person placed at generation 0 by every recalculation
    """

    def __init__(self, root_person_id: int | None = None):
        self.root_person_id = root_person_id
        self._lock = threading.RLock()
        self._members: dict[int, Person] = {}
        self._parent_child: dict[int, ParentChildEdge] = {}
        self._marriages: dict[int, MarriageEdge] = {}
        self._next_member_id = 1
        self._next_parent_child_id = 1
        self._next_marriage_id = 1

    # ========================================================================
    # Snapshot interface
    # ========================================================================

    def list_people(self) -> list[Person]:
        with self._lock:
            return list(self._members.values())

    def list_parent_child_edges(self) -> list[ParentChildEdge]:
        with self._lock:
            return list(self._parent_child.values())

    def list_marriage_edges(self) -> list[MarriageEdge]:
        with self._lock:
            return list(self._marriages.values())

    def snapshot(self) -> FamilyGraph:
        """Consistent graph of the current contents."""
        with self._lock:
            return FamilyGraph(self.list_people(), self.list_parent_child_edges(), self.list_marriage_edges())

    def persist_generations(self, generations: Mapping[int, int]) -> None:
        """Bulk update of every member's generation level."""
        with self._lock:
            for member_id, level in generations.items():
                member = self._members.get(member_id)
                if member is not None and member.generation_level != level:
                    self._members[member_id] = member.model_copy(update={"generation_level": level})

    def set_root_person(self, member_id: int) -> dict[int, int]:
        """Pin ``member_id`` at generation 0 for this and all later recalculations."""
        with self._lock:
            self.get_member(member_id)
            self.root_person_id = member_id
            logger.info(f"Root person set to {member_id}")
            return self.recalculate_generations()

    def recalculate_generations(self, root: int | None = None) -> dict[int, int]:
        """Recompute and store generation levels for every member."""
        with self._lock:
            if root is None:
                root = self.root_person_id
            generations = compute_generations(self.snapshot(), root=root)
            self.persist_generations(generations)
        logger.info(f"Recalculated generation levels for {len(generations)} members")
        return generations

    # ========================================================================
    # Members
    # ========================================================================

    def get_member(self, member_id: int) -> Person:
        with self._lock:
            member = self._members.get(member_id)
        if member is None:
            raise MemberNotFoundError(f"Family member {member_id} not found")
        return member

    def add_member(self, data: MemberCreate) -> Person:
        with self._lock:
            member = Person(id=self._next_member_id, generation_level=0, **data.model_dump())
            self._members[member.id] = member
            self._next_member_id += 1
        logger.info(f"Added family member {member.id}: {member.full_name}")
        return member

    def update_member(self, member_id: int, data: MemberUpdate) -> Person:
        with self._lock:
            member = self.get_member(member_id)
            changes = data.model_dump(exclude_unset=True)
            for required in ("first_name", "gender", "is_living"):
                if required in changes and changes[required] is None:
                    del changes[required]
            updated = member.model_copy(update=changes)
            self._members[member_id] = updated
            # Birth dates decide which ancestor roots the generation walk.
            if updated.birth_date != member.birth_date:
                self.recalculate_generations()
                updated = self._members[member_id]
        logger.info(f"Updated family member {member_id}")
        return updated

    def delete_member(self, member_id: int) -> None:
        """Delete a member together with every relationship they take part in."""
        with self._lock:
            self.get_member(member_id)
            del self._members[member_id]
            self._parent_child = {
                eid: e for eid, e in self._parent_child.items()
                if member_id not in (e.parent_id, e.child_id)
            }
            self._marriages = {
                mid: m for mid, m in self._marriages.items()
                if member_id not in (m.spouse1_id, m.spouse2_id)
            }
            self.recalculate_generations()
        logger.info(f"Deleted family member {member_id}")

    # ========================================================================
    # Parent-child relationships
    # ========================================================================

    def detect_circular_ancestry(self, child_id: int, potential_parent_id: int) -> bool:
        """True if ``child_id`` is already an ancestor of (or is) ``potential_parent_id``."""
        with self._lock:
            parents_of: dict[int, list[int]] = {}
            for edge in self._parent_child.values():
                parents_of.setdefault(edge.child_id, []).append(edge.parent_id)

        visited = {potential_parent_id}
        queue = deque([potential_parent_id])
        while queue:
            pid = queue.popleft()
            for parent in parents_of.get(pid, []):
                if parent not in visited:
                    visited.add(parent)
                    queue.append(parent)
        return child_id in visited

    def add_parent_child(self, data: ParentChildCreate, check_circular: bool = True) -> ParentChildEdge:
        if data.parent_id == data.child_id:
            raise InvalidRelationshipError("A person cannot be their own parent")
        with self._lock:
            self.get_member(data.parent_id)
            self.get_member(data.child_id)
            if any(e.parent_id == data.parent_id and e.child_id == data.child_id for e in self._parent_child.values()):
                raise DuplicateRelationshipError(
                    f"Member {data.parent_id} is already a parent of {data.child_id}"
                )
            if check_circular and self.detect_circular_ancestry(data.child_id, data.parent_id):
                raise CircularAncestryError(
                    f"Cannot add relationship: would create circular ancestry. "
                    f"{data.parent_id} is a descendant of {data.child_id}."
                )

            edge = ParentChildEdge(id=self._next_parent_child_id, **data.model_dump())
            self._parent_child[edge.id] = edge
            self._next_parent_child_id += 1
            logger.info(f"Added parent-child relationship {edge.parent_id} -> {edge.child_id}")
            self.recalculate_generations()
        return edge

    def update_parent_child(self, edge_id: int, data: ParentChildUpdate) -> ParentChildEdge:
        with self._lock:
            edge = self._get_parent_child(edge_id)
            updated = edge.model_copy(update={"relationship_type": data.relationship_type})
            self._parent_child[edge_id] = updated
            self.recalculate_generations()
        return updated

    def delete_parent_child(self, edge_id: int) -> None:
        with self._lock:
            self._get_parent_child(edge_id)
            del self._parent_child[edge_id]
            logger.info(f"Deleted parent-child relationship {edge_id}")
            self.recalculate_generations()

    def _get_parent_child(self, edge_id: int) -> ParentChildEdge:
        edge = self._parent_child.get(edge_id)
        if edge is None:
            raise RelationshipNotFoundError(f"Parent-child relationship {edge_id} not found")
        return edge

    # ========================================================================
    # Marriages
    # ========================================================================

    def add_marriage(self, data: MarriageCreate) -> MarriageEdge:
        if data.spouse1_id == data.spouse2_id:
            raise InvalidRelationshipError("A person cannot marry themselves")
        with self._lock:
            self.get_member(data.spouse1_id)
            self.get_member(data.spouse2_id)
            marriage = MarriageEdge(id=self._next_marriage_id, **data.model_dump())
            if any(m.pair == marriage.pair for m in self._marriages.values()):
                raise DuplicateRelationshipError(
                    f"Members {data.spouse1_id} and {data.spouse2_id} already have a marriage record"
                )
            self._marriages[marriage.id] = marriage
            self._next_marriage_id += 1
            logger.info(f"Added marriage {marriage.spouse1_id} & {marriage.spouse2_id} ({marriage.status.value})")
            self.recalculate_generations()
        return marriage

    def update_marriage(self, marriage_id: int, data: MarriageUpdate) -> MarriageEdge:
        with self._lock:
            marriage = self._get_marriage(marriage_id)
            changes = data.model_dump(exclude_unset=True)
            for required in ("status", "marriage_type"):
                if required in changes and changes[required] is None:
                    del changes[required]
            updated = marriage.model_copy(update=changes)
            self._marriages[marriage_id] = updated
            self.recalculate_generations()
        return updated

    def delete_marriage(self, marriage_id: int) -> None:
        with self._lock:
            self._get_marriage(marriage_id)
            del self._marriages[marriage_id]
            logger.info(f"Deleted marriage {marriage_id}")
            self.recalculate_generations()

    def _get_marriage(self, marriage_id: int) -> MarriageEdge:
        marriage = self._marriages.get(marriage_id)
        if marriage is None:
            raise RelationshipNotFoundError(f"Marriage {marriage_id} not found")
        return marriage

    # ========================================================================
    # Bulk load
    # ========================================================================

    def replace_all(
        self,
        people: Iterable[Person],
        parent_child_edges: Iterable[ParentChildEdge],
        marriages: Iterable[MarriageEdge],
    ) -> None:
        """Replace the whole family (GEDCOM import). Cycles are accepted as-is."""
        with self._lock:
            self._members = {p.id: p for p in people}
            self._parent_child = _with_ids(parent_child_edges)
            self._marriages = _with_ids(marriages)

            self._next_member_id = max(self._members, default=0) + 1
            self._next_parent_child_id = max(self._parent_child, default=0) + 1
            self._next_marriage_id = max(self._marriages, default=0) + 1
            logger.info(
                f"Loaded {len(self._members)} members, {len(self._parent_child)} parent-child "
                f"relationships and {len(self._marriages)} marriages"
            )
            self.recalculate_generations()


def _with_ids(records: Iterable) -> dict:
    """Index records by id; records without one get ids above the largest explicit id."""
    records = list(records)
    next_id = max((r.id for r in records if r.id is not None), default=0) + 1
    indexed = {}
    for record in records:
        if record.id is None:
            record = record.model_copy(update={"id": next_id})
            next_id += 1
        indexed[record.id] = record
    return indexed
