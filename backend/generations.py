"""Generation level assignment for family members.

A generation level is the distance from a root ancestor along parent -> child
edges. Levels are derived data: ``assign_generations`` recomputes all of them
from the relationship graph and is a pure, deterministic function of its
input, so repeated recalculations are idempotent.

The pipeline:

1. pick a root (oldest known ancestor of a start person)
2. breadth-first distances from the root; the first assignment wins
3. reconcile spouses (the lagging spouse is raised to the partner's level)
   and keep every child at least one level below its parents
4. infer levels for people unreachable from the root, from their children
   or parents; seed whatever is still isolated as a new component at 0
5. shift everything up if inference produced negative levels

Malformed data (cycles, dangling edges, contradictory marriages) never
raises; it degrades to a deterministic best-effort assignment.
"""

import logging
from collections import deque
from collections.abc import Collection, Iterable, MutableMapping

from family_graph import FamilyGraph
from family_models import MarriageEdge, ParentChildEdge, Person

logger = logging.getLogger("fambam.generations")


def assign_generations(
    people: Iterable[Person],
    parent_child_edges: Iterable[ParentChildEdge],
    marriage_edges: Iterable[MarriageEdge],
    root: int | None = None,
    scope: Collection[int] | None = None,
) -> dict[int, int]:
    """
    Assign a non-negative generation level to every person.

    Args:
        people: Family members
        parent_child_edges: Parent -> child links (cycles are tolerated)
        marriage_edges: Spouse pairs
        root: Optional person to place at generation 0
        scope: Optional person ids to restrict the computation to

    Returns:
        Mapping of every person id (in input order) to its generation
    """
    graph = FamilyGraph(people, parent_child_edges, marriage_edges, scope=scope)
    return compute_generations(graph, root=root)


def compute_generations(graph: FamilyGraph, root: int | None = None, start: int | None = None) -> dict[int, int]:
    """Run the assignment pipeline over an already indexed graph."""
    generations: dict[int, int] = {}
    if not len(graph):
        return generations

    if root is not None and root not in graph:
        logger.warning(f"Root person {root} is not part of the family, selecting one automatically")
        root = None
    if root is None:
        root = select_root(graph, start=start if start in graph else None)
    logger.debug(f"Assigning generations from root {root}")

    _propagate(graph, generations, root, 0)

    while True:
        reconcile_generations(graph, generations)
        if len(generations) == len(graph):
            break
        if _infer_orphans(graph, generations):
            continue
        unassigned = [pid for pid in graph if pid not in generations]
        seed = select_root(graph, start=unassigned[0], candidates=set(unassigned))
        logger.debug(f"Seeding disconnected component at person {seed}")
        _propagate(graph, generations, seed, 0)

    lowest = min(generations.values())
    if lowest < 0:
        logger.info(f"Shifting all generations by {-lowest} to keep levels non-negative")
        generations = {pid: level - lowest for pid, level in generations.items()}

    return {pid: generations[pid] for pid in graph}


def select_root(
    graph: FamilyGraph,
    start: int | None = None,
    candidates: Collection[int] | None = None,
) -> int | None:
    """
    Find the oldest ancestor of ``start``.

    Walks parent edges upward (breadth-first, each person once) and returns the
    ancestor with the earliest birth date, ties going to the one reached first.
    Without any birth dates the first ancestor that has no parents wins, and in
    a pure cycle the start person itself.

    Args:
        graph: Indexed family
        start: Person to walk up from (default: first person in input order)
        candidates: Optional subset of people the walk may visit

    Returns:
        Root person id, or None for an empty graph
    """
    def allowed(pid: int) -> bool:
        return candidates is None or pid in candidates

    if start is None:
        start = next((pid for pid in graph if allowed(pid)), None)
        if start is None:
            return None

    visited = [start]
    seen = {start}
    queue = deque([start])
    while queue:
        pid = queue.popleft()
        for parent in graph.parents_of(pid):
            if parent in seen or not allowed(parent):
                continue
            seen.add(parent)
            visited.append(parent)
            queue.append(parent)

    dated = [pid for pid in visited if graph.people[pid].birth_date is not None]
    if dated:
        return min(dated, key=lambda pid: graph.people[pid].birth_date)

    for pid in visited:
        if not any(allowed(parent) for parent in graph.parents_of(pid)):
            return pid
    return start


def _propagate(graph: FamilyGraph, generations: dict[int, int], seed: int, level: int) -> None:
    """Breadth-first distances from ``seed``; people already assigned are left alone."""
    generations[seed] = level
    visited = {seed}
    queue = deque([seed])
    while queue:
        pid = queue.popleft()
        for child in graph.children_of(pid):
            if child in visited or child in generations:
                continue
            visited.add(child)
            generations[child] = generations[pid] + 1
            queue.append(child)


def sync_spouse_generations(generations: MutableMapping[int, int], spouse1_id: int, spouse2_id: int) -> bool:
    """
    Bring two spouses to the same generation.

    An unset spouse takes the partner's level; two different levels are both
    raised to the higher one. Levels are never lowered.

    Returns:
        True if either level changed
    """
    levels = [generations.get(spouse1_id), generations.get(spouse2_id)]
    known = [level for level in levels if level is not None]
    if not known:
        return False

    target = max(known)
    changed = False
    for spouse_id, level in zip((spouse1_id, spouse2_id), levels):
        if level != target:
            if level is not None:
                logger.debug(f"Raising spouse {spouse_id} from generation {level} to {target}")
            generations[spouse_id] = target
            changed = True
    return changed


def reconcile_generations(graph: FamilyGraph, generations: dict[int, int]) -> bool:
    """
    Raise levels until spouses match and children sit below their parents.

    Edges on parent-child cycles are ignored for the child constraint. Data
    that can never be satisfied (marrying one's own child, for example) stops
    after ``len(graph) + 1`` passes.

    Returns:
        True if a stable assignment was reached
    """
    cyclic = graph.cyclic_edges()
    lineage = [
        (edge.parent_id, edge.child_id)
        for edge in graph.parent_child_edges
        if (edge.parent_id, edge.child_id) not in cyclic
    ]

    for _ in range(len(graph) + 1):
        changed = False
        for marriage in graph.marriages:
            if sync_spouse_generations(generations, marriage.spouse1_id, marriage.spouse2_id):
                changed = True
        for parent_id, child_id in lineage:
            if parent_id not in generations or child_id not in generations:
                continue
            floor = generations[parent_id] + 1
            if generations[child_id] < floor:
                generations[child_id] = floor
                changed = True
        if not changed:
            return True

    logger.warning("Generation reconciliation did not converge; relationship data is contradictory")
    return False


def _infer_orphans(graph: FamilyGraph, generations: dict[int, int]) -> list[int]:
    """One inference pass over unassigned people, in input order."""
    inferred = []
    for pid in graph:
        if pid in generations:
            continue
        child_levels = [generations[c] for c in graph.children_of(pid) if c in generations]
        if child_levels:
            generations[pid] = min(child_levels) - 1
            logger.debug(f"Person {pid} set to generation {generations[pid]} from their children")
            inferred.append(pid)
            continue
        parent_levels = [generations[p] for p in graph.parents_of(pid) if p in generations]
        if parent_levels:
            generations[pid] = max(parent_levels) + 1
            logger.debug(f"Person {pid} set to generation {generations[pid]} from their parents")
            inferred.append(pid)
    return inferred


def generation_distribution(generations: dict[int, int]) -> dict[int, int]:
    """Count people per generation level, ordered by level."""
    counts: dict[int, int] = {}
    for level in sorted(generations.values()):
        counts[level] = counts.get(level, 0) + 1
    return counts
