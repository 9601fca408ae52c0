"""Read-only family queries: lineage, generation summaries, statistics, families, validation."""

import logging
from collections import deque
from collections.abc import Mapping

from family_graph import FamilyGraph
from family_models import FamilyStats, GenerationSummary, LineageEntry, NuclearFamily, Person

logger = logging.getLogger("fambam.family_queries")

DEFAULT_LINEAGE_DEPTH = 10


# ============================================================================
# Lineage
# ============================================================================

def _walk(graph: FamilyGraph, person_id: int, max_generations: int, upward: bool) -> list[LineageEntry]:
    """Breadth-first walk returning each reachable relative once with their distance."""
    if person_id not in graph:
        return []

    step = graph.parents_of if upward else graph.children_of
    distances: dict[int, int] = {person_id: 0}
    queue = deque([person_id])
    while queue:
        pid = queue.popleft()
        if distances[pid] >= max_generations:
            continue
        for relative in step(pid):
            if relative not in distances:
                distances[relative] = distances[pid] + 1
                queue.append(relative)

    del distances[person_id]
    ordered = sorted(graph.by_birth(distances), key=lambda pid: distances[pid])
    return [LineageEntry(member=graph.people[pid], distance=distances[pid]) for pid in ordered]


def get_ancestors(graph: FamilyGraph, person_id: int, max_generations: int = DEFAULT_LINEAGE_DEPTH) -> list[LineageEntry]:
    """Ancestors up to ``max_generations`` (1 = parents), ordered by distance then birth date."""
    return _walk(graph, person_id, max_generations, upward=True)


def get_descendants(graph: FamilyGraph, person_id: int, max_generations: int = DEFAULT_LINEAGE_DEPTH) -> list[LineageEntry]:
    """Descendants up to ``max_generations`` (1 = children), ordered by distance then birth date."""
    return _walk(graph, person_id, max_generations, upward=False)


# ============================================================================
# Summaries
# ============================================================================

def _level(person: Person, generations: Mapping[int, int]) -> int | None:
    return generations.get(person.id, person.generation_level)


def summarize_generations(graph: FamilyGraph, generations: Mapping[int, int]) -> list[GenerationSummary]:
    """Member count and names per generation level, names ordered by birth date."""
    by_level: dict[int, list[int]] = {}
    for pid, person in graph.people.items():
        level = _level(person, generations)
        if level is not None:
            by_level.setdefault(level, []).append(pid)

    return [
        GenerationSummary(
            level=level,
            member_count=len(by_level[level]),
            members=[graph.people[pid].full_name for pid in graph.by_birth(by_level[level])],
        )
        for level in sorted(by_level)
    ]


def compute_stats(graph: FamilyGraph, generations: Mapping[int, int]) -> FamilyStats:
    people = list(graph.people.values())
    levels = {lvl for lvl in (_level(p, generations) for p in people) if lvl is not None}
    births = [p.birth_date for p in people if p.birth_date is not None]
    living = sum(1 for p in people if p.is_living)

    return FamilyStats(
        total_members=len(people),
        living_members=living,
        deceased_members=len(people) - living,
        oldest_generation=min(levels) if levels else None,
        youngest_generation=max(levels) if levels else None,
        total_generations=len(levels),
        earliest_birth=min(births) if births else None,
        latest_birth=max(births) if births else None,
        parent_child_relationships=len(graph.parent_child_edges),
        marriages=len(graph.marriages),
    )


def build_families(graph: FamilyGraph, generations: Mapping[int, int]) -> list[NuclearFamily]:
    """
    Nuclear families: one per marriage with the children both spouses share,
    plus a single-parent family for everyone with children but no marriage.
    Sorted by generation level.
    """
    def level_of(pid: int) -> int:
        return _level(graph.people[pid], generations) or 0

    families = []
    for marriage in graph.marriages:
        shared = [c for c in graph.children_of(marriage.spouse1_id) if c in graph.children_of(marriage.spouse2_id)]
        families.append(NuclearFamily(
            marriage_id=marriage.id,
            marriage_date=marriage.marriage_date,
            marriage_place=marriage.marriage_place,
            status=marriage.status.value,
            generation_level=level_of(marriage.spouse1_id),
            spouse1=graph.people[marriage.spouse1_id],
            spouse2=graph.people[marriage.spouse2_id],
            children=[graph.people[c] for c in graph.by_birth(shared)],
        ))

    single_parents = [pid for pid in graph if graph.children_of(pid) and not graph.marriages_of(pid)]
    for pid in graph.by_birth(single_parents):
        families.append(NuclearFamily(
            status="single_parent",
            generation_level=level_of(pid),
            spouse1=graph.people[pid],
            children=[graph.people[c] for c in graph.by_birth(graph.children_of(pid))],
        ))

    families.sort(key=lambda family: family.generation_level)
    return families


# ============================================================================
# Validation
# ============================================================================

def validate_family(graph: FamilyGraph) -> list[str]:
    """
    Data-quality warnings for the family:
    - cycles in parent-child relationships
    - impossible ages (child born before parent, parent younger than 12)
    - death before birth
    - relationships that reference unknown people
    """
    warnings: list[str] = []

    cycle = graph.find_cycle()
    if cycle:
        names = [graph.people[pid].full_name for pid in cycle]
        warnings.append(f"Cycle detected in parent-child relationships: {names}")

    for edge in graph.parent_child_edges:
        parent = graph.people[edge.parent_id]
        child = graph.people[edge.child_id]
        if parent.birth_date and child.birth_date:
            if child.birth_date < parent.birth_date:
                warnings.append(f"Impossible: {child.full_name} born before parent {parent.full_name}")
            elif child.birth_date.year - parent.birth_date.year < 12:
                warnings.append(
                    f"Suspicious: {parent.full_name} was less than 12 years old "
                    f"when {child.full_name} was born"
                )

    for person in graph.people.values():
        if person.birth_date and person.death_date and person.death_date < person.birth_date:
            warnings.append(f"Impossible: {person.full_name} died before being born")

    for edge in graph.dangling_parent_child:
        warnings.append(f"Parent-child relationship {edge.parent_id} -> {edge.child_id} references an unknown person")
    for marriage in graph.dangling_marriages:
        warnings.append(
            f"Marriage between {marriage.spouse1_id} and {marriage.spouse2_id} references an unknown person"
        )

    logger.debug(f"Validation produced {len(warnings)} warnings")
    return warnings
