"""Pydantic models for family members, relationships and tree payloads.

All models serialize with camelCase aliases (``firstName``, ``rootCouple``,
...) for the tree UI, while Python code uses snake_case field names.
"""

from datetime import date
from enum import Enum
from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# ============================================================================
# Enumerations
# ============================================================================

class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"


class ParentChildType(str, Enum):
    BIOLOGICAL = "biological"
    ADOPTED = "adopted"
    STEP = "step"
    FOSTER = "foster"
    GUARDIAN = "guardian"


class MarriageType(str, Enum):
    MARRIAGE = "marriage"
    CIVIL_UNION = "civil_union"
    DOMESTIC_PARTNERSHIP = "domestic_partnership"
    COMMON_LAW = "common_law"


class MarriageStatus(str, Enum):
    MARRIED = "married"
    DIVORCED = "divorced"
    SEPARATED = "separated"
    WIDOWED = "widowed"
    ANNULLED = "annulled"


# Unions that were never dissolved; only these pair spouses in the hierarchy.
ACTIVE_MARRIAGE_STATUSES = (MarriageStatus.MARRIED, MarriageStatus.WIDOWED)


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases and accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Family Members
# ============================================================================

class MemberFields(CamelModel):
    """Descriptive fields shared by stored members and create payloads."""

    first_name: str = Field(min_length=1)
    middle_name: str | None = None
    last_name: str | None = None
    maiden_name: str | None = None
    gender: Gender = Gender.UNKNOWN
    birth_date: date | None = None
    birth_place: str | None = None
    death_date: date | None = None
    death_place: str | None = None
    is_living: bool = True
    occupation: str | None = None
    education: str | None = None
    notes: str | None = None


class Person(MemberFields):
    """A family member. ``generation_level`` is derived and recomputable."""

    id: int
    generation_level: int | None = None

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)


class MemberCreate(MemberFields):
    """Request body for adding a member."""


class MemberUpdate(CamelModel):
    """Partial update of a member; only fields that are sent are changed."""

    first_name: str | None = Field(default=None, min_length=1)
    middle_name: str | None = None
    last_name: str | None = None
    maiden_name: str | None = None
    gender: Gender | None = None
    birth_date: date | None = None
    birth_place: str | None = None
    death_date: date | None = None
    death_place: str | None = None
    is_living: bool | None = None
    occupation: str | None = None
    education: str | None = None
    notes: str | None = None


# ============================================================================
# Relationships
# ============================================================================

class ParentChildEdge(CamelModel):
    """Directed parent -> child link."""

    id: int | None = None
    parent_id: int
    child_id: int
    relationship_type: ParentChildType = ParentChildType.BIOLOGICAL

    @model_validator(mode="after")
    def no_self_parenting(self) -> "ParentChildEdge":
        if self.parent_id == self.child_id:
            raise ValueError("A person cannot be their own parent")
        return self


class MarriageEdge(CamelModel):
    """Unordered spouse pair plus the marriage details."""

    id: int | None = None
    spouse1_id: int
    spouse2_id: int
    marriage_date: date | None = None
    marriage_place: str | None = None
    marriage_type: MarriageType = MarriageType.MARRIAGE
    status: MarriageStatus = MarriageStatus.MARRIED
    notes: str | None = None

    @model_validator(mode="after")
    def distinct_spouses(self) -> "MarriageEdge":
        if self.spouse1_id == self.spouse2_id:
            raise ValueError("A person cannot marry themselves")
        return self

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_MARRIAGE_STATUSES

    @property
    def pair(self) -> frozenset[int]:
        return frozenset((self.spouse1_id, self.spouse2_id))

    def other_spouse(self, person_id: int) -> int:
        """Return the partner of ``person_id`` in this marriage."""
        return self.spouse2_id if self.spouse1_id == person_id else self.spouse1_id


class ParentChildCreate(CamelModel):
    parent_id: int
    child_id: int
    relationship_type: ParentChildType = ParentChildType.BIOLOGICAL


class ParentChildUpdate(CamelModel):
    relationship_type: ParentChildType


class MarriageCreate(CamelModel):
    spouse1_id: int
    spouse2_id: int
    marriage_date: date | None = None
    marriage_place: str | None = None
    marriage_type: MarriageType = MarriageType.MARRIAGE
    status: MarriageStatus = MarriageStatus.MARRIED
    notes: str | None = None


class MarriageUpdate(CamelModel):
    marriage_date: date | None = None
    marriage_place: str | None = None
    marriage_type: MarriageType | None = None
    status: MarriageStatus | None = None
    notes: str | None = None


# ============================================================================
# Hierarchy
# ============================================================================

class ParentRef(CamelModel):
    """Short reference to a parent, attached to hierarchy nodes."""

    id: int
    first_name: str
    last_name: str | None = None


class MarriageInfo(CamelModel):
    id: int | None = None
    marriage_date: date | None = None
    marriage_place: str | None = None
    status: MarriageStatus


class IndividualNode(CamelModel):
    type: Literal["individual"] = "individual"
    member: Person
    parents: list[ParentRef] = []

    def member_ids(self) -> list[int]:
        return [self.member.id]


class CoupleNode(CamelModel):
    """A couple; ``spouse1`` is the biological descendant, ``spouse2`` married in."""

    type: Literal["couple"] = "couple"
    spouse1: Person
    spouse2: Person
    marriage_info: MarriageInfo
    parents: list[ParentRef] = []

    def member_ids(self) -> list[int]:
        return [self.spouse1.id, self.spouse2.id]


HierarchyNode = Annotated[Union[IndividualNode, CoupleNode], Field(discriminator="type")]


class RootCouple(CamelModel):
    spouse1: Person
    spouse2: Person
    marriage_info: MarriageInfo


class GenerationGroup(CamelModel):
    level: int
    members: list[HierarchyNode]


class HierarchyTree(CamelModel):
    """Rendering-ready family hierarchy."""

    root_couple: RootCouple | None = None
    children_row: list[HierarchyNode] = []
    additional_generations: list[GenerationGroup] = []
    total_members: int = 0
    total_generations: int = 0
    root_generation: int | None = None
    message: str | None = None

    def iter_member_ids(self) -> Iterator[int]:
        """Yield every placed person id, in rendering order."""
        if self.root_couple is not None:
            yield self.root_couple.spouse1.id
            yield self.root_couple.spouse2.id
        for node in self.children_row:
            yield from node.member_ids()
        for group in self.additional_generations:
            for node in group.members:
                yield from node.member_ids()


# ============================================================================
# Query / API payloads
# ============================================================================

class LineageEntry(CamelModel):
    """An ancestor or descendant together with its distance from the start person."""

    member: Person
    distance: int


class GenerationSummary(CamelModel):
    level: int
    member_count: int
    members: list[str]


class FamilyStats(CamelModel):
    total_members: int
    living_members: int
    deceased_members: int
    oldest_generation: int | None = None
    youngest_generation: int | None = None
    total_generations: int
    earliest_birth: date | None = None
    latest_birth: date | None = None
    parent_child_relationships: int
    marriages: int


class NuclearFamily(CamelModel):
    marriage_id: int | None = None
    marriage_date: date | None = None
    marriage_place: str | None = None
    status: str
    generation_level: int
    spouse1: Person
    spouse2: Person | None = None
    children: list[Person] = []


class RecalculateRequest(CamelModel):
    root_person_id: int | None = None


class GenerationFixResponse(CamelModel):
    message: str
    generation_distribution: dict[int, int]
    members_by_generation: list[GenerationSummary]


class ValidationReport(CamelModel):
    warnings: list[str]


class GedcomUploadResponse(CamelModel):
    """Response after uploading a GEDCOM file."""

    message: str
    individual_count: int
    parent_child_count: int
    marriage_count: int
