"""GEDCOM parsing and conversion into family members and relationships."""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import date

from gedcom.element.family import FamilyElement
from gedcom.element.individual import IndividualElement
from gedcom.parser import Parser

from family_models import Gender, MarriageEdge, MarriageStatus, ParentChildEdge, Person

logger = logging.getLogger("fambam.gedcom_import")

MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}

# Qualifiers carry no calendar information of their own.
DATE_MODIFIERS = {"ABT", "CAL", "EST", "BEF", "AFT", "BET", "FROM", "INT"}

GENDERS = {"M": Gender.MALE, "F": Gender.FEMALE}


@dataclass
class GedcomImport:
    """People and relationships extracted from a GEDCOM file."""
    people: list[Person] = field(default_factory=list)
    parent_child_edges: list[ParentChildEdge] = field(default_factory=list)
    marriages: list[MarriageEdge] = field(default_factory=list)
    pointer_ids: dict[str, int] = field(default_factory=dict)


# ============================================================================
# Parsing
# ============================================================================

def parse_gedcom_file(file_path: str) -> Parser:
    """Parse a GEDCOM file and return the parser."""
    parser = Parser()
    parser.parse_file(file_path, strict=False)
    return parser


def parse_gedcom_content(content: str) -> Parser:
    """Parse GEDCOM content from a string."""
    # python-gedcom only reads from a file path
    with tempfile.NamedTemporaryFile(mode='w', suffix='.ged', delete=False, encoding='utf-8') as f:
        f.write(content)
        temp_path = f.name

    try:
        return parse_gedcom_file(temp_path)
    finally:
        os.unlink(temp_path)


def parse_gedcom_date(date_str: str | None) -> date | None:
    """
    Best-effort conversion of a GEDCOM date string.

    Handles formats like:
    - "15 MAR 1850"
    - "MAR 1850" / "MARCH 1850"
    - "1850"
    - "ABT 1850", "BEF 1850"
    - "BET 1850 AND 1855" (first date is used)

    A missing day or month defaults to the first. Returns None without a year.
    """
    if not date_str:
        return None

    tokens = []
    for part in date_str.strip().upper().split():
        if part in ("AND", "TO"):
            if tokens:
                break
            continue
        if part not in DATE_MODIFIERS:
            tokens.append(part)

    year = month = day = None
    for token in tokens:
        if token.isdigit() and len(token) == 4 and year is None:
            year = int(token)
        elif token.isdigit() and len(token) <= 2 and day is None and year is None:
            day = int(token)
        elif token[:3] in MONTHS and month is None:
            month = MONTHS[token[:3]]

    if year is None:
        return None
    try:
        return date(year, month or 1, day or 1)
    except ValueError:
        logger.debug(f"Invalid calendar date '{date_str}', keeping year and month only")
        return date(year, month or 1, 1)


# ============================================================================
# Conversion
# ============================================================================

def individual_to_person(element: IndividualElement, person_id: int) -> Person:
    """Convert an individual record to a family member."""
    first_name, last_name = element.get_name()
    given = first_name.split()
    birth_data = element.get_birth_data()
    death_data = element.get_death_data()

    return Person(
        id=person_id,
        first_name=given[0] if given else "Unknown",
        middle_name=" ".join(given[1:]) or None,
        last_name=last_name or None,
        gender=GENDERS.get(element.get_gender(), Gender.UNKNOWN),
        birth_date=parse_gedcom_date(birth_data[0]) if birth_data else None,
        birth_place=(birth_data[1] or None) if birth_data else None,
        death_date=parse_gedcom_date(death_data[0]) if death_data else None,
        death_place=(death_data[1] or None) if death_data else None,
        is_living=not element.is_deceased(),
        occupation=element.get_occupation() or None,
    )


def _marriage_details(family: FamilyElement) -> tuple[date | None, str | None, MarriageStatus]:
    """Marriage date, place and status from a family record's MARR/DIV events."""
    marriage_date = marriage_place = None
    status = MarriageStatus.MARRIED
    for child in family.get_child_elements():
        tag = child.get_tag()
        if tag == "MARR":
            for detail in child.get_child_elements():
                if detail.get_tag() == "DATE":
                    marriage_date = parse_gedcom_date(detail.get_value())
                elif detail.get_tag() == "PLAC":
                    marriage_place = detail.get_value() or None
        elif tag == "DIV":
            status = MarriageStatus.DIVORCED
    return marriage_date, marriage_place, status


def gedcom_to_records(parser: Parser) -> GedcomImport:
    """
    Convert a parsed GEDCOM file into members, parent-child links and marriages.

    Individuals get sequential ids in file order. Each family record with two
    spouses becomes a marriage, and every spouse becomes a biological parent
    of each child listed in the family.
    """
    result = GedcomImport()

    for element in parser.get_root_child_elements():
        if isinstance(element, IndividualElement):
            person_id = len(result.people) + 1
            result.pointer_ids[element.get_pointer()] = person_id
            result.people.append(individual_to_person(element, person_id))

    seen_links: set[tuple[int, int]] = set()
    seen_pairs: set[frozenset[int]] = set()
    for element in parser.get_root_child_elements():
        if not isinstance(element, FamilyElement):
            continue

        def member_ids(role: str) -> list[int]:
            return [
                result.pointer_ids[m.get_pointer()]
                for m in parser.get_family_members(element, role)
                if m.get_pointer() in result.pointer_ids
            ]

        spouses = member_ids("HUSB") + member_ids("WIFE")
        children = member_ids("CHIL")

        if len(spouses) >= 2 and frozenset(spouses[:2]) not in seen_pairs and spouses[0] != spouses[1]:
            seen_pairs.add(frozenset(spouses[:2]))
            marriage_date, marriage_place, status = _marriage_details(element)
            result.marriages.append(MarriageEdge(
                id=len(result.marriages) + 1,
                spouse1_id=spouses[0],
                spouse2_id=spouses[1],
                marriage_date=marriage_date,
                marriage_place=marriage_place,
                status=status,
            ))

        for parent_id in spouses:
            for child_id in children:
                if parent_id == child_id or (parent_id, child_id) in seen_links:
                    continue
                seen_links.add((parent_id, child_id))
                result.parent_child_edges.append(ParentChildEdge(
                    id=len(result.parent_child_edges) + 1,
                    parent_id=parent_id,
                    child_id=child_id,
                ))

    logger.info(
        f"Converted GEDCOM: {len(result.people)} individuals, "
        f"{len(result.parent_child_edges)} parent-child links, {len(result.marriages)} marriages"
    )
    return result
