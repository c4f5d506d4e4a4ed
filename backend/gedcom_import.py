"""GEDCOM import: convert individuals and families into a canvas family tree."""

import logging
import os
import tempfile
from datetime import date, datetime

from gedcom.element.family import FamilyElement
from gedcom.element.individual import IndividualElement
from gedcom.parser import Parser

from family_tree import ConnectionType, FamilyTree, Gender, Node, RoyalTitle
from layout_engine import apply_layout

logger = logging.getLogger("familycanvas.gedcom_import")

# Checked in order, so "princess" wins over "prince" and "former" qualifiers first
ROYAL_TITLE_KEYWORDS = [
    ("former queen", RoyalTitle.FORMER_QUEEN),
    ("former king", RoyalTitle.FORMER_KING),
    ("princess", RoyalTitle.PRINCESS),
    ("prince", RoyalTitle.PRINCE),
    ("queen", RoyalTitle.QUEEN),
    ("king", RoyalTitle.KING),
    ("heir", RoyalTitle.HEIR),
]


class GedcomImportError(Exception):
    """Raised when GEDCOM content cannot be parsed."""


def parse_gedcom_content(content: str) -> Parser:
    """Parse GEDCOM content from a string."""
    # python-gedcom only reads from a path
    with tempfile.NamedTemporaryFile(mode="w", suffix=".ged", delete=False, encoding="utf-8") as f:
        f.write(content)
        temp_path = f.name

    try:
        parser = Parser()
        parser.parse_file(temp_path, strict=False)
        return parser
    except Exception as e:
        raise GedcomImportError(f"Failed to parse GEDCOM: {e}") from e
    finally:
        os.unlink(temp_path)


def parse_gedcom_date(value: str | None) -> date | None:
    """Parse an exact GEDCOM date such as '15 MAR 1850'. Approximate dates give None."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%d %b %Y").date()
    except ValueError:
        return None


def _child_value(element, tag: str) -> str | None:
    for child in element.get_child_elements():
        if child.get_tag() == tag:
            return child.get_value()
    return None


def _has_tag(element, tag: str) -> bool:
    return any(child.get_tag() == tag for child in element.get_child_elements())


def royal_title_from_text(title: str | None) -> RoyalTitle:
    if not title:
        return RoyalTitle.NONE
    lowered = title.lower()
    for keyword, royal_title in ROYAL_TITLE_KEYWORDS:
        if keyword in lowered:
            return royal_title
    return RoyalTitle.NONE


def individual_to_node(element: IndividualElement) -> Node:
    """Build a node from an individual record."""
    first_name, last_name = element.get_name()
    name = f"{first_name} {last_name}".strip() or "Unknown"

    gender = {"M": Gender.MALE, "F": Gender.FEMALE}.get(element.get_gender(), Gender.UNSPECIFIED)

    birth_data = element.get_birth_data()
    death_data = element.get_death_data()
    royal_title = royal_title_from_text(_child_value(element, "TITL"))

    return Node(
        name=name,
        gender=gender,
        is_alive=not _has_tag(element, "DEAT"),
        is_royal=royal_title != RoyalTitle.NONE,
        royal_title=royal_title,
        birth_date=parse_gedcom_date(birth_data[0] if birth_data else None),
        death_date=parse_gedcom_date(death_data[0] if death_data else None),
    )


def import_gedcom_content(content: str, tree_name: str | None = None) -> FamilyTree:
    """
    Build a laid-out family tree from GEDCOM text.

    Every individual becomes a node. Each family links its spouses with a
    Partner connection (FormerPartner if divorced) and each spouse to every
    child with a Biological connection.
    """
    parser = parse_gedcom_content(content)
    tree = FamilyTree(name=tree_name or "Imported Tree")

    node_ids: dict[str, str] = {}
    families: list[FamilyElement] = []

    for element in parser.get_root_child_elements():
        if isinstance(element, IndividualElement):
            node = individual_to_node(element)
            tree.nodes.append(node)
            node_ids[element.get_pointer()] = node.id
        elif isinstance(element, FamilyElement):
            families.append(element)

    for family in families:
        spouses = [
            node_ids[member.get_pointer()]
            for role in ("HUSB", "WIFE")
            for member in parser.get_family_members(family, role)
            if isinstance(member, IndividualElement) and member.get_pointer() in node_ids
        ]
        children = [
            node_ids[member.get_pointer()]
            for member in parser.get_family_members(family, "CHIL")
            if isinstance(member, IndividualElement) and member.get_pointer() in node_ids
        ]

        if len(spouses) == 2:
            partner_type = ConnectionType.FORMER_PARTNER if _has_tag(family, "DIV") else ConnectionType.PARTNER
            tree.add_connection(spouses[0], spouses[1], partner_type)

        for parent_id in spouses:
            for child_id in children:
                tree.add_connection(parent_id, child_id, ConnectionType.BIOLOGICAL)

    apply_layout(tree)
    logger.info(
        f"Imported GEDCOM: {len(tree.nodes)} people, {len(families)} families, "
        f"{len(tree.connections)} connections"
    )
    return tree
