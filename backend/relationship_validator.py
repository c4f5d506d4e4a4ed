"""Relationship rules: lineage traversal, cycle, incest and multi-partner checks."""

import logging
from collections import deque
from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from family_tree import (
    PARENTAL_TYPES,
    PARTNER_TYPES,
    Connection,
    ConnectionType,
    FamilyTree,
)

logger = logging.getLogger("familycanvas.relationship_validator")


class WarningType(str, Enum):
    INCEST = "Incest"
    THREESOME = "Threesome"
    SELF_REFERENCE = "SelfReference"
    DUPLICATE_CONNECTION = "DuplicateConnection"
    CYCLIC_RELATIONSHIP = "CyclicRelationship"
    DATE_INCONSISTENCY = "DateInconsistency"


class ErrorType(str, Enum):
    INCEST_NOT_ALLOWED = "IncestNotAllowed"
    THREESOME_NOT_ALLOWED = "ThreesomeNotAllowed"
    SELF_REFERENCE = "SelfReference"
    CYCLIC_RELATIONSHIP = "CyclicRelationship"


class ValidationWarning(BaseModel):
    """A problem that does not block the action but should be shown."""
    message: str
    node_id: str = ""
    type: WarningType


class ValidationError(BaseModel):
    """A problem that blocks the action."""
    message: str
    node_id: str = ""
    type: ErrorType


class ValidationResult(BaseModel):
    is_valid: bool = True
    warnings: list[ValidationWarning] = Field(default_factory=list)
    errors: list[ValidationError] = Field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def add_error(self, message: str, node_id: str, error_type: ErrorType) -> None:
        self.is_valid = False
        self.errors.append(ValidationError(message=message, node_id=node_id, type=error_type))

    def add_warning(self, message: str, node_id: str, warning_type: WarningType) -> None:
        self.warnings.append(ValidationWarning(message=message, node_id=node_id, type=warning_type))


# ============================================================================
# Lineage traversal
# ============================================================================

def get_all_ancestors(tree: FamilyTree, node_id: str) -> set[str]:
    """All blood ancestors of a node (Biological parents only), excluding the node."""
    ancestors: set[str] = set()
    queue = deque([node_id])

    while queue:
        current = queue.popleft()
        for parent in tree.parents_of(current, {ConnectionType.BIOLOGICAL}):
            if parent not in ancestors:
                ancestors.add(parent)
                queue.append(parent)

    ancestors.discard(node_id)
    return ancestors


def get_all_descendants(tree: FamilyTree, node_id: str) -> set[str]:
    """All descendants of a node through any parental connection, excluding the node."""
    descendants: set[str] = set()
    queue = deque([node_id])

    while queue:
        current = queue.popleft()
        for child in tree.children_of(current):
            if child not in descendants:
                descendants.add(child)
                queue.append(child)

    descendants.discard(node_id)
    return descendants


def is_ancestor_of(tree: FamilyTree, node_a: str, node_b: str) -> bool:
    """Check if node_a is a blood ancestor of node_b."""
    return node_a in get_all_ancestors(tree, node_b)


def are_related(tree: FamilyTree, node_a: str, node_b: str) -> bool:
    """Check if two nodes are blood relatives.

    Either one descends from the other, or they share a common ancestor
    (siblings, cousins, ...).
    """
    ancestors_a = get_all_ancestors(tree, node_a)
    ancestors_b = get_all_ancestors(tree, node_b)

    if node_b in ancestors_a or node_a in ancestors_b:
        return True

    return bool(ancestors_a & ancestors_b)


def get_partners(tree: FamilyTree, node_id: str) -> list[str]:
    """Current partners of a node (former partners excluded)."""
    return tree.partners_of(node_id)


def creates_cycle(tree: FamilyTree, parent_id: str, child_id: str) -> bool:
    """True if making parent_id a parent of child_id would close a lineage loop."""
    return parent_id == child_id or parent_id in get_all_descendants(tree, child_id)


# ============================================================================
# Date checks
# ============================================================================

def check_date_consistency(
    birth_date: date | None,
    death_date: date | None,
    parent_birth_date: date | None = None,
) -> list[str]:
    """
    Check logical consistency of a person's dates.
    Returns a list of human readable problems (empty when consistent).
    """
    problems = []

    birth_year = birth_date.year if birth_date else None
    death_year = death_date.year if death_date else None
    parent_birth_year = parent_birth_date.year if parent_birth_date else None

    if birth_date and death_date:
        if death_date < birth_date:
            problems.append(f"Death date ({death_date.isoformat()}) is before birth date ({birth_date.isoformat()})")
        elif death_year - birth_year > 120:
            problems.append(f"Age at death ({death_year - birth_year}) exceeds 120 years")

    if birth_year and parent_birth_year:
        parent_age = birth_year - parent_birth_year
        if parent_age < 10:
            problems.append(f"Parent age at child's birth ({parent_age}) is too young (< 10)")
        elif parent_age > 80:
            problems.append(f"Parent age at child's birth ({parent_age}) exceeds 80 years")

    return problems


def _parent_child_date_problems(tree: FamilyTree, parent_id: str, child_id: str) -> list[str]:
    parent = tree.find_node(parent_id)
    child = tree.find_node(child_id)
    if parent is None or child is None:
        return []
    return check_date_consistency(child.birth_date, None, parent.birth_date)


# ============================================================================
# Validation entry points
# ============================================================================

def validate_new_connection(
    tree: FamilyTree,
    from_node_id: str,
    to_node_id: str,
    connection_type: ConnectionType,
) -> ValidationResult:
    """Validate whether a new connection can be created."""
    result = ValidationResult()

    if from_node_id == to_node_id:
        result.add_error(
            "Cannot create a connection from a node to itself.",
            from_node_id,
            ErrorType.SELF_REFERENCE,
        )
        return result

    if tree.find_connection_between(from_node_id, to_node_id) is not None:
        result.add_warning(
            "A connection already exists between these nodes.",
            from_node_id,
            WarningType.DUPLICATE_CONNECTION,
        )

    if connection_type in PARTNER_TYPES and are_related(tree, from_node_id, to_node_id):
        if not tree.allow_incest:
            result.add_error(
                "Incest is not allowed. These nodes are blood relatives.",
                from_node_id,
                ErrorType.INCEST_NOT_ALLOWED,
            )
        else:
            result.add_warning(
                "Warning: These nodes are blood relatives (incest).",
                from_node_id,
                WarningType.INCEST,
            )

    if connection_type == ConnectionType.PARTNER:
        from_partners = [p for p in get_partners(tree, from_node_id) if p != to_node_id]
        to_partners = [p for p in get_partners(tree, to_node_id) if p != from_node_id]

        if from_partners or to_partners:
            if not tree.allow_threesome:
                result.add_error(
                    "Multiple partners (threesome+) is not allowed.",
                    from_node_id,
                    ErrorType.THREESOME_NOT_ALLOWED,
                )
            else:
                result.add_warning(
                    "Warning: This creates a multi-partner relationship.",
                    from_node_id,
                    WarningType.THREESOME,
                )

    if connection_type in PARENTAL_TYPES:
        if creates_cycle(tree, from_node_id, to_node_id):
            result.add_error(
                "Cannot create cyclic relationship: the child is already an ancestor of the parent.",
                from_node_id,
                ErrorType.CYCLIC_RELATIONSHIP,
            )
        for problem in _parent_child_date_problems(tree, from_node_id, to_node_id):
            result.add_warning(problem, to_node_id, WarningType.DATE_INCONSISTENCY)

    if not result.is_valid:
        logger.info(
            f"Rejected {connection_type.value} connection {from_node_id} -> {to_node_id}: "
            f"{[e.type.value for e in result.errors]}"
        )
    return result


def _validate_existing_connection(tree: FamilyTree, connection: Connection) -> list[ValidationWarning]:
    warnings = []

    if connection.connection_type in PARTNER_TYPES:
        if are_related(tree, connection.from_node_id, connection.to_node_id):
            warnings.append(ValidationWarning(
                message="Incestuous relationship detected.",
                node_id=connection.from_node_id,
                type=WarningType.INCEST,
            ))

    if connection.connection_type in PARENTAL_TYPES:
        if connection.from_node_id in get_all_descendants(tree, connection.to_node_id):
            warnings.append(ValidationWarning(
                message="Cyclic parent-child relationship detected.",
                node_id=connection.from_node_id,
                type=WarningType.CYCLIC_RELATIONSHIP,
            ))
        for problem in _parent_child_date_problems(tree, connection.from_node_id, connection.to_node_id):
            warnings.append(ValidationWarning(
                message=problem,
                node_id=connection.to_node_id,
                type=WarningType.DATE_INCONSISTENCY,
            ))

    return warnings


def validate_tree(tree: FamilyTree) -> ValidationResult:
    """Validate the whole tree. Existing problems are reported as warnings only."""
    result = ValidationResult()

    for node in tree.nodes:
        for problem in check_date_consistency(node.birth_date, node.death_date):
            result.add_warning(problem, node.id, WarningType.DATE_INCONSISTENCY)

    for connection in tree.connections:
        result.warnings.extend(_validate_existing_connection(tree, connection))

    logger.debug(f"Tree validation found {len(result.warnings)} warnings")
    return result
