"""Tests for relationship validation: lineage, incest, multi-partner, cycles and dates."""

import os
import pytest
import sys
from datetime import date

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from family_tree import ConnectionType, FamilyTree
from relationship_validator import (
    ErrorType,
    WarningType,
    are_related,
    check_date_consistency,
    creates_cycle,
    get_all_ancestors,
    get_all_descendants,
    get_partners,
    is_ancestor_of,
    validate_new_connection,
    validate_tree,
)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def three_generations():
    """
    Grandpa + Grandma -> Dad; Dad + Mom -> Kid and Sibling; Mom adopted Foster.
    Uncle is another biological child of Grandpa.
    """
    tree = FamilyTree()
    people = {name: tree.add_node(name) for name in
              ("Grandpa", "Grandma", "Dad", "Mom", "Kid", "Sibling", "Foster", "Uncle", "Stranger")}
    ids = {name: node.id for name, node in people.items()}

    tree.add_connection(ids["Grandpa"], ids["Grandma"], ConnectionType.PARTNER)
    tree.add_connection(ids["Grandpa"], ids["Dad"], ConnectionType.BIOLOGICAL)
    tree.add_connection(ids["Grandma"], ids["Dad"], ConnectionType.BIOLOGICAL)
    tree.add_connection(ids["Grandpa"], ids["Uncle"], ConnectionType.BIOLOGICAL)
    tree.add_connection(ids["Dad"], ids["Mom"], ConnectionType.PARTNER)
    tree.add_connection(ids["Dad"], ids["Kid"], ConnectionType.BIOLOGICAL)
    tree.add_connection(ids["Mom"], ids["Kid"], ConnectionType.BIOLOGICAL)
    tree.add_connection(ids["Dad"], ids["Sibling"], ConnectionType.BIOLOGICAL)
    tree.add_connection(ids["Mom"], ids["Foster"], ConnectionType.ADOPTED)
    return tree, ids


# ============================================================================
# Lineage Traversal
# ============================================================================

class TestLineage:
    """Tests for ancestor and descendant traversal."""

    def test_ancestors_follow_biological_parents(self, three_generations):
        """Test that ancestors include grandparents and exclude the node itself."""
        tree, ids = three_generations
        ancestors = get_all_ancestors(tree, ids["Kid"])
        assert ancestors == {ids["Dad"], ids["Mom"], ids["Grandpa"], ids["Grandma"]}
        assert ids["Kid"] not in ancestors

    def test_ancestors_skip_adoption(self, three_generations):
        """Test that adoptive parents are not blood ancestors."""
        tree, ids = three_generations
        assert get_all_ancestors(tree, ids["Foster"]) == set()

    def test_descendants_include_all_parental_types(self, three_generations):
        """Test that descendants follow biological and adopted links."""
        tree, ids = three_generations
        assert get_all_descendants(tree, ids["Mom"]) == {ids["Kid"], ids["Foster"]}
        assert get_all_descendants(tree, ids["Grandpa"]) == {ids["Dad"], ids["Uncle"], ids["Kid"], ids["Sibling"]}

    def test_is_ancestor_of(self, three_generations):
        """Test direct and indirect ancestry."""
        tree, ids = three_generations
        assert is_ancestor_of(tree, ids["Grandma"], ids["Kid"]) is True
        assert is_ancestor_of(tree, ids["Kid"], ids["Grandma"]) is False

    def test_are_related(self, three_generations):
        """Test blood relation through descent and common ancestors."""
        tree, ids = three_generations
        assert are_related(tree, ids["Kid"], ids["Sibling"]) is True   # common parent
        assert are_related(tree, ids["Kid"], ids["Uncle"]) is True     # common grandparent
        assert are_related(tree, ids["Grandpa"], ids["Kid"]) is True   # direct descent
        assert are_related(tree, ids["Dad"], ids["Mom"]) is False
        assert are_related(tree, ids["Foster"], ids["Kid"]) is False

    def test_get_partners_excludes_former(self, three_generations):
        """Test that only current partners are returned."""
        tree, ids = three_generations
        tree.add_connection(ids["Uncle"], ids["Stranger"], ConnectionType.FORMER_PARTNER)
        assert get_partners(tree, ids["Dad"]) == [ids["Mom"]]
        assert get_partners(tree, ids["Uncle"]) == []

    def test_creates_cycle(self, three_generations):
        """Test that making a descendant a parent is a cycle."""
        tree, ids = three_generations
        assert creates_cycle(tree, ids["Kid"], ids["Grandpa"]) is True
        assert creates_cycle(tree, ids["Grandpa"], ids["Grandpa"]) is True
        assert creates_cycle(tree, ids["Stranger"], ids["Kid"]) is False


# ============================================================================
# New Connection Validation
# ============================================================================

class TestValidateNewConnection:
    """Tests for validating a connection before it is created."""

    def test_self_reference_is_error(self, three_generations):
        """Test that connecting a node to itself is rejected with only that error."""
        tree, ids = three_generations
        result = validate_new_connection(tree, ids["Kid"], ids["Kid"], ConnectionType.PARTNER)
        assert result.is_valid is False
        assert [e.type for e in result.errors] == [ErrorType.SELF_REFERENCE]
        assert result.warnings == []

    def test_duplicate_is_warning(self, three_generations):
        """Test that an existing pair (reversed) only warns."""
        tree, ids = three_generations
        result = validate_new_connection(tree, ids["Mom"], ids["Dad"], ConnectionType.FORMER_PARTNER)
        assert result.is_valid is True
        assert [w.type for w in result.warnings] == [WarningType.DUPLICATE_CONNECTION]

    def test_incest_rejected_by_default(self, three_generations):
        """Test that partnering siblings is an error when incest is not allowed."""
        tree, ids = three_generations
        result = validate_new_connection(tree, ids["Kid"], ids["Sibling"], ConnectionType.FORMER_PARTNER)
        assert result.is_valid is False
        assert result.errors[0].type == ErrorType.INCEST_NOT_ALLOWED

    def test_incest_warns_when_allowed(self, three_generations):
        """Test that allow_incest downgrades the error to a warning."""
        tree, ids = three_generations
        tree.allow_incest = True
        result = validate_new_connection(tree, ids["Kid"], ids["Sibling"], ConnectionType.FORMER_PARTNER)
        assert result.is_valid is True
        assert WarningType.INCEST in [w.type for w in result.warnings]

    def test_partnering_with_adopted_sibling_is_fine(self, three_generations):
        """Test that adoption does not make people blood relatives."""
        tree, ids = three_generations
        result = validate_new_connection(tree, ids["Kid"], ids["Foster"], ConnectionType.FORMER_PARTNER)
        assert result.is_valid is True
        assert result.warnings == []

    def test_threesome_rejected_by_default(self, three_generations):
        """Test that a second current partner is an error."""
        tree, ids = three_generations
        result = validate_new_connection(tree, ids["Dad"], ids["Stranger"], ConnectionType.PARTNER)
        assert result.is_valid is False
        assert result.errors[0].type == ErrorType.THREESOME_NOT_ALLOWED

    def test_threesome_checks_target_side(self, three_generations):
        """Test that the other side having a partner also counts."""
        tree, ids = three_generations
        result = validate_new_connection(tree, ids["Stranger"], ids["Mom"], ConnectionType.PARTNER)
        assert result.errors[0].type == ErrorType.THREESOME_NOT_ALLOWED

    def test_threesome_warns_when_allowed(self, three_generations):
        """Test that allow_threesome downgrades the error to a warning."""
        tree, ids = three_generations
        tree.allow_threesome = True
        result = validate_new_connection(tree, ids["Dad"], ids["Stranger"], ConnectionType.PARTNER)
        assert result.is_valid is True
        assert WarningType.THREESOME in [w.type for w in result.warnings]

    def test_repartnering_same_pair_is_not_threesome(self, three_generations):
        """Test that the existing partner of this very pair is not counted."""
        tree, ids = three_generations
        result = validate_new_connection(tree, ids["Dad"], ids["Mom"], ConnectionType.PARTNER)
        assert result.is_valid is True
        assert [w.type for w in result.warnings] == [WarningType.DUPLICATE_CONNECTION]

    def test_former_partner_is_not_threesome(self, three_generations):
        """Test that FormerPartner connections skip the multi-partner rule."""
        tree, ids = three_generations
        result = validate_new_connection(tree, ids["Dad"], ids["Stranger"], ConnectionType.FORMER_PARTNER)
        assert result.is_valid is True

    def test_cycle_rejected(self, three_generations):
        """Test that a grandchild cannot become a grandparent's parent."""
        tree, ids = three_generations
        result = validate_new_connection(tree, ids["Kid"], ids["Grandpa"], ConnectionType.BIOLOGICAL)
        assert result.is_valid is False
        assert result.errors[0].type == ErrorType.CYCLIC_RELATIONSHIP

    def test_cycle_through_adoption_rejected(self, three_generations):
        """Test that cycle detection also follows adopted links."""
        tree, ids = three_generations
        result = validate_new_connection(tree, ids["Foster"], ids["Mom"], ConnectionType.STEP)
        assert result.errors[0].type == ErrorType.CYCLIC_RELATIONSHIP

    def test_parent_age_warning(self, three_generations):
        """Test that implausible parent ages produce date warnings."""
        tree, ids = three_generations
        tree.get_node(ids["Stranger"]).birth_date = date(1990, 1, 1)
        tree.get_node(ids["Uncle"]).birth_date = date(1995, 1, 1)

        result = validate_new_connection(tree, ids["Stranger"], ids["Uncle"], ConnectionType.STEP)
        assert result.is_valid is True
        assert [w.type for w in result.warnings] == [WarningType.DATE_INCONSISTENCY]
        assert result.warnings[0].node_id == ids["Uncle"]


# ============================================================================
# Date Consistency
# ============================================================================

class TestDateConsistency:
    """Tests for date sanity checks."""

    def test_consistent_dates(self):
        """Test that normal dates produce no problems."""
        assert check_date_consistency(date(1900, 1, 1), date(1970, 1, 1), date(1870, 1, 1)) == []

    def test_missing_dates(self):
        """Test that missing dates are not problems."""
        assert check_date_consistency(None, None, None) == []

    def test_death_before_birth(self):
        """Test death before birth."""
        problems = check_date_consistency(date(1900, 1, 1), date(1890, 1, 1))
        assert len(problems) == 1
        assert "before birth" in problems[0]

    def test_age_over_120(self):
        """Test implausible lifespan."""
        problems = check_date_consistency(date(1800, 1, 1), date(1930, 1, 1))
        assert "exceeds 120" in problems[0]

    def test_parent_too_young(self):
        """Test parent younger than 10 at the child's birth."""
        problems = check_date_consistency(date(1905, 1, 1), None, date(1900, 1, 1))
        assert "too young" in problems[0]

    def test_parent_too_old(self):
        """Test parent older than 80 at the child's birth."""
        problems = check_date_consistency(date(1990, 1, 1), None, date(1900, 1, 1))
        assert "exceeds 80" in problems[0]


# ============================================================================
# Whole-Tree Validation
# ============================================================================

class TestValidateTree:
    """Tests for validating an existing tree."""

    def test_clean_tree_has_no_warnings(self, three_generations):
        """Test that a consistent tree validates cleanly."""
        tree, _ = three_generations
        result = validate_tree(tree)
        assert result.is_valid is True
        assert result.warnings == []

    def test_existing_incest_is_warning(self, three_generations):
        """Test that existing incestuous partners only warn."""
        tree, ids = three_generations
        tree.add_connection(ids["Kid"], ids["Sibling"], ConnectionType.PARTNER)
        result = validate_tree(tree)
        assert result.is_valid is True
        assert [w.type for w in result.warnings] == [WarningType.INCEST]

    def test_existing_cycle_is_warning(self, three_generations):
        """Test that a loaded cycle is reported without errors."""
        tree, ids = three_generations
        tree.add_connection(ids["Kid"], ids["Grandpa"], ConnectionType.BIOLOGICAL)
        result = validate_tree(tree)
        assert result.is_valid is True
        assert result.errors == []
        assert WarningType.CYCLIC_RELATIONSHIP in [w.type for w in result.warnings]

    def test_node_dates_are_checked(self, three_generations):
        """Test that per-node date problems appear as warnings."""
        tree, ids = three_generations
        node = tree.get_node(ids["Stranger"])
        node.birth_date = date(1950, 1, 1)
        node.death_date = date(1940, 1, 1)
        result = validate_tree(tree)
        assert [(w.type, w.node_id) for w in result.warnings] == [(WarningType.DATE_INCONSISTENCY, ids["Stranger"])]
