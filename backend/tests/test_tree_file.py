"""Tests for reading and writing `.tree` documents.

Uses the sample-family.tree file (House of Windsor) for testing.
"""

import json
import os
import pytest
import sys
from datetime import date

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from family_tree import (
    AlignmentMode,
    CanvasText,
    ConnectionType,
    FamilyTree,
    Gender,
    Group,
    LayoutMode,
    LineStyle,
    RoyalTitle,
)
from tree_file import (
    TreeFileError,
    dumps_tree,
    load_tree,
    loads_tree,
    parse_color,
    parse_enum,
    save_tree,
)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def sample_tree_path():
    """Path to the sample tree file."""
    return os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
        "sample-family.tree"
    )


@pytest.fixture
def sample_tree(sample_tree_path):
    return load_tree(sample_tree_path)


# ============================================================================
# Loading
# ============================================================================

class TestLoading:
    """Tests for loading the sample document."""

    def test_counts(self, sample_tree):
        """Test that every element of the sample file is loaded."""
        assert len(sample_tree.nodes) == 8
        assert len(sample_tree.connections) == 11
        assert len(sample_tree.groups) == 1

    def test_settings(self, sample_tree):
        """Test that tree settings are applied."""
        assert sample_tree.name == "House of Windsor"
        assert sample_tree.alignment_mode == AlignmentMode.TOP_DOWN
        assert sample_tree.layout_mode == LayoutMode.FREE
        assert sample_tree.line_style == LineStyle.CURVES
        assert sample_tree.allow_incest is False

    def test_node_fields(self, sample_tree):
        """Test gender, title, dates and position of a node."""
        queen = sample_tree.get_node("elizabeth-ii")
        assert queen.gender == Gender.FEMALE
        assert queen.royal_title == RoyalTitle.QUEEN
        assert queen.is_royal is True
        assert queen.is_alive is False
        assert queen.birth_date == date(1926, 4, 21)
        assert queen.death_date == date(2022, 9, 8)
        assert queen.position == (100, 280)
        assert queen.group_id == "windsor"

    def test_connection_types(self, sample_tree):
        """Test that connection types are parsed."""
        divorce = sample_tree.get_connection("c9")
        assert divorce.connection_type == ConnectionType.FORMER_PARTNER
        assert divorce.from_node_id == "charles-iii"

    def test_group_color_normalized(self, sample_tree):
        """Test that group colors are upper-cased hex."""
        assert sample_tree.get_group("windsor").color == "#7B2D8B"

    def test_missing_file_raises(self, tmp_path):
        """Test that an unreadable path raises TreeFileError."""
        with pytest.raises(TreeFileError, match="Error loading file"):
            load_tree(tmp_path / "missing.tree")

    def test_undecodable_file_raises(self, tmp_path):
        """Test that a file that is not UTF-8 raises TreeFileError."""
        path = tmp_path / "latin.tree"
        path.write_bytes(b'{"Nodes": [{"Name": "\xff\xfe"}]}')
        with pytest.raises(TreeFileError, match="Error loading file"):
            load_tree(path)


# ============================================================================
# Lenient Parsing
# ============================================================================

class TestLenientParsing:
    """Tests for tolerant reading of hand-edited or older documents."""

    def test_minimal_document(self):
        """Test that missing collections and settings load as an empty tree."""
        tree = loads_tree('{"Version": 1}')
        assert tree.nodes == [] and tree.connections == [] and tree.groups == []
        assert tree.alignment_mode == AlignmentMode.TOP_DOWN

    def test_missing_ids_and_names_get_defaults(self):
        """Test that nodes without id or name still load."""
        tree = loads_tree('{"Nodes": [{"X": 10}], "Groups": [{"Color": "nope"}]}')
        node = tree.nodes[0]
        assert node.id
        assert node.name == "Unknown"
        assert node.is_alive is True
        assert tree.groups[0].name == "Unnamed"
        assert tree.groups[0].color == "#808080"
        assert tree.groups[0].is_visible is True

    def test_leftright_alignment(self):
        """Test the lowercase alignment value."""
        tree = loads_tree('{"Settings": {"Alignment": "leftright", "AllowThreesome": true}}')
        assert tree.alignment_mode == AlignmentMode.LEFT_RIGHT
        assert tree.allow_threesome is True

    def test_unparseable_date_is_dropped(self):
        """Test that a bad date becomes None instead of failing."""
        tree = loads_tree('{"Nodes": [{"Name": "X", "BirthDate": "sometime"}]}')
        assert tree.nodes[0].birth_date is None

    def test_malformed_json_raises(self):
        """Test that invalid JSON raises TreeFileError."""
        with pytest.raises(TreeFileError):
            loads_tree("{not json")

    def test_wrong_field_type_raises(self):
        """Test that structurally invalid documents raise TreeFileError."""
        with pytest.raises(TreeFileError):
            loads_tree('{"Nodes": "everyone"}')

    def test_parse_enum(self):
        """Test case-insensitive enum matching by value or name."""
        assert parse_enum(ConnectionType, "formerpartner") == ConnectionType.FORMER_PARTNER
        assert parse_enum(ConnectionType, "FORMER_PARTNER") == ConnectionType.FORMER_PARTNER
        assert parse_enum(Gender, "MALE") == Gender.MALE
        assert parse_enum(Gender, "martian") == Gender.UNSPECIFIED
        assert parse_enum(RoyalTitle, None) == RoyalTitle.NONE

    def test_parse_color(self):
        """Test hex color validation with fallback."""
        assert parse_color("#ff0000") == "#FF0000"
        assert parse_color("#80FF0000") == "#80FF0000"
        assert parse_color("red") == "#808080"
        assert parse_color(None, "#FFFFFF") == "#FFFFFF"


# ============================================================================
# Writing
# ============================================================================

class TestWriting:
    """Tests for the written JSON layout."""

    def test_pascal_case_keys_and_lowercase_values(self):
        """Test the on-disk key and value conventions."""
        tree = FamilyTree(alignment_mode=AlignmentMode.LEFT_RIGHT)
        node = tree.add_node("Ada")
        node.gender = Gender.FEMALE
        node.birth_date = date(1815, 12, 10)

        data = json.loads(dumps_tree(tree))

        assert data["Version"] == 1
        assert data["Settings"]["Alignment"] == "leftright"
        written = data["Nodes"][0]
        assert written["Name"] == "Ada"
        assert written["Gender"] == "female"
        assert written["BirthDate"] == "1815-12-10T00:00:00"
        assert "DeathDate" not in written
        assert "GroupId" not in written

    def test_text_boxes_survive(self):
        """Test that canvas text boxes are written and read back."""
        tree = FamilyTree()
        tree.text_boxes.append(CanvasText(text="Royal line", x=40, y=50, text_color="#FFCC00"))

        loaded = loads_tree(dumps_tree(tree))

        box = loaded.text_boxes[0]
        assert (box.text, box.x, box.y, box.text_color) == ("Royal line", 40, 50, "#FFCC00")

    def test_save_and_reload_sample(self, sample_tree, tmp_path):
        """Test that saving and reloading keeps the document intact."""
        path = tmp_path / "copy.tree"
        sample_tree.groups.append(Group(name="Spencer", color="#00AA00", is_visible=False))
        save_tree(sample_tree, path)

        reloaded = load_tree(path)

        assert [n.id for n in reloaded.nodes] == [n.id for n in sample_tree.nodes]
        assert [c.connection_type for c in reloaded.connections] == [c.connection_type for c in sample_tree.connections]
        assert reloaded.groups[1].is_visible is False
        assert reloaded.layout_mode == LayoutMode.FREE

    def test_save_to_bad_path_raises(self, tmp_path):
        """Test that write failures raise TreeFileError."""
        with pytest.raises(TreeFileError, match="Error saving file"):
            save_tree(FamilyTree(), tmp_path / "no-such-dir" / "x.tree")
