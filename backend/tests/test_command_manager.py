"""Tests for undo/redo history and transactions."""

import os
import pytest
import sys

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from command_manager import (
    ActionCommand,
    AddConnectionCommand,
    AddNodeCommand,
    CommandManager,
    CompositeCommand,
    DeleteConnectionCommand,
    DeleteNodeCommand,
    MoveNodesCommand,
    RenameNodeCommand,
    UpdateNodeCommand,
    capture_positions,
)
from family_tree import Connection, ConnectionType, FamilyTree, Gender, Node


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def tree():
    return FamilyTree()


@pytest.fixture
def manager():
    return CommandManager()


def counter_command(log: list, name: str) -> ActionCommand:
    """A command that records execute/undo calls into a shared log."""
    return ActionCommand(
        lambda: log.append(f"do {name}"),
        lambda: log.append(f"undo {name}"),
        name,
    )


# ============================================================================
# Concrete Commands
# ============================================================================

class TestCommands:
    """Tests for the individual undoable edits."""

    def test_add_node_command(self, tree, manager):
        """Test adding and un-adding a node."""
        node = Node(name="Alice")
        manager.execute(AddNodeCommand(tree, node))
        assert tree.nodes == [node]

        manager.undo()
        assert tree.nodes == []

        manager.redo()
        assert tree.nodes == [node]

    def test_delete_node_restores_connections_and_order(self, tree, manager):
        """Test that undoing a delete restores the node in place with its connections."""
        a, b, c = tree.add_node("A"), tree.add_node("B"), tree.add_node("C")
        tree.add_connection(a.id, b.id, ConnectionType.BIOLOGICAL)
        tree.add_connection(b.id, c.id, ConnectionType.BIOLOGICAL)

        manager.execute(DeleteNodeCommand(tree, b))
        assert [n.name for n in tree.nodes] == ["A", "C"]
        assert tree.connections == []

        manager.undo()
        assert [n.name for n in tree.nodes] == ["A", "B", "C"]
        assert len(tree.connections) == 2

    def test_connection_commands(self, tree, manager):
        """Test adding and deleting a connection with undo."""
        a, b = tree.add_node("A"), tree.add_node("B")
        connection = Connection(from_node_id=a.id, to_node_id=b.id, connection_type=ConnectionType.PARTNER)

        manager.execute(AddConnectionCommand(tree, connection))
        assert tree.connections == [connection]
        manager.execute(DeleteConnectionCommand(tree, connection))
        assert tree.connections == []

        manager.undo()
        assert tree.connections == [connection]
        manager.undo()
        assert tree.connections == []

    def test_rename_command(self, tree, manager):
        """Test renaming with a descriptive history entry."""
        node = tree.add_node("Old")
        manager.execute(RenameNodeCommand(node, "Old", "New"))
        assert node.name == "New"
        assert "Old" in manager.undo_description and "New" in manager.undo_description

        manager.undo()
        assert node.name == "Old"

    def test_update_node_command(self, tree, manager):
        """Test that several fields change and revert together."""
        node = tree.add_node("Bob")
        manager.execute(UpdateNodeCommand(node, {"gender": Gender.MALE, "is_alive": False}))
        assert node.gender == Gender.MALE and node.is_alive is False

        manager.undo()
        assert node.gender == Gender.UNSPECIFIED and node.is_alive is True

    def test_move_nodes_command(self, tree, manager):
        """Test swapping between position snapshots."""
        node = tree.add_node("Mover")
        before = capture_positions(tree)
        node.move_to(50, 60)
        after = capture_positions(tree)

        manager.execute(MoveNodesCommand(tree, before, after))
        manager.undo()
        assert node.position == (0, 0)
        manager.redo()
        assert node.position == (50, 60)

    def test_composite_undo_is_lifo(self):
        """Test that a composite undoes its children in reverse order."""
        log = []
        composite = CompositeCommand([counter_command(log, "a"), counter_command(log, "b")])
        composite.execute()
        composite.undo()
        assert log == ["do a", "do b", "undo b", "undo a"]


# ============================================================================
# Manager
# ============================================================================

class TestCommandManager:
    """Tests for undo/redo stacks."""

    def test_empty_history(self, manager):
        """Test that undo and redo are no-ops on empty stacks."""
        assert manager.can_undo is False
        assert manager.can_redo is False
        assert manager.undo() is None
        assert manager.redo() is None
        assert manager.undo_description is None

    def test_undo_redo_descriptions(self, manager):
        """Test that undo and redo report what they reverted."""
        log = []
        manager.execute(counter_command(log, "first"))
        assert manager.undo() == "first"
        assert manager.redo_description == "first"
        assert manager.redo() == "first"
        assert log == ["do first", "undo first", "do first"]

    def test_execute_clears_redo(self, manager):
        """Test that a new command discards the redo stack."""
        log = []
        manager.execute(counter_command(log, "a"))
        manager.undo()
        manager.execute(counter_command(log, "b"))
        assert manager.can_redo is False
        assert manager.undo_description == "b"

    def test_history_is_capped_at_fifty(self, manager):
        """Test that the oldest entries are dropped after 50 levels."""
        log = []
        for i in range(60):
            manager.execute(counter_command(log, str(i)))

        undone = []
        while manager.can_undo:
            undone.append(manager.undo())

        assert len(undone) == 50
        assert undone[0] == "59"
        assert undone[-1] == "10"

    def test_history_snapshot(self, manager):
        """Test the serializable history summary."""
        log = []
        manager.execute(counter_command(log, "a"))
        manager.execute(counter_command(log, "b"))
        manager.undo()

        assert manager.history() == {
            "undo": ["a"],
            "redo": ["b"],
            "canUndo": True,
            "canRedo": True,
        }

    def test_listeners_notified(self, manager):
        """Test that listeners hear about execute, undo, redo and clear."""
        calls = []
        manager.add_listener(lambda m: calls.append(m.can_undo))
        manager.execute(counter_command([], "a"))
        manager.undo()
        manager.redo()
        manager.clear()
        assert calls == [True, False, True, False]

    def test_clear(self, manager):
        """Test that clear empties both stacks."""
        manager.execute(counter_command([], "a"))
        manager.undo()
        manager.execute(counter_command([], "b"))
        manager.clear()
        assert manager.can_undo is False and manager.can_redo is False


# ============================================================================
# Transactions
# ============================================================================

class TestTransactions:
    """Tests for grouping commands into one undo step."""

    def test_commit_creates_single_step(self, tree, manager):
        """Test that a committed transaction undoes as one unit."""
        info = manager.begin_transaction("Add family")
        assert info["description"] == "Add family"
        assert "id" in info

        a, b = Node(name="A"), Node(name="B")
        manager.execute(AddNodeCommand(tree, a))
        manager.execute(AddNodeCommand(tree, b))
        assert manager.can_undo is False

        composite = manager.commit_transaction()
        assert len(composite.commands) == 2
        assert manager.undo_description == "Add family"

        manager.undo()
        assert tree.nodes == []
        manager.redo()
        assert [n.name for n in tree.nodes] == ["A", "B"]

    def test_empty_commit_records_nothing(self, manager):
        """Test that committing without commands leaves history unchanged."""
        manager.begin_transaction("Nothing")
        assert manager.commit_transaction() is None
        assert manager.can_undo is False

    def test_rollback_reverts_executed_commands(self, tree, manager):
        """Test that rollback undoes in reverse order and records nothing."""
        log = []
        manager.begin_transaction("Doomed")
        manager.execute(counter_command(log, "a"))
        manager.execute(counter_command(log, "b"))
        manager.rollback_transaction()

        assert log == ["do a", "do b", "undo b", "undo a"]
        assert manager.can_undo is False
        assert manager.in_transaction is False

    def test_nested_begin_raises(self, manager):
        """Test that only one transaction may be open."""
        manager.begin_transaction("Outer")
        with pytest.raises(RuntimeError, match="already in progress"):
            manager.begin_transaction("Inner")

    def test_commit_without_transaction_raises(self, manager):
        """Test committing when nothing is open."""
        with pytest.raises(RuntimeError, match="No active transaction"):
            manager.commit_transaction()

    def test_rollback_without_transaction_raises(self, manager):
        """Test rolling back when nothing is open."""
        with pytest.raises(RuntimeError, match="No active transaction"):
            manager.rollback_transaction()

    def test_undo_blocked_during_transaction(self, manager):
        """Test that history cannot move while a transaction is open."""
        manager.execute(counter_command([], "a"))
        manager.begin_transaction("Open")
        with pytest.raises(RuntimeError):
            manager.undo()
