"""Undo/redo history with grouped transactions."""

import logging
from collections import deque
from datetime import datetime
from typing import Any, Callable

from family_tree import CanvasText, Connection, FamilyTree, Group, Node

logger = logging.getLogger("familycanvas.command_manager")

MAX_UNDO_LEVELS = 50


class Command:
    """An undoable edit. Subclasses implement execute() and undo()."""

    description = "Action"

    def execute(self) -> None:
        raise NotImplementedError

    def undo(self) -> None:
        raise NotImplementedError


# ============================================================================
# Concrete commands
# ============================================================================

def _index_of(items: list, item_id: str) -> int | None:
    for i, item in enumerate(items):
        if item.id == item_id:
            return i
    return None


class AddNodeCommand(Command):
    def __init__(self, tree: FamilyTree, node: Node):
        self.tree = tree
        self.node = node

    @property
    def description(self) -> str:
        return f"Add node: {self.node.name}"

    def execute(self) -> None:
        if _index_of(self.tree.nodes, self.node.id) is None:
            self.tree.nodes.append(self.node)

    def undo(self) -> None:
        index = _index_of(self.tree.nodes, self.node.id)
        if index is not None:
            del self.tree.nodes[index]


class DeleteNodeCommand(Command):
    """Delete a node; undo restores it at its old index along with its connections."""

    def __init__(self, tree: FamilyTree, node: Node):
        self.tree = tree
        self.node = node
        self._index: int | None = None
        self._removed_connections: list[Connection] = []

    @property
    def description(self) -> str:
        return f"Delete node: {self.node.name}"

    def execute(self) -> None:
        self._index = _index_of(self.tree.nodes, self.node.id)
        self._removed_connections = self.tree.remove_node(self.node)

    def undo(self) -> None:
        if _index_of(self.tree.nodes, self.node.id) is None:
            index = self._index if self._index is not None else len(self.tree.nodes)
            self.tree.nodes.insert(index, self.node)
        for conn in self._removed_connections:
            if _index_of(self.tree.connections, conn.id) is None:
                self.tree.connections.append(conn)


class AddConnectionCommand(Command):
    description = "Add connection"

    def __init__(self, tree: FamilyTree, connection: Connection):
        self.tree = tree
        self.connection = connection

    def execute(self) -> None:
        if _index_of(self.tree.connections, self.connection.id) is None:
            self.tree.connections.append(self.connection)

    def undo(self) -> None:
        index = _index_of(self.tree.connections, self.connection.id)
        if index is not None:
            del self.tree.connections[index]


class DeleteConnectionCommand(Command):
    description = "Delete connection"

    def __init__(self, tree: FamilyTree, connection: Connection):
        self.tree = tree
        self.connection = connection

    def execute(self) -> None:
        index = _index_of(self.tree.connections, self.connection.id)
        if index is not None:
            del self.tree.connections[index]

    def undo(self) -> None:
        if _index_of(self.tree.connections, self.connection.id) is None:
            self.tree.connections.append(self.connection)


class RenameNodeCommand(Command):
    def __init__(self, node: Node, old_name: str, new_name: str):
        self.node = node
        self.old_name = old_name
        self.new_name = new_name

    @property
    def description(self) -> str:
        return f"Rename: {self.old_name} → {self.new_name}"

    def execute(self) -> None:
        self.node.name = self.new_name

    def undo(self) -> None:
        self.node.name = self.old_name


class UpdateFieldsCommand(Command):
    """Set attributes on any model, remembering the previous values for undo."""

    def __init__(self, target: Node | Connection | Group | CanvasText | FamilyTree,
                 changes: dict[str, Any], description: str = "Edit"):
        self.target = target
        self.new_values = dict(changes)
        self.old_values = {field: getattr(target, field) for field in changes}
        self.description = description

    def execute(self) -> None:
        for field, value in self.new_values.items():
            setattr(self.target, field, value)

    def undo(self) -> None:
        for field, value in self.old_values.items():
            setattr(self.target, field, value)


class UpdateNodeCommand(UpdateFieldsCommand):
    def __init__(self, node: Node, changes: dict[str, Any]):
        super().__init__(node, changes, f"Edit {node.name}")


def capture_positions(tree: FamilyTree) -> dict[str, tuple[float, float]]:
    return {n.id: (n.x, n.y) for n in tree.nodes}


class MoveNodesCommand(Command):
    """Swap between two position snapshots (drags and auto layout)."""

    def __init__(self, tree: FamilyTree,
                 before: dict[str, tuple[float, float]],
                 after: dict[str, tuple[float, float]],
                 description: str = "Move"):
        self.tree = tree
        self.before = before
        self.after = after
        self.description = description

    def _apply(self, positions: dict[str, tuple[float, float]]) -> None:
        for node_id, (x, y) in positions.items():
            node = self.tree.find_node(node_id)
            if node is not None:
                node.move_to(x, y)

    def execute(self) -> None:
        self._apply(self.after)

    def undo(self) -> None:
        self._apply(self.before)


class ActionCommand(Command):
    """Generic command built from an execute callable and an undo callable."""

    def __init__(self, execute_action: Callable[[], None], undo_action: Callable[[], None],
                 description: str = "Action"):
        self._execute_action = execute_action
        self._undo_action = undo_action
        self.description = description

    def execute(self) -> None:
        self._execute_action()

    def undo(self) -> None:
        self._undo_action()


class CompositeCommand(Command):
    """Several commands treated as one undo step. Undo runs in LIFO order."""

    def __init__(self, commands: list[Command], description: str = "Transaction"):
        self.commands = list(commands)
        self.description = description

    def execute(self) -> None:
        for command in self.commands:
            command.execute()

    def undo(self) -> None:
        for command in reversed(self.commands):
            command.undo()


# ============================================================================
# Manager
# ============================================================================

class CommandManager:
    """Undo/redo stacks with an optional open transaction."""

    def __init__(self, max_levels: int = MAX_UNDO_LEVELS):
        self._undo_stack: deque[Command] = deque(maxlen=max_levels)
        self._redo_stack: list[Command] = []
        self._listeners: list[Callable[["CommandManager"], None]] = []
        self._transaction: dict[str, Any] | None = None

    # State ---------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return len(self._undo_stack) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._redo_stack) > 0

    @property
    def undo_description(self) -> str | None:
        return self._undo_stack[-1].description if self.can_undo else None

    @property
    def redo_description(self) -> str | None:
        return self._redo_stack[-1].description if self.can_redo else None

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None

    def history(self) -> dict[str, Any]:
        return {
            "undo": [c.description for c in reversed(self._undo_stack)],
            "redo": [c.description for c in reversed(self._redo_stack)],
            "canUndo": self.can_undo,
            "canRedo": self.can_redo,
        }

    def add_listener(self, listener: Callable[["CommandManager"], None]) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self)

    # Execution -----------------------------------------------------------

    def _push(self, command: Command) -> None:
        self._undo_stack.append(command)  # deque drops the oldest past max_levels
        self._redo_stack.clear()

    def execute(self, command: Command) -> None:
        """Run a command and record it (in the open transaction, if any)."""
        command.execute()
        if self._transaction is not None:
            self._transaction["commands"].append(command)
            return
        self._push(command)
        logger.debug(f"Executed: {command.description}")
        self._notify()

    def undo(self) -> str | None:
        if self._transaction is not None:
            raise RuntimeError("Cannot undo while a transaction is in progress")
        if not self.can_undo:
            return None
        command = self._undo_stack.pop()
        command.undo()
        self._redo_stack.append(command)
        logger.info(f"Undid: {command.description}")
        self._notify()
        return command.description

    def redo(self) -> str | None:
        if self._transaction is not None:
            raise RuntimeError("Cannot redo while a transaction is in progress")
        if not self.can_redo:
            return None
        command = self._redo_stack.pop()
        command.execute()
        self._undo_stack.append(command)
        logger.info(f"Redid: {command.description}")
        self._notify()
        return command.description

    def clear(self) -> None:
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._transaction = None
        self._notify()

    # Transactions --------------------------------------------------------

    def begin_transaction(self, description: str = "Transaction") -> dict[str, Any]:
        """
        Start grouping executed commands into a single undo step.

        Returns:
            dict: Transaction info with 'id' and 'description'
        """
        if self._transaction is not None:
            raise RuntimeError(f"Transaction already in progress: {self._transaction['description']}")

        self._transaction = {
            "id": f"txn_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}",
            "description": description,
            "started_at": datetime.now().isoformat(),
            "commands": [],
        }
        return {k: v for k, v in self._transaction.items() if k != "commands"}

    def commit_transaction(self) -> CompositeCommand | None:
        """Close the transaction and push it as one command. Empty transactions push nothing."""
        if self._transaction is None:
            raise RuntimeError("No active transaction to commit")

        transaction, self._transaction = self._transaction, None
        if not transaction["commands"]:
            return None

        composite = CompositeCommand(transaction["commands"], transaction["description"])
        self._push(composite)
        logger.debug(f"Committed transaction '{composite.description}' ({len(composite.commands)} commands)")
        self._notify()
        return composite

    def rollback_transaction(self) -> None:
        """Cancel the transaction, undoing whatever it already executed."""
        if self._transaction is None:
            raise RuntimeError("No active transaction to rollback")

        transaction, self._transaction = self._transaction, None
        for command in reversed(transaction["commands"]):
            command.undo()
        logger.debug(f"Rolled back transaction '{transaction['description']}'")
