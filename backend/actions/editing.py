"""Shared plumbing for editor actions: undo steps and Fixed-mode relayout."""

import logging
from contextlib import contextmanager
from typing import Iterator

from command_manager import CommandManager, MoveNodesCommand, capture_positions
from family_tree import LayoutMode
from layout_engine import apply_layout
from relationship_validator import ValidationResult
from session import EditorSession

logger = logging.getLogger("familycanvas.actions")


class RelationshipRejected(Exception):
    """A connection was refused by the relationship rules."""

    def __init__(self, result: ValidationResult):
        messages = [e.message for e in result.errors]
        super().__init__("; ".join(messages) or "Connection rejected")
        self.result = result


def execute_layout(session: EditorSession, description: str = "Auto layout") -> MoveNodesCommand | None:
    """Lay out the tree as a single undoable move. Returns None if nothing moved."""
    tree = session.tree
    before = capture_positions(tree)
    apply_layout(tree)
    after = capture_positions(tree)
    if before == after:
        return None

    command = MoveNodesCommand(tree, before, after, description)
    session.commands.execute(command)
    return command


@contextmanager
def undoable_edit(session: EditorSession, description: str,
                  relayout: bool = False) -> Iterator[CommandManager]:
    """
    Group every command executed inside the block into one undo step.

    With relayout=True and the tree in Fixed mode, the automatic layout runs
    at the end of the block as part of the same step. If the block raises,
    everything it executed is rolled back.
    """
    commands = session.commands
    commands.begin_transaction(description)
    try:
        yield commands
        if relayout and session.tree.layout_mode == LayoutMode.FIXED:
            execute_layout(session)
    except Exception:
        commands.rollback_transaction()
        logger.debug(f"Rolled back '{description}'")
        raise
    commands.commit_transaction()
