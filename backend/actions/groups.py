"""Group actions: create, edit, remove and assign person groups."""

import logging

from pydantic import BaseModel

from command_manager import ActionCommand, UpdateFieldsCommand
from family_tree import Group
from session import EditorError, EditorSession
from tree_file import parse_color

from .editing import undoable_edit

logger = logging.getLogger("familycanvas.actions.groups")


class GroupParams(BaseModel):
    name: str | None = None
    color: str | None = None
    is_visible: bool | None = None


class AssignGroupParams(BaseModel):
    node_ids: list[str]
    group_id: str | None = None  # None removes the nodes from their group


def _group_values(params: GroupParams) -> dict[str, object]:
    values = params.model_dump(exclude_none=True)
    if "color" in values:
        color = parse_color(values["color"], "")
        if not color:
            raise EditorError(f"Invalid color: '{params.color}'")
        values["color"] = color
    return values


def add_group(session: EditorSession, params: GroupParams) -> Group:
    tree = session.tree
    group = Group(**_group_values(params))

    session.commands.execute(ActionCommand(
        lambda: tree.groups.append(group),
        lambda: tree.groups.remove(group),
        f"Add group: {group.name}",
    ))
    logger.info(f"Added group {group.id} ({group.name})")
    return group


def update_group(session: EditorSession, group_id: str, params: GroupParams) -> Group:
    group = session.tree.get_group(group_id)
    changes = {k: v for k, v in _group_values(params).items() if getattr(group, k) != v}
    if changes:
        session.commands.execute(UpdateFieldsCommand(group, changes, f"Edit group: {group.name}"))
    return group


def remove_group(session: EditorSession, group_id: str) -> Group:
    """Delete a group. Its members stay on the canvas without a group."""
    tree = session.tree
    group = tree.get_group(group_id)
    index = tree.groups.index(group)

    with undoable_edit(session, f"Remove group: {group.name}") as commands:
        for member in tree.members_of(group.id):
            commands.execute(UpdateFieldsCommand(member, {"group_id": None}))
        commands.execute(ActionCommand(
            lambda: tree.groups.remove(group),
            lambda: tree.groups.insert(index, group),
        ))

    logger.info(f"Removed group {group.id} ({group.name})")
    return group


def assign_group(session: EditorSession, params: AssignGroupParams) -> list[str]:
    """Put nodes into a group (or take them out). Returns the ids that changed."""
    tree = session.tree
    if params.group_id is not None:
        tree.get_group(params.group_id)
    nodes = [tree.get_node(node_id) for node_id in params.node_ids]

    changed = [n for n in nodes if n.group_id != params.group_id]
    if not changed:
        return []

    with undoable_edit(session, "Assign group") as commands:
        for node in changed:
            commands.execute(UpdateFieldsCommand(node, {"group_id": params.group_id}))

    return [n.id for n in changed]
