"""Connection actions: connect two people, retype or remove a connection."""

import logging

from pydantic import BaseModel, Field

from command_manager import AddConnectionCommand, DeleteConnectionCommand, UpdateFieldsCommand
from family_tree import Connection, ConnectionType
from relationship_validator import ValidationResult, WarningType, validate_new_connection
from session import EditorSession

from .editing import RelationshipRejected, undoable_edit

logger = logging.getLogger("familycanvas.actions.connections")


class ConnectParams(BaseModel):
    """Parameters for connecting two people."""
    from_node_id: str = Field(description="Parent for parental types, either partner otherwise.")
    to_node_id: str = Field(description="Child for parental types, the other partner otherwise.")
    connection_type: ConnectionType = ConnectionType.BIOLOGICAL


class ChangeConnectionTypeParams(BaseModel):
    connection_type: ConnectionType


def connect_nodes(session: EditorSession, params: ConnectParams) -> tuple[Connection, ValidationResult]:
    """
    Validate and create a connection.

    Raises RelationshipRejected when a rule blocks it. If the pair is already
    connected the existing connection is returned and nothing is recorded.
    """
    tree = session.tree
    tree.get_node(params.from_node_id)
    tree.get_node(params.to_node_id)

    result = validate_new_connection(tree, params.from_node_id, params.to_node_id, params.connection_type)
    if not result.is_valid:
        raise RelationshipRejected(result)

    existing = tree.find_connection_between(params.from_node_id, params.to_node_id)
    if existing is not None:
        return existing, result

    connection = Connection(
        from_node_id=params.from_node_id,
        to_node_id=params.to_node_id,
        connection_type=params.connection_type,
    )
    with undoable_edit(session, f"Connect ({params.connection_type.value})", relayout=True) as commands:
        commands.execute(AddConnectionCommand(tree, connection))

    logger.info(
        f"Connected {params.from_node_id} -> {params.to_node_id} ({params.connection_type.value}), "
        f"{len(result.warnings)} warnings"
    )
    return connection, result


def delete_connection(session: EditorSession, connection_id: str) -> Connection:
    tree = session.tree
    connection = tree.get_connection(connection_id)
    with undoable_edit(session, "Delete connection", relayout=True) as commands:
        commands.execute(DeleteConnectionCommand(tree, connection))
    return connection


def change_connection_type(session: EditorSession, connection_id: str,
                           connection_type: ConnectionType) -> tuple[Connection, ValidationResult]:
    """Retype an existing connection, re-running the rules for the new type."""
    tree = session.tree
    connection = tree.get_connection(connection_id)
    if connection.connection_type == connection_type:
        return connection, ValidationResult()

    result = validate_new_connection(tree, connection.from_node_id, connection.to_node_id, connection_type)
    # The pair is connected already; that is the point of a retype
    result.warnings = [w for w in result.warnings if w.type != WarningType.DUPLICATE_CONNECTION]
    if not result.is_valid:
        raise RelationshipRejected(result)

    with undoable_edit(session, f"Change connection to {connection_type.value}", relayout=True) as commands:
        commands.execute(UpdateFieldsCommand(
            connection, {"connection_type": connection_type}, f"Change connection to {connection_type.value}",
        ))

    return connection, result
