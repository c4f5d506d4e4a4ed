from .editing import RelationshipRejected, execute_layout, undoable_edit
from .nodes import (
    AddNodeParams,
    AddRelativeParams,
    UpdateNodeParams,
    MoveNodeParams,
    add_node_at_center,
    add_parent,
    add_child,
    add_partner,
    duplicate_node,
    delete_node,
    update_node,
    move_node,
    disconnect_all,
)
from .connections import (
    ConnectParams,
    ChangeConnectionTypeParams,
    connect_nodes,
    delete_connection,
    change_connection_type,
)
from .canvas import (
    TreeOptionsParams,
    TextBoxParams,
    run_auto_layout,
    update_tree_options,
    set_alignment,
    set_line_style,
    set_layout_mode,
    add_text_box,
    update_text_box,
    delete_text_box,
    zoom_in,
    zoom_out,
    set_zoom,
    reset_view,
)
from .groups import (
    GroupParams,
    AssignGroupParams,
    add_group,
    update_group,
    remove_group,
    assign_group,
)

__all__ = [
    "RelationshipRejected",
    "execute_layout",
    "undoable_edit",
    # Person actions
    "AddNodeParams",
    "AddRelativeParams",
    "UpdateNodeParams",
    "MoveNodeParams",
    "add_node_at_center",
    "add_parent",
    "add_child",
    "add_partner",
    "duplicate_node",
    "delete_node",
    "update_node",
    "move_node",
    "disconnect_all",
    # Connection actions
    "ConnectParams",
    "ChangeConnectionTypeParams",
    "connect_nodes",
    "delete_connection",
    "change_connection_type",
    # Canvas actions
    "TreeOptionsParams",
    "TextBoxParams",
    "run_auto_layout",
    "update_tree_options",
    "set_alignment",
    "set_line_style",
    "set_layout_mode",
    "add_text_box",
    "update_text_box",
    "delete_text_box",
    "zoom_in",
    "zoom_out",
    "set_zoom",
    "reset_view",
    # Group actions
    "GroupParams",
    "AssignGroupParams",
    "add_group",
    "update_group",
    "remove_group",
    "assign_group",
]
