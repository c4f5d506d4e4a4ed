"""FamilyCanvas - Family Tree Editor Backend.

FastAPI server that owns the family tree document for the canvas front end:
editing with undo/redo, relationship validation, automatic layout, `.tree`
files, GEDCOM import and SVG export.
"""

import logging
import os
from contextlib import asynccontextmanager
from urllib.parse import quote

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("familycanvas")

from fastapi import FastAPI, HTTPException, UploadFile, File
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel
from dotenv import load_dotenv

from actions import (
    AddNodeParams,
    AddRelativeParams,
    AssignGroupParams,
    ChangeConnectionTypeParams,
    ConnectParams,
    GroupParams,
    MoveNodeParams,
    RelationshipRejected,
    TextBoxParams,
    TreeOptionsParams,
    UpdateNodeParams,
    add_child,
    add_group,
    add_node_at_center,
    add_parent,
    add_partner,
    add_text_box,
    assign_group,
    change_connection_type,
    connect_nodes,
    delete_connection,
    delete_node,
    delete_text_box,
    disconnect_all,
    duplicate_node,
    move_node,
    remove_group,
    reset_view,
    run_auto_layout,
    set_zoom,
    update_group,
    update_node,
    update_text_box,
    update_tree_options,
    zoom_in,
    zoom_out,
)
from family_tree import FamilyTreeError
from gedcom_import import GedcomImportError, import_gedcom_content
from relationship_validator import (
    get_all_ancestors,
    get_all_descendants,
    get_partners,
    validate_new_connection,
    validate_tree,
)
from session import EditorError, EditorSession, new_tree_from_settings
from settings_manager import AppSettings, SettingsError, load_settings, reset_settings, save_settings
from svg_export import ExportError, render_svg
from tree_file import TreeFileError, dumps_tree, load_tree, loads_tree, save_tree

# Load environment variables
load_dotenv()

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"

# Global state
current_session: EditorSession | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - load settings and open an empty document."""
    global current_session

    settings = load_settings()
    current_session = EditorSession(settings)
    logger.info("✓ Editor session ready")

    yield

    if current_session and current_session.is_dirty:
        logger.warning("Shutting down with unsaved changes")
    current_session = None


# Create FastAPI app
app = FastAPI(
    title="FamilyCanvas",
    description="Family tree editor with relationship validation and automatic layout",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("FAMILYCANVAS_CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class SaveRequest(BaseModel):
    """Save the document, optionally under a new path."""
    path: str | None = None


class OpenRequest(BaseModel):
    path: str


class ViewportRequest(BaseModel):
    zoom: float | None = None
    offset_x: float | None = None
    offset_y: float | None = None


class UndoResponse(BaseModel):
    description: str | None
    history: dict


# Helpers

def get_session() -> EditorSession:
    """The open editor session, created on first use."""
    global current_session
    if current_session is None:
        current_session = EditorSession(load_settings())
    return current_session


def to_http_error(error: Exception) -> HTTPException:
    """Translate a domain error into an HTTP error."""
    if isinstance(error, FamilyTreeError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, RelationshipRejected):
        return HTTPException(status_code=409, detail={
            "message": str(error),
            "errors": [e.model_dump(mode="json") for e in error.result.errors],
            "warnings": [w.model_dump(mode="json") for w in error.result.warnings],
        })
    if isinstance(error, EditorError):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))


DOMAIN_ERRORS = (FamilyTreeError, RelationshipRejected, EditorError)


def tree_state() -> dict:
    session = get_session()
    return {
        "tree": session.tree.model_dump(mode="json"),
        "title": session.title,
        "isDirty": session.is_dirty,
        "filePath": str(session.file_path) if session.file_path else None,
        "history": session.commands.history(),
    }


def attachment_headers(filename: str) -> dict[str, str]:
    """Content-Disposition for a download. Header values must be latin-1, so the
    real name goes in the RFC 5987 `filename*` form with an ASCII fallback."""
    stem, ext = os.path.splitext(filename)
    ascii_stem = stem.encode("ascii", "ignore").decode("ascii").replace('"', "").replace("\\", "").strip()
    ascii_ext = ext.encode("ascii", "ignore").decode("ascii")
    fallback = f"{ascii_stem or 'download'}{ascii_ext}"
    return {
        "Content-Disposition": f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}",
    }


async def read_upload_text(file: UploadFile) -> str:
    content = await file.read()
    logger.debug(f"Read {len(content)} bytes from {file.filename}")
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("UTF-8 decode failed, trying latin-1 encoding")
        return content.decode("latin-1")


# ============================================================================
# Document endpoints
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "session_open": current_session is not None,
    }


@app.post("/tree/new")
async def new_tree():
    """Discard the current document and start an empty one."""
    session = get_session()
    session.replace_tree(new_tree_from_settings(session.settings))
    logger.info("Started new tree")
    return tree_state()


@app.get("/tree")
async def get_tree():
    return tree_state()


@app.post("/tree/upload")
async def upload_tree(file: UploadFile = File(...)):
    """Open a `.tree` document uploaded by the front end."""
    logger.info(f"Received tree file upload: {file.filename}")

    if not file.filename.endswith((".tree", ".json")):
        logger.warning(f"Invalid file type: {file.filename}")
        raise HTTPException(status_code=400, detail="File must be a tree file (.tree or .json)")

    content = await read_upload_text(file)
    try:
        tree = loads_tree(content)
    except TreeFileError as e:
        logger.error(f"Failed to parse tree file: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    get_session().replace_tree(tree)
    return tree_state()


@app.get("/tree/download")
async def download_tree():
    session = get_session()
    filename = session.file_path.name if session.file_path else f"{session.tree.name}.tree"
    return Response(
        content=dumps_tree(session.tree),
        media_type="application/json",
        headers=attachment_headers(filename),
    )


@app.post("/tree/save")
async def save_current_tree(request: SaveRequest):
    """Write the document to disk (the given path, or where it was last saved)."""
    session = get_session()
    path = request.path or session.file_path
    if not path:
        raise HTTPException(status_code=400, detail="No file path given and the tree has never been saved")

    try:
        save_tree(session.tree, path)
    except TreeFileError as e:
        logger.error(f"Failed to save tree: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    session.mark_saved(path)
    return tree_state()


@app.post("/tree/open")
async def open_tree(request: OpenRequest):
    try:
        tree = load_tree(request.path)
    except TreeFileError as e:
        logger.error(f"Failed to open tree: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    get_session().replace_tree(tree, request.path)
    return tree_state()


@app.post("/upload-gedcom")
async def upload_gedcom(file: UploadFile = File(...)):
    """Import a GEDCOM file as a new, automatically laid-out document."""
    logger.info(f"Received GEDCOM file upload: {file.filename}")

    if not file.filename.endswith((".ged", ".gedcom")):
        logger.warning(f"Invalid file type: {file.filename}")
        raise HTTPException(status_code=400, detail="File must be a GEDCOM file (.ged or .gedcom)")

    content = await read_upload_text(file)
    try:
        tree = import_gedcom_content(content, tree_name=os.path.splitext(file.filename)[0])
    except GedcomImportError as e:
        logger.error(f"Failed to parse GEDCOM file: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    get_session().replace_tree(tree)
    return tree_state()


# ============================================================================
# People
# ============================================================================

@app.get("/nodes")
async def list_nodes():
    return {"nodes": [n.model_dump(mode="json") for n in get_session().tree.nodes]}


@app.post("/nodes")
async def create_node(params: AddNodeParams):
    node = add_node_at_center(get_session(), params)
    return node.model_dump(mode="json")


@app.get("/nodes/{node_id}")
async def get_node(node_id: str):
    try:
        return get_session().tree.get_node(node_id).model_dump(mode="json")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@app.patch("/nodes/{node_id}")
async def edit_node(node_id: str, params: UpdateNodeParams):
    try:
        return update_node(get_session(), node_id, params).model_dump(mode="json")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@app.delete("/nodes/{node_id}")
async def remove_node(node_id: str):
    try:
        node = delete_node(get_session(), node_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {"deleted": node.id}


@app.post("/nodes/{node_id}/move")
async def drag_node(node_id: str, params: MoveNodeParams):
    try:
        return move_node(get_session(), node_id, params).model_dump(mode="json")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@app.post("/nodes/{node_id}/duplicate")
async def copy_node(node_id: str):
    try:
        return duplicate_node(get_session(), node_id).model_dump(mode="json")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@app.post("/nodes/{node_id}/disconnect")
async def disconnect_node(node_id: str):
    try:
        removed = disconnect_all(get_session(), node_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {"removed": removed}


@app.post("/nodes/{node_id}/{relation}")
async def add_relative(node_id: str, relation: str, params: AddRelativeParams | None = None):
    """Add a parent, child or partner next to a person."""
    handlers = {"parent": add_parent, "child": add_child, "partner": add_partner}
    handler = handlers.get(relation)
    if handler is None:
        raise HTTPException(status_code=404, detail=f"Unknown relation '{relation}'")

    try:
        node, result = handler(get_session(), node_id, params)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {
        "node": node.model_dump(mode="json"),
        "warnings": [w.model_dump(mode="json") for w in result.warnings],
    }


@app.get("/nodes/{node_id}/ancestors")
async def node_ancestors(node_id: str):
    tree = get_session().tree
    try:
        tree.get_node(node_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {"ancestors": sorted(get_all_ancestors(tree, node_id))}


@app.get("/nodes/{node_id}/descendants")
async def node_descendants(node_id: str):
    tree = get_session().tree
    try:
        tree.get_node(node_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {"descendants": sorted(get_all_descendants(tree, node_id))}


@app.get("/nodes/{node_id}/partners")
async def node_partners(node_id: str):
    tree = get_session().tree
    try:
        tree.get_node(node_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {"partners": get_partners(tree, node_id)}


# ============================================================================
# Connections
# ============================================================================

@app.get("/connections")
async def list_connections():
    return {"connections": [c.model_dump(mode="json") for c in get_session().tree.connections]}


@app.post("/connections")
async def create_connection(params: ConnectParams):
    try:
        connection, result = connect_nodes(get_session(), params)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {
        "connection": connection.model_dump(mode="json"),
        "warnings": [w.model_dump(mode="json") for w in result.warnings],
    }


@app.patch("/connections/{connection_id}")
async def retype_connection(connection_id: str, params: ChangeConnectionTypeParams):
    try:
        connection, result = change_connection_type(get_session(), connection_id, params.connection_type)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {
        "connection": connection.model_dump(mode="json"),
        "warnings": [w.model_dump(mode="json") for w in result.warnings],
    }


@app.delete("/connections/{connection_id}")
async def remove_connection(connection_id: str):
    try:
        connection = delete_connection(get_session(), connection_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {"deleted": connection.id}


# ============================================================================
# Groups and text boxes
# ============================================================================

@app.get("/groups")
async def list_groups():
    return {"groups": [g.model_dump(mode="json") for g in get_session().tree.groups]}


@app.post("/groups")
async def create_group(params: GroupParams):
    try:
        return add_group(get_session(), params).model_dump(mode="json")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@app.post("/groups/assign")
async def assign_nodes_to_group(params: AssignGroupParams):
    try:
        changed = assign_group(get_session(), params)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {"changed": changed}


@app.patch("/groups/{group_id}")
async def edit_group(group_id: str, params: GroupParams):
    try:
        return update_group(get_session(), group_id, params).model_dump(mode="json")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@app.delete("/groups/{group_id}")
async def delete_group(group_id: str):
    try:
        group = remove_group(get_session(), group_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {"deleted": group.id}


@app.post("/text-boxes")
async def create_text_box(params: TextBoxParams):
    try:
        return add_text_box(get_session(), params).model_dump(mode="json")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@app.patch("/text-boxes/{text_box_id}")
async def edit_text_box(text_box_id: str, params: TextBoxParams):
    try:
        return update_text_box(get_session(), text_box_id, params).model_dump(mode="json")
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@app.delete("/text-boxes/{text_box_id}")
async def remove_text_box(text_box_id: str):
    try:
        box = delete_text_box(get_session(), text_box_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {"deleted": box.id}


# ============================================================================
# Validation, layout and options
# ============================================================================

@app.get("/validate")
async def validate_current_tree():
    result = validate_tree(get_session().tree)
    logger.info(f"Validated tree: {len(result.warnings)} warnings")
    return result.model_dump(mode="json")


@app.post("/validate/connection")
async def validate_connection(params: ConnectParams):
    """Check a prospective connection without creating it."""
    tree = get_session().tree
    try:
        tree.get_node(params.from_node_id)
        tree.get_node(params.to_node_id)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
    result = validate_new_connection(tree, params.from_node_id, params.to_node_id, params.connection_type)
    return result.model_dump(mode="json")


@app.post("/layout")
async def auto_layout():
    generations = run_auto_layout(get_session())
    return {"generations": generations, "tree": get_session().tree.model_dump(mode="json")}


@app.patch("/tree/options")
async def change_tree_options(params: TreeOptionsParams):
    changes = update_tree_options(get_session(), params)
    return {"changed": sorted(changes), **tree_state()}


# ============================================================================
# History
# ============================================================================

@app.post("/undo", response_model=UndoResponse)
async def undo():
    commands = get_session().commands
    description = commands.undo()
    return UndoResponse(description=description, history=commands.history())


@app.post("/redo", response_model=UndoResponse)
async def redo():
    commands = get_session().commands
    description = commands.redo()
    return UndoResponse(description=description, history=commands.history())


@app.get("/history")
async def history():
    return get_session().commands.history()


# ============================================================================
# Viewport
# ============================================================================

@app.get("/viewport")
async def get_viewport():
    return get_session().viewport.model_dump()


@app.put("/viewport")
async def set_viewport(request: ViewportRequest):
    session = get_session()
    if request.zoom is not None:
        set_zoom(session, request.zoom)
    if request.offset_x is not None:
        session.viewport.offset_x = request.offset_x
    if request.offset_y is not None:
        session.viewport.offset_y = request.offset_y
    return session.viewport.model_dump()


@app.post("/viewport/zoom-in")
async def viewport_zoom_in():
    zoom_in(get_session())
    return get_session().viewport.model_dump()


@app.post("/viewport/zoom-out")
async def viewport_zoom_out():
    zoom_out(get_session())
    return get_session().viewport.model_dump()


@app.post("/viewport/reset")
async def viewport_reset():
    reset_view(get_session())
    return get_session().viewport.model_dump()


# ============================================================================
# Export
# ============================================================================

@app.get("/export/svg")
async def export_svg():
    session = get_session()
    try:
        svg = render_svg(session.tree, session.settings.connection_styles)
    except ExportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return Response(
        content=svg,
        media_type="image/svg+xml",
        headers=attachment_headers(f"{session.tree.name}.svg"),
    )


# ============================================================================
# Settings
# ============================================================================

@app.get("/settings")
async def get_settings():
    return get_session().settings.model_dump(mode="json")


@app.put("/settings")
async def put_settings(settings: AppSettings):
    try:
        saved = save_settings(settings)
    except SettingsError as e:
        raise HTTPException(status_code=500, detail=str(e))
    get_session().settings = saved
    return saved.model_dump(mode="json")


@app.post("/settings/reset")
async def reset_all_settings():
    try:
        saved = reset_settings()
    except SettingsError as e:
        raise HTTPException(status_code=500, detail=str(e))
    get_session().settings = saved
    return saved.model_dump(mode="json")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=os.getenv("FAMILYCANVAS_HOST", "127.0.0.1"),
        port=int(os.getenv("FAMILYCANVAS_PORT", "8000")),
    )
