#!/usr/bin/env python3
"""
Diagram Controller MCP Server

Provides MCP tools for AI agents to drive a running diagram controller.
Every tool forwards to the controller's REST surface, so changes show up
for WebSocket subscribers the same way as changes made over HTTP.
"""

import json
from typing import Optional

import httpx
from mcp.server.fastmcp import FastMCP

from . import config

API_BASE = config.API_BASE

# Create MCP server
mcp = FastMCP("diagram-controller")


# --- HTTP Client Helper ---

def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the controller and return the success envelope."""
    url = f"{API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        if method == "GET":
            response = client.get(url, params=kwargs.get("params"))
        elif method == "POST":
            response = client.post(url, json=kwargs.get("json", {}))
        elif method == "PUT":
            response = client.put(url, json=kwargs.get("json", {}))
        elif method == "DELETE":
            response = client.delete(url)
        else:
            raise ValueError(f"Unknown method: {method}")

        if response.status_code >= 400:
            try:
                error = response.json().get("error", "Unknown error")
            except ValueError:
                error = response.text or "Unknown error"
            raise RuntimeError(f"API error ({response.status_code}): {error}")

        return response.json()


def _dump(result: dict) -> str:
    return json.dumps(result, indent=2)


# ============================================================================
# INSPECTION TOOLS
# ============================================================================

@mcp.tool()
def controller_status() -> str:
    """
    Get controller status: version, registered families and every endpoint.

    Use this first to discover which family prefixes and resources exist.
    """
    return _dump(api_request("GET", "/status"))


@mcp.tool()
def controller_list_diagrams(diagram_type: Optional[str] = None) -> str:
    """
    List every diagram in the project.

    Args:
        diagram_type: Optional exact type filter, e.g. "UMLClassDiagram"
    """
    params = {"type": diagram_type} if diagram_type else None
    return _dump(api_request("GET", "/diagrams", params=params))


@mcp.tool()
def controller_list_views(diagram_id: str) -> str:
    """
    List the views (shapes and edges) drawn on a diagram.

    Args:
        diagram_id: Id of the diagram
    """
    return _dump(api_request("GET", f"/diagrams/{diagram_id}/views"))


@mcp.tool()
def controller_get_element(element_id: str) -> str:
    """
    Get any model element by id, serialized for its kind.

    Args:
        element_id: Id of the element
    """
    return _dump(api_request("GET", f"/elements/{element_id}"))


@mcp.tool()
def controller_search(keyword: str, element_type: Optional[str] = None) -> str:
    """
    Search model elements whose name or documentation contains a keyword.

    Args:
        keyword: Text to search for
        element_type: Optional exact type filter, e.g. "UMLClass"
    """
    params = {"keyword": keyword}
    if element_type:
        params["type"] = element_type
    return _dump(api_request("GET", "/search", params=params))


# ============================================================================
# FAMILY RESOURCE TOOLS
# ============================================================================

@mcp.tool()
def controller_list_resources(family: str, resource: str, diagram_id: Optional[str] = None) -> str:
    """
    List the elements of one family resource, e.g. family "class", resource "classes".

    Args:
        family: Family prefix (see controller_status)
        resource: Resource, relation or "diagrams"
        diagram_id: Only return elements shown on this diagram
    """
    params = {"diagramId": diagram_id} if diagram_id else None
    return _dump(api_request("GET", f"/{family}/{resource}", params=params))


@mcp.tool()
def controller_create_resource(family: str, resource: str, fields: dict) -> str:
    """
    Create a diagram, element or relation in a family.

    Elements need "diagramId", plus "type" when the resource has several;
    relations need "diagramId", "sourceId" and "targetId". Place shapes with
    the corner coordinates x1, y1, x2 and y2.

    Args:
        family: Family prefix, e.g. "erd"
        resource: Resource name, e.g. "entities" or "relationships"
        fields: Request body
    """
    return _dump(api_request("POST", f"/{family}/{resource}", json=fields))


@mcp.tool()
def controller_update_resource(family: str, resource: str, resource_id: str, fields: dict) -> str:
    """
    Update fields on a family resource.

    Args:
        family: Family prefix
        resource: Resource name
        resource_id: Id of the element to update
        fields: Fields to change
    """
    return _dump(api_request("PUT", f"/{family}/{resource}/{resource_id}", json=fields))


@mcp.tool()
def controller_delete_resource(family: str, resource: str, resource_id: str) -> str:
    """
    Delete a family resource. Refused while other elements still reference it.

    Args:
        family: Family prefix
        resource: Resource name
        resource_id: Id of the element to delete
    """
    return _dump(api_request("DELETE", f"/{family}/{resource}/{resource_id}"))


@mcp.tool()
def controller_create_child(family: str, resource: str, parent_id: str, child: str, fields: dict) -> str:
    """
    Create a child under a resource, e.g. an attribute on a class or a column on an entity.

    Args:
        family: Family prefix
        resource: Parent resource name
        parent_id: Id of the parent element
        child: Child collection name, e.g. "attributes"
        fields: Request body
    """
    return _dump(api_request("POST", f"/{family}/{resource}/{parent_id}/{child}", json=fields))


# ============================================================================
# ELEMENT AND TAG TOOLS
# ============================================================================

@mcp.tool()
def controller_update_element(element_id: str, name: Optional[str] = None,
                              documentation: Optional[str] = None) -> str:
    """
    Rename or document any element.

    Args:
        element_id: Id of the element
        name: New name
        documentation: New documentation text
    """
    updates = {}
    if name is not None:
        updates["name"] = name
    if documentation is not None:
        updates["documentation"] = documentation
    return _dump(api_request("PUT", f"/elements/{element_id}", json=updates))


@mcp.tool()
def controller_delete_element(element_id: str) -> str:
    """
    Delete any element. Diagrams cascade to elements left without a view.

    Args:
        element_id: Id of the element
    """
    return _dump(api_request("DELETE", f"/elements/{element_id}"))


@mcp.tool()
def controller_add_tag(element_id: str, name: str, kind: int = 0, value: str = "") -> str:
    """
    Attach a tag to an element.

    Args:
        element_id: Id of the element
        name: Tag name
        kind: 0=string, 1=boolean, 2=number, 3=reference, 4=hidden
        value: Tag value
    """
    return _dump(api_request("POST", f"/elements/{element_id}/tags",
                             json={"name": name, "kind": kind, "value": value}))


# ============================================================================
# VIEW AND LAYOUT TOOLS
# ============================================================================

@mcp.tool()
def controller_move_view(view_id: str, left: Optional[float] = None, top: Optional[float] = None,
                         width: Optional[float] = None, height: Optional[float] = None) -> str:
    """
    Move or resize a view. Attached edges are re-routed automatically.

    Args:
        view_id: Id of the view
        left: New x position
        top: New y position
        width: New width
        height: New height
    """
    updates = {k: v for k, v in
               {"left": left, "top": top, "width": width, "height": height}.items()
               if v is not None}
    return _dump(api_request("PUT", f"/views/{view_id}", json=updates))


@mcp.tool()
def controller_reconnect_edge(view_id: str, source_id: Optional[str] = None,
                              target_id: Optional[str] = None) -> str:
    """
    Re-anchor an edge to different source/target views.

    Args:
        view_id: Id of the edge view
        source_id: New source (view or model id on the same diagram)
        target_id: New target (view or model id on the same diagram)
    """
    ends = {}
    if source_id:
        ends["sourceId"] = source_id
    if target_id:
        ends["targetId"] = target_id
    return _dump(api_request("PUT", f"/views/{view_id}/reconnect", json=ends))


@mcp.tool()
def controller_auto_layout(diagram_id: str, strategy: str = "grid") -> str:
    """
    Lay out the top-level shapes on a diagram.

    Args:
        diagram_id: Id of the diagram
        strategy: "grid" or "tree"
    """
    return _dump(api_request("POST", f"/diagrams/{diagram_id}/layout", json={"strategy": strategy}))


@mcp.tool()
def controller_align_views(diagram_id: str, view_ids: list[str], alignment: str = "left") -> str:
    """
    Align views along one edge or center line.

    Args:
        diagram_id: Id of the diagram
        view_ids: Views (or their model ids) to align, at least 2
        alignment: left, right, top, bottom, center_h or center_v
    """
    return _dump(api_request("POST", f"/diagrams/{diagram_id}/align",
                             json={"viewIds": view_ids, "alignment": alignment}))


@mcp.tool()
def controller_distribute_views(diagram_id: str, view_ids: list[str], axis: str = "horizontal") -> str:
    """
    Space views evenly between the outermost two.

    Args:
        diagram_id: Id of the diagram
        view_ids: Views (or their model ids) to distribute, at least 3
        axis: "horizontal" or "vertical"
    """
    return _dump(api_request("POST", f"/diagrams/{diagram_id}/distribute",
                             json={"viewIds": view_ids, "axis": axis}))


@mcp.tool()
def controller_fit_frame(diagram_id: str) -> str:
    """
    Fit a diagram's frame around its content.

    Args:
        diagram_id: Id of the diagram
    """
    return _dump(api_request("POST", f"/diagrams/{diagram_id}/fit-frame"))


# ============================================================================
# HISTORY AND PROJECT TOOLS
# ============================================================================

@mcp.tool()
def controller_undo() -> str:
    """Undo the last change."""
    return _dump(api_request("POST", "/undo"))


@mcp.tool()
def controller_redo() -> str:
    """Redo the last undone change."""
    return _dump(api_request("POST", "/redo"))


@mcp.tool()
def controller_save_project(path: str) -> str:
    """
    Save the project to disk.

    Args:
        path: Absolute path ending in .json
    """
    return _dump(api_request("POST", "/project/save", json={"path": path}))


@mcp.tool()
def controller_open_project(path: str) -> str:
    """
    Replace the current project with one loaded from disk. Clears undo history.

    Args:
        path: Absolute path ending in .json
    """
    return _dump(api_request("POST", "/project/open", json={"path": path}))


@mcp.tool()
def controller_generate_postgresql_ddl(path: str, data_model_id: Optional[str] = None) -> str:
    """
    Write PostgreSQL DDL for the ER data models to a file.

    Args:
        path: Absolute path of the .sql file to write
        data_model_id: Only generate this data model
    """
    body = {"path": path}
    if data_model_id:
        body["dataModelId"] = data_model_id
    return _dump(api_request("POST", "/erd/postgresql/ddl", json=body))


def main():
    mcp.run()


if __name__ == "__main__":
    main()
