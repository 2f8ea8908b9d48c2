#!/usr/bin/env python3
"""Diagram controller CLI - drive a running controller from the shell."""

import argparse
import json
import sys
import urllib.error
import urllib.parse
import urllib.request

from . import config

API_BASE = config.API_BASE


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _api_request(method, endpoint, data=None, params=None):
    """Make a request to the controller and return its envelope."""
    url = f"{API_BASE}{endpoint}"

    if params:
        filtered = {k: v for k, v in params.items() if v is not None}
        if filtered:
            url = f"{url}?{urllib.parse.urlencode(filtered)}"

    headers = {"Content-Type": "application/json"}
    body = json.dumps(data).encode() if data is not None else None

    req = urllib.request.Request(url, data=body, headers=headers, method=method)

    try:
        with urllib.request.urlopen(req, timeout=30) as response:
            return json.loads(response.read().decode())
    except urllib.error.HTTPError as e:
        error_body = e.read().decode()
        try:
            _json_out(json.loads(error_body), code=1)
        except json.JSONDecodeError:
            _json_out({"success": False, "error": f"API error ({e.code}): {error_body}"}, code=1)
    except urllib.error.URLError as e:
        _json_out({"success": False,
                   "error": f"Connection failed: {e.reason}. Is the diagram controller running?"}, code=1)


def _parse_json_arg(value):
    """Parse a JSON object argument; None when absent."""
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        _json_out({"success": False, "error": f"Invalid JSON argument: {e}"}, code=2)
    if not isinstance(parsed, dict):
        _json_out({"success": False, "error": "JSON argument must be an object"}, code=2)
    return parsed


def _parse_ids(value):
    return [v.strip() for v in value.split(",") if v.strip()]


def _quote(identifier):
    return urllib.parse.quote(identifier, safe="")


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_status(args):
    _json_out(_api_request("GET", "/status"))


def cmd_health(args):
    _json_out(_api_request("GET", "/health"))


# ── Generic resources ────────────────────────────────────────────────────────

def _resource_path(args):
    path = f"/{args.family}/{args.resource}"
    if getattr(args, "id", None):
        path += f"/{_quote(args.id)}"
    return path


def cmd_list(args):
    _json_out(_api_request("GET", _resource_path(args), params={"diagramId": args.diagram_id}))


def cmd_get(args):
    _json_out(_api_request("GET", _resource_path(args)))


def cmd_create(args):
    _json_out(_api_request("POST", _resource_path(args), data=_parse_json_arg(args.data) or {}))


def cmd_update(args):
    _json_out(_api_request("PUT", _resource_path(args), data=_parse_json_arg(args.data) or {}))


def cmd_delete(args):
    _json_out(_api_request("DELETE", _resource_path(args)))


# ── Elements and tags ────────────────────────────────────────────────────────

def cmd_get_element(args):
    _json_out(_api_request("GET", f"/elements/{_quote(args.id)}"))


def cmd_update_element(args):
    updates = {}
    if args.name is not None:
        updates["name"] = args.name
    if args.documentation is not None:
        updates["documentation"] = args.documentation
    _json_out(_api_request("PUT", f"/elements/{_quote(args.id)}", data=updates))


def cmd_delete_element(args):
    _json_out(_api_request("DELETE", f"/elements/{_quote(args.id)}"))


def cmd_list_tags(args):
    _json_out(_api_request("GET", f"/elements/{_quote(args.id)}/tags"))


def cmd_add_tag(args):
    tag = {"name": args.name, "kind": args.kind}
    if args.value is not None:
        tag["value"] = args.value
    _json_out(_api_request("POST", f"/elements/{_quote(args.id)}/tags", data=tag))


def cmd_delete_tag(args):
    _json_out(_api_request("DELETE", f"/tags/{_quote(args.tag_id)}"))


def cmd_search(args):
    _json_out(_api_request("GET", "/search", params={"keyword": args.keyword, "type": args.type}))


# ── Diagrams and views ───────────────────────────────────────────────────────

def cmd_diagrams(args):
    _json_out(_api_request("GET", "/diagrams", params={"type": args.type}))


def cmd_delete_diagrams(args):
    _json_out(_api_request("POST", "/diagrams/delete", data={"diagramIds": _parse_ids(args.ids)}))


def cmd_views(args):
    _json_out(_api_request("GET", f"/diagrams/{_quote(args.diagram_id)}/views"))


def cmd_move_view(args):
    updates = {}
    for field in ("left", "top", "width", "height"):
        value = getattr(args, field)
        if value is not None:
            updates[field] = value
    _json_out(_api_request("PUT", f"/views/{_quote(args.view_id)}", data=updates))


def cmd_reconnect(args):
    ends = {}
    if args.source_id:
        ends["sourceId"] = args.source_id
    if args.target_id:
        ends["targetId"] = args.target_id
    _json_out(_api_request("PUT", f"/views/{_quote(args.view_id)}/reconnect", data=ends))


# ── Layout ───────────────────────────────────────────────────────────────────

def cmd_layout(args):
    _json_out(_api_request("POST", f"/diagrams/{_quote(args.diagram_id)}/layout",
                           data={"strategy": args.strategy}))


def cmd_align(args):
    _json_out(_api_request("POST", f"/diagrams/{_quote(args.diagram_id)}/align", data={
        "viewIds": _parse_ids(args.view_ids),
        "alignment": args.alignment,
    }))


def cmd_distribute(args):
    _json_out(_api_request("POST", f"/diagrams/{_quote(args.diagram_id)}/distribute", data={
        "viewIds": _parse_ids(args.view_ids),
        "axis": args.axis,
    }))


def cmd_fit_frame(args):
    data = {"margin": args.margin} if args.margin is not None else {}
    _json_out(_api_request("POST", f"/diagrams/{_quote(args.diagram_id)}/fit-frame", data=data))


# ── History and files ────────────────────────────────────────────────────────

def cmd_undo(args):
    _json_out(_api_request("POST", "/undo"))


def cmd_redo(args):
    _json_out(_api_request("POST", "/redo"))


def cmd_save(args):
    _json_out(_api_request("POST", "/project/save", data={"path": args.path}))


def cmd_open(args):
    _json_out(_api_request("POST", "/project/open", data={"path": args.path}))


def cmd_export(args):
    _json_out(_api_request("POST", f"/diagrams/{_quote(args.diagram_id)}/export", data={"path": args.path}))


def cmd_ddl(args):
    body = {"path": args.path}
    if args.data_model_id:
        body["dataModelId"] = args.data_model_id
    _json_out(_api_request("POST", "/erd/postgresql/ddl", data=body))


def main():
    parser = argparse.ArgumentParser(description="Diagram controller CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # Service
    sub.add_parser("status")
    sub.add_parser("health")

    # Generic family resources, e.g. `list class classes`
    for name in ("list", "get", "create", "update", "delete"):
        p = sub.add_parser(name)
        p.add_argument("family")
        p.add_argument("resource")
        if name in ("get", "update", "delete"):
            p.add_argument("--id", required=True)
        if name in ("create", "update"):
            p.add_argument("--data", default=None, help="JSON object body")
        if name == "list":
            p.add_argument("--diagram-id", default=None)

    # Elements
    p = sub.add_parser("get-element")
    p.add_argument("--id", required=True)

    p = sub.add_parser("update-element")
    p.add_argument("--id", required=True)
    p.add_argument("--name", default=None)
    p.add_argument("--documentation", default=None)

    p = sub.add_parser("delete-element")
    p.add_argument("--id", required=True)

    # Tags
    p = sub.add_parser("list-tags")
    p.add_argument("--id", required=True)

    p = sub.add_parser("add-tag")
    p.add_argument("--id", required=True)
    p.add_argument("--name", required=True)
    p.add_argument("--kind", type=int, default=0)
    p.add_argument("--value", default=None)

    p = sub.add_parser("delete-tag")
    p.add_argument("--tag-id", required=True)

    p = sub.add_parser("search")
    p.add_argument("--keyword", required=True)
    p.add_argument("--type", default=None)

    # Diagrams and views
    p = sub.add_parser("diagrams")
    p.add_argument("--type", default=None)

    p = sub.add_parser("delete-diagrams")
    p.add_argument("--ids", required=True, help="Comma-separated diagram ids")

    p = sub.add_parser("views")
    p.add_argument("--diagram-id", required=True)

    p = sub.add_parser("move-view")
    p.add_argument("--view-id", required=True)
    p.add_argument("--left", type=float, default=None)
    p.add_argument("--top", type=float, default=None)
    p.add_argument("--width", type=float, default=None)
    p.add_argument("--height", type=float, default=None)

    p = sub.add_parser("reconnect")
    p.add_argument("--view-id", required=True)
    p.add_argument("--source-id", default=None)
    p.add_argument("--target-id", default=None)

    # Layout
    p = sub.add_parser("layout")
    p.add_argument("--diagram-id", required=True)
    p.add_argument("--strategy", default="grid", choices=["grid", "tree"])

    p = sub.add_parser("align")
    p.add_argument("--diagram-id", required=True)
    p.add_argument("--view-ids", required=True)
    p.add_argument("--alignment", default="left",
                   choices=["left", "right", "top", "bottom", "center_h", "center_v"])

    p = sub.add_parser("distribute")
    p.add_argument("--diagram-id", required=True)
    p.add_argument("--view-ids", required=True)
    p.add_argument("--axis", default="horizontal")

    p = sub.add_parser("fit-frame")
    p.add_argument("--diagram-id", required=True)
    p.add_argument("--margin", type=float, default=None)

    # History and files
    sub.add_parser("undo")
    sub.add_parser("redo")

    p = sub.add_parser("save")
    p.add_argument("--path", required=True)

    p = sub.add_parser("open")
    p.add_argument("--path", required=True)

    p = sub.add_parser("export")
    p.add_argument("--diagram-id", required=True)
    p.add_argument("--path", required=True)

    p = sub.add_parser("ddl")
    p.add_argument("--path", required=True)
    p.add_argument("--data-model-id")

    args = parser.parse_args()

    cmd_map = {
        "status": cmd_status,
        "health": cmd_health,
        "list": cmd_list,
        "get": cmd_get,
        "create": cmd_create,
        "update": cmd_update,
        "delete": cmd_delete,
        "get-element": cmd_get_element,
        "update-element": cmd_update_element,
        "delete-element": cmd_delete_element,
        "list-tags": cmd_list_tags,
        "add-tag": cmd_add_tag,
        "delete-tag": cmd_delete_tag,
        "search": cmd_search,
        "diagrams": cmd_diagrams,
        "delete-diagrams": cmd_delete_diagrams,
        "views": cmd_views,
        "move-view": cmd_move_view,
        "reconnect": cmd_reconnect,
        "layout": cmd_layout,
        "align": cmd_align,
        "distribute": cmd_distribute,
        "fit-frame": cmd_fit_frame,
        "undo": cmd_undo,
        "redo": cmd_redo,
        "save": cmd_save,
        "open": cmd_open,
        "export": cmd_export,
        "ddl": cmd_ddl,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
