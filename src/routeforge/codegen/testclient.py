"""Typed test client: one method per endpoint, driving any httpx.Client."""

from __future__ import annotations

import logging
from typing import List

from routeforge.codegen.binders import render_json_fields
from routeforge.codegen.runtime import GENERATED_HEADER, render_to_jsonable
from routeforge.domain.errors import ManifestValidationError
from routeforge.domain.manifest import FieldBinding, Manifest, ManifestEndpoint
from routeforge.domain.validate import path_params
from routeforge.orchestrator.context import BuildContext
from routeforge.ordering.naming import identifier

logger = logging.getLogger(__name__)

INDENT = "    "


def _header() -> List[str]:
    return [
        GENERATED_HEADER,
        '"""Test client for the endpoints described by the API manifest. Import it from tests only."""',
        "",
        "from __future__ import annotations",
        "",
        "import base64",
        "import dataclasses",
        "import datetime",
        "import json",
        "from typing import Any",
        "from urllib.parse import quote",
        "",
        "import httpx",
    ]


def _helpers() -> List[str]:
    return [
        "",
        "",
        "class ClientError(Exception):",
        '    """A non-2xx answer, decoded from the {"error": {"code", "message"}} envelope."""',
        "",
        "    def __init__(self, status: int, code: str, message: str) -> None:",
        "        self.status = status",
        "        self.code = code",
        "        self.message = message",
        '        super().__init__(f"{status} {code}: {message}")',
        "",
        "",
        *render_to_jsonable(),
        "",
        "",
        "def format_value(value: Any) -> str:",
        "    if isinstance(value, bool):",
        '        return "true" if value else "false"',
        "    if isinstance(value, (datetime.datetime, datetime.date)):",
        "        return value.isoformat()",
        "    if isinstance(value, (bytes, bytearray)):",
        '        return base64.b64encode(value).decode("ascii")',
        "    return str(value)",
        "",
        "",
        "def decode_error(resp: httpx.Response) -> ClientError:",
        "    try:",
        '        err = resp.json()["error"]',
        '        return ClientError(resp.status_code, str(err["code"]), str(err["message"]))',
        "    except (ValueError, KeyError, TypeError):",
        '        return ClientError(resp.status_code, "error", resp.text)',
        "",
        "",
        "class Client:",
        '    """Wraps an httpx.Client; starlette.testclient.TestClient works as-is."""',
        "",
        "    def __init__(self, http: httpx.Client) -> None:",
        "        self._http = http",
        "",
        "    def _send(",
        "        self,",
        "        method: str,",
        "        path: str,",
        "        query: list[tuple[str, str]],",
        "        headers: list[tuple[str, str]],",
        "        body: Any = None,",
        "    ) -> Any:",
        '        sent = [("Accept", "application/json"), *headers]',
        "        content = None",
        "        if body is not None:",
        '            content = json.dumps(body, ensure_ascii=False).encode("utf-8")',
        '            sent.append(("Content-Type", "application/json"))',
        "        resp = self._http.request(method, path, params=query, headers=sent, content=content)",
        "        if not 200 <= resp.status_code < 300:",
        "            raise decode_error(resp)",
        "        if not resp.content:",
        "            return None",
        "        return resp.json()",
    ]


def _path_expr(ep: ManifestEndpoint) -> str:
    """Python expression building the request path from req attributes."""
    bound = {b.tag: b for b in (ep.bindings.path_bindings if ep.bindings else ())}
    parts: List[str] = []
    rest = ep.path
    for name in path_params(ep.path):
        placeholder = "{" + name + "}"
        head, _, rest = rest.partition(placeholder)
        if head:
            parts.append(repr(head))
        b = bound.get(name)
        if b is None:
            raise ManifestValidationError(f"{ep.method} {ep.path}: path parameter {name!r} has no binding")
        parts.append(f'quote(format_value(req.{b.field_name}), safe="")')
    if rest or not parts:
        parts.append(repr(rest))
    return " + ".join(parts)


def _append_lines(target: str, b: FieldBinding) -> List[str]:
    ref = f"req.{b.field_name}"
    if b.is_slice:
        return [
            f"        for v in {ref} or ():",
            f"            {target}.append(({b.tag!r}, format_value(v)))",
        ]
    if b.is_pointer:
        return [
            f"        if {ref} is not None:",
            f"            {target}.append(({b.tag!r}, format_value({ref})))",
        ]
    return [f"        {target}.append(({b.tag!r}, format_value({ref})))"]


def _body_expr(ep: ManifestEndpoint, manifest: Manifest) -> str:
    mt = manifest.types[ep.req_type or ""]
    pairs = ", ".join(f"{f.json_name!r}: to_jsonable(req.{f.name})" for f in mt.fields if f.json_name)
    return "{" + pairs + "}"


def render_method(ep: ManifestEndpoint, name: str, manifest: Manifest) -> List[str]:
    has_request = ep.shape.has_request
    returns = "Any" if ep.shape.has_response else "None"
    args = "self, req: Any" if has_request else "self"
    lines = [
        "",
        f"    def {name}({args}) -> {returns}:",
        f"        {ep.method + ' ' + ep.path!r}",
    ]
    if has_request and ep.bindings is not None:
        lines.append(f"        path = {_path_expr(ep)}")
    else:
        lines.append(f"        path = {ep.path!r}")

    lines.append("        query: list[tuple[str, str]] = []")
    lines.append("        headers: list[tuple[str, str]] = []")
    body = "None"
    if has_request and ep.bindings is not None:
        for qb in ep.bindings.query_bindings:
            lines += _append_lines("query", qb)
        for hb in ep.bindings.header_bindings:
            lines += _append_lines("headers", hb)
        if ep.bindings.has_json_body:
            body = _body_expr(ep, manifest)

    call = f"self._send({ep.method!r}, path, query, headers, {body})"
    lines.append(f"        return {call}" if ep.shape.has_response else f"        {call}")
    return lines


def generate_testclient(manifest: Manifest, ctx: BuildContext) -> str:
    """
    Emit the test client module for a validated, canonically ordered manifest.

    Method names reuse the function names of the binder module, so
    get_pet() on the client calls the endpoint served by handle_get_pet().
    """
    roots = [
        ep.req_type
        for ep in manifest.endpoints
        if ep.req_type and ep.bindings is not None and ep.bindings.has_json_body
    ]
    lines = _header()
    lines += render_json_fields(manifest, roots)
    lines += _helpers()
    for ep in manifest.endpoints:
        name = ctx.function_names.allocate(f"{ep.method} {ep.path}", identifier(ep.handler_name))
        lines += render_method(ep, name, manifest)

    logger.debug("testclient: %d method(s)", len(manifest.endpoints))
    return "\n".join(lines) + "\n"
