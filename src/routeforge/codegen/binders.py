from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from routeforge.codegen.imports import ImportTable
from routeforge.codegen.parsers import needs_math, parser_name, render_parsers
from routeforge.codegen.runtime import render_module_header, render_runtime_helpers
from routeforge.domain.errors import ManifestValidationError
from routeforge.domain.manifest import FieldBinding, Manifest, ManifestEndpoint, Shape, TypeKind
from routeforge.domain.typeref import is_module_path, is_slice_ref, split_qualified
from routeforge.graph.builder import build_type_graph, reachable_named_types
from routeforge.orchestrator.context import BuildContext
from routeforge.ordering.naming import identifier

logger = logging.getLogger(__name__)

INDENT = "    "


@dataclass(frozen=True)
class EndpointPlan:
    """Names resolved for one endpoint before any source is emitted."""

    endpoint: ManifestEndpoint
    func_name: str
    handler_ref: str
    request_ref: Optional[str]
    middleware_refs: tuple[str, ...]
    slice_response: bool

    @property
    def binder(self) -> Optional[str]:
        return f"bind_{self.func_name}" if self.endpoint.has_bindings else None


def _kind(value: str, where: str) -> TypeKind:
    kind = TypeKind.lookup(value)
    if kind is None:
        raise ManifestValidationError(f"{where}: unknown type kind {value!r}")
    return kind


def used_parse_kinds(manifest: Manifest) -> Set[TypeKind]:
    kinds: Set[TypeKind] = set()
    for ep in manifest.endpoints:
        if ep.bindings is None:
            continue
        for b in ep.bindings.all_bindings():
            if b.is_slice and not b.elem_kind:
                raise ManifestValidationError(
                    f"{ep.method} {ep.path}: slice binding {b.field_name!r} is missing elem_kind"
                )
            kinds.add(_kind(b.parse_kind, f"{ep.method} {ep.path}"))
    return kinds


def plan_endpoints(manifest: Manifest, ctx: BuildContext, imports: ImportTable) -> List[EndpointPlan]:
    for ep in manifest.endpoints:
        imports.add(ep.handler_pkg)
        if ep.req_type:
            imports.add(split_qualified(ep.req_type)[0])
        for mw in ep.middlewares:
            imports.add(mw.pkg)

    for alias in imports.aliases():
        for prefix in ("bind_", "handle_"):
            if alias.startswith(prefix):
                ctx.function_names.reserve(alias[len(prefix):])

    plans: List[EndpointPlan] = []
    for ep in manifest.endpoints:
        func = ctx.function_names.allocate(f"{ep.method} {ep.path}", identifier(ep.handler_name))
        request_ref = None
        if ep.req_type:
            module, name = split_qualified(ep.req_type)
            request_ref = f"{imports.alias(module)}.{name}"
        plans.append(
            EndpointPlan(
                endpoint=ep,
                func_name=func,
                handler_ref=f"{imports.alias(ep.handler_pkg)}.{ep.handler_name}",
                request_ref=request_ref,
                middleware_refs=tuple(f"{imports.alias(mw.pkg)}.{mw.name}" for mw in ep.middlewares),
                slice_response=bool(ep.resp_type) and is_slice_ref(ep.resp_type or "", manifest.types),
            )
        )
    return plans


# ----------------------------
# Binders
# ----------------------------


def _docstring(text: str) -> str:
    # repr keeps backslashes and quotes in manifest paths from leaking into the literal
    return f"    {text!r}"


def _parse_block(source: str, b: FieldBinding, value_expr: str, first_only: bool) -> List[str]:
    """Lines (indent 1) that parse value_expr into values[field] or raise BindError."""
    parse = parser_name(TypeKind(b.parse_kind))
    where = f'"{source}", str(exc), field="{b.field_name}", tag={b.tag!r}'
    if b.is_slice:
        expr = f"[{parse}(s) for s in {value_expr}]"
    else:
        expr = f"{parse}({value_expr}[0])" if first_only else f"{parse}({value_expr})"
    return [
        "    try:",
        f'        values["{b.field_name}"] = {expr}',
        "    except ValueError as exc:",
        f"        raise BindError({where}) from exc",
    ]


def _path_binding(b: FieldBinding) -> List[str]:
    return [
        f"    # path: {b.tag!r} (required {b.type_kind})",
        f"    s = request.path_params.get({b.tag!r})",
        '    if s is None or s == "":',
        f'        raise BindError("path", MISSING, field="{b.field_name}", tag={b.tag!r})',
        *_parse_block("path", b, "s", first_only=False),
    ]


def _multi_binding(source: str, container: str, b: FieldBinding) -> List[str]:
    """Query and header bindings: both are multi-value mappings with getlist()."""
    kind = f"[]{b.elem_kind}" if b.is_slice else b.type_kind
    optionality = "optional" if b.is_pointer else "required"
    lines = [
        f"    # {source}: {b.tag!r} ({optionality} {kind})",
        f"    raw = {container}.getlist({b.tag!r})",
    ]
    if b.is_pointer:
        body = _parse_block(source, b, "raw", first_only=True)
        lines.append("    if raw:")
        lines += [INDENT + line for line in body]
        lines += [
            "    else:",
            f'        values["{b.field_name}"] = None',
        ]
    else:
        lines += [
            "    if not raw:",
            f'        raise BindError("{source}", MISSING, field="{b.field_name}", tag={b.tag!r})',
        ]
        lines += _parse_block(source, b, "raw", first_only=True)
    return lines


def _body_binding(plan: EndpointPlan, manifest: Manifest) -> List[str]:
    mt = manifest.types[plan.endpoint.req_type or ""]
    lines = ["    # body: JSON object", "    body = await read_json_body(request)"]
    for f in mt.fields:
        if not f.json_name:
            continue
        lines += [
            f"    if {f.json_name!r} in body:",
            f'        values["{f.name}"] = body[{f.json_name!r}]',
        ]
    return lines


def render_binder(plan: EndpointPlan, manifest: Manifest) -> List[str]:
    ep = plan.endpoint
    b = ep.bindings
    if b is None or plan.binder is None:
        return []

    lines = [
        "",
        "",
        f"async def {plan.binder}(request: Request) -> Any:",
        _docstring(f"Bind the request for {ep.method} {ep.path}."),
        "    values: dict[str, Any] = {}",
    ]
    if b.has_json_body:
        lines += _body_binding(plan, manifest)
    for pb in b.path_bindings:
        lines += _path_binding(pb)
    if b.query_bindings:
        lines.append("    query = request.query_params")
        for qb in b.query_bindings:
            lines += _multi_binding("query", "query", qb)
    if b.header_bindings:
        lines.append("    headers = request.headers")
        for hb in b.header_bindings:
            lines += _multi_binding("header", "headers", hb)

    source = "body" if b.has_json_body else "request"
    lines += [
        "    try:",
        f"        return {plan.request_ref}(**values)",
        "    except (TypeError, ValueError) as exc:",
        f'        raise BindError("{source}", str(exc)) from exc',
    ]
    return lines


# ----------------------------
# Dispatch
# ----------------------------


def _call_lines(plan: EndpointPlan) -> List[str]:
    """Lines computing `resp` (or just calling the handler), at indent level 0."""
    ep = plan.endpoint
    lines: List[str] = []
    args = ""
    if ep.shape.has_request:
        if plan.binder:
            lines.append(f"req = await {plan.binder}(request)")
        else:
            lines.append(f"req = {plan.request_ref}()")
        args = ", req"
    lines.append(f"resp = await invoke({plan.handler_ref}{args})")
    return lines


def _invoke_block(plan: EndpointPlan) -> List[str]:
    """try-block around binding, middlewares and handler, at indent level 1."""
    call = _call_lines(plan)
    if not plan.middleware_refs:
        return ["    try:", *[INDENT * 2 + line for line in call],
                "    except Exception as exc:", "        return write_error(exc)"]

    chain = ", ".join(plan.middleware_refs) + ("," if len(plan.middleware_refs) == 1 else "")
    return [
        "    async def call() -> Any:",
        *[INDENT * 2 + line for line in call],
        "        return resp",
        "",
        "    try:",
        f"        resp = await run_chain(request, ({chain}), call)",
        "    except Exception as exc:",
        "        return write_error(exc)",
    ]


def _write_no_content(plan: EndpointPlan) -> List[str]:
    return ["    return write_no_content()"]


def _write_body(plan: EndpointPlan) -> List[str]:
    if plan.slice_response:
        return [
            "    if resp is None:",
            "        resp = []",
            "    return write_json(200, resp)",
        ]
    return ["    return write_json(200, resp)"]


SUCCESS_WRITERS: Dict[Shape, Callable[[EndpointPlan], List[str]]] = {
    Shape.NO_REQ_NO_RESP: _write_no_content,
    Shape.REQ_NO_RESP: _write_no_content,
    Shape.NO_REQ_RESP: _write_body,
    Shape.REQ_RESP: _write_body,
}


def render_dispatch(plan: EndpointPlan) -> List[str]:
    ep = plan.endpoint
    writer = SUCCESS_WRITERS.get(ep.shape)
    if writer is None:
        raise ManifestValidationError(f"{ep.method} {ep.path}: unsupported shape {ep.shape!r}")
    return [
        "",
        "",
        f"async def handle_{plan.func_name}(request: Request) -> Response:",
        _docstring(f"{ep.method} {ep.path} -> {ep.qualified_name}"),
        *_invoke_block(plan),
        *writer(plan),
    ]


# ----------------------------
# Module
# ----------------------------


def render_json_fields(manifest: Manifest, roots: List[str]) -> List[str]:
    """Source-name -> JSON-name table for struct types reachable from roots."""
    result = build_type_graph(manifest.types, roots)
    entries: Dict[str, List[tuple[str, str]]] = {}
    for type_id in reachable_named_types(result, manifest.types):
        mt = manifest.types[type_id]
        module, _ = split_qualified(type_id)
        if mt.kind != "struct" or not is_module_path(module):
            continue
        entries[type_id] = [(f.name, f.json_name) for f in mt.fields if f.json_name]

    if not entries:
        return ["", "JSON_FIELDS: dict[str, tuple[tuple[str, str], ...]] = {}"]
    lines = ["", "JSON_FIELDS: dict[str, tuple[tuple[str, str], ...]] = {"]
    for type_id in sorted(entries):
        pairs = "".join(f"({n!r}, {j!r}), " for n, j in entries[type_id]).rstrip()
        lines.append(f"    {type_id!r}: ({pairs}),")
    lines.append("}")
    return lines


def _route_order(plan: EndpointPlan) -> tuple[bytes, bool]:
    # a GET route also answers HEAD; a declared HEAD on the same path must come first
    return plan.endpoint.path.encode("utf-8"), plan.endpoint.method != "HEAD"


def _routes(plans: List[EndpointPlan]) -> List[str]:
    lines = ["", "", "ROUTES = ["]
    for p in sorted(plans, key=_route_order):
        ep = p.endpoint
        lines.append(f'    Route({ep.path!r}, handle_{p.func_name}, methods=["{ep.method}"]),')
    lines += [
        "]",
        "",
        "",
        "def create_router() -> Router:",
        "    return Router(routes=list(ROUTES))",
    ]
    return lines


def generate_binders(manifest: Manifest, ctx: BuildContext) -> str:
    """
    Emit the binder/dispatch module for a validated, canonically ordered manifest.

    Raises ManifestValidationError before producing any text when a binding
    cannot be parsed; the caller never sees partial source.
    """
    kinds = used_parse_kinds(manifest)
    imports = ImportTable(ctx.import_aliases)
    plans = plan_endpoints(manifest, ctx, imports)

    lines: List[str] = render_module_header(include_math=needs_math(kinds))
    import_lines = imports.render()
    if import_lines:
        lines += ["", *import_lines]
    lines += render_json_fields(manifest, [ep.resp_type for ep in manifest.endpoints if ep.resp_type])
    lines += render_runtime_helpers()
    lines += render_parsers(kinds)
    for plan in plans:
        lines += render_binder(plan, manifest)
        lines += render_dispatch(plan)
    lines += _routes(plans)

    logger.debug(
        "binders: %d endpoint(s), %d import(s), %d parser(s)",
        len(plans), len(imports.modules), len(kinds),
    )
    return "\n".join(lines) + "\n"
