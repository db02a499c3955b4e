"""Static helpers emitted at the top of every generated binder module."""

from __future__ import annotations

from typing import List

GENERATED_HEADER = "# Code generated by routeforge. DO NOT EDIT."


def render_module_header(include_math: bool) -> List[str]:
    lines: List[str] = [
        GENERATED_HEADER,
        '"""HTTP request binding and dispatch for the endpoints described by the API manifest."""',
        "",
        "from __future__ import annotations",
        "",
        "import base64",
        "import dataclasses",
        "import datetime",
        "import inspect",
        "import json",
        "import logging",
    ]
    if include_math:
        lines.append("import math")
    lines += [
        "from typing import Any, Awaitable, Callable",
        "",
        "from starlette.requests import Request",
        "from starlette.responses import Response",
        "from starlette.routing import Route, Router",
    ]
    return lines


def render_to_jsonable() -> List[str]:
    """Encoder shared by the binder module and the generated test client; reads JSON_FIELDS."""
    return [
        "def to_jsonable(value: Any) -> Any:",
        '    fields = JSON_FIELDS.get(f"{type(value).__module__}.{type(value).__qualname__}")',
        "    if fields is not None:",
        "        return {key: to_jsonable(getattr(value, name, None)) for name, key in fields}",
        '    if hasattr(value, "model_dump"):',
        '        return value.model_dump(mode="json", by_alias=True)',
        "    if dataclasses.is_dataclass(value) and not isinstance(value, type):",
        "        return to_jsonable(dataclasses.asdict(value))",
        "    if isinstance(value, dict):",
        "        return {str(k): to_jsonable(v) for k, v in value.items()}",
        "    if isinstance(value, (list, tuple)):",
        "        return [to_jsonable(v) for v in value]",
        "    if isinstance(value, (datetime.datetime, datetime.date)):",
        "        return value.isoformat()",
        "    if isinstance(value, (bytes, bytearray)):",
        '        return base64.b64encode(value).decode("ascii")',
        "    return value",
    ]


def render_runtime_helpers() -> List[str]:
    """Error types, response writers and the middleware chain runner."""
    return [
        "",
        'logger = logging.getLogger(__name__)',
        "",
        'MISSING = "missing required value"',
        "",
        "",
        "class BindError(Exception):",
        '    """A request value could not be decoded. Always answered with 400."""',
        "",
        '    code = "bad_request"',
        "",
        '    def __init__(self, source: str, message: str, field: str = "", tag: str = "") -> None:',
        "        self.source = source",
        "        self.field = field",
        "        self.tag = tag",
        "        self.message = message",
        "        if tag:",
        '            text = f"{source} {tag!r} (field {field}): {message}"',
        "        else:",
        '            text = f"{source}: {message}"',
        "        super().__init__(text)",
        "",
        "",
        "class MalformedBodyError(BindError):",
        '    """The request body is not a JSON object."""',
        "",
        '    code = "invalid_json"',
        "",
        "    def __init__(self, message: str) -> None:",
        '        super().__init__("body", message)',
        "",
        "",
        "class HTTPError(Exception):",
        '    """Raise from a handler or middleware to answer with a specific status."""',
        "",
        "    def __init__(self, status: int, code: str, message: str) -> None:",
        "        self.status = status",
        "        self.code = code",
        "        self.message = message",
        "        super().__init__(message)",
        "",
        "",
        *render_to_jsonable(),
        "",
        "",
        "def write_json(status: int, payload: Any) -> Response:",
        "    body = json.dumps(to_jsonable(payload), ensure_ascii=False, default=str)",
        '    return Response(body, status_code=status, media_type="application/json")',
        "",
        "",
        "def write_no_content() -> Response:",
        "    return Response(status_code=204)",
        "",
        "",
        "def write_error(exc: BaseException) -> Response:",
        "    if isinstance(exc, BindError):",
        "        status, code = 400, exc.code",
        "    else:",
        '        status = getattr(exc, "status", None)',
        "        if not isinstance(status, int):",
        '            status = getattr(exc, "status_code", None)',
        "        if isinstance(status, int) and not isinstance(status, bool) and 400 <= status <= 599:",
        '            code = str(getattr(exc, "code", None) or "error")',
        "        else:",
        '            logger.error("unhandled error in handler", exc_info=exc)',
        '            status, code = 500, "internal_error"',
        '    message = getattr(exc, "message", None) or str(exc) or code',
        '    payload = {"error": {"code": code, "message": str(message)}}',
        "    return write_json(status, payload)",
        "",
        "",
        "async def read_json_body(request: Request) -> dict[str, Any]:",
        "    raw = await request.body()",
        "    if not raw.strip():",
        '        raise BindError("body", MISSING)',
        "    try:",
        "        payload = json.loads(raw)",
        "    except ValueError as exc:",
        '        raise MalformedBodyError(f"malformed JSON: {exc}") from exc',
        "    if not isinstance(payload, dict):",
        '        raise MalformedBodyError("request body must be a JSON object")',
        "    return payload",
        "",
        "",
        "async def invoke(fn: Callable[..., Any], *args: Any) -> Any:",
        "    result = fn(*args)",
        "    if inspect.isawaitable(result):",
        "        result = await result",
        "    return result",
        "",
        "",
        "async def run_chain(",
        "    request: Request,",
        "    middlewares: tuple[Callable[..., Any], ...],",
        "    final: Callable[[], Awaitable[Any]],",
        ") -> Any:",
        "    async def step(index: int) -> Any:",
        "        if index == len(middlewares):",
        "            return await final()",
        "        return await invoke(middlewares[index], request, lambda: step(index + 1))",
        "",
        "    return await step(0)",
    ]
