from __future__ import annotations

from dataclasses import dataclass, field

from routeforge.domain.manifest import TypeKind
from routeforge.ordering.naming import NameAllocator

# names the generated module defines or imports itself
GENERATED_MODULE_NAMES = frozenset(
    {
        "annotations", "base64", "dataclasses", "datetime", "inspect", "json", "logging", "math",
        "Any", "Awaitable", "Callable", "Request", "Response", "Route", "Router",
        "BindError", "MalformedBodyError", "HTTPError", "ROUTES", "create_router",
        "logger", "write_json", "write_no_content", "write_error", "read_json_body",
        "invoke", "run_chain", "to_jsonable", "JSON_FIELDS", "MISSING",
        # locals of generated functions
        "request", "values", "body", "raw", "s", "query", "headers",
        "req", "resp", "exc", "call", "step",
    }
    | {f"parse_{kind.value}" for kind in TypeKind}
)


@dataclass
class BuildContext:
    """
    Uniqueness state for one build.

    Created per compile call and passed explicitly; concurrent builds each
    hold their own instance.
    """

    import_aliases: NameAllocator = field(
        default_factory=lambda: NameAllocator(reserved=GENERATED_MODULE_NAMES)
    )
    function_names: NameAllocator = field(default_factory=lambda: NameAllocator(separator="_"))
    operation_ids: NameAllocator = field(default_factory=lambda: NameAllocator(separator="_"))
    schema_names: NameAllocator = field(default_factory=NameAllocator)
