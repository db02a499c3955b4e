from __future__ import annotations

from typing import Mapping, TypeVar

from routeforge.domain.manifest import Manifest, ManifestEndpoint

V = TypeVar("V")


def endpoint_sort_key(ep: ManifestEndpoint) -> tuple[bytes, bytes, bytes, bytes]:
    # byte-wise comparison, independent of locale
    return (
        ep.path.encode("utf-8"),
        ep.method.encode("utf-8"),
        ep.handler_pkg.encode("utf-8"),
        ep.handler_name.encode("utf-8"),
    )


def _sorted_map(m: Mapping[str, V]) -> dict[str, V]:
    return {k: m[k] for k in sorted(m, key=lambda s: s.encode("utf-8"))}


def canonicalize(manifest: Manifest) -> Manifest:
    """
    Return a copy of the manifest in canonical order.

    Determinism guarantees:
    - endpoints sorted by (path, method, handler package, handler name)
    - map-like sections re-keyed in sorted order
    - fields, bindings and middlewares keep their declared order

    Two manifests that differ only in list/map order canonicalize equal.
    """
    return manifest.model_copy(
        update={
            "endpoints": tuple(sorted(manifest.endpoints, key=endpoint_sort_key)),
            "types": _sorted_map(manifest.types),
            "endpoint_docs": _sorted_map(manifest.endpoint_docs),
            "middleware_metadata": _sorted_map(manifest.middleware_metadata),
        }
    )
