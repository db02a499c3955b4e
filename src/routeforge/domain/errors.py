from __future__ import annotations


class RouteforgeError(Exception):
    """Base class for build-time failures. The CLI turns these into exit code 1."""


class ManifestValidationError(RouteforgeError):
    """The manifest is malformed or internally inconsistent; nothing is emitted."""


class ConfigValidationError(RouteforgeError):
    """A configuration option is malformed (mostly path-shaped options)."""
