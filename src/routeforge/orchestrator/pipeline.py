from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from routeforge.codegen.binders import generate_binders
from routeforge.codegen.testclient import generate_testclient
from routeforge.docs.ui import DocsBundle, generate_docs_ui
from routeforge.domain.config import GeneratorConfig, load_config, normalize_config
from routeforge.domain.errors import ManifestValidationError
from routeforge.domain.manifest import Manifest, load_manifest
from routeforge.domain.validate import validate_manifest
from routeforge.openapi.document import build_openapi, render_openapi
from routeforge.orchestrator.context import BuildContext
from routeforge.ordering.canonical import canonicalize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildArtifacts:
    source: str
    openapi: Optional[bytes]
    docs: Optional[DocsBundle]
    endpoint_count: int
    testclient: Optional[str] = None


def compile_manifest(manifest: Manifest, config: GeneratorConfig) -> BuildArtifacts:
    """
    Validate, order and generate every artifact for one manifest.

    Pure: no file I/O, and each call owns a fresh BuildContext. Any failure
    raises before an artifact exists, so callers never see partial output.
    """
    config = normalize_config(config)
    validate_manifest(manifest)
    manifest = canonicalize(manifest)
    ctx = BuildContext()

    source = generate_binders(manifest, ctx)

    openapi: Optional[bytes] = None
    if config.openapi_enabled:
        openapi = render_openapi(build_openapi(manifest, config, ctx))

    testclient: Optional[str] = None
    if config.test_client_enabled:
        testclient = generate_testclient(manifest, ctx)

    docs = generate_docs_ui(config)

    logger.info(
        "compiled %d endpoint(s); openapi=%s docs=%s testclient=%s",
        len(manifest.endpoints),
        "on" if openapi is not None else "off",
        "on" if docs is not None else "off",
        "on" if testclient is not None else "off",
    )
    return BuildArtifacts(
        source=source,
        openapi=openapi,
        docs=docs,
        endpoint_count=len(manifest.endpoints),
        testclient=testclient,
    )


def read_manifest(path: Path) -> Manifest:
    try:
        text = path.read_bytes()
    except OSError as exc:
        raise ManifestValidationError(f"cannot read manifest {path}: {exc}") from exc
    return load_manifest(text)


def run_generate(manifest_path: Path, config_path: Optional[str] = None) -> tuple[BuildArtifacts, GeneratorConfig]:
    config = load_config(config_path)
    artifacts = compile_manifest(read_manifest(manifest_path), config)
    return artifacts, config
