from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from routeforge.docs.ui import ASSETS_DIR, DOCS_MODULE
from routeforge.domain.config import GeneratorConfig, normalize_config
from routeforge.domain.errors import RouteforgeError
from routeforge.orchestrator.pipeline import BuildArtifacts

logger = logging.getLogger(__name__)

BINDERS_MODULE = "_generated_http.py"


def _write_bytes(path: Path, data: bytes) -> None:
    # replace in one step so a reader never sees a half-written file
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)


def write_artifacts(artifacts: BuildArtifacts, out_dir: Path, config: GeneratorConfig) -> List[Path]:
    """Write every produced artifact under out_dir and return the written paths."""
    config = normalize_config(config)
    out_dir = out_dir.expanduser()
    written: List[Path] = []
    try:
        target = out_dir / BINDERS_MODULE
        _write_bytes(target, artifacts.source.encode("utf-8"))
        written.append(target)

        if artifacts.openapi is not None:
            target = out_dir / config.openapi_output
            _write_bytes(target, artifacts.openapi)
            written.append(target)

        if artifacts.docs is not None:
            target = out_dir / DOCS_MODULE
            _write_bytes(target, artifacts.docs.source.encode("utf-8"))
            written.append(target)
            for name in sorted(artifacts.docs.assets):
                target = out_dir / ASSETS_DIR / name
                _write_bytes(target, artifacts.docs.assets[name].encode("utf-8"))
                written.append(target)

        if artifacts.testclient is not None:
            target = out_dir / config.test_client_filename
            _write_bytes(target, artifacts.testclient.encode("utf-8"))
            written.append(target)
    except OSError as exc:
        raise RouteforgeError(f"cannot write output to {out_dir}: {exc}") from exc

    for p in written:
        logger.debug("wrote %s", p)
    return written
