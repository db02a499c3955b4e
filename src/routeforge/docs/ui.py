from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from routeforge.codegen.runtime import GENERATED_HEADER
from routeforge.docs.assets import ASSETS, ASSETS_VERSION
from routeforge.domain.config import GeneratorConfig

logger = logging.getLogger(__name__)

DOCS_MODULE = "_generated_docs.py"
ASSETS_DIR = "_generated_docs_assets"
IMMUTABLE = "public, max-age=31536000, immutable"


@dataclass(frozen=True)
class DocsBundle:
    """Generated docs module plus the static files it serves."""

    source: str
    assets: Dict[str, str] = field(default_factory=dict)


def render_index_html(config: GeneratorConfig) -> str:
    title = html.escape(config.openapi_title or "API")
    base = html.escape(config.docs_path, quote=True)
    json_path = html.escape(config.openapi_json_path or "", quote=True)
    return "\n".join(
        [
            "<!doctype html>",
            '<html lang="en">',
            "<head>",
            '<meta charset="utf-8">',
            '<meta name="viewport" content="width=device-width, initial-scale=1">',
            f"<title>{title}</title>",
            f'<link rel="stylesheet" href="{base}/assets/viewer.css?v={ASSETS_VERSION}">',
            "</head>",
            "<body>",
            f'<div id="routeforge-docs" data-openapi-url="{json_path}"></div>',
            f'<script src="{base}/assets/viewer.js?v={ASSETS_VERSION}"></script>',
            "</body>",
            "</html>",
            "",
        ]
    )


def _module_source(config: GeneratorConfig) -> str:
    lines: List[str] = [
        GENERATED_HEADER,
        '"""Serves the OpenAPI document and a browsable viewer for it."""',
        "",
        "from __future__ import annotations",
        "",
        "from pathlib import Path",
        "from typing import Any",
        "",
        "from starlette.requests import Request",
        "from starlette.responses import HTMLResponse, Response",
        "from starlette.routing import BaseRoute, Mount, Route",
        "from starlette.staticfiles import StaticFiles",
        "",
        "HERE = Path(__file__).resolve().parent",
        f"OPENAPI_FILE = HERE / {config.openapi_output!r}",
        f"ASSETS_DIR = HERE / {ASSETS_DIR!r}",
        f"OPENAPI_JSON_PATH = {config.openapi_json_path!r}",
        f"DOCS_PATH = {config.docs_path!r}",
        'NO_STORE = {"Cache-Control": "no-store"}',
        "",
        f"INDEX_HTML = {render_index_html(config)!r}",
        "",
        "",
        "class CachedStaticFiles(StaticFiles):",
        '    """Viewer assets are versioned by query string, so they never change in place."""',
        "",
        "    def file_response(self, *args: Any, **kwargs: Any) -> Response:",
        "        response = super().file_response(*args, **kwargs)",
        f'        response.headers["Cache-Control"] = {IMMUTABLE!r}',
        "        return response",
        "",
        "",
        "async def openapi_json(request: Request) -> Response:",
        '    return Response(OPENAPI_FILE.read_bytes(), media_type="application/json", headers=NO_STORE)',
        "",
        "",
        "async def docs_index(request: Request) -> Response:",
        "    return HTMLResponse(INDEX_HTML, headers=NO_STORE)",
        "",
        "",
        "def docs_routes() -> list[BaseRoute]:",
        "    return [",
        '        Route(OPENAPI_JSON_PATH, openapi_json, methods=["GET"]),',
        '        Route(DOCS_PATH, docs_index, methods=["GET"]),',
        '        Mount(DOCS_PATH + "/assets", app=CachedStaticFiles(directory=ASSETS_DIR), name="docs_assets"),',
        "    ]",
    ]
    return "\n".join(lines) + "\n"


def generate_docs_ui(config: GeneratorConfig) -> Optional[DocsBundle]:
    """
    Build the docs module for a normalized config.

    Returns None when the docs UI is disabled; nothing is written in that case.
    """
    if not config.docs_ui_enabled:
        return None
    logger.debug("docs: serving %s at %s", config.openapi_json_path, config.docs_path)
    return DocsBundle(source=_module_source(config), assets=dict(ASSETS))
