from __future__ import annotations

import configparser
import os
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Optional

from pydantic import BaseModel, ConfigDict

from routeforge.domain.errors import ConfigValidationError

CONFIG_ENV_VAR = "ROUTEFORGE_CONFIG"
DEFAULT_CONFIG_FILE = "routeforge.ini"
SECTION = "httpgen"
DEFAULT_TEST_CLIENT_FILE = "_generated_testclient.py"


class GeneratorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    package: str = ""

    openapi_enabled: bool = False
    openapi_output: str = "openapi.json"
    openapi_title: str = ""
    openapi_version: str = "0.0.0"
    openapi_description: str = ""
    openapi_servers: tuple[str, ...] = ()
    openapi_json_path: str = ""

    docs_ui_enabled: bool = False
    docs_path: str = ""

    test_client_enabled: bool = False
    test_client_filename: str = ""


def _derive_title(package: str) -> str:
    # ./api/ -> api ; app.api -> api
    pkg = package.strip()
    if pkg.startswith("./"):
        pkg = pkg[2:]
    pkg = pkg.rstrip("/")
    last = pkg.replace("/", ".").split(".")[-1]
    return last or "API"


def _is_absolute(p: str) -> bool:
    return PurePosixPath(p).is_absolute() or PureWindowsPath(p).is_absolute()


def normalize_config(cfg: GeneratorConfig) -> GeneratorConfig:
    """
    Apply defaults and validate path-shaped options.

    Idempotent: normalizing an already-normalized config returns an equal one.
    """
    updates: dict[str, object] = {}

    title = cfg.openapi_title or _derive_title(cfg.package)
    updates["openapi_title"] = title
    updates["openapi_version"] = cfg.openapi_version or "0.0.0"
    updates["openapi_servers"] = tuple(s.strip() for s in cfg.openapi_servers if s.strip())

    openapi_enabled = cfg.openapi_enabled or cfg.docs_ui_enabled
    updates["openapi_enabled"] = openapi_enabled

    output = cfg.openapi_output.strip()
    if openapi_enabled:
        if not output:
            raise ConfigValidationError("openapi_output cannot be empty when openapi is enabled")
        if _is_absolute(output):
            raise ConfigValidationError(f"openapi_output must be a relative path, got {cfg.openapi_output!r}")
    updates["openapi_output"] = output or "openapi.json"

    if cfg.docs_ui_enabled:
        raw = cfg.docs_path.strip()
        if not raw:
            raise ConfigValidationError("docs_path is required when docs_ui is enabled")
        docs_path = raw.rstrip("/")
        if not docs_path:
            raise ConfigValidationError("docs_path cannot be '/'")
        if not docs_path.startswith("/"):
            raise ConfigValidationError(f"docs_path must start with /, got {raw!r}")
        updates["docs_path"] = docs_path

    json_path = cfg.openapi_json_path.strip()
    if not json_path and cfg.docs_ui_enabled:
        json_path = "/openapi.json"
    if json_path:
        if not json_path.startswith("/"):
            raise ConfigValidationError(f"openapi_json_path must start with /, got {json_path!r}")
        if json_path.endswith("/"):
            raise ConfigValidationError(f"openapi_json_path must not end with /, got {json_path!r}")
        docs_path = updates.get("docs_path")
        if docs_path and (json_path == docs_path or json_path.startswith(f"{docs_path}/assets/")):
            raise ConfigValidationError(f"openapi_json_path {json_path!r} collides with docs routes")
    updates["openapi_json_path"] = json_path

    client_file = cfg.test_client_filename.strip() or DEFAULT_TEST_CLIENT_FILE
    if _is_absolute(client_file):
        raise ConfigValidationError(f"test_client_filename must be a relative path, got {client_file!r}")
    if not client_file.endswith(".py"):
        raise ConfigValidationError(f"test_client_filename must end with .py, got {client_file!r}")
    updates["test_client_filename"] = client_file

    return cfg.model_copy(update=updates)


def parse_bool(value: str, key: str) -> bool:
    v = value.strip().lower()
    if v in ("true", "1"):
        return True
    if v in ("false", "0"):
        return False
    raise ConfigValidationError(f"invalid boolean value for {key}: {value!r} (expected true/false/1/0)")


def find_config(explicit: Optional[str] = None) -> Path:
    if explicit:
        return Path(explicit).expanduser()
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser()
    local = Path(DEFAULT_CONFIG_FILE)
    if local.exists():
        return local
    raise ConfigValidationError(
        f"config not found: set {CONFIG_ENV_VAR} or create ./{DEFAULT_CONFIG_FILE}"
    )


def parse_config_text(text: str) -> GeneratorConfig:
    parser = configparser.ConfigParser(interpolation=None)
    try:
        parser.read_string(text)
    except configparser.Error as exc:
        raise ConfigValidationError(f"invalid config file: {exc}") from exc
    if not parser.has_section(SECTION):
        raise ConfigValidationError(f"missing [{SECTION}] section")
    sec = parser[SECTION]

    values: dict[str, object] = {}
    for key in ("package", "openapi_output", "openapi_title", "openapi_version",
                "openapi_description", "openapi_json_path", "docs_path", "test_client_filename"):
        if key in sec:
            values[key] = sec[key].strip()
    if "openapi" in sec:
        values["openapi_enabled"] = parse_bool(sec["openapi"], "openapi")
    if "docs_ui" in sec:
        values["docs_ui_enabled"] = parse_bool(sec["docs_ui"], "docs_ui")
    if "test_client" in sec:
        values["test_client_enabled"] = parse_bool(sec["test_client"], "test_client")
    if "openapi_servers" in sec:
        values["openapi_servers"] = tuple(
            s.strip() for s in sec["openapi_servers"].split(",") if s.strip()
        )

    return normalize_config(GeneratorConfig(**values))


def load_config(path: Optional[str] = None) -> GeneratorConfig:
    cfg_path = find_config(path)
    try:
        text = cfg_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigValidationError(f"cannot read config {cfg_path}: {exc}") from exc
    return parse_config_text(text)
