from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from routeforge.domain.errors import ManifestValidationError
from routeforge.domain.manifest import TypeKind

# kind -> (signed, bits)
_INTEGERS: Dict[TypeKind, Tuple[bool, int]] = {
    TypeKind.INT: (True, 64),
    TypeKind.INT8: (True, 8),
    TypeKind.INT16: (True, 16),
    TypeKind.INT32: (True, 32),
    TypeKind.INT64: (True, 64),
    TypeKind.UINT: (False, 64),
    TypeKind.UINT8: (False, 8),
    TypeKind.UINT16: (False, 16),
    TypeKind.UINT32: (False, 32),
    TypeKind.UINT64: (False, 64),
}

_FLOAT32_MAX = "3.4028234663852886e38"


def parser_name(kind: TypeKind) -> str:
    return f"parse_{kind.value}"


def _string() -> List[str]:
    return [
        "def parse_string(raw: str) -> str:",
        "    return raw",
    ]


def _bool() -> List[str]:
    return [
        "def parse_bool(raw: str) -> bool:",
        '    if raw in ("true", "1"):',
        "        return True",
        '    if raw in ("false", "0"):',
        "        return False",
        '    raise ValueError(f"invalid bool {raw!r} (expected true, false, 1 or 0)")',
    ]


def _integer(kind: TypeKind) -> List[str]:
    signed, bits = _INTEGERS[kind]
    name = kind.value
    lines = [f"def {parser_name(kind)}(raw: str) -> int:"]
    if signed:
        lo, hi = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        lines += [
            '    digits = raw[1:] if raw[:1] in ("+", "-") else raw',
            "    if not (digits.isascii() and digits.isdigit()):",
            f'        raise ValueError(f"invalid {name} {{raw!r}}")',
            "    value = int(raw)",
            f"    if not {lo} <= value <= {hi}:",
        ]
    else:
        hi = (1 << bits) - 1
        lines += [
            "    if not (raw.isascii() and raw.isdigit()):",
            f'        raise ValueError(f"invalid {name} {{raw!r}}")',
            "    value = int(raw)",
            f"    if value > {hi}:",
        ]
    lines += [
        f'        raise ValueError(f"{name} out of range: {{raw!r}}")',
        "    return value",
    ]
    return lines


def _float(kind: TypeKind) -> List[str]:
    name = kind.value
    lines = [
        f"def {parser_name(kind)}(raw: str) -> float:",
        '    if not raw or raw != raw.strip() or "_" in raw:',
        f'        raise ValueError(f"invalid {name} {{raw!r}}")',
        "    try:",
        "        value = float(raw)",
        "    except ValueError:",
        f'        raise ValueError(f"invalid {name} {{raw!r}}") from None',
    ]
    if kind == TypeKind.FLOAT32:
        lines += [
            f"    if math.isfinite(value) and abs(value) > {_FLOAT32_MAX}:",
            f'        raise ValueError(f"{name} out of range: {{raw!r}}")',
        ]
    lines += [
        '    if math.isinf(value) and "inf" not in raw.lower():',
        f'        raise ValueError(f"{name} out of range: {{raw!r}}")',
        "    return value",
    ]
    return lines


def _time() -> List[str]:
    return [
        "def parse_time(raw: str) -> datetime.datetime:",
        '    text = raw[:-1] + "+00:00" if raw.endswith(("Z", "z")) else raw',
        "    try:",
        "        return datetime.datetime.fromisoformat(text)",
        "    except ValueError:",
        '        raise ValueError(f"invalid time {raw!r} (expected RFC 3339)") from None',
    ]


def _bytes() -> List[str]:
    return [
        "def parse_bytes(raw: str) -> bytes:",
        "    try:",
        "        return base64.b64decode(raw, validate=True)",
        "    except ValueError:",
        '        raise ValueError(f"invalid bytes {raw!r} (expected base64)") from None',
    ]


def parser_source(kind: TypeKind) -> List[str]:
    if kind == TypeKind.STRING:
        return _string()
    if kind == TypeKind.BOOL:
        return _bool()
    if kind in _INTEGERS:
        return _integer(kind)
    if kind in (TypeKind.FLOAT32, TypeKind.FLOAT64):
        return _float(kind)
    if kind == TypeKind.TIME:
        return _time()
    if kind == TypeKind.BYTES:
        return _bytes()
    raise ManifestValidationError(f"no parser for type kind {kind.value!r}")


def needs_math(kinds: Iterable[TypeKind]) -> bool:
    return any(k in (TypeKind.FLOAT32, TypeKind.FLOAT64) for k in kinds)


def render_parsers(kinds: Iterable[TypeKind]) -> List[str]:
    """One parser per distinct kind, in TypeKind declaration order."""
    wanted = set(kinds)
    lines: List[str] = []
    for kind in TypeKind:
        if kind not in wanted:
            continue
        lines += ["", ""]
        lines += parser_source(kind)
    return lines
