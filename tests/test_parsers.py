import datetime
import math

import pytest

from routeforge.codegen.parsers import needs_math, parser_name, render_parsers
from routeforge.domain.manifest import TypeKind


@pytest.fixture(scope="module")
def parsers():
    ns = {}
    source = "import base64\nimport datetime\nimport math\n" + "\n".join(render_parsers(set(TypeKind)))
    exec(compile(source, "parsers.py", "exec"), ns)
    return ns


def test_one_parser_per_kind_in_declaration_order():
    lines = render_parsers([TypeKind.TIME, TypeKind.STRING, TypeKind.STRING])
    defs = [line for line in lines if line.startswith("def ")]
    assert defs == ["def parse_string(raw: str) -> str:", "def parse_time(raw: str) -> datetime.datetime:"]


def test_needs_math():
    assert needs_math([TypeKind.FLOAT32])
    assert not needs_math([TypeKind.INT, TypeKind.STRING])


def test_bool(parsers):
    p = parsers[parser_name(TypeKind.BOOL)]
    assert p("true") is True
    assert p("0") is False
    for bad in ("yes", "True", ""):
        with pytest.raises(ValueError):
            p(bad)


def test_integer_ranges(parsers):
    assert parsers["parse_int8"]("-128") == -128
    assert parsers["parse_int8"]("+127") == 127
    assert parsers["parse_uint64"]("18446744073709551615") == 2**64 - 1
    assert parsers["parse_int"]("-9223372036854775808") == -(2**63)
    for name, bad in (
        ("parse_int8", "128"),
        ("parse_uint8", "256"),
        ("parse_uint", "-1"),
        ("parse_uint16", "+1"),
        ("parse_int32", "1.0"),
        ("parse_int64", " 1"),
        ("parse_int64", "1_000"),
        ("parse_int", "١"),
        ("parse_int", "-"),
    ):
        with pytest.raises(ValueError):
            parsers[name](bad)


def test_floats(parsers):
    assert parsers["parse_float64"]("1.5") == 1.5
    assert parsers["parse_float64"]("-inf") == -math.inf
    assert parsers["parse_float32"]("3.4e38") == 3.4e38
    for name, bad in (
        ("parse_float32", "3.5e38"),
        ("parse_float64", "1e400"),
        ("parse_float64", "abc"),
        ("parse_float64", " 1.0"),
        ("parse_float64", "1_0.0"),
    ):
        with pytest.raises(ValueError):
            parsers[name](bad)


def test_time(parsers):
    t = parsers["parse_time"]("2024-01-02T03:04:05Z")
    assert t == datetime.datetime(2024, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)
    assert parsers["parse_time"]("2024-01-02T03:04:05+02:00").utcoffset() == datetime.timedelta(hours=2)
    with pytest.raises(ValueError, match="RFC 3339"):
        parsers["parse_time"]("yesterday")


def test_string_is_untouched(parsers):
    assert parsers["parse_string"](" spaced ") == " spaced "


def test_bytes_are_strict_base64(parsers):
    assert parsers["parse_bytes"]("aGk=") == b"hi"
    assert parsers["parse_bytes"]("") == b""
    for bad in ("aGk", "a*k=", "é"):
        with pytest.raises(ValueError, match="base64"):
            parsers["parse_bytes"](bad)
