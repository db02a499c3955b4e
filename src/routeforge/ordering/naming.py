from __future__ import annotations

import keyword
import re
from typing import Dict, Iterable, Set

_UNSAFE_IDENT = re.compile(r"[^A-Za-z0-9_]+")
_UNSAFE_OPERATION = re.compile(r"[^A-Za-z0-9_-]+")


class NameAllocator:
    """
    Hands out unique names within one scope.

    The same key always gets the same name; a new key whose base name is taken
    gets a numeric suffix (2, 3, ...) in first-encounter order.
    """

    def __init__(self, reserved: Iterable[str] = (), separator: str = "") -> None:
        self._taken: Set[str] = set(reserved)
        self._by_key: Dict[str, str] = {}
        self._separator = separator

    def allocate(self, key: str, base: str) -> str:
        if key in self._by_key:
            return self._by_key[key]
        name = base
        n = 2
        while name in self._taken:
            name = f"{base}{self._separator}{n}"
            n += 1
        self._taken.add(name)
        self._by_key[key] = name
        return name

    def reserve(self, name: str) -> None:
        self._taken.add(name)

    def get(self, key: str) -> str:
        return self._by_key[key]

    def __contains__(self, key: str) -> bool:
        return key in self._by_key


def identifier(text: str, fallback: str = "x") -> str:
    # "example.com/app-pets" -> "example_com_app_pets"
    s = _UNSAFE_IDENT.sub("_", text).strip("_")
    if not s:
        s = fallback
    if s[0].isdigit() or keyword.iskeyword(s):
        s = f"_{s}"
    return s


def operation_id(qualified_name: str) -> str:
    # app.pets.handlers.get_pet -> app_pets_handlers_get_pet
    s = qualified_name.replace("/", "_").replace(".", "_")
    return _UNSAFE_OPERATION.sub("", s) or "operation"


def component_name(type_id: str) -> str:
    # example.com/app/pets.Pet -> Pet ; app.models.Page[Pet] -> Page_Pet
    tail = type_id.rsplit("/", 1)[-1]
    bracket = tail.find("[")
    head, rest = (tail, "") if bracket < 0 else (tail[:bracket], tail[bracket:])
    short = head.rsplit(".", 1)[-1] + rest
    return identifier(short, fallback="Type")


def path_tag(path: str) -> str:
    first = path.strip("/").split("/", 1)[0]
    if not first or first.startswith("{"):
        return "default"
    return first
