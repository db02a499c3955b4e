from __future__ import annotations

from typing import List

from routeforge.ordering.naming import NameAllocator


class ImportTable:
    """
    Module imports of one generated file.

    Each module is imported once; its alias defaults to the last dotted
    segment and collisions get a numeric suffix in first-encounter order.
    """

    def __init__(self, aliases: NameAllocator) -> None:
        self._aliases = aliases
        self._modules: List[str] = []

    def add(self, module: str) -> str:
        if module not in self._aliases:
            self._modules.append(module)
        return self._aliases.allocate(module, module.rsplit(".", 1)[-1])

    def alias(self, module: str) -> str:
        return self._aliases.get(module)

    @property
    def modules(self) -> List[str]:
        return list(self._modules)

    def aliases(self) -> List[str]:
        return [self._aliases.get(m) for m in self._modules]

    def render(self) -> List[str]:
        lines: List[str] = []
        for module in self._modules:
            alias = self._aliases.get(module)
            if "." not in module and alias == module:
                lines.append(f"import {module}")
            else:
                lines.append(f"import {module} as {alias}")
        return lines
