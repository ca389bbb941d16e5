"""Minimal call-expression shapes for property initializers.

Property initializers such as ``input.required<number>()`` are classified by
the callee they invoke. Instead of matching regular expressions against the
raw text, the initializer is read as ``callee.path<TypeArgs>(`` and the
callee path is looked up in a table, so ``input`` and ``input.required`` can
never be confused.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class CallShape:
    """Callee path of a call expression, e.g. ``("input", "required")``."""

    callee: Tuple[str, ...]

    @property
    def dotted(self) -> str:
        return ".".join(self.callee)


def parse_call_shape(text: str) -> Optional[CallShape]:
    """Return the call shape of `text` when it starts with a call expression."""
    index = _skip_space(text, 0)
    parts = []
    while True:
        name, index = _read_identifier(text, index)
        if not name:
            return None
        parts.append(name)
        index = _skip_space(text, index)
        if index < len(text) and text[index] == ".":
            index = _skip_space(text, index + 1)
            continue
        break

    if index < len(text) and text[index] == "<":
        index = _skip_type_arguments(text, index)
        if index < 0:
            return None
        index = _skip_space(text, index)

    if index < len(text) and text[index] == "(":
        return CallShape(tuple(parts))
    return None


def _skip_space(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


def _read_identifier(text: str, index: int) -> Tuple[str, int]:
    start = index
    if index < len(text) and (text[index].isalpha() or text[index] in "_$"):
        index += 1
        while index < len(text) and (text[index].isalnum() or text[index] in "_$"):
            index += 1
    return text[start:index], index


def _skip_type_arguments(text: str, index: int) -> int:
    """Skip a balanced ``<...>`` block starting at `index`; -1 when unbalanced."""
    depth = 0
    while index < len(text):
        char = text[index]
        if char == "=" and text.startswith("=>", index):
            # arrow in a function type, not a closing bracket
            index += 2
            continue
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
            if depth == 0:
                return index + 1
        index += 1
    return -1


__all__ = ["CallShape", "parse_call_shape"]
