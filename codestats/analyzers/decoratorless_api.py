"""Classifier comparing signal-based (decoratorless) APIs with legacy decorators."""

from __future__ import annotations

from typing import Dict, Sequence, Tuple

from .base import Classifier
from .call_shape import parse_call_shape
from ..models import ModuleTally, SourceFile

DECORATOR_FIELDS: Sequence[Tuple[str, str]] = (
    ("Input", "inputDecorator"),
    ("Output", "outputDecorator"),
    ("ViewChild", "viewChildDecorator"),
    ("ViewChildren", "viewChildrenDecorator"),
    ("ContentChild", "contentChildDecorator"),
)

FUNCTION_FIELDS: Dict[Tuple[str, ...], str] = {
    ("input",): "inputFunction",
    ("input", "required"): "inputRequired",
    ("output",): "outputFunction",
    ("model",): "modelFunction",
    ("viewChild",): "viewChildFunction",
    ("viewChild", "required"): "viewChildRequired",
    ("viewChildren",): "viewChildrenFunction",
    ("contentChild",): "contentChildFunction",
    ("contentChild", "required"): "contentChildRequired",
    ("contentChildren",): "contentChildrenFunction",
}

_SCANNED_CLASS_MARKERS = ("Component", "Directive")


class DecoratorlessAPIClassifier(Classifier):
    """Counts `input()`/`output()`/query functions against their decorator forms."""

    report_type = "decoratorlessAPI"
    fields = (
        "inputFunction",
        "inputRequired",
        "inputDecorator",
        "outputFunction",
        "outputDecorator",
        "modelFunction",
        "viewChildFunction",
        "viewChildRequired",
        "viewChildrenFunction",
        "viewChildDecorator",
        "viewChildrenDecorator",
        "contentChildFunction",
        "contentChildRequired",
        "contentChildrenFunction",
        "contentChildDecorator",
    )

    def classify(self, source: SourceFile, module: str, tally: ModuleTally) -> None:
        for cls in source.classes:
            if not cls.has_marker(*_SCANNED_CLASS_MARKERS):
                continue
            for member in cls.members:
                for marker_name, field_name in DECORATOR_FIELDS:
                    if member.has_marker(marker_name):
                        tally.increment(field_name)

                if member.initializer is None:
                    continue
                shape = parse_call_shape(member.initializer)
                if shape is None:
                    continue
                field_name = FUNCTION_FIELDS.get(shape.callee)
                if field_name is not None:
                    tally.increment(field_name)


def function_style_fields() -> Tuple[str, ...]:
    """Counter names for the function-based (migrated) API forms."""
    return tuple(FUNCTION_FIELDS.values())


def decorator_style_fields() -> Tuple[str, ...]:
    return tuple(field_name for _, field_name in DECORATOR_FIELDS)


__all__ = [
    "DecoratorlessAPIClassifier",
    "decorator_style_fields",
    "function_style_fields",
]
