"""Classifier counting Angular components, directives, pipes and services."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from .base import Classifier
from ..models import Marker, ModuleTally, SourceFile

# First match wins for a single marker; each marker is checked on its own.
_MARKER_FIELDS: Sequence[Tuple[str, str]] = (
    ("Component", "components"),
    ("Directive", "directives"),
    ("Pipe", "pipes"),
    ("Injectable", "injectables"),
)


def marker_matches(marker: Marker, name: str) -> bool:
    """True when the marker is named `name` or its text mentions ``@name``."""
    return marker.name == name or f"@{name}" in marker.text


class ComponentInventoryClassifier(Classifier):
    """Counts `@Component`, `@Directive`, `@Pipe` and `@Injectable` classes."""

    report_type = "componentInventory"
    fields = ("components", "directives", "pipes", "injectables")

    def classify(self, source: SourceFile, module: str, tally: ModuleTally) -> None:
        for cls in source.classes:
            for marker in cls.markers:
                field_name = self._field_for(marker)
                if field_name is not None:
                    tally.increment(field_name)

    @staticmethod
    def _field_for(marker: Marker) -> Optional[str]:
        for name, field_name in _MARKER_FIELDS:
            if marker_matches(marker, name):
                return field_name
        return None


__all__ = ["ComponentInventoryClassifier", "marker_matches"]
