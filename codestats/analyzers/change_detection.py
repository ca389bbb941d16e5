"""Classifier for explicit and implicit change detection strategies."""

from __future__ import annotations

from .base import Classifier
from .component_inventory import marker_matches
from ..models import ModuleTally, SourceFile

ON_PUSH = "ChangeDetectionStrategy.OnPush"
DEFAULT = "ChangeDetectionStrategy.Default"


class ChangeDetectionClassifier(Classifier):
    """Buckets components by the strategy named in their first decorator argument.

    The argument is matched as text, so property order and formatting do not
    matter. Components whose decorator has no argument list, or an empty one,
    are not counted.
    """

    report_type = "changeDetection"
    fields = ("explicitOnPush", "explicitDefault", "implicitDefault")

    def classify(self, source: SourceFile, module: str, tally: ModuleTally) -> None:
        for cls in source.classes:
            for marker in cls.markers:
                if not marker_matches(marker, "Component"):
                    continue
                if not marker.is_call or not marker.arguments:
                    continue
                text = marker.arguments[0]
                if ON_PUSH in text:
                    tally.increment("explicitOnPush")
                elif DEFAULT in text:
                    tally.increment("explicitDefault")
                else:
                    tally.increment("implicitDefault")


__all__ = ["ChangeDetectionClassifier", "DEFAULT", "ON_PUSH"]
