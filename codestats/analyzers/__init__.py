"""Pattern classifier implementations and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Iterable, List, Sequence, Set

from .base import Classifier
from .change_detection import ChangeDetectionClassifier
from .component_inventory import ComponentInventoryClassifier
from .decoratorless_api import DecoratorlessAPIClassifier

_ENTRY_POINT_GROUP = "codestats.classifiers"

_BUILTIN_FACTORIES: dict[str, Callable[[], Classifier]] = {
    ComponentInventoryClassifier.report_type: ComponentInventoryClassifier,
    ChangeDetectionClassifier.report_type: ChangeDetectionClassifier,
    DecoratorlessAPIClassifier.report_type: DecoratorlessAPIClassifier,
}


def discover_classifiers(enabled: Sequence[str] | None = None) -> List[Classifier]:
    """Return instantiated classifiers, honoring optional enabled report types."""

    enabled_set: Set[str] | None = None
    if enabled:
        enabled_set = {name.lower() for name in enabled}

    classifiers: List[Classifier] = []
    seen: Set[str] = set()

    def _add(name: str, factory: Callable[[], Classifier]) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in seen:
            return
        instance = factory()
        if not isinstance(instance, Classifier):
            raise TypeError(f"Classifier factory for '{name}' did not return a Classifier instance")
        classifiers.append(instance)
        seen.add(key)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        name = entry.name
        try:
            loaded = entry.load()
        except Exception as exc:
            raise RuntimeError(f"Failed to load classifier entry point '{name}': {exc}") from exc

        def _factory(obj: object = loaded) -> Classifier:
            return _coerce_classifier(obj)

        _add(name, _factory)

    if enabled_set:
        missing = enabled_set - seen
        if missing:
            raise ValueError(f"Unknown classifiers requested: {', '.join(sorted(missing))}")

    return classifiers


def _coerce_classifier(obj: object) -> Classifier:
    if isinstance(obj, Classifier):
        return obj
    if isinstance(obj, type) and issubclass(obj, Classifier):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Classifier):
            return instance
    raise TypeError("Classifier entry point must be a Classifier subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "ChangeDetectionClassifier",
    "Classifier",
    "ComponentInventoryClassifier",
    "DecoratorlessAPIClassifier",
    "discover_classifiers",
]
