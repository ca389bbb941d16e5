"""Tests for classifier discovery utilities."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from codestats.analyzers import (
    ChangeDetectionClassifier,
    Classifier,
    ComponentInventoryClassifier,
    DecoratorlessAPIClassifier,
    discover_classifiers,
)


class DummyClassifier(Classifier):
    """Test classifier used for plugin discovery validation."""

    report_type = "dummy"
    fields = ("things",)

    def classify(self, source, module, tally):  # pragma: no cover - unused
        return None


def test_discover_classifiers_returns_builtin_classifiers() -> None:
    classifiers = discover_classifiers()
    classes = [type(classifier) for classifier in classifiers]
    assert classes[:3] == [
        ComponentInventoryClassifier,
        ChangeDetectionClassifier,
        DecoratorlessAPIClassifier,
    ]


def test_discover_classifiers_respects_enabled_filter() -> None:
    classifiers = discover_classifiers(["changedetection"])
    assert len(classifiers) == 1
    assert isinstance(classifiers[0], ChangeDetectionClassifier)


def test_discover_classifiers_loads_entry_points(monkeypatch) -> None:
    dummy_entry = SimpleNamespace(
        name="dummy",
        load=lambda: DummyClassifier,
    )

    class DummyEntryPoints(list):
        def select(self, **kwargs):
            if kwargs.get("group") == "codestats.classifiers":
                return self
            return []

    monkeypatch.setattr(
        "codestats.analyzers.metadata.entry_points",
        lambda: DummyEntryPoints([dummy_entry]),
        raising=False,
    )

    classifiers = discover_classifiers(["dummy"])
    assert len(classifiers) == 1
    assert isinstance(classifiers[0], DummyClassifier)


def test_discover_classifiers_rejects_non_classifier_entry_points(monkeypatch) -> None:
    bogus_entry = SimpleNamespace(name="bogus", load=lambda: object)

    class DummyEntryPoints(list):
        def select(self, **kwargs):
            return self

    monkeypatch.setattr(
        "codestats.analyzers.metadata.entry_points",
        lambda: DummyEntryPoints([bogus_entry]),
        raising=False,
    )

    with pytest.raises(TypeError):
        discover_classifiers(["bogus"])


def test_discover_classifiers_raises_for_unknown_name() -> None:
    with pytest.raises(ValueError):
        discover_classifiers(["does-not-exist"])
