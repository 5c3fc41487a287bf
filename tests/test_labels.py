"""
Unit tests for keyword_studio.session.labels module.
"""

import pytest

from keyword_studio.config import BackgroundPlacement
from keyword_studio.exceptions import (
    DuplicateLabel,
    EmptyLabel,
    InsufficientClasses,
    RegistryLocked,
    UnknownLabel,
)
from keyword_studio.session.labels import BACKGROUND_NOISE_TAG, ClassRegistry, order_labels


class TestOrderLabels:
    """Tests for background label placement."""

    def test_sorted_places_background_lexicographically(self):
        labels = order_labels(["yes", "no", BACKGROUND_NOISE_TAG])
        assert labels == [BACKGROUND_NOISE_TAG, "no", "yes"]

    def test_sorted_is_plain_sort(self):
        labels = order_labels(["Alpha", "Zulu", BACKGROUND_NOISE_TAG])
        assert labels == ["Alpha", BACKGROUND_NOISE_TAG, "Zulu"]

    def test_first_and_last(self):
        labels = ["Alpha", "Zulu", BACKGROUND_NOISE_TAG]
        assert order_labels(labels, BackgroundPlacement.FIRST)[0] == BACKGROUND_NOISE_TAG
        assert order_labels(labels, BackgroundPlacement.LAST)[-1] == BACKGROUND_NOISE_TAG

    def test_without_background(self):
        assert order_labels(["b", "a"], BackgroundPlacement.FIRST) == ["a", "b"]


class TestClassRegistry:
    """Tests for ClassRegistry."""

    def test_add_classes(self):
        registry = ClassRegistry()
        registry.add_class("yes")
        registry.add_class("no")
        assert registry.labels == ["yes", "no"]
        assert len(registry) == 2
        assert "yes" in registry

    def test_background_is_always_valid(self):
        registry = ClassRegistry()
        assert BACKGROUND_NOISE_TAG in registry

    def test_empty_label(self):
        registry = ClassRegistry()
        with pytest.raises(EmptyLabel):
            registry.add_class("")
        with pytest.raises(EmptyLabel):
            registry.add_class("   ")

    def test_duplicate_label(self):
        registry = ClassRegistry()
        registry.add_class("yes")
        with pytest.raises(DuplicateLabel):
            registry.add_class("yes")

    def test_labels_are_case_sensitive(self):
        registry = ClassRegistry()
        registry.add_class("yes")
        registry.add_class("Yes")
        assert registry.labels == ["yes", "Yes"]

    def test_background_tag_is_reserved(self):
        registry = ClassRegistry()
        with pytest.raises(DuplicateLabel):
            registry.add_class(BACKGROUND_NOISE_TAG)

    def test_remove_class(self):
        registry = ClassRegistry()
        registry.add_class("yes")
        registry.remove_class("yes")
        assert registry.labels == []

    def test_remove_unknown(self):
        registry = ClassRegistry()
        with pytest.raises(UnknownLabel):
            registry.remove_class("maybe")

    def test_finalize_injects_background(self):
        registry = ClassRegistry()
        registry.add_class("yes")
        registry.add_class("no")
        labels = registry.finalize()
        assert labels == [BACKGROUND_NOISE_TAG, "no", "yes"]
        assert labels.count(BACKGROUND_NOISE_TAG) == 1
        assert registry.is_finalized

    def test_finalize_requires_two_classes(self):
        registry = ClassRegistry()
        with pytest.raises(InsufficientClasses):
            registry.finalize()
        assert not registry.is_finalized

    def test_single_class_is_enough(self):
        registry = ClassRegistry()
        registry.add_class("go")
        assert registry.finalize() == [BACKGROUND_NOISE_TAG, "go"]

    def test_finalize_is_idempotent(self):
        registry = ClassRegistry()
        registry.add_class("yes")
        first = registry.finalize()
        assert registry.finalize() == first

    def test_locked_after_finalize(self):
        registry = ClassRegistry()
        registry.add_class("yes")
        registry.finalize()
        with pytest.raises(RegistryLocked):
            registry.add_class("no")
        with pytest.raises(RegistryLocked):
            registry.remove_class("yes")

    def test_placement_last(self):
        registry = ClassRegistry(BackgroundPlacement.LAST)
        registry.add_class("yes")
        registry.add_class("no")
        assert registry.finalize() == ["no", "yes", BACKGROUND_NOISE_TAG]
