"""
Class label registry for a transfer-learning session.
"""

import logging
from typing import List

from keyword_studio.config import BackgroundPlacement
from keyword_studio.exceptions import (
    DuplicateLabel,
    EmptyLabel,
    InsufficientClasses,
    RegistryLocked,
    UnknownLabel,
)

logger = logging.getLogger(__name__)

BACKGROUND_NOISE_TAG = "Background Noise"


def order_labels(
    labels: List[str],
    placement: BackgroundPlacement = BackgroundPlacement.SORTED,
) -> List[str]:
    """Sort labels, putting the background-noise tag where ``placement`` says."""
    others = sorted(label for label in labels if label != BACKGROUND_NOISE_TAG)
    if BACKGROUND_NOISE_TAG not in labels:
        return others
    if placement is BackgroundPlacement.FIRST:
        return [BACKGROUND_NOISE_TAG] + others
    if placement is BackgroundPlacement.LAST:
        return others + [BACKGROUND_NOISE_TAG]
    return sorted(others + [BACKGROUND_NOISE_TAG])


class ClassRegistry:
    """
    Ordered, deduplicated class labels of one session.

    Labels can be added and removed until ``finalize()`` is called. The
    background-noise tag is reserved: it is injected on finalization and
    is always a valid example label.
    """

    def __init__(self, placement: BackgroundPlacement = BackgroundPlacement.SORTED):
        self.placement = placement
        self._labels: List[str] = []
        self._finalized = False

    @property
    def labels(self) -> List[str]:
        """Registered labels in registry order."""
        return list(self._labels)

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def __contains__(self, label: object) -> bool:
        return label == BACKGROUND_NOISE_TAG or label in self._labels

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self):
        return iter(list(self._labels))

    def add_class(self, label: str) -> str:
        """Register a new class label."""
        if self._finalized:
            raise RegistryLocked()
        if label is None or not label.strip():
            raise EmptyLabel()
        if label == BACKGROUND_NOISE_TAG or label in self._labels:
            raise DuplicateLabel(label)
        self._labels.append(label)
        logger.debug("Added class %r", label)
        return label

    def remove_class(self, label: str) -> None:
        """Remove a registered class label."""
        if self._finalized:
            raise RegistryLocked()
        if label not in self._labels:
            raise UnknownLabel(label)
        self._labels.remove(label)
        logger.debug("Removed class %r", label)

    def finalize(self) -> List[str]:
        """
        Lock the registry and return the final class list.

        The background-noise tag is injected and the list sorted according
        to the registry's placement rule. Calling this again returns the
        same list.
        """
        if self._finalized:
            return self.labels

        labels = order_labels(self._labels + [BACKGROUND_NOISE_TAG], self.placement)
        if len(labels) < 2:
            raise InsufficientClasses(len(labels))

        self._labels = labels
        self._finalized = True
        logger.info("Finalized classes: %s", ", ".join(labels))
        return self.labels
