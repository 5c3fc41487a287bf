"""
Collected examples of a transfer-learning session.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from keyword_studio.capability import RawAudio, Spectrogram
from keyword_studio.exceptions import (
    InconsistentDurationMultiplier,
    UnknownExampleId,
    UnknownLabel,
)
from keyword_studio.session.labels import BACKGROUND_NOISE_TAG, ClassRegistry

logger = logging.getLogger(__name__)


@dataclass
class Example:
    """A single recorded example."""

    id: int
    label: str
    spectrogram: Spectrogram
    raw_audio: Optional[RawAudio] = None
    # None for background noise, which is exempt from the multiplier rule
    duration_multiplier: Optional[int] = None

    @property
    def is_background(self) -> bool:
        return self.label == BACKGROUND_NOISE_TAG

    @property
    def has_raw_audio(self) -> bool:
        return self.raw_audio is not None


@dataclass
class StoreEvent:
    """Notification sent to store subscribers after every mutation."""

    kind: str  # "added" or "removed"
    example: Example


StoreListener = Callable[[StoreEvent], None]


class ExampleStore:
    """
    Per-class examples with session-unique ids.

    Ids are assigned in increasing order and never handed out twice, even
    after the example they belonged to was removed.
    """

    def __init__(self, registry: ClassRegistry):
        self.registry = registry
        self._examples: Dict[int, Example] = {}
        self._next_id = 0
        self._listeners: List[StoreListener] = []

    def __len__(self) -> int:
        return len(self._examples)

    def __iter__(self) -> Iterator[Example]:
        return iter(list(self._examples.values()))

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a mutation listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: str, example: Example) -> None:
        event = StoreEvent(kind=kind, example=example)
        for listener in list(self._listeners):
            listener(event)

    def _allocate_id(self) -> int:
        example_id = self._next_id
        self._next_id += 1
        return example_id

    def class_multiplier(self, label: str) -> Optional[int]:
        """Duration multiplier established for ``label``, or None if not yet set."""
        multipliers = [
            e.duration_multiplier
            for e in self._examples.values()
            if e.label == label and e.duration_multiplier is not None
        ]
        # Merged datasets may mix multipliers; the largest one wins.
        return max(multipliers) if multipliers else None

    def add_example(
        self,
        label: str,
        spectrogram: Spectrogram,
        raw_audio: Optional[RawAudio] = None,
        duration_multiplier: Optional[int] = None,
    ) -> Example:
        """
        Add one example to a registered class.

        Args:
            label: Registered class label.
            spectrogram: Spectrogram of the example.
            raw_audio: Optional time-domain samples.
            duration_multiplier: Multiplier for non-background classes
                (defaults to 1). Ignored for background noise.

        Returns:
            The stored Example with its assigned id.
        """
        if label not in self.registry:
            raise UnknownLabel(label)

        if label == BACKGROUND_NOISE_TAG:
            duration_multiplier = None
        else:
            if duration_multiplier is None:
                duration_multiplier = 1
            if duration_multiplier < 1:
                raise ValueError(f"duration_multiplier must be >= 1, got {duration_multiplier}")
            expected = self.class_multiplier(label)
            if expected is not None and expected != duration_multiplier:
                raise InconsistentDurationMultiplier(label, expected, duration_multiplier)

        example = Example(
            id=self._allocate_id(),
            label=label,
            spectrogram=spectrogram,
            raw_audio=raw_audio,
            duration_multiplier=duration_multiplier,
        )
        self._examples[example.id] = example
        logger.debug("Stored example %d for %r", example.id, label)
        self._notify("added", example)
        return example

    def remove_example(self, example_id: int) -> Example:
        """Remove an example by id."""
        example = self._examples.pop(example_id, None)
        if example is None:
            raise UnknownExampleId(example_id)
        logger.debug("Removed example %d from %r", example_id, example.label)
        self._notify("removed", example)
        return example

    def merge(self, examples: Iterable[Example]) -> List[Example]:
        """
        Append examples loaded from elsewhere.

        Each example receives a fresh id. Examples of a class that already
        has examples are appended after them; nothing is replaced.
        """
        incoming = list(examples)
        for example in incoming:
            if example.label not in self.registry:
                raise UnknownLabel(example.label)

        merged = []
        for example in incoming:
            stored = Example(
                id=self._allocate_id(),
                label=example.label,
                spectrogram=example.spectrogram,
                raw_audio=example.raw_audio,
                duration_multiplier=(
                    None if example.label == BACKGROUND_NOISE_TAG else example.duration_multiplier
                ),
            )
            self._examples[stored.id] = stored
            merged.append(stored)
            self._notify("added", stored)

        logger.info("Merged %d examples", len(merged))
        return merged

    def get_example(self, example_id: int) -> Example:
        try:
            return self._examples[example_id]
        except KeyError:
            raise UnknownExampleId(example_id) from None

    def get_examples(self, label: str) -> List[Example]:
        """Examples of one class in insertion order."""
        if label not in self.registry:
            raise UnknownLabel(label)
        return [e for e in self._examples.values() if e.label == label]

    def labels(self) -> List[str]:
        """Labels that have at least one example, in first-seen order."""
        seen: List[str] = []
        for example in self._examples.values():
            if example.label not in seen:
                seen.append(example.label)
        return seen

    def count_by_label(self) -> Dict[str, int]:
        """Number of examples for every registered class and any class with examples."""
        counts = {label: 0 for label in self.registry.labels}
        for example in self._examples.values():
            counts[example.label] = counts.get(example.label, 0) + 1
        return counts

    def shortfall(self, minimum: int) -> Dict[str, int]:
        """Classes with fewer than ``minimum`` examples and how many they still need."""
        return {
            label: minimum - count
            for label, count in self.count_by_label().items()
            if count < minimum
        }
