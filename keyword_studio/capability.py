"""
Interfaces of the acoustic model that Keyword Studio drives.

The pre-trained recognizer, its feature extraction and its training loop live
outside this package. Anything implementing these protocols can be plugged in
through ``Config.capability_factory``.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Union

import numpy as np


@dataclass
class Spectrogram:
    """Flat time-frequency data, ``frame_size`` values per frame."""

    data: np.ndarray
    frame_size: int

    def __post_init__(self):
        self.data = np.asarray(self.data, dtype=np.float32).reshape(-1)
        if self.frame_size <= 0:
            raise ValueError(f"frame_size must be positive, got {self.frame_size}")

    @property
    def num_frames(self) -> int:
        return len(self.data) // self.frame_size


@dataclass
class RawAudio:
    """Time-domain samples recorded alongside a spectrogram."""

    data: np.ndarray
    sample_rate: int

    def __post_init__(self):
        self.data = np.asarray(self.data, dtype=np.float32).reshape(-1)

    @property
    def duration(self) -> float:
        return len(self.data) / self.sample_rate if self.sample_rate else 0.0


@dataclass
class CollectedExample:
    """What the model hands back after recording one example."""

    spectrogram: Spectrogram
    raw_audio: Optional[RawAudio] = None


@dataclass
class ModelParams:
    """Input geometry of the pre-trained model."""

    sample_rate: int
    fft_size: int
    num_frames: int
    frame_size: int


@dataclass
class EpochLogs:
    """Metrics reported by the model at the end of one epoch."""

    loss: float
    acc: float
    val_loss: float
    val_acc: float


@dataclass
class RecognitionResult:
    """One live recognition result."""

    scores: List[float]
    spectrogram: Optional[Spectrogram] = None
    extra: Dict[str, Any] = field(default_factory=dict)


SnippetCallback = Callable[[Spectrogram], Union[None, Awaitable[None]]]
EpochCallback = Callable[[int, EpochLogs], Union[None, Awaitable[None]]]
ResultCallback = Callable[[RecognitionResult], Union[None, Awaitable[None]]]


class AcousticModel(Protocol):
    """A pre-trained recognizer."""

    def params(self) -> ModelParams:
        ...

    def word_labels(self) -> List[str]:
        ...

    async def listen(
        self,
        on_result: ResultCallback,
        *,
        probability_threshold: float,
        suppression_time_ms: int,
        include_spectrogram: bool = True,
    ) -> None:
        ...

    async def stop_listening(self) -> None:
        ...

    def is_listening(self) -> bool:
        ...

    def create_transfer(self, name: str) -> "TransferModel":
        ...

    async def load_transfer(
        self, name: str, artifact: bytes, word_labels: Sequence[str]
    ) -> "TransferModel":
        ...


class TransferModel(AcousticModel, Protocol):
    """A classifier being trained on top of a pre-trained recognizer."""

    name: str

    async def collect_example(
        self,
        label: str,
        *,
        duration_sec: Optional[float] = None,
        duration_multiplier: Optional[int] = None,
        snippet_duration_sec: Optional[float] = None,
        on_snippet: Optional[SnippetCallback] = None,
        include_raw_audio: bool = False,
    ) -> CollectedExample:
        ...

    async def train(
        self,
        *,
        examples: Sequence[Any],
        epochs: int,
        validation_split: float,
        on_epoch_end: Optional[EpochCallback] = None,
        fine_tuning_epochs: int = 0,
        on_fine_tuning_epoch_end: Optional[EpochCallback] = None,
    ) -> None:
        ...

    async def save(self) -> bytes:
        ...
