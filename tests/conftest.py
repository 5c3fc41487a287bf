# tests/conftest.py
"""
Global pytest fixtures for keyword_studio tests.
"""

import asyncio
import inspect
from typing import List, Optional

import numpy as np
import pytest

from keyword_studio.capability import (
    CollectedExample,
    EpochLogs,
    ModelParams,
    RawAudio,
    RecognitionResult,
    Spectrogram,
)
from keyword_studio.config import Config
from keyword_studio.session.labels import BACKGROUND_NOISE_TAG
from keyword_studio.session.session import TransferSession

FRAME_SIZE = 4
NUM_FRAMES = 5


def make_spectrogram(num_frames: int = NUM_FRAMES, value: float = 0.0) -> Spectrogram:
    data = np.full(num_frames * FRAME_SIZE, value, dtype=np.float32)
    return Spectrogram(data=data, frame_size=FRAME_SIZE)


async def _call(callback, *args):
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class FakeTransferModel:
    """
    Scripted stand-in for the acoustic model.

    Records every call. Attributes set by a test change what the next
    capture or training run does.
    """

    def __init__(self, name: str = "base", labels: Optional[List[str]] = None):
        self.name = name
        self.labels = list(labels or ["_unknown_", "yes", "no"])
        self.snippets = 3
        self.capture_error: Optional[Exception] = None
        self.hold: Optional[asyncio.Event] = None
        self.train_error: Optional[Exception] = None
        self.fail_after_epoch: Optional[int] = None
        self.epoch_order: Optional[List[int]] = None
        self.collect_calls: List[dict] = []
        self.train_calls: List[dict] = []
        self.listen_calls: List[dict] = []
        self.saved = 0
        self.transfers: List["FakeTransferModel"] = []
        self.listening = False

    def params(self) -> ModelParams:
        return ModelParams(sample_rate=44100, fft_size=1024, num_frames=NUM_FRAMES, frame_size=FRAME_SIZE)

    def word_labels(self) -> List[str]:
        return list(self.labels)

    async def listen(self, on_result, *, probability_threshold, suppression_time_ms, include_spectrogram=True):
        self.listening = True
        self.listen_calls.append({
            "probability_threshold": probability_threshold,
            "suppression_time_ms": suppression_time_ms,
            "include_spectrogram": include_spectrogram,
        })
        await _call(on_result, RecognitionResult(scores=[0.1] * len(self.labels)))

    async def stop_listening(self):
        self.listening = False

    def is_listening(self) -> bool:
        return self.listening

    def create_transfer(self, name: str) -> "FakeTransferModel":
        transfer = FakeTransferModel(name, labels=[])
        self.transfers.append(transfer)
        return transfer

    async def load_transfer(self, name, artifact, word_labels) -> "FakeTransferModel":
        model = FakeTransferModel(name, labels=list(word_labels))
        model.artifact = artifact
        return model

    async def collect_example(
        self,
        label,
        *,
        duration_sec=None,
        duration_multiplier=None,
        snippet_duration_sec=None,
        on_snippet=None,
        include_raw_audio=False,
    ) -> CollectedExample:
        self.collect_calls.append({
            "label": label,
            "duration_sec": duration_sec,
            "duration_multiplier": duration_multiplier,
            "snippet_duration_sec": snippet_duration_sec,
            "on_snippet": on_snippet,
            "include_raw_audio": include_raw_audio,
        })
        if on_snippet is not None:
            for i in range(self.snippets):
                await _call(on_snippet, make_spectrogram(1, value=float(i)))
        if self.hold is not None:
            await self.hold.wait()
        if self.capture_error is not None:
            raise self.capture_error

        num_frames = NUM_FRAMES * (duration_multiplier or 1)
        raw_audio = None
        if include_raw_audio:
            raw_audio = RawAudio(data=np.linspace(-0.5, 0.5, 441, dtype=np.float32), sample_rate=44100)
        return CollectedExample(spectrogram=make_spectrogram(num_frames, value=1.0), raw_audio=raw_audio)

    async def train(
        self,
        *,
        examples,
        epochs,
        validation_split,
        on_epoch_end=None,
        fine_tuning_epochs=0,
        on_fine_tuning_epoch_end=None,
    ):
        self.train_calls.append({
            "examples": list(examples),
            "epochs": epochs,
            "validation_split": validation_split,
            "fine_tuning_epochs": fine_tuning_epochs,
        })
        if self.train_error is not None:
            raise self.train_error

        order = self.epoch_order if self.epoch_order is not None else list(range(epochs))
        for epoch in order:
            if self.fail_after_epoch is not None and epoch > self.fail_after_epoch:
                raise RuntimeError("out of memory")
            await asyncio.sleep(0)
            await _call(on_epoch_end, epoch, EpochLogs(loss=1.0 / (epoch + 1), acc=0.5, val_loss=1.0, val_acc=0.4))
        for epoch in range(fine_tuning_epochs):
            await asyncio.sleep(0)
            await _call(on_fine_tuning_epoch_end, epoch, EpochLogs(loss=0.1, acc=0.9, val_loss=0.2, val_acc=0.8))

    async def save(self) -> bytes:
        self.saved += 1
        return f"weights:{self.name}".encode()


def fill_examples(session: TransferSession, count: int = 8) -> None:
    """Add ``count`` examples to every finalized class."""
    for label in session.labels:
        for _ in range(count):
            if label == BACKGROUND_NOISE_TAG:
                session.store.add_example(label, make_spectrogram(20))
            else:
                session.store.add_example(label, make_spectrogram(), duration_multiplier=1)


@pytest.fixture
def model():
    """A fresh scripted transfer model."""
    return FakeTransferModel("test-model", labels=[])


@pytest.fixture
def config(tmp_path):
    """Configuration rooted in a temporary directory."""
    return Config(app_dir=tmp_path / "keyword_studio")


@pytest.fixture
def session(model, config):
    """A session with no classes yet."""
    return TransferSession("test-model", model, config)


@pytest.fixture
def finalized_session(session):
    """A session with classes yes/no finalized."""
    session.add_class("yes")
    session.add_class("no")
    session.finalize_classes()
    return session


@pytest.fixture
def ready_session(finalized_session):
    """A finalized session with enough examples to train."""
    fill_examples(finalized_session)
    return finalized_session
