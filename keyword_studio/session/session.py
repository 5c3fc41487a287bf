"""
Transfer-learning session for Keyword Studio.

A session ties together the class registry, the collected examples, the
recorder and the trainer of one personalised model, and exposes them as
named commands that any front end can call.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional

from keyword_studio.capability import TransferModel
from keyword_studio.config import Config
from keyword_studio.exceptions import NameRequired, TrainingNotReady, UnknownLabel
from keyword_studio.models.registry import ModelRegistry, PersistedModel, metadata_json
from keyword_studio.session.codec import DatasetCodec, LoadedDataset
from keyword_studio.session.collector import ExampleCollector
from keyword_studio.session.examples import Example, ExampleStore
from keyword_studio.session.gate import ActivityGate
from keyword_studio.session.labels import BACKGROUND_NOISE_TAG, ClassRegistry
from keyword_studio.session.trainer import (
    EpochProgress,
    TrainingConfig,
    TrainingOrchestrator,
    TrainingRun,
)
from keyword_studio.utils.audio_utils import save_example_audio

logger = logging.getLogger(__name__)


@dataclass
class SessionControls:
    """Which commands the session currently accepts."""

    can_edit_classes: bool
    can_finalize_classes: bool
    can_record: bool
    can_train: bool
    can_save: bool
    can_load_dataset: bool
    can_download_dataset: bool
    ready_labels: List[str] = field(default_factory=list)
    examples_needed: Dict[str, int] = field(default_factory=dict)


class TransferSession:
    """
    One personalised classifier in the making.

    Usage:
        session = TransferSession("my-model", base_model.create_transfer("my-model"))
        session.add_class("yes")
        session.add_class("no")
        session.finalize_classes()

        await session.collect_example("yes")
        ...
        await session.start_training()
        await session.save_model(registry)
    """

    def __init__(self, name: str, model: TransferModel, config: Optional[Config] = None):
        if name is None or not name.strip():
            raise NameRequired()

        self.name = name
        self.model = model
        self.config = config or Config()

        self.gate = ActivityGate()
        self.registry = ClassRegistry(self.config.labels.background_placement)
        self.store = ExampleStore(self.registry)
        self.collector = ExampleCollector(
            self.registry, self.store, model, self.gate, self.config.capture
        )
        self.trainer = TrainingOrchestrator(
            self.registry,
            self.store,
            model,
            self.gate,
            min_examples_per_class=self.config.training.min_examples_per_class,
        )

    def _codec(self) -> DatasetCodec:
        try:
            num_frames = self.model.params().num_frames
        except (AttributeError, NotImplementedError):
            num_frames = None
        return DatasetCodec(model_num_frames=num_frames)

    # Classes

    @property
    def labels(self) -> List[str]:
        return self.registry.labels

    @property
    def duration_multiplier(self) -> int:
        return self.collector.duration_multiplier

    @duration_multiplier.setter
    def duration_multiplier(self, value: int) -> None:
        self.collector.duration_multiplier = value

    def add_class(self, label: str) -> str:
        return self.registry.add_class(label)

    def remove_class(self, label: str) -> None:
        self.registry.remove_class(label)

    def finalize_classes(self) -> List[str]:
        """Lock the class list; recording becomes possible afterwards."""
        return self.registry.finalize()

    # Recording

    async def begin_capture(self, label: str, include_raw_audio: Optional[bool] = None) -> None:
        await self.collector.begin_capture(label, include_raw_audio=include_raw_audio)

    async def finalize_capture(self) -> Example:
        return await self.collector.finalize()

    async def cancel_capture(self) -> bool:
        return await self.collector.cancel()

    async def collect_example(self, label: str, include_raw_audio: Optional[bool] = None) -> Example:
        return await self.collector.collect(label, include_raw_audio=include_raw_audio)

    def remove_example(self, example_id: int) -> Example:
        self.gate.ensure_idle()
        return self.store.remove_example(example_id)

    # Training

    @property
    def training_run(self) -> Optional[TrainingRun]:
        return self.trainer.current_run

    @property
    def is_trained(self) -> bool:
        run = self.trainer.current_run
        return run is not None and run.is_complete

    def training_config(self, **overrides) -> TrainingConfig:
        return TrainingConfig.from_defaults(self.config.training, **overrides)

    async def start_training(self, config: Optional[TrainingConfig] = None) -> TrainingRun:
        return await self.trainer.train(config or self.training_config())

    def stream_training(self, config: Optional[TrainingConfig] = None) -> AsyncIterator[EpochProgress]:
        return self.trainer.stream(config or self.training_config())

    async def save_model(
        self, models: ModelRegistry, name: Optional[str] = None
    ) -> PersistedModel:
        """
        Persist the trained classifier.

        Args:
            models: Registry to save into.
            name: Model name (defaults to the session name).
        """
        if not self.is_trained:
            raise TrainingNotReady("Train the model before saving it")
        self.gate.ensure_idle()
        artifact = await self.model.save()
        return await models.save(name if name is not None else self.name, artifact, self.labels)

    def export_metadata(self, path: Optional[Path] = None) -> str:
        """
        The ``{"wordLabels": [...]}`` document for this session.

        Args:
            path: Optional file (or directory) to write it to.
        """
        document = metadata_json(self.labels)
        if path is not None:
            path = Path(path)
            if path.is_dir():
                path = path / "metadata.json"
            path.write_text(document, encoding="utf-8")
        return document

    # Datasets

    def dump_dataset(self) -> bytes:
        """Serialize every collected example."""
        return self._codec().serialize(self.store)

    def load_dataset(self, data: bytes) -> LoadedDataset:
        """
        Merge a serialized dataset into this session.

        Before the class list is finalized, the dataset's classes are
        registered. Afterwards every class of the dataset must already
        exist. The session multiplier becomes the largest one among all
        stored examples, the loaded ones included.
        """
        self.gate.ensure_idle()
        loaded = self._codec().deserialize(data)

        if self.registry.is_finalized:
            for label in loaded.labels:
                if label not in self.registry:
                    raise UnknownLabel(label)
        else:
            for label in loaded.labels:
                if label != BACKGROUND_NOISE_TAG and label not in self.registry:
                    self.registry.add_class(label)

        loaded.merge_into(self.store)
        multiplier = DatasetCodec.infer_duration_multiplier(list(self.store))
        self.collector.duration_multiplier = multiplier
        logger.info(
            "Session %r now has %d examples (duration multiplier %d)",
            self.name, len(self.store), multiplier,
        )
        return loaded

    def save_dataset(self, path: Path) -> Path:
        return self._codec().save(self.store, path)

    def load_dataset_file(self, path: Path) -> LoadedDataset:
        return self.load_dataset(Path(path).read_bytes())

    def export_audio(self, directory: Path) -> List[Path]:
        """Write the raw waveform of every example that has one."""
        paths = []
        for example in self.store:
            path = save_example_audio(example, directory)
            if path is not None:
                paths.append(path)
        return paths

    # State

    def controls(self) -> SessionControls:
        """Derive command availability from the current state."""
        busy = self.gate.busy
        finalized = self.registry.is_finalized
        needed = self.store.shortfall(self.trainer.min_examples_per_class) if finalized else {}
        counts = self.store.count_by_label()
        return SessionControls(
            can_edit_classes=not finalized and not busy,
            can_finalize_classes=not finalized and not busy and len(self.registry) >= 1,
            can_record=finalized and not busy,
            can_train=finalized and not busy and not needed,
            can_save=self.is_trained and not busy,
            can_load_dataset=not busy,
            can_download_dataset=len(self.store) > 0 and not busy,
            ready_labels=[label for label in self.labels if label not in needed and counts.get(label, 0) > 0],
            examples_needed=needed,
        )

    def summary(self) -> dict:
        run = self.trainer.current_run
        return {
            "name": self.name,
            "labels": self.labels,
            "finalized": self.registry.is_finalized,
            "duration_multiplier": self.duration_multiplier,
            "counts": self.store.count_by_label(),
            "training": None if run is None else {
                "status": run.status.value,
                "progress": run.progress,
            },
        }
