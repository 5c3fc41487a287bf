"""
Two-phase transfer training for Keyword Studio.

Handles:
- Readiness checks (finalized classes, minimum examples per class)
- Initial and fine-tuning phases run through the transfer model
- Per-epoch progress events, delivered in order to every observer
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Callable, Dict, List, Optional

from keyword_studio.capability import EpochLogs, TransferModel
from keyword_studio.config import MIN_EXAMPLES_PER_CLASS, TrainingDefaults
from keyword_studio.exceptions import (
    InsufficientExamples,
    RegistryNotFinalized,
    TrainingFailed,
)
from keyword_studio.session.examples import ExampleStore
from keyword_studio.session.gate import Activity, ActivityGate
from keyword_studio.session.labels import ClassRegistry

logger = logging.getLogger(__name__)


class TrainingPhase(Enum):
    """Training phases, in the order they run."""
    INITIAL = "initial"
    FINE_TUNING = "fineTuning"


class RunStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class TrainingConfig:
    """Configuration for one training run."""

    epochs: int = 100
    fine_tuning_epochs: int = 0
    validation_split: float = 0.25

    def __post_init__(self):
        if self.epochs < 0:
            raise ValueError(f"epochs must not be negative, got {self.epochs}")
        if self.fine_tuning_epochs < 0:
            raise ValueError(
                f"fine_tuning_epochs must not be negative, got {self.fine_tuning_epochs}"
            )
        if not 0.0 < self.validation_split < 1.0:
            raise ValueError(
                f"validation_split must be between 0 and 1, got {self.validation_split}"
            )

    @classmethod
    def from_defaults(cls, defaults: TrainingDefaults, **overrides) -> "TrainingConfig":
        values = {
            "epochs": defaults.epochs,
            "fine_tuning_epochs": defaults.fine_tuning_epochs,
            "validation_split": defaults.validation_split,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def total_epochs(self) -> int:
        return self.epochs + self.fine_tuning_epochs


@dataclass
class EpochProgress:
    """Metrics of one finished epoch."""

    phase: TrainingPhase
    epoch: int
    train_loss: float
    train_acc: float
    val_loss: float
    val_acc: float

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "epoch": self.epoch,
            "trainLoss": self.train_loss,
            "trainAcc": self.train_acc,
            "valLoss": self.val_loss,
            "valAcc": self.val_acc,
        }


@dataclass
class TrainingRun:
    """State of a single training invocation."""

    config: TrainingConfig
    status: RunStatus = RunStatus.PENDING
    phase: Optional[TrainingPhase] = None
    epochs_completed: Dict[TrainingPhase, int] = field(
        default_factory=lambda: {phase: 0 for phase in TrainingPhase}
    )
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    last_progress: Optional[EpochProgress] = None
    error: Optional[BaseException] = None

    @property
    def is_complete(self) -> bool:
        return self.status is RunStatus.COMPLETE

    @property
    def is_active(self) -> bool:
        return self.status is RunStatus.RUNNING

    @property
    def progress(self) -> float:
        """Overall progress as a fraction 0-1."""
        total = self.config.total_epochs
        if total == 0:
            return 1.0 if self.is_complete else 0.0
        return sum(self.epochs_completed.values()) / total

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at or datetime.now()
        return (end - self.started_at).total_seconds()


ProgressObserver = Callable[[EpochProgress], None]


class TrainingHistory:
    """
    Observer that keeps per-phase metric series, e.g. for plotting.

    Fine-tuning epochs already carry the offset, so the series of both
    phases line up on one timeline.
    """

    def __init__(self):
        self.series: Dict[TrainingPhase, Dict[str, List[float]]] = {
            phase: {"epoch": [], "train_loss": [], "val_loss": [], "train_acc": [], "val_acc": []}
            for phase in TrainingPhase
        }

    def __call__(self, progress: EpochProgress) -> None:
        series = self.series[progress.phase]
        series["epoch"].append(progress.epoch)
        series["train_loss"].append(progress.train_loss)
        series["val_loss"].append(progress.val_loss)
        series["train_acc"].append(progress.train_acc)
        series["val_acc"].append(progress.val_acc)

    def rows(self) -> List[dict]:
        """Flat rows in timeline order."""
        rows = []
        for phase in TrainingPhase:
            series = self.series[phase]
            for i, epoch in enumerate(series["epoch"]):
                rows.append({
                    "phase": phase.value,
                    "epoch": epoch,
                    "train_loss": series["train_loss"][i],
                    "val_loss": series["val_loss"][i],
                    "train_acc": series["train_acc"][i],
                    "val_acc": series["val_acc"][i],
                })
        return rows


class TrainingOrchestrator:
    """
    Train the transfer model on the session's examples.

    Runs the initial phase and then the fine-tuning phase through a single
    call to the model, turning its epoch callbacks into ``EpochProgress``
    events for every registered observer.
    """

    def __init__(
        self,
        registry: ClassRegistry,
        store: ExampleStore,
        model: TransferModel,
        gate: ActivityGate,
        min_examples_per_class: int = MIN_EXAMPLES_PER_CLASS,
    ):
        self.registry = registry
        self.store = store
        self.model = model
        self.gate = gate
        self.min_examples_per_class = min_examples_per_class
        self._observers: List[ProgressObserver] = []
        self._run: Optional[TrainingRun] = None

    @property
    def current_run(self) -> Optional[TrainingRun]:
        """The most recent run, active or finished."""
        return self._run

    @property
    def is_training(self) -> bool:
        return self._run is not None and self._run.is_active

    def subscribe(self, observer: ProgressObserver) -> Callable[[], None]:
        """Register a progress observer. Returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def check_ready(self) -> None:
        """Raise if the session cannot be trained yet."""
        if not self.registry.is_finalized:
            raise RegistryNotFinalized()
        missing = self.store.shortfall(self.min_examples_per_class)
        if missing:
            raise InsufficientExamples(missing, self.min_examples_per_class)

    def is_ready(self) -> bool:
        return self.registry.is_finalized and not self.store.shortfall(self.min_examples_per_class)

    async def train(self, config: Optional[TrainingConfig] = None) -> TrainingRun:
        """
        Run both training phases to completion.

        Args:
            config: Training configuration.

        Returns:
            The completed TrainingRun.

        Raises:
            TrainingNotReady: Preconditions not met (nothing was trained).
            TrainingInProgress / AlreadyCapturing: Another long operation is active.
            TrainingFailed: The model aborted; the example store is unchanged.
        """
        config = config or TrainingConfig()
        self.check_ready()
        self.gate.acquire(Activity.TRAINING)

        run = TrainingRun(config=config)
        self._run = run
        try:
            run.status = RunStatus.RUNNING
            run.phase = TrainingPhase.INITIAL
            run.started_at = datetime.now()
            logger.info(
                "Training %d classes on %d examples (%d + %d epochs)",
                len(self.registry), len(self.store), config.epochs, config.fine_tuning_epochs,
            )

            try:
                await self.model.train(
                    examples=list(self.store),
                    epochs=config.epochs,
                    validation_split=config.validation_split,
                    on_epoch_end=self._epoch_handler(run, TrainingPhase.INITIAL),
                    fine_tuning_epochs=config.fine_tuning_epochs,
                    on_fine_tuning_epoch_end=self._epoch_handler(run, TrainingPhase.FINE_TUNING),
                )
            except TrainingFailed as e:
                raise self._fail(run, e.cause) from e.cause
            except Exception as e:
                raise self._fail(run, e) from e

            initial = run.epochs_completed[TrainingPhase.INITIAL]
            fine_tuning = run.epochs_completed[TrainingPhase.FINE_TUNING]
            if initial != config.epochs or fine_tuning != config.fine_tuning_epochs:
                cause = RuntimeError(
                    f"model reported {initial}/{config.epochs} initial and "
                    f"{fine_tuning}/{config.fine_tuning_epochs} fine-tuning epochs"
                )
                raise self._fail(run, cause) from cause

            # Fine-tuning completes even when it has no epochs.
            run.phase = TrainingPhase.FINE_TUNING
            run.status = RunStatus.COMPLETE
            run.finished_at = datetime.now()
            logger.info("Training complete in %.1fs", run.duration_seconds)
            return run
        finally:
            self.gate.release(Activity.TRAINING)

    def _fail(self, run: TrainingRun, cause: BaseException) -> TrainingFailed:
        run.status = RunStatus.FAILED
        run.error = cause
        run.finished_at = datetime.now()
        logger.error("Training failed: %s", cause)
        return TrainingFailed(cause)

    def _epoch_handler(self, run: TrainingRun, phase: TrainingPhase):
        offset = run.config.epochs if phase is TrainingPhase.FINE_TUNING else 0

        async def on_epoch_end(epoch: int, logs: EpochLogs) -> None:
            expected = run.epochs_completed[phase]
            if phase is TrainingPhase.FINE_TUNING and run.epochs_completed[TrainingPhase.INITIAL] < run.config.epochs:
                raise TrainingFailed(
                    RuntimeError("fine-tuning epoch reported before the initial phase finished")
                )
            if epoch != expected:
                raise TrainingFailed(
                    RuntimeError(f"{phase.value} epoch {epoch} reported, expected {expected}")
                )

            run.phase = phase
            run.epochs_completed[phase] = expected + 1
            progress = EpochProgress(
                phase=phase,
                epoch=epoch + offset,
                train_loss=float(logs.loss),
                train_acc=float(logs.acc),
                val_loss=float(logs.val_loss),
                val_acc=float(logs.val_acc),
            )
            run.last_progress = progress
            logger.debug(
                "%s epoch %d: loss=%.4f acc=%.4f val_loss=%.4f val_acc=%.4f",
                phase.value, progress.epoch, progress.train_loss, progress.train_acc,
                progress.val_loss, progress.val_acc,
            )
            await self._emit(progress)

        return on_epoch_end

    async def _emit(self, progress: EpochProgress) -> None:
        for observer in list(self._observers):
            result = observer(progress)
            if inspect.isawaitable(result):
                await result

    async def stream(self, config: Optional[TrainingConfig] = None) -> AsyncIterator[EpochProgress]:
        """
        Run training and yield progress events as they happen.

        Each call starts a new run. Errors of the run are raised from the
        iterator after the events that preceded them.
        """
        self.check_ready()
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = self.subscribe(queue.put_nowait)
        done = object()

        async def run_training() -> TrainingRun:
            try:
                return await self.train(config)
            finally:
                queue.put_nowait(done)

        task = asyncio.ensure_future(run_training())
        try:
            while True:
                item = await queue.get()
                if item is done:
                    break
                yield item
            await task
        finally:
            unsubscribe()
            if not task.done():
                # Training has no mid-run cancellation; let it finish.
                await asyncio.shield(task)
