"""
Unit tests for keyword_studio.session.trainer module.
"""

import asyncio

import pytest

from conftest import make_spectrogram
from keyword_studio.config import TrainingDefaults
from keyword_studio.exceptions import (
    AlreadyCapturing,
    InsufficientExamples,
    RegistryNotFinalized,
    TrainingFailed,
    TrainingInProgress,
    TrainingNotReady,
)
from keyword_studio.session.gate import Activity
from keyword_studio.session.labels import BACKGROUND_NOISE_TAG
from keyword_studio.session.trainer import (
    RunStatus,
    TrainingConfig,
    TrainingHistory,
    TrainingPhase,
)


class TestTrainingConfig:
    """Tests for TrainingConfig."""

    def test_defaults(self):
        config = TrainingConfig()
        assert config.epochs == 100
        assert config.fine_tuning_epochs == 0
        assert config.validation_split == 0.25

    def test_total_epochs(self):
        assert TrainingConfig(epochs=3, fine_tuning_epochs=2).total_epochs == 5

    @pytest.mark.parametrize("kwargs", [
        {"epochs": -1},
        {"fine_tuning_epochs": -1},
        {"validation_split": 0.0},
        {"validation_split": 1.0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            TrainingConfig(**kwargs)

    def test_from_defaults_ignores_none(self):
        defaults = TrainingDefaults(epochs=50, fine_tuning_epochs=5)
        config = TrainingConfig.from_defaults(defaults, epochs=None, fine_tuning_epochs=1)
        assert config.epochs == 50
        assert config.fine_tuning_epochs == 1


class TestTrain:
    """Running both phases."""

    def test_epoch_numbering(self, ready_session):
        events = []
        ready_session.trainer.subscribe(events.append)

        run = asyncio.run(ready_session.start_training(TrainingConfig(epochs=3, fine_tuning_epochs=2)))

        assert [(e.phase, e.epoch) for e in events] == [
            (TrainingPhase.INITIAL, 0),
            (TrainingPhase.INITIAL, 1),
            (TrainingPhase.INITIAL, 2),
            (TrainingPhase.FINE_TUNING, 3),
            (TrainingPhase.FINE_TUNING, 4),
        ]
        assert run.status is RunStatus.COMPLETE
        assert run.progress == 1.0
        assert ready_session.is_trained
        assert not ready_session.gate.busy

    def test_model_receives_examples(self, ready_session):
        asyncio.run(ready_session.start_training(TrainingConfig(epochs=1, validation_split=0.5)))
        call = ready_session.model.train_calls[0]
        assert len(call["examples"]) == 24
        assert call["validation_split"] == 0.5

    def test_no_fine_tuning(self, ready_session):
        events = []
        ready_session.trainer.subscribe(events.append)

        run = asyncio.run(ready_session.start_training(TrainingConfig(epochs=2)))

        assert all(e.phase is TrainingPhase.INITIAL for e in events)
        assert len(events) == 2
        assert run.phase is TrainingPhase.FINE_TUNING
        assert run.is_complete

    def test_async_observers_in_order(self, ready_session):
        seen = []

        async def slow(progress):
            await asyncio.sleep(0)
            seen.append(("slow", progress.epoch))

        ready_session.trainer.subscribe(slow)
        ready_session.trainer.subscribe(lambda p: seen.append(("fast", p.epoch)))

        asyncio.run(ready_session.start_training(TrainingConfig(epochs=2)))
        assert seen == [("slow", 0), ("fast", 0), ("slow", 1), ("fast", 1)]

    def test_unsubscribe(self, ready_session):
        events = []
        unsubscribe = ready_session.trainer.subscribe(events.append)
        unsubscribe()
        asyncio.run(ready_session.start_training(TrainingConfig(epochs=2)))
        assert events == []

    def test_history(self, ready_session):
        history = TrainingHistory()
        ready_session.trainer.subscribe(history)
        asyncio.run(ready_session.start_training(TrainingConfig(epochs=2, fine_tuning_epochs=1)))

        assert history.series[TrainingPhase.INITIAL]["epoch"] == [0, 1]
        assert history.series[TrainingPhase.FINE_TUNING]["epoch"] == [2]
        assert [row["phase"] for row in history.rows()] == ["initial", "initial", "fineTuning"]


class TestReadiness:
    """Training preconditions."""

    def test_seven_examples(self, finalized_session):
        for label in finalized_session.labels:
            count = 7 if label == "yes" else 8
            for _ in range(count):
                if label == BACKGROUND_NOISE_TAG:
                    finalized_session.store.add_example(label, make_spectrogram())
                else:
                    finalized_session.store.add_example(label, make_spectrogram(), duration_multiplier=1)

        with pytest.raises(InsufficientExamples) as exc_info:
            asyncio.run(finalized_session.start_training(TrainingConfig(epochs=1)))

        assert exc_info.value.missing == {"yes": 1}
        assert isinstance(exc_info.value, TrainingNotReady)
        assert finalized_session.model.train_calls == []
        assert finalized_session.training_run is None

    def test_not_finalized(self, session):
        session.add_class("yes")
        with pytest.raises(RegistryNotFinalized):
            asyncio.run(session.start_training())

    def test_capture_blocks_training(self, ready_session):
        ready_session.gate.acquire(Activity.CAPTURE, "yes")
        with pytest.raises(AlreadyCapturing):
            asyncio.run(ready_session.start_training(TrainingConfig(epochs=1)))
        assert ready_session.model.train_calls == []

    def test_training_in_progress(self, ready_session):
        async def scenario():
            first = asyncio.ensure_future(ready_session.start_training(TrainingConfig(epochs=3)))
            await asyncio.sleep(0)
            with pytest.raises(TrainingInProgress):
                await ready_session.start_training(TrainingConfig(epochs=1))
            return await first

        run = asyncio.run(scenario())
        assert run.is_complete
        assert len(ready_session.model.train_calls) == 1

    def test_controls(self, finalized_session):
        assert finalized_session.trainer.is_ready() is False
        assert finalized_session.controls().can_train is False


class TestFailure:
    """Capability errors during training."""

    def test_training_failed(self, ready_session):
        ready_session.model.fail_after_epoch = 1
        events = []
        ready_session.trainer.subscribe(events.append)
        examples_before = [e.id for e in ready_session.store]

        with pytest.raises(TrainingFailed) as exc_info:
            asyncio.run(ready_session.start_training(TrainingConfig(epochs=5)))

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert [e.epoch for e in events] == [0, 1]
        assert [e.id for e in ready_session.store] == examples_before
        assert ready_session.training_run.status is RunStatus.FAILED
        assert not ready_session.is_trained
        assert not ready_session.gate.busy

    def test_rejected_before_any_epoch(self, ready_session):
        ready_session.model.train_error = ValueError("bad input shape")
        with pytest.raises(TrainingFailed):
            asyncio.run(ready_session.start_training(TrainingConfig(epochs=2)))
        assert ready_session.training_run.error is ready_session.model.train_error

    def test_out_of_order_epochs(self, ready_session):
        ready_session.model.epoch_order = [0, 2, 1]
        with pytest.raises(TrainingFailed):
            asyncio.run(ready_session.start_training(TrainingConfig(epochs=3)))
        assert ready_session.training_run.status is RunStatus.FAILED

    def test_missing_epochs(self, ready_session):
        ready_session.model.epoch_order = [0, 1]

        with pytest.raises(TrainingFailed):
            asyncio.run(ready_session.start_training(TrainingConfig(epochs=3)))

        assert ready_session.training_run.status is RunStatus.FAILED
        assert ready_session.training_run.epochs_completed[TrainingPhase.INITIAL] == 2
        assert not ready_session.is_trained
        assert not ready_session.gate.busy

    def test_retry_after_failure(self, ready_session):
        ready_session.model.train_error = RuntimeError("interrupted")
        with pytest.raises(TrainingFailed):
            asyncio.run(ready_session.start_training(TrainingConfig(epochs=1)))

        ready_session.model.train_error = None
        run = asyncio.run(ready_session.start_training(TrainingConfig(epochs=1)))
        assert run.is_complete


class TestStream:
    """Consuming progress as an async iterator."""

    def test_stream_yields_all_events(self, ready_session):
        async def consume():
            return [e async for e in ready_session.stream_training(TrainingConfig(epochs=2, fine_tuning_epochs=1))]

        events = asyncio.run(consume())
        assert [e.epoch for e in events] == [0, 1, 2]
        assert ready_session.is_trained

    def test_stream_restartable(self, ready_session):
        async def consume():
            return [e async for e in ready_session.stream_training(TrainingConfig(epochs=1))]

        assert len(asyncio.run(consume())) == 1
        assert len(asyncio.run(consume())) == 1
        assert len(ready_session.model.train_calls) == 2

    def test_stream_raises_after_events(self, ready_session):
        ready_session.model.fail_after_epoch = 0
        events = []

        async def consume():
            async for e in ready_session.stream_training(TrainingConfig(epochs=3)):
                events.append(e)

        with pytest.raises(TrainingFailed):
            asyncio.run(consume())
        assert [e.epoch for e in events] == [0]

    def test_stream_not_ready(self, finalized_session):
        async def consume():
            return [e async for e in finalized_session.stream_training(TrainingConfig(epochs=1))]

        with pytest.raises(InsufficientExamples):
            asyncio.run(consume())
