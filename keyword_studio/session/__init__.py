"""
Transfer-learning session modules for Keyword Studio.

Provides:
- Class label registry with the reserved background-noise class
- Example storage with duration multiplier checks
- Dataset serialization and merging
- Example recording with live preview
- Two-phase training with per-epoch progress
"""

from keyword_studio.session.labels import BACKGROUND_NOISE_TAG, ClassRegistry, order_labels
from keyword_studio.session.examples import Example, ExampleStore, StoreEvent
from keyword_studio.session.codec import DatasetCodec, LoadedDataset
from keyword_studio.session.gate import Activity, ActivityGate
from keyword_studio.session.collector import CaptureState, ExampleCollector
from keyword_studio.session.trainer import (
    EpochProgress,
    RunStatus,
    TrainingConfig,
    TrainingHistory,
    TrainingOrchestrator,
    TrainingPhase,
    TrainingRun,
)
from keyword_studio.session.session import SessionControls, TransferSession

__all__ = [
    # Classes
    "BACKGROUND_NOISE_TAG",
    "ClassRegistry",
    "order_labels",
    # Examples
    "Example",
    "ExampleStore",
    "StoreEvent",
    # Datasets
    "DatasetCodec",
    "LoadedDataset",
    # Recording
    "Activity",
    "ActivityGate",
    "CaptureState",
    "ExampleCollector",
    # Training
    "EpochProgress",
    "RunStatus",
    "TrainingConfig",
    "TrainingHistory",
    "TrainingOrchestrator",
    "TrainingPhase",
    "TrainingRun",
    # Session
    "SessionControls",
    "TransferSession",
]
