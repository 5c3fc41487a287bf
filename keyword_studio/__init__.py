"""
Keyword Studio

Build a personalised keyword classifier on top of a pre-trained acoustic
model: define classes, record examples, train, save and recognize.
"""

__version__ = "0.1.0"
__author__ = "Keyword Studio"

from keyword_studio.config import Config
from keyword_studio.app import StudioContext
from keyword_studio.session import (
    BACKGROUND_NOISE_TAG,
    ClassRegistry,
    DatasetCodec,
    ExampleCollector,
    ExampleStore,
    TrainingConfig,
    TrainingOrchestrator,
    TransferSession,
)
from keyword_studio.models import ModelRegistry, PersistedModel

__all__ = [
    "Config",
    "StudioContext",
    "BACKGROUND_NOISE_TAG",
    "ClassRegistry",
    "DatasetCodec",
    "ExampleCollector",
    "ExampleStore",
    "TrainingConfig",
    "TrainingOrchestrator",
    "TransferSession",
    "ModelRegistry",
    "PersistedModel",
]
