"""
Application context for Keyword Studio front ends.

Holds the pre-trained recognizer, the active transfer session, the saved
model registry and the live recognition state, so front ends pass one
object around instead of keeping globals.
"""

import importlib
import logging
from typing import Callable, List, Optional

from keyword_studio.capability import AcousticModel, ResultCallback
from keyword_studio.config import Config
from keyword_studio.exceptions import ConfigurationError
from keyword_studio.models.registry import ModelRegistry, PersistedModel
from keyword_studio.session.session import TransferSession
from keyword_studio.utils.slug import default_model_name

logger = logging.getLogger(__name__)


def load_capability_factory(path: str) -> Callable[[], AcousticModel]:
    """
    Resolve ``"package.module:callable"`` to the callable.

    Raises:
        ConfigurationError: The path is empty or cannot be imported.
    """
    if not path or ":" not in path:
        raise ConfigurationError(
            "capability_factory must look like 'package.module:callable'"
        )
    module_name, _, attr = path.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import {module_name!r}: {e}") from e
    try:
        return getattr(module, attr)
    except AttributeError:
        raise ConfigurationError(f"{module_name!r} has no attribute {attr!r}") from None


class StudioContext:
    """
    Everything a front end needs to drive Keyword Studio.

    Args:
        recognizer: The pre-trained acoustic model.
        config: Application configuration.
        models: Saved model registry (defaults to ``config.models_dir``).
    """

    def __init__(
        self,
        recognizer: AcousticModel,
        config: Optional[Config] = None,
        models: Optional[ModelRegistry] = None,
    ):
        self.config = config or Config()
        self.recognizer = recognizer
        self.models = models or ModelRegistry(self.config.models_dir)
        self.session: Optional[TransferSession] = None
        self.loaded_model = None
        self.loaded_model_name: Optional[str] = None

    @classmethod
    def from_config(cls, config: Config) -> "StudioContext":
        factory = load_capability_factory(config.capability_factory)
        return cls(factory(), config=config)

    @staticmethod
    def default_name() -> str:
        return default_model_name()

    def new_session(self, name: Optional[str] = None) -> TransferSession:
        """Start a fresh transfer session, discarding the current one."""
        name = name if name is not None else self.default_name()
        session = TransferSession(name, self.recognizer.create_transfer(name), self.config)
        self.session = session
        logger.info("Started session %r", name)
        return session

    @property
    def active_model(self) -> AcousticModel:
        """The model used for live recognition."""
        if self.session is not None and self.session.is_trained:
            return self.session.model
        if self.loaded_model is not None:
            return self.loaded_model
        return self.recognizer

    def word_labels(self) -> List[str]:
        return list(self.active_model.word_labels())

    def is_listening(self) -> bool:
        return self.active_model.is_listening()

    async def start_listening(self, on_result: ResultCallback) -> None:
        """Start streaming recognition with the active model."""
        model = self.active_model
        await model.listen(
            on_result,
            probability_threshold=self.config.recognition.probability_threshold,
            suppression_time_ms=self.config.recognition.suppression_time_ms,
            include_spectrogram=True,
        )
        logger.info("Streaming recognition started")

    async def stop_listening(self) -> None:
        await self.active_model.stop_listening()
        logger.info("Streaming recognition stopped")

    def saved_models(self) -> List[str]:
        return list(self.models.list())

    async def load_model(self, name: str) -> PersistedModel:
        """Load a saved classifier and make it the model used for recognition."""
        persisted = await self.models.load(name)
        self.loaded_model = await self.recognizer.load_transfer(
            persisted.name, persisted.artifact, persisted.word_labels
        )
        self.loaded_model_name = persisted.name
        return persisted

    async def delete_model(self, name: str) -> None:
        await self.models.delete(name)
        if self.loaded_model_name == name:
            self.loaded_model = None
            self.loaded_model_name = None
