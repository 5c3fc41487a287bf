"""
Configuration and paths for Keyword Studio.
"""

from pathlib import Path
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional
import json
import logging

from keyword_studio.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Minimum required number of examples per class for transfer learning.
MIN_EXAMPLES_PER_CLASS = 8


class BackgroundPlacement(Enum):
    """Where the background-noise label goes in the finalized class list."""
    SORTED = "sorted"  # sorted like any other label
    FIRST = "first"
    LAST = "last"


@dataclass
class CaptureConfig:
    """Example recording settings."""
    duration_multiplier: int = 1
    background_duration_sec: float = 10.0
    snippet_duration_sec: float = 0.1
    include_raw_audio: bool = False


@dataclass
class TrainingDefaults:
    """Default training parameters."""
    epochs: int = 100
    fine_tuning_epochs: int = 0
    validation_split: float = 0.25
    min_examples_per_class: int = MIN_EXAMPLES_PER_CLASS


@dataclass
class LabelConfig:
    """Class label ordering."""
    background_placement: BackgroundPlacement = BackgroundPlacement.SORTED


@dataclass
class RecognitionConfig:
    """Live recognition settings."""
    probability_threshold: float = 0.75
    suppression_time_ms: int = 1000


@dataclass
class Config:
    """Main configuration for Keyword Studio."""

    # Base path
    app_dir: Path = field(default_factory=lambda: Path.home() / "keyword_studio")

    # Import path of a callable returning the base AcousticModel,
    # e.g. "my_package.models:create_recognizer"
    capability_factory: str = ""

    # Sub-configurations
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    training: TrainingDefaults = field(default_factory=TrainingDefaults)
    labels: LabelConfig = field(default_factory=LabelConfig)
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)

    # Derived paths
    @property
    def models_dir(self) -> Path:
        return self.app_dir / "models"

    @property
    def datasets_dir(self) -> Path:
        return self.app_dir / "datasets"

    @property
    def settings_file(self) -> Path:
        return self.app_dir / "settings.json"

    def ensure_directories(self) -> None:
        """Create all required directories if they don't exist."""
        for directory in (self.app_dir, self.models_dir, self.datasets_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def validate(self) -> None:
        """Reject values the session cannot work with."""
        if self.capture.duration_multiplier < 1:
            raise ConfigurationError("capture.duration_multiplier must be >= 1")
        if self.capture.background_duration_sec <= 0:
            raise ConfigurationError("capture.background_duration_sec must be positive")
        if self.capture.snippet_duration_sec <= 0:
            raise ConfigurationError("capture.snippet_duration_sec must be positive")
        if self.training.epochs < 0 or self.training.fine_tuning_epochs < 0:
            raise ConfigurationError("training epochs must not be negative")
        if not 0.0 < self.training.validation_split < 1.0:
            raise ConfigurationError("training.validation_split must be between 0 and 1")
        if self.training.min_examples_per_class < 1:
            raise ConfigurationError("training.min_examples_per_class must be >= 1")

    def to_dict(self) -> dict:
        return {
            "app_dir": str(self.app_dir),
            "capability_factory": self.capability_factory,
            "capture": asdict(self.capture),
            "training": asdict(self.training),
            "labels": {"background_placement": self.labels.background_placement.value},
            "recognition": asdict(self.recognition),
        }

    def save(self, settings_file: Optional[Path] = None) -> Path:
        """Save configuration to settings file."""
        if settings_file is None:
            self.ensure_directories()
            settings_file = self.settings_file
        with open(settings_file, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.debug("Saved settings to %s", settings_file)
        return settings_file

    @classmethod
    def load(cls, settings_file: Optional[Path] = None) -> "Config":
        """Load configuration from settings file."""
        config = cls()

        if settings_file is None:
            settings_file = config.settings_file

        if not settings_file.exists():
            return config

        try:
            with open(settings_file) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid settings file {settings_file}: {e}") from e

        if "app_dir" in data:
            config.app_dir = Path(data["app_dir"])

        config.capability_factory = data.get("capability_factory", "")

        if "capture" in data:
            capture = data["capture"]
            config.capture = CaptureConfig(
                duration_multiplier=capture.get("duration_multiplier", 1),
                background_duration_sec=capture.get("background_duration_sec", 10.0),
                snippet_duration_sec=capture.get("snippet_duration_sec", 0.1),
                include_raw_audio=capture.get("include_raw_audio", False),
            )

        if "training" in data:
            training = data["training"]
            config.training = TrainingDefaults(
                epochs=training.get("epochs", 100),
                fine_tuning_epochs=training.get("fine_tuning_epochs", 0),
                validation_split=training.get("validation_split", 0.25),
                min_examples_per_class=training.get(
                    "min_examples_per_class", MIN_EXAMPLES_PER_CLASS
                ),
            )

        if "labels" in data:
            placement = data["labels"].get("background_placement", "sorted")
            try:
                config.labels = LabelConfig(BackgroundPlacement(placement))
            except ValueError as e:
                raise ConfigurationError(f"Unknown background placement: {placement!r}") from e

        if "recognition" in data:
            recognition = data["recognition"]
            config.recognition = RecognitionConfig(
                probability_threshold=recognition.get("probability_threshold", 0.75),
                suppression_time_ms=recognition.get("suppression_time_ms", 1000),
            )

        config.validate()
        return config


# Default configuration instance
default_config = Config()
