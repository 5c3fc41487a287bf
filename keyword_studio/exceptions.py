"""
Custom exceptions for Keyword Studio.
"""


class KeywordStudioError(Exception):
    """Base exception for Keyword Studio."""
    pass


class ConfigurationError(KeywordStudioError):
    """Configuration error."""
    pass


# Class registry

class RegistryError(KeywordStudioError):
    """Invalid class label operation."""
    pass


class EmptyLabel(RegistryError):
    """Class label is blank."""

    def __init__(self):
        super().__init__("Class label must not be empty")


class DuplicateLabel(RegistryError):
    """Class label is already registered."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Class label already exists: {label!r}")


class UnknownLabel(RegistryError):
    """Class label is not registered."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Unknown class label: {label!r}")


class InsufficientClasses(RegistryError):
    """Fewer than two classes after injecting background noise."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(
            f"Need at least 2 classes including background noise, have {count}"
        )


class RegistryLocked(RegistryError):
    """Class registry has been finalized and can no longer change."""

    def __init__(self):
        super().__init__("Class list is finalized and can no longer be edited")


class RegistryNotFinalized(RegistryError):
    """Operation requires a finalized class registry."""

    def __init__(self):
        super().__init__("Class list has not been finalized yet")


# Example store

class StoreError(KeywordStudioError):
    """Invalid example store operation."""
    pass


class InconsistentDurationMultiplier(StoreError):
    """Example duration multiplier disagrees with its class."""

    def __init__(self, label: str, expected: int, actual: int):
        self.label = label
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Examples of {label!r} use duration multiplier {expected}, got {actual}"
        )


class UnknownExampleId(StoreError):
    """No example with this id."""

    def __init__(self, example_id: int):
        self.example_id = example_id
        super().__init__(f"Unknown example id: {example_id}")


# Dataset codec

class DatasetError(KeywordStudioError):
    """Dataset could not be read."""
    pass


class CorruptDataset(DatasetError):
    """Dataset bytes are malformed or of an unknown version."""
    pass


class EmptyDataset(DatasetError):
    """Dataset contains no classes."""

    def __init__(self):
        super().__init__("Dataset contains no classes")


# Example collection

class CaptureError(KeywordStudioError):
    """Example capture failed."""
    pass


class AlreadyCapturing(CaptureError):
    """Another capture is in progress."""

    def __init__(self, label: str = ""):
        self.label = label
        message = "A capture is already in progress"
        if label:
            message += f" (recording {label!r})"
        super().__init__(message)


class NotCapturing(CaptureError):
    """No capture is in progress."""

    def __init__(self):
        super().__init__("No capture is in progress")


class CaptureCancelled(CaptureError):
    """The capture was stopped before it completed."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Recording {label!r} was cancelled")


class CaptureFailed(CaptureError):
    """The model reported a capture failure."""

    def __init__(self, label: str, cause: BaseException):
        self.label = label
        self.cause = cause
        super().__init__(f"Recording {label!r} failed: {cause}")


# Training

class TrainingError(KeywordStudioError):
    """Model training failed."""
    pass


class TrainingInProgress(TrainingError):
    """A training run is already active."""

    def __init__(self):
        super().__init__("Training is already in progress")


class TrainingNotReady(TrainingError):
    """Session does not satisfy the training preconditions."""
    pass


class InsufficientExamples(TrainingNotReady):
    """Some classes have fewer examples than required."""

    def __init__(self, missing: dict, minimum: int):
        self.missing = dict(missing)
        self.minimum = minimum
        details = ", ".join(f"{label!r} needs {n} more" for label, n in self.missing.items())
        super().__init__(f"Need at least {minimum} examples per class: {details}")


class TrainingFailed(TrainingError):
    """The model rejected or aborted training."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Training failed: {cause}")


# Model registry

class ModelRegistryError(KeywordStudioError):
    """Saved model operation failed."""
    pass


class NameRequired(ModelRegistryError):
    """Model name is blank."""

    def __init__(self):
        super().__init__("A model name is required")


class UnknownModel(ModelRegistryError):
    """No saved model with this name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Model not found: {name!r}")


class CorruptModel(ModelRegistryError):
    """Saved model file cannot be read."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Model {name!r} is unreadable: {reason}")
