"""
Saved model management for Keyword Studio.
"""

from keyword_studio.models.registry import ModelRegistry, PersistedModel, metadata_json

__all__ = [
    "ModelRegistry",
    "PersistedModel",
    "metadata_json",
]
