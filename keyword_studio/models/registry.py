"""
Saved model management for Keyword Studio.

Handles:
- Saving trained classifiers together with their class labels
- Listing, loading and deleting saved models
- The downloadable ``metadata.json`` of word labels
"""

import asyncio
import json
import logging
import os
import tempfile
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Sequence
from urllib.parse import quote, unquote

from keyword_studio.exceptions import CorruptModel, NameRequired, UnknownModel

logger = logging.getLogger(__name__)

MODEL_SUFFIX = ".kwm"
ARTIFACT_ENTRY = "model.bin"
METADATA_ENTRY = "metadata.json"


def metadata_json(word_labels: Sequence[str]) -> str:
    """The exported metadata document listing the class labels."""
    return json.dumps({"wordLabels": list(word_labels)})


@dataclass
class PersistedModel:
    """A saved classifier."""

    name: str
    artifact: bytes
    word_labels: List[str]
    created_at: Optional[str] = None

    def get_info(self) -> dict:
        return {
            "name": self.name,
            "word_labels": list(self.word_labels),
            "created_at": self.created_at,
            "size_bytes": len(self.artifact),
        }


class SavedModelListing:
    """Names of saved models; every iteration rescans the directory."""

    def __init__(self, models_dir: Path):
        self.models_dir = models_dir

    def __iter__(self) -> Iterator[str]:
        if not self.models_dir.exists():
            return
        for path in sorted(self.models_dir.glob(f"*{MODEL_SUFFIX}")):
            yield unquote(path.stem)

    def __contains__(self, name: object) -> bool:
        return any(existing == name for existing in self)


class ModelRegistry:
    """
    Named storage of trained classifiers.

    Each model is a single archive holding the opaque model bytes and a
    metadata document. Saving writes a temporary file and moves it into
    place, so readers never see a half-written model.
    """

    def __init__(self, models_dir: Optional[Path] = None):
        """
        Initialize the model registry.

        Args:
            models_dir: Directory for saved models.
        """
        if models_dir is None:
            models_dir = Path.home() / "keyword_studio" / "models"

        self.models_dir = Path(models_dir)
        self.models_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        return self.models_dir / f"{quote(name, safe='')}{MODEL_SUFFIX}"

    @staticmethod
    def _require_name(name: Optional[str]) -> str:
        if name is None or not name.strip():
            raise NameRequired()
        return name

    def list(self) -> SavedModelListing:
        """Names of all saved models."""
        return SavedModelListing(self.models_dir)

    def exists(self, name: str) -> bool:
        return bool(name) and self._path(name).exists()

    async def save(self, name: str, artifact: bytes, word_labels: Sequence[str]) -> PersistedModel:
        """
        Save a trained model, replacing any model of the same name.

        Args:
            name: Model name.
            artifact: Serialized classifier.
            word_labels: Finalized class labels.

        Returns:
            The PersistedModel written.
        """
        name = self._require_name(name)
        model = PersistedModel(
            name=name,
            artifact=bytes(artifact),
            word_labels=list(word_labels),
            created_at=datetime.now().isoformat(),
        )
        await asyncio.to_thread(self._write, model)
        logger.info("Saved model %r (%d bytes)", name, len(model.artifact))
        return model

    def _write(self, model: PersistedModel) -> None:
        target = self._path(model.name)
        metadata = {
            "name": model.name,
            "created_at": model.created_at,
            "wordLabels": model.word_labels,
        }
        fd, tmp_name = tempfile.mkstemp(dir=self.models_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                with zipfile.ZipFile(f, "w", zipfile.ZIP_DEFLATED) as zf:
                    zf.writestr(ARTIFACT_ENTRY, model.artifact)
                    zf.writestr(METADATA_ENTRY, json.dumps(metadata, indent=2))
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    async def load(self, name: str) -> PersistedModel:
        """
        Load a saved model by name.

        Raises:
            UnknownModel: No model with this name.
            CorruptModel: The model file is damaged.
        """
        name = self._require_name(name)
        model = await asyncio.to_thread(self._read, name)
        logger.debug("Loaded model %r", name)
        return model

    def _read(self, name: str) -> PersistedModel:
        path = self._path(name)
        try:
            with zipfile.ZipFile(path, "r") as zf:
                artifact = zf.read(ARTIFACT_ENTRY)
                metadata = json.loads(zf.read(METADATA_ENTRY).decode("utf-8"))
        except FileNotFoundError:
            raise UnknownModel(name) from None
        except zipfile.BadZipFile as e:
            raise CorruptModel(name, f"not a model archive ({e})") from e
        except KeyError as e:
            raise CorruptModel(name, f"missing entry {e}") from e
        except ValueError as e:
            raise CorruptModel(name, f"invalid metadata ({e})") from e
        if not isinstance(metadata, dict):
            raise CorruptModel(name, "metadata must be a JSON object")

        return PersistedModel(
            name=metadata.get("name", name),
            artifact=artifact,
            word_labels=list(metadata.get("wordLabels", [])),
            created_at=metadata.get("created_at"),
        )

    async def delete(self, name: str) -> None:
        """
        Delete a saved model.

        Raises:
            UnknownModel: No model with this name.
        """
        name = self._require_name(name)
        try:
            await asyncio.to_thread(self._path(name).unlink)
        except FileNotFoundError:
            raise UnknownModel(name) from None
        logger.info("Deleted model %r", name)

    async def export_metadata(self, name: str, output_path: Path) -> Path:
        """Write the ``metadata.json`` of a saved model."""
        model = await self.load(name)
        output_path = Path(output_path)
        if output_path.is_dir():
            output_path = output_path / METADATA_ENTRY
        output_path.write_text(metadata_json(model.word_labels), encoding="utf-8")
        return output_path
