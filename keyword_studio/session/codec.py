"""
Dataset serialization for Keyword Studio.

A dataset is a compressed NumPy archive. Its ``manifest`` entry is a JSON
document describing the classes and every example; the spectrogram and
raw-audio payloads are stored as separate float32 arrays next to it.
"""

import io
import json
import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from keyword_studio.capability import RawAudio, Spectrogram
from keyword_studio.exceptions import CorruptDataset, EmptyDataset
from keyword_studio.session.examples import Example, ExampleStore
from keyword_studio.session.labels import BACKGROUND_NOISE_TAG

logger = logging.getLogger(__name__)

DATASET_FORMAT = "keyword-studio-dataset"
DATASET_VERSION = 1
DATASET_SUFFIX = ".kwds"


@dataclass
class LoadedDataset:
    """Result of decoding a dataset."""

    labels: List[str]
    examples: List[Example] = field(default_factory=list)
    duration_multiplier: int = 1

    def count_by_label(self) -> Dict[str, int]:
        counts = {label: 0 for label in self.labels}
        for example in self.examples:
            counts[example.label] = counts.get(example.label, 0) + 1
        return counts

    def merge_into(self, store: ExampleStore) -> List[Example]:
        """Append the loaded examples to ``store``."""
        return store.merge(self.examples)


class DatasetCodec:
    """
    Encode and decode example stores.

    Args:
        model_num_frames: Frames per model input window. Used to derive the
            duration multiplier of examples whose metadata lacks one.
    """

    def __init__(self, model_num_frames: Optional[int] = None):
        self.model_num_frames = model_num_frames

    def serialize(self, store: ExampleStore) -> bytes:
        """Encode every class and example of ``store``."""
        labels = list(store.registry.labels)
        for label in store.labels():
            if label not in labels:
                labels.append(label)

        arrays: Dict[str, np.ndarray] = {}
        entries = []
        for index, example in enumerate(store):
            spec_key = f"spectrogram_{index}"
            arrays[spec_key] = example.spectrogram.data.astype(np.float32)
            entry = {
                "label": example.label,
                "frame_size": int(example.spectrogram.frame_size),
                "duration_multiplier": example.duration_multiplier,
                "spectrogram": spec_key,
                "raw_audio": None,
                "sample_rate": None,
            }
            if example.raw_audio is not None:
                raw_key = f"raw_audio_{index}"
                arrays[raw_key] = example.raw_audio.data.astype(np.float32)
                entry["raw_audio"] = raw_key
                entry["sample_rate"] = int(example.raw_audio.sample_rate)
            entries.append(entry)

        manifest = {
            "format": DATASET_FORMAT,
            "version": DATASET_VERSION,
            "labels": labels,
            "examples": entries,
        }

        buffer = io.BytesIO()
        np.savez_compressed(buffer, manifest=np.array(json.dumps(manifest)), **arrays)
        logger.debug("Serialized %d examples in %d classes", len(entries), len(labels))
        return buffer.getvalue()

    def deserialize(self, data: bytes) -> LoadedDataset:
        """
        Decode a dataset.

        Raises:
            CorruptDataset: Malformed archive, unknown format or version.
            EmptyDataset: The dataset has no classes.
        """
        try:
            with np.load(io.BytesIO(data), allow_pickle=False) as archive:
                manifest = self._read_manifest(archive)
                labels = self._read_labels(manifest)
                examples = [
                    self._read_example(archive, index, entry, labels)
                    for index, entry in enumerate(manifest.get("examples", []))
                ]
        except (CorruptDataset, EmptyDataset):
            raise
        except (ValueError, OSError, EOFError, KeyError, TypeError, zipfile.BadZipFile, zlib.error) as e:
            raise CorruptDataset(f"Unreadable dataset: {e}") from e

        multiplier = self.infer_duration_multiplier(examples)
        logger.info(
            "Loaded %d examples in %d classes (duration multiplier %d)",
            len(examples), len(labels), multiplier,
        )
        return LoadedDataset(labels=labels, examples=examples, duration_multiplier=multiplier)

    @staticmethod
    def infer_duration_multiplier(examples: List[Example]) -> int:
        """Largest multiplier among non-background examples, 1 if there are none."""
        multipliers = [
            e.duration_multiplier
            for e in examples
            if e.label != BACKGROUND_NOISE_TAG and e.duration_multiplier is not None
        ]
        return max(multipliers) if multipliers else 1

    def _read_manifest(self, archive) -> dict:
        if "manifest" not in archive.files:
            raise CorruptDataset("Dataset has no manifest")
        try:
            manifest = json.loads(str(archive["manifest"]))
        except json.JSONDecodeError as e:
            raise CorruptDataset(f"Dataset manifest is not valid JSON: {e}") from e
        if not isinstance(manifest, dict) or manifest.get("format") != DATASET_FORMAT:
            raise CorruptDataset("Not a Keyword Studio dataset")
        version = manifest.get("version")
        if version != DATASET_VERSION:
            raise CorruptDataset(f"Unsupported dataset version: {version!r}")
        if not isinstance(manifest.get("examples", []), list):
            raise CorruptDataset("Dataset examples must be a list")
        return manifest

    def _read_labels(self, manifest: dict) -> List[str]:
        labels = manifest.get("labels")
        if not isinstance(labels, list) or not all(isinstance(l, str) and l.strip() for l in labels):
            raise CorruptDataset("Dataset labels must be a list of non-blank strings")
        if len(set(labels)) != len(labels):
            raise CorruptDataset("Dataset labels contain duplicates")
        if not labels:
            raise EmptyDataset()
        return labels

    def _read_example(self, archive, index: int, entry: dict, labels: List[str]) -> Example:
        label = entry["label"]
        if label not in labels:
            raise CorruptDataset(f"Example {index} has undeclared label {label!r}")

        frame_size = int(entry["frame_size"])
        if frame_size <= 0:
            raise CorruptDataset(f"Example {index} has invalid frame size {frame_size}")
        spec_data = archive[entry["spectrogram"]]
        if spec_data.ndim != 1 or len(spec_data) % frame_size != 0:
            raise CorruptDataset(
                f"Example {index} spectrogram is not a whole number of frames"
            )
        spectrogram = Spectrogram(data=spec_data, frame_size=frame_size)

        raw_audio = None
        if entry.get("raw_audio") is not None:
            sample_rate = int(entry["sample_rate"])
            raw_audio = RawAudio(data=archive[entry["raw_audio"]], sample_rate=sample_rate)

        multiplier = None
        if label != BACKGROUND_NOISE_TAG:
            multiplier = entry.get("duration_multiplier")
            if multiplier is None:
                multiplier = self._multiplier_from_frames(spectrogram)
            multiplier = int(multiplier)
            if multiplier < 1:
                raise CorruptDataset(f"Example {index} has invalid duration multiplier")

        return Example(
            id=index,
            label=label,
            spectrogram=spectrogram,
            raw_audio=raw_audio,
            duration_multiplier=multiplier,
        )

    def _multiplier_from_frames(self, spectrogram: Spectrogram) -> int:
        if not self.model_num_frames:
            return 1
        return max(1, round(spectrogram.num_frames / self.model_num_frames))

    def save(self, store: ExampleStore, path: Path) -> Path:
        """Write ``store`` to a dataset file."""
        path = Path(path)
        if not path.suffix:
            path = path.with_suffix(DATASET_SUFFIX)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.serialize(store))
        return path

    def load(self, path: Path) -> LoadedDataset:
        """Read a dataset file."""
        return self.deserialize(Path(path).read_bytes())
