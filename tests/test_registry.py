"""
Unit tests for keyword_studio.models.registry module.
"""

import asyncio
import json
import zipfile

import pytest

from keyword_studio.exceptions import CorruptModel, NameRequired, UnknownModel
from keyword_studio.models.registry import ARTIFACT_ENTRY, METADATA_ENTRY, ModelRegistry, metadata_json


@pytest.fixture
def registry(tmp_path):
    return ModelRegistry(tmp_path / "models")


class TestSaveLoad:
    """Saving and loading models."""

    def test_save_then_load(self, registry):
        asyncio.run(registry.save("A", b"\x00\x01weights", ["Background Noise", "no", "yes"]))
        model = asyncio.run(registry.load("A"))

        assert model.name == "A"
        assert model.artifact == b"\x00\x01weights"
        assert model.word_labels == ["Background Noise", "no", "yes"]
        assert model.created_at is not None

    def test_list(self, registry):
        asyncio.run(registry.save("B", b"b", ["x", "y"]))
        asyncio.run(registry.save("A", b"a", ["x", "y"]))
        assert list(registry.list()) == ["A", "B"]

    def test_list_is_restartable(self, registry):
        listing = registry.list()
        assert list(listing) == []
        asyncio.run(registry.save("A", b"a", ["x", "y"]))
        assert list(listing) == ["A"]
        assert list(listing) == ["A"]
        assert "A" in listing

    def test_overwrite(self, registry):
        asyncio.run(registry.save("A", b"old", ["x", "y"]))
        asyncio.run(registry.save("A", b"new", ["x", "y", "z"]))

        model = asyncio.run(registry.load("A"))
        assert model.artifact == b"new"
        assert model.word_labels == ["x", "y", "z"]
        assert list(registry.list()) == ["A"]
        assert not list(registry.models_dir.glob("*.tmp"))

    def test_names_are_quoted(self, registry):
        asyncio.run(registry.save("my model/v2", b"a", ["x", "y"]))
        assert list(registry.list()) == ["my model/v2"]
        assert registry.exists("my model/v2")

    def test_archive_layout(self, registry):
        asyncio.run(registry.save("A", b"a", ["x", "y"]))
        path = next(registry.models_dir.glob("*.kwm"))
        with zipfile.ZipFile(path) as zf:
            metadata = json.loads(zf.read(METADATA_ENTRY))
        assert metadata["wordLabels"] == ["x", "y"]

    def test_blank_name(self, registry):
        with pytest.raises(NameRequired):
            asyncio.run(registry.save("  ", b"a", ["x"]))

    def test_load_unknown(self, registry):
        with pytest.raises(UnknownModel):
            asyncio.run(registry.load("missing"))

    def test_load_damaged_file(self, registry):
        registry.models_dir.mkdir(parents=True, exist_ok=True)
        registry._path("A").write_bytes(b"\x00 not a zip archive")

        with pytest.raises(CorruptModel) as exc_info:
            asyncio.run(registry.load("A"))
        assert exc_info.value.name == "A"

    def test_load_without_artifact(self, registry):
        registry.models_dir.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(registry._path("A"), "w") as zf:
            zf.writestr(METADATA_ENTRY, json.dumps({"name": "A", "wordLabels": ["x", "y"]}))

        with pytest.raises(CorruptModel):
            asyncio.run(registry.load("A"))

    def test_load_bad_metadata(self, registry):
        registry.models_dir.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(registry._path("A"), "w") as zf:
            zf.writestr(ARTIFACT_ENTRY, b"weights")
            zf.writestr(METADATA_ENTRY, "{not json")

        with pytest.raises(CorruptModel):
            asyncio.run(registry.load("A"))


class TestDelete:
    """Deleting models."""

    def test_delete(self, registry):
        asyncio.run(registry.save("A", b"a", ["x", "y"]))
        asyncio.run(registry.delete("A"))

        assert list(registry.list()) == []
        with pytest.raises(UnknownModel):
            asyncio.run(registry.load("A"))

    def test_delete_unknown(self, registry):
        with pytest.raises(UnknownModel):
            asyncio.run(registry.delete("missing"))


class TestMetadata:
    """The exported metadata document."""

    def test_metadata_json(self):
        assert json.loads(metadata_json(["a", "b"])) == {"wordLabels": ["a", "b"]}

    def test_export_metadata(self, registry, tmp_path):
        asyncio.run(registry.save("A", b"a", ["x", "y"]))
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        path = asyncio.run(registry.export_metadata("A", out_dir))

        assert path.name == "metadata.json"
        assert json.loads(path.read_text()) == {"wordLabels": ["x", "y"]}
