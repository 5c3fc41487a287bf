#!/usr/bin/env python3
"""
Keyword Studio - Command Line Interface

Inspect and merge recorded datasets, manage saved models, or launch the web UI.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from keyword_studio.config import Config
from keyword_studio.exceptions import KeywordStudioError


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="keyword_studio",
        description="Keyword Studio - Train personalised keyword classifiers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  # Show classes and example counts of a dataset
  keyword_studio --dataset-info yes_no.kwds

  # Merge datasets into one file
  keyword_studio --merge-datasets a.kwds b.kwds -o merged.kwds

  # Write the raw recordings of a dataset as WAV files
  keyword_studio --export-audio yes_no.kwds -o ~/Desktop/recordings/

  # Saved models
  keyword_studio --list-models
  keyword_studio --export-metadata my-model -o metadata.json
  keyword_studio --delete-model my-model

  # Launch web UI
  keyword_studio --ui --port 8080
        """,
    )

    parser.add_argument(
        "--dataset-info",
        type=str,
        metavar="FILE",
        help="Print classes and example counts of a dataset file",
    )

    parser.add_argument(
        "--merge-datasets",
        type=str,
        nargs="+",
        metavar="FILE",
        help="Merge dataset files into the file given with --output",
    )

    parser.add_argument(
        "--export-audio",
        type=str,
        metavar="FILE",
        help="Write raw recordings of a dataset as WAV files into --output",
    )

    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List saved models and exit",
    )

    parser.add_argument(
        "--delete-model",
        type=str,
        metavar="NAME",
        help="Delete a saved model",
    )

    parser.add_argument(
        "--export-metadata",
        type=str,
        metavar="NAME",
        help="Write metadata.json (word labels) of a saved model into --output",
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output file or directory",
    )

    parser.add_argument(
        "--settings",
        type=str,
        default=None,
        help="Settings file (default: ~/keyword_studio/settings.json)",
    )

    parser.add_argument(
        "--ui",
        action="store_true",
        help="Launch the web UI",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=7860,
        help="Port for web UI (default: 7860)",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress progress output",
    )

    return parser


def dataset_info(path: Path) -> None:
    """Print the classes of a dataset file."""
    from keyword_studio.session.codec import DatasetCodec
    from keyword_studio.utils.audio_utils import format_duration

    loaded = DatasetCodec().load(path)
    counts = loaded.count_by_label()

    print("\n" + "=" * 50)
    print(f"Dataset: {path.name}")
    print("=" * 50)
    for label in loaded.labels:
        print(f"  • {label}: {counts.get(label, 0)} examples")
    with_audio = [e for e in loaded.examples if e.has_raw_audio]
    audio_seconds = sum(e.raw_audio.duration for e in with_audio)
    print("-" * 40)
    print(f"  Total examples:      {len(loaded.examples)}")
    print(f"  With raw audio:      {len(with_audio)} ({format_duration(audio_seconds)})")
    print(f"  Duration multiplier: {loaded.duration_multiplier}")


def merge_datasets(paths: List[Path], output: Path, quiet: bool = False) -> Path:
    """Merge dataset files; classes present in several files are concatenated."""
    from keyword_studio.session.codec import DatasetCodec
    from keyword_studio.session.examples import ExampleStore
    from keyword_studio.session.labels import BACKGROUND_NOISE_TAG, ClassRegistry

    codec = DatasetCodec()
    registry = ClassRegistry()
    store = ExampleStore(registry)

    for path in tqdm(paths, desc="Merging", unit="file", disable=quiet):
        loaded = codec.load(path)
        for label in loaded.labels:
            if label != BACKGROUND_NOISE_TAG and label not in registry:
                registry.add_class(label)
        loaded.merge_into(store)

    return codec.save(store, output)


def export_audio(path: Path, output_dir: Path, quiet: bool = False) -> int:
    """Write every raw recording of a dataset as WAV. Returns the file count."""
    from keyword_studio.session.codec import DatasetCodec
    from keyword_studio.utils.audio_utils import save_example_audio

    loaded = DatasetCodec().load(path)
    written = 0
    for example in tqdm(loaded.examples, desc="Exporting", unit="example", disable=quiet):
        if save_example_audio(example, output_dir) is not None:
            written += 1
    return written


def list_models(config: Config) -> None:
    """List saved models."""
    from keyword_studio.models.registry import ModelRegistry

    registry = ModelRegistry(config.models_dir)
    names = list(registry.list())

    print("\n" + "=" * 50)
    print("Saved Models")
    print("=" * 50)
    if not names:
        print("  (No saved models found)")
        print(f"  Models are saved to: {registry.models_dir}")
        return
    for name in names:
        print(f"  • {name}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = Config.load(Path(args.settings) if args.settings else None)
    except KeywordStudioError as e:
        print(f"Error: {e}")
        return 1

    # Handle --ui (launch web interface)
    if args.ui:
        from keyword_studio.ui import launch
        print("Launching Keyword Studio Web UI...")
        launch(config=config, server_port=args.port)
        return 0

    from keyword_studio.models.registry import ModelRegistry

    try:
        if args.list_models:
            list_models(config)
            return 0

        if args.delete_model:
            asyncio.run(ModelRegistry(config.models_dir).delete(args.delete_model))
            if not args.quiet:
                print(f"Deleted: {args.delete_model}")
            return 0

        if args.export_metadata:
            output = Path(args.output) if args.output else Path.cwd()
            path = asyncio.run(
                ModelRegistry(config.models_dir).export_metadata(args.export_metadata, output)
            )
            if not args.quiet:
                print(f"Metadata: {path}")
            return 0

        if args.dataset_info:
            dataset_info(Path(args.dataset_info))
            return 0

        if args.merge_datasets:
            if not args.output:
                parser.error("--merge-datasets requires --output")
            path = merge_datasets([Path(p) for p in args.merge_datasets], Path(args.output), args.quiet)
            if not args.quiet:
                print(f"Merged dataset: {path}")
            return 0

        if args.export_audio:
            if not args.output:
                parser.error("--export-audio requires --output")
            count = export_audio(Path(args.export_audio), Path(args.output), args.quiet)
            if not args.quiet:
                print(f"Wrote {count} WAV files to {args.output}")
            return 0

    except (KeywordStudioError, OSError) as e:
        print(f"Error: {e}")
        return 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
